"""
Unit tests for the insight narrator (risk factors, actions, email, summary).
"""
import pytest
from datetime import datetime, timedelta

from app.core.models import Activity, Deal
from app.ml.narrator import (
    RISK_DECLINING,
    RISK_LARGE_DEAL,
    RISK_LOW_ENGAGEMENT,
    RISK_NO_CONTACT,
    RISK_NO_MEETINGS,
    RISK_STALLED,
    days_since_last_activity,
    derive_risk_factors,
    email_draft,
    format_amount,
    narrate,
    next_best_actions,
    summarize,
)

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _deal(stage="PROPOSAL", amount=125000, age_days=10, close_in_days=None, name="Acme Renewal"):
    return Deal(
        name=name,
        stage=stage,
        amount=amount,
        created_at=NOW - timedelta(days=age_days),
        expected_close_date=NOW + timedelta(days=close_in_days) if close_in_days is not None else None,
    )


def _activity(activity_type="CALL", days_ago=1):
    return Activity(type=activity_type, occurred_at=NOW - timedelta(days=days_ago))


class TestRiskFactors:
    """Tests for derive_risk_factors()."""

    @pytest.mark.unit
    def test_no_activities(self):
        factors = derive_risk_factors(_deal(amount=50000), [], NOW)

        assert factors == [RISK_NO_CONTACT, RISK_NO_MEETINGS, RISK_LOW_ENGAGEMENT]

    @pytest.mark.unit
    def test_well_engaged_deal_has_no_risks(self):
        activities = [_activity("MEETING", 1), _activity("CALL", 2), _activity("EMAIL", 3)]

        assert derive_risk_factors(_deal(amount=50000), activities, NOW) == []

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "days_ago,expected",
        [(7, None), (8, RISK_DECLINING), (14, RISK_DECLINING), (15, RISK_NO_CONTACT)],
    )
    def test_contact_gap_thresholds(self, days_ago, expected):
        activities = [
            _activity("MEETING", days_ago),
            _activity("CALL", days_ago + 1),
            _activity("EMAIL", days_ago + 2),
        ]

        factors = derive_risk_factors(_deal(amount=50000), activities, NOW)

        if expected is None:
            assert factors == []
        else:
            assert factors == [expected]

    @pytest.mark.unit
    def test_gap_measured_from_most_recent_activity(self):
        """Input order does not matter."""
        activities = [_activity("CALL", 20), _activity("MEETING", 2), _activity("EMAIL", 30)]

        factors = derive_risk_factors(_deal(amount=50000), activities, NOW)

        assert RISK_NO_CONTACT not in factors
        assert RISK_DECLINING not in factors

    @pytest.mark.unit
    def test_large_deal(self):
        activities = [_activity("MEETING"), _activity("CALL"), _activity("EMAIL")]

        assert derive_risk_factors(_deal(amount=200_000), activities, NOW) == []
        assert derive_risk_factors(_deal(amount=200_001), activities, NOW) == [RISK_LARGE_DEAL]

    @pytest.mark.unit
    def test_stalled_only_in_early_stages(self):
        activities = [_activity("MEETING"), _activity("CALL"), _activity("EMAIL")]

        qualified = _deal(stage="QUALIFIED", amount=50000, age_days=61)
        proposal = _deal(stage="PROPOSAL", amount=50000, age_days=61)
        young = _deal(stage="PROSPECTING", amount=50000, age_days=60)

        assert derive_risk_factors(qualified, activities, NOW) == [RISK_STALLED]
        assert derive_risk_factors(proposal, activities, NOW) == []
        assert derive_risk_factors(young, activities, NOW) == []

    @pytest.mark.unit
    def test_all_rules_firing_are_in_fixed_order(self):
        deal = _deal(stage="PROSPECTING", amount=300_000, age_days=90)

        factors = derive_risk_factors(deal, [], NOW)

        assert factors == [
            RISK_NO_CONTACT,
            RISK_LARGE_DEAL,
            RISK_NO_MEETINGS,
            RISK_LOW_ENGAGEMENT,
            RISK_STALLED,
        ]

    @pytest.mark.unit
    def test_days_since_last_activity_defaults_to_thirty(self):
        assert days_since_last_activity([], NOW) == 30


class TestNextBestActions:

    @pytest.mark.unit
    def test_open_stage_has_four_actions(self):
        actions = next_best_actions("NEGOTIATION")

        assert len(actions) == 4
        assert actions[0] == "Involve executive sponsor for final push"

    @pytest.mark.unit
    def test_closed_stages_have_three_actions(self):
        assert len(next_best_actions("WON")) == 3
        assert len(next_best_actions("LOST")) == 3

    @pytest.mark.unit
    def test_unknown_stage_falls_back_to_prospecting(self):
        assert next_best_actions("ON_HOLD") == next_best_actions("PROSPECTING")

    @pytest.mark.unit
    def test_returns_a_copy(self):
        actions = next_best_actions("QUALIFIED")
        actions.append("extra")

        assert len(next_best_actions("QUALIFIED")) == 4


class TestEmailDraft:

    @pytest.mark.unit
    def test_subject_and_body_name_the_deal(self):
        draft = email_draft(_deal(name="Globex Expansion"))

        assert draft["subject"] == "Following up on Globex Expansion — Next Steps"
        assert "follow up regarding Globex Expansion" in draft["body"]
        assert draft["body"].startswith("Hi there,")
        assert draft["body"].endswith("Best regards")


class TestSummary:

    @pytest.mark.unit
    def test_full_summary(self):
        activities = [_activity("MEETING", 2), _activity("CALL", 3), _activity("CALL", 5)]

        summary = summarize(_deal(close_in_days=20), activities, NOW)

        assert summary == (
            'Deal "Acme Renewal" is in the PROPOSAL stage valued at $125,000. '
            "3 activities logged (2 call(s), 1 meeting(s)). "
            "Open for 10 days. "
            "Expected to close in 20 days."
        )

    @pytest.mark.unit
    def test_no_activities_and_no_close_date(self):
        summary = summarize(_deal(close_in_days=None), [], NOW)

        assert summary == (
            'Deal "Acme Renewal" is in the PROPOSAL stage valued at $125,000. '
            "No activities have been logged yet. "
            "Open for 10 days."
        )

    @pytest.mark.unit
    def test_past_close_date(self):
        summary = summarize(_deal(close_in_days=-5), [], NOW)

        assert summary.endswith("Close date passed 5 days ago.")

    @pytest.mark.unit
    def test_close_date_today_counts_as_passed(self):
        summary = summarize(_deal(close_in_days=0), [], NOW)

        assert summary.endswith("Close date passed 0 days ago.")

    @pytest.mark.unit
    def test_format_amount(self):
        assert format_amount(125000) == "$125,000"
        assert format_amount(1234.5) == "$1,234.50"
        assert format_amount(None) == "$0"


class TestNarrate:

    @pytest.mark.unit
    def test_narrative_combines_all_parts(self):
        deal = _deal(stage="QUALIFIED", amount=50000, close_in_days=30)
        activities = [_activity("NOTE", 9)]

        narrative = narrate(deal, activities, NOW)

        assert narrative.risk_factors == [RISK_DECLINING, RISK_NO_MEETINGS, RISK_LOW_ENGAGEMENT]
        assert narrative.next_best_actions == next_best_actions("QUALIFIED")
        assert narrative.email_draft["subject"].startswith("Following up on Acme Renewal")
        assert "1 activities logged (1 note(s))." in narrative.summary

    @pytest.mark.unit
    def test_narrative_is_deterministic(self):
        deal = _deal()
        activities = [_activity("EMAIL", 4), _activity("MEETING", 1)]

        assert narrate(deal, activities, NOW) == narrate(deal, list(reversed(activities)), NOW)
