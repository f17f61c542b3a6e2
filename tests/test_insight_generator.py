"""
Unit tests for DealInsightGenerator.
"""
import pytest

from app.core.config import reset_settings
from app.core.errors import InternalError, NotFoundError
from app.core.models import Deal, DealInsight
from app.ml.insight_generator import DealInsightGenerator
from app.ml.narrator import RISK_LOW_ENGAGEMENT, RISK_NO_CONTACT, RISK_NO_MEETINGS


class TestDealInsightGenerator:
    """Tests for DealInsightGenerator class."""

    @pytest.fixture
    def generator(self, test_db, clock):
        return DealInsightGenerator(test_db, clock=clock, model_version="mock-1.0")

    @pytest.mark.unit
    def test_generate_for_deal_without_activities(self, generator, test_db, sample_users, make_deal):
        deal = make_deal(stage="PROSPECTING", amount=50000)

        insight = generator.generate(deal.id)

        assert insight["dealId"] == deal.id
        assert insight["closeProbability"] == 0.15
        assert insight["riskLevel"] == "HIGH"
        assert insight["riskFactors"] == [RISK_NO_CONTACT, RISK_NO_MEETINGS, RISK_LOW_ENGAGEMENT]
        assert len(insight["nextBestActions"]) == 4
        assert insight["emailDraft"]["subject"] == "Following up on Acme Renewal — Next Steps"
        assert "No activities have been logged yet." in insight["summary"]
        assert insight["modelVersion"] == "mock-1.0"
        assert insight["createdAt"] == "2026-10-19T12:00:00"

    @pytest.mark.unit
    def test_generate_uses_real_activity_count(self, generator, sample_users, make_deal, add_activity):
        deal = make_deal(stage="QUALIFIED", amount=80000)
        for days_ago in range(1, 7):
            add_activity(deal, "MEETING" if days_ago == 1 else "CALL", days_ago=days_ago)

        insight = generator.generate(deal.id)

        assert insight["closeProbability"] == 0.35
        assert insight["riskLevel"] == "MEDIUM"
        assert insight["riskFactors"] == []
        assert "6 activities logged (5 call(s), 1 meeting(s))." in insight["summary"]

    @pytest.mark.unit
    def test_generate_caches_scores_on_deal_only(self, generator, test_db, sample_users, make_deal):
        deal = make_deal(stage="NEGOTIATION", amount=120000)
        before = (deal.stage, deal.amount, deal.updated_at, deal.created_at)

        generator.generate(deal.id)

        stored = test_db.query(Deal).filter(Deal.id == deal.id).one()
        assert stored.close_probability == 0.7
        assert stored.risk_level == "LOW"
        assert (stored.stage, stored.amount, stored.updated_at, stored.created_at) == before

    @pytest.mark.unit
    def test_regenerate_replaces_single_insight(self, generator, test_db, sample_users, make_deal):
        deal = make_deal()

        first = generator.generate(deal.id)
        second = generator.generate(deal.id)

        assert test_db.query(DealInsight).filter(DealInsight.deal_id == deal.id).count() == 1
        for key in ("closeProbability", "riskLevel", "riskFactors", "nextBestActions",
                    "emailDraft", "summary", "modelVersion", "createdAt"):
            assert first[key] == second[key]

    @pytest.mark.unit
    def test_regenerate_reflects_new_activity(
        self, generator, test_db, clock, sample_users, make_deal, add_activity
    ):
        deal = make_deal(stage="PROPOSAL", amount=60000)
        first = generator.generate(deal.id)

        add_activity(deal, "MEETING", days_ago=0)
        clock.advance(hours=1)
        second = generator.generate(deal.id)

        assert RISK_NO_CONTACT in first["riskFactors"]
        assert RISK_NO_CONTACT not in second["riskFactors"]
        assert second["createdAt"] == "2026-10-19T13:00:00"
        assert test_db.query(DealInsight).count() == 1

    @pytest.mark.unit
    def test_generate_unknown_deal_raises_not_found(self, generator, test_db):
        with pytest.raises(NotFoundError) as exc_info:
            generator.generate("missing-deal")

        assert exc_info.value.status_code == 404
        assert test_db.query(DealInsight).count() == 0

    @pytest.mark.unit
    def test_get_current(self, generator, sample_users, make_deal):
        deal = make_deal()

        assert generator.get_current(deal.id) is None
        generated = generator.generate(deal.id)
        assert generator.get_current(deal.id) == generated

    @pytest.mark.unit
    def test_model_version_defaults_to_settings(self, test_db, clock, monkeypatch, sample_users, make_deal):
        monkeypatch.setenv("INSIGHT_MODEL_VERSION", "mock-2.0")
        reset_settings()
        deal = make_deal()

        insight = DealInsightGenerator(test_db, clock=clock).generate(deal.id)

        assert insight["modelVersion"] == "mock-2.0"

    @pytest.mark.unit
    def test_persistence_failure_raises_internal_and_rolls_back(
        self, generator, test_db, sample_users, make_deal, fail_commits
    ):
        deal = make_deal()
        fail_commits()

        with pytest.raises(InternalError) as exc_info:
            generator.generate(deal.id)

        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable is True
        assert "database is locked" in exc_info.value.message
        test_db.refresh(deal)
        assert deal.close_probability is None
        assert test_db.query(DealInsight).count() == 0
