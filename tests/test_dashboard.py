"""
Unit tests for DashboardAnalytics.
"""
import pytest
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError

from app.analytics.dashboard import DashboardAnalytics, DealPartition, win_rate
from app.analytics.periods import effective_close_date, forward_months, trailing_months
from app.core.errors import InternalError
from app.core.models import Deal

NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def pipeline(sample_users, make_deal):
    """Deals across the east team (rep, rep2) and the west team."""
    return {
        "rep_prospecting": make_deal(name="Rep Prospect", stage="PROSPECTING", amount=50000),
        "rep_proposal": make_deal(name="Rep Proposal", stage="PROPOSAL", amount=100000),
        "rep_won": make_deal(name="Rep Won", stage="WON", amount=30000,
                             updated_at=datetime(2026, 10, 5, 9, 0)),
        "rep_lost": make_deal(name="Rep Lost", stage="LOST", amount=20000),
        "rep2_negotiation": make_deal(name="Rep2 Negotiation", stage="NEGOTIATION",
                                      amount=200000, owner_id="user-rep2"),
        "west_qualified": make_deal(name="West Qualified", stage="QUALIFIED",
                                    amount=70000, owner_id="user-west"),
        "west_won": make_deal(name="West Won", stage="WON", amount=40000, owner_id="user-west",
                              updated_at=datetime(2026, 8, 15, 17, 30)),
    }


class TestDashboardAnalytics:
    """Tests for DashboardAnalytics class."""

    @pytest.fixture
    def analytics(self, test_db, clock):
        return DashboardAnalytics(test_db, clock=clock)

    @pytest.mark.unit
    def test_empty_dashboard(self, analytics, sample_users):
        stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert stats["totalPipeline"] == 0
        assert stats["wonRevenue"] == 0
        assert stats["winRate"] == 0
        assert stats["avgDealSize"] == 0
        assert stats["activeDealsCount"] == 0
        assert [s["count"] for s in stats["pipelineByStage"]] == [0, 0, 0, 0]
        assert stats["recentActivities"] == []
        assert [m["revenue"] for m in stats["monthlyRevenue"]] == [0] * 6

    @pytest.mark.unit
    def test_rep_sees_only_own_deals(self, analytics, pipeline):
        stats = analytics.get_dashboard_stats("REP", "team-east", "user-rep")

        assert stats["totalPipeline"] == 150000
        assert stats["wonRevenue"] == 30000
        assert stats["winRate"] == 50
        assert stats["avgDealSize"] == 75000
        assert stats["activeDealsCount"] == 2
        assert stats["wonDealsCount"] == 1
        assert stats["lostDealsCount"] == 1

    @pytest.mark.unit
    def test_manager_sees_whole_team(self, analytics, pipeline):
        stats = analytics.get_dashboard_stats("MANAGER", "team-east", "user-mgr")

        assert stats["totalPipeline"] == 350000
        assert stats["activeDealsCount"] == 3
        assert stats["avgDealSize"] == 116667
        assert stats["wonRevenue"] == 30000

    @pytest.mark.unit
    def test_admin_sees_everything(self, analytics, pipeline):
        stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert stats["totalPipeline"] == 420000
        assert stats["wonRevenue"] == 70000
        assert stats["winRate"] == 67
        assert stats["activeDealsCount"] == 4

    @pytest.mark.unit
    def test_pipeline_by_stage_lists_open_stages_in_order(self, analytics, pipeline):
        stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert stats["pipelineByStage"] == [
            {"stage": "PROSPECTING", "count": 1, "value": 50000},
            {"stage": "QUALIFIED", "count": 1, "value": 70000},
            {"stage": "PROPOSAL", "count": 1, "value": 100000},
            {"stage": "NEGOTIATION", "count": 1, "value": 200000},
        ]

    @pytest.mark.unit
    def test_monthly_revenue_buckets_won_deals_by_last_update(self, analytics, pipeline):
        stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert stats["monthlyRevenue"] == [
            {"month": "May 26", "revenue": 0},
            {"month": "Jun 26", "revenue": 0},
            {"month": "Jul 26", "revenue": 0},
            {"month": "Aug 26", "revenue": 40000},
            {"month": "Sep 26", "revenue": 0},
            {"month": "Oct 26", "revenue": 30000},
        ]

    @pytest.mark.unit
    def test_recent_activities_scoped_for_rep(self, analytics, pipeline, add_activity):
        add_activity(pipeline["rep_proposal"], "CALL", days_ago=2)
        add_activity(pipeline["rep2_negotiation"], "EMAIL", days_ago=1)

        rep_stats = analytics.get_dashboard_stats("REP", "team-east", "user-rep")
        admin_stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert [a["createdBy"] for a in rep_stats["recentActivities"]] == ["user-rep"]
        assert [a["type"] for a in admin_stats["recentActivities"]] == ["EMAIL", "CALL"]

    @pytest.mark.unit
    def test_recent_activities_limited_to_ten_newest(self, analytics, pipeline, add_activity):
        for days_ago in range(1, 13):
            add_activity(pipeline["rep_proposal"], "NOTE", days_ago=days_ago, content=str(days_ago))

        stats = analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert [a["content"] for a in stats["recentActivities"]] == [str(d) for d in range(1, 11)]

    @pytest.mark.unit
    def test_dashboard_does_not_write(self, analytics, test_db, pipeline):
        analytics.get_dashboard_stats("ADMIN", None, "user-admin")

        assert all(d.close_probability is None for d in test_db.query(Deal).all())

    @pytest.mark.unit
    def test_query_failure_raises_internal(self, analytics, test_db, pipeline, monkeypatch):
        def _query(*args, **kwargs):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(test_db, "query", _query)

        with pytest.raises(InternalError) as exc_info:
            analytics.get_dashboard_stats("REP", "team-east", "user-rep")

        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable is True
        assert "connection reset" in exc_info.value.message
        assert exc_info.value.details == {"cause": "SQLAlchemyError"}


class TestDashboardHelpers:

    @pytest.mark.unit
    def test_win_rate(self):
        assert win_rate(0, 0) == 0
        assert win_rate(1, 0) == 100
        assert win_rate(1, 2) == 33
        assert win_rate(2, 1) == 67
        assert win_rate(1, 7) == 13  # 12.5 rounds half up

    @pytest.mark.unit
    def test_partition(self):
        deals = [
            Deal(stage="WON", amount=10),
            Deal(stage="LOST", amount=20),
            Deal(stage="PROPOSAL", amount=30),
            Deal(stage="ON_HOLD", amount=40),
        ]

        partition = DealPartition.from_deals(deals)

        assert len(partition.won) == 1
        assert len(partition.lost) == 1
        assert partition.total_pipeline == 70
        assert partition.won_revenue == 10

    @pytest.mark.unit
    def test_effective_close_date_falls_back_to_creation(self):
        created = datetime(2026, 3, 1)
        assert effective_close_date(Deal(created_at=created, updated_at=None)) == created
        assert effective_close_date(
            Deal(created_at=created, updated_at=datetime(2026, 4, 2))
        ) == datetime(2026, 4, 2)

    @pytest.mark.unit
    def test_month_windows_cross_year_boundary(self):
        trailing = trailing_months(datetime(2026, 2, 10), 6)
        forward = forward_months(datetime(2026, 11, 30), 3)

        assert [w.label for w in trailing] == [
            "Sep 25", "Oct 25", "Nov 25", "Dec 25", "Jan 26", "Feb 26"
        ]
        assert [w.label for w in forward] == ["Dec 26", "Jan 27", "Feb 27"]
        assert forward[0].contains(datetime(2026, 12, 31, 23, 59))
        assert not forward[0].contains(datetime(2027, 1, 1))
