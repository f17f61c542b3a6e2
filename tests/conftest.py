"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.clock import FixedClock
from app.core.config import reset_settings
from app.core.models import Account, Activity, Base, Deal, Team, User

# Pinned "now" for every time-dependent test
NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture(autouse=True)
def default_env(monkeypatch):
    """Minimal environment so services can read settings."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "LOG_LEVEL",
        "INSIGHT_MODEL_VERSION",
        "MIN_LABELED_DEALS",
        "DEFAULT_AI_MODE",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test. StaticPool keeps a single connection so
    the API's worker threads see the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock(NOW)


# =============================================================================
# CRM Fixtures
# =============================================================================

@pytest.fixture
def sample_teams(test_db):
    """Two sales teams: east and west."""
    teams = {
        "east": Team(id="team-east", name="East", created_at=NOW),
        "west": Team(id="team-west", name="West", created_at=NOW),
    }
    test_db.add_all(teams.values())
    test_db.commit()
    return teams


@pytest.fixture
def sample_users(test_db, sample_teams):
    """
    Users keyed by handle.

    rep, rep2 and manager are on the east team; west_rep is on the west
    team; admin has no team.
    """
    users = {
        "rep": User(id="user-rep", name="Riley Rep", email="rep@example.com",
                    role="REP", team_id="team-east"),
        "rep2": User(id="user-rep2", name="Sam Second", email="rep2@example.com",
                     role="REP", team_id="team-east"),
        "manager": User(id="user-mgr", name="Morgan Manager", email="mgr@example.com",
                        role="MANAGER", team_id="team-east"),
        "west_rep": User(id="user-west", name="Wes West", email="west@example.com",
                         role="REP", team_id="team-west"),
        "admin": User(id="user-admin", name="Alex Admin", email="admin@example.com",
                      role="ADMIN", team_id=None),
    }
    test_db.add_all(users.values())
    test_db.commit()
    return users


@pytest.fixture
def sample_account(test_db, sample_users):
    account = Account(
        id="acct-acme",
        name="Acme Corp",
        domain="acme.example",
        industry="Manufacturing",
        country="US",
        owner_id="user-rep",
        created_at=NOW - timedelta(days=30),
    )
    test_db.add(account)
    test_db.commit()
    return account


@pytest.fixture
def make_deal(test_db):
    """Factory for persisted deals; timestamps default to 10 days before NOW."""
    def _make(**kwargs):
        created = kwargs.pop("created_at", NOW - timedelta(days=10))
        fields = {
            "name": "Acme Renewal",
            "stage": "PROSPECTING",
            "amount": 50000,
            "currency": "USD",
            "owner_id": "user-rep",
            "created_at": created,
            "updated_at": created,
        }
        fields.update(kwargs)
        deal = Deal(**fields)
        test_db.add(deal)
        test_db.commit()
        test_db.refresh(deal)
        return deal

    return _make


@pytest.fixture
def add_activity(test_db):
    """Factory for persisted activities, ``days_ago`` before NOW."""
    def _add(deal, activity_type="CALL", days_ago=1, created_by=None, content=""):
        activity = Activity(
            deal_id=deal.id,
            type=activity_type,
            content=content,
            occurred_at=NOW - timedelta(days=days_ago),
            created_by=created_by or deal.owner_id,
        )
        test_db.add(activity)
        test_db.commit()
        return activity

    return _add


@pytest.fixture
def fail_commits(test_db, monkeypatch):
    """Call to make every later commit on the test session fail like a locked database."""
    def _commit():
        raise SQLAlchemyError("database is locked")

    def _activate():
        monkeypatch.setattr(test_db, "commit", _commit)

    return _activate


@pytest.fixture
def enforce_foreign_keys(test_db):
    """Turn on SQLite foreign key enforcement, as Postgres always has it."""
    test_db.execute(text("PRAGMA foreign_keys=ON"))
