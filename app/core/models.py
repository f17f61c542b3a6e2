"""
SQLAlchemy models for the CRM tables.

Deals, activities and their derived insight/forecast records. Enumerated
columns are stored as plain strings so stages written by other collaborators
still load; the enums below define the accepted vocabulary.
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Role(str, enum.Enum):
    """Caller role - drives deal scoping and permissions."""
    REP = "REP"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class DealStage(str, enum.Enum):
    """Deal lifecycle position. WON and LOST are terminal for forecasting."""
    PROSPECTING = "PROSPECTING"
    QUALIFIED = "QUALIFIED"
    PROPOSAL = "PROPOSAL"
    NEGOTIATION = "NEGOTIATION"
    WON = "WON"
    LOST = "LOST"


class ActivityType(str, enum.Enum):
    CALL = "CALL"
    EMAIL = "EMAIL"
    MEETING = "MEETING"
    NOTE = "NOTE"


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


CLOSED_STAGES = (DealStage.WON.value, DealStage.LOST.value)
OPEN_STAGES = (
    DealStage.PROSPECTING.value,
    DealStage.QUALIFIED.value,
    DealStage.PROPOSAL.value,
    DealStage.NEGOTIATION.value,
)


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name})>"


class User(Base):
    """
    CRM user. Credentials live with the auth collaborator; only identity,
    role and team membership are needed here.
    """
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default=Role.REP.value)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False, default="")
    industry = Column(String(255), nullable=False, default="")
    country = Column(String(100), nullable=False, default="")
    owner_id = Column(String(64), ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name={self.name})>"


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(64), primary_key=True, default=_new_id)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, default="")
    phone = Column(String(50), nullable=False, default="")
    title = Column(String(255), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, name={self.name})>"


class Deal(Base):
    """
    Sales opportunity.

    close_probability and risk_level are caches written back by the insight
    generator and the retrain coordinator.
    """
    __tablename__ = "deals"

    id = Column(String(64), primary_key=True, default=_new_id)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    stage = Column(String(20), nullable=False, default=DealStage.PROSPECTING.value, index=True)
    amount = Column(Float, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    expected_close_date = Column(DateTime, nullable=True)
    owner_id = Column(String(64), ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, default=datetime.utcnow)

    close_probability = Column(Float, nullable=True)
    risk_level = Column(String(10), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Deal(id={self.id}, name={self.name}, stage={self.stage}, "
            f"amount={self.amount})>"
        )


class Activity(Base):
    """Immutable interaction record attached to a single deal."""
    __tablename__ = "activities"

    id = Column(String(64), primary_key=True, default=_new_id)
    deal_id = Column(String(64), ForeignKey("deals.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default=ActivityType.NOTE.value)
    content = Column(Text, nullable=False, default="")
    occurred_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_by = Column(String(64), ForeignKey("users.id"), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, deal_id={self.deal_id}, type={self.type})>"


class DealInsight(Base):
    """
    Latest AI insight for a deal.

    One row per deal; regenerating replaces every field.
    """
    __tablename__ = "deal_ai_insights"

    id = Column(String(64), primary_key=True, default=_new_id)
    deal_id = Column(String(64), nullable=False, unique=True, index=True)
    close_probability = Column(Float, nullable=False)
    risk_level = Column(String(10), nullable=False)
    risk_factors = Column(JSON, nullable=False, default=list)
    next_best_actions = Column(JSON, nullable=False, default=list)
    email_draft = Column(JSON, nullable=False, default=dict)
    summary = Column(Text, nullable=False, default="")
    model_version = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<DealInsight(deal_id={self.deal_id}, "
            f"close_probability={self.close_probability}, risk_level={self.risk_level})>"
        )


class ForecastSnapshot(Base):
    """
    Most recent forecast for a month and scope.

    Keyed by (period_month, owner_id, team_id); owner_id and team_id may be
    NULL, so uniqueness is enforced by the upsert lookup, not the index.
    """
    __tablename__ = "forecast_snapshots"

    id = Column(String(64), primary_key=True, default=_new_id)
    period_month = Column(String(10), nullable=False)
    month_date = Column(DateTime, nullable=True)
    owner_id = Column(String(64), nullable=True)
    team_id = Column(String(64), nullable=True)

    predicted_revenue = Column(Integer, nullable=False)
    optimistic = Column(Integer, nullable=False)
    pessimistic = Column(Integer, nullable=False)
    confidence = Column(Integer, nullable=False)  # percent 0-100

    model_version = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_forecast_snapshot_scope", "period_month", "owner_id", "team_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ForecastSnapshot(period_month={self.period_month}, owner_id={self.owner_id}, "
            f"team_id={self.team_id}, predicted={self.predicted_revenue})>"
        )


class ModelSettings(Base):
    """Process-wide AI settings row (model version marker, last retrain)."""
    __tablename__ = "model_settings"

    id = Column(String(64), primary_key=True, default="settings-global")
    ai_mode = Column(String(20), nullable=False, default="mock")
    model_version = Column(String(50), nullable=False, default="1.0.0")
    last_trained_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ModelSettings(model_version={self.model_version}, ai_mode={self.ai_mode})>"


class AuditEntry(Base):
    """Append-only record of a domain event."""
    __tablename__ = "audit_trail"

    id = Column(String(64), primary_key=True, default=_new_id)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(64), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    user_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return (
            f"<AuditEntry(entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action})>"
        )
