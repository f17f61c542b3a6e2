"""crm baseline

Revision ID: 8c1f0d2a4b7e
Revises:
Create Date: 2026-10-19 09:12:44.180311

Creates the CRM tables. Databases created earlier through create_all()
should be stamped with:

    alembic stamp head
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '8c1f0d2a4b7e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'teams',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('team_id', sa.String(64), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_team_id', 'users', ['team_id'])

    op.create_table(
        'accounts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('industry', sa.String(255), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('owner_id', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_accounts_owner_id', 'accounts', ['owner_id'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('account_id', sa.String(64), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
    )
    op.create_index('ix_contacts_account_id', 'contacts', ['account_id'])

    op.create_table(
        'deals',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('account_id', sa.String(64), sa.ForeignKey('accounts.id'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('stage', sa.String(20), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('expected_close_date', sa.DateTime(), nullable=True),
        sa.Column('owner_id', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('close_probability', sa.Float(), nullable=True),
        sa.Column('risk_level', sa.String(10), nullable=True),
    )
    op.create_index('ix_deals_account_id', 'deals', ['account_id'])
    op.create_index('ix_deals_stage', 'deals', ['stage'])
    op.create_index('ix_deals_owner_id', 'deals', ['owner_id'])

    op.create_table(
        'activities',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('deal_id', sa.String(64), sa.ForeignKey('deals.id'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('created_by', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_activities_deal_id', 'activities', ['deal_id'])
    op.create_index('ix_activities_occurred_at', 'activities', ['occurred_at'])
    op.create_index('ix_activities_created_by', 'activities', ['created_by'])

    op.create_table(
        'deal_ai_insights',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('deal_id', sa.String(64), nullable=False),
        sa.Column('close_probability', sa.Float(), nullable=False),
        sa.Column('risk_level', sa.String(10), nullable=False),
        sa.Column('risk_factors', sa.JSON(), nullable=False),
        sa.Column('next_best_actions', sa.JSON(), nullable=False),
        sa.Column('email_draft', sa.JSON(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('model_version', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_deal_ai_insights_deal_id', 'deal_ai_insights', ['deal_id'], unique=True)

    op.create_table(
        'forecast_snapshots',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('period_month', sa.String(10), nullable=False),
        sa.Column('month_date', sa.DateTime(), nullable=True),
        sa.Column('owner_id', sa.String(64), nullable=True),
        sa.Column('team_id', sa.String(64), nullable=True),
        sa.Column('predicted_revenue', sa.Integer(), nullable=False),
        sa.Column('optimistic', sa.Integer(), nullable=False),
        sa.Column('pessimistic', sa.Integer(), nullable=False),
        sa.Column('confidence', sa.Integer(), nullable=False),
        sa.Column('model_version', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'idx_forecast_snapshot_scope',
        'forecast_snapshots',
        ['period_month', 'owner_id', 'team_id'],
    )

    op.create_table(
        'model_settings',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('ai_mode', sa.String(20), nullable=False),
        sa.Column('model_version', sa.String(50), nullable=False),
        sa.Column('last_trained_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'audit_trail',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_trail_entity_id', 'audit_trail', ['entity_id'])
    op.create_index('ix_audit_trail_created_at', 'audit_trail', ['created_at'])


def downgrade() -> None:
    for table in (
        'audit_trail',
        'model_settings',
        'forecast_snapshots',
        'deal_ai_insights',
        'activities',
        'deals',
        'contacts',
        'accounts',
        'users',
        'teams',
    ):
        op.drop_table(table)
