"""create planner snapshot tables

Revision ID: d5e8a1c3b7f2
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'd5e8a1c3b7f2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('role', sa.String(32), nullable=False, server_default='ae'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
    )

    op.create_table(
        'go_lives',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=False),
        sa.Column('go_live_date', sa.Date(), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('subs_monthly', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('pay_arr', sa.Numeric(20, 2), nullable=True),
        sa.Column('has_terminal', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('commission_relevant', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('partner_id', sa.Integer(), nullable=True),
        sa.Column('is_enterprise', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_go_lives_user_year_month', 'go_lives', ['user_id', 'year', 'month'])

    op.create_table(
        'quota_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('monthly_subs_targets', postgresql.JSONB(), nullable=False),
        sa.Column('monthly_pay_targets', postgresql.JSONB(), nullable=False),
        sa.Column('monthly_go_live_targets', postgresql.JSONB(), nullable=False),
        sa.Column('subs_tiers', postgresql.JSONB(), nullable=True),
        sa.Column('pay_tiers', postgresql.JSONB(), nullable=True),
        sa.Column('terminal_base', sa.Numeric(20, 2), nullable=False, server_default='30'),
        sa.Column('terminal_bonus', sa.Numeric(20, 2), nullable=False, server_default='50'),
        sa.Column('terminal_penetration_threshold', sa.Numeric(5, 4), nullable=False, server_default='0.70'),
        sa.Column('ote', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.UniqueConstraint('user_id', 'year', name='uq_quota_settings_user_year'),
    )

    op.create_table(
        'challenges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(16), nullable=False, server_default='🎯'),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('metric', sa.String(32), nullable=False),
        sa.Column('target_value', sa.Numeric(20, 2), nullable=False),
        sa.Column('streak_min_per_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('reward_type', sa.String(16), nullable=False, server_default='points'),
        sa.Column('reward_value', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
    )

    op.create_table(
        'opportunities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('stage', sa.String(32), nullable=False, server_default='sql'),
        sa.Column('stage_changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_subs_monthly', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('expected_pay_monthly', sa.Numeric(20, 2), nullable=False, server_default='0'),
        sa.Column('has_terminal', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('probability', sa.Numeric(5, 4), nullable=True),
        sa.Column('expected_close_date', sa.Date(), nullable=True),
        sa.Column('demo_booked_date', sa.Date(), nullable=True),
        sa.Column('demo_completed_date', sa.Date(), nullable=True),
        sa.Column('quote_sent_date', sa.Date(), nullable=True),
        sa.Column('lost_reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_opportunities_user_stage', 'opportunities', ['user_id', 'stage'])

    op.create_table(
        'opportunity_stage_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('opportunity_id', sa.Integer(),
                  sa.ForeignKey('opportunities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_stage', sa.String(32), nullable=True),
        sa.Column('to_stage', sa.String(32), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_opportunity_stage_history_opportunity_id',
                    'opportunity_stage_history', ['opportunity_id'])

    op.create_table(
        'lost_reasons',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('label', sa.String(255), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'pipeline_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sql_probability', sa.Numeric(5, 4), nullable=False, server_default='0.15'),
        sa.Column('demo_booked_probability', sa.Numeric(5, 4), nullable=False, server_default='0.25'),
        sa.Column('demo_completed_probability', sa.Numeric(5, 4), nullable=False, server_default='0.50'),
        sa.Column('sent_quote_probability', sa.Numeric(5, 4), nullable=False, server_default='0.75'),
        sa.Column('sql_to_demo_booked_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('demo_booked_to_completed_days', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('demo_completed_to_quote_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('quote_to_close_days', sa.Integer(), nullable=False, server_default='5'),
    )


def downgrade() -> None:
    op.drop_table('pipeline_settings')
    op.drop_table('lost_reasons')
    op.drop_index('ix_opportunity_stage_history_opportunity_id',
                  table_name='opportunity_stage_history')
    op.drop_table('opportunity_stage_history')
    op.drop_index('ix_opportunities_user_stage', table_name='opportunities')
    op.drop_table('opportunities')
    op.drop_table('challenges')
    op.drop_table('quota_settings')
    op.drop_index('ix_go_lives_user_year_month', table_name='go_lives')
    op.drop_table('go_lives')
    op.drop_table('users')
