"""
SQLAlchemy ORM models: the tables the analytics snapshots are read from
"""
from datetime import date as date_type, datetime
from decimal import Decimal
from sqlalchemy import (
    String, DateTime, Integer, SmallInteger, Text, Date, Boolean, Numeric,
    ForeignKey, UniqueConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from planner.infrastructure.db.session import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    # country_manager | line_manager | ae | sdr | sonstiges | head_of_partnerships
    role: Mapped[str] = mapped_column(String(32), nullable=False, server_default="ae")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class GoLive(Base):
    """
    One customer activation. pay_arr stays NULL until it is entered
    (usually three months after go-live).
    """
    __tablename__ = "go_lives"
    __table_args__ = (
        Index("ix_go_lives_user_year_month", "user_id", "year", "month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    go_live_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    subs_monthly: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="0"
    )
    pay_arr: Mapped[Decimal | None] = mapped_column(Numeric(precision=20, scale=2), nullable=True)
    has_terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    commission_relevant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    partner_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_enterprise: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class QuotaSettingsModel(Base):
    """
    Yearly plan per user. Target arrays hold 12 numbers (Jan..Dec), tier lists
    hold objects {"min": 0.5, "label": "50% - 70%", "rate": 0.015}.
    """
    __tablename__ = "quota_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "year", name="uq_quota_settings_user_year"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    monthly_subs_targets: Mapped[list] = mapped_column(JSONB, nullable=False)
    monthly_pay_targets: Mapped[list] = mapped_column(JSONB, nullable=False)
    monthly_go_live_targets: Mapped[list] = mapped_column(JSONB, nullable=False)
    subs_tiers: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    pay_tiers: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    terminal_base: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="30"
    )
    terminal_bonus: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="50"
    )
    terminal_penetration_threshold: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4), nullable=False, server_default="0.70"
    )
    ote: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="0"
    )


class ChallengeModel(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, server_default="🎯")
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # team | individual | streak
    metric: Mapped[str] = mapped_column(String(32), nullable=False)
    target_value: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    streak_min_per_day: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="points")
    reward_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class OpportunityModel(Base):
    __tablename__ = "opportunities"
    __table_args__ = (
        Index("ix_opportunities_user_stage", "user_id", "stage"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    stage: Mapped[str] = mapped_column(String(32), nullable=False, server_default="sql")
    stage_changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    expected_subs_monthly: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="0"
    )
    expected_pay_monthly: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=2), nullable=False, server_default="0"
    )
    has_terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    # NULL = use the stage default
    probability: Mapped[Decimal | None] = mapped_column(Numeric(precision=5, scale=4), nullable=True)
    expected_close_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    demo_booked_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    demo_completed_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    quote_sent_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class OpportunityStageHistory(Base):
    __tablename__ = "opportunity_stage_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    opportunity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_stage: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_stage: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LostReason(Base):
    __tablename__ = "lost_reasons"

    id: Mapped[int] = mapped_column(primary_key=True)
    label: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")


class PipelineSettingsModel(Base):
    """Single-row table: stage probabilities and cycle lengths."""
    __tablename__ = "pipeline_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    sql_probability: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4), nullable=False, server_default="0.15"
    )
    demo_booked_probability: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4), nullable=False, server_default="0.25"
    )
    demo_completed_probability: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4), nullable=False, server_default="0.50"
    )
    sent_quote_probability: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4), nullable=False, server_default="0.75"
    )
    sql_to_demo_booked_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="7")
    demo_booked_to_completed_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="5")
    demo_completed_to_quote_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="7")
    quote_to_close_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default="5")
