"""
Tests for the pipeline forecast engine and the stage state machine
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from planner.domain.pipeline import (
    FUNNEL_STAGES,
    StageTransitionError,
    can_transition,
    conversion_funnel,
    cycle_times,
    deal_arr,
    default_probability,
    expected_close_date,
    filter_by_date,
    forecast,
    is_overdue,
    is_stuck,
    lost_reason_breakdown,
    monthly_forecast,
    validate_transition,
    weighted_value,
    win_loss,
)
from planner.domain.records import Opportunity, PipelineSettings, StageChange

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def _opp(id=1, stage="sql", subs="100", pay="0", user_id=1, changed_days_ago=1, **kwargs):
    fields = dict(
        id=id, user_id=user_id, stage=stage,
        stage_changed_at=NOW - timedelta(days=changed_days_ago),
        created_at=NOW - timedelta(days=30),
        expected_subs_monthly=Decimal(subs), expected_pay_monthly=Decimal(pay),
    )
    fields.update(kwargs)
    return Opportunity(**fields)


# --- Values ---

def test_weighted_value_example():
    """Demo booked at 30%: ARR 1200, weighted 360."""
    settings = PipelineSettings(demo_booked_probability=Decimal("0.3"))
    opp = _opp(stage="demo_booked", subs="100")
    assert deal_arr(opp) == Decimal("1200")
    assert weighted_value(opp, settings) == Decimal("360")


def test_probability_override_wins():
    opp = _opp(stage="sql", subs="100", probability=Decimal("0.9"))
    assert weighted_value(opp) == Decimal("1080")


def test_default_probabilities():
    assert default_probability("sql") == Decimal("0.15")
    assert default_probability("sent_quote") == Decimal("0.75")
    assert default_probability("close_won") == 1
    assert default_probability("close_lost") == 0
    assert default_probability("nurture") == Decimal("0.05")
    assert default_probability("unknown") == 0


def test_arr_includes_pay():
    assert deal_arr(_opp(subs="100", pay="50")) == Decimal("1800")


# --- Overdue / stuck ---

def test_overdue_and_stuck():
    late = _opp(expected_close_date=TODAY - timedelta(days=1), changed_days_ago=8)
    fresh = _opp(expected_close_date=TODAY, changed_days_ago=7)
    assert is_overdue(late, TODAY) is True
    assert is_overdue(fresh, TODAY) is False
    assert is_stuck(late, NOW) is True
    assert is_stuck(fresh, NOW) is False
    assert is_stuck(fresh, NOW, stuck_days=3) is True


def test_closed_deals_never_overdue():
    won = _opp(stage="close_won", expected_close_date=TODAY - timedelta(days=10), changed_days_ago=30)
    assert is_overdue(won, TODAY) is False
    assert is_stuck(won, NOW) is False


def test_expected_close_date_from_cycle_lengths():
    start = date(2026, 3, 1)
    assert expected_close_date("sql", None, start) == start + timedelta(days=24)
    assert expected_close_date("sent_quote", PipelineSettings(quote_to_close_days=10), start) == start + timedelta(days=10)
    assert expected_close_date("sql", None, None) is None


# --- Transitions ---

def test_forward_transitions_allowed():
    assert can_transition("sql", "demo_booked")
    assert can_transition("sql", "sent_quote")
    assert can_transition("demo_completed", "close_won")
    assert can_transition("sent_quote", "nurture")
    assert can_transition("nurture", "demo_booked")
    assert can_transition("nurture", "close_lost")


def test_illegal_transitions_rejected():
    assert not can_transition("demo_completed", "sql")
    assert not can_transition("close_won", "sql")
    assert not can_transition("close_lost", "nurture")
    assert not can_transition("sql", "sql")
    assert not can_transition("sql", "bogus")
    with pytest.raises(StageTransitionError):
        validate_transition("close_won", "close_lost")


# --- Funnel ---

def test_funnel_counts_history():
    opps = [
        _opp(id=1, stage="sql"),
        _opp(id=2, stage="demo_completed"),
        _opp(id=3, stage="close_won"),
        _opp(id=4, stage="close_lost"),
        _opp(id=5, stage="nurture"),
    ]
    history = [
        StageChange(4, "sent_quote", NOW - timedelta(days=5)),
        StageChange(4, "close_lost", NOW - timedelta(days=2)),
        StageChange(99, "close_won", NOW),
    ]

    steps, lost = conversion_funnel(opps, history)
    counts = {s.stage: s.count for s in steps}

    assert [s.stage for s in steps] == list(FUNNEL_STAGES)
    assert counts == {"sql": 4, "demo_booked": 3, "demo_completed": 3, "sent_quote": 2, "close_won": 1}
    assert lost == 1
    assert steps[0].conversion_rate == 100.0
    assert steps[-1].conversion_rate == 25.0


def test_funnel_is_monotone():
    opps = [_opp(id=i, stage=s) for i, s in enumerate(["sent_quote", "sql", "close_won", "demo_booked"])]
    steps, _ = conversion_funnel(opps)
    counts = [s.count for s in steps]
    assert counts == sorted(counts, reverse=True)


def test_empty_funnel():
    steps, lost = conversion_funnel([])
    assert all(s.count == 0 and s.conversion_rate == 0.0 for s in steps)
    assert lost == 0


# --- Cycle times ---

def test_cycle_times_over_won_deals():
    created = NOW - timedelta(days=30)
    won = _opp(
        id=1, stage="close_won", changed_days_ago=0, created_at=created,
        demo_booked_date=created.date() + timedelta(days=4),
        demo_completed_date=created.date() + timedelta(days=10),
        quote_sent_date=created.date() + timedelta(days=20),
    )
    times = cycle_times([won, _opp(id=2, stage="sql")])
    assert times.sample_size == 1
    assert times.created_to_demo == 4.0
    assert times.demo_to_quote == 10.0
    assert times.quote_to_close == 10.0
    assert times.total == 30.0


def test_cycle_times_empty():
    times = cycle_times([])
    assert times.total is None
    assert times.sample_size == 0


# --- Monthly forecast ---

def test_monthly_forecast_buckets():
    opps = [
        _opp(id=1, stage="sql", expected_close_date=date(2026, 3, 20)),
        _opp(id=2, stage="sent_quote", expected_close_date=date(2026, 3, 28)),
        _opp(id=3, stage="demo_booked", expected_close_date=date(2026, 5, 2)),
        _opp(id=4, stage="sql", expected_close_date=date(2026, 2, 1)),
        _opp(id=5, stage="close_won", expected_close_date=date(2026, 4, 1)),
        _opp(id=6, stage="sql"),
    ]
    buckets = monthly_forecast(opps, None, TODAY)

    assert [b.key for b in buckets] == ["2026-03", "2026-05"]
    assert buckets[0].count == 2
    assert buckets[0].total_arr == Decimal("2400")
    assert buckets[0].weighted_arr == Decimal("1200") * Decimal("0.15") + Decimal("1200") * Decimal("0.75")


def test_monthly_forecast_horizon():
    opps = [_opp(id=m, expected_close_date=date(2026, m, 1)) for m in range(3, 13)]
    assert len(monthly_forecast(opps, None, TODAY, horizon=6)) == 6


# --- Lost reasons / win-loss ---

def test_lost_reason_breakdown_sorted_by_count():
    opps = [
        _opp(id=1, stage="close_lost", lost_reason="Preis"),
        _opp(id=2, stage="close_lost", lost_reason="Timing"),
        _opp(id=3, stage="close_lost", lost_reason="Preis"),
        _opp(id=4, stage="close_lost"),
        _opp(id=5, stage="sql", lost_reason="Preis"),
    ]
    rows = lost_reason_breakdown(opps)
    assert [(r.reason, r.count) for r in rows] == [("Preis", 2), ("Timing", 1), ("Unknown", 1)]
    assert rows[0].lost_arr == Decimal("2400")


def test_lost_reason_breakdown_uses_catalog_labels_and_order():
    opps = [
        _opp(id=1, stage="close_lost", lost_reason="Timing"),
        _opp(id=2, stage="close_lost", lost_reason=" preis "),
        _opp(id=3, stage="close_lost", lost_reason="Anderer Anbieter"),
        _opp(id=4, stage="close_lost", lost_reason="Budget"),
    ]
    rows = lost_reason_breakdown(opps, catalog=["Timing", "Preis", "Budget"])
    assert [r.reason for r in rows] == ["Timing", "Preis", "Budget", "Anderer Anbieter"]


def test_win_loss():
    opps = [_opp(id=1, stage="close_won"), _opp(id=2, stage="close_won"), _opp(id=3, stage="close_lost"),
            _opp(id=4, stage="sql")]
    result = win_loss(opps)
    assert result.won.count == 2
    assert result.active.count == 1
    assert result.win_rate == 66.7


# --- Date filter ---

def test_filter_by_date_modes():
    old = _opp(id=1, created_at=datetime(2026, 1, 5, tzinfo=timezone.utc))
    closed = _opp(
        id=2, stage="close_won", created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        expected_close_date=date(2026, 3, 1),
    )
    created = filter_by_date([old, closed], date(2026, 1, 1), date(2026, 1, 31))
    by_close = filter_by_date([old, closed], date(2026, 3, 1), date(2026, 3, 31), mode="closed")
    assert [o.id for o in created] == [1, 2]
    assert [o.id for o in by_close] == [2]


# --- Forecast ---

def test_forecast_totals():
    opps = [
        _opp(id=1, stage="sql", subs="100", changed_days_ago=10),
        _opp(id=2, stage="sent_quote", subs="200", expected_close_date=TODAY - timedelta(days=2)),
        _opp(id=3, stage="close_won", subs="500"),
        _opp(id=4, stage="nurture", subs="500"),
    ]
    result = forecast(opps, settings=PipelineSettings(), as_of=NOW)

    assert result.active_deals == 2
    assert result.total_pipeline_value == Decimal("3600")
    assert result.weighted_pipeline_value == Decimal("1200") * Decimal("0.15") + Decimal("2400") * Decimal("0.75")
    assert result.overdue_deals == 1
    assert result.stuck_deals == 1
    assert result.by_stage["sent_quote"].value == Decimal("2400")
    assert "close_won" not in result.by_stage
    assert result.win_loss.won.count == 1


def test_forecast_empty():
    result = forecast([], as_of=NOW)
    assert result.total_pipeline_value == 0
    assert result.active_deals == 0
    assert result.monthly_forecast == ()
    assert result.cycle_times.total is None


def test_forecast_requires_as_of():
    with pytest.raises(ValueError):
        forecast([])
