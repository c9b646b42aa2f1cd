"""
Tests for the commission calculator (monthly results, period summaries, OTE)
"""
from datetime import date
from decimal import Decimal

from planner.domain.commission import (
    calculate_combined_year_summary,
    calculate_monthly_result,
    calculate_ote_projections,
    calculate_quarter_summary,
    calculate_year_summary,
    calculate_ytd_summary,
    terminal_rate,
    validate_ote,
)
from planner.domain.records import QuotaSettings, SalesEvent, Tier

YEAR = 2026
SIMPLE_TIERS = (
    Tier(Decimal("0"), "base", Decimal("0.05")),
    Tier(Decimal("1.0"), "target", Decimal("0.10")),
)


def _ev(user_id=1, month=3, subs="0", pay=None, terminal=False, relevant=True):
    return SalesEvent(
        user_id=user_id, year=YEAR, month=month, go_live_date=date(YEAR, month, 5),
        subs_monthly=Decimal(subs), pay_arr=Decimal(pay) if pay is not None else None,
        has_terminal=terminal, commission_relevant=relevant,
    )


def _settings(user_id=1, subs=1000, pay=0, go_lives=0, **extra):
    return QuotaSettings.build(
        user_id, YEAR,
        monthly_subs_targets=[subs] * 12,
        monthly_pay_targets=[pay] * 12,
        monthly_go_live_targets=[go_lives] * 12,
        **extra,
    )


# --- Monthly result ---

def test_march_example_single_tier():
    """Two March go-lives worth 1200 ARR against a 1000 target land in the 10% tier."""
    settings = _settings(subs=1000, subs_tiers=SIMPLE_TIERS)
    events = [_ev(subs="60"), _ev(subs="40")]

    result = calculate_monthly_result(3, events, settings)

    assert result.month_name == "März"
    assert result.subs_actual == Decimal("1200")
    assert result.subs_target == Decimal("1000")
    assert result.subs_achievement == Decimal("1.2")
    assert result.subs_rate == Decimal("0.10")
    assert result.subs_provision == Decimal("120")
    assert result.subs_tier_label == "target"
    assert result.total_provision == Decimal("120")


def test_other_months_are_ignored():
    settings = _settings(subs=1000, subs_tiers=SIMPLE_TIERS)
    result = calculate_monthly_result(4, [_ev(month=3, subs="100")], settings)
    assert result.go_lives_count == 0
    assert result.subs_actual == 0
    assert result.subs_provision == 0


def test_non_commission_event_tracked_but_not_paid():
    settings = _settings(subs=1200, subs_tiers=SIMPLE_TIERS)
    events = [_ev(subs="100"), _ev(subs="100", relevant=False)]

    result = calculate_monthly_result(3, events, settings)

    assert result.subs_actual == Decimal("2400")
    assert result.subs_achievement == Decimal("1")
    assert result.subs_provision == Decimal("1200") * Decimal("0.10")


def test_pay_provision_is_m3():
    settings = _settings(subs=1000, pay=1000)
    events = [_ev(subs="0", pay="1000")]

    result = calculate_monthly_result(3, events, settings)

    assert result.pay_achievement == Decimal("1")
    assert result.pay_rate == Decimal("0.029")
    assert result.m3_provision == Decimal("29.000")
    assert result.m0_provision == result.subs_provision + result.terminal_provision
    assert result.total_provision == result.m0_provision + result.m3_provision


# --- Terminal rate ---

def test_terminal_bonus_at_penetration_threshold():
    settings = _settings()
    events = [_ev(terminal=i < 7) for i in range(10)]

    result = calculate_monthly_result(3, events, settings)

    assert result.terminal_penetration == Decimal("0.7")
    assert result.terminal_rate == Decimal("50")
    assert result.terminal_provision == Decimal("350")


def test_terminal_base_below_threshold():
    settings = _settings()
    events = [_ev(terminal=i < 6) for i in range(10)]

    result = calculate_monthly_result(3, events, settings)

    assert result.terminal_rate == Decimal("30")
    assert result.terminal_provision == Decimal("180")


def test_terminal_rate_without_go_lives_is_base():
    assert terminal_rate(0, 0, _settings()) == Decimal("30")


# --- Period summaries ---

def test_year_summary_has_twelve_months():
    summary = calculate_year_summary([_ev(month=1, subs="100"), _ev(month=12, subs="100")], _settings())
    assert summary.month_numbers == tuple(range(1, 13))
    assert summary.total_go_lives == 2
    assert summary.total_subs_actual == Decimal("2400")
    assert summary.total_subs_target == Decimal("12000")
    assert summary.total_subs_achievement == Decimal("0.2")


def test_ytd_is_prefix_of_year():
    events = [_ev(month=m, subs="50", terminal=m % 2 == 0) for m in range(1, 13)]
    settings = _settings(subs=600)

    year = calculate_year_summary(events, settings)
    ytd = calculate_ytd_summary(events, settings, 5)

    assert ytd.month_numbers == (1, 2, 3, 4, 5)
    assert ytd.months == year.months[:5]
    assert ytd.total_subs_actual <= year.total_subs_actual
    assert ytd.total_subs_target <= year.total_subs_target
    assert ytd.total_provision <= year.total_provision


def test_quarter_summary():
    events = [_ev(month=5, subs="100"), _ev(month=8, subs="100")]
    summary = calculate_quarter_summary(events, _settings(), 2)
    assert summary.month_numbers == (4, 5, 6)
    assert summary.total_go_lives == 1


def test_totals_match_sum_of_months():
    events = [_ev(month=m, subs=str(10 * m), pay="100") for m in (1, 2, 3)]
    summary = calculate_ytd_summary(events, _settings(pay=100), 3)
    assert summary.total_provision == sum(m.total_provision for m in summary.months)
    assert summary.total_m0_provision + summary.total_m3_provision == summary.total_provision


def test_empty_year_is_zero_valued():
    summary = calculate_year_summary([], QuotaSettings(user_id=1, year=YEAR))
    assert len(summary.months) == 12
    assert summary.total_go_lives == 0
    assert summary.total_provision == 0
    assert summary.total_subs_achievement == 0


# --- Combined view ---

def test_combined_view_additive_fields_commute():
    events_a = [_ev(user_id=1, month=m, subs="100", terminal=True) for m in (1, 2)]
    events_b = [_ev(user_id=2, month=m, subs="40") for m in (2, 3, 4)]
    settings = {1: _settings(1, subs=1000), 2: _settings(2, subs=500, go_lives=2)}

    combined = calculate_combined_year_summary({1: events_a, 2: events_b}, settings, YEAR)
    single_a = calculate_year_summary(events_a, settings[1])
    single_b = calculate_year_summary(events_b, settings[2])

    for field in ("total_go_lives", "total_terminals", "total_subs_actual", "total_subs_target",
                  "total_pay_actual", "total_pay_target", "total_go_lives_target"):
        assert getattr(combined, field) == getattr(single_a, field) + getattr(single_b, field)


def test_combined_view_order_independent():
    events = {1: [_ev(user_id=1, subs="100")], 2: [_ev(user_id=2, subs="300")]}
    settings = {1: _settings(1), 2: _settings(2)}
    forward = calculate_combined_year_summary(events, settings, YEAR)
    backward = calculate_combined_year_summary(dict(reversed(events.items())), dict(reversed(settings.items())), YEAR)
    assert forward == backward


def test_combined_view_with_no_users():
    summary = calculate_combined_year_summary({}, {}, YEAR)
    assert summary.total_go_lives == 0
    assert summary.total_provision == 0


# --- OTE ---

def test_ote_projection_baseline_matches_configured_ote():
    settings = _settings(subs=10000, ote="3654")
    check = validate_ote(settings)
    assert check.expected_provision == Decimal("3654")
    assert check.valid is True
    assert check.deviation_percent == 0


def test_ote_projections_cover_all_bands():
    projections = calculate_ote_projections(_settings(subs=10000))
    assert [p.factor for p in projections][0] == Decimal("0.25")
    assert [p.factor for p in projections][-1] == Decimal("1.25")
    assert all(p.ote_match is False for p in projections)


def test_ote_zero_means_no_deviation():
    check = validate_ote(_settings(subs=10000))
    assert check.valid is False
    assert check.deviation_percent == 0
