"""
Tests for Analytics API endpoints
"""
import pytest
from datetime import datetime, date, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

from planner.main import app
from planner.api.deps import get_current_user, get_db
from planner.infrastructure.db.models import ChallengeModel, GoLive, OpportunityModel, QuotaSettingsModel, User


@pytest.fixture
def seeded(db_session):
    """Two users with a March go-live each, a plan for user 1 and one deal"""
    db_session.add_all([
        User(id=1, email="ae@example.com", name="Anna", role="ae"),
        User(id=2, email="misc@example.com", name="Ben", role="sonstiges"),
    ])
    db_session.flush()
    db_session.add_all([
        QuotaSettingsModel(
            user_id=1, year=2026,
            monthly_subs_targets=[1200] * 12,
            monthly_pay_targets=[0] * 12,
            monthly_go_live_targets=[1] * 12,
            terminal_base=Decimal("30"), terminal_bonus=Decimal("50"),
            terminal_penetration_threshold=Decimal("0.7"), ote=Decimal("0"),
        ),
        GoLive(user_id=1, year=2026, month=3, go_live_date=date(2026, 3, 2), subs_monthly=Decimal("100")),
        GoLive(user_id=2, year=2026, month=3, go_live_date=date(2026, 3, 3), subs_monthly=Decimal("50")),
        ChallengeModel(
            id=1, name="März", type="team", metric="go_lives", target_value=Decimal("2"),
            start_date=date(2026, 3, 1), end_date=date(2026, 3, 31),
        ),
        OpportunityModel(
            id=1, user_id=1, name="Bäckerei", stage="demo_booked",
            stage_changed_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
            created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
            expected_subs_monthly=Decimal("100"), expected_pay_monthly=Decimal("0"),
        ),
    ])
    db_session.flush()
    return db_session


def _client(db, user_id):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: db.query(User).filter(User.id == user_id).first()
    return TestClient(app)


@pytest.fixture
def ae_client(seeded):
    yield _client(seeded, 1)
    app.dependency_overrides.clear()


@pytest.fixture
def own_scope_client(seeded):
    yield _client(seeded, 2)
    app.dependency_overrides.clear()


def test_health():
    assert TestClient(app).get("/health").text == "ok"


def test_commission_report(ae_client):
    response = ae_client.get("/api/v1/analytics/commission/2026", params={"as_of": "2026-03-20"})

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == 1
    assert len(data["year_summary"]["months"]) == 12
    assert [m["month"] for m in data["ytd_summary"]["months"]] == [1, 2, 3]
    march = data["year_summary"]["months"][2]
    assert march["month_name"] == "März"
    assert Decimal(march["subs_actual"]) == Decimal("1200")
    assert Decimal(march["subs_achievement"]) == 1


def test_commission_report_for_other_user_with_all_scope(ae_client):
    response = ae_client.get("/api/v1/analytics/commission/2026", params={"user_id": 2, "as_of": "2026-03-20"})
    assert response.status_code == 200
    assert response.json()["user_id"] == 2


def test_own_scope_cannot_view_others(own_scope_client):
    response = own_scope_client.get("/api/v1/analytics/commission/2026", params={"user_id": 1})
    assert response.status_code == 403


def test_combined_requires_all_scope(own_scope_client):
    response = own_scope_client.get("/api/v1/analytics/commission/2026/combined")
    assert response.status_code == 403


def test_combined_report(ae_client):
    response = ae_client.get("/api/v1/analytics/commission/2026/combined", params={"as_of": "2026-03-20"})
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] is None
    assert data["year_summary"]["total_go_lives"] == 2


def test_unknown_user_is_404(ae_client):
    response = ae_client.get("/api/v1/analytics/commission/2026", params={"user_id": 77})
    assert response.status_code == 404


def test_invalid_quota_settings_is_422(ae_client, seeded):
    row = seeded.query(QuotaSettingsModel).filter(QuotaSettingsModel.user_id == 1).first()
    row.subs_tiers = []
    seeded.flush()
    response = ae_client.get("/api/v1/analytics/commission/2026", params={"as_of": "2026-03-20"})
    assert response.status_code == 422


def test_challenges(ae_client):
    response = ae_client.get("/api/v1/analytics/challenges", params={"as_of": "2026-03-20"})
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert Decimal(data[0]["current_value"]) == 2
    assert data[0]["is_completed"] is True
    assert data[0]["days_remaining"] == 11


def test_rewards(ae_client):
    response = ae_client.get("/api/v1/analytics/rewards/2026", params={"as_of": "2026-03-20"})
    assert response.status_code == 200
    data = response.json()
    assert data["points"]["go_lives"] == 10
    assert {b["badge"]["id"] for b in data["badges"]} == {"first_blood", "monthly_king", "money_maker"}
    assert data["points"]["total"] == 10 + 50 + 200 + 200
    assert data["level"]["current"]["name"] == "Rising"


def test_pipeline_forecast(ae_client):
    response = ae_client.get("/api/v1/analytics/pipeline/forecast", params={"as_of": "2026-03-20"})
    assert response.status_code == 200
    data = response.json()
    assert data["active_deals"] == 1
    assert Decimal(data["weighted_pipeline_value"]) == Decimal("300")
    assert data["by_stage"]["demo_booked"]["count"] == 1


def test_pipeline_forecast_own_scope_sees_own_deals(own_scope_client):
    response = own_scope_client.get("/api/v1/analytics/pipeline/forecast", params={"as_of": "2026-03-20"})
    assert response.status_code == 200
    assert response.json()["active_deals"] == 0


def test_pipeline_forecast_rejects_unknown_date_mode(ae_client):
    response = ae_client.get("/api/v1/analytics/pipeline/forecast", params={"date_mode": "someday"})
    assert response.status_code == 422
