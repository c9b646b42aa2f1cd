"""
Tests for role capabilities and aggregation scope
"""
from planner.domain.permissions import (
    Capabilities, ROLES, SCOPE_ALL, SCOPE_OWN, aggregation_scope, can_view_user, capabilities_for,
)


def test_country_manager_has_everything_but_plannable():
    caps = capabilities_for("country_manager")
    assert caps.assign_roles and caps.edit_tiers and caps.manage_users
    assert caps.plannable is False


def test_ae_capabilities():
    caps = capabilities_for("ae")
    assert caps.view_all_users is True
    assert caps.enter_own_go_lives is True
    assert caps.enter_go_lives_for_others is False
    assert caps.edit_settings is False
    assert caps.plannable is True


def test_sonstiges_sees_only_own_data():
    caps = capabilities_for("sonstiges")
    assert caps.view_all_users is False
    assert caps.plannable is True
    assert aggregation_scope("sonstiges") == SCOPE_OWN


def test_unknown_role_gets_nothing():
    assert capabilities_for("intern") == Capabilities()
    assert capabilities_for(None) == Capabilities()
    assert aggregation_scope(None) == SCOPE_OWN


def test_scopes():
    assert {r: aggregation_scope(r) for r in ROLES} == {
        "country_manager": SCOPE_ALL,
        "line_manager": SCOPE_ALL,
        "ae": SCOPE_ALL,
        "sdr": SCOPE_ALL,
        "sonstiges": SCOPE_OWN,
        "head_of_partnerships": SCOPE_ALL,
    }


def test_can_view_user():
    assert can_view_user("sonstiges", 5, 5)
    assert not can_view_user("sonstiges", 5, 6)
    assert can_view_user("line_manager", 5, 6)
