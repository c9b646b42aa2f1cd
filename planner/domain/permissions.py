"""
Role → capability mapping.

Analytics code branches on capabilities, never on role names.
"""
from __future__ import annotations

from dataclasses import dataclass

COUNTRY_MANAGER = "country_manager"
LINE_MANAGER = "line_manager"
AE = "ae"
SDR = "sdr"
SONSTIGES = "sonstiges"
HEAD_OF_PARTNERSHIPS = "head_of_partnerships"

ROLES = (COUNTRY_MANAGER, LINE_MANAGER, AE, SDR, SONSTIGES, HEAD_OF_PARTNERSHIPS)

SCOPE_ALL = "all"
SCOPE_OWN = "own"


@dataclass(frozen=True)
class Capabilities:
    view_all_users: bool = False
    edit_settings: bool = False
    enter_pay_arr: bool = False
    enter_go_lives_for_others: bool = False
    enter_own_go_lives: bool = False
    manage_users: bool = False
    assign_roles: bool = False
    edit_tiers: bool = False
    view_all_reports: bool = False
    export_reports: bool = False
    admin_access: bool = False
    plannable: bool = False


_MANAGERS = {COUNTRY_MANAGER, LINE_MANAGER, HEAD_OF_PARTNERSHIPS}

_RULES: dict[str, set[str]] = {
    "view_all_users": _MANAGERS | {AE, SDR},
    "edit_settings": _MANAGERS,
    "enter_pay_arr": _MANAGERS,
    "enter_go_lives_for_others": _MANAGERS,
    "enter_own_go_lives": _MANAGERS | {AE},
    "manage_users": {COUNTRY_MANAGER, LINE_MANAGER},
    "assign_roles": {COUNTRY_MANAGER},
    "edit_tiers": {COUNTRY_MANAGER},
    "view_all_reports": _MANAGERS,
    "export_reports": _MANAGERS | {AE},
    "admin_access": _MANAGERS,
    "plannable": {AE, SONSTIGES},
}


def capabilities_for(role: str | None) -> Capabilities:
    """Unknown or missing roles get no capabilities."""
    return Capabilities(**{name: role in roles for name, roles in _RULES.items()})


def aggregation_scope(role: str | None) -> str:
    return SCOPE_ALL if capabilities_for(role).view_all_users else SCOPE_OWN


def can_view_user(role: str | None, viewer_id: int, target_id: int) -> bool:
    return viewer_id == target_id or aggregation_scope(role) == SCOPE_ALL
