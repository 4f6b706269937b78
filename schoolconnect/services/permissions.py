# schoolconnect/services/permissions.py
"""Role capability table. Handlers ask a capability, never compare role strings."""
from typing import Dict, NamedTuple

from ..models.user import UserRole


class RoleCapabilities(NamedTuple):
    can_moderate: bool
    is_audience_universal: bool


CAPABILITIES: Dict[UserRole, RoleCapabilities] = {
    UserRole.TEACHER: RoleCapabilities(can_moderate=False, is_audience_universal=False),
    UserRole.PARENT: RoleCapabilities(can_moderate=False, is_audience_universal=False),
    UserRole.PRINCIPAL: RoleCapabilities(can_moderate=True, is_audience_universal=True),
    UserRole.ADMIN: RoleCapabilities(can_moderate=True, is_audience_universal=True),
}


def can_moderate(role: UserRole) -> bool:
    """Exempt from chat moderation and allowed to approve or reject"""
    return CAPABILITIES[role].can_moderate


def is_audience_universal(role: UserRole) -> bool:
    """Included in every targeted audience ("principals see everything")"""
    return CAPABILITIES[role].is_audience_universal


def universal_roles():
    return [role for role, caps in CAPABILITIES.items() if caps.is_audience_universal]
