"""Permission utility functions"""

from __future__ import annotations


def is_superadmin(user):
    if user is None:
        return False
    return user.role == "SUPERADMIN"


def is_admin_or_higher(user):
    """Check if user has admin or superadmin role."""
    if user is None:
        return False
    return user.role in ["ADMIN", "SUPERADMIN"]


def can_manage_lockout(admin_user, target_user) -> bool:
    """Check if admin can unlock or force a password reset on a specific user.

    Rules:
    - SUPERADMIN can act on any user
    - ADMIN can act on any user EXCEPT a SUPERADMIN
    - Non-admins cannot act on other users
    """
    if admin_user is None or target_user is None:
        return False

    if is_superadmin(admin_user):
        return True

    if is_admin_or_higher(admin_user):
        return target_user.role != "SUPERADMIN"

    return False
