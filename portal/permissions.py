"""
Role policy table.

Roles form a closed enum and every check is a pure function of (role, capability
flags) so the policy can be tested without a request or a database.
"""

from enum import Enum
from typing import Union


class Role(str, Enum):
    VENDOR_ADMIN = "vendor_admin"
    VENDOR_STAFF = "vendor_staff"
    CLIENT_ADMIN = "client_admin"
    CLIENT_APPROVER = "client_approver"
    CLIENT_VIEWER = "client_viewer"


VENDOR_ROLES = frozenset({Role.VENDOR_ADMIN, Role.VENDOR_STAFF})
CLIENT_ROLES = frozenset({Role.CLIENT_ADMIN, Role.CLIENT_APPROVER, Role.CLIENT_VIEWER})
ADMIN_ROLES = frozenset({Role.VENDOR_ADMIN, Role.CLIENT_ADMIN})

RoleLike = Union[Role, str]


def as_role(role: RoleLike) -> Role:
    return role if isinstance(role, Role) else Role(role)


def is_vendor(role: RoleLike) -> bool:
    return as_role(role) in VENDOR_ROLES


def is_admin(role: RoleLike) -> bool:
    return as_role(role) in ADMIN_ROLES


def can_create_work_orders(role: RoleLike) -> bool:
    return is_vendor(role)


def can_edit_work_orders(role: RoleLike) -> bool:
    return as_role(role) == Role.VENDOR_ADMIN


def can_delete_work_orders(role: RoleLike) -> bool:
    return as_role(role) == Role.VENDOR_ADMIN


def can_create_invoices(role: RoleLike) -> bool:
    return as_role(role) == Role.VENDOR_ADMIN


def can_view_invoices(role: RoleLike) -> bool:
    return as_role(role) != Role.CLIENT_APPROVER


def can_manage_settings(role: RoleLike) -> bool:
    return as_role(role) == Role.VENDOR_ADMIN


def can_manage_staff(role: RoleLike) -> bool:
    return is_admin(role)


def can_create_time_logs(role: RoleLike) -> bool:
    return is_vendor(role)


def can_create_incidents(role: RoleLike) -> bool:
    return is_vendor(role)


def can_approve(is_approver: bool) -> bool:
    return bool(is_approver)


def can_pay(role: RoleLike, can_pay_flag: bool) -> bool:
    return bool(can_pay_flag) and as_role(role) == Role.CLIENT_ADMIN


def can_bulk_sign(role: RoleLike, is_approver: bool) -> bool:
    return is_vendor(role) or bool(is_approver)


def can_assign_role(actor_role: RoleLike, target_role: RoleLike) -> bool:
    """Client admins manage client contacts only"""
    actor = as_role(actor_role)
    if actor == Role.VENDOR_ADMIN:
        return True
    if actor == Role.CLIENT_ADMIN:
        return as_role(target_role) in CLIENT_ROLES
    return False


def can_edit_user(actor_role: RoleLike, target_role: RoleLike) -> bool:
    """Only a vendor admin may touch vendor accounts"""
    if not can_manage_staff(actor_role):
        return False
    if is_vendor(target_role):
        return as_role(actor_role) == Role.VENDOR_ADMIN
    return True
