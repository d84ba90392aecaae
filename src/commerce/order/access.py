"""Who may see and change an order.

Callers arrive with a pre-validated user id and role from the auth service.
Every refusal says only "Access denied" so the response does not reveal
whether the order exists.
"""

from enum import Enum

from commerce.errors import Forbidden


class Role(Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SUPPORT_AGENT = "support_agent"


ADMIN_ROLES = {Role.ADMIN.value, Role.SUPER_ADMIN.value}
STAFF_ROLES = ADMIN_ROLES | {Role.SUPPORT_AGENT.value}


def is_admin(role) -> bool:
    return role in ADMIN_ROLES


def ensure_can_view(owner_id, seller_ids, user_id, role):
    """Owner, a seller of one of the items, or staff."""
    if role in STAFF_ROLES:
        return
    if user_id and (str(owner_id) == str(user_id) or str(user_id) in {str(s) for s in seller_ids}):
        return
    raise Forbidden("Access denied")


def ensure_can_cancel(owner_id, user_id, role):
    """Owner or an administrator."""
    if is_admin(role) or (user_id and str(owner_id) == str(user_id)):
        return
    raise Forbidden("Access denied")


def ensure_can_fulfil(seller_ids, user_id, role):
    """Sellers of one of the items, or an administrator."""
    if is_admin(role):
        return
    if role == Role.SELLER.value and user_id and str(user_id) in {str(s) for s in seller_ids}:
        return
    raise Forbidden("Access denied")


def ensure_staff(role):
    if role not in STAFF_ROLES:
        raise Forbidden("Access denied")


def ensure_admin(role):
    if not is_admin(role):
        raise Forbidden("Access denied")


def ensure_can_pay(owner_id, user_id, role):
    """Only the customer who placed the order (or an administrator) opens a payment."""
    ensure_can_cancel(owner_id, user_id, role)
