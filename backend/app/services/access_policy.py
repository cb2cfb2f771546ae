# Overview: Role and ownership checks consulted before any sale or sale-item access.

"""
Access policy for sales and sale items.

ROLES:
- Admin, Manager: unrestricted access to every sale
- Cashier: access only to sales where Sale.user_id == actor.id

Deletion (of items, and cancellation of sales) requires Admin or Manager.
A Cashier is never allowed to delete, even on a sale they own.

This is the only module that compares role names.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import AccessDenied


ROLE_ADMIN = "Admin"
ROLE_MANAGER = "Manager"
ROLE_CASHIER = "Cashier"

ALL_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER)
PRIVILEGED_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER})


@dataclass(frozen=True)
class Actor:
    """Identity the services act on behalf of."""
    id: int
    role: str

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def actor_from_user(user) -> Actor:
    return Actor(id=user.id, role=user.role_name or "")


def can_access_sale(actor: Actor, sale) -> bool:
    if actor.is_privileged:
        return True
    return actor.role == ROLE_CASHIER and sale.user_id == actor.id


def can_delete(actor: Actor) -> bool:
    return actor.is_privileged


def can_manage_inventory(actor: Actor) -> bool:
    return actor.is_privileged


def require_sale_access(actor: Actor, sale) -> None:
    if not can_access_sale(actor, sale):
        raise AccessDenied(
            "Access denied: cannot access this sale",
            details={"sale_id": sale.id},
        )


def require_delete(actor: Actor) -> None:
    if not can_delete(actor):
        raise AccessDenied("Access denied: only managers and admins can delete")


def require_inventory_manager(actor: Actor) -> None:
    if not can_manage_inventory(actor):
        raise AccessDenied("Access denied: insufficient permissions")
