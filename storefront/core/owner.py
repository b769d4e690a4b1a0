# storefront/core/owner.py
"""
Per-request owner context.

Carts and orders belong either to a registered user or to a guest session.
Routers resolve that once, through the dependencies below, and pass the
resulting OwnerContext explicitly to services.
"""

import uuid
from dataclasses import dataclass

from fastapi import Depends, Request

from storefront.core.auth import get_current_user, require_user
from storefront.core.errors import Forbidden
from storefront.models.user import ROLE_CUSTOMER, User

GUEST_SESSION_KEY = "guest_id"


@dataclass(frozen=True)
class OwnerContext:
    """
    Exactly one of user_id / guest_id is set for a resolved owner.

    A context with neither is allowed only as input to checkout, which then
    mints a guest id.
    """

    user_id: uuid.UUID | None = None
    guest_id: str | None = None
    email: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def owns(self, user_id: uuid.UUID | None, guest_id: str | None) -> bool:
        if self.user_id is not None:
            return user_id == self.user_id
        return self.guest_id is not None and guest_id == self.guest_id

    @classmethod
    def for_user(cls, user: User) -> "OwnerContext":
        return cls(user_id=user.id, email=user.email)

    @classmethod
    def for_guest(cls, guest_id: str | None) -> "OwnerContext":
        return cls(guest_id=guest_id)


def new_guest_id() -> str:
    return uuid.uuid4().hex


def ensure_guest_id(request: Request) -> str:
    """
    Return the session's guest id, minting and storing one on first use.

    Stable for the lifetime of the (signed cookie) session.
    """
    guest_id = request.session.get(GUEST_SESSION_KEY)
    if not guest_id:
        guest_id = new_guest_id()
        request.session[GUEST_SESSION_KEY] = guest_id
    return guest_id


def get_customer_context(user: User = Depends(require_user)) -> OwnerContext:
    return OwnerContext.for_user(user)


def get_guest_context(request: Request) -> OwnerContext:
    return OwnerContext.for_guest(ensure_guest_id(request))


def get_owner_context(
    request: Request,
    user: User | None = Depends(get_current_user),
) -> OwnerContext:
    """
    Authenticated customer => user context; no token => guest context.

    Admin tokens are rejected: admins manage orders via /admin routes.
    """
    if user is None:
        return get_guest_context(request)
    if user.role != ROLE_CUSTOMER:
        raise Forbidden("Customer access required")
    return OwnerContext.for_user(user)
