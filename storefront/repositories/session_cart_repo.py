# storefront/repositories/session_cart_repo.py
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterator

from storefront.core.config import get_settings
from storefront.schemas.cart import CartLine


@dataclass
class _GuestCart:
    lines: list[CartLine] = field(default_factory=list)
    touched_at: float = field(default_factory=time.monotonic)
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionCartRepository:
    """
    In-process store for guest carts, keyed by the session guest id.

    Guest carts are deliberately NOT durable: they live in this process
    and expire together with the session (`ttl_seconds` after the last
    touch). Each guest cart carries its own lock so concurrent requests for
    the same guest are serialized.
    """

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._carts: dict[str, _GuestCart] = {}
        self._registry_lock = threading.Lock()

    def _expired(self, cart: _GuestCart, now: float) -> bool:
        return now - cart.touched_at > self.ttl_seconds

    def _get_or_create(self, guest_id: str) -> _GuestCart:
        now = time.monotonic()
        with self._registry_lock:
            cart = self._carts.get(guest_id)
            if cart is None or self._expired(cart, now):
                cart = _GuestCart(touched_at=now)
                self._carts[guest_id] = cart
            return cart

    @contextmanager
    def locked(self, guest_id: str) -> Iterator[list[CartLine]]:
        """
        Hold the guest's cart lock and yield its mutable line list.

        All mutations must happen inside this block.
        """
        cart = self._get_or_create(guest_id)
        with cart.lock:
            yield cart.lines
            cart.touched_at = time.monotonic()

    def list_lines(self, guest_id: str) -> list[CartLine]:
        """Copies of the guest's lines; empty if the guest has no cart."""
        with self._registry_lock:
            cart = self._carts.get(guest_id)
            if cart is None or self._expired(cart, time.monotonic()):
                return []
        with cart.lock:
            return [line.model_copy() for line in cart.lines]

    def clear(self, guest_id: str) -> None:
        with self.locked(guest_id) as lines:
            lines.clear()

    def purge_expired(self) -> int:
        """Drop carts whose session has expired. Returns how many were dropped."""
        now = time.monotonic()
        with self._registry_lock:
            stale = [gid for gid, cart in self._carts.items() if self._expired(cart, now)]
            for gid in stale:
                del self._carts[gid]
        return len(stale)


@lru_cache
def get_session_cart_repo() -> SessionCartRepository:
    """Process-wide guest cart store, shared by the cart and checkout routes."""
    return SessionCartRepository(ttl_seconds=get_settings().SESSION_MAX_AGE_SECONDS)
