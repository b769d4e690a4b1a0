"""Pytest fixtures for storefront tests."""

import os
import time
import uuid
from dataclasses import dataclass, field

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("ADMIN_REGISTRATION_KEY", "test-admin-key")
os.environ.setdefault("SWEEP_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel

from storefront.core.config import get_settings
from storefront.core.errors import GatewayError, GatewayTimeout
from storefront.core.payment_gateway import (
    PaymentGateway,
    PaymentSession,
    PaymentVerification,
    get_payment_gateway,
)
from storefront.core.supabase_client import get_auth_client
from storefront.database import engine
from storefront.main import app
from storefront.models.product import Product
from storefront.models.user import User
from storefront.repositories.session_cart_repo import get_session_cart_repo

API = get_settings().API_V1_STR


# ---------- Fakes ----------


class FakeGateway(PaymentGateway):
    """In-memory payment provider; records every call."""

    def __init__(self):
        self.initialized: list[dict] = []
        self.verified: list[str] = []
        self.init_error: Exception | None = None
        self.verify_status = "success"
        # Amount reported by verify(); defaults to what was last initialized
        self.verify_amount: int | None = None
        self.charges: dict[str, int] = {}
        self._counter = 0

    def initialize(self, amount_minor, email, callback_url):
        self.initialized.append(
            {"amount": amount_minor, "email": email, "callback_url": callback_url}
        )
        if self.init_error is not None:
            raise self.init_error
        self._counter += 1
        reference = f"ref_{self._counter}"
        self.charges[reference] = amount_minor
        return PaymentSession(
            redirect_url=f"https://checkout.paystack.test/{reference}",
            reference=reference,
        )

    def verify(self, reference):
        self.verified.append(reference)
        amount = self.verify_amount
        if amount is None:
            last = self.initialized[-1]["amount"] if self.initialized else None
            amount = self.charges.get(reference, last)
        return PaymentVerification(
            status=self.verify_status, reference=reference, amount_minor=amount
        )

    def time_out(self):
        self.init_error = GatewayTimeout()

    def fail(self):
        self.init_error = GatewayError()


@dataclass
class _FakeAuthUser:
    id: str


@dataclass
class _FakeAuthSession:
    access_token: str


@dataclass
class _FakeAuthResponse:
    user: _FakeAuthUser | None
    session: _FakeAuthSession | None


@dataclass
class FakeAuth:
    """Stands in for `client.auth` of the Supabase client."""

    accounts: dict[str, tuple[str, str]] = field(default_factory=dict)

    def sign_up(self, credentials):
        from supabase import AuthApiError

        email = credentials["email"]
        if email in self.accounts:
            raise AuthApiError("User already registered", 422, None)
        user_id = str(uuid.uuid4())
        self.accounts[email] = (user_id, credentials["password"])
        return _FakeAuthResponse(
            user=_FakeAuthUser(id=user_id),
            session=_FakeAuthSession(access_token=make_token(user_id, email)),
        )

    def sign_in_with_password(self, credentials):
        from supabase import AuthApiError

        email = credentials["email"]
        account = self.accounts.get(email)
        if account is None or account[1] != credentials["password"]:
            raise AuthApiError("Invalid login credentials", 400, None)
        return _FakeAuthResponse(
            user=_FakeAuthUser(id=account[0]),
            session=_FakeAuthSession(access_token=make_token(account[0], email)),
        )


@dataclass
class FakeAuthClient:
    auth: FakeAuth = field(default_factory=FakeAuth)


# ---------- Helpers ----------


def make_token(user_id, email: str) -> str:
    settings = get_settings()
    return jwt.encode(
        {"sub": str(user_id), "email": email, "exp": int(time.time()) + 3600},
        settings.SUPABASE_JWT_SECRET,
        algorithm=settings.SUPABASE_JWT_ALG,
    )


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.id, user.email)}"}


SHIPPING_ADDRESS = {
    "street": "12 Marina Road",
    "city": "Lagos",
    "state": "Lagos",
    "postal_code": "101241",
    "country": "NG",
}


# ---------- Fixtures ----------


@pytest.fixture(autouse=True)
def fresh_db():
    """Empty schema and guest carts for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    get_session_cart_repo()._carts.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def auth_client():
    return FakeAuthClient()


@pytest.fixture
def client(gateway, auth_client):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    return TestClient(app)


@pytest.fixture
def make_user(session):
    def _make(role: str = "user", email: str | None = None) -> User:
        email = email or f"{uuid.uuid4().hex[:8]}@example.com"
        user = User(id=uuid.uuid4(), email=email, name=email.split("@")[0], role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("user")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def make_product(session, admin):
    def _make(
        name: str = "Linen Shirt",
        price: float = 10.0,
        quantity: int = 5,
        sizes: list[str] | None = None,
        colors: list[str] | None = None,
        owner: User | None = None,
    ) -> Product:
        product = Product(
            admin_id=(owner or admin).id,
            name=name,
            price=price,
            quantity=quantity,
            sizes=sizes or [],
            colors=colors or [],
            images=[f"https://cdn.test/{name.replace(' ', '-').lower()}.png"],
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make
