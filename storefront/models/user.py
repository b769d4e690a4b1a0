# storefront/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

ROLE_CUSTOMER = "user"
ROLE_ADMIN = "admin"


class User(SQLModel, table=True):
    """
    Local mirror of a Supabase Auth identity.

    The primary key is the Supabase user id (JWT "sub"), so rows are only
    created once Supabase has accepted the account. Guests never get a row.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(primary_key=True, index=True)

    # Lowercased; this is also the e-mail the payment provider receives
    email: str = Field(unique=True, index=True)

    name: str = Field(max_length=50)

    role: str = Field(default=ROLE_CUSTOMER, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
