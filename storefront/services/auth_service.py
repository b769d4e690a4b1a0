# storefront/services/auth_service.py
import logging
import secrets
import uuid

from sqlmodel import Session
from supabase import AuthApiError, Client

from storefront.core.auth import default_name_from_email
from storefront.core.config import Settings
from storefront.core.errors import Conflict, Forbidden, Unauthenticated, ValidationError
from storefront.models.user import ROLE_ADMIN, ROLE_CUSTOMER, User
from storefront.repositories.user_repo import UserRepository
from storefront.schemas.user import AuthResult, LoginRequest, RegisterRequest, UserRead

logger = logging.getLogger(__name__)


class AuthService:
    """
    Registration and login.

    Passwords are handled by Supabase Auth only; this service mirrors the
    resulting identity into the users table and hands back the Supabase
    access token, which get_current_user later verifies.
    """

    def __init__(self, repo: UserRepository, settings: Settings):
        self.repo = repo
        self.settings = settings

    @staticmethod
    def _token(response) -> str | None:
        return response.session.access_token if response.session else None

    def register(
        self,
        session: Session,
        auth_client: Client,
        payload: RegisterRequest,
        role: str = ROLE_CUSTOMER,
    ) -> AuthResult:
        if self.repo.get_by_email(session, payload.email):
            raise Conflict("User already exists with this email")

        try:
            response = auth_client.auth.sign_up(
                {"email": payload.email, "password": payload.password}
            )
        except AuthApiError as exc:
            if "already" in exc.message.lower():
                raise Conflict("User already exists with this email")
            logger.warning("Sign-up rejected for %s: %s", payload.email, exc.message)
            raise ValidationError("Registration was rejected")

        if response.user is None:
            logger.error("Sign-up for %s returned no user", payload.email)
            raise ValidationError("Registration was rejected")

        user = self.repo.create(
            session,
            User(
                id=uuid.UUID(str(response.user.id)),
                email=payload.email,
                name=payload.name or default_name_from_email(payload.email),
                role=role,
            ),
        )
        logger.info("Registered %s %s", role, user.id)
        return AuthResult(user=UserRead.model_validate(user), access_token=self._token(response))

    def register_admin(
        self,
        session: Session,
        auth_client: Client,
        payload: RegisterRequest,
        registration_key: str | None,
    ) -> AuthResult:
        """
        Create an admin account. Requires ADMIN_REGISTRATION_KEY; with no key
        configured, admin sign-up is closed.
        """
        expected = self.settings.ADMIN_REGISTRATION_KEY
        if not expected or not registration_key or not secrets.compare_digest(
            registration_key.encode(), expected.encode()
        ):
            logger.warning("Rejected admin registration for %s", payload.email)
            raise Forbidden("Admin registration is not allowed")
        return self.register(session, auth_client, payload, role=ROLE_ADMIN)

    def login(
        self,
        session: Session,
        auth_client: Client,
        payload: LoginRequest,
    ) -> AuthResult:
        try:
            response = auth_client.auth.sign_in_with_password(
                {"email": payload.email, "password": payload.password}
            )
        except AuthApiError:
            raise Unauthenticated("Invalid email or password")

        if response.user is None or response.session is None:
            raise Unauthenticated("Invalid email or password")

        user_id = uuid.UUID(str(response.user.id))
        user = self.repo.get_by_id(session, user_id)
        if user is None:
            user = self.repo.create(
                session,
                User(
                    id=user_id,
                    email=payload.email,
                    name=default_name_from_email(payload.email),
                    role=ROLE_CUSTOMER,
                ),
            )

        return AuthResult(user=UserRead.model_validate(user), access_token=self._token(response))
