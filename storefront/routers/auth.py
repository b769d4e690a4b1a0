# storefront/routers/auth.py
from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel import Session
from supabase import Client

from storefront.core.config import get_settings
from storefront.core.supabase_client import get_auth_client
from storefront.database import get_session
from storefront.repositories.user_repo import UserRepository
from storefront.schemas.user import AuthResult, LoginRequest, RegisterRequest
from storefront.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

repo = UserRepository()
service = AuthService(repo, get_settings())


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    auth_client: Client = Depends(get_auth_client),
):
    """
    Create a customer account.

    - 409 if the email is already registered.
    - access_token is null when the project requires email confirmation.
    """
    return service.register(session, auth_client, payload)


@router.post(
    "/admin/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED
)
def register_admin(
    payload: RegisterRequest,
    x_admin_key: str | None = Header(default=None),
    session: Session = Depends(get_session),
    auth_client: Client = Depends(get_auth_client),
):
    """
    Create an admin account.

    - 403 unless the X-Admin-Key header matches ADMIN_REGISTRATION_KEY.
    - 409 if the email is already registered.
    """
    return service.register_admin(session, auth_client, payload, x_admin_key)


@router.post("/login", response_model=AuthResult)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    auth_client: Client = Depends(get_auth_client),
):
    """
    Exchange email/password for a Supabase access token.
    """
    return service.login(session, auth_client, payload)


@router.post("/logout")
def logout(request: Request) -> dict[str, str]:
    """
    Drop the server-side session (guest id). Bearer tokens are stateless;
    the client discards its own.
    """
    request.session.clear()
    return {"message": "Logged out successfully"}
