"""FastAPI dependencies wiring services to the app state and the session."""

import asyncpg
from fastapi import Depends, Request

from src.config import Settings
from src.errors import InternalError
from src.models.account import Account
from src.services.account_service import AccountService
from src.services.media_service import MediaStorage
from src.services.profile_service import ProfileService
from src.services.session_service import SessionService, extract_credential
from src.services.token_service import TokenService

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db_pool(request: Request) -> asyncpg.Pool:
    """Return the app's connection pool.

    Raises:
        InternalError: If the database was not initialized at startup
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise InternalError("Database unavailable")
    return pool


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage


def get_account_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> AccountService:
    return AccountService(pool)


def get_profile_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> ProfileService:
    return ProfileService(pool)


def get_token_service(
    settings: Settings = Depends(get_app_settings),
    accounts: AccountService = Depends(get_account_service),
) -> TokenService:
    return TokenService(settings, accounts)


def get_session_service(
    tokens: TokenService = Depends(get_token_service),
    accounts: AccountService = Depends(get_account_service),
) -> SessionService:
    return SessionService(tokens, accounts)


async def get_current_account(
    request: Request,
    sessions: SessionService = Depends(get_session_service),
) -> Account:
    """Authenticate the request from the accessToken cookie or Bearer header.

    The account is also stored on ``request.state.account``.

    Raises:
        UnauthenticatedError: If no credential is present (401)
        InvalidTokenError: If the token is invalid or its account is gone (403)
    """
    credential = extract_credential(
        request.cookies.get(ACCESS_COOKIE),
        request.headers.get("Authorization"),
    )
    account = await sessions.authenticate(credential)
    request.state.account = account
    return account
