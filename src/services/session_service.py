"""Resolves a bearer credential to the authenticated account."""

from typing import Optional
from uuid import UUID

import structlog

from src.errors import InvalidTokenError, UnauthenticatedError
from src.models.account import Account
from src.services.account_service import AccountService
from src.services.token_service import TokenService

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_credential(
    cookie_token: Optional[str], authorization: Optional[str]
) -> Optional[str]:
    """Pick the access token from the cookie, falling back to the header.

    Args:
        cookie_token: Value of the ``accessToken`` cookie
        authorization: Raw ``Authorization`` header

    Returns:
        The token, or None if neither source carries one
    """
    if cookie_token and cookie_token.strip():
        return cookie_token.strip()
    if authorization and authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        return token or None
    return None


class SessionService:
    """Authenticates requests from their access token."""

    def __init__(self, tokens: TokenService, accounts: AccountService):
        self.tokens = tokens
        self.accounts = accounts

    async def authenticate(self, credential: Optional[str]) -> Account:
        """Verify the credential and load the current account.

        The account is re-read from storage rather than trusted from the
        token claims, so profile edits show up immediately and a deleted
        account cannot keep acting.

        Raises:
            UnauthenticatedError: If no credential is present
            InvalidTokenError: If the token is invalid or names an unknown account
        """
        if not credential:
            raise UnauthenticatedError("Access denied. Please log in.")

        claims = self.tokens.verify_access_token(credential)

        account = await self.accounts.find_by_id(UUID(claims["id"]))
        if account is None:
            logger.warning("session_account_missing", account_id=claims["id"])
            raise InvalidTokenError("Invalid token. Please log in again.")

        structlog.contextvars.bind_contextvars(account_id=str(account.id))
        return account
