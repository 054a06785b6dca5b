"""Signed access/refresh tokens and refresh-token rotation."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import jwt
import structlog

from src.config import Settings
from src.errors import InvalidTokenError, UnauthorizedError
from src.models.account import Account, TokenPair
from src.services.account_service import AccountService

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenService:
    """Issues, verifies and rotates session tokens.

    Access tokens carry the account's identity claims and are verified
    without storage. Refresh tokens carry only the account id and are
    additionally matched against the account's single stored slot.
    """

    def __init__(self, settings: Settings, accounts: AccountService):
        self.settings = settings
        self.accounts = accounts

    def create_access_token(self, account: Account, now: Optional[datetime] = None) -> str:
        """Create a signed access token for an account.

        Args:
            account: Account whose claims are embedded
            now: Issue time (defaults to current UTC time)

        Returns:
            Encoded JWT string
        """
        now = now or datetime.now(timezone.utc)
        payload = {
            "id": str(account.id),
            "username": account.username,
            "email": account.email,
            "fullName": account.full_name,
            "type": ACCESS_TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.access_token_expire_minutes),
        }
        return jwt.encode(payload, self.settings.access_token_secret, algorithm=JWT_ALGORITHM)

    def create_refresh_token(self, account: Account, now: Optional[datetime] = None) -> str:
        """Create a signed refresh token carrying only the account id."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "id": str(account.id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + timedelta(days=self.settings.refresh_token_expire_days),
        }
        return jwt.encode(payload, self.settings.refresh_token_secret, algorithm=JWT_ALGORITHM)

    def _sign_pair(self, account: Account) -> TokenPair:
        now = datetime.now(timezone.utc)
        return TokenPair(
            access_token=self.create_access_token(account, now),
            refresh_token=self.create_refresh_token(account, now),
        )

    async def issue_pair(self, account: Account) -> TokenPair:
        """Issue a token pair and store the refresh token as the active slot.

        Any previously stored refresh token stops being accepted.

        Raises:
            UnauthorizedError: If the account no longer exists
        """
        pair = self._sign_pair(account)
        stored = await self.accounts.update_refresh_token(account.id, pair.refresh_token)
        if not stored:
            raise UnauthorizedError("User not found")

        logger.info("token_pair_issued", account_id=str(account.id))
        return pair

    def _decode(self, token: str, secret: str, expected_type: str) -> dict:
        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "iat", "id"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError(f"{expected_type.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug("token_rejected", kind=expected_type, reason=str(e))
            raise InvalidTokenError()

        if payload.get("type") != expected_type:
            raise InvalidTokenError()
        try:
            UUID(str(payload["id"]))
        except ValueError:
            raise InvalidTokenError()
        return payload

    def verify_access_token(self, token: str) -> dict:
        """Decode and validate an access token.

        Returns:
            Decoded claims (id, username, email, fullName, type, jti, iat, exp)

        Raises:
            InvalidTokenError: If the token is malformed, badly signed, expired,
                or not an access token
        """
        return self._decode(token, self.settings.access_token_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> dict:
        """Decode and validate a refresh token.

        Raises:
            InvalidTokenError: If the token is malformed, badly signed, expired,
                or not a refresh token
        """
        return self._decode(token, self.settings.refresh_token_secret, REFRESH_TOKEN_TYPE)

    async def rotate(self, presented_refresh_token: str) -> TokenPair:
        """Exchange the active refresh token for a new pair.

        The new pair is signed first, then swapped in with a conditional
        update that only matches when the presented token is still the
        stored one.

        Raises:
            UnauthorizedError: If the token fails verification, the account is
                gone, or the token has been superseded
        """
        try:
            claims = self.verify_refresh_token(presented_refresh_token)
        except InvalidTokenError as e:
            raise UnauthorizedError(e.message) from e

        account = await self.accounts.find_by_id(UUID(claims["id"]))
        if account is None:
            raise UnauthorizedError("Invalid refresh token")

        pair = self._sign_pair(account)
        swapped = await self.accounts.swap_refresh_token(
            account.id, presented_refresh_token, pair.refresh_token
        )
        if not swapped:
            logger.warning("refresh_token_reuse_detected", account_id=str(account.id))
            raise UnauthorizedError("Refresh token is expired or used")

        logger.info("refresh_token_rotated", account_id=str(account.id))
        return pair

    async def revoke(self, account_id: UUID) -> None:
        """Clear the account's refresh slot so no issued refresh token is accepted."""
        await self.accounts.update_refresh_token(account_id, None)
        logger.info("refresh_token_revoked", account_id=str(account_id))
