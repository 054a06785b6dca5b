"""Unit tests for SessionService and credential extraction."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from src.errors import InvalidTokenError, UnauthenticatedError
from src.services.session_service import SessionService, extract_credential
from src.services.token_service import TokenService
from tests.fakes import make_account


class TestExtractCredential:
    def test_cookie_preferred(self):
        assert extract_credential("from-cookie", "Bearer from-header") == "from-cookie"

    def test_bearer_header_fallback(self):
        assert extract_credential(None, "Bearer abc.def") == "abc.def"

    def test_non_bearer_header_ignored(self):
        assert extract_credential(None, "Basic dXNlcjpwdw==") is None

    def test_empty_bearer(self):
        assert extract_credential("", "Bearer   ") is None

    def test_nothing(self):
        assert extract_credential(None, None) is None


@pytest.fixture
def accounts():
    service = MagicMock()
    service.find_by_id = AsyncMock()
    return service


@pytest.fixture
def sessions(settings, accounts):
    return SessionService(TokenService(settings, accounts), accounts)


class TestAuthenticate:
    async def test_missing_credential_is_unauthenticated(self, sessions):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await sessions.authenticate(None)
        assert exc_info.value.status_code == 401

    async def test_bad_token_is_invalid(self, sessions, accounts):
        with pytest.raises(InvalidTokenError) as exc_info:
            await sessions.authenticate("not-a-token")
        assert exc_info.value.status_code == 403
        accounts.find_by_id.assert_not_awaited()

    async def test_unknown_account_is_invalid(self, sessions, accounts):
        account = make_account()
        token = sessions.tokens.create_access_token(account)
        accounts.find_by_id.return_value = None

        with pytest.raises(InvalidTokenError) as exc_info:
            await sessions.authenticate(token)
        assert exc_info.value.status_code == 403

    async def test_returns_fresh_account_not_claims(self, sessions, accounts):
        account = make_account(full_name="Old Name")
        token = sessions.tokens.create_access_token(account)
        renamed = account.model_copy(update={"full_name": "New Name"})
        accounts.find_by_id.return_value = renamed

        principal = await sessions.authenticate(token)

        assert principal.full_name == "New Name"
        accounts.find_by_id.assert_awaited_once_with(account.id)

    async def test_binds_account_id_to_log_context(self, sessions, accounts):
        account = make_account()
        accounts.find_by_id.return_value = account
        structlog.contextvars.clear_contextvars()

        await sessions.authenticate(sessions.tokens.create_access_token(account))

        assert structlog.contextvars.get_contextvars()["account_id"] == str(account.id)
        structlog.contextvars.clear_contextvars()
