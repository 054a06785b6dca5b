"""Auth and account request models.

Blank checks live in the services so every entry point gets the same
messages; these models only shape the JSON bodies.
"""

from typing import Optional

from src.models.account import CamelModel


class LoginRequest(CamelModel):
    """Login credentials.

    Attributes:
        username: Username to log in with (either this or email)
        email: Email to log in with (either this or username)
        password: Plain-text password
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: str = ""


class RefreshRequest(CamelModel):
    """Refresh token presented in the body when no cookie is sent."""

    refresh_token: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    """Password change for the authenticated account.

    Attributes:
        old_password: Current password, checked before the change
        new_password: Replacement password
    """

    old_password: str = ""
    new_password: str = ""


class UpdateAccountRequest(CamelModel):
    """Partial profile update; only provided fields change."""

    full_name: Optional[str] = None
    email: Optional[str] = None
