"""Services package exports."""

from src.services.account_service import AccountService
from src.services.logging_service import configure_logging, get_logger
from src.services.media_service import LocalMediaStorage, MediaStorage
from src.services.profile_service import ProfileService
from src.services.session_service import SessionService
from src.services.token_service import TokenService

__all__ = [
    "AccountService",
    "LocalMediaStorage",
    "MediaStorage",
    "ProfileService",
    "SessionService",
    "TokenService",
    "configure_logging",
    "get_logger",
]
