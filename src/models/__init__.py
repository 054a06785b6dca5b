"""Models package exports."""

from src.models.account import Account, AccountRecord, TokenPair
from src.models.auth import (
    LoginRequest,
    RefreshRequest,
    ResetPasswordRequest,
    UpdateAccountRequest,
)
from src.models.profile import ChannelProfile, VideoOwner, WatchedVideo
from src.models.response import ApiResponse, ErrorResponse

__all__ = [
    "Account",
    "AccountRecord",
    "ApiResponse",
    "ChannelProfile",
    "ErrorResponse",
    "LoginRequest",
    "RefreshRequest",
    "ResetPasswordRequest",
    "TokenPair",
    "UpdateAccountRequest",
    "VideoOwner",
    "WatchedVideo",
]
