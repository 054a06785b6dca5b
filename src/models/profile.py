"""Derived read-only views: channel profile and watch history."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from src.models.account import CamelModel


class ChannelProfile(CamelModel):
    """Public profile of a channel with subscription statistics."""

    full_name: str
    username: str
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool
    avatar_url: str
    cover_image_url: str
    email: str


class VideoOwner(CamelModel):
    """Minimal projection of the account that owns a video."""

    full_name: str
    username: str
    avatar_url: str


class WatchedVideo(CamelModel):
    """A video from the watch history with its owner embedded."""

    id: UUID
    video_file: str
    thumbnail: str
    title: str
    description: str
    duration: float
    views: int
    is_published: bool
    owner: Optional[VideoOwner] = None
    created_at: datetime
    updated_at: datetime
