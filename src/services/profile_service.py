"""Derived profile views joined from accounts, subscriptions and videos."""

from uuid import UUID

import asyncpg
import structlog

from src.errors import NotFoundError, ValidationError
from src.models.account import Account
from src.models.profile import ChannelProfile, VideoOwner, WatchedVideo
from src.services.account_service import normalize_identity

logger = structlog.get_logger(__name__)


class ProfileService:
    """Read-only aggregation over the account store and its collaborators.

    Nothing here is cached; every view is computed from current rows.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_channel_profile(self, username: str, viewer_id: UUID) -> ChannelProfile:
        """Build the channel profile for a username as seen by a viewer.

        Args:
            username: Channel's username (normalized before lookup)
            viewer_id: Id of the requesting account, used for is_subscribed

        Returns:
            ChannelProfile with subscription counts

        Raises:
            ValidationError: If the username is blank
            NotFoundError: If no account has that username
        """
        if not username or not username.strip():
            raise ValidationError("Username is missing")

        async with self.pool.acquire() as conn:
            channel = await conn.fetchrow(
                """
                SELECT id, username, email, full_name, avatar_url, cover_image_url
                FROM accounts
                WHERE username = $1
                """,
                normalize_identity(username),
            )

            if channel is None:
                raise NotFoundError("Channel does not exist")

            subscribers_count = await conn.fetchval(
                "SELECT COUNT(*) FROM subscriptions WHERE channel_id = $1",
                channel["id"],
            )
            subscribed_to_count = await conn.fetchval(
                "SELECT COUNT(*) FROM subscriptions WHERE subscriber_id = $1",
                channel["id"],
            )
            is_subscribed = await conn.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM subscriptions
                    WHERE channel_id = $1 AND subscriber_id = $2
                )
                """,
                channel["id"],
                viewer_id,
            )

        logger.debug(
            "channel_profile_computed",
            channel_id=str(channel["id"]),
            subscribers_count=subscribers_count,
        )

        return ChannelProfile(
            full_name=channel["full_name"],
            username=channel["username"],
            subscribers_count=subscribers_count or 0,
            channels_subscribed_to_count=subscribed_to_count or 0,
            is_subscribed=bool(is_subscribed),
            avatar_url=channel["avatar_url"],
            cover_image_url=channel["cover_image_url"] or "",
            email=channel["email"],
        )

    async def get_watch_history(self, account: Account) -> list[WatchedVideo]:
        """Resolve the account's watch history to videos with their owners.

        Order follows the stored history. Ids that no longer resolve to a
        video are skipped.
        """
        if not account.watch_history:
            return []

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT v.id, v.video_file, v.thumbnail, v.title, v.description,
                       v.duration, v.views, v.is_published, v.created_at, v.updated_at,
                       o.full_name AS owner_full_name,
                       o.username AS owner_username,
                       o.avatar_url AS owner_avatar_url
                FROM unnest($1::uuid[]) WITH ORDINALITY AS h(video_id, position)
                JOIN videos v ON v.id = h.video_id
                LEFT JOIN accounts o ON o.id = v.owner_id
                ORDER BY h.position
                """,
                list(account.watch_history),
            )

        return [_row_to_watched_video(row) for row in rows]


def _row_to_watched_video(row) -> WatchedVideo:
    owner = None
    if row["owner_username"] is not None:
        owner = VideoOwner(
            full_name=row["owner_full_name"],
            username=row["owner_username"],
            avatar_url=row["owner_avatar_url"],
        )
    return WatchedVideo(
        id=row["id"],
        video_file=row["video_file"],
        thumbnail=row["thumbnail"],
        title=row["title"],
        description=row["description"] or "",
        duration=float(row["duration"] or 0),
        views=row["views"] or 0,
        is_published=row["is_published"],
        owner=owner,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
