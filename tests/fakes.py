"""Test doubles shared across test modules."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from src.errors import ConflictError, NotFoundError, ValidationError
from src.models.account import Account, AccountRecord
from src.services.account_service import (
    AccountService,
    validate_password,
    hash_password,
    normalize_identity,
)


def make_account(
    account_id: Optional[UUID] = None,
    username: str = "testuser",
    email: str = "test@example.com",
    full_name: str = "Test User",
    avatar_url: str = "https://cdn.test/avatar.png",
    watch_history: Optional[list[UUID]] = None,
) -> Account:
    """Create an Account model for test assertions."""
    now = datetime.now(timezone.utc)
    return Account(
        id=account_id or uuid4(),
        username=username,
        email=email,
        full_name=full_name,
        avatar_url=avatar_url,
        cover_image_url="",
        watch_history=watch_history or [],
        created_at=now,
        updated_at=now,
    )


class InMemoryAccountService(AccountService):
    """AccountService backed by a dict, for flows that span several calls.

    Hashing, normalization and validation behave like the real service;
    only the SQL is replaced.
    """

    def __init__(self):
        super().__init__(pool=None)
        self.records: dict[UUID, AccountRecord] = {}

    def _touch(self, record: AccountRecord, **changes) -> AccountRecord:
        updated = record.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        self.records[record.id] = updated
        return updated

    async def identity_exists(self, username: str, email: str) -> bool:
        username, email = normalize_identity(username), normalize_identity(email)
        return any(r.username == username or r.email == email for r in self.records.values())

    async def create_account(
        self, username, email, full_name, password, avatar_url, cover_image_url=""
    ) -> Account:
        if not all(f and f.strip() for f in (username, email, full_name, password, avatar_url)):
            raise ValidationError("All fields are required")
        validate_password(password)
        if await self.identity_exists(username, email):
            raise ConflictError("User already exists")

        now = datetime.now(timezone.utc)
        record = AccountRecord(
            id=uuid4(),
            username=normalize_identity(username),
            email=normalize_identity(email),
            full_name=full_name.strip(),
            avatar_url=avatar_url,
            cover_image_url=cover_image_url,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        self.records[record.id] = record
        return record.to_public()

    async def find_by_identity(self, username_or_email: str) -> Optional[AccountRecord]:
        identity = normalize_identity(username_or_email)
        for record in self.records.values():
            if identity in (record.username, record.email):
                return record
        return None

    async def find_by_username(self, username: str) -> Optional[Account]:
        record = await self.find_by_identity(username)
        return record.to_public() if record else None

    async def find_by_id(self, account_id: UUID) -> Optional[Account]:
        record = self.records.get(account_id)
        return record.to_public() if record else None

    async def find_record_by_id(self, account_id: UUID) -> Optional[AccountRecord]:
        return self.records.get(account_id)

    async def update_password(self, account_id: UUID, new_password: str) -> None:
        validate_password(new_password)
        record = self.records.get(account_id)
        if record is None:
            raise NotFoundError("User not found")
        self._touch(record, password_hash=hash_password(new_password))

    async def update_refresh_token(self, account_id: UUID, refresh_token: Optional[str]) -> bool:
        record = self.records.get(account_id)
        if record is None:
            return False
        self._touch(record, refresh_token=refresh_token)
        return True

    async def swap_refresh_token(self, account_id: UUID, expected_token: str, new_token: str) -> bool:
        record = self.records.get(account_id)
        if record is None or record.refresh_token != expected_token:
            return False
        self._touch(record, refresh_token=new_token)
        return True

    async def _update(self, account_id: UUID, **changes) -> Account:
        record = self.records.get(account_id)
        if record is None:
            raise NotFoundError("User not found")
        return self._touch(record, **changes).to_public()

    async def update_profile(self, account_id, full_name=None, email=None) -> Account:
        changes = {}
        if full_name is not None:
            changes["full_name"] = full_name.strip()
        if email is not None:
            changes["email"] = normalize_identity(email)
        if not changes:
            raise ValidationError("At least one of fullName or email is required")
        return await self._update(account_id, **changes)

    async def update_avatar(self, account_id: UUID, avatar_url: str) -> Account:
        return await self._update(account_id, avatar_url=avatar_url)

    async def update_cover_image(self, account_id: UUID, cover_image_url: str) -> Account:
        return await self._update(account_id, cover_image_url=cover_image_url)


class FakeMediaStorage:
    """Records stored blobs and returns predictable URLs.

    Filenames listed in ``rejected`` fail the way an invalid upload does.
    """

    def __init__(self):
        self.stored: list[tuple[str, bytes, Optional[str]]] = []
        self.rejected: set[str] = set()

    async def store(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        if filename in self.rejected:
            raise ValidationError("Only PNG, JPEG, GIF or WebP images are allowed")
        self.stored.append((filename, content, content_type))
        return f"https://cdn.test/{len(self.stored)}-{filename}"
