"""Account persistence and credential checks (the credential store)."""

import asyncio
from functools import lru_cache
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import bcrypt
import structlog

from src.errors import ConflictError, NotFoundError, ValidationError
from src.models.account import Account, AccountRecord

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes of input
MAX_PASSWORD_BYTES = 72

_PUBLIC_COLUMNS = (
    "id, username, email, full_name, avatar_url, cover_image_url, "
    "watch_history, created_at, updated_at"
)
_RECORD_COLUMNS = _PUBLIC_COLUMNS + ", password_hash, refresh_token"


def normalize_identity(value: str) -> str:
    """Trim and lowercase a username or email."""
    return value.strip().lower()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    """Hash checked for unknown identities so failed logins cost the same."""
    return hash_password(uuid4().hex)


def check_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash (constant time)."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


def validate_password(password: str) -> None:
    if not password or not password.strip():
        raise ValidationError("Password is required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def _row_to_account(row) -> Account:
    return Account(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar_url=row["avatar_url"],
        cover_image_url=row["cover_image_url"] or "",
        watch_history=list(row["watch_history"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_record(row) -> AccountRecord:
    return AccountRecord(
        **_row_to_account(row).model_dump(),
        password_hash=row["password_hash"],
        refresh_token=row["refresh_token"],
    )


class AccountService:
    """Owns the accounts table: identity lookup, uniqueness and credentials."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create_account(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar_url: str,
        cover_image_url: str = "",
    ) -> Account:
        """Create a new account with a hashed password.

        Args:
            username: Unique username (trimmed and lowercased)
            email: Unique email (trimmed and lowercased)
            full_name: Display name (trimmed)
            password: Plain-text password (will be hashed)
            avatar_url: URL of the stored avatar blob
            cover_image_url: URL of the stored cover image, or empty

        Returns:
            Created Account without secrets

        Raises:
            ValidationError: If a required field is blank
            ConflictError: If the username or email is already taken
        """
        fields = [username, email, full_name, password, avatar_url]
        if not all(f is not None and f.strip() for f in fields):
            raise ValidationError("All fields are required")
        validate_password(password)

        username = normalize_identity(username)
        email = normalize_identity(email)
        full_name = full_name.strip()

        if await self.identity_exists(username, email):
            raise ConflictError("User already exists")

        password_hash = await asyncio.to_thread(hash_password, password)
        account_id = uuid4()
        now = datetime.now(timezone.utc)

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO accounts (id, username, email, full_name, password_hash,
                                          avatar_url, cover_image_url, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {_PUBLIC_COLUMNS}
                    """,
                    account_id,
                    username,
                    email,
                    full_name,
                    password_hash,
                    avatar_url,
                    cover_image_url or "",
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            # Lost a race with a concurrent registration
            raise ConflictError("User already exists")

        logger.info("account_created", account_id=str(account_id), username=username)
        return _row_to_account(row)

    async def identity_exists(self, username: str, email: str) -> bool:
        """Check whether the normalized username or email is taken."""
        async with self.pool.acquire() as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM accounts WHERE username = $1 OR email = $2)",
                    normalize_identity(username),
                    normalize_identity(email),
                )
            )

    async def find_by_identity(self, username_or_email: str) -> Optional[AccountRecord]:
        """Get an account by username or email, including credential columns.

        Returns:
            AccountRecord or None if not found
        """
        identity = normalize_identity(username_or_email)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM accounts
                WHERE username = $1 OR email = $1
                """,
                identity,
            )
        return _row_to_record(row) if row else None

    async def find_by_username(self, username: str) -> Optional[Account]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PUBLIC_COLUMNS} FROM accounts WHERE username = $1",
                normalize_identity(username),
            )
        return _row_to_account(row) if row else None

    async def find_by_id(self, account_id: UUID) -> Optional[Account]:
        """Get an account by id, without secrets."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PUBLIC_COLUMNS} FROM accounts WHERE id = $1",
                account_id,
            )
        return _row_to_account(row) if row else None

    async def find_record_by_id(self, account_id: UUID) -> Optional[AccountRecord]:
        """Get an account by id, including credential columns."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_RECORD_COLUMNS} FROM accounts WHERE id = $1",
                account_id,
            )
        return _row_to_record(row) if row else None

    async def verify_password(self, account: AccountRecord, password: str) -> bool:
        """Check a plain-text password against the account's stored hash."""
        if not password:
            return False
        return await asyncio.to_thread(check_password, password, account.password_hash)

    async def verify_credentials(
        self, username_or_email: str, password: str
    ) -> Optional[AccountRecord]:
        """Look up an account and check its password.

        Unknown identities are still checked against a dummy hash, so the
        two failure cases take the same time.

        Returns:
            The matching AccountRecord, or None if the identity is unknown
            or the password is wrong
        """
        record = await self.find_by_identity(username_or_email)
        if record is None:
            await asyncio.to_thread(check_password, password, _dummy_password_hash())
            return None
        if not await self.verify_password(record, password):
            return None
        return record

    async def update_password(self, account_id: UUID, new_password: str) -> None:
        """Re-hash and replace the account's password.

        Raises:
            ValidationError: If the new password is blank or too long
            NotFoundError: If the account does not exist
        """
        validate_password(new_password)
        password_hash = await asyncio.to_thread(hash_password, new_password)

        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE accounts
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                account_id,
            )

        if result != "UPDATE 1":
            raise NotFoundError("User not found")
        logger.info("password_updated", account_id=str(account_id))

    async def update_refresh_token(self, account_id: UUID, refresh_token: Optional[str]) -> bool:
        """Replace the stored refresh token; None clears the slot.

        Returns:
            True if the account exists and was updated
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE accounts
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3
                """,
                refresh_token,
                datetime.now(timezone.utc),
                account_id,
            )
        return result == "UPDATE 1"

    async def swap_refresh_token(
        self, account_id: UUID, expected_token: str, new_token: str
    ) -> bool:
        """Replace the refresh token only if the stored one equals expected_token.

        The comparison and the write are a single statement, so two callers
        presenting the same token cannot both succeed.

        Returns:
            True if the swap happened; False for an unknown account or a
            stored token that differs
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE accounts
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3 AND refresh_token = $4
                """,
                new_token,
                datetime.now(timezone.utc),
                account_id,
                expected_token,
            )
        return result == "UPDATE 1"

    async def update_profile(
        self,
        account_id: UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Account:
        """Update the provided profile fields.

        Raises:
            ValidationError: If no field is provided or a provided field is blank
            ConflictError: If the new email belongs to another account
            NotFoundError: If the account does not exist
        """
        set_clauses = []
        params = []
        param_idx = 1

        if full_name is not None:
            if not full_name.strip():
                raise ValidationError("Full name cannot be blank")
            set_clauses.append(f"full_name = ${param_idx}")
            params.append(full_name.strip())
            param_idx += 1

        if email is not None:
            if not email.strip():
                raise ValidationError("Email cannot be blank")
            set_clauses.append(f"email = ${param_idx}")
            params.append(normalize_identity(email))
            param_idx += 1

        if not set_clauses:
            raise ValidationError("At least one of fullName or email is required")

        fields_updated = [c.split(" = ")[0] for c in set_clauses]

        try:
            account = await self._update_columns(account_id, set_clauses, params)
        except asyncpg.UniqueViolationError:
            raise ConflictError("Email is already in use")

        logger.info("profile_updated", account_id=str(account_id), fields_updated=fields_updated)
        return account

    async def update_avatar(self, account_id: UUID, avatar_url: str) -> Account:
        if not avatar_url or not avatar_url.strip():
            raise ValidationError("Avatar is required")
        account = await self._update_columns(account_id, ["avatar_url = $1"], [avatar_url])
        logger.info("avatar_updated", account_id=str(account_id))
        return account

    async def update_cover_image(self, account_id: UUID, cover_image_url: str) -> Account:
        if not cover_image_url or not cover_image_url.strip():
            raise ValidationError("Cover image is required")
        account = await self._update_columns(
            account_id, ["cover_image_url = $1"], [cover_image_url]
        )
        logger.info("cover_image_updated", account_id=str(account_id))
        return account

    async def _update_columns(
        self, account_id: UUID, set_clauses: list[str], params: list
    ) -> Account:
        """Apply SET clauses (numbered from $1) plus updated_at to one account."""
        param_idx = len(params) + 1
        set_clauses = set_clauses + [f"updated_at = ${param_idx}"]
        params = params + [datetime.now(timezone.utc), account_id]

        query = f"""
            UPDATE accounts
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx + 1}
            RETURNING {_PUBLIC_COLUMNS}
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            raise NotFoundError("User not found")
        return _row_to_account(row)
