"""Account models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Account(CamelModel):
    """A registered account, without secrets."""

    id: UUID
    username: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str = ""
    watch_history: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AccountRecord(Account):
    """A stored account including its credential columns.

    The secret fields are excluded from serialization so a record can
    never be dumped into a response by accident.
    """

    password_hash: str = Field(exclude=True, repr=False)
    refresh_token: Optional[str] = Field(default=None, exclude=True, repr=False)

    def to_public(self) -> Account:
        """Drop the credential columns."""
        return Account.model_validate(self.model_dump())


class TokenPair(CamelModel):
    """Access and refresh tokens issued together."""

    access_token: str
    refresh_token: str
