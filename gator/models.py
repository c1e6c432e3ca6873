"""Records stored in and returned by the database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

NIL_UUID = UUID(int=0)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class User:
    id: UUID = NIL_UUID
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    name: str = ""

    def is_empty(self) -> bool:
        """True if every field holds its zero value."""
        return self == User()


@dataclass(frozen=True)
class Feed:
    id: UUID = NIL_UUID
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    name: str = ""
    url: str = ""
    user_id: UUID = NIL_UUID
    last_fetch_at: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: UUID = NIL_UUID
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    user_id: UUID = NIL_UUID
    feed_id: UUID = NIL_UUID


@dataclass(frozen=True)
class Post:
    id: UUID = NIL_UUID
    created_at: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    title: str = ""
    url: str = ""
    description: str | None = None
    published_at: str = ""
    feed_id: UUID = NIL_UUID

    def is_empty(self) -> bool:
        """True if every field holds its zero value."""
        return self == Post()


@dataclass(frozen=True)
class FeedFollowRow:
    """A follow joined with the names of its feed and user."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID
    feed_name: str
    user_name: str = ""


@dataclass(frozen=True)
class FeedSummary:
    name: str
    url: str
    user_id: UUID