"""SQLite storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

from .models import Feed, FeedFollow, FeedFollowRow, FeedSummary, Post, User

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetch_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT NOT NULL,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_POST_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
    "posts.description, posts.published_at, posts.feed_id"
)


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that returns one row found none."""


def _ts(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _dt(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(UUID(row[0]), _dt(row[1]), _dt(row[2]), row[3])


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        UUID(row[0]), _dt(row[1]), _dt(row[2]), row[3], row[4], UUID(row[5]), _dt(row[6])
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        UUID(row[0]),
        _dt(row[1]),
        _dt(row[2]),
        row[3],
        row[4],
        row[5],
        row[6],
        UUID(row[7]),
    )


def _follow_row(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        UUID(row[0]), _dt(row[1]), _dt(row[2]), UUID(row[3]), UUID(row[4]), row[5], row[6]
    )


class Queries:
    """Typed queries over an SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.isolation_level = None
        self._conn.execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._errors():
            return self._conn.execute(sql, params).fetchall()

    def _one(self, sql: str, params: tuple = (), what: str = "row") -> sqlite3.Row:
        with self._errors():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError(f"no {what} found")
        return row

    def _exec(self, sql: str, params: tuple = ()) -> None:
        with self._errors():
            self._conn.execute(sql, params)

    def init_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with self._errors():
            self._conn.executescript(SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run the enclosed queries atomically."""
        if self._conn.in_transaction:
            raise DatabaseError("a transaction is already in progress")
        self._exec("BEGIN")
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._exec("COMMIT")

    def close(self) -> None:
        self._conn.close()

    def check_post_by_url(self, url: str) -> Post:
        row = self._one(
            f"SELECT {_POST_COLUMNS} FROM posts WHERE url = ?", (url,), "post"
        )
        return _post(row)

    def create_feed(self, feed: Feed) -> Feed:
        self._exec(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(feed.id),
                _ts(feed.created_at),
                _ts(feed.updated_at),
                feed.name,
                feed.url,
                str(feed.user_id),
            ),
        )
        row = self._one(
            "SELECT id, created_at, updated_at, name, url, user_id, last_fetch_at "
            "FROM feeds WHERE id = ?",
            (str(feed.id),),
            "feed",
        )
        return _feed(row)

    def create_feed_follow(self, follow: FeedFollow) -> FeedFollowRow:
        self._exec(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                str(follow.id),
                _ts(follow.created_at),
                _ts(follow.updated_at),
                str(follow.user_id),
                str(follow.feed_id),
            ),
        )
        row = self._one(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "feeds.name, users.name "
            "FROM feed_follows ff "
            "INNER JOIN users ON users.id = ff.user_id "
            "INNER JOIN feeds ON feeds.id = ff.feed_id "
            "WHERE ff.id = ?",
            (str(follow.id),),
            "feed follow",
        )
        return _follow_row(row)

    def create_post(self, post: Post) -> Post:
        self._exec(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(post.id),
                _ts(post.created_at),
                _ts(post.updated_at),
                post.title,
                post.url,
                post.description,
                post.published_at,
                str(post.feed_id),
            ),
        )
        row = self._one(
            f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(post.id),), "post"
        )
        return _post(row)

    def create_user(self, user: User) -> User:
        self._exec(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(user.id), _ts(user.created_at), _ts(user.updated_at), user.name),
        )
        row = self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE id = ?",
            (str(user.id),),
            "user",
        )
        return _user(row)

    def get_feed_follows_for_user(self, name: str) -> list[FeedFollowRow]:
        rows = self._all(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "feeds.name, users.name "
            "FROM feed_follows ff "
            "INNER JOIN users ON users.id = ff.user_id "
            "INNER JOIN feeds ON feeds.id = ff.feed_id "
            "WHERE users.name = ? ORDER BY ff.rowid",
            (name,),
        )
        return [_follow_row(row) for row in rows]

    def get_feed_id(self, url: str) -> UUID:
        row = self._one("SELECT id FROM feeds WHERE url = ?", (url,), "feed")
        return UUID(row[0])

    def get_feeds(self) -> list[FeedSummary]:
        rows = self._all("SELECT name, url, user_id FROM feeds ORDER BY rowid")
        return [FeedSummary(name, url, UUID(uid)) for name, url, uid in rows]

    def get_next_feed_to_fetch(self) -> str:
        """URL of the feed fetched longest ago; never-fetched feeds come first."""
        row = self._one(
            "SELECT url FROM feeds ORDER BY last_fetch_at ASC NULLS FIRST, rowid LIMIT 1",
            (),
            "feed",
        )
        return row[0]

    def get_posts_by_user(self, user_id: UUID, feed_id: UUID, limit: int) -> list[Post]:
        """Newest posts of a feed that the user follows."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._all(
            f"SELECT {_POST_COLUMNS} FROM posts "
            "INNER JOIN feed_follows ON posts.feed_id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = ? AND posts.feed_id = ? "
            "ORDER BY posts.published_at DESC LIMIT ?",
            (str(user_id), str(feed_id), limit),
        )
        return [_post(row) for row in rows]

    def get_user(self, name: str) -> User:
        row = self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE name = ?",
            (name,),
            "user",
        )
        return _user(row)

    def get_username(self, user_id: UUID) -> str:
        row = self._one("SELECT name FROM users WHERE id = ?", (str(user_id),), "user")
        return row[0]

    def get_users(self) -> list[str]:
        return [row[0] for row in self._all("SELECT name FROM users ORDER BY rowid")]

    def mark_feed_fetched(self, url: str, fetched_at: datetime) -> None:
        stamp = _ts(fetched_at)
        self._exec(
            "UPDATE feeds SET last_fetch_at = ?, updated_at = ? WHERE url = ?",
            (stamp, stamp, url),
        )

    def reset(self) -> None:
        """Delete every user, and with them everything they own."""
        self._exec("DELETE FROM users")

    def unfollow_feed(self, user_id: UUID, feed_id: UUID) -> None:
        self._exec(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    def update_post(
        self,
        url: str,
        updated_at: datetime,
        title: str,
        description: str | None,
        published_at: str,
    ) -> None:
        self._exec(
            "UPDATE posts SET updated_at = ?, title = ?, description = ?, "
            "published_at = ? WHERE url = ?",
            (_ts(updated_at), title, description, published_at, url),
        )


def connect(url: str) -> Queries:
    """Open an SQLite database given as a path or ``sqlite://`` URL."""
    if url.startswith("sqlite://"):
        target = url[len("sqlite://"):]
        if target.startswith("/"):
            target = target[1:]
        if not target:
            target = ":memory:"
    elif "://" in url:
        raise DatabaseError(f"unsupported database url: {url}")
    else:
        target = url or ":memory:"
    try:
        conn = sqlite3.connect(target, isolation_level=None)
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    queries = Queries(conn)
    queries.init_schema()
    return queries