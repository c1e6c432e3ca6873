"""The command handlers and the feed aggregation loop."""

from __future__ import annotations

import contextlib
import html
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import uuid4

from .config import Config
from .database import DatabaseError, NotFoundError, Queries
from .feed import FeedError, fetch_feed
from .models import Feed, FeedFollow, Post

DEFAULT_BROWSE_LIMIT = 2


class UsageError(Exception):
    """A command got the wrong number of arguments."""

    def __init__(self, message: str = "Incorrect usage of command!") -> None:
        super().__init__(message)


class CommandError(Exception):
    """A command could not do what was asked."""


@dataclass
class State:
    db: Queries
    cfg: Config
    sleep: Callable[[float], None] = time.sleep


@dataclass
class Command:
    name: str
    arguments: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]


@dataclass
class Commands:
    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        try:
            handler = self.handlers[cmd.name]
        except KeyError:
            raise CommandError("Command doesnt exist!") from None
        handler(state, cmd)


def _now() -> datetime:
    return datetime.now().astimezone()


def _expect(cmd: Command, count: int) -> None:
    if len(cmd.arguments) != count:
        raise UsageError()


# Durations -----------------------------------------------------------------

_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"([0-9]+\.?[0-9]*|\.[0-9]+)([^0-9.]*)")


def _parse_nanoseconds(text: str) -> int:
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise invalid

    limit = 2**63 if negative else 2**63 - 1
    total = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None:
            raise invalid
        number, unit = match.groups()
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        scale = _UNIT_NS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        whole, _, fraction = number.partition(".")
        total += int(whole or "0") * scale
        if fraction:
            total += int(fraction) * scale // 10 ** len(fraction)
        if total > limit:
            raise invalid
        pos = match.end()
    return -total if negative else total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``1.5s``; sub-microsecond parts are dropped."""
    nanoseconds = _parse_nanoseconds(text)
    magnitude = timedelta(microseconds=abs(nanoseconds) // 1000)
    return -magnitude if nanoseconds < 0 else magnitude


# Handlers ------------------------------------------------------------------


def handler_login(state: State, cmd: Command) -> None:
    _expect(cmd, 1)
    name = cmd.arguments[0]
    try:
        state.db.get_user(name)
    except NotFoundError:
        raise CommandError("Username doesn't exists!") from None
    state.cfg.set_user(name)
    print(f"Currently logged in as {name}")


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.reset()
    finally:
        print("Database resetted!")


def handler_users(state: State, cmd: Command) -> None:
    current = state.cfg.username
    for name in state.db.get_users():
        suffix = " (current)" if name == current else ""
        print(f"* {name}{suffix}")


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape the stalest feed now and then once every interval, forever."""
    _expect(cmd, 1)
    text = cmd.arguments[0]
    interval = _parse_nanoseconds(text)
    print(f"Collecting feeds every {text}")
    if interval <= 0:
        raise CommandError("non-positive interval for ticker")
    seconds = interval / 1e9
    while True:
        with contextlib.suppress(DatabaseError, FeedError):
            scrape_feeds(state)
        state.sleep(seconds)


def _follow(state: State, user_id, feed_id) -> None:
    now = _now()
    row = state.db.create_feed_follow(
        FeedFollow(id=uuid4(), created_at=now, updated_at=now, user_id=user_id, feed_id=feed_id)
    )
    print(f"User {row.user_name} has followed {row.feed_name}!")


def handler_add_feed(state: State, cmd: Command) -> None:
    _expect(cmd, 2)
    name, url = cmd.arguments
    user = state.db.get_user(state.cfg.username)
    now = _now()
    feed = state.db.create_feed(
        Feed(id=uuid4(), created_at=now, updated_at=now, name=name, url=url, user_id=user.id)
    )
    print(f"New Feed of {feed.url} created")
    _follow(state, user.id, state.db.get_feed_id(url))


def handler_feeds(state: State, cmd: Command) -> None:
    feeds = state.db.get_feeds()
    if not feeds:
        raise CommandError("No feeds yet!")
    print("Feeds:")
    for feed in feeds:
        creator = state.db.get_username(feed.user_id)
        print(f"- Name: {feed.name}, Url: {feed.url}, Created by: {creator}")


def handler_follow(state: State, cmd: Command) -> None:
    _expect(cmd, 1)
    feed_id = state.db.get_feed_id(cmd.arguments[0])
    user = state.db.get_user(state.cfg.username)
    _follow(state, user.id, feed_id)


def handler_unfollow(state: State, cmd: Command) -> None:
    _expect(cmd, 1)
    url = cmd.arguments[0]
    feed_id = state.db.get_feed_id(url)
    user = state.db.get_user(state.cfg.username)
    state.db.unfollow_feed(user.id, feed_id)
    print(f"User {state.cfg.username} has unfollowed {url}!")


_INTEGER = re.compile(r"[+-]?[0-9]+")


def _browse_limit(text: str) -> int:
    """Read a limit the lenient way: junk means 0, and the result wraps to 32 bits."""
    if not _INTEGER.fullmatch(text):
        return 0
    value = max(-(2**63), min(2**63 - 1, int(text))) & 0xFFFFFFFF
    return value - 2**32 if value >= 2**31 else value


def handler_browse(state: State, cmd: Command) -> None:
    user = state.db.get_user(state.cfg.username)
    if not 1 <= len(cmd.arguments) <= 2:
        raise UsageError()
    feed_id = state.db.get_feed_id(cmd.arguments[0])
    limit = (
        _browse_limit(cmd.arguments[1]) if len(cmd.arguments) == 2 else DEFAULT_BROWSE_LIMIT
    )
    for index, post in enumerate(state.db.get_posts_by_user(user.id, feed_id, limit)):
        print(f"{index}. Title: {post.title}")
        print(f"From URL: {post.url}")
        print(f"Published at: {post.published_at}")
        print(f"{post.description or ''}\n")


def handler_following(state: State, cmd: Command) -> None:
    follows = state.db.get_feed_follows_for_user(state.cfg.username)
    print("You are currently following:")
    for follow in follows:
        print(f"- {follow.feed_name}")


def handler_register(state: State, cmd: Command) -> None:
    _expect(cmd, 1)
    name = cmd.arguments[0]
    try:
        state.db.get_user(name)
    except NotFoundError:
        pass
    else:
        raise CommandError("Username already exists!")
    now = _now()
    from .models import User

    user = state.db.create_user(User(id=uuid4(), created_at=now, updated_at=now, name=name))
    print(f"User {user.name} created")
    state.cfg.set_user(user.name)
    print(f"Currently logged in as {user.name}")


def scrape_feeds(state: State) -> None:
    """Fetch the stalest feed and store its items, updating posts already known."""
    db = state.db
    url = db.get_next_feed_to_fetch()
    db.mark_feed_fetched(url, _now())
    feed = fetch_feed(url)
    for item in feed.items:
        description = html.unescape(item.description)
        try:
            db.check_post_by_url(item.link)
        except NotFoundError:
            now = _now()
            db.create_post(
                Post(
                    id=uuid4(),
                    created_at=now,
                    updated_at=now,
                    title=item.title,
                    url=item.link,
                    description=description,
                    published_at=item.pub_date,
                    feed_id=db.get_feed_id(url),
                )
            )
        else:
            db.update_post(item.link, _now(), item.title, description, item.pub_date)