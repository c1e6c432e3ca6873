"""Downloading and parsing RSS feeds."""

from __future__ import annotations

import html
import http.client
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from urllib.parse import urlsplit

USER_AGENT = "gator"

_CHANNEL_FIELDS = ("title", "link", "description")
_ITEM_FIELDS = {
    "title": "title",
    "link": "link",
    "description": "description",
    "pubDate": "pub_date",
}


class FeedError(Exception):
    """A feed could not be downloaded or parsed."""


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rpartition("}")[2]


def _text(elem: ET.Element) -> str:
    """Character data directly inside ``elem``, without that of its children."""
    return (elem.text or "") + "".join(child.tail or "" for child in elem)


def _parse_item(elem: ET.Element) -> RSSItem:
    values: dict[str, str] = {}
    for child in elem:
        name = _ITEM_FIELDS.get(_local_name(child.tag))
        if name is not None:
            values[name] = _text(child)
    return RSSItem(**values)


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; channel title and description are HTML-unescaped."""
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, ValueError) as exc:
        raise FeedError(f"invalid feed: {exc}") from exc

    channel: dict[str, str] = {}
    items: list[RSSItem] = []
    for elem in root:
        if _local_name(elem.tag) != "channel":
            continue
        for child in elem:
            name = _local_name(child.tag)
            if name == "item":
                items.append(_parse_item(child))
            elif name in _CHANNEL_FIELDS:
                channel[name] = _text(child)

    return RSSFeed(
        title=html.unescape(channel.get("title", "")),
        link=channel.get("link", ""),
        description=html.unescape(channel.get("description", "")),
        items=items,
    )


def _download(request: urllib.request.Request) -> bytes:
    try:
        with urllib.request.urlopen(request) as response:
            return response.read()
    except urllib.error.HTTPError as exc:
        # An error status still carries a body, and that body is what gets parsed.
        with exc:
            return exc.read()


def fetch_feed(feed_url: str) -> RSSFeed:
    """Download the feed at ``feed_url`` and parse it."""
    if not feed_url:
        raise FeedError("No FeedURL!")
    scheme = urlsplit(feed_url).scheme
    if scheme not in ("http", "https"):
        raise FeedError(f'unsupported protocol scheme "{scheme}"')

    request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    try:
        data = _download(request)
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
        raise FeedError(f"could not fetch {feed_url}: {exc}") from exc
    return parse_feed(data)