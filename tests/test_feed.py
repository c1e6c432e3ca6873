import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from gator.feed import FeedError, RSSFeed, RSSItem, fetch_feed, parse_feed

SAMPLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts about things</description>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <description>The first one</description>
      <pubDate>Mon, 01 Jan 2024 00:00:00 +0000</pubDate>
    </item>
    <item>
      <title>Second post</title>
      <link>https://example.com/second</link>
      <description>The second one</description>
      <pubDate>Tue, 02 Jan 2024 00:00:00 +0000</pubDate>
    </item>
  </channel>
</rss>
"""


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.agents.append(self.headers.get("User-Agent"))
        body = self.server.body
        self.send_response(self.server.status)
        self.send_header("Content-Type", "application/rss+xml")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    httpd = HTTPServer(("127.0.0.1", 0), _Handler)
    httpd.body = SAMPLE
    httpd.status = 200
    httpd.agents = []
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()
    thread.join()


def _url(httpd):
    host, port = httpd.server_address
    return f"http://{host}:{port}/feed.xml"


def test_parse_feed_reads_channel_and_items():
    feed = parse_feed(SAMPLE)
    assert feed.title == "Example Blog"
    assert feed.link == "https://example.com/"
    assert feed.description == "Posts about things"
    assert feed.items == [
        RSSItem(
            "First post",
            "https://example.com/first",
            "The first one",
            "Mon, 01 Jan 2024 00:00:00 +0000",
        ),
        RSSItem(
            "Second post",
            "https://example.com/second",
            "The second one",
            "Tue, 02 Jan 2024 00:00:00 +0000",
        ),
    ]


def test_parse_feed_accepts_text():
    assert parse_feed(SAMPLE.decode("utf-8")) == parse_feed(SAMPLE)


def test_channel_title_and_description_are_unescaped():
    doc = (
        "<rss><channel><title>Tom &amp;amp; Jerry</title>"
        "<description>&amp;lt;b&amp;gt;</description></channel></rss>"
    )
    feed = parse_feed(doc)
    assert feed.title == "Tom & Jerry"
    assert feed.description == "<b>"


def test_root_element_name_does_not_matter():
    feed = parse_feed("<feed><channel><title>T</title><item/></channel></feed>")
    assert feed.title == "T"
    assert feed.items == [RSSItem()]


def test_text_of_nested_elements_is_left_out():
    doc = "<rss><channel><item><description>a<b>bold</b>c</description></item></channel></rss>"
    assert parse_feed(doc).items[0].description == "ac"


def test_feed_without_channel_is_empty():
    assert parse_feed("<rss/>") == RSSFeed()


@pytest.mark.parametrize("data", [b"", b"<rss><channel>", b"not xml at all"])
def test_invalid_documents_raise(data):
    with pytest.raises(FeedError):
        parse_feed(data)


def test_fetch_feed_requires_url():
    with pytest.raises(FeedError, match="No FeedURL!"):
        fetch_feed("")


def test_fetch_feed_rejects_other_schemes():
    with pytest.raises(FeedError, match="unsupported protocol scheme"):
        fetch_feed("ftp://example.com/feed.xml")


def test_fetch_feed_downloads_and_parses(server):
    feed = fetch_feed(_url(server))
    assert feed == parse_feed(SAMPLE)
    assert server.agents == ["gator"]


def test_fetch_feed_parses_body_of_error_status(server):
    server.status = 404
    feed = fetch_feed(_url(server))
    assert [item.title for item in feed.items] == ["First post", "Second post"]


def test_fetch_feed_with_invalid_body_raises(server):
    server.body = b"<html>"
    with pytest.raises(FeedError):
        fetch_feed(_url(server))


def test_fetch_feed_connection_refused():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    with pytest.raises(FeedError):
        fetch_feed(f"http://127.0.0.1:{port}/feed.xml")