"""Fetching forum pages and extracting pagination links and topics from them."""

from __future__ import annotations

import codecs
import logging
import re
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol, Union
from urllib.parse import parse_qs, quote_plus, urljoin, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup

from waypoint_archive.models import Topic

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "WaypointArchiveAgent/1.0 (htmlutil)"
REQUEST_TIMEOUT_SECONDS = 30

PAGINATION_SELECTOR = (
    'div.pagination a[href], .pagmenu a[href], .page-nav a[href], '
    '.nav-links a[href], td[class*="midtext"] a[href]'
)
TOPIC_ROW_SELECTOR = "table.normal tr"
TOPIC_LINK_SELECTOR = (
    "td.normal.bgc2 > a.b[href*='viewtopic.php'], "
    "a.topic-title[href*='viewtopic.php'], "
    "a[href*='viewtopic.php'][title*='Topic:']"
)

Delay = Union[float, int, timedelta]

_CONTENT_TYPE_CHARSET_RE = re.compile(r"""charset\s*=\s*["']?\s*([\w\-:.]+)""", re.IGNORECASE)
_META_CHARSET_RE = re.compile(
    r"""<meta[^>]+charset\s*=\s*["']?\s*([\w\-:.]+)""", re.IGNORECASE
)
_WINDOWS_1252_ALIASES = frozenset(
    {"iso-8859-1", "iso8859-1", "latin1", "latin-1", "l1", "ascii", "us-ascii"}
)


class FetchError(Exception):
    """Raised when a page cannot be fetched."""


class HTMLFetcher(Protocol):
    def fetch_html(self, page_url: str) -> str: ...


class PaginationParser(Protocol):
    def parse_pagination_links(self, html_content: str, base_page_url: str) -> list[str]: ...


class TopicExtractor(Protocol):
    def extract_topics(self, html_content: str, page_url: str, sub_forum_id: str) -> list[Topic]: ...


@dataclass
class HTMLUtil:
    """Default fetcher, pagination parser and topic extractor in one object."""

    user_agent: str = ""
    politeness_delay: Delay = 0.0
    forum_base_url: str = ""

    def fetch_html(self, page_url: str) -> str:
        return fetch_html(page_url, self.politeness_delay, self.user_agent)

    def parse_pagination_links(self, html_content: str, base_page_url: str) -> list[str]:
        return parse_pagination_links(html_content, base_page_url)

    def extract_topics(self, html_content: str, page_url: str, sub_forum_id: str) -> list[Topic]:
        return extract_topics(html_content, page_url, sub_forum_id)


def _delay_seconds(delay: Delay) -> float:
    if isinstance(delay, timedelta):
        return delay.total_seconds()
    return float(delay)


def _lookup_codec(label: str) -> str | None:
    label = label.strip().lower()
    if label in _WINDOWS_1252_ALIASES:
        return "cp1252"
    try:
        return codecs.lookup(label).name
    except LookupError:
        return None


def _detect_encoding(body: bytes, content_type: str) -> str:
    if body.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    if body.startswith(codecs.BOM_UTF16_LE) or body.startswith(codecs.BOM_UTF16_BE):
        return "utf-16"

    match = _CONTENT_TYPE_CHARSET_RE.search(content_type or "")
    if match:
        codec = _lookup_codec(match.group(1))
        if codec:
            return codec

    head = body[:1024]
    match = _META_CHARSET_RE.search(head.decode("latin-1"))
    if match:
        codec = _lookup_codec(match.group(1))
        if codec:
            if codec.startswith("utf-16"):
                return "utf-8"
            return codec

    if any(byte >= 0x80 for byte in head):
        try:
            head.decode("utf-8")
            return "utf-8"
        except UnicodeDecodeError as exc:
            if exc.start >= len(head) - 3 and exc.reason == "unexpected end of data":
                return "utf-8"
        return "cp1252"
    return "cp1252" if not _is_utf8(body) else "utf-8"


def _is_utf8(body: bytes) -> bool:
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def fetch_html(page_url: str, delay: Delay = 0.0, user_agent: str = "") -> str:
    """Fetch a page after a politeness delay and return it decoded to text."""
    seconds = _delay_seconds(delay)
    if seconds > 0:
        logger.debug("Applying politeness delay of %ss for URL: %s", seconds, page_url)
        time.sleep(seconds)

    logger.debug("Fetching URL: %s", page_url)
    headers = {"User-Agent": user_agent or DEFAULT_USER_AGENT}
    try:
        response = requests.get(page_url, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise FetchError(f"failed to get URL {page_url}: {exc}") from exc

    with response:
        if response.status_code != 200:
            raise FetchError(
                f"request to {page_url} failed with status {response.status_code} {response.reason or ''}".rstrip()
            )
        content_type = response.headers.get("Content-Type", "")
        try:
            body = response.content
        except requests.RequestException as exc:
            raise FetchError(f"failed to read response body from {page_url}: {exc}") from exc

    encoding = _detect_encoding(body, content_type)
    text = body.decode(encoding, errors="replace")
    logger.debug("Successfully fetched and decoded URL: %s (Size: %d bytes)", page_url, len(text.encode("utf-8")))
    return text


def _first(query: dict[str, list[str]], key: str) -> str:
    values = query.get(key)
    return values[0] if values else ""


def _encode_query(query: dict[str, list[str]]) -> str:
    return "&".join(
        f"{quote_plus(key)}={quote_plus(value)}"
        for key in sorted(query)
        for value in query[key]
    )


def _parse_url(url: str, what: str):
    try:
        return urlsplit(url)
    except ValueError as exc:
        raise ValueError(f"failed to parse {what} {url}: {exc}") from exc


def parse_pagination_links(page_html: str, base_page_url: str) -> list[str]:
    """Return unique absolute pagination links in document order.

    Links to a topic that lack a 'forum' parameter get the forum of the base page.
    """
    soup = BeautifulSoup(page_html, "html.parser")
    base_parts = _parse_url(base_page_url, "page URL")
    base_forum = _first(parse_qs(base_parts.query, keep_blank_values=True), "forum")

    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.select(PAGINATION_SELECTOR):
        href = anchor.get("href")
        if not href or href == "#" or href.lower().startswith("javascript:"):
            continue
        try:
            absolute = urljoin(base_page_url, href)
            parts = urlsplit(absolute)
        except ValueError as exc:
            logger.warning("Error parsing pagination link '%s' on page %s: %s", href, base_page_url, exc)
            continue

        query = parse_qs(parts.query, keep_blank_values=True)
        if _first(query, "topic") and not _first(query, "forum") and base_forum:
            query["forum"] = [base_forum]
            absolute = urlunsplit(parts._replace(query=_encode_query(query)))
            logger.debug("Normalized URL to %s", absolute)

        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)

    if links:
        logger.debug("Found %d unique pagination links on %s.", len(links), base_page_url)
    else:
        logger.debug("No pagination links found on %s using common selectors.", base_page_url)
    return links


def _link_title(link) -> str:
    title = link.get_text().strip()
    if title:
        return title
    title_attr = link.get("title")
    if title_attr is not None:
        if title_attr.startswith("Topic:"):
            title_attr = title_attr[len("Topic:"):]
        return title_attr.strip()
    return ""


def extract_topics(html_content: str, page_url: str, sub_forum_id: str) -> list[Topic]:
    """Extract topic links from a sub-forum listing page.

    Topics without a 't' or 'topic' query parameter are skipped.
    """
    soup = BeautifulSoup(html_content, "html.parser")
    _parse_url(page_url, "page URL")

    topics: list[Topic] = []
    for row in soup.select(TOPIC_ROW_SELECTOR):
        for link in row.select(TOPIC_LINK_SELECTOR):
            href = link.get("href")
            if href is None:
                continue
            title = _link_title(link)
            if not title:
                continue
            try:
                absolute = urljoin(page_url, href)
                query = parse_qs(urlsplit(absolute).query, keep_blank_values=True)
            except ValueError as exc:
                logger.warning("Error parsing topic URL '%s' on page %s: %s. Skipping topic.", href, page_url, exc)
                continue

            topic_id = _first(query, "t") or _first(query, "topic")
            if not topic_id:
                logger.warning(
                    "Topic ID (t or topic param) not found for URL '%s' with title '%s' on page %s. Skipping topic.",
                    absolute, title, page_url,
                )
                continue
            topics.append(Topic(id=topic_id, sub_forum_id=sub_forum_id, title=title, url=absolute))

    if not topics:
        logger.debug(
            "No topics extracted from page %s using selectors. This might be an empty page, "
            "selector mismatch, or all topics lacked valid IDs.",
            page_url,
        )
    return topics