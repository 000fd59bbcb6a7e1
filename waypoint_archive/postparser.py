"""Extracting individual fields from the HTML block of a single forum post."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Union

from bs4 import BeautifulSoup
from bs4.element import Tag

AUTHOR_SELECTOR = "td.normal.bgc1.c.w13.vat > strong:first-child"
TIMESTAMP_SELECTOR = "td.normal.bgc1.vat.w90 > div.vt1.liketext > div.like_left > span.b"
POST_ID_SELECTOR = "div.vt1.liketext > div.like_right > span[id^=p_]"
POST_ORDER_SELECTOR = "div.vt1.liketext > div.like_left > span.b > a[name]"

TIMESTAMP_OUTPUT_FORMAT = "YYYY-MM-DD HH:MM:SS"

_POSTED_PREFIX = "Posted: "
_POST_ID_PREFIX = "p_"
_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Accepts "Jan 23, 2003 02:45 pm" as well as a single-digit hour "Jan 23, 2003 2:45 pm".
_TIMESTAMP_RE = re.compile(
    r"([A-Za-z]{3}) +([0-9]{1,2}), +([0-9]{4}) +([0-9]{1,2}):([0-9]{2}) +(am|pm)"
)
_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

PostHTML = Union[str, bytes, Tag]


class ExtractionError(ValueError):
    """Raised when a field cannot be found in or parsed from a post block."""


def _root(post_html: PostHTML) -> Tag:
    if isinstance(post_html, Tag):
        return post_html
    if isinstance(post_html, bytes):
        post_html = post_html.decode("utf-8", errors="replace")
    return BeautifulSoup(post_html, "html.parser")


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"parsing {text!r}: invalid syntax")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"parsing {text!r}: value out of range")
    return value


def _parse_timestamp(raw: str) -> datetime:
    match = _TIMESTAMP_RE.fullmatch(raw)
    if match is None:
        raise ValueError(f"cannot parse {raw!r} as \"Jan _2, 2006 3:04 pm\"")
    month_name, day, year, hour, minute, meridiem = match.groups()
    month = _MONTHS.get(month_name.lower())
    if month is None:
        raise ValueError(f"cannot parse {month_name!r} as a month")
    hour_value = int(hour)
    if hour_value > 12:
        raise ValueError(f"parsing {raw!r}: hour out of range")
    minute_value = int(minute)
    if minute_value > 59:
        raise ValueError(f"parsing {raw!r}: minute out of range")
    if meridiem == "pm" and hour_value < 12:
        hour_value += 12
    elif meridiem == "am" and hour_value == 12:
        hour_value = 0
    try:
        return datetime(int(year), month, int(day), hour_value, minute_value)
    except ValueError as exc:
        raise ValueError(f"parsing {raw!r}: {exc}") from exc


def extract_author_username(post_html: PostHTML) -> str:
    """Return the author's username of a post block."""
    element = _root(post_html).select_one(AUTHOR_SELECTOR)
    if element is None:
        raise ExtractionError(f"author username element not found with selector: {AUTHOR_SELECTOR}")
    username = element.get_text()
    if not username:
        raise ExtractionError(
            f"found username element with selector '{AUTHOR_SELECTOR}' but it was empty"
        )
    return username


def extract_timestamp(post_html: PostHTML) -> str:
    """Return the post timestamp formatted as "YYYY-MM-DD HH:MM:SS"."""
    element = _root(post_html).select_one(TIMESTAMP_SELECTOR)
    if element is None:
        raise ExtractionError(f"timestamp element not found with selector: {TIMESTAMP_SELECTOR}")
    raw = element.get_text()
    if not raw:
        raise ExtractionError(
            f"found timestamp element with selector '{TIMESTAMP_SELECTOR}' but it was empty"
        )
    if raw.startswith(_POSTED_PREFIX):
        raw = raw[len(_POSTED_PREFIX):]
    raw = raw.strip()
    if not raw:
        raise ExtractionError(f"timestamp element not found with selector: {TIMESTAMP_SELECTOR}")

    try:
        parsed = _parse_timestamp(raw)
    except ValueError as exc:
        raise ExtractionError(f"failed to parse timestamp '{raw}' with known layouts: {exc}") from exc
    return (
        f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d} "
        f"{parsed.hour:02d}:{parsed.minute:02d}:{parsed.second:02d}"
    )


def extract_post_id(post_html: PostHTML) -> str:
    """Return the post ID, e.g. "175716" from an element with id "p_175716"."""
    element = _root(post_html).select_one(POST_ID_SELECTOR)
    if element is None:
        raise ExtractionError(
            f"post ID element not found with selector: {POST_ID_SELECTOR}, or id attribute was malformed"
        )
    element_id = element.get("id")
    if element_id is None:
        raise ExtractionError(
            f"found post ID element with selector '{POST_ID_SELECTOR}' but it has no id attribute"
        )
    if not element_id.startswith(_POST_ID_PREFIX):
        raise ExtractionError(f"found post ID '{element_id}' but it does not start with 'p_'")
    post_id = element_id[len(_POST_ID_PREFIX):]
    if not post_id:
        raise ExtractionError(
            f"extracted post ID from attribute '{element_id}' was empty after removing 'p_' prefix"
        )
    return post_id


def extract_post_order_on_page(post_html: PostHTML) -> int:
    """Return the 0-based order of the post on its page."""
    element = _root(post_html).select_one(POST_ORDER_SELECTOR)
    if element is None:
        raise ExtractionError(
            f"post order anchor element not found with selector: {POST_ORDER_SELECTOR}, "
            "or name attribute was missing/empty"
        )
    name = element.get("name")
    if name is None:
        raise ExtractionError(
            f"found post order anchor element with selector '{POST_ORDER_SELECTOR}' "
            "but it has no name attribute"
        )
    if not name:
        raise ExtractionError(
            f"extracted post order from name attribute was empty for selector '{POST_ORDER_SELECTOR}'"
        )
    try:
        return _parse_int(name)
    except ValueError as exc:
        raise ExtractionError(f"failed to convert post order '{name}' to integer: {exc}") from exc