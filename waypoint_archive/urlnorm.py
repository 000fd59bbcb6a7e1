"""Canonical forms for topic page URLs."""

from __future__ import annotations

from urllib.parse import parse_qs, quote_plus, urlsplit, urlunsplit


def _first(query: dict[str, list[str]], key: str) -> str:
    values = query.get(key)
    return values[0] if values else ""


def normalize_topic_page_url(raw_url: str, expected_forum_id: str) -> str:
    """Return a canonical URL keeping only sorted 'forum', 'start' and 'topic' parameters.

    The forum is always set to ``expected_forum_id``; a 'start' of "0" or an empty
    one is dropped. Fragment and user information are removed.
    """
    try:
        parts = urlsplit(raw_url)
    except ValueError as exc:
        raise ValueError(f"failed to parse rawURL '{raw_url}': {exc}") from exc

    query = parse_qs(parts.query, keep_blank_values=True)
    topic_id = _first(query, "topic") or _first(query, "t")
    if not topic_id:
        raise ValueError(f"URL '{raw_url}' is missing 'topic' or 't' query parameter")

    params = {"topic": topic_id, "forum": expected_forum_id}
    start = _first(query, "start")
    if start and start != "0":
        params["start"] = start

    encoded = "&".join(f"{quote_plus(key)}={quote_plus(params[key])}" for key in sorted(params))
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, host, parts.path, encoded, ""))