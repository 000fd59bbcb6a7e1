"""Archival progress state and its JSON persistence."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

_ZERO_TIME = "0001-01-01T00:00:00Z"
_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


def _format_time(value: datetime | None) -> str:
    if value is None:
        return _ZERO_TIME
    if value.tzinfo is None:
        value = value.astimezone()
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    total = int(offset.total_seconds())
    if total == 0:
        return text + "Z"
    sign = "+" if total > 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _parse_time(text: Any) -> datetime | None:
    if text is None:
        return None
    match = _TIME_RE.match(str(text))
    if match is None:
        raise ValueError(f"invalid timestamp {text!r}")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int(frac[:6].ljust(6, "0")) if frac else 0
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    parsed = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )
    if parsed == datetime(1, 1, 1, tzinfo=timezone.utc):
        return None
    return parsed


@dataclass
class ArchivedPageDetail:
    """Information about one archived page."""

    url: str = ""


@dataclass
class ArchivedTopicDetail:
    """Information about an archived topic and its pages."""

    topic_id: str = ""
    archived_at: datetime | None = None
    archived_pages: dict[int, ArchivedPageDetail] = field(default_factory=dict)


@dataclass
class ArchiveProgressState:
    """The overall state of the archival process."""

    archived_topics: dict[str, ArchivedTopicDetail] = field(default_factory=dict)
    jit_refresh_attempts: dict[str, datetime] = field(default_factory=dict)
    last_processed_sub_forum_id: str = ""
    last_processed_topic_id: str = ""
    last_processed_page_number_in_topic: int = 0
    processed_topic_ids_in_current_sub_forum: list[str] = field(default_factory=list)
    completed_sub_forum_ids: list[str] = field(default_factory=list)

    def save(self, file_path: str) -> None:
        """Write the state as JSON via a temporary file and an atomic rename."""
        payload = json.dumps(_state_to_json(self), indent=2)
        directory = os.path.dirname(file_path)
        if directory not in ("", "."):
            os.makedirs(directory, exist_ok=True)
        temp_path = file_path + ".tmp"
        with open(temp_path, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(temp_path, file_path)
        logger.info("State saved successfully to %s", file_path)

    def is_topic_archived(self, topic_id: str) -> bool:
        return topic_id in self.archived_topics

    def mark_topic_as_archived(self, topic_id: str) -> None:
        now = datetime.now(timezone.utc)
        detail = self.archived_topics.get(topic_id)
        if detail is None:
            self.archived_topics[topic_id] = ArchivedTopicDetail(topic_id=topic_id, archived_at=now)
        else:
            detail.archived_at = now

    def is_page_archived(self, topic_id: str, page_num: int) -> bool:
        detail = self.archived_topics.get(topic_id)
        return detail is not None and page_num in detail.archived_pages

    def mark_page_as_archived(self, topic_id: str, page_num: int, page_url: str) -> None:
        detail = self.archived_topics.setdefault(topic_id, ArchivedTopicDetail(topic_id=topic_id))
        detail.archived_pages[page_num] = ArchivedPageDetail(url=page_url)

    def mark_jit_refresh_attempted(self, sub_forum_id: str, attempt_time: datetime) -> None:
        self.jit_refresh_attempts[sub_forum_id] = attempt_time

    def total_pages_archived(self) -> int:
        return sum(len(detail.archived_pages) for detail in self.archived_topics.values())


def _state_to_json(state: ArchiveProgressState) -> dict[str, Any]:
    return {
        "archived_topics": {
            topic_id: {
                "topic_id": detail.topic_id,
                "archived_at": _format_time(detail.archived_at),
                "archived_pages": {
                    str(page): {"url": page_detail.url}
                    for page, page_detail in detail.archived_pages.items()
                },
            }
            for topic_id, detail in state.archived_topics.items()
        },
        "jit_refresh_attempts": {
            sub_forum_id: _format_time(when)
            for sub_forum_id, when in state.jit_refresh_attempts.items()
        },
        "last_processed_sub_forum_id": state.last_processed_sub_forum_id,
        "last_processed_topic_id": state.last_processed_topic_id,
        "last_processed_page_number_in_topic": state.last_processed_page_number_in_topic,
        "processed_topic_ids_in_current_sub_forum": list(state.processed_topic_ids_in_current_sub_forum),
        "completed_sub_forum_ids": list(state.completed_sub_forum_ids),
    }


def _state_from_json(data: Any) -> ArchiveProgressState:
    if data is None:
        return ArchiveProgressState()
    if not isinstance(data, dict):
        raise ValueError("state JSON must be an object")
    topics: dict[str, ArchivedTopicDetail] = {}
    for topic_id, raw in (data.get("archived_topics") or {}).items():
        raw = raw or {}
        pages = {
            int(page): ArchivedPageDetail(url=(page_raw or {}).get("url", ""))
            for page, page_raw in (raw.get("archived_pages") or {}).items()
        }
        topics[topic_id] = ArchivedTopicDetail(
            topic_id=raw.get("topic_id", ""),
            archived_at=_parse_time(raw.get("archived_at")),
            archived_pages=pages,
        )
    attempts: dict[str, datetime] = {}
    for sub_forum_id, raw_time in (data.get("jit_refresh_attempts") or {}).items():
        parsed = _parse_time(raw_time)
        attempts[sub_forum_id] = parsed if parsed is not None else datetime(1, 1, 1, tzinfo=timezone.utc)
    return ArchiveProgressState(
        archived_topics=topics,
        jit_refresh_attempts=attempts,
        last_processed_sub_forum_id=data.get("last_processed_sub_forum_id") or "",
        last_processed_topic_id=data.get("last_processed_topic_id") or "",
        last_processed_page_number_in_topic=int(data.get("last_processed_page_number_in_topic") or 0),
        processed_topic_ids_in_current_sub_forum=list(data.get("processed_topic_ids_in_current_sub_forum") or []),
        completed_sub_forum_ids=list(data.get("completed_sub_forum_ids") or []),
    )


def load_state(file_path: str) -> ArchiveProgressState:
    """Load state from a JSON file; a missing file yields a fresh, empty state."""
    try:
        with open(file_path, encoding="utf-8") as handle:
            text = handle.read()
    except FileNotFoundError:
        logger.info("State file %s not found. Returning new empty state.", file_path)
        return ArchiveProgressState()
    try:
        state = _state_from_json(json.loads(text))
    except (ValueError, TypeError, AttributeError) as exc:
        raise ValueError(f"failed to unmarshal state from JSON in file {file_path}: {exc}") from exc
    logger.info("State loaded successfully from %s", file_path)
    return state