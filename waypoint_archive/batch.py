"""Performance metric records and real-time batch rate tracking."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

_BYTES_PER_MB = 1024 * 1024


class MetricResourceType(str, Enum):
    """The kind of resource a metric was measured on."""

    TOPIC_PAGE = "TopicPage"
    ASSET = "Asset"
    SUB_FORUM = "SubForum"


class MetricAction(str, Enum):
    """The action performed on a measured resource."""

    ARCHIVED = "Archived"
    DOWNLOADED = "Downloaded"
    SKIPPED = "Skipped"
    PROCESS_TOPIC = "ProcessTopic"
    GET_PAGE_URLS = "GetPageURLs"
    FETCH_PAGE = "FetchPage"
    SAVE_TOPIC_HTML = "SaveTopicHTML"
    JIT_REFRESH = "JITRefresh"
    JIT_FETCH_SUBFORUM = "JITFetchSubforumPage"
    JIT_EXTRACT_TOPICS = "JITExtractTopics"
    JIT_FOUND_NEW_TOPIC = "JITFoundNewTopic"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _divide(numerator: float, denominator: float) -> float:
    """Floating division that yields inf or nan instead of raising on zero."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


@dataclass
class PerformanceMetric:
    """Detailed performance data for a single operation."""

    timestamp: datetime = field(default_factory=_now)
    resource_type: MetricResourceType | str = MetricResourceType.TOPIC_PAGE
    resource_id: str = ""
    action: MetricAction | str = MetricAction.ARCHIVED
    size: int = 0
    duration: timedelta = timedelta(0)
    rate_mbps: float = 0.0
    notes: str = ""


@dataclass
class HistoricalMetrics:
    """Performance data of one completed batch."""

    timestamp_utc: datetime = field(default_factory=_now)
    batch_id: str = ""
    duration_seconds: float = 0.0
    pages_archived: int = 0
    topics_archived: int = 0
    bytes_archived: int = 0
    avg_pages_per_min: float = 0.0
    avg_topics_per_hour: float = 0.0
    avg_mb_per_min: float = 0.0


@dataclass
class BatchMetrics:
    """Real-time counters and rates for the current archival batch."""

    start_time: datetime = field(default_factory=_now)
    pages_archived: int = 0
    topics_archived: int = 0
    bytes_archived: int = 0
    topics_skipped: int = 0
    errors_encountered: int = 0
    current_pages_per_min: float = 0.0
    current_topics_per_hour: float = 0.0
    current_mb_per_min: float = 0.0

    def __post_init__(self) -> None:
        self._last_update_time = self.start_time
        self._last_pages = 0
        self._last_topics = 0
        self._last_bytes = 0

    def update_rates(self) -> None:
        """Recompute current rates from progress since the previous update."""
        now = _now()
        elapsed = (now - self._last_update_time).total_seconds() / 60
        if elapsed <= 0:
            return
        delta_pages = self.pages_archived - self._last_pages
        delta_topics = self.topics_archived - self._last_topics
        delta_bytes = self.bytes_archived - self._last_bytes

        self.current_pages_per_min = delta_pages / elapsed
        self.current_topics_per_hour = delta_topics / (elapsed / 60)
        self.current_mb_per_min = delta_bytes / (elapsed * _BYTES_PER_MB)

        self._last_pages = self.pages_archived
        self._last_topics = self.topics_archived
        self._last_bytes = self.bytes_archived
        self._last_update_time = now

    def get_etc(self, remaining_pages: int, remaining_topics: int) -> timedelta:
        """Estimate time to completion, taking the longer of the page and topic estimates."""
        pages_etc = timedelta(0)
        topics_etc = timedelta(0)
        if self.current_pages_per_min > 0:
            pages_etc = timedelta(minutes=int(remaining_pages / self.current_pages_per_min))
        if self.current_topics_per_hour > 0:
            topics_etc = timedelta(hours=remaining_topics / self.current_topics_per_hour)
        return max(pages_etc, topics_etc)

    def to_historical_metrics(self, batch_id: str) -> HistoricalMetrics:
        """Summarise this batch so far as a historical record."""
        duration = (_now() - self.start_time).total_seconds()
        return HistoricalMetrics(
            timestamp_utc=_now(),
            batch_id=batch_id,
            duration_seconds=duration,
            pages_archived=self.pages_archived,
            topics_archived=self.topics_archived,
            bytes_archived=self.bytes_archived,
            avg_pages_per_min=_divide(self.pages_archived, duration / 60),
            avg_topics_per_hour=_divide(self.topics_archived, duration / 3600),
            avg_mb_per_min=_divide(self.bytes_archived / _BYTES_PER_MB, duration / 60),
        )