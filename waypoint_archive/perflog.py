"""Saving and loading historical performance metrics as CSV."""

from __future__ import annotations

import csv
import logging
import os
import re
import threading
from datetime import datetime, timedelta, timezone

from waypoint_archive.batch import (
    HistoricalMetrics,
    MetricAction,
    MetricResourceType,
    PerformanceMetric,
)

logger = logging.getLogger(__name__)

DEFAULT_PERFORMANCE_LOG_PATH = "logs/performance_log.csv"

_DETAIL_HEADER = ["Timestamp", "ResourceType", "ResourceID", "Action", "Size", "DurationMS", "RateMBps", "Notes"]
_HISTORY_HEADER = [
    "TimestampUTC", "BatchID", "DurationSeconds", "PagesArchived",
    "TopicsArchived", "BytesArchived", "AvgPagesPerMin",
    "AvgTopicsPerHour", "AvgMBPerMin",
]
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)

_global_logger: PerformanceLogger | None = None
_global_lock = threading.Lock()


def _format_time(value: datetime, fractional: bool) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if fractional and value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    total = int((value.utcoffset() or timedelta(0)).total_seconds())
    if total == 0:
        return text + "Z"
    sign = "+" if total > 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"cannot parse {text!r} as an RFC 3339 timestamp")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int(frac[:6].ljust(6, "0")) if frac else 0
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz)


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _to_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def _enum_or_text(enum_cls, text: str):
    try:
        return enum_cls(text)
    except ValueError:
        return text


def _milliseconds(duration: timedelta) -> int:
    micros = duration // timedelta(microseconds=1)
    millis = abs(micros) // 1000
    return -millis if micros < 0 else millis


def _ensure_parent_dir(path: str) -> None:
    directory = os.path.dirname(path)
    if directory not in ("", "."):
        os.makedirs(directory, exist_ok=True)


class PerformanceLogger:
    """Buffers detailed metrics and persists batch metrics to a CSV log."""

    def __init__(self, log_file_path: str) -> None:
        self.log_file_path = log_file_path
        self._buffer: list[PerformanceMetric] = []
        self._lock = threading.Lock()

    def append_metric(self, metric: PerformanceMetric) -> None:
        """Add one detailed metric to the in-memory buffer."""
        with self._lock:
            self._buffer.append(metric)
            logger.debug("Appended metric for %s. Buffer size: %d", metric.resource_id, len(self._buffer))

    def save_metrics(self) -> None:
        """Append all buffered detailed metrics to the CSV log and clear the buffer."""
        with self._lock:
            if not self._buffer:
                logger.info("No metrics in buffer to save.")
                return
            try:
                _ensure_parent_dir(self.log_file_path)
            except OSError as exc:
                raise OSError(f"failed to create directory for performance log {self.log_file_path}: {exc}") from exc

            file_exists = os.path.exists(self.log_file_path)
            try:
                handle = open(self.log_file_path, "a", newline="", encoding="utf-8")
            except OSError as exc:
                raise OSError(f"failed to open performance log file {self.log_file_path}: {exc}") from exc
            with handle:
                writer = csv.writer(handle, lineterminator="\n")
                if not file_exists:
                    writer.writerow(_DETAIL_HEADER)
                for metric in self._buffer:
                    writer.writerow([
                        _format_time(metric.timestamp, fractional=True),
                        getattr(metric.resource_type, "value", metric.resource_type),
                        metric.resource_id,
                        getattr(metric.action, "value", metric.action),
                        str(metric.size),
                        str(_milliseconds(metric.duration)),
                        f"{metric.rate_mbps:.2f}",
                        metric.notes,
                    ])
            logger.info("Successfully saved %d metrics to %s.", len(self._buffer), self.log_file_path)
            self._buffer.clear()

    def load_metrics(self) -> list[PerformanceMetric]:
        """Read all detailed metrics from the CSV log; a missing log yields an empty list."""
        with self._lock:
            try:
                handle = open(self.log_file_path, newline="", encoding="utf-8")
            except FileNotFoundError:
                logger.info("Performance log file %s does not exist. No metrics loaded.", self.log_file_path)
                return []
            with handle:
                try:
                    records = list(csv.reader(handle, strict=True))
                except csv.Error as exc:
                    raise ValueError(
                        f"failed to read CSV records from performance log {self.log_file_path}: {exc}"
                    ) from exc

        if records:
            expected = len(records[0])
            for line, record in enumerate(records, start=1):
                if len(record) != expected:
                    raise ValueError(
                        f"failed to read CSV records from performance log {self.log_file_path}: "
                        f"record on line {line}: wrong number of fields"
                    )

        metrics: list[PerformanceMetric] = []
        for line, record in enumerate(records[1:], start=2):
            if len(record) != 8:
                logger.warning(
                    "Skipping malformed record at line %d in %s: expected 8 fields, got %d",
                    line, self.log_file_path, len(record),
                )
                continue
            try:
                timestamp = _parse_time(record[0])
            except ValueError:
                timestamp = _ZERO_TIME
            metrics.append(PerformanceMetric(
                timestamp=timestamp,
                resource_type=_enum_or_text(MetricResourceType, record[1]),
                resource_id=record[2],
                action=_enum_or_text(MetricAction, record[3]),
                size=_to_int(record[4]),
                duration=timedelta(milliseconds=_to_int(record[5])),
                rate_mbps=_to_float(record[6]),
                notes=record[7],
            ))
        return metrics

    def append_metrics(self, metrics: HistoricalMetrics) -> None:
        """Append one batch's summary row to the log, writing a header to an empty file."""
        try:
            _ensure_parent_dir(self.log_file_path)
        except OSError as exc:
            raise OSError(f"failed to create log directory: {exc}") from exc
        try:
            handle = open(self.log_file_path, "a", newline="", encoding="utf-8")
        except OSError as exc:
            raise OSError(f"failed to open log file: {exc}") from exc
        with handle:
            writer = csv.writer(handle, lineterminator="\n")
            if os.fstat(handle.fileno()).st_size == 0:
                writer.writerow(_HISTORY_HEADER)
            writer.writerow([
                _format_time(metrics.timestamp_utc, fractional=False),
                metrics.batch_id,
                f"{metrics.duration_seconds:.2f}",
                str(metrics.pages_archived),
                str(metrics.topics_archived),
                str(metrics.bytes_archived),
                f"{metrics.avg_pages_per_min:.2f}",
                f"{metrics.avg_topics_per_hour:.2f}",
                f"{metrics.avg_mb_per_min:.2f}",
            ])

    def load_historical_metrics(self) -> list[HistoricalMetrics]:
        """Read all batch summaries; the log file is created if missing."""
        try:
            if not os.path.exists(self.log_file_path):
                open(self.log_file_path, "a", encoding="utf-8").close()
            handle = open(self.log_file_path, newline="", encoding="utf-8")
        except OSError as exc:
            raise OSError(f"failed to open log file: {exc}") from exc

        metrics: list[HistoricalMetrics] = []
        with handle:
            reader = csv.reader(handle, strict=True)
            try:
                header = next(reader, None)
            except csv.Error as exc:
                raise ValueError(f"failed to read header: {exc}") from exc
            if header is None:
                raise ValueError("failed to read header: EOF")

            while True:
                try:
                    record = next(reader)
                except (StopIteration, csv.Error):
                    break
                if len(record) != len(header) or len(record) < 9:
                    break
                try:
                    timestamp = _parse_time(record[0])
                except ValueError as exc:
                    raise ValueError(f"failed to parse timestamp: {exc}") from exc
                metrics.append(HistoricalMetrics(
                    timestamp_utc=timestamp,
                    batch_id=record[1],
                    duration_seconds=_to_float(record[2]),
                    pages_archived=_to_int(record[3]),
                    topics_archived=_to_int(record[4]),
                    bytes_archived=_to_int(record[5]),
                    avg_pages_per_min=_to_float(record[6]),
                    avg_topics_per_hour=_to_float(record[7]),
                    avg_mb_per_min=_to_float(record[8]),
                ))
        return metrics

    def calculate_average_rates(self) -> tuple[float, float, float]:
        """Average pages/min, topics/hour and MB/min over all logged batches."""
        metrics = self.load_historical_metrics()
        if not metrics:
            return 0.0, 0.0, 0.0
        count = len(metrics)
        return (
            sum(m.avg_pages_per_min for m in metrics) / count,
            sum(m.avg_topics_per_hour for m in metrics) / count,
            sum(m.avg_mb_per_min for m in metrics) / count,
        )


def init_performance_logger(log_file_path: str) -> None:
    """Initialise the shared performance logger; later calls have no effect."""
    global _global_logger
    with _global_lock:
        if _global_logger is not None:
            return
        _global_logger = PerformanceLogger(log_file_path)
        try:
            _ensure_parent_dir(log_file_path)
        except OSError as exc:
            logger.error(
                "Failed to create directory for performance log %s: %s. Metrics might not be saved.",
                os.path.dirname(log_file_path), exc,
            )
        logger.info("Performance logger initialized. Log file: %s", log_file_path)


def append_detail_metric(metric: PerformanceMetric) -> None:
    """Buffer a detailed metric in the shared logger, if it has been initialised."""
    if _global_logger is None:
        logger.error("Global performance logger not initialized. Cannot append metric.")
        return
    _global_logger.append_metric(metric)


def save_detail_metrics_log() -> None:
    """Save the shared logger's buffered metrics."""
    if _global_logger is None:
        logger.error("Global performance logger not initialized. Cannot save metrics.")
        raise RuntimeError("global performance logger not initialized")
    _global_logger.save_metrics()