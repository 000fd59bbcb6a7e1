from datetime import datetime, timedelta, timezone

import pytest

from waypoint_archive import perflog
from waypoint_archive.batch import (
    HistoricalMetrics,
    MetricAction,
    MetricResourceType,
    PerformanceMetric,
)
from waypoint_archive.perflog import (
    PerformanceLogger,
    append_detail_metric,
    init_performance_logger,
    save_detail_metrics_log,
)


@pytest.fixture
def fresh_global(monkeypatch):
    monkeypatch.setattr(perflog, "_global_logger", None)


def _historical(batch_id="test_batch", pages_rate=30.0, topics_rate=30.0, mb_rate=8.14):
    return HistoricalMetrics(
        timestamp_utc=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        batch_id=batch_id,
        duration_seconds=3600,
        pages_archived=1800,
        topics_archived=30,
        bytes_archived=512000000,
        avg_pages_per_min=pages_rate,
        avg_topics_per_hour=topics_rate,
        avg_mb_per_min=mb_rate,
    )


def test_append_and_load_historical_metrics(tmp_path):
    log = PerformanceLogger(str(tmp_path / "test_performance.csv"))
    original = HistoricalMetrics(
        timestamp_utc=datetime.now(timezone.utc),
        batch_id="test_batch",
        duration_seconds=3600,
        pages_archived=1800,
        topics_archived=30,
        bytes_archived=512000000,
        avg_pages_per_min=30.0,
        avg_topics_per_hour=30.0,
        avg_mb_per_min=8.14,
    )
    log.append_metrics(original)
    loaded = log.load_historical_metrics()
    assert len(loaded) == 1
    item = loaded[0]
    assert item.batch_id == original.batch_id
    assert item.pages_archived == original.pages_archived
    assert item.topics_archived == original.topics_archived
    assert item.bytes_archived == original.bytes_archived


def test_append_metrics_file_format(tmp_path):
    path = tmp_path / "logs" / "perf.csv"
    log = PerformanceLogger(str(path))
    log.append_metrics(_historical("b1"))
    log.append_metrics(_historical("b2"))
    lines = path.read_text().splitlines()
    assert lines[0] == (
        "TimestampUTC,BatchID,DurationSeconds,PagesArchived,TopicsArchived,"
        "BytesArchived,AvgPagesPerMin,AvgTopicsPerHour,AvgMBPerMin"
    )
    assert lines[1] == "2024-01-02T03:04:05Z,b1,3600.00,1800,30,512000000,30.00,30.00,8.14"
    assert len(lines) == 3


def test_loaded_timestamp_round_trips(tmp_path):
    log = PerformanceLogger(str(tmp_path / "perf.csv"))
    log.append_metrics(_historical())
    loaded = log.load_historical_metrics()
    assert loaded[0].timestamp_utc == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert loaded[0].avg_mb_per_min == pytest.approx(8.14)


def test_calculate_average_rates(tmp_path):
    log = PerformanceLogger(str(tmp_path / "perf.csv"))
    log.append_metrics(_historical("a", 10.0, 2.0, 1.0))
    log.append_metrics(_historical("b", 20.0, 4.0, 3.0))
    pages, topics, mb = log.calculate_average_rates()
    assert pages == pytest.approx(15.0)
    assert topics == pytest.approx(3.0)
    assert mb == pytest.approx(2.0)


def test_calculate_average_rates_header_only(tmp_path):
    path = tmp_path / "perf.csv"
    path.write_text("TimestampUTC,BatchID\n")
    log = PerformanceLogger(str(path))
    assert log.calculate_average_rates() == (0.0, 0.0, 0.0)


def test_load_historical_metrics_missing_file_creates_and_raises(tmp_path):
    path = tmp_path / "missing.csv"
    log = PerformanceLogger(str(path))
    with pytest.raises(ValueError, match="failed to read header"):
        log.load_historical_metrics()
    assert path.exists()


def test_load_historical_metrics_bad_timestamp(tmp_path):
    path = tmp_path / "perf.csv"
    path.write_text(
        "TimestampUTC,BatchID,DurationSeconds,PagesArchived,TopicsArchived,"
        "BytesArchived,AvgPagesPerMin,AvgTopicsPerHour,AvgMBPerMin\n"
        "yesterday,b,1,1,1,1,1,1,1\n"
    )
    with pytest.raises(ValueError, match="failed to parse timestamp"):
        PerformanceLogger(str(path)).load_historical_metrics()


def test_save_and_load_detail_metrics(tmp_path):
    path = tmp_path / "nested" / "detail.csv"
    log = PerformanceLogger(str(path))
    stamp = datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)
    log.append_metric(PerformanceMetric(
        timestamp=stamp,
        resource_type=MetricResourceType.TOPIC_PAGE,
        resource_id="t1_p1",
        action=MetricAction.ARCHIVED,
        size=2048,
        duration=timedelta(milliseconds=1500),
        rate_mbps=1.234,
        notes="ok",
    ))
    log.save_metrics()
    lines = path.read_text().splitlines()
    assert lines[0] == "Timestamp,ResourceType,ResourceID,Action,Size,DurationMS,RateMBps,Notes"
    assert lines[1] == "2024-05-06T07:08:09.123Z,TopicPage,t1_p1,Archived,2048,1500,1.23,ok"

    loaded = log.load_metrics()
    assert len(loaded) == 1
    metric = loaded[0]
    assert metric.timestamp == stamp
    assert metric.resource_type is MetricResourceType.TOPIC_PAGE
    assert metric.action is MetricAction.ARCHIVED
    assert metric.size == 2048
    assert metric.duration == timedelta(milliseconds=1500)
    assert metric.rate_mbps == pytest.approx(1.23)
    assert metric.notes == "ok"


def test_save_metrics_appends_without_second_header(tmp_path):
    path = tmp_path / "detail.csv"
    log = PerformanceLogger(str(path))
    log.append_metric(PerformanceMetric(resource_id="a"))
    log.save_metrics()
    log.append_metric(PerformanceMetric(resource_id="b"))
    log.save_metrics()
    loaded = log.load_metrics()
    assert [m.resource_id for m in loaded] == ["a", "b"]
    assert path.read_text().count("Timestamp,ResourceType") == 1


def test_save_metrics_empty_buffer_writes_nothing(tmp_path):
    path = tmp_path / "detail.csv"
    PerformanceLogger(str(path)).save_metrics()
    assert not path.exists()


def test_load_metrics_missing_file(tmp_path):
    assert PerformanceLogger(str(tmp_path / "none.csv")).load_metrics() == []


def test_load_metrics_inconsistent_field_count(tmp_path):
    path = tmp_path / "detail.csv"
    path.write_text("a,b,c\n1,2\n")
    with pytest.raises(ValueError, match="wrong number of fields"):
        PerformanceLogger(str(path)).load_metrics()


def test_load_metrics_unknown_resource_type_kept_as_text(tmp_path):
    path = tmp_path / "detail.csv"
    path.write_text(
        "Timestamp,ResourceType,ResourceID,Action,Size,DurationMS,RateMBps,Notes\n"
        "bad,Widget,x,Poked,oops,10,0.50,\n"
    )
    loaded = PerformanceLogger(str(path)).load_metrics()
    assert loaded[0].resource_type == "Widget"
    assert loaded[0].action == "Poked"
    assert loaded[0].size == 0
    assert loaded[0].timestamp == datetime(1, 1, 1, tzinfo=timezone.utc)


def test_global_logger_save_and_once(tmp_path, fresh_global):
    first = tmp_path / "first" / "perf.csv"
    second = tmp_path / "second" / "perf.csv"
    init_performance_logger(str(first))
    init_performance_logger(str(second))
    append_detail_metric(PerformanceMetric(resource_id="g1"))
    save_detail_metrics_log()
    assert first.exists()
    assert not second.exists()
    assert "g1" in first.read_text()


def test_save_detail_metrics_log_uninitialised(fresh_global):
    with pytest.raises(RuntimeError):
        save_detail_metrics_log()


def test_append_detail_metric_uninitialised_is_dropped(tmp_path, fresh_global):
    append_detail_metric(PerformanceMetric(resource_id="dropped"))
    path = tmp_path / "perf.csv"
    init_performance_logger(str(path))
    append_detail_metric(PerformanceMetric(resource_id="kept"))
    save_detail_metrics_log()
    text = path.read_text()
    assert "kept" in text
    assert "dropped" not in text