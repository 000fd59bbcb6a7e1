"""Reading topic indexes and sub-forum lists from CSV and JSON files."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import fields
from typing import Any, Iterator

from waypoint_archive.models import SubForum, SubForumNameAndURL, Topic

logger = logging.getLogger(__name__)

TOPIC_INDEX_COLUMNS = 10
SUB_FORUM_LIST_COLUMNS = 3

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class IndexReadError(Exception):
    """Raised when an index file or sub-forum list cannot be read or parsed."""


class _CSVError(ValueError):
    pass


def _parse_error(line: int, column: int, reason: str) -> _CSVError:
    return _CSVError(f"parse error on line {line}, column {column}: {reason}")


def _csv_records(text: str) -> Iterator[list[str]]:
    """Yield CSV records with strict quoting and a fixed field count.

    Empty lines are skipped, quoted fields may span lines, a quote inside an
    unquoted field is an error, and every record must have as many fields as
    the first one.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    lines = [line[:-1] if line.endswith("\r") else line for line in lines]

    expected: int | None = None
    index = 0
    while index < len(lines):
        line = lines[index]
        index += 1
        line_no = index
        if line == "":
            continue
        record_line = line_no
        record: list[str] = []
        pos = 0
        while True:
            if line.startswith('"', pos):
                pos += 1
                parts: list[str] = []
                while True:
                    quote = line.find('"', pos)
                    if quote == -1:
                        parts.append(line[pos:])
                        if index >= len(lines):
                            raise _parse_error(line_no, len(line) + 1, 'extraneous or missing " in quoted-field')
                        parts.append("\n")
                        line = lines[index]
                        index += 1
                        line_no = index
                        pos = 0
                        continue
                    parts.append(line[pos:quote])
                    after = quote + 1
                    if line.startswith('"', after):
                        parts.append('"')
                        pos = after + 1
                        continue
                    if after == len(line):
                        record.append("".join(parts))
                        finished = True
                        break
                    if line[after] == ",":
                        record.append("".join(parts))
                        pos = after + 1
                        finished = False
                        break
                    raise _parse_error(line_no, after + 1, 'extraneous or missing " in quoted-field')
                if finished:
                    break
            else:
                comma = line.find(",", pos)
                end = len(line) if comma == -1 else comma
                value = line[pos:end]
                bare = value.find('"')
                if bare != -1:
                    raise _parse_error(line_no, pos + bare + 1, 'bare " in non-quoted-field')
                record.append(value)
                if comma == -1:
                    break
                pos = comma + 1

        if expected is None:
            expected = len(record)
        elif len(record) != expected:
            raise _CSVError(f"record on line {record_line}: wrong number of fields")
        yield record


def _read_text(file_path: str) -> str:
    try:
        with open(file_path, encoding="utf-8", errors="replace", newline="") as handle:
            return handle.read()
    except OSError as exc:
        logger.error("failed to open file %s: %s", file_path, exc)
        raise IndexReadError(f"failed to open file {file_path}: {exc}") from exc


def _data_rows(file_path: str) -> Iterator[tuple[int, list[str]]]:
    """Yield (line number, record) for each row after the header."""
    records = _csv_records(_read_text(file_path))
    try:
        header = next(records, None)
    except _CSVError as exc:
        logger.error("failed to read header from %s: %s", file_path, exc)
        raise IndexReadError(f"failed to read header from {file_path}: {exc}") from exc
    if header is None:
        logger.info("empty file (or only header) %s", file_path)
        return

    line_number = 1
    while True:
        line_number += 1
        try:
            record = next(records)
        except StopIteration:
            return
        except _CSVError as exc:
            logger.error("error reading record at line %d from %s: %s", line_number, file_path, exc)
            raise IndexReadError(
                f"error reading record at line {line_number} from {file_path}: {exc}"
            ) from exc
        yield line_number, record


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"parsing {text!r}: invalid syntax")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"parsing {text!r}: value out of range")
    return value


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"parsing {text!r}: invalid syntax")


def read_topic_index_csv(file_path: str, sub_forum_id: str) -> list[Topic]:
    """Read a topic index CSV; rows with too few columns or bad values are skipped.

    Expected columns: TopicID, Title, URL, AuthorUsername, Replies, Views,
    LastPostUsername, LastPostTimestamp, IsSticky, IsLocked.
    """
    topics: list[Topic] = []
    for line_number, record in _data_rows(file_path):
        if len(record) < TOPIC_INDEX_COLUMNS:
            logger.warning(
                "skipping invalid record at line %d in %s - expected at least %d columns, got %d",
                line_number, file_path, TOPIC_INDEX_COLUMNS, len(record),
            )
            continue
        try:
            replies = _parse_int(record[4])
            views = _parse_int(record[5])
            is_sticky = _parse_bool(record[8])
            is_locked = _parse_bool(record[9])
        except ValueError as exc:
            logger.warning("skipping record at line %d in %s - %s", line_number, file_path, exc)
            continue
        topics.append(Topic(
            id=record[0],
            sub_forum_id=sub_forum_id,
            title=record[1],
            url=record[2],
            author_username=record[3],
            replies=replies,
            views=views,
            last_post_username=record[6],
            last_post_timestamp_raw=record[7],
            is_sticky=is_sticky,
            is_locked=is_locked,
        ))
    logger.info("successfully read %d topics from %s", len(topics), file_path)
    return topics


def read_sub_forum_list_csv(file_path: str) -> dict[str, SubForumNameAndURL]:
    """Read a sub-forum list CSV (ID, name, URL) into a map keyed by sub-forum ID."""
    sub_forums: dict[str, SubForumNameAndURL] = {}
    for line_number, record in _data_rows(file_path):
        if len(record) < SUB_FORUM_LIST_COLUMNS:
            logger.warning(
                "invalid record at line %d in %s - expected at least %d columns, got %d. Skipping record.",
                line_number, file_path, SUB_FORUM_LIST_COLUMNS, len(record),
            )
            continue
        sub_forums[record[0]] = SubForumNameAndURL(name=record[1], url=record[2])
    logger.info("successfully read %d subforum entries from %s", len(sub_forums), file_path)
    return sub_forums


def _json_array(raw: Any) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"cannot unmarshal {type(raw).__name__} into an array")
    return raw


def _json_object(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"cannot unmarshal {type(raw).__name__} into an object")
    return {key: value for key, value in raw.items() if value is not None}


def _check_field_types(record: Any, skip: frozenset[str] = frozenset()) -> None:
    for spec in fields(record):
        if spec.name in skip:
            continue
        value = getattr(record, spec.name)
        expected = type(spec.default)
        if expected is bool:
            valid = isinstance(value, bool)
        elif expected is int:
            valid = isinstance(value, int) and not isinstance(value, bool)
        else:
            valid = isinstance(value, expected)
        if not valid:
            raise ValueError(
                f"cannot unmarshal {type(value).__name__} into field {spec.name} of type {expected.__name__}"
            )


def _topic_from_json(raw: Any) -> Topic:
    topic = Topic.from_dict(_json_object(raw))
    _check_field_types(topic)
    return topic


def _sub_forum_from_json(raw: Any) -> SubForum:
    obj = _json_object(raw)
    converted = {
        key: [_topic_from_json(item) for item in _json_array(value)]
        if key.replace("_", "").lower() == "topics" else value
        for key, value in obj.items()
    }
    sub_forum = SubForum.from_dict(converted)
    _check_field_types(sub_forum, skip=frozenset({"topics"}))
    return sub_forum


def read_topic_index_json(file_path: str, sub_forum_id: str) -> list[Topic]:
    """Read a JSON array of topics; a missing or empty file yields no topics."""
    try:
        with open(file_path, "rb") as handle:
            content = handle.read()
    except FileNotFoundError:
        logger.info("file not found %s (this may be expected for some sub-forums).", file_path)
        return []
    except OSError as exc:
        logger.error("failed to open file %s: %s", file_path, exc)
        raise IndexReadError(f"failed to open file {file_path}: {exc}") from exc

    if not content:
        logger.info("file %s is empty.", file_path)
        return []

    try:
        topics = [_topic_from_json(item) for item in _json_array(json.loads(content))]
    except (ValueError, TypeError) as exc:
        logger.error("failed to unmarshal JSON from %s: %s", file_path, exc)
        raise IndexReadError(f"failed to unmarshal JSON from {file_path}: {exc}") from exc

    for topic in topics:
        topic.sub_forum_id = sub_forum_id
    logger.info("successfully read %d topics from %s", len(topics), file_path)
    return topics


def read_sub_forum_list_json(file_path: str) -> list[SubForum]:
    """Read a JSON array of sub-forums; an empty file yields an empty list."""
    try:
        with open(file_path, "rb") as handle:
            content = handle.read()
    except OSError as exc:
        logger.error("failed to open file %s: %s", file_path, exc)
        raise IndexReadError(f"failed to open file {file_path}: {exc}") from exc

    if not content:
        logger.info("file %s is empty.", file_path)
        return []

    try:
        sub_forums = [_sub_forum_from_json(item) for item in _json_array(json.loads(content))]
    except (ValueError, TypeError) as exc:
        logger.error("failed to unmarshal JSON from %s: %s", file_path, exc)
        raise IndexReadError(f"failed to unmarshal JSON from {file_path}: {exc}") from exc

    logger.info("successfully read %d subforum entries from %s", len(sub_forums), file_path)
    return sub_forums