"""Grouping, prioritising and de-duplicating topics from the topic index."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Mapping

from waypoint_archive.index_reader import (
    IndexReadError,
    read_sub_forum_list_csv,
    read_topic_index_csv,
)
from waypoint_archive.models import MasterTopicList, SubForum, SubForumNameAndURL, Topic

logger = logging.getLogger(__name__)

_INDEX_PREFIX = "topic_index_"
_INDEX_SUFFIX = ".csv"


def process_topics_and_sub_forums(
    all_topics: Iterable[Topic],
    sub_forum_details: Mapping[str, SubForumNameAndURL],
) -> list[SubForum]:
    """Group topics by sub-forum and build a SubForum for each group.

    A sub-forum missing from ``sub_forum_details`` is named after its ID and
    has an empty URL.
    """
    grouped: dict[str, list[Topic]] = {}
    for topic in all_topics:
        grouped.setdefault(topic.sub_forum_id, []).append(topic)

    sub_forums: list[SubForum] = []
    for sub_forum_id, topics in grouped.items():
        details = sub_forum_details.get(sub_forum_id)
        if details is None:
            logger.warning(
                "SubForumID '%s' found in topic data but not in subforum list. Using ID as name and empty URL.",
                sub_forum_id,
            )
            details = SubForumNameAndURL(name=sub_forum_id, url="")
        sub_forums.append(SubForum(
            id=sub_forum_id,
            name=details.name,
            url=details.url,
            topic_count=len(topics),
            topics=topics,
        ))
    return sub_forums


def sort_sub_forums_by_topic_count(sub_forums: list[SubForum]) -> None:
    """Sort sub-forums in place by ascending topic count."""
    sub_forums.sort(key=lambda sub_forum: sub_forum.topic_count)


def generate_master_topic_list(sorted_sub_forums: Iterable[SubForum]) -> MasterTopicList:
    """Concatenate topics in sub-forum order, keeping the first of each topic ID."""
    master = MasterTopicList()
    seen: set[str] = set()
    for sub_forum in sorted_sub_forums:
        for topic in sub_forum.topics:
            if topic.id not in seen:
                seen.add(topic.id)
                master.topics.append(topic)
    return master


def _sub_forum_id_from_name(name: str) -> str | None:
    parts = name[: -len(_INDEX_SUFFIX)].split("_")
    if len(parts) < 3:
        return None
    return parts[-1]


def load_and_process_topic_index(
    sub_forum_list_file: str, topic_index_dir: str
) -> tuple[list[SubForum], MasterTopicList]:
    """Load all topic index files and return prioritised sub-forums and the master list.

    Unreadable individual index files are skipped; a missing sub-forum list or
    index directory raises IndexReadError.
    """
    logger.info("Starting Topic Index Consumption and Prioritization Logic...")

    try:
        details = read_sub_forum_list_csv(sub_forum_list_file)
    except IndexReadError as exc:
        logger.critical("Failed to load subforum list from %s: %s", sub_forum_list_file, exc)
        raise IndexReadError(f"failed to load subforum list: {exc}") from exc
    logger.info("Successfully loaded %d entries from subforum list: %s", len(details), sub_forum_list_file)

    try:
        with os.scandir(topic_index_dir) as scanner:
            entries = sorted(scanner, key=lambda entry: entry.name)
    except OSError as exc:
        logger.critical("Failed to read topic index directory %s: %s", topic_index_dir, exc)
        raise IndexReadError(f"failed to read topic index directory: {exc}") from exc

    logger.info("Reading topic index files from directory: %s", topic_index_dir)
    all_topics: list[Topic] = []
    for entry in entries:
        name = entry.name
        if entry.is_dir(follow_symlinks=False):
            continue
        if not (name.startswith(_INDEX_PREFIX) and name.endswith(_INDEX_SUFFIX)):
            continue
        sub_forum_id = _sub_forum_id_from_name(name)
        if sub_forum_id is None:
            logger.warning("Skipping file with unexpected name format: %s", name)
            continue
        file_path = os.path.join(topic_index_dir, name)
        try:
            topics = read_topic_index_csv(file_path, sub_forum_id)
        except IndexReadError as exc:
            logger.warning("Failed to read or parse topic index file %s: %s. Skipping this file.", file_path, exc)
            continue
        all_topics.extend(topics)
    logger.info("Finished reading all topic index files. Total raw topic entries: %d", len(all_topics))

    sub_forums = process_topics_and_sub_forums(all_topics, details)
    sort_sub_forums_by_topic_count(sub_forums)
    logger.info("Sub-forums sorted by topic count (ascending). Determined processing order:")
    for sub_forum in sub_forums:
        logger.info("- Sub-forum: %s (ID: %s, Topics: %d)", sub_forum.name, sub_forum.id, sub_forum.topic_count)

    master = generate_master_topic_list(sub_forums)
    logger.info("Master topic list generated. Total unique Topic IDs successfully loaded: %d", len(master.topics))
    logger.info("Topic Index Consumption and Prioritization Logic completed.")
    return sub_forums, master