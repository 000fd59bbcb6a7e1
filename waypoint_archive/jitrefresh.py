"""Just-in-time refresh: discovering topics that appeared after the index was built."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Union

from waypoint_archive.htmlutil import HTMLFetcher, PaginationParser, TopicExtractor
from waypoint_archive.models import SubForum, Topic

logger = logging.getLogger(__name__)

Interval = Union[timedelta, float, int]


def _as_timedelta(interval: Interval) -> timedelta:
    if isinstance(interval, timedelta):
        return interval
    return timedelta(seconds=interval)


def _elapsed_since(moment: datetime) -> timedelta:
    now = datetime.now(moment.tzinfo) if moment.tzinfo is not None else datetime.now()
    return now - moment


def should_perform_jit_refresh(
    sub_forum: SubForum,
    current_state: Any,
    jit_enabled: bool,
    jit_interval: Interval,
) -> bool:
    """Decide whether a sub-forum is due for a refresh.

    A refresh is due when refreshing is enabled and either no earlier attempt
    is recorded for the sub-forum or ``jit_interval`` has passed since it.
    """
    if not jit_enabled:
        logger.debug("Skipping JIT for SubForum %s, JITRefreshPages is not positive.", sub_forum.id)
        return False

    attempts = getattr(current_state, "jit_refresh_attempts", None) if current_state is not None else None
    if attempts is None:
        logger.info("No previous JIT attempt state for SubForum %s. Performing refresh.", sub_forum.id)
        return True

    last_attempt = attempts.get(sub_forum.id)
    if last_attempt is None:
        logger.info("No JIT refresh attempt recorded for SubForum %s. Performing refresh.", sub_forum.id)
        return True

    interval = _as_timedelta(jit_interval)
    if _elapsed_since(last_attempt) >= interval:
        logger.info(
            "JIT refresh interval (%s) has passed for SubForum %s (last attempt: %s). Performing refresh.",
            interval, sub_forum.id, last_attempt,
        )
        return True

    logger.debug(
        "JIT refresh interval (%s) has NOT passed for SubForum %s (last attempt: %s). Skipping refresh.",
        interval, sub_forum.id, last_attempt,
    )
    return False


def _scan_pages(
    sub_forum: SubForum,
    jit_refresh_pages: int,
    fetcher: HTMLFetcher,
    parser: PaginationParser,
    extractor: TopicExtractor,
) -> tuple[list[Topic], int]:
    """Fetch the first pages of a sub-forum and return the live topics and page count."""
    live_topics: list[Topic] = []

    logger.debug("Fetching and processing initial page: %s", sub_forum.url)
    try:
        initial_html = fetcher.fetch_html(sub_forum.url)
    except Exception as exc:
        logger.error(
            "Failed to fetch initial page %s for sub-forum %s: %s", sub_forum.url, sub_forum.id, exc
        )
        raise

    try:
        found = extractor.extract_topics(initial_html, sub_forum.url, sub_forum.id)
    except Exception as exc:
        logger.warning(
            "Failed to extract topics from initial page %s for sub-forum %s: %s. "
            "Continuing with pagination scan if possible.",
            sub_forum.url, sub_forum.id, exc,
        )
    else:
        logger.debug("Found %d topics on initial page %s", len(found), sub_forum.url)
        live_topics.extend(found)
    scanned = 1

    if scanned >= jit_refresh_pages:
        logger.info(
            "Reached JITRefreshPages limit (%d) after processing initial page for sub-forum %s. Stopping scan.",
            jit_refresh_pages, sub_forum.id,
        )
        return live_topics, scanned

    logger.debug("Parsing pagination links from initial page HTML of %s", sub_forum.url)
    try:
        page_urls = parser.parse_pagination_links(initial_html, sub_forum.url)
    except Exception as exc:
        logger.error(
            "Failed to parse pagination links for sub-forum %s (URL: %s): %s. "
            "Proceeding with topics found so far (if any).",
            sub_forum.id, sub_forum.url, exc,
        )
        return live_topics, scanned

    logger.debug("Found %d pagination links. Processing them.", len(page_urls))
    for position, page_url in enumerate(page_urls, start=1):
        if scanned >= jit_refresh_pages:
            logger.info(
                "Reached JITRefreshPages limit (%d) for sub-forum %s. Stopping scan of further paginated pages.",
                jit_refresh_pages, sub_forum.id,
            )
            break
        if page_url == sub_forum.url:
            logger.debug("Skipping page %s as it's the initial page (already processed).", page_url)
            continue

        logger.debug(
            "Scanning paginated page %d/%d (URL: %s) for sub-forum %s",
            position, len(page_urls), page_url, sub_forum.id,
        )
        scanned += 1

        try:
            page_html = fetcher.fetch_html(page_url)
        except Exception as exc:
            logger.warning(
                "Failed to fetch page %s for sub-forum %s: %s. Skipping page.", page_url, sub_forum.id, exc
            )
            continue
        try:
            found = extractor.extract_topics(page_html, page_url, sub_forum.id)
        except Exception as exc:
            logger.warning(
                "Failed to extract topics from page %s for sub-forum %s: %s. Skipping page.",
                page_url, sub_forum.id, exc,
            )
            continue

        logger.debug("Found %d topics on page %s", len(found), page_url)
        live_topics.extend(found)

    return live_topics, scanned


def perform_jit_refresh(
    sub_forum: SubForum,
    jit_refresh_pages: int,
    fetcher: HTMLFetcher,
    parser: PaginationParser,
    extractor: TopicExtractor,
) -> list[Topic]:
    """Scan up to ``jit_refresh_pages`` pages of a sub-forum and return topics not yet indexed.

    A failure to fetch the first page is re-raised; failures on later pages,
    in pagination parsing or in topic extraction only skip that step.
    """
    logger.info(
        "Starting for SubForum: %s (ID: %s, URL: %s), JITRefreshPages: %d",
        sub_forum.name, sub_forum.id, sub_forum.url, jit_refresh_pages,
    )

    if not sub_forum.url:
        logger.warning(
            "SubForum %s (ID: %s) has no URL. Skipping JIT refresh.", sub_forum.name, sub_forum.id
        )
        return []

    if jit_refresh_pages <= 0:
        logger.info(
            "JITRefreshPages is %d for SubForum %s. Skipping JIT scan.", jit_refresh_pages, sub_forum.id
        )
        return []

    live_topics, scanned = _scan_pages(sub_forum, jit_refresh_pages, fetcher, parser, extractor)

    known_ids = {topic.id for topic in sub_forum.topics}
    new_topics: list[Topic] = []
    for topic in live_topics:
        if topic.id in known_ids:
            continue
        known_ids.add(topic.id)
        new_topics.append(topic)
        logger.info("Discovered new topic for %s: ID %s, Title: %s", sub_forum.id, topic.id, topic.title)

    logger.info(
        "Completed for SubForum %s. Discovered %d new topics from %d scanned pages.",
        sub_forum.id, len(new_topics), scanned,
    )
    return new_topics