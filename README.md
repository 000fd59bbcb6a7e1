# waypoint-archive

A library of building blocks for archiving a forum page by page. The HTML
selectors it uses expect a forum whose listing and topic pages are laid out in
`table.normal` tables, with post rows made of a user cell and a content cell.

## What is in it

- `waypoint_archive.models` holds the records that the other modules pass
  around. They are `Topic`, `SubForum`, `MasterTopicList` and
  `SubForumNameAndURL`.
- `waypoint_archive.index_reader` reads the topic index and the sub-forum list.
  - `read_topic_index_csv(file_path, sub_forum_id)` reads a topic index CSV.
    Its columns are TopicID, Title, URL, AuthorUsername, Replies, Views,
    LastPostUsername, LastPostTimestamp, IsSticky and IsLocked. Rows with too
    few columns, or with values that do not parse, are skipped.
  - `read_sub_forum_list_csv(file_path)` reads a CSV with the columns ID, name
    and URL. It returns a dict that maps each ID to a `SubForumNameAndURL`.
  - `read_topic_index_json` and `read_sub_forum_list_json` read the same data
    from JSON arrays.
  - Files that cannot be opened or parsed raise `IndexReadError`.
    `read_topic_index_json` is the exception for a missing file: it returns an
    empty list.
- `waypoint_archive.processing` builds the processing order.
  - `process_topics_and_sub_forums` groups topics by sub-forum.
  - `sort_sub_forums_by_topic_count` sorts sub-forums in place, smallest first.
  - `generate_master_topic_list` concatenates the topics and keeps only the
    first occurrence of each topic ID.
  - `load_and_process_topic_index(sub_forum_list_file, topic_index_dir)` does
    all of the above. It reads every `topic_index_<ID>.csv` in the directory
    and skips index files that cannot be read. A missing sub-forum list or a
    missing directory raises `IndexReadError`.
- `waypoint_archive.htmlutil` fetches and reads listing pages.
  - `fetch_html(page_url, delay, user_agent)` waits for the politeness delay,
    fetches the page with `requests` and decodes it to text. A failed request or
    a non-200 status raises `FetchError`.
  - `parse_pagination_links` returns the unique absolute pagination links. A
    topic link that lacks a `forum` parameter gets the forum of the base page.
  - `extract_topics` returns the topic links of a sub-forum listing page.
  - `HTMLUtil` bundles these three functions behind the `HTMLFetcher`,
    `PaginationParser` and `TopicExtractor` protocols.
- `waypoint_archive.jitrefresh` finds topics posted after the index was built.
  - `should_perform_jit_refresh` decides from the recorded attempt times
    whether a sub-forum is due for a refresh.
  - `perform_jit_refresh` scans up to the given number of listing pages and
    returns the topics that are not yet in the sub-forum. A failure to fetch the
    first page is raised. Failures on later pages only skip those pages.
- `waypoint_archive.storage.Storer` saves page HTML as
  `<root>/<sub_forum_id>/<topic_id>/page_<n>.html` and returns the path.
- `waypoint_archive.pages` loads archived pages.
  - `load_html_page(file_path)` parses an archived page.
  - `HTMLPage.get_post_blocks()` returns one `PostBlock` for each post row.
- `waypoint_archive.postparser` reads the fields of one post block.
  - `extract_author_username` returns the author.
  - `extract_timestamp` returns the time as `YYYY-MM-DD HH:MM:SS`.
  - `extract_post_id` returns the post ID.
  - `extract_post_order_on_page` returns the order of the post on its page as
    an int.
  - Each function takes an HTML string, bytes or a BeautifulSoup tag, and raises
    `ExtractionError` on failure.
- `waypoint_archive.state` records archival progress.
  - `ArchiveProgressState` records which topics and pages have been archived
    and when each sub-forum was last refreshed.
  - `save(file_path)` writes JSON to a `.tmp` file and then renames it into
    place.
  - `load_state(file_path)` returns an empty state when the file is missing. It
    raises `ValueError` on malformed JSON.
- `waypoint_archive.batch` measures the current batch.
  - `BatchMetrics` keeps counters.
  - `update_rates()` computes pages/min, topics/hour and MB/min since the
    previous update.
  - `get_etc()` estimates the time to completion as the longer of the page and
    topic estimates.
  - `to_historical_metrics()` summarises the batch.
- `waypoint_archive.perflog.PerformanceLogger` keeps CSV performance logs.
  - Detailed metrics are buffered with `append_metric`, written with
    `save_metrics` and read back with `load_metrics`.
  - Batch summaries are written with `append_metrics` and read back with
    `load_historical_metrics` and `calculate_average_rates`.
  - Each kind writes its own header, so keep the two kinds in separate files.
  - `init_performance_logger`, `append_detail_metric` and
    `save_detail_metrics_log` work on a single shared logger.
- `waypoint_archive.formatting` formats values for display with
  `format_duration`, `format_bytes`, `format_progress`, `format_rates` and
  `format_etc`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from datetime import datetime, timedelta, timezone

from waypoint_archive.htmlutil import HTMLUtil
from waypoint_archive.jitrefresh import perform_jit_refresh, should_perform_jit_refresh
from waypoint_archive.processing import load_and_process_topic_index
from waypoint_archive.state import load_state

sub_forums, master = load_and_process_topic_index("subforums.csv", "topic_indices")
state = load_state("archive_progress.json")
util = HTMLUtil(user_agent="ExampleArchiver/1.0", politeness_delay=1.0)

for sub_forum in sub_forums:
    if should_perform_jit_refresh(sub_forum, state, True, timedelta(hours=24)):
        new_topics = perform_jit_refresh(sub_forum, 3, util, util, util)
        state.mark_jit_refresh_attempted(sub_forum.id, datetime.now(timezone.utc))
        print(f"{sub_forum.id}: {len(new_topics)} new topics")

state.save("archive_progress.json")
```

This example saves a page and then reads its posts:

```python
from waypoint_archive.pages import load_html_page
from waypoint_archive.postparser import extract_author_username, extract_timestamp
from waypoint_archive.storage import Storer

path = Storer("archive").save_topic_html("66", "19618", 1, page_bytes)
page = load_html_page(path)
for block in page.get_post_blocks():
    print(extract_author_username(block.selection), extract_timestamp(block.selection))
```

## What it does not do

The package has no command-line program. It also has no runner that walks the
master topic list, works out the page URLs of each topic, downloads them and
marks them in the progress state. Those steps are left to the caller, who
combines `fetch_html`, `Storer`, `ArchiveProgressState` and the metrics classes.
Topic pages are stored as given. Images and other assets are not downloaded.