"""Saving archived topic pages to the file system."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Storer:
    """Saves pages under <root>/<sub_forum_id>/<topic_id>/page_<n>.html."""

    archive_output_root_dir: str

    def save_topic_html(self, sub_forum_id: str, topic_id: str, page_num: int, html_bytes: bytes) -> str:
        """Write one topic page and return the path of the saved file."""
        topic_dir = os.path.join(self.archive_output_root_dir, sub_forum_id, topic_id)
        try:
            os.makedirs(topic_dir, exist_ok=True)
        except OSError as exc:
            raise OSError(f"failed to create topic directory {topic_dir}: {exc}") from exc

        file_path = os.path.join(topic_dir, f"page_{page_num}.html")
        try:
            with open(file_path, "wb") as handle:
                handle.write(html_bytes)
        except OSError as exc:
            raise OSError(f"failed to write HTML file {file_path}: {exc}") from exc
        return file_path