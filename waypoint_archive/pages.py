"""Loading archived topic pages and locating the post blocks on them."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup
from bs4.element import Tag

POSTS_TABLE_SELECTOR = "body > div#container > table.normal"
POST_ROW_SELECTOR = "tr:has(td.normal.bgc1.c.w13.vat):has(td.normal.bgc1.vat.w90)"


@dataclass
class PostBlock:
    """One post on a page: the table row holding its user and content cells."""

    selection: Tag

    @property
    def html(self) -> str:
        return str(self.selection)


@dataclass
class HTMLPage:
    """A parsed HTML page from the archive."""

    file_path: str
    content: BeautifulSoup

    @classmethod
    def from_html(cls, html: str, file_path: str = "") -> "HTMLPage":
        return cls(file_path=file_path, content=BeautifulSoup(html, "html.parser"))

    def get_post_blocks(self) -> list[PostBlock]:
        """Return the post rows of the second "normal" table, in document order.

        A page without that table, or without matching rows, yields no blocks.
        """
        tables = self.content.select(POSTS_TABLE_SELECTOR)
        if len(tables) < 2:
            return []
        return [PostBlock(selection=row) for row in tables[1].select(POST_ROW_SELECTOR)]


def load_html_page(file_path: str) -> HTMLPage:
    """Read and parse an HTML file."""
    try:
        with open(file_path, "rb") as handle:
            raw = handle.read()
    except OSError as exc:
        raise OSError(f"failed to open HTML file {file_path}: {exc}") from exc
    text = raw.decode("utf-8", errors="replace")
    return HTMLPage.from_html(text, file_path=file_path)