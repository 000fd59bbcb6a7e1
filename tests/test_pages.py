import pytest
from bs4 import BeautifulSoup

from waypoint_archive.pages import HTMLPage, PostBlock, load_html_page

USERS = ["alice", "bob", "carol", "dave", "erin"]


def _post_row(user, order, post_id):
    return (
        "<tr>"
        f'<td class="normal bgc1 c w13 vat"><strong>{user}</strong><br>'
        '<span class="smalltext">Member</span></td>'
        '<td class="normal bgc1 vat w90">'
        '<div class="vt1 liketext">'
        f'<div class="like_left"><span class="b"><a name="{order}"></a>'
        f"Posted: Mar {order + 1}, 2010 10:0{order} am</span></div>"
        f'<div class="like_right"><span id="p_{post_id}">0</span></div>'
        "</div>"
        f'<div class="w100">Message number {order}.</div>'
        "</td></tr>\n"
    )


def _sample_page():
    rows = "".join(_post_row(user, i, 1001 + i) for i, user in enumerate(USERS))
    return (
        "<html><head><title>Sample</title></head>"
        '<body><div id="container">\n'
        '<table class="normalnb"><tr><td>Header area</td></tr></table>\n'
        '<table class="normal"><tr><td class="normal bgc1">Index &raquo; Topic</td></tr></table>\n'
        '<table class="normal">\n'
        '<tr><td class="normal bgc2 b midtext"><a href="viewtopic.php?topic=1&amp;start=0">1</a></td></tr>\n'
        '<tr><td class="normal bgc1 c w13 vat"><strong>lonely</strong></td></tr>\n'
        + rows
        + '<tr><td class="normal bgc2 mltext">Index &raquo; Topic</td></tr>\n'
        '</table>\n'
        '<table class="normal c bgc2"><tr><td class="c smalltext">Footer</td></tr></table>\n'
        "</div></body></html>"
    )


SAMPLE_HTML_PAGE = _sample_page()


def _page(html, path="page.html"):
    return HTMLPage(file_path=path, content=BeautifulSoup(html, "html.parser"))


def test_load_html_page(tmp_path):
    path = tmp_path / "simple.html"
    path.write_text('<html><body><div class="post">Test post content</div></body></html>', encoding="utf-8")

    page = load_html_page(str(path))

    assert page.file_path == str(path)
    assert page.content.select_one("div.post").get_text() == "Test post content"


def test_load_html_page_nonexistent_file(tmp_path):
    with pytest.raises(OSError, match="failed to open HTML file"):
        load_html_page(str(tmp_path / "nonexistent.html"))


def test_get_post_blocks_sample_page():
    blocks = _page(SAMPLE_HTML_PAGE, "sample/page.html").get_post_blocks()

    assert len(blocks) == 5
    for block in blocks:
        assert block.selection.select("td.normal.bgc1.c.w13.vat")
        assert block.selection.select("td.normal.bgc1.vat.w90")


def test_get_post_blocks_keeps_document_order():
    blocks = _page(SAMPLE_HTML_PAGE).get_post_blocks()
    users = [block.selection.select_one("td.w13 > strong").get_text() for block in blocks]
    assert users == USERS


def test_post_block_html_contains_its_post():
    blocks = _page(SAMPLE_HTML_PAGE).get_post_blocks()
    assert 'id="p_1001"' in blocks[0].html
    assert 'id="p_1001"' not in blocks[1].html


def test_post_block_wraps_selection():
    soup = BeautifulSoup("<table><tr><td>x</td></tr></table>", "html.parser")
    row = soup.select_one("tr")
    assert PostBlock(selection=row).html == "<tr><td>x</td></tr>"


def test_get_post_blocks_empty_page():
    html = '<html><body><div id="container"><table class="normal"></table></div></body></html>'
    assert _page(html, "empty.html").get_post_blocks() == []


def test_get_post_blocks_no_matching_table():
    html = (
        '<html><body><div id="container"><table class="plain"><tr><td>Nothing</td></tr>'
        "</table></div></body></html>"
    )
    assert _page(html, "plain.html").get_post_blocks() == []


def test_get_post_blocks_no_matching_rows_in_table():
    html = (
        '<html><body><div id="container">'
        '<table class="normal"><tr><td>Menu</td></tr></table>'
        '<table class="normal">'
        '<tr><td class="normal bgc2 b midtext">Pages</td></tr>'
        "<tr><td>Plain row</td></tr>"
        "</table></div></body></html>"
    )
    assert _page(html, "rows.html").get_post_blocks() == []


def test_loaded_sample_page_yields_blocks(tmp_path):
    path = tmp_path / "page_1.html"
    path.write_bytes(SAMPLE_HTML_PAGE.encode("utf-8"))
    assert len(load_html_page(str(path)).get_post_blocks()) == 5