from datetime import datetime

import pytest

from minihttpd.listing import (
	DirectoryEntry,
	format_size,
	page_from_link,
	page_link,
	paginate,
	parent_path,
	render,
	render_breadcrumb,
	sort_entries,
)


WHEN = datetime(2024, 5, 17, 8, 30, 5)


def files(n, prefix="file"):
	return [DirectoryEntry(f"{prefix}{i:03d}.txt", False, i, WHEN) for i in range(n)]


def test_empty_directory_has_one_page_and_inert_pager():
	listing = paginate([])
	assert (listing.page, listing.total_pages, listing.total_items) == (1, 1, 0)
	assert listing.entries == ()

	html = render("/", [])
	assert '<span aria-disabled="true">Previous</span>' in html
	assert '<span aria-disabled="true">Next</span>' in html
	assert "?page=" not in html
	assert "Page 1 of 1, 0 items" in html


def test_out_of_range_page_clamps_to_last():
	listing = paginate(files(120), page="10", page_size="50")
	assert listing.total_pages == 3
	assert listing.page == 3
	assert len(listing.entries) == 20
	assert listing.entries[0].name == "file100.txt"


@pytest.mark.parametrize("page,page_size", [
	(None, None), ("", ""), ("abc", "x"), ("-3", "-1"), ("0", "0"), ("1.5", "2.5"), (" 2 ", None),
])
def test_bad_query_values_fall_back_to_defaults(page, page_size):
	listing = paginate(files(75), page, page_size)
	assert listing.page_size == 50
	assert 1 <= listing.page <= listing.total_pages
	assert listing.total_pages == 2


def test_page_size_is_clamped():
	assert paginate(files(3), page_size="100000").page_size == 500
	assert paginate(files(3), page_size="7").page_size == 7


def test_directories_first_then_case_insensitive_name():
	entries = [
		DirectoryEntry("b.txt", False, 1, WHEN),
		DirectoryEntry("zeta", True),
		DirectoryEntry("A.txt", False, 1, WHEN),
		DirectoryEntry("Beta", True),
		DirectoryEntry("alpha", True),
	]
	assert [e.name for e in sort_entries(entries)] == ["alpha", "Beta", "zeta", "A.txt", "b.txt"]


def test_order_does_not_depend_on_input_order():
	entries = files(30) + [DirectoryEntry(f"dir{i}", True) for i in range(5)]
	a = render("/d/", entries, page="2", page_size="10")
	b = render("/d/", list(reversed(entries)), page="2", page_size="10")
	assert a == b


@pytest.mark.parametrize("length,expected", [
	(0, "0 B"),
	(1023, "1023 B"),
	(1024, "1.0 KB"),
	(1536, "1.5 KB"),
	(1024 ** 2, "1.0 MB"),
	(1024 ** 3, "1.0 GB"),
	(5 * 1024 ** 3, "5.0 GB"),
	(-1, "-"),
])
def test_format_size(length, expected):
	assert format_size(length) == expected


def test_parent_path():
	assert parent_path("/") == "/"
	assert parent_path("/a/") == "/"
	assert parent_path("/a") == "/"
	assert parent_path("/a/b/") == "/a/"


def test_breadcrumb_links_every_segment_but_the_last():
	html = str(render_breadcrumb("/my docs/sub/"))
	assert html == (
		'<a href="/">Home</a><span class="sep">/</span>'
		'<a href="/my%20docs/">my docs</a><span class="sep">/</span>'
		"<span>sub</span>"
	)
	assert str(render_breadcrumb("/")) == "<span>Home</span>"


def test_parent_row_only_below_root():
	assert ">..</a>" not in render("/", files(1))
	assert '<a class="name" href="/a/">..</a>' in render("/a/b/", files(1))


def test_entry_rows():
	entries = [
		DirectoryEntry("sub dir", True, 4096, WHEN),
		DirectoryEntry("<script>.txt", False, 2048, WHEN),
	]
	html = render("/x/", entries)
	assert '<a class="name" href="/x/sub%20dir/">sub dir/</a>' in html
	assert '<a class="name" href="/x/%3Cscript%3E.txt">&lt;script&gt;.txt</a>' in html
	assert "<td>2.0 KB</td>" in html
	assert "<td>2024-05-17 08:30:05</td>" in html
	# directories show neither size nor date
	assert html.count("2024-05-17") == 1
	assert "<script>" not in html


def test_pager_window_with_ellipsis():
	html = render("/", files(30), page="15", page_size="1")
	assert '<span class="current">15</span>' in html
	assert 'href="/?page=1&amp;pageSize=1">1</a>' in html
	assert 'href="/?page=30&amp;pageSize=1">30</a>' in html
	assert html.count("<span>...</span>") == 2
	assert 'href="/?page=14&amp;pageSize=1">Previous</a>' in html
	assert 'href="/?page=16&amp;pageSize=1">Next</a>' in html
	# 5 before and 4 after the current page
	assert ">10</a>" in html and ">9</a>" not in html
	assert ">19</a>" in html and ">20</a>" not in html


def test_pager_edges_are_inert():
	first = render("/", files(3), page="1", page_size="1")
	assert '<span aria-disabled="true">Previous</span>' in first
	assert ">Next</a>" in first
	last = render("/", files(3), page="3", page_size="1")
	assert '<span aria-disabled="true">Next</span>' in last
	assert ">Previous</a>" in last


@pytest.mark.parametrize("page", [1, 2, 7])
def test_page_link_round_trip(page):
	link = page_link("/some dir/", page, 20)
	assert link.startswith("/some%20dir/?")
	assert page_from_link(link) == (page, 20)
	assert paginate(files(200), *map(str, page_from_link(link))).page == page


def test_logout_control_only_for_signed_in_user():
	assert "Logout" not in render("/", [])
	html = render("/docs/", [], current_user="admin", return_url="/docs/?page=2")
	assert "admin<a" in html
	assert 'href="/logout?returnUrl=%2Fdocs%2F%3Fpage%3D2">Logout</a>' in html


def test_title_and_names_are_escaped():
	html = render('/a&b"/', [DirectoryEntry('x"y', False, 1, WHEN)])
	assert "<title>Index of /a&amp;b&#34;/</title>" in html
	assert 'x&#34;y</a>' in html
