"""
Paginated HTML directory listing.

Entries come from the file server in whatever order the filesystem gives
them, they are always re-sorted here (directories first, then by name,
case-insensitive) so page N means the same thing on every request.
"""
import math
import urllib.parse
from dataclasses import dataclass
from datetime import datetime

from markupsafe import Markup


DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
WINDOW_BEFORE = 5
WINDOW_AFTER = 4


@dataclass(frozen=True)
class DirectoryEntry:
	name: str
	is_dir: bool
	length: int = 0
	last_modified: datetime = None


@dataclass(frozen=True)
class ListingPage:
	entries: tuple
	page: int
	page_size: int
	total_items: int
	total_pages: int


def parse_positive(value, default):
	"""Query value as a positive int, default for anything else."""
	try:
		number = int(str(value).strip())
	except (TypeError, ValueError):
		return default
	return number if number > 0 else default


def sort_entries(entries):
	return sorted(entries, key=lambda e: (not e.is_dir, e.name.casefold(), e.name))


def paginate(entries, page=None, page_size=None):
	page = parse_positive(page, 1)
	page_size = min(parse_positive(page_size, DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

	ordered = sort_entries(entries)
	total_items = len(ordered)
	total_pages = max(1, math.ceil(total_items / page_size))
	page = min(page, total_pages)

	start = (page - 1) * page_size
	return ListingPage(
		entries=tuple(ordered[start:start + page_size]),
		page=page,
		page_size=page_size,
		total_items=total_items,
		total_pages=total_pages,
	)


def format_size(length):
	if length < 0:
		return "-"
	if length < 1024:
		return f"{length} B"
	for unit in ("KB", "MB"):
		length /= 1024.0
		if length < 1024:
			return f"{length:.1f} {unit}"
	return f"{length / 1024.0:.1f} GB"


def format_mtime(when):
	if when is None:
		return ""
	return when.strftime("%Y-%m-%d %H:%M:%S")


def url_path(path):
	"""Percent-encode each segment of a decoded path, keep the slashes."""
	return urllib.parse.quote(path, safe="/")


def path_segments(path):
	"""Breadcrumb names, the leading "" stands for Home (the root)."""
	return [""] + [p for p in (path or "/").split("/") if p]


def segment_link(segments, index):
	if index == 0:
		return "/"
	return "/" + "/".join(segments[1:index + 1]) + "/"


def parent_path(path):
	trimmed = (path or "/").rstrip("/")
	if not trimmed or "/" not in trimmed:
		return "/"
	return trimmed[:trimmed.rindex("/") + 1]


def page_link(path, page, page_size):
	return f"{url_path(path)}?page={page}&pageSize={page_size}"


def page_params(query):
	"""Raw page and pageSize values of a query string, None when absent."""
	params = urllib.parse.parse_qs(query or "")
	return params.get("page", [None])[0], params.get("pageSize", [None])[0]


def page_from_link(link):
	"""Inverse of page_link(), (page, page_size) as the renderer reads them."""
	page, page_size = page_params(urllib.parse.urlsplit(link).query)
	page_size = parse_positive(page_size, DEFAULT_PAGE_SIZE)
	return parse_positive(page, 1), min(page_size, MAX_PAGE_SIZE)


LISTING_STYLE = Markup("""
    :root { --card-bg: #fff; --bg: #f3f4f6; --accent: #2563eb; --muted: #6b7280; }
    html,body { height:100%; margin:0; }
    body { background:var(--bg); font-family:"Segoe UI", Arial, Helvetica, sans-serif; color:#111; font-size:16px; }
    .container { max-width:1100px; margin:28px auto; padding:18px; box-sizing:border-box; }
    .card { background:var(--card-bg); padding:14px; border-radius:10px; box-shadow:0 6px 18px rgba(15,23,42,0.06); }
    .header { display:flex; justify-content:space-between; align-items:flex-start; gap:12px; margin-bottom:12px; flex-wrap:wrap }
    .breadcrumb { font-size:1rem; color:var(--muted); }
    .breadcrumb a { color:var(--accent); text-decoration:none; margin-right:6px; }
    .breadcrumb span.sep { color: #9CA3AF; margin-right:6px; }
    .controls { display:flex; align-items:center; gap:8px; }
    .auth { font-size:1rem; color:var(--muted); }
    .auth a { margin-left:10px; color:var(--muted); text-decoration:none; padding:6px 10px; background:#f8fafc; border-radius:8px; border:1px solid #eef2f7; }
    .table-wrap { overflow:auto; }
    table { width:100%; border-collapse:collapse; font-size:1rem; }
    thead th { text-align:left; padding:10px 12px; color:#374151; font-weight:600; border-bottom:1px solid #eef2f6; }
    tbody td { padding:10px 12px; border-bottom:1px solid #f1f5f9; }
    a.name { color:var(--accent); text-decoration:none; }
    a.name:hover { text-decoration:underline; }
    .pager { margin-top:12px; display:flex; gap:8px; align-items:center; flex-wrap:wrap }
    .pager a, .pager span { padding:6px 10px; border-radius:6px; text-decoration:none; color:var(--muted); background:#f8fafc; border:1px solid #eef2f7; }
    .pager .current { background:var(--accent); color:#fff; border-color:var(--accent); }
    .pager .summary { margin-left:8px; background:none; border:none; }
    @media (max-width:720px) { .container { margin:12px; } thead th, tbody td { padding:8px; } }
""")


def render_breadcrumb(path):
	segments = path_segments(path)
	out = []
	for i, segment in enumerate(segments):
		name = segment or "Home"
		if i < len(segments) - 1:
			out.append(Markup('<a href="{}">{}</a><span class="sep">/</span>').format(
				url_path(segment_link(segments, i)), name))
		else:
			out.append(Markup("<span>{}</span>").format(name))
	return Markup("").join(out)


def render_rows(path, listing):
	base = path if path.endswith("/") else path + "/"
	rows = []
	if path != "/":
		rows.append(Markup(
			'<tr>\n  <td><a class="name" href="{}">..</a></td><td></td><td></td>\n</tr>\n'
		).format(url_path(parent_path(path))))

	for entry in listing.entries:
		suffix = "/" if entry.is_dir else ""
		href = url_path(base) + urllib.parse.quote(entry.name, safe="") + suffix
		size = "-" if entry.is_dir else format_size(entry.length)
		modified = "" if entry.is_dir else format_mtime(entry.last_modified)
		rows.append(Markup(
			'<tr>\n'
			'  <td><a class="name" href="{href}">{name}</a></td>\n'
			'  <td>{size}</td>\n'
			'  <td>{modified}</td>\n'
			'</tr>\n'
		).format(href=href, name=entry.name + suffix, size=size, modified=modified))
	return Markup("").join(rows)


def render_pager(path, listing):
	page, total = listing.page, listing.total_pages

	def link(target, label=None):
		return Markup('        <a href="{}">{}</a>\n').format(
			page_link(path, target, listing.page_size), label or target)

	def inert(label, css=None):
		if css:
			return Markup('        <span class="{}">{}</span>\n').format(css, label)
		return Markup('        <span aria-disabled="true">{}</span>\n').format(label)

	out = [link(page - 1, "Previous") if page > 1 else inert("Previous")]

	start = max(1, page - WINDOW_BEFORE)
	end = min(total, page + WINDOW_AFTER)
	if start > 1:
		out.append(link(1))
		if start > 2:
			out.append(Markup("        <span>...</span>\n"))
	for i in range(start, end + 1):
		out.append(inert(i, "current") if i == page else link(i))
	if end < total:
		if end < total - 1:
			out.append(Markup("        <span>...</span>\n"))
		out.append(link(total))

	out.append(link(page + 1, "Next") if page < total else inert("Next"))
	out.append(Markup('        <span class="summary">Page {} of {}, {} items</span>\n').format(
		page, total, listing.total_items))
	return Markup("").join(out)


def render_auth(current_user, return_url):
	if current_user is None:
		return ""
	logout = "/logout?returnUrl=" + urllib.parse.quote(return_url, safe="")
	return Markup('          <div class="auth">{}<a href="{}">Logout</a></div>\n').format(
		current_user or "User", logout)


def render(request_path, entries, page=None, page_size=None, current_user=None, return_url=None):
	"""
	Full listing page for one directory.

	request_path is the decoded URL path, page and page_size the raw query
	values (anything unusable falls back to the defaults). With current_user
	set the header gets a Logout link that comes back to return_url.
	"""
	path = request_path or "/"
	listing = paginate(entries, page, page_size)

	return str(Markup("""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>Index of {path}</title>
  <style>{style}</style>
</head>
<body>
  <div class="container">
    <div class="card">
      <div class="header">
        <div class="breadcrumb">{breadcrumb}</div>
        <div class="controls">
{auth}        </div>
      </div>
      <div class="table-wrap">
        <table>
          <thead><tr><th>Name</th><th>Size</th><th>Last modified</th></tr></thead>
          <tbody>
{rows}          </tbody>
        </table>
      </div>
      <div class="pager" role="navigation" aria-label="Pagination">
{pager}      </div>
    </div>
  </div>
</body>
</html>
""").format(
		path=path,
		style=LISTING_STYLE,
		breadcrumb=render_breadcrumb(path),
		auth=render_auth(current_user, return_url or path),
		rows=render_rows(path, listing),
		pager=render_pager(path, listing),
	))
