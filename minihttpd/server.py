"""
Gated static file server.

Every request runs the same chain, each step may answer and stop:
path filter (403) -> auth gate (redirect to /login) -> login/logout
endpoints -> static files / directory listing -> plain-text 404.
"""
import io
import os
import posixpath
import ssl
import urllib.parse
from datetime import datetime
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer

from minihttpd import auth, listing, login, pathfilter
from minihttpd.session import ServerIdentity, SessionCodec


NOT_FOUND_BODY = b"404 Not Found"

# characters a Location header may carry as they are, the rest gets encoded
LOCATION_SAFE = "/:?#[]@!$&'()*+,;=%~"


class FileServerHandler(SimpleHTTPRequestHandler):
	server_version = "minihttpd"
	timeout = 300
	# listings and redirects are small single writes, push them out at once
	disable_nagle_algorithm = True

	# per request, reset in handle_one_request()
	user = None
	pending_headers = ()
	responded = False

	def __init__(self, request, client_address, server):
		super().__init__(request, client_address, server,
			directory=server.settings.root)

	@property
	def settings(self):
		return self.server.settings

	def handle_one_request(self):
		self.user = None
		self.pending_headers = []
		self.responded = False
		super().handle_one_request()

	def do_GET(self):
		self.run_pipeline()

	def do_HEAD(self):
		self.run_pipeline()

	def do_POST(self):
		self.run_pipeline()

	def run_pipeline(self):
		parsed = urllib.parse.urlsplit(self.path)
		path = clean_path(urllib.parse.unquote(parsed.path))
		# from here on every step, the file server included, sees the same path
		self.path = urllib.parse.quote(path) + ("?" + parsed.query if parsed.query else "")

		if self.settings.use_path_filter \
			and pathfilter.evaluate(path, self.settings.path_rules) is pathfilter.Verdict.BLOCK:
			self.log_message("blocked path %r", path)
			return self.send_body(HTTPStatus.FORBIDDEN, pathfilter.FORBIDDEN_BODY,
				"text/plain; charset=utf-8")

		if self.settings.use_basic_auth:
			if not self.check_access(path):
				return None
			if path.lower() == auth.LOGIN_PATH:
				return self.handle_login(parsed.query)
			if path.lower() == auth.LOGOUT_PATH:
				return self.handle_logout(parsed.query)

		if self.command == "POST":
			return self.send_error(HTTPStatus.NOT_FOUND)
		if self.command == "HEAD":
			return super().do_HEAD()
		return super().do_GET()

	# ===== auth =====
	def session_token(self):
		return self.server.sessions.read_cookie(self.headers.get("Cookie"))

	def current_session(self):
		return self.server.sessions.loads(self.session_token())

	def check_access(self, path) -> bool:
		"""Run the auth gate, answer with a redirect and return False on challenge."""
		token = self.session_token()
		result = auth.authorize(path, self.server.sessions.loads(token), self.server.identity,
			self.settings.credentials, has_cookie=token is not None)

		if result.destroy:
			self.log_message("signing out a stale session")
			self.pending_headers.append(("Set-Cookie",
				self.server.sessions.clear_cookie(self.settings.use_tls)))

		if not result.passed:
			self.redirect(auth.login_redirect(self.path))
			return False

		if result.session is not None:
			# sliding window, every authenticated request re-signs the cookie
			self.user = result.session.username
			self.issue_cookie(result.session)
		return True

	def issue_cookie(self, session):
		token = self.server.sessions.dumps(session)
		self.pending_headers.append(("Set-Cookie",
			self.server.sessions.set_cookie(token, self.settings.use_tls)))

	def handle_login(self, query):
		return_url = login.return_url_from(query)

		if self.command != "POST":
			if auth.is_valid(self.current_session(), self.server.identity,
				self.settings.credentials):
				return self.redirect(return_url)
			return self.send_html(login.render_login_form(return_url))

		fields = self.read_form()
		username = fields.get("username", [""])[0]
		session = login.attempt_login(
			username,
			fields.get("password", [""])[0],
			self.settings.credentials,
			self.server.identity,
		)
		if session is None:
			self.log_message("failed login for %r", username)
			return self.send_html(login.render_login_form(
				return_url, username=username, error=login.LOGIN_FAILED))

		self.log_message("%s signed in", session.username)
		self.issue_cookie(session)
		return self.redirect(return_url)

	def handle_logout(self, query):
		self.pending_headers.append(("Set-Cookie",
			self.server.sessions.clear_cookie(self.settings.use_tls)))
		return self.redirect(login.return_url_from(query))

	def read_form(self):
		try:
			length = int(self.headers.get("Content-Length") or 0)
		except ValueError:
			length = 0
		raw = self.rfile.read(length) if length > 0 else b""
		return urllib.parse.parse_qs(raw.decode("utf-8", "replace"),
			keep_blank_values=True)

	# ===== files =====
	def send_head(self):
		"""Directories get our listing (never index.html), regular files the stdlib path."""
		path = self.translate_path(self.path)

		if os.path.isdir(path):
			if not self.settings.use_directory_browser:
				self.send_error(HTTPStatus.NOT_FOUND)
				return None
			# if url doesn't end with "/", redirect to the slash-version
			parsed = urllib.parse.urlsplit(self.path)
			if not parsed.path.endswith("/"):
				location = parsed.path + "/"
				if parsed.query:
					location += "?" + parsed.query
				self.redirect(location, HTTPStatus.MOVED_PERMANENTLY)
				return None
			return self.list_directory(path)

		if not os.path.isfile(path):
			self.send_error(HTTPStatus.NOT_FOUND)
			return None
		return super().send_head()

	def list_directory(self, path):
		try:
			entries = list(scan_directory(path))
		except OSError:
			self.send_error(HTTPStatus.NOT_FOUND)
			return None

		parsed = urllib.parse.urlsplit(self.path)
		page, page_size = listing.page_params(parsed.query)
		body = listing.render(
			urllib.parse.unquote(parsed.path),
			entries,
			page=page,
			page_size=page_size,
			current_user=self.user if self.settings.use_basic_auth else None,
			return_url=self.path,
		).encode("utf-8")

		self.send_response(HTTPStatus.OK)
		self.send_header("Content-Type", "text/html; charset=utf-8")
		self.send_header("Content-Length", str(len(body)))
		self.end_headers()
		return io.BytesIO(body)

	# ===== responses =====
	def end_headers(self):
		for keyword, value in self.pending_headers:
			self.send_header(keyword, value)
		self.pending_headers = []
		self.responded = True
		super().end_headers()

	def send_body(self, code, body, content_type):
		self.send_response(code)
		self.send_header("Content-Type", content_type)
		self.send_header("Content-Length", str(len(body)))
		self.end_headers()
		if self.command != "HEAD":
			self.wfile.write(body)

	def send_html(self, text, code=HTTPStatus.OK):
		self.send_body(code, text.encode("utf-8"), "text/html; charset=utf-8")

	def redirect(self, location, code=HTTPStatus.FOUND):
		self.send_response(code)
		self.send_header("Location", urllib.parse.quote(location, safe=LOCATION_SAFE))
		self.send_header("Content-Length", "0")
		self.end_headers()

	def send_error(self, code, message=None, explain=None):
		"""Every terminal 404 gets the same plain-text body, other codes are left alone."""
		if code != HTTPStatus.NOT_FOUND:
			return super().send_error(code, message, explain)
		if self.responded:
			# something already answered this request
			return None
		self.log_error("code %d, message %s", code, message or "Not Found")
		self.send_body(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY, "text/plain; charset=utf-8")


def clean_path(path):
	"""Decoded URL path with . and .. segments resolved, never above the root."""
	path = path or "/"
	trailing = path.endswith("/")
	path = posixpath.normpath("/" + path.lstrip("/"))
	if trailing and path != "/":
		path += "/"
	return path

def scan_directory(path):
	with os.scandir(path) as it:
		for entry in it:
			try:
				is_dir = entry.is_dir()
				st = entry.stat()
			except OSError:
				# broken symlink or no permission, leave it out
				continue
			yield listing.DirectoryEntry(
				name=entry.name,
				is_dir=is_dir,
				length=0 if is_dir else st.st_size,
				last_modified=datetime.fromtimestamp(st.st_mtime),
			)


class GatedHTTPServer(ThreadingHTTPServer):
	daemon_threads = True

	def __init__(self, settings, identity=None, handler=FileServerHandler):
		self.settings = settings
		self.identity = identity or ServerIdentity.generate()
		self.sessions = SessionCodec(settings.secret_key,
			settings.credentials.timeout_minutes)
		super().__init__((settings.host, settings.port), handler)
		if settings.use_tls:
			context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
			context.load_cert_chain(certfile=settings.cert_file, keyfile=settings.key_file)
			self.socket = context.wrap_socket(self.socket, server_side=True)


def run(settings, identity=None):
	httpd = GatedHTTPServer(settings, identity)
	scheme = "https" if settings.use_tls else "http"
	host, port = httpd.server_address[:2]
	print(f"Serving files from: {settings.root}")
	print(f"URL:              {scheme}://{host}:{port}/")
	print(f"directory browser: {'ON' if settings.use_directory_browser else 'OFF'}")
	print(f"path filter:       {'ON' if settings.use_path_filter else 'OFF'}"
		f" ({len(settings.path_rules)} rules)")
	print(f"login:             {'ON' if settings.use_basic_auth else 'OFF'}")
	with httpd:
		try:
			httpd.serve_forever()
		except KeyboardInterrupt:
			print("\nStopped.")
