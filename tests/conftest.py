import threading

import pytest

from minihttpd.config import Settings
from minihttpd.pathfilter import compile_rules
from minihttpd.server import GatedHTTPServer

from .helpers import CREDENTIALS, Client


@pytest.fixture
def site(tmp_path):
	root = tmp_path / "site"
	root.mkdir()
	(root / "hello.txt").write_text("hello world")
	(root / "index.html").write_text("<h1>index</h1>")
	(root / "blob.unknownext").write_bytes(b"\x00\x01")
	(root / "docs").mkdir()
	(root / "docs" / "readme.md").write_text("# docs")
	(root / ".git").mkdir()
	(root / ".git" / "config").write_text("[core]")
	return root


@pytest.fixture
def serve(site):
	"""
	Start a server on an ephemeral port and return a Client for it.

	Servers started with the same secret_key accept each other's cookies,
	which is how a restart is simulated.
	"""
	servers = []

	def start(identity=None, path_filter=(), **options):
		options.setdefault("root", str(site))
		options.setdefault("secret_key", "test-secret")
		if path_filter:
			options.update(use_path_filter=True, path_filter=tuple(path_filter),
				path_rules=compile_rules(path_filter))
		if options.get("use_basic_auth"):
			options.setdefault("credentials", CREDENTIALS)
		settings = Settings(host="127.0.0.1", port=0, **options)
		httpd = GatedHTTPServer(settings, identity)
		threading.Thread(target=httpd.serve_forever, daemon=True).start()
		servers.append(httpd)
		return Client(httpd.server_address[1])

	yield start

	for httpd in servers:
		httpd.shutdown()
		httpd.server_close()
