"""
minihttpd, a small gated static file server.

Serves one folder over HTTP with an optional request path denylist, an
optional single-account login and a paginated directory browser.
"""
__version__ = "0.1.0"
