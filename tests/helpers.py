import http.client
from collections import namedtuple
from http.cookies import SimpleCookie
from urllib.parse import quote, urlencode

from minihttpd.session import COOKIE_NAME, Credentials


CREDENTIALS = Credentials("admin", "s3cret", timeout_minutes=60)

Response = namedtuple("Response", "status headers body")


class Client:
	def __init__(self, port):
		self.port = port

	def request(self, method, target, body=None, headers=None):
		conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
		try:
			conn.request(method, target, body=body, headers=headers or {})
			resp = conn.getresponse()
			data = resp.read()
			return Response(resp.status, resp.headers, data)
		finally:
			conn.close()

	def get(self, target, cookie=None):
		headers = {"Cookie": f"{COOKIE_NAME}={cookie}"} if cookie else {}
		return self.request("GET", target, headers=headers)

	def login(self, username="admin", password="s3cret", return_url="/"):
		return self.request(
			"POST",
			"/login?returnUrl=" + quote(return_url, safe=""),
			body=urlencode({"username": username, "password": password}),
			headers={"Content-Type": "application/x-www-form-urlencoded"},
		)


def session_cookie(response):
	"""Session cookie morsel set by response, None when not set."""
	for header in response.headers.get_all("Set-Cookie") or []:
		jar = SimpleCookie(header)
		if COOKIE_NAME in jar:
			return jar[COOKIE_NAME]
	return None
