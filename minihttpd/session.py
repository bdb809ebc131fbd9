"""
Sessions are never stored on the server, the signed cookie is the session.

A token carries the username, the id of the process that issued it and an
absolute expiry. The signature timestamp gives the sliding window: a token
older than the timeout is rejected, every authenticated request re-signs it.
"""
import secrets
import time
from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie

from itsdangerous import BadData, URLSafeTimedSerializer


COOKIE_NAME = "MiniAuth"
SESSION_LIFETIME = 8 * 60 * 60  # seconds after login, not renewed
EPOCH = "Thu, 01 Jan 1970 00:00:00 GMT"


@dataclass(frozen=True)
class ServerIdentity:
	token: str

	@classmethod
	def generate(cls):
		return cls(secrets.token_hex(16))


@dataclass(frozen=True)
class Credentials:
	username: str
	password: str
	timeout_minutes: int = 60


@dataclass(frozen=True)
class Session:
	username: str
	server_id: str
	expires_at: int

	@classmethod
	def issue(cls, username, identity, now=None):
		now = time.time() if now is None else now
		return cls(username, identity.token, int(now + SESSION_LIFETIME))

	def expired(self, now=None) -> bool:
		now = time.time() if now is None else now
		return now >= self.expires_at


class SessionCodec:
	def __init__(self, secret_key, timeout_minutes=60):
		self.serializer = URLSafeTimedSerializer(secret_key, salt="minihttpd.session")
		self.max_age = int(timeout_minutes) * 60

	def dumps(self, session):
		return self.serializer.dumps({
			"u": session.username,
			"sid": session.server_id,
			"exp": session.expires_at,
		})

	def loads(self, token):
		"""Return the Session in token, or None if it is missing, forged or idle too long."""
		if not token:
			return None
		try:
			claims = self.serializer.loads(token, max_age=self.max_age)
		except BadData:
			return None
		try:
			return Session(str(claims["u"]), str(claims["sid"]), int(claims["exp"]))
		except (KeyError, TypeError, ValueError):
			return None

	def read_cookie(self, cookie_header):
		if not cookie_header:
			return None
		try:
			jar = SimpleCookie(cookie_header)
		except CookieError:
			return None
		morsel = jar.get(COOKIE_NAME)
		return morsel.value if morsel else None

	def set_cookie(self, token, secure=False):
		"""Set-Cookie value for a freshly signed token."""
		return self._morsel(token, self.max_age, secure)

	def clear_cookie(self, secure=False):
		return self._morsel("", 0, secure, expires=EPOCH)

	def _morsel(self, value, max_age, secure, expires=None):
		jar = SimpleCookie()
		jar[COOKIE_NAME] = value
		m = jar[COOKIE_NAME]
		m["path"] = "/"
		m["max-age"] = max_age
		if expires:
			m["expires"] = expires
		m["httponly"] = True
		m["samesite"] = "Lax"
		if secure:
			m["secure"] = True
		return m.OutputString()
