"""
Access gate in front of the file server.

A session is only honoured when it was issued for the configured user by
this very process. Anything else attached to the request is destroyed and
the client is sent to /login with the page it asked for as returnUrl.
"""
import enum
import urllib.parse
from dataclasses import dataclass

from minihttpd.session import Session


LOGIN_PATH = "/login"
LOGOUT_PATH = "/logout"


class Outcome(enum.Enum):
	PASS = "pass"
	CHALLENGE = "challenge"


@dataclass(frozen=True)
class GateResult:
	outcome: Outcome
	# session to re-issue (renewed window), None when nothing should be set
	session: Session = None
	# the attached cookie must be cleared in the response
	destroy: bool = False

	@property
	def passed(self) -> bool:
		return self.outcome is Outcome.PASS


def is_auth_endpoint(path):
	"""Exactly /login or /logout, path must already be normalized."""
	return (path or "").lower() in (LOGIN_PATH, LOGOUT_PATH)


def is_valid(session, identity, credentials, now=None):
	return (
		session is not None
		and bool(credentials.username)
		and session.username == credentials.username
		and session.server_id == identity.token
		and not session.expired(now)
	)


def authorize(path, session, identity, credentials, now=None, has_cookie=False):
	"""
	has_cookie tells that a session cookie came with the request even when
	it did not decode into session (foreign key, forged, idle too long).
	"""
	if is_auth_endpoint(path):
		return GateResult(Outcome.PASS)

	if session is None:
		return GateResult(Outcome.CHALLENGE, destroy=has_cookie)

	if is_valid(session, identity, credentials, now):
		return GateResult(Outcome.PASS, session=session)

	# issued by an earlier run (or for somebody else), sign it out for good
	return GateResult(Outcome.CHALLENGE, destroy=True)


def login_redirect(target):
	"""
	Location for a challenged request.

	target is the raw request target, path plus query string.
	"""
	return f"{LOGIN_PATH}?returnUrl={urllib.parse.quote(target or '/', safe='')}"
