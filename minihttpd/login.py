"""
Login / logout flow for the single configured account.

returnUrl travels two ways and each gets its own escaping: HTML-escaped where
it is shown or put in the form action, and left raw as the redirect target.
It is not checked against our own origin.
"""
import hmac
import urllib.parse

from markupsafe import Markup

from minihttpd.session import Session


LOGIN_FAILED = "Sign in failed, check your username and password."

LOGIN_STYLE = Markup("""
    :root { --card-bg: #fff; --bg: #f3f4f6; --accent: #2563eb; --muted: #6b7280; }
    html,body { height:100%; margin:0; }
    body { display:flex; align-items:center; justify-content:center; background:var(--bg); font-family:Segoe UI,Arial,Helvetica,sans-serif; color:#111; }
    .card { width:100%; max-width:420px; background:var(--card-bg); padding:22px; border-radius:10px; box-shadow:0 6px 18px rgba(15,23,42,0.08); box-sizing:border-box; }
    h1 { margin:0 0 8px; font-size:20px; }
    .subtitle { margin:0 0 8px; color:var(--muted); font-size:13px }
    .resource { margin:0 0 12px; color:var(--muted); font-size:13px; word-break:break-all }
    .error { margin:0 0 12px; color:#b91c1c; background:#fff7f7; padding:8px; border-radius:6px; border:1px solid #fecaca; font-size:13px; }
    .form-row { margin-bottom:12px; }
    label { display:block; font-size:13px; color:var(--muted); margin-bottom:6px; }
    input[type="text"],input[type="password"] { width:100%; padding:10px; border:1px solid #e6e6e6; border-radius:8px; font-size:14px; box-sizing:border-box; }
    .actions-top { margin-bottom:10px; }
    button { width:100%; background:var(--accent); color:#fff; border:none; padding:10px 14px; border-radius:8px; font-weight:600; cursor:pointer; }
    a.return { color:var(--muted); font-size:13px; text-decoration:none }
    @media (max-width:420px) { .card { margin:16px; } }
""")


def return_url_from(query):
	"""First returnUrl in a raw query string, "/" when absent or empty."""
	values = urllib.parse.parse_qs(query or "").get("returnUrl")
	return values[0] if values and values[0] else "/"


def render_login_form(return_url="/", username="", error=""):
	return_url = return_url or "/"
	action = "/login?returnUrl=" + urllib.parse.quote(return_url, safe="")
	error_html = Markup('    <div class="error">{}</div>\n').format(error) if error else ""

	page = Markup("""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width,initial-scale=1"/>
  <title>Login</title>
  <style>{style}</style>
</head>
<body>
  <div class="card" role="main" aria-labelledby="login-title">
    <h1 id="login-title">Sign in</h1>
    <p class="subtitle">Enter your credentials to access the resource</p>
    <div class="resource">Resource: {resource}</div>
{error}    <form method="post" action="{action}" autocomplete="off">
      <div class="form-row">
        <label for="username">Username</label>
        <input id="username" name="username" type="text" value="{username}" required />
      </div>
      <div class="form-row">
        <label for="password">Password</label>
        <input id="password" name="password" type="password" required />
      </div>
      <div class="actions-top"><a class="return" href="/">Back</a></div>
      <div class="actions">
        <button type="submit">Sign in</button>
      </div>
    </form>
  </div>
</body>
</html>
""")
	return str(page.format(
		style=LOGIN_STYLE,
		resource=urllib.parse.unquote(return_url),
		error=error_html,
		action=action,
		username=username or "",
	))


def credentials_match(username, password, credentials):
	if not credentials.username:
		return False
	# compare everything, bail out only at the end
	user_ok = hmac.compare_digest(
		(username or "").encode("utf-8"), credentials.username.encode("utf-8"))
	pass_ok = hmac.compare_digest(
		(password or "").encode("utf-8"), credentials.password.encode("utf-8"))
	return user_ok and pass_ok


def attempt_login(username, password, credentials, identity, now=None):
	"""New Session on an exact match, None otherwise (no reason given)."""
	if not credentials_match(username, password, credentials):
		return None
	return Session.issue(credentials.username, identity, now)
