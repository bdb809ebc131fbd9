"""
Runtime settings.

Read once at startup from (in order, later wins):
- a JSON settings file (UseDirectoryBrowser, UsePathFilter, UseBasicAuth,
  PathFilter, BasicAuth.Username / Password / TimeoutMinutes)
- environment variables, after .env has been loaded
- explicit overrides from the command line

Anything malformed is a ConfigurationError, nothing here is retried.
"""
import json
import os
import re
import secrets
from dataclasses import dataclass, field

from dotenv import load_dotenv

from minihttpd.pathfilter import compile_rules
from minihttpd.session import Credentials


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT_MINUTES = 60

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


class ConfigurationError(Exception):
	"""Bad or missing option, fatal at startup."""


@dataclass(frozen=True)
class Settings:
	root: str
	host: str = DEFAULT_HOST
	port: int = DEFAULT_PORT
	use_directory_browser: bool = True
	use_path_filter: bool = False
	use_basic_auth: bool = False
	path_filter: tuple = ()
	path_rules: tuple = ()
	credentials: Credentials = field(default_factory=lambda: Credentials("", ""))
	secret_key: str = ""
	cert_file: str = None
	key_file: str = None

	@property
	def use_tls(self) -> bool:
		return bool(self.cert_file and self.key_file)


def parse_bool(name, value):
	if isinstance(value, bool):
		return value
	text = str(value).strip().lower()
	if text in TRUE_VALUES:
		return True
	if text in FALSE_VALUES:
		return False
	raise ConfigurationError(f"{name}: expected a boolean, got {value!r}")


def parse_positive_int(name, value):
	# bool is an int subclass, "true" as a port makes no sense
	if isinstance(value, bool):
		raise ConfigurationError(f"{name}: expected a positive integer, got {value!r}")
	try:
		number = int(str(value).strip())
	except ValueError:
		raise ConfigurationError(
			f"{name}: expected a positive integer, got {value!r}") from None
	if number <= 0:
		raise ConfigurationError(f"{name}: must be positive, got {number}")
	return number


def parse_patterns(name, value):
	if isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError as e:
			raise ConfigurationError(f"{name}: not a JSON array ({e})") from None
	if not isinstance(value, (list, tuple)) \
		or not all(isinstance(p, str) for p in value):
		raise ConfigurationError(f"{name}: expected a list of pattern strings")
	return tuple(value)


def read_settings_file(path):
	"""Return the raw options from a JSON settings file, flattened."""
	try:
		with open(path, "r", encoding="utf-8") as f:
			data = json.load(f)
	except OSError as e:
		raise ConfigurationError(f"cannot read settings file {path}: {e}") from None
	except ValueError as e:
		raise ConfigurationError(f"invalid JSON in {path}: {e}") from None

	if not isinstance(data, dict):
		raise ConfigurationError(f"{path}: top level must be an object")

	raw = {}
	keys = {
		"UseDirectoryBrowser":	"use_directory_browser",
		"UsePathFilter":		"use_path_filter",
		"UseBasicAuth":			"use_basic_auth",
		"PathFilter":			"path_filter",
	}
	for key, option in keys.items():
		if key in data:
			raw[option] = data[key]

	basic = data.get("BasicAuth") or {}
	if not isinstance(basic, dict):
		raise ConfigurationError(f"{path}: BasicAuth must be an object")
	for key, option in (
		("Username", "username"),
		("Password", "password"),
		("TimeoutMinutes", "timeout_minutes"),
	):
		if key in basic:
			raw[option] = basic[key]
	return raw


def read_environ(environ):
	env_keys = {
		"FOLDER":					"root",
		"HOST":						"host",
		"PORT":						"port",
		"USE_DIRECTORY_BROWSER":	"use_directory_browser",
		"USE_PATH_FILTER":			"use_path_filter",
		"USE_BASIC_AUTH":			"use_basic_auth",
		"PATH_FILTER":				"path_filter",
		"HTTP_USER":				"username",
		"HTTP_PASS":				"password",
		"SESSION_TIMEOUT_MINUTES":	"timeout_minutes",
		"SECRET_KEY":				"secret_key",
		"SSL_CERT":					"cert_file",
		"SSL_KEY":					"key_file",
	}
	return {
		option: environ[key]
		for key, option in env_keys.items()
		if environ.get(key) not in (None, "")
	}


def load_settings(config_file=None, environ=None, dotenv=True, **overrides):
	"""
	Build the immutable Settings for this process.

	environ defaults to os.environ (after load_dotenv() when dotenv is True),
	overrides with a value of None are ignored so argparse defaults can be
	passed straight through.
	"""
	if environ is None:
		if dotenv:
			load_dotenv()
		environ = os.environ

	config_file = config_file or environ.get("MINIHTTPD_CONFIG")
	raw = {}
	if config_file:
		raw.update(read_settings_file(config_file))
	raw.update(read_environ(environ))
	raw.update({k: v for k, v in overrides.items() if v is not None})

	root = os.path.abspath(os.path.expanduser(str(raw.get("root") or os.getcwd())))
	if not os.path.isdir(root):
		raise ConfigurationError(f"folder {root!r} is not an existing directory")

	use_basic_auth = parse_bool("UseBasicAuth", raw.get("use_basic_auth", False))
	use_path_filter = parse_bool("UsePathFilter", raw.get("use_path_filter", False))

	patterns = parse_patterns("PathFilter", raw.get("path_filter", ()))
	try:
		rules = compile_rules(patterns)
	except re.error as e:
		raise ConfigurationError(
			f"PathFilter: invalid pattern {e.pattern!r}: {e}") from None

	credentials = Credentials(
		username=str(raw.get("username") or ""),
		password=str(raw.get("password") or ""),
		timeout_minutes=parse_positive_int(
			"TimeoutMinutes",
			raw.get("timeout_minutes", DEFAULT_TIMEOUT_MINUTES)),
	)
	if use_basic_auth and not credentials.username:
		raise ConfigurationError("UseBasicAuth is on but BasicAuth.Username is empty")

	cert_file = raw.get("cert_file") or None
	key_file = raw.get("key_file") or None
	if bool(cert_file) != bool(key_file):
		raise ConfigurationError("SSL_CERT and SSL_KEY must be given together")

	return Settings(
		root=root,
		host=str(raw.get("host") or DEFAULT_HOST),
		port=parse_positive_int("PORT", raw.get("port", DEFAULT_PORT)),
		use_directory_browser=parse_bool(
			"UseDirectoryBrowser", raw.get("use_directory_browser", True)),
		use_path_filter=use_path_filter,
		use_basic_auth=use_basic_auth,
		path_filter=patterns,
		path_rules=rules if use_path_filter else (),
		credentials=credentials,
		secret_key=str(raw.get("secret_key") or secrets.token_hex(32)),
		cert_file=cert_file,
		key_file=key_file,
	)
