import argparse
import sys

from minihttpd import __version__
from minihttpd.config import ConfigurationError, load_settings
from minihttpd.server import run


def parse_args(argv=None):
	"""Define and parse command-line options, unset ones fall back to env / settings file."""
	p = argparse.ArgumentParser(
		prog="minihttpd",
		description="Serve a folder over HTTP, optionally behind a login and a path denylist."
	)
	p.add_argument("--folder", help="Root directory to serve (env FOLDER, default: current directory).")
	p.add_argument("--host", help="Host to bind (env HOST, default 0.0.0.0).")
	p.add_argument("--port", type=int, help="Port to bind (env PORT, default 8080).")
	p.add_argument("--config", help="JSON settings file (env MINIHTTPD_CONFIG).")
	p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
	return p.parse_args(argv)


def main(argv=None):
	args = parse_args(argv)
	try:
		settings = load_settings(
			config_file=args.config,
			root=args.folder,
			host=args.host,
			port=args.port,
		)
	except ConfigurationError as e:
		print(f"Error: {e}", file=sys.stderr)
		return 2
	run(settings)
	return 0


if __name__ == "__main__":
	sys.exit(main())
