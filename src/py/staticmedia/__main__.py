import argparse
import re
import sys

from . import config
from .media import StaticMedia
from .model import (
	DEFAULT_ALLOWED,
	DEFAULT_CACHE_CONTROL,
	DEFAULT_INDEX,
	DEFAULT_MOUNT,
	Environment,
	Regex,
	ServeConfig,
	Substring,
	TPattern,
)
from .server import run as runServer
from .utils.logging import LogLevel, error, info, setLevel

# Prefix marking a `--allow`/`--deny` value as a regular expression
REGEX_PREFIX: str = "re:"


def pattern(value: str) -> TPattern:
	"""Parses a pattern given on the command line, `re:` introduces a regular
	expression, anything else is a substring."""
	if value.startswith(REGEX_PREFIX):
		try:
			return Regex.Compile(value[len(REGEX_PREFIX) :])
		except re.error as e:
			raise argparse.ArgumentTypeError(
				f"Invalid regular expression {value!r}: {e}"
			) from e
	return Substring(value)


def parser() -> argparse.ArgumentParser:
	res = argparse.ArgumentParser(
		prog="staticmedia",
		description="Serves static media files, with conditional and range requests",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	commands = res.add_subparsers(dest="command", required=True)

	# --
	# serve
	serve = commands.add_parser(
		"serve",
		help="Serves a directory over HTTP",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	serve.add_argument("root", metavar="ROOT", help="The directory to serve")
	serve.add_argument(
		"-m",
		"--mount",
		action="store",
		dest="mount",
		help="URL prefix under which files are served",
		default=DEFAULT_MOUNT,
	)
	serve.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the host",
		default=config.HOST,
	)
	serve.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	serve.add_argument(
		"-e",
		"--ext",
		action="append",
		dest="extensions",
		metavar="EXTENSION",
		help=f"Allowed file extension (can be repeated, defaults to {' '.join(DEFAULT_ALLOWED)})",
	)
	serve.add_argument(
		"--cache-control",
		action="store",
		dest="cacheControl",
		help="Value of the Cache-Control header",
		default=DEFAULT_CACHE_CONTROL,
	)
	serve.add_argument(
		"--no-etag",
		action="store_false",
		dest="etag",
		help="Disables the ETag header",
	)
	serve.add_argument(
		"--no-last-modified",
		action="store_false",
		dest="lastModified",
		help="Disables the Last-Modified header",
	)
	serve.add_argument(
		"-s",
		"--secret",
		action="store",
		dest="secret",
		help="Requires URLs to be signed with this secret",
		default=config.SECRET,
	)
	serve.add_argument(
		"-a",
		"--allow",
		action="append",
		dest="allow",
		type=pattern,
		metavar="PATTERN",
		help="Only serves paths matching one of the patterns, prefix with 're:' for a regex (can be repeated)",
	)
	serve.add_argument(
		"-d",
		"--deny",
		action="append",
		dest="deny",
		type=pattern,
		metavar="PATTERN",
		help="Never serves paths matching one of the patterns, prefix with 're:' for a regex (can be repeated)",
	)
	serve.add_argument(
		"-i",
		"--index",
		action="append",
		dest="index",
		metavar="FILENAME",
		help=f"Index file name probed for directories (can be repeated, defaults to {' '.join(DEFAULT_INDEX)})",
	)
	serve.add_argument(
		"--production",
		action="store_true",
		dest="production",
		help="Reports internal errors as a generic 500",
		default=config.ENVIRONMENT is Environment.Production,
	)
	serve.add_argument(
		"--debug",
		action="store_true",
		dest="debug",
		help="Logs the cause of rejected requests",
		default=config.DEBUG,
	)
	serve.add_argument(
		"--detailed",
		action="store_true",
		dest="detailed",
		help="Reports rejections as 400/403/404/405 instead of a flat 404",
	)

	# --
	# sign
	sign = commands.add_parser(
		"sign",
		help="Outputs a signed URL",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	sign.add_argument("root", metavar="ROOT", help="The served directory")
	sign.add_argument("path", metavar="URLPATH", help="The URL path to sign")
	sign.add_argument(
		"-m",
		"--mount",
		action="store",
		dest="mount",
		help="URL prefix under which files are served",
		default=DEFAULT_MOUNT,
	)
	sign.add_argument(
		"-s",
		"--secret",
		action="store",
		dest="secret",
		help="The signing secret",
		default=config.SECRET,
	)
	sign.add_argument(
		"-t",
		"--ttl",
		action="store",
		dest="ttl",
		type=int,
		help="Validity of the URL, in seconds",
		default=3_600,
	)
	return res


def makeConfig(args: argparse.Namespace) -> ServeConfig:
	"""Creates the configuration from the parsed command line arguments."""
	if args.command == "sign":
		return ServeConfig.Make(args.root, args.mount, secret=args.secret)
	return ServeConfig.Make(
		args.root,
		args.mount,
		allowedExtensions=args.extensions or DEFAULT_ALLOWED,
		cacheControl=args.cacheControl,
		etag=args.etag,
		lastModified=args.lastModified,
		secret=args.secret,
		allow=args.allow,
		deny=args.deny,
		indexFilenames=args.index or DEFAULT_INDEX,
		environment=(
			Environment.Production if args.production else Environment.Development
		),
		debug=args.debug,
		detailedRejections=args.detailed,
	)


def main(args: list[str]) -> int:
	options = parser().parse_args(args)
	try:
		cfg = makeConfig(options)
	except ValueError as e:
		error(str(e), "CONFIG")
		return 1
	if options.command == "sign":
		if not options.secret:
			error("A secret is required to sign URLs", "NOSECRET")
			return 1
		url = StaticMedia(cfg).signedURL(options.path, options.ttl)
		if url is None:
			error(f"Path does not resolve to a servable file: {options.path}", "NOTFOUND")
			return 1
		sys.stdout.write(f"{url}\n")
		return 0
	if cfg.debug:
		setLevel(LogLevel.Debug)
	media = StaticMedia(cfg)
	info(
		"Serving static media",
		Root=cfg.root,
		Mount=cfg.mount,
		Environment=cfg.environment.value,
		Signed=cfg.isSigned,
	)
	runServer(
		media,
		host=options.host,
		port=options.port,
		logRequests=config.LOG_REQUESTS,
	)
	return 0


def run() -> None:
	sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
	run()

# EOF
