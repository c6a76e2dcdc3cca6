import os
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, ClassVar, Iterable, NamedTuple, TypeAlias

from mypy_extensions import mypyc_attr

from .http.model import HTTPRequest, HTTPResponse

# -----------------------------------------------------------------------------
#
# PATTERNS
#
# -----------------------------------------------------------------------------


class Substring(NamedTuple):
	"""Matches paths that contain the given text."""

	text: str

	def matches(self, path: str) -> bool:
		return self.text in path


class Regex(NamedTuple):
	"""Matches paths where the given regular expression is found."""

	pattern: re.Pattern[str]

	@staticmethod
	def Compile(expr: str) -> "Regex":
		return Regex(re.compile(expr))

	def matches(self, path: str) -> bool:
		return self.pattern.search(path) is not None


TPattern: TypeAlias = Substring | Regex


def pattern(value: "str | re.Pattern[str] | TPattern") -> TPattern:
	"""Coerces plain strings to `Substring` and compiled expressions to
	`Regex` patterns."""
	if isinstance(value, (Substring, Regex)):
		return value
	elif isinstance(value, re.Pattern):
		return Regex(value)
	elif isinstance(value, str):
		return Substring(value)
	else:
		raise ValueError(f"Unsupported pattern type {type(value)}: {value!r}")


def matchesAny(patterns: Iterable[TPattern], path: str) -> bool:
	return any(_.matches(path) for _ in patterns)


# -----------------------------------------------------------------------------
#
# CONFIGURATION
#
# -----------------------------------------------------------------------------


class Environment(Enum):
	"""The deployment mode decides how internal errors are reported."""

	Development = "development"
	Production = "production"

	@staticmethod
	def Parse(value: str | None) -> "Environment":
		return (
			Environment.Production
			if (value or "").strip().lower() in ("prod", "production")
			else Environment.Development
		)


DEFAULT_ALLOWED: tuple[str, ...] = (
	".png",
	".jpg",
	".jpeg",
	".webp",
	".gif",
	".bmp",
	".svg",
	".mp4",
	".webm",
	".mp3",
	".wav",
	".flac",
	".pdf",
)
DEFAULT_CACHE_CONTROL: str = "public, max-age=31536000"
DEFAULT_INDEX: tuple[str, ...] = ("index.html",)
DEFAULT_MOUNT: str = "/media"


def normalizeMount(mount: str) -> str:
	"""Returns the mount with a leading and trailing `/`, like `/media/`."""
	stripped = mount.strip().strip("/")
	if not stripped:
		raise ValueError(f"Mount must be a non-empty path segment, got: {mount!r}")
	return f"/{stripped}/"


def normalizeExtension(ext: str) -> str:
	ext = ext.strip().lower()
	return ext if ext.startswith(".") else f".{ext}"


class ServeConfig(NamedTuple):
	"""Immutable configuration, shared by every request. Use `ServeConfig.Make`
	to get a validated, normalized instance."""

	root: str
	mount: str = "/media/"
	allowedExtensions: frozenset[str] = frozenset(DEFAULT_ALLOWED)
	cacheControl: str = DEFAULT_CACHE_CONTROL
	etag: bool = True
	lastModified: bool = True
	secret: bytes | None = None
	allow: tuple[TPattern, ...] | None = None
	deny: tuple[TPattern, ...] | None = None
	indexFilenames: tuple[str, ...] = DEFAULT_INDEX
	environment: Environment = Environment.Development
	debug: bool = False
	detailedRejections: bool = False
	chunkSize: int = 8_192

	@staticmethod
	def Make(
		root: str | os.PathLike[str],
		mount: str = DEFAULT_MOUNT,
		*,
		allowedExtensions: Iterable[str] | None = DEFAULT_ALLOWED,
		cacheControl: str = DEFAULT_CACHE_CONTROL,
		etag: bool = True,
		lastModified: bool = True,
		secret: str | bytes | None = None,
		allow: "Iterable[str | re.Pattern[str] | TPattern] | None" = None,
		deny: "Iterable[str | re.Pattern[str] | TPattern] | None" = None,
		indexFilenames: Iterable[str] = DEFAULT_INDEX,
		environment: Environment | str = Environment.Development,
		debug: bool = False,
		detailedRejections: bool = False,
		chunkSize: int = 8_192,
	) -> "ServeConfig":
		path = os.path.realpath(os.fspath(root))
		if not os.path.isdir(path):
			raise ValueError(f"Root is not an existing directory: {root}")
		if chunkSize <= 0:
			raise ValueError(f"Chunk size must be positive, got: {chunkSize}")
		return ServeConfig(
			root=path,
			mount=normalizeMount(mount),
			allowedExtensions=frozenset(
				normalizeExtension(_)
				for _ in (
					DEFAULT_ALLOWED if allowedExtensions is None else allowedExtensions
				)
			),
			cacheControl=cacheControl,
			etag=etag,
			lastModified=lastModified,
			secret=secret.encode("utf8") if isinstance(secret, str) else secret,
			allow=None if allow is None else tuple(pattern(_) for _ in allow),
			deny=None if deny is None else tuple(pattern(_) for _ in deny),
			indexFilenames=tuple(indexFilenames),
			environment=(
				environment
				if isinstance(environment, Environment)
				else Environment.Parse(environment)
			),
			debug=debug,
			detailedRejections=detailedRejections,
			chunkSize=chunkSize,
		)

	@property
	def isProduction(self) -> bool:
		return self.environment is Environment.Production

	@property
	def isSigned(self) -> bool:
		return self.secret is not None


# -----------------------------------------------------------------------------
#
# REQUEST-SCOPED VALUES
#
# -----------------------------------------------------------------------------


class ResolvedTarget(NamedTuple):
	"""A regular file confirmed to lie under the root. Computed per request,
	never cached."""

	path: str
	isIndex: bool = False


class FileStat(NamedTuple):
	"""Size and modification time, read fresh for every request."""

	size: int
	mtime: float

	@staticmethod
	def FromPath(path: str) -> "FileStat":
		st = os.stat(path)
		return FileStat(st.st_size, st.st_mtime)


# -----------------------------------------------------------------------------
#
# REJECTIONS
#
# -----------------------------------------------------------------------------


class Rejection(Enum):
	"""Reasons for which a handler does not produce a response and lets the
	next one in the chain try."""

	NotMounted = "not-mounted"
	BadEncoding = "bad-encoding"
	Traversal = "traversal"
	NotFound = "not-found"
	Extension = "extension"
	Denied = "denied"
	NotAllowed = "not-allowed"
	Method = "method"

	@property
	def status(self) -> int:
		"""The status used when rejections are reported in detail."""
		return REJECTION_STATUS[self]


REJECTION_STATUS: dict[Rejection, int] = {
	Rejection.NotMounted: 404,
	Rejection.BadEncoding: 400,
	Rejection.Traversal: 403,
	Rejection.NotFound: 404,
	Rejection.Extension: 403,
	Rejection.Denied: 403,
	Rejection.NotAllowed: 403,
	Rejection.Method: 405,
}


# -----------------------------------------------------------------------------
#
# HANDLERS
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class Handler(ABC):
	"""A handler either produces a response, or rejects the request so that
	the next handler in the chain gets a chance to process it."""

	@abstractmethod
	def handle(self, request: HTTPRequest) -> HTTPResponse | Rejection: ...

	@property
	def defaultFallback(self) -> "Fallback":
		"""The fallback to use when this handler is the last of a chain."""
		return Fallback()

	def process(self, request: HTTPRequest) -> HTTPResponse | None:
		res = self.handle(request)
		return None if isinstance(res, Rejection) else res


class FunctionHandler(Handler):
	"""Wraps a plain function returning a response, or `None` when it does
	not apply."""

	def __init__(self, functor: Callable[[HTTPRequest], HTTPResponse | None]):
		self.functor = functor

	def handle(self, request: HTTPRequest) -> HTTPResponse | Rejection:
		res = self.functor(request)
		return Rejection.NotFound if res is None else res


@mypyc_attr(allow_interpreted_subclasses=True)
class Fallback:
	"""Produces the response when no handler accepted the request."""

	def respond(self, request: HTTPRequest, rejection: Rejection) -> HTTPResponse:
		return request.notFound()


class DetailedFallback(Fallback):
	"""Reports the rejection cause through the status code, which is useful
	when debugging a deployment."""

	STATUS: ClassVar[dict[int, Callable[[HTTPRequest], HTTPResponse]]] = {
		400: lambda r: r.badRequest(),
		403: lambda r: r.forbidden(),
		405: lambda r: r.notAllowed(),
	}

	def respond(self, request: HTTPRequest, rejection: Rejection) -> HTTPResponse:
		factory = self.STATUS.get(rejection.status)
		return factory(request) if factory else request.notFound()


class Chain(Handler):
	"""Tries each handler in order, the first response wins. When every
	handler rejects the request, the fallback responds."""

	def __init__(self, *handlers: Handler, fallback: Fallback | None = None):
		self.handlers: list[Handler] = list(handlers)
		self.fallback: Fallback = fallback or (
			handlers[0].defaultFallback if handlers else Fallback()
		)

	def handle(self, request: HTTPRequest) -> HTTPResponse | Rejection:
		rejection: Rejection = Rejection.NotMounted
		for handler in self.handlers:
			res = handler.handle(request)
			if isinstance(res, Rejection):
				# The most relevant cause is the one given by a handler
				# that claimed the path.
				if res is not Rejection.NotMounted:
					rejection = res
			else:
				return res
		return rejection

	def process(self, request: HTTPRequest) -> HTTPResponse:
		res = self.handle(request)
		return (
			self.fallback.respond(request, res) if isinstance(res, Rejection) else res
		)


# EOF
