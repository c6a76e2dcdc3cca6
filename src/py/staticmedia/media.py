import time
from typing import Callable
from urllib.parse import urlencode

from mypy_extensions import mypyc_attr

from . import policy
from .cache import isNotModified, validators
from .http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from .http.ranges import parseRange
from .model import (
	DetailedFallback,
	Fallback,
	FileStat,
	Handler,
	Rejection,
	ResolvedTarget,
	ServeConfig,
)
from .resolver import resolve
from .utils.files import contentType
from .utils.logging import debug, error, exception

# --
# == Static media
#
# The request goes through a linear chain of checks:
#
# ```
# MountMatch → Decode → Traverse-check → Exists → Extension → Deny → Allow
#   → Method → Signature → NotModified? → Range? → Stream
# ```
#
# Every step but the signature one rejects by delegating to the next
# handler. Internal errors are re-raised in development, and turned into a
# generic `500` in production.

HEADER: str = "X-Static-Media"

# Rejections that mean "not for this handler", which are never logged
SILENT: frozenset[Rejection] = frozenset((Rejection.NotMounted, Rejection.Method))


@mypyc_attr(allow_interpreted_subclasses=True)
class StaticMedia(Handler):
	"""Serves the files of a directory under a mount prefix, with
	conditional and range request support and optional signed URLs."""

	def __init__(
		self,
		config: ServeConfig,
		next: Handler | None = None,
		*,
		clock: Callable[[], float] = time.time,
	):
		self.config: ServeConfig = config
		self.next: Handler | None = next
		self.clock: Callable[[], float] = clock

	@property
	def defaultFallback(self) -> Fallback:
		return DetailedFallback() if self.config.detailedRejections else Fallback()

	def handle(self, request: HTTPRequest) -> HTTPResponse | Rejection:
		try:
			res = self.serve(request)
		except Exception as e:
			res = self.onError(request, e)
		# The next handler runs outside of the error policy
		if isinstance(res, Rejection) and self.next:
			return self.next.handle(request)
		return res

	def serve(self, request: HTTPRequest) -> HTTPResponse | Rejection:
		config = self.config
		target = resolve(config, request.path)
		if isinstance(target, Rejection):
			return self.reject(request, target)
		if rejection := policy.check(config, target, request.method):
			return self.reject(request, rejection)
		if not policy.isSigned(config, target, request, now=self.clock()):
			config.debug and debug("Invalid signature", forced=True, Path=request.path)
			return request.notAuthorized(headers={HEADER: "sig-fail"})
		return self.respond(request, target)

	def respond(self, request: HTTPRequest, target: ResolvedTarget) -> HTTPResponse:
		config = self.config
		stat = FileStat.FromPath(target.path)
		headers: dict[str, str] = {HEADER: "hit", "Accept-Ranges": "bytes"}
		if config.cacheControl:
			headers["Cache-Control"] = config.cacheControl
		headers.update(validators(config, stat))
		if isNotModified(config, stat, request):
			config.debug and debug("Not modified", forced=True, Path=request.path)
			return request.notModified(headers)
		headers["Content-Type"] = contentType(target.path)
		status: int = 200
		offset: int = 0
		length: int = stat.size
		if byteRange := parseRange(request.header("Range"), stat.size):
			status = 206
			offset, length = byteRange.start, byteRange.length
			headers["Content-Range"] = byteRange.contentRange
		headers["Content-Length"] = str(length)
		body = HTTPBodyFile(
			target.path, offset, length, chunkSize=config.chunkSize
		)
		if not request.isHead:
			body.open()
		config.debug and debug(
			"Serving",
			forced=True,
			Path=request.path,
			Status=status,
			Offset=offset,
			Length=length,
		)
		return request.respondFile(body, headers, status=status, head=request.isHead)

	def reject(self, request: HTTPRequest, rejection: Rejection) -> Rejection:
		if self.config.debug and rejection not in SILENT:
			debug("Delegating", forced=True, Reason=rejection.value, Path=request.path)
		return rejection

	def onError(self, request: HTTPRequest, e: Exception) -> HTTPResponse:
		"""Production deployments get a generic `500` that does not expose
		the filesystem layout, other deployments get the exception."""
		if self.config.debug:
			exception(e, f"Error while serving {request.path}")
		if self.config.isProduction:
			error("Internal error", 500, Error=e.__class__.__name__)
			return request.fail("StaticMedia error\n", headers={HEADER: "error"})
		raise e

	def signedURL(
		self, path: str, ttl: int = 3_600, *, now: float | None = None
	) -> str | None:
		"""Returns the given URL path with the `sig` and `exp` parameters
		granting access for `ttl` seconds, or `None` when the path does not
		resolve to a servable file."""
		if self.config.secret is None:
			raise ValueError("No signing secret is configured")
		target = resolve(self.config, path)
		if isinstance(target, Rejection) or policy.check(self.config, target, "GET"):
			return None
		query = policy.signedQuery(
			self.config.secret,
			target.path,
			ttl,
			now=self.clock() if now is None else now,
		)
		return f"{path}?{urlencode(query)}"

	def __repr__(self) -> str:
		return f"(StaticMedia {self.config.mount} → {self.config.root})"


# EOF
