import os.path
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import (
	Any,
	BinaryIO,
	Callable,
	Iterator,
	Literal,
	NamedTuple,
	TypeAlias,
	TypeVar,
)

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .status import HTTP_STATUS

T = TypeVar("T")

# Size of the chunks read from files when streaming a response body
CHUNK_SIZE: int = 8_192

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a body held in memory as bytes."""

	payload: bytes = b""
	length: int = 0

	def close(self) -> None:
		pass


class HTTPBodyFile:
	"""A body streamed from a file, optionally restricted to the byte range
	starting at `offset` and spanning `length` bytes.

	The file handle is owned by the body: it is released when the chunks
	are exhausted, when the consuming generator is closed (which is what
	happens when a client disconnects), or when `close()` is called on a
	body that was never streamed."""

	__slots__ = ["path", "offset", "length", "chunkSize", "file"]

	def __init__(
		self,
		path: Path | str,
		offset: int = 0,
		length: int | None = None,
		*,
		chunkSize: int = CHUNK_SIZE,
	):
		self.path: Path = Path(path)
		self.offset: int = offset
		self.length: int = (
			os.path.getsize(self.path) - offset if length is None else length
		)
		self.chunkSize: int = chunkSize
		self.file: BinaryIO | None = None

	def open(self) -> "HTTPBodyFile":
		"""Acquires the file handle, so that I/O errors surface before any
		byte of the response is sent."""
		if self.file is None:
			self.file = open(self.path, "rb")
			if self.offset:
				self.file.seek(self.offset)
		return self

	@property
	def isOpen(self) -> bool:
		return self.file is not None and not self.file.closed

	def chunks(self) -> Iterator[bytes]:
		"""Yields the body in chunks of at most `chunkSize` bytes. Reads are
		paced by the consumer: nothing is read ahead of what was asked."""
		self.open()
		try:
			remaining: int = self.length
			while remaining > 0 and self.file:
				chunk = self.file.read(min(self.chunkSize, remaining))
				if not chunk:
					break
				remaining -= len(chunk)
				yield chunk
		finally:
			self.close()

	def close(self) -> None:
		if self.file is not None:
			self.file.close()
			self.file = None

	def __str__(self) -> str:
		return f"HTTPBodyFile({self.path} {self.offset}+{self.length})"


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies. Subclasses implement `_writeBytes` for
	their transport."""

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile) -> bool:
		chunks = body.chunks()
		try:
			for chunk in chunks:
				await self._writeBytes(chunk, True)
		finally:
			# Closing the generator releases the file even when the
			# transport failed mid-stream.
			chunks.close()
			body.close()
		return True

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses. Requests are read-only once parsed."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@staticmethod
	def Create(
		method: str,
		path: str,
		query: dict[str, str] | None = None,
		headers: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		"""Creates a request from plain values, normalizing header names."""
		return HTTPRequest(
			method=method,
			path=path,
			query=query,
			headers=HTTPHeaders(
				{headername(k): v for k, v in headers.items()} if headers else {}
			),
			protocol=protocol,
		)

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	@property
	def isHead(self) -> bool:
		return self.method == "HEAD"

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def param(
		self,
		name: str,
		default: T | None = None,
		processor: Callable[[str | T | None], str | T | None] | None = None,
	) -> str | T | None:
		v = self.query.get(name, default) if self.query else default
		return processor(v) if processor else v

	@property
	def body(self) -> HTTPBodyBlob | None:
		return self._body

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
	]

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects. An explicit
		`Content-Length` header is kept as-is, which is how bodiless
		responses (HEAD, 304) advertise the size of the representation."""
		body: THTTPBody | None = None
		payload: bytes | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		elif isinstance(content, HTTPBodyFile):
			body = content
			contentLength = content.length
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if payload is not None:
			contentLength = len(payload)
			body = HTTPBodyBlob(payload, contentLength)
		updated: dict[str, str] = (
			{headername(k): v for k, v in headers.items()} if headers else {}
		)
		if contentType is not None:
			updated["Content-Type"] = contentType
		if contentLength is not None:
			updated["Content-Length"] = str(contentLength)
		elif body is None and "Content-Length" not in updated and status != 304:
			updated["Content-Length"] = "0"
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				updated,
				contentType=updated.get("Content-Type"),
				contentLength=(
					int(updated["Content-Length"])
					if "Content-Length" in updated
					else None
				),
			),
			body=body,
			protocol=protocol,
		)

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("latin-1")

	def chunks(self) -> Iterator[bytes]:
		"""Iterates over the body as bytes."""
		if isinstance(self.body, HTTPBodyBlob):
			if self.body.payload:
				yield self.body.payload
		elif isinstance(self.body, HTTPBodyFile):
			yield from self.body.chunks()

	def close(self) -> None:
		"""Releases any resource held by the body."""
		if self.body is not None:
			self.body.close()

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
