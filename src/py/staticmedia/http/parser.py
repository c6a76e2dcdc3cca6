from typing import Iterator, Literal, TypeAlias
from urllib.parse import unquote_plus

from ..utils.io import LineParser
from .model import (
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# Type alias for what the parser produces
HTTPAtom: TypeAlias = (
	HTTPRequestLine | HTTPHeaders | HTTPRequest | HTTPProcessingStatus
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# Stray CRLF between pipelined requests (RFC 9112 §2.2)
			return None, read
		else:
			ln = line.decode("latin-1")
			i = ln.find(" ")
			j = ln.rfind(" ")
			if i == -1 or i == j:
				return False, read
			p: list[str] = ln[i + 1 : j].split("?", 1)
			self.value = HTTPRequestLine(
				ln[0:i], p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
			)
			return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it's the name of the parsed header."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = None
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses the body of a request with ContentLength set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(b"".join(self.data), self.read)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool, int]:
		"""Returns `True` once the expected length has been read."""
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return self.read >= self.expected, to_read


class HTTPParser:
	"""A stateful, incremental HTTP/1.1 request parser. Chunks are fed as
	they arrive from the transport, and complete requests are yielded as
	soon as they are available, which supports pipelining."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.bodyLength.reset()
		self.parser = self.message
		self.requestLine = None
		self.requestHeaders = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			if self.parser is self.message:
				ok, read = self.message.feed(chunk, offset)
				offset += read
				if ok is False:
					yield HTTPProcessingStatus.BadFormat
					self.reset()
					return
				elif ok:
					self.requestLine = self.message.flush()
					if self.requestLine:
						yield self.requestLine
					self.parser = self.headers
			elif self.parser is self.headers:
				name, read = self.headers.feed(chunk, offset)
				offset += read
				if name is False:
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					if headers.contentLength is not None and headers.contentLength < 0:
						yield HTTPProcessingStatus.BadFormat
						self.reset()
						return
					if headers.contentLength:
						self.parser = self.bodyLength.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
					else:
						yield self.request(HTTPBodyBlob())
			else:
				done, read = self.bodyLength.feed(chunk, offset)
				offset += read
				if done:
					yield self.request(self.bodyLength.flush())

	def request(self, body: HTTPBodyBlob) -> HTTPRequest:
		"""Creates the request from what was parsed, and gets ready for the
		next one."""
		line = self.requestLine
		headers = self.requestHeaders
		self.parser = self.message.reset()
		self.requestLine = None
		self.requestHeaders = None
		if line is None:
			raise RuntimeError("Request line is missing")
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=headers or HTTPHeaders({}),
			protocol=line.protocol,
			body=body,
		)


def parseQuery(text: str) -> dict[str, str]:
	"""Parses a query string, decoding keys and values. The first
	occurrence of a repeated key wins."""
	res: dict[str, str] = {}
	for item in text.split("&"):
		if not item:
			continue
		kv = item.split("=", 1)
		key = unquote_plus(kv[0])
		if key not in res:
			res[key] = unquote_plus(kv[1]) if len(kv) > 1 else ""
	return res


# EOF
