from typing import Iterator

from ..http.model import HTTPProcessingStatus, HTTPRequest
from ..http.parser import HTTPParser
from ..model import Fallback, Handler
from . import Bridge, chain

BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)


class PythonBridge(Bridge):
	"""Processes raw HTTP requests in-process, which is what tests and
	embedding code use to talk to handlers without a socket."""

	def request(self, payload: bytes) -> Iterator[bytes]:
		"""Parses the (possibly pipelined) requests in `payload` and yields
		the bytes of their responses."""
		parser = HTTPParser()
		for atom in parser.feed(payload):
			if isinstance(atom, HTTPRequest):
				response = self.process(atom)
				try:
					yield response.head()
					yield from response.chunks()
				finally:
					response.close()
			elif atom is HTTPProcessingStatus.BadFormat:
				yield BAD_REQUEST
				break


def run(*handlers: Handler, fallback: Fallback | None = None) -> PythonBridge:
	"""Returns an in-process bridge to the given handlers."""
	return PythonBridge(chain(*handlers, fallback=fallback))


# EOF
