import asyncio
from typing import Callable, Literal

from staticmedia.http.model import HTTPBodyFile, HTTPBodyWriter, HTTPResponse
from staticmedia.media import StaticMedia
from staticmedia.model import Chain, FunctionHandler
from staticmedia.server import SERVER_ERROR, AIOSocketServer
from conftest import CONTENT, request

TMedia = Callable[..., StaticMedia]


class Writer(HTTPBodyWriter):
	"""Collects what is written, failing like a closed socket after
	`failAfter` writes."""

	def __init__(self, failAfter: int | None = None):
		self.written: list[bytes] = []
		self.failAfter = failAfter

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if self.failAfter is not None and len(self.written) >= self.failAfter:
			raise BrokenPipeError()
		if chunk:
			self.written.append(chunk)
		return True


class Recorder(Chain):
	"""Keeps the responses it produced, to check that they were closed."""

	def __init__(self, *args, **kwargs):
		super().__init__(*args, **kwargs)
		self.responses: list[HTTPResponse] = []

	def process(self, request):
		res = super().process(request)
		self.responses.append(res)
		return res


def test_send_response(media: TMedia):
	writer = Writer()
	chain = Recorder(media(chunkSize=3))
	res = asyncio.run(
		AIOSocketServer.SendResponse(request("/media/hello.png"), chain, writer)
	)
	assert res is not None and res.status == 200
	assert writer.written[0].startswith(b"HTTP/1.1 200 OK\r\n")
	assert b"".join(writer.written[1:]) == CONTENT


def test_client_disconnect(media: TMedia):
	writer = Writer(failAfter=2)
	chain = Recorder(media(chunkSize=1))
	res = asyncio.run(
		AIOSocketServer.SendResponse(request("/media/hello.png"), chain, writer)
	)
	assert res is None
	body = chain.responses[0].body
	assert isinstance(body, HTTPBodyFile)
	assert not body.isOpen


def test_handler_failure():
	def broken(req):
		raise RuntimeError("boom")

	writer = Writer()
	res = asyncio.run(
		AIOSocketServer.SendResponse(
			request("/api"), Chain(FunctionHandler(broken)), writer
		)
	)
	assert res is None
	assert writer.written == [SERVER_ERROR]


# EOF
