import asyncio
from typing import Any, Callable

import pytest

from staticmedia.bridge.asgi import StaticMediaMiddleware, requestFromScope
from staticmedia.media import StaticMedia
from staticmedia.model import ServeConfig
from conftest import CONTENT

TMedia = Callable[..., StaticMedia]


def scope(path: str, method: str = "GET", **extra: Any) -> dict[str, Any]:
	res: dict[str, Any] = {
		"type": "http",
		"http_version": "1.1",
		"method": method,
		"path": path,
		"query_string": b"",
		"headers": [],
	}
	res.update(extra)
	return res


class Client:
	"""Records the messages sent by an ASGI application, and optionally
	disconnects after a given number of body messages."""

	def __init__(self, disconnectAfter: int | None = None):
		self.sent: list[dict[str, Any]] = []
		self.disconnectAfter = disconnectAfter
		self.disconnected = asyncio.Event()
		self.requested = False

	async def receive(self) -> dict[str, Any]:
		if not self.requested:
			self.requested = True
			return {"type": "http.request", "body": b"", "more_body": False}
		await self.disconnected.wait()
		return {"type": "http.disconnect"}

	async def send(self, message: dict[str, Any]) -> None:
		self.sent.append(message)
		if (
			self.disconnectAfter is not None
			and len(self.body) >= self.disconnectAfter
		):
			self.disconnected.set()
		# Lets the other tasks run, like a real transport would
		await asyncio.sleep(0)

	@property
	def start(self) -> dict[str, Any]:
		return self.sent[0]

	@property
	def body(self) -> list[dict[str, Any]]:
		return [_ for _ in self.sent if _["type"] == "http.response.body"]

	@property
	def headers(self) -> dict[bytes, bytes]:
		return dict(self.start["headers"])

	@property
	def content(self) -> bytes:
		return b"".join(_["body"] for _ in self.body)


def call(app: StaticMediaMiddleware, s: dict[str, Any], client: Client) -> Client:
	asyncio.run(app(s, client.receive, client.send))
	return client


async def upstream(scope, receive, send) -> None:
	await send({"type": "http.response.start", "status": 200, "headers": []})
	await send({"type": "http.response.body", "body": b"upstream"})


def test_request_from_scope():
	req = requestFromScope(
		scope(
			"/media/a b.png",
			raw_path=b"/media/a%20b.png",
			query_string=b"sig=ab&exp=1",
			headers=[(b"range", b"bytes=0-1"), (b"accept", b"a"), (b"accept", b"b")],
		)
	)
	assert req.path == "/media/a%20b.png"
	assert req.param("sig") == "ab"
	assert req.header("Range") == "bytes=0-1"
	assert req.header("Accept") == "a, b"
	# Without a raw path, the decoded path is encoded back
	assert requestFromScope(scope("/media/a b.png")).path == "/media/a%20b.png"


def test_serves(media: TMedia):
	app = StaticMediaMiddleware(upstream, media(chunkSize=4))
	client = call(app, scope("/media/hello.png"), Client())
	assert client.start["status"] == 200
	assert client.headers[b"content-type"] == b"image/png"
	assert client.headers[b"x-static-media"] == b"hit"
	assert [len(_["body"]) for _ in client.body] == [4, 4, 2, 0]
	assert client.body[-1]["more_body"] is False
	assert client.content == CONTENT


def test_range(root):
	app = StaticMediaMiddleware(None, ServeConfig.Make(root))
	client = call(
		app, scope("/media/hello.png", headers=[(b"range", b"bytes=0-4")]), Client()
	)
	assert client.start["status"] == 206
	assert client.headers[b"content-range"] == b"bytes 0-4/10"
	assert client.content == b"01234"


def test_delegates(media: TMedia):
	app = StaticMediaMiddleware(upstream, media())
	for path in ("/api", "/media/missing.png", "/media/notes.txt"):
		client = call(app, scope(path), Client())
		assert client.content == b"upstream"


def test_fallback(media: TMedia):
	client = call(StaticMediaMiddleware(None, media()), scope("/api"), Client())
	assert client.start["status"] == 404
	client = call(
		StaticMediaMiddleware(None, media(detailedRejections=True)),
		scope("/media/hello.png", "POST"),
		Client(),
	)
	assert client.start["status"] == 405
	assert client.headers[b"allow"] == b"GET, HEAD"


def test_disconnect(media: TMedia):
	client = Client(disconnectAfter=2)
	app = StaticMediaMiddleware(None, media(chunkSize=1))
	call(app, scope("/media/hello.png"), client)
	assert client.start["status"] == 200
	# Streaming stopped before the end of the file
	assert len(client.body) < len(CONTENT)
	assert all(_["more_body"] for _ in client.body)


def test_non_http_scopes(media: TMedia):
	seen: list[str] = []

	async def app(scope, receive, send) -> None:
		seen.append(scope["type"])

	middleware = StaticMediaMiddleware(app, media())
	asyncio.run(middleware({"type": "websocket"}, None, None))
	assert seen == ["websocket"]


def test_lifespan(media: TMedia):
	messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
	sent: list[dict[str, Any]] = []

	async def receive() -> dict[str, Any]:
		return messages.pop(0)

	async def send(message: dict[str, Any]) -> None:
		sent.append(message)

	middleware = StaticMediaMiddleware(None, media())
	asyncio.run(middleware({"type": "lifespan"}, receive, send))
	assert [_["type"] for _ in sent] == [
		"lifespan.startup.complete",
		"lifespan.shutdown.complete",
	]


def test_requires_media():
	with pytest.raises(ValueError):
		StaticMediaMiddleware(upstream)


# EOF
