import asyncio
from typing import Any, Awaitable, Callable, TypeAlias
from urllib.parse import quote

from ..http.model import HTTPRequest, HTTPResponse
from ..http.parser import parseQuery
from ..media import StaticMedia
from ..model import Handler, Rejection, ServeConfig
from ..utils.logging import debug, warning

# --
# == ASGI Bridge
#
# Places a handler in front of an ASGI application: requests the handler
# rejects are passed to the application untouched.

# SEE: https://asgi.readthedocs.io/en/latest/specs/main.html

TScope: TypeAlias = dict[str, Any]
TMessage: TypeAlias = dict[str, Any]
TReceive: TypeAlias = Callable[[], Awaitable[TMessage]]
TSend: TypeAlias = Callable[[TMessage], Awaitable[None]]
TApplication: TypeAlias = Callable[[TScope, TReceive, TSend], Awaitable[None]]


def requestFromScope(scope: TScope) -> HTTPRequest:
	"""Creates a request from an ASGI HTTP scope. The path is kept
	percent-encoded, as received, so that it is decoded exactly once."""
	raw: bytes | None = scope.get("raw_path")
	if raw:
		# Some servers include the query string in the raw path
		path = raw.decode("latin-1").split("?", 1)[0]
	else:
		path = quote(scope.get("path") or "/", safe="/")
	headers: dict[str, str] = {}
	for k, v in scope.get("headers") or ():
		name = k.decode("latin-1")
		value = v.decode("latin-1")
		headers[name] = f"{headers[name]}, {value}" if name in headers else value
	return HTTPRequest.Create(
		method=scope.get("method", "GET"),
		path=path,
		query=parseQuery((scope.get("query_string") or b"").decode("latin-1")),
		headers=headers,
		protocol=f"HTTP/{scope.get('http_version', '1.1')}",
	)


def responseStart(response: HTTPResponse) -> TMessage:
	return {
		"type": "http.response.start",
		"status": response.status,
		"headers": [
			(k.lower().encode("latin-1"), v.encode("latin-1"))
			for k, v in response.headers.headers.items()
		],
	}


async def streamResponse(response: HTTPResponse, send: TSend) -> None:
	"""Sends the response, one `http.response.body` message per chunk. The
	next chunk is only read once `send` returned."""
	await send(responseStart(response))
	chunks = response.chunks()
	try:
		for chunk in chunks:
			await send({"type": "http.response.body", "body": chunk, "more_body": True})
	finally:
		chunks.close()
	await send({"type": "http.response.body", "body": b"", "more_body": False})


async def waitDisconnect(receive: TReceive) -> TMessage:
	"""Reads the ASGI channel until the client disconnects. Request body
	messages are discarded."""
	while True:
		message = await receive()
		if message.get("type") == "http.disconnect":
			return message


async def sendResponse(response: HTTPResponse, receive: TReceive, send: TSend) -> bool:
	"""Streams the response while watching for a client disconnect, which
	cancels the streaming. Returns `False` when the client went away before
	the response was complete. The response is always closed."""
	writer = asyncio.ensure_future(streamResponse(response, send))
	watcher = asyncio.ensure_future(waitDisconnect(receive))
	try:
		done, pending = await asyncio.wait(
			{writer, watcher}, return_when=asyncio.FIRST_COMPLETED
		)
		for task in pending:
			task.cancel()
		await asyncio.gather(*pending, return_exceptions=True)
		if writer in done:
			# Propagates the errors raised while sending
			writer.result()
			return True
		return False
	finally:
		response.close()


async def lifespan(receive: TReceive, send: TSend) -> None:
	"""Acknowledges the lifespan protocol when there is no application to
	forward it to."""
	while True:
		message = await receive()
		kind = message.get("type")
		if kind == "lifespan.startup":
			await send({"type": "lifespan.startup.complete"})
		elif kind == "lifespan.shutdown":
			await send({"type": "lifespan.shutdown.complete"})
			return


class StaticMediaMiddleware:
	"""ASGI middleware serving static media. Non-HTTP scopes and the
	requests the handler rejects go to `app`. Without an application,
	rejected requests get the handler's fallback response."""

	def __init__(
		self,
		app: TApplication | None = None,
		media: StaticMedia | ServeConfig | Handler | None = None,
	):
		if media is None:
			raise ValueError("StaticMediaMiddleware requires a configuration or handler")
		self.app: TApplication | None = app
		self.media: Handler = (
			StaticMedia(media) if isinstance(media, ServeConfig) else media
		)

	async def __call__(self, scope: TScope, receive: TReceive, send: TSend) -> None:
		kind = scope.get("type")
		if kind != "http":
			if self.app:
				await self.app(scope, receive, send)
			elif kind == "lifespan":
				await lifespan(receive, send)
			else:
				warning("Unsupported ASGI scope", Type=kind)
			return
		request = requestFromScope(scope)
		res = self.media.handle(request)
		if isinstance(res, Rejection):
			if self.app:
				await self.app(scope, receive, send)
				return
			res = self.media.defaultFallback.respond(request, res)
		if not await sendResponse(res, receive, send):
			debug("Client disconnected", Method=request.method, Path=request.path)


# EOF
