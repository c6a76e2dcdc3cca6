import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .bridge import chain
from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Chain, Fallback, Handler
from .utils.logging import debug, error, event, exception, info, logged, warning

# --
# == Development server
#
# A small asyncio server working on sockets directly. It supports keep-alive
# and pipelined requests, and streams file bodies chunk by chunk so that a
# slow client only ever holds one chunk in memory.


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	# Polling timeout for accepting new connections
	polling: float = 1.0
	readsize: int = 4_096
	keepalive: float = 60.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 21\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal server error"
)

# Errors raised when the client went away while we were writing
DISCONNECTED: tuple[type[Exception], ...] = (BrokenPipeError, ConnectionResetError)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Writes bodies to an AIO socket. Each chunk is fully sent before the
	next one is read from the file."""

	def __init__(self, client: "socket.socket", loop: asyncio.AbstractEventLoop):
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		handler: Chain,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Processes the requests sent on the `client` connection until it
		is closed, times out or asks not to be kept alive."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			while keep_alive:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				except DISCONNECTED:
					status = HTTPProcessingStatus.NoData
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				logged(debug) and debug(
					"Reading request(s)", Client=f"{id(client):x}", Read=n
				)
				# With HTTP pipelining, the payload may hold more than one
				# request.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Client=f"{id(client):x}")
						await cls.Send(writer, SERVER_BAD_REQUEST)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req = atom
						req_count += 1
						if options.logRequests:
							event(req.method, req.path)
						if (
							req.protocol == "HTTP/1.0"
							or (req.header("Connection") or "").lower() == "close"
						):
							keep_alive = False
						if await cls.SendResponse(req, handler, writer):
							res_count += 1
						else:
							keep_alive = False
							break
			if status is HTTPProcessingStatus.Timeout and req_count != res_count:
				warning(
					"Client timed out",
					Status=status.name,
					Requests=req_count,
					Responses=res_count,
				)
		except Exception as e:
			exception(e)
		finally:
			# Keep-alive is handled by the loop above, so we always close the
			# connection on exit.
			client.close()

	@staticmethod
	async def Send(writer: HTTPBodyWriter, payload: bytes) -> bool:
		try:
			await writer.write(payload)
			return True
		except DISCONNECTED:
			return False

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		handler: Chain,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request with the handler and sends the response
		using the given writer. Returns `None` when the connection can't be
		used anymore."""
		res: HTTPResponse | None = None
		sent: bool = False
		try:
			res = handler.process(request)
		except Exception as e:
			exception(e, f"Handler failed on {request.method} {request.path}")
			await AIOSocketServer.Send(writer, SERVER_ERROR)
			return None
		try:
			await writer.write(res.head())
			sent = True
			await writer.write(res.body)
		except DISCONNECTED:
			# Client did an early close
			debug("Client disconnected", Method=request.method, Path=request.path)
			return None
		except Exception as e:
			exception(e, f"Could not send response to {request.path}")
			if not sent:
				await AIOSocketServer.Send(writer, SERVER_ERROR)
			return None
		finally:
			res.close()
		return res

	@classmethod
	async def Serve(
		cls,
		handler: Chain,
		options: ServerOptions = OPTIONS,
	) -> None:
		"""Main server coroutine."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
			)
			server.close()
			raise e
		server.listen(options.backlog)
		# This is what we need to use it with asyncio
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()
		state = ServerState()
		# Signal handlers can only be set from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		info(
			"StaticMedia server listening",
			icon="🚀",
			Host=options.host,
			Port=options.port,
			Handlers=" ".join(str(_) for _ in handler.handlers),
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				task = loop.create_task(
					cls.OnRequest(handler, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	*handlers: Handler,
	fallback: Fallback | None = None,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to run the server."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(chain(*handlers, fallback=fallback), options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
