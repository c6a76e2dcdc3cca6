from typing import Callable

from staticmedia.http.model import HTTPResponse
from staticmedia.media import StaticMedia
from staticmedia.model import Chain, DetailedFallback, Fallback, FunctionHandler, Rejection
from conftest import CONTENT, body, request

TMedia = Callable[..., StaticMedia]


def test_first_response_wins(media: TMedia):
	chain = Chain(
		media(),
		FunctionHandler(lambda req: req.respondText("second")),
	)
	assert body(chain.process(request("/media/hello.png"))) == CONTENT
	assert body(chain.process(request("/api"))) == b"second"


def test_function_handler():
	handler = FunctionHandler(lambda req: None)
	assert handler.handle(request("/")) is Rejection.NotFound
	assert handler.process(request("/")) is None


def test_flat_fallback(media: TMedia):
	chain = Chain(media())
	assert isinstance(chain.fallback, Fallback)
	for path in ("/api", "/media/../outside.png", "/media/notes.txt", "/media/%zz"):
		res = chain.process(request(path))
		assert res.status == 404
	res = chain.process(request("/media/hello.png", "DELETE"))
	assert res.status == 404


def test_detailed_fallback(media: TMedia):
	chain = Chain(media(detailedRejections=True))
	assert isinstance(chain.fallback, DetailedFallback)

	def status(path: str, method: str = "GET") -> int:
		return chain.process(request(path, method)).status

	assert status("/api") == 404
	assert status("/media/%zz") == 400
	assert status("/media/../outside.png") == 403
	assert status("/media/notes.txt") == 403
	assert status("/media/missing.png") == 404
	res = chain.process(request("/media/hello.png", "PUT"))
	assert res.status == 405
	assert res.getHeader("Allow") == "GET, HEAD"


def test_explicit_fallback(media: TMedia):
	chain = Chain(media(), fallback=DetailedFallback())
	assert chain.process(request("/media/notes.txt")).status == 403


def test_most_relevant_rejection(media: TMedia):
	chain = Chain(
		StaticMedia(media().config._replace(mount="/other/")),
		media(),
		fallback=DetailedFallback(),
	)
	assert chain.handle(request("/media/notes.txt")) is Rejection.Extension
	assert chain.handle(request("/nowhere")) is Rejection.NotMounted


def test_nested_chains(media: TMedia):
	inner = Chain(media())
	outer = Chain(inner, FunctionHandler(lambda req: req.respondText("api")))
	assert body(outer.process(request("/api"))) == b"api"
	res = outer.process(request("/media/hello.png"))
	assert isinstance(res, HTTPResponse)
	assert body(res) == CONTENT


def test_empty_chain():
	assert Chain().process(request("/")).status == 404


# EOF
