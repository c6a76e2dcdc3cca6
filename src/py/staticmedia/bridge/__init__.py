from ..http.model import HTTPRequest, HTTPResponse
from ..model import Chain, Fallback, Handler


class Bridge:
	"""Base for the adapters exposing a chain of handlers through a
	transport."""

	def __init__(self, chain: Chain):
		self.chain: Chain = chain
		if not self.chain.handlers:
			raise ValueError("Bridge has not been given any handler")

	def process(self, request: HTTPRequest) -> HTTPResponse:
		return self.chain.process(request)


def chain(*handlers: Handler | Chain, fallback: Fallback | None = None) -> Chain:
	"""Wraps the given handlers in a chain, unless a single chain is given."""
	if len(handlers) == 1 and isinstance(handlers[0], Chain) and fallback is None:
		return handlers[0]
	return Chain(*handlers, fallback=fallback)


# EOF
