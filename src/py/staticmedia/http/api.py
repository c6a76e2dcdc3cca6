from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses from a request.


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain",
		headers: dict[str, str] | None = None,
	) -> T:
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def badRequest(self, content: str = "Bad Request") -> T:
		return self.error(400, content=content)

	def notAuthorized(
		self,
		content: str = "Unauthorized",
		contentType: str = "text/plain",
		*,
		status: int = 401,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.error(
			status, content=content, contentType=contentType, headers=headers
		)

	def forbidden(self, content: str = "Forbidden") -> T:
		return self.error(403, content=content)

	def notFound(
		self,
		content: str = "Not Found",
		contentType: str = "text/plain",
		*,
		status: int = 404,
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def notAllowed(self, allowed: str = "GET, HEAD") -> T:
		return self.error(
			405, content="Method Not Allowed", headers={"Allow": allowed}
		)

	def notModified(self, headers: dict[str, str] | None = None) -> T:
		"""A `304` carries the validators and caching headers, never a body."""
		return self.respond(content=None, status=304, headers=headers)

	def fail(
		self,
		content: str | None = None,
		*,
		status: int = 500,
		contentType: str = "text/plain",
		headers: dict[str, str] | None = None,
	) -> T:
		return self.error(
			status, content=content, contentType=contentType, headers=headers
		)

	def respondText(
		self,
		content: str | bytes,
		contentType: str = "text/plain",
		status: int = 200,
	) -> T:
		return self.respond(content=content, contentType=contentType, status=status)

	def respondFile(
		self,
		body: Any,
		headers: dict[str, str],
		*,
		status: int = 200,
		head: bool = False,
	) -> T:
		"""Responds with the given file body. HEAD responses keep every
		header (including `Content-Length`) but carry no body."""
		return self.respond(
			content=None if head else body, status=status, headers=headers
		)


# EOF
