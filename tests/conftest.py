import os
from pathlib import Path
from typing import Any, Callable

import pytest

from staticmedia.http.model import HTTPRequest, HTTPResponse
from staticmedia.media import StaticMedia
from staticmedia.model import ServeConfig

# Modification time given to every fixture file
MTIME: int = 1_700_000_000

# 10 bytes, so that ranges are easy to check
CONTENT: bytes = b"0123456789"


@pytest.fixture
def root(tmp_path: Path) -> Path:
	"""A media directory, with a sibling directory sharing its name as a
	prefix and a file outside of it."""
	media = tmp_path / "media"
	files: dict[str, bytes] = {
		"media/hello.png": CONTENT,
		"media/photo.JPG": b"jpeg",
		"media/notes.txt": b"notes",
		"media/.hidden": b"hidden",
		"media/private/secret.png": b"secret",
		"media/album/index.html": b"<html></html>",
		"media/album/cover.png": b"cover",
		"media/space name.png": b"space",
		"media/café.png": b"cafe",
		"media2/evil.png": b"evil",
		"outside.png": b"outside",
	}
	for name, data in files.items():
		path = tmp_path / name
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_bytes(data)
		os.utime(path, (MTIME, MTIME))
	(media / "empty").mkdir()
	return media


@pytest.fixture
def media(root: Path) -> Callable[..., StaticMedia]:
	"""Returns a factory of handlers serving `root`."""

	def factory(**options: Any) -> StaticMedia:
		clock = options.pop("clock", None)
		config = ServeConfig.Make(root, **options)
		return StaticMedia(config, clock=clock) if clock else StaticMedia(config)

	return factory


def request(
	path: str,
	method: str = "GET",
	headers: dict[str, str] | None = None,
	query: dict[str, str] | None = None,
) -> HTTPRequest:
	return HTTPRequest.Create(method, path, query, headers)


def body(response: HTTPResponse) -> bytes:
	try:
		return b"".join(response.chunks())
	finally:
		response.close()


# EOF
