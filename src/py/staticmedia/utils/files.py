import mimetypes
from pathlib import Path

mimetypes.init()

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Overrides for extensions the platform MIME database gets wrong or misses
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	webp="image/webp",
	webm="video/webm",
	flac="audio/flac",
	mjs="text/javascript",
	wasm="application/wasm",
)


def extension(path: Path | str) -> str:
	"""Returns the lower-cased extension of the given path, with its leading
	dot, or an empty string."""
	name = Path(path).name
	i = name.rfind(".")
	return name[i:].lower() if i > 0 else ""


def contentType(path: Path | str, default: str = DEFAULT_CONTENT_TYPE) -> str:
	"""Guesses the content type from the given path"""
	ext = extension(path)
	return (
		res
		if (res := MIME_TYPES.get(ext[1:]))
		else mimetypes.guess_type(f"file{ext}")[0] or default
	)


# EOF
