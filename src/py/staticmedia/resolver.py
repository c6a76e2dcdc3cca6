import os.path
import re
from urllib.parse import unquote

from .model import Rejection, ResolvedTarget, ServeConfig

# --
# == Path resolution
#
# Turns the path of a request URL into a regular file that is guaranteed to
# lie under the configured root. The containment check is done on the
# canonical path, after `.` and `..` segments have been collapsed, so that
# encoded forms (`%2e%2e`, `..%2f`) cannot sneak past it.

# A `%` must always introduce two hex digits
BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def isMounted(path: str, mount: str) -> bool:
	"""Tells if the path is the mount itself (`/media`) or lies under it
	(`/media/…`). The mount is expected to end with `/`."""
	return path == mount[:-1] or path.startswith(mount)


def relativePath(path: str, mount: str) -> str:
	"""Strips the mount prefix from the given (mounted) path."""
	return path[len(mount) :] if path.startswith(mount) else ""


def decodePath(text: str) -> str:
	"""Percent-decodes the given text exactly once, raising `ValueError` on
	malformed escapes or when the decoded bytes are not valid UTF-8."""
	if BAD_ESCAPE.search(text):
		raise ValueError(f"Malformed percent-encoding: {text!r}")
	# UnicodeDecodeError is a ValueError
	return unquote(text, encoding="utf-8", errors="strict")


def isInside(path: str, root: str) -> bool:
	"""Tells if the canonical `path` is `root` or lies under it. The
	comparison is case-insensitive only where the filesystem is."""
	p = os.path.normcase(path)
	r = os.path.normcase(root)
	return p == r or p.startswith(r if r.endswith(os.sep) else r + os.sep)


def safeJoin(root: str, relative: str) -> str | None:
	"""Joins the relative path to the root, returning the canonical result
	or `None` when it escapes the root."""
	candidate = os.path.abspath(os.path.join(root, relative.lstrip("/")))
	return candidate if isInside(candidate, root) else None


def probeIndex(directory: str, indexFilenames: tuple[str, ...]) -> str | None:
	"""Returns the first index file that exists as a regular file in the
	given directory."""
	for name in indexFilenames:
		path = os.path.join(directory, name)
		if os.path.isfile(path):
			return path
	return None


def resolve(config: ServeConfig, path: str) -> ResolvedTarget | Rejection:
	"""Resolves the (raw, still percent-encoded) request path against the
	configuration. A directory without index and a missing file are
	rejected the same way, so that the existence of directories does not
	leak."""
	if not isMounted(path, config.mount):
		return Rejection.NotMounted
	try:
		relative = decodePath(relativePath(path, config.mount))
	except ValueError:
		return Rejection.BadEncoding
	if "\0" in relative:
		return Rejection.BadEncoding
	local = safeJoin(config.root, relative)
	if local is None:
		return Rejection.Traversal
	if os.path.isdir(local):
		index = probeIndex(local, config.indexFilenames)
		if index is None:
			return Rejection.NotFound
		return ResolvedTarget(index, isIndex=True)
	elif os.path.isfile(local):
		return ResolvedTarget(
			local, isIndex=os.path.basename(local) in config.indexFilenames
		)
	else:
		return Rejection.NotFound


# EOF
