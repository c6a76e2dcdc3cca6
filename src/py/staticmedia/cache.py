import hmac
from datetime import timezone
from email.utils import formatdate, parsedate_to_datetime

from .http.model import HTTPRequest
from .model import FileStat, ServeConfig

# --
# == Conditional requests
#
# Validators are derived from the file stat on every request. The ETag is
# weak: two files with the same size and the same mtime (to the second)
# share it.


def weakETag(stat: FileStat) -> str:
	return f'W/"{stat.size}-{int(stat.mtime)}"'


def httpdate(timestamp: float) -> str:
	"""Formats the timestamp as an IMF-fixdate, like
	`Wed, 21 Oct 2015 07:28:00 GMT`."""
	return formatdate(int(timestamp), usegmt=True)


def parseHTTPDate(text: str | None) -> float | None:
	"""Parses an HTTP date, returning `None` when it can't be parsed."""
	if not text:
		return None
	try:
		date = parsedate_to_datetime(text.strip())
	except (TypeError, ValueError, IndexError, OverflowError):
		return None
	# HTTP dates are always in GMT
	return (
		date if date.tzinfo else date.replace(tzinfo=timezone.utc)
	).timestamp()


def matchesETag(header: str, etag: str) -> bool:
	"""Tells if any of the comma-separated entity tags of an `If-None-Match`
	header equals `etag`, comparing in constant time."""
	expected = etag.encode("utf8")
	found = False
	for candidate in header.split(","):
		if hmac.compare_digest(candidate.strip().encode("utf8"), expected):
			found = True
	return found


def validators(config: ServeConfig, stat: FileStat) -> dict[str, str]:
	"""Returns the `ETag` and `Last-Modified` headers enabled in the
	configuration."""
	res: dict[str, str] = {}
	if config.etag:
		res["ETag"] = weakETag(stat)
	if config.lastModified:
		res["Last-Modified"] = httpdate(stat.mtime)
	return res


def isNotModified(config: ServeConfig, stat: FileStat, request: HTTPRequest) -> bool:
	"""Tells if the client's cached copy is current. A matching ETag
	short-circuits before `If-Modified-Since` is looked at; an unparseable
	date is ignored."""
	if config.etag and (inm := request.header("If-None-Match")):
		if matchesETag(inm, weakETag(stat)):
			return True
	if config.lastModified and (ims := request.header("If-Modified-Since")):
		since = parseHTTPDate(ims)
		# `Last-Modified` has a one second resolution
		if since is not None and int(stat.mtime) <= since:
			return True
	return False


# EOF
