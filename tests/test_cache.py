from pathlib import Path

from staticmedia.cache import (
	httpdate,
	isNotModified,
	matchesETag,
	parseHTTPDate,
	validators,
	weakETag,
)
from staticmedia.model import FileStat, ServeConfig
from conftest import MTIME, request

STAT: FileStat = FileStat(10, MTIME + 0.75)


def test_weak_etag():
	assert weakETag(STAT) == f'W/"10-{MTIME}"'


def test_http_dates():
	assert httpdate(0) == "Thu, 01 Jan 1970 00:00:00 GMT"
	assert parseHTTPDate(httpdate(MTIME)) == MTIME
	assert parseHTTPDate("Wed, 21 Oct 2015 07:28:00 GMT") == 1445412480
	assert parseHTTPDate("not a date") is None
	assert parseHTTPDate("") is None
	assert parseHTTPDate(None) is None


def test_matches_etag():
	etag = weakETag(STAT)
	assert matchesETag(etag, etag)
	assert matchesETag(f'"other", {etag}', etag)
	assert not matchesETag('"other"', etag)
	assert not matchesETag(f'W/"10-{MTIME + 1}"', etag)


def test_validators(root: Path):
	config = ServeConfig.Make(root)
	assert validators(config, STAT) == {
		"ETag": weakETag(STAT),
		"Last-Modified": httpdate(MTIME),
	}
	config = ServeConfig.Make(root, etag=False, lastModified=False)
	assert validators(config, STAT) == {}


def test_if_none_match(root: Path):
	config = ServeConfig.Make(root)
	etag = weakETag(STAT)
	assert isNotModified(config, STAT, request("/", headers={"If-None-Match": etag}))
	assert not isNotModified(
		config, STAT, request("/", headers={"If-None-Match": '"stale"'})
	)
	# Disabled validators are never considered
	config = ServeConfig.Make(root, etag=False)
	assert not isNotModified(
		config, STAT, request("/", headers={"If-None-Match": etag})
	)


def test_if_modified_since(root: Path):
	config = ServeConfig.Make(root)

	def ims(value: str) -> bool:
		return isNotModified(
			config, STAT, request("/", headers={"If-Modified-Since": value})
		)

	# The fractional part of the modification time is ignored
	assert ims(httpdate(MTIME))
	assert ims(httpdate(MTIME + 10))
	assert not ims(httpdate(MTIME - 1))
	assert not ims("yesterday")


def test_etag_takes_precedence(root: Path):
	config = ServeConfig.Make(root)
	headers = {
		"If-None-Match": weakETag(STAT),
		"If-Modified-Since": "garbage",
	}
	assert isNotModified(config, STAT, request("/", headers=headers))


def test_no_conditions(root: Path):
	config = ServeConfig.Make(root)
	assert not isNotModified(config, STAT, request("/"))


# EOF
