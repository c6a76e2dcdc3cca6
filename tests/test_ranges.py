import pytest

from staticmedia.http.ranges import ByteRange, parseRange, parseRanges


def test_single():
	r = parseRange("bytes=0-4", 10)
	assert r == ByteRange(0, 4, 10)
	assert r.length == 5
	assert r.contentRange == "bytes 0-4/10"


def test_open_ended():
	assert parseRange("bytes=5-", 10) == ByteRange(5, 9, 10)


def test_suffix():
	assert parseRange("bytes=-3", 10) == ByteRange(7, 9, 10)
	# Suffixes longer than the representation cover all of it
	assert parseRange("bytes=-30", 10) == ByteRange(0, 9, 10)


def test_clamped():
	assert parseRange("bytes=8-100", 10) == ByteRange(8, 9, 10)


def test_whitespace_and_unit_case():
	assert parseRange("Bytes = 1-2 ", 10) == ByteRange(1, 2, 10)


@pytest.mark.parametrize(
	"header",
	[
		None,
		"",
		"bytes",
		"items=0-4",
		"bytes=abc",
		"bytes=a-4",
		"bytes=4-2",
		"bytes=-",
		"bytes=0-4,",
		"bytes=١-٤",
	],
)
def test_malformed(header: str | None):
	assert parseRanges(header, 10) is None
	assert parseRange(header, 10) is None


def test_unsatisfiable():
	assert parseRanges("bytes=10-20", 10) == []
	assert parseRanges("bytes=-0", 10) == []
	assert parseRanges("bytes=0-0", 0) == []
	assert parseRange("bytes=10-", 10) is None


def test_multiple():
	ranges = parseRanges("bytes=0-1,4-5", 10)
	assert ranges == [ByteRange(0, 1, 10), ByteRange(4, 5, 10)]
	# Only single ranges are served
	assert parseRange("bytes=0-1,4-5", 10) is None
	# Unsatisfiable parts are skipped
	assert parseRange("bytes=0-1,40-50", 10) == ByteRange(0, 1, 10)


def test_overlapping_beyond_size():
	assert parseRanges("bytes=0-9,0-9", 10) == []


def test_oversized_bounds():
	assert parseRanges("bytes=" + "9" * 5000 + "-", 10) is None
	assert parseRanges("bytes=0-" + "9" * 5000, 10) is None
	assert parseRanges("bytes=-" + "9" * 20, 10) is None
	assert parseRange("bytes=0-" + "9" * 19, 10) == ByteRange(0, 9, 10)


# EOF
