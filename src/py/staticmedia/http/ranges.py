import re
from typing import NamedTuple

# --
# == Byte ranges
#
# Parses `Range: bytes=…` headers following RFC 9110 §14.1.2. Only single
# ranges are served: multiple ranges and unsatisfiable ranges make the
# caller fall back to the full representation.

# Bounds are capped to 19 digits, which covers any file size
DIGITS = re.compile(r"[0-9]{1,19}")


class ByteRange(NamedTuple):
	"""An inclusive byte range within a representation of `size` bytes."""

	start: int
	end: int
	size: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	@property
	def contentRange(self) -> str:
		return f"bytes {self.start}-{self.end}/{self.size}"


def parseRanges(header: str | None, size: int) -> list[ByteRange] | None:
	"""Returns the satisfiable ranges expressed in `header`, clamped to the
	given `size`. Returns `None` when the header is malformed, and an empty
	list when no range can be satisfied."""
	if not header:
		return None
	unit, sep, spec = header.partition("=")
	if not sep or unit.strip().lower() != "bytes":
		return None
	res: list[ByteRange] = []
	for item in spec.split(","):
		first, dash, last = item.strip().partition("-")
		first, last = first.strip(), last.strip()
		if (
			not dash
			or (first and not DIGITS.fullmatch(first))
			or (last and not DIGITS.fullmatch(last))
		):
			return None
		if not first:
			# Suffix range: the last N bytes
			if not last:
				return None
			suffix = int(last)
			if suffix == 0 or size == 0:
				continue
			res.append(ByteRange(max(0, size - suffix), size - 1, size))
		else:
			start = int(first)
			end = int(last) if last else size - 1
			if end < start:
				return None
			if start >= size:
				continue
			res.append(ByteRange(start, min(end, size - 1), size))
	# Ranges adding up to more than the representation are unsatisfiable
	if sum(_.length for _ in res) > size:
		return []
	return res


def parseRange(header: str | None, size: int) -> ByteRange | None:
	"""Returns the range to serve when `header` expresses exactly one
	satisfiable range, `None` otherwise."""
	ranges = parseRanges(header, size)
	return ranges[0] if ranges and len(ranges) == 1 else None


# EOF
