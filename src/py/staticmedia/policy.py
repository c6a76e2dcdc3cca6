import hashlib
import hmac
import re
import time

from .http.model import HTTPRequest
from .model import Rejection, ResolvedTarget, ServeConfig, matchesAny
from .utils.files import extension

# --
# == Access policy
#
# Decides whether a resolved file may be served. Every check but the
# signature one rejects by falling through to the next handler; a failed
# signature is a definitive denial.

SERVED_METHODS: frozenset[str] = frozenset(("GET", "HEAD"))
EXPIRES: re.Pattern[str] = re.compile(r"[0-9]{1,19}")
# Hex-encoded SHA-256 digest
SIGNATURE: re.Pattern[str] = re.compile(r"[0-9A-Fa-f]{64}")


def isAllowedExtension(config: ServeConfig, target: ResolvedTarget) -> bool:
	"""Index files are served whatever their extension."""
	return target.isIndex or extension(target.path) in config.allowedExtensions


def check(
	config: ServeConfig, target: ResolvedTarget, method: str
) -> Rejection | None:
	"""Applies the extension, deny, allow and method checks in that order,
	returning the first rejection."""
	if not isAllowedExtension(config, target):
		return Rejection.Extension
	if config.deny and matchesAny(config.deny, target.path):
		return Rejection.Denied
	if config.allow and not matchesAny(config.allow, target.path):
		return Rejection.NotAllowed
	if method not in SERVED_METHODS:
		return Rejection.Method
	return None


# -----------------------------------------------------------------------------
#
# SIGNATURES
#
# -----------------------------------------------------------------------------


def sign(secret: str | bytes, path: str, expires: int | str) -> str:
	"""Returns the hex-encoded `HMAC-SHA256(secret, path + expires)`."""
	key = secret.encode("utf8") if isinstance(secret, str) else secret
	return hmac.new(
		key, f"{path}{expires}".encode("utf8"), hashlib.sha256
	).hexdigest()


def verify(
	secret: str | bytes,
	path: str,
	sig: str | None,
	exp: str | None,
	*,
	now: float | None = None,
) -> bool:
	"""Tells if `sig` is the valid signature of `path` for the not yet
	expired `exp` timestamp. The comparison is done in constant time."""
	if not sig or not exp:
		return False
	if not EXPIRES.fullmatch(exp) or not SIGNATURE.fullmatch(sig):
		return False
	if int(time.time() if now is None else now) > int(exp):
		return False
	expected = sign(secret, path, exp)
	return hmac.compare_digest(expected.encode("ascii"), sig.encode("ascii"))


def isSigned(
	config: ServeConfig,
	target: ResolvedTarget,
	request: HTTPRequest,
	*,
	now: float | None = None,
) -> bool:
	"""Checks the `sig` and `exp` query parameters of the request. Always
	true when no secret is configured."""
	if config.secret is None:
		return True
	return verify(
		config.secret,
		target.path,
		request.param("sig"),
		request.param("exp"),
		now=now,
	)


def signedQuery(
	secret: str | bytes, path: str, ttl: int, *, now: float | None = None
) -> dict[str, str]:
	"""Returns the `sig` and `exp` query parameters granting access to the
	given filesystem path for `ttl` seconds."""
	exp = str(int(time.time() if now is None else now) + ttl)
	return {"sig": sign(secret, path, exp), "exp": exp}


# EOF
