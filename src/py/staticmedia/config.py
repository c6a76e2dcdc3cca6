from os import getenv

from .model import Environment
from .utils.io import DEFAULT_ENCODING  # NOQA: F401

PORT: int = int(getenv("PORT", 8000))

# The server is meant to run in containers, where it needs to be reachable
# from outside.
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

ENVIRONMENT: Environment = Environment.Parse(getenv("STATICMEDIA_ENV"))

DEBUG: bool = getenv("STATICMEDIA_DEBUG", "0") == "1"

SECRET: str | None = getenv("STATICMEDIA_SECRET") or None

LOG_REQUESTS: bool = getenv("LOG_REQUESTS", "1") == "1"

# EOF
