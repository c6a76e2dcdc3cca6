from .http.model import HTTPRequest, HTTPResponse  # NOQA: F401
from .model import (  # NOQA: F401
	Chain,
	DetailedFallback,
	Environment,
	Fallback,
	FunctionHandler,
	Handler,
	Regex,
	Rejection,
	ServeConfig,
	Substring,
)
from .media import StaticMedia  # NOQA: F401
from .policy import sign, verify  # NOQA: F401
from .server import run  # NOQA: F401

# EOF
