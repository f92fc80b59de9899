from .client import HTTPClient, fetch  # NOQA: F401
from .config import VERSION as __version__  # NOQA: F401
from .http.model import (  # NOQA: F401
	CapabilityUnavailable,
	HTTPConnectionError,
	HTTPError,
	HTTPHeaders,
	HTTPMethod,
	HTTPResponse,
	InvalidURL,
	MalformedChunk,
	MalformedHeader,
	MalformedResponse,
	MalformedStatusLine,
	SerializationError,
	TLSError,
	TruncatedBody,
)

# EOF
