import re
from enum import Enum
from functools import lru_cache
from typing import (
	Any,
	ClassVar,
	Iterable,
	Mapping,
	NamedTuple,
	Protocol,
	TypeAlias,
	Union,
	runtime_checkable,
)

from ..config import USER_AGENT
from ..utils.io import DEFAULT_ENCODING, EOL
from ..utils.json import TJSON, json, unjson

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------

RE_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
RE_CHARSET = re.compile(r";\s*charset\s*=\s*\"?([^\s;\"]+)", re.IGNORECASE)
HEADERNAME_CACHE: int = 256


@lru_cache(maxsize=HEADERNAME_CACHE)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`, which is how headers
	are stored and looked up. Names are chosen by the peer, so the cache
	is bounded."""
	return "-".join(_.capitalize() for _ in name.lower().split("-"))


def charset(contentType: str | None, default: str = DEFAULT_ENCODING) -> str:
	"""Extracts the charset parameter of the given content type."""
	match = RE_CHARSET.search(contentType) if contentType else None
	return match.group(1).lower() if match else default


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPError(Exception):
	"""Base class of all the errors raised by the client."""

	def __init__(self, message: str):
		super().__init__(message)
		self.message: str = message


class InvalidURL(HTTPError, ValueError):
	"""The URL could not be parsed, or uses an unsupported scheme."""


class HTTPConnectionError(HTTPError, ConnectionError):
	"""The connection could not be established, or failed while
	transmitting (resolution, refusal, reset)."""


class TLSError(HTTPError):
	"""The TLS handshake or certificate validation failed."""


class CapabilityUnavailable(HTTPError):
	"""A secure transport was requested but TLS is not available."""


class SerializationError(HTTPError):
	"""The request body or headers could not be converted to bytes."""


class MalformedResponse(HTTPError):
	"""The response does not conform to the HTTP/1.1 grammar."""


class MalformedStatusLine(MalformedResponse):
	pass


class MalformedHeader(MalformedResponse):
	pass


class MalformedChunk(MalformedResponse):
	pass


class TruncatedBody(MalformedResponse):
	"""The channel was closed before the body was complete."""


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPMethod(Enum):
	GET = "GET"
	POST = "POST"
	PUT = "PUT"
	DELETE = "DELETE"
	HEAD = "HEAD"
	PATCH = "PATCH"
	OPTIONS = "OPTIONS"
	TRACE = "TRACE"

	@staticmethod
	def Parse(value: "HTTPMethod|str") -> "HTTPMethod":
		"""Returns the method matching the given name, raising `ValueError`
		for unknown methods."""
		return value if isinstance(value, HTTPMethod) else HTTPMethod(value.upper())

	@property
	def hasBody(self) -> bool:
		"""Tells if requests with this method are expected to carry a body."""
		return self in METHOD_HAS_BODY


METHOD_HAS_BODY: frozenset[HTTPMethod] = frozenset(
	(HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH)
)


class HTTPResponseLine(NamedTuple):
	"""Represents a response status line"""

	protocol: str
	status: int
	message: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response processing.
	Names are normalized with `headername`, and when a header is repeated
	the last value wins."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None
	chunked: bool = False

	def get(self, name: str, default: str | None = None) -> str | None:
		return self.headers.get(headername(name), default)


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes, with an optional
	content type."""

	payload: bytes = b""
	length: int = 0
	contentType: str | None = None

	@staticmethod
	def FromBytes(data: bytes, contentType: str | None = None) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data), contentType=contentType)


@runtime_checkable
class HTTPPayload(Protocol):
	"""Anything that can be turned into a request body and its content
	type."""

	def asPayload(self) -> HTTPBodyBlob: ...


class HTTPBody:
	"""Contains helpers to work with bodies."""

	@staticmethod
	def FromValue(value: Any) -> HTTPBodyBlob | None:
		"""Converts the given value to a body blob. Bytes are sent as-is
		without content type, strings as UTF-8 text, and any other value
		is encoded as JSON."""
		if value is None:
			return None
		elif isinstance(value, HTTPBodyBlob):
			return value
		elif isinstance(value, bytes) or isinstance(value, bytearray):
			return HTTPBodyBlob.FromBytes(bytes(value))
		elif isinstance(value, str):
			try:
				data = value.encode(DEFAULT_ENCODING)
			except UnicodeEncodeError as e:
				raise SerializationError(f"Could not encode text body: {e}") from e
			return HTTPBodyBlob.FromBytes(data, "text/plain; charset=utf-8")
		elif isinstance(value, HTTPPayload):
			blob = value.asPayload()
			if not isinstance(blob, HTTPBodyBlob):
				raise SerializationError(
					f"Payload {type(value).__name__} did not produce a body blob: {blob!r}"
				)
			return blob
		else:
			try:
				return HTTPBodyBlob.FromBytes(json(value), "application/json")
			except (TypeError, ValueError) as e:
				raise SerializationError(
					f"Could not serialize {type(value).__name__} body as JSON: {e}"
				) from e


# Type alias for what the parser would produce
HTTPAtom: TypeAlias = Union[
	HTTPResponseLine,
	HTTPHeaders,
	HTTPBodyBlob,
	"HTTPResponse",
]

THeaders: TypeAlias = Mapping[str, str] | Iterable[tuple[str, str]]

# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest:
	"""A request about to be written on a connection. Headers are kept as
	an ordered list of pairs, as they are written in that order."""

	__slots__ = ["method", "target", "host", "headers", "body", "protocol"]

	PROTOCOL: ClassVar[str] = "HTTP/1.1"

	@staticmethod
	def Create(
		method: HTTPMethod | str,
		target: str,
		host: str,
		body: Any = None,
		headers: THeaders | None = None,
	) -> "HTTPRequest":
		"""Factory method that converts the body and injects the
		headers required by the protocol. Caller-supplied headers
		always win over the injected ones."""
		m: HTTPMethod = HTTPMethod.Parse(method)
		blob: HTTPBodyBlob | None = HTTPBody.FromValue(body)
		if blob is None and m.hasBody:
			blob = HTTPBodyBlob()
		head: list[tuple[str, str]] = [
			(str(k), str(v))
			for k, v in (
				headers.items() if isinstance(headers, Mapping) else headers or ()
			)
		]
		names: set[str] = {headername(k) for k, _ in head}
		defaults: list[tuple[str, str | None]] = [
			("Host", host),
			("User-Agent", USER_AGENT),
			("Content-Type", blob.contentType if blob else None),
			("Content-Length", str(blob.length) if blob is not None else None),
			("Connection", "close"),
		]
		for k, v in defaults:
			if v is not None and k not in names:
				head.append((k, v))
		return HTTPRequest(
			m, target or "/", host, head, blob.payload if blob else None
		).validate()

	def __init__(
		self,
		method: HTTPMethod,
		target: str,
		host: str,
		headers: list[tuple[str, str]],
		body: bytes | None = None,
		protocol: str = PROTOCOL,
	):
		self.method: HTTPMethod = method
		self.target: str = target
		self.host: str = host
		self.headers: list[tuple[str, str]] = headers
		self.body: bytes | None = body
		self.protocol: str = protocol

	def header(self, name: str) -> str | None:
		"""Returns the last value of the given header."""
		key = headername(name)
		res: str | None = None
		for k, v in self.headers:
			if headername(k) == key:
				res = v
		return res

	def validate(self) -> "HTTPRequest":
		"""Ensures the request line and headers can be written as-is,
		raising `SerializationError` otherwise. Line breaks are never
		allowed in header values."""
		if (
			not self.target
			or not self.target.isascii()
			or any(_ in self.target for _ in " \r\n\0")
		):
			raise SerializationError(f"Invalid request target: {self.target!r}")
		for k, v in self.headers:
			if not RE_TOKEN.match(k):
				raise SerializationError(f"Invalid header name: {k!r}")
			if "\r" in v or "\n" in v or "\0" in v:
				raise SerializationError(f"Invalid value for header {k}: {v!r}")
			try:
				v.encode("latin-1")
			except UnicodeEncodeError as e:
				raise SerializationError(f"Header {k} value can't be encoded: {e}") from e
		return self

	def head(self) -> bytes:
		"""Serializes the request line and the headers, including the
		empty line that ends the head."""
		lines: list[bytes] = [
			f"{self.method.value} {self.target} {self.protocol}".encode("ascii")
		]
		for k, v in self.headers:
			lines.append(f"{k}: {v}".encode("latin-1"))
		lines.append(b"")
		lines.append(b"")
		return EOL.join(lines)

	def encode(self) -> bytes:
		"""Returns the exact bytes of the request."""
		return self.head() + self.body if self.body else self.head()

	def __str__(self) -> str:
		return f"Request({self.method.value} {self.target} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response as read from the connection. The body is `None`
	only when the response carries no body (`HEAD`, `1xx`, `204`, `304`)."""

	__slots__ = ["protocol", "status", "message", "headers", "raw", "body"]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str,
		headers: HTTPHeaders,
		raw: bytes | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str = message
		self.headers: HTTPHeaders = headers
		self.raw: bytes | None = raw
		self.body: str | None = None
		if raw is not None:
			encoding = charset(headers.contentType)
			try:
				self.body = raw.decode(encoding, "replace")
			except LookupError:
				self.body = raw.decode(DEFAULT_ENCODING, "replace")

	@property
	def isSuccess(self) -> bool:
		return 200 <= self.status < 300

	@property
	def isInterim(self) -> bool:
		"""Informational responses precede the final response on the same
		connection, except `101` which switches protocols."""
		return 100 <= self.status < 200 and self.status != 101

	def header(self, name: str) -> str | None:
		"""Returns the value of the given header, the lookup is
		case-insensitive."""
		return self.headers.get(name)

	def json(self) -> TJSON:
		"""Decodes the body as JSON, raising `ValueError` when it is not
		valid JSON."""
		if self.raw is None:
			raise ValueError(f"Response has no body: {self}")
		return unjson(self.raw)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers.headers})"


# EOF
