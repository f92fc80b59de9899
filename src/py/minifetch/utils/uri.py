from typing import Any
from urllib.parse import quote, urlsplit

from ..config import DEFAULT_PORTS
from ..http.model import InvalidURL

# Characters left as-is when quoting, so that already encoded URLs
# are not encoded twice.
SAFE_PATH: str = "/%:@!$&'()*+,;=-._~"
SAFE_QUERY: str = SAFE_PATH + "?"


class URI:
	"""An absolute HTTP(S) URL, split into the parts needed to connect
	to the host and to write the request line."""

	__slots__ = (
		"scheme",
		"host",
		"port",
		"path",
		"query",
		"fragment",
	)

	@classmethod
	def Parse(cls, link: "URI|str") -> "URI":
		"""Parses the given URL, raising `InvalidURL` when it is not an
		absolute `http` or `https` URL."""
		if isinstance(link, URI):
			return link
		if not isinstance(link, str):
			raise InvalidURL(f"Expected a string, got: {link!r}")
		try:
			res = urlsplit(link.strip())
			port = res.port
		except ValueError as e:
			raise InvalidURL(f"Could not parse URL {link!r}: {e}") from e
		scheme = res.scheme.lower()
		if not scheme:
			raise InvalidURL(f"URL has no scheme: {link!r}")
		elif scheme not in DEFAULT_PORTS:
			raise InvalidURL(f"Unsupported scheme: {scheme}")
		host = res.hostname
		if not host:
			raise InvalidURL(f"URL has no host: {link!r}")
		elif not host.isascii():
			# Internationalized names are sent in their punycode form
			try:
				host = host.encode("idna").decode("ascii")
			except UnicodeError as e:
				raise InvalidURL(f"Invalid host name {host!r}: {e}") from e
		return URI(
			scheme=scheme,
			host=host,
			port=port,
			path=res.path,
			query=res.query or None,
			fragment=res.fragment or None,
		)

	def __init__(
		self,
		*,
		scheme: str,
		host: str,
		port: int | None = None,
		path: str | None = None,
		query: str | None = None,
		fragment: str | None = None,
	):
		self.scheme: str = scheme
		self.host: str = host
		self.port: int = DEFAULT_PORTS[scheme] if port is None else port
		self.path: str | None = path
		self.query: str | None = query
		self.fragment: str | None = fragment

	@property
	def ssl(self) -> bool:
		return self.scheme == "https"

	@property
	def target(self) -> str:
		"""The request target, which is the path and the query. The fragment
		is never sent."""
		path = quote(self.path or "/", safe=SAFE_PATH)
		return f"{path}?{quote(self.query, safe=SAFE_QUERY)}" if self.query else path

	@property
	def authority(self) -> str:
		"""The value of the `Host` header, the port is omitted when it's
		the default for the scheme."""
		host = f"[{self.host}]" if ":" in self.host else self.host
		return host if self.port == DEFAULT_PORTS[self.scheme] else f"{host}:{self.port}"

	def asDict(self) -> dict[str, Any]:
		return {
			k: v
			for k, v in dict(
				scheme=self.scheme,
				host=self.host,
				port=self.port,
				path=self.path,
				query=self.query,
				fragment=self.fragment,
			).items()
			if v is not None
		}

	def __eq__(self, other: Any) -> bool:
		if isinstance(other, str):
			return str(self) == other
		elif isinstance(other, URI):
			return self.asDict() == other.asDict()
		else:
			return False

	def __repr__(self) -> str:
		return f"URI({' '.join(f'{k}={v}' for k, v in self.asDict().items())})"

	def __str__(self) -> str:
		res: list[str] = [self.scheme, "://", self.authority, self.target]
		if self.fragment:
			res.append("#")
			res.append(self.fragment)
		return "".join(res)


# EOF
