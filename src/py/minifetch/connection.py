import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, ClassVar, Protocol

from .config import READ_BUFFER
from .http.model import CapabilityUnavailable, HTTPConnectionError, TLSError
from .utils.logging import debug, warning

# --
# Opens the byte channel a single request is written to and its response
# read from. A channel is either plain or secure, both variants expose the
# same `read/write/close` capability.

# -----------------------------------------------------------------------------
#
# SSL
#
# -----------------------------------------------------------------------------

try:
	import ssl
except ImportError:  # Interpreter built without OpenSSL
	ssl = None  # type: ignore[assignment]

TLS_AVAILABLE: bool = ssl is not None

SSL_CLIENT_CONTEXT: "ssl.SSLContext|None" = (
	ssl.create_default_context(ssl.Purpose.SERVER_AUTH) if ssl is not None else None
)
if SSL_CLIENT_CONTEXT is not None:
	try:
		import certifi

		SSL_CLIENT_CONTEXT.load_verify_locations(certifi.where())
	except ImportError:
		# The system's default certificates are used
		pass


# -----------------------------------------------------------------------------
#
# CHANNELS
#
# -----------------------------------------------------------------------------


class Channel(Protocol):
	"""A duplex byte channel, exclusively owned by one request."""

	host: str
	port: int

	@property
	def secure(self) -> bool: ...

	async def read(self, size: int = READ_BUFFER) -> bytes: ...

	async def write(self, data: bytes) -> None: ...

	async def close(self) -> None: ...


async def closeWriter(writer: asyncio.StreamWriter, host: str, port: int) -> None:
	"""Closes the writer and waits for the transport to be closed, which
	includes the TLS shutdown on secure channels."""
	writer.close()
	try:
		await writer.wait_closed()
	except OSError as e:
		# The peer may already have reset the connection
		debug("Close failed", Host=host, Port=port, Reason=str(e))


@dataclass
class PlainChannel:
	"""A plaintext TCP channel."""

	host: str
	port: int
	reader: asyncio.StreamReader
	writer: asyncio.StreamWriter
	secure: ClassVar[bool] = False

	async def read(self, size: int = READ_BUFFER) -> bytes:
		"""Reads up to `size` bytes, an empty result denotes the end of
		stream."""
		try:
			return await self.reader.read(size)
		except OSError as e:
			raise HTTPConnectionError(
				f"Failed to read from {self.host}:{self.port}: {e}"
			) from e

	async def write(self, data: bytes) -> None:
		try:
			self.writer.write(data)
			await self.writer.drain()
		except OSError as e:
			raise HTTPConnectionError(
				f"Failed to write to {self.host}:{self.port}: {e}"
			) from e

	async def close(self) -> None:
		await closeWriter(self.writer, self.host, self.port)


@dataclass
class SecureChannel:
	"""A TCP channel upgraded to TLS. SSL failures while transmitting are
	reported as `TLSError`, other transport failures as
	`HTTPConnectionError`."""

	host: str
	port: int
	reader: asyncio.StreamReader
	writer: asyncio.StreamWriter
	version: str | None = None
	secure: ClassVar[bool] = True

	async def read(self, size: int = READ_BUFFER) -> bytes:
		try:
			return await self.reader.read(size)
		except ssl.SSLError as e:
			raise TLSError(f"TLS failure reading from {self.host}:{self.port}: {e}") from e
		except OSError as e:
			raise HTTPConnectionError(
				f"Failed to read from {self.host}:{self.port}: {e}"
			) from e

	async def write(self, data: bytes) -> None:
		try:
			self.writer.write(data)
			await self.writer.drain()
		except ssl.SSLError as e:
			raise TLSError(f"TLS failure writing to {self.host}:{self.port}: {e}") from e
		except OSError as e:
			raise HTTPConnectionError(
				f"Failed to write to {self.host}:{self.port}: {e}"
			) from e

	async def close(self) -> None:
		await closeWriter(self.writer, self.host, self.port)


# -----------------------------------------------------------------------------
#
# ESTABLISHMENT
#
# -----------------------------------------------------------------------------


async def establish(
	host: str, port: int, secure: bool = False
) -> PlainChannel | SecureChannel:
	"""Opens a channel to the given host and port. Secure channels are
	upgraded to TLS after the TCP connection is open, verifying the
	certificate against `host`. When TLS is not available, secure
	channels fail with `CapabilityUnavailable` before anything is opened."""
	if secure and (not TLS_AVAILABLE or SSL_CLIENT_CONTEXT is None):
		raise CapabilityUnavailable(
			f"TLS support is not available, can't connect securely to {host}:{port}"
		)
	try:
		reader, writer = await asyncio.open_connection(host, port)
	except OSError as e:
		warning("Connection failed", Host=host, Port=port, Reason=str(e))
		raise HTTPConnectionError(f"Failed to connect to {host}:{port}: {e}") from e
	if not secure:
		debug("Connected", Host=host, Port=port, Secure=False)
		return PlainChannel(host, port, reader, writer)
	try:
		await writer.start_tls(SSL_CLIENT_CONTEXT, server_hostname=host)
	except OSError as e:
		# SSL errors are OS errors too
		writer.close()
		warning("TLS handshake failed", Host=host, Port=port, Reason=str(e))
		raise TLSError(f"TLS handshake with {host}:{port} failed: {e}") from e
	except asyncio.CancelledError:
		writer.close()
		raise
	ssl_object = writer.get_extra_info("ssl_object")
	version: str | None = ssl_object.version() if ssl_object else None
	debug("Connected", Host=host, Port=port, Secure=True, Version=version)
	return SecureChannel(host, port, reader, writer, version)


@asynccontextmanager
async def connect(
	host: str, port: int, secure: bool = False
) -> AsyncIterator[PlainChannel | SecureChannel]:
	"""Scoped channel, closed on every exit path including cancellation."""
	channel = await establish(host, port, secure)
	try:
		yield channel
	finally:
		await channel.close()
		debug("Closed", Host=host, Port=port)


# EOF
