import asyncio
import re
from typing import Iterable

RE_CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\d+)\s*$", re.IGNORECASE | re.MULTILINE)

# --
# A local HTTP peer for the client tests. It records the requests it
# receives and answers with canned fragments, written one at a time so
# that the client reads them as separate chunks.


class Peer:
	def __init__(
		self,
		*fragments: bytes,
		close: bool = True,
		raw: bool = False,
	) -> None:
		self.fragments: Iterable[bytes] = fragments
		# When not closing, the peer waits for the client to close first
		self.close: bool = close
		# In raw mode, the peer doesn't wait for an HTTP request
		self.raw: bool = raw
		self.requests: list[bytes] = []
		self.connections: int = 0
		self.received: asyncio.Event = asyncio.Event()
		self.eof: asyncio.Event = asyncio.Event()
		self.server: asyncio.Server | None = None
		self.port: int = 0

	def url(self, path: str = "/", scheme: str = "http") -> str:
		return f"{scheme}://127.0.0.1:{self.port}{path}"

	async def handle(
		self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
	) -> None:
		self.connections += 1
		try:
			if self.raw:
				self.requests.append(await reader.read(4096))
			else:
				head = await reader.readuntil(b"\r\n\r\n")
				match = RE_CONTENT_LENGTH.search(head)
				body = await reader.readexactly(int(match.group(1))) if match else b""
				self.requests.append(head + body)
			self.received.set()
			for fragment in self.fragments:
				writer.write(fragment)
				await writer.drain()
				await asyncio.sleep(0.01)
			if not self.close:
				while await reader.read(4096):
					pass
				self.eof.set()
		except (asyncio.IncompleteReadError, ConnectionError):
			self.eof.set()
		finally:
			writer.close()

	async def __aenter__(self) -> "Peer":
		self.server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
		self.port = self.server.sockets[0].getsockname()[1]
		return self

	async def __aexit__(self, *args: object) -> None:
		if self.server:
			self.server.close()
			await self.server.wait_closed()


def unserialize(data: bytes) -> tuple[str, str, str, list[tuple[str, str]], bytes]:
	"""Parses a request back into its method, target, protocol, headers
	and body."""
	head, _, body = data.partition(b"\r\n\r\n")
	lines = head.decode("latin-1").split("\r\n")
	method, target, protocol = lines[0].split(" ")
	headers: list[tuple[str, str]] = []
	for line in lines[1:]:
		k, v = line.split(":", 1)
		headers.append((k, v.strip()))
	return method, target, protocol, headers, body


# EOF
