from enum import Enum
from typing import ClassVar, Iterator, Literal

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPMethod,
	HTTPResponse,
	HTTPResponseLine,
	MalformedChunk,
	MalformedHeader,
	MalformedStatusLine,
	TruncatedBody,
	headername,
)

# Lines (status, headers, chunk sizes) longer than this are rejected
MAX_LINE: int = 64_000

PROTOCOLS: frozenset[str] = frozenset(("HTTP/1.0", "HTTP/1.1"))

HEXDIGITS: frozenset[int] = frozenset(b"0123456789abcdefABCDEF")


class ParseState(Enum):
	"""The states of the response parser, which only move forward."""

	AwaitingStatusLine = 0
	AwaitingHeaders = 1
	AwaitingBody = 2
	Complete = 3


class BodyFraming(Enum):
	"""How the end of the body is determined."""

	Empty = 0
	Length = 1
	Chunked = 2
	Close = 3


class StatusLineParser:
	"""Parses an HTTP response status line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPResponseLine | None = None

	def flush(self) -> HTTPResponseLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "StatusLineParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[HTTPResponseLine | None, int]:
		line, read = self.line.feed(chunk, start)
		if line is None:
			if self.line.pending > MAX_LINE:
				raise MalformedStatusLine(f"Status line exceeds {MAX_LINE} bytes")
			return None, read
		else:
			self.value = self.Parse(line)
			return self.value, read

	@staticmethod
	def Parse(line: bytes) -> HTTPResponseLine:
		"""Parses `HTTP/<version> <status> [<reason>]`."""
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError as e:
			raise MalformedStatusLine(f"Status line is not ASCII: {line!r}") from e
		parts = ln.split(" ", 2)
		if parts[0] not in PROTOCOLS:
			raise MalformedStatusLine(f"Unrecognized protocol version: {ln!r}")
		if len(parts) < 2 or not (parts[1].isascii() and parts[1].isdigit()):
			raise MalformedStatusLine(f"Invalid status code: {ln!r}")
		return HTTPResponseLine(
			parts[0], int(parts[1]), parts[2].strip() if len(parts) > 2 else ""
		)

	def __str__(self) -> str:
		return f"StatusLineParser({self.value})"


class HeadersParser:
	__slots__ = ["line", "headers", "contentType", "contentLength", "chunked", "last"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None
		self.chunked: bool = False
		self.last: str | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(
			self.headers, self.contentType, self.contentLength, self.chunked
		)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		self.chunked = False
		self.last = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it is the name of the header that
		was set."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			if self.line.pending > MAX_LINE:
				raise MalformedHeader(f"Header line exceeds {MAX_LINE} bytes")
			return None, read
		elif not line:
			return False, read
		# Header values are opaque bytes, Latin-1 maps them one to one
		ln: str = line.decode("latin-1")
		if ln[0] in " \t":
			# Obsolete line folding continues the previous header
			if self.last is None:
				raise MalformedHeader(f"Continuation line without header: {ln!r}")
			self.set(self.last, f"{self.headers[self.last]} {ln.strip()}")
			return self.last, read
		i = ln.find(":")
		name = ln[:i].strip() if i != -1 else ""
		if not name:
			raise MalformedHeader(f"Header line has no name or colon: {ln!r}")
		return self.set(headername(name), ln[i + 1 :].strip()), read

	def set(self, name: str, value: str) -> str:
		# The last value wins when headers are repeated
		self.headers[name] = value
		if name == "Content-Length":
			if not (value.isascii() and value.isdigit()):
				raise MalformedHeader(f"Invalid Content-Length: {value!r}")
			self.contentLength = int(value)
		elif name == "Content-Type":
			self.contentType = value
		elif name == "Transfer-Encoding":
			self.chunked = value.rsplit(",", 1)[-1].strip().lower() == "chunked"
		self.last = name
		return name

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses a body with Content-Length set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	@property
	def done(self) -> bool:
		return self.read >= self.expected

	def flush(self) -> bytes:
		res = b"".join(self.data)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		data = chunk[start : start + to_read]
		self.data.append(data)
		self.read += to_read
		return data, to_read

	def eos(self) -> bytes:
		raise TruncatedBody(
			f"Connection closed after {self.read} of {self.expected} body bytes"
		)


class ChunkState(Enum):
	Size = 0
	Data = 1
	DataEnd = 2
	Trailers = 3
	Done = 4


class BodyChunkedParser:
	"""Parses a body with `Transfer-Encoding: chunked`. Chunk extensions
	and trailers are consumed and discarded."""

	__slots__ = ["line", "state", "size", "read", "data"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.state: ChunkState = ChunkState.Size
		self.size: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	@property
	def done(self) -> bool:
		return self.state is ChunkState.Done

	def flush(self) -> bytes:
		res = b"".join(self.data)
		self.reset()
		return res

	def reset(self) -> "BodyChunkedParser":
		self.line.reset()
		self.state = ChunkState.Size
		self.size = 0
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		if self.state is ChunkState.Data:
			to_read: int = min(len(chunk) - start, self.size - self.read)
			data = chunk[start : start + to_read]
			self.data.append(data)
			self.read += to_read
			if self.read == self.size:
				self.state = ChunkState.DataEnd
			return data, to_read
		line, read = self.line.feed(chunk, start)
		if line is None:
			if self.line.pending > MAX_LINE:
				raise MalformedChunk(f"Chunk line exceeds {MAX_LINE} bytes")
		elif self.state is ChunkState.Size:
			self.size = self.ParseSize(line)
			self.read = 0
			self.state = ChunkState.Data if self.size else ChunkState.Trailers
		elif self.state is ChunkState.DataEnd:
			if line:
				raise MalformedChunk(f"Expected CRLF after chunk data, got: {line!r}")
			self.state = ChunkState.Size
		elif self.state is ChunkState.Trailers:
			if not line:
				self.state = ChunkState.Done
		return None, read

	def eos(self) -> bytes:
		raise TruncatedBody(
			f"Connection closed before the last chunk ({sum(len(_) for _ in self.data)} bytes read)"
		)

	@staticmethod
	def ParseSize(line: bytes) -> int:
		size = line.split(b";", 1)[0].strip()
		if not size or any(_ not in HEXDIGITS for _ in size):
			raise MalformedChunk(f"Invalid chunk size line: {line!r}")
		return int(size, 16)


class BodyRestParser:
	"""Consumes everything that is given to it, until the end of stream."""

	__slots__ = ["buffer"]

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()

	@property
	def done(self) -> bool:
		return False

	def flush(self) -> bytes:
		res = bytes(self.buffer)
		self.reset()
		return res

	def reset(self) -> "BodyRestParser":
		self.buffer.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		data = chunk[start:]
		self.buffer += data
		return data, len(data)

	def eos(self) -> bytes:
		return self.flush()


class HTTPParser:
	"""A stateful HTTP response parser. Fragments are given to `feed` as
	they are read from the connection, and `eos` is called once the
	connection reports the end of stream. Both produce atoms: the status
	line, the headers, body fragments and finally the response, which is
	only produced once the body framing has terminated. A parser handles
	a single response: after an interim `1xx` response, the next one is
	parsed by a new parser fed with `rest`."""

	NO_BODY_STATUS: ClassVar[frozenset[int]] = frozenset((204, 304))

	def __init__(self, method: HTTPMethod | str = HTTPMethod.GET) -> None:
		self.method: HTTPMethod = HTTPMethod.Parse(method)
		self.status: StatusLineParser = StatusLineParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.bodyChunked: BodyChunkedParser = BodyChunkedParser()
		self.bodyRest: BodyRestParser = BodyRestParser()
		self.body: BodyLengthParser | BodyChunkedParser | BodyRestParser | None = None
		self.state: ParseState = ParseState.AwaitingStatusLine
		self.framing: BodyFraming | None = None
		self.responseLine: HTTPResponseLine | None = None
		self.responseHeaders: HTTPHeaders | None = None
		self.response: HTTPResponse | None = None
		# Bytes received after the response was complete
		self.rest: bytearray = bytearray()

	@property
	def isComplete(self) -> bool:
		return self.state is ParseState.Complete

	@property
	def isInterim(self) -> bool:
		"""Tells if the complete response is an interim `1xx` one, in which
		case `rest` holds the beginning of the next response."""
		return self.response is not None and self.response.isInterim

	@classmethod
	def Framing(
		cls, method: HTTPMethod, status: int, headers: HTTPHeaders
	) -> BodyFraming:
		"""Determines how the body ends. Responses to `HEAD` and `1xx`,
		`204` and `304` responses have no body, even when they declare a
		length."""
		if (
			method is HTTPMethod.HEAD
			or 100 <= status < 200
			or status in cls.NO_BODY_STATUS
		):
			return BodyFraming.Empty
		elif headers.chunked:
			return BodyFraming.Chunked
		elif headers.get("Transfer-Encoding") is not None:
			# Encoded but not chunked, only the end of stream marks the end
			return BodyFraming.Close
		elif headers.contentLength is not None:
			return BodyFraming.Length
		else:
			return BodyFraming.Close

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size and self.state is not ParseState.Complete:
			if self.state is ParseState.AwaitingStatusLine:
				line, read = self.status.feed(chunk, offset)
				offset += read
				if line is not None:
					self.responseLine = self.status.flush()
					self.state = ParseState.AwaitingHeaders
					yield line
			elif self.state is ParseState.AwaitingHeaders:
				name, read = self.headers.feed(chunk, offset)
				offset += read
				if name is False:
					yield from self.onHeaders()
			elif self.body is not None:
				data, read = self.body.feed(chunk, offset)
				offset += read
				if data:
					yield HTTPBodyBlob.FromBytes(data)
				if self.body.done:
					yield self.complete(self.body.flush())
			else:
				raise RuntimeError(f"Parser has no body parser in state {self.state}")
		if offset < size:
			self.rest += chunk[offset:]

	def eos(self) -> Iterator[HTTPAtom]:
		"""Signals the end of stream, which completes close-delimited
		bodies and fails incomplete responses."""
		if self.state is ParseState.AwaitingStatusLine:
			if self.status.line.pending:
				raise MalformedStatusLine(
					f"Connection closed within the status line after {self.status.line.pending} bytes"
				)
			raise MalformedStatusLine("Connection closed without a response")
		elif self.state is ParseState.AwaitingHeaders:
			raise MalformedHeader("Connection closed before the end of headers")
		elif self.state is ParseState.AwaitingBody and self.body is not None:
			yield self.complete(self.body.eos())

	def onHeaders(self) -> Iterator[HTTPAtom]:
		headers = self.headers.flush()
		self.responseHeaders = headers
		yield headers
		status: int = self.responseLine.status if self.responseLine else 0
		self.framing = self.Framing(self.method, status, headers)
		if self.framing is BodyFraming.Empty:
			yield self.complete(None)
		elif self.framing is BodyFraming.Chunked:
			self.body = self.bodyChunked.reset()
			self.state = ParseState.AwaitingBody
		elif self.framing is BodyFraming.Length:
			self.body = self.bodyLength.reset(headers.contentLength or 0)
			self.state = ParseState.AwaitingBody
			if self.body.done:
				yield self.complete(self.body.flush())
		else:
			self.body = self.bodyRest.reset()
			self.state = ParseState.AwaitingBody

	def complete(self, raw: bytes | None) -> HTTPResponse:
		line = self.responseLine
		headers = self.responseHeaders
		if line is None or headers is None:
			raise RuntimeError("Response completed before its status line and headers")
		self.state = ParseState.Complete
		self.response = HTTPResponse(
			protocol=line.protocol,
			status=line.status,
			message=line.message,
			headers=headers,
			raw=raw,
		)
		return self.response

	def __str__(self) -> str:
		return f"HTTPParser({self.state.name} {self.framing})"


def parse(data: bytes, method: HTTPMethod | str = HTTPMethod.GET) -> HTTPResponse:
	"""Parses a whole response, the end of the data being the end of
	stream. Interim `1xx` responses are skipped."""
	parser = HTTPParser(method)
	pending: bytes = data
	while True:
		for _ in parser.feed(pending):
			pass
		if not parser.isInterim:
			break
		pending = bytes(parser.rest)
		parser = HTTPParser(method)
	for _ in parser.eos():
		pass
	if parser.response is None:
		raise RuntimeError(f"Parser ended without a response: {parser}")
	return parser.response


# EOF
