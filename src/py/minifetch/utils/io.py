DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"
EOL_SIZE: int = len(EOL)


class LineParser:
	"""Accumulates fragments until an end of line delimiter is found. The
	parser only consumes bytes up to (and including) the delimiter, so that
	the caller can feed the rest of the chunk to the next parser."""

	__slots__ = ["buffer", "offset"]

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()
		self.offset: int = 0

	def reset(self) -> "LineParser":
		self.buffer.clear()
		self.offset = 0
		return self

	@property
	def pending(self) -> int:
		"""The number of bytes accumulated without a delimiter."""
		return len(self.buffer)

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line (without the delimiter) and how many
		bytes were read in chunk from start. When line is None, then the
		whole chunk has been consumed."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(EOL, self.offset)
		if end == -1:
			# The delimiter may straddle two chunks
			self.offset = max(0, len(self.buffer) - EOL_SIZE + 1)
			return None, len(chunk) - start
		else:
			line = bytes(self.buffer[:end])
			self.buffer.clear()
			self.offset = 0
			return line, (end - pos) + EOL_SIZE


# EOF
