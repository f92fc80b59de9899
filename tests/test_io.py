from minifetch.utils.io import LineParser


def lines(*chunks: bytes) -> list[bytes]:
	parser = LineParser()
	res: list[bytes] = []
	for chunk in chunks:
		offset: int = 0
		while offset < len(chunk):
			line, read = parser.feed(chunk, offset)
			offset += read
			if line is not None:
				res.append(line)
	return res


def test_lines() -> None:
	assert lines(
		b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close",
		b"\r\n\r",
		b"\n",
	) == [b"GET /time/5 HTTP/1.1", b"Host: 127.0.0.1", b"Connection: close", b""]


def test_split_delimiter() -> None:
	assert lines(b"abc\r", b"\ndef\r", b"\n") == [b"abc", b"def"]


def test_read_counts() -> None:
	parser = LineParser()
	assert parser.feed(b"ab") == (None, 2)
	assert parser.pending == 2
	line, read = parser.feed(b"c\r\nrest", 0)
	assert line == b"abc"
	assert read == 3
	assert parser.pending == 0


# EOF
