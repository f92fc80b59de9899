from contextlib import aclosing
from typing import Any, AsyncGenerator

from .config import READ_BUFFER
from .connection import Channel, connect
from .http.model import (
	HTTPAtom,
	HTTPError,
	HTTPMethod,
	HTTPRequest,
	HTTPResponse,
	THeaders,
)
from .http.parser import HTTPParser
from .utils.logging import debug, logged, warning
from .utils.uri import URI

# --
# An async HTTP/1.1 client that performs exactly one request per
# connection. Nothing is shared between requests, so concurrent calls
# are independent from each other.


class HTTPClient:
	@classmethod
	async def OnRequest(
		cls,
		request: HTTPRequest,
		channel: Channel,
		*,
		buffer: int = READ_BUFFER,
	) -> AsyncGenerator[HTTPAtom, None]:
		"""Low level function that writes the request on the channel and
		yields the atoms parsed from what is read back, the last one being
		the final response. Interim `1xx` responses are yielded as they
		come, followed by the atoms of the next response."""
		await channel.write(request.encode())
		if logged(debug):
			debug(
				"Request sent",
				Method=request.method.value,
				Target=request.target,
				Host=request.host,
				Length=len(request.body) if request.body else 0,
			)
		parser = HTTPParser(request.method)
		read_count: int = 0
		while not parser.isComplete:
			chunk = await channel.read(buffer)
			read_count += len(chunk)
			# An empty read is the end of stream, which either completes
			# the response or fails.
			for atom in parser.feed(chunk) if chunk else parser.eos():
				if isinstance(atom, HTTPResponse) and logged(debug):
					debug(
						"Response received",
						Status=atom.status,
						Read=read_count,
						Length=len(atom.raw) if atom.raw is not None else None,
					)
				yield atom
			if not chunk:
				break
			while parser.isInterim:
				# The final response follows on the same connection
				pending = bytes(parser.rest)
				parser = HTTPParser(request.method)
				for atom in parser.feed(pending):
					yield atom

	@classmethod
	async def Request(
		cls,
		method: HTTPMethod | str,
		url: URI | str,
		body: Any = None,
		*,
		headers: THeaders | None = None,
		buffer: int = READ_BUFFER,
	) -> AsyncGenerator[HTTPAtom, None]:
		"""Somewhat high level API to perform an HTTP request, yielding
		the status line, headers, body fragments and finally the response.
		The connection is closed when the generator ends or is closed."""
		uri = URI.Parse(url)
		# The request is built before connecting, so that serialization
		# errors don't open a connection.
		request = HTTPRequest.Create(method, uri.target, uri.authority, body, headers)
		try:
			async with connect(uri.host, uri.port, uri.ssl) as channel:
				async with aclosing(
					cls.OnRequest(request, channel, buffer=buffer)
				) as atoms:
					async for atom in atoms:
						yield atom
		except HTTPError as e:
			warning(
				"Request failed",
				Method=request.method.value,
				URL=str(uri),
				Error=e.__class__.__name__,
				Reason=e.message,
			)
			raise


async def fetch(
	method: HTTPMethod | str,
	url: URI | str,
	body: Any = None,
	*,
	headers: THeaders | None = None,
) -> HTTPResponse:
	"""Performs the request and returns the complete response, or raises
	an `HTTPError`. The connection is always closed when this returns,
	fails or is cancelled."""
	async with aclosing(
		HTTPClient.Request(method, url, body, headers=headers)
	) as atoms:
		async for atom in atoms:
			if isinstance(atom, HTTPResponse) and not atom.isInterim:
				return atom
	raise RuntimeError(f"Request ended without a response: {method} {url}")


# EOF
