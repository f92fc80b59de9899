import asyncio
import sys

from .client import fetch
from .http.model import HTTPError, HTTPMethod, HTTPResponse
from .utils.json import unjson
from .utils.logging import error, exception

USAGE: str = "Usage: minifetch [METHOD] URL [BODY]"


def body(value: str | None) -> object:
	"""Bodies given as valid JSON are sent as JSON, anything else as text."""
	if value is None:
		return None
	try:
		return unjson(value)
	except ValueError:
		return value


def output(response: HTTPResponse) -> None:
	sys.stderr.write(f"{response.protocol} {response.status} {response.message}\n")
	for k, v in response.headers.headers.items():
		sys.stderr.write(f"{k}: {v}\n")
	sys.stderr.flush()
	if response.body is not None:
		sys.stdout.write(response.body)
		sys.stdout.flush()


def main(args: list[str] | None = None) -> int:
	argv: list[str] = sys.argv[1:] if args is None else args
	method: HTTPMethod = HTTPMethod.GET
	if argv and argv[0].upper() in HTTPMethod.__members__:
		method = HTTPMethod.Parse(argv[0])
		argv = argv[1:]
	if not argv or len(argv) > 2:
		sys.stderr.write(f"{USAGE}\n")
		return 2
	url: str = argv[0]
	try:
		response = asyncio.run(fetch(method, url, body(argv[1] if len(argv) > 1 else None)))
	except HTTPError as e:
		error(e.message, e.__class__.__name__, URL=url)
		return 3
	except KeyboardInterrupt:
		return 130
	except Exception as e:
		raise exception(e, f"Unexpected failure fetching {url}")
	output(response)
	return 0 if response.isSuccess else 1


if __name__ == "__main__":
	sys.exit(main())

# EOF
