import asyncio
import sys

from minifetch import HTTPError, HTTPMethod, fetch
from minifetch.utils.logging import error, info

"""
HTTP Client Example

Performs a GET and a JSON POST request, each one on its own connection.

Usage:
    python basic_usage.py [BASE_URL]
    python basic_usage.py http://httpbin.org
    python basic_usage.py https://httpbin.org

Default: http://httpbin.org

Set MINIFETCH_LOG_LEVEL=info to see the response details.
"""


async def main(base: str) -> int:
	try:
		res = await fetch(HTTPMethod.GET, f"{base}/get")
		info(
			"GET response",
			Status=res.status,
			Success=res.isSuccess,
			ContentType=res.header("content-type"),
		)
		if res.body:
			print(res.body)

		res = await fetch(
			HTTPMethod.POST,
			f"{base}/post",
			{"name": "John Doe", "email": "john@example.com"},
		)
		info("POST response", Status=res.status, Length=res.header("Content-Length"))
		if res.body:
			print(res.body)
	except HTTPError as e:
		error(e.message, e.__class__.__name__)
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://httpbin.org")))

# EOF
