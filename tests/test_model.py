from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import pytest
from peer import unserialize

from minifetch.config import USER_AGENT
from minifetch.http.model import (
	HEADERNAME_CACHE,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPMethod,
	HTTPRequest,
	HTTPResponse,
	SerializationError,
	headername,
)
from minifetch.http.parser import parse


class Color(Enum):
	Red = "red"


@dataclass
class Person:
	name: str
	color: Color


class Point(NamedTuple):
	x: int
	y: int


class Form:
	def asPayload(self) -> HTTPBodyBlob:
		return HTTPBodyBlob.FromBytes(b"a=1&b=2", "application/x-www-form-urlencoded")


def response(status: int, headers: dict[str, str] | None = None) -> HTTPResponse:
	return HTTPResponse("HTTP/1.1", status, "", HTTPHeaders(headers or {}), b"")


def test_headername() -> None:
	assert headername("content-length") == "Content-Length"
	assert headername("CONTENT-TYPE") == "Content-Type"
	assert headername("x-api-key") == "X-Api-Key"
	assert headername("Host") == "Host"


def test_headername_cache_is_bounded() -> None:
	for i in range(HEADERNAME_CACHE * 4):
		res = parse(
			f"HTTP/1.1 204 No Content\r\nx-unique-{i}: v\r\n\r\n".encode()
		)
		assert res.header(f"X-Unique-{i}") == "v"
	assert headername.cache_info().currsize <= HEADERNAME_CACHE


def test_method() -> None:
	assert HTTPMethod.Parse("get") is HTTPMethod.GET
	assert HTTPMethod.Parse(HTTPMethod.PATCH) is HTTPMethod.PATCH
	assert HTTPMethod.POST.hasBody
	assert not HTTPMethod.GET.hasBody
	with pytest.raises(ValueError):
		HTTPMethod.Parse("FETCH")


def test_get_request() -> None:
	data = HTTPRequest.Create("GET", "/path?q=1", "example.com").encode()
	assert data == (
		b"GET /path?q=1 HTTP/1.1\r\n"
		b"Host: example.com\r\n"
		b"User-Agent: " + USER_AGENT.encode() + b"\r\n"
		b"Connection: close\r\n"
		b"\r\n"
	)


def test_json_request() -> None:
	data = HTTPRequest.Create(
		HTTPMethod.POST, "/post", "example.com:8080", {"name": "John", "n": [1, 2]}
	).encode()
	method, target, protocol, headers, body = unserialize(data)
	assert (method, target, protocol) == ("POST", "/post", "HTTP/1.1")
	assert body == b'{"name":"John","n":[1,2]}'
	assert dict(headers)["Content-Type"] == "application/json"
	assert dict(headers)["Content-Length"] == str(len(body))
	assert dict(headers)["Host"] == "example.com:8080"


def test_structured_values() -> None:
	req = HTTPRequest.Create("PUT", "/", "h", Person("Ann", Color.Red))
	assert req.body == b'{"name":"Ann","color":"red"}'
	req = HTTPRequest.Create("PUT", "/", "h", Point(1, 2))
	assert req.body == b'{"x":1,"y":2}'
	req = HTTPRequest.Create("PUT", "/", "h", [True, None, 1.5])
	assert req.body == b"[true,null,1.5]"


def test_body_kinds() -> None:
	req = HTTPRequest.Create("POST", "/", "h", b"\x00\x01")
	assert req.body == b"\x00\x01"
	assert req.header("Content-Type") is None
	assert req.header("Content-Length") == "2"
	req = HTTPRequest.Create("POST", "/", "h", "héllo")
	assert req.body == "héllo".encode("utf8")
	assert req.header("Content-Type") == "text/plain; charset=utf-8"
	assert req.header("Content-Length") == "6"
	req = HTTPRequest.Create("POST", "/", "h", Form())
	assert req.body == b"a=1&b=2"
	assert req.header("Content-Type") == "application/x-www-form-urlencoded"


def test_body_presence() -> None:
	# Methods with a body always declare a length
	req = HTTPRequest.Create("POST", "/", "h")
	assert req.body == b""
	assert req.header("Content-Length") == "0"
	assert req.encode().endswith(b"\r\n\r\n")
	for method in ("GET", "HEAD", "DELETE"):
		req = HTTPRequest.Create(method, "/", "h")
		assert req.body is None
		assert req.header("Content-Length") is None
		assert req.header("Content-Type") is None
	req = HTTPRequest.Create("DELETE", "/", "h", {"id": 1})
	assert req.header("Content-Length") == "8"


def test_caller_headers_win() -> None:
	req = HTTPRequest.Create(
		"POST",
		"/",
		"example.com",
		{"a": 1},
		[("X-First", "1"), ("content-type", "application/vnd+json"), ("HOST", "other")],
	)
	method, target, protocol, headers, body = unserialize(req.encode())
	assert headers == [
		("X-First", "1"),
		("content-type", "application/vnd+json"),
		("HOST", "other"),
		("User-Agent", USER_AGENT),
		("Content-Length", "7"),
		("Connection", "close"),
	]
	req = HTTPRequest.Create("GET", "/", "h", headers={"Connection": "keep-alive"})
	assert req.header("connection") == "keep-alive"
	assert [k for k, _ in req.headers].count("Connection") == 1


def test_serialization_is_deterministic() -> None:
	args = ("PATCH", "/a/b", "host", {"b": 2, "a": 1}, {"X-Z": "z", "X-A": "a"})
	assert HTTPRequest.Create(*args).encode() == HTTPRequest.Create(*args).encode()


def test_roundtrip() -> None:
	for method, target, body, headers in (
		("GET", "/", None, {}),
		("POST", "/items?id=2", {"k": "v"}, {"Accept": "application/json"}),
		("PUT", "/x", "plain text", {"X-Trace": "abc"}),
		("DELETE", "/x", b"\x00raw", {}),
	):
		req = HTTPRequest.Create(method, target, "example.com", body, headers)
		m, t, _, h, b = unserialize(req.encode())
		assert m == method
		assert t == target
		assert h == req.headers
		assert len(b) == int(dict(h).get("Content-Length", 0))


def test_serialization_errors() -> None:
	with pytest.raises(SerializationError):
		HTTPRequest.Create("POST", "/", "h", object())
	with pytest.raises(SerializationError):
		HTTPRequest.Create("POST", "/", "h", {"nan": float("nan")})
	with pytest.raises(SerializationError):
		HTTPRequest.Create("GET", "/", "h", headers={"X-Evil": "a\r\nInjected: yes"})
	with pytest.raises(SerializationError):
		HTTPRequest.Create("GET", "/", "h", headers={"Bad Name": "a"})
	with pytest.raises(SerializationError):
		HTTPRequest.Create("GET", "/", "h", headers={"X-Emoji": "☃"})
	with pytest.raises(SerializationError):
		HTTPRequest.Create("GET", "/a b", "h")


def test_is_success() -> None:
	assert not response(199).isSuccess
	assert response(200).isSuccess
	assert response(299).isSuccess
	assert not response(300).isSuccess


def test_response_accessors() -> None:
	res = HTTPResponse(
		"HTTP/1.1",
		200,
		"OK",
		HTTPHeaders({"Content-Type": "application/json"}, "application/json", 7),
		b'{"a":1}',
	)
	assert res.header("CONTENT-TYPE") == "application/json"
	assert res.header("Missing") is None
	assert res.body == '{"a":1}'
	assert res.json() == {"a": 1}
	empty = HTTPResponse("HTTP/1.1", 204, "No Content", HTTPHeaders({}))
	assert empty.body is None
	with pytest.raises(ValueError):
		empty.json()


# EOF
