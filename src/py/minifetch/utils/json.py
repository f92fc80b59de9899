import json as basejson
from typing import Any, TypeAlias, cast

from .primitives import asPrimitive

TJSON: TypeAlias = None | int | float | bool | str | list[Any] | dict[str, Any]


def json(value: Any) -> bytes:
	"""Encodes the value as compact UTF-8 JSON. Raises `TypeError` or
	`ValueError` when the value can't be encoded."""
	return basejson.dumps(
		asPrimitive(value), separators=(",", ":"), ensure_ascii=False, allow_nan=False
	).encode("utf8")


def unjson(value: bytes | str) -> TJSON:
	"""Decodes JSON-encoded text."""
	return cast(TJSON, basejson.loads(value))


# EOF
