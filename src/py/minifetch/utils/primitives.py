from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TypeAlias
from uuid import UUID

TLiteral: TypeAlias = bool | int | float | str | bytes
TComposite: TypeAlias = (
	list[TLiteral] | dict[TLiteral, TLiteral] | set[TLiteral] | tuple[TLiteral, ...]
)
TPrimitive: TypeAlias = TLiteral | TComposite | list[Any] | dict[str, Any]


def asPrimitive(value: Any) -> Any:
	"""Converts the given value to a primitive value that can be encoded
	as JSON. Values that have no primitive counterpart are returned as-is
	and will be rejected by the encoder."""
	if value is None or type(value) in (bool, float, int, str):
		return value
	elif isinstance(value, tuple) and hasattr(value, "_fields"):
		# Named tuples may define their own conversion
		f = getattr(type(value), "asPrimitive", None)
		return (
			f(value)
			if f
			else {k: asPrimitive(getattr(value, k)) for k in value._fields}
		)
	elif isinstance(value, list) or isinstance(value, tuple) or isinstance(value, set):
		return [asPrimitive(v) for v in value]
	elif is_dataclass(value) and not isinstance(value, type):
		return {_.name: asPrimitive(getattr(value, _.name)) for _ in fields(value)}
	elif isinstance(value, Enum):
		return asPrimitive(value.value)
	elif isinstance(value, dict):
		return {asPrimitive(k): asPrimitive(v) for k, v in value.items()}
	elif isinstance(value, Decimal) or isinstance(value, Path) or isinstance(value, UUID):
		return str(value)
	elif isinstance(value, datetime) or isinstance(value, date):
		return value.isoformat()
	else:
		return value


# EOF
