import os
import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, ClassVar, NamedTuple

from .. import config
from .primitives import TPrimitive

ERR = sys.stderr

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False


LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="minifetch")


class Term:
	BOLD: ClassVar[str] = "\033[1m" if COLOR else ""
	RESET: ClassVar[str] = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int) -> str:
		return f"\033[0;38;5;{color}m" if COLOR else ""


class LogLevel(Enum):
	"""Levels are ordered by value, `Color` is the 256-color terminal code
	used for the entry's origin."""

	Debug = 0
	Info = 10
	Warning = 30
	Error = 40

	@property
	def Color(self) -> int:
		return {0: 31, 10: 75, 30: 202, 40: 160}[self.value]

	@staticmethod
	def Parse(name: str) -> "LogLevel":
		for level in LogLevel:
			if level.name.lower() == name:
				return level
		return LogLevel.Warning


LOG_THRESHOLD: LogLevel = LogLevel.Parse(config.LOG_LEVEL)


class LogEntry(NamedTuple):
	origin: str
	time: float
	level: LogLevel
	message: str
	code: int | str | None = None
	context: dict[str, TPrimitive] | None = None


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, (list, tuple)):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	"""Writes the entry to stderr, unless it's below the threshold."""
	if entry.level.value < LOG_THRESHOLD.value:
		return entry
	code: str = "" if entry.code is None else f" [{entry.code}]"
	ERR.write(
		f"{Term.Color(entry.level.Color)}{Term.BOLD}[{entry.origin}]{code}{Term.RESET} {entry.message} {formatData(entry.context)}\n"
	)
	ERR.flush()
	return entry


def log(
	level: LogLevel,
	message: str,
	code: int | str | None = None,
	origin: str | None = None,
	context: dict[str, TPrimitive] | None = None,
) -> LogEntry:
	return send(
		LogEntry(
			origin=origin or LogOrigin.get(),
			time=time.time(),
			level=level,
			message=message,
			code=code,
			context=context,
		)
	)


def debug(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return log(LogLevel.Debug, message, origin=origin, context=context)


def info(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return log(LogLevel.Info, message, origin=origin, context=context)


def warning(
	message: str, *, origin: str | None = None, **context: TPrimitive
) -> LogEntry:
	return log(LogLevel.Warning, message, origin=origin, context=context)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return log(LogLevel.Error, message, code, origin=origin, context=context)


def exception(exception: Exception, message: str | None = None) -> Exception:
	"""Prints the exception and its traceback, and returns it so that
	callers can `raise exception(e)`."""
	prefix: str = f"{message}: " if message else ""
	ERR.write(f"!!! EXCP {prefix}[{exception.__class__.__name__}] {exception}\n")
	tb = exception.__traceback__
	while tb:
		code = tb.tb_frame.f_code
		ERR.write(
			f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n"
		)
		tb = tb.tb_next
	ERR.flush()
	return exception


LEVELS: dict[Callable[..., LogEntry], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
}


def logged(item: Callable[..., LogEntry]) -> bool:
	"""Tells if the given logging function would currently output
	anything, so that callers can skip building costly entries."""
	return LEVELS.get(item, LogLevel.Info).value >= LOG_THRESHOLD.value


# EOF
