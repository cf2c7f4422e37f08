"""
Entry encoder: turns one ``LogRecord`` into a wire-ready ``Entry``.

Positional arguments become named fields. By default the argument at index
``i`` is named ``Arg<i>``. With argument naming enabled, a leading directive
``["ARGNAMES", "command", "method"]`` names the arguments that follow it:

    handler.handle(LogRecord("Test Command Invoked", "INFO", args=(
        ["ARGNAMES", "command", "method"], "DoAction", "HttpRequest",
    )))
    # -> level="INFO" text="Test Command Invoked" command="\\"DoAction\\"" ...

Field values are the JSON encoding of the argument, so a string argument keeps
its quotes inside the field value.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping, Sequence

from .config import HandlerConfig, OutputMode
from .errors import ConfigurationError
from .records import ARGNAMES_TAG, Entry, LogRecord, Timestamp
from .serialization import encode_mapping, encode_value, escape_surrogates

RESERVED_FIELDS = ("level", "text")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def has_arg_names(args: Sequence[Any], enabled: bool) -> bool:
    """True when naming is enabled and ``args[0]`` is an ARGNAMES directive."""
    if not enabled or not args:
        return False
    first = args[0]
    return isinstance(first, (list, tuple)) and bool(first) and first[0] == ARGNAMES_TAG


def make_name_resolver(directive: Sequence[Any]) -> Callable[[int], str]:
    """Resolve names for argument indexes counted after the directive slot."""
    names = list(directive[1:])

    def resolve(index: int) -> str:
        if index < len(names) and isinstance(names[index], str):
            return names[index]
        return f"Arg{index}"

    return resolve


def name_arguments(args: Sequence[Any], enabled: bool = False) -> dict[str, str]:
    """Map positional arguments to ``{name: json_value}``; last duplicate wins."""
    if has_arg_names(args, enabled):
        resolve = make_name_resolver(args[0])
        values = args[1:]
    else:
        resolve = _positional_name
        values = args
    named: dict[str, str] = {}
    for index, value in enumerate(values):
        named[resolve(index)] = encode_value(value)
    return named


def _positional_name(index: int) -> str:
    return f"Arg{index}"


def build_fields(level: str, message: str, named: Mapping[str, str]) -> dict[str, str]:
    """Combine base fields with named arguments.

    ``level`` and ``text`` always come first and always carry the record's own
    level and message; a named argument using either key is dropped.
    """
    fields = {"level": level, "text": message}
    for key, value in named.items():
        if key not in RESERVED_FIELDS:
            fields[key] = value
    return fields


def render_line(fields: Mapping[str, str], mode: OutputMode | str) -> str:
    if mode == OutputMode.JSON:
        return encode_mapping(fields)
    if mode == OutputMode.TEXT:
        return " ".join(
            f"{escape_surrogates(key)}={encode_value(value)}"
            for key, value in fields.items()
        )
    raise ConfigurationError(f"Invalid mode {mode!r}")


def epoch_millis(ts: Timestamp) -> int:
    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return (ts - _EPOCH) // _ONE_MS
    return int(Decimal(str(ts)) * 1000)


def timestamp_ns(ts: Timestamp) -> str:
    """Millisecond epoch with six zeros appended; sub-millisecond detail is lost."""
    return f"{epoch_millis(ts)}000000"


class EntryEncoder:
    """Encodes records according to one ``HandlerConfig``."""

    def __init__(self, config: HandlerConfig) -> None:
        self._mode = config.mode
        self._enable_arg_naming = config.enable_arg_naming

    def encode(self, record: LogRecord) -> Entry:
        named = name_arguments(record.args, self._enable_arg_naming)
        fields = build_fields(record.level, record.message, named)
        return Entry(timestamp_ns(record.timestamp), render_line(fields, self._mode))


def encode_entry(record: LogRecord, config: HandlerConfig) -> Entry:
    return EntryEncoder(config).encode(record)


__all__ = [
    "EntryEncoder",
    "RESERVED_FIELDS",
    "build_fields",
    "encode_entry",
    "epoch_millis",
    "has_arg_names",
    "make_name_resolver",
    "name_arguments",
    "render_line",
    "timestamp_ns",
]
