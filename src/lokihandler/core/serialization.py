"""
JSON serialization helpers backed by orjson.

Values are encoded compactly with standard JSON rules (strings are quoted,
non-ASCII text is kept as-is), matching what Loki clients expect to read back
from ``key=<value>`` lines and JSON lines alike.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import orjson

from .errors import (
    ErrorCategory,
    ErrorSeverity,
    SerializationError,
    create_error_context,
)
from .records import Entry


def _default(obj: Any) -> Any:
    """Default serializer hook for types orjson does not handle natively."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    return str(obj)


def escape_surrogates(text: str) -> str:
    # orjson refuses lone surrogates (surrogateescape'd paths, argv); keep them
    # readable as a literal \udcXX escape instead
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


def _scrub(obj: Any) -> Any:
    if isinstance(obj, str):
        return escape_surrogates(obj)
    if isinstance(obj, Mapping):
        return {_scrub(k): _scrub(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_scrub(item) for item in obj]
    return obj


def encode_value(value: Any) -> str:
    """Encode one log argument as a JSON text.

    Never raises: strings holding lone surrogates are escaped, and values
    orjson still refuses (integers beyond 64 bits, circular structures) are
    encoded as their ``str()`` form.
    """
    try:
        return orjson.dumps(
            value, default=_default, option=orjson.OPT_NON_STR_KEYS
        ).decode("utf-8")
    except TypeError:
        pass
    try:
        return orjson.dumps(
            _scrub(value), default=_default, option=orjson.OPT_NON_STR_KEYS
        ).decode("utf-8")
    except (TypeError, RecursionError):
        return orjson.dumps(escape_surrogates(str(value))).decode("utf-8")


def encode_mapping(payload: Mapping[str, Any]) -> str:
    """Encode a field mapping as one JSON object, preserving key order."""
    return encode_value(dict(payload))


def build_push_body(
    labels: Mapping[str, str], entries: Sequence[Entry]
) -> dict[str, Any]:
    """Assemble a single-stream push request body."""
    return {
        "streams": [
            {
                "stream": dict(labels),
                "values": [[ts, line] for ts, line in entries],
            }
        ]
    }


def serialize_push_body(body: Mapping[str, Any]) -> bytes:
    try:
        return orjson.dumps(body)
    except TypeError as e:
        context = create_error_context(
            ErrorCategory.SERIALIZATION,
            ErrorSeverity.HIGH,
            component_name="loki-forwarder",
        )
        raise SerializationError(
            "Push body serialization failed",
            error_context=context,
            cause=e,
        ) from e


__all__ = [
    "build_push_body",
    "encode_mapping",
    "encode_value",
    "escape_surrogates",
    "serialize_push_body",
]
