"""
Input and output record types.

``LogRecord`` is what a logging front-end hands to the handler; ``Entry`` is
the wire-ready ``(timestamp, line)`` pair the forwarder batches.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, NamedTuple, Union

# Literal tag opening an argument-naming directive: ["ARGNAMES", "name", ...]
ARGNAMES_TAG = "ARGNAMES"

Timestamp = Union[datetime, float, int]


@dataclass(frozen=True)
class LogRecord:
    """One log call as produced by the front-end.

    ``timestamp`` accepts a ``datetime`` (naive values are treated as UTC) or
    epoch seconds, as found on ``logging.LogRecord.created``.
    """

    message: str
    level: str
    timestamp: Timestamp = field(default_factory=lambda: datetime.now(timezone.utc))
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        args = self.args
        if isinstance(args, tuple):
            return
        # A lone value is one argument, never split into characters or keys
        if args is None:
            args = ()
        elif isinstance(args, (str, bytes, bytearray, Mapping)) or not isinstance(
            args, Iterable
        ):
            args = (args,)
        object.__setattr__(self, "args", tuple(args))


class Entry(NamedTuple):
    """``[TimeString, Data]`` as sent in a stream's ``values`` list."""

    timestamp: str
    line: str


__all__ = ["ARGNAMES_TAG", "Entry", "LogRecord", "Timestamp"]
