from __future__ import annotations

from .http_client import AsyncHttpSender
from .loki import LokiForwarder, Sender

__all__ = [
    "AsyncHttpSender",
    "LokiForwarder",
    "Sender",
]
