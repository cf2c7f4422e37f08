"""
Core building blocks: configuration, records, encoding and error types.
"""

from .config import HandlerConfig, OutputMode
from .encoder import EntryEncoder, encode_entry, name_arguments
from .errors import (
    ConfigurationError,
    DeliveryError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    LokiHandlerError,
    SerializationError,
    create_error_context,
)
from .records import ARGNAMES_TAG, Entry, LogRecord
from .settings import Settings

__all__ = [
    "ARGNAMES_TAG",
    "ConfigurationError",
    "DeliveryError",
    "Entry",
    "EntryEncoder",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "HandlerConfig",
    "LogRecord",
    "LokiHandlerError",
    "OutputMode",
    "SerializationError",
    "Settings",
    "create_error_context",
    "encode_entry",
    "name_arguments",
]
