"""
Error taxonomy for the Loki handler.

Errors carry a structured context (category, severity, id, timestamp) so they
can be reported through the diagnostics side-channel as plain mappings.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    NETWORK = "network"
    SERIALIZATION = "serialization"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Structured context attached to every handler error."""

    category: ErrorCategory = ErrorCategory.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "severity": self.severity.value,
            "component_name": self.component_name,
            "metadata": dict(self.metadata),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity,
    *,
    component_name: str | None = None,
    **metadata: Any,
) -> ErrorContext:
    return ErrorContext(
        category=category,
        severity=severity,
        component_name=component_name,
        metadata=metadata,
    )


class LokiHandlerError(Exception):
    """Base error for all handler failures.

    Args:
        message: Human readable description.
        category: Error category, used when no explicit context is given.
        severity: Error severity, used when no explicit context is given.
        error_context: Pre-built context; overrides category/severity.
        cause: Underlying exception, chained as ``__cause__``.
        component_name: Component that raised the error.
    """

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
        component_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = error_context or create_error_context(
            category or self.default_category,
            severity or self.default_severity,
            component_name=component_name,
        )
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.to_dict(),
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data


class ConfigurationError(LokiHandlerError):
    """Invalid handler configuration; raised synchronously at construction."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.CRITICAL


class DeliveryError(LokiHandlerError):
    """A push request failed (non-2xx response or transport failure)."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        batch_size: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
        self.batch_size = batch_size

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["response_body"] = self.response_body
        data["batch_size"] = self.batch_size
        return data


class SerializationError(LokiHandlerError):
    default_category = ErrorCategory.SERIALIZATION
    default_severity = ErrorSeverity.HIGH


__all__ = [
    "ConfigurationError",
    "DeliveryError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "LokiHandlerError",
    "SerializationError",
    "create_error_context",
]
