"""
Handler configuration model.

``HandlerConfig`` is frozen and validated eagerly: a missing URL, a buffer
size outside 1..50 (or not an integer) and an unknown mode all fail at
construction with ``ConfigurationError`` rather than at the first log call.
"""

from __future__ import annotations

import socket
from enum import Enum
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import ConfigurationError

MIN_SEND_BUFFER_SIZE = 1
MAX_SEND_BUFFER_SIZE = 50
PUSH_PATH = "/loki/api/v1/push"


class OutputMode(str, Enum):
    JSON = "JSON"
    TEXT = "TEXT"


def default_labels() -> dict[str, str]:
    return {"host": socket.gethostname()}


class HandlerConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)  # fmt: skip

    url: str
    send_buffer_size: int = Field(default=1, alias="sendBufferSize")
    labels: dict[str, str] = Field(default_factory=default_labels)
    mode: OutputMode = OutputMode.TEXT
    enable_arg_naming: bool = Field(default=False, alias="enableArgNaming")
    timeout_seconds: float = Field(default=5.0, gt=0.0)
    headers: dict[str, str] = Field(default_factory=dict)
    tenant_id: str | None = None

    @field_validator("url", mode="before")
    @classmethod
    def _require_url(cls, value: Any) -> str:
        if value is None or not isinstance(value, str) or not value.strip():
            raise ValueError("Missing URL")
        return value.strip().rstrip("/")

    @field_validator("send_buffer_size", mode="before")
    @classmethod
    def _check_buffer_size(cls, value: Any) -> int:
        valid = isinstance(value, int) and not isinstance(value, bool)
        if isinstance(value, float) and value.is_integer():
            value, valid = int(value), True
        if isinstance(value, str) and value.strip().isdigit():
            value, valid = int(value), True
        if not valid or not MIN_SEND_BUFFER_SIZE <= value <= MAX_SEND_BUFFER_SIZE:
            raise ValueError(
                f"Invalid send_buffer_size ({value!r}) must be an integer value "
                f"between {MIN_SEND_BUFFER_SIZE} & {MAX_SEND_BUFFER_SIZE} (inclusive)"
            )
        return int(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("labels", mode="before")
    @classmethod
    def _coerce_labels(cls, value: Mapping[str, str] | None) -> dict[str, str]:
        if value is None:
            return default_labels()
        return dict(value)

    @field_validator("headers", mode="before")
    @classmethod
    def _coerce_headers(cls, value: Mapping[str, str] | None) -> dict[str, str]:
        if value is None:
            return {}
        return dict(value)

    @property
    def push_url(self) -> str:
        return f"{self.url}{PUSH_PATH}"

    @property
    def request_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.headers)
        if self.tenant_id:
            headers.setdefault("X-Scope-OrgID", self.tenant_id)
        return headers

    @classmethod
    def create(
        cls,
        config: HandlerConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> HandlerConfig:
        """Validate ``config`` and/or keyword options into a ``HandlerConfig``.

        Raises:
            ConfigurationError: when any option is missing or invalid.
        """
        if isinstance(config, HandlerConfig):
            if not kwargs:
                return config
            data: dict[str, Any] = config.model_dump()
        else:
            data = dict(config or {})
        data.update(kwargs)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid Loki handler configuration: {problems}",
                cause=e,
                component_name="loki-handler",
            ) from e


__all__ = [
    "HandlerConfig",
    "MAX_SEND_BUFFER_SIZE",
    "MIN_SEND_BUFFER_SIZE",
    "OutputMode",
    "PUSH_PATH",
    "default_labels",
]
