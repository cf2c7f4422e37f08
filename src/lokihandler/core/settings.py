"""
Environment-driven configuration using Pydantic v2 Settings.

Every field maps to a ``LOKIHANDLER_<FIELD>`` environment variable. Settings
are a convenience layer: they produce a validated ``HandlerConfig`` and hold
the process-level toggles for diagnostics and shutdown draining.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from .config import HandlerConfig
from .errors import ConfigurationError


class Settings(BaseSettings):
    """Top-level environment configuration for the Loki handler."""

    url: str | None = Field(default=None, description="Loki base URL")
    # Left loose so HandlerConfig is the only validator
    send_buffer_size: int | str = Field(
        default=1,
        description="Number of entries buffered before a push is sent",
    )
    labels: dict[str, str] | None = Field(
        default=None,
        description="Static stream labels (JSON); defaults to the host label",
    )
    mode: str = Field(default="TEXT", description="Line encoding mode")
    enable_arg_naming: bool = Field(
        default=False, description="Honour a leading ARGNAMES directive"
    )
    timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="HTTP transport timeout"
    )
    tenant_id: str | None = Field(
        default=None, description="Sent as X-Scope-OrgID when set"
    )
    # Structured internal diagnostics for non-fatal errors
    internal_logging_enabled: bool = Field(
        default=False, description="Emit DEBUG diagnostics for internal activity"
    )
    atexit_drain_enabled: bool = Field(
        default=True, description="Flush registered handlers at interpreter exit"
    )
    atexit_drain_timeout_seconds: float = Field(
        default=2.0, gt=0.0, description="Maximum seconds spent draining per handler"
    )

    model_config = SettingsConfigDict(
        env_prefix="LOKIHANDLER_",
        extra="ignore",
        case_sensitive=False,
    )

    def to_handler_config(self, **overrides: Any) -> HandlerConfig:
        """Build a validated ``HandlerConfig``; explicit overrides win."""
        data: dict[str, Any] = {
            "url": self.url,
            "send_buffer_size": self.send_buffer_size,
            "mode": self.mode,
            "enable_arg_naming": self.enable_arg_naming,
            "timeout_seconds": self.timeout_seconds,
            "tenant_id": self.tenant_id,
        }
        if self.labels is not None:
            data["labels"] = self.labels
        data.update(overrides)
        return HandlerConfig.create(data)


def load_settings(**values: Any) -> Settings:
    """Read ``Settings`` from the environment.

    Raises:
        ConfigurationError: when an environment value cannot be parsed.
    """
    try:
        return Settings(**values)
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(
            f"Invalid LOKIHANDLER_* environment settings: {e}",
            cause=e,
            component_name="loki-handler",
        ) from e


__all__ = ["Settings", "load_settings"]
