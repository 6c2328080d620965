"""
MCP Relay Configuration
-----------------------
Centralized configuration for the relay, loaded from environment variables
and overridden by command-line arguments.
"""

import os
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator

from mcp_relay.platform import TOOLS_CACHE_FILE_NAME, get_cache_dir, resolve_default_server_url

logger = logging.getLogger("McpRelay.Config")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_INTERVAL_SEC = 1.0
DEFAULT_REFRESH_INTERVAL_SEC = 30.0
NOTIFY_TOOLS_UPDATED_PATH = "/notify-tools-updated"
CHANGE_DETECTION_MODES = ("structural", "length")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, default: int, *, min_value: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected integer)", name, raw)
        return default
    if value < min_value:
        logger.warning("Ignoring %s=%r because it is below minimum %d", name, raw, min_value)
        return default
    return value


def _env_float(name: str, default: Optional[float], *, min_value: float) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected float)", name, raw)
        return default
    if value < min_value:
        logger.warning(
            "Ignoring %s=%r because it is below minimum %.3f",
            name,
            raw,
            min_value,
        )
        return default
    return value


class RelayConfig(BaseModel):
    """Relay runtime configuration."""
    server_url: str
    cache_dir: str = Field(default_factory=lambda: str(get_cache_dir()))
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    retry_interval_sec: float = Field(default=DEFAULT_RETRY_INTERVAL_SEC, ge=0.0)
    # None leaves the per-attempt timeout to the transport.
    request_timeout_sec: Optional[float] = Field(default=None, gt=0.0)
    refresh_interval_sec: float = Field(default=DEFAULT_REFRESH_INTERVAL_SEC, gt=0.0)
    refresh_enabled: bool = True
    change_detection: str = "structural"
    notify_path: str = NOTIFY_TOOLS_UPDATED_PATH
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("server_url")
    @classmethod
    def _validate_server_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Invalid server URL: {value!r}")
        return value

    @field_validator("change_detection")
    @classmethod
    def _validate_change_detection(cls, value: str) -> str:
        candidate = value.strip().lower()
        if candidate not in CHANGE_DETECTION_MODES:
            raise ValueError(
                f"Unsupported change detection mode {value!r}; expected one of {CHANGE_DETECTION_MODES}"
            )
        return candidate

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def cache_file(self) -> Path:
        return Path(self.cache_dir) / TOOLS_CACHE_FILE_NAME

    @property
    def notify_url(self) -> str:
        return self.server_url.rstrip("/") + self.notify_path

    @classmethod
    def from_env(cls, **overrides: Any) -> "RelayConfig":
        """
        Load configuration from environment variables.

        Environment variables override defaults:
        - MCP_RELAY_SERVER_URL: Tool service base URL
        - MCP_RELAY_CACHE_DIR: Directory holding the tool-list cache
        - MCP_RELAY_MAX_ATTEMPTS / MCP_RELAY_RETRY_INTERVAL_SEC: Retry policy
        - MCP_RELAY_REQUEST_TIMEOUT_SEC: Per-attempt HTTP timeout
        - MCP_RELAY_REFRESH_INTERVAL_SEC / MCP_RELAY_REFRESH_ENABLED: Background refresh
        - MCP_RELAY_CHANGE_DETECTION: 'structural' or 'length'
        - MCP_RELAY_LOG_LEVEL / MCP_RELAY_LOG_FILE: Logging

        Keyword overrides (typically from the CLI) win over the environment;
        overrides whose value is None are ignored.
        """
        values: Dict[str, Any] = {
            "server_url": resolve_default_server_url(),
            "cache_dir": str(get_cache_dir()),
            "max_attempts": _env_int("MCP_RELAY_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, min_value=1),
            "retry_interval_sec": _env_float(
                "MCP_RELAY_RETRY_INTERVAL_SEC", DEFAULT_RETRY_INTERVAL_SEC, min_value=0.0
            ),
            "request_timeout_sec": _env_float("MCP_RELAY_REQUEST_TIMEOUT_SEC", None, min_value=0.001),
            "refresh_interval_sec": _env_float(
                "MCP_RELAY_REFRESH_INTERVAL_SEC", DEFAULT_REFRESH_INTERVAL_SEC, min_value=0.001
            ),
            "refresh_enabled": _env_flag("MCP_RELAY_REFRESH_ENABLED", True),
            "change_detection": os.environ.get("MCP_RELAY_CHANGE_DETECTION", "structural"),
            "log_level": os.environ.get("MCP_RELAY_LOG_LEVEL", "INFO"),
            "log_file": os.environ.get("MCP_RELAY_LOG_FILE") or None,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
