"""
Server configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Domain behaviour (components, telemetry, power commands, bind address)
lives in the configuration script; these settings only cover how the
server runs it.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from datetime import timedelta
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseSettings):
    """Microgrid sandbox server configuration.

    Attributes:
        config_script: Path of the Python configuration script.
        bind_address: ``host:port`` to listen on.  Overrides the script's
            ``socket_addr`` when set.
        retain_requests_ms: Default interlock retention for battery
            inverter power commands, used when the script does not define
            ``retain_requests_duration_ms``.
        sweep_interval_ms: Interlock sweep tick (min 10).
        stream_buffer_size: Samples buffered per telemetry stream.
        watch_enabled: Reload the script when the file changes.
        watch_interval_s: Seconds between script file checks.
        log_level: Root log level name.
    """

    config_script: Path
    bind_address: str = ""
    retain_requests_ms: int = 60_000
    sweep_interval_ms: int = 100
    stream_buffer_size: int = 128
    watch_enabled: bool = True
    watch_interval_s: float = 1.0
    log_level: str = "INFO"

    @property
    def default_retention(self) -> timedelta:
        return timedelta(milliseconds=self.retain_requests_ms)

    @field_validator("retain_requests_ms")
    @classmethod
    def retain_requests_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("RETAIN_REQUESTS_MS must be > 0")
        return v

    @field_validator("sweep_interval_ms")
    @classmethod
    def sweep_interval_must_be_reasonable(cls, v: int) -> int:
        """Validate the sweep tick is at least 10 ms."""
        if v < 10:
            raise ValueError("SWEEP_INTERVAL_MS must be >= 10")
        return v

    @field_validator("stream_buffer_size")
    @classmethod
    def stream_buffer_size_must_be_valid(cls, v: int) -> int:
        """Validate stream buffer size is between 1 and 10000."""
        if v < 1 or v > 10_000:
            raise ValueError("STREAM_BUFFER_SIZE must be >= 1 and <= 10000")
        return v

    @field_validator("watch_interval_s")
    @classmethod
    def watch_interval_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("WATCH_INTERVAL_S must be > 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and normalise the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a known logging level")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
