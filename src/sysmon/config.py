"""Settings for sysmon.

Values come from ``SYSMON_`` prefixed environment variables, falling back to
the defaults below. The settings object is frozen and built once at startup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sysmon.models import ThresholdConfig

DEFAULT_INTERVAL = 60
DEFAULT_LOG_FILE = Path.home() / ".system_monitor.log"
DEFAULT_THERMAL_ZONE = Path("/sys/class/thermal/thermal_zone0/temp")
DEFAULT_SYSLOG = Path("/var/log/syslog")
DEFAULT_REQUIRED_PATHS = (Path("/proc/stat"), Path("/proc/meminfo"))


class MonitorSettings(BaseSettings):
    """Runtime configuration for the monitor."""

    model_config = SettingsConfigDict(
        env_prefix="SYSMON_",
        extra="ignore",
        frozen=True,
    )

    cpu_limit: int = Field(default=80, ge=0, le=100, description="CPU alert limit (%)")
    ram_limit: int = Field(default=85, ge=0, le=100, description="RAM alert limit (%)")
    disk_limit: int = Field(default=90, ge=0, le=100, description="Root filesystem alert limit (%)")
    alert_on_swap: bool = Field(
        default=False,
        description="Dispatch swap breaches as warnings instead of only flagging them in the report",
    )

    interval: int = Field(default=DEFAULT_INTERVAL, ge=1, description="Continuous mode interval (s)")
    cpu_sample_window: float = Field(
        default=1.0,
        gt=0,
        le=10,
        description="Seconds between the two CPU counter reads",
    )

    log_file: Path = Field(default=DEFAULT_LOG_FILE, description="Append-only alert log")
    thermal_zone_path: Path = Field(default=DEFAULT_THERMAL_ZONE)
    syslog_path: Path = Field(default=DEFAULT_SYSLOG)
    syslog_tail_lines: int = Field(default=30, ge=1)
    required_paths: Tuple[Path, ...] = Field(
        default=DEFAULT_REQUIRED_PATHS,
        description="OS interfaces that must exist before sampling",
    )

    log_level: str = Field(default="WARNING", description="Diagnostic log level")
    log_format: Literal["text", "json"] = Field(default="text")

    @property
    def thresholds(self) -> ThresholdConfig:
        """Alert limits derived from these settings."""
        return ThresholdConfig(
            cpu_limit=self.cpu_limit,
            ram_limit=self.ram_limit,
            disk_limit=self.disk_limit,
        )
