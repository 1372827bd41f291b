"""CPU temperature resolution.

Sources are tried in order and the first one that yields a reading wins.
No source raises: anything unreadable is reported as ``None`` so the chain
moves on, and an exhausted chain resolves to ``None`` (shown as ``N/A°C``).
"""

import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

log = structlog.get_logger()

SENSORS_COMMAND = "sensors"
SENSORS_TIMEOUT = 5.0
SENSOR_LABELS = ("CPU Temp", "Package")
_DIGITS = re.compile(r"^[0-9]+$")
_DECIMAL = re.compile(r"^[0-9]+(\.[0-9]+)?$")
_DECORATION = re.compile(r"\+|°C|\(|\)")


class TemperatureSource(ABC):
    """A single place a temperature can be read from."""

    name: str = "source"

    @abstractmethod
    def read(self) -> int | None:
        """Return whole degrees Celsius, or None when this source has nothing."""


class ThermalZoneSource(TemperatureSource):
    """Kernel thermal zone file holding millidegrees Celsius."""

    name = "thermal_zone"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> int | None:
        try:
            text = self.path.read_text(encoding="ascii").strip()
        except (OSError, UnicodeDecodeError):
            return None
        if not _DIGITS.match(text):
            log.debug("thermal_zone_not_numeric", path=str(self.path), content=text[:20])
            return None
        return int(text) // 1000


def parse_sensors_output(output: str) -> int | None:
    """
    Extract the first positive CPU temperature from ``sensors`` output.

    Only lines starting with ``Core`` or mentioning ``CPU Temp`` or ``Package``
    are considered. On each, the first token after the label is the reading;
    a line whose reading is missing, non-numeric or not positive is skipped,
    and the ``high``/``crit`` limits that follow it are never used.
    """
    for line in output.splitlines():
        if not (line.startswith("Core") or any(label in line for label in SENSOR_LABELS)):
            continue
        _, sep, rest = line.partition(":")
        tokens = rest.split()
        if not sep or not tokens:
            continue
        cleaned = _DECORATION.sub("", tokens[0])
        if not _DECIMAL.match(cleaned):
            continue
        value = float(cleaned)
        if value > 0:
            return int(value)
    return None


class SensorsCommandSource(TemperatureSource):
    """Output of the lm-sensors ``sensors`` utility."""

    name = "sensors"

    def __init__(
        self,
        which: Callable[[str], str | None] = shutil.which,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self._which = which
        self._run = run

    def read(self) -> int | None:
        binary = self._which(SENSORS_COMMAND)
        if not binary:
            return None
        try:
            result = self._run(
                [binary],
                capture_output=True,
                text=True,
                timeout=SENSORS_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            log.debug("sensors_failed", error=str(e))
            return None
        return parse_sensors_output(result.stdout or "")


class TemperatureChain:
    """Ordered fallback over temperature sources."""

    def __init__(self, sources: Iterable[TemperatureSource]) -> None:
        self.sources = tuple(sources)

    @classmethod
    def default(cls, thermal_zone_path: Path) -> "TemperatureChain":
        """Thermal zone file first, then the sensors utility."""
        return cls([ThermalZoneSource(thermal_zone_path), SensorsCommandSource()])

    def resolve(self) -> int | None:
        for source in self.sources:
            value = source.read()
            if value is not None:
                log.debug("temperature_resolved", source=source.name, value=value)
                return value
        return None
