"""Exceptions raised by sysmon.

All exceptions inherit from SysmonError. Only the command line entry point
turns them into exit codes; everything below it either raises or absorbs.
"""

from collections.abc import Iterable


class SysmonError(Exception):
    """Base exception for sysmon.

    Attributes:
        message: Human-readable error message.
        exit_code: Exit code used when the error ends the process.
    """

    exit_code: int = 1

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingDependencyError(SysmonError):
    """A required OS interface is absent; nothing can be sampled."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = tuple(missing)
        super().__init__("missing required system interfaces: " + ", ".join(self.missing))


class InvalidArgumentError(SysmonError):
    """Malformed command line input."""


class UnreadableSourceError(SysmonError):
    """A metric source could not be read or parsed as a number.

    Raised by individual readers and absorbed by the sampler, which degrades
    the metric to its unknown value.
    """

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        message = f"cannot read {source}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SinkError(SysmonError):
    """An alert could not be delivered through one sink."""

    def __init__(self, sink: str, detail: str) -> None:
        self.sink = sink
        super().__init__(f"{sink} sink failed: {detail}")
