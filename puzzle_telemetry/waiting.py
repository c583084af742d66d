"""
Buffered startup diagnostics.

Messages produced before a logger exists (overlay loading, config failures,
exporter failures) are appended to a ``WaitingLogs`` buffer. The buffer is
consumed exactly once, in order: either replayed through the live logger or,
on a fatal path, printed to stdout right before the process exits.

Usage:
    waiting = WaitingLogs()
    waiting.append("Loaded .env file")
    waiting.append("Failed to read logging config file", error=exc)

    for entry in waiting.drain():
        ...
"""

import sys
from dataclasses import dataclass
from typing import Iterator, NoReturn, TextIO


@dataclass(frozen=True)
class WaitingLog:
    """A diagnostic message recorded before the logger was available.

    Attributes:
        message: Human-readable description of what happened.
        error: The error that caused the message, if any. Entries with an
            error are replayed at warning level, the rest at info level.
    """

    message: str
    error: BaseException | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def __str__(self) -> str:
        if self.error is None:
            return self.message
        return f"{self.message} : {self.error}"


class WaitingLogs:
    """Ordered, consume-once buffer of ``WaitingLog`` entries."""

    def __init__(self) -> None:
        self._entries: list[WaitingLog] = []

    def append(self, message: str, error: BaseException | None = None) -> WaitingLog:
        """Record a message, optionally tagged with the error that caused it."""
        entry = WaitingLog(message=message, error=error)
        self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WaitingLog]:
        return iter(list(self._entries))

    def drain(self) -> Iterator[WaitingLog]:
        """Yield and remove entries in insertion order.

        Entries appended while draining are yielded too, so nothing recorded
        during replay is lost.
        """
        while self._entries:
            yield self._entries.pop(0)

    def flush(self, stream: TextIO | None = None) -> None:
        """Print every entry to ``stream`` (stdout by default) and empty the buffer."""
        out = stream if stream is not None else sys.stdout
        for entry in self.drain():
            print(entry, file=out)
        out.flush()


def flush_and_exit(waiting: WaitingLogs, stream: TextIO | None = None) -> NoReturn:
    """Print all buffered diagnostics and terminate with exit status 1.

    Used when no logger could be built, so the telemetry pipeline cannot be
    trusted to carry the messages.
    """
    waiting.flush(stream)
    sys.exit(1)
