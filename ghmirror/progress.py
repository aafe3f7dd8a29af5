"""Transfer progress reporting.

The sync engine only knows the two protocols below. Each repository gets its
own reporter from the factory so samples stay attributable when several
repositories transfer at once.
"""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional, TextIO

from typing_extensions import Protocol

if TYPE_CHECKING:
    from .repository import RepositoryMetadata


class ProgressReporter(Protocol):
    """Sink for transfer progress samples of one network operation."""

    def report(self, received_objects: int, total_objects: int) -> None:
        """Receive one sample; counts never decrease within an operation."""
        ...


class ProgressReporterFactory(Protocol):
    """Hands out a reporter bound to a single repository."""

    def reporter_for(self, meta: RepositoryMetadata) -> ProgressReporter:
        ...


def percentage(received_objects: int, total_objects: int) -> int:
    """Integer percentage of received objects, 0 when the total is unknown."""
    if total_objects <= 0:
        return 0
    return min(100, 100 * received_objects // total_objects)


class NullProgress:
    """Discards all samples."""

    def report(self, received_objects: int, total_objects: int) -> None:
        pass

    def reporter_for(self, meta: RepositoryMetadata) -> NullProgress:
        return self


class ConsoleProgress:
    """Overwrites a single status line with the latest sample.

    Every line is prefixed with the repository name, and writes are
    serialized so concurrent workers do not interleave partial lines.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stderr
        self._lock = threading.Lock()
        self._dirty = False

    def reporter_for(self, meta: RepositoryMetadata) -> _RepositoryLine:
        return _RepositoryLine(self, meta.name)

    def write(self, name: str, received_objects: int, total_objects: int) -> None:
        pct = percentage(received_objects, total_objects)
        with self._lock:
            self.stream.write(f"\r{name}: {received_objects}/{total_objects} ({pct}%)")
            self.stream.flush()
            self._dirty = True

    def finish(self) -> None:
        """Terminate the status line if anything was written."""
        with self._lock:
            if self._dirty:
                self.stream.write("\n")
                self.stream.flush()
                self._dirty = False


class _RepositoryLine:
    def __init__(self, console: ConsoleProgress, name: str):
        self.console = console
        self.name = name

    def report(self, received_objects: int, total_objects: int) -> None:
        self.console.write(self.name, received_objects, total_objects)
