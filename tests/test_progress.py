"""Tests for progress reporting."""

import io
import threading

from ghmirror.progress import ConsoleProgress, NullProgress, percentage
from ghmirror.repository import RepositoryMetadata


def make_meta(name: str) -> RepositoryMetadata:
    return RepositoryMetadata(name, f"https://github.com/octocat/{name}.git")


def test_percentage() -> None:
    assert percentage(0, 10) == 0
    assert percentage(5, 10) == 50
    assert percentage(10, 10) == 100


def test_percentage_zero_total() -> None:
    """Test that an unknown total does not divide by zero."""
    assert percentage(0, 0) == 0
    assert percentage(3, 0) == 0


def test_null_progress_accepts_samples() -> None:
    progress = NullProgress()
    reporter = progress.reporter_for(make_meta("r"))
    reporter.report(1, 0)
    reporter.report(1, 2)


def test_console_progress_tags_repository() -> None:
    """Test that each line names the repository it belongs to."""
    stream = io.StringIO()
    progress = ConsoleProgress(stream)

    progress.reporter_for(make_meta("Hello-World")).report(3, 6)
    progress.reporter_for(make_meta("Spoon-Knife")).report(0, 0)
    progress.finish()

    output = stream.getvalue()
    assert "\rHello-World: 3/6 (50%)" in output
    assert "\rSpoon-Knife: 0/0 (0%)" in output
    assert output.endswith("\n")


def test_console_progress_finish_without_output() -> None:
    stream = io.StringIO()
    ConsoleProgress(stream).finish()
    assert stream.getvalue() == ""


def test_console_progress_concurrent_writers() -> None:
    """Test that concurrent samples never produce partial lines."""
    stream = io.StringIO()
    progress = ConsoleProgress(stream)

    def work(name: str) -> None:
        reporter = progress.reporter_for(make_meta(name))
        for i in range(1, 51):
            reporter.report(i, 50)

    threads = [threading.Thread(target=work, args=(f"repo-{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    lines = [line for line in stream.getvalue().split("\r") if line]
    assert len(lines) == 200
    for line in lines:
        name, counts = line.split(": ")
        assert name.startswith("repo-")
        assert counts.endswith("%)")
