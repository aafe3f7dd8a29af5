"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable

import pytest

from ghmirror.repository import RepositoryMetadata

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)

GIT_ENV = {
    "GIT_AUTHOR_NAME": "ghmirror tests",
    "GIT_AUTHOR_EMAIL": "tests@example.com",
    "GIT_COMMITTER_NAME": "ghmirror tests",
    "GIT_COMMITTER_EMAIL": "tests@example.com",
}


def git(*args: str, cwd: Path) -> str:
    """Run git in cwd for test setup and return its stdout."""
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
        env={**os.environ, **GIT_ENV},
    )
    return result.stdout.strip()


class Upstream:
    """A local repository standing in for a GitHub remote."""

    def __init__(self, path: Path, branch: str = "main", empty: bool = False):
        self.path = path
        self.branch = branch
        path.mkdir(parents=True)
        git("init", "--quiet", cwd=path)
        git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=path)
        if empty:
            return
        self.commit("README.md", "# hello\n", "Initial commit")
        self.commit("README.md", "# hello\n\nsecond line\n", "Second commit")
        git("tag", "v1", cwd=path)

    @property
    def url(self) -> str:
        return self.path.as_uri()

    @property
    def head(self) -> str:
        return git("rev-parse", "HEAD", cwd=self.path)

    def commit(self, filename: str, content: str, message: str) -> str:
        (self.path / filename).write_text(content, encoding="utf-8")
        git("add", filename, cwd=self.path)
        git("commit", "--quiet", "-m", message, cwd=self.path)
        return self.head

    def meta(self, name: str = "hello-world") -> RepositoryMetadata:
        return RepositoryMetadata(name=name, clone_url=self.url)


@pytest.fixture
def make_upstream(tmp_path: Path) -> Callable[..., Upstream]:
    """Factory creating upstream repositories under tmp_path/remote/octocat."""

    def factory(name: str = "hello-world", branch: str = "main", empty: bool = False) -> Upstream:
        return Upstream(tmp_path / "remote" / "octocat" / f"{name}.git", branch, empty)

    return factory


@pytest.fixture
def upstream(make_upstream: Callable[..., Upstream]) -> Upstream:
    """An upstream repository with two commits on 'main' and tag 'v1'."""
    return make_upstream()


@pytest.fixture
def meta(upstream: Upstream) -> RepositoryMetadata:
    """Metadata pointing at the upstream fixture."""
    return upstream.meta()


class RecordingProgress:
    """Progress factory remembering every sample per repository."""

    def __init__(self):
        self.samples: dict[str, list[tuple[int, int]]] = {}

    def reporter_for(self, meta: RepositoryMetadata) -> "_Recorder":
        return _Recorder(self.samples.setdefault(meta.name, []))


class _Recorder:
    def __init__(self, samples: list[tuple[int, int]]):
        self.samples = samples

    def report(self, received_objects: int, total_objects: int) -> None:
        self.samples.append((received_objects, total_objects))


@pytest.fixture
def recording_progress() -> RecordingProgress:
    """Progress factory that records samples instead of printing them."""
    return RecordingProgress()


def api_repo(name: str, entity: str = "octocat", fork: bool = False) -> dict:
    """Build one element of a list-repos API response."""
    return {
        "id": abs(hash(name)) % 100000,
        "name": name,
        "full_name": f"{entity}/{name}",
        "clone_url": f"https://github.com/{entity}/{name}.git",
        "fork": fork,
        "default_branch": "main",
    }
