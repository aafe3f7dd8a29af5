"""Exception hierarchy for ghmirror.

Discovery errors abort a whole run, local-open errors explain why a path is
not a usable mirror, and sync errors are isolated to a single repository.
"""

from __future__ import annotations

from typing import Optional, Sequence


class GhMirrorError(Exception):
    """Base class for all ghmirror errors."""


class OperationCancelled(GhMirrorError):
    """Raised when a cancel signal stops work at a page/repository boundary."""


class ConfigError(GhMirrorError, ValueError):
    """Invalid configuration value."""


# Discovery


class DiscoveryError(GhMirrorError):
    """Listing the repositories of an entity failed."""


class InvalidEntityError(DiscoveryError):
    """The entity is neither a known user nor a known organization."""

    def __init__(self, entity: str):
        super().__init__(f"entity is not valid: {entity}")
        self.entity = entity


class NetworkError(DiscoveryError):
    """The HTTP request could not be completed."""


class DecodeError(DiscoveryError):
    """The API response could not be decoded into repository metadata."""


class UnexpectedStatusError(DiscoveryError):
    """The API answered with a status other than 200 or 404."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"unknown error: {url} returned HTTP {status_code}")
        self.url = url
        self.status_code = status_code


# Opening a local repository


class LocalOpenError(GhMirrorError):
    """A path exists but does not hold the expected mirror."""


class NotARepositoryError(LocalOpenError):
    """The path is not the root of a git repository."""


class MissingRemoteError(LocalOpenError):
    """The repository has no 'origin' remote."""


class UrlMismatchError(LocalOpenError):
    """The 'origin' remote points somewhere else."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"origin URL {actual!r} does not match {expected!r}")
        self.expected = expected
        self.actual = actual


# Synchronization


class GitCommandError(GhMirrorError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"'{' '.join(self.command[:2])}' exited with {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class SyncError(GhMirrorError):
    """Synchronizing one repository failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class CloneFailedError(SyncError):
    """Cloning a repository failed."""


class FetchFailedError(SyncError):
    """Fetching from 'origin' failed."""


class MergeUnsupportedError(SyncError):
    """Local and fetched history diverged; only fast-forwards are applied."""

    def __init__(self, branch: str, local: str, fetched: str):
        super().__init__(
            f"branch '{branch}' has diverged (local {local[:10]}, "
            f"remote {fetched[:10]}); merge manually"
        )
        self.branch = branch
        self.local = local
        self.fetched = fetched


class FilesystemError(SyncError):
    """Removing an invalid local copy failed."""
