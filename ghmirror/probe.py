"""Decide whether a local path holds a valid mirror of a repository."""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import NamedTuple, Optional

from .errors import LocalOpenError, MissingRemoteError, UrlMismatchError
from .git import ORIGIN, GitRepository
from .repository import RepositoryMetadata

logger = logging.getLogger(__name__)


class Verdict(enum.Enum):
    ABSENT = "absent"
    VALID_MATCH = "valid"
    INVALID = "invalid"


class ProbeResult(NamedTuple):
    """Outcome of probing a path.

    ``handle`` is set only for VALID_MATCH, ``reason`` only for INVALID.
    """

    verdict: Verdict
    handle: Optional[GitRepository] = None
    reason: Optional[LocalOpenError] = None


def open_mirror(meta: RepositoryMetadata, path: Path) -> GitRepository:
    """Open path and check that its origin remote is meta's clone URL.

    Raises:
        NotARepositoryError: If path is not a repository root
        MissingRemoteError: If there is no origin remote
        UrlMismatchError: If origin points to another URL
    """
    repo = GitRepository.open(meta, path)
    url = repo.remote_url(ORIGIN)
    if url is None:
        raise MissingRemoteError(f"{path} has no '{ORIGIN}' remote")
    if url != meta.clone_url:
        raise UrlMismatchError(meta.clone_url, url)
    return repo


def probe(meta: RepositoryMetadata, path: Path) -> ProbeResult:
    """Classify path as absent, a valid mirror of meta, or invalid.

    Existence alone is not enough: a directory only counts as a mirror when
    it is a repository whose origin remote matches ``meta.clone_url``.
    """
    path = Path(path)
    if not path.exists():
        return ProbeResult(Verdict.ABSENT)

    try:
        repo = open_mirror(meta, path)
    except LocalOpenError as e:
        logger.debug(f"{path} is not a valid mirror of {meta.name}: {e}")
        return ProbeResult(Verdict.INVALID, reason=e)

    return ProbeResult(Verdict.VALID_MATCH, handle=repo)
