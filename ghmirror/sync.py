"""Repository mirroring logic for ghmirror.

This module drives the per-repository state machine: probe the local path,
then clone, re-clone, or fetch and fast-forward, and record the outcome.
"""

from __future__ import annotations

import enum
import logging
import shutil
import threading
from concurrent import futures
from pathlib import Path
from typing import Optional, Sequence

from .errors import FilesystemError, MergeUnsupportedError, SyncError
from .git import GitRepository, MergeAnalysis
from .probe import Verdict, probe
from .progress import NullProgress, ProgressReporterFactory
from .repository import RepositoryMetadata

logger = logging.getLogger(__name__)


class SyncOutcome(enum.Enum):
    CLONED = "cloned"
    FETCHED_AND_MERGED = "fast-forwarded"
    FETCHED_UP_TO_DATE = "up to date"
    FETCHED_UNMERGEABLE = "diverged"
    RECLONED = "re-cloned"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RepoSyncResult:
    """Outcome of synchronizing a single repository."""

    def __init__(
        self,
        meta: RepositoryMetadata,
        path: Path,
        outcome: SyncOutcome,
        detail: str = "",
        error: Optional[Exception] = None,
    ):
        self.meta = meta
        self.path = path
        self.outcome = outcome
        self.detail = detail
        self.error = error

    @property
    def failed(self) -> bool:
        return self.outcome is SyncOutcome.FAILED

    def __repr__(self) -> str:
        return f"<RepoSyncResult {self.meta.name}: {self.outcome.value}>"

    def __str__(self) -> str:
        text = f"{self.meta.name}: {self.outcome.value}"
        if self.detail:
            text = f"{text} ({self.detail})"
        return text


class MirrorResult:
    """Result of mirroring all repositories of an entity.

    Results are kept in discovery order regardless of how many workers ran.
    """

    def __init__(self, entity: str):
        """Initialize empty mirror result."""
        self.entity = entity
        self.results: list[RepoSyncResult] = []
        self.cancelled = False

    def add(self, result: RepoSyncResult) -> None:
        self.results.append(result)

    def count(self, outcome: SyncOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def failures(self) -> list[RepoSyncResult]:
        """Repositories whose pipeline failed."""
        return [result for result in self.results if result.failed]

    @property
    def needs_attention(self) -> list[RepoSyncResult]:
        """Repositories whose history diverged and must be merged by hand."""
        return [
            result
            for result in self.results
            if result.outcome is SyncOutcome.FETCHED_UNMERGEABLE
        ]

    @property
    def is_success(self) -> bool:
        """True if no repository failed; diverged ones do not count."""
        return not self.failures and not self.cancelled

    def __str__(self) -> str:
        """String representation of mirror results."""
        cloned = self.count(SyncOutcome.CLONED) + self.count(SyncOutcome.RECLONED)
        updated = self.count(SyncOutcome.FETCHED_AND_MERGED)
        current = self.count(SyncOutcome.FETCHED_UP_TO_DATE)
        return (
            f"Mirror of {self.entity}: {len(self.results)} repositories, "
            f"{cloned} cloned, {updated} updated, {current} up to date, "
            f"{len(self.needs_attention)} diverged, {len(self.failures)} failed"
        )


class RepoMirror:
    """Main mirroring orchestrator.

    Each repository of an entity lives at ``base_dir/entity/name``. Paths are
    locked individually, so a pool of workers never touches the same mirror
    twice at once.
    """

    def __init__(
        self,
        base_dir: Path = Path("."),
        bare: bool = False,
        workers: int = 1,
        reporter: Optional[ProgressReporterFactory] = None,
    ):
        """Initialize the mirror.

        Args:
            base_dir: Directory that holds one subdirectory per entity
            bare: Clone new repositories without a working tree
            workers: Number of repositories processed concurrently
            reporter: Source of per-repository progress reporters
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")

        self.base_dir = Path(base_dir)
        self.bare = bare
        self.workers = workers
        self.reporter = reporter or NullProgress()
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def mirror(
        self,
        entity: str,
        repositories: Sequence[RepositoryMetadata],
        cancel_event: Optional[threading.Event] = None,
    ) -> MirrorResult:
        """Synchronize every repository of an entity.

        A failing repository is recorded and the run moves on. Once
        cancel_event is set, repositories that have not started are marked
        as cancelled.

        Example:
            >>> mirror = RepoMirror(Path("mirrors"))
            >>> result = mirror.mirror("octocat", repos)
            >>> print(result.is_success)
            True
        """
        result = MirrorResult(entity)
        cancel_event = cancel_event or threading.Event()

        logger.info(
            f"Mirroring {len(repositories)} repositories of {entity} "
            f"into {self.base_dir / entity}"
        )

        def run(meta: RepositoryMetadata) -> RepoSyncResult:
            if cancel_event.is_set():
                return RepoSyncResult(
                    meta, meta.local_path(self.base_dir, entity), SyncOutcome.CANCELLED
                )
            return self.sync_repository(entity, meta)

        try:
            if self.workers == 1:
                for meta in repositories:
                    result.add(run(meta))
            else:
                with futures.ThreadPoolExecutor(max_workers=self.workers) as pool:
                    for repo_result in pool.map(run, repositories):
                        result.add(repo_result)
        except KeyboardInterrupt:
            # queued repositories must not start while the pool drains
            cancel_event.set()
            raise

        result.cancelled = cancel_event.is_set()
        logger.info(str(result))
        return result

    def sync_repository(self, entity: str, meta: RepositoryMetadata) -> RepoSyncResult:
        """Bring the mirror of one repository up to date.

        Never raises for repository-level problems; they are returned as a
        FAILED result.
        """
        path = meta.local_path(self.base_dir, entity)

        with self._lock_for(path):
            try:
                result = self._sync(meta, path)
            except Exception as e:
                logger.error(f"✗ Failed to mirror {meta.name}: {e}")
                if not isinstance(e, SyncError):
                    logger.debug("Full traceback:", exc_info=True)
                return RepoSyncResult(meta, path, SyncOutcome.FAILED, str(e), e)

        if result.outcome is SyncOutcome.FETCHED_UNMERGEABLE:
            logger.warning(f"! {result}")
        else:
            logger.info(f"✓ {result}")
        return result

    def _sync(self, meta: RepositoryMetadata, path: Path) -> RepoSyncResult:
        probed = probe(meta, path)
        reporter = self.reporter.reporter_for(meta)

        if probed.verdict is Verdict.ABSENT:
            logger.info(f"Cloning {meta.name}...")
            GitRepository.clone(meta, path, bare=self.bare, reporter=reporter)
            return RepoSyncResult(meta, path, SyncOutcome.CLONED)

        if probed.verdict is Verdict.INVALID:
            logger.info(f"Replacing {path}: {probed.reason}")
            self._remove(path)
            GitRepository.clone(meta, path, bare=self.bare, reporter=reporter)
            return RepoSyncResult(meta, path, SyncOutcome.RECLONED, str(probed.reason))

        repo = probed.handle
        assert repo is not None
        logger.info(f"Fetching {meta.name}...")
        tip = repo.fetch(reporter=reporter)
        if tip is None:
            return RepoSyncResult(meta, path, SyncOutcome.FETCHED_UP_TO_DATE, "remote is empty")

        try:
            analysis = repo.merge(tip)
        except MergeUnsupportedError as e:
            return RepoSyncResult(meta, path, SyncOutcome.FETCHED_UNMERGEABLE, str(e), e)

        if analysis is MergeAnalysis.UP_TO_DATE:
            return RepoSyncResult(meta, path, SyncOutcome.FETCHED_UP_TO_DATE, tip.branch)
        return RepoSyncResult(
            meta,
            path,
            SyncOutcome.FETCHED_AND_MERGED,
            f"{tip.branch} -> {tip.commit[:10]}",
        )

    def _remove(self, path: Path) -> None:
        """Delete an invalid local copy.

        Raises:
            FilesystemError: If the path could not be removed completely
        """
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise FilesystemError(f"Could not remove {path}: {e}", e) from e

    def _lock_for(self, path: Path) -> threading.Lock:
        key = path.resolve()
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())
