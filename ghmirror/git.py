"""Git primitives used by the sync engine.

All operations shell out to the ``git`` executable. Network operations run
with ``--progress`` and their stderr is parsed into transfer progress samples.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import NamedTuple, Optional, Sequence
from urllib.parse import urlparse

from .errors import (
    CloneFailedError,
    FetchFailedError,
    GitCommandError,
    MergeUnsupportedError,
    NotARepositoryError,
)
from .progress import NullProgress, ProgressReporter
from .repository import RepositoryMetadata

logger = logging.getLogger(__name__)

ORIGIN = "origin"
FETCH_HEAD = "FETCH_HEAD"
FALLBACK_BRANCH = "master"

SUPPORTED_SCHEMES = ("http", "https", "ssh", "git", "file")
SCP_LIKE_URL = re.compile(r"^[\w.+-]+@[\w.-]+:(?!//)\S+$")
RECEIVING_OBJECTS = re.compile(r"Receiving objects:\s+\d+% \((\d+)/(\d+)\)")
SYMREF_HEAD = re.compile(r"^ref: refs/heads/(\S+)\s+HEAD$", re.MULTILINE)

# Keep only this many stderr lines for error messages.
STDERR_TAIL = 20


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Fail instead of waiting for credentials on a terminal.
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_ASKPASS", "echo")
    return env


def run_git(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a git command and capture its output.

    Raises:
        GitCommandError: If check is True and git exits non-zero
    """
    cmd = ["git", *args]
    logger.debug(f"Running {' '.join(cmd)} in {cwd or os.getcwd()}")
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        env=_git_env(),
    )
    if check and result.returncode != 0:
        raise GitCommandError(cmd, result.returncode, result.stderr)
    return result


def parse_progress_line(line: str) -> Optional[tuple[int, int]]:
    """Extract ``(received, total)`` from a git progress line, if present."""
    match = RECEIVING_OBJECTS.search(line)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def run_git_with_progress(
    args: Sequence[str],
    reporter: Optional[ProgressReporter] = None,
    cwd: Optional[Path] = None,
) -> None:
    """Run a network git command, feeding transfer progress to reporter.

    Git rewrites its progress line with carriage returns, so stderr is
    consumed in chunks and split on both CR and LF.

    Raises:
        GitCommandError: If git exits non-zero
    """
    reporter = reporter or NullProgress()
    cmd = ["git", *args]
    logger.debug(f"Running {' '.join(cmd)} in {cwd or os.getcwd()}")

    proc = subprocess.Popen(
        cmd,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        env=_git_env(),
    )
    messages: list[str] = []
    pending = ""

    def handle(line: str) -> None:
        sample = parse_progress_line(line)
        if sample is not None:
            reporter.report(*sample)
        elif line.strip():
            messages.append(line.strip())
            del messages[:-STDERR_TAIL]

    assert proc.stderr is not None
    with proc.stderr:
        for chunk in iter(lambda: proc.stderr.read1(4096), b""):
            pending += chunk.decode("utf-8", "replace")
            *lines, pending = re.split(r"[\r\n]", pending)
            for line in lines:
                handle(line)
        handle(pending)

    returncode = proc.wait()
    if returncode != 0:
        raise GitCommandError(cmd, returncode, "\n".join(messages))


def check_clone_url(url: str) -> None:
    """Reject clone URLs whose transport git would not understand.

    Raises:
        CloneFailedError: If the URL has no supported protocol
    """
    if SCP_LIKE_URL.match(url):
        return
    scheme = urlparse(url).scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise CloneFailedError(f"unsupported URL protocol: {url!r}")


class FetchedTip(NamedTuple):
    """Branch fetched from origin and the commit it points to."""

    branch: str
    commit: str


class MergeAnalysis(enum.Enum):
    UP_TO_DATE = "up-to-date"
    FAST_FORWARD = "fast-forward"
    UNBORN = "unborn"
    DIVERGED = "diverged"


class GitRepository:
    """Handle on an on-disk repository bound to its remote metadata.

    Instances come from :meth:`open` or :meth:`clone`; the constructor does
    not touch the filesystem.
    """

    def __init__(self, path: Path, meta: RepositoryMetadata, is_bare: bool):
        self.path = Path(path)
        self.meta = meta
        self.is_bare = is_bare

    def __repr__(self) -> str:
        kind = "bare " if self.is_bare else ""
        return f"<GitRepository {kind}{self.meta.name} at {self.path}>"

    @property
    def has_working_tree(self) -> bool:
        return not self.is_bare

    @classmethod
    def open(cls, meta: RepositoryMetadata, path: Path) -> GitRepository:
        """Open the repository whose root is exactly ``path``.

        A directory somewhere inside another repository is not accepted.

        Raises:
            NotARepositoryError: If path is not a repository root
        """
        path = Path(path)
        if not path.is_dir():
            raise NotARepositoryError(f"{path} is not a directory")

        result = run_git(["rev-parse", "--is-bare-repository"], cwd=path, check=False)
        if result.returncode != 0:
            raise NotARepositoryError(f"could not find repository at {path}")
        is_bare = result.stdout.strip() == "true"

        if is_bare:
            top = run_git(["rev-parse", "--absolute-git-dir"], cwd=path, check=False)
        else:
            top = run_git(["rev-parse", "--show-toplevel"], cwd=path, check=False)
        if top.returncode != 0:
            raise NotARepositoryError(f"could not find repository at {path}")

        if Path(top.stdout.strip()).resolve() != path.resolve():
            raise NotARepositoryError(
                f"{path} is inside the repository at {top.stdout.strip()}"
            )
        return cls(path, meta, is_bare)

    @classmethod
    def clone(
        cls,
        meta: RepositoryMetadata,
        path: Path,
        bare: bool = False,
        reporter: Optional[ProgressReporter] = None,
    ) -> GitRepository:
        """Clone ``meta.clone_url`` into path.

        Raises:
            CloneFailedError: Unsupported URL, network or authentication error
        """
        check_clone_url(meta.clone_url)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        args = ["clone", "--progress"]
        if bare:
            args.append("--bare")
        args += ["--", meta.clone_url, str(path)]

        try:
            run_git_with_progress(args, reporter)
        except GitCommandError as e:
            raise CloneFailedError(f"Error while cloning {meta.clone_url}: {e.stderr}", e) from e

        return cls(path, meta, is_bare=bare)

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        return run_git(args, cwd=self.path, check=check)

    def remote_url(self, name: str = ORIGIN) -> Optional[str]:
        """URL of the named remote, or None if there is no such remote."""
        result = self.git("config", "--get", f"remote.{name}.url", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def resolve(self, rev: str) -> Optional[str]:
        """Commit id of rev, or None if it does not resolve to a commit."""
        result = self.git("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def head_commit(self) -> Optional[str]:
        return self.resolve("HEAD")

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self.git("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode not in (0, 1):
            raise GitCommandError(
                ["git", "merge-base", "--is-ancestor", ancestor, descendant],
                result.returncode,
                result.stderr,
            )
        return result.returncode == 0

    def default_branch(self) -> str:
        """Branch to mirror.

        Uses the branch reported by the API, then the one origin's HEAD
        points to, then ``master``.
        """
        if self.meta.default_branch:
            return self.meta.default_branch

        result = self.git("ls-remote", "--symref", ORIGIN, "HEAD", check=False)
        if result.returncode == 0:
            match = SYMREF_HEAD.search(result.stdout)
            if match:
                return match.group(1)

        logger.debug(f"Could not resolve origin HEAD of {self.meta.name}, using {FALLBACK_BRANCH}")
        return FALLBACK_BRANCH

    def remote_has_branch(self, branch: str) -> bool:
        """Whether origin currently has ``refs/heads/<branch>``.

        Raises:
            FetchFailedError: If origin could not be listed
        """
        ref = f"refs/heads/{branch}"
        try:
            result = self.git("ls-remote", "--heads", ORIGIN, ref)
        except GitCommandError as e:
            raise FetchFailedError(f"Error while listing {self.meta.name}: {e.stderr}", e) from e
        return any(line.split("\t")[-1] == ref for line in result.stdout.splitlines())

    def fetch(self, reporter: Optional[ProgressReporter] = None) -> Optional[FetchedTip]:
        """Fetch the default branch and all tags from origin.

        A bare repository has no remote-tracking setup, so the branch is
        fetched straight into ``refs/heads/<branch>``.

        Returns:
            The fetched tip, or None if origin does not have the branch yet
            (an empty repository, for instance)

        Raises:
            FetchFailedError: If the fetch fails or FETCH_HEAD is unusable
        """
        branch = self.default_branch()
        if not self.remote_has_branch(branch):
            logger.info(f"Origin of {self.meta.name} has no branch {branch}, nothing to fetch")
            return None

        refspec = f"+refs/heads/{branch}:refs/heads/{branch}" if self.is_bare else branch
        try:
            run_git_with_progress(
                ["fetch", "--progress", "--tags", ORIGIN, refspec],
                reporter,
                cwd=self.path,
            )
        except GitCommandError as e:
            raise FetchFailedError(f"Error while fetching {self.meta.name}: {e.stderr}", e) from e

        commit = self.resolve(FETCH_HEAD)
        if commit is None:
            raise FetchFailedError(f"Fetching {self.meta.name} did not produce {FETCH_HEAD}")
        return FetchedTip(branch, commit)

    def merge_analysis(self, tip: FetchedTip) -> MergeAnalysis:
        local = self.resolve(f"refs/heads/{tip.branch}")
        if local is None:
            return MergeAnalysis.UNBORN
        if local == tip.commit or self.is_ancestor(tip.commit, local):
            return MergeAnalysis.UP_TO_DATE
        if self.is_ancestor(local, tip.commit):
            return MergeAnalysis.FAST_FORWARD
        return MergeAnalysis.DIVERGED

    def merge(self, tip: FetchedTip) -> MergeAnalysis:
        """Fast-forward the local branch to the fetched tip.

        Repositories without a working tree are skipped; their branch was
        already moved by :meth:`fetch`. The checkout is forced, so
        uncommitted local edits are overwritten.

        Returns:
            The analysis that was applied

        Raises:
            MergeUnsupportedError: If local and fetched history diverged
        """
        if not self.has_working_tree:
            logger.debug(f"{self.meta.name} has no working tree, skipping merge")
            return MergeAnalysis.UP_TO_DATE

        analysis = self.merge_analysis(tip)
        ref = f"refs/heads/{tip.branch}"

        if analysis is MergeAnalysis.UP_TO_DATE:
            return analysis
        if analysis is MergeAnalysis.DIVERGED:
            raise MergeUnsupportedError(tip.branch, self.resolve(ref) or "", tip.commit)

        if analysis is MergeAnalysis.UNBORN:
            self.git("update-ref", "-m", "ghmirror: create branch", ref, tip.commit)
        else:
            old = self.resolve(ref)
            assert old is not None
            self.git("update-ref", "-m", "ghmirror: fast-forward", ref, tip.commit, old)

        self.git("symbolic-ref", "HEAD", ref)
        self.git("checkout", "--force", "--quiet", tip.branch, "--")
        return analysis
