"""ghmirror - mirror every repository of a GitHub user or organization.

This package discovers repositories through the GitHub REST API and keeps a
local clone of each one up to date with fast-forward-only merges.
"""

__version__ = "1.0.0"

from .config import MirrorConfig, load_config
from .errors import DiscoveryError, InvalidEntityError, SyncError
from .git import GitRepository
from .github import GitHubClient, Namespace, discover
from .probe import ProbeResult, Verdict, probe
from .progress import ConsoleProgress, NullProgress, ProgressReporter
from .repository import RepositoryMetadata
from .sync import MirrorResult, RepoMirror, RepoSyncResult, SyncOutcome

__all__ = [
    "MirrorConfig",
    "load_config",
    "DiscoveryError",
    "InvalidEntityError",
    "SyncError",
    "GitRepository",
    "GitHubClient",
    "Namespace",
    "discover",
    "ProbeResult",
    "Verdict",
    "probe",
    "ConsoleProgress",
    "NullProgress",
    "ProgressReporter",
    "RepositoryMetadata",
    "MirrorResult",
    "RepoMirror",
    "RepoSyncResult",
    "SyncOutcome",
]
