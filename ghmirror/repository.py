"""Repository metadata as returned by the GitHub REST API."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .errors import DecodeError


@dataclass(frozen=True)
class RepositoryMetadata:
    """Immutable description of a remote repository.

    Attributes:
        name: Repository name, unique per entity
        clone_url: HTTPS clone URL ending in ``.git``
        is_fork: True if the repository is a fork of another one
        default_branch: Default branch reported by the API, if known
    """

    name: str
    clone_url: str
    is_fork: bool = False
    default_branch: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Repository name must not be empty")

    @classmethod
    def from_api(cls, data: Any) -> RepositoryMetadata:
        """Build metadata from one element of a list-repos response.

        Raises:
            DecodeError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a repository object, got {type(data).__name__}")

        name = data.get("name")
        clone_url = data.get("clone_url")
        fork = data.get("fork")
        default_branch = data.get("default_branch")

        if not isinstance(name, str) or not name:
            raise DecodeError("Repository object has no valid 'name'")
        if not isinstance(clone_url, str):
            raise DecodeError(f"Repository {name}: 'clone_url' must be a string")
        if not isinstance(fork, bool):
            raise DecodeError(f"Repository {name}: 'fork' must be a boolean")
        if default_branch is not None and not isinstance(default_branch, str):
            raise DecodeError(f"Repository {name}: 'default_branch' must be a string")

        return cls(
            name=name,
            clone_url=clone_url,
            is_fork=fork,
            default_branch=default_branch or None,
        )

    def verify_owner(self, entity: str) -> None:
        """Check that clone_url points at ``entity/name`` and ends in ``.git``.

        Owner and name are compared case-insensitively, as GitHub does.

        Raises:
            DecodeError: If the URL does not belong to this repository
        """
        url = self.clone_url.lower()
        if not url.endswith(".git"):
            raise DecodeError(
                f"Repository {self.name}: clone_url {self.clone_url!r} does not end in .git"
            )
        if entity.lower() not in url or self.name.lower() not in url:
            raise DecodeError(
                f"Repository {self.name}: clone_url {self.clone_url!r} is not owned by {entity}"
            )

    def local_path(self, base_dir: Path, entity: str) -> Path:
        """Return the mirror location ``base_dir/entity/name``."""
        return Path(base_dir) / entity / self.name
