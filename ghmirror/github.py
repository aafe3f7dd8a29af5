"""GitHub API client for discovering repositories.

This module lists every repository of a user or organization through the
paginated REST endpoint ``/{users|orgs}/{entity}/repos``.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from typing import Optional

import requests

from . import __version__
from .errors import (
    DecodeError,
    DiscoveryError,
    InvalidEntityError,
    NetworkError,
    OperationCancelled,
    UnexpectedStatusError,
)
from .repository import RepositoryMetadata

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
DEFAULT_PAGE_SIZE = 100


class Namespace(enum.Enum):
    """Kind of account an entity name may refer to.

    The value is the path segment used by the list-repos endpoint.
    """

    USER = "users"
    ORG = "orgs"


# Tried in order; the first namespace that lists successfully wins.
NAMESPACES: tuple[Namespace, ...] = (Namespace.USER, Namespace.ORG)


class GitHubClient:
    """Client for listing repositories on GitHub.

    Uses a single requests session for all page requests. A token is optional
    and only raises rate limits or exposes private repositories.
    """

    def __init__(
        self,
        timeout: int = 30,
        token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        api_url: str = API_URL,
    ):
        """Initialize the GitHub client.

        Args:
            timeout: Request timeout in seconds
            token: Optional GitHub token, defaults to $GITHUB_TOKEN
            page_size: Number of repositories requested per page
            api_url: Base URL of the REST API
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        self.timeout = timeout
        self.token = token or os.getenv("GITHUB_TOKEN")
        self.page_size = page_size
        self.api_url = api_url.rstrip("/")
        self.session = requests.Session()

        self.session.headers.update(
            {
                "User-Agent": f"ghmirror/{__version__}",
                "Accept": "application/vnd.github+json",
            }
        )

        if self.token:
            self.session.headers.update({"Authorization": f"token {self.token}"})
            logger.debug("GitHub token configured")

    def discover(
        self,
        entity: str,
        filter_forks: bool = False,
        cancel_event: Optional[threading.Event] = None,
        namespaces: tuple[Namespace, ...] = NAMESPACES,
    ) -> list[RepositoryMetadata]:
        """List all repositories owned by a user or organization.

        Each namespace is tried in turn until one lists successfully.

        Args:
            entity: User or organization name
            filter_forks: Drop forked repositories from the result
            cancel_event: Stops issuing page requests once set
            namespaces: Ordered namespaces to resolve the entity in

        Returns:
            Repository metadata in the order GitHub returned it

        Raises:
            InvalidEntityError: If the last namespace answered 404
            DiscoveryError: Any other failure of the last namespace
            OperationCancelled: If cancel_event was set

        Example:
            >>> with GitHubClient() as client:
            ...     repos = client.discover("octocat")
            >>> repos[0].clone_url
            'https://github.com/octocat/Hello-World.git'
        """
        if not entity:
            raise ValueError("entity must not be empty")
        if not namespaces:
            raise ValueError("at least one namespace is required")

        last_error: Optional[DiscoveryError] = None
        for namespace in namespaces:
            try:
                repos = self.list_repositories(namespace, entity, cancel_event)
            except DiscoveryError as e:
                logger.debug(f"Listing {entity} as {namespace.name.lower()} failed: {e}")
                last_error = e
                continue

            logger.info(
                f"Found {len(repos)} repositories for {namespace.name.lower()} {entity}"
            )
            if filter_forks:
                repos = [repo for repo in repos if not repo.is_fork]
                logger.info(f"{len(repos)} repositories left after skipping forks")
            return repos

        assert last_error is not None
        raise last_error

    def list_repositories(
        self,
        namespace: Namespace,
        entity: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[RepositoryMetadata]:
        """Walk all pages of one namespace's list-repos endpoint.

        A page holding fewer entries than the page size is the last one.
        Every entry must carry a clone URL for ``entity/name``.
        """
        url = f"{self.api_url}/{namespace.value}/{entity}/repos"
        repos: list[RepositoryMetadata] = []
        page = 1

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled(f"Discovery of {entity} cancelled")

            entries = self._get_page(url, entity, page)
            for entry in entries:
                repo = RepositoryMetadata.from_api(entry)
                repo.verify_owner(entity)
                repos.append(repo)

            if len(entries) < self.page_size:
                return repos
            page += 1

    def _get_page(self, url: str, entity: str, page: int) -> list:
        """Fetch and decode a single page.

        Raises:
            InvalidEntityError: On HTTP 404
            UnexpectedStatusError: On any other non-200 status
            NetworkError: If the request itself failed
            DecodeError: If the body is not a JSON array
        """
        params = {"per_page": self.page_size, "page": page}
        logger.debug(f"GET {url} page={page}")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if response.status_code == 404:
            raise InvalidEntityError(entity)
        if response.status_code != 200:
            raise UnexpectedStatusError(url, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(data, list):
            raise DecodeError(f"Expected a JSON array from {url}")
        return data

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> GitHubClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def discover(
    entity: str,
    filter_forks: bool = False,
    timeout: int = 30,
    token: Optional[str] = None,
) -> list[RepositoryMetadata]:
    """Convenience wrapper creating a short-lived client."""
    with GitHubClient(timeout=timeout, token=token) as client:
        return client.discover(entity, filter_forks=filter_forks)
