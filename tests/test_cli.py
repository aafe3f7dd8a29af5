"""Tests for CLI module."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import yaml

from ghmirror.cli import create_parser, main, resolve_config
from ghmirror.errors import InvalidEntityError, OperationCancelled, UnexpectedStatusError
from ghmirror.repository import RepositoryMetadata

REPOS = [RepositoryMetadata("Hello-World", "https://github.com/octocat/Hello-World.git")]


def mock_client(mock_client_class: Mock, repos=REPOS, error=None) -> Mock:
    client = Mock()
    if error is not None:
        client.discover.side_effect = error
    else:
        client.discover.return_value = repos
    mock_client_class.return_value.__enter__.return_value = client
    return client


def mock_mirror(mock_mirror_class: Mock, is_success: bool = True) -> Mock:
    mirror = Mock()
    result = Mock()
    result.is_success = is_success
    result.failures = []
    result.needs_attention = []
    mirror.mirror.return_value = result
    mock_mirror_class.return_value = mirror
    return mirror


class TestCLI:
    """Test cases for CLI functionality."""

    def test_parse_args_default(self) -> None:
        """Test argument parsing with default values."""
        args = create_parser().parse_args(["octocat"])

        assert args.entity == "octocat"
        assert args.bare is None
        assert args.skip_forks is None
        assert args.output is None
        assert args.config is None
        assert args.verbose is False

    def test_parse_args_all_options(self) -> None:
        """Test argument parsing with all options."""
        args = create_parser().parse_args(
            [
                "kubernetes",
                "--bare",
                "--skip-forks",
                "--output", "mirrors",
                "--config", "mirror.yaml",
                "--workers", "4",
                "--timeout", "60",
                "--page-size", "50",
                "--verbose",
            ]
        )

        assert args.entity == "kubernetes"
        assert args.bare is True
        assert args.skip_forks is True
        assert args.output == Path("mirrors")
        assert args.config == Path("mirror.yaml")
        assert args.workers == 4
        assert args.timeout == 60
        assert args.page_size == 50
        assert args.verbose is True

    def test_parse_args_requires_entity(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_resolve_config_overrides_file(self, tmp_path: Path) -> None:
        """Test that flags win over configuration file values."""
        config_file = tmp_path / "mirror.yaml"
        config_file.write_text(yaml.dump({"workers": 2, "bare": False}), encoding="utf-8")
        args = create_parser().parse_args(
            ["octocat", "-c", str(config_file), "--bare", "-o", "out"]
        )

        config = resolve_config(args)

        assert config["workers"] == 2
        assert config["bare"] is True
        assert config["base_dir"] == "out"

    def test_resolve_config_rejects_bad_workers(self) -> None:
        args = create_parser().parse_args(["octocat", "-j", "0"])
        with pytest.raises(ValueError):
            resolve_config(args)

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_success(self, mock_client_class: Mock, mock_mirror_class: Mock, tmp_path: Path) -> None:
        """Test successful main execution."""
        client = mock_client(mock_client_class)
        mirror = mock_mirror(mock_mirror_class)

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat", "--bare", "--skip-forks", "-o", str(tmp_path)])
        assert exc_info.value.code == 0

        assert client.discover.call_args[0][0] == "octocat"
        assert client.discover.call_args[1]["filter_forks"] is True
        assert mock_mirror_class.call_args[1]["bare"] is True
        assert mock_mirror_class.call_args[1]["base_dir"] == tmp_path
        mirror.mirror.assert_called_once()

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_invalid_entity(self, mock_client_class: Mock, mock_mirror_class: Mock) -> None:
        """Test that discovery failure exits non-zero without mirroring."""
        mock_client(mock_client_class, error=InvalidEntityError("nobody"))

        with pytest.raises(SystemExit) as exc_info:
            main(["nobody"])
        assert exc_info.value.code == 1
        mock_mirror_class.assert_not_called()

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_unknown_discovery_error(self, mock_client_class: Mock, mock_mirror_class: Mock) -> None:
        mock_client(mock_client_class, error=UnexpectedStatusError("url", 500))

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat"])
        assert exc_info.value.code == 1

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_repository_failure(self, mock_client_class: Mock, mock_mirror_class: Mock) -> None:
        """Test that a failed repository leads to exit code 1."""
        mock_client(mock_client_class)
        mock_mirror(mock_mirror_class, is_success=False)

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat"])
        assert exc_info.value.code == 1

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_no_repositories(self, mock_client_class: Mock, mock_mirror_class: Mock) -> None:
        mock_client(mock_client_class, repos=[])

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat"])
        assert exc_info.value.code == 0
        mock_mirror_class.assert_not_called()

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_interrupted(self, mock_client_class: Mock, mock_mirror_class: Mock) -> None:
        mock_client(mock_client_class, error=OperationCancelled("stop"))

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat"])
        assert exc_info.value.code == 130

    @patch("ghmirror.cli.RepoMirror")
    @patch("ghmirror.cli.GitHubClient")
    def test_main_keyboard_interrupt_sets_cancel(
        self, mock_client_class: Mock, mock_mirror_class: Mock
    ) -> None:
        mock_client(mock_client_class)
        mirror = mock_mirror(mock_mirror_class)
        mirror.mirror.side_effect = KeyboardInterrupt

        with pytest.raises(SystemExit) as exc_info:
            main(["octocat"])
        assert exc_info.value.code == 130
        assert mirror.mirror.call_args[1]["cancel_event"].is_set()

    def test_main_config_not_found(self) -> None:
        """Test main execution when an explicit config file is missing."""
        with pytest.raises(SystemExit) as exc_info:
            main(["octocat", "--config", "nonexistent.yaml"])
        assert exc_info.value.code == 1
