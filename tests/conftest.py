"""Shared fixtures for tests that run against real git repositories."""

from __future__ import annotations

import subprocess

import pytest


def git(repo, *args, input=None, check=True) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=check,
        capture_output=True,
        text=True,
        input=input,
    )
    return result.stdout.strip()


def commit_file(repo, path: str, content: str, message: str = "update") -> str:
    """Write ``content`` to ``path``, commit it and return the new commit id."""
    target = repo / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    git(repo, "add", path)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def numbered_lines(start: int, end: int, prefix: str = "line") -> str:
    """Lines ``<prefix> start`` .. ``<prefix> end - 1``, newline terminated."""
    return "".join(f"{prefix} {i}\n" for i in range(start, end))


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path, monkeypatch):
    """Isolate global config to temp dir."""
    config_path = tmp_path / "global_ai_blame" / "config.toml"
    monkeypatch.setattr("aiblame.core.config._GLOBAL_CONFIG_PATH", config_path)
    return config_path


@pytest.fixture
def git_repo(tmp_path):
    """Create a real git repo in a temp directory."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-q", str(repo)], check=True, capture_output=True)
    subprocess.run(
        ["git", "-C", str(repo), "config", "user.email", "test@test.com"],
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "-C", str(repo), "config", "user.name", "Test"],
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "-C", str(repo), "config", "commit.gpgsign", "false"],
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "-C", str(repo), "commit", "--allow-empty", "-m", "init"],
        check=True,
        capture_output=True,
    )
    return repo


@pytest.fixture
def bare_repo(tmp_path):
    """A git repo with no commits at all."""
    repo = tmp_path / "bare"
    repo.mkdir()
    subprocess.run(["git", "init", "-q", str(repo)], check=True, capture_output=True)
    subprocess.run(["git", "-C", str(repo), "config", "user.email", "test@test.com"], check=True, capture_output=True)
    subprocess.run(["git", "-C", str(repo), "config", "user.name", "Test"], check=True, capture_output=True)
    subprocess.run(["git", "-C", str(repo), "config", "commit.gpgsign", "false"], check=True, capture_output=True)
    return repo


@pytest.fixture
def store(git_repo):
    from aiblame.core.staging import StagingStore

    return StagingStore.for_repo(str(git_repo), lock_timeout=1.0)


@pytest.fixture
def notes(git_repo):
    from aiblame.core.notes import NotesRepository

    return NotesRepository(str(git_repo))
