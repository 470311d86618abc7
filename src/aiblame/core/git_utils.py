"""Shared git helpers for the CLI, hooks and core pipeline."""

from __future__ import annotations

import subprocess
from pathlib import Path

from .errors import NotARepositoryError, RevisionError

# Object id of the empty tree; diffing a root commit against it yields every line.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf899d15f3f4b7b18"
ZERO_OID = "0" * 40


def run_git(
    args: list[str],
    cwd: str,
    check: bool = True,
    input: str | None = None,
    timeout: int = 30,
) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", "-c", "core.quotePath=false"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        input=input,
        timeout=timeout,
        check=check,
    )


def find_git_root(path: str | Path = ".") -> str | None:
    """Find git repo root from given path."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=str(path),
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError, NotADirectoryError):
        pass
    return None


def require_git_root(path: str | Path = ".") -> str:
    repo_path = find_git_root(path)
    if repo_path is None:
        raise NotARepositoryError(str(path))
    return repo_path


def get_git_dir(repo_path: str) -> Path:
    """Absolute path of the repository's private metadata directory."""
    result = run_git(["rev-parse", "--absolute-git-dir"], cwd=repo_path, check=False, timeout=5)
    if result.returncode != 0:
        raise NotARepositoryError(repo_path)
    return Path(result.stdout.strip())


def resolve_commit(repo_path: str, revision: str) -> str:
    """Resolve a revision string to a full commit id. Raises RevisionError."""
    try:
        result = run_git(["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"], cwd=repo_path, check=False, timeout=5)
    except (subprocess.TimeoutExpired, FileNotFoundError):
        raise RevisionError(revision)
    if result.returncode != 0 or not result.stdout.strip():
        raise RevisionError(revision)
    return result.stdout.strip()


def get_first_parent(repo_path: str, commit: str) -> str | None:
    """First parent of a commit, or None for a root commit."""
    result = run_git(["rev-parse", "--verify", "--quiet", f"{commit}^1"], cwd=repo_path, check=False, timeout=5)
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip()
    return None


def diff_trees(repo_path: str, old: str, new: str, paths: list[str] | None = None) -> str:
    """Zero-context diff between two tree-ish objects, with rename detection.

    Raises subprocess.CalledProcessError on failure.
    """
    args = ["diff", "-U0", "--no-color", "--no-ext-diff", "-M", old, new]
    if paths:
        args += ["--"] + paths
    return run_git(args, cwd=repo_path).stdout


def diff_commit(repo_path: str, commit: str) -> str:
    """Diff a commit against its first parent (empty tree for a root commit)."""
    parent = get_first_parent(repo_path, commit)
    return diff_trees(repo_path, parent or EMPTY_TREE, commit)


def blame_porcelain(
    repo_path: str,
    file_path: str,
    revision: str,
    start_line: int | None = None,
    end_line: int | None = None,
) -> str:
    """Run ``git blame --porcelain`` for a file at a revision."""
    args = ["blame", "--porcelain"]
    if start_line is not None:
        args += ["-L", f"{start_line},{end_line if end_line is not None else start_line}"]
    args += [revision, "--", file_path]
    return run_git(args, cwd=repo_path, timeout=60).stdout


def rev_list(repo_path: str, commit_range: str) -> list[str]:
    """List commit ids in a range (``a..b``, ``a...b`` or a single revision)."""
    result = run_git(["rev-list", commit_range], cwd=repo_path, check=False, timeout=60)
    if result.returncode != 0:
        raise RevisionError(commit_range)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def to_repo_relative(repo_path: str, file_path: str) -> str:
    """Normalize a path to repository-relative form with forward slashes."""
    p = Path(file_path)
    if p.is_absolute():
        try:
            p = p.resolve().relative_to(Path(repo_path).resolve())
        except ValueError:
            pass
    return p.as_posix()


def get_config_values(repo_path: str, key: str) -> list[str]:
    result = run_git(["config", "--get-all", key], cwd=repo_path, check=False, timeout=5)
    if result.returncode != 0:
        return []
    return [v for v in result.stdout.splitlines() if v]


def add_config_value(repo_path: str, key: str, value: str) -> None:
    run_git(["config", "--add", key, value], cwd=repo_path, timeout=5)
