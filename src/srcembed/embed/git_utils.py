from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from git import Commit, Repo
from git.exc import BadName


def open_repo(path: Path) -> Repo:
    return Repo(str(path), search_parent_directories=True)


def resolve_commit(repo: Repo, rev: str) -> Commit:
    try:
        return repo.commit(rev)
    except (BadName, ValueError) as exc:
        raise ValueError(f"Revision {rev} not found in repository") from exc


def scoped_patterns(repo: Repo, path: Path, patterns: Iterable[str]) -> List[str]:
    """Limit ``patterns`` to ``path`` when it is a subdirectory of the work tree."""
    root = working_tree_root(repo).resolve()
    prefix = Path(path).resolve().relative_to(root).as_posix()
    if prefix == ".":
        return list(patterns)
    return [f"{prefix}/{pattern}" for pattern in patterns]


def tracked_files(repo: Repo, patterns: Iterable[str]) -> List[str]:
    files = repo.git.ls_files("--", *patterns)
    return sorted({line.strip() for line in files.splitlines() if line.strip()})


def changed_files_since(repo: Repo, rev: str, patterns: Iterable[str]) -> List[str]:
    """Files matching ``patterns`` that differ between ``rev`` and the work tree."""
    base = resolve_commit(repo, rev)
    files: set[str] = set()
    for diff in base.diff(None, paths=list(patterns)):
        if diff.deleted_file:
            continue
        path = diff.b_path or diff.a_path
        if path:
            files.add(path)
    return sorted(files)


def working_tree_root(repo: Repo) -> Path:
    if repo.working_tree_dir is None:
        raise ValueError("Repository has no working tree")
    return Path(repo.working_tree_dir)
