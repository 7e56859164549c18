"""Parent-project resolution across git worktrees.

A session's working directory may be a secondary worktree of some main
checkout. Sessions are grouped by the main checkout's name so that work
spread over several worktrees shows up as one project.

Resolution order:
1. The ``.git`` marker. A directory means a main checkout; a file holding
   ``gitdir: <main>/.git/worktrees/<name>`` means a worktree of ``<main>``.
2. Naming heuristics on the project name, for paths that no longer exist
   or were never checked out locally.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

_GITDIR_RE = re.compile(r"^gitdir:\s*(.+)$", re.MULTILINE)

# Prefix generated for automation-created worktrees: <base>-claude-<description>
_AUTOMATION_RE = re.compile(r"^(.+?)-claude-")

WORKTREE_SUFFIXES = (
    "-feature-",
    "-fix-",
    "-bugfix-",
    "-hotfix-",
    "-release-",
    "-refactor-",
    "-test-",
    "-wip-",
    "-temp-",
    "-branch-",
)

_HASH_SUFFIX_RE = re.compile(r"^(.+)-[a-zA-Z0-9]{5,}$")


@dataclass
class WorktreeInfo:
    """One entry from ``git worktree list``."""

    path: Path
    branch: str | None = None
    is_main: bool = False
    parent_project: str | None = None


class _HasProject(Protocol):
    project: str
    project_path: str


T = TypeVar("T", bound=_HasProject)


@dataclass
class ProjectGroup(Generic[T]):
    """Items sharing one parent project, with the worktree names seen."""

    parent: str
    items: list[T] = field(default_factory=list)
    worktrees: set[str] = field(default_factory=set)

    @property
    def display_name(self) -> str:
        return format_project_with_worktrees(self.parent, self.worktrees)


def is_worktree(project_path: Path) -> bool:
    """True if ``project_path`` has a ``.git`` file (not directory)."""
    try:
        return (project_path / ".git").is_file()
    except OSError:
        return False


def _main_path_from_gitdir(gitdir: PurePath) -> PurePath | None:
    parts = gitdir.parts
    for index in range(len(parts) - 1, 0, -1):
        if parts[index] != "worktrees":
            continue
        repo_dir = PurePath(*parts[:index])
        if repo_dir.name == ".git":
            return repo_dir.parent
        # Bare repository: <name>.git/worktrees/<wt>
        if repo_dir.name.endswith(".git"):
            return repo_dir.with_name(repo_dir.name[: -len(".git")])
        return None
    return None


def get_main_repo_path(project_path: Path) -> Path | None:
    """Main checkout path for a project path, or None if undeterminable.

    A main checkout returns itself. A worktree returns the checkout its
    ``gitdir:`` redirect points back to.

    Raises OSError when the marker exists but cannot be read.
    """
    git_path = project_path / ".git"
    if not git_path.exists():
        return None
    if git_path.is_dir():
        return project_path

    content = git_path.read_text(encoding="utf-8").strip()
    match = _GITDIR_RE.match(content)
    if not match:
        return None

    gitdir = Path(match.group(1).strip())
    if not gitdir.is_absolute():
        gitdir = project_path / gitdir

    main = _main_path_from_gitdir(gitdir)
    return Path(main) if main is not None else None


def infer_parent_project_from_name(project_name: str, _recursed: bool = False) -> str:
    """Guess the parent project from worktree naming conventions.

    Examples:
    - cocos-story-claude-refactor-place-parsing-AuAUX -> cocos-story
    - my-project-feature-login -> my-project
    - my-project-x7Gq2 -> my-project
    - project-x7Gq2 -> project-x7Gq2 (no separator left once the token is gone)

    A trailing random-looking token is stripped at most once more via a
    single recursive call; the recursive call does not strip tokens again.
    """
    automation = _AUTOMATION_RE.match(project_name)
    if automation:
        return automation.group(1)

    for suffix in WORKTREE_SUFFIXES:
        index = project_name.find(suffix)
        if index > 0:
            return project_name[:index]

    if not _recursed:
        hash_match = _HASH_SUFFIX_RE.match(project_name)
        if hash_match:
            remaining = hash_match.group(1)
            if "-" in remaining:
                return infer_parent_project_from_name(remaining, _recursed=True)

    return project_name


def get_parent_project(project_path: str | Path | None, project_name: str) -> str:
    """Canonical parent project name used for grouping.

    A valid worktree redirect always wins; otherwise the name heuristic is
    used, but only when it yields a different, shorter name.
    """
    if project_path:
        path = Path(project_path)
        try:
            main_path = get_main_repo_path(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Worktree marker lookup failed for %s: %s", path, e)
            main_path = None
        if main_path is not None and main_path != path:
            return main_path.name

    inferred = infer_parent_project_from_name(project_name)
    if inferred != project_name and len(inferred) < len(project_name):
        return inferred
    return project_name


class ParentProjectResolver:
    """Memoizing parent-project lookup.

    Detectors resolve the same handful of paths for every session, so
    results are cached per (path, name) for the lifetime of one run.
    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, str], str] = {}

    def resolve(self, project_path: str | Path | None, project_name: str) -> str:
        key = (str(project_path or ""), project_name)
        if key not in self._cache:
            self._cache[key] = get_parent_project(project_path, project_name)
        return self._cache[key]

    def group(self, items: Iterable[T]) -> dict[str, ProjectGroup[T]]:
        return group_by_parent_project(items, resolver=self)


def group_by_parent_project(
    items: Iterable[T],
    resolver: ParentProjectResolver | None = None,
) -> dict[str, ProjectGroup[T]]:
    """Group items by parent project, keeping the distinct original names."""
    resolve = resolver.resolve if resolver else get_parent_project
    groups: dict[str, ProjectGroup[T]] = {}
    for item in items:
        parent = resolve(item.project_path, item.project)
        group = groups.setdefault(parent, ProjectGroup(parent=parent))
        group.items.append(item)
        group.worktrees.add(item.project)
    return groups


def format_project_with_worktrees(parent_project: str, worktrees: set[str]) -> str:
    """Project name with a worktree count when more than one was seen."""
    if len(worktrees) <= 1:
        return parent_project
    return f"{parent_project} ({len(worktrees)} worktrees)"


def _run_git(cwd: Path, *args: str, timeout: int = 5) -> tuple[str, int]:
    """Run a git command in ``cwd``."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.stdout.rstrip("\n"), result.returncode
    except subprocess.TimeoutExpired:
        return "", 1
    except (FileNotFoundError, NotADirectoryError):
        return "", 1


def list_worktrees(project_path: Path) -> list[WorktreeInfo]:
    """List every worktree of the repository containing ``project_path``."""
    try:
        main_path = get_main_repo_path(project_path) or project_path
    except (OSError, UnicodeDecodeError):
        main_path = project_path

    output, code = _run_git(main_path, "worktree", "list", "--porcelain")
    if code != 0:
        return []

    worktrees: list[WorktreeInfo] = []
    current: WorktreeInfo | None = None

    for line in output.split("\n"):
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = WorktreeInfo(path=Path(line[9:]))
        elif line.startswith("branch ") and current is not None:
            current.branch = line[7:].removeprefix("refs/heads/")
        elif line == "bare":
            current = None

    if current is not None:
        worktrees.append(current)

    for info in worktrees:
        info.is_main = info.path == main_path
        if not info.is_main:
            info.parent_project = main_path.name

    return worktrees
