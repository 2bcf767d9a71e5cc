"""Discovery of repository directories: override list, cache, filesystem scan."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .config import (
    CACHE_DIRNAME,
    SCAN_ALWAYS,
    SCAN_CLI,
    SCAN_HEARTBEAT,
    SCAN_MANUAL,
    WhatGitBranchConfig,
)
from .logging import get_logger
from .repository import is_repository_directory, normalize_directory
from .stores import DIRECTORIES_KEY, DirectoryStore, create_store

CONTEXT_REQUEST = "request"
CONTEXT_HEARTBEAT = "heartbeat"
CONTEXT_CLI = "cli"
CONTEXT_MAINTENANCE = "maintenance"

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    CACHE_DIRNAME,
}

# Contexts that count as a command-line invocation for the cli/heartbeat policies.
_CLI_CONTEXTS = {CONTEXT_CLI, CONTEXT_MAINTENANCE}

logger = get_logger("locator")


class ScanNotPermittedError(RuntimeError):
    """Raised when an explicit scan is requested but the policy forbids it."""


class CacheWriteError(RuntimeError):
    """Raised when scan results could not be written to the cache backend."""


@dataclass
class ExcludeRule:
    """A gitignore-style pattern naming a subtree the scan never enters."""

    pattern: str
    anchored: bool
    has_slash: bool

    def matches(self, rel_path: str) -> bool:
        if not self.pattern:
            return False
        if self.anchored or self.has_slash:
            return fnmatchcase(rel_path, self.pattern) or rel_path.startswith(
                f"{self.pattern}/"
            )
        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def _build_exclude_rule(pattern: str) -> ExcludeRule | None:
    pattern = pattern.strip().rstrip("/")
    if not pattern:
        return None
    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")
    return ExcludeRule(pattern=pattern, anchored=anchored, has_slash="/" in pattern)


def _build_exclude_rules(patterns: Iterable[str]) -> List[ExcludeRule]:
    rules: List[ExcludeRule] = []
    for pattern in patterns:
        rule = _build_exclude_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _is_excluded(rel_path: str, rules: Sequence[ExcludeRule]) -> bool:
    return any(rule.matches(rel_path) for rule in rules)


def _iter_directories(
    root: Path,
    rules: Sequence[ExcludeRule],
    *,
    max_depth: int,
    follow_symlinks: bool,
) -> Iterator[Path]:
    visited: set[str] = set()
    for dirpath, dirnames, _ in os.walk(root, followlinks=follow_symlinks):
        current_dir = Path(dirpath)
        if follow_symlinks:
            real = os.path.realpath(dirpath)
            if real in visited:
                dirnames[:] = []
                continue
            visited.add(real)

        yield current_dir

        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
        depth = len(rel_dir.split("/")) if rel_dir else 0
        if depth >= max_depth:
            dirnames[:] = []
            continue

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _is_excluded(rel_path, rules):
                continue
            kept.append(name)
        dirnames[:] = kept


def _unique(paths: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result


class RepositoryLocator:
    """Produces candidate repository directories and decides when to scan.

    The scanning policy is evaluated once per locator, and the directory list
    is computed at most once, so one locator corresponds to one request or
    command invocation.
    """

    def __init__(
        self,
        config: WhatGitBranchConfig,
        *,
        context: str = CONTEXT_REQUEST,
        store: DirectoryStore | None = None,
    ) -> None:
        self.config = config
        self.context = context
        self.store = store or create_store(config)
        self._rules = _build_exclude_rules(config.scan.exclude_paths)
        self._can_scan: Optional[bool] = None
        self._directories: Optional[List[str]] = None

    @property
    def cache_backend(self) -> str:
        return self.store.kind

    def can_scan(self) -> bool:
        if self._can_scan is None:
            self._can_scan = self._evaluate_scan_policy()
            logger.debug(
                "Scanning %s (policy=%s, context=%s)",
                "permitted" if self._can_scan else "not permitted",
                self.config.scan.when,
                self.context,
            )
        return self._can_scan

    def get_directories(self) -> List[str]:
        """Return repository directories from the first source that has any."""
        if self._directories is None:
            self._directories = _unique(
                list(self._primary_source()) + self._qualifying(self.config.must_include)
            )
        return list(self._directories)

    def scan(self) -> List[str]:
        """Walk the scan root and return every qualifying directory."""
        root = Path(self.config.scan_root)
        if not root.is_dir():
            logger.warning("Scan root %s is not a directory", root)
            return []
        logger.info("Scanning %s for repositories", root)
        found = [
            normalize_directory(directory)
            for directory in _iter_directories(
                root,
                self._rules,
                max_depth=self.config.scan.max_depth,
                follow_symlinks=self.config.scan.follow_symlinks,
            )
            if is_repository_directory(directory)
        ]
        found = _unique(found)
        logger.info("Found %d repositories under %s", len(found), root)
        return found

    def rescan(self) -> List[str]:
        """Explicit maintenance scan; results replace the cached list."""
        if not self.can_scan():
            raise ScanNotPermittedError(
                f"Scanning is not permitted (policy: {self.config.scan.when})"
            )
        directories = self.scan()
        if not self.store.set(DIRECTORIES_KEY, directories):
            raise CacheWriteError(f"Unable to write directories to the {self.cache_backend} cache")
        self._directories = None
        return directories

    def invalidate_cache(self) -> bool:
        """Clear the cached directory list from the active backend."""
        self._directories = None
        cleared = self.store.delete(DIRECTORIES_KEY)
        if cleared:
            logger.info("Cleared %s directories cache", self.cache_backend)
        return cleared

    # ------------------------------------------------------------------
    # Internal helpers

    def _evaluate_scan_policy(self) -> bool:
        if self.config.directories:
            return False
        when = self.config.scan.when
        if when == SCAN_ALWAYS:
            return True
        if when == SCAN_MANUAL:
            return self.context == CONTEXT_MAINTENANCE or not self._read_cache()
        if when == SCAN_CLI:
            return self.context in _CLI_CONTEXTS
        if when == SCAN_HEARTBEAT:
            return self.context == CONTEXT_HEARTBEAT or self.context in _CLI_CONTEXTS
        return False

    def _primary_source(self) -> List[str]:
        if self.config.directories:
            logger.debug("Using %d configured directories", len(self.config.directories))
            return self._qualifying(self.config.directories)

        cached = self._read_cache()
        if cached:
            logger.debug("Using %d cached directories", len(cached))
            return cached

        if not self.can_scan():
            return []

        directories = self.scan()
        if not self.store.set(DIRECTORIES_KEY, directories):
            logger.warning("Scan results were not cached; the next permitted request will rescan")
        return directories

    def _read_cache(self) -> List[str]:
        cached = self.store.get(DIRECTORIES_KEY) or []
        return _unique(normalize_directory(path) for path in cached)

    def _qualifying(self, paths: Iterable[Path]) -> List[str]:
        result = []
        for path in paths:
            if is_repository_directory(path):
                result.append(normalize_directory(path))
            else:
                logger.debug("Skipping %s: no git metadata or override marker", path)
        return _unique(result)


__all__ = [
    "CONTEXT_CLI",
    "CONTEXT_HEARTBEAT",
    "CONTEXT_MAINTENANCE",
    "CONTEXT_REQUEST",
    "CacheWriteError",
    "RepositoryLocator",
    "ScanNotPermittedError",
]
