"""Repository set ownership, primary designation and adapter-facing views."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from .config import WhatGitBranchConfig
from .locator import CONTEXT_REQUEST, RepositoryLocator
from .logging import get_logger
from .models import HeartbeatEntry, RepositoryRow
from .repository import (
    OverrideError,
    Repository,
    is_repository_directory,
    normalize_directory,
)

PRIMARY_ALIAS = "primary"

_DIGITS_RE = re.compile(r"(\d+)")


def natural_sort_key(value: str) -> tuple:
    """Case-insensitive ordering that compares digit runs numerically."""
    parts = _DIGITS_RE.split(value.casefold())
    return tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in parts)


class Coordinator:
    """Owns the discovered repositories for one request or command invocation."""

    def __init__(
        self,
        config: WhatGitBranchConfig,
        *,
        locator: RepositoryLocator | None = None,
        context: str = CONTEXT_REQUEST,
    ) -> None:
        self.config = config
        self.locator = locator or RepositoryLocator(config, context=context)
        self.logger = get_logger("coordinator")
        self._repositories: Dict[str, Repository] = {}
        self._primary: Optional[Repository] = None
        self._primary_resolved = False
        self._github_repos = {
            normalize_directory(path): slug for path, slug in config.github_repos.items()
        }
        self._names = {normalize_directory(path): name for path, name in config.names.items()}
        self._hidden = {normalize_directory(path) for path in config.hidden}

    def set_repositories(self) -> None:
        """Populate the repository set from the locator; later calls are no-ops."""
        if self._repositories:
            return
        for path in self.locator.get_directories():
            self._track(path)
        self.logger.debug("Tracking %d repositories", len(self._repositories))
        self.primary()

    def all_repositories(self) -> List[Repository]:
        self.set_repositories()
        return list(self._repositories.values())

    def sorted_repositories(self) -> List[Repository]:
        return sorted(self.all_repositories(), key=lambda repo: natural_sort_key(repo.name))

    def get(self, key: str) -> Optional[Repository]:
        for repo in self.all_repositories():
            if repo.key() == key:
                return repo
        return None

    def primary(self) -> Optional[Repository]:
        """Return the primary repository, designating it on first call."""
        if self._primary_resolved:
            return self._primary
        self._primary_resolved = True
        self.set_repositories()

        configured = self.config.primary.path
        if configured is not None:
            self._primary = self._configured_primary(Path(configured))
        else:
            self._primary = self._infer_primary()

        if self._primary is not None:
            self._primary.set_primary(self.config.primary.github_repo)
            self.logger.debug("Primary repository: %s", self._primary.path)
        return self._primary

    def refresh(self) -> None:
        """Re-read head references of every tracked repository."""
        for repo in self.all_repositories():
            repo.resolve_head_ref()

    def set_primary_head_ref(self, head_ref: str) -> str:
        repo = self._require_primary()
        return repo.write_override(head_ref)

    def reset_primary_head_ref(self) -> str:
        """Remove the primary's override marker and return the git-derived ref."""
        repo = self._require_primary()
        repo.remove_override()
        return repo.get_head_ref()

    def display_path(self, repo: Repository) -> str:
        root = normalize_directory(self.config.root)
        if repo.path.startswith(root):
            return "./" + repo.path[len(root):].replace(os.sep, "/")
        return repo.path

    def rows(self) -> List[RepositoryRow]:
        """Rows for listing and dashboard surfaces, hidden directories omitted."""
        rows = []
        for repo in self.sorted_repositories():
            if repo.path in self._hidden:
                continue
            rows.append(
                RepositoryRow(
                    key=repo.key(),
                    name=repo.name,
                    ref=repo.get_head_ref(),
                    path=self.display_path(repo),
                    github_url=repo.get_github_url(),
                    is_primary=repo.is_primary,
                )
            )
        return rows

    def heartbeat_payload(self) -> Dict[str, Dict[str, str]]:
        """Map each repository key to its head ref and URL, plus a primary alias."""
        payload: Dict[str, Dict[str, str]] = {}
        for repo in self.all_repositories():
            payload[repo.key()] = self._heartbeat_entry(repo).as_dict()
        primary = self.primary()
        if primary is not None:
            payload[PRIMARY_ALIAS] = self._heartbeat_entry(primary).as_dict()
        return payload

    # ------------------------------------------------------------------
    # Internal helpers

    def _track(self, path: str) -> Repository:
        normalized = normalize_directory(path)
        repo = self._repositories.get(normalized)
        if repo is None:
            repo = Repository(
                normalized,
                name=self._names.get(normalized),
                github_repo=self._github_repos.get(normalized),
            )
            self._repositories[normalized] = repo
        return repo

    def _configured_primary(self, path: Path) -> Optional[Repository]:
        if not path.is_dir() or not is_repository_directory(path):
            self.logger.warning(
                "Configured primary directory %s is not a repository; no primary designated",
                path,
            )
            return None
        return self._track(str(path))

    def _infer_primary(self) -> Optional[Repository]:
        repos = list(self._repositories.values())
        if not repos:
            return None
        shallowest = min(repo.depth for repo in repos)
        candidates = [repo for repo in repos if repo.depth == shallowest]
        if len(candidates) != 1:
            self.logger.debug(
                "%d repositories share depth %d; primary is ambiguous",
                len(candidates),
                shallowest,
            )
            return None
        return candidates[0]

    def _require_primary(self) -> Repository:
        repo = self.primary()
        if repo is None:
            raise OverrideError("No primary repository")
        return repo

    @staticmethod
    def _heartbeat_entry(repo: Repository) -> HeartbeatEntry:
        return HeartbeatEntry(head_ref=repo.get_head_ref(), github_url=repo.get_github_url())


__all__ = ["Coordinator", "PRIMARY_ALIAS", "natural_sort_key"]
