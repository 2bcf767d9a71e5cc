"""Persistent stores for the discovered repository directory list."""

from __future__ import annotations

import json
import os
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..config import SCAN_ALWAYS, WhatGitBranchConfig
from ..logging import get_logger

_CACHE_VERSION = 1

BACKEND_DURABLE = "durable"
BACKEND_EXPIRING = "expiring"

DIRECTORIES_KEY = "directories"

logger = get_logger("stores")


def select_cache_backend(scan_when: str) -> str:
    """Pick the backend for a scanning policy.

    Policies that scan on every request get an expiring store so staleness is
    bounded; the rest scan rarely and keep results until explicitly cleared.
    """
    if scan_when == SCAN_ALWAYS:
        return BACKEND_EXPIRING
    return BACKEND_DURABLE


class DirectoryStore(ABC):
    """Key/value store holding lists of directory paths."""

    kind: str = ""

    @abstractmethod
    def get(self, key: str) -> Optional[List[str]]:
        """Return the stored list, or ``None`` when missing or unusable."""

    @abstractmethod
    def set(self, key: str, value: Sequence[str]) -> bool:
        """Store ``value``; return ``False`` when the write failed."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; return ``False`` when nothing was removed."""


class _JsonFileStore(DirectoryStore):
    """Shared JSON file handling; every call re-reads the file from disk."""

    filename = ""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def path(self) -> Path:
        return self._directory / self.filename

    def delete(self, key: str) -> bool:
        entries = self._load()
        if key not in entries:
            return False
        entries.pop(key)
        return self._write(entries)

    def _load(self) -> Dict[str, object]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.debug("Ignoring unreadable cache file %s", self.path)
            return {}
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return {}
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return {}
        return {key: value for key, value in entries.items() if isinstance(key, str)}

    def _write(self, entries: Dict[str, object]) -> bool:
        payload = {"version": _CACHE_VERSION, "entries": entries}
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            handle, temp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{self.filename}.", suffix=".tmp"
            )
            try:
                with os.fdopen(handle, "w", encoding="utf-8") as stream:
                    json.dump(payload, stream, indent=2, sort_keys=True)
                os.replace(temp_name, self.path)
            except OSError:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("Unable to write cache file %s: %s", self.path, exc)
            return False
        return True


class DurableStore(_JsonFileStore):
    """Keeps entries until they are deleted explicitly."""

    kind = BACKEND_DURABLE
    filename = "directories.json"

    def get(self, key: str) -> Optional[List[str]]:
        return _as_path_list(self._load().get(key))

    def set(self, key: str, value: Sequence[str]) -> bool:
        entries = self._load()
        entries[key] = list(value)
        return self._write(entries)


class ExpiringStore(_JsonFileStore):
    """Entries lapse ``ttl`` seconds after they are written."""

    kind = BACKEND_EXPIRING
    filename = "directories.transient.json"

    def __init__(
        self,
        directory: Path,
        *,
        ttl: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(directory)
        self.ttl = ttl
        self._clock = clock

    def get(self, key: str) -> Optional[List[str]]:
        entry = self._load().get(key)
        if not isinstance(entry, dict):
            return None
        expires_at = entry.get("expires_at")
        if not isinstance(expires_at, (int, float)) or expires_at <= self._clock():
            return None
        return _as_path_list(entry.get("value"))

    def set(self, key: str, value: Sequence[str]) -> bool:
        entries = self._load()
        entries[key] = {
            "value": list(value),
            "expires_at": self._clock() + self.ttl,
        }
        return self._write(entries)


def create_store(config: WhatGitBranchConfig) -> DirectoryStore:
    """Build the store the configured scanning policy calls for."""
    if select_cache_backend(config.scan.when) == BACKEND_EXPIRING:
        return ExpiringStore(config.cache_dir, ttl=config.cache.ttl)
    return DurableStore(config.cache_dir)


def _as_path_list(value: object) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str) and item]


__all__ = [
    "BACKEND_DURABLE",
    "BACKEND_EXPIRING",
    "DIRECTORIES_KEY",
    "DirectoryStore",
    "DurableStore",
    "ExpiringStore",
    "create_store",
    "select_cache_backend",
]
