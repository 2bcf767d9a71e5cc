"""Configuration loading for what-git-branch (.what-git-branch.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .logging import get_logger

CONFIG_FILENAME = ".what-git-branch.yml"
CACHE_DIRNAME = ".what-git-branch-cache"

SCAN_NEVER = "never"
SCAN_ALWAYS = "always"
SCAN_MANUAL = "manual"
SCAN_CLI = "cli"
SCAN_HEARTBEAT = "heartbeat"

DEFAULT_SCAN_WHEN = SCAN_HEARTBEAT
DEFAULT_MAX_DEPTH = 12
DEFAULT_CACHE_TTL = 600

_SCAN_ALIASES = {
    "never": SCAN_NEVER,
    "off": SCAN_NEVER,
    "false": SCAN_NEVER,
    "no": SCAN_NEVER,
    "always": SCAN_ALWAYS,
    "http-request": SCAN_ALWAYS,
    "request": SCAN_ALWAYS,
    "true": SCAN_ALWAYS,
    "manual": SCAN_MANUAL,
    "cli": SCAN_CLI,
    "heartbeat": SCAN_HEARTBEAT,
}

logger = get_logger("config")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ScanConfig:
    """Filesystem scan settings."""

    when: str = DEFAULT_SCAN_WHEN
    root: Optional[Path] = None
    max_depth: int = DEFAULT_MAX_DEPTH
    exclude_paths: List[str] = field(default_factory=list)
    follow_symlinks: bool = False


@dataclass
class PrimaryConfig:
    """Explicit primary repository designation."""

    path: Optional[Path] = None
    github_repo: Optional[str] = None


@dataclass
class CacheConfig:
    """Directory cache location and expiring backend lifetime."""

    dir: Optional[Path] = None
    ttl: int = DEFAULT_CACHE_TTL


@dataclass
class LoggingConfig:
    """Optional log file and per-component log levels."""

    file: Optional[Path] = None
    levels: Dict[str, str] = field(default_factory=dict)


@dataclass
class WhatGitBranchConfig:
    """Represents the settings defined in .what-git-branch.yml."""

    root: Path
    scan: ScanConfig = field(default_factory=ScanConfig)
    directories: List[Path] = field(default_factory=list)
    include_paths: List[Path] = field(default_factory=list)
    primary: PrimaryConfig = field(default_factory=PrimaryConfig)
    github_repos: Dict[Path, str] = field(default_factory=dict)
    names: Dict[Path, str] = field(default_factory=dict)
    hidden: List[Path] = field(default_factory=list)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def scan_root(self) -> Path:
        return self.scan.root or self.root

    @property
    def cache_dir(self) -> Path:
        return self.cache.dir or (self.root / CACHE_DIRNAME)

    @property
    def must_include(self) -> List[Path]:
        """The application root followed by the configured include paths."""
        return [self.root, *self.include_paths]


def normalize_scan_when(value: Any) -> str:
    """Map a scanning-policy setting onto one of the recognised policies."""
    if isinstance(value, bool):
        return SCAN_ALWAYS if value else SCAN_NEVER
    if value is None:
        return DEFAULT_SCAN_WHEN
    policy = _SCAN_ALIASES.get(str(value).strip().lower())
    if policy is None:
        logger.warning(
            "Unrecognised scan policy %r; falling back to %s", value, DEFAULT_SCAN_WHEN
        )
        return DEFAULT_SCAN_WHEN
    return policy


def load_config(config_path: Path) -> WhatGitBranchConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return WhatGitBranchConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    scan_data = _as_dict(data.get("scan"))
    scan = ScanConfig(when=normalize_scan_when(scan_data.get("when")))
    scan_root = _as_str(scan_data.get("root"))
    if scan_root:
        scan.root = _resolve_path(root, scan_root)
    max_depth = _as_int(scan_data.get("max_depth"))
    if max_depth is not None and max_depth >= 0:
        scan.max_depth = max_depth
    scan.exclude_paths = _as_str_list(scan_data.get("exclude_paths"))
    scan.follow_symlinks = _as_bool(scan_data.get("follow_symlinks")) or False

    primary_data = _as_dict(data.get("primary"))
    primary = PrimaryConfig()
    primary_path = _as_str(primary_data.get("path"))
    if primary_path:
        primary.path = _resolve_path(root, primary_path)
    primary.github_repo = _as_str(primary_data.get("github_repo")) or None

    cache_data = _as_dict(data.get("cache"))
    cache = CacheConfig()
    cache_dir = _as_str(cache_data.get("dir"))
    if cache_dir:
        cache.dir = _resolve_path(root, cache_dir)
    ttl = _as_int(cache_data.get("ttl"))
    if ttl is not None and ttl > 0:
        cache.ttl = ttl

    logging_data = _as_dict(data.get("logging"))
    log_settings = LoggingConfig(levels=_as_str_map(logging_data.get("levels")))
    log_file = _as_str(logging_data.get("file"))
    if log_file:
        log_settings.file = _resolve_path(root, log_file)

    return WhatGitBranchConfig(
        root=root,
        scan=scan,
        directories=_as_path_list(root, data.get("directories")),
        include_paths=_as_path_list(root, data.get("include_paths")),
        primary=primary,
        github_repos=_as_path_map(root, data.get("github_repos")),
        names=_as_path_map(root, data.get("names")),
        hidden=_as_path_list(root, data.get("hidden")),
        cache=cache,
        logging=log_settings,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _resolve_path(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return Path(_normpath(path))


def _normpath(path: Path) -> str:
    # Path.resolve() would follow symlinks; keep the configured spelling.
    return os.path.normpath(str(path))


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def _as_path_list(root: Path, value: Any) -> List[Path]:
    return [_resolve_path(root, item) for item in _as_str_list(value) if item.strip()]


def _as_path_map(root: Path, value: Any) -> Dict[Path, str]:
    result: Dict[Path, str] = {}
    for key, item in _as_dict(value).items():
        text = _as_str(item)
        if not isinstance(key, str) or not text:
            continue
        result[_resolve_path(root, key)] = text
    return result


def _as_str_map(value: Any) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, item in _as_dict(value).items():
        text = _as_str(item)
        if isinstance(key, str) and text:
            result[key] = text
    return result
