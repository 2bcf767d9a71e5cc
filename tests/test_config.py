"""Tests for whatgitbranch.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from whatgitbranch.config import (
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_DEPTH,
    SCAN_ALWAYS,
    SCAN_CLI,
    SCAN_HEARTBEAT,
    SCAN_MANUAL,
    SCAN_NEVER,
    ConfigError,
    WhatGitBranchConfig,
    load_config,
    normalize_scan_when,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, WhatGitBranchConfig)
    assert config.root == tmp_path.resolve()
    assert config.scan.when == SCAN_HEARTBEAT
    assert config.scan.max_depth == DEFAULT_MAX_DEPTH
    assert config.scan_root == config.root
    assert config.directories == []
    assert config.include_paths == []
    assert config.must_include == [config.root]
    assert config.primary.path is None
    assert config.primary.github_repo is None
    assert config.cache.ttl == DEFAULT_CACHE_TTL
    assert config.cache_dir == config.root / ".what-git-branch-cache"
    assert config.logging.file is None
    assert config.logging.levels == {}


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".what-git-branch.yml"
    config_file.write_text(
        """
scan:
  when: http-request
  root: srv
  max_depth: 4
  exclude_paths:
    - vendor/
  follow_symlinks: yes
directories:
  - srv/app
  - /opt/tools
include_paths: [srv/app/content]
primary:
  path: srv/app
  github_repo: acme/app
github_repos:
  srv/app/plugins/foo: acme/foo
names:
  srv/app: Application
hidden:
  - srv/app/vendor/lib
cache:
  dir: var/cache
  ttl: 120
logging:
  file: var/wgb.log
  levels:
    locator: debug
""",
        encoding="utf-8",
    )

    config = load_config(config_file)
    root = tmp_path.resolve()

    assert config.scan.when == SCAN_ALWAYS
    assert config.scan_root == root / "srv"
    assert config.scan.max_depth == 4
    assert config.scan.exclude_paths == ["vendor/"]
    assert config.scan.follow_symlinks is True
    assert config.directories == [root / "srv" / "app", Path("/opt/tools")]
    assert config.include_paths == [root / "srv" / "app" / "content"]
    assert config.must_include == [root, root / "srv" / "app" / "content"]
    assert config.primary.path == root / "srv" / "app"
    assert config.primary.github_repo == "acme/app"
    assert config.github_repos == {root / "srv" / "app" / "plugins" / "foo": "acme/foo"}
    assert config.names == {root / "srv" / "app": "Application"}
    assert config.hidden == [root / "srv" / "app" / "vendor" / "lib"]
    assert config.logging.file == root / "var" / "wgb.log"
    assert config.logging.levels == {"locator": "debug"}
    assert config.cache_dir == root / "var" / "cache"
    assert config.cache.ttl == 120


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("never", SCAN_NEVER),
        ("off", SCAN_NEVER),
        (False, SCAN_NEVER),
        ("always", SCAN_ALWAYS),
        ("HTTP-Request", SCAN_ALWAYS),
        (True, SCAN_ALWAYS),
        ("manual", SCAN_MANUAL),
        ("cli", SCAN_CLI),
        (None, SCAN_HEARTBEAT),
        ("sometimes", SCAN_HEARTBEAT),
    ],
)
def test_normalize_scan_when(value: object, expected: str) -> None:
    assert normalize_scan_when(value) == expected


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    (tmp_path / ".what-git-branch.yml").write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_reports_yaml_errors(tmp_path: Path) -> None:
    (tmp_path / ".what-git-branch.yml").write_text("scan: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_empty_config_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / ".what-git-branch.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path).scan.when == SCAN_HEARTBEAT
