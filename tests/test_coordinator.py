"""Tests for whatgitbranch.coordinator."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from tests._fixtures.tree_builder import TreeBuilder
from whatgitbranch.config import SCAN_ALWAYS, load_config
from whatgitbranch.coordinator import PRIMARY_ALIAS, Coordinator, natural_sort_key
from whatgitbranch.locator import CONTEXT_REQUEST
from whatgitbranch.repository import OverrideError

_HASH = "0123456789abcdef0123456789abcdef01234567"


def _dir(path: Path) -> str:
    return str(path) + os.sep


def test_scenario_app_with_overridden_plugin(tree: TreeBuilder) -> None:
    tree.git("", "ref: refs/heads/main\n")
    tree.marker("plugins/foo", "release-2.1")
    config = tree.config()
    config.scan.when = SCAN_ALWAYS

    coordinator = Coordinator(config)
    repos = {repo.path: repo for repo in coordinator.all_repositories()}

    assert set(repos) == {_dir(tree.path()), _dir(tree.path("plugins/foo"))}
    app = repos[_dir(tree.path())]
    plugin = repos[_dir(tree.path("plugins/foo"))]
    assert app.get_head_ref() == "main"
    assert app.is_branch() is True
    assert plugin.get_head_ref() == "release-2.1"
    assert plugin.is_branch() is True
    assert coordinator.primary() is app


def test_unique_shallowest_repository_is_primary(tree: TreeBuilder) -> None:
    tree.branch("x", "main")
    tree.branch("x/a", "a")
    tree.branch("x/b", "b")
    config = tree.config(directories=[tree.path("x"), tree.path("x/a"), tree.path("x/b")])

    primary = Coordinator(config).primary()

    assert primary is not None
    assert primary.path == _dir(tree.path("x"))
    assert primary.is_primary is True


def test_tie_at_minimum_depth_means_no_primary(tree: TreeBuilder) -> None:
    tree.branch("x/a", "a")
    tree.branch("x/b", "b")
    tree.branch("x/a/c", "c")
    config = tree.config(
        directories=[tree.path("x/a"), tree.path("x/b"), tree.path("x/a/c")]
    )
    coordinator = Coordinator(config)

    assert coordinator.primary() is None
    assert not any(repo.is_primary for repo in coordinator.all_repositories())


def test_application_root_is_primary_before_any_scan(tree: TreeBuilder) -> None:
    tree.branch("", "main")
    config = load_config(tree.root)

    primary = Coordinator(config, context=CONTEXT_REQUEST).primary()

    assert primary is not None
    assert primary.path == str(tree.root.resolve()) + os.sep
    assert primary.get_head_ref() == "main"


def test_no_repositories_means_no_primary(tree: TreeBuilder) -> None:
    assert Coordinator(tree.config()).primary() is None


def test_configured_primary_outside_discovered_set_is_tracked(tree: TreeBuilder) -> None:
    tree.branch("site", "main")
    tree.branch("other", "dev")
    config = tree.config(directories=[tree.path("other")])
    config.primary.path = tree.path("site")
    config.primary.github_repo = "acme/site"
    coordinator = Coordinator(config)

    primary = coordinator.primary()

    assert primary is not None
    assert primary.path == _dir(tree.path("site"))
    assert primary.get_github_url() == "https://github.com/acme/site/tree/main"
    assert primary in coordinator.all_repositories()


def test_configured_primary_that_does_not_qualify_logs_warning(
    tree: TreeBuilder, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(logging.getLogger("whatgitbranch"), "propagate", True)
    tree.branch("site", "main")
    config = tree.config(directories=[tree.path("site")])
    config.primary.path = tree.path("nowhere")

    with caplog.at_level("WARNING", logger="whatgitbranch"):
        primary = Coordinator(config).primary()

    assert primary is None
    assert "not a repository" in caplog.text


def test_set_repositories_is_idempotent(tree: TreeBuilder) -> None:
    tree.branch("site", "main")
    config = tree.config(directories=[tree.path("site")])
    coordinator = Coordinator(config)
    coordinator.set_repositories()
    first = coordinator.all_repositories()[0]

    coordinator.set_repositories()

    assert coordinator.all_repositories() == [first]
    assert coordinator.all_repositories()[0] is first


def test_rows_sorted_naturally_with_hidden_and_names(tree: TreeBuilder) -> None:
    paths = [tree.branch(name, "main") for name in ("plugin10", "Plugin2", "alpha", "zeta")]
    tree.git("", f"{_HASH}\n")
    config = tree.config(
        directories=[tree.path(), *paths],
        hidden=[tree.path("zeta")],
        names={tree.path(): "Site"},
    )

    rows = Coordinator(config).rows()

    assert [row.name for row in rows] == ["alpha", "Plugin2", "plugin10", "Site"]
    site = rows[-1]
    assert site.ref == _HASH[:7]
    assert site.path == "./"
    assert site.is_primary is True
    assert rows[0].path == "./alpha/"


def test_heartbeat_payload_includes_primary_alias(tree: TreeBuilder) -> None:
    tree.branch("", "main")
    tree.marker("plugins/foo", "release-2.1")
    config = tree.config(
        directories=[tree.path(), tree.path("plugins/foo")],
        github_repos={tree.path("plugins/foo"): "acme/foo"},
    )
    coordinator = Coordinator(config)
    repos = {repo.path: repo for repo in coordinator.all_repositories()}
    plugin = repos[_dir(tree.path("plugins/foo"))]
    app = repos[_dir(tree.path())]

    payload = coordinator.heartbeat_payload()

    assert payload[plugin.key()] == {
        "head_ref": "release-2.1",
        "github_url": "https://github.com/acme/foo/tree/release-2.1",
    }
    assert payload[app.key()] == {"head_ref": "main", "github_url": ""}
    assert payload[PRIMARY_ALIAS] == payload[app.key()]
    assert coordinator.get(plugin.key()) is plugin


def test_heartbeat_payload_without_primary_has_no_alias(tree: TreeBuilder) -> None:
    tree.branch("a", "main")
    tree.branch("b", "main")
    config = tree.config(directories=[tree.path("a"), tree.path("b")])

    payload = Coordinator(config).heartbeat_payload()

    assert PRIMARY_ALIAS not in payload
    assert len(payload) == 2


def test_set_and_reset_primary_head_ref(tree: TreeBuilder) -> None:
    tree.branch("", "main")
    coordinator = Coordinator(tree.config(directories=[tree.path()]))

    assert coordinator.set_primary_head_ref("hotfix") == "hotfix"
    assert coordinator.primary().get_head_ref() == "hotfix"
    assert coordinator.reset_primary_head_ref() == "main"

    with pytest.raises(OverrideError):
        coordinator.reset_primary_head_ref()


def test_override_write_without_primary_raises(tree: TreeBuilder) -> None:
    with pytest.raises(OverrideError):
        Coordinator(tree.config()).set_primary_head_ref("main")


def test_refresh_rereads_head_refs(tree: TreeBuilder) -> None:
    tree.branch("", "main")
    coordinator = Coordinator(tree.config(directories=[tree.path()]))
    repo = coordinator.primary()
    assert repo.get_head_ref() == "main"

    tree.branch("", "develop")
    coordinator.refresh()

    assert repo.get_head_ref() == "develop"


def test_natural_sort_key_orders_numbers_numerically() -> None:
    names = ["repo10", "Repo9", "repo1", "alpha"]

    assert sorted(names, key=natural_sort_key) == ["alpha", "repo1", "Repo9", "repo10"]
