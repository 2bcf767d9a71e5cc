"""Core data models shared across what-git-branch components."""

from dataclasses import dataclass
from typing import Dict, Optional

SOURCE_EXTERNAL = "external"
SOURCE_GIT = "git"


@dataclass(frozen=True)
class HeadRef:
    """Outcome of resolving a repository's head reference.

    ``raw`` is the sanitised text that was read (the full ``ref: ...`` line or
    commit hash for git, the marker contents for external overrides). An
    unresolvable repository is represented by an empty ``raw`` and no source.
    """

    raw: str = ""
    source: Optional[str] = None
    is_branch: bool = False
    branch: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.raw)


@dataclass
class RepositoryRow:
    """Flattened repository view for listing and dashboard surfaces."""

    key: str
    name: str
    ref: str
    path: str
    github_url: str
    is_primary: bool

    def as_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "name": self.name,
            "ref": self.ref,
            "path": self.path,
            "github_url": self.github_url,
            "is_primary": self.is_primary,
        }


@dataclass
class HeartbeatEntry:
    """Per-repository payload sent on each polling tick."""

    head_ref: str
    github_url: str

    def as_dict(self) -> Dict[str, str]:
        return {"head_ref": self.head_ref, "github_url": self.github_url}
