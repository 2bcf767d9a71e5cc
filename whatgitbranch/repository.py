"""Head reference resolution for a single working directory."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path, PurePath
from typing import Optional

from .logging import get_logger
from .models import SOURCE_EXTERNAL, SOURCE_GIT, HeadRef

EXTERNAL_FILE = ".what-git-branch"
GIT_DIR = ".git"
HEAD_FILE = "HEAD"
SYMBOLIC_PREFIX = "ref:"
BRANCH_PREFIX = "refs/heads/"
SHORT_HASH_LENGTH = 7
GITHUB_URL_TEMPLATE = "https://github.com/{repo}/tree/{ref}"

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

logger = get_logger("repository")


class OverrideError(RuntimeError):
    """Raised when the override marker file cannot be written or removed."""


def sanitize_text(value: str) -> str:
    """Reduce free-form file contents to a single trimmed line of plain text."""
    text = _TAG_RE.sub("", value)
    text = "".join(char for char in text if char.isprintable() or char.isspace())
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_directory(path: str | os.PathLike[str]) -> str:
    """Return an absolute directory path with exactly one trailing separator."""
    absolute = os.path.abspath(os.path.expanduser(os.fspath(path)))
    return absolute.rstrip(os.sep) + os.sep


def path_depth(path: str | os.PathLike[str]) -> int:
    """Count the named segments of an absolute path (``/app/`` is depth 1)."""
    pure = PurePath(os.fspath(path))
    parts = pure.parts
    return len(parts) - 1 if pure.anchor else len(parts)


def is_repository_directory(path: str | os.PathLike[str]) -> bool:
    """True when ``path`` holds a git HEAD pointer or an override marker."""
    directory = Path(path)
    try:
        return (directory / GIT_DIR / HEAD_FILE).is_file() or (
            directory / EXTERNAL_FILE
        ).is_file()
    except OSError:
        return False


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


class Repository:
    """A version-controlled directory and its lazily resolved head reference."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        name: str | None = None,
        github_repo: str | None = None,
    ) -> None:
        self._path = normalize_directory(path)
        self.name = name or os.path.basename(self._path.rstrip(os.sep)) or self._path
        self._github_repo = github_repo
        self._primary_github_repo: str | None = None
        self._is_primary = False
        self._head: HeadRef | None = None

    def __repr__(self) -> str:
        return f"Repository({self._path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    @property
    def path(self) -> str:
        return self._path

    @property
    def depth(self) -> int:
        return path_depth(self._path)

    @property
    def is_primary(self) -> bool:
        return self._is_primary

    @property
    def marker_path(self) -> Path:
        return Path(self._path) / EXTERNAL_FILE

    @property
    def head(self) -> HeadRef:
        if self._head is None:
            self.resolve_head_ref()
        assert self._head is not None
        return self._head

    @property
    def source(self) -> Optional[str]:
        return self.head.source

    @property
    def external_file(self) -> Optional[Path]:
        """The marker file path when it produced the current head reference."""
        if self.head.source == SOURCE_EXTERNAL:
            return self.marker_path
        return None

    def key(self) -> str:
        """Stable opaque identifier for adapters that must not expose the path."""
        return hashlib.sha256(self._path.encode("utf-8")).hexdigest()[:16]

    def set_primary(self, github_repo: str | None = None) -> None:
        self._is_primary = True
        if github_repo:
            self._primary_github_repo = github_repo

    def resolve_head_ref(self) -> None:
        """(Re)read the head reference, preferring the override marker over git."""
        self._head = self._resolve_from_external() or self._resolve_from_git() or HeadRef()
        if self._head.resolved:
            logger.debug(
                "Resolved %s from %s: %s", self._path, self._head.source, self._head.raw
            )
        else:
            logger.debug("No head reference found for %s", self._path)

    def get_head_ref(self) -> str:
        """Return the branch name, or the short hash for a detached HEAD."""
        head = self.head
        if not head.resolved:
            return ""
        if head.is_branch:
            return head.branch
        return head.raw[:SHORT_HASH_LENGTH]

    def is_branch(self) -> bool:
        head = self.head
        return head.resolved and head.is_branch

    def is_commit(self) -> bool:
        head = self.head
        return head.resolved and not head.is_branch

    def get_github_url(self) -> str:
        github_repo = self._github_repo
        if not github_repo and self._is_primary:
            github_repo = self._primary_github_repo
        if not github_repo:
            return ""
        return GITHUB_URL_TEMPLATE.format(
            repo=sanitize_text(github_repo), ref=sanitize_text(self.get_head_ref())
        )

    def has_override(self) -> bool:
        try:
            return self.marker_path.is_file()
        except OSError:
            return False

    def write_override(self, head_ref: str) -> str:
        """Persist ``head_ref`` to the marker file and return the stored value."""
        value = sanitize_text(head_ref)
        if not value:
            raise OverrideError("Head reference must not be empty")
        try:
            written = self.marker_path.write_text(value, encoding="utf-8")
        except OSError as exc:
            raise OverrideError(f"Unable to write {self.marker_path}: {exc}") from exc
        logger.info("Wrote %d bytes to %s", written, self.marker_path)
        self.resolve_head_ref()
        return value

    def remove_override(self) -> None:
        """Delete the marker file so resolution falls back to git metadata."""
        if not self.has_override():
            raise OverrideError(
                f"{self.name} is using its git head reference; there is no override to reset"
            )
        try:
            self.marker_path.unlink()
        except OSError as exc:
            raise OverrideError(f"Unable to delete {self.marker_path}: {exc}") from exc
        logger.info("Deleted %s", self.marker_path)
        self.resolve_head_ref()

    # ------------------------------------------------------------------
    # Internal helpers

    def _resolve_from_external(self) -> Optional[HeadRef]:
        contents = _read_text(self.marker_path)
        if contents is None:
            return None
        value = sanitize_text(contents)
        if not value:
            return None
        return HeadRef(raw=value, source=SOURCE_EXTERNAL, is_branch=True, branch=value)

    def _resolve_from_git(self) -> Optional[HeadRef]:
        git_dir = Path(self._path) / GIT_DIR
        try:
            if not git_dir.is_dir():
                return None
        except OSError:
            return None
        contents = _read_text(git_dir / HEAD_FILE)
        if contents is None:
            return None
        value = sanitize_text(contents)
        if not value:
            return None

        if value[: len(SYMBOLIC_PREFIX)].lower() == SYMBOLIC_PREFIX:
            target = value[len(SYMBOLIC_PREFIX):].strip()
            if target.startswith(BRANCH_PREFIX):
                target = target[len(BRANCH_PREFIX):].strip()
            if not target:
                return None
            return HeadRef(raw=value, source=SOURCE_GIT, is_branch=True, branch=target)

        return HeadRef(raw=value, source=SOURCE_GIT, is_branch=False)


__all__ = [
    "EXTERNAL_FILE",
    "OverrideError",
    "Repository",
    "is_repository_directory",
    "normalize_directory",
    "path_depth",
    "sanitize_text",
]
