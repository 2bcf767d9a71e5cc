"""Report the checked-out branch or commit of working directories on a host."""

from .config import ConfigError, WhatGitBranchConfig, load_config
from .coordinator import Coordinator
from .locator import RepositoryLocator
from .repository import OverrideError, Repository

__all__ = [
    "ConfigError",
    "Coordinator",
    "OverrideError",
    "Repository",
    "RepositoryLocator",
    "WhatGitBranchConfig",
    "load_config",
]
