"""Git Lookout: background divergence monitoring for git repositories.

This package provides the command-line interface, the polling monitor, and the
notification stack that tells you when a watched branch has fallen behind,
run ahead of, or diverged from its remote.
"""

from . import (
    cli,
    commits,
    config,
    constants,
    daemon,
    fencing,
    git_wrapper,
    models,
    monitor,
    notifications,
    presenter,
    provider,
    scheduler,
    status,
    suppression,
)

__all__ = [
    "cli",
    "commits",
    "config",
    "constants",
    "daemon",
    "fencing",
    "git_wrapper",
    "models",
    "monitor",
    "notifications",
    "presenter",
    "provider",
    "scheduler",
    "status",
    "suppression",
]
