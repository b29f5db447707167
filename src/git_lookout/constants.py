import os
from pathlib import Path

"""Global constants and configuration path definitions for Git Lookout.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the reference timings used by the monitor.
"""

# --- Identity ---
APP_NAME = "git-lookout"
"""str: The human-readable application name (also the logger name)."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-lookout"
"""Path: The directory for runtime state data (logs, registry, dismissals)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

REGISTRY_FILE = STATE_DIR / "registry"
"""Path: The file path storing the list of watched repositories."""

DISMISSALS_FILE = STATE_DIR / "dismissals.json"
"""Path: The durable store for time-boxed and permanent dismissals."""

LOG_FILE = STATE_DIR / "monitor.log"
"""Path: The file path for the monitor process logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-lookout"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Timings ---
POLL_INTERVAL = 15.0
"""float: Seconds between repository check cycles."""

INITIAL_DELAY = 1.0
"""float: Seconds before the out-of-band check that follows startup."""

SWEEP_INTERVAL = 5 * 60.0
"""float: Seconds between sweeps of expired dismissals."""

EMIT_DELAY = 0.1
"""float: Pause between two notifications leaving the emission queue."""

EXIT_DELAY = 0.4
"""float: Duration of the exit transition before a record is removed."""

PROMOTE_DELAY = 0.5
"""float: Duration of the bring-to-front transition."""

# --- Presentation ---
MAX_STACK_DEPTH = 5
"""int: Number of stacked notifications that remain visible."""

STACK_OFFSET = 25
"""int: Positional offset (px) applied per stacked level."""

STACK_FADE = 0.15
"""float: Opacity removed per stacked level."""

# --- Dismissals ---
TEN_MINUTES = 10 * 60
ONE_DAY = 24 * 60 * 60

DISMISS_CHOICES: dict[str, int | None] = {
    "session": None,
    "10m": TEN_MINUTES,
    "1d": ONE_DAY,
    "permanent": None,
}
"""dict[str, int | None]: Duration chooser options and their time boxes."""

# --- Git ---
STATUS_MARKER = "##"
"""str: Prefix of the branch header line in `git status --porcelain --branch`."""

DEFAULT_COMMIT_MESSAGE = "New commits detected on remote!"
"""str: Fallback text for a new-commit notification without author/subject."""
