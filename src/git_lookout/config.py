import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    EMIT_DELAY,
    EXIT_DELAY,
    INITIAL_DELAY,
    MAX_STACK_DEPTH,
    POLL_INTERVAL,
    PROMOTE_DELAY,
    SWEEP_INTERVAL,
)

logger = logging.getLogger(APP_NAME)

_TIME_KEYS = {
    "poll_interval",
    "initial_delay",
    "sweep_interval",
    "emit_delay",
    "exit_delay",
    "promote_delay",
}
_SIZE_KEYS = {"max_log_size"}


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '100ms', '15s', '5m') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr|d|day)s?$",
        str(value).strip().lower(),
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
        "d": 86400,
        "day": 86400,
    }
    return num * multiplier[unit]


@dataclass
class MonitorConfig:
    """Polling settings.

    Attributes:
        poll_interval (float): Seconds between check cycles.
        initial_delay (float): Seconds before the first out-of-band check.
        sweep_interval (float): Seconds between sweeps of expired dismissals.
        fetch_remote (bool): Whether to `git fetch` before reading status.
        remote_name (str): The remote to fetch from.
    """

    poll_interval: float = POLL_INTERVAL
    initial_delay: float = INITIAL_DELAY
    sweep_interval: float = SWEEP_INTERVAL
    fetch_remote: bool = True
    remote_name: str = "origin"


@dataclass
class NotificationsConfig:
    """Notification delivery settings.

    Attributes:
        enabled (bool): Master switch for all notifications.
        emit_delay (float): Pause between two queued notifications.
        exit_delay (float): Exit transition before a closed record disappears.
        promote_delay (float): Transition when bringing a record to the front.
        max_stack_depth (int): Number of stacked records kept visible.
        desktop (bool): Also send OS desktop notifications.
    """

    enabled: bool = True
    emit_delay: float = EMIT_DELAY
    exit_delay: float = EXIT_DELAY
    promote_delay: float = PROMOTE_DELAY
    max_stack_depth: int = MAX_STACK_DEPTH
    desktop: bool = False


@dataclass
class IdentityConfig:
    """The operator whose own commits are never announced.

    Attributes:
        name (str): Author name; falls back to `git config --global user.name`.
        email (str): Author email; falls back to `git config --global user.email`.
    """

    name: str = ""
    email: str = ""


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        monitor (MonitorConfig): Polling settings.
        notifications (NotificationsConfig): Delivery settings.
        identity (IdentityConfig): Operator identity.
        limits (LimitsConfig): Resource limits.
    """

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the loaded configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults and the config file.

        Args:
            path (Path | None): An explicit config file. Defaults to the global one.

        Returns:
            Config: The merged configuration object.
        """
        if path is not None:
            instance = cls()
            instance._merge_from_file(path)
            return instance

        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        return replace(cls._global_cache)

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            for section in ("monitor", "notifications", "identity", "limits"):
                if section in data:
                    current = getattr(self, section)
                    setattr(
                        self,
                        section,
                        self._update_dataclass(section, current, data[section]),
                    )

            unknown = set(data) - {"monitor", "notifications", "identity", "limits"}
            if unknown:
                logger.warning(
                    f"Unknown config sections: {', '.join(sorted(unknown))}. Ignoring."
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(invalid_keys)}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                # Route specific keys through our parsers
                if k in _SIZE_KEYS:
                    filtered_updates[k] = parse_size(v)
                elif k in _TIME_KEYS:
                    filtered_updates[k] = parse_time(v)
                elif k == "max_stack_depth":
                    if not isinstance(v, int) or v < 1:
                        raise ValueError(f"Expected a positive integer, got '{v}'")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
