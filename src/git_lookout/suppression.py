"""User dismissal bookkeeping for status alerts.

Session dismissals live in memory only. Time-boxed and permanent dismissals
are durable: they are loaded once at startup and flushed to disk on every
mutation. Expired time-boxed entries are purged both lazily (when checked)
and by a periodic sweep.
"""

import contextlib
import json
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

from .constants import APP_NAME, DISMISS_CHOICES, DISMISSALS_FILE
from .models import DismissalRecord, DismissalScope, dedup_key

logger = logging.getLogger(APP_NAME)

CHOICE_LABELS = {
    "session": "Notification hidden until restart",
    "10m": "Notification hidden for 10 minutes",
    "1d": "Notification hidden for 1 day",
    "permanent": "Notification dismissed permanently",
}


def resolve_choice(choice: str) -> tuple[DismissalScope, int | None]:
    """Maps a duration chooser option to a dismissal scope and duration.

    Args:
        choice (str): One of 'session', '10m', '1d', 'permanent'.

    Returns:
        tuple[DismissalScope, int | None]: The scope and its duration in seconds.

    Raises:
        ValueError: If the option is unknown.
    """
    if choice not in DISMISS_CHOICES:
        raise ValueError(
            f"Unknown dismissal option '{choice}'. "
            f"Expected one of: {', '.join(DISMISS_CHOICES)}"
        )
    if choice == "session":
        return DismissalScope.SESSION, None
    if choice == "permanent":
        return DismissalScope.PERMANENT, None
    return DismissalScope.TIMEBOXED, DISMISS_CHOICES[choice]


class JsonDismissalFile:
    """Durable `branch:status -> {scope, expires_at, dismissed_at}` mapping.

    Attributes:
        path (Path): The JSON file backing the store.
    """

    def __init__(self, path: Path = DISMISSALS_FILE):
        self.path = Path(path)

    def load(self) -> dict[str, DismissalRecord]:
        """Reads all durable dismissals.

        Returns:
            dict[str, DismissalRecord]: Records keyed by dedup key.

        Raises:
            OSError: If the file exists but cannot be read.
            ValueError: If the file content is not a valid dismissal mapping.
        """
        if not self.path.exists():
            return {}

        content = self.path.read_text().strip()
        if not content:
            return {}

        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")

        records = {}
        for key, entry in data.items():
            try:
                records[key] = DismissalRecord.from_dict(key, entry)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Dropping malformed dismissal '{key}': {e}")
        return records

    def save(self, records: dict[str, DismissalRecord]) -> None:
        """Persists all durable dismissals to disk atomically.

        Raises:
            OSError: If the file cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.path.with_suffix(".tmp")
        data = {key: record.to_dict() for key, record in records.items()}

        try:
            with open(tmp_file, "w") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())  # Force hardware write

            # Atomic pointer swap at the filesystem level
            os.replace(tmp_file, self.path)
        except OSError:
            if tmp_file.exists():
                with contextlib.suppress(OSError):
                    tmp_file.unlink()
            raise


class SuppressionStore:
    """Decides whether a `branch:status` alert has been dismissed by the user.

    Every failure fails open: when the durable store cannot be read, alerts
    are shown rather than silently hidden.

    Attributes:
        storage (JsonDismissalFile): The durable backend.
        clock (Callable[[], float]): Returns the current Unix time.
    """

    def __init__(
        self,
        storage: JsonDismissalFile | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage or JsonDismissalFile()
        self.clock = clock
        self._session: set[str] = set()
        self._durable: dict[str, DismissalRecord] = {}

        try:
            self._durable = self.storage.load()
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read dismissals, showing everything: {e}")

    def _flush(self) -> None:
        try:
            self.storage.save(self._durable)
        except OSError as e:
            logger.error(f"ERROR: Could not save dismissals. {e}")

    def dismiss(
        self,
        branch: str,
        status_kind: str,
        scope: DismissalScope | str,
        duration: float | None = None,
    ) -> DismissalRecord:
        """Records a dismissal for `branch:status`.

        Args:
            branch (str): The branch name.
            status_kind (str): The status kind.
            scope (DismissalScope | str): Session, time-boxed or permanent.
            duration (float | None): Seconds until expiry (time-boxed only).

        Returns:
            DismissalRecord: The stored record.

        Raises:
            ValueError: If a time-boxed dismissal has no positive duration.
        """
        scope = DismissalScope(scope)
        key = dedup_key(branch, status_kind)
        now = self.clock()

        if scope == DismissalScope.SESSION:
            self._session.add(key)
            logger.info(f"DISMISSED {key}: until restart.")
            return DismissalRecord(key=key, scope=scope, dismissed_at=now)

        if scope == DismissalScope.TIMEBOXED:
            if duration is None or duration <= 0:
                raise ValueError("A time-boxed dismissal needs a positive duration")
            record = DismissalRecord(
                key=key, scope=scope, expires_at=now + duration, dismissed_at=now
            )
            logger.info(f"DISMISSED {key}: for {int(duration)}s.")
        else:
            record = DismissalRecord(key=key, scope=scope, dismissed_at=now)
            logger.info(f"DISMISSED {key}: permanently.")

        self._durable[key] = record
        self._flush()
        return record

    def should_suppress(self, branch: str, status_kind: str) -> bool:
        """Checks whether an alert for `branch:status` is currently dismissed.

        An expired durable entry found here is deleted on the spot.
        """
        try:
            key = dedup_key(branch, status_kind)
            if key in self._session:
                return True

            record = self._durable.get(key)
            if record is None:
                return False
            if record.is_active(self.clock()):
                return True

            del self._durable[key]
            logger.info(f"EXPIRED {key}: dismissal lifted.")
            self._flush()
            return False
        except Exception as e:
            logger.warning(f"Suppression check failed for {branch}:{status_kind}: {e}")
            return False

    def purge_expired(self) -> int:
        """Removes expired time-boxed dismissals.

        Returns:
            int: The number of records removed.
        """
        now = self.clock()
        expired = [k for k, r in self._durable.items() if not r.is_active(now)]
        for key in expired:
            del self._durable[key]
        if expired:
            logger.info(f"SWEEP: Removed {len(expired)} expired dismissal(s).")
            self._flush()
        return len(expired)

    def clear(self, branch: str, status_kind: str) -> bool:
        """Lifts any dismissal for `branch:status`.

        Returns:
            bool: True if something was removed.
        """
        key = dedup_key(branch, status_kind)
        had_session = key in self._session
        self._session.discard(key)
        if key in self._durable:
            del self._durable[key]
            self._flush()
            return True
        return had_session

    def clear_all(self) -> None:
        self._session.clear()
        self._durable.clear()
        self._flush()

    def records(self) -> list[DismissalRecord]:
        """Returns the durable dismissals, most recent first."""
        return sorted(self._durable.values(), key=lambda r: r.dismissed_at, reverse=True)

    def stats(self) -> dict[str, int]:
        """Counts durable dismissals by state (total, permanent, temporary, expired)."""
        now = self.clock()
        stats = {"total": len(self._durable), "permanent": 0, "temporary": 0, "expired": 0}
        for record in self._durable.values():
            if record.expires_at is None:
                stats["permanent"] += 1
            elif record.expires_at > now:
                stats["temporary"] += 1
            else:
                stats["expired"] += 1
        return stats
