"""Status normalization and divergence classification.

Providers hand back status in one of two shapes: a structured mapping or the
line-oriented text of `git status --porcelain --branch`. The shape is resolved
exactly once, in `parse_payload`, and everything downstream works with a
`StatusSnapshot`.
"""

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .constants import APP_NAME, STATUS_MARKER
from .models import StatusKind, StatusSnapshot

logger = logging.getLogger(APP_NAME)

_AHEAD_RE = re.compile(r"\bahead (\d+)")
_BEHIND_RE = re.compile(r"\bbehind (\d+)")


@dataclass(frozen=True)
class StructuredStatus:
    """A status payload that already exposes its counters."""

    ahead: int
    behind: int
    has_changes: bool
    branch: str


@dataclass(frozen=True)
class LegacyStatusText:
    """A status payload in porcelain text form."""

    text: str


StatusPayload = StructuredStatus | LegacyStatusText


_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0", ""}


def _count(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Invalid counter '{value}'")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Invalid counter '{value}'")
    return max(0, int(value))


def _flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"Invalid flag '{value}'")


def parse_payload(raw: Any) -> StatusPayload:
    """Resolves a raw provider payload into its tagged variant.

    Args:
        raw (Any): A mapping with ahead/behind/hasChanges/branch, or porcelain text.

    Returns:
        StatusPayload: The resolved variant.

    Raises:
        ValueError: If the payload has neither shape or carries invalid counters
            or flags.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return LegacyStatusText(raw)
    if isinstance(raw, Mapping):
        has_changes = raw.get("hasChanges", raw.get("has_changes", False))
        branch = raw.get(
            "branch", raw.get("currentBranch", raw.get("current_branch", ""))
        )
        return StructuredStatus(
            ahead=_count(raw.get("ahead")),
            behind=_count(raw.get("behind")),
            has_changes=_flag(has_changes),
            branch=str(branch or ""),
        )
    raise ValueError(f"Unsupported status payload type: {type(raw).__name__}")


def _from_text(text: str) -> tuple[int, int, bool, str]:
    ahead = behind = 0
    has_changes = False
    branch = ""
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith(STATUS_MARKER):
            header = line[len(STATUS_MARKER) :].strip()
            if match := _AHEAD_RE.search(header):
                ahead = int(match.group(1))
            if match := _BEHIND_RE.search(header):
                behind = int(match.group(1))
            # Fresh repositories report "## No commits yet on <branch>".
            header = header.removeprefix("No commits yet on ")
            if header:
                branch = header.split()[0].split("...")[0]
        else:
            has_changes = True
    return ahead, behind, has_changes, branch


def normalize(
    raw: Any, repository_id: str = "", captured_at: float | None = None
) -> StatusSnapshot:
    """Converts any supported status payload into a `StatusSnapshot`.

    Never raises: unparseable input degrades to the zero snapshot so that a
    single bad payload cannot abort a poll cycle.

    Args:
        raw (Any): The raw payload returned by the provider.
        repository_id (str): The repository the payload belongs to.
        captured_at (float | None): Capture timestamp. Defaults to now.

    Returns:
        StatusSnapshot: The canonical snapshot.
    """
    stamp = time.time() if captured_at is None else captured_at
    try:
        payload = parse_payload(raw)
        if isinstance(payload, LegacyStatusText):
            ahead, behind, has_changes, branch = _from_text(payload.text)
        else:
            ahead, behind = payload.ahead, payload.behind
            has_changes, branch = payload.has_changes, payload.branch
    except (ArithmeticError, TypeError, ValueError) as e:
        logger.debug(f"Unparseable status for {repository_id or 'unknown repo'}: {e}")
        return StatusSnapshot(repository_id=repository_id, captured_at=stamp)

    return StatusSnapshot(
        repository_id=repository_id,
        ahead=ahead,
        behind=behind,
        has_changes=has_changes,
        branch=branch,
        captured_at=stamp,
    )


def classify(snapshot: StatusSnapshot) -> StatusKind:
    """Maps a snapshot to its status kind (diverged > behind > ahead > clean)."""
    if snapshot.ahead > 0 and snapshot.behind > 0:
        return StatusKind.DIVERGED
    if snapshot.behind > 0:
        return StatusKind.BEHIND
    if snapshot.ahead > 0:
        return StatusKind.AHEAD
    return StatusKind.CLEAN
