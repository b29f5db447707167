"""Tests for status normalization and divergence classification."""

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from git_lookout.constants import APP_NAME
from git_lookout.models import StatusKind, StatusSnapshot
from git_lookout.status import (
    LegacyStatusText,
    StructuredStatus,
    classify,
    normalize,
    parse_payload,
)


def test_parse_payload_resolves_both_shapes() -> None:
    """Verifies that mappings and text are tagged as the right variant."""
    structured = parse_payload({"ahead": 1, "behind": 2, "hasChanges": True, "branch": "main"})
    assert structured == StructuredStatus(ahead=1, behind=2, has_changes=True, branch="main")

    legacy = parse_payload("## main...origin/main")
    assert legacy == LegacyStatusText("## main...origin/main")

    assert isinstance(parse_payload(b"## main"), LegacyStatusText)


def test_parse_payload_rejects_unknown_shapes() -> None:
    """Verifies that neither-shape payloads are rejected explicitly."""
    with pytest.raises(ValueError, match="Unsupported status payload"):
        parse_payload(42)
    with pytest.raises(ValueError, match="Invalid counter"):
        parse_payload({"ahead": True})


def test_normalize_structured_aliases() -> None:
    """Verifies the alternative key spellings of structured payloads."""
    snap = normalize(
        {"ahead": "3", "behind": 0, "has_changes": 1, "currentBranch": "dev"},
        "repo",
        captured_at=5.0,
    )
    assert snap == StatusSnapshot("repo", 3, 0, True, "dev", 5.0)


def test_normalize_porcelain_header() -> None:
    """Verifies counters, branch and change detection from porcelain text."""
    text = "## main...origin/main [ahead 2, behind 3]\n M README.md\n?? notes.txt\n"
    snap = normalize(text, "repo", captured_at=1.0)

    assert snap.ahead == 2
    assert snap.behind == 3
    assert snap.branch == "main"
    assert snap.has_changes is True
    assert classify(snap) == StatusKind.DIVERGED


def test_normalize_porcelain_clean_and_fresh_repos() -> None:
    """Verifies headers without counters and repositories without commits."""
    clean = normalize("## feature/x...origin/feature/x")
    assert (clean.ahead, clean.behind, clean.has_changes) == (0, 0, False)
    assert clean.branch == "feature/x"

    fresh = normalize("## No commits yet on main")
    assert fresh.branch == "main"
    assert classify(fresh) == StatusKind.CLEAN

    only_behind = normalize("## main...origin/main [behind 7]")
    assert only_behind.behind == 7
    assert classify(only_behind) == StatusKind.BEHIND


def test_normalize_negative_counts_are_clamped() -> None:
    """Verifies that negative counters never produce a bogus classification."""
    snap = normalize({"ahead": -4, "behind": 2, "branch": "main"})
    assert snap.ahead == 0
    assert classify(snap) == StatusKind.BEHIND


@pytest.mark.parametrize(
    "garbage",
    [
        None,
        3.5,
        ["## main"],
        {"ahead": "lots"},
        {"behind": object()},
        {"ahead": False},
        {"ahead": float("inf"), "behind": 0},
        {"ahead": 0, "behind": float("nan")},
        {"ahead": 1.5},
        {"hasChanges": "maybe"},
    ],
)
def test_normalize_never_raises(
    garbage: object,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verifies that unparseable payloads degrade to the zero snapshot."""
    caplog.set_level(logging.DEBUG, logger=APP_NAME)
    snap = normalize(garbage, "broken", captured_at=9.0)

    assert snap == StatusSnapshot(repository_id="broken", captured_at=9.0)
    assert classify(snap) == StatusKind.CLEAN
    assert "Unparseable status for broken" in caplog.text


def test_normalize_string_flags() -> None:
    """Verifies that text-encoded booleans are read by value, not by truthiness."""
    base = {"ahead": 0, "behind": 0, "branch": "main"}

    assert normalize({**base, "hasChanges": "false"}).has_changes is False
    assert normalize({**base, "hasChanges": "0"}).has_changes is False
    assert normalize({**base, "has_changes": "True"}).has_changes is True
    assert normalize({**base, "hasChanges": 1}).has_changes is True
    assert normalize({**base, "ahead": 2.0}).ahead == 2


def test_normalize_empty_text_is_clean() -> None:
    """Verifies that an empty porcelain payload is a clean snapshot."""
    snap = normalize("")
    assert snap.branch == ""
    assert classify(snap) == StatusKind.CLEAN


counts = st.integers(min_value=0, max_value=10_000)


@given(ahead=counts, behind=counts, changes=st.booleans())
def test_classify_is_total_and_ordered(ahead: int, behind: int, changes: bool) -> None:
    """
    Property: Every snapshot maps to exactly one kind, with diverged taking
    precedence over behind, behind over ahead, and ahead over clean.
    Working tree changes never affect the kind.
    """
    kind = classify(StatusSnapshot(ahead=ahead, behind=behind, has_changes=changes))

    if ahead and behind:
        assert kind == StatusKind.DIVERGED
    elif behind:
        assert kind == StatusKind.BEHIND
    elif ahead:
        assert kind == StatusKind.AHEAD
    else:
        assert kind == StatusKind.CLEAN


@given(ahead=counts, behind=counts)
def test_both_shapes_agree(ahead: int, behind: int) -> None:
    """
    Property: The same counters yield the same snapshot whether they arrive as
    a structured mapping or as a porcelain header.
    """
    parts = []
    if ahead:
        parts.append(f"ahead {ahead}")
    if behind:
        parts.append(f"behind {behind}")
    header = "## main...origin/main" + (f" [{', '.join(parts)}]" if parts else "")

    from_text = normalize(header, "r", captured_at=0.0)
    from_map = normalize(
        {"ahead": ahead, "behind": behind, "hasChanges": False, "branch": "main"},
        "r",
        captured_at=0.0,
    )
    assert from_text == from_map
