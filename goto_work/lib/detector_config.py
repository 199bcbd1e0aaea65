"""
Detector Configuration: Single source of truth for the stop-cause chain.

This module defines:
1. Detector execution order
2. Line windows each detector is allowed to look at
3. The signal patterns each detector matches

All detector configuration should live here, not scattered across
detectors.py or the router.
"""

from __future__ import annotations

from goto_work.lib.stop_model import Cause

# =============================================================================
# EXECUTION ORDER
# =============================================================================
# Earlier detectors are more authoritative and see more of the tail. Later
# ones use fewer, more recent lines and weaker signals, so they only get a
# say once everything above them has passed.

DETECTOR_EXECUTION_ORDER: list[str] = [
    "fatal_error",
    "stop_reason",
    "structured_error",
    "http_status",
    "raw_text",
]

# =============================================================================
# WINDOWS
# =============================================================================
# None means the full tail window. An old, already-resolved error must not
# resurrect a block on an unrelated later stop, hence the short windows.

DETECTOR_WINDOWS: dict[str, int | None] = {
    "fatal_error": None,
    "stop_reason": None,
    "structured_error": 5,
    "http_status": 5,
    "raw_text": 8,
}

# =============================================================================
# FATAL SIGNALS
# =============================================================================

# Substrings of error.type (lowercased)
CONTEXT_LENGTH_TYPE_PATTERNS: tuple[str, ...] = ("context_length", "context_window")

# Substrings of error.message (lowercased)
COST_LIMIT_MESSAGE_PATTERNS: tuple[str, ...] = (
    "cost limit",
    "spending limit",
    "spend limit",
    "budget",
)

# =============================================================================
# STOP REASONS
# =============================================================================

STOP_REASON_TRUNCATED = "max_tokens"
STOP_REASONS_COMPLETE: frozenset[str] = frozenset({"end_turn", "stop_sequence"})
STOP_REASON_ERROR = "error"

# =============================================================================
# STRUCTURED ERRORS
# =============================================================================
# Matched against error.type (uppercased). Order matters: first hit wins.

ERROR_TYPE_PATTERNS: list[tuple[tuple[str, ...], Cause]] = [
    (("RESOURCE_EXHAUSTED",), Cause.RESOURCE_EXHAUSTED),
    (("RATE_LIMIT", "TOO_MANY_REQUESTS"), Cause.RATE_LIMITED),
    (("OVERLOADED", "OVERLOAD"), Cause.OVERLOADED),
    (("UNAVAILABLE",), Cause.UNAVAILABLE),
]

# error.message is noisier; UNAVAILABLE shows up in too many unrelated texts
ERROR_MESSAGE_PATTERNS: list[tuple[tuple[str, ...], Cause]] = [
    entry for entry in ERROR_TYPE_PATTERNS if entry[1] is not Cause.UNAVAILABLE
]

# =============================================================================
# HTTP STATUS
# =============================================================================

STATUS_FIELDS: tuple[str, ...] = ("status", "status_code", "http_status", "statusCode")

HTTP_STATUS_CAUSES: dict[int, Cause] = {
    429: Cause.RATE_LIMITED,
    503: Cause.OVERLOADED,
    529: Cause.OVERLOADED,
}

# =============================================================================
# RAW TEXT
# =============================================================================
# Matched against the lowercased raw line. Both spellings of the status
# literal are listed on purpose; lines are not whitespace-normalized.

RAW_TEXT_PATTERNS: list[tuple[tuple[str, ...], Cause]] = [
    (("resource_exhausted",), Cause.RESOURCE_EXHAUSTED),
    (("overloaded",), Cause.OVERLOADED),
    (("unavailable",), Cause.UNAVAILABLE),
    (('http 429', '"status":429', '"status": 429'), Cause.RATE_LIMITED),
    (
        (
            "http 503",
            "http 529",
            '"status":503',
            '"status": 503',
            '"status":529',
            '"status": 529',
        ),
        Cause.OVERLOADED,
    ),
]

# Raw-text signals for the fatal detector (lowercased)
RAW_FATAL_PATTERNS: list[tuple[tuple[str, ...], Cause]] = [
    (CONTEXT_LENGTH_TYPE_PATTERNS, Cause.CONTEXT_LENGTH_EXCEEDED),
    (COST_LIMIT_MESSAGE_PATTERNS, Cause.COST_LIMIT_REACHED),
]


def get_window(detector_name: str) -> int | None:
    """Get the line window for a detector (None = full tail)."""
    return DETECTOR_WINDOWS.get(detector_name)
