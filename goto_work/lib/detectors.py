"""Stop-cause detectors.

Each detector is a plain function ``(lines, stop_hook_active) -> Outcome``
over the immutable tail of the transcript. Detectors scan their window
from the newest line to the oldest and the first match inside a detector
wins. ``run_detector_chain`` applies them in ``DETECTOR_EXECUTION_ORDER``
and stops at the first ALLOW or BLOCK.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any

from goto_work.lib.detector_config import (
    CONTEXT_LENGTH_TYPE_PATTERNS,
    COST_LIMIT_MESSAGE_PATTERNS,
    DETECTOR_EXECUTION_ORDER,
    ERROR_MESSAGE_PATTERNS,
    ERROR_TYPE_PATTERNS,
    HTTP_STATUS_CAUSES,
    RAW_FATAL_PATTERNS,
    RAW_TEXT_PATTERNS,
    STATUS_FIELDS,
    STOP_REASON_ERROR,
    STOP_REASON_TRUNCATED,
    STOP_REASONS_COMPLETE,
    get_window,
)
from goto_work.lib.stop_model import Cause, Outcome
from goto_work.lib.transcript_reader import TranscriptLine

logger = logging.getLogger(__name__)

Detector = Callable[[Sequence[TranscriptLine], bool], Outcome]


# --- Helpers ---


def _newest_first(lines: Sequence[TranscriptLine], window: int | None) -> Iterator[TranscriptLine]:
    """Iterate the last ``window`` lines (all if None), newest first."""
    recent = lines if window is None else lines[-window:] if window > 0 else []
    return reversed(recent)


def _error_fields(entry: dict[str, Any]) -> tuple[str, str]:
    """Return (error.type, error.message) as strings.

    A bare string ``error`` is treated as the message.
    """
    error = entry.get("error")
    if isinstance(error, dict):
        etype = error.get("type")
        message = error.get("message")
        return (
            etype if isinstance(etype, str) else "",
            message if isinstance(message, str) else "",
        )
    if isinstance(error, str):
        return "", error
    return "", ""


def _is_error_entry(entry: dict[str, Any]) -> bool:
    etype = entry.get("type")
    return isinstance(etype, str) and etype.lower() == "error"


def _match_patterns(text: str, patterns: list[tuple[tuple[str, ...], Cause]]) -> Cause | None:
    for needles, cause in patterns:
        if any(needle in text for needle in needles):
            return cause
    return None


def _stop_reason(entry: dict[str, Any]) -> str | None:
    """Stop reason from message.stop_reason, falling back to top-level stop_reason."""
    message = entry.get("message")
    if isinstance(message, dict):
        reason = message.get("stop_reason")
        if isinstance(reason, str):
            return reason
    reason = entry.get("stop_reason")
    return reason if isinstance(reason, str) else None


def _as_status(value: Any) -> int | None:
    # bool is an int subclass; never a status code
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _status_codes(entry: dict[str, Any]) -> Iterator[int]:
    """Yield status codes found at top level, then under ``error``."""
    scopes = [entry]
    error = entry.get("error")
    if isinstance(error, dict):
        scopes.append(error)
    for scope in scopes:
        for field in STATUS_FIELDS:
            status = _as_status(scope.get(field))
            if status is not None:
                yield status


# --- Detectors ---


def detect_fatal_error(lines: Sequence[TranscriptLine], stop_hook_active: bool) -> Outcome:
    """Context-window and cost-limit failures.

    Retrying cannot fix these, so this runs before everything else and
    ignores any later ``end_turn``. Error records are also matched on their
    raw text; conversation entries are not, so talk about a budget is not
    mistaken for hitting one.
    """
    name = "fatal_error"
    for line in _newest_first(lines, get_window(name)):
        entry = line.entry
        if entry is not None:
            etype, message = _error_fields(entry)
            etype, message = etype.lower(), message.lower()
            if any(p in etype for p in CONTEXT_LENGTH_TYPE_PATTERNS):
                return Outcome.block(Cause.CONTEXT_LENGTH_EXCEEDED, name)
            if any(p in message for p in COST_LIMIT_MESSAGE_PATTERNS):
                return Outcome.block(Cause.COST_LIMIT_REACHED, name)
            # Signals can sit in other fields of an error record
            if _is_error_entry(entry) or "error" in entry:
                cause = _match_patterns(line.raw.lower(), RAW_FATAL_PATTERNS)
                if cause is not None:
                    return Outcome.block(cause, name)
        elif not line.is_json:
            cause = _match_patterns(line.raw.lower(), RAW_FATAL_PATTERNS)
            if cause is not None:
                return Outcome.block(cause, name)
    return Outcome.no_match(name)


def detect_stop_reason(lines: Sequence[TranscriptLine], stop_hook_active: bool) -> Outcome:
    """Classify by the newest line that carries a stop reason.

    A normal completion newer than an error means the error was already
    recovered from, so this returns ALLOW and the error detectors never run.
    """
    name = "stop_reason"
    for line in _newest_first(lines, get_window(name)):
        entry = line.entry
        if entry is None:
            continue
        reason = _stop_reason(entry)
        if reason is None:
            continue

        reason = reason.lower()
        if reason == STOP_REASON_TRUNCATED:
            return Outcome.block(Cause.MAX_TOKENS, name)
        if reason in STOP_REASONS_COMPLETE:
            return Outcome.allow(name)
        if reason == STOP_REASON_ERROR:
            # Let the error-specific detectors decide
            return Outcome.no_match(name)
        logger.debug(f"Unrecognized stop_reason {reason!r}, allowing stop")
        return Outcome.allow(name)
    return Outcome.no_match(name)


def detect_structured_error(lines: Sequence[TranscriptLine], stop_hook_active: bool) -> Outcome:
    """Retryable API errors recorded as ``{"type": "error", "error": {...}}``."""
    name = "structured_error"
    for line in _newest_first(lines, get_window(name)):
        entry = line.entry
        if entry is None or not _is_error_entry(entry):
            continue
        etype, message = _error_fields(entry)
        cause = _match_patterns(etype.upper(), ERROR_TYPE_PATTERNS)
        if cause is None:
            cause = _match_patterns(message.upper(), ERROR_MESSAGE_PATTERNS)
        if cause is not None:
            return Outcome.block(cause, name)
    return Outcome.no_match(name)


def detect_http_status(lines: Sequence[TranscriptLine], stop_hook_active: bool) -> Outcome:
    """HTTP 429/503/529 on error entries, under any common field spelling."""
    name = "http_status"
    for line in _newest_first(lines, get_window(name)):
        entry = line.entry
        if entry is None or not (_is_error_entry(entry) or "error" in entry):
            continue
        for status in _status_codes(entry):
            cause = HTTP_STATUS_CAUSES.get(status)
            if cause is not None:
                return Outcome.block(cause, name)
    return Outcome.no_match(name)


def detect_raw_text(lines: Sequence[TranscriptLine], stop_hook_active: bool) -> Outcome:
    """Last resort for lines that are not valid JSON."""
    name = "raw_text"
    for line in _newest_first(lines, get_window(name)):
        if line.is_json:
            continue
        cause = _match_patterns(line.raw.lower(), RAW_TEXT_PATTERNS)
        if cause is not None:
            return Outcome.block(cause, name)
    return Outcome.no_match(name)


DETECTORS: dict[str, Detector] = {
    "fatal_error": detect_fatal_error,
    "stop_reason": detect_stop_reason,
    "structured_error": detect_structured_error,
    "http_status": detect_http_status,
    "raw_text": detect_raw_text,
}


def run_detector_chain(
    lines: Sequence[TranscriptLine], stop_hook_active: bool = False
) -> Outcome:
    """Run detectors in priority order; the first ALLOW or BLOCK wins.

    Returns NO_MATCH (implicit allow) when no detector fires.
    """
    for detector_name in DETECTOR_EXECUTION_ORDER:
        outcome = DETECTORS[detector_name](lines, stop_hook_active)
        if outcome.is_final:
            logger.info(f"Detector '{detector_name}' decided: {outcome.to_json()}")
            return outcome
    return Outcome.no_match()
