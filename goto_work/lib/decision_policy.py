"""Turn a classification outcome into the action emitted by the hook."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from goto_work.lib.stop_model import Cause, Outcome, Verdict

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 30


@dataclass(frozen=True)
class StopAction:
    """Block the stop, optionally after waiting.

    Attributes:
        wait_seconds: Backoff to sleep before emitting the decision
        reason: Text handed back to the assistant
        decision: Always "block"; allowing a stop produces no action at all
    """

    wait_seconds: int
    reason: str
    decision: str = "block"

    def __post_init__(self) -> None:
        if self.wait_seconds < 0:
            raise ValueError(f"wait_seconds must be >= 0, got {self.wait_seconds}")


def decide_action(
    outcome: Outcome,
    wait_seconds: int = DEFAULT_WAIT_SECONDS,
    stop_hook_active: bool = False,
) -> StopAction | None:
    """Decide what to do with a classified stop.

    Fatal causes are reported in the log but never block: retrying them
    would only loop. ``stop_hook_active`` does not suppress a retryable
    block; loop protection is the host's concern.

    Returns:
        StopAction to block the stop, or None to let it proceed
    """
    if outcome.verdict is not Verdict.BLOCK or outcome.cause is None:
        return None

    cause = outcome.cause
    if not cause.retryable:
        logger.warning(f"Fatal stop cause '{cause.value}': {cause.reason_text} Allowing stop.")
        return None

    if stop_hook_active:
        logger.info(f"Stop hook already active; blocking anyway for retryable cause '{cause.value}'")

    wait = 0 if cause is Cause.MAX_TOKENS else wait_seconds
    return StopAction(wait_seconds=wait, reason=cause.reason_text)
