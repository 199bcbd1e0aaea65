"""Stop-cause model: causes, detector verdicts and classification outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum


class Cause(StrEnum):
    """Why a stop was interrupted.

    Each cause carries whether an automatic continuation makes sense
    (``retryable``) and the reason text handed back to the assistant.
    """

    MAX_TOKENS = "max_tokens"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    UNAVAILABLE = "unavailable"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    COST_LIMIT_REACHED = "cost_limit_reached"

    @property
    def retryable(self) -> bool:
        return _CAUSE_POLICY[self][0]

    @property
    def reason_text(self) -> str:
        return _CAUSE_POLICY[self][1]


# (retryable, reason_text)
_CAUSE_POLICY: dict[Cause, tuple[bool, str]] = {
    Cause.MAX_TOKENS: (
        True,
        "Your previous response was cut off (max_tokens). "
        "Please continue exactly where you left off.",
    ),
    Cause.RESOURCE_EXHAUSTED: (
        True,
        "The API reported RESOURCE_EXHAUSTED. The quota has had time to recover; "
        "please continue the task.",
    ),
    Cause.RATE_LIMITED: (
        True,
        "The API rate limit was hit (HTTP 429). Please continue the task.",
    ),
    Cause.OVERLOADED: (
        True,
        "The API was overloaded (HTTP 503/529). Please continue the task.",
    ),
    Cause.UNAVAILABLE: (
        True,
        "The API was temporarily unavailable. Please continue the task.",
    ),
    Cause.CONTEXT_LENGTH_EXCEEDED: (
        False,
        "The context window is exhausted; the session cannot continue automatically.",
    ),
    Cause.COST_LIMIT_REACHED: (
        False,
        "A cost or spending limit was reached; the session cannot continue automatically.",
    ),
}


class Verdict(Enum):
    """Verdict of a single detector."""

    ALLOW = "allow"
    BLOCK = "block"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class Outcome:
    """Result of classifying the transcript tail.

    ``cause`` is set only for BLOCK. ``detector`` names the detector that
    produced the outcome and is used for diagnostics only.
    """

    verdict: Verdict
    cause: Cause | None = None
    detector: str | None = None

    @classmethod
    def allow(cls, detector: str | None = None) -> "Outcome":
        """Factory method for ALLOW verdict."""
        return cls(verdict=Verdict.ALLOW, detector=detector)

    @classmethod
    def block(cls, cause: Cause, detector: str | None = None) -> "Outcome":
        """Factory method for BLOCK verdict."""
        return cls(verdict=Verdict.BLOCK, cause=cause, detector=detector)

    @classmethod
    def no_match(cls, detector: str | None = None) -> "Outcome":
        """Factory method for NO_MATCH verdict."""
        return cls(verdict=Verdict.NO_MATCH, detector=detector)

    @property
    def is_final(self) -> bool:
        """True when the chain should stop evaluating."""
        return self.verdict is not Verdict.NO_MATCH

    def to_json(self) -> dict[str, str | None]:
        """Serialize for log records."""
        return {
            "verdict": self.verdict.value,
            "cause": self.cause.value if self.cause else None,
            "detector": self.detector,
        }
