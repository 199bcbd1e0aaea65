from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool

# --- Input Schemas (Context) ---


class StopHookInput(BaseModel):
    """
    Payload Claude Code sends on stdin for the Stop event.

    Every field is optional; unknown keys are ignored so newer Claude Code
    releases do not break the hook.
    """

    model_config = ConfigDict(extra="ignore")

    session_id: str | None = Field(None, description="The unique session identifier.")
    transcript_path: str | None = Field(
        None, description="Path to the session JSONL transcript."
    )
    cwd: str | None = None
    hook_event_name: str | None = None
    stop_hook_active: bool | None = Field(
        None, description="True when the stop hook already blocked once this turn."
    )


# --- Claude Code Hook Schemas ---


class ClaudeStopHookOutput(BaseModel):
    """
    Output structure for the Claude 'Stop' event.

    Only emitted to block a stop; allowing a stop writes nothing.
    """

    decision: Literal["block"] = "block"
    reason: str


# --- Arbitration Schemas ---


class ArbiterVerdict(BaseModel):
    """
    Verdict returned by the arbitration model.

    ``should_continue`` must be a real JSON boolean; strings like "yes"
    are rejected so an ambiguous reply counts as unparsable.
    """

    model_config = ConfigDict(extra="ignore")

    should_continue: StrictBool
    reason: str | None = None

    @property
    def resolved_reason(self) -> str:
        """Reason text, synthesized from the flag when the model omitted it."""
        if self.reason and self.reason.strip():
            return self.reason.strip()
        if self.should_continue:
            return "AI determined task is incomplete"
        return "AI determined task is complete"
