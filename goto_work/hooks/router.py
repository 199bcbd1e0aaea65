#!/usr/bin/env python3
"""
Stop Hook Router.

Decides, when Claude Code ends a turn, whether the session should really
stop or whether the assistant was interrupted and should continue.

Strategies:
- heuristic: ordered detector chain over the transcript tail (default)
- ai: ask an OpenAI-compatible model for a verdict
- hybrid: detector chain first, model only when no detector matched

Architecture:
- Reads the Stop payload (StopHookInput) from stdin.
- Reads the transcript tail once and hands it to the selected strategy.
- StopAction objects used internally, converted to JSON only at final output.

Output:
- Block: {"decision": "block", "reason": "..."} on stdout
- Allow: nothing on stdout

Exit codes:
    0: Handled (block or allow)
    1: Setup error (config, malformed stdin, unreadable transcript)
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from pydantic import ValidationError

from goto_work.hooks.schemas import ClaudeStopHookOutput, StopHookInput
from goto_work.lib.arbiter import check_with_ai
from goto_work.lib.config import ConfigError, GotoWorkConfig, load_config
from goto_work.lib.decision_policy import DEFAULT_WAIT_SECONDS, StopAction, decide_action
from goto_work.lib.detectors import run_detector_chain
from goto_work.lib.paths import (
    DEFAULT_CONFIG_PATH,
    expand_path,
    get_default_config_path,
    get_log_file_path,
)
from goto_work.lib.stop_model import Verdict
from goto_work.lib.template_loader import load_template
from goto_work.lib.transcript_reader import (
    TranscriptLine,
    TranscriptReadError,
    read_transcript_tail,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

STRATEGY_HEURISTIC = "heuristic"
STRATEGY_AI = "ai"
STRATEGY_HYBRID = "hybrid"
STRATEGIES = (STRATEGY_HEURISTIC, STRATEGY_AI, STRATEGY_HYBRID)

# Strategies that cannot run without an arbitration config
CONFIG_REQUIRED = {STRATEGY_AI, STRATEGY_HYBRID}


def configure_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Log to stderr (stdout carries the decision); add a file log in debug mode."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if debug and log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"WARNING: Cannot open log file {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def read_hook_input(stream: TextIO) -> StopHookInput:
    """Parse the Stop payload.

    Raises:
        ValidationError: If stdin is not a JSON object matching StopHookInput
    """
    return StopHookInput.model_validate_json(stream.read())


# --- Router Logic ---


class StopHookRouter:
    def __init__(
        self,
        strategy: str = STRATEGY_HEURISTIC,
        wait_seconds: int = DEFAULT_WAIT_SECONDS,
        config: GotoWorkConfig | None = None,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {strategy}")
        if strategy in CONFIG_REQUIRED and config is None:
            raise ValueError(f"Strategy '{strategy}' requires a configuration")
        self.strategy = strategy
        self.wait_seconds = wait_seconds
        self.config = config

    def evaluate(self, hook_input: StopHookInput) -> StopAction | None:
        """Decide what to do with a stop event. None means allow the stop.

        Raises:
            TranscriptReadError: If the transcript exists but cannot be read
        """
        if not hook_input.transcript_path:
            logger.debug("No transcript_path in payload, allowing stop")
            return None

        lines = read_transcript_tail(expand_path(hook_input.transcript_path))
        if not lines:
            logger.debug("Transcript missing or empty, allowing stop")
            return None

        stop_hook_active = bool(hook_input.stop_hook_active)

        if self.strategy == STRATEGY_AI:
            return self._arbitrate(lines)

        outcome = run_detector_chain(lines, stop_hook_active)
        if self.strategy == STRATEGY_HYBRID and outcome.verdict is Verdict.NO_MATCH:
            logger.debug("No detector matched, deferring to AI arbitration")
            return self._arbitrate(lines)

        return decide_action(outcome, self.wait_seconds, stop_hook_active)

    def _arbitrate(self, lines: Sequence[TranscriptLine]) -> StopAction | None:
        if self.config is None:
            raise RuntimeError(f"Strategy '{self.strategy}' requires a configuration")
        verdict = check_with_ai(lines, self.config)
        if verdict is None:
            logger.warning("AI check failed, allowing stop")
            return None
        if not verdict.should_continue:
            return None
        return StopAction(wait_seconds=0, reason=f"AI: {verdict.resolved_reason}")

    def emit(self, action: StopAction, out: TextIO) -> None:
        """Wait out the backoff, then write the block decision."""
        if action.wait_seconds > 0:
            logger.info(f"Waiting {action.wait_seconds}s before asking to continue")
            time.sleep(action.wait_seconds)

        output = ClaudeStopHookOutput(decision="block", reason=action.reason)
        out.write(output.model_dump_json(exclude_none=True) + "\n")
        out.flush()


# --- Main Entry Point ---


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goto-work",
        description="Claude Code Stop hook - continue sessions that were interrupted",
    )
    parser.add_argument(
        "-c",
        "--config",
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH}; "
        "required by the ai and hybrid strategies)",
    )
    parser.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default=STRATEGY_HEURISTIC,
        help="How to decide (default: heuristic)",
    )
    parser.add_argument(
        "--wait-seconds",
        type=_non_negative_int,
        default=DEFAULT_WAIT_SECONDS,
        help=f"Backoff before continuing after a retryable API error (default: {DEFAULT_WAIT_SECONDS})",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    config: GotoWorkConfig | None = None
    if args.config or args.strategy in CONFIG_REQUIRED:
        config_path = expand_path(args.config) if args.config else get_default_config_path()
        try:
            config = load_config(config_path)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            print(load_template("config-help.md", {"config_path": str(config_path)}), file=sys.stderr)
            return 1
        if config.debug or args.debug:
            configure_logging(True, get_log_file_path(config_path))

    try:
        hook_input = read_hook_input(sys.stdin)
    except ValidationError as e:
        print(f"Error: invalid hook input on stdin: {e}", file=sys.stderr)
        return 1

    logger.debug(
        f"Stop event: session={hook_input.session_id} event={hook_input.hook_event_name} "
        f"strategy={args.strategy} stop_hook_active={hook_input.stop_hook_active}"
    )

    router = StopHookRouter(args.strategy, args.wait_seconds, config)
    try:
        action = router.evaluate(hook_input)
    except TranscriptReadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if action is not None:
        router.emit(action, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
