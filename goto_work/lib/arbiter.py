"""
AI arbitration for stop events.

Sends a compact, role-tagged rendition of the transcript tail to an
OpenAI-compatible chat-completions endpoint and asks for a
``{"should_continue": bool, "reason": str}`` verdict.

Arbitration never blocks a stop on failure: timeouts, HTTP errors,
malformed bodies and unparsable verdicts are logged and reported as
inconclusive (None), which callers treat as "allow the stop".
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from collections.abc import Sequence
from typing import Any

from goto_work.hooks.schemas import ArbiterVerdict
from goto_work.lib.config import GotoWorkConfig
from goto_work.lib.response_normalizer import parse_verdict
from goto_work.lib.template_loader import load_template
from goto_work.lib.transcript_reader import TranscriptLine

logger = logging.getLogger(__name__)

# Maximum number of transcript lines sent to the model
AI_MAX_LINES = 20
MAX_RESPONSE_TOKENS = 256
SYSTEM_PROMPT_TEMPLATE = "arbiter-system-prompt.md"


class ArbiterError(Exception):
    """Raised when the arbitration request or its response is unusable."""


def _content_text(content: Any) -> str:
    """Text of a message content value (string or list of text blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            block["text"]
            for block in content
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        )
    return ""


def format_transcript_for_ai(
    lines: Sequence[TranscriptLine], max_lines: int = AI_MAX_LINES
) -> str:
    """Render the last ``max_lines`` lines as a role-tagged transcript.

    Only user, assistant and error entries are rendered; tool noise and
    non-JSON lines are skipped.
    """
    parts: list[str] = []
    for line in lines[-max_lines:]:
        entry = line.entry
        if entry is None:
            continue

        entry_type = entry.get("type")
        message = entry.get("message")
        message = message if isinstance(message, dict) else {}

        if entry_type == "user":
            text = _content_text(message.get("content"))
            if text:
                parts.append(f"User: {text}")
        elif entry_type == "assistant":
            text = _content_text(message.get("content"))
            if text:
                parts.append(f"Assistant: {text}")
            stop_reason = message.get("stop_reason")
            if isinstance(stop_reason, str):
                parts.append(f"[stop_reason: {stop_reason}]")
        elif entry_type == "error":
            error_info = entry.get("error", entry)
            parts.append(
                f"[Error: {json.dumps(error_info, ensure_ascii=False, separators=(',', ':'))}]"
            )

    return "".join(f"{part}\n" for part in parts)


def get_system_prompt(config: GotoWorkConfig) -> str:
    """Configured system prompt, or the packaged default."""
    if config.system_prompt:
        return config.system_prompt
    return load_template(SYSTEM_PROMPT_TEMPLATE)


def build_request_body(transcript_text: str, config: GotoWorkConfig) -> dict[str, Any]:
    return {
        "model": config.model,
        "messages": [
            {"role": "system", "content": get_system_prompt(config)},
            {"role": "user", "content": transcript_text},
        ],
        "response_format": {"type": "json_object"},
        "max_tokens": MAX_RESPONSE_TOKENS,
        "temperature": 0,
    }


def request_completion(transcript_text: str, config: GotoWorkConfig) -> str:
    """
    POST the transcript to the chat-completions endpoint.

    Returns:
        ``choices[0].message.content`` of the response

    Raises:
        ArbiterError: On transport failure, timeout, non-2xx status or an
            unexpected response body
    """
    url = config.chat_completions_url
    data = json.dumps(build_request_body(transcript_text, config)).encode("utf-8")
    headers = {
        "Authorization": f"Bearer {config.api_key}",
        "Content-Type": "application/json",
    }
    try:
        req = urllib.request.Request(url, data=data, headers=headers, method="POST")
    except ValueError as e:
        raise ArbiterError(f"Invalid api_base {config.api_base!r}: {e}") from e

    try:
        with urllib.request.urlopen(req, timeout=config.timeout) as response:
            raw_body = response.read()
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        raise ArbiterError(f"API returned status {e.code}: {body}") from e
    except urllib.error.URLError as e:
        raise ArbiterError(f"API request failed: {e.reason}") from e
    except TimeoutError as e:
        raise ArbiterError(f"API request timed out after {config.timeout}s") from e
    except http.client.HTTPException as e:
        raise ArbiterError(f"API returned a malformed HTTP response: {e!r}") from e
    except OSError as e:
        raise ArbiterError(f"API request failed: {e}") from e

    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ArbiterError(f"Failed to parse API response: {e}") from e

    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ArbiterError(f"Unexpected response structure: {e}") from e

    if not isinstance(content, str):
        raise ArbiterError("Response content is not a string")
    return content


def check_with_ai(
    lines: Sequence[TranscriptLine], config: GotoWorkConfig
) -> ArbiterVerdict | None:
    """
    Ask the arbitration model whether the session should continue.

    Returns:
        The verdict, or None when arbitration is inconclusive
    """
    transcript_text = format_transcript_for_ai(lines)
    if not transcript_text:
        logger.debug("Nothing to arbitrate: no user/assistant/error entries in tail")
        return None

    try:
        content = request_completion(transcript_text, config)
    except ArbiterError as e:
        logger.error(f"AI check failed: {e}")
        return None

    verdict = parse_verdict(content)
    if verdict is None:
        logger.error(f"Failed to parse AI response: {content}")
        return None

    logger.info(
        f"AI verdict: should_continue={verdict.should_continue} reason={verdict.resolved_reason!r}"
    )
    return verdict
