"""Recover an arbitration verdict from free-form model output.

Models asked for "JSON only" still wrap answers in reasoning tags, prose
or code fences. Parsing goes through staged fallbacks, each tried only
when the previous one failed:

1. Parse the raw reply as a verdict.
2. Strip paired reasoning tags and parse again.
3. Parse the last balanced ``{...}`` in the cleaned text.
4. Parse the last balanced ``{...}`` in the original text, in case tag
   removal cut into the JSON.

If all four fail the reply is inconclusive and ``parse_verdict`` returns None.
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from goto_work.hooks.schemas import ArbiterVerdict

logger = logging.getLogger(__name__)

REASONING_TAGS: tuple[str, ...] = ("think", "thinking", "reasoning", "thought", "reflection")

# Per tag name: a pair whose body holds no further opening tag of the same
# name, i.e. the innermost pair. Applied repeatedly to peel nested blocks.
_INNERMOST_TAG_RES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(rf"<{tag}>(?:(?!<{tag}>).)*?</{tag}>", re.IGNORECASE | re.DOTALL)
    for tag in REASONING_TAGS
)


def strip_reasoning_tags(text: str) -> str:
    """Remove ``<think>...</think>`` style blocks, innermost first.

    Unpaired tags are left alone, including unpaired tags of another name
    inside a pair.
    """
    result = text
    while True:
        stripped = result
        for pattern in _INNERMOST_TAG_RES:
            stripped = pattern.sub("", stripped)
        if stripped == result:
            break
        result = stripped
    return result.strip()


def extract_last_json_object(text: str) -> str | None:
    """Return the last balanced ``{...}`` span in ``text``.

    Walks the string backwards with a depth counter. Braces inside JSON
    strings are not special-cased; the surrounding text is untrusted and
    may be unbalanced, so only depth is tracked.
    """
    depth = 0
    end: int | None = None

    for i in range(len(text) - 1, -1, -1):
        char = text[i]
        if char == "}":
            if depth == 0:
                end = i + 1
            depth += 1
        elif char == "{":
            if depth == 0:
                # Stray opening brace after the last object
                continue
            depth -= 1
            if depth == 0 and end is not None:
                return text[i:end]
    return None


def _try_parse(candidate: str | None) -> ArbiterVerdict | None:
    if not candidate:
        return None
    try:
        return ArbiterVerdict.model_validate_json(candidate)
    except ValidationError:
        return None


def parse_verdict(content: str) -> ArbiterVerdict | None:
    """Parse a model reply into a verdict, or None when inconclusive."""
    verdict = _try_parse(content)
    if verdict is not None:
        return verdict

    cleaned = strip_reasoning_tags(content)
    verdict = _try_parse(cleaned)
    if verdict is not None:
        logger.debug("Verdict recovered after stripping reasoning tags")
        return verdict

    verdict = _try_parse(extract_last_json_object(cleaned))
    if verdict is not None:
        logger.debug("Verdict recovered from embedded JSON object")
        return verdict

    verdict = _try_parse(extract_last_json_object(content))
    if verdict is not None:
        logger.debug("Verdict recovered from embedded JSON object in unstripped reply")
        return verdict

    return None
