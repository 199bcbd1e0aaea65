"""Transcript tail reader.

Claude Code transcripts are append-only JSONL files that can grow to many
megabytes. Only the last ``TAIL_READ_BYTES`` are read: everything the
detectors look at lives near the end of the file.

When the read starts mid-file, the first line after the seek is almost
always a fragment of a record and is discarded. Keeping it would let a
truncated JSON object show up either as "not JSON" or, worse, as a valid
but wrong value.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Read approximately the last 10KB of the transcript
TAIL_READ_BYTES = 10 * 1024


class TranscriptReadError(Exception):
    """Raised when a transcript exists but cannot be read."""


@dataclass(frozen=True)
class TranscriptLine:
    """One non-empty transcript line.

    Attributes:
        raw: Line text with surrounding whitespace stripped
        parsed: Decoded JSON value, or None if the line is not valid JSON
    """

    raw: str
    parsed: Any = None

    @property
    def is_json(self) -> bool:
        return self.parsed is not None

    @property
    def entry(self) -> dict[str, Any] | None:
        """The parsed value when it is a JSON object, else None."""
        return self.parsed if isinstance(self.parsed, dict) else None

    @classmethod
    def from_text(cls, text: str) -> "TranscriptLine":
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        return cls(raw=text, parsed=parsed)


def read_transcript_tail(
    transcript_path: Path | str, tail_bytes: int = TAIL_READ_BYTES
) -> list[TranscriptLine]:
    """Read the non-empty lines found in the final ``tail_bytes`` of a transcript.

    Args:
        transcript_path: Path to the JSONL transcript
        tail_bytes: Size of the tail window in bytes

    Returns:
        Lines in file order. Empty if the file is missing or empty.

    Raises:
        TranscriptReadError: On any I/O error other than the file not existing
    """
    path = Path(transcript_path)
    try:
        with open(path, "rb") as f:
            size = f.seek(0, 2)
            if size == 0:
                return []

            drop_first_line = size > tail_bytes
            f.seek(size - tail_bytes if drop_first_line else 0)
            data = f.read()
    except FileNotFoundError:
        logger.debug(f"Transcript not found: {path}")
        return []
    except OSError as e:
        raise TranscriptReadError(f"Failed to read transcript {path}: {e}") from e

    # The window may start inside a multi-byte character; that only ever
    # affects the discarded first line.
    chunks = data.decode("utf-8", errors="replace").split("\n")
    if drop_first_line:
        chunks = chunks[1:]

    lines = [TranscriptLine.from_text(chunk.strip()) for chunk in chunks if chunk.strip()]
    logger.debug(f"Read {len(lines)} transcript lines from {path} ({size} bytes)")
    return lines
