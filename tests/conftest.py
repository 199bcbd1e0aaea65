"""Pytest configuration and fixtures for goto-work tests."""

import logging
from pathlib import Path
from typing import Any, Callable

import pytest

from builders import to_text
from goto_work.lib.transcript_reader import TranscriptLine


@pytest.fixture
def make_lines() -> Callable[..., list[TranscriptLine]]:
    """Build transcript lines from dicts (JSON entries) and strings (raw lines)."""

    def _make(*items: dict[str, Any] | str) -> list[TranscriptLine]:
        return [TranscriptLine.from_text(to_text(item)) for item in items]

    return _make


@pytest.fixture
def write_transcript(tmp_path: Path) -> Callable[..., Path]:
    """Write a JSONL transcript into tmp_path and return its path."""

    def _write(*items: dict[str, Any] | str, name: str = "transcript.jsonl") -> Path:
        path = tmp_path / name
        path.write_text("".join(f"{to_text(item)}\n" for item in items), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The router reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
