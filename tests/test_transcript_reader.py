"""Tests for the transcript tail reader."""

import json

import pytest

from goto_work.lib.transcript_reader import (
    TAIL_READ_BYTES,
    TranscriptLine,
    TranscriptReadError,
    read_transcript_tail,
)


def test_small_file_keeps_every_line(write_transcript):
    """A file smaller than the window is read from the start; nothing is dropped."""
    path = write_transcript(
        {"n": 0},
        {"n": 1},
        "not json at all",
        "   ",
        {"n": 2},
    )

    lines = read_transcript_tail(path)

    assert [line.raw for line in lines] == ['{"n": 0}', '{"n": 1}', "not json at all", '{"n": 2}']
    assert lines[0].parsed == {"n": 0}
    assert lines[2].parsed is None, "Unparsable lines must be kept with parsed=None"


def test_missing_file_is_empty(tmp_path):
    assert read_transcript_tail(tmp_path / "nope.jsonl") == []


def test_empty_file_is_empty(tmp_path):
    path = tmp_path / "empty.jsonl"
    path.write_bytes(b"")
    assert read_transcript_tail(path) == []


def test_first_line_after_seek_is_discarded(tmp_path):
    """Seeking mid-record leaves a fragment; it must never reach the detectors."""
    path = tmp_path / "t.jsonl"
    path.write_bytes(b'{"n":0}\n{"n":1}\n{"n":2}\n')  # 24 bytes, 8 per line

    # Seek to byte 4: the fragment '"n":0}' is dropped
    lines = read_transcript_tail(path, tail_bytes=20)
    assert [line.parsed for line in lines] == [{"n": 1}, {"n": 2}]


def test_first_line_discarded_even_when_seek_hits_line_start(tmp_path):
    """The first post-seek line is dropped unconditionally."""
    path = tmp_path / "t.jsonl"
    path.write_bytes(b'{"n":0}\n{"n":1}\n{"n":2}\n')

    # Seek to byte 8, exactly the start of {"n":1}
    lines = read_transcript_tail(path, tail_bytes=16)
    assert [line.parsed for line in lines] == [{"n": 2}]


def test_large_file_reads_only_tail(tmp_path):
    records = [{"n": i, "pad": "x" * 80} for i in range(300)]
    path = tmp_path / "big.jsonl"
    path.write_text("".join(json.dumps(r) + "\n" for r in records), encoding="utf-8")
    assert path.stat().st_size > TAIL_READ_BYTES

    lines = read_transcript_tail(path)

    assert 0 < len(lines) < len(records)
    assert all(line.parsed is not None for line in lines), "No truncated fragment may survive"
    assert lines[-1].parsed["n"] == 299
    numbers = [line.parsed["n"] for line in lines]
    assert numbers == list(range(numbers[0], 300)), "Lines must be contiguous and in file order"


def test_window_boundary_file_is_read_whole(tmp_path):
    """A file exactly the size of the window is read from offset 0."""
    line = '{"k":"' + "v" * 1015 + '"}\n'  # 1024 bytes
    path = tmp_path / "exact.jsonl"
    path.write_text(line * 10, encoding="utf-8")
    assert path.stat().st_size == TAIL_READ_BYTES

    assert len(read_transcript_tail(path)) == 10


def test_directory_raises_read_error(tmp_path):
    """I/O errors other than a missing file propagate."""
    with pytest.raises(TranscriptReadError):
        read_transcript_tail(tmp_path)


def test_non_object_json_is_parsed_but_not_an_entry():
    line = TranscriptLine.from_text("[1, 2, 3]")
    assert line.is_json
    assert line.parsed == [1, 2, 3]
    assert line.entry is None


def test_crlf_line_endings_are_stripped(tmp_path):
    path = tmp_path / "crlf.jsonl"
    path.write_bytes(b'{"a":1}\r\n{"b":2}\r\n')
    assert [line.parsed for line in read_transcript_tail(path)] == [{"a": 1}, {"b": 2}]
