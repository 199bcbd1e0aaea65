"""Tests for AI arbitration.

The chat-completions call is exercised against a fake ``urlopen``; no
network access is needed.
"""

import http.client
import io
import json
import urllib.error
import urllib.request

import pytest

from builders import USER_PROMPT, api_error, assistant
from goto_work.lib import arbiter
from goto_work.lib.arbiter import (
    AI_MAX_LINES,
    ArbiterError,
    check_with_ai,
    format_transcript_for_ai,
    request_completion,
)
from goto_work.lib.config import GotoWorkConfig


@pytest.fixture
def config():
    return GotoWorkConfig(
        api_base="https://llm.example.test/v1/",
        api_key="sk-test",
        model="judge-mini",
        timeout=12,
    )


class FakeResponse:
    def __init__(self, body: bytes):
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def completion(content) -> bytes:
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]}).encode()


class FakeUrlopen:
    """Records (request, timeout) calls and answers with a canned result."""

    def __init__(self):
        self.calls = []
        self.result = completion('{"should_continue": true, "reason": "cut off"}')

    def respond(self, result):
        self.result = result

    def __call__(self, req, timeout=None):
        self.calls.append((req, timeout))
        if isinstance(self.result, BaseException):
            raise self.result
        return FakeResponse(self.result)


@pytest.fixture
def fake_urlopen(monkeypatch):
    fake = FakeUrlopen()
    monkeypatch.setattr(urllib.request, "urlopen", fake)
    return fake


# --- Transcript formatting ---


def test_format_transcript_roles_and_errors(make_lines):
    lines = make_lines(
        USER_PROMPT,
        {"type": "tool_result", "content": "ignored"},
        "not json",
        assistant("max_tokens", "Let me start by"),
        {"type": "user", "message": {"content": [{"type": "text", "text": "go on"}, {"type": "image"}]}},
        api_error("overloaded_error", "Overloaded"),
    )

    assert format_transcript_for_ai(lines) == (
        "User: fix the failing test\n"
        "Assistant: Let me start by\n"
        "[stop_reason: max_tokens]\n"
        "User: go on\n"
        '[Error: {"type":"overloaded_error","message":"Overloaded"}]\n'
    )


def test_format_transcript_assistant_without_text(make_lines):
    lines = make_lines({"type": "assistant", "message": {"content": [], "stop_reason": "tool_use"}})
    assert format_transcript_for_ai(lines) == "[stop_reason: tool_use]\n"


def test_format_transcript_limits_lines(make_lines):
    lines = make_lines(
        *[{"type": "user", "message": {"content": f"msg {i}"}} for i in range(AI_MAX_LINES + 5)]
    )

    rendered = format_transcript_for_ai(lines).splitlines()

    assert len(rendered) == AI_MAX_LINES
    assert rendered[0] == "User: msg 5"
    assert rendered[-1] == f"User: msg {AI_MAX_LINES + 4}"


# --- Request ---


def test_request_shape(config, fake_urlopen, make_lines):
    verdict = check_with_ai(make_lines(USER_PROMPT, assistant("max_tokens")), config)

    assert verdict is not None and verdict.should_continue is True
    assert len(fake_urlopen.calls) == 1

    req, timeout = fake_urlopen.calls[0]
    assert req.full_url == "https://llm.example.test/v1/chat/completions"
    assert req.get_method() == "POST"
    assert req.get_header("Authorization") == "Bearer sk-test"
    assert req.get_header("Content-type") == "application/json"
    assert timeout == 12

    body = json.loads(req.data)
    assert body["model"] == "judge-mini"
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0
    assert body["max_tokens"] == 256
    system, user = body["messages"]
    assert system["role"] == "system" and "should_continue" in system["content"]
    assert user == {
        "role": "user",
        "content": "User: fix the failing test\nAssistant: Working on it\n[stop_reason: max_tokens]\n",
    }


def test_custom_system_prompt(config, fake_urlopen, make_lines):
    config.system_prompt = "Answer with JSON."
    check_with_ai(make_lines(USER_PROMPT), config)

    body = json.loads(fake_urlopen.calls[0][0].data)
    assert body["messages"][0]["content"] == "Answer with JSON."


def test_empty_transcript_skips_request(config, fake_urlopen, make_lines):
    assert check_with_ai(make_lines("raw only", {"type": "summary"}), config) is None
    assert fake_urlopen.calls == [], "Nothing to arbitrate must not call the API"


def test_http_error_reports_status_and_body(config, fake_urlopen):
    fake_urlopen.respond(
        urllib.error.HTTPError(config.chat_completions_url, 500, "Server Error", {}, io.BytesIO(b"boom"))
    )
    with pytest.raises(ArbiterError, match="API returned status 500: boom"):
        request_completion("User: hi\n", config)


@pytest.mark.parametrize(
    "result",
    [
        urllib.error.HTTPError("https://x", 401, "Unauthorized", {}, io.BytesIO(b"bad key")),
        urllib.error.URLError("connection refused"),
        TimeoutError("timed out"),
        http.client.BadStatusLine("garbage"),
        http.client.IncompleteRead(b"{\"choi"),
        b"<html>not json</html>",
        json.dumps({"error": "no choices"}).encode(),
        json.dumps({"choices": []}).encode(),
        completion(None),
        completion("I am not sure."),
    ],
)
def test_failures_are_inconclusive(config, fake_urlopen, make_lines, result, caplog):
    """Any failure is logged and treated as "allow the stop"."""
    fake_urlopen.respond(result)
    with caplog.at_level("ERROR"):
        assert check_with_ai(make_lines(USER_PROMPT), config) is None
    assert caplog.records, "Failures must be logged"


def test_invalid_api_base_is_arbiter_error(config):
    config.api_base = "not a url"
    with pytest.raises(ArbiterError, match="Invalid api_base"):
        request_completion("User: hi\n", config)


def test_verdict_from_reasoning_model(config, fake_urlopen, make_lines):
    fake_urlopen.respond(
        completion('<think>Claude finished.</think>{"should_continue": false, "reason": "done"}')
    )
    verdict = check_with_ai(make_lines(USER_PROMPT), config)
    assert verdict.should_continue is False
    assert verdict.reason == "done"


def test_system_prompt_template_is_packaged(config):
    prompt = arbiter.get_system_prompt(config)
    assert "supervisor" in prompt
    assert not prompt.startswith("---"), "Frontmatter must be stripped"


def test_broken_server_response_is_arbiter_error(config, fake_urlopen):
    fake_urlopen.respond(http.client.BadStatusLine("garbage"))
    with pytest.raises(ArbiterError, match="malformed HTTP response"):
        request_completion("User: hi\n", config)
