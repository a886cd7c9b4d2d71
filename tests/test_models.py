"""Tests for data models and identifier generation."""

from __future__ import annotations

import re

from toolbridge.ids import IdGenerator
from toolbridge.models import AnswerResponse, BackendReply, Usage


class TestIdGenerator:
    """Identifier formats."""

    def test_message_id(self) -> None:
        assert re.fullmatch(r"[0-9a-f]{32}", IdGenerator().message_id())

    def test_tool_call_id(self) -> None:
        assert re.fullmatch(r"call_[0-9a-f]{24}", IdGenerator().tool_call_id())

    def test_ids_differ(self) -> None:
        ids = IdGenerator()
        assert ids.message_id() != ids.message_id()


class TestAnswerResponse:
    """Serialization and cache replay."""

    def _response(self) -> AnswerResponse:
        return AnswerResponse(
            id="a" * 32,
            content=[{"type": "text", "text": "hi"}],
            model="gpt-4o",
            stop_reason="end_turn",
            usage=Usage(input_tokens=3, output_tokens=1),
        )

    def test_to_dict(self) -> None:
        assert self._response().to_dict() == {
            "id": "a" * 32,
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": "hi"}],
            "model": "gpt-4o",
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 3, "output_tokens": 1, "cache_read_input_tokens": 0},
        }

    def test_replay(self) -> None:
        original = self._response()
        replayed = original.replay("b" * 32)
        assert replayed.id == "b" * 32
        assert replayed.usage == Usage()
        assert replayed.content is original.content
        assert original.usage.input_tokens == 3


class TestBackendReply:
    """ok reflects the presence of an error."""

    def test_ok(self) -> None:
        assert BackendReply(status_code=200, content="x").ok

    def test_error(self) -> None:
        assert not BackendReply(status_code=500, error="").ok
