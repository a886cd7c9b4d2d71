"""Shared fixtures: a recording stub backend and deterministic ids."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from toolbridge.config import Config
from toolbridge.ids import IdGenerator
from toolbridge.models import BackendReply
from toolbridge.types import RoutingEntry


class SequenceIds(IdGenerator):
    """Ids built from a counter: 0000...01, 0000...02, ..."""

    def __init__(self) -> None:
        self.counter = 0

    def hex_id(self, length: int) -> str:
        self.counter += 1
        return f"{self.counter:0{length}x}"


class StubBackend:
    """Backend double that replays canned replies and records calls."""

    def __init__(self, *replies: BackendReply | str) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []
        self.entered = False

    async def __aenter__(self) -> StubBackend:
        self.entered = True
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.entered = False

    async def send(
        self,
        entry: RoutingEntry,
        model: str,
        instruction: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> BackendReply:
        self.calls.append(
            {
                "entry": entry,
                "model": model,
                "instruction": instruction,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, str):
            return BackendReply(status_code=200, content=reply, body=reply)
        return reply


class FakeEncoder:
    """Whitespace tokenizer, so tests never download tiktoken data."""

    def encode(self, text: str) -> list[int]:
        return [0] * len(text.split())


def answer(payload: str) -> str:
    return f"<AnswerInJson>{payload}</AnswerInJson>"


TEXT_ANSWER = answer('{"content": [{"type": "text", "text": "hi"}]}')
TOOL_ANSWER = answer(
    '{"content": [{"type": "text", "text": "Checking."}, '
    '{"type": "tool_use", "name": "get_weather", "input": {"city": "Paris"}}]}'
)


@pytest.fixture
def ids() -> SequenceIds:
    return SequenceIds()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        models=["gpt-4o", "qwen"],
        base_urls=["https://api.openai.com", "http://localhost:8000"],
        keys=["sk-openai", "sk-local"],
        default_model="gpt-4o",
        debug_dir=tmp_path / "errors",
    )
