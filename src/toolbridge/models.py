"""Data models for backend replies and translated answers.

``AnswerResponse`` is the object returned to clients in the source
protocol's message shape.  ``BackendReply`` is the normalized result of
one backend call, and ``Extraction`` the structured answer recovered
from its text.

Typical usage::

    from toolbridge.models import AnswerResponse, Usage

    response = AnswerResponse(
        id="0f3c...",
        content=[{"type": "text", "text": "hi"}],
        model="gpt-4o",
        stop_reason="end_turn",
        usage=Usage(input_tokens=12, output_tokens=3),
    )
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Literal

StopReason = Literal["tool_use", "end_turn"]


@dataclass
class Usage:
    """Token counters reported with every answer."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_input_tokens": self.cache_read_input_tokens,
        }


@dataclass
class AnswerResponse:
    """A complete answer in the source protocol's message shape.

    Attributes:
        id: Top-level response identifier (32 hex characters).
        content: Content blocks, ``text`` and/or ``tool_use`` dicts.
        model: Model identifier the request was routed to.
        stop_reason: ``"tool_use"`` if any block is a tool call,
            else ``"end_turn"``.
        usage: Locally estimated token counters.
    """

    id: str
    content: list[dict[str, Any]]
    model: str
    stop_reason: StopReason
    usage: Usage = field(default_factory=Usage)
    type: str = "message"
    role: str = "assistant"

    def replay(self, new_id: str) -> AnswerResponse:
        """Copy for a cache hit: fresh id, zeroed usage, shared content.

        Args:
            new_id: Identifier for the replayed response.

        Returns:
            A new ``AnswerResponse`` whose ``content`` list is the same
            object as this one's, so tool-call ids replay verbatim.
        """
        return dataclasses.replace(self, id=new_id, usage=Usage())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON body sent to clients."""
        return {
            "id": self.id,
            "type": self.type,
            "role": self.role,
            "content": self.content,
            "model": self.model,
            "stop_reason": self.stop_reason,
            "usage": self.usage.to_dict(),
        }


@dataclass
class BackendReply:
    """Result of one chat-completions call.

    Attributes:
        status_code: HTTP status returned by the backend.
        content: Assistant message text on success, ``""`` otherwise.
        body: Raw response body, kept for debug recording.
        error: Backend body text when the status was not a success.
        latency_ms: Wall-clock time of the call in milliseconds.
    """

    status_code: int
    content: str = ""
    body: str = ""
    error: str | None = None
    latency_ms: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Extraction:
    """Structured answer recovered from a backend reply.

    Attributes:
        content: Content blocks with tool-call ids assigned.
        stop_reason: Derived from the presence of ``tool_use`` blocks.
        cleaned_text: Reply text after think-span removal and tag
            unescaping; used for output token estimation.
        repaired: True when the JSON repair fallback produced the payload.
    """

    content: list[dict[str, Any]]
    stop_reason: StopReason
    cleaned_text: str = ""
    repaired: bool = False
