"""Local token estimation for usage reporting.

Usage figures returned to clients are estimated with ``tiktoken`` on the
gateway side; the backend's own ``usage`` field is never read.  Counts
are best-effort telemetry, so every tokenizer failure degrades to 0.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import tiktoken

from toolbridge.prompts import MESSAGE_SEPARATOR, messages_to_text

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


class Encoder(Protocol):
    def encode(self, text: str, /) -> list[int]: ...


class TokenAccountant:
    """Estimates input and output token counts.

    The tokenizer is resolved once by ``load()``.  A failed load is not
    retried; every later count reports 0.

    Args:
        encoding: ``tiktoken`` encoding name.
        encoder: Ready-made encoder; overrides ``encoding`` when given.
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING, encoder: Encoder | None = None) -> None:
        self._encoding = encoding
        self._encoder = encoder
        self._load_failed = False

    def load(self) -> bool:
        """Resolve the tokenizer if that has not been attempted yet.

        ``tiktoken`` may download encoding data on first use, so callers
        on an event loop should run this in a worker thread.

        Returns:
            True if an encoder is available.
        """
        if self._encoder is None and not self._load_failed:
            try:
                self._encoder = tiktoken.get_encoding(self._encoding)
            except Exception as exc:
                self._load_failed = True
                logger.warning(
                    "Tokenizer '%s' unavailable, usage will report 0: %s", self._encoding, exc
                )
        return self._encoder is not None

    def count(self, text: str) -> int:
        """Token count of *text*, or 0 if the tokenizer fails."""
        encoder = self._encoder if text and self.load() else None
        if encoder is None:
            return 0
        try:
            return len(encoder.encode(text))
        except Exception as exc:
            logger.debug("Token count failed, reporting 0: %s", exc)
            return 0

    def estimate_input_tokens(self, system_text: str, messages: Any) -> int:
        """Tokens in the system prompt plus the rendered message history.

        Args:
            system_text: Flattened system prompt.
            messages: Source-protocol message history.

        Returns:
            Non-negative token estimate.
        """
        try:
            parts = [system_text, messages_to_text(messages)]
            return self.count(MESSAGE_SEPARATOR.join(p for p in parts if p))
        except Exception as exc:
            logger.debug("Input token estimate failed, reporting 0: %s", exc)
            return 0

    def estimate_output_tokens(self, raw_text: str) -> int:
        """Tokens in the backend reply text."""
        return self.count(raw_text)
