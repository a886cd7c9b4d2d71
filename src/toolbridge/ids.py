"""Random identifier generation for responses and tool calls."""

from __future__ import annotations

import secrets

MESSAGE_ID_LENGTH = 32
TOOL_CALL_ID_LENGTH = 24
TOOL_CALL_PREFIX = "call_"


class IdGenerator:
    """Produces hex identifiers.

    Subclass and override ``hex_id()`` to get deterministic ids in tests.
    """

    def hex_id(self, length: int) -> str:
        """Return *length* random hex characters."""
        return secrets.token_hex(length // 2)

    def message_id(self) -> str:
        """Top-level response identifier."""
        return self.hex_id(MESSAGE_ID_LENGTH)

    def tool_call_id(self) -> str:
        """Identifier for a ``tool_use`` content block."""
        return f"{TOOL_CALL_PREFIX}{self.hex_id(TOOL_CALL_ID_LENGTH)}"
