"""Core routing types.

Defines the data structures shared by configuration, the model router
and the backend client.  Kept apart from ``models.py`` so the router can
be imported without pulling in response types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class MessageFormat(StrEnum):
    """How message history is rendered into the instruction template.

    ``TEXT`` renders ``role:<role>`` sections separated by ``---``;
    ``JSON`` embeds the raw messages array as compact JSON.
    """

    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class RoutingEntry:
    """A backend reachable for one model identifier.

    Attributes:
        model_id: Model name clients send and the backend receives.
        base_url: Backend base URL, without the ``/v1/...`` suffix.
        credential: Bearer token sent to the backend.
    """

    model_id: str
    base_url: str
    credential: str

    @property
    def completions_url(self) -> str:
        """Full URL of the backend's chat completions endpoint."""
        return f"{self.base_url}/v1/chat/completions"

    def to_dict(self, *, mask_credential: bool = True) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary.

        Args:
            mask_credential: Replace all but the last four characters of
                the credential with ``*``.

        Returns:
            Dictionary with model id, base URL and (masked) credential.
        """
        credential = self.credential
        if mask_credential and credential:
            credential = "*" * max(len(credential) - 4, 0) + credential[-4:]
        return {
            "model_id": self.model_id,
            "base_url": self.base_url,
            "credential": credential,
        }
