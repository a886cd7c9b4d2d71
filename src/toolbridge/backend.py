"""OpenAI-style backend client.

Async HTTP client that sends one non-streaming chat completion request to
a routed backend's ``/v1/chat/completions`` endpoint.  Each request uses
the credential of its ``RoutingEntry``; one ``httpx.AsyncClient`` is
shared by all of them.

Typical usage::

    import asyncio
    from toolbridge.backend import BackendClient
    from toolbridge.types import RoutingEntry

    async def main():
        entry = RoutingEntry("gpt-4o", "https://api.openai.com", "sk-...")
        async with BackendClient() as backend:
            reply = await backend.send(entry, "gpt-4o", "Hello")
            print(reply.content)

    asyncio.run(main())
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from toolbridge.models import BackendReply
from toolbridge.types import RoutingEntry

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"


class BackendClient:
    """Async client for OpenAI-compatible chat completions backends.

    Uses ``httpx.AsyncClient`` for connection pooling and async I/O.
    Designed to be used as an async context manager.  No retries are
    made; a failed call is reported to the caller as-is.

    Args:
        timeout: Request timeout in seconds.  ``None`` waits forever.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> BackendClient:
        """Open the underlying HTTP connection pool."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        entry: RoutingEntry,
        model: str,
        instruction: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> BackendReply:
        """Send the compiled instruction as a single user message.

        Args:
            entry: Routing entry giving the endpoint and credential.
            model: Model identifier sent to the backend.
            instruction: Compiled prompt text.
            max_tokens: Completion token limit; omitted when ``None``.
            temperature: Sampling temperature; omitted when ``None``.

        Returns:
            ``BackendReply`` with the assistant text, or with ``error``
            set to the response body on a non-success status.

        Raises:
            RuntimeError: If the client is used outside a context manager.
            httpx.HTTPError: On transport failures.
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": instruction}],
            "stream": False,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        start = time.monotonic()
        resp = await self._client.post(
            entry.completions_url,
            json=payload,
            headers={"Authorization": f"Bearer {entry.credential}"},
        )
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not resp.is_success:
            detail = _safe_text(resp)
            logger.warning(
                "Backend %s returned HTTP %d in %dms", entry.model_id, resp.status_code, elapsed_ms
            )
            return BackendReply(
                status_code=resp.status_code,
                body=detail,
                error=detail,
                latency_ms=elapsed_ms,
            )

        data = resp.json()
        return BackendReply(
            status_code=resp.status_code,
            content=_extract_content(data),
            body=resp.text,
            latency_ms=elapsed_ms,
        )


def _extract_content(data: Any) -> str:
    """Extract the assistant message text from a completions response.

    Args:
        data: Parsed JSON response body.

    Returns:
        Text of the first choice, or ``""`` when absent.
    """
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "" if content is None else str(content)


def _safe_text(resp: httpx.Response) -> str:
    """Body text of an error response, or a placeholder if unreadable.

    Args:
        resp: The httpx response object.

    Returns:
        Decoded body text.
    """
    try:
        return resp.text
    except Exception:
        return UNKNOWN_ERROR
