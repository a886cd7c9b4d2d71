"""Answer extraction and JSON repair.

The backend answers in free text and is asked to wrap a JSON payload in
``<AnswerInJson>`` tags.  ``AnswerExtractor`` recovers that payload as
source-protocol content blocks:

1. drop ``<think>`` spans (reasoning leakage);
2. unescape ``\\<AnswerInJson\\>`` style tags;
3. capture the first answer span (none found is a hard failure);
4. trim and normalize the candidate and cut it to its outer braces;
5. parse it, handing parse failures once to ``JsonRepairer``;
6. assign fresh ``call_...`` ids to ``tool_use`` blocks.

``JsonRepairer`` is the only recovery step.  It asks the default model
to fix the candidate and expects the result inside ``<Json>`` tags.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from toolbridge.backend import BackendClient
from toolbridge.errors import ExtractionFailure, RepairFailure
from toolbridge.ids import IdGenerator
from toolbridge.models import Extraction, StopReason
from toolbridge.prompts import format_fix_json
from toolbridge.router import ModelRouter
from toolbridge.scanner import TagScanner

logger = logging.getLogger(__name__)

THINK = TagScanner("think")
ANSWER = TagScanner("AnswerInJson")
FIXED_JSON = TagScanner("Json")


def normalize_candidate(text: str, *, normalize_artifacts: bool = True) -> str:
    """Prepare captured answer text for JSON parsing.

    Args:
        text: Raw content of the answer span.
        normalize_artifacts: Replace the first ``&quot;`` with ``"`` and
            the first ``\\_`` with ``_``, two artifacts some backends emit.

    Returns:
        The trimmed candidate, cut to start at the first ``{`` and end at
        the last ``}`` when those are not already at position 0.
    """
    candidate = text.strip()
    if normalize_artifacts:
        candidate = candidate.replace("&quot;", '"', 1).replace("\\_", "_", 1)
    head = candidate.find("{")
    if head > 0:
        candidate = candidate[head:]
    tail = candidate.rfind("}")
    if tail > 0:
        candidate = candidate[: tail + 1]
    return candidate


def stop_reason_for(content: list[dict[str, Any]]) -> StopReason:
    """``"tool_use"`` if any block is a tool call, else ``"end_turn"``."""
    if any(isinstance(block, dict) and block.get("type") == "tool_use" for block in content):
        return "tool_use"
    return "end_turn"


class JsonRepairer:
    """One-shot JSON repair through the router's default model.

    Args:
        backend: Open backend client.
        router: Model router; its default entry serves repair calls.
        template: The fix JSON template text.
    """

    def __init__(self, backend: BackendClient, router: ModelRouter, template: str) -> None:
        self._backend = backend
        self._router = router
        self._template = template

    async def repair(self, candidate: str) -> dict[str, Any] | None:
        """Ask the default model to fix *candidate*.

        Args:
            candidate: Answer text that failed to parse as JSON.

        Returns:
            The repaired JSON object, or ``None`` when the call fails,
            the reply has no ``<Json>`` span, or the span does not hold a
            JSON object.
        """
        entry = self._router.default_entry
        prompt = format_fix_json(self._template, candidate)
        try:
            reply = await self._backend.send(entry, entry.model_id, prompt)
        except httpx.HTTPError as exc:
            logger.warning("JSON repair call to %s failed: %s", entry.model_id, exc)
            return None
        if not reply.ok:
            logger.warning("JSON repair call to %s returned HTTP %d", entry.model_id, reply.status_code)
            return None

        text = FIXED_JSON.unescape(reply.content)
        span = FIXED_JSON.first_span(text, nested=True)
        if span is None:
            logger.warning("JSON repair reply has no <Json> span")
            return None
        try:
            fixed = json.loads(FIXED_JSON.strip_tags(span.content).strip())
        except ValueError as exc:
            logger.warning("JSON repair produced invalid JSON: %s", exc)
            return None
        if not isinstance(fixed, dict):
            logger.warning("JSON repair produced %s, not an object", type(fixed).__name__)
            return None
        logger.info("Fixed answer JSON via %s", entry.model_id)
        return fixed


class AnswerExtractor:
    """Turns backend reply text into source-protocol content blocks.

    Args:
        repairer: Fallback used once when the answer JSON does not parse.
        ids: Generator for tool-call identifiers.
        normalize_artifacts: See ``normalize_candidate``.
    """

    def __init__(
        self,
        repairer: JsonRepairer,
        ids: IdGenerator | None = None,
        *,
        normalize_artifacts: bool = True,
    ) -> None:
        self._repairer = repairer
        self._ids = ids or IdGenerator()
        self._normalize_artifacts = normalize_artifacts

    async def extract(self, raw_text: str) -> Extraction:
        """Extract the structured answer from *raw_text*.

        Args:
            raw_text: Assistant text returned by the backend.

        Returns:
            ``Extraction`` with content blocks and stop reason.

        Raises:
            ExtractionFailure: If no answer span is present or the
                payload is not a JSON object.
            RepairFailure: If the payload did not parse and the repair
                fallback could not fix it.
        """
        cleaned = ANSWER.unescape(THINK.strip_spans(raw_text))
        span = ANSWER.first_span(cleaned)
        if span is None:
            raise ExtractionFailure(f"parse failed : {cleaned}")

        candidate = normalize_candidate(span.content, normalize_artifacts=self._normalize_artifacts)
        repaired = False
        try:
            payload = json.loads(candidate)
        except ValueError as exc:
            logger.warning("Answer JSON did not parse (%s), trying repair", exc)
            payload = await self._repairer.repair(candidate)
            if payload is None:
                raise RepairFailure(
                    f"parse failed : {cleaned}", candidate=candidate, reason=str(exc)
                ) from exc
            repaired = True

        if not isinstance(payload, dict):
            raise ExtractionFailure(
                f"parse failed : {cleaned}",
                candidate=candidate,
                reason=f"answer is {type(payload).__name__}, not an object",
            )

        content = self._content_blocks(payload.get("content"))
        return Extraction(
            content=content,
            stop_reason=stop_reason_for(content),
            cleaned_text=cleaned,
            repaired=repaired,
        )

    def _content_blocks(self, content: Any) -> list[dict[str, Any]]:
        """Normalize the payload's ``content`` and assign tool-call ids."""
        if isinstance(content, str):
            return [{"type": "text", "text": content}]
        if not isinstance(content, list):
            return []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                block["id"] = self._ids.tool_call_id()
        return content
