"""Translation pipeline: the core request engine.

Turns one source-protocol request into one answer: route the model,
compile the emulated tool-calling instruction, consult the response
cache, call the backend, extract (and if needed repair) the answer,
estimate usage, cache and return it.

Typical usage::

    from toolbridge.backend import BackendClient
    from toolbridge.config import load_config
    from toolbridge.gateway import Gateway

    config = load_config()
    async with BackendClient() as backend:
        gateway = Gateway.from_config(config, backend)
        answer = await gateway.handle(body, authorization="Bearer x")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from toolbridge.backend import BackendClient
from toolbridge.cache import ResponseCache
from toolbridge.config import Config
from toolbridge.debuglog import DebugRecorder, ExchangeLog
from toolbridge.errors import AuthenticationError, ExtractionFailure, UpstreamError
from toolbridge.extract import AnswerExtractor, JsonRepairer
from toolbridge.ids import IdGenerator
from toolbridge.models import AnswerResponse, Usage
from toolbridge.prompts import PromptTemplates, compile_instruction, extract_system_text
from toolbridge.router import ModelRouter
from toolbridge.tokens import TokenAccountant
from toolbridge.types import MessageFormat

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/v1/messages"


class Gateway:
    """Runs the translation pipeline for each inbound request.

    Holds no per-request state; the response cache is the only mutable
    object shared between concurrent requests.

    Args:
        router: Model router built at startup.
        templates: Loaded prompt templates.
        backend: Open backend client.
        cache: Response cache.  Defaults to an unbounded cache.
        accountant: Token estimator.
        recorder: Debug recorder.  Defaults to a disabled one.
        ids: Identifier generator shared by extraction and responses.
        normalize_artifacts: Passed to the answer extractor.
        message_format: Rendering of message history in the instruction.
    """

    def __init__(
        self,
        router: ModelRouter,
        templates: PromptTemplates,
        backend: BackendClient,
        *,
        cache: ResponseCache | None = None,
        accountant: TokenAccountant | None = None,
        recorder: DebugRecorder | None = None,
        ids: IdGenerator | None = None,
        normalize_artifacts: bool = True,
        message_format: MessageFormat = MessageFormat.TEXT,
    ) -> None:
        self.router = router
        self.templates = templates
        self.backend = backend
        self.ids = ids or IdGenerator()
        self.cache = cache or ResponseCache(ids=self.ids)
        self.accountant = accountant or TokenAccountant()
        self.recorder = recorder or DebugRecorder(Path("errors"), enabled=False)
        self.message_format = message_format
        self.repairer = JsonRepairer(backend, router, templates.fix_json)
        self.extractor = AnswerExtractor(
            self.repairer, self.ids, normalize_artifacts=normalize_artifacts
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        backend: BackendClient,
        *,
        ids: IdGenerator | None = None,
    ) -> Gateway:
        """Build a gateway from configuration.

        Raises:
            ConfigurationError: On invalid routing lists or missing
                templates.
        """
        ids = ids or IdGenerator()
        return cls(
            config.build_router(),
            config.load_templates(),
            backend,
            cache=config.build_cache(ids),
            accountant=TokenAccountant(config.token_encoding),
            recorder=DebugRecorder(config.debug_dir, enabled=config.debug),
            ids=ids,
            normalize_artifacts=config.normalize_artifacts,
            message_format=config.message_format,
        )

    async def handle(
        self,
        body: dict[str, Any],
        *,
        authorization: str | None,
        url: str = MESSAGES_PATH,
        method: str = "POST",
    ) -> AnswerResponse:
        """Translate one request.

        The request's ``model`` is rewritten to the resolved model id, so
        the backend call, the cache key and the answer all use it.

        Args:
            body: Source-protocol request body.
            authorization: Inbound credential header, forwarded unexamined.
            url: Request path, for debug records.
            method: Request method, for debug records.

        Returns:
            The assembled answer, or a replay of a cached one.

        Raises:
            AuthenticationError: If *authorization* is empty.
            UpstreamError: If the backend returns a non-success status.
            httpx.HTTPError: If the backend cannot be reached.
            ExtractionFailure: If no answer can be recovered.
        """
        if not authorization:
            raise AuthenticationError("missing authorization header")

        model = self.router.resolve_model(body.get("model"))
        body["model"] = model
        entry = self.router.resolve(model)

        log = ExchangeLog() if self.recorder.enabled else None
        if log is not None:
            log.request(url, method, body)

        system_text = extract_system_text(body.get("system"))
        instruction = compile_instruction(
            self.templates.function_call,
            system_text,
            body.get("tools"),
            body.get("messages"),
            message_format=self.message_format,
        )
        key = ResponseCache.fingerprint([{"role": "user", "content": instruction}], model)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for %s", key)
            return cached

        try:
            reply = await self.backend.send(
                entry,
                model,
                instruction,
                max_tokens=body.get("max_tokens"),
                temperature=body.get("temperature"),
            )
        except httpx.HTTPError as exc:
            logger.warning("Backend %s unreachable: %s", model, exc)
            if log is not None:
                log.transport_error(exc)
                self.recorder.save(log)
            raise

        if log is not None:
            log.response(reply.status_code, reply.body)
        if not reply.ok:
            if log is not None:
                self.recorder.save(log)
            raise UpstreamError(reply.status_code, reply.error or "")

        try:
            extraction = await self.extractor.extract(reply.content)
        except ExtractionFailure as exc:
            logger.warning("Answer extraction failed for %s: %s", model, exc.reason or "no answer span")
            if log is not None:
                if exc.candidate is not None:
                    log.json_failed(exc.candidate, exc.reason or "")
                else:
                    log.parse_failed(exc.message)
                self.recorder.save(log)
            raise

        usage = Usage(
            input_tokens=self.accountant.estimate_input_tokens(system_text, body.get("messages")),
            output_tokens=self.accountant.estimate_output_tokens(extraction.cleaned_text),
        )
        response = AnswerResponse(
            id=self.ids.message_id(),
            content=extraction.content,
            model=model,
            stop_reason=extraction.stop_reason,
            usage=usage,
        )
        self.cache.put(key, response)
        logger.info(
            "Answered via %s: %d block(s), stop_reason=%s%s",
            model,
            len(response.content),
            response.stop_reason,
            " (repaired)" if extraction.repaired else "",
        )
        return response
