"""HTTP surface: a FastAPI app exposing ``POST /v1/messages``.

Every failure is answered with ``{"error": {"code": <status>,
"message": <text>}}`` and the matching HTTP status.

Typical usage::

    import uvicorn
    from toolbridge.config import load_config
    from toolbridge.server import create_app

    config = load_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from toolbridge import __version__
from toolbridge.backend import BackendClient
from toolbridge.config import Config
from toolbridge.errors import GatewayError
from toolbridge.gateway import MESSAGES_PATH, Gateway
from toolbridge.ids import IdGenerator

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    """Error envelope with *status_code* as both HTTP status and ``code``."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": status_code, "message": message}},
    )


def _authorization(request: Request) -> str | None:
    return request.headers.get("authorization") or request.headers.get("x-api-key")


def create_app(
    config: Config,
    *,
    backend: BackendClient | None = None,
    ids: IdGenerator | None = None,
) -> FastAPI:
    """Build the gateway application.

    Routing and templates are resolved here, so configuration problems
    surface before the server starts listening.

    Args:
        config: Loaded configuration.
        backend: Backend client; defaults to one using the configured
            timeout.  Opened and closed with the app lifespan, which
            also loads the tokenizer off the event loop.
        ids: Identifier generator, for deterministic ids in tests.

    Returns:
        The FastAPI application.

    Raises:
        ConfigurationError: On invalid routing lists or missing templates.
    """
    backend = backend or BackendClient(timeout=config.backend_timeout)
    gateway = Gateway.from_config(config, backend, ids=ids)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with backend:
            await asyncio.to_thread(gateway.accountant.load)
            logger.info(
                "Gateway ready: %d model(s), default '%s'",
                len(gateway.router.entries),
                gateway.router.default_model,
            )
            yield

    app = FastAPI(title="toolbridge", version=__version__, lifespan=lifespan)
    app.state.gateway = gateway

    @app.post(MESSAGES_PATH)
    async def messages(request: Request) -> JSONResponse:
        """Source-protocol messages endpoint."""
        try:
            body = await request.json()
        except ValueError as exc:
            return error_response(400, f"Invalid JSON: {exc}")
        if not isinstance(body, dict):
            return error_response(400, "Request body must be a JSON object")

        try:
            answer = await gateway.handle(
                body,
                authorization=_authorization(request),
                url=str(request.url.path),
                method=request.method,
            )
        except GatewayError as exc:
            return error_response(exc.status_code, exc.message)
        except Exception as exc:
            logger.exception("Unexpected error handling %s", request.url.path)
            return error_response(500, str(exc))
        return JSONResponse(answer.to_dict())

    return app
