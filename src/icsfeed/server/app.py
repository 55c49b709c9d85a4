"""Multi-tenant feed server.

Routes:
    GET /auth?state=&code=&error=   authorization callback
    GET /{feed_id}.{fmt}            rendered feed for one tenant
"""

import io
import logging
import re
from functools import partial
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse, Response

from icsfeed import __version__
from icsfeed.auth.orchestrator import AuthorizationOrchestrator
from icsfeed.auth.refresh import TokenRefreshGate
from icsfeed.config.constants import (
    FEED_ID_PATTERN,
    ICS_MEDIA_TYPE,
    MSG_AUTHORIZED,
    MSG_FORMAT_NOT_ALLOWED,
    MSG_INTERNAL_ERROR,
    MSG_NOT_FOUND,
)
from icsfeed.config.registry import TenantRegistry
from icsfeed.config.settings import ServerSettings
from icsfeed.core.ics_builder import compile_feed
from icsfeed.core.timezone_utils import utc_now
from icsfeed.exceptions.errors import (
    AuthorizationStateError,
    FeedError,
    TokenRefreshError,
    UnsupportedFormatError,
)
from icsfeed.storage.vault import CredentialVault
from icsfeed.utils.masking import mask_account

logger = logging.getLogger(__name__)

_FEED_ID = re.compile(FEED_ID_PATTERN)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthorizationStateError)
    async def _authorization_state_handler(request: Request, exc: AuthorizationStateError):
        logger.info("Authorization rejected: %s", exc)
        return PlainTextResponse(str(exc), status_code=status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(UnsupportedFormatError)
    async def _unsupported_format_handler(request: Request, exc: UnsupportedFormatError):
        logger.debug("Unsupported format for %s: %s", request.url.path, exc)
        return PlainTextResponse(MSG_FORMAT_NOT_ALLOWED, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(TokenRefreshError)
    async def _token_refresh_handler(request: Request, exc: TokenRefreshError):
        logger.error(
            "Request %s failed: %s; run `icsfeed forget` for the feed's account "
            "to ask for consent again",
            request.url.path,
            exc,
        )
        return PlainTextResponse(
            MSG_INTERNAL_ERROR, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    @app.exception_handler(FeedError)
    async def _feed_error_handler(request: Request, exc: FeedError):
        logger.error("Request %s failed: %s", request.url.path, exc, exc_info=exc)
        return PlainTextResponse(
            MSG_INTERNAL_ERROR, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


def create_app(
    registry: TenantRegistry,
    vault: CredentialVault,
    broker,
    version: str = __version__,
    clock: Callable = utc_now,
    orchestrator: Optional[AuthorizationOrchestrator] = None,
    gate: Optional[TokenRefreshGate] = None,
) -> FastAPI:
    """Build the feed application around its collaborators."""
    orchestrator = orchestrator or AuthorizationOrchestrator(broker, vault, clock=clock)
    gate = gate or TokenRefreshGate(broker, clock=clock)

    app = FastAPI(title="icsfeed", version=version, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.registry = registry
    app.state.vault = vault
    app.state.orchestrator = orchestrator
    app.state.gate = gate
    register_exception_handlers(app)

    # Handlers are sync so vault and provider I/O runs in the threadpool.
    @app.get("/auth")
    def authorization_callback(
        state: Optional[str] = None,
        code: Optional[str] = None,
        error: Optional[str] = None,
    ):
        target = orchestrator.resolve(state, code, error)
        return _redirect(target, MSG_AUTHORIZED)

    @app.get("/{feed_id}.{fmt}")
    def feed(feed_id: str, fmt: str, request: Request):
        policy = registry.get(feed_id) if _FEED_ID.match(feed_id) else None
        if policy is None:
            return PlainTextResponse(MSG_NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)
        if not policy.allows_format(fmt):
            return PlainTextResponse(MSG_FORMAT_NOT_ALLOWED, status_code=status.HTTP_400_BAD_REQUEST)

        record = vault.load(policy.account)
        if record is None:
            target = request.url.path
            if request.url.query:
                target = f"{target}?{request.url.query}"
            logger.debug("No token for %s, redirecting to authorization", mask_account(policy.account))
            return _redirect(orchestrator.begin(policy.account, target))

        persist = partial(vault.store, policy.account)
        source, _ = gate.ensure_fresh(policy.account, record, on_refresh=persist)

        buf = io.StringIO()
        count = compile_feed(policy, source, policy.window(clock()), buf, fmt=fmt, version=version)
        gate.settle(source, on_refresh=persist)

        logger.info("Served feed %s (%d events)", feed_id, count)
        return Response(content=buf.getvalue(), media_type=ICS_MEDIA_TYPE)

    return app


def _redirect(location: str, body: str = "") -> PlainTextResponse:
    return PlainTextResponse(
        body,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Location": location},
    )


def serve(app: FastAPI, settings: ServerSettings) -> None:
    """Run ``app`` until interrupted."""
    host, port = settings.host_port
    logger.info("Listening on %s:%d (public uri %s)", host, port, settings.public_uri)
    uvicorn.run(
        app,
        host=host,
        port=port,
        timeout_keep_alive=settings.idle_timeout,
        limit_concurrency=settings.concurrency_limit,
        timeout_graceful_shutdown=settings.graceful_shutdown,
        log_config=None,
    )
