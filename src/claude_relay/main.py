"""Main FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from fastapi import Depends, FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from claude_relay import __version__
from claude_relay.auth import verify_bearer_token
from claude_relay.config import Settings, get_settings
from claude_relay.core import (
    DeliveryOrchestrator,
    KeyPool,
    StreamReframer,
    translate_request,
    translate_response,
)
from claude_relay.errors import (
    GatewayError,
    InvalidRequestError,
    ProxyError,
    TranslationError,
)
from claude_relay.metrics import MetricsExporter
from claude_relay.models import ClaudeRequest
from claude_relay.utils import configure_logging, get_logger

logger = get_logger(__name__)

NOT_FOUND_TEXT = "Not Found. Use /v1/messages for API calls."
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-api-key, anthropic-version",
}


async def _relay_stream(upstream: httpx.Response) -> AsyncIterator[str]:
    """Re-frame an open upstream stream, closing it however the relay ends."""
    reframer = StreamReframer()
    try:
        async for frame in reframer.reframe(upstream.aiter_bytes()):
            yield frame
    finally:
        reframer.close()
        await upstream.aclose()


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> FastAPI:
    """Build the gateway application.

    Args:
        settings: Settings to use instead of the environment
        transport: HTTP transport for upstream calls (tests use a mock)
        sleep: Pause between upstream attempts

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        app_settings = settings or get_settings()
        configure_logging(app_settings.log_level)

        keys = app_settings.api_keys
        logger.info(
            "startup",
            version=__version__,
            host=app_settings.host,
            port=app_settings.port,
            upstream=app_settings.upstream_api_url,
            keys=len(keys),
            auth_enabled=bool(app_settings.custom_auth_key),
        )
        if not keys:
            logger.warning("startup.no_api_keys")

        pool = KeyPool(keys, recovery_seconds=app_settings.key_recovery_seconds)
        async with httpx.AsyncClient(transport=transport) as client:
            app.state.settings = app_settings
            app.state.key_pool = pool
            app.state.orchestrator = DeliveryOrchestrator(
                pool,
                client,
                app_settings.upstream_api_url,
                max_attempts=app_settings.max_retries,
                backoff=app_settings.retry_backoff_seconds,
                timeout=app_settings.request_timeout,
                sleep=sleep,
            )
            yield

        logger.info("shutdown")

    app = FastAPI(
        title="Claude Relay",
        description="Claude Messages API gateway for OpenAI-compatible upstreams",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-api-key", "anthropic-version"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        logger.error("request.failed", error_type=exc.error_type, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return PlainTextResponse(NOT_FOUND_TEXT, status_code=status.HTTP_404_NOT_FOUND)
        return await http_exception_handler(request, exc)

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        """CORS preflight for clients that skip the Origin header."""
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint with key pool counters."""
        return {
            "status": "OK",
            "keyStats": request.app.state.key_pool.stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        content_type, metrics_body = MetricsExporter.get_prometheus_format()
        return PlainTextResponse(
            content=metrics_body.decode("utf-8"),
            media_type=content_type
        )

    @app.post(
        "/v1/messages",
        response_model=None,
        dependencies=[Depends(verify_bearer_token)],
    )
    async def create_message(request: Request) -> Response:
        """Messages endpoint."""
        orchestrator: DeliveryOrchestrator = request.app.state.orchestrator

        try:
            body = await request.json()
            claude_request = ClaudeRequest.model_validate(body)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid request body: {e}") from e

        logger.info(
            "request.received",
            model=claude_request.model,
            messages=len(claude_request.messages),
            stream=bool(claude_request.stream),
            tools=len(claude_request.tools or []),
        )
        MetricsExporter.record_request(claude_request.model, bool(claude_request.stream))

        chat_request = translate_request(claude_request)
        logger.debug("request.translated", upstream_model=chat_request.model)

        try:
            upstream = await orchestrator.deliver(chat_request.to_payload())
        except httpx.RequestError as e:
            raise ProxyError(
                f"Proxy error: {e}",
                keyStats=orchestrator.pool.stats(),
            ) from e

        if not upstream.is_success:
            # Body was read before the response was handed back
            return Response(
                content=upstream.content,
                status_code=upstream.status_code,
                media_type="application/json",
            )

        if chat_request.stream:
            return StreamingResponse(
                _relay_stream(upstream),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            )

        try:
            await upstream.aread()
        except httpx.HTTPError as e:
            raise ProxyError(
                f"Proxy error: {e}",
                keyStats=orchestrator.pool.stats(),
            ) from e
        finally:
            await upstream.aclose()

        try:
            data = upstream.json()
        except ValueError as e:
            raise TranslationError(f"Upstream returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TranslationError("Upstream response is not a JSON object")

        result = translate_response(data)
        logger.info("request.complete", stop_reason=result.get("stop_reason"))
        return JSONResponse(content=result)

    return app


app = create_app()


def main():
    """CLI entry point."""
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "claude_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
