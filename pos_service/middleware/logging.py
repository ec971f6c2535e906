"""Structured logging setup and per-request access logging."""

import logging
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from pos_service.core.settings import Settings

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(settings: Settings) -> None:
    """
    Route structlog through stdlib logging.

    Production and staging render JSON lines; development and tests use the
    console renderer. Context bound with ``structlog.contextvars`` (the
    request id) is merged into every event, including ones emitted by the
    services while a request is being handled.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level))
    logging.getLogger().setLevel(getattr(logging, settings.log_level))

    if settings.environment in ("production", "staging"):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log for every request, tagged with shop and user.

    Sits outside authentication and tenant resolution, so tenant and user
    context is read after the inner middleware has populated request.state.
    An incoming X-Request-ID is reused so a request can be followed across
    a proxy.
    """

    REDACTED_HEADERS = {"authorization", "cookie"}

    def __init__(self, app, debug: bool = False, logger_name: str = "pos.http"):
        super().__init__(app)
        self.debug = debug
        self.logger = structlog.get_logger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()

        event = {"request_id": request_id, "method": request.method, "path": request.url.path}
        if self.debug:
            event["headers"] = {
                key: "[REDACTED]" if key.lower() in self.REDACTED_HEADERS else value
                for key, value in request.headers.items()
            }
        self.logger.debug("request.started", **event)

        try:
            response = await call_next(request)
        except Exception as exc:
            self.logger.error(
                "request.crashed",
                error_type=type(exc).__name__,
                duration_ms=self._elapsed_ms(started),
                **event,
                **request_context(request),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        elapsed = time.perf_counter() - started
        event.update(
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
            **request_context(request),
        )
        if response.status_code >= 500:
            self.logger.error("request.finished", **event)
        elif response.status_code >= 400:
            self.logger.warning("request.finished", **event)
        else:
            self.logger.info("request.finished", **event)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)


def request_context(request: Request) -> dict:
    """Shop and user identifiers resolved for this request, if any."""
    tenant_id: Optional[uuid.UUID] = getattr(request.state, "tenant_id", None)
    user_id: Optional[str] = getattr(request.state, "user_id", None)
    return {
        "tenant_id": str(tenant_id) if tenant_id else None,
        "user_id": str(user_id) if user_id else None,
        "role": getattr(request.state, "user_role", None),
    }


def get_request_logger(request: Request) -> structlog.stdlib.BoundLogger:
    """Logger bound with the request id and the resolved shop and user."""
    return structlog.get_logger("pos.request").bind(
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        **request_context(request),
    )
