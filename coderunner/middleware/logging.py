"""Request id binding and access logging."""

import time
import uuid

import structlog
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers and the front-end; logged at debug only
QUIET_PATHS = frozenset({"/health", "/healthz"})


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def current_request_id() -> str:
    """Request id bound for the current request, or a fresh one."""
    return structlog.contextvars.get_contextvars().get("request_id") or new_request_id()


class RequestLoggingMiddleware:
    """Tags each request with an id and logs its outcome.

    The id is bound into structlog's context, so pipeline and handler logs
    for the request carry it, and is returned in the X-Request-ID header.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = new_request_id()
        tokens = structlog.contextvars.bind_contextvars(request_id=request_id)
        path = scope["path"]
        start = time.monotonic()
        status_code = None

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message).append(REQUEST_ID_HEADER, request_id)
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception as e:
            logger.error(
                "Request failed",
                method=scope["method"],
                path=path,
                exception_type=type(e).__name__,
            )
            raise
        else:
            fields = dict(
                method=scope["method"],
                path=path,
                status=status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            if status_code is None or status_code >= 500:
                logger.error("Request failed", **fields)
            elif status_code >= 400:
                logger.warning("Request rejected", **fields)
            elif path in QUIET_PATHS:
                logger.debug("Request completed", **fields)
            else:
                logger.info("Request completed", **fields)
        finally:
            structlog.contextvars.reset_contextvars(**tokens)
