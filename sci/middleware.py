import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client = request.client.host if request.client else None

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "HTTP request exception",
                method=request.method,
                path=request.url.path,
                duration=round((time.time() - start_time) * 1000, 2),
                client=client,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise

        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round((time.time() - start_time) * 1000, 2),
            client=client,
            event_type=request.headers.get("x-github-event"),
            delivery=request.headers.get("x-github-delivery"),
        )
        return response
