"""
Logging Middleware - Request/Response logging
"""
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from jirabot.utils.logger import get_logger

logger = get_logger(__name__)

QUIET_PATH_PREFIX = "/api/v1/health"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request

    Health checks are skipped (too noisy).
    """

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path
        if path.startswith(QUIET_PATH_PREFIX):
            return await call_next(request)

        method = request.method
        start_time = time.time()
        logger.info(f"→ {method} {path}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(f"✗ {method} {path} ERROR ({duration_ms}ms): {e}", exc_info=True)
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"← {method} {path} {response.status_code} ({duration_ms}ms)")
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
