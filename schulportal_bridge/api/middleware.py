import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ..logger import get_logger

REQUEST_ID_HEADER = "X-Request-Id"

# 健康检查太频繁，不记日志
IGNORED_LOG_PATHS = {"/healthz"}


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    记录每个请求的方法、路径、状态码和耗时，并回写 X-Request-Id。
    请求体里有密码和令牌，一律不记录。
    """

    def __init__(self, app, logger: logging.Logger = None):
        super().__init__(app)
        self._logger = logger or get_logger("request")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        should_log = request.url.path not in IGNORED_LOG_PATHS

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    "%s %s failed [%s] after %.1fms",
                    request.method, request.url.path, request_id, (time.monotonic() - start) * 1000,
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        if should_log:
            self._logger.info(
                "%s %s -> %s [%s] %.1fms",
                request.method, request.url.path, response.status_code, request_id,
                (time.monotonic() - start) * 1000,
            )
        return response
