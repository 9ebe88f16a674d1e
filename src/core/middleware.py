import time

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# 업로드는 원본 저장까지 동기로 처리하므로 조회보다 기준을 넉넉하게 둔다
SLOW_THRESHOLD_MS = 500
SLOW_UPLOAD_THRESHOLD_MS = 3000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """HTTP 요청마다 메서드, 경로, 클라이언트 IP, 상태코드, 처리시간(ms)을 남긴다.

    응답에는 X-Process-Time-Ms 헤더를 붙인다.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start) * 1000
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        line = f"{request.method} {path} | {client_ip} | {response.status_code} | {elapsed_ms:.0f}ms"

        threshold = SLOW_UPLOAD_THRESHOLD_MS if path == "/upload" else SLOW_THRESHOLD_MS
        if elapsed_ms > threshold:
            logger.warning(f"{line} (slow)")
        else:
            logger.info(line)

        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.0f}"
        return response
