"""전역 예외 핸들러.

업로드/조회 API 의 모든 오류 응답은 {"error_code": "...", "message": "..."} 형식이다.
- AppException 계열: 예외 클래스의 status_code / error_code 를 그대로 쓴다
- 요청 검증 실패(multipart 필드 누락, 잘못된 status 값 등): 422 VALIDATION_ERROR
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import AppException

VALIDATION_ERROR_CODE = "VALIDATION_ERROR"


def _error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error_code": error_code, "message": message})


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    line = f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}"
    if exc.status_code >= 500:
        logger.error(line)
    else:
        logger.debug(line)
    return _error_response(exc.status_code, exc.error_code, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [_describe(err) for err in exc.errors()]
    message = "; ".join(details) or "요청 형식이 올바르지 않습니다"
    logger.debug(f"{request.method} {request.url.path} -> {VALIDATION_ERROR_CODE}: {message}")
    return _error_response(422, VALIDATION_ERROR_CODE, message)


def _describe(err: dict) -> str:
    # loc 의 첫 요소는 body / query / path 구분
    loc = tuple(err.get("loc") or ("request",))
    field = ".".join(str(part) for part in loc[1:]) or str(loc[0])
    return f"{field}: {err.get('msg', 'invalid')}"
