"""
API异常处理器
统一错误响应格式：{"error": 错误码, "message": 提示信息, "retryAfterSeconds": 重试秒数}
内部异常只记录日志，不向调用方暴露堆栈或驱动信息
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.database import is_storage_unavailable
from app.core.exceptions import BusinessException

logger = logging.getLogger(__name__)

__all__ = [
    "BusinessException",
    "validation_exception_handler",
    "http_exception_handler",
    "database_exception_handler",
    "business_exception_handler",
    "general_exception_handler",
]


def error_response(status_code: int, code: str, message: str, retry_after_seconds=None) -> JSONResponse:
    headers = {}
    if retry_after_seconds is not None:
        headers["Retry-After"] = str(int(retry_after_seconds))
    return JSONResponse(
        status_code=status_code,
        content={
            "error": code,
            "message": message,
            "retryAfterSeconds": retry_after_seconds,
        },
        headers=headers or None
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败"""
    logger.info(f"请求参数校验失败 {request.url.path}: {exc.errors()}")
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation_error",
        "Request validation failed"
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """框架层HTTP异常"""
    code = "not_found" if exc.status_code == 404 else "http_error"
    return error_response(exc.status_code, code, str(exc.detail))


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常：连接/超时类为暂时不可用，其余（SQL错误、约束冲突）按内部错误处理"""
    logger.error(f"数据库异常 {request.method} {request.url.path}: {exc}", exc_info=exc)
    if not is_storage_unavailable(exc):
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "Failed to process the request"
        )
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "service_unavailable",
        "The coupon service is temporarily unavailable. Please retry shortly.",
        settings.unavailable_retry_seconds
    )


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常"""
    return error_response(exc.status_code, exc.code, exc.message, exc.retry_after_seconds)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """未预期异常"""
    logger.error(f"未处理异常 {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "Failed to process the request"
    )
