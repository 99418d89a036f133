"""API异常处理

所有错误响应的格式统一为 {"error", "message", "request_id", ...}。
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()


def error_response(request: Request, http_status: int, error: str, message, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=http_status,
        content={
            "error": error,
            "message": message,
            "request_id": getattr(request.state, "request_id", "unknown"),
            **extra,
        },
    )


def setup_exception_handlers(app: FastAPI):
    """设置异常处理器"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning("http_exception", status_code=exc.status_code, detail=exc.detail, path=request.url.path)
        return error_response(request, exc.status_code, "http_error", exc.detail, status_code=exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", error=str(exc), path=request.url.path)
        return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error", "数据库错误")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("unexpected_error", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
        return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "服务器内部错误")
