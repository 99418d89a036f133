"""API中间件"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


def client_ip(request: Request) -> str:
    """客户端IP，优先取代理头"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件

    请求ID沿用调用方的 X-Request-ID，没有则生成；在请求期间绑定到
    structlog 上下文，同一请求内的所有结构化日志都带上它。
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        logger.info("request_started", method=request.method, path=request.url.path, client_ip=client_ip(request))

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", error=str(e), elapsed=round(time.perf_counter() - started, 6))
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        elapsed = time.perf_counter() - started
        logger.info("request_completed", request_id=request_id, status_code=response.status_code, elapsed=round(elapsed, 6))

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response
