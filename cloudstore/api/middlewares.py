import time
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    请求日志中间件
    记录请求方法、路径（含查询参数）、响应状态和处理时间
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.error(
                f"请求异常 | {request.method} {target} | "
                f"{type(e).__name__} | {process_time:.4f}s"
            )
            # 重新抛出，交给异常处理器
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        # 流式下载只记录响应头发出的时间
        logger.info(
            f"请求完成 | {request.method} {target} | "
            f"{response.status_code} | {process_time:.4f}s"
        )
        return response
