from typing import Callable

import prometheus_client
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

# HTTP 指标
REQUEST_COUNT = Counter(
    "cloudstore_request_count", "请求总数", ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "cloudstore_request_latency_seconds", "请求处理时间（秒）", ["method", "endpoint"]
)
ACTIVE_REQUESTS = Gauge("cloudstore_active_requests", "处理中的请求数", ["method", "endpoint"])
ERROR_COUNT = Counter(
    "cloudstore_error_count", "未处理异常总数", ["method", "endpoint", "error_type"]
)

# 文档上传与发件箱指标
REPORT_UPLOADS = Counter("cloudstore_report_uploads_total", "文档上传次数", ["result"])
OUTBOX_DISPATCHED = Counter("cloudstore_outbox_events_dispatched_total", "已发布的发件箱事件总数")
OUTBOX_PUBLISH_FAILURES = Counter("cloudstore_outbox_publish_failures_total", "发件箱事件发布失败次数")


def _route_template(request: Request) -> str:
    """
    取匹配的路由模板作为 endpoint 标签，未匹配时用原始路径
    """
    for route in request.app.routes:
        # 挂载的子路由（如 include_router 生成的对象）没有 path 属性
        path = getattr(route, "path", None)
        if path is None:
            continue
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return path
    return request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    收集HTTP请求指标
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = _route_template(request)

        ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).inc()
        try:
            with REQUEST_LATENCY.labels(method=method, endpoint=endpoint).time():
                response = await call_next(request)
        except Exception as e:
            ERROR_COUNT.labels(method=method, endpoint=endpoint, error_type=type(e).__name__).inc()
            raise
        finally:
            ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).dec()

        REQUEST_COUNT.labels(
            method=method, endpoint=endpoint, status_code=response.status_code
        ).inc()
        return response


def setup_metrics(app: FastAPI) -> None:
    """
    注册监控中间件和 /metrics 端点
    """
    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(
            prometheus_client.generate_latest(),
            media_type=prometheus_client.CONTENT_TYPE_LATEST,
        )
