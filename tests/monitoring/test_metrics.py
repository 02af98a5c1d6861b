"""
测试HTTP指标中间件
"""

from types import SimpleNamespace

from starlette.requests import Request
from starlette.routing import Match, Route

from cloudstore.monitoring.metrics import _route_template


class _NestedRouter:
    """模拟 include_router 生成的子路由：能匹配但没有 path"""

    def matches(self, scope):
        return Match.FULL, {}


def _request(path, routes):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [],
        "app": SimpleNamespace(routes=routes),
    }
    return Request(scope)


class TestRouteTemplate:
    """测试 endpoint 标签的取值"""

    def test_nested_router_without_path_is_skipped(self):
        route = Route("/api/download/{file_id}", endpoint=lambda request: None)
        request = _request("/api/download/42", [_NestedRouter(), route])
        assert _route_template(request) == "/api/download/{file_id}"

    def test_falls_back_to_request_path(self):
        request = _request("/api/directory", [_NestedRouter()])
        assert _route_template(request) == "/api/directory"


class TestMetricsMiddleware:
    """测试中间件不影响嵌套路由的请求"""

    def test_nested_route_request_succeeds(self, client):
        response = client.post("/api/directory", params={"path": "test"})
        assert response.status_code == 201

        metrics = client.get("/metrics")
        assert metrics.status_code == 200
        assert "cloudstore_request_count" in metrics.text
