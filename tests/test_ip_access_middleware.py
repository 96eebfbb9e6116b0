#!/usr/bin/env python3
"""
IP 访问控制中间件测试
Test IP access middleware and the FastAPI application
"""
import sys
import os
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.config import config
from services.api_config_service import ApiConfig, InMemoryApiConfigService
from services.ip_access_service import AccessResult, IpAccessService
from middleware.ip_access import IpAccessMiddleware, prefix_route_config_provider


ROUTE_CONFIGS = {
    "/proxy/order/": {
        "whiteIp": "10.0.0.0/8",
        "blackIp": "192.168.1.*",
        "errorRespContentType": "text/plain; charset=UTF-8",
        "errorRespContent": "IP forbidden",
        "fixedConfig": json.dumps({"configs": [
            {"gwGroup": "internal", "whiteIp": "172.16.0.0/12", "blackIp": "8.8.8.8"},
        ]}),
    },
    "/proxy/order/admin/": {
        "whiteIp": "10.0.0.1",
        "fixedConfig": json.dumps({"configs": [{"gwGroup": "internal", "whiteIp": "172.16.0.1"}]}),
    },
    "/proxy/broken/": {
        "fixedConfig": "{not json",
    },
}


@pytest.fixture
def client():
    from app import create_app

    app = create_app(
        InMemoryApiConfigService([ApiConfig("order", "/", gateway_groups=["internal"])]),
        route_configs=ROUTE_CONFIGS
    )

    @app.get("/proxy/{service}/{path:path}")
    async def upstream(service: str, path: str):
        return {"service": service, "path": path}

    return TestClient(app)


class TestIpAccessApp:
    """应用集成测试"""

    def test_health_not_protected(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["plugin"] == "fizz_plugin_ip"

    def test_route_allow(self, client):
        response = client.get("/proxy/order/items", headers={"X-Forwarded-For": "10.1.2.3"})
        assert response.status_code == 200
        assert response.json() == {"service": "order", "path": "items"}

    def test_route_deny_uses_configured_response(self, client):
        response = client.get("/proxy/order/items", headers={"X-Forwarded-For": "192.168.1.20"})
        assert response.status_code == 403
        assert response.headers["content-type"] == "text/plain; charset=UTF-8"
        assert response.text == "IP forbidden"

    def test_group_allow(self, client):
        response = client.get("/proxy/order/items", headers={"X-Real-IP": "172.20.0.1"})
        assert response.status_code == 200

    def test_group_deny(self, client):
        response = client.get("/proxy/order/items", headers={"X-Real-IP": "8.8.8.8"})
        assert response.status_code == 403

    def test_default_deny_when_both_allow_lists_set(self, client):
        response = client.get("/proxy/order/items", headers={"X-Real-IP": "203.0.113.1"})
        assert response.status_code == 403

    def test_longest_prefix_wins(self, client):
        response = client.get("/proxy/order/admin/users", headers={"X-Forwarded-For": "10.0.0.2"})
        assert response.status_code == 403
        assert response.json() == json.loads(config.DEFAULT_ERROR_RESP_CONTENT)

    def test_unknown_client_denied(self, client):
        """TestClient 的直连地址不是有效 IP，且没有转发头"""
        response = client.get("/proxy/order/items")
        assert response.status_code == 403

    def test_unprotected_route_passes(self, client):
        response = client.get("/proxy/user/profile")
        assert response.status_code == 200

    def test_malformed_fixed_config_fails_closed(self, client):
        response = client.get("/proxy/broken/anything", headers={"X-Forwarded-For": "10.0.0.1"})
        assert response.status_code == 403

    def test_check_disabled(self, client):
        with patch.object(config, "DISABLE_IP_ACCESS_CHECK", True):
            response = client.get("/proxy/order/items", headers={"X-Forwarded-For": "192.168.1.20"})
        assert response.status_code == 200


class TestIpAccessMiddleware:
    """ASGI 中间件单元测试"""

    @pytest.mark.asyncio
    async def test_non_http_passes_through(self):
        app = AsyncMock()
        provider = MagicMock()
        middleware = IpAccessMiddleware(app, access_service=MagicMock(), route_config_provider=provider)

        await middleware({"type": "lifespan"}, AsyncMock(), AsyncMock())

        app.assert_called_once()
        provider.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_error_uses_route_error_response(self):
        app = AsyncMock()
        api_config_service = InMemoryApiConfigService()
        api_config_service.get_api_config = AsyncMock(side_effect=ConnectionError("redis down"))
        middleware = IpAccessMiddleware(
            app,
            access_service=IpAccessService(api_config_service),
            route_config_provider=lambda path: {
                "whiteIp": "10.0.0.0/8",
                "errorRespContentType": "text/plain",
                "errorRespContent": "blocked",
                "fixedConfig": json.dumps({"configs": [{"gwGroup": "internal"}]}),
            }
        )

        sent = []

        async def send(message):
            sent.append(message)

        scope = {
            "type": "http",
            "method": "GET",
            "path": "/proxy/order/items",
            "query_string": b"",
            "headers": [],
            "client": ("8.8.8.8", 1),
            "server": ("testserver", 80),
            "scheme": "http",
        }
        await middleware(scope, AsyncMock(), send)

        app.assert_not_called()
        assert sent[0]["status"] == 403
        assert (b"content-type", b"text/plain") in sent[0]["headers"]
        assert sent[1]["body"] == b"blocked"

    @pytest.mark.asyncio
    async def test_unexpected_check_error_fails_closed(self):
        app = AsyncMock()
        access_service = IpAccessService(InMemoryApiConfigService())
        access_service.check = AsyncMock(side_effect=ConnectionError("redis down"))
        middleware = IpAccessMiddleware(
            app,
            access_service=access_service,
            route_config_provider=lambda path: {"whiteIp": "10.0.0.0/8"}
        )

        sent = []

        async def send(message):
            sent.append(message)

        scope = {
            "type": "http",
            "method": "GET",
            "path": "/proxy/order/items",
            "query_string": b"",
            "headers": [],
            "client": ("10.0.0.1", 1),
            "server": ("testserver", 80),
            "scheme": "http",
        }
        await middleware(scope, AsyncMock(), send)

        app.assert_not_called()
        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 403
        assert sent[1]["body"] == config.DEFAULT_ERROR_RESP_CONTENT.encode()

    @pytest.mark.asyncio
    async def test_allowed_calls_downstream(self):
        app = AsyncMock()
        access_service = IpAccessService(InMemoryApiConfigService())
        access_service.check = AsyncMock(return_value=AccessResult(True, "route_allow"))
        middleware = IpAccessMiddleware(app, access_service=access_service, route_config_provider=lambda path: {})

        scope = {"type": "http", "method": "GET", "path": "/x", "headers": [], "query_string": b""}
        await middleware(scope, AsyncMock(), AsyncMock())

        app.assert_awaited_once()


def test_prefix_route_config_provider():
    provider = prefix_route_config_provider({"/a/": {"whiteIp": "1"}, "/a/b/": {"whiteIp": "2"}})
    assert provider("/a/b/c") == {"whiteIp": "2"}
    assert provider("/a/x") == {"whiteIp": "1"}
    assert provider("/z") is None


class TestDebugRoutes:
    """调试路由"""

    @pytest.fixture
    def debug_client(self):
        from app import create_app

        with patch.object(config, "DEBUG_MODE", True):
            app = create_app(InMemoryApiConfigService(), route_configs={})
        return TestClient(app)

    def test_client_ip(self, debug_client):
        response = debug_client.get("/debug/client-ip", headers={"X-Forwarded-For": "1.2.3.4, 5.6.7.8"})
        assert response.status_code == 200
        assert response.json()["client_ip"] == "1.2.3.4"

    def test_ip_match(self, debug_client):
        response = debug_client.get(
            "/debug/ip-match",
            params={"ip": "10.0.0.255", "patterns": "10.0.0.0/24, bogus"}
        )
        data = response.json()
        assert data["matched"] is True
        assert data["matched_pattern"] == "10.0.0.0/24"
        assert data["skipped"] == ["bogus"]

    def test_ip_match_invalid_ip(self, debug_client):
        response = debug_client.get("/debug/ip-match", params={"ip": "nope"})
        assert response.status_code == 400


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
