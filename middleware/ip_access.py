"""
IP 访问控制中间件
在请求到达下游应用前执行 IP 白名单/黑名单检查

使用方法：
    app.add_middleware(
        IpAccessMiddleware,
        access_service=IpAccessService(api_config_service),
        route_config_provider=prefix_route_config_provider(config.ROUTE_PLUGIN_CONFIGS),
    )

route_config_provider 接收请求路径，返回该路由的插件配置字典；
返回 None 表示该路由未启用 IP 访问控制，直接放行
"""
import logging
from typing import Any, Callable, Dict, Optional

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from models.config import config
from services.ip_access_service import AccessResult, IpAccessService

logger = logging.getLogger(__name__)

RouteConfigProvider = Callable[[str], Optional[Dict[str, Any]]]

REASON_INTERNAL_ERROR = "internal_error"


def prefix_route_config_provider(route_configs: Dict[str, Dict[str, Any]]) -> RouteConfigProvider:
    """按最长路径前缀选择路由插件配置"""
    prefixes = sorted(route_configs, key=len, reverse=True)

    def provider(path: str) -> Optional[Dict[str, Any]]:
        for prefix in prefixes:
            if path.startswith(prefix):
                return route_configs[prefix]
        return None

    return provider


def build_rejection_response(result: AccessResult) -> Response:
    """使用路由配置的 Content-Type 和响应体构建 403 响应"""
    return Response(
        content=result.error_content,
        status_code=403,
        headers={"Content-Type": result.error_content_type}
    )


class IpAccessMiddleware:
    """
    IP 访问控制中间件（ASGI）

    - 仅处理 http 请求，websocket / lifespan 直接传递
    - 检查过程出现异常时拒绝访问
    """

    def __init__(
        self,
        app: ASGIApp,
        access_service: IpAccessService,
        route_config_provider: RouteConfigProvider
    ):
        self.app = app
        self.access_service = access_service
        self.route_config_provider = route_config_provider

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or config.DISABLE_IP_ACCESS_CHECK:
            await self.app(scope, receive, send)
            return

        plugin_config = self.route_config_provider(scope.get("path", ""))
        if plugin_config is None:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            result = await self.access_service.check(request, plugin_config)
        except Exception as e:
            # check 自行处理查询失败并返回路由的错误响应，这里只兜底未预期的异常
            logger.error(f"❌ IP访问检查失败，拒绝访问: path={request.url.path}, error={str(e)}")
            result = AccessResult(False, REASON_INTERNAL_ERROR)

        if result.allowed:
            await self.app(scope, receive, send)
            return

        response = build_rejection_response(result)
        await response(scope, receive, send)
