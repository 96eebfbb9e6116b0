"""
IP 访问控制服务
Per-request plugin filter: resolve the client IP, merge route and gateway-group rules, decide
"""
import logging
from typing import Any, Dict, Optional, Tuple

from models.config import config
from models.ip_pattern import IpLiteral
from models.plugin_config import (
    FIXED_CONFIG_KEY,
    PluginConfigError,
    RouteConfig,
    build_group_rule_set,
    parse_fixed_config
)
from services.api_config_service import ApiConfigError, ApiConfigService
from services.policy_evaluator import evaluate
from utils.client_ip import resolve_client_ip

logger = logging.getLogger(__name__)

REASON_INVALID_CONFIG = "invalid_config"
REASON_LOOKUP_FAILED = "lookup_failed"


class AccessResult:
    """访问控制结果，拒绝时携带路由配置的错误响应"""

    def __init__(
        self,
        allowed: bool,
        reason: str,
        client_ip: Optional[IpLiteral] = None,
        error_content_type: str = config.DEFAULT_ERROR_RESP_CONTENT_TYPE,
        error_content: str = config.DEFAULT_ERROR_RESP_CONTENT
    ):
        self.allowed = allowed
        self.reason = reason
        self.client_ip = client_ip
        self.error_content_type = error_content_type
        self.error_content = error_content

    def __repr__(self):
        return f"AccessResult(allowed={self.allowed}, reason={self.reason!r}, client_ip={self.client_ip})"


def identify_request(request) -> Tuple[str, str, str]:
    """
    提取请求标识

    路径格式: {GATEWAY_PATH_PREFIX}/{service}/{path}

    Returns:
        (app_id, service, path)
    """
    app_id = request.headers.get(config.APP_ID_HEADER, "")
    path = request.url.path
    prefix = config.GATEWAY_PATH_PREFIX.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix):]
    service, _, rest = path.lstrip("/").partition("/")
    return app_id, service, "/" + rest


class IpAccessService:
    """IP 访问控制插件"""

    def __init__(self, api_config_service: ApiConfigService):
        self.api_config_service = api_config_service

    async def gateway_groups(self, request) -> frozenset:
        """查询请求所属的网关分组"""
        app_id, service, path = identify_request(request)
        api_config = await self.api_config_service.get_api_config(app_id, service, request.method, path)
        if api_config is None:
            return frozenset()
        return api_config.gateway_groups

    @staticmethod
    def _reject(route_config: RouteConfig, reason: str) -> AccessResult:
        return AccessResult(
            False,
            reason,
            error_content_type=route_config.error_resp_content_type,
            error_content=route_config.error_resp_content
        )

    async def check(self, request, plugin_config: Dict[str, Any]) -> AccessResult:
        """
        检查请求是否允许访问

        Args:
            request: Starlette/FastAPI Request 对象
            plugin_config: 路由插件配置

        Returns:
            AccessResult
        """
        try:
            route_config = RouteConfig.from_plugin_config(plugin_config)
        except PluginConfigError as e:
            logger.error(f"❌ 路由插件配置无效，拒绝访问: path={request.url.path}, error={str(e)}")
            return AccessResult(False, REASON_INVALID_CONFIG)

        try:
            fixed_items = parse_fixed_config(plugin_config.get(FIXED_CONFIG_KEY))
        except PluginConfigError as e:
            logger.error(f"❌ 固定配置无效，拒绝访问: path={request.url.path}, error={str(e)}")
            return self._reject(route_config, REASON_INVALID_CONFIG)

        gateway_groups = frozenset()
        if fixed_items:
            try:
                gateway_groups = await self.gateway_groups(request)
            except ApiConfigError as e:
                logger.error(f"❌ API 配置无效，拒绝访问: path={request.url.path}, error={str(e)}")
                return self._reject(route_config, REASON_INVALID_CONFIG)
            except Exception as e:
                logger.error(f"❌ 网关分组查询失败，拒绝访问: path={request.url.path}, error={str(e)}")
                return self._reject(route_config, REASON_LOOKUP_FAILED)

        group_rules = build_group_rule_set(fixed_items, gateway_groups)
        route_rules = route_config.rule_set()

        client_ip = resolve_client_ip(request)
        logger.debug(
            f"clientIp:{client_ip}, fixedWhiteIpSet:{group_rules.allow}, fixedBlackIpSet:{group_rules.deny}, "
            f"whiteIpSet:{route_rules.allow}, blackIpSet:{route_rules.deny}"
        )

        decision, reason = evaluate(client_ip, route_rules, group_rules)
        if decision.allowed:
            logger.debug(f"🔓 放行: IP={client_ip}, path={request.url.path}, reason={reason}")
        else:
            logger.info(f"🚫 拒绝访问: IP={client_ip}, path={request.url.path}, reason={reason}")

        return AccessResult(
            decision.allowed,
            reason,
            client_ip=client_ip,
            error_content_type=route_config.error_resp_content_type,
            error_content=route_config.error_resp_content
        )
