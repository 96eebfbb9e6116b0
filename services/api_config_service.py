"""
API 配置服务
Look up the gateway-group membership of a request by app id, service, method and path
"""
import json
import logging
from typing import FrozenSet, Iterable, List, Optional

from models.config import config
from services.redis_service import RedisService, redis_service

logger = logging.getLogger(__name__)

ANY_METHOD = "*"


class ApiConfig:
    """API 配置（只读）"""

    def __init__(
        self,
        service: str,
        path: str,
        method: str = ANY_METHOD,
        app_id: str = "",
        gateway_groups: Iterable[str] = ()
    ):
        self.service = service
        self.path = path
        self.method = method.upper()
        self.app_id = app_id
        self.gateway_groups: FrozenSet[str] = frozenset(gateway_groups or ())

    def __repr__(self):
        return (
            f"ApiConfig(service={self.service!r}, method={self.method!r}, "
            f"path={self.path!r}, gateway_groups={sorted(self.gateway_groups)})"
        )

    def matches(self, app_id: str, service: str, method: str, path: str) -> bool:
        """app_id 为空表示适用所有应用；path 以 / 结尾时按前缀匹配"""
        if self.service != service:
            return False
        if self.method != ANY_METHOD and self.method != method.upper():
            return False
        if self.app_id and self.app_id != app_id:
            return False
        if self.path.endswith("/"):
            return path.startswith(self.path)
        return path == self.path


class ApiConfigService:
    """API 配置查询接口"""

    async def get_api_config(
        self,
        app_id: str,
        service: str,
        method: str,
        path: str
    ) -> Optional[ApiConfig]:
        raise NotImplementedError


class InMemoryApiConfigService(ApiConfigService):
    """内存 API 配置，按注册顺序返回第一个匹配项"""

    def __init__(self, api_configs: Optional[List[ApiConfig]] = None):
        self._api_configs = tuple(api_configs or ())

    async def get_api_config(self, app_id, service, method, path):
        for api_config in self._api_configs:
            if api_config.matches(app_id, service, method, path):
                return api_config
        return None


class ApiConfigError(ValueError):
    """存储的 API 配置无法解析"""


def parse_api_config_entry(raw, service: str, path: str) -> ApiConfig:
    """
    解析存储的 API 配置 JSON

    Raises:
        ApiConfigError: JSON 无效或结构不符（调用方应拒绝请求，而不是视为无分组）
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ApiConfigError(f"API 配置 JSON 无效: {str(e)}") from e

    if not isinstance(data, dict):
        raise ApiConfigError(f"API 配置必须是 JSON 对象: {type(data).__name__}")

    method = data.get("method") or ANY_METHOD
    app_id = data.get("appId") or ""
    gateway_groups = data.get("gatewayGroups")
    if gateway_groups is None:
        gateway_groups = []
    if not isinstance(method, str) or not isinstance(app_id, str):
        raise ApiConfigError("API 配置 method/appId 必须是字符串")
    if not isinstance(gateway_groups, list) or not all(isinstance(g, str) for g in gateway_groups):
        raise ApiConfigError(f"API 配置 gatewayGroups 必须是字符串列表: {gateway_groups!r}")

    return ApiConfig(
        service=service,
        path=path,
        method=method,
        app_id=app_id,
        gateway_groups=gateway_groups
    )


class RedisApiConfigService(ApiConfigService):
    """
    Redis API 配置

    哈希 API_CONFIG_REDIS_KEY 中字段格式: {service}:{METHOD}:{path}，
    未找到时回退到 {service}:*:{path}
    值为 JSON: {"appId": "...", "gatewayGroups": ["..."]}
    条目无法解析时抛出 ApiConfigError
    """

    def __init__(self, redis: RedisService = redis_service, redis_key: str = None):
        self.redis = redis
        self.redis_key = redis_key or config.API_CONFIG_REDIS_KEY

    async def get_api_config(self, app_id, service, method, path):
        fields = [
            f"{service}:{method.upper()}:{path}",
            f"{service}:{ANY_METHOD}:{path}",
        ]
        raw = await self.redis.hget_first(self.redis_key, fields)
        if raw is None:
            return None

        try:
            api_config = parse_api_config_entry(raw, service, path)
        except ApiConfigError as e:
            logger.error(f"❌ API 配置解析失败: service={service}, path={path}, error={str(e)}")
            raise

        if api_config.app_id and api_config.app_id != app_id:
            return None
        return api_config


def create_api_config_service(api_configs: Optional[List[ApiConfig]] = None) -> ApiConfigService:
    """根据 API_CONFIG_BACKEND 创建 API 配置服务"""
    if config.API_CONFIG_BACKEND == "redis":
        return RedisApiConfigService()
    return InMemoryApiConfigService(api_configs)
