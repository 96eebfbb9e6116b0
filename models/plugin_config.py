"""
插件配置模型
Route-level plugin config and gateway-group fixed config
"""
import json
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.config import config
from services.policy_evaluator import RuleSet

# 插件配置中固定配置的键名
FIXED_CONFIG_KEY = "fixedConfig"


class PluginConfigError(ValueError):
    """插件配置无法解析"""


class RouteConfig(BaseModel):
    """路由级插件配置"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    error_resp_content_type: str = Field(
        default=config.DEFAULT_ERROR_RESP_CONTENT_TYPE, alias="errorRespContentType"
    )
    error_resp_content: str = Field(
        default=config.DEFAULT_ERROR_RESP_CONTENT, alias="errorRespContent"
    )
    white_ip: str = Field(default="", alias="whiteIp")
    black_ip: str = Field(default="", alias="blackIp")

    @classmethod
    def from_plugin_config(cls, plugin_config: Dict[str, Any]) -> "RouteConfig":
        """从插件配置字典构建，None 值使用默认值"""
        values = {
            key: plugin_config[key]
            for key in ("errorRespContentType", "errorRespContent", "whiteIp", "blackIp")
            if plugin_config.get(key) is not None
        }
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise PluginConfigError(f"路由插件配置无效: {str(e)}") from e

    def rule_set(self) -> RuleSet:
        return RuleSet.from_config(self.white_ip, self.black_ip)


class FixedConfigItem(BaseModel):
    """网关分组固定配置项"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    gw_group: str = Field(alias="gwGroup")
    white_ip: Optional[str] = Field(default="", alias="whiteIp")
    black_ip: Optional[str] = Field(default="", alias="blackIp")


class FixedConfig(BaseModel):
    """固定配置: {"configs": [...]}，configs 为 null 视为未配置"""
    configs: Optional[List[FixedConfigItem]] = None


def parse_fixed_config(raw: Any) -> List[FixedConfigItem]:
    """
    解析网关分组固定配置

    Args:
        raw: JSON 字符串、字典或 None

    Returns:
        固定配置项列表，未配置（包括 JSON null）时返回空列表

    Raises:
        PluginConfigError: 配置无法解析（调用方应拒绝请求，而不是视为未配置）
    """
    if raw is None:
        return []
    if isinstance(raw, str) and not raw.strip():
        return []

    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if data is None:
            return []
        fixed_config = FixedConfig.model_validate(data)
    except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PluginConfigError(f"固定配置解析失败: {str(e)}") from e

    return fixed_config.configs or []


def build_group_rule_set(items: Iterable[FixedConfigItem], gateway_groups: Iterable[str]) -> RuleSet:
    """合并请求所属网关分组的固定配置"""
    groups = set(gateway_groups or ())
    return RuleSet.union(
        RuleSet.from_config(item.white_ip, item.black_ip)
        for item in items
        if item.gw_group in groups
    )
