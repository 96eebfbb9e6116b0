"""
工具类 - IP 模式匹配
"""
import re
import logging
from typing import FrozenSet, Iterable, List, Optional, Tuple

from models.config import config
from models.ip_pattern import IpLiteral, IpPattern, parse_ip_pattern

logger = logging.getLogger(__name__)

_DELIMITER_RE = re.compile(config.IP_LIST_DELIMITERS)


class IPMatcher:
    """IP 匹配工具类，支持精确、CIDR、通配符和范围模式（IPv4/IPv6）"""

    @staticmethod
    def split_config(config_str: Optional[str]) -> List[str]:
        """按分隔符拆分白名单/黑名单配置字符串，去除空项"""
        if not config_str:
            return []
        return [item for item in _DELIMITER_RE.split(config_str.strip()) if item]

    @staticmethod
    def parse_patterns(entries: Iterable[str]) -> Tuple[FrozenSet[IpPattern], List[str]]:
        """
        解析模式列表，无效项跳过并记录警告

        Returns:
            (有效模式集合, 被跳过的原始字符串列表)
        """
        patterns = set()
        skipped = []
        for entry in entries:
            try:
                patterns.add(parse_ip_pattern(entry))
            except ValueError as e:
                logger.warning(f"⚠️ 跳过无效的IP配置项: {entry!r}, error={str(e)}")
                skipped.append(entry)
        return frozenset(patterns), skipped

    @staticmethod
    def parse_config(config_str: Optional[str]) -> FrozenSet[IpPattern]:
        """将配置字符串解析为模式集合（重复项合并）"""
        patterns, _ = IPMatcher.parse_patterns(IPMatcher.split_config(config_str))
        return patterns

    @staticmethod
    def find_match(ip: IpLiteral, patterns: Iterable[IpPattern]) -> Optional[IpPattern]:
        """返回第一个匹配的模式，没有匹配返回 None"""
        for pattern in patterns:
            if pattern.matches(ip):
                return pattern
        return None

    @staticmethod
    def match(ip: IpLiteral, patterns: Iterable[IpPattern]) -> bool:
        """IP 满足集合中任意一个模式即返回 True，空集合总是返回 False"""
        return IPMatcher.find_match(ip, patterns) is not None
