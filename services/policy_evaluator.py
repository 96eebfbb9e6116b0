"""
访问策略评估服务
Merge route-level and gateway-group rules into a single ALLOW / DENY decision
"""
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

from models.ip_pattern import IpLiteral, IpPattern
from utils.ip_matcher import IPMatcher


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


class RuleSet:
    """白名单/黑名单模式集合（不可变，按请求构建）"""

    __slots__ = ("allow", "deny")

    def __init__(self, allow: Iterable[IpPattern] = (), deny: Iterable[IpPattern] = ()):
        object.__setattr__(self, "allow", frozenset(allow))
        object.__setattr__(self, "deny", frozenset(deny))

    def __setattr__(self, name, value):
        raise AttributeError("RuleSet 不可修改")

    def __eq__(self, other):
        if not isinstance(other, RuleSet):
            return NotImplemented
        return self.allow == other.allow and self.deny == other.deny

    def __hash__(self):
        return hash((self.allow, self.deny))

    def __repr__(self):
        allow = sorted(p.raw for p in self.allow)
        deny = sorted(p.raw for p in self.deny)
        return f"RuleSet(allow={allow}, deny={deny})"

    @classmethod
    def from_config(cls, white_ip: Optional[str], black_ip: Optional[str]) -> "RuleSet":
        """从白名单/黑名单配置字符串构建"""
        return cls(IPMatcher.parse_config(white_ip), IPMatcher.parse_config(black_ip))

    @classmethod
    def union(cls, rule_sets: Iterable["RuleSet"]) -> "RuleSet":
        """合并多个规则集"""
        allow: FrozenSet[IpPattern] = frozenset()
        deny: FrozenSet[IpPattern] = frozenset()
        for rule_set in rule_sets:
            allow = allow | rule_set.allow
            deny = deny | rule_set.deny
        return cls(allow, deny)


EMPTY_RULE_SET = RuleSet()


# 决策原因
REASON_UNKNOWN_CLIENT = "unknown_client"
REASON_ROUTE_ALLOW = "route_allow"
REASON_ROUTE_DENY = "route_deny"
REASON_GROUP_ALLOW = "group_allow"
REASON_GROUP_DENY = "group_deny"
REASON_DEFAULT_OPEN = "default_open"
REASON_DEFAULT_DENY = "default_deny"


def evaluate(
    ip: Optional[IpLiteral],
    route_rules: RuleSet,
    group_rules: RuleSet
) -> Tuple[Decision, str]:
    """
    评估访问策略，按顺序第一个命中的步骤决定结果

    1. 无法确定客户端 IP -> 拒绝
    2. 命中路由白名单 -> 放行
    3. 命中路由黑名单 -> 拒绝
    4. 命中分组白名单 -> 放行
    5. 命中分组黑名单 -> 拒绝
    6. 均未命中: 路由白名单为空或分组白名单为空 -> 放行，否则拒绝

    Returns:
        (decision, reason)
    """
    if ip is None:
        return Decision.DENY, REASON_UNKNOWN_CLIENT

    if IPMatcher.match(ip, route_rules.allow):
        return Decision.ALLOW, REASON_ROUTE_ALLOW
    if IPMatcher.match(ip, route_rules.deny):
        return Decision.DENY, REASON_ROUTE_DENY
    if IPMatcher.match(ip, group_rules.allow):
        return Decision.ALLOW, REASON_GROUP_ALLOW
    if IPMatcher.match(ip, group_rules.deny):
        return Decision.DENY, REASON_GROUP_DENY

    # 只要有一层白名单未配置，该层就不作为准入门槛
    if not route_rules.allow or not group_rules.allow:
        return Decision.ALLOW, REASON_DEFAULT_OPEN
    return Decision.DENY, REASON_DEFAULT_DENY


def decide(
    ip: Optional[IpLiteral],
    route_rules: RuleSet,
    group_rules: RuleSet
) -> Decision:
    """评估访问策略，仅返回决策"""
    decision, _ = evaluate(ip, route_rules, group_rules)
    return decision
