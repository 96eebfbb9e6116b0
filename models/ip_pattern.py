"""
IP 地址与 IP 模式模型
IP literal normalization and configured pattern variants

支持的模式格式:
- 精确匹配: 192.168.1.100, 2001:db8::1
- CIDR: 10.0.0.0/8, 2001:db8::/32
- 通配符: 192.168.1.*, 10.*.*.1, 2001:db8:*::1
- 范围: 10.0.0.1-10.0.0.100, 10.0.0.1-100（IPv4 末段简写）, 2001:db8::1-2001:db8::ff
"""
import ipaddress
import string
from typing import Optional, Tuple, Union

IpLiteral = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

WILDCARD = "*"
RANGE_SEPARATOR = "-"


def parse_ip_literal(value: Optional[str]) -> Optional[IpLiteral]:
    """
    解析并规范化 IP 地址

    - 去除首尾空白和 IPv6 方括号
    - IPv4 映射的 IPv6 地址（::ffff:a.b.c.d）统一转换为 IPv4 形式
    - 无效地址返回 None

    Args:
        value: IP 地址字符串

    Returns:
        规范化后的地址对象，无法解析时返回 None
    """
    if not value:
        return None
    text = value.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return None
    return normalize_address(address)


def normalize_address(address: IpLiteral) -> IpLiteral:
    """IPv4 映射的 IPv6 地址转换为 IPv4，其他地址原样返回"""
    if address.version == 6 and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


class IpPattern:
    """IP 模式基类，各变体实现 matches()"""

    kind = "pattern"

    def __init__(self, raw: str):
        self.raw = raw

    def _key(self) -> tuple:
        raise NotImplementedError

    def matches(self, address: IpLiteral) -> bool:
        raise NotImplementedError

    def __eq__(self, other):
        if not isinstance(other, IpPattern):
            return NotImplemented
        return self.kind == other.kind and self._key() == other._key()

    def __hash__(self):
        return hash((self.kind, self._key()))

    def __repr__(self):
        return f"{type(self).__name__}({self.raw!r})"


class ExactPattern(IpPattern):
    """精确匹配单个 IP"""

    kind = "exact"

    def __init__(self, raw: str, address: IpLiteral):
        super().__init__(raw)
        self.address = normalize_address(address)

    def _key(self) -> tuple:
        return (self.address,)

    def matches(self, address: IpLiteral) -> bool:
        return normalize_address(address) == self.address


class CidrPattern(IpPattern):
    """CIDR 网段匹配，支持 IPv4 和 IPv6 前缀长度"""

    kind = "cidr"

    def __init__(self, raw: str, network: Union[ipaddress.IPv4Network, ipaddress.IPv6Network]):
        super().__init__(raw)
        # ::ffff:0:0/96 内的网段转换为等价的 IPv4 网段
        if network.version == 6 and network.prefixlen >= 96:
            mapped = network.network_address.ipv4_mapped
            if mapped is not None:
                network = ipaddress.ip_network(f"{mapped}/{network.prefixlen - 96}", strict=False)
        self.network = network

    def _key(self) -> tuple:
        return (self.network,)

    def matches(self, address: IpLiteral) -> bool:
        address = normalize_address(address)
        if address.version != self.network.version:
            return False
        return address in self.network


class WildcardPattern(IpPattern):
    """
    通配符匹配
    IPv4 分为 4 段，IPv6 分为 8 段（展开形式），'*' 段匹配任意值
    """

    kind = "wildcard"

    def __init__(self, raw: str, version: int, segments: Tuple[Optional[int], ...]):
        super().__init__(raw)
        self.version = version
        self.segments = segments

    def _key(self) -> tuple:
        return (self.version, self.segments)

    def matches(self, address: IpLiteral) -> bool:
        address = normalize_address(address)
        if address.version != self.version:
            return False
        for expected, actual in zip(self.segments, address_segments(address)):
            if expected is not None and expected != actual:
                return False
        return True


class RangePattern(IpPattern):
    """闭区间范围匹配 [low, high]，上下界必须与候选地址同协议族"""

    kind = "range"

    def __init__(self, raw: str, low: IpLiteral, high: IpLiteral):
        super().__init__(raw)
        self.low = normalize_address(low)
        self.high = normalize_address(high)

    def _key(self) -> tuple:
        return (self.low, self.high)

    def matches(self, address: IpLiteral) -> bool:
        address = normalize_address(address)
        if address.version != self.low.version:
            return False
        return int(self.low) <= int(address) <= int(self.high)


def address_segments(address: IpLiteral) -> Tuple[int, ...]:
    """IPv4 返回 4 个字节，IPv6 返回 8 个 16 位段"""
    if address.version == 4:
        return tuple(address.packed)
    value = int(address)
    return tuple((value >> (16 * (7 - i))) & 0xFFFF for i in range(8))


def _is_decimal_octet(part: str) -> bool:
    """ASCII 十进制 0-255，不允许前导零"""
    if not (part.isascii() and part.isdigit()):
        return False
    if len(part) > 1 and part.startswith("0"):
        return False
    return int(part) <= 255


def _is_hextet(part: str) -> bool:
    return 1 <= len(part) <= 4 and all(c in string.hexdigits for c in part)


def _parse_ipv4_wildcard(text: str) -> Tuple[Optional[int], ...]:
    parts = text.split(".")
    if len(parts) != 4:
        raise ValueError(f"IPv4 通配符必须为 4 段: {text}")
    segments = []
    for part in parts:
        if part == WILDCARD:
            segments.append(None)
        elif _is_decimal_octet(part):
            segments.append(int(part))
        else:
            raise ValueError(f"无效的 IPv4 段: {part!r}")
    return tuple(segments)


def _parse_ipv6_wildcard(text: str) -> Tuple[Optional[int], ...]:
    if text.count("::") > 1:
        raise ValueError(f"IPv6 通配符中 '::' 只能出现一次: {text}")
    if "::" in text:
        head, tail = text.split("::")
        head_parts = head.split(":") if head else []
        tail_parts = tail.split(":") if tail else []
        missing = 8 - len(head_parts) - len(tail_parts)
        if missing < 1:
            raise ValueError(f"IPv6 通配符段数过多: {text}")
        parts = head_parts + ["0"] * missing + tail_parts
    else:
        parts = text.split(":")
    if len(parts) != 8:
        raise ValueError(f"IPv6 通配符必须为 8 段: {text}")
    segments = []
    for part in parts:
        if part == WILDCARD:
            segments.append(None)
            continue
        if not _is_hextet(part):
            raise ValueError(f"无效的 IPv6 段: {part!r}")
        segments.append(int(part, 16))
    return tuple(segments)


def _parse_range(text: str) -> RangePattern:
    low_text, high_text = (part.strip() for part in text.split(RANGE_SEPARATOR, 1))
    low = parse_ip_literal(low_text)
    if low is None:
        raise ValueError(f"无效的范围下界: {low_text!r}")
    # IPv4 末段简写: 10.0.0.1-100
    if low.version == 4 and _is_decimal_octet(high_text):
        prefix = str(low).rsplit(".", 1)[0]
        high_text = f"{prefix}.{high_text}"
    high = parse_ip_literal(high_text)
    if high is None:
        raise ValueError(f"无效的范围上界: {high_text!r}")
    if low.version != high.version:
        raise ValueError(f"范围上下界协议族不一致: {text}")
    if int(low) > int(high):
        raise ValueError(f"范围下界大于上界: {text}")
    return RangePattern(text, low, high)


def parse_ip_pattern(value: str) -> IpPattern:
    """
    将配置字符串解析为唯一的模式变体

    Args:
        value: 单个模式字符串

    Returns:
        IpPattern 实例

    Raises:
        ValueError: 格式无效
    """
    text = value.strip()
    if not text:
        raise ValueError("空的 IP 模式")

    if "/" in text:
        return CidrPattern(text, ipaddress.ip_network(text, strict=False))

    if RANGE_SEPARATOR in text:
        return _parse_range(text)

    if WILDCARD in text:
        if ":" in text:
            return WildcardPattern(text, 6, _parse_ipv6_wildcard(text))
        return WildcardPattern(text, 4, _parse_ipv4_wildcard(text))

    address = parse_ip_literal(text)
    if address is None:
        raise ValueError(f"无效的 IP 地址: {text!r}")
    return ExactPattern(text, address)
