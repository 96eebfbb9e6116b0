#!/usr/bin/env python3
"""
IP 模式解析测试
Test IP literal normalization and pattern parsing
"""
import sys
import os
import ipaddress

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.ip_pattern import (
    CidrPattern,
    ExactPattern,
    RangePattern,
    WildcardPattern,
    address_segments,
    parse_ip_literal,
    parse_ip_pattern
)


class TestParseIpLiteral:
    """IP 地址规范化测试"""

    def test_ipv4(self):
        assert parse_ip_literal("192.168.1.1") == ipaddress.IPv4Address("192.168.1.1")
        assert parse_ip_literal("  10.0.0.1 ") == ipaddress.IPv4Address("10.0.0.1")

    def test_ipv6_forms_normalize_to_same_address(self):
        """同一 IPv6 地址的不同表示形式规范化为相同结果"""
        forms = [
            "2001:db8::1",
            "2001:0db8::1",
            "2001:0db8:0000:0000:0000:0000:0000:0001",
            "[2001:db8::1]",
        ]
        assert {parse_ip_literal(f) for f in forms} == {ipaddress.IPv6Address("2001:db8::1")}

    def test_ipv4_mapped_ipv6_becomes_ipv4(self):
        """IPv4 映射的 IPv6 地址转换为 IPv4"""
        assert parse_ip_literal("::ffff:192.0.2.1") == ipaddress.IPv4Address("192.0.2.1")
        assert parse_ip_literal("::ffff:c000:201") == ipaddress.IPv4Address("192.0.2.1")

    @pytest.mark.parametrize("value", [None, "", "   ", "unknown", "256.1.1.1", "1.2.3", "abc::xyz"])
    def test_invalid(self, value):
        assert parse_ip_literal(value) is None


class TestParseIpPattern:
    """模式字符串解析为唯一变体"""

    def test_exact(self):
        pattern = parse_ip_pattern("192.168.1.100")
        assert isinstance(pattern, ExactPattern)
        assert pattern.address == ipaddress.IPv4Address("192.168.1.100")

    def test_exact_ipv4_mapped(self):
        assert parse_ip_pattern("::ffff:10.0.0.1") == parse_ip_pattern("10.0.0.1")

    def test_cidr_ipv4_non_strict(self):
        pattern = parse_ip_pattern("10.0.0.5/8")
        assert isinstance(pattern, CidrPattern)
        assert pattern.network == ipaddress.ip_network("10.0.0.0/8")

    def test_cidr_ipv6(self):
        pattern = parse_ip_pattern("2001:db8::/32")
        assert isinstance(pattern, CidrPattern)
        assert pattern.network.prefixlen == 32

    def test_cidr_ipv4_mapped_network(self):
        pattern = parse_ip_pattern("::ffff:10.0.0.0/104")
        assert pattern.network == ipaddress.ip_network("10.0.0.0/8")

    def test_wildcard_ipv4(self):
        pattern = parse_ip_pattern("192.168.*.*")
        assert isinstance(pattern, WildcardPattern)
        assert pattern.version == 4
        assert pattern.segments == (192, 168, None, None)

    def test_wildcard_ipv6_with_compression(self):
        pattern = parse_ip_pattern("2001:db8:*::1")
        assert isinstance(pattern, WildcardPattern)
        assert pattern.version == 6
        assert pattern.segments == (0x2001, 0xDB8, None, 0, 0, 0, 0, 1)

    def test_range(self):
        pattern = parse_ip_pattern("10.0.0.1-10.0.0.100")
        assert isinstance(pattern, RangePattern)
        assert pattern.low == ipaddress.IPv4Address("10.0.0.1")
        assert pattern.high == ipaddress.IPv4Address("10.0.0.100")

    def test_range_last_octet_shorthand(self):
        assert parse_ip_pattern("10.0.0.1-100") == parse_ip_pattern("10.0.0.1-10.0.0.100")

    def test_range_ipv6(self):
        pattern = parse_ip_pattern("2001:db8::1 - 2001:db8::ff")
        assert isinstance(pattern, RangePattern)
        assert pattern.low.version == 6

    def test_duplicates_collapse(self):
        """等价的模式相等且哈希相同"""
        patterns = {
            parse_ip_pattern("2001:db8::1"),
            parse_ip_pattern("2001:0db8:0:0:0:0:0:1"),
            parse_ip_pattern("10.0.0.0/8"),
            parse_ip_pattern("10.1.0.0/8"),
        }
        assert len(patterns) == 2

    @pytest.mark.parametrize("value", [
        "",
        "*",
        "192.168.1",
        "192.168.1.1.1",
        "192.168.1.300",
        "192.168.1*",
        "10.0.0.0/33",
        "2001:db8::/129",
        "not-an-ip",
        "10.0.0.100-10.0.0.1",
        "10.0.0.1-2001:db8::1",
        "10.0.0.1-300",
        "2001:db8::*::1",
        "2001:db8:zzzz:*::1",
    ])
    def test_invalid_patterns_raise(self, value):
        with pytest.raises(ValueError):
            parse_ip_pattern(value)

    @pytest.mark.parametrize("value", [
        "010.*.*.*",
        "192.168.01.*",
        "１92.168.*.*",
        "10.0.0.1-010",
        "2001:db8:*::+1",
        "2001:db8:*::1_0",
    ])
    def test_wildcard_segments_follow_exact_address_rules(self, value):
        """通配符/范围中的数字段与精确地址一样: 仅 ASCII，不允许前导零"""
        with pytest.raises(ValueError):
            parse_ip_pattern(value)
        with pytest.raises(ValueError):
            parse_ip_pattern(value.replace("*", "0"))


def test_address_segments():
    assert address_segments(ipaddress.IPv4Address("10.1.2.3")) == (10, 1, 2, 3)
    assert address_segments(ipaddress.IPv6Address("2001:db8::1")) == (0x2001, 0xDB8, 0, 0, 0, 0, 0, 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
