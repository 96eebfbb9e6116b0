"""
客户端真实 IP 解析
Resolve the originating client IP of a (possibly multi-hop proxied) request

优先级：
1. X-Forwarded-For 头（取最左侧有效 IP，即原始客户端）
2. 单跳代理头 X-Real-IP / Proxy-Client-IP / WL-Proxy-Client-IP
3. 连接的直连地址（request.client.host）

任何一步都无法得到有效 IP 时返回 None，调用方应视为"未知客户端"并拒绝访问
"""
import socket
import logging
from typing import Optional

from models.config import config
from models.ip_pattern import IpLiteral, parse_ip_literal

logger = logging.getLogger(__name__)


def strip_port(token: str) -> str:
    """
    去除地址中的端口

    - 1.2.3.4:5678 -> 1.2.3.4
    - [2001:db8::1]:443 -> 2001:db8::1
    - 2001:db8::1 保持不变
    """
    token = token.strip()
    if token.startswith("["):
        end = token.find("]")
        if end != -1:
            return token[1:end]
        return token
    if token.count(":") == 1:
        return token.split(":", 1)[0]
    return token


def _is_placeholder(token: str) -> bool:
    return token.strip().lower() in config.UNKNOWN_IP_VALUES


def parse_forwarded_for(header_value: Optional[str]) -> Optional[IpLiteral]:
    """
    从 X-Forwarded-For 中取最左侧的有效 IP

    X-Forwarded-For 格式: client, proxy1, proxy2, ...
    每一跳代理追加自己的地址，因此最左侧为原始客户端
    """
    if not header_value:
        return None
    for token in header_value.split(","):
        if _is_placeholder(token):
            continue
        address = parse_ip_literal(strip_port(token))
        if address is not None:
            return address
    return None


def parse_single_ip(header_value: Optional[str]) -> Optional[IpLiteral]:
    """解析单跳代理头中的 IP"""
    if not header_value or _is_placeholder(header_value):
        return None
    return parse_ip_literal(strip_port(header_value))


def get_local_address() -> str:
    """获取本机主网卡地址"""
    return socket.gethostbyname(socket.gethostname())


def get_peer_ip(request) -> Optional[IpLiteral]:
    """
    获取连接的直连地址

    启用 RESOLVE_LOOPBACK_TO_LOCAL_ADDRESS 时，回环地址替换为本机网卡地址
    套接字错误时返回 None
    """
    try:
        client = request.client
        if not client:
            return None
        address = parse_ip_literal(client.host)
        if address is not None and address.is_loopback and config.RESOLVE_LOOPBACK_TO_LOCAL_ADDRESS:
            address = parse_ip_literal(get_local_address())
        return address
    except OSError as e:
        logger.warning(f"⚠️ 获取直连地址失败: {str(e)}")
        return None


def resolve_client_ip(request) -> Optional[IpLiteral]:
    """
    获取客户端真实IP并规范化（支持IPv4和IPv6）

    Args:
        request: Starlette/FastAPI Request 对象

    Returns:
        规范化后的地址对象，无法确定时返回 None
    """
    headers = request.headers

    address = parse_forwarded_for(headers.get(config.FORWARDED_FOR_HEADER))
    if address is not None:
        return address

    for header_name in config.REAL_IP_HEADERS:
        address = parse_single_ip(headers.get(header_name))
        if address is not None:
            return address

    return get_peer_ip(request)
