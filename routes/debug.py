"""
调试路由
Debug endpoints for client IP resolution and IP pattern matching
"""
import os
import time
import logging
from fastapi import APIRouter, Request, Query
from fastapi.responses import JSONResponse

from models.config import config
from models.ip_pattern import parse_ip_literal
from utils.client_ip import resolve_client_ip
from utils.ip_matcher import IPMatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/debug/client-ip")
async def client_ip_debug(request: Request):
    """客户端 IP 解析调试接口"""
    client_ip = resolve_client_ip(request)
    header_sources = {
        name: request.headers.get(name)
        for name in (config.FORWARDED_FOR_HEADER,) + tuple(config.REAL_IP_HEADERS)
    }
    return {
        "client_ip": str(client_ip) if client_ip else None,
        "headers": header_sources,
        "peer": request.client.host if request.client else None,
        "timestamp": int(time.time()),
        "worker_pid": os.getpid()
    }


@router.get("/debug/ip-match")
async def ip_match_debug(
    ip: str = Query(..., description="要检查的 IP 地址"),
    patterns: str = Query("", description="IP 模式列表，逗号/分号/空白分隔")
):
    """IP 模式匹配调试接口"""
    address = parse_ip_literal(ip)
    if address is None:
        return JSONResponse(
            content={
                "error": f"无效的 IP 地址: {ip}",
                "example": "/debug/ip-match?ip=10.1.2.3&patterns=10.0.0.0/8,192.168.1.*"
            },
            status_code=400
        )

    parsed, skipped = IPMatcher.parse_patterns(IPMatcher.split_config(patterns))
    matched = IPMatcher.find_match(address, parsed)
    return {
        "ip": str(address),
        "patterns": sorted(
            ({"raw": p.raw, "kind": p.kind} for p in parsed),
            key=lambda item: item["raw"]
        ),
        "skipped": skipped,
        "matched": matched is not None,
        "matched_pattern": matched.raw if matched else None,
        "timestamp": int(time.time())
    }
