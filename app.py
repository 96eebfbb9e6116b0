"""
IP 访问控制网关主应用
API gateway request filter: IP whitelist / blacklist per route and per gateway group

特性：
- 路由级白名单/黑名单
- 网关分组共享白名单/黑名单
- 精确 IP、CIDR、通配符、范围模式（IPv4/IPv6）
- 多级代理下的真实客户端 IP 解析
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from logging_config import setup_logging
from models.config import config
from services.api_config_service import ApiConfigService, create_api_config_service
from services.ip_access_service import IpAccessService
from services.redis_service import redis_service
from middleware.ip_access import IpAccessMiddleware, prefix_route_config_provider
from routes import debug


# === 日志配置 ===
setup_logging(config)

logger = logging.getLogger(__name__)


# === 生命周期管理 ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理
    使用 Redis 存储 API 配置时初始化连接池，关闭时清理
    """
    logger.info("🚀 启动 IP 访问控制网关...")

    try:
        if config.API_CONFIG_BACKEND == "redis":
            await redis_service.initialize(config)
            logger.info("✅ Redis 服务已初始化")

        logger.info(f"🎉 服务启动完成！")
        logger.info(f"📊 配置概况:")
        logger.info(f"   - 插件: {config.PLUGIN_NAME}")
        logger.info(f"   - API 配置存储: {config.API_CONFIG_BACKEND}")
        logger.info(f"   - 受保护路由数: {len(config.ROUTE_PLUGIN_CONFIGS)}")

        yield  # 应用运行期间

    finally:
        logger.info("🛑 关闭 IP 访问控制网关...")
        await redis_service.close()
        logger.info("👋 服务已完全关闭")


def create_app(api_config_service: Optional[ApiConfigService] = None, route_configs: dict = None) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        api_config_service: API 配置服务（默认按 API_CONFIG_BACKEND 创建）
        route_configs: 路由插件配置（默认使用 ROUTE_PLUGIN_CONFIGS）
    """
    app = FastAPI(
        title="IP 访问控制网关",
        description="基于路由和网关分组的 IP 白名单/黑名单访问控制",
        version="1.0.0",
        lifespan=lifespan
    )

    access_service = IpAccessService(api_config_service or create_api_config_service())
    app.add_middleware(
        IpAccessMiddleware,
        access_service=access_service,
        route_config_provider=prefix_route_config_provider(
            config.ROUTE_PLUGIN_CONFIGS if route_configs is None else route_configs
        )
    )
    logger.info("✅ IP 访问控制中间件已配置")

    if config.DEBUG_MODE:
        app.include_router(debug.router, tags=["调试"])

    @app.get("/health")
    async def health():
        """健康检查"""
        return {
            "status": "healthy",
            "plugin": config.PLUGIN_NAME,
            "api_config_backend": config.API_CONFIG_BACKEND
        }

    return app


app = create_app()


# === 主程序入口 ===
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="::",  # 双栈绑定 - 同时支持IPv4和IPv6
        port=7890,
        log_level="info",
        access_log=True
    )
