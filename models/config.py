"""
配置模型
所有应用配置集中管理
"""
import os
import logging


class Config:
    """应用配置类"""

    # 日志配置
    LOG_LEVEL = logging.INFO  # 日志级别: DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_DIR = os.getenv("IP_ACCESS_LOG_DIR", "logs")
    LOG_FILE = "ip_access.log"
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 日志文件最大大小（字节），默认 10MB
    LOG_BACKUP_COUNT = 10  # 保留的日志备份文件数量

    # 插件配置
    PLUGIN_NAME = "fizz_plugin_ip"

    # 拒绝访问时的默认响应（路由配置未指定时使用）
    DEFAULT_ERROR_RESP_CONTENT_TYPE = "application/json; charset=UTF-8"
    DEFAULT_ERROR_RESP_CONTENT = '{"msg": "非法IP", "code": -1}'

    # 白名单/黑名单配置字符串的分隔符（逗号、分号、空白、换行）
    IP_LIST_DELIMITERS = r"[,;\s]+"

    # 客户端 IP 解析配置
    # X-Forwarded-For 格式: client, proxy1, proxy2, ...，取最左侧有效 IP
    FORWARDED_FOR_HEADER = "x-forwarded-for"
    # 单跳代理头，按顺序检查
    REAL_IP_HEADERS = ("x-real-ip", "proxy-client-ip", "wl-proxy-client-ip")
    # 代理写入的占位值，不视为有效 IP
    UNKNOWN_IP_VALUES = ("unknown", "", "-")
    # 直连地址为回环地址时，替换为本机网卡地址（网关与客户端同机部署时使用）
    RESOLVE_LOOPBACK_TO_LOCAL_ADDRESS = False

    # 请求标识配置（用于查询 API 配置中的网关分组）
    APP_ID_HEADER = "x-gateway-appid"
    GATEWAY_PATH_PREFIX = "/proxy"  # 路径格式: /proxy/{service}/{path}

    # API 配置存储: 'memory' 或 'redis'
    API_CONFIG_BACKEND = os.getenv("API_CONFIG_BACKEND", "memory")
    API_CONFIG_REDIS_KEY = "ip_access:api_config"

    # Redis 配置（API_CONFIG_BACKEND = 'redis' 时使用）
    REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
    REDIS_POOL_SIZE = 50

    # 路由插件配置（路径前缀 -> 插件配置）
    # 插件配置键: errorRespContentType, errorRespContent, whiteIp, blackIp, fixedConfig
    # fixedConfig 为 JSON 字符串: {"configs": [{"gwGroup": "...", "whiteIp": "...", "blackIp": "..."}]}
    ROUTE_PLUGIN_CONFIGS = {
        # "/proxy/order-service/": {
        #     "whiteIp": "10.0.0.0/8, 192.168.1.*",
        #     "blackIp": "10.0.0.100-10.0.0.200",
        #     "fixedConfig": '{"configs": [{"gwGroup": "internal", "whiteIp": "172.16.0.0/12"}]}',
        # },
    }

    # 测试模式配置（用于开发和测试，生产环境应设为 False）
    DISABLE_IP_ACCESS_CHECK = False  # 设为 True 跳过 IP 访问控制检查

    # 调试模式配置（生产环境应设为 False）
    DEBUG_MODE = False  # 设为 True 启用 /debug 路由和详细日志


# 全局配置实例
config = Config()
