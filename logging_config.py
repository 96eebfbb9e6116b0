"""
日志配置
使用 RotatingFileHandler 实现日志自动轮转
"""
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '%(asctime)s [%(levelname)s] [PID:%(process)d] %(message)s'


def ensure_log_dir(log_dir: str) -> str:
    """确保日志目录存在"""
    if not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)
    return log_dir


def setup_logging(config) -> RotatingFileHandler:
    """
    配置根日志记录器：控制台 + 轮转文件

    每个日志文件最大 LOG_MAX_BYTES，保留最多 LOG_BACKUP_COUNT 个备份文件

    Args:
        config: 配置对象

    Returns:
        文件日志处理器
    """
    log_dir = ensure_log_dir(config.LOG_DIR)
    file_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, config.LOG_FILE),
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )

    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG_MODE else config.LOG_LEVEL,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), file_handler],
        force=True
    )
    return file_handler
