import logging
import sys
from typing import Optional

from .config import settings

LOGGER_NAME = "schulportal_bridge"


def setup_logger(name: str = LOGGER_NAME, level: Optional[str] = None) -> logging.Logger:
    """
    配置桥接服务的根 logger 并返回。

    level 为空时使用 settings.LOG_LEVEL；重复调用不会叠加 handler。
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    # 由自身 handler 输出，避免和 uvicorn 的 root handler 重复
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """模块级 logger，挂在 schulportal_bridge 命名空间下"""
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
