"""
日志模块

控制台日志写到 stderr，stdout 只留给命令输出（例如 list）。
可选地再写一份不带颜色的日志文件。
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def default_level() -> str:
    """MODPACKER_LOG_LEVEL 优先，其次 MODPACKER_DEBUG=1"""
    level = os.environ.get("MODPACKER_LOG_LEVEL")
    if level:
        return level.upper()
    return "DEBUG" if os.environ.get("MODPACKER_DEBUG", "0") == "1" else "INFO"


def setup_logger(
    level: Optional[str] = None,
    sink=None,
    enqueue: bool = True,
    colorize: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    设置日志记录器

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)，默认读取环境变量
        sink: 控制台输出目标，默认为调用时的 sys.stderr
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色
        log_file: 额外写入的日志文件，按 10 MB 轮转
    """
    level = level or default_level()
    debug = level == "DEBUG"

    logger.remove()
    logger.add(
        sink=sink if sink is not None else sys.stderr,
        format=CONSOLE_FORMAT,
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file is not None:
        logger.add(
            sink=str(log_file),
            format=FILE_FORMAT,
            enqueue=enqueue,
            level="DEBUG",
            rotation="10 MB",
            retention=3,
            encoding="utf-8",
        )

    if debug:
        logger.debug("DEBUG 模式已启用")


__all__ = ["logger", "setup_logger"]
