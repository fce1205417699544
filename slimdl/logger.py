"""loguru 日志配置，调度线程名写入每条日志"""

import os
import sys
from typing import Optional

from loguru import logger


def setup_logger(
    level: Optional[str] = None,
    sink=sys.stdout,
    enqueue: bool = True,
    colorize: bool = True,
) -> None:
    """
    设置日志记录器

    Args:
        level: 日志级别，默认取 SLIMDL_DEBUG 环境变量（1 为 DEBUG，否则 INFO）
        sink: 输出目标
        enqueue: 多个调度线程写同一 sink 时需要开启
        colorize: 是否启用颜色
    """
    if level is None:
        level = "DEBUG" if os.environ.get("SLIMDL_DEBUG", "0") == "1" else "INFO"

    logger.remove()
    logger.add(
        sink=sink,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name: <18} | {message}",
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=(level == "DEBUG"),
        diagnose=(level == "DEBUG"),
    )
    logger.debug(f"[日志] 级别: {level}")


__all__ = ["setup_logger"]
