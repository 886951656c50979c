"""
日志模块

使用 loguru 提供统一的日志记录功能。
"""

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
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        sink: 输出目标
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色
    """
    # 从环境变量获取日志级别
    if level is None:
        level = "DEBUG" if os.environ.get("PATCHSYNC_DEBUG", "0") == "1" else "INFO"

    # 移除默认处理器
    logger.remove()

    # 添加控制台处理器
    logger.add(
        sink=sink,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=(level == "DEBUG"),
        diagnose=(level == "DEBUG"),
    )

    if level == "DEBUG":
        logger.debug("DEBUG 模式已启用")


def add_session_log(log_file: str, level: str = "DEBUG") -> int:
    """
    添加补丁会话日志文件

    每次会话开始时清空文件，每个事件一行: ``<时间>: <消息>``。

    Returns:
        处理器 ID，会话结束时传给 remove_session_log
    """
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    return logger.add(
        log_file,
        format="{time:YYYY-MM-DD HH:mm:ss}: {message}",
        level=level,
        mode="w",
        encoding="utf-8",
        colorize=False,
    )


def remove_session_log(handler_id: Optional[int]) -> None:
    """移除会话日志处理器"""
    if handler_id is None:
        return
    try:
        logger.remove(handler_id)
    except ValueError:
        # 处理器已被 setup_logger 移除
        pass


# 导出 logger
__all__ = [
    "logger",
    "setup_logger",
    "add_session_log",
    "remove_session_log",
]
