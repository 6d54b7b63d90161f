"""
Logging utilities for iaRealidad.
日志工具

日志写到 stderr, CLI 的 stdout 只输出结果 (文本或 JSON)。
"""

import logging
import sys
from typing import IO, Optional, Union

from iarealidad.utils.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# 标记由本模块安装的处理器, 重复配置时只替换这些
_HANDLER_MARK = '_iarealidad_handler'


def parse_level(level: Union[int, str]) -> int:
    """日志级别名称 → 数值, 无法识别时为 INFO"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _mark(handler: logging.Handler, level: int,
          formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_logger(
    name: str = "iarealidad",
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[IO[str]] = None
) -> logging.Logger:
    """
    设置日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别 (int 或 "DEBUG"/"INFO" 等名称)
        log_file: 日志文件路径
        stream: 控制台输出流, 默认 stderr

    Returns:
        日志记录器
    """
    level = parse_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    logger.addHandler(_mark(logging.StreamHandler(stream or sys.stderr), level, formatter))
    if log_file:
        logger.addHandler(_mark(logging.FileHandler(log_file, encoding='utf-8'), level, formatter))

    return logger


def configure_logging(config: Optional[Config] = None, verbose: bool = False) -> logging.Logger:
    """按配置 (log_level / log_file) 设置包日志, verbose 时强制 DEBUG"""
    config = config or Config()
    level = logging.DEBUG if verbose else config.log_level
    return setup_logger("iarealidad", level=level, log_file=config.log_file)


def get_logger(name: str = "iarealidad") -> logging.Logger:
    """获取日志记录器"""
    return logging.getLogger(name)
