"""
Utility modules for iaRealidad.
工具模块
"""

from iarealidad.utils.logger import configure_logging, get_logger, setup_logger
from iarealidad.utils.config import Config, load_config

__all__ = [
    "setup_logger",
    "configure_logging",
    "get_logger",
    "Config",
    "load_config",
]
