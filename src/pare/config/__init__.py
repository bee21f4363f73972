"""
pare.config - logging and settings shared by every tool server.
"""

from .logging import configure_logging, get_logger
from .settings import Settings, get_setting

__all__ = ["Settings", "configure_logging", "get_logger", "get_setting"]
