"""
Configuration package.
"""

from .app_config import get_app_config, get_event_config

__all__ = [
    "get_app_config",
    "get_event_config",
]
