"""
Config package export.

Keeps import sites clean and stable:
    from quantam_proxy.config import get_settings, Settings
"""

from __future__ import annotations

from .settings import Environment, Settings, get_settings, split_csv

__all__ = ["Environment", "Settings", "get_settings", "split_csv"]
