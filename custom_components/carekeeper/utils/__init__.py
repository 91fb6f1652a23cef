# File: utils/__init__.py
"""Pure Python utilities for CareKeeper.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed in this module.

Submodules:
    - dt_utils: Date/time parsing, formatting, calendar-day arithmetic
    - interval_utils: Recurring reminder interval encoding

Usage:
    from . import dt_utils
    from .interval_utils import decode_interval
"""

from . import dt_utils, interval_utils

__all__ = ["dt_utils", "interval_utils"]
