"""Manager modules for CareKeeper integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and handle cross-cutting concerns.
"""

from .base_manager import BaseManager
from .reminder_manager import ReminderManager
from .sync_manager import SyncManager

__all__ = [
    "BaseManager",
    "ReminderManager",
    "SyncManager",
]
