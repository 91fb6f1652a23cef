"""Test helpers for CareKeeper tests.

This module re-exports all helpers for convenient imports:

    from tests.helpers import (
        # Fakes
        FakeRemoteRepository, FakeReminderScheduler,

        # Builders
        make_medication, make_schedule, make_entry, make_log, storage_with,
    )

See individual modules for full documentation:
- fakes.py: In-memory remote repository and reminder scheduler
- builders.py: Decoded entity builders and mirror storage
"""

from tests.helpers.builders import (
    ACCOUNT_ID,
    make_appointment,
    make_countdown,
    make_entry,
    make_log,
    make_medication,
    make_profile,
    make_schedule,
    make_sticky_reminder,
    make_todo_list,
    storage_with,
    synced_record,
)
from tests.helpers.fakes import FakeReminderScheduler, FakeRemoteRepository

__all__ = [
    "ACCOUNT_ID",
    "FakeReminderScheduler",
    "FakeRemoteRepository",
    "make_appointment",
    "make_countdown",
    "make_entry",
    "make_log",
    "make_medication",
    "make_profile",
    "make_schedule",
    "make_sticky_reminder",
    "make_todo_list",
    "storage_with",
    "synced_record",
]
