"""Engine modules for CareKeeper integration.

Contains specialized computation engines:
- schedule_engine: Sequential duration windows and daily log planning
- occurrence_engine: Birthday, countdown and reminder projection
- adherence_engine: Day/month adherence and streaks
- calendar_engine: Unified, filterable calendar item stream
- sync_engine: Local mirror merge and push bookkeeping
"""

# Use relative imports within package to avoid mypy module resolution issues
from .adherence_engine import AdherenceEngine
from .calendar_engine import (
    AppointmentItem,
    BirthdayItem,
    CalendarEngine,
    CalendarFilters,
    CalendarItem,
    CountdownItem,
    MedicationItem,
    TodoListItem,
)
from .occurrence_engine import CountdownOccurrence, OccurrenceEngine
from .schedule_engine import Occurrence, ResolvedSchedule, ScheduleEngine, ScheduleEntry
from .sync_engine import SyncEngine, TransportFailure

__all__ = [
    "AdherenceEngine",
    "AppointmentItem",
    "BirthdayItem",
    "CalendarEngine",
    "CalendarFilters",
    "CalendarItem",
    "CountdownItem",
    "CountdownOccurrence",
    "MedicationItem",
    "Occurrence",
    "OccurrenceEngine",
    "ResolvedSchedule",
    "ScheduleEngine",
    "ScheduleEntry",
    "SyncEngine",
    "TodoListItem",
    "TransportFailure",
]
