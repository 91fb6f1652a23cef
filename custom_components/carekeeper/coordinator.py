# File: coordinator.py
"""Coordinator for the CareKeeper integration.

Owns the local mirror store and the managers, exposes the query API used by
the calendar and sensor platforms (events, monthly summary, streak) and the
mutation API used by services (local edits, log generation).

Every local mutation follows the same path:
1. Validate and decode the entity (data_builders)
2. Wrap it with SyncEngine bookkeeping (unsynced record + pending change)
3. Persist the store and publish a refresh through SyncManager
"""

# pylint: disable=too-many-public-methods

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any
import uuid

from homeassistant.config_entries import ConfigEntry
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import const
from .data_builders import (
    ENTITY_VALIDATORS,
    build_log_status_update,
    decode_entity,
    resolve_schedule,
)
from .engines.adherence_engine import AdherenceEngine
from .engines.calendar_engine import CalendarEngine, CalendarFilters, CalendarItem
from .engines.schedule_engine import ResolvedSchedule, ScheduleEngine
from .engines.sync_engine import SyncEngine
from .managers import ReminderManager, SyncManager
from .utils.dt_utils import dt_now_utc, dt_today_local

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .store import CareKeeperStore
    from .type_defs import MonthlySummary, ReminderScheduler, RemoteRepository


class CareKeeperCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator for CareKeeper integration.

    The periodic update runs a sync pass when a remote repository is
    attached, and only daily log generation when running offline.
    """

    config_entry: CareKeeperConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: CareKeeperConfigEntry,
        store: CareKeeperStore,
        remote: RemoteRepository | None = None,
        reminder_scheduler: ReminderScheduler | None = None,
    ) -> None:
        """Initialize the CareKeeperCoordinator."""
        update_interval_minutes = config_entry.options.get(
            const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
        )

        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=timedelta(minutes=update_interval_minutes),
        )
        self.store = store
        self._remote = remote
        self._schedule_cache: dict[
            str, tuple[dict[str, Any], ResolvedSchedule | None]
        ] = {}

        self.sync_manager = SyncManager(hass, self)
        self.reminder_manager = ReminderManager(hass, self, reminder_scheduler)

    async def async_setup(self) -> None:
        """Start the managers (signal subscriptions, timers)."""
        await self.sync_manager.async_setup()
        await self.reminder_manager.async_setup()

    # -------------------------------------------------------------------------------------
    # Remote Repository
    # -------------------------------------------------------------------------------------

    @property
    def account_id(self) -> str:
        """Return the household account this entry mirrors."""
        return self.config_entry.data[const.CONF_ACCOUNT_ID]

    @property
    def remote(self) -> RemoteRepository | None:
        """Return the attached remote repository, if any."""
        return self._remote

    def attach_remote(self, remote: RemoteRepository) -> None:
        """Attach a remote repository; the next refresh syncs against it."""
        self._remote = remote
        const.LOGGER.info(
            "INFO: Remote repository attached for account %s", self.account_id
        )
        self.sync_manager.remote_attached()

    def detach_remote(self) -> None:
        """Return to offline-only operation."""
        self._remote = None
        const.LOGGER.info(
            "INFO: Remote repository detached for account %s", self.account_id
        )

    # -------------------------------------------------------------------------------------
    # Periodic Update
    # -------------------------------------------------------------------------------------

    async def _async_update_data(self) -> dict[str, Any]:
        """Periodic update."""
        try:
            if self._remote is None:
                created = await self.async_generate_occurrences_for(dt_today_local())
                const.LOGGER.debug(
                    "DEBUG: Offline update generated %s medication logs", created
                )
            await self.sync_manager.async_sync()
            return self.store.data
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise UpdateFailed(f"Error updating CareKeeper data: {err}") from err

    # -------------------------------------------------------------------------------------
    # Mirror Accessors
    # -------------------------------------------------------------------------------------

    def entities(self, entity_type: str) -> dict[str, dict[str, Any]]:
        """Return visible (non-tombstoned) entities of a type keyed by id."""
        return SyncEngine.visible_data(self.store.records(entity_type))

    def get_entity(self, entity_type: str, entity_id: str) -> dict[str, Any] | None:
        """Return one visible entity, or None."""
        return self.entities(entity_type).get(entity_id)

    @property
    def profiles(self) -> dict[str, dict[str, Any]]:
        """Return profiles keyed by id."""
        return self.entities(const.ENTITY_PROFILES)

    @property
    def medications(self) -> dict[str, dict[str, Any]]:
        """Return medications keyed by id."""
        return self.entities(const.ENTITY_MEDICATIONS)

    @property
    def medication_schedules(self) -> dict[str, dict[str, Any]]:
        """Return medication schedules keyed by id."""
        return self.entities(const.ENTITY_MEDICATION_SCHEDULES)

    @property
    def medication_logs(self) -> dict[str, dict[str, Any]]:
        """Return medication logs keyed by id."""
        return self.entities(const.ENTITY_MEDICATION_LOGS)

    @property
    def appointments(self) -> dict[str, dict[str, Any]]:
        """Return appointments keyed by id."""
        return self.entities(const.ENTITY_APPOINTMENTS)

    @property
    def todo_lists(self) -> dict[str, dict[str, Any]]:
        """Return to-do lists keyed by id."""
        return self.entities(const.ENTITY_TODO_LISTS)

    @property
    def countdowns(self) -> dict[str, dict[str, Any]]:
        """Return countdowns keyed by id."""
        return self.entities(const.ENTITY_COUNTDOWNS)

    @property
    def sticky_reminders(self) -> dict[str, dict[str, Any]]:
        """Return sticky reminders keyed by id."""
        return self.entities(const.ENTITY_STICKY_REMINDERS)

    @property
    def resolved_schedules(self) -> list[ResolvedSchedule]:
        """Return every schedule in canonical form.

        Schedules are resolved once and re-resolved only when their stored
        data object is replaced (remote merge or local edit).
        """
        cache: dict[str, tuple[dict[str, Any], ResolvedSchedule | None]] = {}
        resolved: list[ResolvedSchedule] = []
        for schedule_id, data in self.medication_schedules.items():
            cached = self._schedule_cache.get(schedule_id)
            if cached is not None and cached[0] is data:
                result = cached[1]
            else:
                result = resolve_schedule(data)
            cache[schedule_id] = (data, result)
            if result is not None:
                resolved.append(result)
        self._schedule_cache = cache
        return resolved

    # -------------------------------------------------------------------------------------
    # Query API
    # -------------------------------------------------------------------------------------

    def events(
        self,
        start: date,
        end: date,
        filters: CalendarFilters | None = None,
    ) -> list[CalendarItem]:
        """Return the unified, sorted calendar items in [start, end]."""
        return CalendarEngine.events(
            start,
            end,
            appointments=self.appointments.values(),
            countdowns=self.countdowns.values(),
            profiles=self.profiles.values(),
            medications=self.medications.values(),
            schedules=self.resolved_schedules,
            todo_lists=self.todo_lists.values(),
            filters=filters,
        )

    def _month_logs(
        self, year: int, month: int, medication_id: str | None = None
    ) -> list[dict[str, Any]]:
        logs = self.medication_logs.values()
        if medication_id is not None:
            logs = [
                log
                for log in logs
                if log.get(const.FIELD_LOG_MEDICATION_ID) == medication_id
            ]
        return [
            log
            for day, day_logs in AdherenceEngine.group_logs_by_day(logs).items()
            if day.year == year and day.month == month
            for log in day_logs
        ]

    def monthly_summary(
        self, year: int, month: int, medication_id: str | None = None
    ) -> MonthlySummary:
        """Return adherence counts and percentage for a calendar month."""
        return AdherenceEngine.monthly_summary(
            self._month_logs(year, month, medication_id)
        )

    def classify_month(
        self, year: int, month: int, medication_id: str | None = None
    ) -> dict[date, str]:
        """Return the day → adherence status map for a calendar month."""
        return AdherenceEngine.classify_month(
            year,
            month,
            self.medication_logs.values(),
            dt_today_local(),
            medications=self.medications.values(),
            schedules=self.resolved_schedules,
            medication_id=medication_id,
        )

    def current_streak(self, today: date | None = None) -> int:
        """Return the number of consecutive fully-taken days ending today."""
        logs_by_day = AdherenceEngine.group_logs_by_day(self.medication_logs.values())
        return AdherenceEngine.current_streak(logs_by_day, today or dt_today_local())

    # -------------------------------------------------------------------------------------
    # Medication Log Generation
    # -------------------------------------------------------------------------------------

    async def async_generate_occurrences_for(
        self, day: date, persist: bool = True
    ) -> int:
        """Create the missing `scheduled` logs for every medication on `day`.

        Idempotent: a log already present at the same instant is never
        duplicated.

        Returns:
            Number of logs created.
        """
        schedules = self.resolved_schedules
        existing_logs = list(self.medication_logs.values())
        created = 0
        for medication in self.medications.values():
            for log in ScheduleEngine.plan_daily_logs(
                medication, schedules, day, existing_logs
            ):
                self._insert_local(const.ENTITY_MEDICATION_LOGS, log)
                existing_logs.append(log)
                created += 1

        self.store.set_meta(const.DATA_META_LAST_LOG_GENERATION, day.isoformat())
        if created:
            const.LOGGER.info(
                "INFO: Generated %s medication logs for %s", created, day.isoformat()
            )
        if persist:
            await self.store.async_save()
            if created:
                self._notify_changed([const.ENTITY_MEDICATION_LOGS])
        return created

    async def async_regenerate_logs_for_date(
        self, medication_id: str, day: date
    ) -> tuple[int, int]:
        """Rebuild a medication's still-pending logs for `day`.

        Logs the user already acted on are kept.

        Returns:
            (logs removed, logs created)
        """
        medication = self._require_entity(const.ENTITY_MEDICATIONS, medication_id)
        to_delete, new_logs = ScheduleEngine.plan_log_regeneration(
            medication,  # type: ignore[arg-type]
            self.resolved_schedules,
            day,
            self.medication_logs.values(),  # type: ignore[arg-type]
        )
        for log_id in to_delete:
            self._delete_local(const.ENTITY_MEDICATION_LOGS, log_id)
        for log in new_logs:
            self._insert_local(const.ENTITY_MEDICATION_LOGS, log)

        const.LOGGER.debug(
            "DEBUG: Regenerated logs for medication %s on %s: -%s +%s",
            medication_id,
            day.isoformat(),
            len(to_delete),
            len(new_logs),
        )
        await self.store.async_save()
        if to_delete or new_logs:
            self._notify_changed([const.ENTITY_MEDICATION_LOGS])
        return len(to_delete), len(new_logs)

    # -------------------------------------------------------------------------------------
    # Local Edits
    # -------------------------------------------------------------------------------------

    async def async_create_entity(
        self, entity_type: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Create an entity locally and queue it for push.

        Raises:
            EntityValidationError: The entity fails validation.
        """
        stamp = dt_now_utc().isoformat()
        payload = dict(data)
        payload.setdefault(const.FIELD_ID, str(uuid.uuid4()))
        payload.setdefault(const.FIELD_ACCOUNT_ID, self.account_id)
        payload.setdefault(const.FIELD_CREATED_AT, stamp)
        payload[const.FIELD_UPDATED_AT] = stamp

        validator = ENTITY_VALIDATORS.get(entity_type)
        if validator is not None:
            validator(payload)
        entity = decode_entity(entity_type, payload)

        self._insert_local(entity_type, entity)
        const.LOGGER.debug(
            "DEBUG: Created %s '%s' locally", entity_type, entity[const.FIELD_ID]
        )
        await self._async_after_edit(entity_type, entity)
        return entity

    async def async_update_entity(
        self, entity_type: str, entity_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a local edit to an entity and queue it for push.

        Raises:
            HomeAssistantError: Unknown entity.
            EntityValidationError: The edited entity fails validation.
        """
        current = self._require_entity(entity_type, entity_id)
        merged = {**current, **changes, const.FIELD_ID: entity_id}

        validator = ENTITY_VALIDATORS.get(entity_type)
        if validator is not None:
            validator(merged)
        entity = decode_entity(entity_type, merged)

        record = self.store.get_record(entity_type, entity_id)
        updated = SyncEngine.record_local_edit(record, entity)  # type: ignore[arg-type]
        self.store.put_record(entity_type, entity_id, updated)
        self._queue(entity_type, entity_id, const.CHANGE_TYPE_UPDATE)
        const.LOGGER.debug("DEBUG: Updated %s '%s' locally", entity_type, entity_id)

        await self._async_after_edit(entity_type, updated[const.RECORD_DATA])
        return updated[const.RECORD_DATA]

    async def async_delete_entity(self, entity_type: str, entity_id: str) -> None:
        """Delete an entity locally; the remote delete is queued.

        Raises:
            HomeAssistantError: Unknown entity.
        """
        entity = self._require_entity(entity_type, entity_id)
        self._delete_local(entity_type, entity_id)
        const.LOGGER.debug("DEBUG: Deleted %s '%s' locally", entity_type, entity_id)
        await self._async_after_edit(entity_type, entity)

    async def async_set_log_status(
        self,
        log_id: str,
        status: str,
        taken_at: datetime | None = None,
    ) -> dict[str, Any]:
        """Record taken/missed/skipped (or reset to scheduled) for a dose.

        Raises:
            HomeAssistantError: Unknown log.
            EntityValidationError: Unknown status.
        """
        log = self.get_entity(const.ENTITY_MEDICATION_LOGS, log_id)
        if log is None:
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_LOG_NOT_FOUND,
                translation_placeholders={"log_id": log_id},
            )
        if taken_at is None and status == const.LOG_STATUS_TAKEN:
            taken_at = dt_now_utc()
        updated = build_log_status_update(
            log, status, taken_at.isoformat() if taken_at else None
        )
        return await self.async_update_entity(
            const.ENTITY_MEDICATION_LOGS, log_id, updated
        )

    async def async_set_medication_paused(
        self, medication_id: str, paused: bool
    ) -> dict[str, Any]:
        """Pause or resume a medication and rebuild today's pending logs.

        Raises:
            HomeAssistantError: Unknown medication.
        """
        if self.get_entity(const.ENTITY_MEDICATIONS, medication_id) is None:
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_MEDICATION_NOT_FOUND,
                translation_placeholders={"medication_id": medication_id},
            )
        medication = await self.async_update_entity(
            const.ENTITY_MEDICATIONS,
            medication_id,
            {const.FIELD_MEDICATION_IS_PAUSED: paused},
        )
        await self.async_regenerate_logs_for_date(medication_id, dt_today_local())
        return medication

    # -------------------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------------------

    def _require_entity(self, entity_type: str, entity_id: str) -> dict[str, Any]:
        entity = self.get_entity(entity_type, entity_id)
        if entity is None:
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_ENTITY_NOT_FOUND,
                translation_placeholders={
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                },
            )
        return entity

    def _queue(self, entity_type: str, entity_id: str, change_type: str) -> None:
        self.store.set_pending_changes(
            SyncEngine.queue_change(
                self.store.pending_changes, entity_type, entity_id, change_type
            )
        )

    def _insert_local(self, entity_type: str, entity: dict[str, Any]) -> None:
        """Store a new unsynced record and queue its create."""
        entity_id = entity[const.FIELD_ID]
        self.store.put_record(
            entity_type, entity_id, SyncEngine.new_record(entity, is_synced=False)
        )
        self._queue(entity_type, entity_id, const.CHANGE_TYPE_CREATE)

    def _delete_local(self, entity_type: str, entity_id: str) -> None:
        """Tombstone a record, or purge it when it was never pushed."""
        record = self.store.get_record(entity_type, entity_id)
        if record is None:
            return
        if not SyncEngine.exists_remotely(record):
            self.store.set_pending_changes(
                [
                    change
                    for change in self.store.pending_changes
                    if not (
                        change[const.PENDING_ENTITY_TYPE] == entity_type
                        and change[const.PENDING_ENTITY_ID] == entity_id
                    )
                ]
            )
            self.store.remove_record(entity_type, entity_id)
            return
        self._queue(entity_type, entity_id, const.CHANGE_TYPE_DELETE)
        self.store.put_record(
            entity_type, entity_id, SyncEngine.mark_locally_deleted(record)
        )

    async def _async_after_edit(self, entity_type: str, entity: dict[str, Any]) -> None:
        """Persist, refresh dependent logs and notify after a local edit."""
        changed = [entity_type]
        if entity_type == const.ENTITY_MEDICATION_SCHEDULES:
            medication_id = entity.get(const.FIELD_SCHEDULE_MEDICATION_ID)
            if medication_id and self.get_entity(
                const.ENTITY_MEDICATIONS, medication_id
            ):
                removed, created = await self.async_regenerate_logs_for_date(
                    medication_id, dt_today_local()
                )
                if removed or created:
                    changed.append(const.ENTITY_MEDICATION_LOGS)
        await self.store.async_save()
        self._notify_changed(changed)

    def _notify_changed(self, changed_types: list[str]) -> None:
        self.sync_manager.publish_refresh(changed_types)
        self.async_update_listeners()


CareKeeperConfigEntry = ConfigEntry[CareKeeperCoordinator]
