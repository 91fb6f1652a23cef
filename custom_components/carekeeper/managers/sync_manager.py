# File: managers/sync_manager.py
"""Sync Manager for CareKeeper integration.

Reconciles the local mirror with the shared remote store.

Sync pass (one entity type at a time, in const.SYNC_ENTITY_ORDER):
1. PUSH: every outstanding record of the type (unsynced edit or tombstone)
   is sent to the remote repository. Confirmed deletes are purged, other
   records become synced, and their pending change is dropped.
2. PULL: the whole remote list for the type is fetched first, then decoded
   and merged record by record through SyncEngine.merge_from_remote.
   Records still carrying unpushed edits are skipped. Synced records the
   remote no longer lists are purged.

A TransportFailure (or TimeoutError) ends the pass for that entity type
only; the record stays unsynced and the next type is processed. Task
cancellation always propagates and is never recorded as a failure.

Signals Emitted:
- SIGNAL_SUFFIX_SYNC_STATUS_CHANGED: status / pending count changed
- SIGNAL_SUFFIX_DATA_REFRESHED: mirror content changed (carries refresh_id
  for acknowledgment via acknowledge_refresh)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..data_builders import EntityValidationError, decode_entity, encode_entity
from ..engines.sync_engine import SyncEngine, TransportFailure
from ..utils.dt_utils import dt_now_utc, dt_today_local
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import CareKeeperCoordinator
    from ..store import CareKeeperStore
    from ..type_defs import PendingChangeData, RemoteRepository, SyncedRecordData


def _error_text(err: BaseException) -> str:
    """Return a loggable message for transport errors without text."""
    return str(err) or type(err).__name__


class SyncManager(BaseManager):
    """Push-then-pull reconciliation and refresh publication.

    Only one pass runs at a time; a pass requested while another is running
    is skipped.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: CareKeeperCoordinator,
    ) -> None:
        """Initialize sync manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator
        """
        super().__init__(hass, coordinator)
        self._lock = asyncio.Lock()
        self.status: str = const.SYNC_STATUS_IDLE
        self.last_error: str | None = None
        self.last_sync_at: str | None = None
        self.last_changes_count: int = 0
        self._refresh_id: str | None = None
        self._acknowledged: set[str] = set()

    async def async_setup(self) -> None:
        """Set the initial status from the attached remote."""
        self.status = (
            const.SYNC_STATUS_IDLE
            if self.coordinator.remote is not None
            else const.SYNC_STATUS_OFFLINE
        )
        const.LOGGER.debug(
            "DEBUG: SyncManager initialized with status '%s' for entry %s",
            self.status,
            self.entry_id,
        )

    @property
    def store(self) -> CareKeeperStore:
        """Return the local mirror store."""
        return self.coordinator.store

    @property
    def pending_count(self) -> int:
        """Return how many offline changes are still queued."""
        return len(self.store.pending_changes)

    @property
    def is_syncing(self) -> bool:
        """Return True while a pass is running."""
        return self._lock.locked()

    def remote_attached(self) -> None:
        """Leave the offline state once a remote repository is attached."""
        if self.status == const.SYNC_STATUS_OFFLINE:
            self._set_status(const.SYNC_STATUS_IDLE)

    # =========================================================================
    # Sync Pass
    # =========================================================================

    async def async_sync(self) -> bool:
        """Run one full push-then-pull pass over every entity type.

        Returns:
            True when every entity type synced, False when the pass was
            skipped, ran offline, or at least one type failed.

        Raises:
            asyncio.CancelledError: Propagated; status returns to idle.
        """
        remote = self.coordinator.remote
        if remote is None:
            const.LOGGER.debug("DEBUG: No remote repository attached, staying offline")
            self._set_status(const.SYNC_STATUS_OFFLINE)
            return False

        if self._lock.locked():
            const.LOGGER.debug("DEBUG: Sync already in progress, skipping request")
            return False

        async with self._lock:
            self._set_status(const.SYNC_STATUS_SYNCING)
            changed_types: list[str] = []
            errors: list[str] = []
            changes_count = 0

            try:
                for entity_type in const.SYNC_ENTITY_ORDER:
                    try:
                        type_changes = await self._async_sync_entity_type(
                            remote, entity_type
                        )
                    except (TransportFailure, TimeoutError) as err:
                        const.LOGGER.warning(
                            "WARNING: Sync of '%s' failed, continuing with next type: %s",
                            entity_type,
                            _error_text(err),
                        )
                        errors.append(f"{entity_type}: {_error_text(err)}")
                        continue
                    if type_changes:
                        changed_types.append(entity_type)
                        changes_count += type_changes
            except asyncio.CancelledError:
                const.LOGGER.debug("DEBUG: Sync pass cancelled")
                self._set_status(const.SYNC_STATUS_IDLE)
                raise

            created = await self.coordinator.async_generate_occurrences_for(
                dt_today_local(), persist=False
            )
            if created and const.ENTITY_MEDICATION_LOGS not in changed_types:
                changed_types.append(const.ENTITY_MEDICATION_LOGS)

            self.last_sync_at = dt_now_utc().isoformat()
            self.last_changes_count = changes_count
            await self.store.async_save()

            if errors:
                self.last_error = "; ".join(errors)
                self._set_status(const.SYNC_STATUS_FAILED)
            else:
                self.last_error = None
                self._set_status(const.SYNC_STATUS_COMPLETED)

        const.LOGGER.info(
            "INFO: Sync pass finished with status '%s': %s changes, %s pending",
            self.status,
            changes_count,
            self.pending_count,
        )
        if changed_types:
            self.publish_refresh(changed_types)
        return not errors

    async def _async_sync_entity_type(
        self, remote: RemoteRepository, entity_type: str
    ) -> int:
        """Push then pull one entity type. Returns the number of changed records."""
        pushed = await self._async_push_entity_type(remote, entity_type)
        pulled = await self._async_pull_entity_type(remote, entity_type)
        const.LOGGER.debug(
            "DEBUG: Synced '%s': %s pushed, %s merged", entity_type, pushed, pulled
        )
        return pulled

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    async def _async_push_entity_type(
        self, remote: RemoteRepository, entity_type: str
    ) -> int:
        """Push every outstanding record of a type.

        Raises:
            TransportFailure: First failed push; remaining records wait for
                the next pass.
        """
        pushed = 0
        records = self.store.records(entity_type)
        for entity_id, record in list(records.items()):
            if not SyncEngine.needs_push(record):
                continue

            if record.get(
                const.RECORD_LOCALLY_DELETED, False
            ) and not SyncEngine.exists_remotely(record):
                # Nothing to delete remotely
                self._drop_pending_change(entity_type, entity_id)
                self.store.remove_record(entity_type, entity_id)
                continue

            change = self._find_pending_change(entity_type, entity_id)
            change_type = self._push_change_type(record)
            try:
                await self._async_push_record(
                    remote, entity_type, entity_id, record, change_type
                )
            except (TransportFailure, TimeoutError) as err:
                self._record_push_failure(
                    entity_type, entity_id, change, change_type, _error_text(err)
                )
                raise

            self._confirm_pushed_record(entity_type, entity_id, record)
            pushed += 1
        return pushed

    async def _async_push_record(
        self,
        remote: RemoteRepository,
        entity_type: str,
        entity_id: str,
        record: SyncedRecordData,
        change_type: str,
    ) -> None:
        """Send one record to the remote repository."""
        const.LOGGER.debug(
            "DEBUG: Pushing %s of %s '%s'", change_type, entity_type, entity_id
        )
        if change_type == const.CHANGE_TYPE_DELETE:
            await remote.async_delete(entity_type, entity_id)
            return

        payload = encode_entity(entity_type, record[const.RECORD_DATA])
        if change_type == const.CHANGE_TYPE_CREATE:
            await remote.async_create(entity_type, payload)
        else:
            await remote.async_update(entity_type, payload)

    def _confirm_pushed_record(
        self, entity_type: str, entity_id: str, record: SyncedRecordData
    ) -> None:
        """Apply a successful push to the mirror and drop its pending change."""
        self._drop_pending_change(entity_type, entity_id)

        current = self.store.get_record(entity_type, entity_id)
        if current is not record:
            # Edited again while the push was in flight; keep it outstanding
            if current is not None and not SyncEngine.exists_remotely(current):
                current = dict(current)
                current[const.RECORD_CREATED_REMOTELY] = True
                self.store.put_record(entity_type, entity_id, current)  # type: ignore[arg-type]
            self.store.set_pending_changes(
                SyncEngine.queue_change(
                    self.store.pending_changes,
                    entity_type,
                    entity_id,
                    const.CHANGE_TYPE_UPDATE,
                )
            )
            return

        confirmed = SyncEngine.confirm_push(record)
        if confirmed is None:
            self.store.remove_record(entity_type, entity_id)
        else:
            self.store.put_record(entity_type, entity_id, confirmed)

    def _record_push_failure(
        self,
        entity_type: str,
        entity_id: str,
        change: PendingChangeData | None,
        change_type: str,
        error: str,
    ) -> None:
        """Count a failed attempt; discard the change once retries run out.

        The record itself stays outstanding, so a discarded change is pushed
        again (with the type its record calls for) on a later pass.
        """
        if change is None:
            change = SyncEngine.new_pending_change(entity_type, entity_id, change_type)
        failed = SyncEngine.record_failure(change, error)
        remaining = [
            pending
            for pending in self.store.pending_changes
            if pending[const.PENDING_ID] != change[const.PENDING_ID]
        ]
        if SyncEngine.should_retry(failed):
            remaining.append(failed)
        else:
            const.LOGGER.warning(
                "WARNING: Giving up on %s of %s '%s' after %s attempts: %s",
                failed[const.PENDING_CHANGE_TYPE],
                entity_type,
                entity_id,
                failed[const.PENDING_RETRY_COUNT],
                error,
            )
        self.store.set_pending_changes(remaining)

    @staticmethod
    def _push_change_type(record: SyncedRecordData) -> str:
        """Return create/update/delete for an outstanding record.

        A record the remote never confirmed is created, even after an earlier
        create was given up on.
        """
        if record.get(const.RECORD_LOCALLY_DELETED, False):
            return const.CHANGE_TYPE_DELETE
        if not SyncEngine.exists_remotely(record):
            return const.CHANGE_TYPE_CREATE
        return const.CHANGE_TYPE_UPDATE

    def _find_pending_change(
        self, entity_type: str, entity_id: str
    ) -> PendingChangeData | None:
        for change in self.store.pending_changes:
            if (
                change[const.PENDING_ENTITY_TYPE] == entity_type
                and change[const.PENDING_ENTITY_ID] == entity_id
            ):
                return change
        return None

    def _drop_pending_change(self, entity_type: str, entity_id: str) -> None:
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

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def _async_pull_entity_type(
        self, remote: RemoteRepository, entity_type: str
    ) -> int:
        """Fetch and merge every remote entity of a type.

        The mirror is only touched after the complete list was received.
        Records with unpushed local edits are left alone; they go out on the
        next pass. Synced records missing from the list were deleted by
        another household member and are purged.
        """
        payloads = await remote.async_fetch(entity_type, self.coordinator.account_id)

        decoded: list[dict[str, Any]] = []
        remote_ids: set[str] = set()
        for payload in payloads:
            if payload.get(const.FIELD_ID):
                remote_ids.add(str(payload[const.FIELD_ID]))
            try:
                decoded.append(
                    decode_entity(entity_type, payload, self.store.wire_format_version)
                )
            except EntityValidationError as err:
                const.LOGGER.warning(
                    "WARNING: Skipping undecodable remote %s entity: %s",
                    entity_type,
                    err,
                )

        changes = 0
        for entity in decoded:
            entity_id = entity[const.FIELD_ID]
            local = self.store.get_record(entity_type, entity_id)
            if local is not None and SyncEngine.needs_push(local):
                const.LOGGER.debug(
                    "DEBUG: Keeping unpushed local %s '%s' over remote snapshot",
                    entity_type,
                    entity_id,
                )
                continue
            merged = SyncEngine.merge_from_remote(local, entity)
            if local is not None and merged == local:
                continue
            self.store.put_record(entity_type, entity_id, merged)
            changes += 1

        for entity_id, record in list(self.store.records(entity_type).items()):
            if entity_id in remote_ids or SyncEngine.needs_push(record):
                continue
            const.LOGGER.debug(
                "DEBUG: Purging %s '%s' deleted on the remote", entity_type, entity_id
            )
            self.store.remove_record(entity_type, entity_id)
            changes += 1

        self.store.set_last_synced_at(entity_type, dt_now_utc().isoformat())
        return changes

    # =========================================================================
    # Status and Refresh Channel
    # =========================================================================

    def _set_status(self, status: str) -> None:
        const.LOGGER.debug("DEBUG: Sync status %s -> %s", self.status, status)
        self.status = status
        self.emit(
            const.SIGNAL_SUFFIX_SYNC_STATUS_CHANGED,
            status=status,
            last_error=self.last_error,
            pending_changes=self.pending_count,
        )

    def publish_refresh(self, changed_types: list[str]) -> str:
        """Tell entities the mirror changed.

        Returns:
            The refresh id subscribers acknowledge with acknowledge_refresh().
        """
        refresh_id = str(uuid.uuid4())
        self._refresh_id = refresh_id
        self._acknowledged = set()
        self.emit(
            const.SIGNAL_SUFFIX_DATA_REFRESHED,
            refresh_id=refresh_id,
            changed_types=list(changed_types),
        )
        return refresh_id

    def acknowledge_refresh(self, refresh_id: str, subscriber: str) -> bool:
        """Record that a subscriber processed a refresh.

        Returns:
            False when the refresh id is stale (a newer refresh was published).
        """
        if refresh_id != self._refresh_id:
            const.LOGGER.debug(
                "DEBUG: Ignoring stale refresh acknowledgment %s from %s",
                refresh_id,
                subscriber,
            )
            return False
        self._acknowledged.add(subscriber)
        return True

    @property
    def last_refresh_id(self) -> str | None:
        """Return the id of the most recently published refresh."""
        return self._refresh_id

    @property
    def acknowledged_by(self) -> set[str]:
        """Return subscribers that acknowledged the latest refresh."""
        return set(self._acknowledged)
