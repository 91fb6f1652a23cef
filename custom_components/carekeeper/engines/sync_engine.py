"""Sync Engine - Local mirror record bookkeeping.

Every shareable entity is mirrored locally as a synced record:

    {
        "data": {...wire entity...},
        "is_synced": bool,         # False = unpushed local edits
        "locally_deleted": bool,   # True = tombstone awaiting remote delete
        "updated_at": ISO instant,
        "created_remotely": bool,  # False = the next push must be a create
    }

Merge policy (pull):
- No local record: create one from the remote snapshot, synced
- Local tombstone: unchanged (a pull never resurrects a deleted record)
- Remote updated_at strictly newer than the local one: remote overwrites
  every field and the record becomes synced
- Otherwise the local record is kept. When either instant is missing or
  unparseable the remote snapshot wins.

Local edits always flip `is_synced` to False and stamp `updated_at`.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that return new records; inputs are never
mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import copy
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
import uuid

from .. import const

if TYPE_CHECKING:
    from ..type_defs import PendingChangeData, SyncedRecordData


def _now_iso() -> str:
    """Return current UTC time as ISO string (engine-internal helper)."""
    return datetime.now(UTC).isoformat()


def _parse_instant(value: Any) -> datetime | None:
    """Parse an ISO instant; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class TransportFailure(Exception):
    """Raised by a remote repository for any push or pull network failure.

    Attributes:
        entity_type: Entity type being synced when the failure happened
        operation: fetch / create / update / delete
    """

    def __init__(
        self, message: str, entity_type: str | None = None, operation: str | None = None
    ) -> None:
        """Initialize TransportFailure."""
        self.entity_type = entity_type
        self.operation = operation
        super().__init__(message)


class SyncEngine:
    """Stateless merge and diff logic for the local mirror."""

    # ────────────────────────────────────────────────────────────────
    # Synced Records
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def new_record(
        data: Mapping[str, Any],
        is_synced: bool,
        updated_at: str | None = None,
    ) -> SyncedRecordData:
        """Wrap an entity dict in a fresh synced record.

        A record that starts unsynced is a local create the remote has not
        seen yet.
        """
        return {
            const.RECORD_DATA: copy.deepcopy(dict(data)),
            const.RECORD_IS_SYNCED: is_synced,
            const.RECORD_LOCALLY_DELETED: False,
            const.RECORD_UPDATED_AT: updated_at or _now_iso(),
            const.RECORD_CREATED_REMOTELY: is_synced,
        }

    @staticmethod
    def exists_remotely(record: SyncedRecordData) -> bool:
        """Return True once the remote holds a copy of the record."""
        return record.get(const.RECORD_CREATED_REMOTELY, True)

    @staticmethod
    def is_remote_newer(
        local: SyncedRecordData, remote: Mapping[str, Any]
    ) -> bool:
        """Return True when the remote snapshot should replace the local record."""
        remote_instant = _parse_instant(remote.get(const.FIELD_UPDATED_AT))
        local_instant = _parse_instant(local.get(const.RECORD_UPDATED_AT))
        if remote_instant is None or local_instant is None:
            return True
        return remote_instant > local_instant

    @staticmethod
    def merge_from_remote(
        local: SyncedRecordData | None,
        remote: Mapping[str, Any],
    ) -> SyncedRecordData:
        """Merge one remote snapshot into its local record.

        Returns:
            The record to store. A tombstone, or a record at least as recent
            as the snapshot, is returned unchanged.
        """
        remote_updated = remote.get(const.FIELD_UPDATED_AT)
        if local is None:
            return SyncEngine.new_record(remote, True, remote_updated)

        if local.get(const.RECORD_LOCALLY_DELETED, False):
            return local

        if not SyncEngine.is_remote_newer(local, remote):
            return local

        return {
            const.RECORD_DATA: copy.deepcopy(dict(remote)),
            const.RECORD_IS_SYNCED: True,
            const.RECORD_LOCALLY_DELETED: False,
            const.RECORD_UPDATED_AT: remote_updated
            or local.get(const.RECORD_UPDATED_AT)
            or _now_iso(),
            const.RECORD_CREATED_REMOTELY: True,
        }

    @staticmethod
    def record_local_edit(
        local: SyncedRecordData,
        changes: Mapping[str, Any] | None = None,
        now: str | None = None,
    ) -> SyncedRecordData:
        """Apply a local field edit; the record becomes unsynced."""
        data = copy.deepcopy(local[const.RECORD_DATA])
        if changes:
            data.update(copy.deepcopy(dict(changes)))
        stamp = now or _now_iso()
        data[const.FIELD_UPDATED_AT] = stamp
        return {
            const.RECORD_DATA: data,
            const.RECORD_IS_SYNCED: False,
            const.RECORD_LOCALLY_DELETED: local.get(const.RECORD_LOCALLY_DELETED, False),
            const.RECORD_UPDATED_AT: stamp,
            const.RECORD_CREATED_REMOTELY: SyncEngine.exists_remotely(local),
        }

    @staticmethod
    def mark_locally_deleted(
        local: SyncedRecordData, now: str | None = None
    ) -> SyncedRecordData:
        """Turn a record into a tombstone pending remote delete."""
        return {
            const.RECORD_DATA: copy.deepcopy(local[const.RECORD_DATA]),
            const.RECORD_IS_SYNCED: False,
            const.RECORD_LOCALLY_DELETED: True,
            const.RECORD_UPDATED_AT: now or _now_iso(),
            const.RECORD_CREATED_REMOTELY: SyncEngine.exists_remotely(local),
        }

    @staticmethod
    def needs_push(record: SyncedRecordData) -> bool:
        """Return True for records with unpushed edits or pending deletes."""
        return not record.get(const.RECORD_IS_SYNCED, False) or record.get(
            const.RECORD_LOCALLY_DELETED, False
        )

    @staticmethod
    def outstanding_push_set(
        records: Iterable[SyncedRecordData],
    ) -> list[SyncedRecordData]:
        """Return every record that still has to be pushed."""
        return [record for record in records if SyncEngine.needs_push(record)]

    @staticmethod
    def confirm_push(record: SyncedRecordData) -> SyncedRecordData | None:
        """Return the record after a successful push.

        Returns:
            A synced copy, or None when a delete was confirmed (purge).
        """
        if record.get(const.RECORD_LOCALLY_DELETED, False):
            return None
        confirmed = copy.deepcopy(record)
        confirmed[const.RECORD_IS_SYNCED] = True
        confirmed[const.RECORD_CREATED_REMOTELY] = True
        return confirmed

    @staticmethod
    def visible_data(
        records: Mapping[str, SyncedRecordData],
    ) -> dict[str, dict[str, Any]]:
        """Return entity dicts keyed by id, tombstones excluded."""
        return {
            entity_id: record[const.RECORD_DATA]
            for entity_id, record in records.items()
            if not record.get(const.RECORD_LOCALLY_DELETED, False)
        }

    # ────────────────────────────────────────────────────────────────
    # Pending Changes
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def new_pending_change(
        entity_type: str,
        entity_id: str,
        change_type: str,
        now: str | None = None,
    ) -> PendingChangeData:
        """Create a queued mutation record."""
        return {
            const.PENDING_ID: str(uuid.uuid4()),
            const.PENDING_ENTITY_TYPE: entity_type,
            const.PENDING_ENTITY_ID: entity_id,
            const.PENDING_CHANGE_TYPE: change_type,
            const.PENDING_CREATED_AT: now or _now_iso(),
            const.PENDING_RETRY_COUNT: 0,
            const.PENDING_LAST_ERROR: None,
            const.PENDING_LAST_ATTEMPT_AT: None,
        }

    @staticmethod
    def queue_change(
        pending: Iterable[PendingChangeData],
        entity_type: str,
        entity_id: str,
        change_type: str,
        now: str | None = None,
    ) -> list[PendingChangeData]:
        """Add a mutation to the queue, collapsing it with earlier ones.

        - create then update stays a create
        - create then delete cancels out (nothing was ever pushed)
        - update/delete replace an earlier update
        """
        result: list[PendingChangeData] = []
        previous: PendingChangeData | None = None
        for change in pending:
            if (
                change[const.PENDING_ENTITY_TYPE] == entity_type
                and change[const.PENDING_ENTITY_ID] == entity_id
            ):
                previous = change
                continue
            result.append(change)

        if previous is not None:
            previous_type = previous[const.PENDING_CHANGE_TYPE]
            if previous_type == const.CHANGE_TYPE_CREATE:
                if change_type == const.CHANGE_TYPE_DELETE:
                    return result
                result.append(previous)
                return result

        result.append(
            SyncEngine.new_pending_change(entity_type, entity_id, change_type, now)
        )
        return result

    @staticmethod
    def record_failure(
        change: PendingChangeData, error: str, now: str | None = None
    ) -> PendingChangeData:
        """Return a copy of a pending change with one more failed attempt."""
        updated = dict(change)
        updated[const.PENDING_RETRY_COUNT] = change.get(const.PENDING_RETRY_COUNT, 0) + 1
        updated[const.PENDING_LAST_ERROR] = error
        updated[const.PENDING_LAST_ATTEMPT_AT] = now or _now_iso()
        return updated  # type: ignore[return-value]

    @staticmethod
    def should_retry(change: PendingChangeData) -> bool:
        """Return True while a change has attempts left."""
        return change.get(const.PENDING_RETRY_COUNT, 0) < const.MAX_PENDING_RETRIES
