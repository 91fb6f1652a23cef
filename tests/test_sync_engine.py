"""Unit tests for engines/sync_engine.py record merge and change queue."""

from custom_components.carekeeper import const
from custom_components.carekeeper.engines.sync_engine import SyncEngine
from tests.helpers import make_medication, synced_record

NOW = "2025-02-01T10:00:00+00:00"


class TestMergeFromRemote:
    """merge_from_remote."""

    def test_new_remote_record_is_synced(self) -> None:
        """An unknown remote entity becomes a synced local record."""
        remote = dict(make_medication(), updated_at="2025-01-05T00:00:00+00:00")
        record = SyncEngine.merge_from_remote(None, remote)
        assert record[const.RECORD_IS_SYNCED] is True
        assert record[const.RECORD_LOCALLY_DELETED] is False
        assert record[const.RECORD_UPDATED_AT] == "2025-01-05T00:00:00+00:00"
        assert record[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] == "Amoxicillin"

    def test_newer_remote_overwrites_local(self) -> None:
        """A strictly newer snapshot replaces every field."""
        local = synced_record(make_medication(name="Local"))
        remote = dict(make_medication(name="Remote"), updated_at=NOW)
        merged = SyncEngine.merge_from_remote(local, remote)
        assert merged[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] == "Remote"
        assert merged[const.RECORD_IS_SYNCED] is True
        assert merged[const.RECORD_UPDATED_AT] == NOW

    def test_older_remote_loses_to_newer_local_edit(self) -> None:
        """An outdated snapshot never replaces a more recent local edit."""
        local = SyncEngine.record_local_edit(
            synced_record(make_medication()),
            {const.FIELD_MEDICATION_NAME: "new local"},
            NOW,
        )
        remote = dict(
            make_medication(name="old remote"), updated_at="2025-01-01T00:00:00+00:00"
        )
        merged = SyncEngine.merge_from_remote(local, remote)
        assert merged is local
        assert merged[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] == "new local"
        assert merged[const.RECORD_IS_SYNCED] is False

    def test_equal_instants_keep_local(self) -> None:
        """Last-write-wins needs a strictly newer snapshot."""
        local = synced_record(make_medication(name="Local"))
        remote = dict(
            make_medication(name="Remote"), updated_at="2025-01-01T00:00:00Z"
        )
        assert SyncEngine.merge_from_remote(local, remote) is local

    def test_remote_without_instant_wins(self) -> None:
        """Snapshots that carry no updated_at cannot be ordered and are applied."""
        local = synced_record(make_medication(name="Local"))
        merged = SyncEngine.merge_from_remote(local, make_medication(name="Remote"))
        assert merged[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] == "Remote"

    def test_tombstone_is_never_resurrected(self) -> None:
        """A pull leaves a pending delete untouched."""
        tombstone = SyncEngine.mark_locally_deleted(synced_record(make_medication()), NOW)
        merged = SyncEngine.merge_from_remote(tombstone, make_medication(name="Remote"))
        assert merged is tombstone

    def test_inputs_are_not_mutated(self) -> None:
        """Merging returns new dicts."""
        remote = make_medication()
        record = SyncEngine.merge_from_remote(None, remote)
        record[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] = "Changed"
        assert remote[const.FIELD_MEDICATION_NAME] == "Amoxicillin"


class TestLocalEdits:
    """record_local_edit, mark_locally_deleted, push bookkeeping."""

    def test_edit_marks_unsynced_and_stamps(self) -> None:
        """Local edits flip is_synced and stamp updated_at."""
        record = SyncEngine.record_local_edit(
            synced_record(make_medication()), {const.FIELD_MEDICATION_IS_PAUSED: True}, NOW
        )
        assert record[const.RECORD_IS_SYNCED] is False
        assert record[const.RECORD_UPDATED_AT] == NOW
        assert record[const.RECORD_DATA][const.FIELD_UPDATED_AT] == NOW
        assert record[const.RECORD_DATA][const.FIELD_MEDICATION_IS_PAUSED] is True
        assert SyncEngine.needs_push(record)

    def test_outstanding_push_set(self) -> None:
        """Unsynced records and tombstones still need a push."""
        clean = synced_record(make_medication("a"))
        dirty = synced_record(make_medication("b"), is_synced=False)
        tombstone = SyncEngine.mark_locally_deleted(synced_record(make_medication("c")))
        outstanding = SyncEngine.outstanding_push_set([clean, dirty, tombstone])
        assert outstanding == [dirty, tombstone]

    def test_confirm_push(self) -> None:
        """A confirmed edit is synced; a confirmed delete is purged."""
        dirty = synced_record(make_medication(), is_synced=False)
        assert SyncEngine.confirm_push(dirty)[const.RECORD_IS_SYNCED] is True
        tombstone = SyncEngine.mark_locally_deleted(dirty)
        assert SyncEngine.confirm_push(tombstone) is None

    def test_created_remotely_tracks_confirmed_creates(self) -> None:
        """Only a confirmed push or a pulled snapshot marks a record as created."""
        local_create = SyncEngine.new_record(make_medication(), is_synced=False)
        assert SyncEngine.exists_remotely(local_create) is False

        edited = SyncEngine.record_local_edit(
            local_create, {const.FIELD_MEDICATION_NAME: "Renamed"}, NOW
        )
        assert SyncEngine.exists_remotely(edited) is False

        assert SyncEngine.exists_remotely(SyncEngine.confirm_push(edited)) is True
        assert SyncEngine.exists_remotely(
            SyncEngine.merge_from_remote(None, make_medication())
        )

    def test_records_without_flag_count_as_created(self) -> None:
        """Records stored before the flag existed are treated as remote."""
        record = synced_record(make_medication())
        del record[const.RECORD_CREATED_REMOTELY]
        assert SyncEngine.exists_remotely(record) is True

    def test_visible_data_hides_tombstones(self) -> None:
        """Tombstones are invisible to readers."""
        records = {
            "a": synced_record(make_medication("a")),
            "b": SyncEngine.mark_locally_deleted(synced_record(make_medication("b"))),
        }
        assert list(SyncEngine.visible_data(records)) == ["a"]


class TestPendingQueue:
    """queue_change collapsing and retry accounting."""

    def test_create_then_update_stays_create(self) -> None:
        """Updates fold into an unpushed create."""
        queue = SyncEngine.queue_change([], "medications", "a", const.CHANGE_TYPE_CREATE)
        queue = SyncEngine.queue_change(queue, "medications", "a", const.CHANGE_TYPE_UPDATE)
        assert [change[const.PENDING_CHANGE_TYPE] for change in queue] == [
            const.CHANGE_TYPE_CREATE
        ]

    def test_create_then_delete_cancels(self) -> None:
        """A never-pushed entity leaves no trace."""
        queue = SyncEngine.queue_change([], "medications", "a", const.CHANGE_TYPE_CREATE)
        queue = SyncEngine.queue_change(queue, "medications", "a", const.CHANGE_TYPE_DELETE)
        assert queue == []

    def test_delete_replaces_update(self) -> None:
        """The latest change wins for pushed entities."""
        queue = SyncEngine.queue_change([], "medications", "a", const.CHANGE_TYPE_UPDATE)
        queue = SyncEngine.queue_change(queue, "medications", "b", const.CHANGE_TYPE_UPDATE)
        queue = SyncEngine.queue_change(queue, "medications", "a", const.CHANGE_TYPE_DELETE)
        assert [
            (change[const.PENDING_ENTITY_ID], change[const.PENDING_CHANGE_TYPE])
            for change in queue
        ] == [("b", const.CHANGE_TYPE_UPDATE), ("a", const.CHANGE_TYPE_DELETE)]

    def test_same_id_different_type_kept_apart(self) -> None:
        """Queue identity is (entity type, id)."""
        queue = SyncEngine.queue_change([], "medications", "a", const.CHANGE_TYPE_UPDATE)
        queue = SyncEngine.queue_change(queue, "countdowns", "a", const.CHANGE_TYPE_UPDATE)
        assert len(queue) == 2

    def test_retry_limit(self) -> None:
        """A change is retried until it has failed five times."""
        change = SyncEngine.new_pending_change("medications", "a", const.CHANGE_TYPE_UPDATE)
        for attempt in range(1, const.MAX_PENDING_RETRIES + 1):
            assert SyncEngine.should_retry(change)
            change = SyncEngine.record_failure(change, "timeout", NOW)
            assert change[const.PENDING_RETRY_COUNT] == attempt
        assert not SyncEngine.should_retry(change)
        assert change[const.PENDING_LAST_ERROR] == "timeout"
        assert change[const.PENDING_LAST_ATTEMPT_AT] == NOW
