"""Tests for managers/sync_manager.py push-then-pull reconciliation.

Uses the in-memory FakeRemoteRepository so transport failures, blocked calls
and cancellation are deterministic.
"""

# pylint: disable=redefined-outer-name

import asyncio
from typing import Any

import pytest
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect

from custom_components.carekeeper import const
from custom_components.carekeeper.coordinator import CareKeeperCoordinator
from custom_components.carekeeper.data_builders import encode_entity
from custom_components.carekeeper.helpers.entity_helpers import get_event_signal
from tests.helpers import FakeRemoteRepository, make_countdown, make_medication


def capture(hass: HomeAssistant, entry_id: str, suffix: str) -> list[dict[str, Any]]:
    """Collect every payload emitted on an instance signal."""
    received: list[dict[str, Any]] = []

    @callback
    def _collect(payload: dict[str, Any]) -> None:
        received.append(payload)

    async_dispatcher_connect(hass, get_event_signal(entry_id, suffix), _collect)
    return received


async def create_countdown(coordinator: CareKeeperCoordinator) -> str:
    """Create a countdown locally and return its id."""
    entity = await coordinator.async_create_entity(
        const.ENTITY_COUNTDOWNS, {"title": "Recital", "date": "2025-05-20"}
    )
    return entity[const.FIELD_ID]


def pending_for(coordinator: CareKeeperCoordinator, entity_id: str) -> list[dict]:
    """Return queued changes for one entity id."""
    return [
        change
        for change in coordinator.store.pending_changes
        if change[const.PENDING_ENTITY_ID] == entity_id
    ]


# =============================================================================
# Offline and basic passes
# =============================================================================


async def test_offline_without_remote(coordinator: CareKeeperCoordinator) -> None:
    """Without a remote the pass is a no-op and the status is offline."""
    coordinator.detach_remote()
    assert await coordinator.sync_manager.async_sync() is False
    assert coordinator.sync_manager.status == const.SYNC_STATUS_OFFLINE


async def test_attach_remote_leaves_offline(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Attaching a remote returns the status to idle."""
    coordinator.detach_remote()
    await coordinator.sync_manager.async_sync()
    coordinator.attach_remote(fake_remote)
    assert coordinator.sync_manager.status == const.SYNC_STATUS_IDLE


async def test_push_create(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """A local create is pushed, confirmed and dequeued."""
    countdown_id = await create_countdown(coordinator)
    assert coordinator.sync_manager.pending_count == 1

    assert await coordinator.sync_manager.async_sync() is True

    assert fake_remote.operations("create") == [(const.ENTITY_COUNTDOWNS, countdown_id)]
    remote_payload = fake_remote.get(const.ENTITY_COUNTDOWNS, countdown_id)
    assert remote_payload is not None
    assert remote_payload[const.FIELD_TITLE] == "Recital"
    assert remote_payload[const.FIELD_ACCOUNT_ID] == coordinator.account_id

    record = coordinator.store.get_record(const.ENTITY_COUNTDOWNS, countdown_id)
    assert record[const.RECORD_IS_SYNCED] is True
    assert coordinator.sync_manager.pending_count == 0
    assert coordinator.sync_manager.status == const.SYNC_STATUS_COMPLETED
    assert coordinator.sync_manager.last_sync_at is not None


async def test_pull_new_remote_entity(
    hass: HomeAssistant,
    coordinator: CareKeeperCoordinator,
    fake_remote: FakeRemoteRepository,
) -> None:
    """Entities created elsewhere appear in the mirror and trigger a refresh."""
    refreshes = capture(
        hass, coordinator.config_entry.entry_id, const.SIGNAL_SUFFIX_DATA_REFRESHED
    )
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("remote-med")),
    )

    await coordinator.sync_manager.async_sync()
    await hass.async_block_till_done()

    assert "remote-med" in coordinator.medications
    assert coordinator.sync_manager.last_changes_count == 1
    assert refreshes
    assert const.ENTITY_MEDICATIONS in refreshes[-1]["changed_types"]
    assert (
        coordinator.store.get_last_synced_at(const.ENTITY_MEDICATIONS) is not None
    )


async def test_undecodable_payload_skipped(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """A remote payload without an id is skipped, the rest merge."""
    fake_remote.seed(const.ENTITY_MEDICATIONS, {"name": "No id"})
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("good")),
    )

    assert await coordinator.sync_manager.async_sync() is True
    assert list(coordinator.medications) == ["good"]


# =============================================================================
# Failures and retries
# =============================================================================


async def test_transport_failure_only_stops_its_type(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """A failing fetch fails the pass but later types still sync."""
    fake_remote.fail("fetch", const.ENTITY_PROFILES)
    fake_remote.seed(
        const.ENTITY_COUNTDOWNS,
        encode_entity(const.ENTITY_COUNTDOWNS, make_countdown("remote-cd")),
    )

    assert await coordinator.sync_manager.async_sync() is False

    assert coordinator.sync_manager.status == const.SYNC_STATUS_FAILED
    assert "profiles" in coordinator.sync_manager.last_error
    assert "remote-cd" in coordinator.countdowns


async def test_failed_push_counts_retries_then_gives_up(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Each failed push counts an attempt; after five the change is dropped."""
    countdown_id = await create_countdown(coordinator)
    fake_remote.fail("create", const.ENTITY_COUNTDOWNS)

    for attempt in range(1, const.MAX_PENDING_RETRIES):
        assert await coordinator.sync_manager.async_sync() is False
        (change,) = pending_for(coordinator, countdown_id)
        assert change[const.PENDING_RETRY_COUNT] == attempt
        assert change[const.PENDING_LAST_ERROR] == "connection reset"

    # The failed push skips that type's pull
    assert (const.ENTITY_COUNTDOWNS, None) not in fake_remote.operations("fetch")

    assert await coordinator.sync_manager.async_sync() is False
    assert pending_for(coordinator, countdown_id) == []

    # The record stays unsynced and is still pushed as a create once the
    # remote recovers, since the remote never confirmed it
    record = coordinator.store.get_record(const.ENTITY_COUNTDOWNS, countdown_id)
    assert record[const.RECORD_IS_SYNCED] is False
    assert record[const.RECORD_CREATED_REMOTELY] is False

    fake_remote.recover("create", const.ENTITY_COUNTDOWNS)
    assert await coordinator.sync_manager.async_sync() is True
    assert fake_remote.operations("update") == []
    assert fake_remote.get(const.ENTITY_COUNTDOWNS, countdown_id) is not None
    record = coordinator.store.get_record(const.ENTITY_COUNTDOWNS, countdown_id)
    assert record[const.RECORD_IS_SYNCED] is True
    assert record[const.RECORD_CREATED_REMOTELY] is True


async def test_timeout_is_a_transport_failure(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Timeouts are handled like any other transport failure."""
    fake_remote.fail("fetch", const.ENTITY_TODO_LISTS, TimeoutError())

    assert await coordinator.sync_manager.async_sync() is False
    assert "todo_lists: TimeoutError" in coordinator.sync_manager.last_error


async def test_given_up_create_then_delete_never_reaches_remote(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Deleting an entity the remote never accepted purges it locally."""
    countdown_id = await create_countdown(coordinator)
    fake_remote.fail("create", const.ENTITY_COUNTDOWNS)
    for _ in range(const.MAX_PENDING_RETRIES):
        await coordinator.sync_manager.async_sync()
    assert pending_for(coordinator, countdown_id) == []

    await coordinator.async_delete_entity(const.ENTITY_COUNTDOWNS, countdown_id)
    assert coordinator.store.get_record(const.ENTITY_COUNTDOWNS, countdown_id) is None
    assert coordinator.sync_manager.pending_count == 0

    fake_remote.recover("create", const.ENTITY_COUNTDOWNS)
    assert await coordinator.sync_manager.async_sync() is True
    assert fake_remote.operations("delete") == []
    assert fake_remote.get(const.ENTITY_COUNTDOWNS, countdown_id) is None


# =============================================================================
# Pull merge
# =============================================================================


async def test_pull_keeps_edit_made_during_fetch(
    hass: HomeAssistant,
    coordinator: CareKeeperCoordinator,
    fake_remote: FakeRemoteRepository,
) -> None:
    """A snapshot fetched before a local edit never replaces that edit."""
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("med-1", name="Remote")),
    )
    await coordinator.sync_manager.async_sync()

    gate = fake_remote.block("fetch", const.ENTITY_MEDICATIONS)
    task = hass.async_create_task(coordinator.sync_manager.async_sync())
    await fake_remote.entered[("fetch", const.ENTITY_MEDICATIONS)].wait()

    await coordinator.async_update_entity(
        const.ENTITY_MEDICATIONS, "med-1", {const.FIELD_MEDICATION_NAME: "Local edit"}
    )
    gate.set()
    await task

    medication = coordinator.medications["med-1"]
    assert medication[const.FIELD_MEDICATION_NAME] == "Local edit"
    (change,) = pending_for(coordinator, "med-1")
    assert change[const.PENDING_CHANGE_TYPE] == const.CHANGE_TYPE_UPDATE

    # The next pass pushes the edit
    assert await coordinator.sync_manager.async_sync() is True
    remote_payload = fake_remote.get(const.ENTITY_MEDICATIONS, "med-1")
    assert remote_payload[const.FIELD_MEDICATION_NAME] == "Local edit"
    assert coordinator.medications["med-1"][const.FIELD_MEDICATION_NAME] == "Local edit"
    assert pending_for(coordinator, "med-1") == []


async def test_remote_delete_purges_synced_record(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Entities deleted by another household member leave the mirror."""
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("med-x")),
    )
    await coordinator.sync_manager.async_sync()
    assert "med-x" in coordinator.medications

    fake_remote.data[const.ENTITY_MEDICATIONS] = []
    assert await coordinator.sync_manager.async_sync() is True

    assert "med-x" not in coordinator.medications
    assert coordinator.store.get_record(const.ENTITY_MEDICATIONS, "med-x") is None
    assert coordinator.sync_manager.last_changes_count == 1


async def test_failed_fetch_purges_nothing(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Only a complete remote list can remove local records."""
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("med-x")),
    )
    await coordinator.sync_manager.async_sync()

    fake_remote.data[const.ENTITY_MEDICATIONS] = []
    fake_remote.fail("fetch", const.ENTITY_MEDICATIONS)
    assert await coordinator.sync_manager.async_sync() is False

    assert "med-x" in coordinator.medications


# =============================================================================
# Deletes
# =============================================================================


async def test_tombstone_pushed_and_purged(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """A delete of a synced entity reaches the remote, then the record is purged."""
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("med-1")),
    )
    await coordinator.sync_manager.async_sync()

    await coordinator.async_delete_entity(const.ENTITY_MEDICATIONS, "med-1")
    assert "med-1" not in coordinator.medications
    record = coordinator.store.get_record(const.ENTITY_MEDICATIONS, "med-1")
    assert record[const.RECORD_LOCALLY_DELETED] is True

    assert await coordinator.sync_manager.async_sync() is True

    assert fake_remote.operations("delete") == [(const.ENTITY_MEDICATIONS, "med-1")]
    assert coordinator.store.get_record(const.ENTITY_MEDICATIONS, "med-1") is None
    assert fake_remote.get(const.ENTITY_MEDICATIONS, "med-1") is None
    assert coordinator.sync_manager.pending_count == 0


async def test_failed_delete_keeps_tombstone(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """A pending delete stays hidden while its push keeps failing."""
    fake_remote.seed(
        const.ENTITY_MEDICATIONS,
        encode_entity(const.ENTITY_MEDICATIONS, make_medication("med-1")),
    )
    await coordinator.sync_manager.async_sync()
    await coordinator.async_delete_entity(const.ENTITY_MEDICATIONS, "med-1")

    fake_remote.fail("delete", const.ENTITY_MEDICATIONS)
    await coordinator.sync_manager.async_sync()

    assert "med-1" not in coordinator.medications
    record = coordinator.store.get_record(const.ENTITY_MEDICATIONS, "med-1")
    assert record[const.RECORD_LOCALLY_DELETED] is True


async def test_delete_of_never_pushed_entity(
    coordinator: CareKeeperCoordinator, fake_remote: FakeRemoteRepository
) -> None:
    """Create then delete before a sync leaves nothing to push."""
    countdown_id = await create_countdown(coordinator)
    await coordinator.async_delete_entity(const.ENTITY_COUNTDOWNS, countdown_id)

    assert coordinator.store.get_record(const.ENTITY_COUNTDOWNS, countdown_id) is None
    assert coordinator.sync_manager.pending_count == 0

    await coordinator.sync_manager.async_sync()
    assert fake_remote.operations("create") == []
    assert fake_remote.operations("delete") == []


# =============================================================================
# Concurrency
# =============================================================================


async def test_overlapping_request_is_skipped_and_cancel_resets_status(
    hass: HomeAssistant,
    coordinator: CareKeeperCoordinator,
    fake_remote: FakeRemoteRepository,
) -> None:
    """Only one pass runs at a time; cancellation is not a failure."""
    first_type = const.SYNC_ENTITY_ORDER[0]
    fake_remote.block("fetch", first_type)
    sync_manager = coordinator.sync_manager

    task = hass.async_create_task(sync_manager.async_sync())
    await fake_remote.entered[("fetch", first_type)].wait()

    assert sync_manager.is_syncing
    assert sync_manager.status == const.SYNC_STATUS_SYNCING
    assert await sync_manager.async_sync() is False
    assert fake_remote.operations("fetch") == [(first_type, None)]

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert sync_manager.status == const.SYNC_STATUS_IDLE
    assert sync_manager.last_error is None
    assert not sync_manager.is_syncing


# =============================================================================
# Signals
# =============================================================================


async def test_status_signals(
    hass: HomeAssistant, coordinator: CareKeeperCoordinator
) -> None:
    """A pass announces syncing then completed, with the queue size."""
    statuses = capture(
        hass,
        coordinator.config_entry.entry_id,
        const.SIGNAL_SUFFIX_SYNC_STATUS_CHANGED,
    )
    await coordinator.sync_manager.async_sync()
    await hass.async_block_till_done()

    assert [payload["status"] for payload in statuses] == [
        const.SYNC_STATUS_SYNCING,
        const.SYNC_STATUS_COMPLETED,
    ]
    assert statuses[-1]["pending_changes"] == 0


async def test_refresh_acknowledgment(coordinator: CareKeeperCoordinator) -> None:
    """Only the latest refresh id can be acknowledged."""
    sync_manager = coordinator.sync_manager
    first = sync_manager.publish_refresh([const.ENTITY_COUNTDOWNS])
    assert sync_manager.acknowledge_refresh(first, "calendar") is True
    assert sync_manager.acknowledged_by == {"calendar"}

    second = sync_manager.publish_refresh([const.ENTITY_COUNTDOWNS])
    assert sync_manager.last_refresh_id == second
    assert sync_manager.acknowledge_refresh(first, "sensor") is False
    assert sync_manager.acknowledged_by == set()
