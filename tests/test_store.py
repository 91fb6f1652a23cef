"""Tests for store.py mirror persistence."""

from typing import Any

from homeassistant.core import HomeAssistant

from custom_components.carekeeper import const
from custom_components.carekeeper.store import CareKeeperStore
from tests.helpers import make_medication, storage_with, synced_record


def stored(data: dict[str, Any]) -> dict[str, Any]:
    """Wrap mirror data the way Home Assistant's Store writes it."""
    return {
        "version": const.STORAGE_VERSION,
        "minor_version": 1,
        "key": const.STORAGE_KEY,
        "data": data,
    }


async def test_fresh_install_uses_default_structure(
    hass: HomeAssistant, hass_storage: dict[str, Any]
) -> None:
    """Without a storage file every bucket starts empty."""
    store = CareKeeperStore(hass)
    await store.async_initialize()

    assert store.data == CareKeeperStore.get_default_structure()
    for entity_type in const.SYNC_ENTITY_ORDER:
        assert store.records(entity_type) == {}
    assert store.pending_changes == []
    assert store.wire_format_version == const.WIRE_FORMAT_VERSION


async def test_existing_data_is_loaded_and_backfilled(
    hass: HomeAssistant, hass_storage: dict[str, Any]
) -> None:
    """Buckets missing from older files are added on load."""
    old = {
        const.ENTITY_MEDICATIONS: {
            "med-1": synced_record(make_medication()),
        },
    }
    hass_storage[const.STORAGE_KEY] = stored(old)

    store = CareKeeperStore(hass)
    await store.async_initialize()

    record = store.get_record(const.ENTITY_MEDICATIONS, "med-1")
    assert record is not None
    assert record[const.RECORD_DATA][const.FIELD_MEDICATION_NAME] == "Amoxicillin"
    assert store.records(const.ENTITY_COUNTDOWNS) == {}
    assert store.pending_changes == []
    assert const.DATA_META in store.data


async def test_save_and_reload(
    hass: HomeAssistant, hass_storage: dict[str, Any]
) -> None:
    """Records, the queue and sync metadata survive a restart."""
    store = CareKeeperStore(hass)
    await store.async_initialize()
    store.put_record(
        const.ENTITY_MEDICATIONS, "med-1", synced_record(make_medication(), False)
    )
    store.set_pending_changes(
        [
            {
                const.PENDING_ID: "change-1",
                const.PENDING_ENTITY_TYPE: const.ENTITY_MEDICATIONS,
                const.PENDING_ENTITY_ID: "med-1",
                const.PENDING_CHANGE_TYPE: const.CHANGE_TYPE_CREATE,
                const.PENDING_CREATED_AT: "2025-01-01T00:00:00+00:00",
                const.PENDING_RETRY_COUNT: 0,
                const.PENDING_LAST_ERROR: None,
                const.PENDING_LAST_ATTEMPT_AT: None,
            }
        ]
    )
    store.set_last_synced_at(const.ENTITY_MEDICATIONS, "2025-01-01T00:00:00+00:00")
    await store.async_save()

    assert const.STORAGE_KEY in hass_storage

    reloaded = CareKeeperStore(hass)
    await reloaded.async_initialize()
    assert reloaded.get_record(const.ENTITY_MEDICATIONS, "med-1") is not None
    assert [change[const.PENDING_ID] for change in reloaded.pending_changes] == [
        "change-1"
    ]
    assert (
        reloaded.get_last_synced_at(const.ENTITY_MEDICATIONS)
        == "2025-01-01T00:00:00+00:00"
    )


async def test_remove_record_and_meta(
    hass: HomeAssistant, hass_storage: dict[str, Any]
) -> None:
    """Purges and meta values operate on the in-memory cache."""
    hass_storage[const.STORAGE_KEY] = stored(
        storage_with(medications=[make_medication()])
    )
    store = CareKeeperStore(hass)
    await store.async_initialize()

    store.remove_record(const.ENTITY_MEDICATIONS, "med-1")
    store.remove_record(const.ENTITY_MEDICATIONS, "missing")
    assert store.records(const.ENTITY_MEDICATIONS) == {}

    store.set_meta(const.DATA_META_LAST_LOG_GENERATION, "2025-01-02")
    assert store.get_meta(const.DATA_META_LAST_LOG_GENERATION) == "2025-01-02"


async def test_delete_storage(
    hass: HomeAssistant, hass_storage: dict[str, Any]
) -> None:
    """Deleting resets memory and removes the file."""
    hass_storage[const.STORAGE_KEY] = stored(
        storage_with(medications=[make_medication()])
    )
    store = CareKeeperStore(hass)
    await store.async_initialize()

    await store.async_delete_storage()

    assert store.data == CareKeeperStore.get_default_structure()
    assert const.STORAGE_KEY not in hass_storage
