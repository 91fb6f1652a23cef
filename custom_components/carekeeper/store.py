# File: store.py
"""Handles persistent storage of the CareKeeper local mirror.

Uses Home Assistant's Storage helper to keep the offline mirror of every
shared entity across restarts: one bucket of synced records per entity type,
the pending-change queue and per-entity-type sync metadata.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.helpers.storage import Store

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .type_defs import PendingChangeData, SyncedRecordData


class CareKeeperStore:
    """Handles persistent storage operations for the CareKeeper mirror.

    Thin wrapper around Home Assistant's Store API. Every entity bucket maps
    entity id to a synced record ({"data", "is_synced", "locally_deleted",
    "updated_at"}).
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations.

        This is the SINGLE SOURCE OF TRUTH for CareKeeper storage schema.

        Returns:
            dict: Default structure with all buckets and meta initialized.
        """
        structure: dict[str, Any] = {
            const.DATA_META: {
                const.DATA_META_WIRE_FORMAT_VERSION: const.WIRE_FORMAT_VERSION,
                const.DATA_META_LAST_LOG_GENERATION: None,
            },
            const.DATA_PENDING_CHANGES: [],
            const.DATA_SYNC_METADATA: {},
        }
        for entity_type in const.SYNC_ENTITY_ORDER:
            structure[entity_type] = {}
        return structure

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Buckets added
        by newer versions are backfilled on load.
        """
        const.LOGGER.debug("DEBUG: CareKeeperStore: Loading data from storage")
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = CareKeeperStore.get_default_structure()
            return

        self._data = existing_data
        for key, default in CareKeeperStore.get_default_structure().items():
            self._data.setdefault(key, default)
        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s",
            {
                entity_type: len(self._data.get(entity_type, {}))
                for entity_type in const.SYNC_ENTITY_ORDER
            },
        )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    @property
    def wire_format_version(self) -> int:
        """Return the wire format version the stored records were written with."""
        return self._data.get(const.DATA_META, {}).get(
            const.DATA_META_WIRE_FORMAT_VERSION, const.WIRE_FORMAT_VERSION
        )

    def set_data(self, new_data: dict[str, Any]) -> None:
        """Replace the entire in-memory data structure."""
        self._data = new_data

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    def records(self, entity_type: str) -> dict[str, SyncedRecordData]:
        """Return the synced-record bucket for an entity type."""
        return self._data.setdefault(entity_type, {})

    def get_record(self, entity_type: str, entity_id: str) -> SyncedRecordData | None:
        """Return one synced record, or None."""
        return self.records(entity_type).get(entity_id)

    def put_record(
        self, entity_type: str, entity_id: str, record: SyncedRecordData
    ) -> None:
        """Insert or replace a synced record."""
        self.records(entity_type)[entity_id] = record

    def remove_record(self, entity_type: str, entity_id: str) -> None:
        """Purge a synced record (confirmed delete)."""
        self.records(entity_type).pop(entity_id, None)

    @property
    def pending_changes(self) -> list[PendingChangeData]:
        """Return the queued offline mutations."""
        return self._data.setdefault(const.DATA_PENDING_CHANGES, [])

    def set_pending_changes(self, changes: list[PendingChangeData]) -> None:
        """Replace the pending-change queue."""
        self._data[const.DATA_PENDING_CHANGES] = changes

    def get_last_synced_at(self, entity_type: str) -> str | None:
        """Return when an entity type last completed a pull."""
        return (
            self._data.setdefault(const.DATA_SYNC_METADATA, {})
            .get(entity_type, {})
            .get(const.DATA_SYNC_METADATA_LAST_SYNCED_AT)
        )

    def set_last_synced_at(self, entity_type: str, stamp: str) -> None:
        """Record a completed pull for an entity type."""
        metadata = self._data.setdefault(const.DATA_SYNC_METADATA, {})
        metadata.setdefault(entity_type, {})[
            const.DATA_SYNC_METADATA_LAST_SYNCED_AT
        ] = stamp

    def set_meta(self, key: str, value: Any) -> None:
        """Set a meta value."""
        self._data.setdefault(const.DATA_META, {})[key] = value

    def get_meta(self, key: str) -> Any:
        """Return a meta value."""
        return self._data.get(const.DATA_META, {}).get(key)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def async_save(self) -> None:
        """Save the current data structure to storage asynchronously.

        Raises:
            No exceptions raised - errors are logged but do not stop execution.
            OSError: Logged when file system issues prevent saving.
            TypeError: Logged when data contains non-serializable types.
            ValueError: Logged when data is invalid for JSON serialization.
        """
        try:
            await self._store.async_save(self._data)
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        except TypeError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s",
                err,
            )
        except ValueError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to invalid data format: %s",
                err,
            )

    async def async_delete_storage(self) -> None:
        """Clear in-memory data and remove the storage file."""
        self._data = CareKeeperStore.get_default_structure()
        try:
            await self._store.async_remove()
            const.LOGGER.info(
                "INFO: Storage file removed successfully: %s", self._store.path
            )
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )
