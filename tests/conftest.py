"""Shared fixtures for CareKeeper tests."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.carekeeper import const
from custom_components.carekeeper.coordinator import CareKeeperCoordinator
from custom_components.carekeeper.store import CareKeeperStore
from custom_components.carekeeper.utils import dt_utils
from tests.helpers import FakeReminderScheduler, FakeRemoteRepository

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name

TEST_ACCOUNT_ID = "5b2c8f1e-3d4a-4e6b-9c7d-0a1b2c3d4e5f"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def utc_default_timezone(monkeypatch: pytest.MonkeyPatch) -> ZoneInfo:
    """Start every test with UTC as the integration's default timezone.

    Integration setup replaces the module-level default with the Home
    Assistant timezone; monkeypatch restores it afterwards.
    """
    utc = ZoneInfo("UTC")
    monkeypatch.setattr(dt_utils, "DEFAULT_TIME_ZONE", utc)
    monkeypatch.setattr(const, "DEFAULT_TIME_ZONE", utc)
    return utc


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=const.DOMAIN,
        title=const.CAREKEEPER_TITLE,
        data={const.CONF_ACCOUNT_ID: TEST_ACCOUNT_ID},
        options={
            const.CONF_UPDATE_INTERVAL: const.DEFAULT_UPDATE_INTERVAL,
            const.CONF_CALENDAR_SHOW_PERIOD: const.DEFAULT_CALENDAR_SHOW_PERIOD,
            const.CONF_CALENDAR_EVENT_TYPES: list(const.EVENT_KINDS),
        },
        entry_id="test_entry_id",
        unique_id=TEST_ACCOUNT_ID,
    )


@pytest.fixture
def mock_storage_data() -> dict[str, Any]:
    """Return an empty mirror structure."""
    return CareKeeperStore.get_default_structure()


@pytest.fixture
def fake_remote() -> FakeRemoteRepository:
    """Return an in-memory remote repository."""
    return FakeRemoteRepository()


@pytest.fixture
def fake_scheduler() -> FakeReminderScheduler:
    """Return a reminder scheduler that only records what it was asked."""
    return FakeReminderScheduler()


@pytest.fixture
async def store(hass: HomeAssistant) -> CareKeeperStore:
    """Return an initialized, empty mirror store."""
    mirror = CareKeeperStore(hass)
    await mirror.async_initialize()
    return mirror


@pytest.fixture
async def coordinator(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
    store: CareKeeperStore,  # pylint: disable=redefined-outer-name
    fake_remote: FakeRemoteRepository,  # pylint: disable=redefined-outer-name
    fake_scheduler: FakeReminderScheduler,  # pylint: disable=redefined-outer-name
) -> CareKeeperCoordinator:
    """Return a coordinator wired to the fake remote, without timers.

    Only the sync manager is set up; the reminder manager's timers are left
    to the integration tests that load the config entry.
    """
    await hass.config.async_set_time_zone("UTC")
    mock_config_entry.add_to_hass(hass)
    instance = CareKeeperCoordinator(
        hass,
        mock_config_entry,
        store,
        remote=fake_remote,
        reminder_scheduler=fake_scheduler,
    )
    await instance.sync_manager.async_setup()
    return instance


@pytest.fixture
async def init_integration(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
    mock_storage_data: dict[str, Any],  # pylint: disable=redefined-outer-name
) -> AsyncGenerator[MockConfigEntry, None]:
    """Set up the CareKeeper integration with mocked storage."""
    await hass.config.async_set_time_zone("UTC")
    mock_config_entry.add_to_hass(hass)

    with patch(
        "homeassistant.helpers.storage.Store.async_load",
        return_value=mock_storage_data,
    ):
        assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
        await hass.async_block_till_done()

    yield mock_config_entry

    if mock_config_entry.state is ConfigEntryState.LOADED:
        await hass.config_entries.async_unload(mock_config_entry.entry_id)
        await hass.async_block_till_done()
