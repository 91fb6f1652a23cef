"""Shared plumbing for the sync and reminder managers.

Signals are scoped to one config entry: carekeeper_{entry_id}_{suffix}.
Payloads travel as a single dict argument.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)

from .. import const
from ..helpers.entity_helpers import get_event_signal

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant

    from ..coordinator import CareKeeperCoordinator


class BaseManager(ABC):
    """A coordinator-owned manager that talks over entry-scoped signals."""

    def __init__(self, hass: HomeAssistant, coordinator: CareKeeperCoordinator) -> None:
        """Bind the manager to its coordinator's config entry."""
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id

    def emit(self, suffix: str, **payload: Any) -> None:
        """Send `payload` on this entry's `suffix` signal."""
        const.LOGGER.debug(
            "DEBUG: %s emitting '%s' (%s)",
            self.__class__.__name__,
            suffix,
            ", ".join(payload),
        )
        async_dispatcher_send(
            self.hass, get_event_signal(self.entry_id, suffix), payload
        )

    def listen(self, suffix: str, callback: Callable[[dict[str, Any]], None]) -> None:
        """Subscribe to this entry's `suffix` signal until the entry unloads."""
        unsub = async_dispatcher_connect(
            self.hass, get_event_signal(self.entry_id, suffix), callback
        )
        self.coordinator.config_entry.async_on_unload(unsub)

    @abstractmethod
    async def async_setup(self) -> None:
        """Restore state and subscribe to signals."""
