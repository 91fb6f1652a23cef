"""Base entity classes for CareKeeper integration."""

from __future__ import annotations

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import CareKeeperCoordinator


class CareKeeperCoordinatorEntity(CoordinatorEntity[CareKeeperCoordinator]):
    """Base entity class for CareKeeper sensors with typed coordinator access.

    Sensors inheriting from this class get proper type hints for
    self.coordinator without boilerplate code.
    """

    @property
    def coordinator(self) -> CareKeeperCoordinator:
        """Return typed coordinator.

        Uses object.__getattribute__ to access the private _coordinator attribute
        set by the parent CoordinatorEntity class.
        """
        return object.__getattribute__(self, "_coordinator")

    @coordinator.setter
    def coordinator(self, value: CareKeeperCoordinator) -> None:
        """Set coordinator with proper typing.

        Args:
            value: The CareKeeperCoordinator instance to set.
        """
        object.__setattr__(self, "_coordinator", value)
