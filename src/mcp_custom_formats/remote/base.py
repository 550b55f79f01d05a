"""Base client abstraction for remote arr instances."""
import logging
from abc import ABC, abstractmethod
from typing import Any

from ..schema import Instance

logger = logging.getLogger(__name__)


class RemoteInstanceClient(ABC):
    """Abstract base class for talking to one remote instance's custom formats."""

    def __init__(self, instance: Instance):
        self.instance = instance

    @property
    def instance_id(self) -> str:
        return self.instance.id

    async def open(self) -> None:
        """Prepare the underlying transport."""
        pass

    async def close(self) -> None:
        """Release the underlying transport."""
        pass

    @abstractmethod
    async def list_custom_formats(self) -> list[dict[str, Any]]:
        """List all custom formats on the instance.

        Returns:
            Remote objects with at least ``id``, ``name``,
            ``includeCustomFormatWhenRenaming`` and ``specifications``
        """
        pass

    @abstractmethod
    async def create_custom_format(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a custom format. Returns the created object including its id."""
        pass

    @abstractmethod
    async def update_custom_format(
        self,
        remote_id: int,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Replace the custom format with the given remote id."""
        pass

    # Context manager support
    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
