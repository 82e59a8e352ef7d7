"""Abstract base class for capture providers.

All capture implementations must conform to this interface, enabling
the orchestrator to swap between window, monitor, webcam or simulated
sources without changing the rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sightline.domain.errors import CaptureError, SourceNotFoundError
from sightline.domain.models import CapturedImage, WindowSource

logger = logging.getLogger(__name__)


class CaptureProvider(ABC):
    """Abstract interface for enumerating and sampling visual sources.

    capture() must be safe to call concurrently for different source ids.
    Implementations that wrap blocking native APIs should run them in the
    default executor so they never stall the event loop.

    Example usage::

        async with MonitorCaptureProvider() as provider:
            sources = await provider.list_sources()
            image = await provider.capture(sources[0].id)
    """

    name: str = "capture"

    def __init__(self) -> None:
        self._frame_counters: dict[int, int] = {}
        self._is_open: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the provider has acquired its resources."""
        return self._is_open

    async def open(self) -> None:
        """Acquire any resources the provider needs. Default is a no-op."""
        self._is_open = True

    async def close(self) -> None:
        """Release provider resources. Safe to call multiple times."""
        self._is_open = False

    @abstractmethod
    async def list_sources(self) -> list[WindowSource]:
        """Enumerate the sources currently available.

        Returns:
            The complete list of sources, possibly empty.

        Raises:
            ProviderError: If enumeration fails. Never returns a partial
                list and then raises.
        """
        ...

    @abstractmethod
    async def capture(self, source_id: int) -> CapturedImage:
        """Capture one still image from the given source.

        Raises:
            SourceNotFoundError: If the source no longer exists.
            CaptureError: If the capture fails for a transient reason.
        """
        ...

    def _next_frame_number(self, source_id: int) -> int:
        number = self._frame_counters.get(source_id, 0) + 1
        self._frame_counters[source_id] = number
        return number

    def _not_found(self, source_id: int) -> SourceNotFoundError:
        return SourceNotFoundError(source_id, provider=self.name)

    def _unavailable(self, message: str) -> CaptureError:
        return CaptureError(message, provider=self.name)

    async def __aenter__(self) -> CaptureProvider:
        """Async context manager entry -- opens the provider."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- closes the provider."""
        await self.close()


__all__ = ["CaptureProvider", "CaptureError", "SourceNotFoundError"]
