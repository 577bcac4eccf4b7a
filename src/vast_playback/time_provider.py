"""
Time Provider Abstraction

Provides a pluggable time source so the simulated media player can run
against wall-clock time in production and virtual time in tests.
"""

import asyncio
import time
from abc import ABC, abstractmethod

from .log_config import LogCategory, get_context_logger


class TimeProvider(ABC):
    """
    Abstract base class for time providers.

    Subclasses implement time retrieval and sleep operations.
    """

    @abstractmethod
    def current_time(self) -> float:
        """Get current time (Unix timestamp for real, virtual time for simulated)."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Sleep for specified duration.

        Args:
            seconds: Duration to sleep (wall-clock for real, virtual for simulated)
        """

    def elapsed_time(self, start_time: float) -> float:
        """Calculate elapsed time since ``start_time``."""
        return self.current_time() - start_time

    @abstractmethod
    def get_mode(self) -> str:
        """Get time provider mode identifier."""


class RealtimeTimeProvider(TimeProvider):
    """
    Real-time time provider using wall-clock time.

    Examples:
        >>> provider = RealtimeTimeProvider()
        >>> start = provider.current_time()
        >>> await provider.sleep(0.1)
    """

    def current_time(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def get_mode(self) -> str:
        return "realtime"


class SimulatedTimeProvider(TimeProvider):
    """
    Simulated time provider for deterministic playback.

    Virtual time advances only through ``sleep`` (scaled by ``speed``) or
    ``set_virtual_time``.

    Examples:
        >>> provider = SimulatedTimeProvider(speed=2.0)
        >>> await provider.sleep(1.0)  # Virtual time advances 2 seconds
        >>> provider.current_time()
        2.0
    """

    def __init__(self, speed: float = 1.0, initial_time: float = 0.0):
        """
        Args:
            speed: Speed multiplier for virtual time (1.0 = normal)
            initial_time: Starting virtual time

        Raises:
            ValueError: If speed <= 0
        """
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")

        self.speed = speed
        self.virtual_time = initial_time
        self.logger = get_context_logger("simulated_time_provider", LogCategory.VIDEO)
        self.logger.debug(
            "Simulated time provider initialized",
            speed=self.speed,
            initial_time=self.virtual_time,
        )

    def current_time(self) -> float:
        return self.virtual_time

    async def sleep(self, seconds: float) -> None:
        self.virtual_time += seconds * self.speed
        # Yield control to allow event loop to process other tasks
        await asyncio.sleep(0)

    def get_mode(self) -> str:
        return "simulated"

    def set_virtual_time(self, virtual_time: float) -> None:
        self.virtual_time = virtual_time

    def set_speed(self, speed: float) -> None:
        """Change simulation speed.

        Raises:
            ValueError: If speed <= 0
        """
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        self.speed = speed


def create_time_provider(mode: str = "real", **kwargs) -> TimeProvider:
    """
    Factory function to create a time provider.

    Args:
        mode: 'real' or 'simulated'
        **kwargs: Passed to SimulatedTimeProvider

    Examples:
        >>> provider = create_time_provider("simulated", speed=0.5)
    """
    if mode == "simulated":
        return SimulatedTimeProvider(**kwargs)
    return RealtimeTimeProvider()


__all__ = [
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "create_time_provider",
]
