"""Reconnect backoff for stream connections."""

from dataclasses import dataclass


@dataclass
class ReconnectPolicy:
    """Delay law and attempt cap for reconnecting a stream.

    The MEXC client grows the delay as ``base_interval * decay ** attempt``
    with ``decay = 500``, which saturates at ``max_interval`` from the second
    attempt on. The growth factor is kept as-is and only clamped.
    """

    max_attempts: int = 5
    base_interval: float = 1.0  # seconds
    decay: float = 500.0
    max_interval: float = 5.0  # seconds

    def __post_init__(self):
        """Validate settings."""
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_interval < 0 or self.max_interval < 0:
            raise ValueError("intervals must be >= 0")
        if self.decay < 1:
            raise ValueError("decay must be >= 1")

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the reconnect that follows ``attempt`` prior tries.

        Args:
            attempt: Reconnect attempts made since the last successful open

        Returns:
            Delay in seconds, never above ``max_interval``
        """
        try:
            delay = self.base_interval * (self.decay ** attempt)
        except OverflowError:
            delay = self.max_interval

        return min(delay, self.max_interval)

    def should_reconnect(self, attempt: int) -> bool:
        """Check if another reconnect is allowed."""
        return attempt < self.max_attempts

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "max_attempts": self.max_attempts,
            "base_interval": self.base_interval,
            "decay": self.decay,
            "max_interval": self.max_interval,
        }

    @classmethod
    def from_settings(cls, settings) -> "ReconnectPolicy":
        """Build from ``ReconnectSettings``."""
        return cls(
            max_attempts=settings.max_attempts,
            base_interval=settings.base_interval,
            decay=settings.decay,
            max_interval=settings.max_interval,
        )
