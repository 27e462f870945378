"""Base class for output channels."""

from abc import ABC, abstractmethod

from autorule.models.notification import OutputTask


class OutputChannel(ABC):
    """Abstract base class for output channels."""

    @property
    @abstractmethod
    def platform(self) -> str:
        """Return the output platform identifier."""
        pass

    @abstractmethod
    async def send(self, task: OutputTask) -> bool:
        """Deliver a run result.

        Args:
            task: Output task with destination and formatted message

        Returns:
            True if sent successfully
        """
        pass

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass
