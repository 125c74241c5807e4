from abc import ABC, abstractmethod

from src.domain.events.domain_events import DomainEvent


class EventPublisher(ABC):
    """Port for announcing listing lifecycle events after the stores have changed."""

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        ...

    async def publish_many(self, events: list[DomainEvent]) -> None:
        """Publish in order; subclasses may batch."""
        for event in events:
            await self.publish(event)
