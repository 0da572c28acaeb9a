"""Base interface for event store backends."""
from abc import ABC, abstractmethod
from typing import Any, Sequence
from ..event_models import NewEvent, StoredEvent
from .query import EventFilter, GroupKey, Reducer, Sort, TIMESTAMP_DESC


class StoreError(Exception):
    """Raised when a store backend cannot complete an operation."""


class EventStore(ABC):
    """Abstract interface for append-only, time-indexed event storage."""

    @abstractmethod
    async def insert_one(self, event: NewEvent) -> StoredEvent:
        """
        Persist a single event.

        Args:
            event: The normalized event to store

        Returns:
            The stored event with its assigned ID

        Raises:
            StoreError: If the event could not be persisted
        """
        pass

    @abstractmethod
    async def insert_many(self, events: Sequence[NewEvent]) -> list[StoredEvent]:
        """
        Persist a batch of events.

        The batch is treated as all-or-nothing: any failure raises and no
        partial result is returned.

        Raises:
            StoreError: If the batch could not be persisted
        """
        pass

    @abstractmethod
    async def find(
        self,
        filter: EventFilter,
        sort: Sort | None = TIMESTAMP_DESC,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StoredEvent]:
        """Return one page of events matching ``filter``."""
        pass

    @abstractmethod
    async def count(self, filter: EventFilter) -> int:
        """Count events matching ``filter`` (same semantics as ``find``)."""
        pass

    @abstractmethod
    async def find_by_id(self, event_id: str) -> StoredEvent | None:
        """Look up an event by ID; returns None when absent."""
        pass

    @abstractmethod
    async def distinct(self, field: str) -> list[Any]:
        """Distinct values of ``field`` across the whole store."""
        pass

    @abstractmethod
    async def aggregate(
        self,
        match: EventFilter,
        group_by: GroupKey,
        reducers: dict[str, Reducer],
        sort: Sort | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Grouped aggregation over matching events.

        Returns:
            Rows with the group key under ``"key"`` and one entry per reducer
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
