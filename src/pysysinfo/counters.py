"""Counter subscriptions for pysysinfo."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class CounterError(Exception):
    """The host counter subsystem could not be used."""


class CounterKeyError(KeyError):
    """A counter was queried that was never added to the session."""


@dataclass(slots=True, frozen=True)
class CounterKey:
    """Identifier of one subscribed counter."""

    unique_id: str
    path: str


class CounterSource(ABC):
    """Host-side counter subsystem."""

    @abstractmethod
    def subscribe(self, path: str) -> Hashable | None:
        """Resolve a counter path into a handle, or None if it does not exist."""

    @abstractmethod
    def collect(self) -> None:
        """Take one batch reading of every counter."""

    @abstractmethod
    def query(self, handle: Hashable) -> int:
        """Get the value of a counter from the last batch."""


@dataclass(slots=True)
class _Subscription:
    key: CounterKey
    handle: Hashable
    value: int = 0


class CounterQuery:
    """
    A session of counter subscriptions.

    Each added counter keeps its last raw value; ``refresh`` overwrites all of
    them from a single batch reading.
    """

    def __init__(self, source: CounterSource) -> None:
        self._source = source
        self._subscriptions: dict[str, _Subscription] = {}

    @classmethod
    def open(cls, source: CounterSource | None) -> "CounterQuery | None":
        """
        Open a session on a counter source.

        Returns:
            None if the host has no usable counter subsystem.
        """
        if source is None:
            logger.warning("Counter subsystem unavailable, CPU usage disabled")
            return None
        return cls(source)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, CounterKey):
            subscription = self._subscriptions.get(key.unique_id)
            return subscription is not None and subscription.key == key
        return False

    def add_counter(self, path: str, unique_id: str) -> CounterKey | None:
        """
        Subscribe to a counter under a logical id.

        Adding an id twice returns the existing key without subscribing again.

        Returns:
            The key of the counter, or None if the path could not be resolved.
        """
        existing = self._subscriptions.get(unique_id)
        if existing is not None:
            return existing.key
        try:
            handle = self._source.subscribe(path)
        except CounterError as exc:
            logger.warning("Failed to add counter %r: %s", path, exc)
            return None
        if handle is None:
            logger.warning("Failed to add counter %r: unknown path", path)
            return None
        key = CounterKey(unique_id=unique_id, path=path)
        self._subscriptions[unique_id] = _Subscription(key=key, handle=handle)
        logger.debug("Added counter %r as %r", path, unique_id)
        return key

    def refresh(self) -> None:
        """Read a fresh value for every subscribed counter."""
        self._source.collect()
        for subscription in self._subscriptions.values():
            subscription.value = self._source.query(subscription.handle)

    def get(self, key: CounterKey) -> int:
        """Get the last value read for a counter."""
        subscription = self._subscriptions.get(key.unique_id)
        if subscription is None or subscription.key != key:
            raise CounterKeyError(key.unique_id)
        return subscription.value
