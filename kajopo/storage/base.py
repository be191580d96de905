"""Key-value storage interface and change notifications."""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..core.exceptions import StorageCorruptionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """Broadcast whenever a key is written or removed."""

    key: str
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]


class KeyValueStore(ABC):
    """Async string key-value store with JSON helpers.

    Every ``set`` and ``remove`` is broadcast to the listeners subscribed on
    this store instance. Writes are last-write-wins; there is no locking.
    """

    def __init__(self):
        self._listeners: List[StorageListener] = []

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under ``key``."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """Return every key starting with ``prefix``."""

    @abstractmethod
    async def _write(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def _delete(self, key: str) -> None:
        ...

    async def set(self, key: str, value: str) -> None:
        old_value = await self.get(key)
        await self._write(key, value)
        self._broadcast(StorageEvent(key=key, old_value=old_value, new_value=value))

    async def remove(self, key: str) -> bool:
        old_value = await self.get(key)
        if old_value is None:
            return False
        await self._delete(key)
        self._broadcast(StorageEvent(key=key, old_value=old_value, new_value=None))
        return True

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a JSON value, raising ``StorageCorruptionError`` on bad data."""
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StorageCorruptionError(
                f"Malformed JSON stored under '{key}'",
                details={"key": key},
            ) from exc

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value, default=str))

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def namespace(self, prefix: str) -> "NamespacedStore":
        return NamespacedStore(self, prefix)

    def _broadcast(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Storage listener failed for key %s", event.key)


class NamespacedStore(KeyValueStore):
    """View of a parent store where every key is prefixed with ``<prefix>:``."""

    def __init__(self, parent: KeyValueStore, prefix: str):
        super().__init__()
        self._parent = parent
        self._prefix = f"{prefix}:"

    @property
    def prefix(self) -> str:
        return self._prefix

    def _qualify(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self._parent.get(self._qualify(key))

    async def keys(self, prefix: str = "") -> List[str]:
        qualified = await self._parent.keys(self._qualify(prefix))
        return [key[len(self._prefix):] for key in qualified]

    async def _write(self, key: str, value: str) -> None:
        await self._parent.set(self._qualify(key), value)

    async def _delete(self, key: str) -> None:
        await self._parent.remove(self._qualify(key))
