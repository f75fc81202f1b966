"""In-memory credential store."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from typing import DefaultDict, Optional

from ..core.errors import SecretNotFoundError, StoreConflictError
from ..core.models import CredentialBundle
from .base import SecretStore

_LOGGER = logging.getLogger(__name__)

SecretKey = tuple[str, str]


class InMemorySecretStore(SecretStore):
    """Secret store kept in a dictionary.

    Every successful write bumps a global version counter, so versions are
    unique across secrets. Listeners are notified after each write.
    """

    def __init__(self) -> None:
        self._secrets: dict[SecretKey, CredentialBundle] = {}
        self._version = 0
        self._listeners: DefaultDict[SecretKey, list[Callable[[str], None]]] = (
            defaultdict(list)
        )
        self.reads = 0
        self.writes = 0

    def add(self, namespace: str, name: str, data: dict[str, bytes]) -> CredentialBundle:
        """Store a secret unconditionally, for seeding."""
        return self._store(
            CredentialBundle(namespace=namespace, name=name, data=dict(data))
        )

    def get(self, namespace: str, name: str) -> Optional[CredentialBundle]:
        """Return the stored secret without counting a read."""
        return self._secrets.get((namespace, name))

    def delete(self, namespace: str, name: str) -> None:
        self._secrets.pop((namespace, name), None)

    async def read(self, namespace: str, name: str) -> CredentialBundle:
        self.reads += 1
        bundle = self._secrets.get((namespace, name))
        if bundle is None:
            raise SecretNotFoundError(f"Secret {namespace}/{name} not found")
        return bundle.model_copy(deep=True)

    async def write(self, bundle: CredentialBundle) -> CredentialBundle:
        key = (bundle.namespace, bundle.name)
        existing = self._secrets.get(key)
        if bundle.version is None:
            if existing is not None:
                raise StoreConflictError(
                    f"Secret {bundle.namespace}/{bundle.name} already exists"
                )
        elif existing is None:
            raise SecretNotFoundError(
                f"Secret {bundle.namespace}/{bundle.name} not found"
            )
        elif existing.version != bundle.version:
            raise StoreConflictError(
                f"Secret {bundle.namespace}/{bundle.name} was modified "
                f"(version {existing.version}, expected {bundle.version})"
            )
        self.writes += 1
        return self._store(bundle).model_copy(deep=True)

    def _store(self, bundle: CredentialBundle) -> CredentialBundle:
        self._version += 1
        stored = bundle.model_copy(deep=True, update={"version": str(self._version)})
        key = (bundle.namespace, bundle.name)
        self._secrets[key] = stored
        _LOGGER.debug("Stored secret %s/%s at version %s", *key, stored.version)
        self._fire_event(key, stored.version)
        return stored

    def add_listener(
        self, namespace: str, name: str, callback: Callable[[str], None]
    ) -> Callable[[], None]:
        """Register a callback invoked with the new version of a secret.

        Returns a callable that removes the listener.
        """
        key = (namespace, name)

        def remove() -> None:
            if callback in self._listeners[key]:
                self._listeners[key].remove(callback)

        self._listeners[key].append(callback)
        return remove

    def _fire_event(self, key: SecretKey, version: Optional[str]) -> None:
        for cb in list(self._listeners[key]):
            try:
                cb(version or "")
            except Exception:
                _LOGGER.exception("Secret listener callback failed for %s/%s", *key)

    async def subscribe(self, namespace: str, name: str) -> AsyncIterator[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        remove_listener = self.add_listener(namespace, name, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            remove_listener()
