"""Credential store interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from ..core.models import CredentialBundle


class SecretStore(ABC):
    """Reads and atomically writes the secret holding a client certificate."""

    @abstractmethod
    async def read(self, namespace: str, name: str) -> CredentialBundle:
        """Read a secret.

        Returns:
            The bundle with the version token of the stored object

        Raises:
            SecretNotFoundError: If the secret does not exist
            StoreUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def write(self, bundle: CredentialBundle) -> CredentialBundle:
        """Compare-and-swap a secret against the version it was read at.

        A bundle without a version is created and must not exist yet.

        Returns:
            The bundle carrying its new version token

        Raises:
            StoreConflictError: If the stored version differs
            SecretNotFoundError: If the secret was removed meanwhile
            StoreUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def subscribe(self, namespace: str, name: str) -> AsyncIterator[str]:
        """Yield the version of the secret every time it changes."""
        if TYPE_CHECKING:
            yield ""
