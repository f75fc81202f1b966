"""Credential store backed by Kubernetes secrets."""

import base64
import copy
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..core.errors import (
    SecretNotFoundError,
    StoreConflictError,
    StoreUnavailableError,
)
from ..core.models import CredentialBundle
from .base import SecretStore

_LOGGER = logging.getLogger(__name__)


def secret_to_bundle(obj: dict[str, Any]) -> CredentialBundle:
    """Convert a core/v1 Secret object into a bundle."""
    metadata = obj.get("metadata", {})
    return CredentialBundle(
        namespace=metadata.get("namespace", ""),
        name=metadata.get("name", ""),
        data={k: base64.b64decode(v) for k, v in (obj.get("data") or {}).items()},
        version=metadata.get("resourceVersion"),
        raw=obj,
    )


def bundle_to_secret(bundle: CredentialBundle) -> dict[str, Any]:
    """Convert a bundle into a core/v1 Secret object.

    A bundle that was read from the API server keeps its object, so type,
    labels, annotations and owner references survive the update. Only
    ``data`` and the version are replaced.
    """
    secret = copy.deepcopy(bundle.raw)
    secret.setdefault("apiVersion", "v1")
    secret.setdefault("kind", "Secret")
    secret.setdefault("type", "Opaque")
    secret.pop("stringData", None)

    metadata = secret.setdefault("metadata", {})
    metadata["namespace"] = bundle.namespace
    metadata["name"] = bundle.name
    if bundle.version is not None:
        metadata["resourceVersion"] = bundle.version
    else:
        metadata.pop("resourceVersion", None)

    secret["data"] = {
        k: base64.b64encode(v).decode("utf-8") for k, v in bundle.data.items()
    }
    return secret


class KubeSecretStore(SecretStore):
    """Reads and writes secrets through the Kubernetes API.

    Compare-and-swap relies on ``metadata.resourceVersion``: the API server
    rejects an update carrying a stale version with HTTP 409.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        """Initialize the store.

        Args:
            http_client: Client with the API server base URL and credentials
        """
        self._http_client = http_client

    @staticmethod
    def _collection(namespace: str) -> str:
        return f"/api/v1/namespaces/{namespace}/secrets"

    async def _request(
        self, method: str, url: str, resource: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self._http_client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"{method} secret {resource} failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            raise SecretNotFoundError(f"Secret {resource} not found")
        if response.status_code == httpx.codes.CONFLICT:
            raise StoreConflictError(f"Secret {resource} was modified concurrently")
        if response.is_error:
            raise StoreUnavailableError(
                f"{method} secret {resource} failed: HTTP {response.status_code}"
            )
        return response

    async def read(self, namespace: str, name: str) -> CredentialBundle:
        response = await self._request(
            "GET", f"{self._collection(namespace)}/{name}", f"{namespace}/{name}"
        )
        return secret_to_bundle(response.json())

    async def write(self, bundle: CredentialBundle) -> CredentialBundle:
        resource = f"{bundle.namespace}/{bundle.name}"
        body = bundle_to_secret(bundle)
        if bundle.version is None:
            _LOGGER.debug("Creating secret %s", resource)
            response = await self._request(
                "POST", self._collection(bundle.namespace), resource, json=body
            )
        else:
            _LOGGER.debug("Updating secret %s at version %s", resource, bundle.version)
            response = await self._request(
                "PUT",
                f"{self._collection(bundle.namespace)}/{bundle.name}",
                resource,
                json=body,
            )
        return secret_to_bundle(response.json())

    async def subscribe(self, namespace: str, name: str) -> AsyncIterator[str]:
        params = {"watch": "1", "fieldSelector": f"metadata.name={name}"}
        try:
            async with self._http_client.stream(
                "GET", self._collection(namespace), params=params, timeout=None
            ) as response:
                if response.is_error:
                    raise StoreUnavailableError(
                        f"Watch of secret {namespace}/{name} failed: "
                        f"HTTP {response.status_code}"
                    )
                async for line in response.aiter_lines():
                    if not line:
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as e:
                        raise StoreUnavailableError(
                            f"Malformed watch event for secret {namespace}/{name}: {e}"
                        ) from e
                    obj = event.get("object", {})
                    yield obj.get("metadata", {}).get("resourceVersion", "")
        except httpx.HTTPError as e:
            raise StoreUnavailableError(
                f"Watch of secret {namespace}/{name} failed: {e}"
            ) from e
