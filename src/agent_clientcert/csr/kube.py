"""Signing requests backed by Kubernetes CertificateSigningRequest objects."""

import base64
import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Optional

import httpx

from ..core.errors import SigningRequestFailedError, SigningRequestNotFoundError
from ..core.models import ApprovalStatus, CSROptions
from .control import CSRControl

_LOGGER = logging.getLogger(__name__)

CSR_PATH = "/apis/certificates.k8s.io/v1/certificatesigningrequests"


def approval_from_conditions(conditions: list[dict[str, Any]]) -> ApprovalStatus:
    """Derive the approval state from CertificateSigningRequest conditions.

    A denial or failure wins over an approval.
    """
    approved = False
    for condition in conditions:
        if condition.get("status", "True") != "True":
            continue
        if condition.get("type") in ("Denied", "Failed"):
            return ApprovalStatus.DENIED
        if condition.get("type") == "Approved":
            approved = True
    return ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING


class KubeCSRControl(CSRControl):
    """Creates and polls CertificateSigningRequests on a hub API server."""

    def __init__(
        self, http_client: httpx.AsyncClient, label_selector: Optional[str] = None
    ):
        """Initialize the control.

        Args:
            http_client: Client with the hub base URL and bootstrap credentials
            label_selector: Selector limiting the requests that are watched
        """
        self._http_client = http_client
        self._label_selector = label_selector

    async def _get(self, name: str) -> dict[str, Any]:
        try:
            response = await self._http_client.get(f"{CSR_PATH}/{name}")
        except httpx.HTTPError as e:
            raise SigningRequestFailedError(
                f"Failed to get signing request {name}: {e}"
            ) from e
        if response.status_code == httpx.codes.NOT_FOUND:
            raise SigningRequestNotFoundError(f"Signing request {name} not found")
        if response.is_error:
            raise SigningRequestFailedError(
                f"Failed to get signing request {name}: HTTP {response.status_code}"
            )
        return response.json()

    async def create(self, options: CSROptions, csr_pem: bytes) -> str:
        body = {
            "apiVersion": "certificates.k8s.io/v1",
            "kind": "CertificateSigningRequest",
            "metadata": {
                "generateName": options.generate_name,
                "labels": dict(options.labels),
            },
            "spec": {
                "request": base64.b64encode(csr_pem).decode("utf-8"),
                "signerName": options.signer_name,
                "usages": list(options.usages),
            },
        }
        try:
            response = await self._http_client.post(CSR_PATH, json=body)
        except httpx.HTTPError as e:
            raise SigningRequestFailedError(
                f"Failed to create signing request: {e}"
            ) from e
        if response.is_error:
            raise SigningRequestFailedError(
                f"Failed to create signing request: HTTP {response.status_code} "
                f"{response.text}"
            )
        name = response.json().get("metadata", {}).get("name")
        if not name:
            raise SigningRequestFailedError("Created signing request has no name")
        return name

    async def approval_status(self, name: str) -> ApprovalStatus:
        obj = await self._get(name)
        conditions = (obj.get("status") or {}).get("conditions") or []
        return approval_from_conditions(conditions)

    async def get_issued_certificate(self, name: str) -> Optional[bytes]:
        obj = await self._get(name)
        status = obj.get("status") or {}
        if approval_from_conditions(status.get("conditions") or []) != (
            ApprovalStatus.APPROVED
        ):
            return None
        if not (certificate := status.get("certificate")):
            return None
        return base64.b64decode(certificate)

    async def subscribe(self) -> AsyncIterator[str]:
        params = {"watch": "1"}
        if self._label_selector:
            params["labelSelector"] = self._label_selector
        try:
            async with self._http_client.stream(
                "GET", CSR_PATH, params=params, timeout=None
            ) as response:
                if response.is_error:
                    raise SigningRequestFailedError(
                        f"Watch of signing requests failed: HTTP {response.status_code}"
                    )
                async for line in response.aiter_lines():
                    if not line:
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as e:
                        raise SigningRequestFailedError(
                            f"Malformed signing request watch event: {e}"
                        ) from e
                    name = event.get("object", {}).get("metadata", {}).get("name")
                    if name:
                        yield name
        except httpx.HTTPError as e:
            raise SigningRequestFailedError(
                f"Watch of signing requests failed: {e}"
            ) from e
