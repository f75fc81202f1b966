"""In-memory signing requests resolved by a local signing authority."""

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Collection
from dataclasses import dataclass, field
from typing import Optional

from ..core.errors import (
    CertificateParseError,
    SigningRequestFailedError,
    SigningRequestNotFoundError,
)
from ..core.models import ApprovalStatus, CSROptions
from ..issuer import LocalSigningAuthority
from .control import CSRControl

_LOGGER = logging.getLogger(__name__)


@dataclass
class SigningRequest:
    """A submitted signing request."""

    name: str
    options: CSROptions
    request: bytes
    status: ApprovalStatus = ApprovalStatus.PENDING
    certificate: Optional[bytes] = None
    labels: dict[str, str] = field(default_factory=dict)


class InMemoryCSRControl(CSRControl):
    """Signing requests kept in memory.

    Requests stay pending until ``approve`` or ``deny`` is called, unless
    ``auto_approve`` is set. Approval issues the certificate right away
    unless ``issue_on_approve`` is False, in which case ``issue`` must be
    called separately.

    Requests are kept until ``delete`` or ``prune`` removes them, so a long
    running process should prune resolved requests once their certificate
    was collected.
    """

    def __init__(
        self,
        authority: Optional[LocalSigningAuthority] = None,
        auto_approve: bool = False,
        issue_on_approve: bool = True,
    ):
        self.authority = authority or LocalSigningAuthority()
        self.auto_approve = auto_approve
        self.issue_on_approve = issue_on_approve
        self.requests: dict[str, SigningRequest] = {}
        self.submissions = 0
        self.queries = 0
        self._counter = itertools.count(1)
        self._subscribers: list[asyncio.Queue[str]] = []

    async def create(self, options: CSROptions, csr_pem: bytes) -> str:
        if not csr_pem:
            raise SigningRequestFailedError("Empty signing request")
        name = f"{options.generate_name or 'csr-'}{next(self._counter):05d}"
        self.requests[name] = SigningRequest(
            name=name, options=options, request=csr_pem, labels=dict(options.labels)
        )
        self.submissions += 1
        _LOGGER.debug("Created signing request %s", name)
        if self.auto_approve:
            self.approve(name)
        else:
            self._notify(name)
        return name

    def _get(self, name: str) -> SigningRequest:
        if (request := self.requests.get(name)) is None:
            raise SigningRequestNotFoundError(f"Signing request {name} not found")
        return request

    def approve(self, name: str) -> None:
        """Approve a request and, unless deferred, issue its certificate."""
        request = self._get(name)
        request.status = ApprovalStatus.APPROVED
        if self.issue_on_approve:
            self.issue(name)
        else:
            self._notify(name)

    def issue(self, name: str, certificate: Optional[bytes] = None) -> None:
        """Attach the issued certificate to an approved request."""
        request = self._get(name)
        if certificate is None:
            try:
                certificate = self.authority.sign_csr(request.request)
            except CertificateParseError as e:
                raise SigningRequestFailedError(
                    f"Unable to sign request {name}: {e}"
                ) from e
        request.certificate = certificate
        self._notify(name)

    def deny(self, name: str) -> None:
        """Deny a request."""
        self._get(name).status = ApprovalStatus.DENIED
        self._notify(name)

    def delete(self, name: str) -> None:
        self.requests.pop(name, None)
        self._notify(name)

    def prune(self, keep: Collection[str] = ()) -> int:
        """Drop denied and issued requests.

        Args:
            keep: Names to retain, e.g. the request a controller still polls

        Returns:
            Number of requests removed
        """
        resolved = [
            name
            for name, request in self.requests.items()
            if name not in keep
            and (
                request.status == ApprovalStatus.DENIED
                or request.certificate is not None
            )
        ]
        for name in resolved:
            del self.requests[name]
        if resolved:
            _LOGGER.debug("Pruned %d resolved signing requests", len(resolved))
        return len(resolved)

    async def approval_status(self, name: str) -> ApprovalStatus:
        self.queries += 1
        return self._get(name).status

    async def get_issued_certificate(self, name: str) -> Optional[bytes]:
        self.queries += 1
        request = self._get(name)
        if request.status != ApprovalStatus.APPROVED:
            return None
        return request.certificate

    def _notify(self, name: str) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(name)

    async def subscribe(self) -> AsyncIterator[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)
