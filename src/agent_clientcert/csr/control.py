"""Certificate signing request control interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Optional

from ..core.models import ApprovalResult, ApprovalStatus, CSROptions


class CSRControl(ABC):
    """Submits signing requests and observes their approval.

    Implementations hold no state about outstanding requests; the caller
    keeps the request name.
    """

    @abstractmethod
    async def create(self, options: CSROptions, csr_pem: bytes) -> str:
        """Submit a signing request.

        Args:
            options: Name prefix, labels and signer of the request
            csr_pem: PEM encoded certificate signing request

        Returns:
            Name of the created request

        Raises:
            SigningRequestFailedError: If the request could not be created
        """

    @abstractmethod
    async def approval_status(self, name: str) -> ApprovalStatus:
        """Query the approval state of a request.

        Raises:
            SigningRequestNotFoundError: If the request does not exist
            SigningRequestFailedError: If the query failed
        """

    @abstractmethod
    async def get_issued_certificate(self, name: str) -> Optional[bytes]:
        """Return the PEM encoded issued certificate, None while not issued.

        Raises:
            SigningRequestNotFoundError: If the request does not exist
            SigningRequestFailedError: If the query failed
        """

    @abstractmethod
    async def subscribe(self) -> AsyncIterator[str]:
        """Yield the name of a request every time its state changes."""
        if TYPE_CHECKING:
            yield ""

    async def is_approved(self, name: str) -> bool:
        """Check if a request is approved (and not denied)."""
        return await self.approval_status(name) == ApprovalStatus.APPROVED

    async def get_approval(self, name: str) -> ApprovalResult:
        """Query the approval state and, once approved, the issued certificate."""
        status = await self.approval_status(name)
        if status != ApprovalStatus.APPROVED:
            return ApprovalResult(status=status)
        certificate = await self.get_issued_certificate(name)
        if certificate is None:
            return ApprovalResult(status=ApprovalStatus.PENDING)
        return ApprovalResult(status=status, certificate=certificate)
