"""Client certificate controller.

The controller keeps the client certificate of an agent valid. Each call to
``reconcile`` runs one pass of the following state machine:

    - BOOTSTRAP: the secret or its certificate is missing.
    - VALID: the certificate passes validation and the auxiliary data
      matches the configured values. Nothing to do.
    - NEEDS_RENEWAL: the certificate expires within the renewal threshold,
      its subject is wrong or the auxiliary data changed.
    - PENDING: a signing request was submitted and is not resolved yet.
    - APPROVED: the request was approved and the certificate was written.

Submitting a request and collecting the issued certificate happen in
separate passes, so a pass never waits for the signing authority. The
outstanding request only lives in memory; after a restart the controller
classifies the secret again and submits a new request.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..core.config import ControllerConfig
from ..core.crypto import generate_csr, generate_private_key
from ..core.errors import (
    CertificateError,
    CertificateParseError,
    SecretNotFoundError,
    SigningRequestDeniedError,
    SigningRequestNotFoundError,
    StoreConflictError,
)
from ..core.models import (
    TLS_CERT_FILE,
    TLS_KEY_FILE,
    ApprovalStatus,
    ClientCertOptions,
    ControllerRuntimeState,
    CredentialBundle,
    CSROptions,
    ReconcileState,
)
from ..csr import CSRControl
from ..store import SecretStore
from ..validator import CertificateValidator, certificate_matches_key
from .events import EventRecorder, LoggingRecorder

_LOGGER = logging.getLogger(__name__)


class ClientCertificateController:
    """Provisions and rotates the client certificate stored in a secret."""

    def __init__(
        self,
        client_cert_options: ClientCertOptions,
        csr_options: CSROptions,
        csr_control: CSRControl,
        secret_store: SecretStore,
        recorder: Optional[EventRecorder] = None,
        renewal_threshold: timedelta = timedelta(0),
        rotation_fraction: Optional[float] = None,
        controller_name: str = "ClientCertController",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            client_cert_options: Secret location and auxiliary data
            csr_options: Subject, signer and metadata of signing requests
            csr_control: Submits and observes signing requests
            secret_store: Reads and writes the secret
            recorder: Receives events (default: log them)
            renewal_threshold: Lead time before expiry that triggers renewal
            rotation_fraction: Optional share of lifetime left that triggers renewal
            controller_name: Name used in events and logs
            clock: Returns the current time, for tests
        """
        self.client_cert_options = client_cert_options
        self.csr_options = csr_options
        self.csr_control = csr_control
        self.secret_store = secret_store
        self.recorder = recorder or LoggingRecorder(controller_name)
        self.controller_name = controller_name
        self.validator = CertificateValidator(
            subject=csr_options.subject,
            renewal_threshold=renewal_threshold,
            rotation_fraction=rotation_fraction,
            clock=clock,
        )
        self.state = ControllerRuntimeState()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: ControllerConfig,
        csr_control: CSRControl,
        secret_store: SecretStore,
        recorder: Optional[EventRecorder] = None,
    ) -> "ClientCertificateController":
        """Create a controller for the agent described by a configuration."""
        return cls(
            client_cert_options=config.client_cert_options(),
            csr_options=config.csr_options(),
            csr_control=csr_control,
            secret_store=secret_store,
            recorder=recorder,
            renewal_threshold=config.renewal_threshold,
            rotation_fraction=config.rotation_fraction,
            controller_name=f"{config.agent_name}-client-cert",
        )

    @property
    def secret_key(self) -> str:
        return (
            f"{self.client_cert_options.secret_namespace}/"
            f"{self.client_cert_options.secret_name}"
        )

    async def reconcile(self, key: Optional[str] = None) -> ReconcileState:
        """Run one reconcile pass.

        Args:
            key: What triggered the pass, used for logging only

        Returns:
            The state the pass ended in

        Raises:
            StoreError: If the secret cannot be read or written, including a
                second write conflict within the pass
            SigningRequestError: If a request cannot be created or queried,
                or was denied
            CertificateParseError: If the issued certificate is unusable
        """
        async with self._lock:
            _LOGGER.debug(
                "Reconciling client certificate %s (trigger %s)", self.secret_key, key
            )
            try:
                return await self._sync()
            except StoreConflictError as e:
                _LOGGER.warning("Retrying after write conflict: %s", e)
                return await self._sync()

    async def _read_bundle(self) -> CredentialBundle:
        options = self.client_cert_options
        try:
            return await self.secret_store.read(
                options.secret_namespace, options.secret_name
            )
        except SecretNotFoundError:
            _LOGGER.debug("Secret %s does not exist yet", self.secret_key)
            return CredentialBundle(
                namespace=options.secret_namespace, name=options.secret_name
            )

    async def _sync(self) -> ReconcileState:
        bundle = await self._read_bundle()

        if self.state.is_pending:
            state = await self._sync_pending(bundle)
            if state is not None:
                return state

        state = self.classify(bundle)
        if state == ReconcileState.VALID:
            _LOGGER.debug("Client certificate %s is valid", self.secret_key)
            return state

        await self._create_request(state)
        return ReconcileState.PENDING

    async def _sync_pending(
        self, bundle: CredentialBundle
    ) -> Optional[ReconcileState]:
        """Resolve the outstanding request.

        Returns None when the request disappeared and the secret has to be
        classified again.
        """
        name = self.state.pending_request_name
        try:
            approval = await self.csr_control.get_approval(name)
        except SigningRequestNotFoundError:
            _LOGGER.warning("Signing request %s is gone, starting over", name)
            self.state.clear()
            return None

        if approval.status == ApprovalStatus.PENDING:
            _LOGGER.debug("Signing request %s is not issued yet", name)
            return ReconcileState.PENDING

        if approval.status == ApprovalStatus.DENIED:
            self.state.clear()
            self._record_warning(
                "CSRDenied", f"The csr {name} for {self.controller_name} was denied"
            )
            raise SigningRequestDeniedError(f"Signing request {name} was denied")

        certificate = approval.certificate or b""
        key_data = self.state.pending_private_key or b""
        if not certificate_matches_key(certificate, key_data):
            self.state.clear()
            raise CertificateParseError(
                f"Certificate issued for {name} does not match the requested key"
            )

        await self._write_certificate(bundle, key_data, certificate)
        return ReconcileState.APPROVED

    async def _write_certificate(
        self, bundle: CredentialBundle, key_data: bytes, certificate: bytes
    ) -> None:
        data = dict(bundle.data)
        data[TLS_KEY_FILE] = key_data
        data[TLS_CERT_FILE] = certificate
        data.update(self.client_cert_options.additional_secret_data)

        await self.secret_store.write(bundle.model_copy(update={"data": data}))

        name = self.state.pending_request_name
        self.state.clear()
        _LOGGER.info("Stored client certificate from %s in %s", name, self.secret_key)
        self._record_event(
            "ClientCertificateCreated",
            f"A new client certificate for {self.controller_name} is available",
        )

    def classify(self, bundle: CredentialBundle) -> ReconcileState:
        """Decide whether the stored certificate has to be (re)issued."""
        if not bundle.has_certificate():
            return ReconcileState.BOOTSTRAP

        try:
            self.validator.validate_certificate(bundle.certificate or b"")
        except CertificateError as e:
            _LOGGER.info("Client certificate %s needs renewal: %s", self.secret_key, e)
            return ReconcileState.NEEDS_RENEWAL

        if self.additional_secret_data_changed(bundle):
            return ReconcileState.NEEDS_RENEWAL

        return ReconcileState.VALID

    def additional_secret_data_changed(self, bundle: CredentialBundle) -> bool:
        """Compare the stored auxiliary fields with the configured ones.

        Values of sensitive fields are never logged.
        """
        options = self.client_cert_options
        for key, value in options.additional_secret_data.items():
            stored = bundle.data.get(key)
            if stored == value:
                continue
            if options.additional_secret_data_sensitive:
                _LOGGER.info("Additional secret data %r changed", key)
            else:
                _LOGGER.info(
                    "Additional secret data %r changed from %r to %r",
                    key,
                    stored,
                    value,
                )
            return True
        return False

    async def _create_request(self, state: ReconcileState) -> None:
        key_data = generate_private_key()
        csr_data = generate_csr(key_data, self.csr_options.subject)
        name = await self.csr_control.create(self.csr_options, csr_data)

        self.state.pending_request_name = name
        self.state.pending_private_key = key_data
        _LOGGER.info(
            "Created signing request %s for %s (%s)", name, self.secret_key, state.value
        )
        self._record_event(
            "CSRCreated", f"A csr {name} is created for {self.controller_name}"
        )

    def _record_event(self, reason: str, message: str) -> None:
        try:
            self.recorder.event(reason, message)
        except Exception:
            _LOGGER.exception("Failed to record event %s", reason)

    def _record_warning(self, reason: str, message: str) -> None:
        try:
            self.recorder.warning(reason, message)
        except Exception:
            _LOGGER.exception("Failed to record event %s", reason)
