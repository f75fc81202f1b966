"""In-process certificate authority that signs client certificate requests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID

from ..core.crypto import build_name, generate_private_key, load_private_key
from ..core.errors import CertificateParseError
from ..core.models import CertificateSubject


class LocalSigningAuthority:
    """Self-signed CA issuing client certificates for signing requests."""

    def __init__(
        self,
        name: str = "agent-clientcert-ca",
        validity: timedelta = timedelta(days=365),
        ca_validity: timedelta = timedelta(days=3650),
    ):
        """Initialize the authority with a fresh CA key and certificate.

        Args:
            name: Common name of the CA certificate
            validity: Default lifetime of issued certificates
            ca_validity: Lifetime of the CA certificate
        """
        self.name = name
        self.validity = validity
        self._key = load_private_key(generate_private_key())

        now = datetime.now(timezone.utc)
        ca_name = build_name(CertificateSubject(common_name=name))
        self._ca_cert = (
            x509.CertificateBuilder()
            .subject_name(ca_name)
            .issuer_name(ca_name)
            .public_key(self._key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + ca_validity)
            .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
            .sign(self._key, hashes.SHA256())
        )

    @property
    def ca_certificate(self) -> bytes:
        """PEM encoded CA certificate."""
        return self._ca_cert.public_bytes(serialization.Encoding.PEM)

    def sign_csr(
        self,
        csr_pem: bytes,
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
    ) -> bytes:
        """Issue a client certificate for a signing request.

        Args:
            csr_pem: PEM encoded certificate signing request
            not_before: Start of validity (default: now)
            not_after: End of validity (default: not_before + validity)

        Returns:
            PEM encoded certificate

        Raises:
            CertificateParseError: If the request is malformed or its
                signature does not verify
        """
        try:
            csr = x509.load_pem_x509_csr(csr_pem)
        except ValueError as e:
            raise CertificateParseError(f"Unable to parse signing request: {e}") from e
        if not csr.is_signature_valid:
            raise CertificateParseError("Signing request signature is invalid")

        return self._issue(csr.subject, csr.public_key(), not_before, not_after)

    def issue(
        self,
        subject: CertificateSubject,
        key_pem: bytes,
        lifetime: Optional[timedelta] = None,
        not_before: Optional[datetime] = None,
    ) -> bytes:
        """Issue a certificate directly for a private key.

        A negative lifetime yields an already expired certificate.
        """
        start = not_before or datetime.now(timezone.utc)
        end = start + (self.validity if lifetime is None else lifetime)
        if end <= start:
            start = end - timedelta(hours=1)
        public_key = load_private_key(key_pem).public_key()
        return self._issue(build_name(subject), public_key, start, end)

    def _issue(
        self,
        subject: x509.Name,
        public_key: ec.EllipticCurvePublicKey,
        not_before: Optional[datetime],
        not_after: Optional[datetime],
    ) -> bytes:
        not_before = not_before or datetime.now(timezone.utc)
        not_after = not_after or not_before + self.validity
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(self._ca_cert.subject)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False
            )
            .sign(self._key, hashes.SHA256())
        )
        return cert.public_bytes(serialization.Encoding.PEM)
