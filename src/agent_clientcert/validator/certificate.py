"""Client certificate validation."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from ..core.crypto import load_private_key
from ..core.errors import (
    CertificateError,
    CertificateExpiredError,
    CertificateParseError,
    SubjectMismatchError,
)
from ..core.models import CertificateSubject

_LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_certificates(cert_pem: bytes) -> list[x509.Certificate]:
    """Parse a PEM encoded certificate chain.

    Raises:
        CertificateParseError: If the data holds no parsable certificate
    """
    try:
        certs = x509.load_pem_x509_certificates(cert_pem)
    except ValueError as e:
        raise CertificateParseError(f"Unable to parse certificate: {e}") from e
    if not certs:
        raise CertificateParseError("No certificate found")
    return certs


def common_name(cert: x509.Certificate) -> Optional[str]:
    """Return the subject common name of a certificate, if any."""
    attributes = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8")


def get_validity_period(cert_pem: bytes) -> tuple[datetime, datetime]:
    """Return the period in which every certificate of the chain is valid.

    Returns:
        Tuple of (latest not_before, earliest not_after)

    Raises:
        CertificateParseError: If the certificate cannot be parsed
    """
    certs = parse_certificates(cert_pem)
    not_before = max(cert.not_valid_before_utc for cert in certs)
    not_after = min(cert.not_valid_after_utc for cert in certs)
    return not_before, not_after


def certificate_matches_key(cert_pem: bytes, key_pem: bytes) -> bool:
    """Check if the leaf certificate was issued for a private key."""
    try:
        cert = parse_certificates(cert_pem)[0]
        private_key = load_private_key(key_pem)
    except (CertificateParseError, ValueError):
        return False
    public_format = serialization.PublicFormat.SubjectPublicKeyInfo
    return cert.public_key().public_bytes(
        serialization.Encoding.DER, public_format
    ) == private_key.public_key().public_bytes(serialization.Encoding.DER, public_format)


def validate_certificate(
    cert_pem: bytes,
    subject: Optional[CertificateSubject] = None,
    now: Optional[datetime] = None,
    renewal_threshold: timedelta = timedelta(0),
    rotation_fraction: Optional[float] = None,
) -> None:
    """Validate a client certificate chain.

    A negative or zero renewal threshold means the certificate is valid
    until it actually expires.

    Args:
        cert_pem: PEM encoded certificate chain
        subject: Expected subject, only the common name is compared
        now: Current time (default: now, UTC)
        renewal_threshold: Lead time before expiry at which the certificate
            is no longer accepted
        rotation_fraction: When set, the certificate is also rejected once
            its remaining lifetime drops to this fraction of its total lifetime

    Raises:
        CertificateParseError: If the certificate cannot be parsed
        CertificateExpiredError: If a certificate of the chain expires within
            the renewal threshold
        SubjectMismatchError: If no certificate carries the expected common name
    """
    if now is None:
        now = _utcnow()
    if renewal_threshold < timedelta(0):
        renewal_threshold = timedelta(0)

    certs = parse_certificates(cert_pem)

    # No certificate in the chain may be about to expire
    for cert in certs:
        not_after = cert.not_valid_after_utc
        if now + renewal_threshold >= not_after:
            raise CertificateExpiredError(
                f"Certificate expires at {not_after.isoformat()} "
                f"(renewal threshold {renewal_threshold})"
            )

    if rotation_fraction is not None:
        not_before, not_after = get_validity_period(cert_pem)
        total = (not_after - not_before).total_seconds()
        remaining = (not_after - now).total_seconds()
        if total <= 0 or remaining / total <= rotation_fraction:
            raise CertificateExpiredError(
                f"Certificate has {remaining:.0f}s of {total:.0f}s lifetime left"
            )

    if subject is None:
        return

    if not any(common_name(cert) == subject.common_name for cert in certs):
        raise SubjectMismatchError(
            f"No certificate with common name {subject.common_name!r}"
        )


def is_certificate_valid(
    cert_pem: bytes,
    subject: Optional[CertificateSubject] = None,
    now: Optional[datetime] = None,
    renewal_threshold: timedelta = timedelta(0),
    rotation_fraction: Optional[float] = None,
) -> bool:
    """Check if a client certificate is valid.

    Returns:
        True if the certificate is valid, False otherwise
    """
    try:
        validate_certificate(
            cert_pem,
            subject=subject,
            now=now,
            renewal_threshold=renewal_threshold,
            rotation_fraction=rotation_fraction,
        )
        return True
    except CertificateError as e:
        _LOGGER.debug("Certificate is not valid: %s", e)
        return False


class CertificateValidator:
    """Validates client certificates against an expected identity."""

    def __init__(
        self,
        subject: Optional[CertificateSubject] = None,
        renewal_threshold: timedelta = timedelta(0),
        rotation_fraction: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize validator.

        Args:
            subject: Expected subject
            renewal_threshold: Lead time before expiry that triggers renewal
            rotation_fraction: Optional share of lifetime left that triggers renewal
            clock: Returns the current time (default: UTC now)

        Raises:
            ValueError: If rotation_fraction is not between 0 and 1
        """
        if rotation_fraction is not None and not 0 < rotation_fraction < 1:
            raise ValueError(
                f"rotation_fraction must be between 0 and 1, got {rotation_fraction}"
            )
        self.subject = subject
        self.renewal_threshold = renewal_threshold
        self.rotation_fraction = rotation_fraction
        self._clock = clock or _utcnow

    def validate_certificate(self, cert_pem: bytes) -> None:
        """Validate a certificate, raising the reason it is not acceptable."""
        validate_certificate(
            cert_pem,
            subject=self.subject,
            now=self._clock(),
            renewal_threshold=self.renewal_threshold,
            rotation_fraction=self.rotation_fraction,
        )

    def is_valid(self, cert_pem: bytes) -> bool:
        """Check if a certificate is valid.

        Args:
            cert_pem: Certificate to check

        Returns:
            True if certificate is valid, False otherwise
        """
        return is_certificate_valid(
            cert_pem,
            subject=self.subject,
            now=self._clock(),
            renewal_threshold=self.renewal_threshold,
            rotation_fraction=self.rotation_fraction,
        )
