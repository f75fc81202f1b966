"""Client certificate validation."""

from .certificate import (
    CertificateValidator,
    certificate_matches_key,
    get_validity_period,
    is_certificate_valid,
    parse_certificates,
    validate_certificate,
)

__all__ = [
    "CertificateValidator",
    "certificate_matches_key",
    "get_validity_period",
    "is_certificate_valid",
    "parse_certificates",
    "validate_certificate",
]
