"""Tests for certificate validation and key handling."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from agent_clientcert.core.crypto import (
    generate_csr,
    generate_private_key,
    load_private_key,
)
from agent_clientcert.core.errors import (
    CertificateExpiredError,
    CertificateParseError,
    SubjectMismatchError,
)
from agent_clientcert.core.models import SUBJECT_PREFIX, CertificateSubject
from agent_clientcert.validator import (
    CertificateValidator,
    certificate_matches_key,
    get_validity_period,
    is_certificate_valid,
    validate_certificate,
)

from .conftest import TEST_SUBJECT, new_test_cert


def test_subject_for_agent():
    """Test the bootstrap identity of an agent."""
    subject = CertificateSubject.for_agent("clusterA", "agent1")
    assert subject.common_name == f"{SUBJECT_PREFIX}clusterA:agent1"
    assert subject.organizations == [f"{SUBJECT_PREFIX}clusterA"]


def test_generate_csr():
    """Test that a CSR carries the subject and is signed by the key."""
    key = generate_private_key()
    assert isinstance(load_private_key(key), ec.EllipticCurvePrivateKey)

    csr = x509.load_pem_x509_csr(generate_csr(key, TEST_SUBJECT))
    assert csr.is_signature_valid
    cn = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
    assert cn == TEST_SUBJECT.common_name
    org = csr.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value
    assert org == TEST_SUBJECT.organizations[0]


def test_valid_certificate(authority):
    """Test a certificate far from expiry with the expected subject."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(seconds=10000))
    assert is_certificate_valid(
        cert, TEST_SUBJECT, renewal_threshold=timedelta(seconds=10)
    )


def test_expired_certificate(authority):
    """Test that an expired certificate is invalid."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(seconds=-3))
    assert not is_certificate_valid(cert, TEST_SUBJECT)

    with pytest.raises(CertificateExpiredError):
        validate_certificate(cert, TEST_SUBJECT)


def test_certificate_within_renewal_threshold(authority):
    """Test that a certificate expiring within the threshold is invalid."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(seconds=2))

    assert not is_certificate_valid(
        cert, TEST_SUBJECT, renewal_threshold=timedelta(seconds=10)
    )
    # Without a threshold it is still usable
    assert is_certificate_valid(cert, TEST_SUBJECT)


def test_negative_threshold_means_until_expiry(authority):
    """Test that a negative threshold behaves like no threshold."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(seconds=100))
    assert is_certificate_valid(
        cert, TEST_SUBJECT, renewal_threshold=timedelta(seconds=-1000)
    )

    _, not_after = get_validity_period(cert)
    assert not is_certificate_valid(
        cert,
        TEST_SUBJECT,
        now=not_after,
        renewal_threshold=timedelta(seconds=-1000),
    )


def test_subject_mismatch(authority):
    """Test that only the common name is compared."""
    other = CertificateSubject(common_name="someone-else")
    cert, _ = new_test_cert(authority, other, timedelta(hours=1))

    assert not is_certificate_valid(cert, TEST_SUBJECT)
    with pytest.raises(SubjectMismatchError):
        validate_certificate(cert, TEST_SUBJECT)

    # Organizations are ignored
    same_cn = CertificateSubject(common_name=TEST_SUBJECT.common_name)
    cert, _ = new_test_cert(authority, same_cn, timedelta(hours=1))
    assert is_certificate_valid(cert, TEST_SUBJECT)


def test_no_subject_checks_expiry_only(authority):
    """Test validation without an expected subject."""
    cert, _ = new_test_cert(
        authority, CertificateSubject(common_name="any"), timedelta(hours=1)
    )
    assert is_certificate_valid(cert)


def test_unparsable_certificate():
    """Test that garbage is never valid."""
    assert not is_certificate_valid(b"not a certificate", TEST_SUBJECT)
    assert not is_certificate_valid(b"", TEST_SUBJECT)

    with pytest.raises(CertificateParseError):
        validate_certificate(b"not a certificate", TEST_SUBJECT)


def test_certificate_chain(authority):
    """Test a chain with the CA certificate appended."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(hours=1))
    chain = cert + authority.ca_certificate

    assert is_certificate_valid(chain, TEST_SUBJECT)

    # The earliest expiry of the chain counts
    not_before, not_after = get_validity_period(chain)
    assert not_after == get_validity_period(cert)[1]
    assert not_before <= datetime.now(timezone.utc)


def test_rotation_fraction(authority):
    """Test renewal once only a fraction of the lifetime is left."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(hours=10))
    not_before, not_after = get_validity_period(cert)

    early = not_before + timedelta(hours=1)
    late = not_after - timedelta(hours=1)

    assert is_certificate_valid(cert, TEST_SUBJECT, now=early, rotation_fraction=0.2)
    assert not is_certificate_valid(
        cert, TEST_SUBJECT, now=late, rotation_fraction=0.2
    )
    # Disabled by default
    assert is_certificate_valid(cert, TEST_SUBJECT, now=late)


def test_certificate_matches_key(authority):
    """Test matching a certificate against its private key."""
    cert, key = new_test_cert(authority, TEST_SUBJECT, timedelta(hours=1))

    assert certificate_matches_key(cert, key)
    assert not certificate_matches_key(cert, generate_private_key())
    assert not certificate_matches_key(b"garbage", key)
    assert not certificate_matches_key(cert, b"garbage")


def test_validator_clock(authority):
    """Test the validator class with an injected clock."""
    cert, _ = new_test_cert(authority, TEST_SUBJECT, timedelta(seconds=10000))
    _, not_after = get_validity_period(cert)

    now = datetime.now(timezone.utc)
    validator = CertificateValidator(
        subject=TEST_SUBJECT,
        renewal_threshold=timedelta(seconds=10),
        clock=lambda: now,
    )
    assert validator.is_valid(cert)

    now = not_after - timedelta(seconds=5)
    assert not validator.is_valid(cert)
    with pytest.raises(CertificateExpiredError):
        validator.validate_certificate(cert)


@pytest.mark.parametrize("fraction", [0, 1, 1.5, -0.2])
def test_validator_rejects_rotation_fraction_out_of_range(fraction):
    """Test that a rotation fraction outside (0, 1) is refused."""
    with pytest.raises(ValueError):
        CertificateValidator(subject=TEST_SUBJECT, rotation_fraction=fraction)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
