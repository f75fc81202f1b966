"""Shared fixtures for agent-clientcert tests."""

from datetime import timedelta

import pytest

from agent_clientcert.core.crypto import generate_private_key
from agent_clientcert.core.models import (
    AGENT_NAME_FILE,
    CLUSTER_NAME_FILE,
    CertificateSubject,
)
from agent_clientcert.issuer import LocalSigningAuthority

TEST_NAMESPACE = "testns"
TEST_SECRET_NAME = "testsecret"
TEST_CLUSTER_NAME = "testcluster"
TEST_AGENT_NAME = "testagent"

TEST_SUBJECT = CertificateSubject.for_agent(TEST_CLUSTER_NAME, TEST_AGENT_NAME)
TEST_ADDITIONAL_DATA = {
    CLUSTER_NAME_FILE: TEST_CLUSTER_NAME.encode(),
    AGENT_NAME_FILE: TEST_AGENT_NAME.encode(),
}


@pytest.fixture(scope="session")
def authority() -> LocalSigningAuthority:
    return LocalSigningAuthority(name="test-ca")


def new_test_cert(
    authority: LocalSigningAuthority,
    subject: CertificateSubject,
    lifetime: timedelta,
) -> tuple[bytes, bytes]:
    """Issue a certificate for a fresh key.

    Returns:
        Tuple of (certificate PEM, key PEM)
    """
    key = generate_private_key()
    return authority.issue(subject, key, lifetime=lifetime), key
