"""Exception hierarchy for agent-clientcert."""


class ClientCertError(Exception):
    """Base exception for all agent-clientcert errors."""

    pass


# Store errors
class StoreError(ClientCertError):
    """Base exception for credential store errors."""

    pass


class StoreUnavailableError(StoreError):
    """The credential store could not be reached or answered with an error."""

    pass


class StoreConflictError(StoreError):
    """A compare-and-swap write lost against a concurrent update."""

    pass


class SecretNotFoundError(StoreError):
    """The secret does not exist in the store."""

    pass


# Signing request errors
class SigningRequestError(ClientCertError):
    """Base exception for certificate signing request errors."""

    pass


class SigningRequestFailedError(SigningRequestError):
    """The signing request could not be submitted or queried."""

    pass


class SigningRequestNotFoundError(SigningRequestError):
    """The signing request no longer exists."""

    pass


class SigningRequestDeniedError(SigningRequestError):
    """The signing request was denied by the signing authority."""

    pass


# Certificate errors
class CertificateError(ClientCertError):
    """Base exception for certificate-related errors."""

    pass


class CertificateParseError(CertificateError):
    """Failed to parse certificate."""

    pass


class CertificateExpiredError(CertificateError):
    """Certificate has expired or is within the renewal threshold."""

    pass


class SubjectMismatchError(CertificateError):
    """Certificate subject does not match the expected identity."""

    pass


# Configuration errors
class ConfigurationError(ClientCertError):
    """Controller configuration could not be loaded or is invalid."""

    pass
