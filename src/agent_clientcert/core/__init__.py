"""Core functionality for agent-clientcert."""

from .config import ControllerConfig
from .crypto import (
    generate_csr,
    generate_private_key,
    load_private_key,
    public_key_pem,
)
from .errors import (
    ClientCertError,
    StoreError,
    StoreUnavailableError,
    StoreConflictError,
    SecretNotFoundError,
    SigningRequestError,
    SigningRequestFailedError,
    SigningRequestNotFoundError,
    SigningRequestDeniedError,
    CertificateError,
    CertificateParseError,
    CertificateExpiredError,
    SubjectMismatchError,
    ConfigurationError,
)
from .kubeconfig import build_kubeconfig, load_kubeconfig_server
from .models import (
    AGENT_NAME_FILE,
    CLUSTER_NAME_FILE,
    CLUSTER_NAME_LABEL,
    KUBECONFIG_FILE,
    SUBJECT_PREFIX,
    TLS_CERT_FILE,
    TLS_KEY_FILE,
    ApprovalResult,
    ApprovalStatus,
    CertificateSubject,
    ClientCertOptions,
    ControllerRuntimeState,
    CredentialBundle,
    CSROptions,
    ReconcileState,
)

__all__ = [
    # Config
    "ControllerConfig",
    # Crypto
    "generate_csr",
    "generate_private_key",
    "load_private_key",
    "public_key_pem",
    # Errors
    "ClientCertError",
    "StoreError",
    "StoreUnavailableError",
    "StoreConflictError",
    "SecretNotFoundError",
    "SigningRequestError",
    "SigningRequestFailedError",
    "SigningRequestNotFoundError",
    "SigningRequestDeniedError",
    "CertificateError",
    "CertificateParseError",
    "CertificateExpiredError",
    "SubjectMismatchError",
    "ConfigurationError",
    # Kubeconfig
    "build_kubeconfig",
    "load_kubeconfig_server",
    # Models
    "AGENT_NAME_FILE",
    "CLUSTER_NAME_FILE",
    "CLUSTER_NAME_LABEL",
    "KUBECONFIG_FILE",
    "SUBJECT_PREFIX",
    "TLS_CERT_FILE",
    "TLS_KEY_FILE",
    "ApprovalResult",
    "ApprovalStatus",
    "CertificateSubject",
    "ClientCertOptions",
    "ControllerRuntimeState",
    "CredentialBundle",
    "CSROptions",
    "ReconcileState",
]
