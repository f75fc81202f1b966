"""Agent client certificate - CSR based provisioning and rotation of mTLS client certificates."""

from .controller import (
    ClientCertificateController,
    ControllerRunner,
    InMemoryRecorder,
    LoggingRecorder,
)
from .core import (
    CertificateSubject,
    ClientCertOptions,
    ControllerConfig,
    CredentialBundle,
    CSROptions,
    ReconcileState,
    generate_csr,
    generate_private_key,
)
from .csr import CSRControl, InMemoryCSRControl, KubeCSRControl
from .issuer import LocalSigningAuthority
from .store import InMemorySecretStore, KubeSecretStore, SecretStore
from .validator import CertificateValidator, is_certificate_valid

__version__ = "0.1.0"

__all__ = [
    # Controller
    "ClientCertificateController",
    "ControllerRunner",
    "InMemoryRecorder",
    "LoggingRecorder",
    # Core
    "CertificateSubject",
    "ClientCertOptions",
    "ControllerConfig",
    "CredentialBundle",
    "CSROptions",
    "ReconcileState",
    "generate_csr",
    "generate_private_key",
    # CSR
    "CSRControl",
    "InMemoryCSRControl",
    "KubeCSRControl",
    # Issuer
    "LocalSigningAuthority",
    # Store
    "InMemorySecretStore",
    "KubeSecretStore",
    "SecretStore",
    # Validator
    "CertificateValidator",
    "is_certificate_valid",
]
