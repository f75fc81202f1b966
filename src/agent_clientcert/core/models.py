"""Core data models for agent-clientcert."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

# Well-known field names of the hub kubeconfig secret
TLS_KEY_FILE = "tls.key"
TLS_CERT_FILE = "tls.crt"
CLUSTER_NAME_FILE = "cluster-name"
AGENT_NAME_FILE = "agent-name"
KUBECONFIG_FILE = "kubeconfig"

SUBJECT_PREFIX = "system:open-cluster-management:"
CLUSTER_NAME_LABEL = "open-cluster-management.io/cluster-name"

KUBE_APISERVER_CLIENT_SIGNER = "kubernetes.io/kube-apiserver-client"
DEFAULT_USAGES = ("digital signature", "key encipherment", "client auth")


class CertificateSubject(BaseModel):
    """Distinguished name requested for the client certificate."""

    common_name: str = Field(description="Subject common name")
    organizations: list[str] = Field(
        default_factory=list, description="Subject organizations"
    )

    model_config = {"frozen": True}

    @classmethod
    def for_agent(cls, cluster_name: str, agent_name: str) -> "CertificateSubject":
        """Build the bootstrap identity of an agent.

        The common name is ``<prefix><cluster-name>:<agent-name>`` and the
        agent is placed in the group of its cluster.
        """
        return cls(
            common_name=f"{SUBJECT_PREFIX}{cluster_name}:{agent_name}",
            organizations=[f"{SUBJECT_PREFIX}{cluster_name}"],
        )


class CSROptions(BaseModel):
    """Options used to create certificate signing requests."""

    generate_name: str = Field(
        default="", description="Prefix used by the server to generate request names"
    )
    labels: dict[str, str] = Field(
        default_factory=dict, description="Labels set on each signing request"
    )
    subject: CertificateSubject = Field(description="Requested certificate subject")
    signer_name: str = Field(
        default=KUBE_APISERVER_CLIENT_SIGNER, description="Signer of the request"
    )
    usages: tuple[str, ...] = Field(
        default=DEFAULT_USAGES, description="Requested key usages"
    )

    model_config = {"frozen": True}


class ClientCertOptions(BaseModel):
    """Where the client certificate lives and what is stored alongside it."""

    secret_namespace: str = Field(description="Namespace of the secret")
    secret_name: str = Field(description="Name of the secret")
    additional_secret_data: dict[str, bytes] = Field(
        default_factory=dict,
        description="Auxiliary fields persisted with the certificate",
    )
    additional_secret_data_sensitive: bool = Field(
        default=False,
        description="Auxiliary fields contain secret material and are never logged",
    )

    model_config = {"frozen": True}


class CredentialBundle(BaseModel):
    """Contents of the secret holding the key, certificate and auxiliary data."""

    namespace: str
    name: str
    data: dict[str, bytes] = Field(default_factory=dict)
    version: Optional[str] = Field(
        default=None, description="Opaque version token, None if not yet stored"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict,
        exclude=True,
        repr=False,
        description="Object as returned by the store, kept for updates",
    )

    @property
    def private_key(self) -> Optional[bytes]:
        """PEM encoded private key, if present."""
        return self.data.get(TLS_KEY_FILE) or None

    @property
    def certificate(self) -> Optional[bytes]:
        """PEM encoded certificate chain, if present."""
        return self.data.get(TLS_CERT_FILE) or None

    def has_certificate(self) -> bool:
        """Check if both the key and the certificate are stored."""
        return self.private_key is not None and self.certificate is not None

    @property
    def exists(self) -> bool:
        """Whether the bundle was read from the store."""
        return self.version is not None


class ApprovalStatus(str, Enum):
    """Approval state of a signing request."""

    APPROVED = "approved"
    DENIED = "denied"
    PENDING = "pending"


class ApprovalResult(BaseModel):
    """Approval state of a signing request with the issued certificate."""

    status: ApprovalStatus
    certificate: Optional[bytes] = None


class ReconcileState(str, Enum):
    """State a reconcile pass ended in.

    Derived from the stored bundle and the runtime state on every pass,
    never persisted.
    """

    BOOTSTRAP = "bootstrap"
    VALID = "valid"
    NEEDS_RENEWAL = "needs_renewal"
    PENDING = "pending"
    APPROVED = "approved"


class ControllerRuntimeState(BaseModel):
    """In-memory state of an outstanding signing request."""

    pending_request_name: str = ""
    pending_private_key: Optional[bytes] = None

    @property
    def is_pending(self) -> bool:
        """Whether a submitted request has not been resolved yet."""
        return bool(self.pending_request_name)

    def clear(self) -> None:
        """Forget the outstanding request."""
        self.pending_request_name = ""
        self.pending_private_key = None
