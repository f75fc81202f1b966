"""Controller configuration loaded from YAML."""

from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .errors import ConfigurationError
from .kubeconfig import build_kubeconfig
from .models import (
    AGENT_NAME_FILE,
    CLUSTER_NAME_FILE,
    CLUSTER_NAME_LABEL,
    KUBE_APISERVER_CLIENT_SIGNER,
    KUBECONFIG_FILE,
    CertificateSubject,
    ClientCertOptions,
    CSROptions,
)


class ControllerConfig(BaseModel):
    """Settings of a client certificate controller for one agent."""

    cluster_name: str = Field(description="Name of the managed cluster")
    agent_name: str = Field(description="Name of the agent on that cluster")
    secret_namespace: str = Field(description="Namespace of the hub kubeconfig secret")
    secret_name: str = Field(
        default="hub-kubeconfig-secret", description="Name of the hub kubeconfig secret"
    )
    signer_name: str = Field(default=KUBE_APISERVER_CLIENT_SIGNER)
    generate_name: Optional[str] = Field(
        default=None, description="Signing request name prefix (default: '<cluster>-')"
    )
    renewal_threshold_seconds: float = Field(default=0)
    rotation_fraction: Optional[float] = Field(default=None, gt=0, lt=1)
    resync_interval_seconds: float = Field(default=300, gt=0)
    reconcile_timeout_seconds: float = Field(default=60, gt=0)
    hub_server: Optional[str] = Field(
        default=None, description="Hub API server written into the kubeconfig field"
    )
    hub_ca_file: Optional[Path] = Field(default=None)
    additional_secret_data_sensitive: bool = Field(default=False)

    @property
    def renewal_threshold(self) -> timedelta:
        return timedelta(seconds=self.renewal_threshold_seconds)

    def subject(self) -> CertificateSubject:
        """Identity requested in every signing request."""
        return CertificateSubject.for_agent(self.cluster_name, self.agent_name)

    def csr_options(self) -> CSROptions:
        """Build the signing request options."""
        return CSROptions(
            generate_name=self.generate_name or f"{self.cluster_name}-",
            labels={CLUSTER_NAME_LABEL: self.cluster_name},
            subject=self.subject(),
            signer_name=self.signer_name,
        )

    def client_cert_options(self) -> ClientCertOptions:
        """Build the secret options, including the auxiliary identity data.

        Raises:
            ConfigurationError: If the hub CA file cannot be read
        """
        data = {
            CLUSTER_NAME_FILE: self.cluster_name.encode("utf-8"),
            AGENT_NAME_FILE: self.agent_name.encode("utf-8"),
        }
        if self.hub_server:
            ca_data = None
            if self.hub_ca_file is not None:
                try:
                    ca_data = self.hub_ca_file.read_bytes()
                except OSError as e:
                    raise ConfigurationError(
                        f"Failed to read hub CA file {self.hub_ca_file}: {e}"
                    ) from e
            data[KUBECONFIG_FILE] = build_kubeconfig(self.hub_server, ca_data)

        return ClientCertOptions(
            secret_namespace=self.secret_namespace,
            secret_name=self.secret_name,
            additional_secret_data=data,
            additional_secret_data_sensitive=self.additional_secret_data_sensitive,
        )

    @classmethod
    def from_config(cls, config_path: str | Path) -> "ControllerConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            ControllerConfig instance

        Raises:
            ConfigurationError: If config file cannot be loaded or parsed
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            return cls.model_validate(data)
        except Exception as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e

    def save(self, config_path: str | Path) -> None:
        """Save configuration to a YAML file.

        Args:
            config_path: Path to save YAML config
        """
        data = self.model_dump(mode="json", exclude_none=True)
        with open(Path(config_path), "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
