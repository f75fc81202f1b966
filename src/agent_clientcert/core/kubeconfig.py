"""Hub kubeconfig stored next to the client certificate."""

import base64
from typing import Optional

import yaml

from .errors import ConfigurationError
from .models import TLS_CERT_FILE, TLS_KEY_FILE


def build_kubeconfig(
    server: str,
    ca_data: Optional[bytes] = None,
    cert_path: str = TLS_CERT_FILE,
    key_path: str = TLS_KEY_FILE,
    context: str = "default-context",
) -> bytes:
    """Build a kubeconfig that authenticates with the stored client certificate.

    The certificate and key are referenced by path so that the kubeconfig
    stays valid across rotations when the secret is mounted as files.

    Args:
        server: Hub API server URL
        ca_data: PEM encoded CA bundle of the hub, if any
        cert_path: Path of the client certificate file
        key_path: Path of the client key file
        context: Name of the cluster, user and context entries

    Returns:
        YAML encoded kubeconfig
    """
    cluster: dict = {"server": server}
    if ca_data:
        cluster["certificate-authority-data"] = base64.b64encode(ca_data).decode(
            "utf-8"
        )

    data = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": context, "cluster": cluster}],
        "users": [
            {
                "name": context,
                "user": {
                    "client-certificate": cert_path,
                    "client-key": key_path,
                },
            }
        ],
        "contexts": [
            {
                "name": context,
                "context": {"cluster": context, "user": context},
            }
        ],
        "current-context": context,
    }
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).encode(
        "utf-8"
    )


def load_kubeconfig_server(kubeconfig: bytes) -> str:
    """Read the server URL of the current context of a kubeconfig.

    Raises:
        ConfigurationError: If the kubeconfig cannot be parsed
    """
    try:
        data = yaml.safe_load(kubeconfig)
        current = data["current-context"]
        context = next(c for c in data["contexts"] if c["name"] == current)
        cluster_name = context["context"]["cluster"]
        cluster = next(c for c in data["clusters"] if c["name"] == cluster_name)
        return cluster["cluster"]["server"]
    except (yaml.YAMLError, KeyError, TypeError, StopIteration) as e:
        raise ConfigurationError(f"Invalid kubeconfig: {e}") from e
