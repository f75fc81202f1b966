"""Credential stores holding the client certificate secret."""

from .base import SecretStore
from .kube import KubeSecretStore
from .memory import InMemorySecretStore

__all__ = ["SecretStore", "KubeSecretStore", "InMemorySecretStore"]
