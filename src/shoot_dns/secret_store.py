from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict

from shoot_dns.kube import KubernetesClient


class SecretStore(ABC):
    """Source of provider credentials."""

    @abstractmethod
    def get_secret(self, namespace: str, name: str) -> Dict[str, bytes]:
        """Return the secret's data, raising SecretNotFoundError if absent."""
        pass


class KubernetesSecretStore(SecretStore):
    def __init__(self, client: KubernetesClient):
        self._client = client

    def get_secret(self, namespace: str, name: str) -> Dict[str, bytes]:
        return self._client.get_secret(namespace, name)
