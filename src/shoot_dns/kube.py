"""Kubernetes access for DNS intent objects and provider secrets."""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import urllib3
from kubernetes import client
from kubernetes.client import ApiException

from shoot_dns.errors import KubernetesAPIError, QueryError, SecretNotFoundError
from shoot_dns.models import ManagedResourceRef

logger = logging.getLogger(__name__)

FIELD_MANAGER = "shoot-dns"
APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"

# =============================================================================
# Resource Kinds
# =============================================================================


@dataclass(frozen=True)
class ResourceKind:
    """Coordinates of an API resource type."""

    kind: str
    plural: str
    group: str = ""
    version: str = "v1"

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def is_custom(self) -> bool:
        return bool(self.group)


DNS_GROUP = "dns.gardener.cloud"
DNS_VERSION = "v1alpha1"

DNS_PROVIDER = ResourceKind("DNSProvider", "dnsproviders", DNS_GROUP, DNS_VERSION)
DNS_ENTRY = ResourceKind("DNSEntry", "dnsentries", DNS_GROUP, DNS_VERSION)
SECRET = ResourceKind(kind="Secret", plural="secrets")


def format_label_selector(labels: Optional[Mapping[str, str]]) -> str:
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


# =============================================================================
# Client
# =============================================================================


class ResourceClient(ABC):
    """Label-scoped listing and bulk deletion of namespaced resources."""

    @abstractmethod
    def list(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> List[ManagedResourceRef]:
        pass

    @abstractmethod
    def delete_all_matching(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> None:
        pass


class KubernetesClient(ResourceClient):
    """DNS custom objects via CustomObjectsApi, provider secrets via CoreV1Api.

    The caller loads the client configuration (in-cluster or kubeconfig)
    before constructing this. Every ApiException or transport failure
    surfaces as KubernetesAPIError; failed list calls surface as QueryError.
    """

    def __init__(
        self,
        api_client: Optional[client.ApiClient] = None,
        *,
        timeout_seconds: float = 10.0,
        field_manager: str = FIELD_MANAGER,
    ):
        self.custom_objects = client.CustomObjectsApi(api_client)
        self.core = client.CoreV1Api(api_client)
        self._timeout = timeout_seconds
        self._field_manager = field_manager

    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, _request_timeout=self._timeout, **kwargs)
        except ApiException as e:
            raise KubernetesAPIError(
                f"{what} returned {e.status}: {e.reason}", status=e.status
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise KubernetesAPIError(f"{what} failed: {e}") from e

    def _call_ignoring_not_found(
        self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Any:
        try:
            return self._call(what, fn, *args, **kwargs)
        except KubernetesAPIError as e:
            if e.status == 404:
                return None
            raise

    @staticmethod
    def _require_custom(kind: ResourceKind) -> None:
        if not kind.is_custom:
            raise ValueError(f"{kind.kind} is not a custom resource")

    def list(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> List[ManagedResourceRef]:
        self._require_custom(kind)
        kwargs: Dict[str, Any] = {}
        selector = format_label_selector(label_selector)
        if selector:
            kwargs["label_selector"] = selector

        try:
            data = self._call(
                f"list {kind.plural} in '{namespace}'",
                self.custom_objects.list_namespaced_custom_object,
                kind.group,
                kind.version,
                namespace,
                kind.plural,
                **kwargs,
            )
        except KubernetesAPIError as e:
            raise QueryError(
                f"failed to list {kind.kind} in '{namespace}': {e}", status=e.status
            ) from e
        if not isinstance(data, dict):
            raise QueryError(
                f"failed to list {kind.kind} in '{namespace}': "
                f"unexpected response of type {type(data).__name__}"
            )

        refs: List[ManagedResourceRef] = []
        for item in data.get("items") or []:
            metadata = item.get("metadata") if isinstance(item, dict) else None
            if not isinstance(metadata, dict) or not metadata.get("name"):
                logger.warning(f"Skipping malformed {kind.kind} item: {item}")
                continue
            refs.append(
                ManagedResourceRef(
                    name=str(metadata["name"]),
                    namespace=str(metadata.get("namespace") or namespace),
                    labels=dict(metadata.get("labels") or {}),
                )
            )
        return refs

    def delete_all_matching(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._require_custom(kind)
        kwargs: Dict[str, Any] = {}
        selector = format_label_selector(label_selector)
        if selector:
            kwargs["label_selector"] = selector

        self._call_ignoring_not_found(
            f"delete {kind.plural} in '{namespace}'",
            self.custom_objects.delete_collection_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            **kwargs,
        )
        logger.info(f"Requested deletion of all {kind.kind} in '{namespace}'")

    def get(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        """Return the custom object, or None if it does not exist."""
        self._require_custom(kind)
        return self._call_ignoring_not_found(
            f"get {kind.kind} {namespace}/{name}",
            self.custom_objects.get_namespaced_custom_object,
            kind.group,
            kind.version,
            namespace,
            kind.plural,
            name,
        )

    def apply(self, kind: ResourceKind, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Server-side apply of a full manifest."""
        metadata = manifest["metadata"]
        namespace, name = metadata["namespace"], metadata["name"]
        what = f"apply {kind.kind} {namespace}/{name}"
        options = {
            "field_manager": self._field_manager,
            "force": True,
            "_content_type": APPLY_PATCH_CONTENT_TYPE,
        }
        if kind.is_custom:
            result = self._call(
                what,
                self.custom_objects.patch_namespaced_custom_object,
                kind.group,
                kind.version,
                namespace,
                kind.plural,
                name,
                manifest,
                **options,
            )
        elif kind == SECRET:
            result = self._call(
                what, self.core.patch_namespaced_secret, name, namespace, manifest, **options
            )
            result = self.core.api_client.sanitize_for_serialization(result)
        else:
            raise ValueError(f"applying {kind.kind} is not supported")
        logger.debug(f"Applied {kind.kind} {namespace}/{name}")
        return result

    def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        what = f"delete {kind.kind} {namespace}/{name}"
        if kind.is_custom:
            self._call_ignoring_not_found(
                what,
                self.custom_objects.delete_namespaced_custom_object,
                kind.group,
                kind.version,
                namespace,
                kind.plural,
                name,
            )
        elif kind == SECRET:
            self._call_ignoring_not_found(what, self.core.delete_namespaced_secret, name, namespace)
        else:
            raise ValueError(f"deleting {kind.kind} is not supported")
        logger.debug(f"Deleted {kind.kind} {namespace}/{name}")

    def get_secret(self, namespace: str, name: str) -> Dict[str, bytes]:
        secret = self._call_ignoring_not_found(
            f"get Secret {namespace}/{name}", self.core.read_namespaced_secret, name, namespace
        )
        if secret is None:
            raise SecretNotFoundError(namespace, name)

        data: Dict[str, bytes] = {}
        for key, value in (secret.data or {}).items():
            try:
                data[key] = base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise KubernetesAPIError(
                    f"secret {namespace}/{name} key '{key}' is not valid base64: {e}"
                ) from e
        return data
