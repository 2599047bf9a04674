"""Shared in-memory collaborators for reconciler tests."""

import base64
from threading import Event
from typing import Dict, List, Mapping, Optional, Set, Tuple

import pytest

from shoot_dns.components import Component, ComponentFactory
from shoot_dns.config import ClusterConfig, DNSProviderDecl, DNSSpec, DomainConfig
from shoot_dns.errors import QueryError, SecretNotFoundError
from shoot_dns.kube import ResourceClient, ResourceKind
from shoot_dns.models import EntrySpec, ManagedResourceRef, ProviderSpec
from shoot_dns.secret_store import SecretStore
from shoot_dns.waiter import check_cancelled

# =============================================================================
# Mock Orchestration API
# =============================================================================


class MockResourceClient(ResourceClient):
    """In-memory namespaced resources with call tracking."""

    def __init__(self, items: Optional[List[ManagedResourceRef]] = None):
        self.items: List[ManagedResourceRef] = list(items or [])
        self.list_calls: List[Tuple[str, str, Dict[str, str]]] = []
        self.delete_all_calls: List[Tuple[str, str]] = []
        self.fail_list = False
        # Deletion only takes effect after this many list calls.
        self.lists_until_deleted = 0
        self._pending_delete = False

    def list(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> List[ManagedResourceRef]:
        selector = dict(label_selector or {})
        self.list_calls.append((kind.kind, namespace, selector))
        if self.fail_list:
            raise QueryError("connection refused")
        if self._pending_delete:
            if self.lists_until_deleted <= 0:
                self.items = []
                self._pending_delete = False
            else:
                self.lists_until_deleted -= 1
        return [
            r
            for r in self.items
            if r.namespace == namespace
            and all(r.labels.get(k) == v for k, v in selector.items())
        ]

    def delete_all_matching(
        self,
        kind: ResourceKind,
        namespace: str,
        label_selector: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.delete_all_calls.append((kind.kind, namespace))
        self._pending_delete = True


class MockSecretStore(SecretStore):
    def __init__(self, secrets: Optional[Dict[Tuple[str, str], Dict[str, bytes]]] = None):
        self.secrets = dict(secrets or {})
        self.get_calls: List[Tuple[str, str]] = []

    def get_secret(self, namespace: str, name: str) -> Dict[str, bytes]:
        self.get_calls.append((namespace, name))
        if (namespace, name) not in self.secrets:
            raise SecretNotFoundError(namespace, name)
        return self.secrets[(namespace, name)]


# =============================================================================
# Recording Components
# =============================================================================


class RecordingComponent(Component):
    def __init__(
        self,
        kind: str,
        component_name: str,
        log: List[Tuple[str, str]],
        failing: Set[str],
        stop_after: Optional[Tuple[str, Event]] = None,
    ):
        self._kind = kind
        self._name = component_name
        self._log = log
        self._failing = failing
        self._stop_after = stop_after

    @property
    def name(self) -> str:
        return self._name

    @property
    def key(self) -> str:
        return f"{self._kind}:{self._name}"

    def _record(self, action: str) -> None:
        self._log.append((action, self.key))
        if f"{action} {self.key}" in self._failing:
            raise RuntimeError(f"{action} {self.key} failed")
        if self._stop_after and self._stop_after[0] == f"{action} {self.key}":
            self._stop_after[1].set()

    def deploy(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._record("deploy")

    def destroy(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._record("destroy")

    def wait(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._record("wait")

    def wait_cleanup(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._record("wait_cleanup")


class RecordingComponentFactory(ComponentFactory):
    """Records every component call as (action, "kind:name")."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.failing: Set[str] = set()
        self.stop_after: Optional[Tuple[str, Event]] = None
        self.providers: Dict[str, ProviderSpec] = {}
        self.entries: Dict[str, EntrySpec] = {}

    def provider(self, spec: ProviderSpec) -> Component:
        self.providers[spec.name] = spec
        return RecordingComponent("provider", spec.name, self.calls, self.failing, self.stop_after)

    def entry(self, spec: EntrySpec) -> Component:
        self.entries[spec.name] = spec
        return RecordingComponent("entry", spec.name, self.calls, self.failing, self.stop_after)

    def actions(self, action: str) -> List[str]:
        return [key for a, key in self.calls if a == action]


# =============================================================================
# Test Helpers
# =============================================================================

NAMESPACE = "shoot--dev--web"
PROJECT_NAMESPACE = "garden-dev"


def make_domain(provider: str = "aws-route53", **kwargs) -> DomainConfig:
    kwargs.setdefault("secret_data", {"accessKeyID": b"AKIA"})
    return DomainConfig(provider=provider, **kwargs)


def make_config(
    *,
    disable_dns: bool = False,
    domain: Optional[str] = "web.dev.example.com",
    providers: Optional[List[DNSProviderDecl]] = None,
    external_domain: Optional[DomainConfig] = None,
    internal_domain: Optional[DomainConfig] = None,
    external_cluster_domain: Optional[str] = "web.dev.example.com",
    internal_cluster_domain: Optional[str] = "web.dev.internal.example.net",
    with_domains: bool = True,
) -> ClusterConfig:
    if with_domains:
        external_domain = external_domain or make_domain()
        internal_domain = internal_domain or make_domain()
    return ClusterConfig(
        namespace=NAMESPACE,
        project_namespace=PROJECT_NAMESPACE,
        disable_dns=disable_dns,
        dns=DNSSpec(domain=domain, providers=providers or []),
        external_domain=external_domain,
        internal_domain=internal_domain,
        external_cluster_domain=external_cluster_domain,
        internal_cluster_domain=internal_cluster_domain,
        api_server_address="10.0.0.10",
    )


def b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


@pytest.fixture
def resource_client() -> MockResourceClient:
    return MockResourceClient()


@pytest.fixture
def secret_store() -> MockSecretStore:
    return MockSecretStore(
        {
            (PROJECT_NAMESPACE, "route53-creds"): {"accessKeyID": b"AKIA"},
            (PROJECT_NAMESPACE, "cf-creds"): {"apiToken": b"cf"},
            (PROJECT_NAMESPACE, "gdns-creds"): {"serviceaccount.json": b"{}"},
        }
    )


@pytest.fixture
def components() -> RecordingComponentFactory:
    return RecordingComponentFactory()
