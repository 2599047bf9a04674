"""Render DNS intent specs into Kubernetes objects and apply them.

The reconciler only sequences calls to `Component` objects; it never looks at
what they create. `KubernetesComponentFactory` is the implementation used by
the CLI.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from threading import Event
from typing import Any, Dict, Optional

from shoot_dns.kube import DNS_ENTRY, DNS_PROVIDER, SECRET, KubernetesClient
from shoot_dns.models import EntrySpec, ProviderSpec
from shoot_dns.waiter import check_cancelled, poll_until

logger = logging.getLogger(__name__)

PURPOSE_ANNOTATION = "dns.gardener.cloud/purpose"
READY_STATE = "Ready"

# =============================================================================
# Component Interface
# =============================================================================


class Component(ABC):
    """A deployable unit produced from a provider or entry spec."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the component name for logging."""
        pass

    @abstractmethod
    def deploy(self, stop_event: Optional[Event] = None) -> None:
        pass

    @abstractmethod
    def destroy(self, stop_event: Optional[Event] = None) -> None:
        pass

    def wait(self, stop_event: Optional[Event] = None) -> None:
        """Block until a deployed component is ready. Default: no-op."""

    def wait_cleanup(self, stop_event: Optional[Event] = None) -> None:
        """Block until a destroyed component is gone. Default: no-op."""


class ComponentFactory(ABC):
    @abstractmethod
    def provider(self, spec: ProviderSpec) -> Component:
        pass

    @abstractmethod
    def entry(self, spec: EntrySpec) -> Component:
        pass


# =============================================================================
# Kubernetes Implementation
# =============================================================================


def provider_secret_name(provider_name: str) -> str:
    return f"dnsprovider-{provider_name}"


def render_provider_secret(spec: ProviderSpec, namespace: str) -> Dict[str, Any]:
    data = {
        key: base64.b64encode(value).decode("ascii")
        for key, value in sorted((spec.secret_data or {}).items())
    }
    return {
        "apiVersion": SECRET.api_version,
        "kind": SECRET.kind,
        "metadata": {
            "name": provider_secret_name(spec.name),
            "namespace": namespace,
            "labels": spec.labels,
        },
        "type": "Opaque",
        "data": data,
    }


def render_provider(spec: ProviderSpec, namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": DNS_PROVIDER.api_version,
        "kind": DNS_PROVIDER.kind,
        "metadata": {
            "name": spec.name,
            "namespace": namespace,
            "labels": spec.labels,
            "annotations": {PURPOSE_ANNOTATION: spec.purpose},
        },
        "spec": {
            "type": spec.provider_type,
            "secretRef": {"name": provider_secret_name(spec.name)},
            "domains": spec.domains.to_dict(),
            "zones": spec.zones.to_dict(),
        },
    }


def render_entry(spec: EntrySpec, namespace: str) -> Dict[str, Any]:
    entry_spec: Dict[str, Any] = {"dnsName": spec.dns_name, "targets": list(spec.targets)}
    if spec.ttl is not None:
        entry_spec["ttl"] = spec.ttl
    return {
        "apiVersion": DNS_ENTRY.api_version,
        "kind": DNS_ENTRY.kind,
        "metadata": {"name": spec.name, "namespace": namespace},
        "spec": entry_spec,
    }


class _KubernetesComponent(Component):
    def __init__(
        self,
        client: KubernetesClient,
        namespace: str,
        wait_interval: float,
        wait_timeout: float,
    ):
        self._client = client
        self._namespace = namespace
        self._wait_interval = wait_interval
        self._wait_timeout = wait_timeout

    def _poll(self, condition, what: str, stop_event: Optional[Event]) -> None:
        if not poll_until(
            condition,
            interval=self._wait_interval,
            timeout=self._wait_timeout,
            stop_event=stop_event,
        ):
            raise TimeoutError(f"{self.name} not {what} after {self._wait_timeout:g}s")

    def _is_ready(self, kind) -> bool:
        obj = self._client.get(kind, self._namespace, self.name)
        if obj is None:
            return False
        state = (obj.get("status") or {}).get("state", "")
        if state and state != READY_STATE:
            message = (obj.get("status") or {}).get("message", "")
            logger.debug(f"{kind.kind} '{self.name}' is in state {state}: {message}")
        return state == READY_STATE

    def _is_gone(self, kind) -> bool:
        return self._client.get(kind, self._namespace, self.name) is None


class DNSProviderComponent(_KubernetesComponent):
    def __init__(self, spec: ProviderSpec, *args: Any):
        super().__init__(*args)
        self._spec = spec

    @property
    def name(self) -> str:
        return self._spec.name

    def deploy(self, stop_event: Optional[Event] = None) -> None:
        if self._spec.is_destroy_only:
            raise ValueError(f"DNS provider '{self.name}' has no type or secret to deploy")
        check_cancelled(stop_event)
        self._client.apply(SECRET, render_provider_secret(self._spec, self._namespace))
        check_cancelled(stop_event)
        self._client.apply(DNS_PROVIDER, render_provider(self._spec, self._namespace))
        logger.info(f"Deployed DNS provider '{self.name}' ({self._spec.provider_type})")

    def destroy(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._client.delete(DNS_PROVIDER, self._namespace, self.name)
        check_cancelled(stop_event)
        self._client.delete(SECRET, self._namespace, provider_secret_name(self.name))
        logger.info(f"Deleted DNS provider '{self.name}'")

    def wait(self, stop_event: Optional[Event] = None) -> None:
        self._poll(lambda: self._is_ready(DNS_PROVIDER), "ready", stop_event)

    def wait_cleanup(self, stop_event: Optional[Event] = None) -> None:
        self._poll(lambda: self._is_gone(DNS_PROVIDER), "deleted", stop_event)


class DNSEntryComponent(_KubernetesComponent):
    def __init__(self, spec: EntrySpec, *args: Any):
        super().__init__(*args)
        self._spec = spec

    @property
    def name(self) -> str:
        return self._spec.name

    def deploy(self, stop_event: Optional[Event] = None) -> None:
        if not self._spec.dns_name:
            raise ValueError(f"DNS entry '{self.name}' has no DNS name")
        if not self._spec.targets:
            logger.warning(f"DNS entry '{self.name}' ({self._spec.dns_name}) has no targets yet")
        check_cancelled(stop_event)
        self._client.apply(DNS_ENTRY, render_entry(self._spec, self._namespace))
        logger.info(f"Deployed DNS entry '{self.name}' ({self._spec.dns_name})")

    def destroy(self, stop_event: Optional[Event] = None) -> None:
        check_cancelled(stop_event)
        self._client.delete(DNS_ENTRY, self._namespace, self.name)
        logger.info(f"Deleted DNS entry '{self.name}'")

    def wait(self, stop_event: Optional[Event] = None) -> None:
        # An entry without targets is never reported ready.
        if not self._spec.targets:
            return
        self._poll(lambda: self._is_ready(DNS_ENTRY), "ready", stop_event)

    def wait_cleanup(self, stop_event: Optional[Event] = None) -> None:
        self._poll(lambda: self._is_gone(DNS_ENTRY), "deleted", stop_event)


class KubernetesComponentFactory(ComponentFactory):
    def __init__(
        self,
        client: KubernetesClient,
        namespace: str,
        wait_interval: float = 5.0,
        wait_timeout: float = 120.0,
    ):
        self._args = (client, namespace, wait_interval, wait_timeout)

    def provider(self, spec: ProviderSpec) -> Component:
        return DNSProviderComponent(spec, *self._args)

    def entry(self, spec: EntrySpec) -> Component:
        return DNSEntryComponent(spec, *self._args)

