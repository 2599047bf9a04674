"""Sequence deploy/destroy calls of DNS components.

A provider and its entry form a two-step pipeline whose order depends on the
direction: the provider has to exist before an entry references it, and the
entry has to be gone before its provider is removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event
from typing import Callable, Iterable, List, Optional

from shoot_dns.components import Component, ComponentFactory
from shoot_dns.errors import (
    ApplyError,
    PlanApplyError,
    ReconcileCancelled,
    TeardownTimeoutError,
)
from shoot_dns.kube import DNS_PROVIDER, ResourceClient
from shoot_dns.models import Create, EntrySpec, Operation, ProviderSpec, ReconcilePlan
from shoot_dns.waiter import check_cancelled, poll_until

logger = logging.getLogger(__name__)

# =============================================================================
# Pipelines
# =============================================================================


@dataclass(frozen=True)
class Step:
    resource: str
    action: str
    run: Callable[[Optional[Event]], None]

    def __str__(self) -> str:
        return f"{self.action} {self.resource}"


def deploy_step(component: Component, kind: str) -> Step:
    def run(stop_event: Optional[Event]) -> None:
        component.deploy(stop_event)
        component.wait(stop_event)

    return Step(resource=f"{kind} '{component.name}'", action="deploy", run=run)


def destroy_step(component: Component, kind: str) -> Step:
    def run(stop_event: Optional[Event]) -> None:
        component.destroy(stop_event)
        component.wait_cleanup(stop_event)

    return Step(resource=f"{kind} '{component.name}'", action="destroy", run=run)


class OrderedPipeline:
    """Steps executed strictly in order; a failing step skips all later ones."""

    def __init__(self, steps: Iterable[Step]):
        self.steps: List[Step] = list(steps)

    def run(self, stop_event: Optional[Event] = None) -> None:
        for step in self.steps:
            check_cancelled(stop_event)
            logger.debug(f"Running step: {step}")
            try:
                step.run(stop_event)
            except ReconcileCancelled:
                raise
            except Exception as e:
                raise ApplyError(step.resource, step.action, e) from e


def category_pipeline(provider: Component, entry: Component, active: bool) -> OrderedPipeline:
    """Provider then entry when deploying, entry then provider when destroying."""
    if active:
        return OrderedPipeline(
            [deploy_step(provider, "DNS provider"), deploy_step(entry, "DNS entry")]
        )
    return OrderedPipeline(
        [destroy_step(entry, "DNS entry"), destroy_step(provider, "DNS provider")]
    )


def operation_pipeline(operation: Operation, components: ComponentFactory) -> OrderedPipeline:
    provider = components.provider(operation.spec)
    if isinstance(operation, Create):
        return OrderedPipeline([deploy_step(provider, "DNS provider")])
    return OrderedPipeline([destroy_step(provider, "DNS provider")])


# =============================================================================
# Orchestrator
# =============================================================================


class LifecycleOrchestrator:
    def __init__(
        self,
        *,
        components: ComponentFactory,
        client: ResourceClient,
        teardown_interval: float = 5.0,
        teardown_timeout: float = 300.0,
    ):
        self.components = components
        self.client = client
        self.teardown_interval = teardown_interval
        self.teardown_timeout = teardown_timeout

    def deploy_category(
        self,
        provider_spec: ProviderSpec,
        entry_spec: EntrySpec,
        stop_event: Optional[Event] = None,
    ) -> None:
        """Deploy or destroy the provider/entry pair of a built-in category."""
        active = not provider_spec.is_destroy_only
        pipeline = category_pipeline(
            self.components.provider(provider_spec),
            self.components.entry(entry_spec),
            active,
        )
        direction = "Deploying" if active else "Destroying"
        logger.info(f"{direction} {provider_spec.category.value} DNS provider and entry")
        pipeline.run(stop_event)

    def apply_plan(self, plan: ReconcilePlan, stop_event: Optional[Event] = None) -> None:
        """Run every plan operation, continuing past failed siblings."""
        errors: List[ApplyError] = []
        for name, operation in plan.items():
            logger.info(f"DNS provider '{name}': {operation.action}")
            try:
                operation_pipeline(operation, self.components).run(stop_event)
            except ApplyError as e:
                logger.error(str(e))
                errors.append(e)
        if errors:
            raise PlanApplyError(errors)

    def delete_dns_providers(self, namespace: str, stop_event: Optional[Event] = None) -> None:
        """Delete all DNS providers in the namespace and wait until they are gone."""
        check_cancelled(stop_event)
        self.client.delete_all_matching(DNS_PROVIDER, namespace)

        remaining: List[str] = []

        def all_gone() -> bool:
            remaining[:] = [r.name for r in self.client.list(DNS_PROVIDER, namespace)]
            if remaining:
                logger.debug(f"Waiting for {len(remaining)} DNS provider(s) in '{namespace}'")
            return not remaining

        if not poll_until(
            all_gone,
            interval=self.teardown_interval,
            timeout=self.teardown_timeout,
            stop_event=stop_event,
        ):
            raise TeardownTimeoutError(namespace, self.teardown_timeout, sorted(remaining))
        logger.info(f"All DNS providers in '{namespace}' deleted")
