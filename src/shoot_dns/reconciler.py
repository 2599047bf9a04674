from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event
from typing import List, Optional

from shoot_dns.components import ComponentFactory
from shoot_dns.config import ClusterConfig
from shoot_dns.desired import (
    additional_provider_specs,
    external_entry_spec,
    external_provider_spec,
    internal_entry_spec,
    internal_provider_spec,
)
from shoot_dns.errors import ApplyError, PlanApplyError
from shoot_dns.kube import ResourceClient
from shoot_dns.lifecycle import LifecycleOrchestrator
from shoot_dns.live import list_additional_providers
from shoot_dns.models import EntrySpec, Operation, ProviderSpec, ReconcilePlan
from shoot_dns.plan import category_operation, diff, summarize
from shoot_dns.secret_store import SecretStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DesiredState:
    """Everything one pass intends to do, computed before any mutation."""

    external_provider: ProviderSpec
    external_entry: EntrySpec
    internal_provider: ProviderSpec
    internal_entry: EntrySpec
    additional: ReconcilePlan

    @property
    def external(self) -> Operation:
        return category_operation(self.external_provider)

    @property
    def internal(self) -> Operation:
        return category_operation(self.internal_provider)


class DNSReconciler:
    """One-shot reconciliation of a cluster's DNS providers and entries."""

    def __init__(
        self,
        *,
        client: ResourceClient,
        secret_store: SecretStore,
        components: ComponentFactory,
        entry_ttl: Optional[int] = None,
        teardown_interval: float = 5.0,
        teardown_timeout: float = 300.0,
    ):
        self.client = client
        self.secret_store = secret_store
        self.entry_ttl = entry_ttl
        self.orchestrator = LifecycleOrchestrator(
            components=components,
            client=client,
            teardown_interval=teardown_interval,
            teardown_timeout=teardown_timeout,
        )

    def plan_additional_providers(self, config: ClusterConfig) -> ReconcilePlan:
        desired = additional_provider_specs(config, self.secret_store)
        live = list_additional_providers(self.client, config.namespace)
        return diff(desired, [ref.name for ref in live])

    def desired_state(self, config: ClusterConfig) -> DesiredState:
        external = external_provider_spec(config)
        internal = internal_provider_spec(config)
        return DesiredState(
            external_provider=external,
            external_entry=(
                EntrySpec(name=external.name)
                if external.is_destroy_only
                else external_entry_spec(config, self.entry_ttl)
            ),
            internal_provider=internal,
            internal_entry=(
                EntrySpec(name=internal.name)
                if internal.is_destroy_only
                else internal_entry_spec(config, self.entry_ttl)
            ),
            additional=self.plan_additional_providers(config),
        )

    def reconcile_once(
        self, config: ClusterConfig, stop_event: Optional[Event] = None
    ) -> DesiredState:
        """Drive the namespace toward the configured DNS resources.

        Configuration, secret and query errors abort the pass before any
        mutating call. Apply failures of one category do not stop the others;
        they are collected and raised as PlanApplyError at the end.
        """
        state = self.desired_state(config)
        logger.info(
            f"Reconciling DNS in '{config.namespace}': external={state.external.action}, "
            f"internal={state.internal.action}, additional: {summarize(state.additional)}"
        )

        errors: List[ApplyError] = []
        for provider, entry in (
            (state.external_provider, state.external_entry),
            (state.internal_provider, state.internal_entry),
        ):
            try:
                self.orchestrator.deploy_category(provider, entry, stop_event)
            except ApplyError as e:
                logger.error(str(e))
                errors.append(e)

        try:
            self.orchestrator.apply_plan(state.additional, stop_event)
        except PlanApplyError as e:
            errors.extend(e.errors)

        if errors:
            raise PlanApplyError(errors)

        logger.info(f"DNS reconciliation of '{config.namespace}' complete")
        return state

    def teardown(self, namespace: str, stop_event: Optional[Event] = None) -> None:
        """Delete every DNS provider in the namespace and wait for it."""
        logger.info(f"Tearing down all DNS providers in '{namespace}'")
        self.orchestrator.delete_dns_providers(namespace, stop_event)
