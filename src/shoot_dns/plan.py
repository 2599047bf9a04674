"""Pure decision functions turning desired and live state into operations.

Nothing in here performs I/O, so the whole diff can be tested without a
cluster.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from shoot_dns.models import (
    Create,
    Destroy,
    Operation,
    ProviderSpec,
    ReconcilePlan,
    ResourceCategory,
)


def category_operation(spec: ProviderSpec) -> Operation:
    """Create for a full spec, Destroy for a destroy-only spec."""
    if spec.is_destroy_only:
        return Destroy(spec)
    return Create(spec)


def diff(desired: Mapping[str, ProviderSpec], live: Iterable[str]) -> ReconcilePlan:
    """Compute the additional-provider plan.

    Every desired provider is (re-)applied wholesale, whether it exists or
    not. Providers that only exist live are destroyed. The plan is keyed by
    provider name in sorted order.
    """
    plan: ReconcilePlan = {}
    for name in sorted(desired):
        plan[name] = Create(desired[name])

    for name in sorted(set(live)):
        if name in plan:
            continue
        plan[name] = Destroy(ProviderSpec.destroy_only(name, ResourceCategory.ADDITIONAL))

    return dict(sorted(plan.items()))


def summarize(plan: ReconcilePlan) -> str:
    creates = sum(1 for op in plan.values() if isinstance(op, Create))
    destroys = len(plan) - creates
    return f"{creates} to apply, {destroys} to destroy"
