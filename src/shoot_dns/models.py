"""Intent objects and plan operations for DNS reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

# Label key used to scope live-state queries to a management category.
ROLE_LABEL = "gardener.cloud/role"
ROLE_ADDITIONAL_PROVIDER = "managed-dns-provider"

# Provider type that opts a domain out of DNS management.
DNS_UNMANAGED = "unmanaged"

# =============================================================================
# Enums
# =============================================================================


class ResourceCategory(Enum):
    """Management category of a DNS provider.

    EXTERNAL: provider/entry pair for the cluster's external domain.
    INTERNAL: provider/entry pair for the cluster's internal domain.
    ADDITIONAL: extra providers declared by the cluster owner. Only these
                carry the marker label, so cleanup queries never see the
                built-in pair.
    """

    EXTERNAL = "external"
    INTERNAL = "internal"
    ADDITIONAL = "additional"

    @property
    def marker_labels(self) -> Dict[str, str]:
        if self is ResourceCategory.ADDITIONAL:
            return {ROLE_LABEL: ROLE_ADDITIONAL_PROVIDER}
        return {}


# =============================================================================
# Data Classes
# =============================================================================


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


@dataclass(frozen=True)
class IncludeExclude:
    """Domain or zone filter pair. Exclusion is applied downstream."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        object.__setattr__(self, "include", _dedupe(self.include or []))
        object.__setattr__(self, "exclude", list(self.exclude or []))

    def to_dict(self) -> Dict[str, List[str]]:
        return {"include": list(self.include), "exclude": list(self.exclude)}


@dataclass(frozen=True)
class ProviderSpec:
    """Declared DNS provider.

    A spec without provider type and secret data only carries identity and
    signals that the provider should be removed.
    """

    name: str
    purpose: str
    category: ResourceCategory
    provider_type: Optional[str] = None
    secret_data: Optional[Dict[str, bytes]] = None
    domains: IncludeExclude = field(default_factory=IncludeExclude)
    zones: IncludeExclude = field(default_factory=IncludeExclude)

    @classmethod
    def destroy_only(cls, name: str, category: ResourceCategory) -> "ProviderSpec":
        return cls(name=name, purpose=name, category=category)

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self.category.marker_labels)

    @property
    def is_destroy_only(self) -> bool:
        return self.provider_type is None and self.secret_data is None


@dataclass(frozen=True)
class EntrySpec:
    """Declared DNS record tied to the provider of the same category."""

    name: str
    dns_name: Optional[str] = None
    targets: List[str] = field(default_factory=list)
    ttl: Optional[int] = None


@dataclass(frozen=True)
class ManagedResourceRef:
    """Handle to a live resource, valid for one reconciliation pass."""

    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# Plan Operations
# =============================================================================


@dataclass(frozen=True)
class Create:
    """Deploy (or re-apply) the spec wholesale."""

    spec: ProviderSpec

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def action(self) -> str:
        return "deploy"


@dataclass(frozen=True)
class Destroy:
    """Remove the resource; the spec only carries identity."""

    spec: ProviderSpec

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def action(self) -> str:
        return "destroy"


Operation = Union[Create, Destroy]
ReconcilePlan = Dict[str, Operation]
