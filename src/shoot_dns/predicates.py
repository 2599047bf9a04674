"""Decide which DNS categories a cluster needs."""

from __future__ import annotations

from shoot_dns.config import ClusterConfig
from shoot_dns.models import DNS_UNMANAGED

# Wildcard DNS service used for sandbox clusters; never managed.
WILDCARD_DNS_SUFFIX = ".nip.io"


def needs_external_dns(config: ClusterConfig) -> bool:
    """Return True if the cluster needs an external DNS provider and entry."""
    return (
        not config.disable_dns
        and config.dns is not None
        and bool(config.dns.domain)
        and bool(config.external_cluster_domain)
        and not config.external_cluster_domain.endswith(WILDCARD_DNS_SUFFIX)
        and config.external_domain is not None
        and config.external_domain.provider != DNS_UNMANAGED
    )


def needs_internal_dns(config: ClusterConfig) -> bool:
    """Return True if the cluster needs an internal DNS provider and entry."""
    return (
        not config.disable_dns
        and config.internal_domain is not None
        and config.internal_domain.provider != DNS_UNMANAGED
    )


def needs_additional_dns_providers(config: ClusterConfig) -> bool:
    return not config.disable_dns and config.dns is not None and len(config.dns.providers) > 0
