"""Build the desired DNS provider and entry specs for a cluster."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from shoot_dns.config import ClusterConfig
from shoot_dns.errors import ConfigurationError, DNSReconcileError, SecretResolutionError
from shoot_dns.models import (
    DNS_UNMANAGED,
    EntrySpec,
    IncludeExclude,
    ProviderSpec,
    ResourceCategory,
)
from shoot_dns.naming import generate_provider_name
from shoot_dns.predicates import (
    needs_additional_dns_providers,
    needs_external_dns,
    needs_internal_dns,
)
from shoot_dns.secret_store import SecretStore

logger = logging.getLogger(__name__)

DNS_EXTERNAL_NAME = ResourceCategory.EXTERNAL.value
DNS_INTERNAL_NAME = ResourceCategory.INTERNAL.value

# Prefix of the record pointing at the cluster's API server.
API_RECORD_PREFIX = "api."

# =============================================================================
# External / Internal Providers
# =============================================================================


def external_provider_spec(config: ClusterConfig) -> ProviderSpec:
    """Return the external provider, or a destroy-only spec if it is not needed."""
    if not needs_external_dns(config):
        return ProviderSpec.destroy_only(DNS_EXTERNAL_NAME, ResourceCategory.EXTERNAL)

    domain = config.external_domain
    return ProviderSpec(
        name=DNS_EXTERNAL_NAME,
        purpose=DNS_EXTERNAL_NAME,
        category=ResourceCategory.EXTERNAL,
        provider_type=domain.provider,
        secret_data=dict(domain.secret_data),
        domains=IncludeExclude(
            include=sorted(set(domain.include_domains) | {config.external_cluster_domain}),
            exclude=domain.exclude_domains,
        ),
        zones=IncludeExclude(include=domain.include_zones, exclude=domain.exclude_zones),
    )


def internal_provider_spec(config: ClusterConfig) -> ProviderSpec:
    """Return the internal provider, or a destroy-only spec if it is not needed."""
    if not needs_internal_dns(config):
        return ProviderSpec.destroy_only(DNS_INTERNAL_NAME, ResourceCategory.INTERNAL)

    if not config.internal_cluster_domain:
        raise ConfigurationError("internal domain is configured but the cluster has none")

    domain = config.internal_domain
    return ProviderSpec(
        name=DNS_INTERNAL_NAME,
        purpose=DNS_INTERNAL_NAME,
        category=ResourceCategory.INTERNAL,
        provider_type=domain.provider,
        secret_data=dict(domain.secret_data),
        domains=IncludeExclude(include=[config.internal_cluster_domain]),
        zones=IncludeExclude(include=domain.include_zones, exclude=domain.exclude_zones),
    )


# =============================================================================
# Entries
# =============================================================================


def _entry_spec(
    name: str, cluster_domain: Optional[str], config: ClusterConfig, ttl: Optional[int]
) -> EntrySpec:
    targets = [config.api_server_address] if config.api_server_address else []
    dns_name = f"{API_RECORD_PREFIX}{cluster_domain}" if cluster_domain else None
    return EntrySpec(name=name, dns_name=dns_name, targets=targets, ttl=ttl)


def external_entry_spec(config: ClusterConfig, ttl: Optional[int] = None) -> EntrySpec:
    return _entry_spec(DNS_EXTERNAL_NAME, config.external_cluster_domain, config, ttl)


def internal_entry_spec(config: ClusterConfig, ttl: Optional[int] = None) -> EntrySpec:
    return _entry_spec(DNS_INTERNAL_NAME, config.internal_cluster_domain, config, ttl)


# =============================================================================
# Additional Providers
# =============================================================================


def additional_provider_specs(
    config: ClusterConfig, secret_store: SecretStore
) -> Dict[str, ProviderSpec]:
    """Return the additional (non-primary) providers keyed by provider name.

    Providers are processed in declaration order. A provider without type or
    secret name aborts the whole computation, as does a secret that cannot be
    fetched. Providers of type "unmanaged" are skipped.
    """
    specs: Dict[str, ProviderSpec] = {}
    if not needs_additional_dns_providers(config):
        return specs

    for i, provider in enumerate(config.dns.providers):
        if provider.primary:
            continue

        if not provider.type:
            raise ConfigurationError("doesn't specify a type", index=i)

        if provider.type == DNS_UNMANAGED:
            logger.info(
                f"Skipping deployment of DNS provider[{i}] "
                f"since it specifies type '{DNS_UNMANAGED}'"
            )
            continue

        if not provider.secret_name:
            raise ConfigurationError("doesn't specify a secretName", index=i)

        try:
            secret_data = secret_store.get_secret(config.project_namespace, provider.secret_name)
        except DNSReconcileError as e:
            raise SecretResolutionError(provider.secret_name, e) from e

        name = generate_provider_name(provider.secret_name, provider.type)
        specs[name] = ProviderSpec(
            name=name,
            purpose=name,
            category=ResourceCategory.ADDITIONAL,
            provider_type=provider.type,
            secret_data=secret_data,
            domains=provider.domains or IncludeExclude(),
            zones=provider.zones or IncludeExclude(),
        )
        logger.debug(f"Desired additional DNS provider '{name}' (provider[{i}])")

    return specs
