"""Cluster configuration snapshot.

The snapshot is a read-only view of everything a reconciliation pass needs to
know about one cluster. It is loaded from a YAML document such as:

    namespace: shoot--dev--web
    projectNamespace: garden-dev
    disableDNS: false
    externalClusterDomain: web.dev.example.com
    internalClusterDomain: web.dev.internal.example.net
    apiServerAddress: 10.0.0.10
    dns:
      domain: web.dev.example.com
      providers:
        - type: aws-route53
          secretName: route53-creds
          primary: true
        - type: cloudflare-dns
          secretName: cf-creds
          domains:
            include: ["apps.example.org"]
    externalDomain:
      provider: aws-route53
      secretData:
        accessKeyID: <base64>
      includeDomains: []
      excludeZones: []
    internalDomain:
      provider: aws-route53
      secretData: {...}
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from shoot_dns.errors import ConfigurationError
from shoot_dns.models import IncludeExclude

logger = logging.getLogger(__name__)

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class DNSProviderDecl:
    """A provider entry of the cluster's DNS specification."""

    type: Optional[str] = None
    secret_name: Optional[str] = None
    primary: bool = False
    domains: Optional[IncludeExclude] = None
    zones: Optional[IncludeExclude] = None


@dataclass(frozen=True)
class DNSSpec:
    domain: Optional[str] = None
    providers: List[DNSProviderDecl] = field(default_factory=list)


@dataclass(frozen=True)
class DomainConfig:
    """Default domain of the landscape (external or internal)."""

    provider: str
    secret_data: Dict[str, bytes] = field(default_factory=dict)
    include_domains: List[str] = field(default_factory=list)
    exclude_domains: List[str] = field(default_factory=list)
    include_zones: List[str] = field(default_factory=list)
    exclude_zones: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ClusterConfig:
    namespace: str
    project_namespace: str = ""
    disable_dns: bool = False
    dns: Optional[DNSSpec] = None
    external_domain: Optional[DomainConfig] = None
    internal_domain: Optional[DomainConfig] = None
    external_cluster_domain: Optional[str] = None
    internal_cluster_domain: Optional[str] = None
    api_server_address: Optional[str] = None


# =============================================================================
# Parsing
# =============================================================================


def _parse_bool(value: Any, *, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def _str_list(value: Any, what: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{what} must be a list, got {type(value).__name__}")
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _parse_include_exclude(value: Any, what: str) -> Optional[IncludeExclude]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be a mapping")
    return IncludeExclude(
        include=_str_list(value.get("include"), f"{what}.include"),
        exclude=_str_list(value.get("exclude"), f"{what}.exclude"),
    )


def _parse_secret_data(value: Any, what: str) -> Dict[str, bytes]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be a mapping")
    data: Dict[str, bytes] = {}
    for key, encoded in value.items():
        try:
            data[str(key)] = base64.b64decode(str(encoded), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError(f"{what}.{key} is not valid base64: {e}") from e
    return data


def _parse_domain(value: Any, what: str) -> Optional[DomainConfig]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be a mapping")
    provider = _optional_str(value.get("provider"))
    if not provider:
        raise ConfigurationError(f"{what}.provider is required")
    return DomainConfig(
        provider=provider,
        secret_data=_parse_secret_data(value.get("secretData"), f"{what}.secretData"),
        include_domains=_str_list(value.get("includeDomains"), f"{what}.includeDomains"),
        exclude_domains=_str_list(value.get("excludeDomains"), f"{what}.excludeDomains"),
        include_zones=_str_list(value.get("includeZones"), f"{what}.includeZones"),
        exclude_zones=_str_list(value.get("excludeZones"), f"{what}.excludeZones"),
    )


def _parse_dns(value: Any) -> Optional[DNSSpec]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError("dns must be a mapping")

    raw_providers = value.get("providers") or []
    if not isinstance(raw_providers, list):
        raise ConfigurationError("dns.providers must be a list")

    providers: List[DNSProviderDecl] = []
    for i, item in enumerate(raw_providers):
        if not isinstance(item, dict):
            raise ConfigurationError("must be a mapping", index=i)
        providers.append(
            DNSProviderDecl(
                type=_optional_str(item.get("type")),
                secret_name=_optional_str(item.get("secretName")),
                primary=_parse_bool(item.get("primary")),
                domains=_parse_include_exclude(item.get("domains"), f"dns.providers[{i}].domains"),
                zones=_parse_include_exclude(item.get("zones"), f"dns.providers[{i}].zones"),
            )
        )

    return DNSSpec(domain=_optional_str(value.get("domain")), providers=providers)


def parse_cluster_config(data: Any) -> ClusterConfig:
    """Build a ClusterConfig from an already decoded YAML/JSON document."""
    if not isinstance(data, dict):
        raise ConfigurationError("cluster config must be a mapping")

    namespace = _optional_str(data.get("namespace"))
    if not namespace:
        raise ConfigurationError("namespace is required")

    config = ClusterConfig(
        namespace=namespace,
        project_namespace=_optional_str(data.get("projectNamespace")) or "",
        disable_dns=_parse_bool(data.get("disableDNS")),
        dns=_parse_dns(data.get("dns")),
        external_domain=_parse_domain(data.get("externalDomain"), "externalDomain"),
        internal_domain=_parse_domain(data.get("internalDomain"), "internalDomain"),
        external_cluster_domain=_optional_str(data.get("externalClusterDomain")),
        internal_cluster_domain=_optional_str(data.get("internalClusterDomain")),
        api_server_address=_optional_str(data.get("apiServerAddress")),
    )

    # Secrets of additional providers are read from the project namespace.
    if config.dns and any(not p.primary for p in config.dns.providers):
        if not config.project_namespace:
            raise ConfigurationError(
                "projectNamespace is required when additional dns providers are declared"
            )
    if config.internal_domain and not config.internal_cluster_domain:
        raise ConfigurationError("internalClusterDomain is required when internalDomain is set")

    return config


def load_cluster_config(path: str) -> ClusterConfig:
    """Load the cluster snapshot from a YAML file."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to load cluster config from {path}: {e}") from e

    config = parse_cluster_config(data)
    logger.debug(f"Loaded cluster config for namespace '{config.namespace}' from {Path(path).name}")
    return config
