#!/usr/bin/env python3
"""shoot-dns - DNS provider reconciliation for managed clusters

Reconciles the DNSProvider and DNSEntry objects that back a cluster's internal
and external domain names in the cluster's control namespace, plus any
additional providers the cluster owner declared. Each invocation performs a
single pass; there is no watch loop.

Environment variables:

    Cluster:
        CLUSTER_CONFIG_PATH    YAML snapshot of the cluster's DNS configuration
                               (default: /config/cluster.yaml)
        SHOOT_DNS_MODE         "reconcile" or "teardown" (default: reconcile)
                               teardown deletes every DNSProvider in the
                               namespace and waits until they are gone.

    Kubernetes API:
        In-cluster service account configuration is used when available,
        otherwise the kubeconfig.
        KUBECONFIG             Kubeconfig file (default: ~/.kube/config)
        KUBE_CONTEXT           Kubeconfig context (default: current context)
        KUBE_TIMEOUT_SECONDS   Per-request timeout (default: 10)

    DNS:
        DNS_ENTRY_TTL                 TTL of the api.<domain> entries (default: 120)
        DNS_WAIT_INTERVAL_SECONDS     Poll interval for readiness/deletion (default: 5)
        DNS_WAIT_TIMEOUT_SECONDS      Readiness timeout per component (default: 120)
        DNS_TEARDOWN_TIMEOUT_SECONDS  Teardown deadline (default: 300)

    Runtime:
        LOG_LEVEL              DEBUG, INFO, WARNING, ERROR (default: INFO)

Exit codes: 0 success, 1 failure, 2 teardown timeout, 130 cancelled.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from threading import Event
from typing import Any, List

import kubernetes

from shoot_dns.components import KubernetesComponentFactory
from shoot_dns.config import load_cluster_config
from shoot_dns.errors import (
    ConfigurationError,
    DNSReconcileError,
    ReconcileCancelled,
    TeardownTimeoutError,
)
from shoot_dns.kube import KubernetesClient
from shoot_dns.reconciler import DNSReconciler
from shoot_dns.secret_store import KubernetesSecretStore

# =============================================================================
# Configuration
# =============================================================================

CLUSTER_CONFIG_PATH = os.getenv("CLUSTER_CONFIG_PATH", "/config/cluster.yaml")
SHOOT_DNS_MODE = os.getenv("SHOOT_DNS_MODE", "reconcile").lower().strip()

KUBECONFIG = os.getenv("KUBECONFIG", "")
KUBE_CONTEXT = os.getenv("KUBE_CONTEXT", "")
KUBE_TIMEOUT_SECONDS = float(os.getenv("KUBE_TIMEOUT_SECONDS", "10"))

DNS_ENTRY_TTL = int(os.getenv("DNS_ENTRY_TTL", "120"))
DNS_WAIT_INTERVAL_SECONDS = float(os.getenv("DNS_WAIT_INTERVAL_SECONDS", "5"))
DNS_WAIT_TIMEOUT_SECONDS = float(os.getenv("DNS_WAIT_TIMEOUT_SECONDS", "120"))
DNS_TEARDOWN_TIMEOUT_SECONDS = float(os.getenv("DNS_TEARDOWN_TIMEOUT_SECONDS", "300"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# =============================================================================
# Logging Setup
# =============================================================================

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

MODES = ("reconcile", "teardown")

# =============================================================================
# Utility Functions
# =============================================================================


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the kubeconfig."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config(
            config_file=KUBECONFIG or None, context=KUBE_CONTEXT or None
        )
        logger.info("Loaded kubeconfig")


def create_reconciler(namespace: str) -> DNSReconciler:
    """Factory function wiring the Kubernetes collaborators for one namespace."""
    client = KubernetesClient(timeout_seconds=KUBE_TIMEOUT_SECONDS)
    return DNSReconciler(
        client=client,
        secret_store=KubernetesSecretStore(client),
        components=KubernetesComponentFactory(
            client,
            namespace,
            wait_interval=DNS_WAIT_INTERVAL_SECONDS,
            wait_timeout=DNS_WAIT_TIMEOUT_SECONDS,
        ),
        entry_ttl=DNS_ENTRY_TTL,
        teardown_interval=DNS_WAIT_INTERVAL_SECONDS,
        teardown_timeout=DNS_TEARDOWN_TIMEOUT_SECONDS,
    )


def _install_signal_handlers(stop_event: Event) -> None:
    def handle(signum: int, _frame: Any) -> None:
        logger.info(f"Received signal {signum}, cancelling...")
        stop_event.set()

    signal.signal(signal.SIGTERM, handle)
    signal.signal(signal.SIGINT, handle)


# =============================================================================
# Main
# =============================================================================


def validate_config() -> bool:
    """Validate configuration."""
    errors: List[str] = []

    if SHOOT_DNS_MODE not in MODES:
        errors.append(f"Invalid SHOOT_DNS_MODE: {SHOOT_DNS_MODE}. Use 'reconcile' or 'teardown'")
    if not os.path.exists(CLUSTER_CONFIG_PATH):
        errors.append(f"Cluster config not found at {CLUSTER_CONFIG_PATH}")
    if DNS_WAIT_INTERVAL_SECONDS <= 0:
        errors.append("DNS_WAIT_INTERVAL_SECONDS must be positive")
    if DNS_TEARDOWN_TIMEOUT_SECONDS < DNS_WAIT_INTERVAL_SECONDS:
        errors.append("DNS_TEARDOWN_TIMEOUT_SECONDS must not be shorter than the poll interval")

    if errors:
        for error in errors:
            logger.error(error)
        return False

    return True


def main():
    """Main entry point."""
    logger.info(f"shoot-dns: mode={SHOOT_DNS_MODE}")

    if not validate_config():
        logger.error("Configuration validation failed")
        sys.exit(1)

    try:
        config = load_cluster_config(CLUSTER_CONFIG_PATH)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Namespace: {config.namespace}")
    try:
        load_kube_config()
    except kubernetes.config.ConfigException as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)
    reconciler = create_reconciler(config.namespace)

    stop_event = Event()
    _install_signal_handlers(stop_event)

    try:
        if SHOOT_DNS_MODE == "teardown":
            reconciler.teardown(config.namespace, stop_event)
        else:
            reconciler.reconcile_once(config, stop_event)
    except ReconcileCancelled:
        logger.warning("Cancelled before the pass completed")
        sys.exit(130)
    except TeardownTimeoutError as e:
        logger.error(str(e))
        sys.exit(2)
    except DNSReconcileError as e:
        logger.error(f"DNS reconciliation failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
