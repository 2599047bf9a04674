"""Unit tests for full DNS reconciliation passes.

Each test wires the reconciler to in-memory collaborators and checks which
component calls a pass issues.
"""

from threading import Event

import pytest
from conftest import (
    NAMESPACE,
    MockResourceClient,
    MockSecretStore,
    RecordingComponentFactory,
    make_config,
    make_domain,
)

from shoot_dns.config import DNSProviderDecl
from shoot_dns.errors import (
    ConfigurationError,
    PlanApplyError,
    QueryError,
    ReconcileCancelled,
    SecretResolutionError,
    TeardownTimeoutError,
)
from shoot_dns.models import (
    ROLE_ADDITIONAL_PROVIDER,
    ROLE_LABEL,
    Create,
    Destroy,
    ManagedResourceRef,
)
from shoot_dns.reconciler import DNSReconciler

ADDITIONAL_LABELS = {ROLE_LABEL: ROLE_ADDITIONAL_PROVIDER}


def create_test_reconciler(
    client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> DNSReconciler:
    return DNSReconciler(
        client=client,
        secret_store=secret_store,
        components=components,
        entry_ttl=120,
        teardown_interval=0.01,
        teardown_timeout=0.05,
    )


def live_provider(name: str) -> ManagedResourceRef:
    return ManagedResourceRef(name=name, namespace=NAMESPACE, labels=dict(ADDITIONAL_LABELS))


# =============================================================================
# Built-in Categories
# =============================================================================


def test_reconcile_deploys_external_and_internal(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    state = reconciler.reconcile_once(make_config())

    assert isinstance(state.external, Create)
    assert isinstance(state.internal, Create)
    assert components.actions("deploy") == [
        "provider:external",
        "entry:external",
        "provider:internal",
        "entry:internal",
    ]
    assert components.actions("destroy") == []
    assert components.entries["external"].dns_name == "api.web.dev.example.com"
    assert components.entries["external"].ttl == 120


def test_reconcile_destroys_categories_when_dns_disabled(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    state = reconciler.reconcile_once(make_config(disable_dns=True))

    assert isinstance(state.external, Destroy)
    assert isinstance(state.internal, Destroy)
    assert components.actions("deploy") == []
    assert components.actions("destroy") == [
        "entry:external",
        "provider:external",
        "entry:internal",
        "provider:internal",
    ]


def test_external_enabled_to_disabled_transition(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    reconciler = create_test_reconciler(resource_client, secret_store, components)
    reconciler.reconcile_once(make_config())
    components.calls.clear()

    reconciler.reconcile_once(make_config(external_domain=make_domain("unmanaged")))

    external_calls = [c for c in components.calls if c[1].endswith(":external")]
    assert external_calls.index(("destroy", "entry:external")) < external_calls.index(
        ("destroy", "provider:external")
    )
    # Internal stays deployed.
    assert components.actions("deploy") == ["provider:internal", "entry:internal"]


def test_external_disabled_to_enabled_transition(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    reconciler = create_test_reconciler(resource_client, secret_store, components)
    reconciler.reconcile_once(make_config(domain="x.nip.io", external_cluster_domain="x.nip.io"))
    components.calls.clear()

    reconciler.reconcile_once(make_config())

    deploys = components.actions("deploy")
    assert deploys.index("provider:external") < deploys.index("entry:external")


# =============================================================================
# Additional Providers
# =============================================================================


def test_orphaned_additional_provider_is_destroyed(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    resource_client.items = [
        live_provider("aws-route53-route53-creds"),
        live_provider("cloudflare-dns-old-creds"),
        # Built-in providers carry no marker and are never considered orphans.
        ManagedResourceRef(name="external", namespace=NAMESPACE),
    ]
    config = make_config(
        providers=[
            DNSProviderDecl(type="aws-route53", secret_name="route53-creds"),
            DNSProviderDecl(type="google-clouddns", secret_name="gdns-creds"),
        ]
    )
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    state = reconciler.reconcile_once(config)

    assert {name: op.action for name, op in state.additional.items()} == {
        "aws-route53-route53-creds": "deploy",
        "cloudflare-dns-old-creds": "destroy",
        "google-clouddns-gdns-creds": "deploy",
    }
    assert "provider:cloudflare-dns-old-creds" in components.actions("destroy")
    assert "provider:external" not in components.actions("destroy")
    assert resource_client.list_calls == [("DNSProvider", NAMESPACE, ADDITIONAL_LABELS)]


def test_reconcile_is_idempotent_for_converged_state(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    config = make_config(
        providers=[DNSProviderDecl(type="cloudflare-dns", secret_name="cf-creds")]
    )
    reconciler = create_test_reconciler(resource_client, secret_store, components)
    first = reconciler.reconcile_once(config)
    resource_client.items = [live_provider(name) for name in first.additional]
    components.calls.clear()

    second = reconciler.reconcile_once(config)

    assert components.actions("destroy") == []
    assert second.additional == first.additional
    assert all(isinstance(op, Create) for op in second.additional.values())


def test_removed_providers_are_torn_down_when_dns_disabled(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    resource_client.items = [live_provider("cloudflare-dns-cf-creds")]
    config = make_config(
        disable_dns=True,
        providers=[DNSProviderDecl(type="cloudflare-dns", secret_name="cf-creds")],
    )
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    reconciler.reconcile_once(config)

    assert "provider:cloudflare-dns-cf-creds" in components.actions("destroy")
    assert secret_store.get_calls == []


# =============================================================================
# Failure Handling
# =============================================================================


def test_missing_secret_name_aborts_before_any_call(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    config = make_config(
        providers=[
            DNSProviderDecl(type="aws-route53", secret_name="route53-creds", primary=True),
            DNSProviderDecl(type="cloudflare-dns", secret_name="cf-creds"),
            DNSProviderDecl(type="google-clouddns"),
            DNSProviderDecl(type="aws-route53", secret_name="route53-creds"),
        ]
    )
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(ConfigurationError) as exc_info:
        reconciler.reconcile_once(config)

    assert exc_info.value.index == 2
    assert components.calls == []
    assert resource_client.list_calls == []


def test_secret_failure_aborts_pass(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    config = make_config(providers=[DNSProviderDecl(type="aws-route53", secret_name="gone")])
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(SecretResolutionError):
        reconciler.reconcile_once(config)

    assert components.calls == []


def test_query_failure_aborts_pass(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    resource_client.fail_list = True
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(QueryError):
        reconciler.reconcile_once(make_config())

    assert components.calls == []


def test_category_failure_does_not_block_other_categories(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    components.failing.add("deploy provider:external")
    config = make_config(
        providers=[DNSProviderDecl(type="cloudflare-dns", secret_name="cf-creds")]
    )
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(PlanApplyError) as exc_info:
        reconciler.reconcile_once(config)

    assert len(exc_info.value.errors) == 1
    deploys = components.actions("deploy")
    assert "entry:external" not in deploys
    assert "provider:internal" in deploys
    assert "provider:cloudflare-dns-cf-creds" in deploys


def test_cancelled_pass_raises_reconcile_cancelled(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    stop_event = Event()
    components.stop_after = ("deploy provider:external", stop_event)
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(ReconcileCancelled):
        reconciler.reconcile_once(make_config(), stop_event)

    assert components.actions("deploy") == ["provider:external"]
    assert components.actions("wait") == []


# =============================================================================
# Teardown
# =============================================================================


def test_teardown_deletes_all_providers(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    resource_client.items = [live_provider("a"), ManagedResourceRef("external", NAMESPACE)]
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    reconciler.teardown(NAMESPACE)

    assert resource_client.delete_all_calls == [("DNSProvider", NAMESPACE)]
    assert resource_client.items == []


def test_teardown_timeout(
    resource_client: MockResourceClient,
    secret_store: MockSecretStore,
    components: RecordingComponentFactory,
) -> None:
    resource_client.items = [live_provider("stuck")]
    resource_client.lists_until_deleted = 10_000
    reconciler = create_test_reconciler(resource_client, secret_store, components)

    with pytest.raises(TeardownTimeoutError):
        reconciler.teardown(NAMESPACE)
