"""Error hierarchy for DNS reconciliation passes."""

from __future__ import annotations

from typing import List, Optional


class DNSReconcileError(Exception):
    """Base class for all reconciliation errors."""


class ConfigurationError(DNSReconcileError):
    """Declared configuration is missing a required field or is malformed."""

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        if index is not None:
            message = f"dns provider[{index}] {message}"
        super().__init__(message)


class SecretNotFoundError(DNSReconcileError):
    """Secret does not exist in the secret store."""

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        super().__init__(f"secret {namespace}/{name} not found")


class SecretResolutionError(DNSReconcileError):
    def __init__(self, secret_name: str, cause: BaseException):
        self.secret_name = secret_name
        self.cause = cause
        super().__init__(f"could not get dns provider secret '{secret_name}': {cause}")


class KubernetesAPIError(DNSReconcileError):
    """Request to the orchestration API failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class QueryError(KubernetesAPIError):
    """Listing live resources failed; the desired/live diff cannot be trusted."""


class ApplyError(DNSReconcileError):
    """A deploy/destroy/wait call of the rendering collaborator failed."""

    def __init__(self, resource: str, action: str, cause: BaseException):
        self.resource = resource
        self.action = action
        self.cause = cause
        super().__init__(f"{action} of '{resource}' failed: {cause}")


class PlanApplyError(DNSReconcileError):
    def __init__(self, errors: List[ApplyError]):
        self.errors = errors
        summary = "; ".join(str(e) for e in errors)
        super().__init__(f"{len(errors)} operation(s) failed: {summary}")


class TeardownTimeoutError(DNSReconcileError):
    """Bulk teardown did not converge before its deadline."""

    def __init__(self, namespace: str, timeout: float, remaining: List[str]):
        self.namespace = namespace
        self.timeout = timeout
        self.remaining = remaining
        super().__init__(
            f"DNS providers in namespace '{namespace}' still present after {timeout:g}s: "
            f"{', '.join(remaining)}"
        )


class ReconcileCancelled(DNSReconcileError):
    """The caller's stop signal was set while a pass was in flight."""
