from __future__ import annotations


def generate_provider_name(secret_name: str, provider_type: str) -> str:
    """Create a DNS provider name out of a secret name and a provider type.

    Duplicate secret/type pairs yield the same name; declaring the same
    provider twice is not supported.
    """
    if secret_name and provider_type:
        return f"{provider_type}-{secret_name}"
    if secret_name:
        return secret_name
    if provider_type:
        return provider_type
    return ""
