from __future__ import annotations

import logging
from typing import List

from shoot_dns.kube import DNS_PROVIDER, ResourceClient
from shoot_dns.models import ManagedResourceRef, ResourceCategory

logger = logging.getLogger(__name__)


def list_additional_providers(client: ResourceClient, namespace: str) -> List[ManagedResourceRef]:
    """List live DNS providers in the namespace that carry the additional marker.

    The built-in external/internal providers are never returned. Listing
    failures (QueryError) propagate unchanged.
    """
    refs = client.list(DNS_PROVIDER, namespace, ResourceCategory.ADDITIONAL.marker_labels)
    logger.debug(f"Found {len(refs)} live additional DNS provider(s) in '{namespace}'")
    return refs
