# ABOUTME: Concurrent fan-out of one book lookup across several metadata providers.
# ABOUTME: Collects whatever providers answer within the timeout; failures count as no data.

import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from shelfkeeper.metadata.provider import BookHint, ProviderClient, ProviderRegistry
from shelfkeeper.metadata.types import CandidateMetadata, MetadataProvider

logger = logging.getLogger(__name__)


def fetch_top_candidates(
    registry: ProviderRegistry,
    providers: Iterable[MetadataProvider],
    hint: BookHint,
    *,
    timeout: float,
) -> dict[MetadataProvider, CandidateMetadata]:
    """Ask each provider for its top candidate concurrently.

    A provider listed twice is asked once. Providers that raise, return
    nothing, or miss the timeout are logged and left out of the result.

    Returns:
        Candidates keyed by provider, in the order providers were given.
    """
    clients: dict[MetadataProvider, ProviderClient] = {}
    for provider in providers:
        if provider in clients:
            continue
        if provider not in registry:
            logger.warning("No client registered for provider %s, skipping", provider.value)
            continue
        clients[provider] = registry.get(provider)

    if not clients:
        return {}

    executor = ThreadPoolExecutor(max_workers=len(clients), thread_name_prefix="provider-fetch")
    try:
        futures: dict[MetadataProvider, Future] = {
            provider: executor.submit(client.fetch_top_candidate, hint)
            for provider, client in clients.items()
        }
        done, _ = wait(futures.values(), timeout=timeout)

        results: dict[MetadataProvider, CandidateMetadata] = {}
        for provider, future in futures.items():
            if future not in done:
                logger.warning(
                    "Provider %s timed out after %.1fs for '%s'", provider.value, timeout, hint.title
                )
                continue
            try:
                candidate = future.result()
            except Exception as exc:
                logger.warning("Provider %s failed for '%s': %s", provider.value, hint.title, exc)
                continue
            if candidate is None:
                logger.debug("Provider %s has no match for '%s'", provider.value, hint.title)
                continue
            results[provider] = candidate if candidate.provider else candidate.with_provider(provider)
        return results
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
