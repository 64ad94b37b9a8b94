"""Bibliographic index clients (PubMed, arXiv, bioRxiv) and run-scoped rate limiting."""

import os
from typing import Optional

from refscout.config import PUBMED_DELAY_WITH_KEY, DiscoveryConfig
from refscout.models import SearchIndex
from refscout.search.arxiv import ArxivClient
from refscout.search.base import BibliographicSearchClient
from refscout.search.biorxiv import BioRxivClient
from refscout.search.pubmed import PubMedClient
from refscout.search.ratelimit import RateLimiter

__all__ = [
    "ArxivClient",
    "BibliographicSearchClient",
    "BioRxivClient",
    "PubMedClient",
    "RateLimiter",
    "create_clients",
]


def create_clients(
    config: Optional[DiscoveryConfig] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> dict[SearchIndex, BibliographicSearchClient]:
    """Build one client per supported index sharing a single RateLimiter.

    PubMed is always created because suggestion verification runs against it;
    the config's enabled-index flags only govern topic discovery. With an
    NCBI_API_KEY set, PubMed calls are paced at the faster keyed rate.
    """
    config = config or DiscoveryConfig()
    if rate_limiter is None:
        delays = {}
        if os.getenv("NCBI_API_KEY"):
            delays[SearchIndex.PUBMED.value] = min(config.index_delay, PUBMED_DELAY_WITH_KEY)
        rate_limiter = RateLimiter(delay=config.index_delay, delays=delays)
    return {
        SearchIndex.PUBMED: PubMedClient(rate_limiter=rate_limiter, timeout=config.request_timeout),
        SearchIndex.ARXIV: ArxivClient(rate_limiter=rate_limiter, timeout=config.request_timeout),
        SearchIndex.BIORXIV: BioRxivClient(
            rate_limiter=rate_limiter,
            timeout=config.request_timeout,
            window_years=config.biorxiv_window_years,
        ),
    }
