"""Common interface for bibliographic index clients."""

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Optional

import requests

from refscout.errors import SearchError
from refscout.models import Article, SearchIndex
from refscout.search.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class BibliographicSearchClient(ABC):
    """Rate-limited client for one publication index.

    Subclasses implement :meth:`_search`, which may raise
    ``requests.RequestException`` or ``SearchError``. Callers choose between
    :meth:`search` (degrades to an empty list) and :meth:`search_or_raise`.
    """

    index: SearchIndex

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def _search(self, query: str, max_results: int) -> list[Article]:
        """Run the query against the index. May raise."""

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        """Rate-limited GET with timeout; raises on HTTP errors."""
        with self.rate_limiter.slot(self.index.value):
            response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response

    def search_or_raise(self, query: str, max_results: int = 20) -> list[Article]:
        """Search, raising SearchError on any network, HTTP or payload failure."""
        if not query or not query.strip():
            return []
        try:
            articles = self._search(query, max_results)
        except SearchError:
            raise
        except requests.Timeout as e:
            raise SearchError(self.index.value, f"timed out: {e}") from e
        except requests.RequestException as e:
            raise SearchError(self.index.value, str(e)) from e
        except (ET.ParseError, ValueError, KeyError, TypeError) as e:
            raise SearchError(self.index.value, f"malformed response: {e}") from e
        logger.debug("%s: %d articles for %r", self.index.label, len(articles), query)
        return articles[:max_results]

    def search(self, query: str, max_results: int = 20) -> list[Article]:
        """Search, returning [] on failure."""
        try:
            return self.search_or_raise(query, max_results)
        except SearchError as e:
            logger.warning("%s search failed for %r: %s", self.index.label, query, e.message)
            return []
