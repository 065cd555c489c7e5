"""
BaseAdapter ABC — the per-platform contract the ingestion loop drives.

Every adapter can:
  fetch_page(search_term, cursor)   one upstream page → Page
  map_item(raw)                     one upstream item → RawItem | None (None = skip)
  fetch_profile(author_id)          author details for the resolver
  search_term_for(topic_name)       topic name → platform search term (None = skip topic)
  search_terms_for(topic_name)      every search run for a topic (one per keyword on
                                    platforms that can't take Boolean queries)
"""
from abc import ABC, abstractmethod
from typing import Any

import httpx
from loguru import logger

from config.settings import REQUEST_TIMEOUT
from feedwatch.collectors.query import extract_keywords, is_boolean_query
from feedwatch.errors import ConfigurationError, UpstreamError
from feedwatch.models import AuthorProfile, Page, Platform, RawItem


class BaseAdapter(ABC):
    platform: Platform
    label:    str = ""   # log prefix
    splits_boolean_queries: bool = False

    def __init__(self, config: dict, client: httpx.AsyncClient | None = None):
        self.config   = config
        self.base_url = (config.get("base_url") or "").rstrip("/")
        if not self.base_url:
            raise ConfigurationError(self.platform.value, "base_url is not configured")
        self._client  = client

    # ── Contract ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def fetch_page(self, search_term: str, cursor: str | None) -> Page:
        """Fetch one page of search results. Raises UpstreamError on failure."""
        ...

    @abstractmethod
    def map_item(self, raw: dict) -> RawItem | None:
        """Normalise one upstream item, or return None when it lacks an id."""
        ...

    @abstractmethod
    async def fetch_profile(self, author_external_id: str) -> AuthorProfile:
        """Fetch author details. Raises ProfileFetchError on failure."""
        ...

    def search_term_for(self, topic_name: str) -> str | None:
        term = topic_name.strip()
        return term or None

    def search_terms_for(self, topic_name: str) -> list[str]:
        keywords = [topic_name]
        if self.splits_boolean_queries and is_boolean_query(topic_name):
            keywords = extract_keywords(topic_name) or [topic_name]

        terms: list[str] = []
        for keyword in keywords:
            term = self.search_term_for(keyword)
            if term and term not in terms:
                terms.append(term)
        return terms

    async def aclose(self) -> None:
        """Release SDK sessions the adapter owns. The shared HTTP client is closed by its creator."""
        return None

    # ── HTTP ──────────────────────────────────────────────────────────────────

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._client

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET url; timeouts, HTTP errors and transport errors become UpstreamError."""
        try:
            resp = await self.client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException as exc:
            raise UpstreamError(self.platform.value, f"timeout calling {url}") from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                self.platform.value,
                f"HTTP {exc.response.status_code} from {url}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(self.platform.value, f"transport error: {exc}") from exc

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        resp = await self._get(url, params=params, headers=headers)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(self.platform.value, f"malformed JSON from {url}") from exc

    def _map_all(self, raw_items: list) -> list[RawItem]:
        items: list[RawItem] = []
        for raw in raw_items:
            item = self.map_item(raw) if isinstance(raw, dict) else None
            if item is None:
                logger.debug(f"[{self.label}] skipping item with missing id/author")
                continue
            items.append(item)
        return items
