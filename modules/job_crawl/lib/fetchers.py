"""
Page fetchers: the transport collaborator of the crawl session.

Every fetcher is an async context manager; the session enters it once and
closes it on every exit path. Blocking `requests` calls run on worker threads
so up to `max_concurrent_detail_fetches` requests can be outstanding at once.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import requests

from .config import Settings
from .http_client import HttpClient


class TransportError(Exception):
    """The page fetch did not return content."""


class PageFetcher(ABC):
    """async fetch_page(url) -> raw page text, or raise TransportError."""

    @abstractmethod
    async def fetch_page(self, url: str) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release underlying resources. Safe to call more than once."""

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class DirectPageFetcher(PageFetcher):
    """Plain GET of the target URL through the shared HttpClient."""

    def __init__(self, client: HttpClient | None = None, *, timeout: float = 30.0) -> None:
        self._client = client or HttpClient(timeout=timeout)
        self._closed = False

    async def fetch_page(self, url: str) -> str:
        try:
            return await asyncio.to_thread(self._client.get_text, url)
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e!r}") from e

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._client.close()


class ProxyPageFetcher(PageFetcher):
    """
    Fetch through a rendering / anti-bot proxy service.

    The service is called as GET <endpoint>?url=<target>&apikey=<key>[&extra...]
    and answers with the rendered HTML of the target page.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        extra_params: Mapping[str, Any] | None = None,
        client: HttpClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.endpoint = endpoint
        self._api_key = api_key
        self._extra = dict(extra_params or {})
        self._client = client or HttpClient(timeout=timeout)
        self._closed = False

    async def fetch_page(self, url: str) -> str:
        params = {**self._extra, "url": url, "apikey": self._api_key}
        try:
            return await asyncio.to_thread(self._client.get_text, self.endpoint, params=params)
        except requests.RequestException as e:
            # Never echo the params: they carry the API key.
            raise TransportError(f"proxy fetch of {url} failed: {type(e).__name__}") from e

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._client.close()


def build_fetcher(settings: Settings) -> PageFetcher:
    """Construct the fetcher named by settings.fetcher ("direct" | "proxy")."""
    if settings.fetcher == "proxy":
        return ProxyPageFetcher(
            settings.proxy_endpoint,
            settings.proxy_api_key,
            timeout=settings.request_timeout_sec,
        )
    return DirectPageFetcher(timeout=settings.request_timeout_sec)
