"""Authenticated, bounded fetch client for the SoundCloud API"""
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from soundwrapped_report.exceptions import MalformedResponse, UpstreamRequestFailed
from soundwrapped_report.services.tokens import TokenLifecycleManager

logger = logging.getLogger(__name__)

T = TypeVar('T')

# --- Constants for Fetching Control ---
# Max pages followed per paginated resource (10 * 50 = 500 items)
DEFAULT_MAX_PAGES = 10
# Items requested per page
DEFAULT_PAGE_SIZE = 50
# ------------------------------------


def _keep_dicts(item: Any) -> Optional[Dict[str, Any]]:
    return item if isinstance(item, dict) else None


class ResilientApiClient:
    """
    Single-resource and paginated GETs against the upstream API.

    A 401 triggers exactly one credential refresh and one retry of the same request.
    Nothing else is retried: 5xx responses, timeouts, connection errors and
    undecodable bodies surface as UpstreamRequestFailed.
    """

    def __init__(self, tokens: TokenLifecycleManager, base_url: str = "https://api.soundcloud.com",
                 http: Optional[requests.Session] = None, timeout: float = 15,
                 max_pages: int = DEFAULT_MAX_PAGES, page_size: int = DEFAULT_PAGE_SIZE,
                 user_agent: str = "SoundWrapped/1.0"):
        self.tokens = tokens
        self.base_url = base_url.rstrip('/')
        self.session = http or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': user_agent
        })
        self.timeout = timeout
        self.max_pages = max_pages
        self.page_size = page_size

    def _url(self, path: str) -> str:
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get(self, url: str, token: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        try:
            return self.session.get(
                url,
                params=params,
                headers={'Authorization': f'Bearer {token}'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request error for {url}: {e}")
            raise UpstreamRequestFailed(f"Request to {url} timed out or failed to connect: {e}", url=url) from e

    def fetch_one(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Single authenticated GET.

        Args:
            path: API path relative to the base URL, or an absolute URL (e.g. a next_href cursor)
            params: optional query parameters

        Returns:
            The decoded JSON object. A top-level JSON array is returned as ``{"collection": [...]}``.

        Raises:
            TokenUnavailable: no credential is stored
            TokenRefreshFailed: the 401-triggered refresh failed
            UpstreamRequestFailed: any other failure, including a second 401
        """
        url = self._url(path)
        token = self.tokens.require_access_token()

        logger.debug(f"GET {url}")
        response = self._get(url, token, params)
        if response.status_code == 401:
            logger.info(f"Access token rejected (401) for {url}; refreshing and retrying once")
            token = self.tokens.refresh(stale_access_token=token)
            response = self._get(url, token, params)

        if response.status_code >= 400:
            logger.warning(f"HTTP {response.status_code} for {url}")
            raise UpstreamRequestFailed(
                f"GET {url} failed with HTTP {response.status_code}",
                url=url,
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.warning(f"Failed to decode JSON response from {url}. Status: {response.status_code}")
            raise MalformedResponse(f"Response from {url} is not JSON", url=url,
                                    status_code=response.status_code) from e

        if isinstance(body, list):
            return {'collection': body}
        if not isinstance(body, dict):
            raise MalformedResponse(f"Response from {url} is neither an object nor an array", url=url,
                                    status_code=response.status_code)
        return body

    def fetch_paginated(self, path: str, max_pages: Optional[int] = None,
                        decode: Callable[[Any], Optional[T]] = _keep_dicts,
                        params: Optional[Dict[str, Any]] = None) -> List[T]:
        """
        Follow ``next_href`` cursors, concatenating each page's ``collection``.

        Stops when the cursor is null/absent, when ``max_pages`` pages have been read,
        or when a cursor repeats. The page bound exists to stop malformed or cyclic
        cursors from hanging the caller; larger collections are truncated.

        Items that ``decode`` rejects (returns None for) are dropped. If a page after the
        first fails, the items from the pages before it are returned. If the first page
        fails, the error is raised so the caller can tell "failed" from "empty".
        """
        max_pages = self.max_pages if max_pages is None else max_pages
        if params is None:
            params = {'linked_partitioning': 'true', 'limit': self.page_size}

        results: List[T] = []
        url: Optional[str] = path
        seen_urls = set()
        page_count = 0
        dropped = 0

        while url and page_count < max_pages:
            absolute_url = self._url(url)
            if absolute_url in seen_urls:
                logger.warning(f"Pagination cursor repeated ({absolute_url}); stopping")
                break
            seen_urls.add(absolute_url)

            try:
                # Query parameters only go on the first request; cursors carry their own
                page = self.fetch_one(url, params=params if page_count == 0 else None)
            except UpstreamRequestFailed as e:
                if page_count == 0:
                    raise
                logger.warning(f"Error fetching page {page_count + 1} of {path}: {e}. "
                               f"Returning {len(results)} items from {page_count} pages.")
                break
            page_count += 1

            collection = page.get('collection')
            if isinstance(collection, list):
                for item in collection:
                    decoded = decode(item)
                    if decoded is None:
                        dropped += 1
                        continue
                    results.append(decoded)
            else:
                logger.warning(f"Page {page_count} of {path} has no collection; treating it as empty")

            next_href = page.get('next_href')
            url = next_href if isinstance(next_href, str) and next_href else None

        if url and page_count >= max_pages:
            logger.warning(f"Stopped {path} after {max_pages} pages; remaining items are not fetched")
        if dropped:
            logger.warning(f"Dropped {dropped} malformed items from {path}")
        logger.info(f"Fetched {len(results)} items from {path} in {page_count} pages")
        return results
