"""Rick & Morty API client.

All outbound traffic to the public Rick & Morty REST API goes through this module:
the paginated character listing (fetch-all), individual episode resources for the
detail view, the raw first-page pass-through used by the proxy route, and the quick
upstream check used by the health check.

No retries and no caching: callers log failures and degrade.
"""

import asyncio
import logging
from typing import List, Dict, Any, Tuple

import httpx
from pydantic import ValidationError

from . import metrics
from .schemas import Character, NO_EPISODE
from .settings import settings

log = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when the upstream API is unreachable or returns an unusable payload."""


def _listing_url() -> str:
    return f"{settings.UPSTREAM_BASE_URL.rstrip('/')}/character"


async def _get_json(
    client: httpx.AsyncClient, url: str, params: Dict[str, Any] | None = None
) -> Any:
    """GET ``url`` and decode its JSON body.

    Args:
        client: An open `httpx.AsyncClient`.
        url: Target URL.
        params: Optional query parameters.

    Returns:
        The decoded JSON document.

    Raises:
        UpstreamError: On transport errors, non-2xx statuses, or invalid JSON.
    """
    try:
        r = await client.get(url, params=params, timeout=settings.REQUEST_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (httpx.HTTPError, ValueError) as exc:
        metrics.record_upstream("error")
        log.warning("upstream.error url=%s params=%s err=%r", url, params, exc)
        raise UpstreamError(f"GET {url} failed: {exc!r}") from exc
    metrics.record_upstream("ok")
    return data


def _listing_page(data: Any, page: int) -> Tuple[List[Any], int]:
    """Split a listing body into ``(results, info.pages)``.

    Raises:
        UpstreamError: If the body is not an object, ``results`` is not a list,
            or ``info.pages`` is not an integer.
    """
    if not isinstance(data, dict):
        log.warning("upstream.fetch_all malformed_page page=%d body_type=%s", page, type(data).__name__)
        raise UpstreamError("malformed listing page")

    batch = data.get("results") or []
    info = data.get("info") or {}
    pages = info.get("pages") if isinstance(info, dict) else None
    if pages is None and not batch:
        pages = 0
    # bool is an int subclass; "pages": true is still garbage
    if not isinstance(batch, list) or not isinstance(pages, int) or isinstance(pages, bool):
        log.warning(
            "upstream.fetch_all malformed_page page=%d results_type=%s pages=%r",
            page,
            type(batch).__name__,
            pages,
        )
        raise UpstreamError("malformed listing page")
    return batch, pages


# ---------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------


async def fetch_all_characters(max_pages: int | None = None) -> List[Character]:
    """Fetch every character by walking the listing pages from page 1.

    Stops when a page returns no results, when ``info.pages`` is reached, or after
    ``max_pages`` requests (defaults to ``MAX_FETCH_PAGES``) so a malformed page
    count cannot loop forever.

    Returns:
        Characters in upstream order.

    Raises:
        UpstreamError: If any page request fails or a result cannot be parsed.
    """
    cap = max_pages if max_pages is not None else settings.MAX_FETCH_PAGES
    url = _listing_url()
    raw: List[Dict[str, Any]] = []
    page = 1

    async with httpx.AsyncClient() as client:
        while True:
            if page > cap:
                log.warning("upstream.fetch_all page_cap_reached cap=%d", cap)
                break
            data = await _get_json(client, url, {"page": page})
            batch, pages = _listing_page(data, page)
            if not batch:
                break
            raw.extend(batch)
            if page >= pages:
                break
            page += 1

    try:
        characters = [Character.model_validate(item) for item in raw]
    except ValidationError as exc:
        log.warning("upstream.fetch_all malformed_result err=%s", exc)
        raise UpstreamError("malformed character payload") from exc

    log.info("upstream.fetch_all pages=%d count=%d", page, len(characters))
    return characters


async def _episode_name(client: httpx.AsyncClient, url: str) -> str:
    data = await _get_json(client, url)
    name = data.get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) and name else NO_EPISODE


async def fetch_seen_episodes(episode_urls: List[str]) -> Tuple[str, str]:
    """Resolve the first and last episode names for a character.

    Both requests run concurrently. A character with a single episode fetches the
    same resource twice; one with none resolves to placeholders without any request.

    Returns:
        ``(first_seen, last_seen)`` episode names.

    Raises:
        UpstreamError: If either episode request fails.
    """
    if not episode_urls:
        return NO_EPISODE, NO_EPISODE

    async with httpx.AsyncClient() as client:
        first, last = await asyncio.gather(
            _episode_name(client, episode_urls[0]),
            _episode_name(client, episode_urls[-1]),
        )
    return first, last


async def fetch_first_page() -> Any:
    """Return the listing endpoint's first page body, untouched (proxy pass-through)."""
    async with httpx.AsyncClient() as client:
        return await _get_json(client, _listing_url())


async def quick_upstream_check() -> bool:
    """Perform a lightweight upstream health check.

    Returns:
        True if the upstream API root returns HTTP 200, otherwise False
        (including exceptions).
    """
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            r = await client.get(settings.UPSTREAM_BASE_URL)
            return r.status_code == 200
    except httpx.HTTPError as exc:
        log.debug("upstream.check failed err=%r", exc)
        return False
