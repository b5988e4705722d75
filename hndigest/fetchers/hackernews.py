"""Hacker News top-stories fetcher (Firebase JSON API)."""

import asyncio
import html
import logging
import re
from datetime import datetime, timezone
from typing import Collection, Optional

import httpx

from hndigest.config import DEFAULT_API_BASE_URL
from hndigest.models import CandidateItem, Source

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


class HackerNewsFetcher:
    """Fetch top stories not yet known to the store.

    Item bodies are fetched concurrently, but the returned list keeps the
    top-stories ranking order.
    """

    def __init__(
        self,
        api_base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 15,
        max_items: int = 100,
        max_concurrent: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.max_items = max_items
        self.max_concurrent = max_concurrent
        self.transport = transport
        self.source = Source.primary()

    def fetch(self, known_ids: Collection[str] = ()) -> list[CandidateItem]:
        """Synchronous wrapper for fetch_async."""
        return asyncio.run(self.fetch_async(known_ids))

    async def fetch_async(self, known_ids: Collection[str] = ()) -> list[CandidateItem]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            top_ids = await self.prefetch(client)
            ids_to_pull = [i for i in top_ids[: self.max_items] if i not in known_ids]
            logger.info(
                f"  [HN] {len(top_ids)} top stories, {len(ids_to_pull)} not seen before"
            )

            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def fetch_with_semaphore(item_id: str) -> Optional[CandidateItem]:
                async with semaphore:
                    return await self.fetch_item(client, item_id)

            results = await asyncio.gather(*(fetch_with_semaphore(i) for i in ids_to_pull))

        return [item for item in results if item is not None]

    async def prefetch(self, client: httpx.AsyncClient) -> list[str]:
        """Fetch the ranked top-story ids."""
        resp = await client.get(f"{self.api_base_url}/topstories.json")
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected topstories payload: {type(data).__name__}")
        return [str(i) for i in data]

    async def fetch_item(self, client: httpx.AsyncClient, item_id: str) -> Optional[CandidateItem]:
        """Fetch one story. Failed, deleted or dead items are skipped."""
        try:
            resp = await client.get(f"{self.api_base_url}/item/{item_id}.json")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"  [HN] Error fetching item {item_id}: {e}")
            return None

        if not isinstance(data, dict) or data.get("deleted") or data.get("dead"):
            return None
        return self._to_candidate(item_id, data)

    def _to_candidate(self, item_id: str, data: dict) -> CandidateItem:
        title = (data.get("title") or "").strip()
        body = data.get("text") or ""
        if body:
            body = html.unescape(_TAG_RE.sub(" ", body)).strip()

        published_at = datetime.now(timezone.utc)
        if isinstance(data.get("time"), (int, float)):
            try:
                published_at = datetime.fromtimestamp(data["time"], tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                logger.warning(f"  [HN] Item {item_id} has invalid time {data['time']!r}")

        return CandidateItem(
            external_id=item_id,
            source=self.source,
            title=title,
            url=(data.get("url") or "").strip() or None,
            text=f"{title} {body}".strip(),
            published_at=published_at,
        )
