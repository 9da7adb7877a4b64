"""
Async client for the parts of the Notion API the sync needs.

Two read-only calls:
  - query_database(): one page of a database query (filter, sorts, cursor)
  - fetch_all_blocks(): every child block of a page, following cursors

Any non-2xx response or transport error raises RemoteUnavailable. The client
does not retry; the sync service treats the failure as fatal for the run and
the next scheduled run retries from the same watermark.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from newsdesk.config import get_settings
from newsdesk.models.article import PUBLISHED

logger = logging.getLogger(__name__)

BLOCK_PAGE_SIZE = 100
MAX_BLOCKS_DEFAULT = 1000

PUBLISH_DATE_SORT = [{"property": "Publish Date", "direction": "descending"}]


class RemoteUnavailable(RuntimeError):
    """Raised when Notion answers non-2xx or cannot be reached."""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"Notion API unreachable: {body}")
        else:
            super().__init__(f"Notion API error: {status_code} - {body}")


@dataclass
class QueryPage:
    results: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


def published_filter(since: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the database filter for published articles.

    Args:
        since: ISO datetime watermark. When given, only pages edited at or
               after it are matched (incremental sync).
    """
    status = {"property": "Status", "status": {"equals": PUBLISHED}}
    if since is None:
        return status
    edited = {"timestamp": "last_edited_time", "last_edited_time": {"on_or_after": since}}
    return {"and": [status, edited]}


class NotionClient:
    """
    Thin async wrapper over the Notion REST API.

    Usage:
        async with NotionClient(api_key) as notion:
            page = await notion.query_database(db_id, filter=published_filter())
    """

    def __init__(
        self,
        api_key: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            api_key: Notion integration token.
            http: Pre-built httpx.AsyncClient (tests pass one with a MockTransport).
            base_url, api_version, timeout: Override the values from Settings.
        """
        settings = get_settings()
        self._base_url = (base_url or settings.notion_base_url).rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": api_version or settings.notion_api_version,
            "Content-Type": "application/json",
        }
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.notion_timeout_seconds
        )

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self._base_url}{endpoint}"
        try:
            response = await self._http.request(
                method, url, headers=self._headers, json=json, params=params
            )
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(None, str(exc)) from exc

        if not response.is_success:
            raise RemoteUnavailable(response.status_code, response.text)
        return response.json()

    async def query_database(
        self,
        database_id: str,
        *,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: int = 100,
        start_cursor: Optional[str] = None,
    ) -> QueryPage:
        """Fetch one page of results from a database query."""
        body: Dict[str, Any] = {"page_size": page_size}
        if filter is not None:
            body["filter"] = filter
        if sorts is not None:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor

        data = await self._request("POST", f"/databases/{database_id}/query", json=body)
        return QueryPage(
            results=data.get("results", []),
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor"),
        )

    async def fetch_all_blocks(
        self, page_id: str, max_blocks: int = MAX_BLOCKS_DEFAULT
    ) -> List[Dict[str, Any]]:
        """
        Fetch all child blocks of a page, following pagination.

        Stops early with a warning once more than `max_blocks` blocks have
        accumulated, so a misbehaving cursor can't grow memory without bound.
        The truncated list is returned; this is not an error.
        """
        blocks: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"page_size": BLOCK_PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", f"/blocks/{page_id}/children", params=params)

            blocks.extend(data.get("results", []))
            if len(blocks) > max_blocks:
                logger.warning(
                    "Article %s has over %d blocks, stopping pagination at %d",
                    page_id, max_blocks, len(blocks),
                )
                break

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        return blocks
