"""
HTTP client for the bookmarks API, and a store that feeds its responses
through the reducer.
"""
import os
from collections.abc import Iterable
from typing import Any

import httpx

from client.reducer import BookmarksState, apply_list_payload, apply_mutation
from schemas.bookmark import (
    BookmarkExport,
    BookmarkListResponse,
    BookmarkMutationResponse,
    BookmarkStats,
)


def get_api_base_url() -> str:
    """Get the API base URL from environment."""
    return os.getenv("VITE_API_URL", "http://localhost:8000")


def get_default_timeout() -> float:
    """Get the default request timeout."""
    return float(os.getenv("BOOKMARKS_API_TIMEOUT", "30.0"))


class BookmarksApiError(Exception):
    """Raised when the API answers with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    return detail if isinstance(detail, str) else str(detail or body)


class BookmarksApiClient:
    """
    Thin async wrapper over the bookmark endpoints.

    Pass ``client`` to reuse an existing httpx.AsyncClient (e.g. one built on
    an ASGI transport in tests); otherwise one is created and owned here.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or get_api_base_url(),
            timeout=timeout or get_default_timeout(),
        )

    async def __aenter__(self) -> "BookmarksApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        response = await self._client.request(
            method, path, params=params, json=json, headers=self._headers(),
        )
        if response.is_error:
            raise BookmarksApiError(response.status_code, _detail(response))
        return response.json()

    @staticmethod
    def _hint_params(edition_hints: Iterable[str]) -> list[tuple[str, str]]:
        return [("edition_hint", hint) for hint in edition_hints]

    async def list_bookmarks(
        self, cursor: str | None = None, **filters: Any,
    ) -> BookmarkListResponse:
        """Fetch one page; filters map to the list endpoint's query params."""
        params = {k: v for k, v in filters.items() if v is not None}
        if cursor:
            params["cursor"] = cursor
        data = await self._request("GET", "/bookmarks/", params=params)
        return BookmarkListResponse.model_validate(data)

    async def add_bookmark(
        self, payload: dict[str, Any], edition_hints: Iterable[str] = (),
    ) -> BookmarkMutationResponse:
        """Save a post."""
        data = await self._request(
            "POST", "/bookmarks/", params=self._hint_params(edition_hints), json=payload,
        )
        return BookmarkMutationResponse.model_validate(data)

    async def update_bookmark(
        self, post_id: str, updates: dict[str, Any], edition_hints: Iterable[str] = (),
    ) -> BookmarkMutationResponse:
        """Update a bookmark."""
        data = await self._request(
            "PATCH",
            f"/bookmarks/{post_id}",
            params=self._hint_params(edition_hints),
            json=updates,
        )
        return BookmarkMutationResponse.model_validate(data)

    async def mark_read(self, post_id: str) -> BookmarkMutationResponse:
        """Mark a bookmark as read."""
        data = await self._request("POST", f"/bookmarks/{post_id}/read")
        return BookmarkMutationResponse.model_validate(data)

    async def mark_unread(self, post_id: str) -> BookmarkMutationResponse:
        """Mark a bookmark as unread."""
        data = await self._request("POST", f"/bookmarks/{post_id}/unread")
        return BookmarkMutationResponse.model_validate(data)

    async def remove_bookmark(
        self, post_id: str, edition_hints: Iterable[str] = (),
    ) -> BookmarkMutationResponse:
        """Remove a bookmark."""
        data = await self._request(
            "DELETE", f"/bookmarks/{post_id}", params=self._hint_params(edition_hints),
        )
        return BookmarkMutationResponse.model_validate(data)

    async def bulk_remove_bookmarks(
        self, post_ids: list[str], edition_hints: Iterable[str] = (),
    ) -> BookmarkMutationResponse:
        """Remove several bookmarks."""
        data = await self._request(
            "POST",
            "/bookmarks/bulk-remove",
            params=self._hint_params(edition_hints),
            json={"post_ids": post_ids},
        )
        return BookmarkMutationResponse.model_validate(data)

    async def get_stats(self) -> BookmarkStats:
        """Fetch the persisted counters."""
        return BookmarkStats.model_validate(await self._request("GET", "/bookmarks/stats"))

    async def export_bookmarks(self) -> BookmarkExport:
        """Fetch a full export."""
        return BookmarkExport.model_validate(await self._request("GET", "/bookmarks/export"))


class BookmarksStore:
    """
    Holds a BookmarksState and keeps it in sync with the API.

    Each mutation costs one round trip: the response's rows and stats delta
    are merged locally instead of refetching the list.
    """

    def __init__(self, api: BookmarksApiClient, **filters: Any) -> None:
        self.api = api
        self.filters = filters
        self.state = BookmarksState()

    async def load(self) -> BookmarksState:
        """Load (or reload) the first page, replacing list and stats."""
        payload = await self.api.list_bookmarks(**self.filters)
        self.state = apply_list_payload(self.state, payload)
        return self.state

    async def load_more(self) -> BookmarksState:
        """Append the next page, if there is one."""
        if not self.state.has_more or not self.state.next_cursor:
            return self.state
        payload = await self.api.list_bookmarks(cursor=self.state.next_cursor, **self.filters)
        self.state = apply_list_payload(self.state, payload, append=True)
        return self.state

    async def load_all(self) -> BookmarksState:
        """Load the first page, then follow cursors until the list is exhausted."""
        await self.load()
        while self.state.has_more and self.state.next_cursor:
            await self.load_more()
        return self.state

    def _merge(self, payload: BookmarkMutationResponse) -> BookmarksState:
        self.state = apply_mutation(self.state, payload)
        return self.state

    async def add(self, payload: dict[str, Any]) -> BookmarksState:
        """Save a post and merge the result."""
        return self._merge(await self.api.add_bookmark(payload))

    async def update(self, post_id: str, updates: dict[str, Any]) -> BookmarksState:
        """Update a bookmark and merge the result."""
        return self._merge(await self.api.update_bookmark(post_id, updates))

    async def remove(self, post_id: str) -> BookmarksState:
        """Remove a bookmark and merge the result."""
        return self._merge(await self.api.remove_bookmark(post_id))

    async def bulk_remove(self, post_ids: list[str]) -> BookmarksState:
        """Remove several bookmarks and merge the result."""
        return self._merge(await self.api.bulk_remove_bookmarks(post_ids))
