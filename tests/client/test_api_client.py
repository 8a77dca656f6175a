"""Tests for the bookmarks API client and store, run against the app."""
from collections.abc import Generator

import pytest
import respx
from httpx import AsyncClient, Response

from client.api_client import (
    BookmarksApiClient,
    BookmarksApiError,
    BookmarksStore,
    get_api_base_url,
    get_default_timeout,
)

EMPTY_STATS = {"total": 0, "unread": 0, "categories": {}, "read_states": {}, "collections": {}}


@pytest.fixture
def api(client: AsyncClient) -> BookmarksApiClient:
    """API client sharing the test app's transport."""
    return BookmarksApiClient(token="test-token", client=client)


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Mock the remote API for tests that only inspect outgoing requests."""
    with respx.mock(base_url="http://api.test") as respx_mock:
        yield respx_mock


def test__get_api_base_url__default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("VITE_API_URL", raising=False)
    assert get_api_base_url() == "http://localhost:8000"

    monkeypatch.setenv("VITE_API_URL", "https://api.example.com")
    assert get_api_base_url() == "https://api.example.com"


def test__get_default_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOOKMARKS_API_TIMEOUT", "5")
    assert get_default_timeout() == 5.0


async def test__api_client__sends_bearer_token(mock_api: respx.MockRouter) -> None:
    mock_api.get("/bookmarks/stats").mock(return_value=Response(200, json=EMPTY_STATS))

    async with BookmarksApiClient(token="abc", base_url="http://api.test") as api:
        stats = await api.get_stats()

    assert stats.total == 0
    assert mock_api.calls[0].request.headers["authorization"] == "Bearer abc"


async def test__api_client__error_status_raises(api: BookmarksApiClient) -> None:
    with pytest.raises(BookmarksApiError) as exc_info:
        await api.remove_bookmark("missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Bookmark not found"


async def test__api_client__validation_error_detail(api: BookmarksApiClient) -> None:
    with pytest.raises(BookmarksApiError) as exc_info:
        await api.add_bookmark({"post_id": "1", "read_state": "skimmed"})

    assert exc_info.value.status_code == 422


async def test__api_client__non_json_error(mock_api: respx.MockRouter) -> None:
    mock_api.get("/bookmarks/export").mock(return_value=Response(502, text="Bad Gateway"))

    async with BookmarksApiClient(base_url="http://api.test") as api:
        with pytest.raises(BookmarksApiError) as exc_info:
            await api.export_bookmarks()

    assert exc_info.value.status_code == 502
    assert exc_info.value.detail == "Bad Gateway"


async def test__api_client__edition_hints_are_sent(mock_api: respx.MockRouter) -> None:
    mock_api.delete("/bookmarks/1").mock(return_value=Response(200, json={}))

    async with BookmarksApiClient(base_url="http://api.test") as api:
        await api.remove_bookmark("1", edition_hints=["ng", "gh"])

    request = mock_api.calls[0].request
    assert request.url.params.get_list("edition_hint") == ["ng", "gh"]
    assert "authorization" not in request.headers


async def test__store__mutations_stay_in_sync_with_server(api: BookmarksApiClient) -> None:
    """Merged mutation responses leave the store where a fresh load would."""
    store = BookmarksStore(api)
    await store.load()
    assert store.state.stats.total == 0

    await store.add({"post_id": "1", "category": "News"})
    await store.add({"post_id": "2", "category": "Sport", "edition_code": "ng"})
    await store.add({"post_id": "3"})
    await store.update("2", {"read_state": "read"})
    await store.remove("1")
    await store.bulk_remove(["3", "missing"])
    await store.add({"post_id": "4", "category": "Sport"})

    local = store.state
    fresh = await BookmarksStore(api).load()

    assert [b.post_id for b in local.bookmarks] == [b.post_id for b in fresh.bookmarks]
    assert local.stats == fresh.stats
    assert local.stats == await api.get_stats()


async def test__store__load_more_and_load_all(api: BookmarksApiClient) -> None:
    for post_id in ("1", "2", "3", "4", "5"):
        await api.add_bookmark({"post_id": post_id})

    store = BookmarksStore(api, limit=2, sort_by="post_id", sort_order="asc")
    await store.load()
    assert [b.post_id for b in store.state.bookmarks] == ["1", "2"]
    assert store.state.has_more is True

    await store.load_more()
    assert [b.post_id for b in store.state.bookmarks] == ["1", "2", "3", "4"]
    assert store.state.stats.total == 5

    await store.load_all()
    assert [b.post_id for b in store.state.bookmarks] == ["1", "2", "3", "4", "5"]
    assert store.state.has_more is False

    # Nothing more to load
    assert await store.load_more() == store.state
