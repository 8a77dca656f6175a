"""Tests for bookmark list and mutation endpoints."""
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from services.exceptions import BookmarkDependencyError


async def _create(client: AsyncClient, post_id: str, **fields: object) -> dict:
    response = await client.post("/bookmarks/", json={"post_id": post_id, **fields})
    assert response.status_code == 201, response.text
    return response.json()["added"][0]


async def test_create_bookmark(client: AsyncClient, db_session: AsyncSession) -> None:
    """Saving a post returns the row and the stats delta."""
    response = await client.post(
        "/bookmarks/",
        json={
            "postId": "1042",
            "title": "Budget passes second reading",
            "category": "Politics",
            "editionCode": "NG",
            "tags": ["budget", " ", "senate"],
        },
    )
    assert response.status_code == 201

    data = response.json()
    assert data["updated"] == []
    assert data["removed"] == []
    added = data["added"][0]
    assert added["post_id"] == "1042"
    assert added["edition_code"] == "ng"
    assert added["tags"] == ["budget", "senate"]
    assert added["read_state"] == "unread"
    assert data["stats_delta"] == {
        "total": 1,
        "unread": 1,
        "categories": {"Politics": 1},
        "read_states": {"unread": 1},
        "collections": {added["collection_id"]: 1},
    }

    result = await db_session.execute(select(Bookmark).where(Bookmark.post_id == "1042"))
    assert result.scalar_one().title == "Budget passes second reading"


async def test_create_bookmark_duplicate(client: AsyncClient) -> None:
    """Saving the same post twice is a conflict."""
    await _create(client, "1042")

    response = await client.post("/bookmarks/", json={"post_id": "1042"})
    assert response.status_code == 409
    assert response.json() == {"detail": "Bookmark already exists"}


async def test_create_bookmark_blank_post_id(client: AsyncClient) -> None:
    """A blank post ID is rejected."""
    response = await client.post("/bookmarks/", json={"post_id": "  "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Post ID is required"


async def test_create_bookmark_invalid_read_state(client: AsyncClient) -> None:
    """An unknown read state fails validation."""
    response = await client.post("/bookmarks/", json={"post_id": "1", "read_state": "skimmed"})
    assert response.status_code == 422


async def test_create_bookmark_counter_failure(
    client: AsyncClient, db_session: AsyncSession,
) -> None:
    """The row is saved even when the counter write fails; the client gets 503."""
    with patch(
        "services.bookmark_service.apply_bookmark_counter_delta",
        new_callable=AsyncMock,
        side_effect=BookmarkDependencyError("Failed to update bookmark counters"),
    ):
        response = await client.post("/bookmarks/", json={"post_id": "1042"})

    assert response.status_code == 503
    assert "statistics could not be updated" in response.json()["detail"]
    result = await db_session.execute(select(Bookmark).where(Bookmark.post_id == "1042"))
    assert result.scalar_one_or_none() is not None


async def test_list_bookmarks_first_page(client: AsyncClient) -> None:
    """The first page carries stats and a cursor when more rows exist."""
    for post_id in ("1", "2", "3"):
        await _create(client, post_id, category="News")

    response = await client.get("/bookmarks/", params={"limit": 2})
    assert response.status_code == 200

    data = response.json()
    assert [b["post_id"] for b in data["bookmarks"]] == ["3", "2"]
    assert data["pagination"]["limit"] == 2
    assert data["pagination"]["has_more"] is True
    assert data["pagination"]["next_cursor"]
    assert data["stats"]["total"] == 3
    assert data["stats"]["categories"] == {"News": 3}


async def test_list_bookmarks_follow_cursor(client: AsyncClient) -> None:
    """Following next_cursor visits every row exactly once."""
    for post_id in ("1", "2", "3", "4", "5"):
        await _create(client, post_id)

    seen: list[str] = []
    params: dict[str, object] = {"limit": 2, "sort_by": "post_id", "sort_order": "asc"}
    while True:
        data = (await client.get("/bookmarks/", params=params)).json()
        seen.extend(b["post_id"] for b in data["bookmarks"])
        if len(seen) > 2:
            assert data["stats"] is None
        if not data["pagination"]["has_more"]:
            break
        params["cursor"] = data["pagination"]["next_cursor"]

    assert seen == ["1", "2", "3", "4", "5"]


async def test_list_bookmarks_invalid_cursor_restarts(client: AsyncClient) -> None:
    """A malformed cursor is ignored and the first page is returned."""
    await _create(client, "1")

    response = await client.get("/bookmarks/", params={"cursor": "not-a-cursor"})
    assert response.status_code == 200
    data = response.json()
    assert [b["post_id"] for b in data["bookmarks"]] == ["1"]
    assert data["stats"]["total"] == 1


async def test_list_bookmarks_unread_includes_in_progress(client: AsyncClient) -> None:
    """The unread filter also matches posts in progress."""
    await _create(client, "1")
    await _create(client, "2", read_state="in_progress")
    await _create(client, "3", read_state="read")

    data = (await client.get("/bookmarks/", params={"read_state": "unread"})).json()
    assert sorted(b["post_id"] for b in data["bookmarks"]) == ["1", "2"]

    data = (await client.get("/bookmarks/", params={"read_state": "in-progress"})).json()
    assert [b["post_id"] for b in data["bookmarks"]] == ["2"]


async def test_list_bookmarks_edition_filter(client: AsyncClient) -> None:
    """Edition filter matches a value, or rows without an edition for 'null'."""
    await _create(client, "1", edition_code="ng")
    await _create(client, "2")

    data = (await client.get("/bookmarks/", params={"edition_code": "NG"})).json()
    assert [b["post_id"] for b in data["bookmarks"]] == ["1"]

    data = (await client.get("/bookmarks/", params={"edition_code": "null"})).json()
    assert [b["post_id"] for b in data["bookmarks"]] == ["2"]

    data = (await client.get("/bookmarks/", params={"edition_code": "all"})).json()
    assert len(data["bookmarks"]) == 2


async def test_list_bookmarks_search(client: AsyncClient) -> None:
    """Free-text search covers titles and notes."""
    await _create(client, "1", title="Floods in Lagos")
    await _create(client, "2", title="Transfer news", note="lagos derby preview")
    await _create(client, "3", title="Unrelated")

    data = (await client.get("/bookmarks/", params={"q": "LAGOS"})).json()
    assert sorted(b["post_id"] for b in data["bookmarks"]) == ["1", "2"]


async def test_list_bookmarks_limit_is_clamped(client: AsyncClient) -> None:
    """A page size over the maximum is clamped rather than rejected."""
    response = await client.get("/bookmarks/", params={"limit": 10_000})
    assert response.status_code == 200
    assert response.json()["pagination"]["limit"] == 100


async def test_list_bookmarks_empty(client: AsyncClient) -> None:
    """An empty list has zero stats and no cursor."""
    data = (await client.get("/bookmarks/")).json()
    assert data["bookmarks"] == []
    assert data["stats"] == {
        "total": 0,
        "unread": 0,
        "categories": {},
        "read_states": {},
        "collections": {},
    }
    assert data["pagination"] == {"limit": 20, "has_more": False, "next_cursor": None}


async def test_update_bookmark(client: AsyncClient) -> None:
    """Updating read state returns the row and a bucket move."""
    await _create(client, "1")

    response = await client.patch("/bookmarks/1", json={"readState": "read"})
    assert response.status_code == 200

    data = response.json()
    assert data["updated"][0]["read_state"] == "read"
    assert data["stats_delta"]["unread"] == -1
    assert data["stats_delta"]["read_states"] == {"unread": -1, "read": 1}


async def test_update_bookmark_no_changes(client: AsyncClient) -> None:
    """An update that would change nothing is rejected."""
    await _create(client, "1", title="Same")

    response = await client.patch("/bookmarks/1", json={"title": "Same"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No bookmark updates provided"


async def test_update_bookmark_not_found(client: AsyncClient) -> None:
    """Updating a post that is not saved is a 404."""
    response = await client.patch("/bookmarks/missing", json={"title": "x"})
    assert response.status_code == 404


async def test_mark_read_and_unread(client: AsyncClient) -> None:
    """Read and unread shortcuts flip the read state."""
    await _create(client, "1")

    response = await client.post("/bookmarks/1/read")
    assert response.status_code == 200
    assert response.json()["updated"][0]["read_state"] == "read"

    response = await client.post("/bookmarks/1/read")
    assert response.status_code == 400

    response = await client.post("/bookmarks/1/unread")
    assert response.status_code == 200
    assert response.json()["stats_delta"]["unread"] == 1


async def test_delete_bookmark(client: AsyncClient) -> None:
    """Removing a post returns the removed row and negative delta."""
    await _create(client, "1", category="News")

    response = await client.delete("/bookmarks/1")
    assert response.status_code == 200
    data = response.json()
    assert [b["post_id"] for b in data["removed"]] == ["1"]
    assert data["stats_delta"]["total"] == -1
    assert data["stats_delta"]["categories"] == {"News": -1}

    response = await client.delete("/bookmarks/1")
    assert response.status_code == 404


async def test_bulk_remove_bookmarks(client: AsyncClient) -> None:
    """Bulk remove drops duplicates and unknown IDs, reporting only removed rows."""
    for post_id in ("1", "2", "3"):
        await _create(client, post_id)

    response = await client.post(
        "/bookmarks/bulk-remove", json={"postIds": ["1", "2", "2", "nope"]},
    )
    assert response.status_code == 200
    data = response.json()
    assert sorted(b["post_id"] for b in data["removed"]) == ["1", "2"]
    assert data["stats_delta"]["total"] == -2

    listing = (await client.get("/bookmarks/")).json()
    assert [b["post_id"] for b in listing["bookmarks"]] == ["3"]


async def test_bulk_remove_bookmarks_empty(client: AsyncClient) -> None:
    """Bulk remove with no usable IDs is rejected."""
    response = await client.post("/bookmarks/bulk-remove", json={"post_ids": [" "]})
    assert response.status_code == 400


async def test_get_bookmark_stats(client: AsyncClient) -> None:
    """The stats endpoint reads the persisted counters."""
    await _create(client, "1", category="News")
    await _create(client, "2", category="News", read_state="read")
    await client.delete("/bookmarks/1")

    response = await client.get("/bookmarks/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["unread"] == 0
    assert data["categories"] == {"News": 1}
    assert data["read_states"] == {"read": 1}


async def test_export_bookmarks(client: AsyncClient) -> None:
    """Export returns every saved post."""
    await _create(client, "1", title="One")
    await _create(client, "2", title="Two")

    response = await client.get("/bookmarks/export")
    assert response.status_code == 200
    data = response.json()
    assert data["total_bookmarks"] == 2
    assert {b["title"] for b in data["bookmarks"]} == {"One", "Two"}


async def test_list_collections(client: AsyncClient) -> None:
    """Default collections are created on demand and listed defaults first."""
    await _create(client, "1", edition_code="gh")
    await _create(client, "2")

    response = await client.get("/collections/")
    assert response.status_code == 200
    assert [c["slug"] for c in response.json()] == ["general", "gh"]
