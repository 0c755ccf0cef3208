"""API tests for the media library."""

from pathlib import Path

from conftest import seed, seed_one, token

from campus_cms.core.ids import encode_id
from campus_cms.models.database import GalleryItem, Media

URL = "/api/media/"


async def add_media(manager, storage, owner, name="photo.jpg", **overrides):
    """Seed a media row backed by a real file in the storage root."""
    path = f"uploads/media/{owner.id}-{name}"
    target = storage.root / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(b"image-bytes")
    fields = {
        "original_name": name,
        "filename": target.name,
        "file_path": path,
        "file_size": 11,
        "mime_type": "image/jpeg",
        "file_type": "image",
        "uploaded_by": owner.id,
        **overrides,
    }
    return await seed_one(manager, Media, **fields)


async def test_upload_stores_files_and_returns_urls(client, storage, author, author_headers):
    response = await client.post(
        URL,
        data={"alt_text": "Campus at dusk"},
        files=[
            ("file", ("dusk.jpg", b"jpeg-data", "image/jpeg")),
            ("file", ("brochure.pdf", b"%PDF-1.4", "application/pdf")),
        ],
        headers=author_headers
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["count"] == 2
    by_name = {item["original_name"]: item for item in data["files"]}
    assert by_name["dusk.jpg"]["file_type"] == "image"
    assert by_name["brochure.pdf"]["file_type"] == "document"
    assert by_name["dusk.jpg"]["alt_text"] == "Campus at dusk"
    assert by_name["dusk.jpg"]["uploader"]["username"] == "author"
    assert by_name["dusk.jpg"]["url"].startswith("http://test/uploads/media/")
    for item in data["files"]:
        assert (storage.root / item["file_path"]).read_bytes()


async def test_upload_without_files_is_rejected(client, author_headers):
    response = await client.post(URL, data={"alt_text": "nothing"}, headers=author_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "file"


async def test_media_requires_authentication(client):
    assert (await client.get(URL)).status_code == 401


async def test_list_includes_usage_counts(client, manager, storage, author, author_headers):
    used = await add_media(manager, storage, author, "used.jpg")
    await add_media(manager, storage, author, "unused.jpg")
    await seed(manager, GalleryItem, [{"media_id": used.id, "title": "Convocation"}] * 2)

    response = await client.get(URL, headers=author_headers)

    counts = {item["original_name"]: item["usage_count"] for item in response.json()["data"]}
    assert counts == {"used.jpg": 2, "unused.jpg": 0}


async def test_my_media_only_lists_own_uploads(client, manager, storage, admin, author, author_headers):
    await add_media(manager, storage, author, "mine.jpg")
    await add_media(manager, storage, admin, "theirs.jpg")

    response = await client.get(URL + "my", headers=author_headers)

    assert [item["original_name"] for item in response.json()["data"]] == ["mine.jpg"]
    assert response.json()["meta"]["total"] == 1


async def test_filter_by_type_and_uploader(client, manager, storage, admin, author, author_headers):
    await add_media(manager, storage, author, "a.jpg")
    await add_media(manager, storage, admin, "b.mp4", mime_type="video/mp4", file_type="video")

    videos = await client.get(URL + "type/video", headers=author_headers)
    assert [item["original_name"] for item in videos.json()["data"]] == ["b.mp4"]

    by_uploader = await client.get(URL, params={"uploaded_by": encode_id(author.id)}, headers=author_headers)
    assert [item["original_name"] for item in by_uploader.json()["data"]] == ["a.jpg"]

    bad_type = await client.get(URL + "type/spreadsheet", headers=author_headers)
    assert bad_type.status_code == 400


async def test_bulk_delete_reports_per_item_errors(client, manager, storage, admin, author, author_headers):
    own_1 = await add_media(manager, storage, author, "own-1.jpg")
    own_2 = await add_media(manager, storage, author, "own-2.jpg")
    foreign = await add_media(manager, storage, admin, "foreign.jpg")
    in_use = await add_media(manager, storage, author, "in-use.jpg")
    await seed_one(manager, GalleryItem, media_id=in_use.id, title="Sports day")

    requested = [token(own_1), token(own_2), token(foreign), token(in_use), "not-a-real-id"]
    response = await client.post(URL + "bulk-delete", json={"media_ids": requested}, headers=author_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["deleted_count"] == 2
    assert data["total_requested"] == 5
    errors = {error["id"]: error["error"] for error in data["errors"]}
    assert set(errors) == {token(foreign), token(in_use), "not-a-real-id"}
    assert "permission" in errors[token(foreign)]
    assert "gallery" in errors[token(in_use)]
    assert errors["not-a-real-id"] == "Media not found"

    assert not (storage.root / own_1.file_path).exists()
    assert (storage.root / foreign.file_path).exists()
    remaining = await client.get(URL, headers=author_headers)
    assert remaining.json()["meta"]["total"] == 2


async def test_bulk_delete_with_nothing_deletable(client, manager, storage, admin, author_headers):
    foreign = await add_media(manager, storage, admin, "foreign.jpg")

    response = await client.post(URL + "bulk-delete", json={"media_ids": [token(foreign)]}, headers=author_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["id"] == token(foreign)


async def test_update_is_limited_to_owner_or_admin(client, manager, storage, admin, author_headers, admin_headers):
    media = await add_media(manager, storage, admin, "admin.jpg")

    denied = await client.put(URL + token(media), json={"caption": "Mine now"}, headers=author_headers)
    assert denied.status_code == 403

    allowed = await client.put(URL + token(media), json={"caption": "Annual day"}, headers=admin_headers)
    assert allowed.status_code == 200
    assert allowed.json()["data"]["caption"] == "Annual day"
    assert allowed.json()["data"]["alt_text"] is None


async def test_media_in_use_cannot_be_deleted(client, manager, storage, author, author_headers):
    media = await add_media(manager, storage, author)
    await seed_one(manager, GalleryItem, media_id=media.id)

    response = await client.delete(URL + token(media), headers=author_headers)

    assert response.status_code == 400
    assert "gallery" in response.json()["message"]


async def test_file_cleanup_failure_does_not_fail_delete(client, manager, storage, author, author_headers, mocker):
    media = await add_media(manager, storage, author)
    unlink = mocker.patch.object(Path, "unlink", side_effect=PermissionError("read-only volume"))

    response = await client.delete(URL + token(media), headers=author_headers)

    assert response.status_code == 200
    assert unlink.called
    assert (await client.get(URL + token(media), headers=author_headers)).status_code == 404


async def test_stats(client, manager, storage, author, author_headers):
    await add_media(manager, storage, author, "a.jpg")
    await add_media(manager, storage, author, "b.jpg")

    data = (await client.get(URL + "stats", headers=author_headers)).json()["data"]

    assert data["total_files"] == 2
    assert data["total_size"] == 22
    assert data["by_type"] == [{"file_type": "image", "count": 2, "total_size": 22}]
    assert len(data["recent_uploads"]) == 2
