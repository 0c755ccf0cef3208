"""API tests for site settings."""

import pytest
from conftest import seed, seed_one, token

from campus_cms.database.repositories.settings import DEFAULT_SETTINGS, SettingRepository
from campus_cms.models.database import Setting

URL = "/api/settings/"


def setting(key: str, **overrides):
    return {
        "setting_key": key,
        "setting_value": f"value of {key}",
        "label": key.replace("_", " ").title(),
        "group_name": "general",
        "is_public": True,
        **overrides,
    }


async def test_initialize_writes_defaults_once(client, admin_headers):
    first = await client.post(URL + "initialize", headers=admin_headers)
    assert first.status_code == 201
    assert first.json()["data"]["created"] == len(DEFAULT_SETTINGS) == 11

    second = await client.post(URL + "initialize", headers=admin_headers)
    assert second.status_code == 409
    assert second.json()["success"] is False


async def test_public_settings_are_grouped(client, admin_headers):
    await client.post(URL + "initialize", headers=admin_headers)

    response = await client.get(URL + "public")

    body = response.json()
    assert set(body["data"]) == {"general", "contact", "social"}
    assert body["data"]["general"]["site_name"] == {"value": "College Website", "type": "text", "label": "Site Name"}
    assert body["meta"]["count"] == 9
    assert "maintenance_mode" not in str(body["data"])


async def test_public_settings_for_one_group(client, admin_headers):
    await client.post(URL + "initialize", headers=admin_headers)

    body = (await client.get(URL + "public", params={"group_name": "social"})).json()

    assert body["meta"] == {"count": 3, "groups": ["social"]}


async def test_non_admin_listing_is_limited_to_public(client, manager, author_headers, admin_headers):
    await seed(manager, Setting, [setting("site_name"), setting("secret_flag", is_public=False)])

    anonymous = await client.get(URL)
    author = await client.get(URL, headers=author_headers)
    admin = await client.get(URL, headers=admin_headers)

    assert [item["setting_key"] for item in anonymous.json()["data"]] == ["site_name"]
    assert [item["setting_key"] for item in author.json()["data"]] == ["site_name"]
    assert admin.json()["meta"]["total"] == 2


async def test_private_key_lookup_is_hidden(client, manager, admin_headers):
    await seed(manager, Setting, [setting("site_name"), setting("secret_flag", is_public=False)])

    assert (await client.get(URL + "key/site_name")).status_code == 200
    assert (await client.get(URL + "key/secret_flag")).status_code == 404
    assert (await client.get(URL + "key/secret_flag", headers=admin_headers)).status_code == 200


async def test_empty_group_is_404(client, manager):
    await seed(manager, Setting, [setting("site_name")])

    assert (await client.get(URL + "group/general")).status_code == 200
    assert (await client.get(URL + "group/nowhere")).status_code == 404


async def test_create_duplicate_key_conflicts(client, manager, admin_headers):
    await seed_one(manager, Setting, **setting("site_name"))

    response = await client.post(URL, json={"setting_key": "site_name", "label": "Site Name"}, headers=admin_headers)

    assert response.status_code == 409


async def test_create_file_setting_renders_url(client, storage, admin_headers):
    response = await client.post(
        URL,
        data={"setting_key": "hero_banner", "label": "Hero Banner", "setting_type": "file", "is_public": "true"},
        files={"file": ("banner.webp", b"webp", "image/webp")},
        headers=admin_headers
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["setting_value"].startswith("http://test/uploads/settings/")
    stored = data["setting_value"].replace("http://test/", "")
    assert (storage.root / stored).exists()


async def test_create_accepts_json_columns_as_strings(client, admin_headers):
    response = await client.post(
        URL,
        data={"setting_key": "theme", "label": "Theme", "options": '[{"label": "Dark", "value": "dark"}]'},
        headers=admin_headers
    )

    assert response.status_code == 201
    assert response.json()["data"]["options"] == [{"label": "Dark", "value": "dark"}]


async def test_update_replaces_file_value(client, storage, admin_headers):
    created = (await client.post(
        URL,
        data={"setting_key": "hero_banner", "label": "Hero Banner", "setting_type": "file"},
        files={"file": ("old.png", b"old", "image/png")},
        headers=admin_headers
    )).json()["data"]
    old_path = created["setting_value"].replace("http://test/", "")

    response = await client.put(
        URL + created["id"],
        files={"file": ("new.png", b"new", "image/png")},
        headers=admin_headers
    )

    assert response.status_code == 200
    new_path = response.json()["data"]["setting_value"].replace("http://test/", "")
    assert new_path != old_path
    assert not (storage.root / old_path).exists()
    assert (storage.root / new_path).read_bytes() == b"new"


async def test_bulk_update_skips_unknown_keys(client, manager, admin_headers):
    await seed(manager, Setting, [setting("site_name"), setting("contact_email")])

    response = await client.put(URL + "bulk", json={"settings": [
        {"setting_key": "site_name", "setting_value": "Riverside College"},
        {"setting_key": "contact_email", "setting_value": "hello@riverside.edu"},
        {"setting_key": "unknown_key", "setting_value": "ignored"},
    ]}, headers=admin_headers)

    body = response.json()
    assert response.status_code == 200
    assert body["meta"] == {"updated": 2, "requested": 3}
    values = {item["setting_key"]: item["setting_value"] for item in body["data"]}
    assert values == {"site_name": "Riverside College", "contact_email": "hello@riverside.edu"}


async def test_patch_value_by_key(client, manager, admin_headers):
    await seed_one(manager, Setting, **setting("maintenance_mode", setting_type="boolean", setting_value="false"))

    response = await client.patch(URL + "key/maintenance_mode", json={"setting_value": "true"}, headers=admin_headers)

    assert response.json()["data"]["setting_value"] == "true"


async def test_reset_restores_defaults(client, manager, admin_headers):
    await seed(manager, Setting, [setting("custom_one"), setting("custom_two")])

    response = await client.post(URL + "reset", headers=admin_headers)

    assert response.status_code == 200
    listing = await client.get(URL, headers=admin_headers)
    keys = {item["setting_key"] for item in listing.json()["data"]}
    assert keys == {item["setting_key"] for item in DEFAULT_SETTINGS}


async def test_admin_only_operations(client, manager, author_headers):
    item = await seed_one(manager, Setting, **setting("site_name"))

    assert (await client.get(URL + "stats", headers=author_headers)).status_code == 403
    assert (await client.get(URL + token(item), headers=author_headers)).status_code == 403
    assert (await client.post(URL + "reset")).status_code == 401


async def test_stats_counts_visibility(client, admin_headers):
    await client.post(URL + "initialize", headers=admin_headers)

    data = (await client.get(URL + "stats", headers=admin_headers)).json()["data"]

    assert (data["total"], data["public"], data["private"]) == (11, 9, 2)
    assert {row["group_name"]: row["count"] for row in data["by_group"]}["system"] == 2


async def test_delete_setting(client, manager, admin_headers):
    item = await seed_one(manager, Setting, **setting("site_name"))

    assert (await client.delete(URL + token(item), headers=admin_headers)).status_code == 200
    assert (await client.get(URL + token(item), headers=admin_headers)).status_code == 404


async def test_key_taken_after_the_check_is_a_conflict(client, manager, admin_headers, mocker):
    await seed_one(manager, Setting, **setting("site_name"))
    # Another request inserted the key between the existence check and the commit
    mocker.patch.object(SettingRepository, "exists", return_value=False)

    response = await client.post(URL, json={"setting_key": "site_name", "label": "Site Name"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "Resource already exists"}


@pytest.mark.parametrize("value", ["../victim.txt", "/etc/passwd", "uploads/../../victim.txt", "logo.png"])
async def test_file_setting_value_must_be_an_upload_path(client, admin_headers, value):
    response = await client.post(
        URL,
        json={"setting_key": "hero_banner", "label": "Hero Banner", "setting_type": "file", "setting_value": value},
        headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "setting_value"


async def test_file_value_cannot_be_redirected_by_key_or_in_bulk(client, manager, admin_headers):
    await seed_one(manager, Setting, **setting("site_logo", setting_type="file", setting_value=None))

    patched = await client.patch(URL + "key/site_logo", json={"setting_value": "../victim.txt"}, headers=admin_headers)
    bulk = await client.put(URL + "bulk", json={"settings": [
        {"setting_key": "site_logo", "setting_value": "../../victim.txt"},
    ]}, headers=admin_headers)

    assert patched.status_code == bulk.status_code == 400
    stored = (await client.get(URL + "key/site_logo", headers=admin_headers)).json()["data"]
    assert stored["setting_value"] is None


async def test_deleting_a_setting_never_touches_files_outside_storage(client, manager, storage, admin_headers):
    victim = storage.root.parent / "victim.txt"
    victim.write_text("keep me")
    item = await seed_one(manager, Setting, **setting("site_logo", setting_type="file", setting_value="../victim.txt"))

    response = await client.delete(URL + token(item), headers=admin_headers)

    assert response.status_code == 200
    assert victim.read_text() == "keep me"


async def test_changing_type_away_from_file_removes_the_stored_file(client, storage, admin_headers):
    created = (await client.post(
        URL,
        data={"setting_key": "hero_banner", "label": "Hero Banner", "setting_type": "file"},
        files={"file": ("banner.png", b"png", "image/png")},
        headers=admin_headers
    )).json()["data"]
    stored = storage.root / created["setting_value"].replace("http://test/", "")

    response = await client.put(URL + created["id"], json={"setting_type": "text"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["setting_type"] == "text"
    assert response.json()["data"]["setting_value"] is None
    assert not stored.exists()


async def test_patching_a_file_value_removes_the_previous_file(client, storage, admin_headers):
    first = (await client.post(
        URL,
        data={"setting_key": "hero_banner", "label": "Hero Banner", "setting_type": "file"},
        files={"file": ("one.png", b"one", "image/png")},
        headers=admin_headers
    )).json()["data"]
    old = storage.root / first["setting_value"].replace("http://test/", "")

    response = await client.patch(URL + "key/hero_banner", json={"setting_value": None}, headers=admin_headers)

    assert response.status_code == 200
    assert not old.exists()
