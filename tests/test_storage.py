"""Tests for upload storage and best-effort cleanup."""

import io
from pathlib import Path

import pytest
from starlette.datastructures import UploadFile

from campus_cms.services.storage import FileStorage


def upload(name="report.PDF", data=b"%PDF-1.4"):
    return UploadFile(file=io.BytesIO(data), filename=name)


async def test_store_writes_under_entity_folder(storage):
    saved = await storage.store(upload(), "media")

    assert saved.path.startswith("uploads/media/")
    assert saved.path.endswith(".pdf")
    assert saved.size == 8
    assert (storage.root / saved.path).read_bytes() == b"%PDF-1.4"


async def test_batch_removes_files_when_the_write_fails(storage):
    stored = []
    with pytest.raises(RuntimeError):
        async with storage.batch() as batch:
            stored.append((await batch.store(upload(), "partners")).path)
            raise RuntimeError("insert failed")

    assert not (storage.root / stored[0]).exists()


async def test_batch_keeps_files_on_success(storage):
    async with storage.batch() as batch:
        saved = await batch.store(upload(), "partners")

    assert (storage.root / saved.path).exists()


async def test_remove_missing_file_counts_as_removed(storage):
    assert await storage.remove("uploads/media/ghost.png") is True
    assert await storage.remove(None) is True


async def test_remove_failure_is_reported_not_raised(storage, mocker):
    saved = await storage.store(upload(), "media")
    mocker.patch.object(Path, "unlink", side_effect=PermissionError("denied"))

    assert await storage.remove(saved.path) is False


def test_explicit_root_overrides_settings():
    assert FileStorage("/srv/cms").root == Path("/srv/cms")


@pytest.fixture
def victim(storage):
    outside = storage.root.parent / "victim.txt"
    outside.write_text("keep me")
    return outside


@pytest.mark.parametrize("path", ["../victim.txt", "uploads/../../victim.txt", "uploads/media/../../../victim.txt"])
async def test_remove_refuses_relative_traversal(storage, victim, path):
    assert await storage.remove(path) is False
    assert victim.read_text() == "keep me"


async def test_remove_refuses_absolute_path(storage, victim):
    assert await storage.remove(str(victim)) is False
    assert victim.exists()


async def test_remove_refuses_symlink_escaping_upload_tree(storage, victim):
    link = storage.root / "uploads" / "media" / "evil.png"
    link.parent.mkdir(parents=True)
    link.symlink_to(victim)

    assert await storage.remove("uploads/media/evil.png") is False
    assert victim.exists()


@pytest.mark.parametrize(
    "path, expected",
    [
        ("uploads/settings/a.png", True),
        ("uploads/a.png", True),
        ("uploads", False),
        ("../uploads/a.png", False),
        ("/uploads/a.png", False),
        ("uploads/../a.png", False),
        ("uploads\\..\\a.png", False),
        ("media/a.png", False),
        ("", False),
        (None, False),
    ]
)
def test_is_stored_path(path, expected):
    assert FileStorage.is_stored_path(path) is expected
