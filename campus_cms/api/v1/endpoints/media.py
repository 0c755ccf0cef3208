"""FastAPI endpoints for the media library.

Every route requires a signed-in user. Uploaders may edit and delete their
own files; admins may edit and delete any file. Files referenced by gallery
items cannot be deleted.
"""

from typing import Any, Dict, List, Mapping, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.api.dependencies import (
    ensure_found,
    get_base_url,
    get_db,
    list_params,
    read_payload,
    validate_payload
)
from campus_cms.api.responses import paginated, success
from campus_cms.core.config import get_settings
from campus_cms.core.exceptions import DependencyInUseError, PermissionDeniedError, ValidationError
from campus_cms.core.ids import decode_id
from campus_cms.core.logging import get_logger, monitor_performance
from campus_cms.core.query import PaginatedResult, QueryBuilder
from campus_cms.core.security import can_modify, get_current_user
from campus_cms.database.repositories.base import SqlListStore
from campus_cms.database.repositories.media import (
    MEDIA_LIST,
    MEDIA_LOAD_OPTIONS,
    MediaRepository,
    media_stats
)
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.media import FILE_TYPES, Media, file_type_for
from campus_cms.models.database.user import User
from campus_cms.models.domain.media import MediaBulkDelete, MediaResponse, MediaUpdate
from campus_cms.services.storage import FileStorage, get_storage
from campus_cms.utils.validators import ensure_choice

router = APIRouter()
logger = get_logger(__name__)
settings = get_settings()

media_query = QueryBuilder(MEDIA_LIST)
media_params = list_params(MEDIA_LIST, {"file_type": FILE_TYPES})


def media_dto(media: Media, base_url: str, usage_count: int = 0) -> Dict[str, Any]:
    data = MediaResponse.model_validate(media).model_dump(mode="json")
    data["url"] = FileStorage.url_for(media.file_path, base_url)
    data["usage_count"] = usage_count
    return data


async def _page(
    manager: SessionManager,
    db: AsyncSession,
    params: Mapping[str, Any],
    base_url: str,
    narrowing: Optional[Mapping[str, Any]] = None
) -> PaginatedResult:
    """Fetch one page of media and attach gallery usage to each item."""
    result = await media_query.paginate(
        SqlListStore(Media, manager, options=MEDIA_LOAD_OPTIONS),
        params,
        narrowing=narrowing
    )
    usage = await MediaRepository(db).usage_counts(item.id for item in result.items)
    result.items = [media_dto(item, base_url, usage.get(item.id, 0)) for item in result.items]
    return result


@router.post("/", status_code=status.HTTP_201_CREATED)
@monitor_performance("upload_media")
async def upload_media(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    """Upload one or more files under the ``file`` form field."""
    data, files = await read_payload(request)
    details = validate_payload(MediaUpdate, data)

    uploads = files.get("file", [])
    if not uploads:
        raise ValidationError("No files uploaded", errors=[{"field": "file", "message": "At least one file is required"}])
    if len(uploads) > settings.MAX_UPLOAD_FILES:
        raise ValidationError(
            f"A maximum of {settings.MAX_UPLOAD_FILES} files can be uploaded at once",
            errors=[{"field": "file", "message": "Too many files"}]
        )

    repository = MediaRepository(db)
    created = []
    async with storage.batch() as batch:
        for upload in uploads:
            saved = await batch.store(upload, "media")
            created.append(await repository.create(
                original_name=upload.filename,
                filename=saved.path.rsplit("/", 1)[-1],
                file_path=saved.path,
                file_size=saved.size,
                mime_type=upload.content_type or "application/octet-stream",
                file_type=file_type_for(upload.content_type),
                alt_text=details.alt_text,
                caption=details.caption,
                uploaded_by=current_user.id
            ))
        await db.commit()

    media = await repository.get_many([item.id for item in created])
    logger.info("Media uploaded", count=len(media), user_id=current_user.id)
    return success(
        f"{len(media)} file(s) uploaded successfully",
        {"count": len(media), "files": [media_dto(item, base_url) for item in media]}
    )


@router.get("/")
@monitor_performance("list_media")
async def list_media(
    params: Dict[str, Any] = Depends(media_params),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    result = await _page(manager, db, params, base_url)
    return paginated("Media files retrieved successfully", result)


@router.get("/search")
@monitor_performance("search_media")
async def search_media(
    params: Dict[str, Any] = Depends(media_params),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    result = await _page(manager, db, params, base_url)
    return paginated("Search completed successfully", result, extra_meta={"query": params.get("query")})


@router.get("/stats")
@monitor_performance("media_stats")
async def get_media_stats(
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    stats = await media_stats(manager)
    stats["recent_uploads"] = [media_dto(item, base_url) for item in stats["recent_uploads"]]
    return success("Media statistics retrieved successfully", stats)


@router.get("/my")
@monitor_performance("list_my_media")
async def list_my_media(
    params: Dict[str, Any] = Depends(media_params),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    result = await _page(manager, db, params, base_url, narrowing={"uploaded_by": current_user.id})
    return paginated("Your media files retrieved successfully", result)


@router.get("/type/{file_type}")
@monitor_performance("list_media_by_type")
async def list_media_by_type(
    file_type: str,
    params: Dict[str, Any] = Depends(media_params),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    ensure_choice(file_type, FILE_TYPES, "file_type")
    result = await _page(manager, db, {**params, "file_type": file_type}, base_url)
    return paginated(f"{file_type.capitalize()} files retrieved successfully", result)


@router.post("/bulk-delete")
@monitor_performance("bulk_delete_media")
async def bulk_delete_media(
    payload: MediaBulkDelete,
    manager: SessionManager = Depends(get_session_manager),
    storage: FileStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user)
):
    """Delete every requested file the caller may delete; report the rest.

    Rows are removed in one transaction. Files on disk are removed afterwards,
    best-effort.
    """
    requested = [(token, decode_id(token, lenient=True)) for token in payload.media_ids]
    errors: List[Dict[str, Any]] = []
    deletable: Dict[int, Media] = {}

    async with manager.transaction() as session:
        repository = MediaRepository(session)
        rows = {
            media.id: media
            for media in await repository.get_many([media_id for _, media_id in requested if media_id])
        }
        usage = await repository.usage_counts(rows.keys())

        for token, media_id in requested:
            media = rows.get(media_id) if media_id else None
            if media is None:
                errors.append({"id": token, "error": "Media not found"})
            elif not can_modify(current_user, media.uploaded_by):
                errors.append({"id": token, "error": "You do not have permission to delete this media"})
            elif usage.get(media.id):
                errors.append({
                    "id": token,
                    "error": f"Media is being used in {usage[media.id]} gallery item(s)"
                })
            else:
                deletable[media.id] = media

        if not deletable:
            raise ValidationError("No media files could be deleted", errors=errors)

        for media in deletable.values():
            await session.delete(media)

    for media in deletable.values():
        await storage.remove(media.file_path)

    logger.info(
        "Media bulk delete completed",
        deleted_count=len(deletable),
        failed_count=len(errors),
        user_id=current_user.id
    )
    return success(
        f"{len(deletable)} media file(s) deleted successfully",
        {
            "deleted_count": len(deletable),
            "total_requested": len(payload.media_ids),
            "errors": errors or None,
        }
    )


@router.get("/{media_id}")
@monitor_performance("get_media")
async def get_media(
    media_id: str,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    repository = MediaRepository(db)
    media = ensure_found(await repository.get(decode_id(media_id)), "Media not found")
    usage = await repository.usage_counts([media.id])
    return success("Media retrieved successfully", media_dto(media, base_url, usage.get(media.id, 0)))


@router.put("/{media_id}")
@monitor_performance("update_media")
async def update_media(
    media_id: str,
    payload: MediaUpdate,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(get_current_user)
):
    """Update alt text and caption; only fields present in the body change."""
    repository = MediaRepository(db)
    media = ensure_found(await repository.get(decode_id(media_id)), "Media not found")
    if not can_modify(current_user, media.uploaded_by):
        raise PermissionDeniedError("You do not have permission to update this media")

    await repository.update(media, **payload.model_dump(exclude_unset=True))
    await db.commit()

    media = await repository.get(media.id)
    usage = await repository.usage_counts([media.id])
    logger.info("Media updated", media_id=media.id, user_id=current_user.id)
    return success("Media updated successfully", media_dto(media, base_url, usage.get(media.id, 0)))


@router.delete("/{media_id}")
@monitor_performance("delete_media")
async def delete_media(
    media_id: str,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user)
):
    repository = MediaRepository(db)
    media = ensure_found(await repository.get(decode_id(media_id)), "Media not found")
    if not can_modify(current_user, media.uploaded_by):
        raise PermissionDeniedError("You do not have permission to delete this media")

    in_use = (await repository.usage_counts([media.id])).get(media.id, 0)
    if in_use:
        raise DependencyInUseError(
            f"Cannot delete media. It is being used in {in_use} gallery item(s)."
        )

    file_path = media.file_path
    await repository.delete(media)
    await db.commit()
    await storage.remove(file_path)

    logger.info("Media deleted", media_id=media.id, user_id=current_user.id)
    return success("Media deleted successfully")
