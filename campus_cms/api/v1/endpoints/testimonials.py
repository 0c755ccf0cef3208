"""FastAPI endpoints for student testimonials.

Anonymous visitors see published testimonials only. Signed-in staff see
drafts as well, and admins create and edit them. A testimonial can be
addressed by its encoded id or by its slug.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.api.dependencies import (
    ensure_content_type,
    ensure_found,
    get_base_url,
    get_db,
    list_params,
    read_payload,
    single_file,
    toggle_changes,
    validate_payload
)
from campus_cms.api.responses import paginated, success
from campus_cms.core.exceptions import PermissionDeniedError, ValidationError
from campus_cms.core.ids import decode_id, encode_id
from campus_cms.core.logging import get_logger, monitor_performance
from campus_cms.core.query import QueryBuilder
from campus_cms.core.security import get_optional_user, require_admin, require_staff
from campus_cms.database.repositories.base import SqlListStore
from campus_cms.database.repositories.testimonials import (
    PUBLIC_TESTIMONIALS,
    TESTIMONIAL_LIST,
    TestimonialRepository,
    testimonial_stats
)
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.testimonial import Program, Testimonial
from campus_cms.models.database.user import User
from campus_cms.models.domain.common import ToggleRequest
from campus_cms.models.domain.testimonial import TestimonialCreate, TestimonialResponse, TestimonialUpdate
from campus_cms.services.storage import FileStorage, get_storage
from campus_cms.utils.validators import parse_date_range

router = APIRouter()
logger = get_logger(__name__)

testimonial_query = QueryBuilder(TESTIMONIAL_LIST)
testimonial_params = list_params(TESTIMONIAL_LIST)

TOGGLE_FIELDS = ("is_published", "is_featured")
MEDIA_FIELDS = {"student_image": ("image/",), "video_file": ("video/",)}


def visibility(user: Optional[User]) -> Optional[Dict[str, Any]]:
    return None if user else PUBLIC_TESTIMONIALS


def testimonial_mapper(base_url: str):
    def to_dto(testimonial: Testimonial) -> Dict[str, Any]:
        data = TestimonialResponse.model_validate(testimonial).model_dump(mode="json")
        for field in MEDIA_FIELDS:
            data[field] = FileStorage.url_for(getattr(testimonial, field), base_url)
        return data
    return to_dto


async def _list(
    manager: SessionManager,
    params: Dict[str, Any],
    user: Optional[User],
    base_url: str,
    narrowing: Optional[Dict[str, Any]] = None
):
    return await testimonial_query.paginate(
        SqlListStore(Testimonial, manager),
        params,
        narrowing={**(visibility(user) or {}), **(narrowing or {})},
        mapper=testimonial_mapper(base_url)
    )


async def resolve_program(repository: TestimonialRepository, token: Optional[str]) -> Optional[Program]:
    """Program referenced by an encoded id, or ``None`` when no id was sent."""
    if token is None:
        return None
    program = await repository.get_program(decode_id(token, lenient=True))
    if program is None:
        raise ValidationError(
            "Invalid program_id provided",
            errors=[{"field": "program_id", "message": "Program does not exist"}]
        )
    return program


def media_uploads(files) -> Dict[str, Any]:
    uploads = {}
    for field, prefixes in MEDIA_FIELDS.items():
        upload = ensure_content_type(single_file(files, field), field, prefixes)
        if upload:
            uploads[field] = upload
    return uploads


@router.get("/")
@monitor_performance("list_testimonials")
async def list_testimonials(
    params: Dict[str, Any] = Depends(testimonial_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Testimonials retrieved successfully", result)


@router.get("/search")
@monitor_performance("search_testimonials")
async def search_testimonials(
    params: Dict[str, Any] = Depends(testimonial_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Search completed successfully", result, extra_meta={"query": params.get("query")})


@router.get("/published")
@monitor_performance("list_published_testimonials")
async def list_published_testimonials(
    params: Dict[str, Any] = Depends(testimonial_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url, narrowing={"is_published": True})
    return paginated("Published testimonials retrieved successfully", result)


@router.get("/by-program")
@monitor_performance("list_testimonials_by_program")
async def list_testimonials_by_program(
    program_id: str = Query(...),
    params: Dict[str, Any] = Depends(testimonial_params),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    program = await resolve_program(TestimonialRepository(db), program_id)
    result = await _list(
        manager,
        {key: value for key, value in params.items() if key != "program_id"},
        current_user,
        base_url,
        narrowing={"program_id": program.id}
    )
    return paginated(f"Testimonials for {program.name} retrieved successfully", result)


@router.get("/stats")
@monitor_performance("testimonial_stats")
async def get_testimonial_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    start, end = parse_date_range(start_date, end_date)
    stats = await testimonial_stats(manager, start, end)
    stats["by_program"] = [
        {**row, "program_id": encode_id(row["program_id"])} for row in stats["by_program"]
    ]
    return success("Testimonial statistics retrieved successfully", stats)


@router.get("/check-slug/{slug}")
@monitor_performance("check_testimonial_slug")
async def check_slug(
    slug: str,
    exclude_id: Optional[str] = Query(None, alias="excludeId"),
    db: AsyncSession = Depends(get_db)
):
    excluded = decode_id(exclude_id, lenient=True) if exclude_id else None
    taken = await TestimonialRepository(db).slug_taken(slug, excluded)
    return success(
        "Slug is already in use" if taken else "Slug is available",
        {"slug": slug, "is_unique": not taken}
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
@monitor_performance("create_testimonial")
async def create_testimonial(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Create a testimonial with optional ``student_image`` and ``video_file``."""
    data, files = await read_payload(request)
    payload = validate_payload(TestimonialCreate, data)
    uploads = media_uploads(files)

    repository = TestimonialRepository(db)
    program = await resolve_program(repository, payload.program_id)

    values = payload.model_dump(exclude={"program_id"})
    values.update(
        program_id=program.id if program else None,
        program_name=program.name if program else payload.program_name,
        slug=await repository.unique_slug(payload.student_name),
        created_by=current_user.id,
        updated_by=current_user.id
    )

    async with storage.batch() as batch:
        for field, upload in uploads.items():
            values[field] = (await batch.store(upload, "testimonials")).path
        testimonial = await repository.create(**values)
        await db.commit()

    logger.info("Testimonial created", testimonial_id=testimonial.id, slug=testimonial.slug)
    return success("Testimonial created successfully", testimonial_mapper(base_url)(testimonial))


@router.get("/{id_or_slug}")
@monitor_performance("get_testimonial")
async def get_testimonial(
    id_or_slug: str,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Look up by encoded id first, then by slug."""
    repository = TestimonialRepository(db)
    testimonial = None
    testimonial_id = decode_id(id_or_slug, lenient=True)
    if testimonial_id is not None:
        testimonial = await repository.get(testimonial_id)
    if testimonial is None:
        testimonial = await repository.get_by_slug(id_or_slug)

    ensure_found(testimonial, "Testimonial not found")
    if current_user is None and not testimonial.is_published:
        raise PermissionDeniedError("Testimonial is not published")
    return success("Testimonial retrieved successfully", testimonial_mapper(base_url)(testimonial))


@router.put("/{testimonial_id}")
@monitor_performance("update_testimonial")
async def update_testimonial(
    testimonial_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Apply the fields that were sent; new files replace the stored ones."""
    repository = TestimonialRepository(db)
    testimonial = ensure_found(await repository.get(decode_id(testimonial_id)), "Testimonial not found")

    data, files = await read_payload(request)
    payload = validate_payload(TestimonialUpdate, data)
    uploads = media_uploads(files)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("program_id") is not None:
        program = await resolve_program(repository, changes["program_id"])
        changes.update(program_id=program.id, program_name=program.name)
    if changes.get("student_name") and changes["student_name"] != testimonial.student_name:
        changes["slug"] = await repository.unique_slug(changes["student_name"], exclude_id=testimonial.id)
    changes["updated_by"] = current_user.id

    replaced = []
    async with storage.batch() as batch:
        for field, upload in uploads.items():
            if getattr(testimonial, field):
                replaced.append(getattr(testimonial, field))
            changes[field] = (await batch.store(upload, "testimonials")).path
        await repository.update(testimonial, **changes)
        await db.commit()

    for path in replaced:
        await storage.remove(path)

    await db.refresh(testimonial)
    logger.info("Testimonial updated", testimonial_id=testimonial.id, fields=sorted(changes))
    return success("Testimonial updated successfully", testimonial_mapper(base_url)(testimonial))


@router.delete("/{testimonial_id}")
@monitor_performance("delete_testimonial")
async def delete_testimonial(
    testimonial_id: str,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    current_user: User = Depends(require_admin)
):
    repository = TestimonialRepository(db)
    testimonial = ensure_found(await repository.get(decode_id(testimonial_id)), "Testimonial not found")

    stored = [getattr(testimonial, field) for field in MEDIA_FIELDS]
    await repository.delete(testimonial)
    await db.commit()
    for path in stored:
        await storage.remove(path)

    logger.info("Testimonial deleted", testimonial_id=testimonial.id, user_id=current_user.id)
    return success("Testimonial deleted successfully")


@router.patch("/{testimonial_id}/toggle")
@monitor_performance("toggle_testimonial")
async def toggle_testimonial(
    testimonial_id: str,
    payload: ToggleRequest,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Flip ``is_published`` and/or ``is_featured``."""
    repository = TestimonialRepository(db)
    testimonial = ensure_found(await repository.get(decode_id(testimonial_id)), "Testimonial not found")

    changes = toggle_changes(testimonial, payload.toggle, TOGGLE_FIELDS)
    await repository.update(testimonial, **changes, updated_by=current_user.id)
    await db.commit()
    await db.refresh(testimonial)

    logger.info("Testimonial flags toggled", testimonial_id=testimonial.id, changes=changes)
    return success("Testimonial status updated successfully", testimonial_mapper(base_url)(testimonial))
