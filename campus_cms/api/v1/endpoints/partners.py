"""FastAPI endpoints for partners.

Listings and single reads are public, but anonymous callers only ever see
active partners. Changes are limited to admins.
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
from campus_cms.core.exceptions import NotFoundError
from campus_cms.core.ids import decode_id
from campus_cms.core.logging import get_logger, monitor_performance
from campus_cms.core.query import QueryBuilder
from campus_cms.core.security import get_optional_user, require_admin, require_staff
from campus_cms.database.repositories.base import SqlListStore
from campus_cms.database.repositories.partners import (
    PARTNER_LIST,
    PUBLIC_PARTNERS,
    PartnerRepository,
    partner_stats
)
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.partner import PARTNERSHIP_TYPES, Partner
from campus_cms.models.database.user import User
from campus_cms.models.domain.common import ToggleRequest
from campus_cms.models.domain.partner import PartnerCreate, PartnerResponse, PartnerUpdate
from campus_cms.services.storage import FileStorage, get_storage
from campus_cms.utils.validators import parse_date_range

router = APIRouter()
logger = get_logger(__name__)

partner_query = QueryBuilder(PARTNER_LIST)
partner_params = list_params(PARTNER_LIST, {"partnership_type": PARTNERSHIP_TYPES})

TOGGLE_FIELDS = ("is_active", "is_featured")
LOGO_TYPES = ("image/",)


def visibility(user: Optional[User]) -> Optional[Dict[str, Any]]:
    return None if user else PUBLIC_PARTNERS


def partner_mapper(base_url: str):
    def to_dto(partner: Partner) -> Dict[str, Any]:
        data = PartnerResponse.model_validate(partner).model_dump(mode="json")
        data["logo_url"] = FileStorage.url_for(partner.logo, base_url)
        return data
    return to_dto


async def _list(
    manager: SessionManager,
    params: Dict[str, Any],
    user: Optional[User],
    base_url: str,
    narrowing: Optional[Dict[str, Any]] = None
):
    return await partner_query.paginate(
        SqlListStore(Partner, manager),
        params,
        narrowing={**(visibility(user) or {}), **(narrowing or {})},
        mapper=partner_mapper(base_url)
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
@monitor_performance("create_partner")
async def create_partner(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Create a partner from a JSON or multipart body with an optional ``logo``."""
    data, files = await read_payload(request)
    payload = validate_payload(PartnerCreate, data)
    logo = ensure_content_type(single_file(files, "logo"), "logo", LOGO_TYPES)

    async with storage.batch() as batch:
        logo_path = (await batch.store(logo, "partners")).path if logo else None
        partner = await PartnerRepository(db).create(**payload.model_dump(), logo=logo_path)
        await db.commit()

    logger.info("Partner created", partner_id=partner.id, user_id=current_user.id)
    return success("Partner created successfully", partner_mapper(base_url)(partner))


@router.get("/")
@monitor_performance("list_partners")
async def list_partners(
    params: Dict[str, Any] = Depends(partner_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Partners retrieved successfully", result)


@router.get("/search")
@monitor_performance("search_partners")
async def search_partners(
    params: Dict[str, Any] = Depends(partner_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Search completed successfully", result, extra_meta={"query": params.get("query")})


@router.get("/active")
@monitor_performance("list_active_partners")
async def list_active_partners(
    params: Dict[str, Any] = Depends(partner_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url, narrowing={"is_active": True})
    return paginated("Active partners retrieved successfully", result)


@router.get("/featured")
@monitor_performance("list_featured_partners")
async def list_featured_partners(
    params: Dict[str, Any] = Depends(partner_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(
        manager,
        {"limit": "6", **params},
        current_user,
        base_url,
        narrowing={"is_active": True, "is_featured": True}
    )
    return paginated("Featured partners retrieved successfully", result)


@router.get("/type")
@monitor_performance("list_partners_by_type")
async def list_partners_by_type(
    partnership_type: str = Query(...),
    params: Dict[str, Any] = Depends(partner_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated(f"Partners of type '{partnership_type}' retrieved successfully", result)


@router.get("/stats")
@monitor_performance("partner_stats")
async def get_partner_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    start, end = parse_date_range(start_date, end_date)
    stats = await partner_stats(manager, start, end)
    return success("Partner statistics retrieved successfully", stats)


@router.get("/{partner_id}")
@monitor_performance("get_partner")
async def get_partner(
    partner_id: str,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    partner = ensure_found(await PartnerRepository(db).get(decode_id(partner_id)), "Partner not found")
    if current_user is None and not partner.is_active:
        raise NotFoundError("Partner not found")
    return success("Partner retrieved successfully", partner_mapper(base_url)(partner))


@router.put("/{partner_id}")
@monitor_performance("update_partner")
async def update_partner(
    partner_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Apply the fields that were sent; a new ``logo`` replaces the old one."""
    repository = PartnerRepository(db)
    partner = ensure_found(await repository.get(decode_id(partner_id)), "Partner not found")

    data, files = await read_payload(request)
    payload = validate_payload(PartnerUpdate, data)
    logo = ensure_content_type(single_file(files, "logo"), "logo", LOGO_TYPES)

    changes = payload.model_dump(exclude_unset=True)
    previous_logo = partner.logo
    async with storage.batch() as batch:
        if logo:
            changes["logo"] = (await batch.store(logo, "partners")).path
        await repository.update(partner, **changes)
        await db.commit()

    if logo and previous_logo:
        await storage.remove(previous_logo)

    await db.refresh(partner)
    logger.info("Partner updated", partner_id=partner.id, fields=sorted(changes), user_id=current_user.id)
    return success("Partner updated successfully", partner_mapper(base_url)(partner))


@router.delete("/{partner_id}")
@monitor_performance("delete_partner")
async def delete_partner(
    partner_id: str,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    current_user: User = Depends(require_admin)
):
    repository = PartnerRepository(db)
    partner = ensure_found(await repository.get(decode_id(partner_id)), "Partner not found")

    logo = partner.logo
    await repository.delete(partner)
    await db.commit()
    await storage.remove(logo)

    logger.info("Partner deleted", partner_id=partner.id, user_id=current_user.id)
    return success("Partner deleted successfully")


@router.patch("/{partner_id}/toggle")
@monitor_performance("toggle_partner")
async def toggle_partner(
    partner_id: str,
    payload: ToggleRequest,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Flip ``is_active`` and/or ``is_featured``."""
    repository = PartnerRepository(db)
    partner = ensure_found(await repository.get(decode_id(partner_id)), "Partner not found")

    changes = toggle_changes(partner, payload.toggle, TOGGLE_FIELDS)
    await repository.update(partner, **changes)
    await db.commit()
    await db.refresh(partner)

    logger.info("Partner flags toggled", partner_id=partner.id, changes=changes)
    return success("Partner status updated successfully", partner_mapper(base_url)(partner))
