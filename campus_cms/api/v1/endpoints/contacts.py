"""FastAPI endpoints for contact inquiries.

Anyone may submit the contact form; reading, triaging and deleting inquiries
is limited to admins and authors.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.api.dependencies import ensure_found, get_db, list_params
from campus_cms.api.responses import paginated, success
from campus_cms.core.exceptions import NotFoundError, ValidationError
from campus_cms.core.ids import decode_id
from campus_cms.core.logging import get_logger, monitor_performance
from campus_cms.core.query import QueryBuilder
from campus_cms.core.security import require_staff
from campus_cms.database.repositories.base import SqlListStore
from campus_cms.database.repositories.contacts import CONTACT_LIST, ContactRepository, contact_stats
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.base import utcnow
from campus_cms.models.database.contact import CONTACT_STATUSES, INQUIRY_TYPES, ContactInquiry
from campus_cms.models.database.user import User
from campus_cms.models.domain.contact import (
    ContactBulkDelete,
    ContactCreate,
    ContactResponse,
    ContactStatusUpdate
)
from campus_cms.utils.validators import ensure_choice, parse_date_range

router = APIRouter()
logger = get_logger(__name__)

contact_query = QueryBuilder(CONTACT_LIST)
contact_params = list_params(
    CONTACT_LIST,
    {"status": CONTACT_STATUSES, "inquiry_type": INQUIRY_TYPES}
)


def contact_dto(contact: ContactInquiry) -> Dict[str, Any]:
    return ContactResponse.model_validate(contact).model_dump(mode="json")


@router.post("/", status_code=status.HTTP_201_CREATED)
@monitor_performance("create_contact")
async def create_contact(
    payload: ContactCreate,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Submit the public contact form."""
    contact = await ContactRepository(db).create(
        **payload.model_dump(),
        status="new",
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    await db.commit()

    logger.info("Contact inquiry received", contact_id=contact.id, inquiry_type=contact.inquiry_type)
    return success("Contact inquiry submitted successfully", contact_dto(contact))


@router.get("/")
@monitor_performance("list_contacts")
async def list_contacts(
    params: Dict[str, Any] = Depends(contact_params),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    result = await contact_query.paginate(
        SqlListStore(ContactInquiry, manager),
        params,
        mapper=contact_dto
    )
    return paginated("Contact inquiries retrieved successfully", result)


@router.get("/search")
@monitor_performance("search_contacts")
async def search_contacts(
    params: Dict[str, Any] = Depends(contact_params),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    """Case-insensitive search over name, email, subject and message."""
    result = await contact_query.paginate(
        SqlListStore(ContactInquiry, manager),
        params,
        mapper=contact_dto
    )
    return paginated(
        "Search completed successfully",
        result,
        extra_meta={"query": params.get("query")}
    )


@router.get("/stats")
@monitor_performance("contact_stats")
async def get_contact_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    start, end = parse_date_range(start_date, end_date)
    stats = await contact_stats(manager, start, end)
    return success("Contact statistics retrieved successfully", stats)


@router.get("/type/{inquiry_type}")
@monitor_performance("list_contacts_by_type")
async def list_contacts_by_type(
    inquiry_type: str,
    params: Dict[str, Any] = Depends(contact_params),
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    ensure_choice(inquiry_type, INQUIRY_TYPES, "inquiry_type")
    result = await contact_query.paginate(
        SqlListStore(ContactInquiry, manager),
        {**params, "inquiry_type": inquiry_type},
        mapper=contact_dto
    )
    return paginated(f"Contact inquiries of type '{inquiry_type}' retrieved successfully", result)


@router.delete("/")
@monitor_performance("bulk_delete_contacts")
async def bulk_delete_contacts(
    payload: ContactBulkDelete,
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_staff)
):
    """Delete every inquiry matching all of the given filters in one transaction."""
    if not payload.ids and not payload.status and not payload.inquiry_type:
        raise ValidationError(
            "At least one filter (ids, status, or inquiry_type) is required",
            errors=[{"field": "ids", "message": "At least one filter is required"}]
        )

    ids = None
    if payload.ids:
        decoded = [decode_id(token, lenient=True) for token in payload.ids]
        ids = [contact_id for contact_id in decoded if contact_id is not None]
        if not ids:
            raise ValidationError(
                "No valid contact IDs provided",
                errors=[{"field": "ids", "message": "No valid contact IDs provided"}]
            )

    async with manager.transaction() as session:
        deleted = await ContactRepository(session).delete_matching(
            ids=ids,
            status=payload.status,
            inquiry_type=payload.inquiry_type
        )
        if deleted == 0:
            raise NotFoundError("No contact inquiries found matching the criteria")

    logger.info("Contact inquiries deleted", deleted_count=deleted, user_id=current_user.id)
    return success(
        f"{deleted} contact inquiries deleted successfully",
        {"deleted_count": deleted}
    )


@router.get("/{contact_id}")
@monitor_performance("get_contact")
async def get_contact(
    contact_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    contact = ensure_found(
        await ContactRepository(db).get(decode_id(contact_id)),
        "Contact inquiry not found"
    )
    return success("Contact inquiry retrieved successfully", contact_dto(contact))


@router.patch("/{contact_id}/status")
@monitor_performance("update_contact_status")
async def update_contact_status(
    contact_id: str,
    payload: ContactStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    repository = ContactRepository(db)
    contact = ensure_found(await repository.get(decode_id(contact_id)), "Contact inquiry not found")

    changes: Dict[str, Any] = {"status": payload.status}
    if payload.response is not None:
        changes["response"] = payload.response
        changes["responded_at"] = utcnow()

    await repository.update(contact, **changes)
    await db.commit()
    await db.refresh(contact)

    logger.info("Contact status updated", contact_id=contact.id, status=contact.status)
    return success("Contact inquiry status updated successfully", contact_dto(contact))


@router.delete("/{contact_id}")
@monitor_performance("delete_contact")
async def delete_contact(
    contact_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    repository = ContactRepository(db)
    contact = ensure_found(await repository.get(decode_id(contact_id)), "Contact inquiry not found")

    await repository.delete(contact)
    await db.commit()

    logger.info("Contact inquiry deleted", contact_id=contact.id, user_id=current_user.id)
    return success("Contact inquiry deleted successfully")
