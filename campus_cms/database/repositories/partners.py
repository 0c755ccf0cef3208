"""Partner data access."""

import asyncio
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.core.query import FilterKind, ListConfig
from campus_cms.database.repositories.base import BaseRepository, grouped_counts, scalar
from campus_cms.database.session import SessionManager
from campus_cms.models.database.partner import Partner
from campus_cms.models.domain.common import SortOrder

PARTNER_LIST = ListConfig(
    sort_fields=(
        "sort_order",
        "company_name",
        "partnership_type",
        "partnership_date",
        "created_at",
        "updated_at"
    ),
    default_sort="sort_order",
    default_order=SortOrder.ASC,
    default_limit=10,
    filters={
        "partnership_type": FilterKind.TEXT,
        "is_active": FilterKind.BOOL,
        "is_featured": FilterKind.BOOL
    },
    search_fields=("company_name", "description", "contact_person")
)

# Anonymous visitors only ever see active partners
PUBLIC_PARTNERS = {"is_active": True}


class PartnerRepository(BaseRepository[Partner]):
    def __init__(self, session: AsyncSession):
        super().__init__(Partner, session)


async def partner_stats(
    manager: SessionManager,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> Dict[str, Any]:
    conditions = []
    if start:
        conditions.append(Partner.partnership_date >= start)
    if end:
        conditions.append(Partner.partnership_date <= end)

    def total_where(*extra):
        return select(func.count()).select_from(Partner).where(*conditions, *extra)

    by_type, by_status, by_featured, total, active = await asyncio.gather(
        grouped_counts(manager, Partner.partnership_type, *conditions),
        grouped_counts(manager, Partner.is_active, *conditions),
        grouped_counts(manager, Partner.is_featured, *conditions),
        scalar(manager, total_where()),
        scalar(manager, total_where(Partner.is_active.is_(True)))
    )

    return {
        "by_partnership_type": [
            {"partnership_type": row["value"], "count": row["count"]} for row in by_type
        ],
        "by_status": [{"is_active": bool(row["value"]), "count": row["count"]} for row in by_status],
        "by_featured": [{"is_featured": bool(row["value"]), "count": row["count"]} for row in by_featured],
        "summary": {"total": total, "active": active, "inactive": total - active},
    }
