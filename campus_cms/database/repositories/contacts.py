"""Contact inquiry data access."""

import asyncio
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, delete, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.core.query import FilterKind, ListConfig
from campus_cms.database.repositories.base import BaseRepository, grouped_counts, scalar
from campus_cms.database.session import SessionManager
from campus_cms.models.database.contact import ContactInquiry
from campus_cms.models.domain.common import SortOrder

CONTACT_LIST = ListConfig(
    sort_fields=("created_at", "updated_at", "status"),
    default_sort="created_at",
    default_order=SortOrder.DESC,
    default_limit=10,
    filters={"status": FilterKind.TEXT, "inquiry_type": FilterKind.TEXT},
    search_fields=("full_name", "email", "subject", "message")
)


def created_between(column: Any, start: Optional[date], end: Optional[date]) -> List[Any]:
    """Inclusive date range over a timestamp column."""
    conditions = []
    if start:
        conditions.append(column >= datetime.combine(start, time.min))
    if end:
        conditions.append(column < datetime.combine(end + timedelta(days=1), time.min))
    return conditions


class ContactRepository(BaseRepository[ContactInquiry]):
    def __init__(self, session: AsyncSession):
        super().__init__(ContactInquiry, session)

    async def delete_matching(
        self,
        ids: Optional[Sequence[int]] = None,
        status: Optional[str] = None,
        inquiry_type: Optional[str] = None
    ) -> int:
        """Delete every inquiry matching all given filters; returns the row count."""
        conditions = []
        if ids is not None:
            conditions.append(ContactInquiry.id.in_(list(ids)))
        if status:
            conditions.append(ContactInquiry.status == status)
        if inquiry_type:
            conditions.append(ContactInquiry.inquiry_type == inquiry_type)
        if not conditions:
            raise ValueError("delete_matching requires at least one filter")

        result = await self.session.execute(
            delete(ContactInquiry).where(and_(*conditions))
        )
        return result.rowcount


async def contact_stats(
    manager: SessionManager,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> Dict[str, Any]:
    conditions = created_between(ContactInquiry.created_at, start, end)

    year = extract("year", ContactInquiry.created_at)
    month = extract("month", ContactInquiry.created_at)
    month_query = (
        select(year.label("year"), month.label("month"), func.count().label("count"))
        .where(*conditions)
        .group_by(year, month)
        .order_by(year, month)
    )

    async def by_month() -> List[Dict[str, Any]]:
        async with manager.session() as session:
            result = await session.execute(month_query)
            return [
                {"month": f"{int(row.year):04d}-{int(row.month):02d}", "count": row.count}
                for row in result
            ]

    total, by_type, by_status, monthly = await asyncio.gather(
        scalar(manager, select(func.count()).select_from(ContactInquiry).where(*conditions)),
        grouped_counts(manager, ContactInquiry.inquiry_type, *conditions),
        grouped_counts(manager, ContactInquiry.status, *conditions),
        by_month()
    )

    return {
        "total": total,
        "by_type": [{"inquiry_type": row["value"], "count": row["count"]} for row in by_type],
        "by_status": [{"status": row["value"], "count": row["count"]} for row in by_status],
        "by_month": monthly,
    }
