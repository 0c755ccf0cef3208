"""Testimonial data access and slug generation."""

import asyncio
import re
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.core.query import FilterKind, ListConfig
from campus_cms.database.repositories.base import BaseRepository, grouped_counts, scalar
from campus_cms.database.repositories.contacts import created_between
from campus_cms.database.session import SessionManager
from campus_cms.models.database.testimonial import Program, Testimonial
from campus_cms.models.domain.common import SortOrder

TESTIMONIAL_LIST = ListConfig(
    sort_fields=("sort_order", "created_at", "student_name"),
    default_sort="sort_order",
    default_order=SortOrder.ASC,
    default_limit=10,
    filters={
        "program_id": FilterKind.ID,
        "is_published": FilterKind.BOOL,
        "is_featured": FilterKind.BOOL,
        "graduation_year": FilterKind.INT
    },
    search_fields=("student_name", "content", "program_name", "current_position", "company")
)

PUBLIC_TESTIMONIALS = {"is_published": True}

_UNSAFE = re.compile(r"[^a-z0-9\s-]")
_SPACES = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(name: str) -> str:
    """URL slug for a student name; never empty."""
    slug = _UNSAFE.sub("", name.lower())
    slug = _DASHES.sub("-", _SPACES.sub("-", slug)).strip("-")
    return slug or "testimonial"


class TestimonialRepository(BaseRepository[Testimonial]):
    def __init__(self, session: AsyncSession):
        super().__init__(Testimonial, session)

    async def get_by_slug(self, slug: str) -> Optional[Testimonial]:
        return await self.get_by(slug=slug)

    async def slug_taken(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Testimonial.id).where(Testimonial.slug == slug)
        if exclude_id is not None:
            query = query.where(Testimonial.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.first() is not None

    async def unique_slug(self, name: str, exclude_id: Optional[int] = None) -> str:
        base = slugify(name)
        candidate, counter = base, 1
        while await self.slug_taken(candidate, exclude_id):
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    async def get_program(self, program_id: Optional[int]) -> Optional[Program]:
        if program_id is None:
            return None
        return await self.session.get(Program, program_id)


async def testimonial_stats(
    manager: SessionManager,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> Dict[str, Any]:
    conditions = created_between(Testimonial.created_at, start, end)

    program_query = (
        select(Testimonial.program_id, Testimonial.program_name, func.count().label("count"))
        .where(*conditions)
        .group_by(Testimonial.program_id, Testimonial.program_name)
        .order_by(Testimonial.program_name)
    )

    async def by_program() -> List[Dict[str, Any]]:
        async with manager.session() as session:
            result = await session.execute(program_query)
            return [dict(row._mapping) for row in result]

    total, average, programs, by_rating, by_published, by_featured = await asyncio.gather(
        scalar(manager, select(func.count()).select_from(Testimonial).where(*conditions)),
        scalar(manager, select(func.avg(Testimonial.rating)).where(*conditions)),
        by_program(),
        grouped_counts(manager, Testimonial.rating, *conditions),
        grouped_counts(manager, Testimonial.is_published, *conditions),
        grouped_counts(manager, Testimonial.is_featured, *conditions)
    )

    return {
        "total": total,
        "average_rating": round(float(average), 2) if average is not None else 0,
        "by_program": programs,
        "by_rating": [{"rating": row["value"], "count": row["count"]} for row in by_rating],
        "by_published": [{"is_published": bool(row["value"]), "count": row["count"]} for row in by_published],
        "by_featured": [{"is_featured": bool(row["value"]), "count": row["count"]} for row in by_featured],
    }
