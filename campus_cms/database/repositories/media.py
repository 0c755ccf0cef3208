"""Media data access, including gallery usage lookups."""

import asyncio
from typing import Any, Dict, Iterable, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from campus_cms.core.query import FilterKind, ListConfig
from campus_cms.database.repositories.base import BaseRepository, grouped_counts, scalar
from campus_cms.database.session import SessionManager
from campus_cms.models.database.media import GalleryItem, Media
from campus_cms.models.domain.common import SortOrder

MEDIA_LIST = ListConfig(
    sort_fields=("created_at", "original_name", "file_size", "file_type"),
    default_sort="created_at",
    default_order=SortOrder.DESC,
    default_limit=20,
    filters={"file_type": FilterKind.TEXT, "uploaded_by": FilterKind.ID},
    search_fields=("original_name", "filename", "alt_text", "caption")
)

MEDIA_LOAD_OPTIONS = (selectinload(Media.uploader),)


class MediaRepository(BaseRepository[Media]):
    def __init__(self, session: AsyncSession):
        super().__init__(Media, session)

    def base_query(self) -> Select:
        # Rows reloaded after a write must pick up the uploader relationship
        return (
            select(Media)
            .options(*MEDIA_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
        )

    async def usage_counts(self, media_ids: Iterable[int]) -> Dict[int, int]:
        """Number of gallery items referencing each media id."""
        media_ids = list(media_ids)
        if not media_ids:
            return {}
        query = (
            select(GalleryItem.media_id, func.count())
            .where(GalleryItem.media_id.in_(media_ids))
            .group_by(GalleryItem.media_id)
        )
        result = await self.session.execute(query)
        return {media_id: count for media_id, count in result.all()}


async def media_stats(manager: SessionManager) -> Dict[str, Any]:
    async def recent() -> List[Media]:
        async with manager.session() as session:
            result = await session.execute(
                select(Media)
                .options(*MEDIA_LOAD_OPTIONS)
                .order_by(Media.created_at.desc(), Media.id.desc())
                .limit(5)
            )
            return list(result.scalars().all())

    total_files, total_size, by_type, recent_uploads = await asyncio.gather(
        scalar(manager, select(func.count()).select_from(Media)),
        scalar(manager, select(func.coalesce(func.sum(Media.file_size), 0))),
        grouped_counts(
            manager,
            Media.file_type,
            extra=[func.coalesce(func.sum(Media.file_size), 0).label("total_size")]
        ),
        recent()
    )

    return {
        "total_files": total_files,
        "total_size": int(total_size),
        "by_type": [
            {"file_type": row["value"], "count": row["count"], "total_size": int(row["total_size"])}
            for row in by_type
        ],
        "recent_uploads": recent_uploads,
    }
