"""Site settings data access and the default settings catalogue."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.core.query import FilterKind, ListConfig
from campus_cms.database.repositories.base import BaseRepository, grouped_counts, scalar
from campus_cms.database.session import SessionManager
from campus_cms.models.database.setting import Setting
from campus_cms.models.domain.common import SortOrder

SETTING_LIST = ListConfig(
    sort_fields=("sort_order", "setting_key", "group_name", "created_at", "updated_at"),
    default_sort="sort_order",
    default_order=SortOrder.ASC,
    default_limit=50,
    filters={
        "group_name": FilterKind.TEXT,
        "setting_type": FilterKind.TEXT,
        "is_public": FilterKind.BOOL
    },
    search_fields=("setting_key", "label", "description")
)

PUBLIC_SETTINGS = {"is_public": True}

DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {
        "setting_key": "site_name",
        "setting_value": "College Website",
        "setting_type": "text",
        "group_name": "general",
        "label": "Site Name",
        "description": "The name of your college website",
        "placeholder": "Enter site name",
        "is_public": True,
        "is_required": True,
        "sort_order": 1,
        "validation": {"min": 2, "max": 100},
    },
    {
        "setting_key": "site_logo",
        "setting_value": None,
        "setting_type": "file",
        "group_name": "general",
        "label": "Site Logo",
        "description": "Main logo for your college website",
        "is_public": True,
        "is_required": False,
        "sort_order": 2,
        "validation": {"fileTypes": ["image/jpeg", "image/jpg", "image/png", "image/webp"], "maxSize": "2MB"},
    },
    {
        "setting_key": "site_favicon",
        "setting_value": None,
        "setting_type": "file",
        "group_name": "general",
        "label": "Site Favicon",
        "description": "Favicon for your website (16x16 or 32x32 px)",
        "is_public": True,
        "is_required": False,
        "sort_order": 3,
        "validation": {"fileTypes": ["image/x-icon", "image/png"], "maxSize": "1MB"},
    },
    {
        "setting_key": "contact_email",
        "setting_value": "info@college.edu",
        "setting_type": "email",
        "group_name": "contact",
        "label": "Contact Email",
        "description": "Primary contact email address",
        "placeholder": "contact@college.edu",
        "is_public": True,
        "is_required": True,
        "sort_order": 10,
        "validation": {"email": True},
    },
    {
        "setting_key": "contact_phone",
        "setting_value": None,
        "setting_type": "text",
        "group_name": "contact",
        "label": "Contact Phone",
        "description": "Primary contact phone number",
        "placeholder": "+1 (555) 123-4567",
        "is_public": True,
        "is_required": False,
        "sort_order": 11,
        "validation": {"pattern": r"^[+]?[0-9\s\-\(\)]+$"},
    },
    {
        "setting_key": "address",
        "setting_value": None,
        "setting_type": "text",
        "group_name": "contact",
        "label": "College Address",
        "description": "Physical address of the college",
        "placeholder": "123 College Street, City, State",
        "is_public": True,
        "is_required": False,
        "sort_order": 12,
        "validation": {"max": 500},
    },
    {
        "setting_key": "social_facebook",
        "setting_value": None,
        "setting_type": "url",
        "group_name": "social",
        "label": "Facebook URL",
        "description": "Facebook page URL",
        "placeholder": "https://facebook.com/yourcollegepage",
        "is_public": True,
        "is_required": False,
        "sort_order": 20,
        "validation": {"url": True},
    },
    {
        "setting_key": "social_twitter",
        "setting_value": None,
        "setting_type": "url",
        "group_name": "social",
        "label": "Twitter URL",
        "description": "Twitter profile URL",
        "placeholder": "https://twitter.com/yourcollegepage",
        "is_public": True,
        "is_required": False,
        "sort_order": 21,
        "validation": {"url": True},
    },
    {
        "setting_key": "social_linkedin",
        "setting_value": None,
        "setting_type": "url",
        "group_name": "social",
        "label": "LinkedIn URL",
        "description": "LinkedIn page URL",
        "placeholder": "https://linkedin.com/company/yourcollegepage",
        "is_public": True,
        "is_required": False,
        "sort_order": 22,
        "validation": {"url": True},
    },
    {
        "setting_key": "maintenance_mode",
        "setting_value": "false",
        "setting_type": "boolean",
        "group_name": "system",
        "label": "Maintenance Mode",
        "description": "Enable maintenance mode to disable public access",
        "is_public": False,
        "is_required": False,
        "sort_order": 30,
        "options": [
            {"label": "Enabled", "value": "true"},
            {"label": "Disabled", "value": "false"},
        ],
    },
    {
        "setting_key": "max_upload_size",
        "setting_value": "10",
        "setting_type": "number",
        "group_name": "system",
        "label": "Max Upload Size (MB)",
        "description": "Maximum file upload size in megabytes",
        "placeholder": "10",
        "is_public": False,
        "is_required": True,
        "sort_order": 31,
        "validation": {"min": 1, "max": 100},
    },
]


class SettingRepository(BaseRepository[Setting]):
    def __init__(self, session: AsyncSession):
        super().__init__(Setting, session)

    async def get_by_key(self, setting_key: str) -> Optional[Setting]:
        return await self.get_by(setting_key=setting_key)

    async def get_by_keys(self, keys: Sequence[str]) -> Dict[str, Setting]:
        if not keys:
            return {}
        result = await self.session.execute(select(Setting).where(Setting.setting_key.in_(list(keys))))
        return {setting.setting_key: setting for setting in result.scalars().all()}

    async def list_public(self, group_name: Optional[str] = None) -> List[Setting]:
        query = select(Setting).where(Setting.is_public.is_(True))
        if group_name:
            query = query.where(Setting.group_name == group_name)
        query = query.order_by(Setting.group_name, Setting.sort_order, Setting.id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def write_defaults(self) -> List[Setting]:
        """Insert the default catalogue; callers make sure no keys clash."""
        created = [Setting(**dict(item)) for item in DEFAULT_SETTINGS]
        self.session.add_all(created)
        await self.session.flush()
        return created

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(Setting))
        return result.rowcount


async def setting_stats(manager: SessionManager) -> Dict[str, Any]:
    total, public, by_group, by_type = await asyncio.gather(
        scalar(manager, select(func.count()).select_from(Setting)),
        scalar(manager, select(func.count()).select_from(Setting).where(Setting.is_public.is_(True))),
        grouped_counts(manager, Setting.group_name),
        grouped_counts(manager, Setting.setting_type)
    )
    return {
        "total": total,
        "public": public,
        "private": total - public,
        "by_group": [{"group_name": row["value"], "count": row["count"]} for row in by_group],
        "by_type": [{"setting_type": row["value"], "count": row["count"]} for row in by_type],
    }
