"""FastAPI endpoints for site settings.

Anyone may read public settings. Admins see and edit everything, including
private settings such as maintenance mode.
"""

from collections import defaultdict
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_cms.api.dependencies import (
    ensure_found,
    get_base_url,
    get_db,
    list_params,
    read_payload,
    single_file,
    validate_payload
)
from campus_cms.api.responses import paginated, success
from campus_cms.core.exceptions import ConflictError, NotFoundError, ValidationError
from campus_cms.core.ids import decode_id
from campus_cms.core.logging import get_logger, monitor_performance
from campus_cms.core.query import QueryBuilder
from campus_cms.core.security import get_optional_user, is_admin, require_admin
from campus_cms.database.repositories.base import SqlListStore
from campus_cms.database.repositories.settings import (
    DEFAULT_SETTINGS,
    PUBLIC_SETTINGS,
    SETTING_LIST,
    SettingRepository,
    setting_stats
)
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.models.database.setting import SETTING_TYPES, Setting
from campus_cms.models.database.user import User
from campus_cms.models.domain.setting import (
    SettingCreate,
    SettingResponse,
    SettingsBulkUpdate,
    SettingUpdate,
    SettingValueUpdate
)
from campus_cms.services.storage import FileStorage, get_storage

router = APIRouter()
logger = get_logger(__name__)

setting_query = QueryBuilder(SETTING_LIST)
setting_params = list_params(SETTING_LIST, {"setting_type": SETTING_TYPES})


def visibility(user: Optional[User]) -> Optional[Dict[str, Any]]:
    return None if is_admin(user) else PUBLIC_SETTINGS


def display_value(setting: Setting, base_url: str) -> Optional[str]:
    if setting.setting_type == "file":
        return FileStorage.url_for(setting.setting_value, base_url)
    return setting.setting_value


def ensure_file_value(setting_type: str, value: Optional[str]):
    """A file setting may only point at something this service stored."""
    if setting_type == "file" and value and not FileStorage.is_stored_path(value):
        raise ValidationError(
            "File settings must reference an uploaded file",
            errors=[{"field": "setting_value", "message": "Must be the path of an uploaded file"}]
        )


def superseded_file(setting: Setting, new_type: str, new_value: Optional[str]) -> Optional[str]:
    """Stored file the setting stops referencing once the change is applied."""
    if setting.setting_type != "file" or not setting.setting_value:
        return None
    if new_type == "file" and new_value == setting.setting_value:
        return None
    return setting.setting_value


def setting_mapper(base_url: str):
    def to_dto(setting: Setting) -> Dict[str, Any]:
        data = SettingResponse.model_validate(setting).model_dump(mode="json")
        data["setting_value"] = display_value(setting, base_url)
        return data
    return to_dto


async def _list(manager: SessionManager, params: Dict[str, Any], user: Optional[User], base_url: str):
    return await setting_query.paginate(
        SqlListStore(Setting, manager),
        params,
        narrowing=visibility(user),
        mapper=setting_mapper(base_url)
    )


@router.get("/public")
@monitor_performance("public_settings")
async def get_public_settings(
    group_name: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url)
):
    """Public settings grouped as ``{group: {key: {value, type, label}}}``."""
    settings = await SettingRepository(db).list_public(group_name)

    grouped: Dict[str, Dict[str, Any]] = defaultdict(dict)
    for setting in settings:
        grouped[setting.group_name][setting.setting_key] = {
            "value": display_value(setting, base_url),
            "type": setting.setting_type,
            "label": setting.label,
        }

    return success(
        "Public settings retrieved successfully",
        dict(grouped),
        meta={"count": len(settings), "groups": list(grouped)}
    )


@router.get("/")
@monitor_performance("list_settings")
async def list_settings(
    params: Dict[str, Any] = Depends(setting_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Settings retrieved successfully", result)


@router.get("/search")
@monitor_performance("search_settings")
async def search_settings(
    params: Dict[str, Any] = Depends(setting_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, params, current_user, base_url)
    return paginated("Search completed successfully", result, extra_meta={"query": params.get("query")})


@router.get("/stats")
@monitor_performance("setting_stats")
async def get_setting_stats(
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_admin)
):
    stats = await setting_stats(manager)
    return success("Settings statistics retrieved successfully", stats)


@router.get("/group/{group_name}")
@monitor_performance("list_settings_by_group")
async def list_settings_by_group(
    group_name: str,
    params: Dict[str, Any] = Depends(setting_params),
    manager: SessionManager = Depends(get_session_manager),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    result = await _list(manager, {**params, "group_name": group_name}, current_user, base_url)
    if result.total == 0:
        raise NotFoundError(f"No settings found for group '{group_name}'")
    return paginated(f"Settings for group '{group_name}' retrieved successfully", result)


@router.get("/key/{setting_key}")
@monitor_performance("get_setting_by_key")
async def get_setting_by_key(
    setting_key: str,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: Optional[User] = Depends(get_optional_user)
):
    setting = ensure_found(await SettingRepository(db).get_by_key(setting_key), "Setting not found")
    if not setting.is_public and not is_admin(current_user):
        raise NotFoundError("Setting not found")
    return success("Setting retrieved successfully", setting_mapper(base_url)(setting))


@router.post("/initialize", status_code=status.HTTP_201_CREATED)
@monitor_performance("initialize_settings")
async def initialize_settings(
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_admin)
):
    """Write the default catalogue into an empty settings table."""
    async with manager.transaction() as session:
        repository = SettingRepository(session)
        existing = await repository.count()
        if existing:
            raise ConflictError("Settings already initialized", error=f"{existing} setting(s) exist")
        created = await repository.write_defaults()

    logger.info("Settings initialized", count=len(created), user_id=current_user.id)
    return success("Settings initialized successfully", {"created": len(created)})


@router.post("/reset")
@monitor_performance("reset_settings")
async def reset_settings(
    manager: SessionManager = Depends(get_session_manager),
    current_user: User = Depends(require_admin)
):
    """Replace every setting with the defaults in one transaction."""
    async with manager.transaction() as session:
        repository = SettingRepository(session)
        removed = await repository.delete_all()
        await repository.write_defaults()

    logger.warning("Settings reset to defaults", removed=removed, user_id=current_user.id)
    return success("Settings reset to defaults successfully", {"count": len(DEFAULT_SETTINGS)})


@router.put("/bulk")
@monitor_performance("bulk_update_settings")
async def bulk_update_settings(
    payload: SettingsBulkUpdate,
    manager: SessionManager = Depends(get_session_manager),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Update values by key; unknown keys are skipped and nothing is partial."""
    async with manager.transaction() as session:
        repository = SettingRepository(session)
        existing = await repository.get_by_keys([item.setting_key for item in payload.settings])
        updated = {}
        superseded = []
        for item in payload.settings:
            setting = existing.get(item.setting_key)
            if setting is None:
                continue
            ensure_file_value(setting.setting_type, item.setting_value)
            superseded.append(superseded_file(setting, setting.setting_type, item.setting_value))
            await repository.update(setting, setting_value=item.setting_value)
            updated[setting.setting_key] = setting

    for path in superseded:
        await storage.remove(path)

    to_dto = setting_mapper(base_url)
    logger.info(
        "Settings bulk updated",
        updated=len(updated),
        requested=len(payload.settings),
        user_id=current_user.id
    )
    return success(
        "Settings updated successfully",
        [to_dto(setting) for setting in updated.values()],
        meta={"updated": len(updated), "requested": len(payload.settings)}
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
@monitor_performance("create_setting")
async def create_setting(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Create a setting; a file-type setting may carry its value as ``file``."""
    data, files = await read_payload(request)
    payload = validate_payload(SettingCreate, data)
    upload = single_file(files, "file")

    repository = SettingRepository(db)
    if await repository.exists(setting_key=payload.setting_key):
        raise ConflictError("Setting key already exists")

    values = payload.model_dump()
    async with storage.batch() as batch:
        if upload and payload.setting_type == "file":
            values["setting_value"] = (await batch.store(upload, "settings")).path
        else:
            ensure_file_value(payload.setting_type, payload.setting_value)
        setting = await repository.create(**values)
        await db.commit()

    logger.info("Setting created", setting_key=setting.setting_key, user_id=current_user.id)
    return success("Setting created successfully", setting_mapper(base_url)(setting))


@router.get("/{setting_id}")
@monitor_performance("get_setting")
async def get_setting(
    setting_id: str,
    db: AsyncSession = Depends(get_db),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    setting = ensure_found(await SettingRepository(db).get(decode_id(setting_id)), "Setting not found")
    return success("Setting retrieved successfully", setting_mapper(base_url)(setting))


@router.put("/{setting_id}")
@monitor_performance("update_setting")
async def update_setting(
    setting_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    """Apply the fields that were sent; a new ``file`` replaces a file value."""
    repository = SettingRepository(db)
    setting = ensure_found(await repository.get(decode_id(setting_id)), "Setting not found")

    data, files = await read_payload(request)
    payload = validate_payload(SettingUpdate, data)
    upload = single_file(files, "file")

    changes = payload.model_dump(exclude_unset=True)
    setting_type = changes.get("setting_type") or setting.setting_type
    if setting.setting_type == "file" and setting_type != "file" and "setting_value" not in changes:
        changes["setting_value"] = None

    async with storage.batch() as batch:
        if upload and setting_type == "file":
            changes["setting_value"] = (await batch.store(upload, "settings")).path
        else:
            ensure_file_value(setting_type, changes.get("setting_value", setting.setting_value))
        replaced = superseded_file(setting, setting_type, changes.get("setting_value", setting.setting_value))
        await repository.update(setting, **changes)
        await db.commit()

    await storage.remove(replaced)
    await db.refresh(setting)

    logger.info("Setting updated", setting_key=setting.setting_key, fields=sorted(changes), user_id=current_user.id)
    return success("Setting updated successfully", setting_mapper(base_url)(setting))


@router.patch("/key/{setting_key}")
@monitor_performance("update_setting_by_key")
async def update_setting_by_key(
    setting_key: str,
    payload: SettingValueUpdate,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    base_url: str = Depends(get_base_url),
    current_user: User = Depends(require_admin)
):
    repository = SettingRepository(db)
    setting = ensure_found(await repository.get_by_key(setting_key), "Setting not found")
    ensure_file_value(setting.setting_type, payload.setting_value)
    replaced = superseded_file(setting, setting.setting_type, payload.setting_value)

    await repository.update(setting, setting_value=payload.setting_value)
    await db.commit()
    await storage.remove(replaced)
    await db.refresh(setting)

    logger.info("Setting value updated", setting_key=setting_key, user_id=current_user.id)
    return success("Setting updated successfully", setting_mapper(base_url)(setting))


@router.delete("/{setting_id}")
@monitor_performance("delete_setting")
async def delete_setting(
    setting_id: str,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    current_user: User = Depends(require_admin)
):
    repository = SettingRepository(db)
    setting = ensure_found(await repository.get(decode_id(setting_id)), "Setting not found")

    stored_file = setting.setting_value if setting.setting_type == "file" else None
    setting_key = setting.setting_key
    await repository.delete(setting)
    await db.commit()
    await storage.remove(stored_file)

    logger.info("Setting deleted", setting_key=setting_key, user_id=current_user.id)
    return success("Setting deleted successfully")
