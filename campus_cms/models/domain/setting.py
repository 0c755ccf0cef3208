# campus_cms/models/domain/setting.py
import json
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from campus_cms.models.domain.common import EncodedId, StrictBool

SettingType = Literal["text", "number", "boolean", "json", "file", "email", "url"]

SETTING_KEY_PATTERN = r"^[a-z][a-z0-9_]*$"


def _parse_json(value: Any) -> Any:
    """Form submissions carry JSON columns as strings."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            raise ValueError("Must be valid JSON")
    return value


JsonValue = Annotated[Any, BeforeValidator(_parse_json)]


class SettingCreate(BaseModel):
    setting_key: str = Field(..., min_length=2, max_length=100, pattern=SETTING_KEY_PATTERN)
    setting_value: Optional[str] = None
    setting_type: SettingType = "text"
    group_name: str = Field(default="general", min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    placeholder: Optional[str] = Field(default=None, max_length=255)
    validation: Optional[JsonValue] = None
    options: Optional[JsonValue] = None
    is_public: StrictBool = False
    is_required: StrictBool = False
    sort_order: int = Field(default=0, ge=0)


class SettingUpdate(BaseModel):
    """Partial update; only fields that were sent are applied."""
    setting_value: Optional[str] = None
    setting_type: Optional[SettingType] = None
    group_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    label: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    placeholder: Optional[str] = Field(default=None, max_length=255)
    validation: Optional[JsonValue] = None
    options: Optional[JsonValue] = None
    is_public: Optional[StrictBool] = None
    is_required: Optional[StrictBool] = None
    sort_order: Optional[int] = Field(default=None, ge=0)


class SettingValueUpdate(BaseModel):
    setting_value: Optional[str] = None


class SettingValueItem(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=100)
    setting_value: Optional[str] = None


class SettingsBulkUpdate(BaseModel):
    settings: List[SettingValueItem] = Field(..., min_length=1, max_length=200)


class SettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    setting_key: str
    setting_value: Optional[str]
    setting_type: str
    group_name: str
    label: str
    description: Optional[str]
    placeholder: Optional[str]
    validation: Optional[Any]
    options: Optional[Any]
    is_public: bool
    is_required: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
