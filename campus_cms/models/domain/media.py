# campus_cms/models/domain/media.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from campus_cms.models.domain.common import EncodedId


class UploaderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    username: str
    email: str


class MediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    original_name: str
    filename: str
    file_path: str
    file_size: int
    mime_type: str
    file_type: str
    alt_text: Optional[str]
    caption: Optional[str]
    uploaded_by: Optional[EncodedId]
    uploader: Optional[UploaderSummary] = None
    created_at: datetime
    updated_at: datetime


class MediaUpdate(BaseModel):
    alt_text: Optional[str] = Field(default=None, max_length=255)
    caption: Optional[str] = Field(default=None, max_length=1000)


class MediaBulkDelete(BaseModel):
    media_ids: List[str] = Field(..., min_length=1, max_length=100)
