# campus_cms/models/domain/testimonial.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from campus_cms.models.domain.common import EncodedId, StrictBool


class TestimonialBase(BaseModel):
    program_id: Optional[str] = None
    program_name: Optional[str] = Field(default=None, max_length=255)
    graduation_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    current_position: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class TestimonialCreate(TestimonialBase):
    """Schema for creating a testimonial; images and video arrive as files."""
    student_name: str = Field(..., min_length=2, max_length=255)
    content: str = Field(..., min_length=10, max_length=5000)
    is_published: StrictBool = False
    is_featured: StrictBool = False
    sort_order: int = Field(default=0, ge=0)


class TestimonialUpdate(TestimonialBase):
    """Partial update; only fields that were sent are applied."""
    student_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    content: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    is_published: Optional[StrictBool] = None
    is_featured: Optional[StrictBool] = None
    sort_order: Optional[int] = Field(default=None, ge=0)


class TestimonialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    student_name: str
    slug: str
    program_id: Optional[EncodedId]
    program_name: Optional[str]
    graduation_year: Optional[int]
    current_position: Optional[str]
    company: Optional[str]
    content: str
    rating: Optional[int]
    student_image: Optional[str]
    video_file: Optional[str]
    is_published: bool
    is_featured: bool
    sort_order: int
    created_by: Optional[EncodedId]
    updated_by: Optional[EncodedId]
    created_at: datetime
    updated_at: datetime
