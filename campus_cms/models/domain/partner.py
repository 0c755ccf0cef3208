# campus_cms/models/domain/partner.py
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from campus_cms.models.domain.common import EncodedId, StrictBool

PartnershipType = Literal["internship", "placement", "training", "research", "mou", "general"]


class PartnerBase(BaseModel):
    website_url: Optional[str] = Field(default=None, max_length=500, pattern=r"^https?://")
    description: Optional[str] = Field(default=None, max_length=5000)
    contact_person: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    partnership_date: Optional[date] = None


class PartnerCreate(PartnerBase):
    """Schema for creating a partner; the logo arrives as a separate file."""
    company_name: str = Field(..., min_length=2, max_length=255)
    partnership_type: PartnershipType = "general"
    is_active: StrictBool = True
    is_featured: StrictBool = False
    sort_order: int = Field(default=0, ge=0)


class PartnerUpdate(PartnerBase):
    """Partial update; only fields that were sent are applied."""
    company_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    partnership_type: Optional[PartnershipType] = None
    is_active: Optional[StrictBool] = None
    is_featured: Optional[StrictBool] = None
    sort_order: Optional[int] = Field(default=None, ge=0)


class PartnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    company_name: str
    logo: Optional[str]
    website_url: Optional[str]
    partnership_type: str
    description: Optional[str]
    contact_person: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    partnership_date: Optional[date]
    is_active: bool
    is_featured: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
