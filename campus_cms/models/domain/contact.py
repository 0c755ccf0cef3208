# campus_cms/models/domain/contact.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from campus_cms.models.domain.common import EncodedId

InquiryType = Literal["admission", "general", "complaint", "suggestion", "partnership", "technical"]
ContactStatus = Literal["new", "in_progress", "resolved", "closed"]


class ContactCreate(BaseModel):
    """Schema for a contact form submission."""
    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50, pattern=r"^[+]?[0-9\s\-()]*$")
    subject: str = Field(..., min_length=2, max_length=255)
    message: str = Field(..., min_length=5, max_length=5000)
    inquiry_type: InquiryType = "general"


class ContactStatusUpdate(BaseModel):
    status: ContactStatus
    response: Optional[str] = Field(default=None, max_length=5000)


class ContactBulkDelete(BaseModel):
    """At least one of the filters must be given."""
    ids: Optional[List[str]] = Field(default=None, max_length=500)
    status: Optional[ContactStatus] = None
    inquiry_type: Optional[InquiryType] = None


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: EncodedId
    full_name: str
    email: str
    phone: Optional[str]
    subject: str
    message: str
    inquiry_type: str
    status: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    response: Optional[str]
    responded_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
