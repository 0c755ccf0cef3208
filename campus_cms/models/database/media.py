# File: campus_cms/models/database/media.py

"""Uploaded media files and the gallery entries that reference them."""

from typing import List, Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

FILE_TYPES = ("image", "video", "audio", "document", "other")

_DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "text/csv",
}


def file_type_for(mime_type: Optional[str]) -> str:
    """Classify a MIME type into one of ``FILE_TYPES``."""
    mime_type = (mime_type or "").lower()
    for prefix in ("image", "video", "audio"):
        if mime_type.startswith(prefix + "/"):
            return prefix
    if mime_type in _DOCUMENT_MIME_TYPES:
        return "document"
    return "other"


class Media(Base):
    __tablename__ = 'media'

    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), default="other", nullable=False, index=True)
    alt_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )

    # Relationships
    uploader: Mapped[Optional["User"]] = relationship(back_populates="media")
    gallery_items: Mapped[List["GalleryItem"]] = relationship(
        back_populates="media",
        passive_deletes=True
    )


class GalleryItem(Base):
    """Gallery entry pointing at a media file; blocks deleting that file."""
    __tablename__ = 'gallery_items'

    media_id: Mapped[int] = mapped_column(
        ForeignKey('media.id', ondelete='RESTRICT'),
        nullable=False,
        index=True
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    media: Mapped["Media"] = relationship(back_populates="gallery_items")
