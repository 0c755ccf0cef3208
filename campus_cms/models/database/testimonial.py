# File: campus_cms/models/database/testimonial.py

"""Student testimonials and the academic programs they refer to."""

from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Program(Base):
    """Academic program. Managed elsewhere; referenced by testimonials."""
    __tablename__ = 'programs'

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    testimonials: Mapped[List["Testimonial"]] = relationship(back_populates="program")


class Testimonial(Base):
    __tablename__ = 'testimonials'

    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    program_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey('programs.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    program_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    graduation_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_position: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    student_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    video_file: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True
    )
    updated_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True
    )

    program: Mapped[Optional["Program"]] = relationship(back_populates="testimonials")
