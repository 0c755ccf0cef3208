# File: campus_cms/models/database/setting.py

"""Key/value site settings edited from the admin panel."""

from typing import Any, Optional

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

SETTING_TYPES = ("text", "number", "boolean", "json", "file", "email", "url")


class Setting(Base):
    __tablename__ = 'settings'

    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    setting_type: Mapped[str] = mapped_column(String(20), default="text", nullable=False)
    group_name: Mapped[str] = mapped_column(String(100), default="general", nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    placeholder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    validation: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    options: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
