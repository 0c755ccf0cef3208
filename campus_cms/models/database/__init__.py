# campus_cms/models/database/__init__.py
"""Database models initialization."""

from .base import Base
from .user import User
from .contact import ContactInquiry
from .media import Media, GalleryItem
from .partner import Partner
from .setting import Setting
from .testimonial import Program, Testimonial

# This makes imports cleaner elsewhere in the application
__all__ = [
    'Base',
    'User',
    'ContactInquiry',
    'Media',
    'GalleryItem',
    'Partner',
    'Setting',
    'Program',
    'Testimonial'
]
