"""Router configuration for the Campus CMS API.

This module combines the resource routers into one API router, mounted by
the application under ``Settings.API_PREFIX``.
"""

from fastapi import APIRouter

from campus_cms.api.v1.endpoints import (
    contacts,
    media,
    partners,
    settings,
    testimonials
)

api_router = APIRouter()

api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(media.router, prefix="/media", tags=["media"])
api_router.include_router(partners.router, prefix="/partners", tags=["partners"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(testimonials.router, prefix="/testimonials", tags=["testimonials"])
