"""Dependencies for FastAPI application.

This module defines dependencies used across API endpoints including:
- Database session management
- Listing parameter validation
- Request payload parsing for JSON and multipart bodies
- Helpers shared by the resource controllers
"""

from typing import Any, AsyncGenerator, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from campus_cms.core.exceptions import NotFoundError, ValidationError
from campus_cms.core.query import ListConfig
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.utils.validators import validate_list_params

SchemaType = TypeVar("SchemaType", bound=BaseModel)
Files = Dict[str, List[UploadFile]]


# Database Dependencies
async def get_db(
    manager: SessionManager = Depends(get_session_manager)
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting a request-scoped database session."""
    async with manager.session() as session:
        yield session


def get_base_url(request: Request) -> str:
    """Origin used to turn stored file paths into absolute URLs."""
    return str(request.base_url)


# Listing Dependencies
def list_params(
    config: ListConfig,
    choices: Optional[Mapping[str, Sequence[str]]] = None
) -> Callable[[Request], Dict[str, Any]]:
    """Build a dependency that validates the query string for a listing."""
    def dependency(request: Request) -> Dict[str, Any]:
        return validate_list_params(request.query_params, config, choices)
    return dependency


# Payload Dependencies
async def read_payload(request: Request) -> Tuple[Dict[str, Any], Files]:
    """Read a JSON or multipart body into plain fields and uploaded files.

    Blank form fields are dropped so optional columns are left untouched.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body, {}

    form = await request.form()
    data: Dict[str, Any] = {}
    files: Files = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if value.filename:
                files.setdefault(key, []).append(value)
        elif value.strip() != "":
            data[key] = value
    return data, files


def validate_payload(schema: Type[SchemaType], data: Mapping[str, Any]) -> SchemaType:
    """Validate plain fields against a schema, reporting errors like FastAPI does."""
    try:
        return schema.model_validate(dict(data))
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def single_file(files: Files, field: str) -> Optional[UploadFile]:
    uploads = files.get(field) or []
    if len(uploads) > 1:
        raise ValidationError(
            f"Only one file is allowed for {field}",
            errors=[{"field": field, "message": "Only one file is allowed"}]
        )
    return uploads[0] if uploads else None


def ensure_found(instance: Any, message: str = "Resource not found") -> Any:
    if instance is None:
        raise NotFoundError(message)
    return instance


def toggle_changes(instance: Any, requested: Sequence[str], allowed: Sequence[str]) -> Dict[str, bool]:
    """Flipped values for each requested boolean flag."""
    invalid = [name for name in requested if name not in allowed]
    if invalid:
        raise ValidationError(
            f"Invalid toggle field(s): {', '.join(invalid)}. Allowed: {', '.join(allowed)}",
            errors=[{"field": "toggle", "message": f"Unknown field {name}"} for name in invalid]
        )
    return {name: not getattr(instance, name) for name in dict.fromkeys(requested)}


def ensure_content_type(upload: Optional[UploadFile], field: str, prefixes: Sequence[str]) -> Optional[UploadFile]:
    """Reject uploads whose MIME type does not start with one of ``prefixes``."""
    if upload is None:
        return None
    content_type = (upload.content_type or "").lower()
    if not any(content_type.startswith(prefix) for prefix in prefixes):
        raise ValidationError(
            f"Invalid file type for {field}",
            errors=[{"field": field, "message": f"Unsupported file type {content_type or 'unknown'}"}]
        )
    return upload
