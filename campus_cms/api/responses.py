"""Response envelope helpers.

All endpoints answer with ``{success, message, data, meta?}``; failures with
``{success: false, message, error?, errors?}``. Routes return these dicts and
FastAPI serializes them.
"""

from typing import Any, Callable, Dict, List, Optional

from campus_cms.core.query import PaginatedResult


def success(
    message: str,
    data: Any = None,
    meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message, "data": data}
    if meta is not None:
        body["meta"] = meta
    return body


def paginated(
    message: str,
    result: PaginatedResult,
    mapper: Optional[Callable[[Any], Any]] = None,
    extra_meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Envelope for a page of results; ``mapper`` turns rows into DTOs."""
    items = [mapper(item) for item in result.items] if mapper else result.items
    meta = result.meta()
    if extra_meta:
        meta.update(extra_meta)
    return success(message, items, meta)


def failure(
    message: str,
    error: Optional[str] = None,
    errors: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    if errors:
        body["errors"] = errors
    return body
