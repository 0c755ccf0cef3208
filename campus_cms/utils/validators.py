"""Validation utilities for the Campus CMS application.

This module validates raw query-string input before it reaches a controller:
- Pagination and sorting parameters against a resource's ``ListConfig``
- Enumerated filter values
- Boolean filters (the literal strings ``true``/``false``)
- Date range parameters used by the statistics endpoints

All failures are collected and raised together as one ``ValidationError``.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from campus_cms.core.exceptions import ValidationError
from campus_cms.core.query import FilterKind, ListConfig

FieldError = Dict[str, str]


def _int_error(params: Mapping[str, Any], name: str, low: int, high: Optional[int]) -> Optional[FieldError]:
    raw = params.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return {"field": name, "message": "Must be an integer"}
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        return {"field": name, "message": f"Must be {bound}"}
    return None


def validate_list_params(
    params: Mapping[str, Any],
    config: ListConfig,
    choices: Optional[Mapping[str, Sequence[str]]] = None
) -> Dict[str, Any]:
    """Check listing parameters and return them as a plain dict."""
    errors: List[FieldError] = []

    for error in (
        _int_error(params, "page", 1, None),
        _int_error(params, "limit", 1, config.max_limit),
    ):
        if error:
            errors.append(error)

    sort_by = params.get("sortBy")
    if sort_by and sort_by not in config.sort_fields:
        errors.append({
            "field": "sortBy",
            "message": f"SortBy must be one of: {', '.join(config.sort_fields)}"
        })

    sort_order = params.get("sortOrder")
    if sort_order and sort_order.lower() not in ("asc", "desc"):
        errors.append({"field": "sortOrder", "message": "SortOrder must be asc or desc"})

    for name, kind in config.filters.items():
        raw = params.get(name)
        if raw is None or raw == "":
            continue
        if kind == FilterKind.BOOL and raw.lower() not in ("true", "false"):
            errors.append({"field": name, "message": "Must be true or false"})
        elif kind == FilterKind.INT and _int_error(params, name, 0, None):
            errors.append({"field": name, "message": "Must be an integer"})

    for name, allowed in (choices or {}).items():
        errors.extend(validate_choice(params.get(name), allowed, name))

    query = params.get("query")
    if query is not None and len(query) > 255:
        errors.append({"field": "query", "message": "Search query is too long"})

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return dict(params)


def validate_choice(value: Optional[str], allowed: Sequence[str], field: str) -> List[FieldError]:
    if value is None or value == "" or value in allowed:
        return []
    return [{"field": field, "message": f"{field} must be one of: {', '.join(allowed)}"}]


def ensure_choice(value: Optional[str], allowed: Sequence[str], field: str) -> Optional[str]:
    """Raise ``ValidationError`` unless ``value`` is empty or allowed."""
    errors = validate_choice(value, allowed, field)
    if errors:
        raise ValidationError(errors[0]["message"], errors=errors)
    return value


def parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise ValidationError(
            f"{field} must be an ISO 8601 date",
            errors=[{"field": field, "message": "Must be an ISO 8601 date"}]
        )


def parse_date_range(start: Optional[str], end: Optional[str]) -> Tuple[Optional[date], Optional[date]]:
    start_date = parse_date(start, "startDate")
    end_date = parse_date(end, "endDate")
    if start_date and end_date and start_date > end_date:
        raise ValidationError(
            "startDate must not be after endDate",
            errors=[{"field": "startDate", "message": "Must not be after endDate"}]
        )
    return start_date, end_date
