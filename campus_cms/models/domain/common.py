# campus_cms/models/domain/common.py
from enum import Enum
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer

from campus_cms.core.ids import encode_id


class SortOrder(str, Enum):
    """Common sort order options."""
    ASC = "asc"
    DESC = "desc"


def _strict_bool(value: Any) -> Any:
    """Accept real booleans and the literal strings true/false only."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError("Must be true or false")


# Internal integer ids are serialized as opaque public tokens
EncodedId = Annotated[int, PlainSerializer(encode_id, return_type=str)]

# Form fields arrive as strings; parse them once at the boundary
StrictBool = Annotated[bool, BeforeValidator(_strict_bool)]


class ToggleRequest(BaseModel):
    """Body for the flag toggle endpoints."""
    toggle: List[str] = Field(..., min_length=1)
