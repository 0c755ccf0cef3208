"""List query building shared by every resource listing.

Raw query-string values go in; a bounded ``ListQuery`` and an immutable
``Criteria`` come out. ``QueryBuilder.paginate`` runs the count and the page
fetch against a ``ListStore`` concurrently and wraps the rows in a
``PaginatedResult``. The builder never talks to the database itself, so any
object implementing ``count``/``fetch`` can serve as the store.
"""

import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar
)

from campus_cms.core.exceptions import ValidationError
from campus_cms.core.ids import decode_id
from campus_cms.models.domain.common import SortOrder

T = TypeVar("T")

Pairs = Tuple[Tuple[str, Any], ...]


class FilterKind(str, Enum):
    """How a raw filter value is converted before it becomes a predicate."""
    TEXT = "text"
    BOOL = "bool"
    INT = "int"
    ID = "id"


@dataclass(frozen=True)
class ListConfig:
    """Per-resource listing rules."""
    sort_fields: Tuple[str, ...]
    default_sort: str
    default_order: SortOrder = SortOrder.DESC
    default_limit: int = 10
    max_limit: int = 100
    filters: Mapping[str, FilterKind] = field(default_factory=dict)
    search_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ListQuery:
    page: int
    limit: int
    sort_by: str
    sort_order: SortOrder
    filters: Pairs = ()
    query: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Criteria:
    """Immutable filter shared by the count and the fetch of one listing.

    ``equals`` and ``narrowing`` are ANDed equality pairs; ``search_term``
    matches any of ``search_fields`` case-insensitively. ``narrowing`` comes
    from the caller (visibility rules) and is applied after everything else.
    """
    equals: Pairs = ()
    search_fields: Tuple[str, ...] = ()
    search_term: Optional[str] = None
    narrowing: Pairs = ()


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def meta(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


class ListStore(Protocol):
    async def count(self, criteria: Criteria) -> int:
        ...

    async def fetch(
        self,
        criteria: Criteria,
        sort_by: str,
        sort_order: SortOrder,
        offset: int,
        limit: int
    ) -> Sequence[Any]:
        ...


def parse_bool(value: str, field_name: str) -> bool:
    """Parse the literal strings ``"true"``/``"false"``."""
    normalized = str(value).strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ValidationError(
        f"{field_name} must be true or false",
        errors=[{"field": field_name, "message": "Must be true or false"}]
    )


def _to_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


class QueryBuilder:
    """Turn untrusted query parameters into a bounded, filtered listing."""

    def __init__(self, config: ListConfig):
        self.config = config

    def parse(self, params: Mapping[str, Any]) -> ListQuery:
        config = self.config

        page = max(_to_int(params.get("page"), 1), 1)
        limit = _to_int(params.get("limit"), config.default_limit)
        limit = min(max(limit, 1), config.max_limit)

        sort_by = params.get("sortBy") or config.default_sort
        if sort_by not in config.sort_fields:
            sort_by = config.default_sort

        try:
            sort_order = SortOrder(str(params.get("sortOrder") or config.default_order.value).lower())
        except ValueError:
            sort_order = config.default_order

        filters = []
        for name, kind in config.filters.items():
            raw = params.get(name)
            if raw is None or str(raw).strip() == "":
                continue
            filters.append((name, self._convert(name, kind, str(raw).strip())))

        query = params.get("query")
        query = str(query).strip() if query is not None else ""

        return ListQuery(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            filters=tuple(filters),
            query=query or None
        )

    @staticmethod
    def _convert(name: str, kind: FilterKind, raw: str) -> Any:
        if kind == FilterKind.BOOL:
            return parse_bool(raw, name)
        if kind == FilterKind.INT:
            try:
                return int(raw)
            except ValueError:
                raise ValidationError(
                    f"{name} must be an integer",
                    errors=[{"field": name, "message": "Must be an integer"}]
                )
        if kind == FilterKind.ID:
            # InvalidIdError propagates to the caller untouched
            return decode_id(raw)
        return raw

    def criteria(
        self,
        list_query: ListQuery,
        narrowing: Optional[Mapping[str, Any]] = None
    ) -> Criteria:
        search_term = list_query.query if self.config.search_fields else None
        return Criteria(
            equals=list_query.filters,
            search_fields=self.config.search_fields if search_term else (),
            search_term=search_term,
            narrowing=tuple((narrowing or {}).items())
        )

    async def paginate(
        self,
        store: ListStore,
        params: Mapping[str, Any],
        narrowing: Optional[Mapping[str, Any]] = None,
        mapper: Optional[Callable[[Any], T]] = None
    ) -> PaginatedResult[T]:
        list_query = self.parse(params)
        criteria = self.criteria(list_query, narrowing)

        total, rows = await asyncio.gather(
            store.count(criteria),
            store.fetch(
                criteria,
                list_query.sort_by,
                list_query.sort_order,
                list_query.offset,
                list_query.limit
            )
        )

        items = [mapper(row) for row in rows] if mapper else list(rows)
        return PaginatedResult(
            items=items,
            total=total,
            page=list_query.page,
            limit=list_query.limit
        )
