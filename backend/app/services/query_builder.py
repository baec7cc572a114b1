"""Query builder — pagination, range/any-of filters, text search and sort resolution.

Shared by every list endpoint so filter, sort and page semantics stay uniform
across entity kinds. Dialect-specific pieces (JSON array overlap, full-text
rank) compile to Postgres operators in production and to portable SQL on
SQLite.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import Boolean, Float, String, Select, case, cast, func, literal, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import ColumnElement

from app.config import get_settings


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def paginate(page: int | None = None, limit: int | None = None) -> PageRequest:
    """Floor page at 1 and clamp limit to [1, max_page_size]."""
    settings = get_settings()
    page = max(1, page or 1)
    if limit is None:
        limit = settings.default_page_size
    limit = min(max(1, limit), settings.max_page_size)
    return PageRequest(page=page, limit=limit)


def page_info(request: PageRequest, total: int) -> dict:
    total_pages = math.ceil(total / request.limit) if total else 0
    has_next = request.page < total_pages
    has_prev = request.page > 1
    return {
        "current_page": request.page,
        "total_pages": total_pages,
        "total_count": total,
        "limit": request.limit,
        "has_next_page": has_next,
        "has_prev_page": has_prev,
        "next_page": request.page + 1 if has_next else None,
        "prev_page": request.page - 1 if has_prev else None,
    }


async def fetch_page(db: AsyncSession, query: Select, request: PageRequest) -> tuple[list, int]:
    """Run a count over the filtered query, then fetch one page of rows."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.offset(request.offset).limit(request.limit))
    return list(result.scalars().unique().all()), total


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


LIKE_ESCAPE = "\\"


def contains_pattern(value: str) -> str:
    """LIKE pattern matching ``value`` anywhere, with its wildcards taken literally."""
    escaped = value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    for wildcard in ("%", "_"):
        escaped = escaped.replace(wildcard, LIKE_ESCAPE + wildcard)
    return f"%{escaped}%"


def contains(column, value: str):
    """Case-insensitive substring filter."""
    return column.ilike(contains_pattern(value), escape=LIKE_ESCAPE)


def csv_values(value: str | Iterable[str] | None) -> list[str]:
    """Split a comma-separated parameter into trimmed, lower-cased values."""
    if not value:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    return [part.strip().lower() for part in parts if part and part.strip()]


def apply_range(query: Select, column, low: Any = None, high: Any = None) -> Select:
    """Independent min/max bounds; an absent bound leaves that side open."""
    if low is not None:
        query = query.where(column >= low)
    if high is not None:
        query = query.where(column <= high)
    return query


class json_overlaps(ColumnElement):
    """True when a JSON array column shares at least one element with ``values``."""

    type = Boolean()
    inherit_cache = False

    def __init__(self, column, values: Iterable[str]):
        self.column = column
        self.values = [str(value) for value in values]


@compiles(json_overlaps)
def _json_overlaps_default(element, compiler, **kw):
    column = compiler.process(element.column, **kw)
    params = ", ".join(compiler.process(literal(value, String()), **kw) for value in element.values)
    return f"EXISTS (SELECT 1 FROM json_each({column}) WHERE json_each.value IN ({params}))"


@compiles(json_overlaps, "postgresql")
def _json_overlaps_postgresql(element, compiler, **kw):
    column = compiler.process(element.column, **kw)
    params = ", ".join(compiler.process(literal(value, String()), **kw) for value in element.values)
    return f"(CAST({column} AS JSONB) ?| CAST(ARRAY[{params}] AS TEXT[]))"


def apply_any_of(query: Select, column, values: Iterable[str]) -> Select:
    """Match rows whose multi-value column intersects the supplied set."""
    values = list(values)
    if not values:
        return query
    return query.where(json_overlaps(column, values))


# ---------------------------------------------------------------------------
# Text search
# ---------------------------------------------------------------------------


TS_CONFIG = literal_column("'english'")


def search_terms(text: str) -> list[str]:
    return [term for term in text.lower().split() if term]


class text_match(ColumnElement):
    type = Boolean()
    inherit_cache = False

    def __init__(self, columns, text: str):
        self.columns = list(columns)
        self.text = text


class text_rank(ColumnElement):
    type = Float()
    inherit_cache = False

    def __init__(self, columns, text: str):
        self.columns = list(columns)
        self.text = text


def _document(columns):
    return func.to_tsvector(TS_CONFIG, func.concat_ws(" ", *columns))


def _lowered(column):
    return func.lower(func.coalesce(column, ""))


def _like_hits(columns, text: str):
    hits = [
        case((_lowered(column).like(contains_pattern(term), escape=LIKE_ESCAPE), 1), else_=0)
        for column in columns
        for term in search_terms(text)
    ]
    total = hits[0] if hits else literal(0)
    for hit in hits[1:]:
        total = total + hit
    return total


@compiles(text_match)
def _text_match_default(element, compiler, **kw):
    clauses = [
        _lowered(column).like(contains_pattern(term), escape=LIKE_ESCAPE)
        for column in element.columns
        for term in search_terms(element.text)
    ]
    if not clauses:
        return compiler.process(literal(True), **kw)
    return compiler.process(or_(*clauses), **kw)


@compiles(text_match, "postgresql")
def _text_match_postgresql(element, compiler, **kw):
    expr = _document(element.columns).op("@@")(func.plainto_tsquery(TS_CONFIG, element.text))
    return compiler.process(expr, **kw)


@compiles(text_rank)
def _text_rank_default(element, compiler, **kw):
    return compiler.process(cast(_like_hits(element.columns, element.text), Float), **kw)


@compiles(text_rank, "postgresql")
def _text_rank_postgresql(element, compiler, **kw):
    expr = func.ts_rank(_document(element.columns), func.plainto_tsquery(TS_CONFIG, element.text))
    return compiler.process(expr, **kw)


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def resolve_sort(
    sort_by: str | None,
    sort_order: str | None,
    fields: dict[str, Any],
    default: Any,
) -> list:
    """Translate a caller sort field into ORDER BY clauses.

    ``fields`` maps public names to a column, or to a tuple whose extra
    columns act as descending tie-breaks. Unknown names fall back to
    ``default`` (creation time, newest first).
    """
    sort_field = fields.get(sort_by or "")
    if sort_field is None:
        return [default.desc()]
    columns = sort_field if isinstance(sort_field, tuple) else (sort_field,)
    primary, extras = columns[0], columns[1:]
    direction = primary.asc() if (sort_order or "desc").lower() == "asc" else primary.desc()
    return [direction, *(column.desc() for column in extras)]
