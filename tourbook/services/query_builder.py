"""
Query builder — turns query-string parameters into a composed SELECT.

Every list endpoint runs its parameters through the same four stages, in
order, each returning a new builder around a new (immutable) SQLAlchemy
Select:

  1. filter()        ?price[gte]=500&difficulty=easy
                       -> WHERE price >= 500 AND difficulty = 'easy'
  2. sort()          ?sort=-price,name
                       -> ORDER BY price DESC, name ASC, id ASC
                       (default: newest first)
  3. limit_fields()  ?fields=name,price      include only these
                     ?fields=-summary        everything but these
  4. paginate()      ?page=2&limit=10        -> OFFSET 10 LIMIT 10

The control keys (page, sort, limit, fields) never become filter fields.

Nothing hits the database until execute(). Default filters of the resource
(e.g. inactive users, secret tours) and any caller scope (e.g. the tour of a
nested review listing) are part of the base query from the start.

Example:
    builder = QueryBuilder.for_resource(tour_resource, request.query_params).build()
    tours = await builder.execute(db)
"""

import operator
import re
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import load_only, selectinload
from sqlalchemy.sql import Select

from tourbook.config import settings
from tourbook.exceptions import PageNotFoundError, ValidationError
from tourbook.services.resource import Resource


CONTROL_KEYS = frozenset({"page", "sort", "limit", "fields"})

# Comparison suffixes accepted as field[op]=value
OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

DEFAULT_SORT = "-created_at"

_KEY_PATTERN = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>\w+)\])?$")


def eager_options(model: type, paths: tuple[str, ...]) -> list:
    """
    Build selectinload() options from dotted relation paths.

    "reviews.user" loads Tour.reviews and, for each review, Review.user.
    """
    options = []
    for path in paths:
        current_model = model
        loader = None
        for name in path.split("."):
            attr = getattr(current_model, name)
            loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            current_model = attr.property.mapper.class_
        options.append(loader)
    return options


def coerce_value(field: str, column: Any, raw: str) -> Any:
    """Convert a query-string value to the Python type of the column."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        raise ValidationError(f"Cannot filter on field '{field}'")

    try:
        if python_type is bool:
            lowered = raw.strip().lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is int:
            number = float(raw)
            return int(number) if number.is_integer() else number
        if python_type is uuid.UUID:
            return uuid.UUID(raw)
        return python_type(raw)
    except ValueError:
        raise ValidationError(f"Invalid value for {field}: {raw}")


def _positive_int(name: str, raw: str | None, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"'{name}' must be a positive integer")
    if value < 1:
        raise ValidationError(f"'{name}' must be a positive integer")
    return value


@dataclass(frozen=True)
class QueryBuilder:
    resource: Resource
    params: Mapping[str, str]
    statement: Select
    # The filtered statement before sorting/paging, used for counting
    filtered: Select
    projection: tuple[str, ...] | None = None
    page: int = 1
    limit: int | None = None

    @classmethod
    def for_resource(
        cls,
        resource: Resource,
        params: Mapping[str, str],
        scope: Mapping[str, Any] | None = None,
    ) -> "QueryBuilder":
        """
        Start from the resource's base query.

        Args:
            resource: What is being listed.
            params: Raw query-string parameters.
            scope: Extra equality conditions fixed by the caller, never taken
                   from the query string (e.g. {"tour_id": ...}).
        """
        model = resource.model
        statement = select(model)
        for condition in resource.default_filters:
            statement = statement.where(condition)
        for key, value in (scope or {}).items():
            statement = statement.where(getattr(model, key) == value)
        return cls(resource, dict(params), statement, statement)

    # ------------------------------------------------------------------
    # Stage 1: filter
    # ------------------------------------------------------------------

    def filter(self) -> "QueryBuilder":
        model = self.resource.model
        columns = self.resource.scalar_columns()
        statement = self.statement

        for key, raw in self.params.items():
            match = _KEY_PATTERN.match(key)
            if match is None:
                raise ValidationError(f"Invalid filter '{key}'")
            field_name, op = match.group("field"), match.group("op")
            if field_name in CONTROL_KEYS and op is None:
                continue
            if field_name not in columns:
                raise ValidationError(f"Cannot filter on field '{field_name}'")
            if op is not None and op not in OPERATORS:
                raise ValidationError(f"Unsupported operator '{op}' on '{field_name}'")

            value = coerce_value(field_name, columns[field_name], raw)
            compare = OPERATORS[op] if op else operator.eq
            statement = statement.where(compare(getattr(model, field_name), value))

        return replace(self, statement=statement, filtered=statement)

    # ------------------------------------------------------------------
    # Stage 2: sort
    # ------------------------------------------------------------------

    def sort(self) -> "QueryBuilder":
        model = self.resource.model
        sortable = self.resource.scalar_columns()
        raw = self.params.get("sort") or DEFAULT_SORT

        order_by = []
        for token in raw.split(","):
            token = token.strip()
            if not token:
                continue
            descending = token.startswith("-")
            field_name = token.lstrip("-")
            if field_name not in sortable:
                raise ValidationError(f"Cannot sort on field '{field_name}'")
            attr = getattr(model, field_name)
            order_by.append(attr.desc() if descending else attr.asc())

        # Primary key last: rows with equal sort keys keep a fixed order
        order_by.append(model.id.asc())
        return replace(self, statement=self.statement.order_by(*order_by))

    # ------------------------------------------------------------------
    # Stage 3: field selection
    # ------------------------------------------------------------------

    def limit_fields(self) -> "QueryBuilder":
        raw = self.params.get("fields")
        if not raw:
            return self

        tokens = [token.strip() for token in raw.split(",") if token.strip()]
        excluded = [token for token in tokens if token.startswith("-")]
        if excluded and len(excluded) != len(tokens):
            raise ValidationError("Cannot mix included and excluded fields")

        columns = self.resource.columns
        computed = self.resource.computed
        relations = set(self.resource.list_relations)
        selectable = set(columns) | set(computed) | relations

        names = [token.lstrip("-") for token in tokens]
        unknown = [name for name in names if name not in selectable]
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

        if excluded:
            projection = tuple(name for name in selectable if name not in names)
        else:
            projection = tuple(names)

        # Load the columns behind the projection, plus what computed fields need
        load_keys = {"id"}
        for name in projection:
            if name in columns:
                load_keys.add(name)
            elif name in computed:
                load_keys.update(computed[name])

        model = self.resource.model
        statement = self.statement.options(
            load_only(*(getattr(model, key) for key in sorted(load_keys)))
        )
        return replace(self, statement=statement, projection=projection)

    # ------------------------------------------------------------------
    # Stage 4: pagination
    # ------------------------------------------------------------------

    def paginate(self) -> "QueryBuilder":
        page = _positive_int("page", self.params.get("page"), 1)
        limit = _positive_int("limit", self.params.get("limit"), settings.DEFAULT_PAGE_LIMIT)
        skip = (page - 1) * limit
        statement = self.statement.offset(skip).limit(limit)
        return replace(self, statement=statement, page=page, limit=limit)

    # ------------------------------------------------------------------

    def build(self) -> "QueryBuilder":
        """Run all four stages in their fixed order."""
        return self.filter().sort().limit_fields().paginate()

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit if self.limit else 0

    async def count(self, db: AsyncSession) -> int:
        """Number of rows matching the filters, ignoring pagination."""
        total = await db.scalar(
            select(func.count()).select_from(self.filtered.subquery())
        )
        return total or 0

    async def execute(self, db: AsyncSession) -> list:
        """
        Run the composed query.

        Raises:
            PageNotFoundError: If the requested page starts at or past the
                               last matching row (only checked past page 1).
        """
        if self.skip > 0 and self.skip >= await self.count(db):
            raise PageNotFoundError(self.page)

        statement = self.statement
        if self.resource.list_relations:
            statement = statement.options(
                *eager_options(self.resource.model, self.resource.list_relations)
            )
        result = await db.execute(statement)
        return list(result.scalars().all())
