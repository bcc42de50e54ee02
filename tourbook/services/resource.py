"""
Resource descriptors and record serialization.

A Resource describes one entity type to the generic machinery (the query
builder and the handler factory): which model backs it, which filters every
query carries by default, which relations to load, which fields must be
unique, which constraints a stored record must satisfy, and which hooks run
around writes.

Serialization is model driven. Each model may declare:
  - __hidden__: column keys never exposed (password hashes, version counter)
  - __computed__: read-time derived fields, mapped to the columns they need
  - __summary__: the fields shown when the model appears nested in another

serialize() only emits attributes that are already loaded. It never triggers
a lazy load, so projected queries (load_only) and relations that were not
eager-loaded simply don't appear in the output.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from sqlalchemy import JSON, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.services.constraints import Constraint


@dataclass(frozen=True, eq=False)
class Resource:
    """
    Everything the generic handlers need to know about an entity type.

    Attributes:
        model: The mapped class.
        name / plural: Keys used in response envelopes ("tour" / "tours").
        default_filters: SQL conditions AND-ed into every query.
        list_relations: Relations eager-loaded on every read.
        detail_relations: Extra relations eager-loaded by Get-by-id.
        unique_together: Field groups that must be unique across all rows.
        constraints: Declarative rules checked on the merged candidate record.
        many_to_many: Payload keys holding id lists, mapped to the related model.
        prepare: Normalizes a candidate record before validation (slug, case).
        after_write: Awaited after create/update/delete with the affected row.
        soft_delete_field: Boolean column flipped to False instead of deleting.
    """

    model: type
    name: str
    plural: str
    default_filters: tuple = ()
    list_relations: tuple[str, ...] = ()
    detail_relations: tuple[str, ...] = ()
    unique_together: tuple[tuple[str, ...], ...] = ()
    constraints: tuple[Constraint, ...] = ()
    many_to_many: dict[str, type] = field(default_factory=dict)
    prepare: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    after_write: Callable[[AsyncSession, Any], Awaitable[None]] | None = None
    soft_delete_field: str | None = None

    @property
    def hidden(self) -> frozenset[str]:
        return getattr(self.model, "__hidden__", frozenset())

    @property
    def computed(self) -> dict[str, tuple[str, ...]]:
        return getattr(self.model, "__computed__", {})

    @property
    def columns(self) -> dict[str, Any]:
        """Public column key -> Column."""
        return {
            prop.key: prop.columns[0]
            for prop in inspect(self.model).column_attrs
            if prop.key not in self.hidden
        }

    def scalar_columns(self) -> dict[str, Any]:
        """Public columns that can be compared and ordered (no JSON)."""
        return {
            key: column
            for key, column in self.columns.items()
            if not isinstance(column.type, JSON)
        }


def serialize(
    instance: Any,
    projection: tuple[str, ...] | None = None,
    _ancestors: tuple[type, ...] = (),
) -> dict[str, Any]:
    """
    Turn a loaded model instance into a plain dict.

    Args:
        instance: A mapped instance.
        projection: Field names to keep (the id is always kept). None keeps
                    every public field.

    Relations are serialized recursively, except back-references to a model
    already being serialized higher up (a review inside a tour skips its tour).
    """
    model = type(instance)
    state = inspect(instance)
    mapper = state.mapper
    unloaded = state.unloaded
    hidden = getattr(model, "__hidden__", frozenset())
    computed = getattr(model, "__computed__", {})

    def wanted(key: str) -> bool:
        return projection is None or key == "id" or key in projection

    data: dict[str, Any] = {}
    for prop in mapper.column_attrs:
        key = prop.key
        if key in hidden or key in unloaded or not wanted(key):
            continue
        data[key] = getattr(instance, key)

    for key, depends_on in computed.items():
        if not wanted(key) or any(dep in unloaded for dep in depends_on):
            continue
        data[key] = getattr(instance, key)

    ancestors = _ancestors + (model,)
    for rel in mapper.relationships:
        key = rel.key
        if key in unloaded or not wanted(key) or rel.mapper.class_ in ancestors:
            continue
        value = getattr(instance, key)
        summary = getattr(rel.mapper.class_, "__summary__", None)
        if value is None:
            data[key] = None
        elif rel.uselist:
            data[key] = [serialize(item, summary, ancestors) for item in value]
        else:
            data[key] = serialize(value, summary, ancestors)

    return data
