"""
Generic CRUD handlers, built per resource.

HandlerFactory(resource) gives every entity type the same five operations:

  get_all     list through the query builder, with a result count
  get_one     fetch by id, eager-loading the resource's detail relations
  create_one  validate the candidate record, insert, return it
  update_one  merge a partial payload onto the stored row, re-validate, apply
  delete_one  delete (or soft-delete) by id

The handlers are HTTP-agnostic: they take a session and plain data and
return serialized dicts, raising domain exceptions on failure. They assume
authentication and role checks already ran in the router's dependencies.

Validation:
  The candidate record is fully materialized before any constraint runs
  (stored values + payload for updates), so cross-field rules like
  "discount below price" hold no matter which of the two fields changed.
  Unique field groups are checked with an explicit lookup first, so a
  duplicate becomes a ConflictError instead of a failed flush.
  Many-to-many ids are resolved before the row is touched, so a rejected
  request leaves the stored record as it was."""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import and_, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.exceptions import ConflictError, NotFoundError, ValidationError
from tourbook.services.constraints import validate_record
from tourbook.services.query_builder import QueryBuilder, eager_options
from tourbook.services.resource import Resource, serialize


@dataclass
class ListResult:
    """A page of serialized items and how many items it holds."""
    results: int
    items: list[dict[str, Any]]


class HandlerFactory:
    """The five CRUD operations for one resource."""

    def __init__(self, resource: Resource):
        self.resource = resource
        self.model = resource.model

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(
        self,
        db: AsyncSession,
        params: Mapping[str, str],
        scope: Mapping[str, Any] | None = None,
    ) -> ListResult:
        """
        List documents through filter -> sort -> fields -> paginate.

        Args:
            db: Database session.
            params: Raw query-string parameters.
            scope: Fixed equality conditions set by the caller (nested routes).
        """
        builder = QueryBuilder.for_resource(self.resource, params, scope).build()
        rows = await builder.execute(db)
        items = [serialize(row, builder.projection) for row in rows]
        return ListResult(results=len(items), items=items)

    async def get_one(self, db: AsyncSession, item_id: uuid.UUID) -> dict[str, Any]:
        """
        Fetch one document by id with its detail relations loaded.

        Raises:
            NotFoundError: If no visible document has this id.
        """
        instance = await self._load(db, item_id, detail=True)
        return serialize(instance)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_one(self, db: AsyncSession, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate and insert a new document.

        Raises:
            ValidationError: If the record violates a constraint.
            ConflictError: If a unique field group is already taken.
        """
        values, relations = self._split_relations(dict(payload))
        candidate = self._prepare(self._with_defaults(values))
        validate_record(candidate, self.resource.constraints)
        await self._check_unique(db, candidate)
        related = await self._resolve_all(db, relations)

        instance = self.model(**candidate)
        for key, members in related.items():
            setattr(instance, key, members)
        db.add(instance)
        await db.flush()

        if self.resource.after_write is not None:
            await self.resource.after_write(db, instance)
        return serialize(instance)

    async def update_one(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Apply a partial update, re-validating the merged record.

        Raises:
            NotFoundError: If no visible document has this id.
            ValidationError: If the merged record violates a constraint.
            ConflictError: If the update collides with a unique field group.
        """
        instance = await self._load(db, item_id, detail=False)
        changes, relations = self._split_relations(dict(payload))

        stored = {key: getattr(instance, key) for key in self._column_keys()}
        candidate = self._prepare({**stored, **changes})
        validate_record(candidate, self.resource.constraints)
        await self._check_unique(db, candidate, exclude_id=instance.id)
        related = await self._resolve_all(db, relations)

        # Every check has passed; nothing below may raise a domain error
        for key, value in candidate.items():
            if key in changes or stored.get(key) != value:
                setattr(instance, key, value)
        for key, members in related.items():
            setattr(instance, key, members)
        await db.flush()

        if self.resource.after_write is not None:
            await self.resource.after_write(db, instance)
        return serialize(instance)

    async def delete_one(self, db: AsyncSession, item_id: uuid.UUID) -> None:
        """
        Delete a document, or deactivate it for soft-deleted resources.

        Raises:
            NotFoundError: If no visible document has this id.
        """
        instance = await self._load(db, item_id, detail=True)

        if self.resource.soft_delete_field:
            setattr(instance, self.resource.soft_delete_field, False)
        else:
            await db.delete(instance)
        await db.flush()

        if self.resource.after_write is not None:
            await self.resource.after_write(db, instance)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, db: AsyncSession, item_id: uuid.UUID, detail: bool) -> Any:
        statement = select(self.model).where(self.model.id == item_id)
        for condition in self.resource.default_filters:
            statement = statement.where(condition)

        relations = self.resource.list_relations
        if detail:
            relations = relations + self.resource.detail_relations
        if relations:
            statement = statement.options(*eager_options(self.model, relations))

        result = await db.execute(statement)
        instance = result.scalar_one_or_none()
        if instance is None:
            raise NotFoundError(f"No {self.resource.name} found with that ID")
        return instance

    def _column_keys(self) -> list[str]:
        return [
            prop.key
            for prop in inspect(self.model).column_attrs
            if prop.key not in ("id", "version")
        ]

    def _with_defaults(self, values: dict[str, Any]) -> dict[str, Any]:
        """Fill in scalar column defaults so constraints see the stored record."""
        record = dict(values)
        for column in self.model.__table__.columns:
            default = column.default
            if column.key in record or default is None or not default.is_scalar:
                continue
            record[column.key] = default.arg
        return record

    def _split_relations(self, payload: dict[str, Any]) -> tuple[dict, dict]:
        relations = {
            key: payload.pop(key)
            for key in list(payload)
            if key in self.resource.many_to_many
        }
        return payload, relations

    def _prepare(self, record: dict[str, Any]) -> dict[str, Any]:
        if self.resource.prepare is None:
            return record
        return self.resource.prepare(dict(record))

    async def _check_unique(
        self,
        db: AsyncSession,
        candidate: dict[str, Any],
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        # Default filters do not apply here, so an inactive user keeps their email
        for group in self.resource.unique_together:
            if any(candidate.get(key) is None for key in group):
                continue
            condition = and_(*(getattr(self.model, key) == candidate[key] for key in group))
            statement = select(self.model.id).where(condition)
            if exclude_id is not None:
                statement = statement.where(self.model.id != exclude_id)
            if (await db.execute(statement.limit(1))).first() is not None:
                raise ConflictError(group)

    async def _resolve_all(self, db: AsyncSession, relations: dict[str, list]) -> dict[str, list]:
        return {key: await self._resolve_related(db, key, ids) for key, ids in relations.items()}

    async def _resolve_related(self, db: AsyncSession, key: str, ids: list) -> list:
        related_model = self.resource.many_to_many[key]
        if not ids:
            return []
        result = await db.execute(select(related_model).where(related_model.id.in_(ids)))
        found = list(result.scalars().all())
        if len(found) != len(set(ids)):
            raise ValidationError(f"Unknown id in {key}", errors={key: "Unknown id"})
        return found
