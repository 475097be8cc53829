import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import JSON, func
from sqlmodel import Session, select

from lexdesk.core.errors import ValidationError
from lexdesk.db.session import unit_of_work
from lexdesk.metrics.prometheus import entity_writes_total
from lexdesk.models.base import STORE_MANAGED_FIELDS, Entity, utcnow

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)

# query-string keys that are paging/sorting rather than field filters
RESERVED_QUERY_KEYS = frozenset({"limit", "offset", "order_by"})


@dataclass
class FilterSpec:
    """
    Equality filters plus ordering and paging.

    ``filters`` maps a field name to a value; a list/tuple/set value means
    "any of", and ``None`` matches NULL. ``order_by`` entries are field names,
    prefixed with ``-`` for descending order.
    """

    filters: dict[str, Any] = field(default_factory=dict)
    order_by: list[str] = field(default_factory=lambda: ["-created_at"])
    limit: Optional[int] = None
    offset: int = 0

    @classmethod
    def from_query(
        cls,
        params: Mapping[str, str],
        allowed_fields: Iterable[str],
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None,
    ) -> "FilterSpec":
        allowed = set(allowed_fields)
        filters: dict[str, Any] = {}
        for key, value in params.items():
            if key in RESERVED_QUERY_KEYS:
                continue
            if key not in allowed:
                raise ValidationError(
                    "Unsupported filter",
                    [{"field": key, "message": f"cannot filter on '{key}'"}],
                )
            filters[key] = value

        order_by = ["-created_at"]
        raw_order = params.get("order_by")
        if raw_order:
            order_by = [o.strip() for o in raw_order.split(",") if o.strip()]

        limit = _parse_int(params.get("limit"), "limit", default_limit)
        if limit is not None:
            if limit < 1:
                raise ValidationError("Invalid paging", [{"field": "limit", "message": "must be >= 1"}])
            if max_limit is not None:
                limit = min(limit, max_limit)
        offset = _parse_int(params.get("offset"), "offset", 0) or 0
        if offset < 0:
            raise ValidationError("Invalid paging", [{"field": "offset", "message": "must be >= 0"}])

        return cls(filters=filters, order_by=order_by, limit=limit, offset=offset)


def _parse_int(raw: Optional[str], name: str, default: Optional[int]) -> Optional[int]:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("Invalid paging", [{"field": name, "message": "must be an integer"}])


def _parse_id(entity_id: Any) -> Optional[uuid.UUID]:
    if isinstance(entity_id, uuid.UUID):
        return entity_id
    try:
        return uuid.UUID(str(entity_id))
    except (TypeError, ValueError):
        return None


class CrudService(Generic[EntityT]):
    def __init__(
        self,
        model: type[EntityT],
        session: Session,
        create_schema: type[BaseModel],
        update_schema: Optional[type[BaseModel]] = None,
    ):
        self.model = model
        self.session = session
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.entity_name = model.__name__
        self._columns = model.__table__.columns

    @property
    def filterable_fields(self) -> list[str]:
        return [c.name for c in self._columns if not isinstance(c.type, JSON)]

    def _validate(self, schema: type[BaseModel], attributes: Any, partial: bool) -> dict[str, Any]:
        if isinstance(attributes, BaseModel):
            attributes = attributes.model_dump(exclude_unset=partial)
        if not isinstance(attributes, Mapping):
            raise ValidationError(f"Invalid {self.entity_name} data", [{"field": "__root__", "message": "expected an object"}])

        managed = sorted(STORE_MANAGED_FIELDS & set(attributes))
        if managed:
            raise ValidationError(
                f"Invalid {self.entity_name} data",
                [{"field": name, "message": "managed by the store"} for name in managed],
            )

        try:
            payload = schema.model_validate(dict(attributes))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, self.entity_name)

        if partial:
            data = payload.model_dump(exclude_unset=True)
            nulls = [k for k, v in data.items() if v is None and not self._columns[k].nullable]
            if nulls:
                raise ValidationError(
                    f"Invalid {self.entity_name} data",
                    [{"field": k, "message": "may not be null"} for k in nulls],
                )
            return data
        return payload.model_dump(exclude_none=True)

    def _coerce(self, name: str, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        try:
            py_type = self._columns[name].type.python_type
        except NotImplementedError:
            return value
        try:
            if py_type is bool:
                lowered = value.strip().lower()
                if lowered in ("1", "true", "yes", "on"):
                    return True
                if lowered in ("0", "false", "no", "off"):
                    return False
                raise ValueError(value)
            if py_type in (int, float, uuid.UUID):
                return py_type(value)
            if py_type is datetime:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            if py_type is date:
                return date.fromisoformat(value)
        except ValueError:
            raise ValidationError(
                "Invalid filter value",
                [{"field": name, "message": f"'{value}' is not a valid {py_type.__name__}"}],
            )
        return value

    def _column(self, name: str):
        if name not in self._columns:
            raise ValidationError(
                "Unknown field",
                [{"field": name, "message": f"{self.entity_name} has no field '{name}'"}],
            )
        return getattr(self.model, name)

    def _conditions(self, spec: Optional[FilterSpec]) -> list[Any]:
        conds = []
        if spec is None:
            return conds
        for name, value in spec.filters.items():
            col = self._column(name)
            if value is None:
                conds.append(col.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                conds.append(col.in_([self._coerce(name, v) for v in value]))
            else:
                conds.append(col == self._coerce(name, value))
        return conds

    def _ordering(self, spec: Optional[FilterSpec]) -> list[Any]:
        order_by = spec.order_by if spec is not None else ["-created_at"]
        out = []
        for entry in order_by:
            desc = entry.startswith("-")
            col = self._column(entry.lstrip("-"))
            out.append(col.desc() if desc else col.asc())
        out.append(self.model.id.asc())
        return out

    def create(self, attributes: Any, commit: bool = True, extra: Optional[Mapping[str, Any]] = None) -> EntityT:
        """Validate caller attributes; ``extra`` carries server-side values (e.g. created_by)."""
        data = self._validate(self.create_schema, attributes, partial=False)
        data.update(extra or {})
        return self._insert(data, commit=commit)

    def _insert(self, data: dict[str, Any], commit: bool) -> EntityT:
        now = utcnow()
        entity = self.model(**data)
        entity.created_at = now
        entity.updated_at = now
        self._stage(entity, commit)
        entity_writes_total.labels(entity=self.entity_name, op="create").inc()
        logger.debug(f"Created {self.entity_name} {entity.id}")
        return entity

    def _stage(self, entity: EntityT, commit: bool) -> None:
        if commit:
            with unit_of_work(self.session):
                self.session.add(entity)
            self.session.refresh(entity)
        else:
            self.session.add(entity)
            self.session.flush()

    def bulk_create(self, items: Iterable[Any]) -> list[EntityT]:
        """Validate every item first, then insert all of them in one transaction."""
        validated = [self._validate(self.create_schema, item, partial=False) for item in items]
        now = utcnow()
        entities = []
        with unit_of_work(self.session):
            for data in validated:
                entity = self.model(**data)
                entity.created_at = now
                entity.updated_at = now
                self.session.add(entity)
                entities.append(entity)
        for entity in entities:
            self.session.refresh(entity)
        entity_writes_total.labels(entity=self.entity_name, op="create").inc(len(entities))
        return entities

    def find_by_id(self, entity_id: Any) -> Optional[EntityT]:
        parsed = _parse_id(entity_id)
        if parsed is None:
            return None
        return self.session.get(self.model, parsed)

    def exists(self, entity_id: Any) -> bool:
        parsed = _parse_id(entity_id)
        if parsed is None:
            return False
        return self.count(FilterSpec(filters={"id": parsed})) > 0

    def find_all(self, spec: Optional[FilterSpec] = None) -> list[EntityT]:
        q = select(self.model).where(*self._conditions(spec)).order_by(*self._ordering(spec))
        if spec is not None:
            if spec.offset:
                q = q.offset(spec.offset)
            if spec.limit is not None:
                q = q.limit(spec.limit)
        return list(self.session.exec(q).all())

    def find_one(self, spec: FilterSpec) -> Optional[EntityT]:
        q = select(self.model).where(*self._conditions(spec)).order_by(*self._ordering(spec)).limit(1)
        return self.session.exec(q).first()

    def count(self, spec: Optional[FilterSpec] = None) -> int:
        q = select(func.count()).select_from(self.model).where(*self._conditions(spec))
        return int(self.session.exec(q).one())

    def find_and_count(self, spec: Optional[FilterSpec] = None) -> tuple[list[EntityT], int]:
        return self.find_all(spec), self.count(spec)

    def update(
        self,
        entity_id: Any,
        attributes: Any,
        commit: bool = True,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Optional[EntityT]:
        if self.update_schema is None:
            raise ValidationError(f"{self.entity_name} records are immutable")
        data = self._validate(self.update_schema, attributes, partial=True)
        data.update(extra or {})
        entity = self.find_by_id(entity_id)
        if entity is None:
            return None
        return self.apply(entity, data, commit=commit)

    def apply(self, entity: EntityT, data: Mapping[str, Any], commit: bool = True) -> EntityT:
        """Merge already-validated values into a loaded entity and bump updated_at."""
        for key, value in data.items():
            setattr(entity, key, value)
        entity.updated_at = utcnow()
        self._stage(entity, commit)
        entity_writes_total.labels(entity=self.entity_name, op="update").inc()
        return entity

    def delete(self, entity_id: Any, commit: bool = True) -> bool:
        entity = self.find_by_id(entity_id)
        if entity is None:
            return False
        if commit:
            with unit_of_work(self.session):
                self.session.delete(entity)
        else:
            self.session.delete(entity)
            self.session.flush()
        entity_writes_total.labels(entity=self.entity_name, op="delete").inc()
        logger.debug(f"Deleted {self.entity_name} {entity_id}")
        return True
