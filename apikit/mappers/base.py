"""Base record mapper: one persisted row plus its visibility, validation and export rules."""

from __future__ import annotations

import calendar
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping
from datetime import datetime
from datetime import timezone
import json
import logging
import re
from typing import Any
from typing import ClassVar

from sqlalchemy import ColumnElement
from sqlalchemy import Table
from sqlalchemy import insert
from sqlalchemy import select
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apikit.core.security import UUID_LENGTH
from apikit.core.security import deserialize
from apikit.core.security import uuid_string
from apikit.db.models.user import Base
from apikit.mappers.policy import FieldPolicy
from apikit.mappers.validation import FilterRules
from apikit.mappers.validation import ValidationEngine
from apikit.mappers.validation import ValidationRules

logger = logging.getLogger(__name__)

DATABASE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_DATABASE_DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}")
_TIMESTAMP_FIELDS = frozenset({"created", "updated"})
_ALWAYS_EXPORTED = frozenset({"id", "object"})
_FIELD_SEPARATORS = re.compile(r"[\s,]+")


def utc_now() -> datetime:
    """Naive UTC timestamp at second precision, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def to_unix_time(value: Any) -> int | None:
    """Convert a database timestamp (datetime or string) to Unix time; negatives clamp to 0.

    Naive values are read as UTC. Unparseable strings become 0.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            seconds = calendar.timegm(value.timetuple())
        else:
            seconds = int(value.timestamp())
        return max(seconds, 0)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(int(value), 0)

    raw = " ".join(str(value).split())
    try:
        parsed = datetime.strptime(raw[:19], DATABASE_DATETIME_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return 0
    return to_unix_time(parsed)


def looks_like_database_timestamp(value: Any) -> bool:
    if isinstance(value, datetime):
        return True
    return isinstance(value, str) and len(value) == 19 and _DATABASE_DATETIME_PATTERN.match(value) is not None


def split_field_list(fields: str | Iterable[str] | None) -> list[str]:
    """Normalize a requested field list: lowercase, comma/whitespace separated when a string."""
    if not fields:
        return []
    if isinstance(fields, str):
        return [name for name in _FIELD_SEPARATORS.split(fields.lower()) if name]
    if isinstance(fields, Iterable):
        return [str(name).strip().lower() for name in fields if str(name).strip()]
    return []


def split_list_field(value: Any) -> list[str]:
    """Items of a stored list column holding a JSON array or a comma/whitespace separated string."""
    decoded = deserialize(value)
    if isinstance(decoded, list):
        return [str(item).strip() for item in decoded if str(item).strip()]
    if not isinstance(decoded, str):
        return []
    return [item for item in _FIELD_SEPARATORS.split(decoded) if item]


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime(DATABASE_DATETIME_FORMAT)
    return str(value)


class RecordMapper:
    """Wraps one row of ``model``'s table.

    Concrete mappers declare ``model``, a ``policy`` and their immutable
    ``filter_rules`` / ``validation_rules``. Per-call overrides are passed to
    :meth:`filter` and :meth:`validate` instead of mutating the defaults.
    """

    model: ClassVar[type[Base]]
    entity: ClassVar[str | None] = None
    policy: ClassVar[FieldPolicy] = FieldPolicy()
    filter_rules: ClassVar[FilterRules] = ()
    validation_rules: ClassVar[ValidationRules] = ()

    def __init__(
        self,
        session: Session,
        *,
        validator: ValidationEngine | None = None,
        uuid_factory: Callable[[], str] = uuid_string,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if getattr(type(self), "model", None) is None:
            raise TypeError(f"{type(self).__name__} must declare a model")
        self._session = session
        self._table: Table = self.model.__table__  # type: ignore[assignment]
        self._validator = validator or ValidationEngine()
        self._uuid_factory = uuid_factory
        self._clock = clock
        self._data: dict[str, Any] = {}
        self._loaded = False
        self.valid = False
        self.validation_errors: dict[str, str] = {}
        self.reset()

    # persistence primitives

    @property
    def table(self) -> Table:
        return self._table

    @property
    def object_name(self) -> str:
        return (self.entity or self._table.name).lower()

    def fields(self) -> list[str]:
        return [column.name for column in self._table.columns]

    def reset(self) -> None:
        self._data = {name: None for name in self.fields()}
        self._loaded = False

    def dry(self) -> bool:
        """True when the mapper is not bound to a stored row."""
        return not self._loaded

    def cast(self) -> dict[str, Any]:
        return dict(self._data)

    def copy_from(self, data: Mapping[str, Any]) -> None:
        """Assign values for known fields; other keys are ignored."""
        for name, value in data.items():
            if name in self._data:
                self._data[name] = value

    def clone(self) -> RecordMapper:
        twin = type(self)(
            self._session,
            validator=self._validator,
            uuid_factory=self._uuid_factory,
            clock=self._clock,
        )
        twin._data = dict(self._data)
        twin._loaded = self._loaded
        return twin

    def load(self, *criteria: ColumnElement[bool], **equals: Any) -> bool:
        """Load the first row matching the criteria; reset the mapper when none match."""
        stmt = select(self._table)
        for clause in criteria:
            stmt = stmt.where(clause)
        for name, value in equals.items():
            stmt = stmt.where(self._column(name) == value)

        row = self._session.execute(stmt.limit(1)).mappings().first()
        if row is None:
            self.reset()
            return False

        self._data = {name: row[name] for name in self.fields()}
        self._loaded = True
        return True

    def save(self) -> bool:
        """Insert or update the row and commit; storage errors roll back and return False."""
        primary_key = self._primary_key()
        try:
            if self._loaded and self._data.get(primary_key) is not None:
                if "updated" in self._data:
                    self._data["updated"] = self._clock()
                values = {name: value for name, value in self._data.items() if name != primary_key}
                self._session.execute(
                    update(self._table)
                    .where(self._column(primary_key) == self._data[primary_key])
                    .values(**values)
                )
                row_id = self._data[primary_key]
            else:
                values = {name: value for name, value in self._data.items() if value is not None}
                result = self._session.execute(insert(self._table).values(**values))
                row_id = result.inserted_primary_key[0]
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            logger.exception("Failed to save %s record", self.object_name)
            return False

        # Reload to pick up server defaults.
        return self.load(self._column(primary_key) == row_id)

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self._data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        if name not in self._data:
            raise KeyError(f"{self.object_name} has no field {name!r}")
        self._data[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def _column(self, name: str):
        try:
            return self._table.c[name]
        except KeyError as exc:
            raise KeyError(f"{self.object_name} has no field {name!r}") from exc

    def _primary_key(self) -> str:
        return next(iter(self._table.primary_key.columns)).name

    # serialization

    def cast_fields(
        self,
        fields: str | Iterable[str] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Raw field values, optionally restricted to a field list."""
        wanted = split_field_list(fields)
        values = dict(data) if data else self.cast()
        if not wanted:
            return values
        return {name: value for name, value in values.items() if name.lower() in wanted}

    def export_array(
        self,
        fields: str | Iterable[str] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Client-safe view: visible fields only, renamed, timestamps as Unix time.

        ``id`` and ``object`` are always present and ignore the field list.
        """
        wanted = split_field_list(fields)
        values = dict(data) if data else self.cast()

        exported: dict[str, Any] = {}
        for name, value in values.items():
            export_name = self.policy.export_name(name)
            if export_name is None:
                continue
            if export_name in _TIMESTAMP_FIELDS or looks_like_database_timestamp(value):
                value = to_unix_time(value)
            if wanted and export_name not in _ALWAYS_EXPORTED and export_name.lower() not in wanted:
                continue
            exported[export_name] = value

        if "id" not in exported:
            exported["id"] = values.get("id")
        exported["object"] = self.object_name
        return exported

    def export_json(self, raw: bool = False, fields: str | Iterable[str] | None = None) -> str:
        data = self.cast_fields(fields) if raw else self.export_array(fields)
        return json.dumps(data, indent=4, default=_json_default)

    # identity

    def set_uuid(self, field: str = "uuid") -> str | None:
        """Assign an unused UUID when ``field`` is empty or too short to be one.

        Returns the identity value, or None when the entity has no such field.
        Uniqueness is checked read-then-write; the table's unique constraint
        rejects a concurrent duplicate on save.
        """
        if field not in self._data:
            return None

        current = self._data[field]
        if current and len(str(current)) >= UUID_LENGTH:
            return current

        lookup = self.clone()
        candidate = self._uuid_factory()
        while lookup.load(**{field: candidate}):
            logger.debug("UUID collision on %s.%s, regenerating", self.object_name, field)
            candidate = self._uuid_factory()

        self._data[field] = candidate
        return candidate

    # validation

    def filter(
        self,
        data: Mapping[str, Any] | None = None,
        rules: FilterRules | None = None,
    ) -> dict[str, Any]:
        """Run the filter pass only and write the result back."""
        values = dict(data) if data else self.cast()
        filtered = self._validator.filter(values, self.filter_rules if rules is None else rules)
        self.copy_from(filtered)
        return filtered

    def validate(
        self,
        run: bool = True,
        data: Mapping[str, Any] | None = None,
        rules: ValidationRules | None = None,
        filters: FilterRules | None = None,
    ) -> bool | dict[str, str]:
        """Filter then validate.

        With ``run`` the normalized data is written back and True returned, or
        False when invalid. Without ``run`` nothing is written and the result is
        True or the ``field -> rule`` violation mapping.
        """
        values = dict(data) if data else self.cast()
        active_rules = self.validation_rules if rules is None else rules
        active_filters = self.filter_rules if filters is None else filters

        filtered = self._validator.filter(values, active_filters)
        self.validation_errors = self._validator.validate(filtered, active_rules)

        if not run:
            self.valid = not self.validation_errors
            return True if self.valid else dict(self.validation_errors)

        self.valid = False
        if self.validation_errors:
            return False
        self.valid = True
        self.copy_from(filtered)
        return True

    def validate_save(self, id_field: str = "uuid") -> bool:
        """Assign identity and creation time, then save only if validation passes."""
        self.set_uuid(id_field)
        if "created" in self._data and not self._data["created"]:
            self._data["created"] = self._clock()
        if not self.validate():
            logger.info("Not saving invalid %s record: %s", self.object_name, self.validation_errors)
            return False
        return self.save()
