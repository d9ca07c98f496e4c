"""Bidirectional field mapping between canonical entities and wire records.

Each canonical field has exactly one rule naming its spelling on both
backends plus a legacy alias accepted from and emitted to older callers::

    canonical       alias          table           rest
    student_id      studentId      student_id      studentId
    phone_number    phoneNumber    phone           phoneNumber

A map is checked for totality and uniqueness once, before the gateway
serves its first call.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from educms.backends.base import BackendKind, WireRecord
from educms.errors import MappingError, ValidationError
from educms.normalize.codecs import PASS_THROUGH, FieldCodec

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class FieldRule:
    """Mapping of one canonical field."""

    canonical: str
    table: str
    rest: str
    alias: str | None = None
    # Backends whose create contract rejects a record without this field
    required: tuple[BackendKind, ...] = ()
    writable: bool = True
    table_codec: FieldCodec = PASS_THROUGH
    rest_codec: FieldCodec = PASS_THROUGH

    @property
    def legacy_alias(self) -> str:
        return self.alias or to_camel(self.canonical)

    def wire_name(self, backend: BackendKind) -> str:
        return self.rest if backend is BackendKind.REST else self.table

    def codec(self, backend: BackendKind) -> FieldCodec:
        return self.rest_codec if backend is BackendKind.REST else self.table_codec

    def lookup_names(self) -> tuple[str, ...]:
        """Input keys in order of preference."""
        names: list[str] = []
        for name in (self.canonical, self.legacy_alias, self.table, self.rest):
            if name not in names:
                names.append(name)
        return tuple(names)


def _is_absent(value: Any) -> bool:
    return value is None or value == ""


class FieldMap(Generic[T]):
    """Translates one entity type between its canonical and wire shapes."""

    def __init__(self, model: type[T], rules: list[FieldRule]):
        self.model = model
        self.rules = list(rules)
        self._adapters: dict[str, TypeAdapter] = {}

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    def validate(self) -> None:
        """Check the map is total and every name is unambiguous.

        Raises:
            MappingError: If a model field has no rule, a rule names no
                model field, or two rules share a wire name or alias
        """
        model_fields = set(self.model.model_fields)
        mapped = [rule.canonical for rule in self.rules]

        unmapped = sorted(model_fields - set(mapped))
        if unmapped:
            raise MappingError(
                f"{self.entity_name} fields without a mapping: {', '.join(unmapped)}"
            )
        unknown = sorted(set(mapped) - model_fields)
        if unknown:
            raise MappingError(
                f"{self.entity_name} mapping names unknown fields: {', '.join(unknown)}"
            )

        for label, names in (
            ("canonical", mapped),
            ("table", [rule.table for rule in self.rules]),
            ("rest", [rule.rest for rule in self.rules]),
        ):
            duplicates = sorted({name for name in names if names.count(name) > 1})
            if duplicates:
                raise MappingError(
                    f"{self.entity_name} has duplicate {label} names: {', '.join(duplicates)}"
                )

        owners: dict[str, str] = {}
        for rule in self.rules:
            for name in {rule.canonical, rule.legacy_alias}:
                owner = owners.setdefault(name, rule.canonical)
                if owner != rule.canonical:
                    raise MappingError(
                        f"{self.entity_name} alias '{name}' is used by both "
                        f"{owner} and {rule.canonical}"
                    )

    def denormalize(
        self,
        data: Mapping[str, Any] | BaseModel,
        backend: BackendKind,
        *,
        for_create: bool,
        include_read_only: bool = False,
    ) -> WireRecord:
        """Build the wire record for ``backend``.

        For each field the first non-empty value among canonical name,
        legacy alias, table name and REST name wins. Empty fields are left
        out of the record.

        Raises:
            ValidationError: If a value has the wrong type, or a field the
                backend requires on create is missing (checked before any
                network call)
        """
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=not for_create)

        wire: WireRecord = {}
        missing: list[str] = []
        for rule in self.rules:
            if not rule.writable and not include_read_only:
                continue

            value = self._pick(data, rule)
            if _is_absent(value):
                if for_create and backend in rule.required:
                    missing.append(rule.canonical)
                continue

            value = self._coerce(rule, value)
            wire[rule.wire_name(backend)] = rule.codec(backend).encode(value)

        if missing:
            raise ValidationError(
                f"Missing required {self.entity_name} field(s): {', '.join(missing)}",
                {"fields": missing, "backend": backend.value},
            )
        return wire

    def normalize(self, wire: Mapping[str, Any], backend: BackendKind) -> T:
        """Build the canonical entity from a wire record.

        Raises:
            ValidationError: If the record does not fit the canonical model
        """
        values: dict[str, Any] = {}
        for rule in self.rules:
            raw = wire.get(rule.wire_name(backend))
            if raw is None:
                continue
            values[rule.canonical] = rule.codec(backend).decode(raw)

        try:
            return self.model.model_validate(values)
        except PydanticValidationError as e:
            logger.error(
                "Backend record does not fit model",
                entity=self.entity_name,
                backend=backend.value,
                errors=e.errors(include_url=False),
            )
            raise ValidationError(
                f"Invalid {self.entity_name} record from backend",
                {"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def ui_dict(self, entity: T, backend: BackendKind) -> dict[str, Any]:
        """Render an entity under its canonical, alias and native names."""
        dumped = entity.model_dump(mode="json")
        result: dict[str, Any] = {}
        for rule in self.rules:
            value = dumped.get(rule.canonical)
            result[rule.canonical] = value
            result[rule.legacy_alias] = value
            result[rule.wire_name(backend)] = value
        return result

    @staticmethod
    def _pick(data: Mapping[str, Any], rule: FieldRule) -> Any:
        for name in rule.lookup_names():
            value = data.get(name)
            if not _is_absent(value):
                return value
        return None

    def _coerce(self, rule: FieldRule, value: Any) -> Any:
        adapter = self._adapters.get(rule.canonical)
        if adapter is None:
            info = self.model.model_fields[rule.canonical]
            annotation = info.annotation
            if info.metadata:
                annotation = Annotated[(annotation, *info.metadata)]
            adapter = TypeAdapter(annotation)
            self._adapters[rule.canonical] = adapter

        try:
            return adapter.validate_python(value)
        except PydanticValidationError as e:
            reason = e.errors(include_url=False)[0]["msg"]
            raise ValidationError(
                f"Invalid value for {rule.canonical}: {reason}",
                {"field": rule.canonical},
            ) from e
