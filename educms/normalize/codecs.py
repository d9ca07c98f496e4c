"""Value codecs between canonical field values and backend wire values."""

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from educms.errors import MappingError, ValidationError


class FieldCodec:
    """Identity codec; subclasses translate values for one backend."""

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, value: Any) -> Any:
        return value


class PassThroughCodec(FieldCodec):
    """Sends values as JSON-native types and lets the model parse them back."""

    def encode(self, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value


class LookupCodec(FieldCodec):
    """Code table codec, e.g. enum member to integer code.

    The table must be injective. When ``enum_cls`` is given it must also be
    total over the enum's members. ``decode_extra`` maps additional wire
    values onto canonical ones for codes the backend has and the canonical
    model does not.

    Raises:
        MappingError: If the table is not total or not injective
    """

    def __init__(
        self,
        table: Mapping[Any, Any],
        enum_cls: type[Enum] | None = None,
        decode_extra: Mapping[Any, Any] | None = None,
    ):
        self.enum_cls = enum_cls
        self.table = dict(table)

        if enum_cls is not None:
            missing = [member.value for member in enum_cls if member not in self.table]
            if missing:
                raise MappingError(
                    f"Code table for {enum_cls.__name__} is missing {', '.join(map(str, missing))}"
                )

        codes = list(self.table.values())
        if len(set(codes)) != len(codes):
            raise MappingError(f"Code table is not injective: {codes}")

        self.reverse = {code: value for value, code in self.table.items()}
        for code, value in (decode_extra or {}).items():
            self.reverse.setdefault(code, value)

    def encode(self, value: Any) -> Any:
        if self.enum_cls is not None and not isinstance(value, self.enum_cls):
            try:
                value = self.enum_cls(value)
            except ValueError as e:
                raise ValidationError(f"Unknown value: {value!r}") from e
        try:
            return self.table[value]
        except KeyError as e:
            raise ValidationError(f"No code for value: {value!r}") from e

    def decode(self, value: Any) -> Any:
        try:
            return self.reverse[value]
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Unknown code from backend: {value!r}") from e


class AttachmentListCodec(FieldCodec):
    """Renames the keys of each attachment descriptor in a list."""

    def __init__(self, key_map: Mapping[str, str] | None = None):
        self.key_map = dict(key_map or {})
        self.reverse = {wire: canonical for canonical, wire in self.key_map.items()}
        if len(self.reverse) != len(self.key_map):
            raise MappingError("Attachment key map is not injective")

    def encode(self, value: Any) -> Any:
        encoded = []
        for item in value or []:
            data = item.model_dump() if isinstance(item, BaseModel) else dict(item)
            encoded.append({self.key_map.get(k, k): v for k, v in data.items()})
        return encoded

    def decode(self, value: Any) -> Any:
        if value is None:
            return []
        return [{self.reverse.get(k, k): v for k, v in item.items()} for item in value]


PASS_THROUGH = PassThroughCodec()
