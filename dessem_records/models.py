from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"


class RuleKind(str, Enum):
    RANGE = "range"
    POSITIVE = "positive"
    NONNEGATIVE = "nonnegative"


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RuleKind
    minimum: float | None = None
    maximum: float | None = None

    @model_validator(mode="after")
    def validate_bounds(self) -> "ValidationRule":
        if self.kind == RuleKind.RANGE:
            if self.minimum is None and self.maximum is None:
                raise ValueError("A range rule needs at least one bound.")
            if (
                self.minimum is not None
                and self.maximum is not None
                and self.maximum < self.minimum
            ):
                raise ValueError(
                    f"Range rule maximum {self.maximum} is below minimum {self.minimum}."
                )
        elif self.minimum is not None or self.maximum is not None:
            raise ValueError(f"Rule {self.kind.value} does not take bounds.")
        return self

    @classmethod
    def between(cls, minimum: float | None, maximum: float | None) -> "ValidationRule":
        return cls(kind=RuleKind.RANGE, minimum=minimum, maximum=maximum)

    @classmethod
    def positive(cls) -> "ValidationRule":
        return cls(kind=RuleKind.POSITIVE)

    @classmethod
    def nonnegative(cls) -> "ValidationRule":
        return cls(kind=RuleKind.NONNEGATIVE)


class FieldSpec(BaseModel):
    """One fixed-column field of a text record (1-based, inclusive columns)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    start: int = Field(ge=1)
    end: int = Field(ge=1)
    type: FieldType = Field(default=FieldType.STRING)
    required: bool = False
    default: Any = None
    rule: ValidationRule | None = None
    description: str | None = None

    @model_validator(mode="after")
    def validate_columns(self) -> "FieldSpec":
        if self.end < self.start:
            raise ValueError(
                f"Field {self.name}: end column {self.end} precedes start column {self.start}."
            )
        if self.rule is not None and self.type == FieldType.STRING:
            raise ValueError(f"Field {self.name}: validation rules apply to numeric fields only.")
        return self

    @property
    def length(self) -> int:
        return self.end - self.start + 1


class RecordLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    fields: tuple[FieldSpec, ...] = Field(min_length=1)

    @field_validator("fields")
    @classmethod
    def validate_unique_field_names(cls, fields: tuple[FieldSpec, ...]) -> tuple[FieldSpec, ...]:
        names = [field.name for field in fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names: {', '.join(duplicates)}")
        return fields

    @model_validator(mode="after")
    def validate_field_positions(self) -> "RecordLayout":
        ordered = sorted(self.fields, key=lambda field: field.start)
        previous_end = 0
        for field in ordered:
            if field.start <= previous_end:
                raise ValueError(
                    f"Overlapping fields in {self.name}: {field.name} starts at {field.start} "
                    f"but previous field ends at {previous_end}."
                )
            previous_end = field.end
        return self

    @property
    def max_end(self) -> int:
        return max(field.end for field in self.fields)


class LayoutVariant(BaseModel):
    """A text layout selected when a line is at least ``min_length`` long."""

    model_config = ConfigDict(frozen=True)

    tag: str = Field(min_length=1)
    min_length: int = Field(ge=0)
    layout: RecordLayout


class BinaryType(str, Enum):
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    CHAR = "char"
    RESERVED = "reserved"


BINARY_WIDTHS: dict[BinaryType, int] = {
    BinaryType.INT32: 4,
    BinaryType.INT64: 8,
    BinaryType.FLOAT32: 4,
    BinaryType.FLOAT64: 8,
}


class BinaryFieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: BinaryType
    count: int = Field(default=1, ge=1)
    length: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_length(self) -> "BinaryFieldSpec":
        sized = self.type in {BinaryType.CHAR, BinaryType.RESERVED}
        if sized and self.length is None:
            raise ValueError(f"Field {self.name}: length is required for {self.type.value}.")
        if not sized and self.length is not None:
            raise ValueError(
                f"Field {self.name}: length must be null for {self.type.value}, width is implied."
            )
        if sized and self.count != 1:
            raise ValueError(f"Field {self.name}: {self.type.value} fields cannot repeat.")
        return self

    @property
    def width(self) -> int:
        if self.length is not None:
            return self.length
        return BINARY_WIDTHS[self.type] * self.count


class BinaryLayout(BaseModel):
    """Byte-exact description of one fixed-size binary record."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    record_size: int = Field(ge=1)
    fields: tuple[BinaryFieldSpec, ...] = Field(min_length=1)

    @field_validator("fields")
    @classmethod
    def validate_unique_field_names(
        cls, fields: tuple[BinaryFieldSpec, ...]
    ) -> tuple[BinaryFieldSpec, ...]:
        names = [field.name for field in fields if field.type != BinaryType.RESERVED]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names: {', '.join(duplicates)}")
        return fields

    @model_validator(mode="after")
    def validate_record_size(self) -> "BinaryLayout":
        if self.sum_of_widths != self.record_size:
            raise ValueError(
                f"Layout {self.name} has sum(widths)={self.sum_of_widths}, "
                f"expected record_size={self.record_size}"
            )
        return self

    @property
    def sum_of_widths(self) -> int:
        return sum(field.width for field in self.fields)

    def offset_of(self, name: str) -> int:
        position = 0
        for field in self.fields:
            if field.name == name:
                return position
            position += field.width
        raise KeyError(name)
