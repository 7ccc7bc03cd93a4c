from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Iterable, Sequence

from .errors import DecodeError, LocatorKind, field_error, range_error
from .models import FieldSpec, FieldType, LayoutVariant, RecordLayout, RuleKind, ValidationRule
from .sources import DEFAULT_ENCODING, read_source_lines

LOGGER = logging.getLogger(__name__)

DEFAULT_COMMENT_CHARS = ("#", ";")
WHOLE_LINE_COMMENT_CHARS = ("*",)


@dataclass(frozen=True)
class ExtractionContext:
    source: str = ""
    line_number: int | None = None


def _error_location(context: ExtractionContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    location: dict[str, Any] = {"source": context.source}
    if context.line_number is not None:
        location["locator_kind"] = LocatorKind.LINE
        location["locator"] = context.line_number
    return location


def _normalize_numeric(value: str, decimal_char: str = ".") -> str:
    normalized = value.strip().replace(" ", "")
    if decimal_char != ".":
        normalized = normalized.replace(decimal_char, ".")
    # Fortran writers emit double-precision exponents as D.
    return normalized.replace("D", "E").replace("d", "e")


def parse_int(value: str, *, allow_blank: bool = False) -> int | None:
    stripped = value.strip()
    if not stripped:
        if allow_blank:
            return None
        raise ValueError("blank value where an integer was expected")
    try:
        return int(stripped)
    except ValueError:
        raise ValueError(f"invalid integer {stripped!r}") from None


def parse_float(
    value: str,
    *,
    allow_blank: bool = False,
    decimal_char: str = ".",
) -> float | None:
    stripped = value.strip()
    if not stripped:
        if allow_blank:
            return None
        raise ValueError("blank value where a number was expected")
    try:
        number = float(_normalize_numeric(stripped, decimal_char=decimal_char))
    except ValueError:
        raise ValueError(f"invalid number {stripped!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"non-finite number {stripped!r}")
    return number


def parse_string(value: str, *, allow_blank: bool = True) -> str | None:
    stripped = value.strip()
    if not stripped and allow_blank:
        return None
    return stripped


def extract_field(line: str, start: int, end: int) -> str:
    """Slice 1-based inclusive columns, tolerating lines shorter than ``end``."""
    if start > len(line):
        return ""
    return line[start - 1 : min(end, len(line))].strip()


def validate_range(
    value: Any,
    minimum: float | None,
    maximum: float | None,
    name: str,
    context: ExtractionContext | None = None,
) -> Any:
    within = (minimum is None or value >= minimum) and (maximum is None or value <= maximum)
    if not within:
        lower = "-inf" if minimum is None else minimum
        upper = "+inf" if maximum is None else maximum
        raise range_error(
            f"Field '{name}' = {value} outside [{lower}, {upper}]",
            field=name,
            **_error_location(context),
        )
    return value


def validate_positive(value: Any, name: str, context: ExtractionContext | None = None) -> Any:
    if not value > 0:
        raise range_error(
            f"Field '{name}' must be positive, got {value}",
            field=name,
            **_error_location(context),
        )
    return value


def validate_nonnegative(value: Any, name: str, context: ExtractionContext | None = None) -> Any:
    if not value >= 0:
        raise range_error(
            f"Field '{name}' must be non-negative, got {value}",
            field=name,
            **_error_location(context),
        )
    return value


def _apply_rule(
    value: Any,
    rule: ValidationRule,
    name: str,
    context: ExtractionContext | None,
    raw_line: str,
) -> Any:
    try:
        if rule.kind == RuleKind.RANGE:
            return validate_range(value, rule.minimum, rule.maximum, name, context)
        if rule.kind == RuleKind.POSITIVE:
            return validate_positive(value, name, context)
        return validate_nonnegative(value, name, context)
    except DecodeError as error:
        # Attach the raw line so the caller sees what was being decoded.
        raise range_error(error.message, field=name, context=raw_line, **_error_location(context)) from None


def _coerce_value(raw_value: str, field: FieldSpec, decimal_char: str) -> Any:
    if field.type == FieldType.INTEGER:
        return parse_int(raw_value)
    if field.type == FieldType.FLOAT:
        return parse_float(raw_value, decimal_char=decimal_char)
    return raw_value


def extract(
    line: str,
    specs: Sequence[FieldSpec],
    context: ExtractionContext | None = None,
    *,
    decimal_char: str = ".",
) -> dict[str, Any]:
    """Decode one fixed-column line into a ``{field name: value}`` mapping.

    Blank optional fields take their declared default; a blank required field,
    a value that does not coerce to the declared type, or a failed validation
    rule raises :class:`DecodeError` and nothing is returned for the line.
    """
    output: dict[str, Any] = {}
    for field in specs:
        raw_value = extract_field(line, field.start, field.end)
        if raw_value == "":
            if field.required:
                raise field_error(
                    f"Required field '{field.name}' (columns {field.start}-{field.end}) is blank",
                    field=field.name,
                    context=line,
                    **_error_location(context),
                )
            output[field.name] = field.default
            continue

        try:
            value = _coerce_value(raw_value, field, decimal_char)
        except ValueError as error:
            raise field_error(
                f"Field '{field.name}' (columns {field.start}-{field.end}): {error}",
                field=field.name,
                context=line,
                **_error_location(context),
            ) from None

        if field.rule is not None:
            value = _apply_rule(value, field.rule, field.name, context, line)
        output[field.name] = value
    return output


def extract_layout(
    line: str,
    layout: RecordLayout,
    context: ExtractionContext | None = None,
    *,
    decimal_char: str = ".",
) -> dict[str, Any]:
    return extract(line, layout.fields, context, decimal_char=decimal_char)


def select_variant(line: str, variants: Iterable[LayoutVariant]) -> LayoutVariant | None:
    detected_length = len(line.rstrip())
    candidates = [variant for variant in variants if detected_length >= variant.min_length]
    if not candidates:
        return None
    return max(candidates, key=lambda variant: variant.min_length)


def extract_variant(
    line: str,
    variants: Sequence[LayoutVariant],
    context: ExtractionContext | None = None,
    *,
    decimal_char: str = ".",
) -> tuple[str, dict[str, Any]]:
    variant = select_variant(line, variants)
    if variant is None:
        shortest = min((variant.min_length for variant in variants), default=0)
        raise field_error(
            f"Line length {len(line.rstrip())} is shorter than every known layout "
            f"(minimum {shortest})",
            context=line,
            **_error_location(context),
        )
    record = extract(line, variant.layout.fields, context, decimal_char=decimal_char)
    return variant.tag, record


def normalize_name(filename: str | Path) -> str:
    return Path(str(filename).replace("\\", "/")).name.upper()


def strip_comments(value: str, comment_chars: Sequence[str] = DEFAULT_COMMENT_CHARS) -> str:
    """Drop inline comments; a line opened by a whole-line marker such as ``*`` strips to empty."""
    if is_comment_line(value, WHOLE_LINE_COMMENT_CHARS):
        return ""
    text = value
    for marker in comment_chars:
        index = text.find(marker)
        if index != -1:
            text = text[:index]
    return text.strip()


def is_blank(value: str, comment_chars: Sequence[str] = DEFAULT_COMMENT_CHARS) -> bool:
    return strip_comments(value, comment_chars) == ""


def is_comment_line(line: str, comment_chars: Sequence[str] = WHOLE_LINE_COMMENT_CHARS) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    for marker in comment_chars:
        if not stripped.startswith(marker):
            continue
        if not marker.isalpha():
            return True
        # Letter markers (e.g. "C" in network decks) must stand alone.
        rest = stripped[len(marker) :]
        if not rest or rest[0].isspace():
            return True
    return False


def read_nonblank_lines(
    path: Path | str,
    *,
    skip_comments: bool = True,
    comment_chars: Sequence[str] = DEFAULT_COMMENT_CHARS,
    encoding: str = DEFAULT_ENCODING,
) -> list[tuple[int, str]]:
    """Returns ``(line_number, content)`` for lines carrying data.

    Line numbers refer to the physical file so that errors raised while
    decoding the content still point at the right place.
    """
    lines: list[tuple[int, str]] = []
    for line_number, line in read_source_lines(path, encoding=encoding):
        content = strip_comments(line, comment_chars) if skip_comments else line.strip()
        if content:
            lines.append((line_number, content))
    LOGGER.debug("Kept %s non-blank lines from %s", len(lines), path)
    return lines


def parse_date(day: int, month: int, year: int, context: ExtractionContext | None = None) -> date:
    try:
        return date(year, month, day)
    except ValueError as error:
        raise field_error(f"Invalid date {day:02d}/{month:02d}/{year}: {error}", **_error_location(context)) from None


def parse_time(hour: int, half_hour: int, context: ExtractionContext | None = None) -> time:
    """DESSEM marks the half hour with a 0/1 flag next to the hour."""
    if not 0 <= hour <= 23:
        raise field_error(f"Invalid hour {hour}", **_error_location(context))
    if half_hour not in (0, 1):
        raise field_error(f"Invalid half-hour flag {half_hour}", **_error_location(context))
    return time(hour, 30 * half_hour)


def parse_datetime(
    day: int,
    month: int,
    year: int,
    hour: int = 0,
    half_hour: int = 0,
    context: ExtractionContext | None = None,
) -> datetime:
    return datetime.combine(
        parse_date(day, month, year, context),
        parse_time(hour, half_hour, context),
    )
