from __future__ import annotations

from enum import Enum

_CONTEXT_PREVIEW_BYTES = 32


class ErrorKind(str, Enum):
    FIELD = "field"
    RANGE = "range"
    STRUCTURAL = "structural"


class LocatorKind(str, Enum):
    LINE = "line"
    BYTE_OFFSET = "byte_offset"
    RECORD_INDEX = "record_index"


def _render_context(context: str | bytes | None) -> str:
    if context is None:
        return ""
    if isinstance(context, bytes):
        preview = context[:_CONTEXT_PREVIEW_BYTES].hex(" ")
        if len(context) > _CONTEXT_PREVIEW_BYTES:
            preview += " ..."
        return preview
    return context


class DecodeError(RuntimeError):
    """Failure while decoding a text line or a binary record.

    Every decoder in the package raises this type and only this type; the
    ``kind`` tag tells a missing/invalid field, an out-of-bounds value and a
    broken file structure apart.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        source: str = "",
        locator_kind: LocatorKind | None = None,
        locator: int | None = None,
        context: str | bytes | None = None,
        field: str | None = None,
    ) -> None:
        self.message = message
        self.kind = kind
        self.source = source
        self.locator_kind = locator_kind
        self.locator = locator
        self.context = context
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        where = self.source or "<buffer>"
        if self.locator is not None:
            if self.locator_kind == LocatorKind.LINE:
                where = f"{where}:{self.locator}"
            elif self.locator_kind == LocatorKind.BYTE_OFFSET:
                where = f"{where}@byte {self.locator}"
            else:
                where = f"{where}#record {self.locator}"
        text = f"[{self.kind.value}] {where}: {self.message}"
        rendered = _render_context(self.context)
        if rendered:
            text = f"{text} | {rendered}"
        return text

    @property
    def line_number(self) -> int | None:
        return self.locator if self.locator_kind == LocatorKind.LINE else None


def field_error(message: str, **kwargs) -> DecodeError:
    return DecodeError(message, kind=ErrorKind.FIELD, **kwargs)


def range_error(message: str, **kwargs) -> DecodeError:
    return DecodeError(message, kind=ErrorKind.RANGE, **kwargs)


def structural_error(message: str, **kwargs) -> DecodeError:
    return DecodeError(message, kind=ErrorKind.STRUCTURAL, **kwargs)
