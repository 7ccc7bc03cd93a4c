from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import LocatorKind, structural_error
from .models import BINARY_WIDTHS, BinaryLayout, BinaryType
from .sources import read_source_bytes

LOGGER = logging.getLogger(__name__)

_STRUCT_CODES: dict[BinaryType, str] = {
    BinaryType.INT32: "i",
    BinaryType.INT64: "q",
    BinaryType.FLOAT32: "f",
    BinaryType.FLOAT64: "d",
}


@dataclass(frozen=True)
class RawRecord:
    index: int
    offset: int
    data: bytes


class BinaryReader:
    """Little-endian cursor over one fixed-size record buffer.

    Offsets reported in errors are absolute file offsets (``base_offset`` plus
    the cursor), so a failure can be located with a hex editor.
    """

    def __init__(
        self,
        buffer: bytes,
        *,
        source: str = "",
        base_offset: int = 0,
        record_index: int | None = None,
    ) -> None:
        self._buffer = memoryview(buffer)
        self._cursor = 0
        self.source = source
        self.base_offset = base_offset
        self.record_index = record_index

    @property
    def position(self) -> int:
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._buffer) - self._cursor

    def _take(self, width: int, what: str) -> memoryview:
        if width < 0 or self._cursor + width > len(self._buffer):
            absolute = self.base_offset + self._cursor
            record = f" in record {self.record_index}" if self.record_index is not None else ""
            raise structural_error(
                f"Reading {what} ({width} bytes) at byte {absolute}{record} runs past the "
                f"end of a {len(self._buffer)}-byte buffer",
                source=self.source,
                locator_kind=LocatorKind.BYTE_OFFSET,
                locator=absolute,
                context=bytes(self._buffer[self._cursor :]),
            )
        chunk = self._buffer[self._cursor : self._cursor + width]
        self._cursor += width
        return chunk

    def _unpack(self, binary_type: BinaryType) -> Any:
        width = BINARY_WIDTHS[binary_type]
        return struct.unpack("<" + _STRUCT_CODES[binary_type], self._take(width, binary_type.value))[0]

    def read_i32_le(self) -> int:
        return self._unpack(BinaryType.INT32)

    def read_i64_le(self) -> int:
        return self._unpack(BinaryType.INT64)

    def read_f32_le(self) -> float:
        return self._unpack(BinaryType.FLOAT32)

    def read_f64_le(self) -> float:
        return self._unpack(BinaryType.FLOAT64)

    def read_fixed_string(self, length: int, trim_padding: bool = True, encoding: str = "latin-1") -> str:
        text = bytes(self._take(length, f"char[{length}]")).decode(encoding)
        if trim_padding:
            return text.replace("\x00", "").strip()
        return text

    def read_array(self, binary_type: BinaryType, count: int) -> tuple[Any, ...]:
        if binary_type not in _STRUCT_CODES:
            raise ValueError(f"Arrays of {binary_type.value} are not supported.")
        width = BINARY_WIDTHS[binary_type] * count
        chunk = self._take(width, f"{binary_type.value}[{count}]")
        return struct.unpack(f"<{count}{_STRUCT_CODES[binary_type]}", chunk)

    def skip(self, length: int) -> None:
        self._take(length, f"reserved[{length}]")


def read_records(path: Path | str, record_size: int) -> list[RawRecord]:
    """Split a whole binary file into fixed-size records.

    A file whose size is not an exact multiple of ``record_size`` is rejected
    before any record is returned.
    """
    if record_size <= 0:
        raise ValueError(f"record_size must be positive, got {record_size}")
    source = str(path)
    payload = read_source_bytes(path)
    remainder = len(payload) % record_size
    if remainder:
        raise structural_error(
            f"File size {len(payload)} is not a multiple of the {record_size}-byte record size "
            f"(remainder {remainder})",
            source=source,
            locator_kind=LocatorKind.BYTE_OFFSET,
            locator=len(payload) - remainder,
            context=payload[len(payload) - remainder :],
        )

    records = [
        RawRecord(index=index, offset=offset, data=payload[offset : offset + record_size])
        for index, offset in enumerate(range(0, len(payload), record_size))
    ]
    LOGGER.debug("Split %s into %s records of %s bytes", source, len(records), record_size)
    return records


def decode_record(
    buffer: bytes,
    layout: BinaryLayout,
    *,
    source: str = "",
    record_index: int | None = None,
    base_offset: int | None = None,
) -> dict[str, Any]:
    """Decode one binary record by a declarative layout.

    Repeated fields come back as tuples; reserved blocks are skipped and never
    appear in the result.
    """
    if base_offset is None:
        base_offset = (record_index or 0) * layout.record_size
    if len(buffer) != layout.record_size:
        raise structural_error(
            f"Record buffer has {len(buffer)} bytes, layout {layout.name} expects {layout.record_size}",
            source=source,
            locator_kind=LocatorKind.RECORD_INDEX if record_index is not None else None,
            locator=record_index,
            context=bytes(buffer),
        )

    reader = BinaryReader(buffer, source=source, base_offset=base_offset, record_index=record_index)
    output: dict[str, Any] = {}
    for field in layout.fields:
        if field.type == BinaryType.RESERVED:
            reader.skip(field.width)
        elif field.type == BinaryType.CHAR:
            output[field.name] = reader.read_fixed_string(field.width)
        elif field.count == 1:
            output[field.name] = reader.read_array(field.type, 1)[0]
        else:
            output[field.name] = reader.read_array(field.type, field.count)
    return output
