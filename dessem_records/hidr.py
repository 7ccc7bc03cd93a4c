from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from .binary import decode_record, read_records
from .errors import LocatorKind, field_error, range_error
from .models import BinaryFieldSpec, BinaryLayout, BinaryType
from .records import MAX_MACHINE_SETS, MAX_TAILRACE_FAMILIES, HydroPlantRecord

LOGGER = logging.getLogger(__name__)

HIDR_RECORD_SIZE = 792
RESERVED_BLOCK_SIZE = 300


def _field(name: str, binary_type: BinaryType, count: int = 1) -> BinaryFieldSpec:
    return BinaryFieldSpec(name=name, type=binary_type, count=count)


def _text(name: str, length: int) -> BinaryFieldSpec:
    return BinaryFieldSpec(name=name, type=BinaryType.CHAR, length=length)


I32 = BinaryType.INT32
F32 = BinaryType.FLOAT32

# Offsets are fixed by the external registry format; see DESIGN.md.
HIDR_LAYOUT = BinaryLayout(
    name="HIDR",
    record_size=HIDR_RECORD_SIZE,
    fields=(
        _text("name", 12),
        _field("gauge", I32),
        _field("gauge_bdh", BinaryType.INT64),
        _field("subsystem", I32),
        _field("company", I32),
        _field("downstream_plant", I32),
        _field("diversion_plant", I32),
        _field("min_volume", F32),
        _field("max_volume", F32),
        _field("spillway_volume", F32),
        _field("diversion_volume", F32),
        _field("min_elevation", F32),
        _field("max_elevation", F32),
        _field("volume_elevation_poly", F32, 5),
        _field("elevation_area_poly", F32, 5),
        _field("evaporation", I32, 12),
        _field("machine_set_count", I32),
        _field("units_per_set", I32, 5),
        _field("capacity_per_set", F32, 5),
        BinaryFieldSpec(name="reserved", type=BinaryType.RESERVED, length=RESERVED_BLOCK_SIZE),
        _field("head_per_set", F32, 5),
        _field("flow_per_set", I32, 5),
        _field("specific_productivity", F32),
        _field("losses", F32),
        _field("tailrace_family_count", I32),
        _field("tailrace_coefficients", F32, 36),
        _field("average_tailrace_level", F32),
        _field("spillway_tailrace_influence", I32),
        _field("max_load_factor", F32),
        _field("min_load_factor", F32),
        _field("min_historical_flow", I32),
        _field("base_units", I32),
        _field("turbine_type", I32),
        _field("set_representation", I32),
        _field("teif", F32),
        _field("programmed_outage", F32),
        _field("loss_type", I32),
        _text("reference_date", 12),
        _text("notes", 39),
        _field("reference_volume", F32),
        _text("regulation_type", 1),
    ),
)


def decode_plant(
    buffer: bytes,
    *,
    source: str = "",
    record_index: int | None = None,
) -> HydroPlantRecord:
    values = decode_record(buffer, HIDR_LAYOUT, source=source, record_index=record_index)
    location = {
        "source": source,
        "locator_kind": LocatorKind.RECORD_INDEX if record_index is not None else None,
        "locator": record_index,
    }

    machine_set_count = values["machine_set_count"]
    if not 0 <= machine_set_count <= MAX_MACHINE_SETS:
        raise range_error(
            f"Plant '{values['name']}': machine_set_count = {machine_set_count} outside "
            f"[0, {MAX_MACHINE_SETS}]",
            field="machine_set_count",
            context=values["name"],
            **location,
        )
    tailrace_family_count = values["tailrace_family_count"]
    if not 0 <= tailrace_family_count <= MAX_TAILRACE_FAMILIES:
        raise range_error(
            f"Plant '{values['name']}': tailrace_family_count = {tailrace_family_count} outside "
            f"[0, {MAX_TAILRACE_FAMILIES}]",
            field="tailrace_family_count",
            context=values["name"],
            **location,
        )

    try:
        return HydroPlantRecord(**values)
    except ValidationError as error:
        first = error.errors()[0]
        raise field_error(
            f"Plant '{values['name']}': {first['msg']} ({'.'.join(str(part) for part in first['loc'])})",
            context=values["name"],
            **location,
        ) from None


def decode_file(path: Path | str) -> list[HydroPlantRecord]:
    """Decode every plant of a binary registry, in file order.

    The registry is all-or-nothing: the first failing record aborts the file.
    """
    source = str(path)
    plants = [
        decode_plant(raw.data, source=source, record_index=raw.index)
        for raw in read_records(path, HIDR_RECORD_SIZE)
    ]
    LOGGER.info("Decoded %s hydro plants from %s", len(plants), source)
    return plants


def find_plant(plants: Iterable[HydroPlantRecord], name: str) -> HydroPlantRecord | None:
    wanted = name.strip().upper()
    for plant in plants:
        if plant.name.upper() == wanted:
            return plant
    return None


def plants_by_subsystem(plants: Iterable[HydroPlantRecord]) -> dict[int, list[HydroPlantRecord]]:
    grouped: dict[int, list[HydroPlantRecord]] = defaultdict(list)
    for plant in plants:
        grouped[plant.subsystem].append(plant)
    return dict(grouped)
