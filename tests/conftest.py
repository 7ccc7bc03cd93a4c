from __future__ import annotations

import struct
from pathlib import Path
from typing import Any, Callable

import pytest

HIDR_SIZE = 792
CUT_VALUES = 206


def _text(value: str, length: int) -> bytes:
    return value.encode("latin-1").ljust(length, b" ")


def encode_plant(values: dict[str, Any], reserved: bytes = b"\x00" * 300) -> bytes:
    """Test-only writer for one 792-byte registry record."""
    parts = [
        _text(values["name"], 12),
        struct.pack("<i", values["gauge"]),
        struct.pack("<q", values["gauge_bdh"]),
        struct.pack(
            "<4i",
            values["subsystem"],
            values["company"],
            values["downstream_plant"],
            values["diversion_plant"],
        ),
        struct.pack(
            "<6f",
            values["min_volume"],
            values["max_volume"],
            values["spillway_volume"],
            values["diversion_volume"],
            values["min_elevation"],
            values["max_elevation"],
        ),
        struct.pack("<5f", *values["volume_elevation_poly"]),
        struct.pack("<5f", *values["elevation_area_poly"]),
        struct.pack("<12i", *values["evaporation"]),
        struct.pack("<i", values["machine_set_count"]),
        struct.pack("<5i", *values["units_per_set"]),
        struct.pack("<5f", *values["capacity_per_set"]),
        reserved,
        struct.pack("<5f", *values["head_per_set"]),
        struct.pack("<5i", *values["flow_per_set"]),
        struct.pack("<2f", values["specific_productivity"], values["losses"]),
        struct.pack("<i", values["tailrace_family_count"]),
        struct.pack("<36f", *values["tailrace_coefficients"]),
        struct.pack("<f", values["average_tailrace_level"]),
        struct.pack("<i", values["spillway_tailrace_influence"]),
        struct.pack("<2f", values["max_load_factor"], values["min_load_factor"]),
        struct.pack(
            "<4i",
            values["min_historical_flow"],
            values["base_units"],
            values["turbine_type"],
            values["set_representation"],
        ),
        struct.pack("<2f", values["teif"], values["programmed_outage"]),
        struct.pack("<i", values["loss_type"]),
        _text(values["reference_date"], 12),
        _text(values["notes"], 39),
        struct.pack("<f", values["reference_volume"]),
        _text(values["regulation_type"], 1),
    ]
    data = b"".join(parts)
    assert len(data) == HIDR_SIZE
    return data


def encode_cut(
    next_pointer: int,
    intercept: float,
    coefficients: tuple[float, ...] | list[float] = (),
    *,
    construction_iteration: int = 1,
    forward_index: int = 1,
    deactivation_iteration: int = 0,
) -> bytes:
    """Test-only writer for one 1664-byte cut record."""
    values = [intercept, *coefficients]
    values.extend([0.0] * (CUT_VALUES - len(values)))
    header = struct.pack(
        "<4i", next_pointer, construction_iteration, forward_index, deactivation_iteration
    )
    return header + struct.pack(f"<{CUT_VALUES}d", *values)


# Every float below is exactly representable as float32.
GOLDEN_PLANT: dict[str, Any] = {
    "name": "FURNAS",
    "gauge": 6,
    "gauge_bdh": 61760000,
    "subsystem": 1,
    "company": 17,
    "downstream_plant": 7,
    "diversion_plant": 0,
    "min_volume": 5733.0,
    "max_volume": 22950.0,
    "spillway_volume": 22950.0,
    "diversion_volume": 0.0,
    "min_elevation": 750.0,
    "max_elevation": 768.0,
    "volume_elevation_poly": (735.5, 0.00390625, -0.125, 0.0, 0.0),
    "elevation_area_poly": (-96.5, 0.25, 0.0, 0.0, 0.0),
    "evaporation": (11, 10, 9, 7, 5, 4, 4, 6, 8, 9, 10, 12),
    "machine_set_count": 2,
    "units_per_set": (6, 2, 0, 0, 0),
    "capacity_per_set": (152.0, 180.5, 0.0, 0.0, 0.0),
    "head_per_set": (90.5, 91.0, 0.0, 0.0, 0.0),
    "flow_per_set": (192, 210, 0, 0, 0),
    "specific_productivity": 0.0087890625,
    "losses": 1.5,
    "tailrace_family_count": 2,
    "tailrace_coefficients": tuple(index * 0.25 for index in range(36)),
    "average_tailrace_level": 671.5,
    "spillway_tailrace_influence": 1,
    "max_load_factor": 100.0,
    "min_load_factor": 20.0,
    "min_historical_flow": 180,
    "base_units": 8,
    "turbine_type": 1,
    "set_representation": 0,
    "teif": 2.25,
    "programmed_outage": 3.5,
    "loss_type": 2,
    "reference_date": "01/01/2020",
    "notes": "Rio Grande",
    "reference_volume": 17217.0,
    "regulation_type": "M",
}


@pytest.fixture
def golden_plant() -> dict[str, Any]:
    return dict(GOLDEN_PLANT)


@pytest.fixture
def plant_encoder() -> Callable[..., bytes]:
    return encode_plant


@pytest.fixture
def cut_encoder() -> Callable[..., bytes]:
    return encode_cut


@pytest.fixture
def write_binary(tmp_path: Path) -> Callable[[str, list[bytes]], Path]:
    def _write(name: str, records: list[bytes]) -> Path:
        path = tmp_path / name
        path.write_bytes(b"".join(records))
        return path

    return _write
