"""Decoders for DESSEM fixed-width text records and binary registry/cut files."""

from .binary import BinaryReader, RawRecord, decode_record, read_records
from .cortdeco import active_cuts, cut_statistics, decode_cuts, water_value
from .errors import DecodeError, ErrorKind, LocatorKind
from .extraction import ExtractionContext, extract
from .hidr import decode_plant
from .models import (
    BinaryFieldSpec,
    BinaryLayout,
    BinaryType,
    FieldSpec,
    FieldType,
    LayoutVariant,
    RecordLayout,
    RuleKind,
    ValidationRule,
)
from .records import CutChain, CutStatistics, FCFCut, FCFCutsCollection, HydroPlantRecord, MachineSet
from .sources import SourceReadError

__all__ = [
    "BinaryFieldSpec",
    "BinaryLayout",
    "BinaryReader",
    "BinaryType",
    "CutChain",
    "CutStatistics",
    "DecodeError",
    "ErrorKind",
    "ExtractionContext",
    "FCFCut",
    "FCFCutsCollection",
    "FieldSpec",
    "FieldType",
    "HydroPlantRecord",
    "LayoutVariant",
    "LocatorKind",
    "MachineSet",
    "RawRecord",
    "RecordLayout",
    "RuleKind",
    "SourceReadError",
    "ValidationRule",
    "active_cuts",
    "cut_statistics",
    "decode_cuts",
    "decode_plant",
    "decode_record",
    "extract",
    "read_records",
    "water_value",
]
