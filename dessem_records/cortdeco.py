from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .binary import decode_record, read_records
from .errors import LocatorKind, structural_error
from .models import BinaryFieldSpec, BinaryLayout, BinaryType
from .records import CutChain, CutStatistics, FCFCut, FCFCutsCollection

LOGGER = logging.getLogger(__name__)

CUT_RECORD_SIZE = 1664
CUT_HEADER_SIZE = 16
CUT_VALUE_COUNT = (CUT_RECORD_SIZE - CUT_HEADER_SIZE) // 8
TERMINATOR = 0

CUT_LAYOUT = BinaryLayout(
    name="CORTDECO",
    record_size=CUT_RECORD_SIZE,
    fields=(
        BinaryFieldSpec(name="next_pointer", type=BinaryType.INT32),
        BinaryFieldSpec(name="construction_iteration", type=BinaryType.INT32),
        BinaryFieldSpec(name="forward_index", type=BinaryType.INT32),
        BinaryFieldSpec(name="deactivation_iteration", type=BinaryType.INT32),
        BinaryFieldSpec(name="values", type=BinaryType.FLOAT64, count=CUT_VALUE_COUNT),
    ),
)


def decode_cut(buffer: bytes, position: int, *, source: str = "") -> FCFCut:
    values = decode_record(buffer, CUT_LAYOUT, source=source, record_index=position)
    floats = values.pop("values")
    return FCFCut(position=position, intercept=floats[0], coefficients=floats[1:], **values)


def _record_location(source: str, position: int) -> dict:
    return {"source": source, "locator_kind": LocatorKind.RECORD_INDEX, "locator": position}


def _validate_pointers(cuts: Sequence[FCFCut], source: str) -> None:
    record_count = len(cuts)
    for cut in cuts:
        if not TERMINATOR <= cut.next_pointer <= record_count:
            raise structural_error(
                f"Cut record {cut.position} has next pointer {cut.next_pointer}, outside "
                f"[{TERMINATOR}, {record_count}] for a pool of {record_count} records",
                **_record_location(source, cut.position),
            )


def _resolve_heads(
    cuts: Sequence[FCFCut],
    heads: Sequence[int] | None,
    source: str,
) -> tuple[list[int], bool]:
    if heads is not None:
        resolved: list[int] = []
        for head in heads:
            if not 0 <= head < len(cuts):
                raise structural_error(
                    f"Chain head {head} is outside the pool of {len(cuts)} records",
                    **_record_location(source, head),
                )
            if head in resolved:
                raise structural_error(
                    f"Chain head {head} is listed more than once",
                    **_record_location(source, head),
                )
            resolved.append(head)
        return resolved, False

    referenced = {cut.next_position for cut in cuts if cut.next_position is not None}
    inferred = [cut.position for cut in cuts if cut.position not in referenced]
    LOGGER.warning(
        "No chain-head index supplied for %s; inferred %s head(s) from records no other "
        "record points to",
        source or "<buffer>",
        len(inferred),
    )
    return inferred, True


def _traverse(
    cuts: Sequence[FCFCut],
    head: int,
    owners: dict[int, int],
    source: str,
) -> CutChain:
    visited: set[int] = set()
    positions: list[int] = []
    current: int | None = head
    steps = 0
    while current is not None:
        if current in visited:
            raise structural_error(
                f"Cyclic cut chain: record {current} repeats in the chain headed by record {head}",
                **_record_location(source, current),
            )
        steps += 1
        if steps > len(cuts):
            raise structural_error(
                f"Chain headed by record {head} exceeds the {len(cuts)} records in the pool",
                **_record_location(source, current),
            )
        owner = owners.get(current)
        if owner is not None:
            raise structural_error(
                f"Cut record {current} is reached from chains headed by records {owner} and {head}",
                **_record_location(source, current),
            )
        visited.add(current)
        owners[current] = head
        positions.append(current)
        current = cuts[current].next_position

    LOGGER.debug("Chain headed by record %s holds %s cuts", head, len(positions))
    return CutChain(head=head, positions=tuple(positions), cuts=tuple(cuts[p] for p in positions))


def build_collection(
    cuts: Sequence[FCFCut],
    heads: Sequence[int] | None = None,
    *,
    source: str = "",
) -> FCFCutsCollection:
    """Rebuild the linked chains of a decoded record pool.

    ``cuts`` must be indexed by file position. When ``heads`` is omitted every
    record that no other record points to starts a chain; that inference is an
    assumption about the file and is reported through ``heads_inferred``.
    """
    for position, cut in enumerate(cuts):
        if cut.position != position:
            raise ValueError(f"Cut at index {position} carries position {cut.position}")

    _validate_pointers(cuts, source)
    resolved_heads, inferred = _resolve_heads(cuts, heads, source)

    owners: dict[int, int] = {}
    chains = [_traverse(cuts, head, owners, source) for head in resolved_heads]

    unvisited = [position for position in range(len(cuts)) if position not in owners]
    if unvisited and inferred:
        # Every record has one successor, so anything no inferred head reaches lies on a
        # cycle and walking it raises the cycle error.
        _traverse(cuts, unvisited[0], owners, source)
    elif unvisited:
        LOGGER.debug("%s record(s) of %s lie on no listed chain", len(unvisited), source or "<buffer>")

    return FCFCutsCollection(
        source=source,
        record_count=len(cuts),
        heads_inferred=inferred,
        chains=tuple(chains),
    )


def decode_cuts(path: Path | str, heads: Sequence[int] | None = None) -> FCFCutsCollection:
    source = str(path)
    raw_records = read_records(path, CUT_RECORD_SIZE)
    if not raw_records:
        LOGGER.warning("Cut file %s holds no records", source)
    cuts = [decode_cut(raw.data, raw.index, source=source) for raw in raw_records]
    collection = build_collection(cuts, heads, source=source)
    LOGGER.info(
        "Decoded %s cuts in %s chain(s) from %s",
        len(collection.cuts),
        len(collection.chains),
        source,
    )
    return collection


decode_file = decode_cuts


def active_cuts(collection: FCFCutsCollection) -> list[FCFCut]:
    return [cut for cut in collection.cuts if cut.active]


def _state_vector(state: Sequence[float], coefficient_count: int) -> tuple[float, ...]:
    vector = tuple(float(value) for value in state)
    if len(vector) > coefficient_count:
        raise ValueError(
            f"State has {len(vector)} components but cuts carry {coefficient_count} coefficients"
        )
    return vector


def binding_cut(collection: FCFCutsCollection, state: Sequence[float]) -> FCFCut:
    """The active cut that attains the future-cost maximum at ``state``."""
    candidates = active_cuts(collection)
    if not candidates:
        raise ValueError(f"No active cuts in {collection.source or 'collection'}")
    vector = _state_vector(state, len(candidates[0].coefficients))
    return max(candidates, key=lambda cut: cut.evaluate(vector))


def water_value(collection: FCFCutsCollection, state: Sequence[float]) -> float:
    """Future cost at ``state``: max over active cuts of intercept + coefficients . state.

    Components missing from a short ``state`` count as zero.
    """
    candidates = active_cuts(collection)
    if not candidates:
        raise ValueError(f"No active cuts in {collection.source or 'collection'}")
    vector = _state_vector(state, len(candidates[0].coefficients))
    return max(cut.evaluate(vector) for cut in candidates)


def marginal_water_values(collection: FCFCutsCollection, state: Sequence[float]) -> tuple[float, ...]:
    cut = binding_cut(collection, state)
    return cut.coefficients[: len(state)]


def mean_coefficient(
    collection: FCFCutsCollection,
    index: int,
    *,
    active_only: bool = False,
) -> float:
    cuts = active_cuts(collection) if active_only else list(collection.cuts)
    if not cuts:
        raise ValueError(f"No cuts available in {collection.source or 'collection'}")
    if not 0 <= index < len(cuts[0].coefficients):
        raise IndexError(f"Coefficient index {index} outside [0, {len(cuts[0].coefficients)})")
    return sum(cut.coefficients[index] for cut in cuts) / len(cuts)


def cut_statistics(collection: FCFCutsCollection) -> CutStatistics:
    cuts = collection.cuts
    active_count = sum(1 for cut in cuts if cut.active)
    if not cuts:
        return CutStatistics(
            total_cuts=0,
            active_cuts=0,
            inactive_cuts=0,
            chain_count=len(collection.chains),
            coefficient_count=0,
        )

    intercepts = [cut.intercept for cut in cuts]
    magnitudes = [abs(value) for cut in cuts for value in cut.coefficients]
    return CutStatistics(
        total_cuts=len(cuts),
        active_cuts=active_count,
        inactive_cuts=len(cuts) - active_count,
        chain_count=len(collection.chains),
        coefficient_count=len(cuts[0].coefficients),
        min_intercept=min(intercepts),
        max_intercept=max(intercepts),
        mean_intercept=sum(intercepts) / len(intercepts),
        max_abs_coefficient=max(magnitudes) if magnitudes else None,
        mean_abs_coefficient=sum(magnitudes) / len(magnitudes) if magnitudes else None,
    )
