from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MAX_MACHINE_SETS = 5
MAX_TAILRACE_FAMILIES = 6
TAILRACE_FAMILY_WIDTH = 6


def _polyval(coefficients: tuple[float, ...], x: float) -> float:
    result = 0.0
    for coefficient in reversed(coefficients):
        result = result * x + coefficient
    return result


class MachineSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    units: int
    capacity: float
    head: float
    flow: int


class TailracePolynomial(BaseModel):
    model_config = ConfigDict(frozen=True)

    coefficients: tuple[float, ...]
    reference_level: float

    def level_at(self, outflow: float) -> float:
        return _polyval(self.coefficients, outflow)


class HydroPlantRecord(BaseModel):
    """One plant of the binary hydro registry (HIDR.DAT)."""

    model_config = ConfigDict(frozen=True)

    name: str
    gauge: int
    gauge_bdh: int
    subsystem: int
    company: int
    downstream_plant: int
    diversion_plant: int

    min_volume: float
    max_volume: float
    spillway_volume: float
    diversion_volume: float
    min_elevation: float
    max_elevation: float

    volume_elevation_poly: tuple[float, ...] = Field(min_length=5, max_length=5)
    elevation_area_poly: tuple[float, ...] = Field(min_length=5, max_length=5)
    evaporation: tuple[int, ...] = Field(min_length=12, max_length=12)

    machine_set_count: int = Field(ge=0, le=MAX_MACHINE_SETS)
    units_per_set: tuple[int, ...] = Field(min_length=5, max_length=5)
    capacity_per_set: tuple[float, ...] = Field(min_length=5, max_length=5)
    head_per_set: tuple[float, ...] = Field(min_length=5, max_length=5)
    flow_per_set: tuple[int, ...] = Field(min_length=5, max_length=5)

    specific_productivity: float
    losses: float
    tailrace_family_count: int = Field(ge=0, le=MAX_TAILRACE_FAMILIES)
    tailrace_coefficients: tuple[float, ...] = Field(min_length=36, max_length=36)

    average_tailrace_level: float
    spillway_tailrace_influence: int
    max_load_factor: float
    min_load_factor: float
    min_historical_flow: int
    base_units: int
    turbine_type: int
    set_representation: int
    teif: float
    programmed_outage: float
    loss_type: int
    reference_date: str
    notes: str
    reference_volume: float
    regulation_type: str

    @property
    def machine_sets(self) -> tuple[MachineSet, ...]:
        return tuple(
            MachineSet(
                units=self.units_per_set[index],
                capacity=self.capacity_per_set[index],
                head=self.head_per_set[index],
                flow=self.flow_per_set[index],
            )
            for index in range(self.machine_set_count)
        )

    @property
    def installed_capacity(self) -> float:
        return sum(machine_set.units * machine_set.capacity for machine_set in self.machine_sets)

    @property
    def tailrace_families(self) -> tuple[TailracePolynomial, ...]:
        families = []
        for index in range(self.tailrace_family_count):
            start = index * TAILRACE_FAMILY_WIDTH
            block = self.tailrace_coefficients[start : start + TAILRACE_FAMILY_WIDTH]
            families.append(
                TailracePolynomial(coefficients=block[:-1], reference_level=block[-1])
            )
        return tuple(families)

    def elevation_at(self, volume: float) -> float:
        return _polyval(self.volume_elevation_poly, volume)

    def area_at(self, elevation: float) -> float:
        return _polyval(self.elevation_area_poly, elevation)


class FCFCut(BaseModel):
    """One Benders cut as stored in a cut file record."""

    model_config = ConfigDict(frozen=True)

    position: int = Field(ge=0)
    next_pointer: int
    construction_iteration: int
    forward_index: int
    deactivation_iteration: int
    intercept: float
    coefficients: tuple[float, ...]

    @property
    def active(self) -> bool:
        return self.deactivation_iteration == 0

    @property
    def next_position(self) -> int | None:
        # Pointers on disk are 1-based; 0 ends the chain.
        return self.next_pointer - 1 if self.next_pointer != 0 else None

    def evaluate(self, state: tuple[float, ...] | list[float]) -> float:
        return self.intercept + sum(
            coefficient * value for coefficient, value in zip(self.coefficients, state)
        )


class CutChain(BaseModel):
    model_config = ConfigDict(frozen=True)

    head: int = Field(ge=0)
    positions: tuple[int, ...]
    cuts: tuple[FCFCut, ...]

    def __len__(self) -> int:
        return len(self.cuts)


class FCFCutsCollection(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str = ""
    record_count: int = Field(ge=0)
    heads_inferred: bool
    chains: tuple[CutChain, ...]

    @property
    def cuts(self) -> tuple[FCFCut, ...]:
        return tuple(cut for chain in self.chains for cut in chain.cuts)

    @property
    def heads(self) -> tuple[int, ...]:
        return tuple(chain.head for chain in self.chains)

    def chain_for(self, head: int) -> CutChain:
        for chain in self.chains:
            if chain.head == head:
                return chain
        raise KeyError(head)


class CutStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_cuts: int
    active_cuts: int
    inactive_cuts: int
    chain_count: int
    coefficient_count: int
    min_intercept: float | None = None
    max_intercept: float | None = None
    mean_intercept: float | None = None
    max_abs_coefficient: float | None = None
    mean_abs_coefficient: float | None = None
