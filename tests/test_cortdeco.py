from __future__ import annotations

import pytest

from dessem_records.cortdeco import (
    CUT_RECORD_SIZE,
    active_cuts,
    binding_cut,
    build_collection,
    cut_statistics,
    decode_cut,
    decode_cuts,
    marginal_water_values,
    mean_coefficient,
    water_value,
)
from dessem_records.errors import DecodeError, ErrorKind, LocatorKind


def _chain_positions(collection):
    return [list(chain.positions) for chain in collection.chains]


def test_decode_cut_header_and_values(cut_encoder):
    buffer = cut_encoder(
        3,
        1000.0,
        [0.1 * (index + 1) for index in range(205)],
        construction_iteration=4,
        forward_index=2,
        deactivation_iteration=0,
    )

    cut = decode_cut(buffer, position=7)

    assert len(buffer) == CUT_RECORD_SIZE
    assert cut.position == 7
    assert cut.next_pointer == 3
    assert cut.next_position == 2
    assert cut.construction_iteration == 4
    assert cut.forward_index == 2
    assert cut.active
    assert cut.intercept == 1000.0
    assert len(cut.coefficients) == 205
    assert cut.coefficients[0] == pytest.approx(0.1)
    assert cut.coefficients[9] == pytest.approx(1.0)


def test_two_independent_chains(cut_encoder, write_binary):
    path = write_binary(
        "cortdeco.rv0",
        [
            cut_encoder(2, 100.0),  # record 0 -> record 1
            cut_encoder(0, 200.0),  # record 1 ends the chain
            cut_encoder(0, 300.0),  # record 2 stands alone
        ],
    )

    collection = decode_cuts(path)

    assert collection.heads_inferred
    assert collection.record_count == 3
    assert _chain_positions(collection) == [[0, 1], [2]]
    assert [cut.intercept for cut in collection.chain_for(0).cuts] == [100.0, 200.0]
    assert [cut.intercept for cut in collection.chain_for(2).cuts] == [300.0]


def test_chain_order_follows_links_not_values(cut_encoder, write_binary):
    path = write_binary(
        "cortdeco.rv2",
        [
            cut_encoder(0, 10.0),  # tail
            cut_encoder(4, 30.0),  # head -> record 3
            cut_encoder(1, 5.0),  # record 2 -> record 0
            cut_encoder(3, 20.0),  # record 3 -> record 2
        ],
    )

    collection = decode_cuts(path)

    assert _chain_positions(collection) == [[1, 3, 2, 0]]
    assert [cut.intercept for cut in collection.cuts] == [30.0, 20.0, 5.0, 10.0]


def test_self_reference_is_a_cycle(cut_encoder, write_binary):
    records = [cut_encoder(0, float(index)) for index in range(5)]
    records.append(cut_encoder(6, 5.0))  # record 5 points to itself
    path = write_binary("cortdeco.rv0", records)

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path)

    error = excinfo.value
    assert error.kind == ErrorKind.STRUCTURAL
    assert error.locator_kind == LocatorKind.RECORD_INDEX
    assert error.locator == 5
    assert "Cyclic cut chain" in error.message
    assert "record 5" in error.message


def test_cycle_reached_from_a_head(cut_encoder, write_binary):
    path = write_binary(
        "cortdeco.rv0",
        [
            cut_encoder(2, 1.0),  # head -> 1
            cut_encoder(3, 2.0),  # 1 -> 2
            cut_encoder(2, 3.0),  # 2 -> 1
        ],
    )

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path)

    assert excinfo.value.locator == 1
    assert "headed by record 0" in excinfo.value.message


def test_cycle_with_supplied_head(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(2, 1.0), cut_encoder(1, 2.0)])

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path, heads=[1])

    assert excinfo.value.locator == 1


def test_pointer_outside_pool(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(0, 1.0), cut_encoder(9, 2.0)])

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path)

    assert excinfo.value.kind == ErrorKind.STRUCTURAL
    assert excinfo.value.locator == 1
    assert "9" in excinfo.value.message


def test_negative_pointer(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(-1, 1.0)])

    with pytest.raises(DecodeError):
        decode_cuts(path)


def test_supplied_heads_are_authoritative(cut_encoder, write_binary):
    path = write_binary(
        "cortdeco.rv0",
        [cut_encoder(0, 1.0), cut_encoder(1, 2.0), cut_encoder(0, 3.0)],
    )

    collection = decode_cuts(path, heads=[1])

    assert not collection.heads_inferred
    assert _chain_positions(collection) == [[1, 0]]


def test_supplied_head_out_of_range(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(0, 1.0)])

    with pytest.raises(DecodeError):
        decode_cuts(path, heads=[3])


def test_duplicate_supplied_head(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(0, 1.0)])

    with pytest.raises(DecodeError):
        decode_cuts(path, heads=[0, 0])


def test_record_shared_by_two_chains(cut_encoder, write_binary):
    path = write_binary(
        "cortdeco.rv0",
        [cut_encoder(3, 1.0), cut_encoder(3, 2.0), cut_encoder(0, 3.0)],
    )

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path)

    assert excinfo.value.locator == 2


def test_file_size_not_a_record_multiple(cut_encoder, write_binary):
    path = write_binary("cortdeco.rv0", [cut_encoder(0, 1.0), b"\x00" * 16])

    with pytest.raises(DecodeError) as excinfo:
        decode_cuts(path)

    assert excinfo.value.kind == ErrorKind.STRUCTURAL


def test_empty_file(write_binary):
    collection = decode_cuts(write_binary("cortdeco.rv0", []))

    assert collection.chains == ()
    assert cut_statistics(collection).total_cuts == 0


def test_build_collection_requires_position_indexing(cut_encoder):
    cut = decode_cut(cut_encoder(0, 1.0), position=1)

    with pytest.raises(ValueError):
        build_collection([cut])


@pytest.fixture
def mixed_collection(cut_encoder):
    cuts = [
        decode_cut(cut_encoder(2, 1000.0, [10.0, 20.0, 30.0]), position=0),
        decode_cut(cut_encoder(3, 2000.0, [15.0, 25.0, 35.0], deactivation_iteration=5), position=1),
        decode_cut(cut_encoder(0, 500.0, [40.0, -5.0, 0.0]), position=2),
    ]
    return build_collection(cuts)


def test_active_cuts(mixed_collection):
    assert [cut.position for cut in active_cuts(mixed_collection)] == [0, 2]


def test_water_value_with_single_active_cut_at_zero_state(cut_encoder):
    cuts = [
        decode_cut(cut_encoder(0, 1234.5, [1.0, 2.0, 3.0]), position=0),
        decode_cut(cut_encoder(0, 9999.0, [1.0], deactivation_iteration=2), position=1),
    ]
    collection = build_collection(cuts)

    assert water_value(collection, [0.0] * 205) == 1234.5


def test_water_value_takes_the_max_over_active_cuts(mixed_collection):
    # cut 0: 1000 + 10*1 + 20*2 = 1050; cut 2: 500 + 40*1 - 5*2 = 530; cut 1 inactive
    assert water_value(mixed_collection, [1.0, 2.0]) == 1050.0
    # cut 0: 1000 + 10*20 = 1200; cut 2: 500 + 40*20 = 1300
    assert water_value(mixed_collection, [20.0]) == 1300.0
    assert binding_cut(mixed_collection, [20.0]).position == 2
    assert marginal_water_values(mixed_collection, [20.0]) == (40.0,)


def test_water_value_rejects_oversized_state(mixed_collection):
    with pytest.raises(ValueError):
        water_value(mixed_collection, [0.0] * 206)


def test_water_value_without_active_cuts(cut_encoder):
    collection = build_collection([decode_cut(cut_encoder(0, 1.0, deactivation_iteration=3), position=0)])

    with pytest.raises(ValueError):
        water_value(collection, [])


def test_mean_coefficient(mixed_collection):
    assert mean_coefficient(mixed_collection, 0) == pytest.approx((10.0 + 15.0 + 40.0) / 3)
    assert mean_coefficient(mixed_collection, 0, active_only=True) == pytest.approx(25.0)
    with pytest.raises(IndexError):
        mean_coefficient(mixed_collection, 205)


def test_cut_statistics(mixed_collection):
    stats = cut_statistics(mixed_collection)

    assert stats.total_cuts == 3
    assert stats.active_cuts == 2
    assert stats.inactive_cuts == 1
    assert stats.chain_count == 1
    assert stats.coefficient_count == 205
    assert stats.min_intercept == 500.0
    assert stats.max_intercept == 2000.0
    assert stats.mean_intercept == pytest.approx(3500.0 / 3)
    assert stats.max_abs_coefficient == 40.0
