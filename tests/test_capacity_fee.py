from __future__ import annotations

import pytest
from hypothesis import given, settings, strategies as st

from conftest import owner_lock
from spore_sdk.config import ScriptSet
from spore_sdk.errors import BuildError
from spore_sdk.spore.cells import SporeData, build_segment_cell, build_spore_cell, spore_type_hash
from spore_sdk.spore.segment import Segment
from spore_sdk.tx.capacity import (
    BYTE_SHANNONS,
    assert_capacity,
    calculate_fee,
    estimate_fee,
    occupied_bytes,
    occupied_capacity,
)
from spore_sdk.tx.encode import transaction_size
from spore_sdk.types.core import Cell, TransactionSkeleton

SCRIPTS = ScriptSet()


@pytest.mark.parametrize(
    "size,rate,fee",
    [
        (1000, 1000, 1000),
        (1001, 1000, 1001),
        (999, 1, 1),
        (1, 1000, 1),
        (0, 1000, 0),
        (2500, 0, 0),
    ],
)
def test_fee_rounds_up(size, rate, fee):
    assert calculate_fee(size, rate) == fee


def test_fee_rejects_negative_inputs():
    with pytest.raises(ValueError):
        calculate_fee(-1, 1000)


def test_plain_cell_occupies_61_bytes(lock):
    # 8 capacity + 32 code_hash + 1 hash_type + 20 args
    assert occupied_bytes(Cell(capacity=0, lock=lock)) == 61
    assert occupied_capacity(Cell(capacity=0, lock=lock)) == 61 * BYTE_SHANNONS


def test_spore_cell_capacity_is_exactly_occupied(lock):
    data = SporeData.for_content(b"hello spore", "video/mp4+spore")
    cell = build_spore_cell(data, lock=lock, spore_script=SCRIPTS.spore)
    # 8 + lock 53 + type (33 + 32 id) + SporeData table 71
    assert cell.capacity == 197 * BYTE_SHANNONS
    assert cell.capacity == occupied_capacity(cell)
    assert SporeData.unpack(cell.data) == data


def test_segment_cell_locks_to_spore_type_hash(lock):
    spore = build_spore_cell(SporeData.for_content(b"x", "text/plain"), lock=lock, spore_script=SCRIPTS.spore)
    type_hash = spore_type_hash(spore)
    cell = build_segment_cell(Segment(3, b"a" * 100), spore_type_hash=type_hash, lifecycle=SCRIPTS.binding_lifecycle)

    assert cell.lock.code_hash == SCRIPTS.binding_lifecycle.code_hash
    assert cell.lock.args == type_hash
    assert cell.type is None
    assert cell.data == b"\x03" + b"a" * 100
    # 8 + lock (33 + 32) + data 101
    assert cell.capacity == 174 * BYTE_SHANNONS


def test_assert_capacity_flags_underfunded_cell(lock):
    with pytest.raises(BuildError) as ei:
        assert_capacity(Cell(capacity=60 * BYTE_SHANNONS, lock=lock), output_index=2)
    assert ei.value.output_index == 2


def test_fee_estimate_covers_change_and_signature(lock):
    skel = TransactionSkeleton()
    skel.add_output(Cell(capacity=61 * BYTE_SHANNONS, lock=lock))
    bare = calculate_fee(transaction_size(skel), 1000)
    assert estimate_fee(skel, 1000, change_lock=lock) > bare


@settings(max_examples=100, deadline=None)
@given(
    payload=st.binary(min_size=0, max_size=600),
    index=st.integers(min_value=0, max_value=255),
    type_hash=st.binary(min_size=32, max_size=32),
)
def test_built_segment_cells_always_satisfy_capacity(payload, index, type_hash):
    cell = build_segment_cell(Segment(index, payload), spore_type_hash=type_hash, lifecycle=SCRIPTS.binding_lifecycle)
    assert cell.capacity == occupied_capacity(cell)
    assert_capacity(cell)
    assert occupied_bytes(cell) == 8 + 33 + 32 + 1 + len(payload)


@settings(max_examples=50, deadline=None)
@given(content_type=st.text(min_size=1, max_size=80), content=st.binary(max_size=256))
def test_built_spore_cells_always_satisfy_capacity(content_type, content):
    cell = build_spore_cell(SporeData.for_content(content, content_type), lock=owner_lock(), spore_script=SCRIPTS.spore)
    assert cell.capacity == occupied_capacity(cell)
    assert_capacity(cell)
