"""
spore_sdk.tx.capacity
=====================

Occupied capacity and fee arithmetic.

- Occupied capacity is a pure function of a cell's contents: every byte the
  cell stores (capacity field, lock, optional type, data) must be backed by one
  CKByte (10^8 shannons).
- Fees are charged on the serialized transaction size at a rate expressed in
  shannons per 1000 bytes, rounded up.

Fee estimation is conservative: `estimate_fee` sizes the transaction as if a
change output and every signature witness were already attached, so the
estimate is never below what the finished transaction weighs. Whatever the
estimate over-charges stays with the owner through the change output.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from ..errors import BuildError
from ..types.core import Cell, Script, TransactionSkeleton
from . import encode

# 1 CKByte
BYTE_SHANNONS = 100_000_000

# capacity field (u64)
CAPACITY_FIELD_BYTES = 8

# code_hash (32) + hash_type (1)
SCRIPT_FIXED_BYTES = 33

# secp256k1 recoverable signature carried in WitnessArgs.lock
SIGNATURE_PLACEHOLDER = bytes(65)

DEFAULT_FEE_RATE = 1000  # shannons per KB


def script_occupied_bytes(script: Script) -> int:
    return SCRIPT_FIXED_BYTES + len(script.args)


def occupied_bytes(cell: Cell) -> int:
    size = CAPACITY_FIELD_BYTES + script_occupied_bytes(cell.lock) + len(cell.data)
    if cell.type is not None:
        size += script_occupied_bytes(cell.type)
    return size


def occupied_capacity(cell: Cell) -> int:
    """Minimum capacity (shannons) `cell` must hold."""
    return occupied_bytes(cell) * BYTE_SHANNONS


def with_occupied_capacity(cell: Cell) -> Cell:
    """Return `cell` with capacity rewritten to exactly its occupied capacity."""
    return replace(cell, capacity=occupied_capacity(cell))


def assert_capacity(cell: Cell, *, output_index: Optional[int] = None) -> None:
    need = occupied_capacity(cell)
    if cell.capacity < need:
        raise BuildError(
            f"cell capacity {cell.capacity} below occupied capacity {need}",
            output_index=output_index,
        )


def calculate_fee(tx_size: int, fee_rate: int) -> int:
    """fee = ceil(tx_size * fee_rate / 1000)."""
    if tx_size < 0 or fee_rate < 0:
        raise ValueError("tx_size and fee_rate must be non-negative")
    base = int(tx_size) * int(fee_rate)
    fee, rem = divmod(base, 1000)
    return fee + 1 if rem else fee


def placeholder_witnesses(skel: TransactionSkeleton) -> List[bytes]:
    """
    Witnesses shaped like the signed transaction: one WitnessArgs with a
    65-byte lock in the first slot of every lock group, empty slots elsewhere.
    """
    witnesses: List[bytes] = []
    seen = set()
    for cell in skel.inputs:
        key = encode.script_hash(cell.lock)
        if key in seen:
            witnesses.append(b"")
        else:
            seen.add(key)
            witnesses.append(encode.pack_witness_args(lock=SIGNATURE_PLACEHOLDER))
    return witnesses


def estimate_size(skel: TransactionSkeleton, *, change_lock: Optional[Script] = None) -> int:
    """
    Upper-bound transaction size: the skeleton as it stands, plus one change
    output locked by `change_lock` (unless the skeleton already has it) and
    signature-sized witnesses.
    """
    draft = TransactionSkeleton(
        version=skel.version,
        inputs=list(skel.inputs),
        outputs=list(skel.outputs),
        cell_deps=list(skel.cell_deps),
        header_deps=list(skel.header_deps),
    )
    if change_lock is not None:
        draft.outputs.append(Cell(capacity=0, lock=change_lock))
    return encode.transaction_size(draft, placeholder_witnesses(draft))


def estimate_fee(skel: TransactionSkeleton, fee_rate: int, *, change_lock: Optional[Script] = None) -> int:
    return calculate_fee(estimate_size(skel, change_lock=change_lock), fee_rate)


__all__ = [
    "BYTE_SHANNONS",
    "DEFAULT_FEE_RATE",
    "SIGNATURE_PLACEHOLDER",
    "script_occupied_bytes",
    "occupied_bytes",
    "occupied_capacity",
    "with_occupied_capacity",
    "assert_capacity",
    "calculate_fee",
    "placeholder_witnesses",
    "estimate_size",
    "estimate_fee",
]
