"""
spore_sdk.tx.build
==================

Generic transaction assembly on top of `TransactionSkeleton`:

- capacity injection: pick live cells of the owner lock to pay for outputs and
  fee, and return the surplus as one change output;
- signing entries: witness placeholders and the sighash-all message of each
  lock group;
- structural validation before a skeleton is sealed and handed to signing.

Spore-specific skeletons (root mint, segment mint) are put together in
`spore_sdk.spore.assemble` using these helpers.

Examples
--------
    skel = TransactionSkeleton()
    skel.add_output(cell)
    skel.add_cell_dep(dep)
    fee = inject_capacity(skel, provider, lock=wallet.lock, fee_rate=1000)
    prepare_signing_entries(skel)
    validate_skeleton(skel)
    skel.seal()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ..errors import BuildError, FundingError
from ..types.core import (
    Cell,
    CellDep,
    OutPoint,
    Script,
    SigningEntry,
    TransactionDict,
    TransactionSkeleton,
)
from ..utils.bytes import to_hex
from ..utils.hash import CkbHasher
from . import encode
from .capacity import (
    SIGNATURE_PLACEHOLDER,
    assert_capacity,
    estimate_fee,
    occupied_capacity,
)

# -----------------------------------------------------------------------------
# Cell sourcing
# -----------------------------------------------------------------------------


class CellProvider(Protocol):
    """Anything that can enumerate live cells locked by `lock` (e.g. an indexer)."""

    def collect_cells(self, lock: Script) -> Iterable[Cell]: ...


def _is_pure_capacity(cell: Cell, lock: Script) -> bool:
    return cell.lock == lock and cell.type is None and not cell.data and cell.out_point is not None


@dataclass(frozen=True)
class Injection:
    """Outcome of `inject_capacity`."""

    inputs: List[Cell]
    fee: int
    change: Optional[Cell]


def inject_capacity(
    skel: TransactionSkeleton,
    provider: CellProvider,
    *,
    lock: Script,
    fee_rate: int,
    exclude: AbstractSet[OutPoint] = frozenset(),
) -> Injection:
    """
    Fund `skel` from cells of `lock`, then append a change output for the surplus.

    The fee is estimated as if the change output and every signature were
    already present, so it never falls short of the finished transaction's
    size. Cells whose out points are in `exclude` (spent earlier in the same
    run) are skipped. On `FundingError` the skeleton is left untouched.
    """
    skel._ensure_open()
    already = {c.out_point for c in skel.inputs}
    change_min = occupied_capacity(Cell(capacity=0, lock=lock))
    outputs_total = skel.output_capacity

    draft = TransactionSkeleton(
        version=skel.version,
        inputs=list(skel.inputs),
        outputs=list(skel.outputs),
        cell_deps=list(skel.cell_deps),
        header_deps=list(skel.header_deps),
    )
    selected: List[Cell] = []
    fee = estimate_fee(draft, fee_rate, change_lock=lock)

    for cell in provider.collect_cells(lock):
        if not _is_pure_capacity(cell, lock):
            continue
        if cell.out_point in exclude or cell.out_point in already:
            continue
        already.add(cell.out_point)
        selected.append(cell)
        draft.inputs.append(cell)

        fee = estimate_fee(draft, fee_rate, change_lock=lock)
        surplus = draft.input_capacity - outputs_total - fee
        if surplus == 0 or surplus >= change_min:
            break
    else:
        raise FundingError(
            "not enough spendable capacity for outputs, fee and change",
            required=outputs_total + fee + change_min,
            available=draft.input_capacity,
        )

    for cell in selected:
        skel.add_input(cell)
    change: Optional[Cell] = None
    if surplus > 0:
        change = Cell(capacity=surplus, lock=lock)
        skel.add_output(change)
    return Injection(inputs=selected, fee=fee, change=change)


# -----------------------------------------------------------------------------
# Cell deps
# -----------------------------------------------------------------------------


def check_cell_dep_order(skel: TransactionSkeleton, expected: Sequence[CellDep]) -> None:
    """
    Require every dep in `expected` to be present and in that relative order.
    Scripts resolve their code positionally, so a swap is a build error.
    """
    last = -1
    for dep in expected:
        try:
            pos = skel.cell_deps.index(dep)
        except ValueError:
            raise BuildError(f"missing cell dep {dep.out_point.tx_hash.hex()}:{dep.out_point.index}") from None
        if pos <= last:
            raise BuildError("cell deps out of order")
        last = pos


# -----------------------------------------------------------------------------
# Signing entries
# -----------------------------------------------------------------------------


def _lock_groups(skel: TransactionSkeleton) -> Dict[bytes, List[int]]:
    groups: Dict[bytes, List[int]] = {}
    for i, cell in enumerate(skel.inputs):
        groups.setdefault(encode.script_hash(cell.lock), []).append(i)
    return groups


def sighash_all_message(skel: TransactionSkeleton, group: Sequence[int], witnesses: Sequence[bytes]) -> bytes:
    """
    secp256k1-blake160 sighash-all message for one lock group:
    ckb_hash(tx_hash ++ for each witness of the group and every witness past
    the last input: u64le(len) ++ witness).
    """
    h = CkbHasher()
    h.update(encode.raw_tx_hash(skel))
    tail = range(len(skel.inputs), len(witnesses))
    for idx in list(group) + list(tail):
        w = witnesses[idx]
        h.update(encode.pack_u64(len(w)))
        h.update(w)
    return h.digest()


def prepare_signing_entries(skel: TransactionSkeleton) -> List[SigningEntry]:
    """
    Put a 65-byte placeholder WitnessArgs on the first input of every lock
    group and compute that group's message.
    """
    groups = _lock_groups(skel)
    witnesses = list(skel.witnesses) + [b""] * max(0, len(skel.inputs) - len(skel.witnesses))
    for indices in groups.values():
        witnesses[indices[0]] = encode.pack_witness_args(lock=SIGNATURE_PLACEHOLDER)
    skel.set_witnesses(witnesses)

    entries = [
        SigningEntry(script_hash=lock_hash, index=indices[0], message=sighash_all_message(skel, indices, witnesses))
        for lock_hash, indices in groups.items()
    ]
    skel.set_signing_entries(entries)
    return entries


def apply_signatures(skel: TransactionSkeleton, signatures: Mapping[int, bytes]) -> TransactionDict:
    """
    Return the RPC form of `skel` with each signing entry's witness lock set to
    its 65-byte signature. The skeleton itself is not modified.
    """
    witnesses = list(skel.witnesses)
    for entry in skel.signing_entries:
        sig = signatures.get(entry.index)
        if sig is None:
            raise BuildError(f"missing signature for witness {entry.index}")
        if len(sig) != len(SIGNATURE_PLACEHOLDER):
            raise BuildError(f"signature for witness {entry.index} must be {len(SIGNATURE_PLACEHOLDER)} bytes")
        witnesses[entry.index] = encode.pack_witness_args(lock=bytes(sig))
    tx = skel.to_rpc_dict()
    tx["witnesses"] = [to_hex(w) for w in witnesses]
    return tx


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def validate_skeleton(skel: TransactionSkeleton) -> None:
    """Reject a skeleton that must not reach signing."""
    for i, cell in enumerate(skel.outputs):
        assert_capacity(cell, output_index=i)
    if not skel.inputs:
        raise BuildError("transaction has no inputs")
    if skel.input_capacity < skel.output_capacity:
        raise BuildError(
            f"inputs ({skel.input_capacity}) do not cover outputs ({skel.output_capacity})"
        )
    if not skel.signing_entries:
        raise BuildError("signing entries were not prepared")
    if len(skel.witnesses) < len(skel.inputs):
        raise BuildError("fewer witnesses than inputs")


__all__ = [
    "CellProvider",
    "Injection",
    "inject_capacity",
    "check_cell_dep_order",
    "sighash_all_message",
    "prepare_signing_entries",
    "apply_signatures",
    "validate_skeleton",
]
