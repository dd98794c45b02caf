"""
spore_sdk.tx.encode
===================

Canonical molecule serialization for the cell-model types, plus the hashes
derived from it.

Molecule layouts used here
--------------------------
- struct : fields concatenated, fixed size (OutPoint, CellInput, CellDep)
- fixvec : u32le item count ++ items (Bytes, CellDepVec, CellInputVec, Byte32Vec)
- dynvec : u32le total size ++ u32le offsets ++ items (CellOutputVec, BytesVec)
- table  : same header as dynvec, one slot per field (Script, CellOutput, ...)
- option : empty when absent, the inner value otherwise

Everything is little-endian. The serialized bytes are what the ledger hashes
(type hash, transaction hash) and what it charges fees for (transaction size).
"""

from __future__ import annotations

import struct
from typing import List, Optional, Sequence

from ..types.core import (
    DEP_TYPES,
    HASH_TYPES,
    Cell,
    CellDep,
    CellInput,
    OutPoint,
    Script,
    TransactionDict,
    TransactionSkeleton,
)
from ..utils.bytes import from_hex, from_quantity
from ..utils.hash import ckb_hash

# Extra bytes a transaction occupies in a block beyond its own serialization
# (its offset slot in the block's transaction dynvec).
TX_SERIALIZED_OVERHEAD = 4


# -----------------------------------------------------------------------------
# Primitives
# -----------------------------------------------------------------------------


def pack_u32(n: int) -> bytes:
    return struct.pack("<I", int(n))


def pack_u64(n: int) -> bytes:
    return struct.pack("<Q", int(n))


def pack_bytes(b: bytes) -> bytes:
    """molecule `Bytes` (fixvec<byte>)."""
    return pack_u32(len(b)) + bytes(b)


def pack_fixvec(items: Sequence[bytes]) -> bytes:
    return pack_u32(len(items)) + b"".join(items)


def pack_dynvec(items: Sequence[bytes]) -> bytes:
    header = 4 * (len(items) + 1)
    if not items:
        return pack_u32(header)
    offsets: List[int] = []
    cursor = header
    for item in items:
        offsets.append(cursor)
        cursor += len(item)
    return pack_u32(cursor) + b"".join(pack_u32(o) for o in offsets) + b"".join(items)


def pack_table(fields: Sequence[bytes]) -> bytes:
    # A table is laid out exactly like a dynvec of its fields.
    return pack_dynvec(fields)


def pack_option(value: Optional[bytes]) -> bytes:
    return b"" if value is None else value


def unpack_table(buf: bytes, field_count: int) -> List[bytes]:
    """Split a serialized table into raw field slices (no trailing-field tolerance)."""
    if len(buf) < 4:
        raise ValueError("table too short")
    total = struct.unpack_from("<I", buf, 0)[0]
    if total != len(buf):
        raise ValueError(f"table size mismatch: header={total} actual={len(buf)}")
    if field_count == 0:
        return []
    offsets = [struct.unpack_from("<I", buf, 4 + 4 * i)[0] for i in range(field_count)]
    if offsets[0] != 4 * (field_count + 1):
        raise ValueError("unexpected field count in table")
    offsets.append(total)
    return [buf[offsets[i]:offsets[i + 1]] for i in range(field_count)]


def unpack_bytes(buf: bytes) -> bytes:
    if len(buf) < 4:
        raise ValueError("Bytes too short")
    n = struct.unpack_from("<I", buf, 0)[0]
    if len(buf) != 4 + n:
        raise ValueError("Bytes length mismatch")
    return buf[4:]


# -----------------------------------------------------------------------------
# Ledger types
# -----------------------------------------------------------------------------


def pack_script(script: Script) -> bytes:
    return pack_table(
        [
            script.code_hash,
            bytes([HASH_TYPES[script.hash_type]]),
            pack_bytes(script.args),
        ]
    )


def pack_script_opt(script: Optional[Script]) -> bytes:
    return pack_option(pack_script(script) if script is not None else None)


def pack_out_point(op: OutPoint) -> bytes:
    if len(op.tx_hash) != 32:
        raise ValueError("out point tx_hash must be 32 bytes")
    return op.tx_hash + pack_u32(op.index)


def pack_cell_input(ci: CellInput) -> bytes:
    return pack_u64(ci.since) + pack_out_point(ci.previous_output)


def pack_cell_dep(dep: CellDep) -> bytes:
    return pack_out_point(dep.out_point) + bytes([DEP_TYPES[dep.dep_type]])


def pack_cell_output(cell: Cell) -> bytes:
    return pack_table(
        [
            pack_u64(cell.capacity),
            pack_script(cell.lock),
            pack_script_opt(cell.type),
        ]
    )


def pack_witness_args(
    lock: Optional[bytes] = None,
    input_type: Optional[bytes] = None,
    output_type: Optional[bytes] = None,
) -> bytes:
    """molecule `WitnessArgs` table of three `BytesOpt` fields."""
    return pack_table(
        [
            pack_option(pack_bytes(lock) if lock is not None else None),
            pack_option(pack_bytes(input_type) if input_type is not None else None),
            pack_option(pack_bytes(output_type) if output_type is not None else None),
        ]
    )


def _pack_raw(
    version: int,
    cell_deps: Sequence[CellDep],
    header_deps: Sequence[bytes],
    inputs: Sequence[CellInput],
    outputs: Sequence[Cell],
) -> bytes:
    return pack_table(
        [
            pack_u32(version),
            pack_fixvec([pack_cell_dep(d) for d in cell_deps]),
            pack_fixvec([bytes(h) for h in header_deps]),
            pack_fixvec([pack_cell_input(i) for i in inputs]),
            pack_dynvec([pack_cell_output(c) for c in outputs]),
            pack_dynvec([pack_bytes(c.data) for c in outputs]),
        ]
    )


def pack_raw_transaction(skel: TransactionSkeleton) -> bytes:
    return _pack_raw(skel.version, skel.cell_deps, skel.header_deps, skel.cell_inputs(), skel.outputs)


def pack_raw_transaction_rpc(tx: TransactionDict) -> bytes:
    """Raw transaction from its JSON-RPC form, e.g. a signed tx read back from a journal."""
    outputs = [
        Cell(
            capacity=from_quantity(o["capacity"]),
            lock=Script.from_rpc_dict(o["lock"]),
            type=Script.from_rpc_dict(o["type"]) if o.get("type") else None,
            data=from_hex(data),
        )
        for o, data in zip(tx["outputs"], tx["outputs_data"])
    ]
    inputs = [
        CellInput(
            previous_output=OutPoint.from_rpc_dict(i["previous_output"]),
            since=from_quantity(i["since"]),
        )
        for i in tx["inputs"]
    ]
    return _pack_raw(
        from_quantity(tx["version"]),
        [CellDep.from_rpc_dict(d) for d in tx["cell_deps"]],
        [from_hex(h) for h in tx["header_deps"]],
        inputs,
        outputs,
    )


def pack_transaction(skel: TransactionSkeleton, witnesses: Optional[Sequence[bytes]] = None) -> bytes:
    ws = skel.witnesses if witnesses is None else witnesses
    return pack_table(
        [
            pack_raw_transaction(skel),
            pack_dynvec([pack_bytes(w) for w in ws]),
        ]
    )


# -----------------------------------------------------------------------------
# Spore data
# -----------------------------------------------------------------------------


def pack_spore_data(content_type: str, content: bytes, cluster_id: Optional[bytes] = None) -> bytes:
    """molecule `SporeData { content_type: Bytes, content: Bytes, cluster_id: BytesOpt }`."""
    return pack_table(
        [
            pack_bytes(content_type.encode("utf-8")),
            pack_bytes(content),
            pack_option(pack_bytes(cluster_id) if cluster_id is not None else None),
        ]
    )


def unpack_spore_data(buf: bytes) -> tuple[str, bytes, Optional[bytes]]:
    ct, content, cluster = unpack_table(bytes(buf), 3)
    return (
        unpack_bytes(ct).decode("utf-8"),
        unpack_bytes(content),
        unpack_bytes(cluster) if cluster else None,
    )


# -----------------------------------------------------------------------------
# Hashes & sizes
# -----------------------------------------------------------------------------


def script_hash(script: Script) -> bytes:
    """Type hash of a script: ckb-hash of its molecule serialization."""
    return ckb_hash(pack_script(script))


def raw_tx_hash(skel: TransactionSkeleton) -> bytes:
    return ckb_hash(pack_raw_transaction(skel))


def rpc_tx_hash(tx: TransactionDict) -> bytes:
    """Hash of a JSON-RPC transaction; equals `raw_tx_hash` of the skeleton it came from."""
    return ckb_hash(pack_raw_transaction_rpc(tx))


def transaction_size(skel: TransactionSkeleton, witnesses: Optional[Sequence[bytes]] = None) -> int:
    """Size the ledger charges fees for: serialized transaction plus its block slot."""
    return len(pack_transaction(skel, witnesses)) + TX_SERIALIZED_OVERHEAD


__all__ = [
    "TX_SERIALIZED_OVERHEAD",
    "pack_u32",
    "pack_u64",
    "pack_bytes",
    "pack_fixvec",
    "pack_dynvec",
    "pack_table",
    "pack_option",
    "unpack_table",
    "unpack_bytes",
    "pack_script",
    "pack_script_opt",
    "pack_out_point",
    "pack_cell_input",
    "pack_cell_dep",
    "pack_cell_output",
    "pack_witness_args",
    "pack_raw_transaction",
    "pack_raw_transaction_rpc",
    "pack_transaction",
    "pack_spore_data",
    "unpack_spore_data",
    "script_hash",
    "raw_tx_hash",
    "rpc_tx_hash",
    "transaction_size",
]
