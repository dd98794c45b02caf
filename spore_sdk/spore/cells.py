"""
Spore • Cell builders

Root (Spore) cell
    lock = owner lock
    type = Spore script, args = spore id (32 bytes)
    data = SporeData { content_type, content = content hash, cluster_id = None }

Segment cell
    lock = binding-lifecycle script, args = type hash of the root's type script
    type = none
    data = [index] ++ payload

Builders start from a zero capacity, compute the occupied capacity of the
finished cell and set the capacity to exactly that value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import ScriptInfo
from ..errors import InputError
from ..tx import encode
from ..tx.capacity import assert_capacity, with_occupied_capacity
from ..types.core import Cell, CellInput, Script
from ..utils.hash import HASH_SIZE, ckb_hash
from .segment import Segment

# Spore id placeholder until the transaction's first input is known.
# Same length as a real id so capacity and size computations do not move.
ZERO_SPORE_ID = bytes(HASH_SIZE)


@dataclass(frozen=True)
class SporeData:
    """The Spore asset record: what the content is and its digest."""

    content_type: str
    content: bytes
    cluster_id: Optional[bytes] = None

    def __post_init__(self) -> None:
        if not self.content_type:
            raise InputError("content_type must be a non-empty string")
        if len(self.content) != HASH_SIZE:
            raise InputError(f"content hash must be {HASH_SIZE} bytes, got {len(self.content)}")

    def pack(self) -> bytes:
        return encode.pack_spore_data(self.content_type, self.content, self.cluster_id)

    @classmethod
    def unpack(cls, data: bytes) -> "SporeData":
        content_type, content, cluster_id = encode.unpack_spore_data(data)
        return cls(content_type=content_type, content=content, cluster_id=cluster_id)

    @classmethod
    def for_content(cls, content: bytes, content_type: str) -> "SporeData":
        """Describe raw file bytes by their ckb-hash."""
        return cls(content_type=content_type, content=ckb_hash(content))


def derive_spore_id(first_input: CellInput, output_index: int) -> bytes:
    """Type-id style identifier: ckb_hash(CellInput ++ u64le(output_index))."""
    return ckb_hash(encode.pack_cell_input(first_input) + encode.pack_u64(output_index))


def build_spore_cell(
    data: SporeData,
    *,
    lock: Script,
    spore_script: ScriptInfo,
    spore_id: bytes = ZERO_SPORE_ID,
) -> Cell:
    if len(spore_id) != HASH_SIZE:
        raise InputError("spore id must be 32 bytes")
    cell = Cell(
        capacity=0,
        lock=lock,
        type=spore_script.script(args=spore_id),
        data=data.pack(),
    )
    cell = with_occupied_capacity(cell)
    assert_capacity(cell)
    return cell


def segment_lock(spore_type_hash: bytes, lifecycle: ScriptInfo) -> Script:
    """Binding-lifecycle lock that ties a segment cell to its Spore."""
    if len(spore_type_hash) != HASH_SIZE:
        raise InputError("spore type hash must be 32 bytes")
    return Script(code_hash=lifecycle.code_hash, hash_type="type", args=spore_type_hash)


def build_segment_cell(
    segment: Segment,
    *,
    spore_type_hash: bytes,
    lifecycle: ScriptInfo,
) -> Cell:
    cell = Cell(
        capacity=0,
        lock=segment_lock(spore_type_hash, lifecycle),
        data=segment.encode(),
    )
    cell = with_occupied_capacity(cell)
    assert_capacity(cell)
    return cell


def spore_type_hash(cell: Cell) -> bytes:
    """Type hash of a built Spore cell: the binding every segment lock carries."""
    if cell.type is None:
        raise InputError("cell has no type script")
    return encode.script_hash(cell.type)


__all__ = [
    "ZERO_SPORE_ID",
    "SporeData",
    "derive_spore_id",
    "build_spore_cell",
    "segment_lock",
    "build_segment_cell",
    "spore_type_hash",
]
