from __future__ import annotations

"""
Core ledger types for the Spore SDK.

This module provides two complementary representations for cell-model objects:
- Lightweight `TypedDict` shapes mirroring CKB JSON-RPC payloads.
- Ergonomic frozen `@dataclass` models with bytes fields and converters.

The goal is to keep transport-vs-local concerns clean:
- RPC dicts use 0x-hex strings for binary fields and integer quantities.
- Dataclasses use Python `bytes` / `int` and provide `.to_rpc_dict()` /
  `from_rpc_dict()` helpers.

Serialization (molecule) and hashing live in `spore_sdk.tx.encode`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, TypedDict

from ..utils.bytes import from_hex, from_quantity, to_hex, to_quantity

# --- Common aliases ----------------------------------------------------------

Hash = str  # 0x-prefixed 32-byte hex string
Hex = str  # 0x-prefixed hex string
HashType = Literal["data", "type", "data1", "data2"]
DepType = Literal["code", "dep_group"]
StatusName = Literal["pending", "committed", "rejected"]

HASH_TYPES: Dict[str, int] = {"data": 0, "type": 1, "data1": 2, "data2": 4}
DEP_TYPES: Dict[str, int] = {"code": 0, "dep_group": 1}


# --- JSON-RPC TypedDict shapes ----------------------------------------------


class ScriptDict(TypedDict):
    code_hash: Hash
    hash_type: str
    args: Hex


class OutPointDict(TypedDict):
    tx_hash: Hash
    index: Hex


class CellDepDict(TypedDict):
    out_point: OutPointDict
    dep_type: str


class CellInputDict(TypedDict):
    since: Hex
    previous_output: OutPointDict


class CellOutputDict(TypedDict, total=False):
    capacity: Hex
    lock: ScriptDict
    type: Optional[ScriptDict]


class TxStatusDict(TypedDict, total=False):
    status: str
    block_hash: Optional[Hash]
    reason: Optional[str]


class TransactionDict(TypedDict):
    version: Hex
    cell_deps: List[CellDepDict]
    header_deps: List[Hash]
    inputs: List[CellInputDict]
    outputs: List[CellOutputDict]
    outputs_data: List[Hex]
    witnesses: List[Hex]


# --- Dataclasses (bytes-friendly) -------------------------------------------


@dataclass(slots=True, frozen=True)
class Script:
    code_hash: bytes
    hash_type: HashType
    args: bytes = b""

    def __post_init__(self) -> None:
        if len(self.code_hash) != 32:
            raise ValueError("code_hash must be 32 bytes")
        if self.hash_type not in HASH_TYPES:
            raise ValueError(f"unknown hash_type: {self.hash_type!r}")

    def to_rpc_dict(self) -> ScriptDict:
        return {
            "code_hash": to_hex(self.code_hash),
            "hash_type": self.hash_type,
            "args": to_hex(self.args),
        }

    @staticmethod
    def from_rpc_dict(d: ScriptDict) -> "Script":
        return Script(
            code_hash=from_hex(d["code_hash"]),
            hash_type=d["hash_type"],  # type: ignore[arg-type]
            args=from_hex(d.get("args", "0x")),
        )


@dataclass(slots=True, frozen=True)
class OutPoint:
    tx_hash: bytes
    index: int

    def to_rpc_dict(self) -> OutPointDict:
        return {"tx_hash": to_hex(self.tx_hash), "index": to_quantity(self.index)}

    @staticmethod
    def from_rpc_dict(d: OutPointDict) -> "OutPoint":
        return OutPoint(tx_hash=from_hex(d["tx_hash"]), index=from_quantity(d["index"]))


@dataclass(slots=True, frozen=True)
class CellDep:
    out_point: OutPoint
    dep_type: DepType = "code"

    def to_rpc_dict(self) -> CellDepDict:
        return {"out_point": self.out_point.to_rpc_dict(), "dep_type": self.dep_type}

    @staticmethod
    def from_rpc_dict(d: CellDepDict) -> "CellDep":
        return CellDep(
            out_point=OutPoint.from_rpc_dict(d["out_point"]),
            dep_type=d.get("dep_type", "code"),  # type: ignore[arg-type]
        )


@dataclass(slots=True, frozen=True)
class CellInput:
    previous_output: OutPoint
    since: int = 0

    def to_rpc_dict(self) -> CellInputDict:
        return {
            "since": to_quantity(self.since),
            "previous_output": self.previous_output.to_rpc_dict(),
        }


@dataclass(slots=True, frozen=True)
class Cell:
    """
    A cell as an output (out_point None) or as a live cell found by the indexer.
    `capacity` is in shannons.
    """

    capacity: int
    lock: Script
    type: Optional[Script] = None
    data: bytes = b""
    out_point: Optional[OutPoint] = None

    def output_dict(self) -> CellOutputDict:
        return {
            "capacity": to_quantity(self.capacity),
            "lock": self.lock.to_rpc_dict(),
            "type": self.type.to_rpc_dict() if self.type is not None else None,
        }

    @staticmethod
    def from_indexer_dict(d: Dict[str, Any]) -> "Cell":
        """Build from a `get_cells` result object ({output, output_data, out_point})."""
        output = d["output"]
        type_script = output.get("type")
        return Cell(
            capacity=from_quantity(output["capacity"]),
            lock=Script.from_rpc_dict(output["lock"]),
            type=Script.from_rpc_dict(type_script) if type_script else None,
            data=from_hex(d.get("output_data") or "0x"),
            out_point=OutPoint.from_rpc_dict(d["out_point"]),
        )


@dataclass(slots=True, frozen=True)
class TxStatus:
    """Ledger view of a transaction, normalized to pending/committed/rejected."""

    tx_hash: Hash
    status: StatusName
    reason: Optional[str] = None
    block_hash: Optional[Hash] = None
    raw: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "status": self.status,
            "reason": self.reason,
            "block_hash": self.block_hash,
            "raw": self.raw,
        }


__all__ = [
    "Hash",
    "Hex",
    "HashType",
    "DepType",
    "StatusName",
    "HASH_TYPES",
    "DEP_TYPES",
    "ScriptDict",
    "OutPointDict",
    "CellDepDict",
    "CellInputDict",
    "CellOutputDict",
    "TxStatusDict",
    "TransactionDict",
    "Script",
    "OutPoint",
    "CellDep",
    "CellInput",
    "Cell",
    "TxStatus",
]


# --- Transaction skeleton ------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SigningEntry:
    """Message a lock group must sign; `index` is the witness slot that carries the signature."""

    script_hash: bytes
    index: int
    message: bytes


@dataclass(slots=True)
class TransactionSkeleton:
    """
    Transaction under assembly.

    Mutators are append-only (plus in-place rewrites of outputs/witnesses the
    builders need) and are refused once `seal()` has been called. A sealed
    skeleton is what gets signed; signing produces a separate RPC dict and
    never mutates the skeleton, so a retry re-signs identical content.
    """

    version: int = 0
    inputs: List[Cell] = field(default_factory=list)
    outputs: List[Cell] = field(default_factory=list)
    cell_deps: List[CellDep] = field(default_factory=list)
    header_deps: List[bytes] = field(default_factory=list)
    witnesses: List[bytes] = field(default_factory=list)
    signing_entries: List[SigningEntry] = field(default_factory=list)
    sealed: bool = False

    def _ensure_open(self) -> None:
        if self.sealed:
            raise RuntimeError("transaction skeleton is sealed")

    def add_input(self, cell: Cell) -> int:
        self._ensure_open()
        if cell.out_point is None:
            raise ValueError("inputs must reference a live cell (out_point missing)")
        self.inputs.append(cell)
        return len(self.inputs) - 1

    def add_output(self, cell: Cell) -> int:
        self._ensure_open()
        self.outputs.append(cell)
        return len(self.outputs) - 1

    def replace_output(self, index: int, cell: Cell) -> None:
        self._ensure_open()
        self.outputs[index] = cell

    def add_cell_dep(self, dep: CellDep) -> int:
        self._ensure_open()
        if dep in self.cell_deps:
            return self.cell_deps.index(dep)
        self.cell_deps.append(dep)
        return len(self.cell_deps) - 1

    def set_witnesses(self, witnesses: List[bytes]) -> None:
        self._ensure_open()
        self.witnesses = list(witnesses)

    def set_signing_entries(self, entries: List[SigningEntry]) -> None:
        self._ensure_open()
        self.signing_entries = list(entries)

    def seal(self) -> "TransactionSkeleton":
        self.sealed = True
        return self

    def cell_inputs(self) -> List[CellInput]:
        return [CellInput(previous_output=c.out_point) for c in self.inputs]  # type: ignore[arg-type]

    @property
    def input_capacity(self) -> int:
        return sum(c.capacity for c in self.inputs)

    @property
    def output_capacity(self) -> int:
        return sum(c.capacity for c in self.outputs)

    @property
    def fee(self) -> int:
        """Implicit fee: inputs minus outputs."""
        return self.input_capacity - self.output_capacity

    def to_rpc_dict(self) -> TransactionDict:
        return {
            "version": to_quantity(self.version),
            "cell_deps": [d.to_rpc_dict() for d in self.cell_deps],
            "header_deps": [to_hex(h) for h in self.header_deps],
            "inputs": [i.to_rpc_dict() for i in self.cell_inputs()],
            "outputs": [c.output_dict() for c in self.outputs],
            "outputs_data": [to_hex(c.data) for c in self.outputs],
            "witnesses": [to_hex(w) for w in self.witnesses],
        }


__all__ += ["SigningEntry", "TransactionSkeleton"]
