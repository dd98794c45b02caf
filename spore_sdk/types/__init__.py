"""
spore_sdk.types
===============

Cell-model dataclasses and their JSON-RPC dict shapes.
"""

from .core import (  # noqa: F401
    Cell,
    CellDep,
    CellInput,
    Hash,
    Hex,
    OutPoint,
    Script,
    SigningEntry,
    TransactionDict,
    TransactionSkeleton,
    TxStatus,
)

__all__ = [
    "Cell",
    "CellDep",
    "CellInput",
    "Hash",
    "Hex",
    "OutPoint",
    "Script",
    "SigningEntry",
    "TransactionDict",
    "TransactionSkeleton",
    "TxStatus",
]
