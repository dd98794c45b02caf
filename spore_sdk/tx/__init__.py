"""
spore_sdk.tx
============

Transaction helpers for the cell model: encode, size/fee, assemble, send.

Submodules
----------
- encode  : molecule serialization, script/transaction hashes, transaction size.
- capacity: occupied capacity, fee rate arithmetic and conservative fee estimates.
- build   : capacity injection, cell-dep ordering checks, signing entries, validation.
- send    : sign+submit with retry and the confirmation wait.

Typical usage
-------------
    from spore_sdk.tx import build, send

    skel = TransactionSkeleton()
    skel.add_output(cell)
    build.inject_capacity(skel, cells, lock=wallet.lock, fee_rate=1000)
    build.prepare_signing_entries(skel)
    build.validate_skeleton(skel)
    tx_hash = send.submit_signed(wallet, skel.seal())
    status = send.wait_for_transaction(node, tx_hash)
"""

from __future__ import annotations

from . import encode as encode
from . import capacity as capacity
from . import build as build
from . import send as send

__all__ = ["encode", "capacity", "build", "send"]
