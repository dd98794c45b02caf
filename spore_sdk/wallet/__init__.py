"""
spore_sdk.wallet
================

Owner-side collaborators of a mint run:

- MessageSigner:        anything producing a 65-byte recoverable secp256k1
                        signature over a 32-byte message (hardware wallet,
                        keystore, remote signer...). Key material never
                        enters this package.
- Secp256k1Wallet:      owner lock + signer + node; signs sealed skeletons
                        and broadcasts them.
- IndexerCellProvider:  enumerates the owner's live cells through the node's
                        indexer.
- secp256k1_lock:       the default secp256k1-blake160 lock for a 20-byte arg.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Tuple

from ..config import ScriptInfo
from ..errors import InputError
from ..rpc.ckb import DEFAULT_PAGE_SIZE, CkbNode
from ..tx.build import apply_signatures
from ..types.core import Cell, Script, TransactionDict, TransactionSkeleton

log = logging.getLogger("spore_sdk.wallet")

BLAKE160_SIZE = 20


class MessageSigner(Protocol):
    def sign_recoverable(self, message: bytes) -> bytes:
        """Return r ++ s ++ recovery_id (65 bytes) for a 32-byte message."""
        ...


def secp256k1_lock(blake160: bytes, script: ScriptInfo) -> Script:
    if len(blake160) != BLAKE160_SIZE:
        raise InputError(f"lock arg must be a {BLAKE160_SIZE}-byte blake160, got {len(blake160)} bytes")
    return script.script(args=bytes(blake160))


@dataclass
class IndexerCellProvider:
    """Live cells of a lock, paged from the indexer; only data-less cells are requested."""

    node: CkbNode
    page_size: int = DEFAULT_PAGE_SIZE
    output_data_len_range: Optional[Tuple[int, int]] = (0, 1)

    def collect_cells(self, lock: Script) -> Iterator[Cell]:
        return self.node.iter_cells(
            lock,
            page_size=self.page_size,
            output_data_len_range=self.output_data_len_range,
        )


class Secp256k1Wallet:
    def __init__(self, lock: Script, signer: MessageSigner, node: CkbNode) -> None:
        self._lock = lock
        self._signer = signer
        self._node = node

    @property
    def lock(self) -> Script:
        return self._lock

    def sign(self, skel: TransactionSkeleton) -> TransactionDict:
        signatures = {}
        for entry in skel.signing_entries:
            sig = bytes(self._signer.sign_recoverable(entry.message))
            signatures[entry.index] = sig
        log.debug("signed %d lock group(s)", len(signatures))
        return apply_signatures(skel, signatures)

    def submit(self, tx: TransactionDict) -> str:
        # node refusals and transport failures both surface as SubmissionError
        return self._node.send_transaction(tx)


__all__ = [
    "MessageSigner",
    "secp256k1_lock",
    "IndexerCellProvider",
    "Secp256k1Wallet",
]
