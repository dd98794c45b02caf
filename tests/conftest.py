"""
Shared pytest fixtures and fakes:
- deterministic signer (no key material)
- in-memory ledger acting as node + indexer: accepts, rejects or transiently
  refuses submissions, tracks live cells and tx statuses
- mint context builder wired with the real wallet / confirmation code
"""
from __future__ import annotations

import typing as t

import pytest

from spore_sdk.config import MintConfig, ScriptSet
from spore_sdk.errors import JsonRpcCode, SubmissionError
from spore_sdk.spore.mint import MintContext
from spore_sdk.tx.capacity import BYTE_SHANNONS
from spore_sdk.tx.encode import rpc_tx_hash
from spore_sdk.tx.send import PollingConfirmation
from spore_sdk.types.core import Cell, OutPoint, Script, TransactionDict, TxStatus
from spore_sdk.utils.bytes import from_hex, from_quantity, to_hex
from spore_sdk.utils.hash import ckb_hash
from spore_sdk.wallet import Secp256k1Wallet, secp256k1_lock

OWNER_ARG = bytes.fromhex("11" * 20)


def no_sleep(_seconds: float) -> None:
    return None


class FakeSigner:
    """65-byte 'signatures' derived from the message; records what it signed."""

    def __init__(self) -> None:
        self.messages: list[bytes] = []

    def sign_recoverable(self, message: bytes) -> bytes:
        self.messages.append(message)
        h = ckb_hash(message)
        return h + h + b"\x01"


def owner_lock(arg: bytes = OWNER_ARG) -> Script:
    return secp256k1_lock(arg, ScriptSet().secp256k1)


def capacity_cell(lock: Script, ckb: int, n: int) -> Cell:
    return Cell(
        capacity=ckb * BYTE_SHANNONS,
        lock=lock,
        out_point=OutPoint(tx_hash=bytes([n % 256]) * 32, index=n),
    )


class FakeLedger:
    """
    Node + indexer stand-in.

    `reject`        ordinals (0-based, accepted submissions only) whose tx ends up rejected
    `fail_submits`  ordinal -> number of times that submission is refused first
    `lose_responses` ordinal -> number of responses lost once that submission is
                    accepted (the acceptance itself included); resending an
                    accepted tx afterwards gets the duplicated-tx refusal

    Transaction hashes are the real raw-transaction hashes.
    """

    def __init__(
        self,
        cells: t.Iterable[Cell] = (),
        *,
        reject: t.Iterable[int] = (),
        fail_submits: t.Optional[t.Dict[int, int]] = None,
        lose_responses: t.Optional[t.Dict[int, int]] = None,
    ) -> None:
        self.live: t.Dict[OutPoint, Cell] = {c.out_point: c for c in cells if c.out_point is not None}
        self.reject = set(reject)
        self.fail_submits = dict(fail_submits or {})
        self.lose_responses = dict(lose_responses or {})
        self.outage = 0
        self.attempts: list[TransactionDict] = []
        self.accepted: list[TransactionDict] = []
        self.statuses: t.Dict[str, str] = {}
        self.events: list[tuple[str, str]] = []

    # node
    def send_transaction(self, tx: TransactionDict) -> str:
        self.attempts.append(tx)
        tx_hash = to_hex(rpc_tx_hash(tx))
        if self.outage > 0:
            self.outage -= 1
            raise SubmissionError("connection reset", code=JsonRpcCode.TRANSPORT)
        if self.statuses.get(tx_hash, "rejected") != "rejected":
            raise SubmissionError(
                "PoolRejectedDuplicatedTransaction",
                code=JsonRpcCode.POOL_REJECTED_DUPLICATED_TRANSACTION,
            )
        n = len(self.accepted)
        if self.fail_submits.get(n, 0) > 0:
            self.fail_submits[n] -= 1
            raise SubmissionError("node busy")
        self.accepted.append(tx)
        rejected = n in self.reject
        self.statuses[tx_hash] = "rejected" if rejected else "committed"
        if not rejected:
            for i in tx["inputs"]:
                op = i["previous_output"]
                self.live.pop(OutPoint(tx_hash=from_hex(op["tx_hash"]), index=from_quantity(op["index"])), None)
        self.events.append(("submit", tx_hash))
        if n in self.lose_responses:
            self.outage = self.lose_responses.pop(n) - 1
            raise SubmissionError("connection reset", code=JsonRpcCode.TRANSPORT)
        return tx_hash

    def get_transaction_status(self, tx_hash: str) -> TxStatus:
        self.events.append(("status", tx_hash))
        status = self.statuses.get(tx_hash, "pending")
        reason = "ValidationFailure: lock script" if status == "rejected" else None
        return TxStatus(tx_hash=tx_hash, status=status, reason=reason)  # type: ignore[arg-type]

    # indexer
    def collect_cells(self, lock: Script) -> t.Iterator[Cell]:
        return iter([c for c in self.live.values() if c.lock == lock])


def make_context(
    ledger: FakeLedger,
    *,
    signer: t.Optional[FakeSigner] = None,
    segment_size: int = 100,
    confirmations: t.Any = None,
) -> MintContext:
    lock = owner_lock()
    return MintContext(
        wallet=Secp256k1Wallet(lock, signer or FakeSigner(), ledger),  # type: ignore[arg-type]
        cells=ledger,
        confirmations=confirmations or PollingConfirmation(ledger, sleep=no_sleep),
        config=MintConfig(segment_size=segment_size),
        sleep=no_sleep,
    )


@pytest.fixture
def lock() -> Script:
    return owner_lock()


@pytest.fixture
def funded_ledger(lock: Script) -> FakeLedger:
    return FakeLedger([capacity_cell(lock, 1_000, n) for n in range(1, 11)])
