"""
spore_sdk.tx.send
=================

Sign + submit sealed skeletons and wait for the ledger to settle them.

Primary entry points
--------------------
- submit_signed(wallet, skel, *, retries=3, on_signed=None) -> str
    Signs `skel` once and broadcasts it; retryable `SubmissionError`s resend
    the very same signed transaction. Returns the transaction hash.

- broadcast(wallet, signed_tx, tx_hash, *, retries=3) -> str
    The resend loop on its own, for a signed tx recovered from a journal. A
    duplicated-transaction refusal counts as success.

- wait_for_transaction(source, tx_hash, *, timeout_s=600, poll_interval_s=2) -> TxStatus
    Polls the ledger status with backoff until `committed`. A `rejected`
    status or an expired deadline raises `ConfirmationError` carrying the full
    status payload.

- PollingConfirmation(source, ...).wait(tx_hash) -> TxStatus
    The same wait packaged as an object, which is what the mint orchestrator
    depends on.

Waiting for confirmation is the only place the mint flow blocks.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from ..errors import ConfirmationError, JsonRpcCode, SubmissionError
from ..types.core import Script, TransactionDict, TransactionSkeleton, TxStatus
from ..utils.bytes import to_hex
from ..utils.retry import RetryError, retry_call
from .encode import raw_tx_hash

log = logging.getLogger("spore_sdk.tx.send")


# -----------------------------------------------------------------------------
# Minimal collaborator protocols
# -----------------------------------------------------------------------------


class StatusSource(Protocol):
    """Ledger status query (e.g. `CkbNode`)."""

    def get_transaction_status(self, tx_hash: str) -> TxStatus: ...


class _Wallet(Protocol):
    """Minimal interface expected from spore_sdk.wallet wallets."""

    @property
    def lock(self) -> Script: ...

    def sign(self, skel: TransactionSkeleton) -> TransactionDict: ...

    def submit(self, tx: TransactionDict) -> str: ...


# -----------------------------------------------------------------------------
# Submission
# -----------------------------------------------------------------------------


def submit_signed(
    wallet: _Wallet,
    skel: TransactionSkeleton,
    *,
    retries: int = 3,
    base: float = 0.5,
    max_delay: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
    on_signed: Optional[Callable[[str, TransactionDict], None]] = None,
) -> str:
    """
    Sign a sealed skeleton once and broadcast it (see `broadcast`).

    The tx hash is derived from the skeleton before anything is sent and
    handed to `on_signed(tx_hash, signed_tx)`, so callers can journal the
    transaction ahead of the broadcast whose response may be lost.
    """
    if not skel.sealed:
        raise SubmissionError("refusing to submit an unsealed transaction skeleton")

    tx_hash = to_hex(raw_tx_hash(skel))
    signed = wallet.sign(skel)
    if on_signed is not None:
        on_signed(tx_hash, signed)
    return broadcast(wallet, signed, tx_hash, retries=retries, base=base, max_delay=max_delay, sleep=sleep)


def broadcast(
    wallet: _Wallet,
    signed: TransactionDict,
    tx_hash: str,
    *,
    retries: int = 3,
    base: float = 0.5,
    max_delay: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """
    Submit an already signed transaction, retrying retryable `SubmissionError`s.

    A duplicated-transaction refusal means an earlier attempt reached the pool
    and only its response was lost; that counts as success and returns
    `tx_hash`. Raises the last `SubmissionError` once `retries` are exhausted.
    Refusals marked not retryable, and any other error, propagate immediately.
    """

    def _send() -> str:
        try:
            return wallet.submit(signed)
        except SubmissionError as e:
            if e.code == JsonRpcCode.POOL_REJECTED_DUPLICATED_TRANSACTION:
                log.info("node already holds %s", tx_hash)
                return tx_hash
            raise

    def _on_retry(attempt: int, exc: BaseException, delay: float) -> None:
        log.warning("submission failed (attempt %d), retrying in %.2fs: %s", attempt, delay, exc)

    try:
        return retry_call(
            _send,
            retries=retries,
            base=base,
            max_delay=max_delay,
            exceptions=SubmissionError,
            retry_if=lambda exc: getattr(exc, "retryable", True),
            on_retry=_on_retry,
            sleep=sleep,
        )
    except RetryError as e:
        raise e.last_exception from None


# -----------------------------------------------------------------------------
# Confirmation
# -----------------------------------------------------------------------------


def wait_for_transaction(
    source: StatusSource,
    tx_hash: str,
    *,
    timeout_s: float = 600.0,
    poll_interval_s: float = 2.0,
    max_interval_s: float = 15.0,
    backoff: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> TxStatus:
    """
    Poll until `tx_hash` is committed.

    Raises:
        ConfirmationError if the ledger rejects the tx or `timeout_s` elapses
        RpcError on status-query transport failures
    """
    deadline = clock() + float(timeout_s)
    interval = float(poll_interval_s)

    while True:
        status = source.get_transaction_status(tx_hash)
        if status.status == "committed":
            return status
        if status.status == "rejected":
            raise ConfirmationError(
                f"transaction rejected: {status.reason or 'no reason given'}",
                tx_hash=tx_hash,
                status=status.to_dict(),
            )

        now = clock()
        if now >= deadline:
            raise ConfirmationError(
                f"timed out after {timeout_s}s waiting for commitment",
                tx_hash=tx_hash,
                status=status.to_dict(),
                timeout=True,
            )
        sleep(min(interval, max(0.0, deadline - now)))
        interval = min(interval * float(backoff), float(max_interval_s))


@dataclass
class PollingConfirmation:
    """`wait(tx_hash) -> TxStatus` over a status source, with a bounded deadline."""

    source: StatusSource
    timeout_s: float = 600.0
    poll_interval_s: float = 2.0
    max_interval_s: float = 15.0
    backoff: float = 1.5
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def wait(self, tx_hash: str) -> TxStatus:
        return wait_for_transaction(
            self.source,
            tx_hash,
            timeout_s=self.timeout_s,
            poll_interval_s=self.poll_interval_s,
            max_interval_s=self.max_interval_s,
            backoff=self.backoff,
            sleep=self.sleep,
            clock=self.clock,
        )


__all__ = [
    "StatusSource",
    "submit_signed",
    "broadcast",
    "wait_for_transaction",
    "PollingConfirmation",
]
