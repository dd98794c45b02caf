from __future__ import annotations

import pytest

from conftest import no_sleep
from spore_sdk.errors import ConfirmationError, JsonRpcCode, SubmissionError
from spore_sdk.tx.encode import raw_tx_hash
from spore_sdk.tx.send import PollingConfirmation, broadcast, submit_signed, wait_for_transaction
from spore_sdk.types.core import TransactionSkeleton, TxStatus
from spore_sdk.utils.bytes import to_hex


class ScriptedStatus:
    def __init__(self, *statuses: str) -> None:
        self.statuses = list(statuses)
        self.calls = 0

    def get_transaction_status(self, tx_hash: str) -> TxStatus:
        self.calls += 1
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return TxStatus(tx_hash=tx_hash, status=status, reason="bad script" if status == "rejected" else None)  # type: ignore[arg-type]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, s: float) -> None:
        self.sleeps.append(s)
        self.now += s


def test_wait_returns_once_committed():
    clock = FakeClock()
    src = ScriptedStatus("pending", "pending", "committed")
    st = wait_for_transaction(src, "0xab", poll_interval_s=2, backoff=2, sleep=clock.sleep, clock=clock)
    assert st.status == "committed"
    assert src.calls == 3
    assert clock.sleeps == [2, 4]


def test_wait_raises_on_rejection_with_payload():
    with pytest.raises(ConfirmationError) as ei:
        wait_for_transaction(ScriptedStatus("rejected"), "0xab", sleep=no_sleep)
    err = ei.value
    assert err.tx_hash == "0xab"
    assert err.timeout is False
    assert err.status["status"] == "rejected"
    assert err.status["reason"] == "bad script"


def test_wait_times_out():
    clock = FakeClock()
    with pytest.raises(ConfirmationError) as ei:
        wait_for_transaction(
            ScriptedStatus("pending"),
            "0xab",
            timeout_s=10,
            poll_interval_s=3,
            max_interval_s=3,
            sleep=clock.sleep,
            clock=clock,
        )
    assert ei.value.timeout is True
    assert clock.now == pytest.approx(10)


def test_polling_confirmation_object():
    conf = PollingConfirmation(ScriptedStatus("pending", "committed"), sleep=no_sleep)
    assert conf.wait("0x01").status == "committed"


class FlakyWallet:
    lock = None

    def __init__(self, failures: int, error: Exception = SubmissionError("busy")) -> None:
        self.failures = failures
        self.error = error
        self.signed: list[object] = []
        self.submitted: list[object] = []

    def sign(self, skel):
        tx = skel.to_rpc_dict()
        self.signed.append(tx)
        return tx

    def submit(self, tx):
        self.submitted.append(tx)
        if self.failures:
            self.failures -= 1
            raise self.error
        return "0xfeed"


def test_submit_signs_once_and_resends_the_same_tx():
    wallet = FlakyWallet(failures=2)
    skel = TransactionSkeleton().seal()
    assert submit_signed(wallet, skel, retries=3, sleep=no_sleep) == "0xfeed"
    assert len(wallet.signed) == 1
    assert wallet.submitted == [wallet.signed[0]] * 3


def test_submit_exhaustion_reraises_submission_error():
    wallet = FlakyWallet(failures=10)
    with pytest.raises(SubmissionError):
        submit_signed(wallet, TransactionSkeleton().seal(), retries=2, sleep=no_sleep)
    assert len(wallet.submitted) == 3


def test_submit_does_not_retry_other_errors():
    wallet = FlakyWallet(failures=1, error=ValueError("signer broke"))
    with pytest.raises(ValueError):
        submit_signed(wallet, TransactionSkeleton().seal(), sleep=no_sleep)
    assert len(wallet.submitted) == 1


def test_submit_stops_on_a_refusal_that_cannot_succeed():
    refusal = SubmissionError("TransactionFailedToVerify", code=JsonRpcCode.TRANSACTION_FAILED_TO_VERIFY, retryable=False)
    wallet = FlakyWallet(failures=5, error=refusal)
    with pytest.raises(SubmissionError) as ei:
        submit_signed(wallet, TransactionSkeleton().seal(), retries=3, sleep=no_sleep)
    assert ei.value is refusal
    assert len(wallet.submitted) == 1


def test_duplicate_refusal_means_already_submitted():
    duplicate = SubmissionError("PoolRejectedDuplicatedTransaction", code=JsonRpcCode.POOL_REJECTED_DUPLICATED_TRANSACTION)
    wallet = FlakyWallet(failures=1, error=duplicate)
    skel = TransactionSkeleton().seal()
    journaled: list[tuple[str, object]] = []

    tx_hash = submit_signed(wallet, skel, sleep=no_sleep, on_signed=lambda h, tx: journaled.append((h, tx)))

    assert tx_hash == to_hex(raw_tx_hash(skel))
    assert journaled == [(tx_hash, wallet.signed[0])]
    assert len(wallet.submitted) == 1


def test_broadcast_resends_a_recovered_tx():
    wallet = FlakyWallet(failures=1)
    tx = TransactionSkeleton().seal().to_rpc_dict()
    assert broadcast(wallet, tx, "0xabc", sleep=no_sleep) == "0xfeed"
    assert wallet.submitted == [tx, tx]
    assert wallet.signed == []


def test_submit_requires_sealed_skeleton():
    with pytest.raises(SubmissionError):
        submit_signed(FlakyWallet(0), TransactionSkeleton(), sleep=no_sleep)
