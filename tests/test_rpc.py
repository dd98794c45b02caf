from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
import respx

from conftest import FakeSigner, owner_lock
from spore_sdk.config import ScriptSet
from spore_sdk.errors import InputError, RpcError, SubmissionError
from spore_sdk.rpc.ckb import CkbNode
from spore_sdk.rpc.http import RpcClient
from spore_sdk.tx.build import prepare_signing_entries
from spore_sdk.tx.capacity import BYTE_SHANNONS
from spore_sdk.types.core import Cell, OutPoint, TransactionSkeleton
from spore_sdk.wallet import IndexerCellProvider, Secp256k1Wallet, secp256k1_lock

RPC_URL = "http://localhost:8114/rpc"


def _ok(result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def _client(**kw: Any) -> RpcClient:
    kw.setdefault("backoff_base", 0.0)
    kw.setdefault("backoff_jitter", 0.0)
    return RpcClient(RPC_URL, **kw)


def _body(call) -> dict:
    return json.loads(call.request.content)


def _indexer_cell(lock, n: int, ckb: int = 500) -> dict:
    return {
        "output": {
            "capacity": hex(ckb * BYTE_SHANNONS),
            "lock": lock.to_rpc_dict(),
            "type": None,
        },
        "output_data": "0x",
        "out_point": {"tx_hash": "0x" + f"{n:02x}" * 32, "index": hex(n)},
        "block_number": "0x10",
    }


@respx.mock
def test_request_returns_result_and_sends_jsonrpc_envelope():
    route = respx.post(RPC_URL).mock(return_value=_ok("0x2a"))
    assert _client().request("get_tip_block_number") == "0x2a"
    body = _body(route.calls[0])
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "get_tip_block_number"
    assert body["params"] == []


@respx.mock
def test_error_object_becomes_rpc_error():
    respx.post(RPC_URL).mock(
        return_value=httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -301, "message": "TransactionFailedToResolve"}}
        )
    )
    with pytest.raises(RpcError) as ei:
        _client().request("send_transaction", [{}])
    assert ei.value.code == -301
    assert ei.value.method == "send_transaction"


@respx.mock
def test_transient_http_status_is_retried():
    route = respx.post(RPC_URL).mock(side_effect=[httpx.Response(503), httpx.Response(429), _ok(True)])
    assert _client(max_retries=3).request("ping") is True
    assert route.call_count == 3


@respx.mock
def test_transport_failure_after_retries():
    route = respx.post(RPC_URL).mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(RpcError) as ei:
        _client(max_retries=2).request("ping")
    assert ei.value.is_transport
    assert route.call_count == 3


@respx.mock
def test_non_json_body():
    respx.post(RPC_URL).mock(return_value=httpx.Response(200, text="<html>"))
    with pytest.raises(RpcError):
        _client().request("ping")


@respx.mock
def test_batch_orders_results_by_id():
    def reply(request: httpx.Request) -> httpx.Response:
        calls = json.loads(request.content)
        out = [{"jsonrpc": "2.0", "id": c["id"], "result": c["method"]} for c in reversed(calls)]
        return httpx.Response(200, json=out)

    respx.post(RPC_URL).mock(side_effect=reply)
    assert _client().batch([("a", None), ("b", [1])]) == ["a", "b"]


@pytest.mark.parametrize(
    "raw,expected",
    [("pending", "pending"), ("proposed", "pending"), ("unknown", "pending"), ("committed", "committed")],
)
@respx.mock
def test_status_mapping(raw, expected):
    respx.post(RPC_URL).mock(
        return_value=_ok({"transaction": None, "tx_status": {"status": raw, "block_hash": None, "reason": None}})
    )
    st = CkbNode(_client()).get_transaction_status("0x01")
    assert st.status == expected
    assert st.raw["status"] == raw


@respx.mock
def test_rejected_status_keeps_reason():
    respx.post(RPC_URL).mock(
        return_value=_ok({"tx_status": {"status": "rejected", "reason": "Resolve failed Dead cell"}})
    )
    st = CkbNode(_client()).get_transaction_status("0x01")
    assert st.status == "rejected"
    assert st.reason == "Resolve failed Dead cell"
    assert st.is_terminal


@respx.mock
def test_unknown_transaction_is_pending():
    respx.post(RPC_URL).mock(return_value=_ok(None))
    assert CkbNode(_client()).get_transaction_status("0x01").status == "pending"


@respx.mock
def test_send_transaction_refusal_is_submission_error():
    route = respx.post(RPC_URL).mock(
        return_value=httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -1107, "message": "PoolRejectedDuplicatedTransaction"}}
        )
    )
    with pytest.raises(SubmissionError) as ei:
        CkbNode(_client()).send_transaction({"version": "0x0"})  # type: ignore[typeddict-item]
    assert ei.value.code == -1107
    assert ei.value.retryable
    assert _body(route.calls[0])["params"][1] == "passthrough"


@pytest.mark.parametrize(
    "code,message",
    [(-301, "TransactionFailedToResolve"), (-302, "TransactionFailedToVerify"), (-1102, "PoolRejectedTransactionByOutputsValidator")],
)
@respx.mock
def test_send_transaction_permanent_refusal_is_not_retryable(code, message):
    respx.post(RPC_URL).mock(
        return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}})
    )
    with pytest.raises(SubmissionError) as ei:
        CkbNode(_client()).send_transaction({"version": "0x0"})  # type: ignore[typeddict-item]
    assert ei.value.code == code
    assert ei.value.retryable is False


@respx.mock
def test_indexer_pages_until_short_page():
    lock = owner_lock()
    route = respx.post(RPC_URL).mock(
        side_effect=[
            _ok({"objects": [_indexer_cell(lock, 1), _indexer_cell(lock, 2)], "last_cursor": "0xc1"}),
            _ok({"objects": [_indexer_cell(lock, 3)], "last_cursor": "0xc2"}),
        ]
    )
    provider = IndexerCellProvider(CkbNode(_client()), page_size=2)

    cells = list(provider.collect_cells(lock))

    assert [c.out_point.index for c in cells] == [1, 2, 3]
    assert cells[0] == Cell(
        capacity=500 * BYTE_SHANNONS,
        lock=lock,
        out_point=OutPoint(tx_hash=bytes([1]) * 32, index=1),
    )
    first, second = (_body(c)["params"] for c in route.calls)
    assert first[0]["script_type"] == "lock"
    assert first[0]["filter"] == {"output_data_len_range": ["0x0", "0x1"]}
    assert first[2] == "0x2"
    assert len(first) == 3
    assert second[3] == "0xc1"


@respx.mock
def test_wallet_signs_entries_and_broadcasts():
    lock = owner_lock()
    respx.post(RPC_URL).mock(return_value=_ok("0x" + "ee" * 32))
    signer = FakeSigner()
    wallet = Secp256k1Wallet(lock, signer, CkbNode(_client()))

    skel = TransactionSkeleton()
    skel.add_output(Cell(capacity=100 * BYTE_SHANNONS, lock=lock))
    skel.add_input(Cell(capacity=200 * BYTE_SHANNONS, lock=lock, out_point=OutPoint(b"\x01" * 32, 0)))
    entries = prepare_signing_entries(skel)

    tx = wallet.sign(skel.seal())
    assert signer.messages == [entries[0].message]
    assert wallet.submit(tx) == "0x" + "ee" * 32


@respx.mock
def test_wallet_wraps_transport_failure():
    respx.post(RPC_URL).mock(side_effect=httpx.ConnectError("down"))
    wallet = Secp256k1Wallet(owner_lock(), FakeSigner(), CkbNode(_client(max_retries=0)))
    with pytest.raises(SubmissionError):
        wallet.submit({"version": "0x0"})  # type: ignore[arg-type]


def test_secp256k1_lock_needs_20_bytes():
    with pytest.raises(InputError):
        secp256k1_lock(b"\x00" * 19, ScriptSet().secp256k1)
