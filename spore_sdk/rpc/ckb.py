"""
spore_sdk.rpc.ckb
=================

Typed adapter over the handful of CKB node / indexer JSON-RPC methods a mint
run needs:

- send_transaction(tx)              -> tx hash (0x-hex)
- get_transaction_status(tx_hash)   -> TxStatus (pending/committed/rejected)
- get_cells(search_key, ...)        -> one indexer page of live cells
- iter_cells(lock, ...)             -> all live cells of a lock, page by page

Node errors on `send_transaction` are surfaced as `SubmissionError` so the
submit loop can retry them (resolve, verify and outputs-validator refusals
are marked not retryable); every other RPC failure stays an `RpcError`.

Example
-------
    from spore_sdk.rpc.http import RpcClient
    from spore_sdk.rpc.ckb import CkbNode

    node = CkbNode(RpcClient("https://testnet.ckb.dev/rpc"))
    st = node.get_transaction_status("0x…")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from ..errors import JsonRpcCode, RpcError, SubmissionError
from ..types.core import Cell, Script, TransactionDict, TxStatus
from ..utils.bytes import to_quantity

log = logging.getLogger("spore_sdk.rpc.ckb")

# CKB pool/chain statuses -> our three-way view
_STATUS_MAP: Dict[str, str] = {
    "pending": "pending",
    "proposed": "pending",
    "unknown": "pending",
    "committed": "committed",
    "rejected": "rejected",
}

DEFAULT_PAGE_SIZE = 100

# send_transaction refusals a resend of the same tx cannot get past
_PERMANENT_REFUSALS = frozenset(
    {
        JsonRpcCode.TRANSACTION_FAILED_TO_RESOLVE,
        JsonRpcCode.TRANSACTION_FAILED_TO_VERIFY,
        JsonRpcCode.POOL_REJECTED_TRANSACTION_BY_OUTPUTS_VALIDATOR,
    }
)


class _Rpc(Protocol):
    def request(self, method: str, params: Any = None) -> Any: ...


@dataclass
class CellPage:
    cells: List[Cell]
    cursor: Optional[str]


def lock_search_key(lock: Script, *, output_data_len_range: Optional[Tuple[int, int]] = None) -> Dict[str, Any]:
    """Indexer search key for live cells guarded by `lock`."""
    key: Dict[str, Any] = {"script": lock.to_rpc_dict(), "script_type": "lock"}
    filt: Dict[str, Any] = {}
    if output_data_len_range is not None:
        lo, hi = output_data_len_range
        filt["output_data_len_range"] = [to_quantity(lo), to_quantity(hi)]
    if filt:
        key["filter"] = filt
    return key


class CkbNode:
    """Thin, typed facade over a JSON-RPC client speaking to a CKB node."""

    def __init__(self, rpc: _Rpc) -> None:
        self._rpc = rpc

    # --- transactions ---------------------------------------------------

    def send_transaction(self, tx: TransactionDict, *, outputs_validator: str = "passthrough") -> str:
        try:
            tx_hash = self._rpc.request("send_transaction", [tx, outputs_validator])
        except RpcError as e:
            raise SubmissionError(
                f"node refused transaction: {e.message}",
                code=e.code,
                retryable=e.code_enum not in _PERMANENT_REFUSALS,
            ) from e
        if not isinstance(tx_hash, str):
            raise SubmissionError(f"unexpected send_transaction result: {tx_hash!r}")
        log.info("submitted tx %s", tx_hash)
        return tx_hash

    def get_transaction_status(self, tx_hash: str) -> TxStatus:
        res = self._rpc.request("get_transaction", [tx_hash])
        if res is None:
            return TxStatus(tx_hash=tx_hash, status="pending", raw=None)
        if not isinstance(res, dict):
            raise RpcError(code=-32603, message="unexpected get_transaction result", method="get_transaction", data=res)
        st = res.get("tx_status") or {}
        raw_status = str(st.get("status", "unknown"))
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            log.warning("unrecognized tx status %r for %s; treating as pending", raw_status, tx_hash)
            status = "pending"
        return TxStatus(
            tx_hash=tx_hash,
            status=status,  # type: ignore[arg-type]
            reason=st.get("reason"),
            block_hash=st.get("block_hash"),
            raw=st,
        )

    # --- indexer --------------------------------------------------------

    def get_cells(
        self,
        search_key: Dict[str, Any],
        *,
        order: str = "asc",
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> CellPage:
        params: List[Any] = [search_key, order, to_quantity(limit)]
        if cursor is not None:
            params.append(cursor)
        res = self._rpc.request("get_cells", params)
        if not isinstance(res, dict):
            raise RpcError(code=-32603, message="unexpected get_cells result", method="get_cells", data=res)
        objects: Sequence[Dict[str, Any]] = res.get("objects") or []
        return CellPage(cells=[Cell.from_indexer_dict(o) for o in objects], cursor=res.get("last_cursor"))

    def iter_cells(
        self,
        lock: Script,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        output_data_len_range: Optional[Tuple[int, int]] = None,
    ) -> Iterator[Cell]:
        key = lock_search_key(lock, output_data_len_range=output_data_len_range)
        cursor: Optional[str] = None
        while True:
            page = self.get_cells(key, limit=page_size, cursor=cursor)
            yield from page.cells
            if len(page.cells) < page_size or not page.cursor:
                return
            cursor = page.cursor


__all__ = ["CkbNode", "CellPage", "lock_search_key", "DEFAULT_PAGE_SIZE"]
