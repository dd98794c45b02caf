"""
spore_sdk.rpc
-------------

Node access.

This package exposes:
- RpcClient: HTTP JSON-RPC client (see .http)
- CkbNode:   typed CKB node / indexer adapter (see .ckb)

Import style:

    from spore_sdk.rpc import RpcClient, CkbNode
    node = CkbNode(RpcClient(url="https://testnet.ckb.dev/rpc"))
"""

from __future__ import annotations

from .ckb import CkbNode
from .http import RpcClient

__all__ = ["RpcClient", "CkbNode"]
