"""
spore_sdk
=========

Mint large files on CKB as a segmented Spore: one root Spore cell carrying the
content type and content hash, plus one binding-lifecycle-locked cell per
segment of the content.

Quick start
-----------
    from spore_sdk import MintConfig, MintContext, MintOrchestrator
    from spore_sdk.rpc import CkbNode, RpcClient
    from spore_sdk.tx.send import PollingConfirmation
    from spore_sdk.wallet import IndexerCellProvider, Secp256k1Wallet, secp256k1_lock

    cfg = MintConfig.from_env()
    node = CkbNode(RpcClient(cfg.rpc_url))
    lock = secp256k1_lock(blake160, cfg.scripts.secp256k1)
    ctx = MintContext(
        wallet=Secp256k1Wallet(lock, my_signer, node),
        cells=IndexerCellProvider(node),
        confirmations=PollingConfirmation(node),
        config=cfg,
    )
    progress = MintOrchestrator(ctx).mint(open("clip.mp4", "rb").read())
"""

from .config import MintConfig, ScriptInfo, ScriptSet
from .errors import (
    BuildError,
    ConfirmationError,
    FundingError,
    InputError,
    RpcError,
    SporeSdkError,
    SubmissionError,
    UnsupportedOperationError,
)
from .spore.mint import MintContext, MintOrchestrator, MintProgress, MintState, Operation, run_operation
from .version import __version__

__all__ = [
    "__version__",
    "MintConfig",
    "ScriptInfo",
    "ScriptSet",
    "MintContext",
    "MintOrchestrator",
    "MintProgress",
    "MintState",
    "Operation",
    "run_operation",
    "SporeSdkError",
    "RpcError",
    "InputError",
    "UnsupportedOperationError",
    "FundingError",
    "BuildError",
    "SubmissionError",
    "ConfirmationError",
]
