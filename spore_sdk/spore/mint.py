"""
Spore • Mint orchestrator

Drives one segmented mint end to end:

    plan segments ──► root tx: assemble → sign+submit → wait committed
                 └──► for each segment, strictly in order:
                        assemble → sign+submit → wait committed

Each segment cell is locked by the binding-lifecycle script whose args are the
root's type hash, so no segment tx is built before the root is committed.

Progress is tracked in a `MintProgress` record that is handed to an
`on_progress` callback after every state transition (the CLI journals it to
disk). Passing a previous record back resumes the run: a committed root and
committed segments are skipped, and a tx that was submitted but not yet seen
committed is waited on again rather than rebuilt. Each signed tx is journaled
before its first broadcast, so one whose acknowledgment never arrived is
resent as-is (the node answers a duplicate with a refusal that counts as
success) instead of being built a second time.

Any failure marks the record FAILED, stores the error text and re-raises the
original typed error with `.progress` attached.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Union

from ..config import MintConfig
from ..errors import (
    BuildError,
    ConfirmationError,
    InputError,
    SporeSdkError,
    SubmissionError,
    UnsupportedOperationError,
)
from ..logging import bind, trace_scope
from ..tx.build import CellProvider
from ..tx.encode import rpc_tx_hash
from ..tx.send import broadcast, submit_signed
from ..types.core import OutPoint, Script, TransactionDict, TransactionSkeleton, TxStatus
from ..utils.bytes import to_hex
from .assemble import SPORE_OUTPUT_INDEX, assemble_segment_mint, assemble_spore_mint
from .cells import SporeData, spore_type_hash
from .segment import Segment, plan_segments

log = logging.getLogger("spore_sdk.spore.mint")


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------


class Wallet(Protocol):
    @property
    def lock(self) -> Script: ...

    def sign(self, skel: TransactionSkeleton) -> TransactionDict: ...

    def submit(self, tx: TransactionDict) -> str: ...


class Confirmations(Protocol):
    def wait(self, tx_hash: str) -> TxStatus: ...


@dataclass
class MintContext:
    """Everything a mint run talks to. Passed explicitly; nothing is global."""

    wallet: Wallet
    cells: CellProvider
    confirmations: Confirmations
    config: MintConfig = field(default_factory=MintConfig)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)


# -----------------------------------------------------------------------------
# Progress
# -----------------------------------------------------------------------------


class MintState(str, Enum):
    IDLE = "idle"
    ROOT_SUBMITTED = "root_submitted"
    ROOT_CONFIRMED = "root_confirmed"
    SEGMENT_SUBMITTED = "segment_submitted"
    SEGMENT_CONFIRMED = "segment_confirmed"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MintProgress:
    """Furthest point a mint run reached; JSON round-trippable for journaling."""

    content_hash: str
    content_type: str
    segment_count: int
    segment_size: int
    state: MintState = MintState.IDLE
    spore_id: Optional[str] = None
    spore_type_hash: Optional[str] = None
    root_tx_hash: Optional[str] = None
    root_confirmed: bool = False
    confirmed_segments: int = 0
    segment_tx_hashes: List[str] = field(default_factory=list)
    # tx of the segment at index `confirmed_segments`, submitted but not yet seen committed
    pending_tx_hash: Optional[str] = None
    # signed tx behind root_tx_hash or pending_tx_hash whose broadcast was never acknowledged
    unsent_tx: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state is MintState.DONE

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["state"] = self.state.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MintProgress":
        try:
            return cls(
                content_hash=str(d["content_hash"]),
                content_type=str(d["content_type"]),
                segment_count=int(d["segment_count"]),
                segment_size=int(d["segment_size"]),
                state=MintState(d.get("state", MintState.IDLE.value)),
                spore_id=d.get("spore_id"),
                spore_type_hash=d.get("spore_type_hash"),
                root_tx_hash=d.get("root_tx_hash"),
                root_confirmed=bool(d.get("root_confirmed", False)),
                confirmed_segments=int(d.get("confirmed_segments", 0)),
                segment_tx_hashes=list(d.get("segment_tx_hashes") or []),
                pending_tx_hash=d.get("pending_tx_hash"),
                unsent_tx=_optional_dict(d.get("unsent_tx")),
                error=d.get("error"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InputError(f"invalid mint progress record: {e}") from e

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "MintProgress":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise InputError(f"mint progress is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InputError("mint progress must be a JSON object")
        return cls.from_dict(data)


ProgressCallback = Callable[[MintProgress], None]


def _optional_dict(value: Any) -> Optional[Dict[str, Any]]:
    if value is not None and not isinstance(value, dict):
        raise TypeError(f"expected an object, got {type(value).__name__}")
    return value


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------


class MintOrchestrator:
    def __init__(self, ctx: MintContext) -> None:
        self.ctx = ctx
        self._on_progress: Optional[ProgressCallback] = None
        # out points consumed by txs built in this run
        self._spent: Set[OutPoint] = set()

    def mint(
        self,
        content: bytes,
        *,
        content_type: Optional[str] = None,
        progress: Optional[MintProgress] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MintProgress:
        cfg = self.ctx.config
        content_type = content_type or cfg.content_type
        plan = plan_segments(content, cfg.segment_size)
        data = SporeData.for_content(bytes(content), content_type)
        content_hash = to_hex(data.content)

        if progress is None:
            progress = MintProgress(
                content_hash=content_hash,
                content_type=content_type,
                segment_count=len(plan),
                segment_size=cfg.segment_size,
            )
        else:
            self._check_resumable(progress, content_hash, content_type, len(plan), cfg.segment_size)
            progress.error = None

        self._on_progress = on_progress
        self._spent = set()

        with trace_scope():
            bind(content_hash=content_hash)
            try:
                type_hash = self._mint_root(data, progress)
                for segment in plan:
                    if segment.index < progress.confirmed_segments:
                        continue
                    self._mint_segment(segment, type_hash, progress)
                self._transition(progress, MintState.DONE)
                log.info("mint complete: %d segment(s)", progress.segment_count)
            except Exception as err:
                progress.error = str(err)
                self._transition(progress, MintState.FAILED)
                log.error("mint failed in %s: %s", type(err).__name__, err)
                if isinstance(err, SporeSdkError):
                    err.progress = progress
                raise
        return progress

    # --- steps ------------------------------------------------------------

    def _mint_root(self, data: SporeData, progress: MintProgress) -> bytes:
        if progress.root_confirmed and progress.spore_type_hash:
            bind(spore_id=progress.spore_id)
            log.info("root already committed; skipping")
            return bytes.fromhex(progress.spore_type_hash[2:])

        if progress.root_tx_hash is None:
            skel = assemble_spore_mint(data, ctx=self.ctx, exclude=frozenset(self._spent))
            root = skel.outputs[SPORE_OUTPUT_INDEX]
            if root.type is None:
                raise BuildError("root output has no Spore type script", output_index=SPORE_OUTPUT_INDEX)
            self._spend(skel)
            progress.spore_id = to_hex(root.type.args)
            progress.spore_type_hash = to_hex(spore_type_hash(root))
            bind(spore_id=progress.spore_id)

            tx_hash = self._submit(skel, progress, hash_field="root_tx_hash", forget=self._forget_root)
            self._transition(progress, MintState.ROOT_SUBMITTED, tx_hash=tx_hash)
        else:
            bind(spore_id=progress.spore_id)
            log.info("resuming wait on submitted root %s", progress.root_tx_hash)
            self._resend(progress, hash_field="root_tx_hash")

        root_tx_hash = progress.root_tx_hash
        if root_tx_hash is None or progress.spore_type_hash is None:
            raise BuildError("root transaction was not recorded in the mint progress")
        self._wait(root_tx_hash, progress, forget=self._forget_root)
        progress.root_confirmed = True
        self._transition(progress, MintState.ROOT_CONFIRMED, tx_hash=root_tx_hash)
        return bytes.fromhex(progress.spore_type_hash[2:])

    def _mint_segment(self, segment: Segment, type_hash: bytes, progress: MintProgress) -> None:
        bind(segment=segment.index)
        if progress.pending_tx_hash is None:
            skel = assemble_segment_mint(
                segment,
                spore_type_hash=type_hash,
                ctx=self.ctx,
                exclude=frozenset(self._spent),
            )
            self._spend(skel)
            tx_hash = self._submit(skel, progress, hash_field="pending_tx_hash", forget=self._forget_pending)
            self._transition(progress, MintState.SEGMENT_SUBMITTED, tx_hash=tx_hash)
        else:
            log.info("resuming wait on submitted segment %s", progress.pending_tx_hash)
            self._resend(progress, hash_field="pending_tx_hash")

        tx_hash = progress.pending_tx_hash
        if tx_hash is None:
            raise BuildError(f"segment {segment.index} transaction was not recorded in the mint progress")
        self._wait(tx_hash, progress, forget=self._forget_pending)
        progress.segment_tx_hashes.append(tx_hash)
        progress.confirmed_segments += 1
        progress.pending_tx_hash = None
        self._transition(progress, MintState.SEGMENT_CONFIRMED, tx_hash=tx_hash)

    # --- helpers ----------------------------------------------------------

    def _submit(
        self,
        skel: TransactionSkeleton,
        progress: MintProgress,
        *,
        hash_field: str,
        forget: Callable[[MintProgress], None],
    ) -> str:
        # The signed tx is journaled before the first broadcast: if every
        # response is lost, a resume resends it instead of building another.
        def _journal(tx_hash: str, signed: TransactionDict) -> None:
            setattr(progress, hash_field, tx_hash)
            progress.unsent_tx = dict(signed)
            self._notify(progress)

        try:
            tx_hash = submit_signed(
                self.ctx.wallet,
                skel,
                retries=self.ctx.config.submit_retries,
                sleep=self.ctx.sleep,
                on_signed=_journal,
            )
        except SubmissionError as e:
            if not e.retryable:
                forget(progress)
            raise
        setattr(progress, hash_field, tx_hash)
        progress.unsent_tx = None
        return tx_hash

    def _resend(self, progress: MintProgress, *, hash_field: str) -> None:
        signed = progress.unsent_tx
        if signed is None:
            return
        recorded = to_hex(rpc_tx_hash(signed))  # type: ignore[arg-type]
        log.info("re-broadcasting unacknowledged tx %s", recorded)
        try:
            tx_hash = broadcast(
                self.ctx.wallet,
                signed,  # type: ignore[arg-type]
                recorded,
                retries=self.ctx.config.submit_retries,
                sleep=self.ctx.sleep,
            )
        except SubmissionError as e:
            if e.retryable:
                raise
            # already committed, or never landed; the status wait tells which
            log.warning("re-broadcast refused, waiting on %s anyway: %s", recorded, e)
            tx_hash = recorded
        setattr(progress, hash_field, tx_hash)
        progress.unsent_tx = None

    def _wait(self, tx_hash: str, progress: MintProgress, *, forget: Callable[[MintProgress], None]) -> TxStatus:
        try:
            return self.ctx.confirmations.wait(tx_hash)
        except ConfirmationError as e:
            # A rejected tx never lands; a later resume has to rebuild it.
            # A timed-out one may still commit, so its hash is kept for re-waiting.
            if not e.timeout:
                forget(progress)
            raise

    @staticmethod
    def _forget_root(progress: MintProgress) -> None:
        progress.root_tx_hash = None
        progress.spore_id = None
        progress.spore_type_hash = None
        progress.unsent_tx = None

    @staticmethod
    def _forget_pending(progress: MintProgress) -> None:
        progress.pending_tx_hash = None
        progress.unsent_tx = None

    def _spend(self, skel: TransactionSkeleton) -> None:
        for cell in skel.inputs:
            if cell.out_point is not None:
                self._spent.add(cell.out_point)

    def _notify(self, progress: MintProgress) -> None:
        if self._on_progress is not None:
            self._on_progress(progress)

    def _transition(self, progress: MintProgress, state: MintState, **fields: Any) -> None:
        progress.state = state
        log.info("mint state -> %s", state.value, extra={"state": state.value, **fields})
        self._notify(progress)

    @staticmethod
    def _check_resumable(
        progress: MintProgress,
        content_hash: str,
        content_type: str,
        count: int,
        segment_size: int,
    ) -> None:
        if progress.content_hash != content_hash:
            raise InputError("progress record belongs to different content")
        if progress.content_type != content_type:
            raise InputError(
                f"progress record was minted as {progress.content_type!r}, not {content_type!r}"
            )
        # segment boundaries shift with the size even when the count does not
        if progress.segment_size != segment_size:
            raise InputError(
                f"progress record was segmented at {progress.segment_size} bytes, not {segment_size}"
            )
        if progress.segment_count != count:
            raise InputError(
                f"progress record expects {progress.segment_count} segments, content plans {count}"
            )


# -----------------------------------------------------------------------------
# Operations
# -----------------------------------------------------------------------------


class Operation(str, Enum):
    MINT = "mint"
    TRANSFER = "transfer"
    MELT = "melt"


def run_operation(op: Union[Operation, str], ctx: Optional[MintContext] = None, **kwargs: Any) -> MintProgress:
    """Dispatch a Spore operation; only minting is implemented (and needs `ctx`)."""
    try:
        op = Operation(op)
    except ValueError:
        raise UnsupportedOperationError(f"unknown operation {op!r}", operation=str(op)) from None
    if op is Operation.MINT:
        if ctx is None:
            raise InputError("minting needs a MintContext")
        return MintOrchestrator(ctx).mint(**kwargs)
    raise UnsupportedOperationError(f"{op.value} is not supported", operation=op.value)


__all__ = [
    "Wallet",
    "Confirmations",
    "MintContext",
    "MintState",
    "MintProgress",
    "MintOrchestrator",
    "Operation",
    "run_operation",
]
