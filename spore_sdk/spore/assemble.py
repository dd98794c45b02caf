"""
Spore • Transaction assembly

Two skeletons make up a segmented mint:

assemble_spore_mint
    outputs   [0] Spore cell (owner lock, Spore type), [1] change
    cell deps [Spore script, secp256k1 group]

assemble_segment_mint
    outputs   [0] segment cell (binding-lifecycle lock), [1] change
    cell deps [binding-lifecycle script, secp256k1 group]

Both are funded from the owner's pure-capacity cells after outputs and deps
are attached, get signing entries prepared, are validated and come back
sealed. A sealed skeleton is what the submit loop signs (and re-signs on
retry) unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AbstractSet

from ..tx.build import (
    check_cell_dep_order,
    inject_capacity,
    prepare_signing_entries,
    validate_skeleton,
)
from ..types.core import CellInput, OutPoint, TransactionSkeleton
from .cells import SporeData, build_segment_cell, build_spore_cell, derive_spore_id
from .segment import Segment

if TYPE_CHECKING:  # pragma: no cover
    from .mint import MintContext

log = logging.getLogger("spore_sdk.spore.assemble")

SPORE_OUTPUT_INDEX = 0
SEGMENT_OUTPUT_INDEX = 0


def assemble_spore_mint(
    data: SporeData,
    *,
    ctx: "MintContext",
    exclude: AbstractSet[OutPoint] = frozenset(),
) -> TransactionSkeleton:
    scripts = ctx.config.scripts
    lock = ctx.wallet.lock

    skel = TransactionSkeleton()
    skel.add_output(build_spore_cell(data, lock=lock, spore_script=scripts.spore))
    skel.add_cell_dep(scripts.spore.cell_dep)
    skel.add_cell_dep(scripts.secp256k1.cell_dep)

    injected = inject_capacity(skel, ctx.cells, lock=lock, fee_rate=ctx.config.fee_rate, exclude=exclude)

    # The id depends on the first input, so it can only be fixed now. It has the
    # placeholder's length: capacity and size estimates stay valid.
    first = CellInput(previous_output=skel.inputs[0].out_point)  # type: ignore[arg-type]
    spore_id = derive_spore_id(first, SPORE_OUTPUT_INDEX)
    skel.replace_output(
        SPORE_OUTPUT_INDEX,
        build_spore_cell(data, lock=lock, spore_script=scripts.spore, spore_id=spore_id),
    )

    prepare_signing_entries(skel)
    validate_skeleton(skel)
    check_cell_dep_order(skel, [scripts.spore.cell_dep, scripts.secp256k1.cell_dep])
    log.debug(
        "assembled spore mint id=%s inputs=%d fee=%d",
        spore_id.hex(),
        len(injected.inputs),
        injected.fee,
    )
    return skel.seal()


def assemble_segment_mint(
    segment: Segment,
    *,
    spore_type_hash: bytes,
    ctx: "MintContext",
    exclude: AbstractSet[OutPoint] = frozenset(),
) -> TransactionSkeleton:
    scripts = ctx.config.scripts
    lock = ctx.wallet.lock

    skel = TransactionSkeleton()
    skel.add_output(
        build_segment_cell(segment, spore_type_hash=spore_type_hash, lifecycle=scripts.binding_lifecycle)
    )
    skel.add_cell_dep(scripts.binding_lifecycle.cell_dep)
    skel.add_cell_dep(scripts.secp256k1.cell_dep)
    check_cell_dep_order(skel, [scripts.binding_lifecycle.cell_dep, scripts.secp256k1.cell_dep])

    injected = inject_capacity(skel, ctx.cells, lock=lock, fee_rate=ctx.config.fee_rate, exclude=exclude)

    prepare_signing_entries(skel)
    validate_skeleton(skel)
    log.debug(
        "assembled segment %d mint payload=%dB inputs=%d fee=%d",
        segment.index,
        len(segment),
        len(injected.inputs),
        injected.fee,
    )
    return skel.seal()


__all__ = ["SPORE_OUTPUT_INDEX", "SEGMENT_OUTPUT_INDEX", "assemble_spore_mint", "assemble_segment_mint"]
