"""
spore_sdk.spore
===============

Spore-specific pieces of a segmented mint:

- segment:  deterministic, index-tagged partitioning of the content
- cells:    SporeData record, Spore root cell and segment cell builders
- assemble: root-mint and segment-mint transaction skeletons
- mint:     the orchestrator, its progress record and the operation dispatch
"""

from .cells import SporeData, build_segment_cell, build_spore_cell, derive_spore_id, spore_type_hash
from .mint import (
    MintContext,
    MintOrchestrator,
    MintProgress,
    MintState,
    Operation,
    run_operation,
)
from .segment import MAX_SEGMENTS, Segment, SegmentPlan, iter_segments, plan_segments, read_source

__all__ = [
    "MAX_SEGMENTS",
    "Segment",
    "SegmentPlan",
    "iter_segments",
    "plan_segments",
    "read_source",
    "SporeData",
    "build_spore_cell",
    "build_segment_cell",
    "derive_spore_id",
    "spore_type_hash",
    "MintContext",
    "MintOrchestrator",
    "MintProgress",
    "MintState",
    "Operation",
    "run_operation",
]
