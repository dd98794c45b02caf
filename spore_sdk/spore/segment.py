"""
Spore • Segmenter

Deterministic, index-tagged partitioning of a content buffer into fixed-size
segments, each destined for its own segment cell.

On-ledger layout (bit-exact)
----------------------------
    segment cell data = u8 index ++ raw payload bytes

The index occupies one byte, so a single Spore can carry at most 256 segments.
Planning a buffer that would need more fails up front with `InputError`
instead of wrapping the index.

API
---
- Segment: dataclass(index, payload) with encode()/decode()
- segment_count(length, segment_size)
- iter_segments(buffer, segment_size)   -> lazy generator, restartable by calling again
- plan_segments(buffer, segment_size)   -> SegmentPlan (re-iterable, sized, validated)
- read_source(path)                     -> bytes of a local file
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Iterator, Union

from ..errors import InputError

MAX_SEGMENTS = 256
INDEX_BYTES = 1

BufferLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Segment:
    """A single contiguous slice of the source content."""

    index: int
    payload: bytes

    def __post_init__(self) -> None:
        if not 0 <= self.index < MAX_SEGMENTS:
            raise InputError(f"segment index {self.index} does not fit in one byte")

    def __len__(self) -> int:
        return len(self.payload)

    def encode(self) -> bytes:
        """Cell data for this segment: [index] ++ payload."""
        return bytes([self.index]) + self.payload

    @classmethod
    def decode(cls, data: BufferLike) -> "Segment":
        raw = bytes(data)
        if len(raw) < INDEX_BYTES:
            raise InputError("segment record is empty (missing index byte)")
        return cls(index=raw[0], payload=raw[INDEX_BYTES:])


def segment_count(length: int, segment_size: int) -> int:
    """ceil(length / segment_size)."""
    if segment_size <= 0:
        raise InputError(f"segment_size must be > 0, got {segment_size}")
    if length < 0:
        raise InputError("length must be non-negative")
    return -(-int(length) // int(segment_size))


def iter_segments(buffer: BufferLike, segment_size: int) -> Generator[Segment, None, None]:
    """
    Yield `Segment`s covering `buffer` in order; the last may be shorter.

    Validation (segment size, 256-segment cap) happens on the first `next()`.
    Use `plan_segments` to validate eagerly.
    """
    count = segment_count(len(buffer), segment_size)
    if count > MAX_SEGMENTS:
        raise InputError(
            f"content needs {count} segments of {segment_size} bytes; at most {MAX_SEGMENTS} are addressable"
        )
    mv = memoryview(buffer)
    for idx in range(count):
        off = idx * segment_size
        yield Segment(index=idx, payload=bytes(mv[off:off + segment_size]))


class SegmentPlan:
    """
    Validated, re-iterable segmentation of one buffer.

    Each iteration produces a fresh generator over the same bytes, so a resumed
    or retried mint sees a byte-identical sequence.
    """

    __slots__ = ("_buffer", "segment_size", "count")

    def __init__(self, buffer: BufferLike, segment_size: int) -> None:
        count = segment_count(len(buffer), segment_size)
        if count > MAX_SEGMENTS:
            raise InputError(
                f"content needs {count} segments of {segment_size} bytes; at most {MAX_SEGMENTS} are addressable"
            )
        self._buffer = bytes(buffer)
        self.segment_size = int(segment_size)
        self.count = count

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[Segment]:
        return iter_segments(self._buffer, self.segment_size)

    def __getitem__(self, index: int) -> Segment:
        if not 0 <= index < self.count:
            raise IndexError(index)
        off = index * self.segment_size
        return Segment(index=index, payload=self._buffer[off:off + self.segment_size])


def plan_segments(buffer: BufferLike, segment_size: int) -> SegmentPlan:
    return SegmentPlan(buffer, segment_size)


def read_source(path: Union[str, os.PathLike]) -> bytes:
    """Read a local file whole; missing or unreadable paths raise `InputError`."""
    p = Path(path)
    try:
        return p.read_bytes()
    except FileNotFoundError as e:
        raise InputError("file not found", path=str(p)) from e
    except IsADirectoryError as e:
        raise InputError("path is a directory", path=str(p)) from e
    except OSError as e:
        raise InputError(f"cannot read file: {e.strerror or e}", path=str(p)) from e


__all__ = [
    "MAX_SEGMENTS",
    "Segment",
    "segment_count",
    "iter_segments",
    "SegmentPlan",
    "plan_segments",
    "read_source",
]
