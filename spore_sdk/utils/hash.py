from __future__ import annotations

import hashlib

from .bytes import BytesLike, ensure_bytes, to_hex

# --- CKB default hash ----------------------------------------------------------
# BLAKE2b with a 32-byte digest and the "ckb-default-hash" personalization.
# Used for script (type) hashes, transaction hashes, spore ids and content hashes.

CKB_HASH_PERSONALIZATION = b"ckb-default-hash"
HASH_SIZE = 32


def _new_ckb_hasher() -> "hashlib._Hash":
    return hashlib.blake2b(digest_size=HASH_SIZE, person=CKB_HASH_PERSONALIZATION)


def ckb_hash(data: BytesLike) -> bytes:
    """Return the 32-byte CKB blake2b digest of *data*."""
    h = _new_ckb_hasher()
    h.update(ensure_bytes(data))
    return h.digest()


def ckb_hash_hex(data: BytesLike, *, prefix: bool = True) -> str:
    """Return hex string of the CKB digest (0x-prefixed by default)."""
    return to_hex(ckb_hash(data), prefix=prefix)


class CkbHasher:
    """Streaming CKB blake2b hasher with update()/digest()/hexdigest()."""

    __slots__ = ("_h",)

    def __init__(self) -> None:
        self._h = _new_ckb_hasher()

    def update(self, data: BytesLike) -> "CkbHasher":
        self._h.update(ensure_bytes(data))
        return self

    def digest(self) -> bytes:
        return self._h.digest()

    def hexdigest(self, *, prefix: bool = True) -> str:
        return to_hex(self._h.digest(), prefix=prefix)

    def copy(self) -> "CkbHasher":
        c = object.__new__(CkbHasher)
        c._h = self._h.copy()
        return c


__all__ = [
    "CKB_HASH_PERSONALIZATION",
    "HASH_SIZE",
    "ckb_hash",
    "ckb_hash_hex",
    "CkbHasher",
]
