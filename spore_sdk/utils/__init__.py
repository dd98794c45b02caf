"""
spore_sdk.utils
===============

Small shared helpers: hex/bytes conversion, the CKB blake2b hash and retry
with backoff.
"""

from .bytes import ensure_bytes, from_hex, from_quantity, to_hex, to_quantity  # noqa: F401
from .hash import ckb_hash, ckb_hash_hex  # noqa: F401
from .retry import RetryError, retry_call  # noqa: F401

__all__ = [
    "ensure_bytes",
    "from_hex",
    "to_hex",
    "from_quantity",
    "to_quantity",
    "ckb_hash",
    "ckb_hash_hex",
    "RetryError",
    "retry_call",
]
