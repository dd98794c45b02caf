"""
SDK configuration: node endpoint, fee rate, segmenting, confirmation policy and
the deployed scripts a mint depends on.

- Loads sane (testnet) defaults and supports overrides via environment
  variables (SPORE_*).
- There is no process-wide instance: build a `MintConfig` and hand it to the
  `MintContext` that drives a run.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

from .types.core import CellDep, HashType, OutPoint, Script
from .utils.bytes import from_hex
from .version import __version__

_DEFAULT_RPC = "https://testnet.ckb.dev/rpc"

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


def _parse_int(val: Any) -> int:
    """Accepts int, decimal str, or 0x-hex str and returns int."""
    if isinstance(val, int):
        return val
    s = str(val).strip()
    if _HEX_RE.match(s):
        return int(s, 16)
    return int(s, 10)


def _hash32(val: str) -> bytes:
    b = from_hex(val)
    if len(b) != 32:
        raise ValueError(f"expected a 32-byte hash, got {len(b)} bytes: {val!r}")
    return b


@dataclass(frozen=True)
class ScriptInfo:
    """A deployed script: how outputs reference it and where its code lives."""

    code_hash: bytes
    hash_type: HashType
    cell_dep: CellDep

    def script(self, args: bytes = b"") -> Script:
        return Script(code_hash=self.code_hash, hash_type=self.hash_type, args=args)

    @classmethod
    def from_hex(
        cls,
        code_hash: str,
        hash_type: HashType,
        dep_tx_hash: str,
        dep_index: int = 0,
        dep_type: str = "code",
    ) -> "ScriptInfo":
        return cls(
            code_hash=_hash32(code_hash),
            hash_type=hash_type,
            cell_dep=CellDep(
                out_point=OutPoint(tx_hash=_hash32(dep_tx_hash), index=int(dep_index)),
                dep_type=dep_type,  # type: ignore[arg-type]
            ),
        )


def _testnet_spore() -> ScriptInfo:
    return ScriptInfo.from_hex(
        "0xbbad126377d45f90a8ee120da988a2d7332c78ba8fd679aab478a19d6c133494",
        "data1",
        "0xfd694382e621f175ddf81ce91ce2ecf8bfc027d53d7d31b8438f7d26fc37fd19",
    )


def _testnet_binding_lifecycle() -> ScriptInfo:
    # Segment cells reference the lifecycle script by its type hash.
    return ScriptInfo.from_hex(
        "0x20f1117a520a066fa9bf99ace508226b8706d559270c35c81403e057ccdc583d",
        "type",
        "0x1d1dd7e545de483e098c818d61d9a6a711b7e8a028c196908daee2bbcafa34a8",
    )


def _testnet_secp256k1() -> ScriptInfo:
    return ScriptInfo.from_hex(
        "0x9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8",
        "type",
        "0xf8de3bb47d055cdf460d93a2a6e1b05f7432f9777c8c474abf4eec1d4aee5d37",
        dep_type="dep_group",
    )


@dataclass(frozen=True)
class ScriptSet:
    spore: ScriptInfo = field(default_factory=_testnet_spore)
    binding_lifecycle: ScriptInfo = field(default_factory=_testnet_binding_lifecycle)
    secp256k1: ScriptInfo = field(default_factory=_testnet_secp256k1)


@dataclass(slots=True)
class MintConfig:
    # Node
    rpc_url: str = field(default_factory=lambda: _DEFAULT_RPC)
    request_timeout: float = 10.0
    max_retries: int = 3
    backoff_factor: float = 0.25
    user_agent: str = field(default_factory=lambda: f"spore-sdk-py/{__version__}")
    # Fees & segmenting
    fee_rate: int = 1000  # shannons per 1000 bytes
    segment_size: int = 100
    content_type: str = "video/mp4+spore"
    # Confirmation wait
    confirm_timeout: float = 600.0
    poll_interval: float = 2.0
    poll_max_interval: float = 15.0
    # Signing/broadcast retries (same sealed skeleton each time)
    submit_retries: int = 3
    # Deployed scripts
    scripts: ScriptSet = field(default_factory=ScriptSet)

    def __post_init__(self) -> None:
        _ensure_scheme(self.rpc_url, ("http", "https"))
        if self.segment_size <= 0:
            raise ValueError("segment_size must be > 0")
        if self.fee_rate < 0:
            raise ValueError("fee_rate must be non-negative")

    @classmethod
    def from_env(cls, prefix: str = "SPORE_") -> "MintConfig":
        """
        Create config from environment variables:

        SPORE_RPC_URL            (http/https)
        SPORE_TIMEOUT            (float seconds, HTTP)
        SPORE_MAX_RETRIES        (int, HTTP transport retries)
        SPORE_BACKOFF            (float)
        SPORE_FEE_RATE           (int or 0x-hex, shannons/KB)
        SPORE_SEGMENT_SIZE       (int bytes)
        SPORE_CONTENT_TYPE       (str)
        SPORE_CONFIRM_TIMEOUT    (float seconds)
        SPORE_POLL_INTERVAL      (float seconds)
        SPORE_SUBMIT_RETRIES     (int)
        SPORE_LIFECYCLE_CODE_HASH / SPORE_LIFECYCLE_DEP_TX  (binding-lifecycle override)
        SPORE_SPORE_CODE_HASH / SPORE_SPORE_HASH_TYPE / SPORE_SPORE_DEP_TX  (Spore script override)
        """
        base = cls()
        scripts = base.scripts
        lc_hash = _env(f"{prefix}LIFECYCLE_CODE_HASH")
        lc_dep = _env(f"{prefix}LIFECYCLE_DEP_TX")
        if lc_hash or lc_dep:
            cur = scripts.binding_lifecycle
            scripts = replace(
                scripts,
                binding_lifecycle=ScriptInfo.from_hex(
                    lc_hash or "0x" + cur.code_hash.hex(),
                    "type",
                    lc_dep or "0x" + cur.cell_dep.out_point.tx_hash.hex(),
                ),
            )
        sp_hash = _env(f"{prefix}SPORE_CODE_HASH")
        sp_dep = _env(f"{prefix}SPORE_DEP_TX")
        if sp_hash or sp_dep:
            cur = scripts.spore
            scripts = replace(
                scripts,
                spore=ScriptInfo.from_hex(
                    sp_hash or "0x" + cur.code_hash.hex(),
                    _env(f"{prefix}SPORE_HASH_TYPE", cur.hash_type),  # type: ignore[arg-type]
                    sp_dep or "0x" + cur.cell_dep.out_point.tx_hash.hex(),
                ),
            )

        return cls(
            rpc_url=_env(f"{prefix}RPC_URL", _DEFAULT_RPC) or _DEFAULT_RPC,
            request_timeout=float(_env(f"{prefix}TIMEOUT", "10.0")),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", "3")),
            backoff_factor=float(_env(f"{prefix}BACKOFF", "0.25")),
            fee_rate=_parse_int(_env(f"{prefix}FEE_RATE", "1000")),
            segment_size=_parse_int(_env(f"{prefix}SEGMENT_SIZE", "100")),
            content_type=_env(f"{prefix}CONTENT_TYPE", base.content_type) or base.content_type,
            confirm_timeout=float(_env(f"{prefix}CONFIRM_TIMEOUT", "600.0")),
            poll_interval=float(_env(f"{prefix}POLL_INTERVAL", "2.0")),
            submit_retries=int(_env(f"{prefix}SUBMIT_RETRIES", "3")),
            scripts=scripts,
        )

    @classmethod
    def with_overrides(cls, base: Optional["MintConfig"] = None, **overrides: Any) -> "MintConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys and None values are ignored.
        """
        base = base or cls.from_env()
        known = {f.name for f in fields(cls)}
        data = {f.name: getattr(base, f.name) for f in fields(cls)}
        data.update({k: v for k, v in overrides.items() if k in known and v is not None})
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def to_dict(self) -> Dict[str, Any]:
        scripts = {
            name: {
                "code_hash": "0x" + info.code_hash.hex(),
                "hash_type": info.hash_type,
                "dep_tx_hash": "0x" + info.cell_dep.out_point.tx_hash.hex(),
                "dep_index": info.cell_dep.out_point.index,
                "dep_type": info.cell_dep.dep_type,
            }
            for name, info in _fields_of(self.scripts).items()
        }
        return {
            "rpc_url": self.rpc_url,
            "request_timeout": float(self.request_timeout),
            "max_retries": int(self.max_retries),
            "backoff_factor": float(self.backoff_factor),
            "fee_rate": int(self.fee_rate),
            "segment_size": int(self.segment_size),
            "content_type": self.content_type,
            "confirm_timeout": float(self.confirm_timeout),
            "poll_interval": float(self.poll_interval),
            "submit_retries": int(self.submit_retries),
            "scripts": scripts,
        }


def _fields_of(obj: Any) -> Dict[str, Any]:
    return {f.name: getattr(obj, f.name) for f in fields(obj)}


__all__ = ["ScriptInfo", "ScriptSet", "MintConfig"]
