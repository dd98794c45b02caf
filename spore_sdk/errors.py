"""
Typed error classes for the Spore segment SDK.

These are raised by the segmenter, the cell/transaction builders, the node
client and the mint orchestrator so callers can catch specific failure modes
while still being able to catch the base `SporeSdkError`.

Failures raised from inside a mint run carry the run's `MintProgress` on the
`progress` attribute so a caller can report the furthest state reached and
resume from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "SporeSdkError",
    "RpcError",
    "InputError",
    "UnsupportedOperationError",
    "FundingError",
    "BuildError",
    "SubmissionError",
    "ConfirmationError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class SporeSdkError(Exception):
    """Base class for all SDK errors."""

    # Set by the mint orchestrator when the error aborts a run.
    progress: Optional[Any] = None


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0 reserved codes
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (implementation-defined range: -32099 to -32000)
    SERVER_ERROR = -32000
    TRANSPORT = -32098

    # CKB pool rejections (see ckb rpc error codes)
    POOL_REJECTED_TRANSACTION_BY_OUTPUTS_VALIDATOR = -1102
    POOL_REJECTED_DUPLICATED_TRANSACTION = -1107
    TRANSACTION_FAILED_TO_RESOLVE = -301
    TRANSACTION_FAILED_TO_VERIFY = -302


@dataclass(slots=True, eq=False)
class RpcError(SporeSdkError):
    """Raised when a JSON-RPC call returns an error object or the transport fails."""

    code: int
    message: str
    method: Optional[str] = None
    data: Optional[Any] = None
    request_id: Optional[Any] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.request_id is not None:
            parts.append(f"id={self.request_id}")
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def is_transport(self) -> bool:
        return self.code == JsonRpcCode.TRANSPORT


@dataclass(slots=True, eq=False)
class InputError(SporeSdkError):
    """
    Bad caller input: missing file, bad segment size, too many segments,
    resume journal for different content.
    """

    message: str
    path: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" [{self.path}]" if self.path else ""
        return f"InputError{where}: {self.message}"


@dataclass(slots=True, eq=False)
class UnsupportedOperationError(InputError):
    """Raised for lifecycle operations this SDK does not implement (transfer, melt) or does not know."""

    operation: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"unsupported operation: {self.operation or '-'} ({self.message})"


@dataclass(slots=True, eq=False)
class FundingError(SporeSdkError):
    """
    Raised when the wallet's live cells cannot cover outputs plus fee.

    Fields:
      - required: shannons needed (outputs + fee + change minimum)
      - available: shannons collected from every eligible cell
    """

    message: str
    required: Optional[int] = None
    available: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        amounts = ""
        if self.required is not None:
            amounts = f" required={self.required} available={self.available}"
        return f"FundingError:{amounts} {self.message}"


@dataclass(slots=True, eq=False)
class BuildError(SporeSdkError):
    """
    Raised when an assembled transaction violates a structural invariant, e.g.
    a cell with capacity below its occupied capacity or cell deps out of order.
    """

    message: str
    output_index: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" [output={self.output_index}]" if self.output_index is not None else ""
        return f"BuildError{where}: {self.message}"


@dataclass(slots=True, eq=False)
class SubmissionError(SporeSdkError):
    """
    Raised when signing or broadcasting fails before the ledger accepted the tx.
    Retryable ones are resent with the same signed transaction; `retryable` is
    False for node refusals that no resend can fix (resolve/verify failures).
    """

    message: str
    tx_hash: Optional[str] = None
    code: Optional[int] = None
    retryable: bool = True

    def __str__(self) -> str:  # pragma: no cover - trivial
        suffix = f" tx={self.tx_hash}" if self.tx_hash else ""
        code = f" code={self.code}" if self.code is not None else ""
        return f"SubmissionError{suffix}{code}: {self.message}"


@dataclass(slots=True, eq=False)
class ConfirmationError(SporeSdkError):
    """
    Raised when the ledger rejects a submitted transaction or the wait for a
    terminal status times out. `status` holds the full status payload.
    """

    message: str
    tx_hash: Optional[str] = None
    status: Optional[Dict[str, Any]] = None
    timeout: bool = False

    def __str__(self) -> str:  # pragma: no cover - trivial
        bits = [self.message]
        if self.tx_hash:
            bits.append(f"tx={self.tx_hash}")
        if self.timeout:
            bits.append("timeout=true")
        if self.status is not None:
            bits.append(f"status={self.status!r}")
        return "ConfirmationError: " + " ".join(bits)


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    request_id: Optional[Any] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object into RpcError.

    `err_obj` should resemble: {"code": int, "message": str, "data": any?}
    """
    return RpcError(
        code=int(err_obj.get("code", JsonRpcCode.SERVER_ERROR)),
        message=str(err_obj.get("message", "Unknown JSON-RPC error")),
        method=method,
        data=err_obj.get("data"),
        request_id=request_id,
        http_status=http_status,
    )
