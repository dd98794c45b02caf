"""
spore_sdk.cli.main
==================

`spore-mint`: mint a file as a segmented Spore on CKB.

Examples
--------
    $ spore-mint version
    $ spore-mint env
    $ spore-mint mint clip.mp4 --lock-arg 0x… --signer mysigner:create
    $ spore-mint mint clip.mp4 --lock-arg 0x… --signer mysigner:create --journal clip.journal.json

The `--signer` factory is any importable `module:callable` returning an object
with `sign_recoverable(message: bytes) -> bytes` (65 bytes). Keys never pass
through this tool.

With `--journal`, the mint progress is written after every step; running the
same command again resumes from it.

Exit codes: 0 success, 1 mint/network failure, 2 bad input or unsupported
operation.

Configuration
-------------
- RPC URL      : `--rpc` or env `SPORE_RPC_URL` (default: CKB testnet public node)
- HTTP Timeout : `--timeout` or env `SPORE_TIMEOUT` seconds (default: 10.0)
- everything else: `SPORE_*` env, see `spore_sdk.config.MintConfig.from_env`
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Any, Optional

import click
import typer

from .. import logging as slog
from ..config import MintConfig
from ..errors import InputError, SporeSdkError
from ..rpc.ckb import CkbNode
from ..rpc.http import RpcClient
from ..spore.mint import MintContext, MintProgress, Operation, run_operation
from ..spore.segment import read_source
from ..tx.send import PollingConfirmation
from ..utils.bytes import from_hex
from ..version import __version__ as SDK_VERSION
from ..version import version as version_string
from ..wallet import IndexerCellProvider, MessageSigner, Secp256k1Wallet, secp256k1_lock

log = logging.getLogger("spore_sdk.cli")

app = typer.Typer(
    name="spore-mint",
    help="Mint files as segmented Spores on CKB.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "run"]

EXIT_FAILED = 1
EXIT_INPUT = 2


@dataclass
class Ctx:
    config: MintConfig


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _fail(err: SporeSdkError) -> typer.Exit:
    typer.echo(f"error: {err}", err=True)
    return typer.Exit(code=EXIT_INPUT if isinstance(err, InputError) else EXIT_FAILED)


@app.callback()
def _root(
    ctx: typer.Context,
    rpc: Optional[str] = typer.Option(None, "--rpc", help="CKB node JSON-RPC URL.", envvar="SPORE_RPC_URL"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds."),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level.", envvar="SPORE_LOG_LEVEL"),
    log_json: Optional[bool] = typer.Option(None, "--log-json/--log-text", help="Log format (default: auto)."),
) -> None:
    """Resolve configuration and logging for this process."""
    slog.configure(json=log_json, level=log_level)
    try:
        config = MintConfig.with_overrides(MintConfig.from_env(), rpc_url=rpc, request_timeout=timeout)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    ctx.obj = Ctx(config=config)


# --- helpers -----------------------------------------------------------------


def _load_signer(spec: str) -> MessageSigner:
    """Resolve `module:factory` and call the factory with no arguments."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise InputError(f"signer must look like 'module:factory', got {spec!r}")
    try:
        factory = getattr(import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise InputError(f"cannot load signer factory {spec!r}: {e}") from e
    signer = factory()
    if not callable(getattr(signer, "sign_recoverable", None)):
        raise InputError(f"{spec!r} did not return an object with sign_recoverable()")
    return signer


def _build_context(config: MintConfig, signer: MessageSigner, lock_arg: str) -> MintContext:
    try:
        arg = from_hex(lock_arg)
    except ValueError as e:
        raise InputError(f"lock arg is not hex: {e}") from e
    lock = secp256k1_lock(arg, config.scripts.secp256k1)
    rpc = RpcClient(
        config.rpc_url,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        backoff_base=config.backoff_factor,
        headers={"User-Agent": config.user_agent},
    )
    node = CkbNode(rpc)
    return MintContext(
        wallet=Secp256k1Wallet(lock, signer, node),
        cells=IndexerCellProvider(node),
        confirmations=PollingConfirmation(
            node,
            timeout_s=config.confirm_timeout,
            poll_interval_s=config.poll_interval,
            max_interval_s=config.poll_max_interval,
        ),
        config=config,
    )


def _read_journal(path: Path) -> Optional[MintProgress]:
    if not path.exists():
        return None
    return MintProgress.from_json(path.read_text(encoding="utf-8"))


def _write_journal(path: Path, progress: MintProgress) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(progress.to_json(), encoding="utf-8")
    os.replace(tmp, path)


# --- commands ----------------------------------------------------------------


@app.command("version")
def version() -> None:
    """Print the SDK version."""
    typer.echo(f"spore-mint {version_string()}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    c: Ctx = ctx.obj
    _print_json({**c.config.to_dict(), "sdk_version": SDK_VERSION})


@app.command("mint")
def mint(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="File to mint."),
    lock_arg: str = typer.Option(..., "--lock-arg", help="Owner blake160 lock arg (0x + 40 hex).", envvar="SPORE_LOCK_ARG"),
    signer: str = typer.Option(..., "--signer", help="Signer factory as module:callable.", envvar="SPORE_SIGNER"),
    content_type: Optional[str] = typer.Option(None, "--content-type", help="MIME type recorded in the Spore."),
    segment_size: Optional[int] = typer.Option(None, "--segment-size", help="Bytes per segment cell."),
    fee_rate: Optional[int] = typer.Option(None, "--fee-rate", help="Shannons per 1000 bytes."),
    journal: Optional[Path] = typer.Option(None, "--journal", help="Progress file; resumes when it exists."),
) -> None:
    """Mint FILE as a Spore root plus one cell per segment."""
    c: Ctx = ctx.obj
    try:
        config = MintConfig.with_overrides(c.config, segment_size=segment_size, fee_rate=fee_rate)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    on_progress = None
    if journal is not None:
        on_progress = lambda p: _write_journal(journal, p)  # noqa: E731

    try:
        content = read_source(file)
        progress = _read_journal(journal) if journal is not None else None
        if progress is not None and progress.done:
            typer.echo("already minted (journal says done)")
            _print_json(progress.to_dict())
            return
        if progress is not None:
            log.info("resuming from journal %s (state=%s)", journal, progress.state.value)
        mint_ctx = _build_context(config, _load_signer(signer), lock_arg)
        result = run_operation(
            Operation.MINT,
            mint_ctx,
            content=content,
            content_type=content_type,
            progress=progress,
            on_progress=on_progress,
        )
    except SporeSdkError as err:
        if err.progress is not None:
            _print_json(err.progress.to_dict())
        raise _fail(err) from err
    _print_json(result.to_dict())


@app.command(
    "transfer",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def transfer() -> None:
    """Transfer a Spore (not supported)."""
    _unsupported(Operation.TRANSFER)


@app.command(
    "melt",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def melt() -> None:
    """Melt a Spore (not supported)."""
    _unsupported(Operation.MELT)


def _unsupported(op: Operation) -> None:
    try:
        run_operation(op)
    except SporeSdkError as err:
        raise _fail(err) from err


# --- entrypoints ---------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        rv = app(prog_name="spore-mint", standalone_mode=False, args=argv)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        e.show()
        return int(e.exit_code)
    except click.Abort:
        typer.echo("aborted", err=True)
        return 130
    # non-standalone click hands typer.Exit codes back as the return value
    return rv if isinstance(rv, int) else 0


def run(argv: Optional[list[str]] = None) -> int:
    """Console-script entrypoint."""
    return main(argv)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
