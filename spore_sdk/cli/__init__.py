"""
spore_sdk.cli
=============

Command-line interface (`spore-mint`). Typer is only imported when the CLI is
actually used.

    >>> from spore_sdk.cli import main
    >>> main(["version"])
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, List, Optional

__all__: List[str] = ["main", "run", "app"]

_SUBMODULE = "spore_sdk.cli.main"
_EXPOSE = ("app", "main", "run")


def _load() -> Any:
    return import_module(_SUBMODULE)


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    if name in _EXPOSE:
        return getattr(_load(), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main(argv: Optional[list[str]] = None) -> int:
    return int(_load().main(argv))


def run(argv: Optional[list[str]] = None) -> int:
    return main(argv)
