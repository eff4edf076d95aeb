"""devlink: USB device connection lifecycle coordinator."""

from __future__ import annotations

import asyncio
from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("devlink")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Run the headless coordinator until interrupted."""
    from .app.main import main

    asyncio.run(main(list(argv) if argv is not None else None))


__all__ = ["__version__", "run"]
