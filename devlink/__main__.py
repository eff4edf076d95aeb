"""Allow ``python -m devlink`` to launch the headless coordinator."""

from __future__ import annotations

from devlink import run


if __name__ == "__main__":
    run()
