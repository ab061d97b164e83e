"""Custodial staking vault package."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the staking-vault script."""
    import sys

    from staking_vault.cli import main

    raise SystemExit(main(sys.argv[1:]))


def _reset_state_entry_point() -> NoReturn:
    """Entry point for clearing persisted vault state."""
    from staking_vault.state import clear_state

    clear_state()
    raise SystemExit(0)
