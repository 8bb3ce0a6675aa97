"""Time-locked staking vault with participation-gated proportional rewards."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the shares-timelock script."""
    import sys

    from shares_timelock.cli import main

    raise SystemExit(main(sys.argv[1:]))


def _clear_cache_entry_point() -> NoReturn:
    """Entry point for clearing the proof bundle cache."""
    from shares_timelock.cache import clear_cache

    clear_cache()
    raise SystemExit(0)
