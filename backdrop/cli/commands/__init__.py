"""CLI commands for Backdrop."""

from . import (
    seed,
    inspect,
    config_cmd,
)

__all__ = [
    "seed",
    "inspect",
    "config_cmd",
]
