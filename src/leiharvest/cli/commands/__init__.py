"""CLI command modules."""

from . import harvest, schedule

__all__ = [
    "harvest",
    "schedule",
]
