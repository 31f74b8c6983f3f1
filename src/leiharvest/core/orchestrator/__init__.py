"""Run orchestration - chunked runner and pipeline assembly."""

from .pipeline import HarvestPipeline, run_once
from .runner import ChunkedRunner, RunSummary, SkipBudgetExceeded, new_run_id

__all__ = [
    "ChunkedRunner",
    "HarvestPipeline",
    "RunSummary",
    "SkipBudgetExceeded",
    "new_run_id",
    "run_once",
]
