"""Output helpers for lightcone runs."""
from __future__ import annotations

from lightcone.projectors.trace import TraceFigureConfig, project_trace

__all__ = ["TraceFigureConfig", "project_trace"]
