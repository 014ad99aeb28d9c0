"""Smoke test for the trace figure."""

from __future__ import annotations

import math

from lightcone.projectors import TraceFigureConfig, project_trace


def test_project_trace_writes_figure(tmp_path):
    steps = list(range(32))
    reference = [math.sin(0.2 * s) for s in steps]
    observed = [r + 1e-6 for r in reference]

    path = project_trace(steps, observed, reference, TraceFigureConfig(name="sine"), output_dir=tmp_path)
    assert path == tmp_path / "sine.png"
    assert path.exists() and path.stat().st_size > 0

    flat = project_trace(
        steps, observed, reference, TraceFigureConfig(name="flat", log_error=False, format="svg"), output_dir=tmp_path
    )
    assert flat.suffix == ".svg" and flat.exists()
