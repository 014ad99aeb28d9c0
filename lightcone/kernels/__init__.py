"""Lattice numerics for time-retarded interactions.

Pure torch building blocks, leaves first:
- `grid`: the box lattice, source binning and stencil indices.
- `interpolation`: Lagrange coefficients for the retarded-time stencil.
- `expansion`: per-source box weights (scatter/gather).
- `normalization`: spatial decay applied to kernel weights.
- `circulant`: the mirrored impulse-response kernel per time offset.
- `spectral`: batched transforms of that kernel into frequency space.
- `runtime`: device selection.
"""
from __future__ import annotations

__all__: list[str] = []
