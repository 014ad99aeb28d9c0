"""Spatial normalization of the retarded kernel.

The kernel weight for a displacement `dr` is divided by `spatial_norm(kind, dr)`:

- UNIT:     1              (bare delta(t - R/c) propagation)
- DISTANCE: |dr|           (delta(t - R/c) / R, field-like)
- POISSON:  4 * pi * |dr|  (retarded Green's function of the wave equation)
"""

from __future__ import annotations

import math
from enum import Enum

import torch


class SpatialNorm(str, Enum):
    UNIT = "unit"
    DISTANCE = "distance"
    POISSON = "poisson"


def spatial_norm(kind: SpatialNorm | str, dr: torch.Tensor) -> torch.Tensor:
    """Normalization value for displacement vectors `dr` of shape (..., 3)."""
    kind = SpatialNorm(kind)
    dist = torch.linalg.vector_norm(dr, dim=-1)
    if kind is SpatialNorm.UNIT:
        return torch.ones_like(dist)
    if kind is SpatialNorm.DISTANCE:
        return dist
    return (4.0 * math.pi) * dist


def inverse_spatial_norm(kind: SpatialNorm | str, dr: torch.Tensor) -> torch.Tensor:
    """1 / spatial_norm, with zero displacement mapped to 0 instead of inf."""
    norm = spatial_norm(kind, dr)
    safe = torch.where(norm > 0, norm, torch.ones_like(norm))
    return torch.where(norm > 0, 1.0 / safe, torch.zeros_like(norm))
