"""Run configuration for lattice-accelerated interactions.

`AimConfig` carries everything `AimInteraction.from_config` needs besides the
sources and their history. Defaults reproduce the unit Gaussian scenario of
`run.py`: unit spacing, `c = dt = 1`, cubic retarded-time interpolation.
"""

from dataclasses import dataclass, field

import torch

from lightcone.kernels.normalization import SpatialNorm
from lightcone.kernels.runtime import get_device
from lightcone.kernels.spectral import complex_dtype_for


@dataclass
class AimConfig:
    """Configuration for a lattice-accelerated interaction."""

    # Lattice
    spacing: tuple[float, float, float] = (1.0, 1.0, 1.0)
    expansion_order: int = 0             # Stencil order per axis; also the lattice padding

    # Propagation
    c: float = 1.0                       # Propagation speed (length / time)
    dt: float = 1.0                      # Simulation step
    interpolation_order: int = 3         # Lagrange order of the retarded-time stencil
    normalization: SpatialNorm = SpatialNorm.UNIT
    derivative: int = 0                  # d^k/dt^k of the retarded signal (0, 1, 2)

    # Numerics
    dtype: torch.dtype = field(default_factory=lambda: torch.float64)
    device: str = field(default_factory=lambda: get_device(torch.float64))

    # Refuse to build kernel tables above this many bytes (None = no limit)
    max_table_bytes: int | None = None

    def complex_dtype(self) -> torch.dtype:
        return complex_dtype_for(self.dtype)
