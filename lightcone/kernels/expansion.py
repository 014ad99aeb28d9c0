"""Least-squares expansion of point sources onto lattice boxes.

Each source is represented by weights on the (order+1)^3 boxes of its stencil
(see `Lattice.expansion_box_indices`). The weights reproduce every monomial
moment up to `order` per axis:

    sum_i w_i * (r_i - a)^alpha = (p - a)^alpha,   alpha in {0..order}^3

with r_i the stencil grid points, a the anchor box and p the source position,
all in units of the lattice spacing. Order 0 puts the full weight on the
anchor box; order 1 reduces to trilinear (CIC) weights.

The same table scatters source quantities onto boxes and gathers box fields
back to the sources.
"""

from __future__ import annotations

from dataclasses import dataclass

import torch

from lightcone.kernels.grid import Lattice, stencil_offsets


@dataclass(frozen=True)
class ExpansionTable:
    """Stencil boxes and weights for every source."""

    indices: torch.Tensor  # (N, S) int64 linear box indices
    weights: torch.Tensor  # (N, S) float64

    @property
    def order(self) -> int:
        return round(self.indices.shape[1] ** (1.0 / 3.0)) - 1

    def __len__(self) -> int:
        return int(self.indices.shape[0])


def least_squares_expansions(order: int, lattice: Lattice, positions: torch.Tensor) -> ExpansionTable:
    """Solve the moment system for every source position."""
    order = int(order)
    if order < 0:
        raise ValueError(f"expansion order must be >= 0, got {order}")
    positions = torch.as_tensor(positions, dtype=torch.float64)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(f"positions must have shape (N,3), got {tuple(positions.shape)}")

    indices = lattice.expansion_box_indices(positions, order).reshape(positions.shape[0], -1)

    offsets = stencil_offsets(order).to(torch.float64)  # (S,3)
    # The stencil offsets double as the exponent set alpha.
    exponents = offsets

    # Moment matrix Q[alpha, i] = prod_d offsets[i, d] ** alpha[d]
    Q = torch.pow(offsets[None, :, :], exponents[:, None, :]).prod(dim=-1)  # (S,S)

    cell = positions / lattice.spacing
    local = cell - torch.floor(cell)  # (N,3) position inside the anchor box
    rhs = torch.pow(local[:, None, :], exponents[None, :, :]).prod(dim=-1)  # (N,S)

    weights = torch.linalg.lstsq(Q, rhs.T).solution.T.contiguous()  # (N,S)
    return ExpansionTable(indices=indices, weights=weights)


def scatter_boxes(table: ExpansionTable, values: torch.Tensor, num_boxes: int) -> torch.Tensor:
    """Accumulate per-source values onto boxes.

    values: (N, C) real
    returns: (num_boxes, C)
    """
    if values.ndim != 2 or values.shape[0] != len(table):
        raise ValueError(f"values must have shape ({len(table)}, C), got {tuple(values.shape)}")
    channels = int(values.shape[1])
    w = table.weights.to(device=values.device, dtype=values.dtype)
    # (N,1,C) * (N,S,1) -> (N,S,C)
    contrib = (values[:, None, :] * w[..., None]).reshape(-1, channels)
    out = torch.zeros((int(num_boxes), channels), dtype=values.dtype, device=values.device)
    out.index_add_(0, table.indices.reshape(-1).to(values.device), contrib)
    return out


def gather_boxes(table: ExpansionTable, field: torch.Tensor) -> torch.Tensor:
    """Interpolate a box field back to the sources.

    field: (num_boxes, C), real or complex
    returns: (N, C)
    """
    vals = field[table.indices.to(field.device)]  # (N,S,C)
    return (vals * table.weights.to(field.device)[..., None]).sum(dim=1)
