"""Circulant retarded-interaction kernel on the box lattice.

For a displacement dr between a box and the reference box 0, a signal emitted
at step n - t reaches the observer when t ~ |dr| / (c dt). With the delay
split as arg = m + f (integer m, fraction f), the retarded history value is
interpolated from the (order+1) samples at t = m..m+order:

    K[t](dr) = L_{ceil(t - arg)}(f)   if 0 <= ceil(t - arg) <= order
             = 0                      otherwise

(compact temporal support). The kernel only depends on |dx|, |dy|, |dz|, so
it is a symmetric Toeplitz operator per axis. Mirroring z into a doubled axis

    K[t, x, y, 2*Nz - z] = K[t, x, y, z],   z = 1..Nz-1;   K[t, x, y, Nz] = 0

turns it into a circulant, which a real-input FFT along z diagonalizes.
"""

from __future__ import annotations

import torch

from lightcone.kernels.grid import Lattice
from lightcone.kernels.interpolation import lagrange_derivative_table
from lightcone.kernels.normalization import SpatialNorm, inverse_spatial_norm


def box_displacements(lattice: Lattice, *, device: torch.device | str | None = None) -> torch.Tensor:
    """(Nx, Ny, Nz, 3) physical displacement of every box from box 0."""
    nx, ny, nz = lattice.dimensions
    axes = [torch.arange(n, dtype=torch.float64, device=device) for n in (nx, ny, nz)]
    X, Y, Z = torch.meshgrid(*axes, indexing="ij")
    spacing = lattice.spacing if device is None else lattice.spacing.to(device)
    return torch.stack([X, Y, Z], dim=-1) * spacing


def fill_gmatrix_table(
    table: torch.Tensor,
    lattice: Lattice,
    *,
    c: float,
    dt: float,
    interpolation_order: int,
    normalization: SpatialNorm | str = SpatialNorm.UNIT,
    derivative: int = 0,
) -> None:
    """Write the mirrored kernel into a zeroed (T, Nx, Ny, 2*Nz) workspace.

    The workspace is filled in place so the caller owns its allocation.
    `derivative` selects d^k/dt^k of the retarded signal (k = 0, 1, 2).
    """
    if not (c > 0.0) or not (dt > 0.0):
        raise ValueError(f"c and dt must be > 0, got c={c} dt={dt}")
    if int(interpolation_order) < 0:
        raise ValueError(f"interpolation order must be >= 0, got {interpolation_order}")
    if derivative not in (0, 1, 2):
        raise ValueError(f"derivative must be 0, 1 or 2, got {derivative}")

    nx, ny, nz = lattice.dimensions
    T = int(table.shape[0])
    if tuple(table.shape[1:]) != (nx, ny, 2 * nz):
        raise ValueError(f"workspace shape {tuple(table.shape)} does not match lattice {lattice.dimensions}")

    order = int(interpolation_order)
    dr = box_displacements(lattice, device=table.device)
    arg = torch.linalg.vector_norm(dr, dim=-1) / (c * dt)  # (nx,ny,nz), in steps
    frac = arg - torch.floor(arg)

    # The basis is a function of f; the signal's retarded time is n - m - f,
    # so each x-derivative flips sign once as a time derivative.
    weights = lagrange_derivative_table(frac, order, dt)[derivative] * ((-1.0) ** derivative)
    weights = weights * inverse_spatial_norm(normalization, dr)[None]  # (order+1,nx,ny,nz)
    weights = weights.to(table.dtype)

    self_box = torch.zeros_like(arg, dtype=torch.bool)
    self_box[0, 0, 0] = True

    for t in range(1, T):
        poly = torch.ceil(t - arg).to(torch.int64)
        support = (poly >= 0) & (poly <= order) & ~self_box
        if not bool(support.any()):
            continue
        vals = torch.gather(weights, 0, poly.clamp(0, order)[None]).squeeze(0)
        table[t, :, :, :nz] = torch.where(support, vals, torch.zeros_like(vals))

    # Circulant mirror along z.
    if nz > 1:
        table[..., nz + 1 :] = torch.flip(table[..., 1:nz], dims=(-1,))


def mirror_extend(t: torch.Tensor, dim: int) -> torch.Tensor:
    """Circulant extension of a symmetric kernel along `dim` (n -> 2n)."""
    n = int(t.shape[dim])
    zero = torch.zeros_like(t.narrow(dim, 0, 1))
    tail = torch.flip(t.narrow(dim, 1, n - 1), dims=(dim,))
    return torch.cat([t, zero, tail], dim=dim)
