"""Spectral diagonalization of the circulant kernel.

The circulant workspace (T, Nx, Ny, 2*Nz) is transformed along its doubled z
axis in one batched real-to-complex FFT over every (t, x, y). Only the
non-redundant half of each spectrum is kept, giving the (T-1, Nx, Ny, Nz+1)
frequency table for time offsets 1..T-1. The t = 0 slice never carries a
weight (only the skipped self-displacement has zero delay) and is dropped.

Evaluation needs the full 3D circulant spectrum. Because the kernel is
symmetric in x and y as well, `lift_spectrum` mirrors the stored table along
those axes and transforms them too; the result equals `rfftn` of the kernel
mirrored along all three axes.

torch plans FFTs at execution time, so the workspace is always filled before
any transform touches it.
"""

from __future__ import annotations

import math

import torch

from lightcone.console import console
from lightcone.kernels.circulant import fill_gmatrix_table, mirror_extend
from lightcone.kernels.grid import Lattice
from lightcone.kernels.normalization import SpatialNorm


class KernelAllocationError(RuntimeError):
    """The kernel workspace or frequency table could not be allocated."""


def complex_dtype_for(dtype: torch.dtype) -> torch.dtype:
    if dtype == torch.float64:
        return torch.complex128
    if dtype == torch.float32:
        return torch.complex64
    raise ValueError(f"unsupported real dtype for spectral tables: {dtype}")


def table_nbytes(shape: tuple[int, int, int, int], dtype: torch.dtype = torch.float64) -> int:
    """Peak bytes for building the table: real workspace plus complex output."""
    T, nx, ny, nz2 = shape
    real_size = torch.empty((), dtype=dtype).element_size()
    workspace = T * nx * ny * nz2 * real_size
    table = max(T - 1, 0) * nx * ny * (nz2 // 2 + 1) * 2 * real_size
    return workspace + table


def diagonalize(workspace: torch.Tensor) -> torch.Tensor:
    """Batched rfft of a (T, Nx, Ny, 2*Nz) circulant along z, offsets 1..T-1."""
    if workspace.ndim != 4:
        raise ValueError(f"workspace must be (T, Nx, Ny, 2*Nz), got {tuple(workspace.shape)}")
    return torch.fft.rfft(workspace[1:], dim=-1)


def circulant_fourier_table(
    lattice: Lattice,
    *,
    c: float,
    dt: float,
    interpolation_order: int,
    normalization: SpatialNorm | str = SpatialNorm.UNIT,
    derivative: int = 0,
    pad: int | None = None,
    dtype: torch.dtype = torch.float64,
    device: torch.device | str = "cpu",
    max_table_bytes: int | None = None,
) -> torch.Tensor:
    """Build, mirror and transform the kernel; return the frequency table.

    `pad` extends the temporal depth past `max_transit_steps`; it defaults to
    the interpolation order so the farthest displacement keeps its full
    interpolation stencil.
    """
    if pad is None:
        pad = int(interpolation_order)
    shape = lattice.circulant_shape(c, dt, pad)
    nbytes = table_nbytes(shape, dtype)
    context = (
        f"dimensions={lattice.dimensions} temporal_depth={shape[0]} "
        f"workspace={shape} requested_bytes={nbytes}"
    )
    if max_table_bytes is not None and nbytes > int(max_table_bytes):
        raise KernelAllocationError(f"kernel table exceeds budget of {int(max_table_bytes)} bytes: {context}")

    console.info("Building circulant kernel", detail=context)
    try:
        workspace = torch.zeros(shape, dtype=dtype, device=device)
    except RuntimeError as err:
        raise KernelAllocationError(f"cannot allocate kernel workspace: {context}") from err

    fill_gmatrix_table(
        workspace,
        lattice,
        c=c,
        dt=dt,
        interpolation_order=interpolation_order,
        normalization=normalization,
        derivative=derivative,
    )
    try:
        table = diagonalize(workspace)
    except RuntimeError as err:
        raise KernelAllocationError(f"cannot allocate frequency table: {context}") from err
    del workspace
    return table


def lift_spectrum(table: torch.Tensor) -> torch.Tensor:
    """Full 3D spectrum (T-1, 2*Nx, 2*Ny, Nz+1) of the z-diagonalized table."""
    ext = mirror_extend(mirror_extend(table, dim=1), dim=2)
    return torch.fft.fft2(ext, dim=(1, 2))


def padded_shape(dimensions: tuple[int, int, int]) -> tuple[int, int, int]:
    return tuple(2 * int(n) for n in dimensions)


def transform_boxes(values: torch.Tensor, dimensions: tuple[int, int, int]) -> torch.Tensor:
    """Zero-padded rfftn of (..., Nx, Ny, Nz) box data -> (..., 2Nx, 2Ny, Nz+1)."""
    return torch.fft.rfftn(values, s=padded_shape(dimensions), dim=(-3, -2, -1))


def inverse_transform_boxes(spectrum: torch.Tensor, dimensions: tuple[int, int, int]) -> torch.Tensor:
    """Inverse of `transform_boxes`, cropped back to (..., Nx, Ny, Nz)."""
    nx, ny, nz = (int(n) for n in dimensions)
    full = torch.fft.irfftn(spectrum, s=padded_shape(dimensions), dim=(-3, -2, -1))
    return full[..., :nx, :ny, :nz]


def spectral_size_report(table: torch.Tensor) -> str:
    mib = table.numel() * table.element_size() / float(1 << 20)
    return f"shape={tuple(table.shape)} size={mib:.2f} MiB ({math.prod(table.shape[1:])} bins per offset)"
