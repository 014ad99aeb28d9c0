"""Regular box lattice for projecting point sources.

The lattice maps continuous 3D positions onto integer box coordinates,
bins sources into contiguous box ranges and reports how many time steps a
signal needs to cross it.

Linearisation is x-major throughout:

    idx = z + Nz * (y + Ny * x)

which is exactly the contiguous layout of an `(Nx, Ny, Nz)` torch tensor, so
`field.view(-1)[idx]` and `field[x, y, z]` address the same box. Box
coordinates passed to `coord_to_idx` are relative to the lower corner of
`bounds`; absolute coordinates come out of `grid_coordinate`.
"""

from __future__ import annotations

import math
from typing import Sequence

import torch


def _as_spacing(spacing: Sequence[float] | torch.Tensor) -> torch.Tensor:
    s = torch.as_tensor(spacing, dtype=torch.float64).flatten()
    if s.numel() == 1:
        s = s.repeat(3)
    if s.shape != (3,):
        raise ValueError(f"spacing must have 3 components, got {tuple(s.shape)}")
    if not bool(torch.isfinite(s).all()) or not bool((s > 0).all()):
        raise ValueError(f"spacing must be finite and > 0, got {s.tolist()}")
    return s


class Lattice:
    """Box lattice covering a set of point sources.

    Args:
        spacing: cell pitch per axis (a scalar is broadcast to all three).
        positions: (N, 3) source positions.
        padding: extra boxes added on every side of the occupied region.
            Use the expansion order so every interpolation stencil fits.
    """

    def __init__(
        self,
        spacing: Sequence[float] | torch.Tensor,
        positions: torch.Tensor,
        padding: int = 0,
    ) -> None:
        if int(padding) < 0:
            raise ValueError(f"padding must be >= 0, got {padding}")
        positions = torch.as_tensor(positions, dtype=torch.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (N,3), got {tuple(positions.shape)}")
        if positions.shape[0] == 0:
            raise ValueError("cannot build a lattice around zero sources; use Lattice.from_dimensions")

        self.spacing = _as_spacing(spacing)
        self.padding = int(padding)
        self.positions = positions
        self.bounds = self.calculate_bounds()
        self._set_extent()
        self._bin_sources()

    @classmethod
    def from_dimensions(
        cls,
        spacing: Sequence[float] | torch.Tensor,
        dimensions: Sequence[int],
        origin: Sequence[int] = (0, 0, 0),
    ) -> "Lattice":
        """Lattice with explicit box counts and no sources."""
        dims = torch.as_tensor(dimensions, dtype=torch.int64).flatten()
        lower = torch.as_tensor(origin, dtype=torch.int64).flatten()
        if dims.shape != (3,) or lower.shape != (3,):
            raise ValueError(f"dimensions and origin need 3 components, got {dims.tolist()} / {lower.tolist()}")
        if not bool((dims > 0).all()):
            raise ValueError(f"dimensions must be positive, got {dims.tolist()}")

        lattice = cls.__new__(cls)
        lattice.spacing = _as_spacing(spacing)
        lattice.padding = 0
        lattice.positions = torch.empty((0, 3), dtype=torch.float64)
        lattice.bounds = torch.stack([lower, lower + dims], dim=1)
        lattice._set_extent()
        lattice._bin_sources()
        return lattice

    def _set_extent(self) -> None:
        self.dimensions = tuple(int(d) for d in (self.bounds[:, 1] - self.bounds[:, 0]))
        self.num_boxes = math.prod(self.dimensions)
        extent = torch.tensor(self.dimensions, dtype=torch.float64) * self.spacing
        self.max_diagonal = float(torch.linalg.vector_norm(extent))

    # ------------------------------------------------------------------
    # Geometry (space <-> grid)
    # ------------------------------------------------------------------

    def grid_coordinate(self, pos: torch.Tensor) -> torch.Tensor:
        """Box coordinate containing `pos`, floored toward -inf."""
        pos = torch.as_tensor(pos, dtype=torch.float64)
        return torch.floor(pos / self.spacing).to(torch.int64)

    def calculate_bounds(self) -> torch.Tensor:
        """(3, 2) lower/upper box coordinates enclosing every source.

        The upper column is exclusive: +1 past the largest occupied box so the
        box grid contains every source coordinate rather than touching it.
        """
        coords = self.grid_coordinate(self.positions)
        lower = coords.min(dim=0).values - self.padding
        upper = coords.max(dim=0).values + self.padding + 1
        return torch.stack([lower, upper], dim=1)

    def coord_to_idx(self, coord: torch.Tensor | Sequence[int]) -> torch.Tensor:
        """Linear index of a box coordinate relative to the lower corner."""
        c = torch.as_tensor(coord, dtype=torch.int64)
        _, ny, nz = self.dimensions
        return c[..., 2] + nz * (c[..., 1] + ny * c[..., 0])

    def idx_to_coord(self, idx: torch.Tensor | int) -> torch.Tensor:
        """Inverse of `coord_to_idx`."""
        i = torch.as_tensor(idx, dtype=torch.int64)
        _, ny, nz = self.dimensions
        x = torch.div(i, ny * nz, rounding_mode="floor")
        rem = i - x * (ny * nz)
        y = torch.div(rem, nz, rounding_mode="floor")
        z = rem - y * nz
        return torch.stack([x, y, z], dim=-1)

    def associated_grid_index(self, pos: torch.Tensor) -> torch.Tensor:
        """Linear index of the box containing `pos`."""
        return self.coord_to_idx(self.grid_coordinate(pos) - self.bounds[:, 0])

    def spatial_coord_of_box(self, idx: torch.Tensor | int) -> torch.Tensor:
        """Position of the lower corner (grid point) of a box."""
        coord = self.idx_to_coord(idx) + self.bounds[:, 0]
        return coord.to(torch.float64) * self.spacing

    def contains(self, coord: torch.Tensor) -> torch.Tensor:
        """Whether relative box coordinates lie inside the lattice."""
        c = torch.as_tensor(coord, dtype=torch.int64)
        dims = torch.tensor(self.dimensions, dtype=torch.int64)
        return ((c >= 0) & (c < dims)).all(dim=-1)

    def expansion_box_indices(self, pos: torch.Tensor, order: int) -> torch.Tensor:
        """Linear indices of the (order+1)^3 stencil boxes anchored at `pos`.

        Offsets run 0..order per axis from the anchor box, x outermost and z
        innermost. Accepts (3,) -> (S,) or (N, 3) -> (N, S).
        """
        if int(order) < 0:
            raise ValueError(f"expansion order must be >= 0, got {order}")
        pos = torch.as_tensor(pos, dtype=torch.float64)
        single = pos.ndim == 1
        pos = pos.reshape(-1, 3)

        origin = self.grid_coordinate(pos) - self.bounds[:, 0]   # (N,3)
        offsets = stencil_offsets(order)                          # (S,3)
        coords = origin[:, None, :] + offsets[None, :, :]         # (N,S,3)
        inside = self.contains(coords)
        if not bool(inside.all()):
            bad = int((~inside.all(dim=1)).nonzero()[0, 0])
            raise ValueError(
                f"order-{order} stencil at {pos[bad].tolist()} leaves the lattice "
                f"(dimensions={self.dimensions}, padding={self.padding})"
            )
        indices = self.coord_to_idx(coords)
        return indices[0] if single else indices

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def max_transit_steps(self, c: float, dt: float) -> int:
        """Steps a signal at speed `c` needs to cross the lattice diagonal."""
        if not (c > 0.0) or not (dt > 0.0):
            raise ValueError(f"c and dt must be > 0, got c={c} dt={dt}")
        return int(math.ceil(self.max_diagonal / (c * dt)))

    def circulant_shape(self, c: float, dt: float, pad: int = 0) -> tuple[int, int, int, int]:
        """(T, Nx, Ny, 2*Nz) shape of the circulant kernel workspace."""
        nx, ny, nz = self.dimensions
        return (self.max_transit_steps(c, dt) + int(pad), nx, ny, 2 * nz)

    # ------------------------------------------------------------------
    # Source binning
    # ------------------------------------------------------------------

    def _bin_sources(self) -> None:
        # Stable sort keeps input order among sources sharing a box.
        box_ids = self.associated_grid_index(self.positions).reshape(-1)
        self.box_ids = box_ids
        self.order = torch.sort(box_ids, stable=True).indices

        counts = torch.bincount(box_ids, minlength=self.num_boxes)
        ends = torch.cumsum(counts, dim=0)
        self.box_ranges = torch.stack([ends - counts, ends], dim=1)

    def box_contents(self, idx: int) -> torch.Tensor:
        """Source ids stored in box `idx`, in input order."""
        begin, end = (int(v) for v in self.box_ranges[int(idx)])
        return self.order[begin:end]

    def __repr__(self) -> str:
        return (
            f"Lattice(dimensions={self.dimensions}, spacing={self.spacing.tolist()}, "
            f"lower={self.bounds[:, 0].tolist()}, sources={self.positions.shape[0]})"
        )


def stencil_offsets(order: int) -> torch.Tensor:
    """(S, 3) per-axis offsets 0..order, x outermost, z innermost."""
    r = torch.arange(int(order) + 1, dtype=torch.int64)
    ox, oy, oz = torch.meshgrid(r, r, r, indexing="ij")
    return torch.stack([ox, oy, oz], dim=-1).reshape(-1, 3)
