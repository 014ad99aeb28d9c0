"""Lattice-accelerated (AIM) evaluation of retarded pairwise interactions.

Setup, once per source configuration:
1. the sources are binned on a `Lattice` and expanded onto stencil boxes,
2. the circulant retarded kernel is built and diagonalized along z
   (`fourier_table`, offsets 1..T-1),
3. the table is lifted to the full 3D spectrum used for convolution.

Per step n, with J_s the box density of dipole * amplitude at step s:

    E(n) = sum_{t=1}^{T-1} IFFT[ K^(t) * FFT[J_{n-t}] ]

cropped back to the lattice, gathered to every source with its expansion
weights and projected on its dipole. Only strictly past samples contribute,
so the amplitudes of step n may still be revised while n is evaluated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import torch

from lightcone.console import console
from lightcone.interaction.propagation import IdentityPropagator, Propagator
from lightcone.interaction.sources import History, SourceSet
from lightcone.kernels.expansion import (
    ExpansionTable,
    gather_boxes,
    least_squares_expansions,
    scatter_boxes,
)
from lightcone.kernels.grid import Lattice
from lightcone.kernels.normalization import SpatialNorm
from lightcone.kernels.spectral import (
    circulant_fourier_table,
    inverse_transform_boxes,
    lift_spectrum,
    spectral_size_report,
    transform_boxes,
)

if TYPE_CHECKING:
    from lightcone.config import AimConfig

# (real, imag) x (x, y, z) real channels per box
_CHANNELS = 6


class AimInteraction:
    """Retarded interaction of every source with every other, via the lattice."""

    def __init__(
        self,
        sources: SourceSet,
        history: History,
        lattice: Lattice,
        expansions: ExpansionTable,
        *,
        interpolation_order: int,
        c: float,
        dt: float,
        normalization: SpatialNorm | str = SpatialNorm.UNIT,
        propagator: Optional[Propagator] = None,
        derivative: int = 0,
        dtype: torch.dtype = torch.float64,
        device: torch.device | str = "cpu",
        max_table_bytes: int | None = None,
    ) -> None:
        n = len(sources)
        if history.num_sources != n or len(expansions) != n:
            raise ValueError(
                f"source count mismatch: sources={n} history={history.num_sources} expansions={len(expansions)}"
            )

        self.sources = sources
        self.history = history
        self.lattice = lattice
        self.expansions = expansions
        self.interpolation_order = int(interpolation_order)
        self.c = float(c)
        self.dt = float(dt)
        self.normalization = SpatialNorm(normalization)
        self.propagator: Propagator = propagator if propagator is not None else IdentityPropagator()
        self.device = torch.device(device)
        self.dtype = dtype

        with console.spinner("Diagonalizing retarded kernel..."):
            self.fourier_table = circulant_fourier_table(
                lattice,
                c=self.c,
                dt=self.dt,
                interpolation_order=self.interpolation_order,
                normalization=self.normalization,
                derivative=derivative,
                dtype=dtype,
                device=self.device,
                max_table_bytes=max_table_bytes,
            )
            self._kernel_spectrum = lift_spectrum(self.fourier_table)
        self.temporal_depth = int(self.fourier_table.shape[0]) + 1
        console.info("Frequency table ready", detail=spectral_size_report(self.fourier_table))
        if history.window < self.temporal_depth - 1:
            console.warn(
                "History window shorter than the kernel depth",
                detail=f"window={history.window} depth={self.temporal_depth}; early steps see a truncated past",
            )

        self._dipoles = sources.dipoles.to(device=self.device, dtype=dtype)
        # Source spectra are cached per emission step in a ring of T slots;
        # one evaluation reads at most T-1 consecutive steps. Only steps older
        # than `history.newest` are cached, the newest one may still change.
        nx, ny, nz = lattice.dimensions
        self._spectra = torch.zeros(
            (self.temporal_depth, _CHANNELS, 2 * nx, 2 * ny, nz + 1),
            dtype=self._kernel_spectrum.dtype,
            device=self.device,
        )
        self._spectrum_steps: list[Optional[int]] = [None] * self.temporal_depth
        self._history_epoch = history.epoch

    @classmethod
    def from_config(
        cls,
        config: "AimConfig",
        sources: SourceSet,
        history: History,
        propagator: Optional[Propagator] = None,
    ) -> "AimInteraction":
        lattice = Lattice(config.spacing, sources.positions, padding=config.expansion_order)
        console.info("Lattice built", detail=repr(lattice))
        expansions = least_squares_expansions(config.expansion_order, lattice, sources.positions)
        return cls(
            sources,
            history,
            lattice,
            expansions,
            interpolation_order=config.interpolation_order,
            c=config.c,
            dt=config.dt,
            normalization=config.normalization,
            propagator=propagator,
            derivative=config.derivative,
            dtype=config.dtype,
            device=config.device,
            max_table_bytes=config.max_table_bytes,
        )

    # ------------------------------------------------------------------
    # Per-step evaluation
    # ------------------------------------------------------------------

    def evaluate(self, step: int) -> torch.Tensor:
        """(N,) complex interaction felt by every source at `step`."""
        step = int(step)
        if step < self.history.first_step or step > self.history.last_step:
            raise IndexError(
                f"step {step} outside history [{self.history.first_step}, {self.history.last_step}]"
            )

        acc = torch.zeros(self._spectra.shape[1:], dtype=self._spectra.dtype, device=self.device)
        for t in range(1, self.temporal_depth):
            emitted = step - t
            if emitted < self.history.first_step:
                break
            acc += self._kernel_spectrum[t - 1][None] * self._source_spectrum(emitted)

        field = inverse_transform_boxes(acc, self.lattice.dimensions)     # (6,nx,ny,nz)
        field = field.reshape(_CHANNELS, -1).T.reshape(-1, 2, 3)          # (boxes,2,3)
        field = torch.complex(field[:, 0], field[:, 1])                   # (boxes,3)

        at_sources = gather_boxes(self.expansions, field)                 # (N,3)
        results = (at_sources * self._dipoles).sum(dim=-1)
        return results * self.propagator.observer_phase(step)

    def _source_spectrum(self, step: int) -> torch.Tensor:
        if step >= self.history.newest:
            return transform_boxes(self._box_density(step), self.lattice.dimensions)
        if self._history_epoch != self.history.epoch:
            self._spectrum_steps = [None] * self.temporal_depth
            self._history_epoch = self.history.epoch
        slot = step % self.temporal_depth
        if self._spectrum_steps[slot] != step:
            self._spectra[slot] = transform_boxes(self._box_density(step), self.lattice.dimensions)
            self._spectrum_steps[slot] = step
        return self._spectra[slot]

    def _box_density(self, step: int) -> torch.Tensor:
        """(6, Nx, Ny, Nz) real/imag dipole density on the lattice at `step`."""
        amplitude = self.history.at(step).to(self.device) * self.propagator.source_phase(step)
        vec = self._dipoles * amplitude[:, None]                          # (N,3) complex
        channels = torch.view_as_real(vec).permute(0, 2, 1).reshape(-1, _CHANNELS)
        boxes = scatter_boxes(self.expansions, channels.to(self.dtype), self.lattice.num_boxes)
        nx, ny, nz = self.lattice.dimensions
        return boxes.T.reshape(_CHANNELS, nx, ny, nz)
