"""Direct O(N^2) evaluation of the retarded interaction.

Every pair is propagated on its own, with the same retarded-time
interpolation rule the lattice kernel uses. This is the reference the AIM
evaluator is checked against; it does not scale past a few hundred sources.
"""

from __future__ import annotations

from typing import Optional

import torch

from lightcone.interaction.propagation import IdentityPropagator, Propagator
from lightcone.interaction.sources import History, SourceSet
from lightcone.kernels.interpolation import lagrange_derivative_table
from lightcone.kernels.normalization import SpatialNorm, inverse_spatial_norm


class DirectInteraction:
    def __init__(
        self,
        sources: SourceSet,
        history: History,
        *,
        interpolation_order: int,
        c: float,
        dt: float,
        normalization: SpatialNorm | str = SpatialNorm.UNIT,
        propagator: Optional[Propagator] = None,
        derivative: int = 0,
    ) -> None:
        if history.num_sources != len(sources):
            raise ValueError(f"source count mismatch: sources={len(sources)} history={history.num_sources}")
        if not (c > 0.0) or not (dt > 0.0):
            raise ValueError(f"c and dt must be > 0, got c={c} dt={dt}")
        if derivative not in (0, 1, 2):
            raise ValueError(f"derivative must be 0, 1 or 2, got {derivative}")

        self.sources = sources
        self.history = history
        self.order = int(interpolation_order)
        self.propagator: Propagator = propagator if propagator is not None else IdentityPropagator()

        pos = sources.positions.to(torch.float64)
        dip = sources.dipoles.to(torch.float64)
        n = pos.shape[0]

        dr = pos[:, None, :] - pos[None, :, :]  # (N,N,3) observer - emitter
        arg = torch.linalg.vector_norm(dr, dim=-1) / (c * dt)
        self.delay_steps = torch.floor(arg).to(torch.int64)
        frac = arg - torch.floor(arg)

        weights = lagrange_derivative_table(frac, self.order, dt)[derivative] * ((-1.0) ** derivative)
        coupling = (dip @ dip.T) * inverse_spatial_norm(normalization, dr)
        coupling = coupling * (1.0 - torch.eye(n, dtype=torch.float64))
        self.weights = weights * coupling[None]  # (order+1,N,N)

        steps = range(history.first_step, history.last_step + 1)
        self._source_phases = torch.tensor([self.propagator.source_phase(s) for s in steps], dtype=torch.complex128)

    def evaluate(self, step: int) -> torch.Tensor:
        step = int(step)
        h = self.history
        if step < h.first_step or step > h.last_step:
            raise IndexError(f"step {step} outside history [{h.first_step}, {h.last_step}]")

        n = len(self.sources)
        emitter = torch.arange(n)[None, :].expand(n, n)
        samples = (h.array.to(torch.complex128) * self._source_phases[None, :]).cpu()

        results = torch.zeros(n, dtype=torch.complex128)
        for p in range(self.order + 1):
            lag = self.delay_steps + p
            emitted = step - lag
            valid = (lag >= 1) & (emitted >= h.first_step)
            cols = (emitted + h.window).clamp(min=0)
            vals = samples[emitter, cols]
            results += torch.where(valid, self.weights[p] * vals, torch.zeros_like(vals)).sum(dim=1)
        return results * self.propagator.observer_phase(step)
