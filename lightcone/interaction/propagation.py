"""Reference-frame corrections applied around the retarded convolution.

Amplitudes are often stored in a frame rotating at a carrier frequency omega.
Propagation happens in the lab frame, so each retarded sample is rotated out
of the frame at its emission step and the result is rotated back at the
observation step. The identity propagator leaves both untouched.
"""

from __future__ import annotations

import cmath
from dataclasses import dataclass
from typing import Protocol


class Propagator(Protocol):
    def source_phase(self, step: int) -> complex:
        """Factor applied to amplitudes emitted at `step`."""
        ...

    def observer_phase(self, step: int) -> complex:
        """Factor applied to results observed at `step`."""
        ...


class IdentityPropagator:
    def source_phase(self, step: int) -> complex:
        return 1.0 + 0.0j

    def observer_phase(self, step: int) -> complex:
        return 1.0 + 0.0j


@dataclass(frozen=True)
class RotatingFramePropagator:
    """Frame rotating at angular frequency `omega` (rad per unit time)."""

    omega: float
    dt: float

    def source_phase(self, step: int) -> complex:
        return cmath.exp(-1j * self.omega * step * self.dt)

    def observer_phase(self, step: int) -> complex:
        return cmath.exp(1j * self.omega * step * self.dt)
