"""Lightcone: lattice-accelerated retarded interactions.

Layout:
- `lightcone/kernels/`: lattice, interpolation, expansion and kernel tables
- `lightcone/interaction/`: sources, history and the per-step evaluators

Keep this module light so importing `lightcone.kernels.*` does not pull in
matplotlib or the evaluators.
"""

from __future__ import annotations

__all__ = [
    "AimConfig",
    "AimInteraction",
    "DirectInteraction",
    "Lattice",
]


def __getattr__(name: str):  # pragma: no cover
    if name == "AimConfig":
        from .config import AimConfig as _AimConfig

        return _AimConfig
    if name == "AimInteraction":
        from .interaction.aim import AimInteraction as _AimInteraction

        return _AimInteraction
    if name == "DirectInteraction":
        from .interaction.direct import DirectInteraction as _DirectInteraction

        return _DirectInteraction
    if name == "Lattice":
        from .kernels.grid import Lattice as _Lattice

        return _Lattice
    raise AttributeError(name)
