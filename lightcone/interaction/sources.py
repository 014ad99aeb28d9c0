"""Point sources and their amplitude history."""

from __future__ import annotations

from dataclasses import dataclass

import torch


@dataclass(frozen=True)
class SourceSet:
    """Positions and dipole orientations of N point sources."""

    positions: torch.Tensor  # (N, 3)
    dipoles: torch.Tensor    # (N, 3)

    def __post_init__(self) -> None:
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (N,3), got {tuple(self.positions.shape)}")
        if self.dipoles.shape != self.positions.shape:
            raise ValueError(
                f"dipoles must match positions {tuple(self.positions.shape)}, got {tuple(self.dipoles.shape)}"
            )

    @classmethod
    def from_points(
        cls,
        positions,
        dipoles=None,
        *,
        dtype: torch.dtype = torch.float64,
    ) -> "SourceSet":
        pos = torch.as_tensor(positions, dtype=dtype).reshape(-1, 3)
        if dipoles is None:
            dip = torch.zeros_like(pos)
            dip[:, 2] = 1.0
        else:
            dip = torch.as_tensor(dipoles, dtype=dtype).reshape(-1, 3)
        return cls(positions=pos, dipoles=dip)

    def __len__(self) -> int:
        return int(self.positions.shape[0])


class History:
    """Complex amplitude of every source per time step.

    Steps run from `-window` (pre-simulation samples, e.g. an initial
    condition extended into the past) to `num_steps - 1`. Samples are written
    in increasing step order; the newest step may be rewritten (a corrector
    pass), anything older is frozen.
    """

    def __init__(
        self,
        num_sources: int,
        window: int,
        num_steps: int,
        *,
        dtype: torch.dtype = torch.complex128,
        device: torch.device | str = "cpu",
    ) -> None:
        if int(num_sources) < 0 or int(window) < 0 or int(num_steps) <= 0:
            raise ValueError(
                f"invalid history extent: num_sources={num_sources} window={window} num_steps={num_steps}"
            )
        self.window = int(window)
        self.num_steps = int(num_steps)
        self.array = torch.zeros((int(num_sources), self.window + self.num_steps), dtype=dtype, device=device)
        self.newest = self.first_step - 1
        # Bumped by fill(); per-step caches are stale once it changes.
        self.epoch = 0

    @property
    def num_sources(self) -> int:
        return int(self.array.shape[0])

    @property
    def first_step(self) -> int:
        return -self.window

    @property
    def last_step(self) -> int:
        return self.num_steps - 1

    def _column(self, step: int) -> int:
        step = int(step)
        if step < self.first_step or step > self.last_step:
            raise IndexError(f"step {step} outside history [{self.first_step}, {self.last_step}]")
        return step + self.window

    def fill(self, value: complex) -> None:
        """Set every sample, e.g. a uniform initial state.

        The write position is left alone, so per-step records can follow.
        """
        self.array.fill_(value)
        self.epoch += 1

    def record(self, step: int, values: torch.Tensor) -> None:
        """Write the amplitudes of all sources at `step`."""
        col = self._column(step)
        if int(step) < self.newest:
            raise ValueError(f"step {step} is older than the newest recorded step {self.newest}")
        values = torch.as_tensor(values, dtype=self.array.dtype, device=self.array.device).reshape(-1)
        if values.shape[0] != self.num_sources:
            raise ValueError(f"expected {self.num_sources} values, got {values.shape[0]}")
        self.array[:, col] = values
        self.newest = int(step)

    def at(self, step: int) -> torch.Tensor:
        """(N,) amplitudes at `step`."""
        return self.array[:, self._column(step)]
