"""Device selection for lattice kernels.

Everything in `lightcone.kernels` is plain torch, so any device torch supports
will run it. The one hard constraint is precision: the spectral tables are
built in float64/complex128 by default, which Apple's MPS backend does not
provide. `get_device` only offers MPS for single-precision runs.
"""

from __future__ import annotations

import torch

__all__ = [
    "cuda_supported",
    "mps_supported",
    "get_device",
]


def cuda_supported() -> bool:
    return bool(torch.cuda.is_available())


def mps_supported() -> bool:
    """Whether the current runtime can execute MPS tensors at all."""
    try:
        return bool(torch.backends.mps.is_available())
    except AttributeError:
        return False


def get_device(dtype: torch.dtype = torch.float64) -> str:
    """Pick the device for the given working precision."""
    if cuda_supported():
        return "cuda"
    if dtype == torch.float32 and mps_supported():
        return "mps"
    return "cpu"
