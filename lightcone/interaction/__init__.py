"""Per-step interaction machinery.

Keep this module light: submodules are imported explicitly
(`lightcone.interaction.aim`, `lightcone.interaction.direct`, ...).
"""
from __future__ import annotations

__all__: list[str] = []
