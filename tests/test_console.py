"""Tests for the rich console wrapper."""

from __future__ import annotations

import io

from rich.console import Console as RichConsole

from lightcone.console import Console


def _captured() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    rich = RichConsole(file=buffer, width=200, color_system=None, force_terminal=False)
    return Console(rich), buffer


def test_details_are_printed_verbatim():
    console, buffer = _captured()
    console.error("Kernel table could not be built", detail="step 9 outside history [-3, 7] [bold]x")
    console.info("Lattice built", detail="Lattice(dimensions=(5, 5, 5), lower=[0, 0, 0])")

    out = buffer.getvalue()
    assert "✗ Kernel table could not be built" in out
    assert "[-3, 7] [bold]x" in out
    assert "lower=[0, 0, 0]" in out


def test_levels_and_header():
    console, buffer = _captured()
    console.success("Propagation finished", detail="max relative error 1.0e-06")
    console.warn("History window shorter than the kernel depth")
    console.header("Retarded propagation", steps="256", device="cpu")

    out = buffer.getvalue()
    assert "✓ Propagation finished max relative error 1.0e-06" in out
    assert "⚠ History window shorter than the kernel depth" in out
    assert "Retarded propagation" in out
    assert "steps: 256" in out
    assert "device: cpu" in out
