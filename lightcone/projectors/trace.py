"""Matplotlib figure of an observed time trace against its reference.

Example:
    project_trace(
        steps, observed, reference,
        TraceFigureConfig(name="gaussian_pulse", title="Retarded Gaussian"),
        output_dir=Path("artifacts"),
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from lightcone.console import console


@dataclass
class TraceFigureConfig:
    """Configuration for a trace figure.

    Attributes:
        name: Output filename (without extension)
        title: Chart title
        xlabel: X-axis label
        ylabel: Y-axis label
        figsize: Figure size (width, height)
        dpi: Output DPI
        format: Output format ("png", "pdf", "svg")
        log_error: Plot the relative error on a log axis below the trace
    """
    name: str = "trace"
    title: str = ""
    xlabel: str = "step"
    ylabel: str = "amplitude"
    figsize: tuple = (8, 6)
    dpi: int = 150
    format: str = "png"
    log_error: bool = True


def project_trace(
    steps: Sequence[int],
    observed: Sequence[float],
    reference: Sequence[float],
    config: TraceFigureConfig | None = None,
    output_dir: Path | None = None,
) -> Path:
    """Plot `observed` and `reference` over `steps`; return the saved path."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    config = config or TraceFigureConfig()
    output_dir = Path(output_dir) if output_dir is not None else Path("artifacts")
    output_dir.mkdir(parents=True, exist_ok=True)

    if config.log_error:
        fig, (ax, ax_err) = plt.subplots(2, 1, figsize=config.figsize, sharex=True)
    else:
        fig, ax = plt.subplots(figsize=config.figsize)
        ax_err = None

    ax.plot(steps, reference, color="#1f77b4", label="Reference")
    ax.plot(steps, observed, color="#ff7f0e", linestyle="--", label="Lattice")
    if config.title:
        ax.set_title(config.title)
    ax.set_ylabel(config.ylabel)
    ax.grid(True, alpha=0.3)
    ax.legend()

    if ax_err is not None:
        obs = np.asarray(observed, dtype=np.float64)
        ref = np.asarray(reference, dtype=np.float64)
        err = np.abs(obs - ref) / np.where(ref != 0, np.abs(ref), np.inf)
        ax_err.semilogy(steps, np.maximum(err, 1e-18), color="#d62728")
        ax_err.set_ylabel("relative error")
        ax_err.grid(True, alpha=0.3)
        ax_err.set_xlabel(config.xlabel)
    else:
        ax.set_xlabel(config.xlabel)

    output_path = output_dir / f"{config.name}.{config.format}"
    console.info(f"Saving figure to: {output_path}")
    fig.savefig(output_path, dpi=config.dpi, bbox_inches="tight")
    plt.close(fig)
    return output_path
