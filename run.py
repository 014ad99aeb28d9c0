#!/usr/bin/env python3
"""Retarded Gaussian propagation between two sources

One source emits a Gaussian pulse, the other sits at the far corner of the
lattice. The lattice-accelerated interaction is evaluated every step and
compared with the pulse delayed by the light travel time.

Usage:
    python run.py                          # Run with defaults
    python run.py --steps 512 --boxes 8    # Longer run, larger lattice
    python run.py --normalization distance # delta(t - R/c) / R
    python run.py --plot artifacts         # Save a trace figure
"""

from __future__ import annotations

import argparse
import math
from pathlib import Path

import torch

from lightcone.config import AimConfig
from lightcone.console import console
from lightcone.interaction.aim import AimInteraction
from lightcone.interaction.sources import History, SourceSet
from lightcone.kernels.normalization import SpatialNorm, spatial_norm
from lightcone.kernels.runtime import get_device
from lightcone.kernels.spectral import KernelAllocationError


def gaussian_pulse(t: float, total_time: float) -> float:
    arg = (t - total_time / 2.0) / (total_time / 6.0)
    return math.exp(-arg * arg / 2.0)


def main():
    parser = argparse.ArgumentParser(
        description="Retarded Gaussian propagation on a box lattice",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--steps", type=int, default=256, help="Number of simulation steps")
    parser.add_argument("--boxes", type=int, default=4, help="Source separation in boxes along each axis")
    parser.add_argument("--c", type=float, default=1.0, help="Propagation speed")
    parser.add_argument("--dt", type=float, default=1.0, help="Time step")
    parser.add_argument("--interpolation-order", type=int, default=3, help="Lagrange order in time")
    parser.add_argument(
        "--normalization",
        type=str,
        default=SpatialNorm.UNIT.value,
        choices=[n.value for n in SpatialNorm],
        help="Spatial normalization of the kernel",
    )
    parser.add_argument("--max-table-mb", type=float, default=None, help="Refuse kernel tables larger than this")
    parser.add_argument("--device", type=str, default=None, help="Device (cuda, cpu)")
    parser.add_argument("--plot", type=str, default=None, help="Directory for the trace figure")

    args = parser.parse_args()

    config = AimConfig(
        spacing=(args.c * args.dt,) * 3,
        c=args.c,
        dt=args.dt,
        interpolation_order=args.interpolation_order,
        normalization=SpatialNorm(args.normalization),
        device=args.device or get_device(torch.float64),
        max_table_bytes=int(args.max_table_mb * (1 << 20)) if args.max_table_mb is not None else None,
    )

    far = torch.tensor(config.spacing, dtype=torch.float64) * args.boxes
    sources = SourceSet.from_points([[0.0, 0.0, 0.0], far.tolist()])
    window = 10
    total_time = args.steps * config.dt
    history = History(len(sources), window, args.steps)
    for step in range(-window, args.steps):
        history.record(step, torch.tensor([gaussian_pulse(step * config.dt, total_time), 1.0]))

    console.header(
        "Retarded propagation",
        steps=str(args.steps),
        separation=f"{args.boxes} boxes",
        c=str(config.c),
        dt=str(config.dt),
        normalization=config.normalization.value,
        device=config.device,
    )

    try:
        aim = AimInteraction.from_config(config, sources, history)
    except KernelAllocationError as err:
        console.error("Kernel table could not be built", detail=str(err))
        raise SystemExit(1) from err

    separation = float(torch.linalg.vector_norm(far))
    delay = separation / config.c
    scale = 1.0 / float(spatial_norm(config.normalization, far))
    settle = aim.lattice.max_transit_steps(config.c, config.dt) + 10

    steps, observed, reference = [], [], []
    with console.spinner(f"Evaluating {args.steps} steps..."):
        for step in range(args.steps):
            value = aim.evaluate(step)[1].real.item()
            if step > settle:
                steps.append(step)
                observed.append(value)
                reference.append(gaussian_pulse(step * config.dt - delay, total_time) * scale)

    errors = [abs(o - r) / abs(r) for o, r in zip(observed, reference) if r != 0.0]
    max_error = max(errors) if errors else float("nan")
    console.success(
        "Propagation finished",
        detail=f"max relative error after step {settle}: {max_error:.3e}",
    )

    if args.plot:
        from lightcone.projectors import TraceFigureConfig, project_trace

        project_trace(
            steps,
            observed,
            reference,
            TraceFigureConfig(name="gaussian_pulse", title="Retarded Gaussian pulse"),
            output_dir=Path(args.plot),
        )


if __name__ == "__main__":
    main()
