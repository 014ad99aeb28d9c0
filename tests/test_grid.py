"""Tests for the box lattice.

Covers:
- x-major coordinate/index bijection.
- Flooring of boundary and negative positions.
- Stable, exact partition of sources into box ranges.
- Bounds extent with padding and the transit-step rule.
"""

from __future__ import annotations

import math

import pytest
import torch

from lightcone.kernels.grid import Lattice, stencil_offsets


def _lattice(dims=(3, 4, 5), spacing=1.0) -> Lattice:
    return Lattice.from_dimensions(spacing, dims)


def test_coord_idx_bijection():
    lat = _lattice()
    idx = torch.arange(lat.num_boxes)
    coords = lat.idx_to_coord(idx)
    assert torch.equal(lat.coord_to_idx(coords), idx)

    nx, ny, nz = lat.dimensions
    X, Y, Z = torch.meshgrid(torch.arange(nx), torch.arange(ny), torch.arange(nz), indexing="ij")
    grid = torch.stack([X, Y, Z], dim=-1)
    assert torch.equal(lat.idx_to_coord(lat.coord_to_idx(grid)), grid)


def test_linearisation_is_x_major():
    lat = _lattice()
    assert int(lat.coord_to_idx([1, 2, 3])) == 3 + 5 * (2 + 4 * 1)
    field = torch.arange(lat.num_boxes).reshape(lat.dimensions)
    assert int(field[1, 2, 3]) == int(lat.coord_to_idx([1, 2, 3]))


@pytest.mark.parametrize(
    "pos, spacing, expected",
    [
        ([4.0, 0.0, 1.0], 1.0, [4, 0, 1]),
        ([-3.0, -2.5, -0.25], 1.0, [-3, -3, -1]),
        ([-1.0, 1.0, 0.0], 0.5, [-2, 2, 0]),
        ([-0.25, 0.75, -0.5], 0.5, [-1, 1, -1]),
    ],
)
def test_grid_coordinate_floors_toward_negative_infinity(pos, spacing, expected):
    lat = _lattice(spacing=spacing)
    assert lat.grid_coordinate(torch.tensor(pos)).tolist() == expected


def test_box_ranges_partition_sources_stably():
    gen = torch.Generator().manual_seed(7)
    positions = torch.rand(200, 3, generator=gen, dtype=torch.float64) * 3.0 - 1.0
    lat = Lattice(1.0, positions)

    seen = []
    for box in range(lat.num_boxes):
        members = lat.box_contents(box)
        if members.numel() > 1:
            assert bool((members[1:] > members[:-1]).all())
        if members.numel():
            assert bool((lat.associated_grid_index(positions[members]) == box).all())
        seen.append(members)

    everything = torch.cat(seen)
    assert everything.numel() == positions.shape[0]
    assert torch.equal(torch.sort(everything).values, torch.arange(positions.shape[0]))
    assert int(lat.box_ranges[0, 0]) == 0
    assert int(lat.box_ranges[-1, 1]) == positions.shape[0]


@pytest.mark.parametrize("padding", [0, 1, 3])
def test_bounds_extent_with_padding(padding):
    positions = torch.tensor([[-3.0, -3.0, -3.0], [3.0, 2.0, 1.5]], dtype=torch.float64)
    lat = Lattice(1.0, positions, padding=padding)

    assert lat.bounds[:, 0].tolist() == [-3 - padding] * 3
    assert lat.bounds[:, 1].tolist() == [3 + padding + 1, 2 + padding + 1, 1 + padding + 1]
    assert lat.dimensions == (7 + 2 * padding, 6 + 2 * padding, 5 + 2 * padding)
    coords = lat.grid_coordinate(positions)
    assert bool(((coords >= lat.bounds[:, 0]) & (coords < lat.bounds[:, 1])).all())


def test_far_corner_box_holds_far_source():
    positions = torch.tensor([[0.0, 0.0, 0.0], [4.0, 4.0, 4.0]], dtype=torch.float64)
    lat = Lattice(1.0, positions)

    assert lat.dimensions == (5, 5, 5)
    assert torch.equal(lat.spatial_coord_of_box(lat.num_boxes - 1), positions[1])
    assert lat.box_contents(lat.num_boxes - 1).tolist() == [1]


def test_max_transit_steps():
    lat = _lattice(dims=(5, 5, 5))
    assert lat.max_diagonal == pytest.approx(math.sqrt(75.0))
    assert lat.max_transit_steps(1.0, 1.0) == math.ceil(math.sqrt(75.0)) == 9
    assert lat.max_transit_steps(2.0, 1.0) == math.ceil(math.sqrt(75.0) / 2.0) == 5
    assert lat.max_transit_steps(1.0, 0.5) == math.ceil(math.sqrt(75.0) / 0.5)
    assert lat.circulant_shape(1.0, 1.0, pad=3) == (12, 5, 5, 10)


def test_expansion_box_indices_order():
    positions = torch.tensor([[0.2, 0.4, 0.6], [2.0, 2.0, 2.0]], dtype=torch.float64)
    lat = Lattice(1.0, positions, padding=1)
    order = 1

    indices = lat.expansion_box_indices(positions[0], order)
    anchor = lat.grid_coordinate(positions[0]) - lat.bounds[:, 0]
    expected = [int(lat.coord_to_idx(anchor + off)) for off in stencil_offsets(order)]
    assert indices.tolist() == expected

    # z innermost, x outermost
    assert stencil_offsets(order)[:3].tolist() == [[0, 0, 0], [0, 0, 1], [0, 1, 0]]
    assert int(indices[1] - indices[0]) == 1
    assert int(indices[4] - indices[0]) == lat.dimensions[1] * lat.dimensions[2]

    batched = lat.expansion_box_indices(positions, order)
    assert batched.shape == (2, 8)
    assert torch.equal(batched[0], indices)


def test_expansion_stencil_outside_lattice_raises():
    positions = torch.tensor([[-3.0, -3.0, -3.0], [3.0, 3.0, 3.0]], dtype=torch.float64)
    lat = Lattice(1.0, positions, padding=0)
    with pytest.raises(ValueError, match="leaves the lattice"):
        lat.expansion_box_indices(positions, 1)


@pytest.mark.parametrize("spacing", [(1.0, 0.0, 1.0), -1.0, (1.0, float("nan"), 1.0)])
def test_invalid_spacing_raises(spacing):
    with pytest.raises(ValueError, match="spacing"):
        Lattice(spacing, torch.zeros(1, 3, dtype=torch.float64))


def test_invalid_construction_raises():
    with pytest.raises(ValueError, match="padding"):
        Lattice(1.0, torch.zeros(1, 3, dtype=torch.float64), padding=-1)
    with pytest.raises(ValueError, match="zero sources"):
        Lattice(1.0, torch.zeros(0, 3, dtype=torch.float64))
    with pytest.raises(ValueError, match="expansion order"):
        _lattice().expansion_box_indices(torch.zeros(3, dtype=torch.float64), -1)
    with pytest.raises(ValueError):
        _lattice().max_transit_steps(0.0, 1.0)
