"""Tests for the uniform Lagrange basis used on the retarded-time stencil."""

from __future__ import annotations

import pytest
import torch

from lightcone.kernels.interpolation import UniformLagrangeSet, lagrange_derivative_table


def _cubic(x):
    return 1.0 + 2.0 * x - x * x + 0.5 * x ** 3


def _cubic_dx(x):
    return 2.0 - 2.0 * x + 1.5 * x * x


def _cubic_dxx(x):
    return -2.0 + 3.0 * x


@pytest.mark.parametrize("order", [0, 1, 3, 5])
def test_partition_of_unity(order):
    x = torch.linspace(0.0, 1.0, 11, dtype=torch.float64)
    table = lagrange_derivative_table(x, order)

    assert table.shape == (3, order + 1, 11)
    assert torch.allclose(table[0].sum(dim=0), torch.ones_like(x), atol=1e-12)
    assert torch.allclose(table[1].sum(dim=0), torch.zeros_like(x), atol=1e-10)
    assert torch.allclose(table[2].sum(dim=0), torch.zeros_like(x), atol=1e-9)


def test_basis_is_nodal():
    order = 3
    x = torch.arange(order + 1, dtype=torch.float64)
    table = lagrange_derivative_table(x, order)
    assert torch.allclose(table[0], torch.eye(order + 1, dtype=torch.float64), atol=1e-14)


def test_reproduces_cubic_and_derivatives():
    order = 3
    nodes = torch.arange(order + 1, dtype=torch.float64)
    samples = _cubic(nodes)
    x = torch.tensor([0.0, 0.3, 0.928, 1.7, 2.5], dtype=torch.float64)
    table = lagrange_derivative_table(x, order)

    assert torch.allclose((table[0] * samples[:, None]).sum(dim=0), _cubic(x), atol=1e-12)
    assert torch.allclose((table[1] * samples[:, None]).sum(dim=0), _cubic_dx(x), atol=1e-11)
    assert torch.allclose((table[2] * samples[:, None]).sum(dim=0), _cubic_dxx(x), atol=1e-10)


def test_derivative_rows_scale_with_dt():
    x = torch.tensor([0.4], dtype=torch.float64)
    unit = lagrange_derivative_table(x, 3, dt=1.0)
    half = lagrange_derivative_table(x, 3, dt=0.5)

    assert torch.equal(half[0], unit[0])
    assert torch.allclose(half[1], 2.0 * unit[1])
    assert torch.allclose(half[2], 4.0 * unit[2])


def test_order_zero_is_constant():
    table = lagrange_derivative_table(torch.tensor([0.1, 0.9], dtype=torch.float64), 0)
    assert torch.equal(table[0], torch.ones(1, 2, dtype=torch.float64))
    assert torch.equal(table[1:], torch.zeros(2, 1, 2, dtype=torch.float64))


def test_uniform_set_matches_table():
    interp = UniformLagrangeSet(3)
    evaluations = interp.evaluate_derivative_table_at_x(0.25, 1.0)

    assert evaluations.shape == (3, 4)
    assert interp.evaluations is evaluations
    expected = lagrange_derivative_table(torch.tensor([0.25], dtype=torch.float64), 3)[..., 0]
    assert torch.allclose(evaluations, expected)


def test_invalid_arguments_raise():
    with pytest.raises(ValueError, match="order"):
        UniformLagrangeSet(-1)
    with pytest.raises(ValueError, match="dt"):
        lagrange_derivative_table(torch.zeros(1), 2, dt=0.0)
