"""Uniform Lagrange interpolation on the retarded-time stencil.

The basis polynomials live on the integer nodes 0..order (in units of time
steps):

    L_p(x) = prod_{q != p} (x - q) / (p - q)

A history sampled at steps n - m - p, p = 0..order, is interpolated to the
retarded time n - m - x by sum_p L_p(x) * h(n - m - p). Rows 1 and 2 of the
derivative table are d/dx and d^2/dx^2 of the basis divided by dt and dt^2.
"""

from __future__ import annotations

import torch

DERIVATIVE_ROWS = 3


def _check_order(order: int) -> int:
    order = int(order)
    if order < 0:
        raise ValueError(f"interpolation order must be >= 0, got {order}")
    return order


def lagrange_derivative_table(x: torch.Tensor, order: int, dt: float = 1.0) -> torch.Tensor:
    """Evaluate the basis and its first two derivatives at every `x`.

    x: tensor of any shape (fractional offsets, in steps).
    returns: (3, order+1, *x.shape), indexed [derivative][node].
    """
    order = _check_order(order)
    if not (dt > 0.0):
        raise ValueError(f"dt must be > 0, got {dt}")
    x = torch.as_tensor(x, dtype=torch.float64)
    nodes = range(order + 1)

    table = torch.zeros((DERIVATIVE_ROWS, order + 1) + tuple(x.shape), dtype=x.dtype, device=x.device)
    for p in nodes:
        others = [q for q in nodes if q != p]
        # a_q = (x - q) / (p - q); a_q' = 1 / (p - q)
        factors = {q: (x - q) / (p - q) for q in others}
        slopes = {q: 1.0 / (p - q) for q in others}

        value = torch.ones_like(x)
        for q in others:
            value = value * factors[q]

        first = torch.zeros_like(x)
        second = torch.zeros_like(x)
        for r in others:
            rest = [q for q in others if q != r]
            term = torch.full_like(x, slopes[r])
            for q in rest:
                term = term * factors[q]
            first = first + term
            for s in rest:
                pair = torch.full_like(x, slopes[r] * slopes[s])
                for q in rest:
                    if q != s:
                        pair = pair * factors[q]
                second = second + pair

        table[0, p] = value
        table[1, p] = first / dt
        table[2, p] = second / (dt * dt)
    return table


class UniformLagrangeSet:
    """Lagrange basis of a fixed order, evaluated one offset at a time."""

    def __init__(self, order: int):
        self.order = _check_order(order)
        self.evaluations = torch.zeros(DERIVATIVE_ROWS, self.order + 1, dtype=torch.float64)

    def evaluate_derivative_table_at_x(self, x: float, dt: float = 1.0) -> torch.Tensor:
        self.evaluations = lagrange_derivative_table(torch.tensor(float(x)), self.order, dt)
        return self.evaluations
