"""
Conserved (Cahn-Hilliard) dynamics for a single species.

    ∂u/∂t = ∇·(M ∇μ),    μ = f'(u) - κ∇²u

Written in flux-divergence form, the spatial integral of u is conserved
up to round-off on a periodic grid.
"""

import numpy as np

from ..numerics.fields import Field, FieldStore
from ..numerics.operators import DerivOps
from .base import EnergyReporting, Term

ALL_CELLS = slice(None)


class CahnHilliardTerm(Term, EnergyReporting):
    """
    Cahn-Hilliard term acting on one target field.

    Args:
        state: State store to read from
        deriv: Derivative store to accumulate into
        ops: Spatial operator backend
        target: Name of the conserved field u
        free_energy: Functional providing mu(u, lap_u), bulk(u) and kappa
        mobility: Callable M(i, state)
    """

    def __init__(self, state: FieldStore, deriv: FieldStore, ops: DerivOps,
                 target: str, free_energy, mobility):
        super().__init__(state, deriv, ops)
        self.target = target
        self.free_energy = free_energy
        self.mobility = mobility

    def add_rhs(self) -> None:
        u = self.state.get(self.target)
        lap_u = self.ops.laplacian(u)

        mu = Field(u.grid, self.free_energy.mu(u.values, lap_u.values))
        grad_mu = self.ops.gradient(mu)

        M = self.mobility(ALL_CELLS, self.state)
        flux = [Field(u.grid, M * g.values) for g in grad_mu]

        dudt = self.ops.divergence(flux)
        self.deriv.ensure(self.target).values += dudt.values

    def energy(self) -> float:
        u = self.state.get(self.target)
        grad_u = self.ops.gradient(u)

        grad2 = np.zeros(u.grid.size)
        for g in grad_u:
            grad2 += g.values**2

        e_bulk = self.free_energy.bulk(u.values)
        e_grad = 0.5 * self.free_energy.kappa * grad2
        return float(np.sum(e_bulk + e_grad) * u.grid.dV)
