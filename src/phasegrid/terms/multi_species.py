"""
Conserved dynamics for N coupled species.

    ∂φ_i/∂t = -∇·J_i,    J_i = -Σ_β M_iβ ∇μ_β

The chemical potentials come from one functional shared by all species
and may couple them. The mobility is either diagonal (J_i depends on ∇μ_i
only) or a full matrix; which one is decided once, when the term is
constructed, from the interface the mobility object provides.
"""

from typing import List, Sequence

import numpy as np

from ..errors import ConfigError
from ..numerics.fields import Field, FieldStore
from ..numerics.operators import DerivOps
from ..physics.mobility import DiagonalMobility, MatrixMobility
from .base import EnergyReporting, Term

ALL_CELLS = slice(None)


class MultiCahnHilliardTerm(Term, EnergyReporting):
    """
    Multi-species Cahn-Hilliard term.

    Args:
        state: State store to read from
        deriv: Derivative store to accumulate into
        ops: Spatial operator backend
        targets: Names of the N species fields, in functional order
        free_energy: Functional providing mu(phis, laps), bulk(phis), kappa[N]
        mobility: A DiagonalMobility or a MatrixMobility
    """

    def __init__(self, state: FieldStore, deriv: FieldStore, ops: DerivOps,
                 targets: Sequence[str], free_energy, mobility):
        super().__init__(state, deriv, ops)
        self.targets = list(targets)
        self.free_energy = free_energy
        self.mobility = mobility

        if isinstance(mobility, DiagonalMobility):
            self._flux = self._diagonal_flux
        elif isinstance(mobility, MatrixMobility):
            self._flux = self._matrix_flux
        else:
            raise ConfigError(
                f"{type(mobility).__name__} provides neither M_i nor M_ibeta")

    def add_rhs(self) -> None:
        phis = [self.state.get(name) for name in self.targets]
        grid = phis[0].grid
        laps = [self.ops.laplacian(phi).values for phi in phis]

        mus = self.free_energy.mu([phi.values for phi in phis], laps)
        grad_mu = [self.ops.gradient(Field(grid, mu)) for mu in mus]

        for i, name in enumerate(self.targets):
            flux = self._flux(i, grad_mu)
            dphi_dt = self.ops.divergence(flux)
            self.deriv.ensure(name).values -= dphi_dt.values

    def _diagonal_flux(self, i: int, grad_mu: List[List[Field]]) -> List[Field]:
        M_i = self.mobility.M_i(i, ALL_CELLS, self.state)
        return [Field(g.grid, -M_i * g.values) for g in grad_mu[i]]

    def _matrix_flux(self, i: int, grad_mu: List[List[Field]]) -> List[Field]:
        grid = grad_mu[i][0].grid
        flux = [np.zeros(grid.size) for _ in range(grid.dim)]
        for beta, grad_beta in enumerate(grad_mu):
            M_ib = self.mobility.M_ibeta(i, beta, ALL_CELLS, self.state)
            for d, g in enumerate(grad_beta):
                flux[d] -= M_ib * g.values
        return [Field(grid, f) for f in flux]

    def energy(self) -> float:
        phis = [self.state.get(name) for name in self.targets]
        grid = phis[0].grid

        density = self.free_energy.bulk([phi.values for phi in phis])
        for kappa_i, phi in zip(self.free_energy.kappa, phis):
            for g in self.ops.gradient(phi):
                density = density + 0.5 * kappa_i * g.values**2
        return float(np.sum(density) * grid.dV)
