"""
Mobility models: transport coefficients scaling flux in response to a
chemical-potential gradient.

Single-species mobilities are callables M(i, state) returning a
non-negative coefficient for cell i. The index may be a flat cell offset
or any numpy index; terms pass slice(None) to evaluate every cell at once,
in which case the result is either a scalar or an array of length
grid.size.

Multi-species mobilities come in two shapes, described by the
DiagonalMobility and MatrixMobility protocols:
    M_i(species, i, state)              one coefficient per species
    M_ibeta(species, beta, i, state)    full coupling matrix
"""

from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from ..errors import ConfigError
from ..numerics.fields import FieldStore


class ConstantMobility:
    """Spatially uniform mobility M0."""

    def __init__(self, M0: float = 1.0):
        if M0 < 0:
            raise ConfigError(f"const mobility: M0 must be non-negative, got {M0}")
        self.M0 = M0

    def __call__(self, i, state: FieldStore):
        return self.M0


class ExpOfFieldMobility:
    """
    Mobility decaying exponentially with another field's local value.

        M(i) = exp(-s[i] / c0)
    """

    def __init__(self, field: str = 'c', c0: float = 1.0):
        if c0 == 0:
            raise ConfigError("exp_of_field mobility: c0 must be non-zero")
        self.field = field
        self.c0 = c0

    def __call__(self, i, state: FieldStore):
        return np.exp(-state.get(self.field).values[i] / self.c0)


class WertheimMobility:
    """
    Mobility from association theory.

        M(i) = D0 · X(ρ)^valence / (dμ/dρ)(ρ)

    where X and dμ/dρ are taken from the bound WertheimFreeEnergy and ρ is
    the local value of `field`.
    """

    def __init__(self, free_energy, D0: float = 1.0, field: str = 'c'):
        self.free_energy = free_energy
        self.D0 = D0
        self.field = field

    def __call__(self, i, state: FieldStore):
        rho = state.get(self.field).values[i]
        fe = self.free_energy
        return self.D0 * fe.X(rho)**fe.valence / fe.dmu_du(rho)


@runtime_checkable
class DiagonalMobility(Protocol):
    def M_i(self, species: int, i, state: FieldStore):
        ...


@runtime_checkable
class MatrixMobility(Protocol):
    def M_ibeta(self, species: int, beta: int, i, state: FieldStore):
        ...


class DiagonalConstantMobility:
    """Constant per-species mobility M_i."""

    def __init__(self, M: Sequence[float]):
        self.M = [float(m) for m in M]

    def M_i(self, species: int, i, state: FieldStore):
        return self.M[species]


class MatrixConstantMobility:
    """Constant N x N mobility matrix M_iβ."""

    def __init__(self, M: Sequence[Sequence[float]]):
        self.M = np.asarray(M, dtype=float)
        if self.M.ndim != 2 or self.M.shape[0] != self.M.shape[1]:
            raise ConfigError(f"full_const mobility: M must be square, got shape {self.M.shape}")

    @property
    def n_species(self) -> int:
        return self.M.shape[0]

    def M_ibeta(self, species: int, beta: int, i, state: FieldStore):
        return self.M[species, beta]
