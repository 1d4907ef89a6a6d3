"""
Discrete differential operators on periodic grids.

This module defines the operator backend consumed by the physical terms:
    - Laplacian: ∇²f
    - Gradient: ∇f, one Field per axis
    - Divergence of a vector field: ∇·v

DerivOps is the abstract interface; FDOps is the second-order central
finite-difference implementation. Terms only ever talk to DerivOps, so a
different backend (e.g. spectral) can be substituted without touching
term code.

Periodic wraparound is handled with numpy.roll on the n-D view of a
field: np.roll(a, -1, axis=d)[i] is a[i + e_d] and np.roll(a, 1, axis=d)[i]
is a[i - e_d], with index 0 neighbouring index n[d] - 1.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np

from ..errors import ConfigError
from .fields import Field


class DerivOps(ABC):
    """Spatial operator backend. All operators are pure and allocate their outputs."""

    @abstractmethod
    def laplacian(self, f: Field) -> Field:
        ...

    @abstractmethod
    def gradient(self, f: Field) -> List[Field]:
        ...

    @abstractmethod
    def divergence(self, v: Sequence[Field]) -> Field:
        ...


class FDOps(DerivOps):
    """
    Central finite differences with periodic boundary conditions.

    All stencils are second-order accurate in the grid spacing:
        laplacian:  Σ_d (f[i+e_d] - 2 f[i] + f[i-e_d]) / dx_d²
        gradient:   (f[i+e_d] - f[i-e_d]) / (2 dx_d)
        divergence: Σ_d (v_d[i+e_d] - v_d[i-e_d]) / (2 dx_d)
    """

    def laplacian(self, f: Field) -> Field:
        a = f.as_array()
        out = np.zeros_like(a)
        for d, dx in enumerate(f.grid.dx):
            out += (np.roll(a, -1, axis=d) - 2.0 * a + np.roll(a, 1, axis=d)) / (dx * dx)
        return Field.from_array(f.grid, out)

    def gradient(self, f: Field) -> List[Field]:
        a = f.as_array()
        grad = []
        for d, dx in enumerate(f.grid.dx):
            g = (np.roll(a, -1, axis=d) - np.roll(a, 1, axis=d)) / (2.0 * dx)
            grad.append(Field.from_array(f.grid, g))
        return grad

    def divergence(self, v: Sequence[Field]) -> Field:
        grid = v[0].grid
        if len(v) != grid.dim:
            raise ValueError(
                f"Divergence needs {grid.dim} components, got {len(v)}")
        out = np.zeros(grid.shape, order='F')
        for d, (v_d, dx) in enumerate(zip(v, grid.dx)):
            a = v_d.as_array()
            out += (np.roll(a, -1, axis=d) - np.roll(a, 1, axis=d)) / (2.0 * dx)
        return Field.from_array(grid, out)


_FD_OPS = FDOps()


def make_ops(name: str = 'fd') -> DerivOps:
    """
    Resolve an operator backend by its configuration name.

    Args:
        name: Backend name. Only "fd" is available.

    Returns:
        Shared DerivOps instance (operators are stateless)
    """
    if name == 'fd':
        return _FD_OPS
    if name == 'spectral':
        raise ConfigError("ops.type 'spectral' is not implemented; use 'fd'")
    raise ConfigError(f"Unknown ops.type: {name}")
