"""
Numerical grid module for uniform periodic finite-difference discretization.

This module implements a D-dimensional (D = 1, 2 or 3) Cartesian grid with
periodic topology along every axis. Field values live at cell centres and
are stored in a flat buffer; the mapping between a multi-index and the
flat offset is first-axis-fastest:

    offset = i_0 + n_0 * (i_1 + n_1 * i_2)

which is also the x-fastest order expected by structured-grid output
formats, so buffers can be written out without reordering.

Key features:
    - Immutable grid description (cell counts, physical extents)
    - Derived spacing, cell volume and total cell count
    - flat/unflat index conversion for arbitrary dimension
    - Helpers for building initial field profiles on the grid
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

from ..errors import ConfigError


def flat(index: Sequence[int], n: Sequence[int]) -> int:
    """
    Linear offset of a multi-index, first axis varying fastest.

    Args:
        index: Cell coordinates, one per axis, each in [0, n[d])
        n: Cell counts per axis

    Returns:
        Flat offset in [0, prod(n))
    """
    offset = 0
    stride = 1
    for i_d, n_d in zip(index, n):
        offset += i_d * stride
        stride *= n_d
    return offset


def unflat(offset: int, n: Sequence[int]) -> Tuple[int, ...]:
    """Exact inverse of flat()."""
    index = []
    for n_d in n:
        index.append(offset % n_d)
        offset //= n_d
    return tuple(index)


@dataclass(frozen=True)
class Grid:
    """
    Uniform periodic grid.

    The domain along axis d is [0, L[d]) split into n[d] cells of width
    dx[d] = L[d] / n[d]. The last cell along an axis is adjacent to the
    first.

    Attributes:
        n: Number of cells per axis
        L: Physical length per axis
        dx: Grid spacing per axis (derived)
        dV: Cell volume, the product of the spacings (derived)
        size: Total number of cells (derived)
    """
    n: Tuple[int, ...]
    L: Tuple[float, ...]
    dx: Tuple[float, ...] = field(init=False)
    dV: float = field(init=False)
    size: int = field(init=False)

    def __post_init__(self):
        n = tuple(int(v) for v in self.n)
        L = tuple(float(v) for v in self.L)
        if not 1 <= len(n) <= 3:
            raise ConfigError(f"Grid dimension must be 1, 2 or 3, got {len(n)}")
        if len(n) != len(L):
            raise ConfigError(
                f"Grid cell counts {n} and lengths {L} have different dimensions")
        if any(v <= 0 for v in n):
            raise ConfigError(f"Grid cell counts must be positive, got {n}")
        if any(v <= 0.0 for v in L):
            raise ConfigError(f"Grid lengths must be positive, got {L}")

        dx = tuple(L_d / n_d for L_d, n_d in zip(L, n))
        # Frozen dataclass: derived values are set once here
        object.__setattr__(self, 'n', n)
        object.__setattr__(self, 'L', L)
        object.__setattr__(self, 'dx', dx)
        object.__setattr__(self, 'dV', float(np.prod(dx)))
        object.__setattr__(self, 'size', int(np.prod(n)))

    @property
    def dim(self) -> int:
        """Spatial dimension D."""
        return len(self.n)

    @property
    def shape(self) -> Tuple[int, ...]:
        """Per-axis cell counts, usable as a numpy shape."""
        return self.n

    @property
    def total_volume(self) -> float:
        """Total volume of the computational domain."""
        return self.size * self.dV

    def integrate(self, values: np.ndarray) -> float:
        """
        Integrate cell values over the domain.

        Args:
            values: Flat array of cell values

        Returns:
            Sum of values times the cell volume
        """
        return float(np.sum(values) * self.dV)

    def average(self, values: np.ndarray) -> float:
        """Volume-averaged value of a flat cell array."""
        return self.integrate(values) / self.total_volume

    def coordinates(self) -> Tuple[np.ndarray, ...]:
        """
        Cell-centre coordinates along each axis, as flat arrays.

        Returns:
            One array of length size per axis, holding x_d = (i_d + 0.5) dx_d
        """
        axes = [(np.arange(n_d) + 0.5) * dx_d for n_d, dx_d in zip(self.n, self.dx)]
        mesh = np.meshgrid(*axes, indexing='ij')
        return tuple(m.ravel(order='F') for m in mesh)


def create_droplet(grid: Grid,
                   c_plus: float,
                   c_minus: float,
                   radius: float,
                   center: Optional[Sequence[float]] = None,
                   interface_width: float = 1.0) -> np.ndarray:
    """
    Create a field profile with a single spherical droplet.

    The droplet is represented by a smooth tanh profile:
        c(x) = (c+ + c-)/2 + (c+ - c-)/2 * tanh((R - |x - x0|) / w)

    where |x - x0| is the minimum-image distance on the periodic domain.

    Args:
        grid: Grid object
        c_plus: Value inside the droplet
        c_minus: Value outside the droplet
        radius: Droplet radius R
        center: Droplet centre x0 (defaults to the domain centre)
        interface_width: Width w of the tanh interface

    Returns:
        Flat array of cell values
    """
    if center is None:
        center = [L_d / 2 for L_d in grid.L]
    if len(center) != grid.dim:
        raise ConfigError(
            f"Droplet centre {tuple(center)} does not match grid dimension {grid.dim}")

    dist_sq = np.zeros(grid.size)
    for x_d, c_d, L_d in zip(grid.coordinates(), center, grid.L):
        delta = x_d - c_d
        delta -= L_d * np.round(delta / L_d)
        dist_sq += delta**2

    profile = np.tanh((radius - np.sqrt(dist_sq)) / interface_width)

    c_mean = (c_plus + c_minus) / 2
    c_diff = (c_plus - c_minus) / 2
    return c_mean + c_diff * profile


def create_random_normal(grid: Grid,
                         average: float,
                         stddev: float,
                         rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Create a field of independent normal samples, one per cell.

    Args:
        grid: Grid object
        average: Mean of the distribution
        stddev: Standard deviation of the distribution
        rng: Random generator (a fresh unseeded one if omitted)

    Returns:
        Flat array of cell values
    """
    if rng is None:
        rng = np.random.default_rng()
    return rng.normal(average, stddev, size=grid.size)
