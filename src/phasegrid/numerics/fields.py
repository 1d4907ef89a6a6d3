"""
Field containers for grid-sampled scalar quantities.

A Field is one scalar sampled at every cell of a Grid, stored as a flat
float64 buffer in the grid's first-axis-fastest order. A FieldStore is a
named collection of fields on one grid; it is the unit of state passed
between integrators and terms, and it behaves as a vector space over its
named fields through axpy() and plus_scaled().
"""

from typing import Dict, Iterator, List, Optional

import numpy as np

from ..errors import GridMismatchError, MissingFieldError
from .grid import Grid


class Field:
    """
    Dense scalar field on a Grid.

    Attributes:
        grid: Grid the field is sampled on
        values: Flat array of length grid.size, one value per cell
    """

    def __init__(self, grid: Grid, values: Optional[np.ndarray] = None):
        self.grid = grid
        if values is None:
            self.values = np.zeros(grid.size)
        else:
            values = np.array(values, dtype=float).ravel()
            if values.size != grid.size:
                raise GridMismatchError(
                    f"Field buffer has {values.size} values, grid has {grid.size} cells")
            self.values = values

    @classmethod
    def from_array(cls, grid: Grid, array: np.ndarray) -> 'Field':
        """Build a Field from an n-D array laid out as returned by as_array()."""
        return cls(grid, np.ravel(array, order='F'))

    def as_array(self) -> np.ndarray:
        """
        View the buffer as an n-D array of shape grid.shape.

        Axis d of the returned array is grid axis d. The view shares
        memory with the buffer, so writes go through.
        """
        return self.values.reshape(self.grid.shape, order='F')

    def copy(self) -> 'Field':
        return Field(self.grid, self.values)

    def fill(self, value: float) -> None:
        self.values.fill(value)

    def __len__(self) -> int:
        return self.values.size

    def __getitem__(self, i):
        return self.values[i]

    def __setitem__(self, i, value):
        self.values[i] = value

    def __repr__(self) -> str:
        return f"Field(grid.n={self.grid.n}, mean={mean(self):.6g})"


def mean(f: Field) -> float:
    """Arithmetic mean over cells (0.0 for an empty field)."""
    return float(np.mean(f.values)) if f.values.size else 0.0


class FieldStore:
    """
    Named collection of Fields sharing one Grid.

    Fields are kept in insertion order. Every stored field is sampled on
    the store's grid.
    """

    def __init__(self, grid: Grid):
        self.grid = grid
        self._fields: Dict[str, Field] = {}

    def ensure(self, name: str) -> Field:
        """Return the named field, creating a zero field if it is not present."""
        f = self._fields.get(name)
        if f is None:
            f = Field(self.grid)
            self._fields[name] = f
        return f

    def get(self, name: str) -> Field:
        """Return the named field or raise MissingFieldError."""
        try:
            return self._fields[name]
        except KeyError:
            raise MissingFieldError(name) from None

    def maybe(self, name: str) -> Optional[Field]:
        """Return the named field, or None if it is not present."""
        return self._fields.get(name)

    def insert(self, name: str, f: Field) -> None:
        """Store a field under a name, replacing any existing one."""
        if f.values.size != self.grid.size:
            raise GridMismatchError(
                f"Field '{name}' has {f.values.size} cells, store grid has {self.grid.size}")
        self._fields[name] = f

    def zero(self) -> None:
        """Reset every stored field to zero."""
        for f in self._fields.values():
            f.fill(0.0)

    def names(self) -> List[str]:
        return list(self._fields)

    def items(self):
        return self._fields.items()

    def copy(self) -> 'FieldStore':
        """Deep copy: every buffer is duplicated."""
        out = FieldStore(self.grid)
        for name, f in self._fields.items():
            out._fields[name] = f.copy()
        return out

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"FieldStore(grid.n={self.grid.n}, fields={self.names()})"


def axpy(y: FieldStore, x: FieldStore, a: float) -> None:
    """
    In-place y[name] += a * x[name] for every field present in x.

    Fields of x missing from y are created in y as zero first.
    """
    for name, xf in x.items():
        yf = y.ensure(name)
        yf.values += a * xf.values


def plus_scaled(X: FieldStore, Y: FieldStore, aX: float, aY: float) -> FieldStore:
    """
    New store aX * X + aY * Y over the union of X's and Y's field names.

    A name missing from one operand is treated as the zero field.
    """
    Z = FieldStore(X.grid)
    for name in list(X) + [n for n in Y if n not in X]:
        xf = X.maybe(name)
        yf = Y.maybe(name)
        out = Z.ensure(name)
        if xf is not None:
            out.values += aX * xf.values
        if yf is not None:
            out.values += aY * yf.values
    return Z
