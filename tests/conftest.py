import numpy as np
import pytest

from phasegrid.numerics.fields import FieldStore
from phasegrid.numerics.grid import Grid


@pytest.fixture
def grid2d():
    return Grid((16, 12), (16.0, 24.0))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noisy_state(grid2d, rng):
    """State with a small random 'phi' around zero and a constant 'c'."""
    S = FieldStore(grid2d)
    S.ensure('phi').values[:] = rng.normal(0.0, 0.1, grid2d.size)
    S.ensure('c').fill(0.3)
    return S
