"""
Non-conserved (Allen-Cahn type) relaxation.

    ∂c/∂t = -df/dc(c, driver)

The driver is an optional second field. When no driver is configured, or
the configured driver is not present in the bound state, it is taken to
be zero everywhere.
"""

from typing import Optional

import numpy as np

from ..numerics.fields import FieldStore
from ..numerics.operators import DerivOps
from .base import Term


class AllenCahnTerm(Term):

    def __init__(self, state: FieldStore, deriv: FieldStore, ops: DerivOps,
                 target: str, free_energy, driver: Optional[str] = None):
        super().__init__(state, deriv, ops)
        self.target = target
        self.free_energy = free_energy
        self.driver = driver or None

    def add_rhs(self) -> None:
        c = self.state.get(self.target)
        drv = self.state.maybe(self.driver) if self.driver else None
        driver = drv.values if drv is not None else np.zeros(c.grid.size)

        self.deriv.ensure(self.target).values -= self.free_energy.dfdc(c.values, driver)
