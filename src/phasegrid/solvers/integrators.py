"""
Explicit time integrators.

Each integrator owns a System built once from a SystemBuilder and advances
a state FieldStore in place:

    Euler: S += dt k1
    RK2:   S += dt/2 (k1 + k2)                     (Heun)
    RK4:   S += dt/6 (k1 + 2 k2 + 2 k3 + k4)

Every stage evaluates the System into its own freshly zeroed scratch
store. Scratch stores live for one step only. After step() the System is
left bound to the last stage's input store and scratch store (for RK2 and
RK4 a temporary stage store, not the state), so callers must rebind it
before querying term energies.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict
import logging

from ..errors import ConfigError
from ..numerics.fields import FieldStore, axpy, mean, plus_scaled
from ..terms.base import System, SystemBuilder

logger = logging.getLogger(__name__)


class Integrator(ABC):
    """
    Base class for explicit schemes.

    Args:
        build_system: Function building the System bound to given stores
        state0: Initial state, used to bind the System at construction
    """

    def __init__(self, build_system: SystemBuilder, state0: FieldStore):
        self.system: System = build_system(state0, FieldStore(state0.grid))

    @abstractmethod
    def step(self, state: FieldStore, dt: float) -> None:
        """Advance state in place by one time increment dt."""

    def _evaluate(self, state: FieldStore) -> FieldStore:
        """One right-hand-side evaluation at `state` into a fresh scratch store."""
        k = FieldStore(state.grid)
        k.zero()
        self.system.set_state(state, k)
        self.system.rhs()
        return k


class MassFixMixin:
    """
    Optional conservative mass fix.

    After the update, the spatial mean of `mass_field` is subtracted from
    it. Nothing happens if the field is absent from the state.
    """
    mass_fix: bool = False
    mass_field: str = 'phi'

    def _apply_mass_fix(self, state: FieldStore) -> None:
        if not self.mass_fix:
            return
        f = state.maybe(self.mass_field)
        if f is None:
            return
        f.values -= mean(f)


class Euler(MassFixMixin, Integrator):
    """Forward Euler."""

    def __init__(self, build_system: SystemBuilder, state0: FieldStore,
                 mass_fix: bool = False, mass_field: str = 'phi'):
        super().__init__(build_system, state0)
        self.mass_fix = mass_fix
        self.mass_field = mass_field

    def step(self, state: FieldStore, dt: float) -> None:
        k1 = self._evaluate(state)
        axpy(state, k1, dt)
        self._apply_mass_fix(state)


class RK2(MassFixMixin, Integrator):
    """Second-order Runge-Kutta, Heun variant."""

    def __init__(self, build_system: SystemBuilder, state0: FieldStore,
                 mass_fix: bool = False, mass_field: str = 'phi'):
        super().__init__(build_system, state0)
        self.mass_fix = mass_fix
        self.mass_field = mass_field

    def step(self, state: FieldStore, dt: float) -> None:
        k1 = self._evaluate(state)
        k2 = self._evaluate(plus_scaled(state, k1, 1.0, dt))

        axpy(state, plus_scaled(k1, k2, 1.0, 1.0), 0.5 * dt)
        self._apply_mass_fix(state)


class RK4(Integrator):
    """Classic fourth-order Runge-Kutta."""

    def step(self, state: FieldStore, dt: float) -> None:
        k1 = self._evaluate(state)
        k2 = self._evaluate(plus_scaled(state, k1, 1.0, 0.5 * dt))
        k3 = self._evaluate(plus_scaled(state, k2, 1.0, 0.5 * dt))
        k4 = self._evaluate(plus_scaled(state, k3, 1.0, dt))

        total = plus_scaled(k1, k2, 1.0, 2.0)
        total = plus_scaled(total, k3, 1.0, 2.0)
        total = plus_scaled(total, k4, 1.0, 1.0)
        axpy(state, total, dt / 6.0)


INTEGRATORS: Dict[str, Callable[..., Integrator]] = {
    'euler': Euler,
    'rk2': RK2,
    'rk4': RK4,
}


def make_integrator(name: str, build_system: SystemBuilder, state0: FieldStore,
                    mass_fix: bool = False, mass_field: str = 'phi') -> Integrator:
    """
    Create an integrator by name.

    Args:
        name: Registry key ('euler', 'rk2' or 'rk4')
        build_system: SystemBuilder for the right-hand side
        state0: Initial state
        mass_fix: Request the conservative mass fix (euler and rk2 only)
        mass_field: Field the mass fix applies to

    Returns:
        Integrator instance
    """
    try:
        cls = INTEGRATORS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown integrator: {name!r} (known: {', '.join(INTEGRATORS)})") from None

    if issubclass(cls, MassFixMixin):
        return cls(build_system, state0, mass_fix=mass_fix, mass_field=mass_field)
    if mass_fix:
        logger.warning("Integrator '%s' has no mass fix option; ignoring mass_fix", name)
    return cls(build_system, state0)
