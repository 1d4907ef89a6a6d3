"""
Term and System abstractions.

A Term is one physical process adding its contribution to the time
derivative of one or more fields. Terms hold no field data of their own:
they read the state store and write the derivative store they are
currently bound to, and can be rebound to new stores at any time.

A System is the ordered list of terms making up the right-hand side
dF/dt = Σ_terms contribution(F).
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List

from ..numerics.fields import FieldStore
from ..numerics.operators import DerivOps


class Term(ABC):
    """
    Additive contribution to the time derivative of the state.

    Subclasses implement add_rhs(); the derivative slots they write are
    accumulated into, never overwritten, so several terms can act on the
    same field.
    """

    def __init__(self, state: FieldStore, deriv: FieldStore, ops: DerivOps):
        self.state = state
        self.deriv = deriv
        self.ops = ops

    def set_state(self, state: FieldStore, deriv: FieldStore) -> None:
        """Rebind to new state/derivative stores. Coefficients are untouched."""
        self.state = state
        self.deriv = deriv

    @abstractmethod
    def add_rhs(self) -> None:
        """Accumulate this term's contribution into the bound derivative store."""


class EnergyReporting(ABC):
    """Optional capability: a term that contributes to the total free energy."""

    @abstractmethod
    def energy(self) -> float:
        """Free-energy contribution integrated over the domain."""


class System:
    """Ordered collection of terms."""

    def __init__(self):
        self.terms: List[Term] = []

    def add(self, term: Term) -> None:
        self.terms.append(term)

    def rhs(self) -> None:
        """
        Evaluate every term against its bound stores, in insertion order.

        The derivative store is not zeroed here; that is up to the caller.
        """
        for term in self.terms:
            term.add_rhs()

    def set_state(self, state: FieldStore, deriv: FieldStore) -> None:
        for term in self.terms:
            term.set_state(state, deriv)

    def __iter__(self) -> Iterator[Term]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)


# Builds a System whose terms are bound to (state, derivative) stores.
SystemBuilder = Callable[[FieldStore, FieldStore], System]
