"""Scalar diagnostics of a simulation state."""

from ..numerics.fields import Field
from ..terms.base import EnergyReporting, System


def total_mass(f: Field) -> float:
    """Σ f · dV over the domain."""
    return f.grid.integrate(f.values)


def mean_value(f: Field) -> float:
    """Total mass divided by the domain volume."""
    return f.grid.average(f.values)


def total_free_energy(system: System) -> float:
    """
    Sum of the energy reports of every term that provides one.

    Terms without the EnergyReporting capability contribute nothing. The
    result reflects whatever state the terms are currently bound to.
    """
    return float(sum(term.energy() for term in system if isinstance(term, EnergyReporting)))
