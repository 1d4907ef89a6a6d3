"""
Explicit solver for coupled phase-field and reaction-diffusion equations.

Fields live on a uniform periodic grid in one to three dimensions. A run is
an ordered list of terms (Cahn-Hilliard, Allen-Cahn, multi-species
Cahn-Hilliard) whose contributions add up to the time derivative of the
state, advanced by an explicit Euler, RK2 or RK4 integrator.

Modules:
    config: Configuration dataclasses, JSON load/save, presets
    numerics: Grid, fields and periodic finite-difference operators
    physics: Free-energy and mobility functionals
    terms: Physical processes and the System that sums them
    solvers: Time integrators, diagnostics and the Simulation driver
    io: Plain-text and VTK snapshot writers

Example usage:
    from phasegrid.config import SimulationConfig
    from phasegrid.solvers.simulation import Simulation

    config = SimulationConfig.spinodal_decomposition()
    sim = Simulation(config)
    history = sim.run()
"""

from .config import SimulationConfig
from .errors import ConfigError, GridMismatchError, MissingFieldError, PhasegridError

__version__ = "0.1.0"
