from .integrators import INTEGRATORS, RK2, RK4, Euler, Integrator, make_integrator
from .diagnostics import mean_value, total_free_energy, total_mass
from .simulation import DiagnosticRecord, Simulation
