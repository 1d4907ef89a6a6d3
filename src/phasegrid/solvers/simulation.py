"""
Driver for configured phase-field simulations.

The Simulation class turns a SimulationConfig into a running model:
    1. Build the grid and the state store, initialising every field
    2. Resolve the term descriptors into a SystemBuilder
    3. Create the integrator named in the configuration
    4. Step, recording diagnostics and writing snapshots at the
       configured cadences

Diagnostics (total mass per field, mean values, total free energy) are
computed after rebinding the System to the current state and a scratch
store, since stepping leaves the terms bound to integrator scratch.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging
import time

import numpy as np

from ..config import FieldParams, SimulationConfig
from ..io.plain import dump_all_fields_plain, read_plain_scalar
from ..io.vtk import dump_all_fields_vtk
from ..numerics.fields import FieldStore
from ..numerics.grid import Grid, create_droplet, create_random_normal
from ..terms.factory import make_system_builder
from .diagnostics import mean_value, total_free_energy, total_mass
from .integrators import make_integrator

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticRecord:
    """
    Diagnostics of the state at one point in time.

    Attributes:
        step: Time step number
        t: Simulation time
        masses: Total mass of each monitored field
        means: Mean value of each monitored field
        free_energy: Sum of the energy reports of all terms
    """
    step: int
    t: float
    masses: Dict[str, float] = field(default_factory=dict)
    means: Dict[str, float] = field(default_factory=dict)
    free_energy: float = 0.0


class Simulation:
    """
    Runs one configured simulation.

    Example usage:
        config = SimulationConfig.load("run.json")
        sim = Simulation(config)
        history = sim.run()
    """

    def __init__(self, config: SimulationConfig):
        """
        Set up grid, state, system and integrator.

        Raises ConfigError (or OSError / GridMismatchError for file-based
        initialisation) before any time step is taken.
        """
        self.config = config
        self.grid = Grid(tuple(config.grid.n), tuple(config.grid.L))
        self.rng = np.random.default_rng(config.seed)

        self.state = FieldStore(self.grid)
        for fp in config.fields:
            self._initialise_field(fp)

        self.build_system = make_system_builder(config.terms)
        self.integrator = make_integrator(
            config.integrator.name, self.build_system, self.state,
            mass_fix=config.integrator.mass_fix,
            mass_field=config.integrator.mass_field)

        self._scratch = FieldStore(self.grid)
        self.step_count = 0
        self.t = 0.0

        logger.info("Simulation ready: grid %s, %d fields, %d terms, integrator %s",
                    self.grid.n, len(self.state), len(self.integrator.system),
                    config.integrator.name)

    def _initialise_field(self, fp: FieldParams) -> None:
        f = self.state.ensure(fp.name)
        if fp.initialisation == 'constant':
            f.fill(fp.average)
        elif fp.initialisation == 'random':
            f.values[:] = create_random_normal(self.grid, fp.average, fp.random_stddev, self.rng)
        elif fp.initialisation == 'droplet':
            f.values[:] = create_droplet(self.grid, fp.c_plus, fp.c_minus, fp.radius,
                                         fp.center, fp.interface_width)
        elif fp.initialisation == 'from_file':
            values, step, t = read_plain_scalar(fp.filename, self.grid)
            f.values[:] = values
            logger.info("Field '%s' read from %s (step %d, t = %g)",
                        fp.name, fp.filename, step, t)
        logger.debug("Initialised field '%s' (%s)", fp.name, fp.initialisation)

    @property
    def mass_fields(self) -> List[str]:
        return self.config.output.mass_fields or self.state.names()

    def diagnostics(self) -> DiagnosticRecord:
        """Compute diagnostics for the current state."""
        self._scratch.zero()
        self.integrator.system.set_state(self.state, self._scratch)

        record = DiagnosticRecord(step=self.step_count, t=self.t)
        for name in self.mass_fields:
            f = self.state.get(name)
            record.masses[name] = total_mass(f)
            record.means[name] = mean_value(f)
        record.free_energy = total_free_energy(self.integrator.system)
        return record

    def write_snapshot(self) -> None:
        """Write all fields with the configured writers."""
        out = self.config.output
        out_dir = Path(out.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        if 'vtk' in out.writers:
            dump_all_fields_vtk(self.state, out_dir, self.step_count)
        if 'plain' in out.writers:
            if out.txt_append:
                prefix = out_dir / "snapshot"
            else:
                prefix = out_dir / f"{self.step_count}"
            dump_all_fields_plain(self.state, prefix, self.step_count, self.t,
                                  append=out.txt_append)

    def step(self) -> None:
        """Advance the simulation by one time step."""
        self.integrator.step(self.state, self.config.time.dt)
        self.step_count += 1
        self.t = self.step_count * self.config.time.dt

    def run(self, callback: Optional[Callable] = None) -> List[DiagnosticRecord]:
        """
        Run the simulation to completion.

        Args:
            callback: Optional function called after each diagnostic record.
                      Signature: callback(record, history) -> bool
                      Return False to stop early.

        Returns:
            List of DiagnosticRecord objects at the recorded time points
        """
        out = self.config.output
        n_steps = self.config.time.steps

        history = [self.diagnostics()]
        self._log_record(history[-1])
        self.write_snapshot()

        logger.info("Running simulation: %d steps, dt=%g", n_steps, self.config.time.dt)
        start_time = time.time()

        for _ in range(n_steps):
            self.step()

            if self.step_count % out.conf_every == 0:
                self.write_snapshot()

            if self.step_count % out.output_every == 0:
                record = self.diagnostics()
                history.append(record)
                self._log_record(record)

                if callback is not None and callback(record, history) is False:
                    logger.info("Simulation stopped by callback at step %d", self.step_count)
                    break

        logger.info("Simulation complete in %.1fs", time.time() - start_time)
        return history

    def _log_record(self, record: DiagnosticRecord) -> None:
        masses = ", ".join(f"{k}: mass={v:.6g} mean={record.means[k]:.6g}"
                           for k, v in record.masses.items())
        logger.info("step %d t=%.4g F=%.8g %s", record.step, record.t,
                    record.free_energy, masses)
