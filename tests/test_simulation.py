import json
from pathlib import Path

import numpy as np
import numpy.testing as npt
import pytest

from phasegrid.cli import main
from phasegrid.config import FieldParams, GridParams, SimulationConfig
from phasegrid.errors import ConfigError, GridMismatchError
from phasegrid.io import read_plain_scalar, write_plain_scalar
from phasegrid.numerics.fields import Field
from phasegrid.numerics.grid import Grid
from phasegrid.solvers.simulation import Simulation


@pytest.fixture
def small_config(tmp_path):
    config = SimulationConfig.spinodal_decomposition()
    config.grid = GridParams(n=[16, 16], L=[32.0, 32.0])
    config.time.steps = 40
    config.output.output_every = 10
    config.output.conf_every = 20
    config.output.output_dir = str(tmp_path / "out")
    config.output.writers = ['vtk', 'plain']
    return config


class TestSimulation:

    def test_initial_state(self, small_config):
        sim = Simulation(small_config)
        assert sim.state.names() == ['phi', 'c']
        phi = sim.state.get('phi').values
        assert abs(phi.mean()) < 0.02
        assert phi.std() == pytest.approx(0.05, rel=0.2)
        npt.assert_array_equal(sim.state.get('c').values, 0.0)

    def test_seed_makes_runs_reproducible(self, small_config):
        a = Simulation(small_config).state.get('phi').values
        b = Simulation(small_config).state.get('phi').values
        npt.assert_array_equal(a, b)

    def test_run(self, small_config):
        sim = Simulation(small_config)
        history = sim.run()

        assert [r.step for r in history] == [0, 10, 20, 30, 40]
        assert history[-1].t == pytest.approx(40 * small_config.time.dt)
        masses = [r.masses['phi'] for r in history]
        npt.assert_allclose(masses, masses[0], atol=1e-10)
        assert all(np.isfinite(r.free_energy) for r in history)

    def test_snapshots_written(self, small_config):
        Simulation(small_config).run()
        out = sorted(p.name for p in Path(small_config.output.output_dir).iterdir())
        for step in (0, 20, 40):
            assert f"{step}_phi.vtk" in out
            assert f"{step}_c.dat" in out
        assert "10_phi.vtk" not in out

    def test_appended_trajectory(self, small_config):
        small_config.output.txt_append = True
        small_config.output.writers = ['plain']
        sim = Simulation(small_config)
        sim.run()
        path = Path(small_config.output.output_dir) / "snapshot_phi.dat"
        values, step, _ = read_plain_scalar(path, sim.grid)
        assert step == 40
        npt.assert_allclose(values, sim.state.get('phi').values, rtol=1e-14, atol=1e-16)

    def test_callback_stops_early(self, small_config):
        sim = Simulation(small_config)
        history = sim.run(callback=lambda record, history: False)
        assert len(history) == 2
        assert sim.step_count == 10

    def test_diagnostics_rebinds_system(self, small_config):
        sim = Simulation(small_config)
        before = sim.diagnostics().free_energy
        sim.step()
        sim.state.get('phi').values[:] = 0.0
        assert sim.diagnostics().free_energy == pytest.approx(0.0)
        assert before != 0.0

    def test_diagnostics_binds_terms_to_state(self, small_config):
        small_config.integrator.name = 'rk4'
        sim = Simulation(small_config)
        sim.step()
        sim.diagnostics()
        assert all(term.state is sim.state for term in sim.integrator.system)

    def test_mass_fix(self, small_config):
        small_config.fields[0].average = 0.3
        small_config.integrator.mass_fix = True
        sim = Simulation(small_config)
        sim.step()
        assert sim.diagnostics().means['phi'] == pytest.approx(0.0, abs=1e-14)

    def test_from_file(self, small_config, tmp_path):
        grid = Grid((16, 16), (32.0, 32.0))
        x, y = grid.coordinates()
        f = Field(grid, 0.1 * np.sin(2 * np.pi * x / 32.0))
        write_plain_scalar(f, tmp_path / "phi0.dat", step=500, t=1.25)

        small_config.fields[0] = FieldParams(name='phi', initialisation='from_file',
                                             filename=str(tmp_path / "phi0.dat"))
        sim = Simulation(small_config)
        npt.assert_allclose(sim.state.get('phi').values, f.values, rtol=1e-15)

    def test_from_file_wrong_grid(self, small_config, tmp_path):
        grid = Grid((8, 8), (32.0, 32.0))
        write_plain_scalar(Field(grid), tmp_path / "phi0.dat", step=0, t=0.0)
        small_config.fields[0] = FieldParams(name='phi', initialisation='from_file',
                                             filename=str(tmp_path / "phi0.dat"))
        with pytest.raises(GridMismatchError):
            Simulation(small_config)

    def test_droplet(self, small_config):
        small_config.fields[0] = FieldParams(name='phi', initialisation='droplet',
                                             c_plus=1.0, c_minus=-1.0, radius=6.0)
        sim = Simulation(small_config)
        phi = sim.state.get('phi').as_array()
        assert phi[8, 8] > 0.9
        assert phi[0, 0] < -0.9

    def test_unknown_integrator(self, small_config):
        small_config.integrator.name = 'midpoint'
        with pytest.raises(ConfigError):
            Simulation(small_config)


class TestCommandLine:

    def test_summary_only(self, capsys):
        assert main(['--preset', 'spinodal', '--summary-only']) == 0
        assert "Simulation Configuration Summary" in capsys.readouterr().out

    def test_json_log_records(self, small_config, tmp_path, capsys):
        path = tmp_path / "run.json"
        small_config.save(path)
        assert main([str(path), '--summary-only', '--log-json']) == 0

        err = capsys.readouterr().err
        records = [json.loads(line) for line in err.splitlines() if line.startswith('{')]
        loaded = [r for r in records if "Loaded configuration" in r['message']]
        assert len(loaded) == 1
        assert loaded[0]['level'] == 'INFO'
        assert loaded[0]['logger'].startswith('phasegrid')
        assert 'timestamp' in loaded[0]

    def test_run_from_file(self, small_config, tmp_path):
        path = tmp_path / "run.json"
        small_config.save(path)
        out = tmp_path / "cli"
        assert main([str(path), '--steps', '20', '--integrator', 'rk4',
                     '--output', str(out), '--plot']) == 0

        data = np.load(out / "diagnostics.npz")
        npt.assert_array_equal(data['steps'], [0, 10, 20])
        npt.assert_allclose(data['mass_phi'], data['mass_phi'][0], atol=1e-10)
        assert (out / "diagnostics.png").exists()

    def test_bad_configuration(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"grid": {"n": [8], "L": [8.0]}}')
        assert main([str(path)]) == 1

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "absent.json")]) == 1

    def test_override_validated(self, small_config, tmp_path):
        path = tmp_path / "run.json"
        small_config.save(path)
        assert main([str(path), '--dt', '-1']) == 1

    def test_needs_config_or_preset(self):
        with pytest.raises(SystemExit):
            main([])
