import logging

import numpy as np
import numpy.testing as npt
import pytest
from scipy.integrate import solve_ivp

from phasegrid.errors import ConfigError
from phasegrid.numerics.fields import FieldStore, mean
from phasegrid.numerics.grid import Grid
from phasegrid.numerics.operators import make_ops
from phasegrid.physics.free_energy import LandauFreeEnergy, LinearRelaxation
from phasegrid.physics.mobility import ConstantMobility
from phasegrid.solvers.diagnostics import total_mass
from phasegrid.solvers.integrators import RK2, RK4, Euler, make_integrator
from phasegrid.terms import AllenCahnTerm, CahnHilliardTerm, System

ops = make_ops('fd')


def ch_builder(target='phi'):
    fe = LandauFreeEnergy(eps=0.8, kappa=1.0)
    mob = ConstantMobility(1.0)

    def build(S, dS):
        system = System()
        system.add(CahnHilliardTerm(S, dS, ops, target, fe, mob))
        return system
    return build


def coupled_builder(S, dS):
    system = ch_builder()(S, dS)
    system.add(AllenCahnTerm(S, dS, ops, 'c', LinearRelaxation(0.1, 1.0), 'phi'))
    return system


def evolve(name, state, dt, steps, build=None):
    integrator = make_integrator(name, build or ch_builder('u'), state)
    for _ in range(steps):
        integrator.step(state, dt)
    return state


@pytest.fixture(scope='module')
def order_problem():
    """1-D Cahn-Hilliard problem with a high-accuracy reference solution."""
    grid = Grid((8,), (8.0,))
    x, = grid.coordinates()
    u0 = 0.1 * np.sin(2 * np.pi * x / 8.0) + 0.05 * np.cos(4 * np.pi * x / 8.0)
    T = 2.0

    build = ch_builder('u')
    S = FieldStore(grid)
    S.ensure('u')
    system = build(S, FieldStore(grid))

    def rhs(t, y):
        S.get('u').values[:] = y
        dS = FieldStore(grid)
        system.set_state(S, dS)
        system.rhs()
        return dS.get('u').values.copy()

    sol = solve_ivp(rhs, (0.0, T), u0, method='DOP853', rtol=1e-12, atol=1e-14)
    assert sol.success
    return grid, u0, T, sol.y[:, -1]


def final_error(order_problem, name, dt):
    grid, u0, T, reference = order_problem
    S = FieldStore(grid)
    S.ensure('u').values[:] = u0
    evolve(name, S, dt, int(round(T / dt)))
    return np.abs(S.get('u').values - reference).max()


class TestConservation:

    @pytest.mark.parametrize("name", ['euler', 'rk2', 'rk4'])
    def test_ch_mass_conserved(self, noisy_state, name):
        m0 = total_mass(noisy_state.get('phi'))
        integrator = make_integrator(name, coupled_builder, noisy_state)
        for _ in range(20):
            integrator.step(noisy_state, 1e-2)
        assert total_mass(noisy_state.get('phi')) == pytest.approx(m0, abs=1e-10)

    def test_step_changes_state(self, noisy_state):
        before = noisy_state.copy()
        Euler(coupled_builder, noisy_state).step(noisy_state, 1e-2)
        assert not np.allclose(before.get('phi').values, noisy_state.get('phi').values)
        assert not np.allclose(before.get('c').values, noisy_state.get('c').values)

    def test_uniform_state_is_fixed_point(self, grid2d):
        S = FieldStore(grid2d)
        S.ensure('u').fill(0.25)
        evolve('rk4', S, 1e-2, 5)
        npt.assert_allclose(S.get('u').values, 0.25, atol=1e-14)

    def test_allen_cahn_relaxes_to_zero_without_driver(self, grid2d):
        S = FieldStore(grid2d)
        S.ensure('c').fill(1.0)

        def build(S, dS):
            system = System()
            system.add(AllenCahnTerm(S, dS, ops, 'c', LinearRelaxation(1.0, 1.0)))
            return system

        evolve('rk4', S, 0.1, 10, build)
        npt.assert_allclose(S.get('c').values, np.exp(-1.0), rtol=1e-5)


class TestMassFix:

    @pytest.mark.parametrize("cls", [Euler, RK2])
    def test_mean_removed(self, noisy_state, cls):
        noisy_state.get('phi').values += 0.2
        integrator = cls(coupled_builder, noisy_state, mass_fix=True, mass_field='phi')
        integrator.step(noisy_state, 1e-2)
        assert mean(noisy_state.get('phi')) == pytest.approx(0.0, abs=1e-14)

    def test_absent_field_is_ignored(self, noisy_state):
        noisy_state.get('phi').values += 0.2
        m0 = mean(noisy_state.get('phi'))
        integrator = Euler(coupled_builder, noisy_state, mass_fix=True, mass_field='rho')
        integrator.step(noisy_state, 1e-2)
        assert mean(noisy_state.get('phi')) == pytest.approx(m0, abs=1e-12)

    def test_off_by_default(self, noisy_state):
        noisy_state.get('phi').values += 0.2
        m0 = mean(noisy_state.get('phi'))
        Euler(coupled_builder, noisy_state).step(noisy_state, 1e-2)
        assert mean(noisy_state.get('phi')) == pytest.approx(m0, abs=1e-12)

    def test_rk4_ignores_mass_fix(self, noisy_state, caplog):
        with caplog.at_level(logging.WARNING, logger='phasegrid'):
            integrator = make_integrator('rk4', coupled_builder, noisy_state, mass_fix=True)
        assert isinstance(integrator, RK4)
        assert 'mass_fix' in caplog.text


class TestOrder:

    def test_euler_first_order(self, order_problem):
        e1 = final_error(order_problem, 'euler', 1e-2)
        e2 = final_error(order_problem, 'euler', 5e-3)
        assert e1 < 1e-3
        assert 0.85 < np.log2(e1 / e2) < 1.15

    def test_rk2_second_order(self, order_problem):
        e1 = final_error(order_problem, 'rk2', 1e-2)
        e2 = final_error(order_problem, 'rk2', 5e-3)
        assert 1.8 < np.log2(e1 / e2) < 2.2

    def test_rk4_most_accurate(self, order_problem):
        e_euler = final_error(order_problem, 'euler', 1e-2)
        e_rk2 = final_error(order_problem, 'rk2', 1e-2)
        e_rk4 = final_error(order_problem, 'rk4', 1e-2)
        assert e_rk4 < 1e-8
        assert e_rk4 * 10 < e_rk2 < e_euler


class TestMakeIntegrator:

    @pytest.mark.parametrize("name, cls", [('euler', Euler), ('rk2', RK2), ('rk4', RK4)])
    def test_registry(self, noisy_state, name, cls):
        integrator = make_integrator(name, coupled_builder, noisy_state)
        assert isinstance(integrator, cls)
        assert len(integrator.system) == 2

    def test_unknown(self, noisy_state):
        with pytest.raises(ConfigError):
            make_integrator('leapfrog', coupled_builder, noisy_state)


class TestStageBinding:

    @pytest.mark.parametrize("cls", [RK2, RK4])
    def test_system_left_on_stage_store(self, noisy_state, cls):
        integrator = cls(coupled_builder, noisy_state)
        integrator.step(noisy_state, 1e-2)
        assert all(term.state is not noisy_state for term in integrator.system)

    def test_euler_left_on_state(self, noisy_state):
        integrator = Euler(coupled_builder, noisy_state)
        integrator.step(noisy_state, 1e-2)
        assert all(term.state is noisy_state for term in integrator.system)


class TestSmallStep:
    """Euler and RK4 against a reference trajectory at dt = 1e-3."""

    def test_rk4_beats_euler(self):
        grid = Grid((8,), (8.0,))
        x, = grid.coordinates()
        u0 = 0.1 * np.sin(2 * np.pi * x / 8.0)
        dt, steps = 1e-3, 100

        S = FieldStore(grid)
        S.ensure('u')
        system = ch_builder('u')(S, FieldStore(grid))

        def rhs(t, y):
            S.get('u').values[:] = y
            dS = FieldStore(grid)
            system.set_state(S, dS)
            system.rhs()
            return dS.get('u').values.copy()

        reference = solve_ivp(rhs, (0.0, dt * steps), u0, method='DOP853',
                              rtol=1e-13, atol=1e-15).y[:, -1]

        errors = {}
        for name in ('euler', 'rk4'):
            state = FieldStore(grid)
            state.ensure('u').values[:] = u0
            evolve(name, state, dt, steps)
            errors[name] = np.abs(state.get('u').values - reference).max()

        assert errors['euler'] < 1e-5
        assert errors['rk4'] < 1e-9
        assert errors['rk4'] * 10 < errors['euler']
