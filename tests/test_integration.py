"""
Integration Tests
=================

Full load-stepping runs with the nonlocal Newton solver.
"""

import numpy as np
import pytest
import sys
import os
from scipy.sparse import identity

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mesh.mesh_generators import create_bar_mesh
from physics.material import ElasticProperties
from physics.damage import DamageProperties
from physics.constitutive import DruckerPragerParameters, DruckerPragerDamage
from physics.errors import ConstitutiveIntegrationFailure, NonlocalDamageError
from assembly.boundary_conditions import BoundaryConditionManager
from assembly.nonlocal_process import ProcessData, SmallDeformationNonlocalProcess
from solvers.newton_solver import NonlocalNewtonSolver, SolverConfig, create_time_stepping

E, NU = 1000.0, 0.25
HEIGHT = 0.25


def make_material(yield_stress=1.0):
    return DruckerPragerDamage(
        elastic=ElasticProperties(E=E, nu=NU),
        plastic=DruckerPragerParameters(yield_stress=yield_stress, hardening_modulus=500.0),
        damage=DamageProperties(alpha_d=0.05, beta_d=0.0),
    )


def make_bar(yield_stress=1.0, n_elements=4):
    mesh = create_bar_mesh(1.0, HEIGHT, n_elements)
    process = SmallDeformationNonlocalProcess(mesh, make_material(yield_stress),
                                              ProcessData(internal_length=0.5))
    process.initialize()

    bcs = BoundaryConditionManager(mesh)
    bcs.fix_region(lambda x, y: x < 1e-10, 'x')
    bcs.fix_region(lambda x, y: x < 1e-10 and y < 1e-10, 'y')
    bcs.prescribe_displacement(lambda x, y: x > 1 - 1e-10, 'x', 1.0)
    return mesh, process, bcs


def make_solver(process):
    return NonlocalNewtonSolver(process, SolverConfig(max_iter=60, verbose=False))


class TestBarTension:
    """Uniaxial tension of a homogeneous bar."""

    def test_elastic_response(self):
        """Plane strain uniaxial stress: σ_xx = E/(1-ν²) ε."""
        mesh, process, bcs = make_bar(yield_stress=1e3)
        solver = make_solver(process)
        results = solver.solve([0.0, 1e-3], bcs.bc_dofs, bcs.prescribed_values)

        assert len(results) == 1
        assert results[0].converged
        sigma = process.integration_point_field("sigma")
        assert np.allclose(sigma[:, 0], E / (1 - NU ** 2) * 1e-3)
        assert np.allclose(sigma[:, 1], 0.0, atol=1e-10)

        pulled = bcs.bc_values > 0
        force = np.sum(results[0].reaction[pulled])
        assert np.isclose(force, E / (1 - NU ** 2) * 1e-3 * HEIGHT)
        assert np.isclose(np.sum(results[0].reaction), 0.0, atol=1e-10)

    def test_damage_evolution(self):
        mesh, process, bcs = make_bar()
        solver = make_solver(process)
        results = solver.solve(create_time_stepping(0.005, 5), bcs.bc_dofs,
                               bcs.prescribed_values)

        assert len(results) == 5
        assert all(r.converged for r in results)
        max_damage = [r.damage.max() for r in results]
        assert max_damage[0] == 0.0
        assert max_damage[-1] > 0.0

        # Damage never decreases at any point
        for previous, current in zip(results[:-1], results[1:]):
            assert np.all(current.damage >= previous.damage - 1e-14)

        # Homogeneous bar stays homogeneous
        assert np.allclose(results[-1].damage, results[-1].damage[0])
        assert np.all(results[-1].damage <= 1.0)

        summary = solver.get_results_summary()
        assert summary['n_steps'] == 5
        assert np.isclose(summary['final_time'], 0.005)
        assert summary['total_halvings'] == 0

    def test_force_controlled(self):
        """External nodal forces balance the internal forces."""
        mesh = create_bar_mesh(1.0, HEIGHT, 2)
        process = SmallDeformationNonlocalProcess(mesh, make_material(yield_stress=1e3),
                                                  ProcessData(internal_length=0.5))
        bcs = BoundaryConditionManager(mesh)
        bcs.fix_region(lambda x, y: x < 1e-10, 'x')
        bcs.fix_region(lambda x, y: x < 1e-10 and y < 1e-10, 'y')

        right = mesh.get_nodes_in_region(lambda x, y: x > 1 - 1e-10)
        P = 0.1

        def external_force(t):
            F = np.zeros(mesh.n_dofs)
            F[2 * right] = t * P / len(right)
            return F

        solver = make_solver(process)
        solver.solve([0.0, 1.0], bcs.bc_dofs, bcs.prescribed_values, external_force)

        u_right = solver.displacement[2 * right]
        expected = P / HEIGHT * (1 - NU ** 2) / E
        assert np.allclose(u_right, expected)

    def test_invalid_times(self):
        _, process, bcs = make_bar()
        solver = make_solver(process)
        with pytest.raises(ValueError):
            solver.solve([0.0], bcs.bc_dofs, bcs.prescribed_values)
        with pytest.raises(ValueError):
            solver.solve([0.0, 0.2, 0.1], bcs.bc_dofs, bcs.prescribed_values)

    def test_reset(self):
        _, process, bcs = make_bar(yield_stress=1e3)
        solver = make_solver(process)
        solver.solve([0.0, 1e-4], bcs.bc_dofs, bcs.prescribed_values)
        solver.reset()
        assert solver.results == []
        assert solver.get_results_summary() == {}
        assert np.allclose(solver.displacement, 0.0)


class FlakyProcess:
    """Linear one-spring process whose first pre-assemblies fail."""

    def __init__(self, n_failures):
        self.n_dofs = 2
        self.graph = object()
        self.process_data = ProcessData(internal_length=1.0)
        self.n_failures = n_failures
        self.committed = 0

    def initialize(self):
        pass

    def pre_assemble(self, t, u):
        if self.n_failures > 0:
            self.n_failures -= 1
            raise ConstitutiveIntegrationFailure()

    def assemble(self, t, u):
        return identity(2, format='csr'), -np.asarray(u, dtype=np.float64)

    def push_back_state(self):
        self.committed += 1

    def integration_point_field(self, name):
        return np.zeros(1)


class TestTimeStepControl:
    """Tests for time step halving."""

    def test_halving_then_continue(self):
        process = FlakyProcess(n_failures=2)
        solver = NonlocalNewtonSolver(process, SolverConfig(verbose=False))
        results = solver.solve([0.0, 1.0], np.array([0]), lambda t: np.array([t]))

        assert [r.time for r in results] == [0.25, 0.5, 0.75, 1.0]
        assert all(np.isclose(r.dt, 0.25) for r in results)
        assert results[0].n_halvings == 2
        assert process.committed == 4
        assert np.isclose(solver.displacement[0], 1.0)
        assert np.isclose(solver.t, 1.0)

    def test_gives_up(self):
        process = FlakyProcess(n_failures=100)
        solver = NonlocalNewtonSolver(process, SolverConfig(verbose=False, max_dt_halvings=3))
        with pytest.raises(NonlocalDamageError, match="Time step reduction failed"):
            solver.solve([0.0, 1.0], np.array([0]), lambda t: np.array([t]))
        assert process.committed == 0

    def test_min_dt(self):
        process = FlakyProcess(n_failures=100)
        solver = NonlocalNewtonSolver(process, SolverConfig(verbose=False, min_dt=0.2))
        with pytest.raises(NonlocalDamageError):
            solver.solve([0.0, 1.0], np.array([0]), lambda t: np.array([t]))

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            SolverConfig(max_iter=0)
        with pytest.raises(ValueError):
            SolverConfig(min_dt=0.0)


class TestTimeStepping:
    """Tests for create_time_stepping."""

    @pytest.mark.parametrize("stepping", ['linear', 'quadratic', 'sqrt'])
    def test_endpoints(self, stepping):
        times = create_time_stepping(2.0, 10, stepping)
        assert len(times) == 11
        assert times[0] == 0.0
        assert np.isclose(times[-1], 2.0)
        assert np.all(np.diff(times) > 0)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_time_stepping(1.0, 5, 'cubic')


class TestCheckpoint:
    """Tests for checkpoint save and restore."""

    def test_restart_reproduces_run(self, tmp_path):
        times = create_time_stepping(0.004, 4)

        # Uninterrupted run
        _, process, bcs = make_bar()
        make_solver(process).solve(times, bcs.bc_dofs, bcs.prescribed_values)
        reference = process.integration_point_field("damage")

        # Two steps, checkpoint, restore into a fresh process, two more steps
        _, process, bcs = make_bar()
        solver = make_solver(process)
        solver.solve(times[:3], bcs.bc_dofs, bcs.prescribed_values)
        filename = str(tmp_path / "state.npz")
        process.save_checkpoint(filename, solver.t, solver.displacement)
        damage_saved = process.integration_point_field("damage")

        _, restarted, bcs = make_bar()
        t, u = restarted.load_checkpoint(filename)
        assert np.isclose(t, times[2])
        assert np.allclose(restarted.integration_point_field("damage"), damage_saved)

        solver = make_solver(restarted)
        solver.displacement = u
        solver.solve(times[2:], bcs.bc_dofs, bcs.prescribed_values)

        assert np.allclose(restarted.integration_point_field("damage"), reference)
        assert reference.max() > 0

    def test_mismatched_mesh(self, tmp_path):
        _, process, _ = make_bar(n_elements=4)
        filename = str(tmp_path / "state.npz")
        process.save_checkpoint(filename)

        _, other, _ = make_bar(n_elements=3)
        with pytest.raises(ValueError):
            other.load_checkpoint(filename)
