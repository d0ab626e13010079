"""
Simple Tension Test Example
===========================

Uniaxial tension of a plane strain bar with Drucker-Prager plasticity and
nonlocal damage. A band of pre-damaged integration points in the middle
of the bar triggers localization; the nonlocal averaging spreads the
damage over roughly one internal length.
"""

import logging
import numpy as np
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import matplotlib.pyplot as plt

from mesh import create_bar_mesh, write_vtu
from physics import (
    ElasticProperties,
    DruckerPragerParameters,
    DamageProperties,
    DruckerPragerDamage,
)
from assembly import BoundaryConditionManager, ProcessData, SmallDeformationNonlocalProcess
from solvers import NonlocalNewtonSolver, SolverConfig, create_time_stepping
from postprocess import plot_damage_profile, plot_load_displacement


def run_tension_test():
    """Run a simple uniaxial tension test."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("Nonlocal Damage: Simple Tension Test")
    print("=" * 60)

    # Create mesh
    length, height = 100.0, 10.0   # [mm]
    n_elements = 40
    mesh = create_bar_mesh(length, height, n_elements)
    print(f"\nMesh: {mesh.n_nodes} nodes, {mesh.n_elements} elements")

    # Material (MPa, mm)
    material = DruckerPragerDamage(
        elastic=ElasticProperties(E=30e3, nu=0.2),
        plastic=DruckerPragerParameters(yield_stress=3.0, hardening_modulus=300.0,
                                        alpha=0.1, beta=0.05),
        damage=DamageProperties(alpha_d=2e-3, beta_d=0.05, h_d=0.0, m_d=1.0, f_c=30.0),
    )
    print(f"Material: E={material.elastic.E:.0f} MPa, ν={material.elastic.nu}, "
          f"σ_y0={material.plastic.yield_stress} MPa")

    process_data = ProcessData(internal_length=10.0)
    process = SmallDeformationNonlocalProcess(mesh, material, process_data)
    process.initialize()

    # Weak band in the middle of the bar
    coords = process.integration_point_coordinates()
    kappa0 = np.where(np.abs(coords[:, 0] - 0.5 * length) < 2.5, 2e-4, 0.0)
    process.set_initial_conditions("kappa_d_ip", kappa0)

    # Boundary conditions
    tol = 1e-6
    bcs = BoundaryConditionManager(mesh)
    bcs.fix_region(lambda x, y: x < tol, 'x', name="left")
    bcs.fix_region(lambda x, y: x < tol and y < tol, 'y', name="corner")
    bcs.prescribe_displacement(lambda x, y: x > length - tol, 'x', 1.0, name="pull")
    print(bcs.summary())

    # Load stepping: t is the end displacement in mm
    times = create_time_stepping(0.03, 30)
    solver = NonlocalNewtonSolver(process, SolverConfig(max_iter=60, verbose=True))
    results = solver.solve(times, bcs.bc_dofs, bcs.prescribed_values)

    # Print summary
    print("\n" + "=" * 60)
    print("Results Summary")
    print("=" * 60)

    summary = solver.get_results_summary()
    print(f"Total steps: {summary['n_steps']}")
    print(f"Maximum damage: {summary['max_damage']:.4f}")
    print(f"Newton iterations: {summary['total_iterations']}")
    print(f"Time step halvings: {summary['total_halvings']}")

    write_vtu("tension_test.vtu", mesh,
              point_data={"displacement": solver.displacement.reshape(-1, 2)},
              cell_data={"damage": process.element_field("damage")})

    pull_dof = int(bcs.bc_dofs[np.argmax(bcs.bc_values)])
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))
    plot_load_displacement(results, pull_dof, reaction_index=np.nonzero(bcs.bc_values)[0],
                           ax=axes[0])
    axes[0].set_title('Load-Displacement')
    plot_damage_profile(coords, results[-1].damage, axis=0, ax=axes[1])
    axes[1].set_title('Damage Along the Bar')

    plt.tight_layout()
    plt.savefig('tension_test_results.png', dpi=150)
    print("\nResults saved to 'tension_test_results.png' and 'tension_test.vtu'")

    return results


if __name__ == "__main__":
    results = run_tension_test()
