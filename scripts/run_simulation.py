#!/usr/bin/env python
"""
Run a single phase-field simulation and visualize the result.

This script demonstrates the basic usage of the phasegrid package: build a
configuration (a preset or a JSON file), run it, and plot the final fields
next to the mass and free-energy histories.

Usage:
    python run_simulation.py --preset spinodal --steps 4000
    python run_simulation.py --config my_run.json --no_plot
"""

import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from phasegrid.config import SimulationConfig
from phasegrid.logging_config import setup_logging
from phasegrid.solvers.simulation import Simulation


def parse_args():
    parser = argparse.ArgumentParser(description='Run phase-field simulation')
    parser.add_argument('--preset', type=str, choices=['spinodal'], default='spinodal',
                        help='Use a built-in configuration')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON configuration file (overrides --preset)')
    parser.add_argument('--dimension', type=int, default=2,
                        help='Spatial dimension of the preset')
    parser.add_argument('--steps', type=int, default=None,
                        help='Number of time steps')
    parser.add_argument('--output', type=str, default='results',
                        help='Output directory for results')
    parser.add_argument('--no_plot', action='store_true',
                        help='Skip plotting (useful for batch runs)')
    return parser.parse_args()


def main():
    args = parse_args()
    setup_logging()

    if args.config:
        config = SimulationConfig.load(args.config)
    else:
        config = SimulationConfig.spinodal_decomposition(dimension=args.dimension)
    if args.steps is not None:
        config.time.steps = args.steps
    config.output.output_dir = args.output

    print(config.summary())

    sim = Simulation(config)
    history = sim.run()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    results = {
        'times': [r.t for r in history],
        'free_energy': [r.free_energy for r in history],
    }
    for name in history[0].masses:
        results[f'mass_{name}'] = [r.masses[name] for r in history]
    for name, f in sim.state.items():
        results[f'field_{name}'] = f.as_array()
    np.savez(output_dir / 'results.npz', **results)
    print(f"\nResults saved to {output_dir / 'results.npz'}")

    if args.no_plot:
        return history

    names = sim.state.names()
    fig, axes = plt.subplots(2, max(2, len(names)), figsize=(6 * max(2, len(names)), 10))

    # Final fields
    for ax, name in zip(axes[0], names):
        values = sim.state.get(name).as_array()
        if sim.grid.dim == 1:
            x, = sim.grid.coordinates()
            ax.plot(x, values)
            ax.set_xlabel('x')
        else:
            # 3-D runs show the middle z slice
            if sim.grid.dim == 3:
                values = values[:, :, values.shape[2] // 2]
            im = ax.imshow(values.T, origin='lower', cmap='RdBu_r',
                           extent=[0, sim.grid.L[0], 0, sim.grid.L[1]])
            fig.colorbar(im, ax=ax)
        ax.set_title(f'{name} at t={sim.t:.3g}')

    # Mass conservation
    ax = axes[1, 0]
    for name in history[0].masses:
        masses = results[f'mass_{name}']
        ax.plot(results['times'], np.array(masses) - masses[0], label=name)
    ax.set_xlabel('Time')
    ax.set_ylabel('Mass drift')
    ax.set_title('Mass conservation check')
    ax.legend()

    # Free energy
    ax = axes[1, 1]
    ax.plot(results['times'], results['free_energy'], 'g-')
    ax.set_xlabel('Time')
    ax.set_ylabel('F')
    ax.set_title('Total free energy')

    for ax in axes[1, 2:]:
        ax.axis('off')

    plt.tight_layout()
    plt.savefig(output_dir / 'simulation_results.png', dpi=150)
    print(f"Plot saved to {output_dir / 'simulation_results.png'}")
    plt.show()

    return history


if __name__ == '__main__':
    main()
