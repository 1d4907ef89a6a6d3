"""
Command-line entry point.

Usage:
    phasegrid-run run.json
    phasegrid-run --preset spinodal --steps 2000 --integrator rk4 --plot
"""

from pathlib import Path
import argparse
import logging
import sys

import numpy as np

from .config import SimulationConfig
from .errors import PhasegridError
from .logging_config import setup_logging
from .solvers.simulation import Simulation

logger = logging.getLogger(__name__)

PRESETS = {
    'spinodal': SimulationConfig.spinodal_decomposition,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='phasegrid-run',
                                     description='Run a phase-field simulation')
    parser.add_argument('config', nargs='?', default=None,
                        help='JSON configuration file')
    parser.add_argument('--preset', choices=sorted(PRESETS),
                        help='Use a built-in configuration instead of a file')
    parser.add_argument('--steps', type=int, default=None,
                        help='Override the number of time steps')
    parser.add_argument('--dt', type=float, default=None,
                        help='Override the time step')
    parser.add_argument('--integrator', type=str, default=None,
                        help="Override the integrator ('euler', 'rk2', 'rk4')")
    parser.add_argument('--output', type=str, default=None,
                        help='Override the output directory')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Logging level')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write the log to this file')
    parser.add_argument('--log-json', action='store_true',
                        help='Emit log records as JSON objects, one per line')
    parser.add_argument('--plot', action='store_true',
                        help='Save a plot of mass and free energy against time')
    parser.add_argument('--summary-only', action='store_true',
                        help='Print the configuration summary and exit')
    args = parser.parse_args(argv)
    if (args.config is None) == (args.preset is None):
        parser.error("give exactly one of a configuration file or --preset")
    return args


def build_config(args) -> SimulationConfig:
    if args.preset:
        config = PRESETS[args.preset]()
    else:
        config = SimulationConfig.load(args.config)

    if args.steps is not None:
        config.time.steps = args.steps
    if args.dt is not None:
        config.time.dt = args.dt
    if args.integrator is not None:
        config.integrator.name = args.integrator
    if args.output is not None:
        config.output.output_dir = args.output
    config.validate()
    return config


def save_diagnostics(history, output_dir: Path) -> Path:
    """Store the diagnostic history as diagnostics.npz."""
    results = {
        'steps': np.array([r.step for r in history]),
        'times': np.array([r.t for r in history]),
        'free_energy': np.array([r.free_energy for r in history]),
    }
    for name in history[0].masses:
        results[f'mass_{name}'] = np.array([r.masses[name] for r in history])
        results[f'mean_{name}'] = np.array([r.means[name] for r in history])

    path = output_dir / 'diagnostics.npz'
    np.savez(path, **results)
    return path


def plot_diagnostics(history, output_dir: Path) -> Path:
    """Plot total mass and free energy against time."""
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    times = [r.t for r in history]
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    ax = axes[0]
    for name in history[0].masses:
        ax.plot(times, [r.masses[name] for r in history], label=name)
    ax.set_xlabel('Time')
    ax.set_ylabel('Total mass')
    ax.set_title('Mass conservation check')
    ax.legend()

    ax = axes[1]
    ax.plot(times, [r.free_energy for r in history], 'k-')
    ax.set_xlabel('Time')
    ax.set_ylabel('F')
    ax.set_title('Total free energy')

    plt.tight_layout()
    path = output_dir / 'diagnostics.png'
    plt.savefig(path, dpi=150)
    plt.close(fig)
    return path


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file, json_format=args.log_json)

    try:
        config = build_config(args)
        print(config.summary())
        if args.summary_only:
            return 0

        sim = Simulation(config)
        history = sim.run()

        output_dir = Path(config.output.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Diagnostics saved to %s", save_diagnostics(history, output_dir))
        if args.plot:
            logger.info("Plot saved to %s", plot_diagnostics(history, output_dir))
    except (PhasegridError, OSError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
