"""
Configuration module for phase-field simulations on periodic grids.

This module defines the SimulationConfig dataclass that holds everything
needed to set up a run: the grid, the fields and how they are initialised,
the time step, output cadence, integrator choice, and an ordered list of
term descriptors selecting which physical processes act on which fields.

Configurations are stored as JSON. Loading validates the document and
raises ConfigError with a message naming the offending key; a run never
starts from a configuration that failed to load.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
import json
import logging

from .errors import ConfigError

logger = logging.getLogger(__name__)

INIT_STRATEGIES = ('constant', 'random', 'from_file', 'droplet')
TERM_KINDS = ('CH', 'AC', 'CH_multi')
WRITERS = ('vtk', 'plain')


def require(table: Dict[str, Any], key: str, where: str) -> Any:
    """Return table[key] or raise ConfigError naming the missing key."""
    if table is None or key not in table:
        raise ConfigError(f"{where}: missing required key '{key}'")
    return table[key]


def optional(table: Optional[Dict[str, Any]], key: str, default: Any, where: str) -> Any:
    """Return table[key], falling back to (and logging) the default."""
    if table is not None and key in table:
        return table[key]
    logger.info("%s: using default for %s (%s)", where, key, default)
    return default


@dataclass
class GridParams:
    """
    Discretization of the periodic domain.

    Attributes:
        n: Number of cells along each axis. Its length sets the dimension.
        L: Physical length of each axis.
    """
    n: List[int] = field(default_factory=lambda: [128, 128])
    L: List[float] = field(default_factory=lambda: [256.0, 256.0])

    @property
    def dimension(self) -> int:
        return len(self.n)


@dataclass
class FieldParams:
    """
    One named field and its initialisation strategy.

    Attributes:
        name: Field name, referenced by terms and diagnostics
        initialisation: One of 'constant', 'random', 'from_file', 'droplet'
        average: Constant value, or mean of the random-normal samples
        random_stddev: Standard deviation of the random-normal samples
        filename: Plain-text snapshot to read ('from_file' only)
        c_plus, c_minus, radius, center, interface_width: Droplet profile
            ('droplet' only; center defaults to the domain centre)
    """
    name: str
    initialisation: str = 'constant'
    average: float = 0.0
    random_stddev: float = 0.0
    filename: Optional[str] = None
    c_plus: float = 1.0
    c_minus: float = -1.0
    radius: float = 1.0
    center: Optional[List[float]] = None
    interface_width: float = 1.0


@dataclass
class TimeParams:
    """
    Attributes:
        dt: Time step size. Explicit schemes need it small enough for stability.
        steps: Number of time steps to take.
    """
    dt: float = 1e-3
    steps: int = 1000


@dataclass
class OutputParams:
    """
    Attributes:
        output_every: Steps between diagnostic records (mass, free energy).
        conf_every: Steps between field snapshots written to disk.
        output_dir: Directory receiving snapshots and diagnostics.
        txt_append: Append plain-text snapshots to one file per field.
        mass_fields: Fields whose total mass is reported.
        writers: Snapshot formats, any of 'vtk' and 'plain'.
    """
    output_every: int = 100
    conf_every: int = 1000
    output_dir: str = 'output'
    txt_append: bool = False
    mass_fields: List[str] = field(default_factory=list)
    writers: List[str] = field(default_factory=lambda: ['vtk'])


@dataclass
class IntegratorParams:
    """
    Attributes:
        name: 'euler', 'rk2' or 'rk4'
        mass_fix: Subtract the mean of mass_field after every step (euler, rk2)
        mass_field: Field kept at zero mean by the mass fix
    """
    name: str = 'euler'
    mass_fix: bool = False
    mass_field: str = 'phi'


@dataclass
class TermParams:
    """
    Declarative description of one term.

    Attributes:
        kind: 'CH' (Cahn-Hilliard), 'AC' (Allen-Cahn) or 'CH_multi'
        target: Field acted on (CH, AC)
        targets: Species fields acted on (CH_multi)
        id: Label used in messages
        enabled: Disabled terms are skipped when building the system
        kappa: Gradient-energy coefficient (CH)
        free_energy: Functional selection, {'type': ..., <parameters>}
        mobility: Mobility selection, {'type': ..., <parameters>} (CH, CH_multi)
        coupling: Extra inputs, e.g. {'driver': 'phi'} (AC)
        ops: Operator backend selection, {'type': 'fd'}
    """
    kind: str
    target: Optional[str] = None
    targets: List[str] = field(default_factory=list)
    id: str = ''
    enabled: bool = True
    kappa: Optional[float] = None
    free_energy: Dict[str, Any] = field(default_factory=dict)
    mobility: Dict[str, Any] = field(default_factory=dict)
    coupling: Dict[str, Any] = field(default_factory=dict)
    ops: Dict[str, Any] = field(default_factory=lambda: {'type': 'fd'})

    @property
    def label(self) -> str:
        return self.id or f"{self.kind}:{','.join(self.target_names)}"

    @property
    def target_names(self) -> List[str]:
        if self.kind == 'CH_multi':
            return list(self.targets)
        return [self.target] if self.target else []


@dataclass
class SimulationConfig:
    """
    Complete configuration for a simulation.

    Example usage:
        # Built-in preset
        config = SimulationConfig.spinodal_decomposition()

        # Modify
        config.time.steps = 5000
        config.integrator.name = 'rk4'

        # Save configuration
        config.save("my_simulation.json")

        # Load configuration
        config = SimulationConfig.load("my_simulation.json")
    """
    grid: GridParams = field(default_factory=GridParams)
    fields: List[FieldParams] = field(default_factory=list)
    time: TimeParams = field(default_factory=TimeParams)
    output: OutputParams = field(default_factory=OutputParams)
    integrator: IntegratorParams = field(default_factory=IntegratorParams)
    terms: List[TermParams] = field(default_factory=list)
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, filepath: str) -> None:
        """Save configuration to a JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'SimulationConfig':
        """Load and validate a configuration from a JSON file."""
        with open(filepath, 'r') as f:
            try:
                config_dict = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{filepath}: invalid JSON ({e})") from e
        logger.info("Loaded configuration from %s", filepath)
        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'SimulationConfig':
        """Build a configuration from a parsed document, validating it."""
        if not isinstance(d, dict):
            raise ConfigError("configuration root must be a JSON object")

        config = cls(
            grid=_parse_grid(d),
            fields=_parse_fields(d),
            time=_parse_section(TimeParams, d.get('time'), 'time'),
            output=_parse_section(OutputParams, d.get('output'), 'output'),
            integrator=_parse_section(IntegratorParams, d.get('integrator'), 'integrator'),
            terms=_parse_terms(d),
            seed=d.get('seed'),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check cross-references and value ranges; raise ConfigError on failure."""
        if self.time.dt <= 0:
            raise ConfigError(f"time.dt must be positive, got {self.time.dt}")
        if self.time.steps < 0:
            raise ConfigError(f"time.steps must be non-negative, got {self.time.steps}")
        if self.output.output_every <= 0 or self.output.conf_every <= 0:
            raise ConfigError("output.output_every and output.conf_every must be positive")

        names = [f.name for f in self.fields]
        if not names:
            raise ConfigError("[fields] must declare at least one field")
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(f"fields declared more than once: {duplicates}")

        for fp in self.fields:
            if fp.initialisation not in INIT_STRATEGIES:
                raise ConfigError(
                    f"Field '{fp.name}', the specified initialisation strategy "
                    f"'{fp.initialisation}' is invalid")
            if fp.initialisation == 'from_file' and not fp.filename:
                raise ConfigError(f"Field '{fp.name}': from_file needs 'filename'")
            if fp.initialisation == 'random' and fp.random_stddev < 0:
                raise ConfigError(f"Field '{fp.name}': random_stddev must be non-negative")

        for s in self.output.mass_fields:
            if s not in names:
                raise ConfigError(f"mass_fields refers to unknown field: {s}")
        for w in self.output.writers:
            if w not in WRITERS:
                raise ConfigError(f"output.writers: unknown writer '{w}'")

        if not self.terms:
            raise ConfigError("[terms] must declare at least one term")
        for tp in self.terms:
            if tp.kind not in TERM_KINDS:
                raise ConfigError(f"{tp.label}: unknown term kind: {tp.kind}")
            if not tp.target_names:
                raise ConfigError(f"{tp.label}: term missing 'target'")
            for t in tp.target_names:
                if t not in names:
                    raise ConfigError(f"{tp.label}: target '{t}' is not a declared field")
            if 'type' not in tp.free_energy:
                raise ConfigError(f"{tp.label}: [free_energy] missing or has no 'type'")

    @classmethod
    def spinodal_decomposition(cls, dimension: int = 2) -> 'SimulationConfig':
        """
        Landau Cahn-Hilliard field 'phi' quenched from a noisy mixed state,
        driving a linearly relaxing field 'c'.
        """
        return cls(
            grid=GridParams(n=[128] * dimension, L=[256.0] * dimension),
            fields=[
                FieldParams(name='phi', initialisation='random', average=0.0, random_stddev=0.05),
                FieldParams(name='c', initialisation='constant', average=0.0),
            ],
            time=TimeParams(dt=2.5e-3, steps=1000),
            output=OutputParams(output_every=200, conf_every=1000, mass_fields=['phi']),
            integrator=IntegratorParams(name='rk2'),
            terms=[
                TermParams(id='phase', kind='CH', target='phi', kappa=1.0,
                           free_energy={'type': 'landau', 'eps': 0.8},
                           mobility={'type': 'const', 'M0': 1.0}),
                TermParams(id='relax', kind='AC', target='c',
                           free_energy={'type': 'linear', 'Mc': 0.1, 'gcoef': 1.0},
                           coupling={'driver': 'phi'}),
            ],
            seed=42,
        )

    def summary(self) -> str:
        """Return a human-readable summary of the configuration."""
        lines = [
            "=" * 60,
            "Simulation Configuration Summary",
            "=" * 60,
            "",
            "Grid:",
            f"  Dimension: {self.grid.dimension}",
            f"  Cells: {' x '.join(str(v) for v in self.grid.n)}",
            f"  Lengths: {' x '.join(str(v) for v in self.grid.L)}",
            "",
            "Fields:",
        ]
        for fp in self.fields:
            lines.append(f"  {fp.name}: {fp.initialisation}")
        lines += [
            "",
            "Terms:",
        ]
        for tp in self.terms:
            state = "" if tp.enabled else " (disabled)"
            mob = f", mobility={tp.mobility.get('type')}" if tp.mobility else ""
            lines.append(f"  [{tp.kind}] {tp.label}: free_energy={tp.free_energy.get('type')}"
                         f"{mob}{state}")
        lines += [
            "",
            "Time Stepping:",
            f"  Integrator: {self.integrator.name}"
            + (f" (mass fix on '{self.integrator.mass_field}')" if self.integrator.mass_fix else ""),
            f"  Time step: {self.time.dt}",
            f"  Steps: {self.time.steps} (t_final = {self.time.dt * self.time.steps:g})",
            "",
            "Output:",
            f"  Diagnostics every {self.output.output_every} steps, "
            f"snapshots every {self.output.conf_every} steps",
            f"  Writers: {', '.join(self.output.writers) or 'none'} -> {self.output.output_dir}",
            "=" * 60
        ]
        return "\n".join(lines)


def _parse_section(cls, table: Optional[Dict[str, Any]], where: str):
    if table is None:
        logger.info("[%s] not given, using defaults", where)
        return cls()
    if not isinstance(table, dict):
        raise ConfigError(f"[{where}] must be a table")
    try:
        return cls(**table)
    except TypeError as e:
        raise ConfigError(f"[{where}]: {e}") from e


def _parse_grid(d: Dict[str, Any]) -> GridParams:
    gsec = require(d, 'grid', 'configuration')
    n = require(gsec, 'n', 'grid')
    L = require(gsec, 'L', 'grid')

    if isinstance(n, list) or isinstance(L, list):
        dim = len(n) if isinstance(n, list) else len(L)
    else:
        dim = d.get('dimension')
        if dim is None:
            raise ConfigError("grid: scalar 'n' and 'L' need a top-level 'dimension'")

    def expand(value, key):
        if isinstance(value, list):
            if len(value) != dim:
                raise ConfigError(f"Expected grid.{key} to have {dim} elements")
            return value
        return [value] * dim

    return GridParams(n=[int(v) for v in expand(n, 'n')],
                      L=[float(v) for v in expand(L, 'L')])


def _parse_fields(d: Dict[str, Any]) -> List[FieldParams]:
    fields = require(d, 'fields', 'configuration')
    if not isinstance(fields, list):
        raise ConfigError("[[fields]] missing or not an array")

    out = []
    for t in fields:
        name = require(t, 'name', 'fields')
        where = f"field '{name}'"
        init = require(t, 'initialisation', where)
        fp = FieldParams(name=name, initialisation=init)
        if init in ('constant', 'random'):
            fp.average = float(require(t, 'average', where))
        if init == 'random':
            fp.random_stddev = float(require(t, 'random_stddev', where))
        elif init == 'from_file':
            fp.filename = require(t, 'filename', where)
        elif init == 'droplet':
            fp.c_plus = float(require(t, 'c_plus', where))
            fp.c_minus = float(require(t, 'c_minus', where))
            fp.radius = float(require(t, 'radius', where))
            fp.center = optional(t, 'center', None, where)
            fp.interface_width = float(optional(t, 'interface_width', 1.0, where))
        out.append(fp)
    return out


def _parse_terms(d: Dict[str, Any]) -> List[TermParams]:
    terms = require(d, 'terms', 'configuration')
    if not isinstance(terms, list):
        raise ConfigError("[[terms]] missing or not an array")

    out = []
    for t in terms:
        if not isinstance(t, dict):
            raise ConfigError("each [[terms]] entry must be a table")
        kind = t.get('kind')
        if not kind:
            raise ConfigError(f"term {t.get('id', '?')}: term missing 'kind'")
        ops = t.get('ops') or {}
        out.append(TermParams(
            kind=kind,
            target=t.get('target'),
            targets=list(t.get('targets', [])),
            id=t.get('id', ''),
            enabled=bool(t.get('enabled', True)),
            kappa=t.get('kappa'),
            free_energy=dict(t.get('free_energy') or {}),
            mobility=dict(t.get('mobility') or {}),
            coupling=dict(t.get('coupling') or {}),
            ops={'type': ops.get('type', 'fd'), **ops},
        ))
    return out
