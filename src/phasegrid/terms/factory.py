"""
Construction of terms from declarative descriptors.

Each functional family has a registry mapping the configuration 'type'
string to a constructor taking the parameter table. Unknown type names are
configuration errors. make_system_builder() resolves every descriptor
once, up front, so that a bad configuration fails before any time step is
taken; the returned builder then only binds fresh term objects to the
given state/derivative stores.
"""

from typing import Any, Callable, Dict, List
import logging

from ..config import TermParams, optional, require
from ..errors import ConfigError
from ..numerics.fields import FieldStore
from ..numerics.operators import make_ops
from ..physics.free_energy import (DoubleWellFreeEnergy, GelRelaxation, LandauFreeEnergy,
                                   LinearRelaxation, MultiQuadraticFreeEnergy,
                                   WertheimFreeEnergy)
from ..physics.mobility import (ConstantMobility, DiagonalConstantMobility,
                                ExpOfFieldMobility, MatrixConstantMobility,
                                WertheimMobility)
from .allen_cahn import AllenCahnTerm
from .base import System, SystemBuilder, Term
from .cahn_hilliard import CahnHilliardTerm
from .multi_species import MultiCahnHilliardTerm

logger = logging.getLogger(__name__)

Table = Dict[str, Any]


# Cahn-Hilliard functionals: (table, kappa, where) -> functional
CH_FREE_ENERGIES: Dict[str, Callable[[Table, float, str], Any]] = {
    'landau': lambda t, k, w: LandauFreeEnergy(
        eps=require(t, 'eps', w), kappa=k),
    'double_well': lambda t, k, w: DoubleWellFreeEnergy(
        alpha=optional(t, 'alpha', 1.0, w), beta=require(t, 'beta', w),
        kappa=k, c_bar=optional(t, 'c_bar', 0.0, w)),
    'wertheim': lambda t, k, w: WertheimFreeEnergy(
        B2=require(t, 'B2', w), delta=require(t, 'delta', w),
        valence=require(t, 'valence', w), kappa=k),
}

# Scalar mobilities: (table, free_energy, target, where) -> mobility
MOBILITIES: Dict[str, Callable[[Table, Any, str, str], Any]] = {
    'const': lambda t, fe, tgt, w: ConstantMobility(M0=optional(t, 'M0', 1.0, w)),
    'exp_of_field': lambda t, fe, tgt, w: ExpOfFieldMobility(
        field=optional(t, 'field', 'c', w), c0=optional(t, 'c0', 1.0, w)),
    'wertheim': lambda t, fe, tgt, w: _wertheim_mobility(t, fe, tgt, w),
}

# Allen-Cahn functionals: (table, where) -> functional
AC_FREE_ENERGIES: Dict[str, Callable[[Table, str], Any]] = {
    'linear': lambda t, w: LinearRelaxation(
        Mc=optional(t, 'Mc', 0.1, w), gcoef=optional(t, 'gcoef', 1.0, w)),
    'gel': lambda t, w: GelRelaxation(
        critical_OP=require(t, 'critical_OP', w), M_c=require(t, 'M_c', w),
        p_gel=require(t, 'p_gel', w), rescale_OP=optional(t, 'rescale_OP', True, w)),
}

# Multi-species functionals: (table, where) -> functional
MULTI_FREE_ENERGIES: Dict[str, Callable[[Table, str], Any]] = {
    'multi_quad': lambda t, w: MultiQuadraticFreeEnergy(
        a=require(t, 'a', w), b=require(t, 'b', w),
        kappa=require(t, 'kappa', w), chi=require(t, 'chi', w)),
}

# Multi-species mobilities: (table, where) -> mobility
MULTI_MOBILITIES: Dict[str, Callable[[Table, str], Any]] = {
    'diag_const': lambda t, w: DiagonalConstantMobility(M=require(t, 'M', w)),
    'full_const': lambda t, w: MatrixConstantMobility(M=require(t, 'M', w)),
}


def _wertheim_mobility(t: Table, fe, target: str, where: str) -> WertheimMobility:
    if not isinstance(fe, WertheimFreeEnergy):
        raise ConfigError(f"{where}: mobility 'wertheim' needs free_energy type 'wertheim'")
    return WertheimMobility(fe, D0=optional(t, 'D0', 1.0, where),
                            field=optional(t, 'field', target, where))


def _lookup(registry: Dict[str, Callable], kind: str, type_name: str, where: str) -> Callable:
    try:
        return registry[type_name]
    except KeyError:
        known = ', '.join(sorted(registry))
        raise ConfigError(f"{where}: unknown {kind}.type: {type_name!r} (known: {known})") from None


def make_term_factory(params: TermParams) -> Callable[[FieldStore, FieldStore], Term]:
    """
    Resolve one term descriptor into a function binding a new term to stores.

    Functional and mobility objects are built here, once, and shared by
    every term the returned function creates.
    """
    where = params.label
    ops = make_ops(params.ops.get('type', 'fd'))
    fe_tbl = params.free_energy
    fe_type = require(fe_tbl, 'type', f"{where}.free_energy")

    if params.kind == 'CH':
        kappa = params.kappa if params.kappa is not None else require(fe_tbl, 'kappa', where)
        fe = _lookup(CH_FREE_ENERGIES, 'free_energy', fe_type, where)(fe_tbl, kappa, where)
        mob_tbl = params.mobility or {}
        mob_type = optional(mob_tbl, 'type', 'const', f"{where}.mobility")
        mob = _lookup(MOBILITIES, 'mobility', mob_type, where)(mob_tbl, fe, params.target, where)
        target = params.target
        return lambda S, dS: CahnHilliardTerm(S, dS, ops, target, fe, mob)

    if params.kind == 'AC':
        fe = _lookup(AC_FREE_ENERGIES, 'free_energy', fe_type, where)(fe_tbl, where)
        driver = optional(params.coupling, 'driver', 'phi', f"{where}.coupling")
        target = params.target
        return lambda S, dS: AllenCahnTerm(S, dS, ops, target, fe, driver)

    if params.kind == 'CH_multi':
        fe = _lookup(MULTI_FREE_ENERGIES, 'free_energy', fe_type, where)(fe_tbl, where)
        if fe.n_species != len(params.targets):
            raise ConfigError(
                f"{where}: free energy has {fe.n_species} species, "
                f"{len(params.targets)} targets given")
        mob_tbl = params.mobility
        mob_type = require(mob_tbl, 'type', f"{where}.mobility")
        mob = _lookup(MULTI_MOBILITIES, 'mobility', mob_type, where)(mob_tbl, where)
        n_mob = len(mob.M)
        if n_mob != fe.n_species:
            raise ConfigError(f"{where}: mobility has {n_mob} species, expected {fe.n_species}")
        targets = list(params.targets)
        return lambda S, dS: MultiCahnHilliardTerm(S, dS, ops, targets, fe, mob)

    raise ConfigError(f"{where}: unknown term kind: {params.kind}")


def make_system_builder(term_params: List[TermParams]) -> SystemBuilder:
    """
    Turn an ordered list of term descriptors into a SystemBuilder.

    Disabled descriptors are skipped. Raises ConfigError for any
    descriptor that cannot be resolved.
    """
    factories = []
    for params in term_params:
        if not params.enabled:
            logger.info("Skipping disabled term %s", params.label)
            continue
        factories.append(make_term_factory(params))
        logger.debug("Resolved term %s", params.label)

    def build_system(state: FieldStore, deriv: FieldStore) -> System:
        sys = System()
        for factory in factories:
            sys.add(factory(state, deriv))
        return sys

    return build_system
