"""
Free-energy functionals for conserved and non-conserved phase-field dynamics.

Every functional here is a small value object holding fixed coefficients.
Its methods are pure, element-wise functions of local field values: they
accept a float or a numpy array of local values (never a Field), so a term
can evaluate them for one cell or for the whole grid in a single call.

Conserved (Cahn-Hilliard) functionals provide
    bulk(u)        bulk free-energy density f(u)
    mu(u, lap_u)   chemical potential f'(u) - κ∇²u
    dmu_du(u)      f''(u), used by mobility models
    kappa          gradient-energy coefficient, so that
                   F[u] = ∫ [f(u) + (κ/2)|∇u|²] dr

Non-conserved (Allen-Cahn) functionals provide
    dfdc(c, driver)  relaxation force for c in the presence of a driver field

The multi-species functional returns one chemical potential per species.
"""

from typing import List, Sequence, Tuple

import numpy as np

from ..errors import ConfigError


class LandauFreeEnergy:
    """
    Landau (φ⁴) double well centred at zero.

        f(u) = -(ε/2)u² + (1/4)u⁴
        μ(u) = -εu + u³ - κ∇²u

    For ε > 0 the minima sit at u = ±√ε.
    """

    def __init__(self, eps: float, kappa: float = 1.0):
        self.eps = eps
        self.kappa = kappa

    def bulk(self, u):
        return -(self.eps * 0.5) * u**2 + 0.25 * u**4

    def mu(self, u, lap_u):
        return -self.eps * u + u**3 - self.kappa * lap_u

    def dmu_du(self, u):
        return -self.eps + 3.0 * u**2


class DoubleWellFreeEnergy:
    """
    Double-well free energy with a shifted critical concentration.

    The bulk free energy density is:
        f(c) = (α/4)(c - c̄)⁴ + (β/2)(c - c̄)²

    For β < 0, this has two minima at c = c̄ ± √(-β/α), the dilute and
    dense phases.
    """

    def __init__(self, alpha: float, beta: float, kappa: float, c_bar: float = 0.0):
        """
        Args:
            alpha: Quartic coefficient (should be positive for stability)
            beta: Quadratic coefficient (negative for phase separation)
            kappa: Gradient energy coefficient
            c_bar: Critical concentration (centre of the double well)
        """
        self.alpha = alpha
        self.beta = beta
        self.kappa = kappa
        self.c_bar = c_bar

        if beta < 0:
            self._delta_c = np.sqrt(-beta / alpha)
            self.c_minus = c_bar - self._delta_c
            self.c_plus = c_bar + self._delta_c
        else:
            raise ConfigError("double_well: beta must be negative for phase separation")

    def bulk(self, c):
        phi = c - self.c_bar
        return (self.alpha / 4) * phi**4 + (self.beta / 2) * phi**2

    def mu(self, c, lap_c):
        phi = c - self.c_bar
        return self.alpha * phi**3 + self.beta * phi - self.kappa * lap_c

    def dmu_du(self, c):
        phi = c - self.c_bar
        return 3 * self.alpha * phi**2 + self.beta

    def spinodal_concentrations(self) -> Tuple[float, float]:
        """
        Concentrations where f''(c) = 0.

        Inside the spinodal region the homogeneous phase is unstable to
        infinitesimal perturbations (spinodal decomposition).
        """
        delta_c_spinodal = np.sqrt(-self.beta / (3 * self.alpha))
        return (self.c_bar - delta_c_spinodal, self.c_bar + delta_c_spinodal)

    @property
    def interface_width(self) -> float:
        """Characteristic interfacial width √(2κ/|β|)."""
        return float(np.sqrt(2 * self.kappa / (-self.beta)))


class WertheimFreeEnergy:
    """
    Wertheim association theory for particles with `valence` sticky sites.

    With X(ρ) the fraction of unbonded sites,
        X(ρ) = (-1 + √(1 + 2·(2vδ)ρ)) / ((2vδ)ρ)

    the bulk free energy density is the reference (ideal + second virial)
    part plus the bonding part:
        f(ρ) = ρ ln ρ - ρ + B2 ρ² + v ρ (ln X + (1 - X)/2)

    The bonding contribution vanishes for ρ ≤ 0.
    """

    def __init__(self, B2: float, delta: float, valence: int, kappa: float = 0.0):
        self.B2 = B2
        self.delta = delta
        self.valence = int(valence)
        self.kappa = kappa
        self.two_valence_delta = 2.0 * self.valence * delta

    def X(self, rho):
        tvd = self.two_valence_delta
        return (-1.0 + np.sqrt(1.0 + 2.0 * tvd * rho)) / (tvd * rho)

    def bulk(self, rho):
        rho = np.asarray(rho, dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            f_ref = rho * np.log(rho) - rho + self.B2 * rho**2
            X = self.X(rho)
            f_bond = np.where(rho > 0.0,
                              self.valence * rho * (np.log(X) + 0.5 * (1.0 - X)),
                              0.0)
        return f_ref + f_bond

    def mu(self, rho, lap_rho):
        rho = np.asarray(rho, dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            der_f_ref = np.log(rho) + 2 * self.B2 * rho
            der_f_bond = np.where(rho > 0.0, self.valence * np.log(self.X(rho)), 0.0)
        return der_f_ref + der_f_bond - self.kappa * lap_rho

    def dmu_du(self, rho):
        rho = np.asarray(rho, dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            X = self.X(rho)
            d2f_ref = 1.0 / rho + 2.0 * self.B2
            d2f_bond = np.where(rho > 0.0,
                                self.valence * (X - 1.0) / ((2.0 - X) * rho),
                                0.0)
        return d2f_ref + d2f_bond


class MultiQuadraticFreeEnergy:
    """
    N-species free energy with symmetric pairwise linear coupling.

        f(φ) = Σ_i [ (a_i/2) φ_i² + (b_i/4) φ_i⁴ ] + Σ_{i<j} χ_ij φ_i φ_j
        μ_i  = a_i φ_i + b_i φ_i³ + Σ_{j≠i} χ_ij φ_j - κ_i ∇²φ_i
    """

    def __init__(self, a: Sequence[float], b: Sequence[float],
                 kappa: Sequence[float], chi: Sequence[Sequence[float]]):
        self.a = np.asarray(a, dtype=float)
        self.b = np.asarray(b, dtype=float)
        self.kappa = np.asarray(kappa, dtype=float)
        self.chi = np.asarray(chi, dtype=float)

        n = self.a.size
        if self.b.size != n or self.kappa.size != n:
            raise ConfigError(
                f"multi_quad: a, b and kappa must have equal length, got "
                f"{self.a.size}, {self.b.size}, {self.kappa.size}")
        if self.chi.shape != (n, n):
            raise ConfigError(f"multi_quad: chi must be {n}x{n}, got {self.chi.shape}")
        if not np.allclose(self.chi, self.chi.T):
            raise ConfigError("multi_quad: chi must be symmetric")

    @property
    def n_species(self) -> int:
        return self.a.size

    def mu(self, phis: Sequence[np.ndarray], laps: Sequence[np.ndarray]) -> List[np.ndarray]:
        n = self.n_species
        mus = []
        for i in range(n):
            coup = sum(self.chi[i, j] * phis[j] for j in range(n) if j != i)
            mus.append(self.a[i] * phis[i] + self.b[i] * phis[i]**3 + coup
                       - self.kappa[i] * laps[i])
        return mus

    def bulk(self, phis: Sequence[np.ndarray]):
        n = self.n_species
        s = 0.0
        for i in range(n):
            s = s + 0.5 * self.a[i] * phis[i]**2 + 0.25 * self.b[i] * phis[i]**4
        for i in range(n):
            for j in range(i + 1, n):
                s = s + self.chi[i, j] * phis[i] * phis[j]
        return s


class LinearRelaxation:
    """
    Linear relaxation of c toward a multiple of a driver field.

        df/dc = Mc (c - g·driver)
    """

    def __init__(self, Mc: float = 0.1, gcoef: float = 1.0):
        self.Mc = Mc
        self.gcoef = gcoef

    def dfdc(self, c, driver):
        return self.Mc * (c - self.gcoef * driver)


class GelRelaxation:
    """
    Gelation kinetics of c driven by an order parameter.

    The order parameter is rescaled from [-1, 1] to [0, 1] when
    rescale_OP is set, then
        g     = (p_gel φ - φ_c) / (1 - φ_c)
        df/dc = M_c (c² - g c)
    so c relaxes to g where g > 0 and to zero elsewhere.
    """

    def __init__(self, critical_OP: float, M_c: float, p_gel: float,
                 rescale_OP: bool = True):
        if critical_OP == 1.0:
            raise ConfigError("gel: critical_OP must differ from 1")
        self.critical_OP = critical_OP
        self.M_c = M_c
        self.p_gel = p_gel
        self.rescale_OP = rescale_OP

    def dfdc(self, c, driver):
        phi = (driver + 1.0) / 2.0 if self.rescale_OP else driver
        g = (self.p_gel * phi - self.critical_OP) / (1.0 - self.critical_OP)
        return self.M_c * (c * c - g * c)
