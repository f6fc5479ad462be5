# struct_core/seismic.py
"""
SEISMIC: Design spectrum, modal combination, equivalent lateral force
=====================================================================

PURPOSE:
--------
1. Design response spectrum Sa(T) in the SNI 1726:2019 / ASCE 7 shape, or
   from a tabulated (T, Sa) list.
2. Response-spectrum analysis: per-mode peak response scaled by Sa(Ti),
   combined across modes by SRSS or CQC.
3. Equivalent lateral force procedure: period estimate, base shear and its
   vertical distribution over the storeys.

SPECTRUM SHAPE:
---------------
    SMS = Fa·Ss        SDS = 2/3·SMS       T0 = 0.2·SD1/SDS
    SM1 = Fv·S1        SD1 = 2/3·SM1       Ts = SD1/SDS

    Sa(T) = SDS·(0.4 + 0.6·T/T0)    T <  T0
          = SDS                     T0 <= T <= Ts
          = SD1/T                   Ts < T <= TL
          = SD1·TL/T²               T > TL

MODAL COMBINATION:
------------------
For mode i with participation Γi, circular frequency ωi and spectral
acceleration Sai, the peak displacement is

    ui = Γi·Sai·φi / ωi²

SRSS:  r = sqrt(Σ ri²)
CQC:   r = sqrt(Σi Σj ρij·ri·rj),  ρ from Der Kiureghian (equal damping ζ)

    ρij = 8ζ²(1+β)β^1.5 / ((1-β²)² + 4ζ²β(1+β)²),   β = ωj/ωi

ρii = 1 and ρij > 0, so for responses of the same sign CQC >= SRSS.

Modes count as closely spaced when the shorter period of an adjacent pair
is at least ``period_ratio`` (default 0.90) of the longer one, i.e. the
periods differ by less than 10%. The 'auto' rule picks CQC in that case.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import CONFIG, SpectrumParameters
from .errors import SpectrumDomainError
from .kernel.modal import ModalResult
from .model import Load, LoadCase, LoadType

_logger = logging.getLogger(__name__)


# =============================================================================
# Site coefficients (SNI 1726:2019 Tables 6 and 7)
# =============================================================================

SS_GRID = (0.25, 0.50, 0.75, 1.00, 1.25)
S1_GRID = (0.10, 0.20, 0.30, 0.40, 0.50)

FA_TABLE = {
    'SA': (0.8, 0.8, 0.8, 0.8, 0.8),
    'SB': (0.9, 0.9, 0.9, 0.9, 0.9),
    'SC': (1.2, 1.2, 1.1, 1.0, 1.0),
    'SD': (1.6, 1.4, 1.2, 1.1, 1.0),
    'SE': (2.5, 1.7, 1.2, 0.9, 0.8),
}

FV_TABLE = {
    'SA': (0.8, 0.8, 0.8, 0.8, 0.8),
    'SB': (0.9, 0.9, 0.9, 0.9, 0.9),
    'SC': (1.7, 1.6, 1.5, 1.4, 1.3),
    'SD': (2.4, 2.2, 2.0, 1.9, 1.8),
    'SE': (3.5, 3.2, 2.8, 2.4, 2.4),
}

DRIFT_LIMIT_RATIO = 0.020  # Δa / hsx, risk category I/II


def site_coefficients(site_class: str, ss: float, s1: float) -> Tuple[float, float]:
    """
    Short- and long-period site coefficients (Fa, Fv).

    Values between table columns are interpolated linearly; outside the
    table the end column applies.

    Raises:
        ValueError: site class SF (site-specific study required) or unknown
    """
    key = site_class.upper()
    if key == 'SF':
        raise ValueError("Site class SF requires a site-specific response analysis")
    if key not in FA_TABLE:
        raise ValueError(f"Unknown site class {site_class!r}, expected one of {sorted(FA_TABLE)}")
    Fa = float(np.interp(ss, SS_GRID, FA_TABLE[key]))
    Fv = float(np.interp(s1, S1_GRID, FV_TABLE[key]))
    return Fa, Fv


# =============================================================================
# Design spectrum
# =============================================================================

class DesignSpectrum:
    """
    Design spectral acceleration Sa(T), in g.

    Build with ``DesignSpectrum.from_site(ss, s1, 'SD')``, directly from
    (sds, sd1), or ``DesignSpectrum.tabulated(periods, accelerations)``.
    ``scale`` multiplies every ordinate (use Ie/R for design forces).
    """

    def __init__(self, sds: float, sd1: float, tl: float = 12.0, t_max: float = 10.0,
                 scale: float = 1.0):
        if sds <= 0.0 or sd1 <= 0.0:
            raise ValueError(f"SDS and SD1 must be positive, got {sds}, {sd1}")
        self.sds = sds
        self.sd1 = sd1
        self.tl = tl
        self.t_max = t_max
        self.scale = scale
        self._table: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @classmethod
    def from_site(cls, ss: float, s1: float, site_class: str = 'SD', **kwargs) -> 'DesignSpectrum':
        Fa, Fv = site_coefficients(site_class, ss, s1)
        return cls(sds=2.0 / 3.0 * Fa * ss, sd1=2.0 / 3.0 * Fv * s1, **kwargs)

    @classmethod
    def tabulated(cls, periods: Sequence[float], accelerations: Sequence[float],
                  scale: float = 1.0) -> 'DesignSpectrum':
        T = np.asarray(periods, dtype=float)
        Sa = np.asarray(accelerations, dtype=float)
        if T.ndim != 1 or T.shape != Sa.shape or len(T) < 2:
            raise ValueError("Tabulated spectrum needs matching period/acceleration lists (>= 2 points)")
        if np.any(np.diff(T) <= 0.0):
            raise ValueError("Tabulated spectrum periods must be strictly increasing")
        if np.any(Sa < 0.0):
            raise ValueError("Spectral accelerations cannot be negative")
        spectrum = cls(sds=float(Sa.max()) or 1.0, sd1=1.0, t_max=float(T[-1]), scale=scale)
        spectrum._table = (T, Sa)
        return spectrum

    @classmethod
    def from_parameters(cls, params: SpectrumParameters) -> 'DesignSpectrum':
        """
        Build the spectrum a run was configured with.

        Raises:
            SpectrumDomainError: the parameters do not define a usable
                spectrum (unknown or SF site class, incomplete or malformed
                tabulation).
        """
        scale = params.importance / params.response_modification
        try:
            if params.periods is not None and params.accelerations is not None:
                return cls.tabulated(params.periods, params.accelerations, scale=scale)
            if params.sds is not None and params.sd1 is not None:
                return cls(params.sds, params.sd1, tl=params.tl, t_max=params.t_max, scale=scale)
            if params.ss is not None and params.s1 is not None:
                return cls.from_site(params.ss, params.s1, params.site_class,
                                     tl=params.tl, t_max=params.t_max, scale=scale)
            raise ValueError("Spectrum needs (ss, s1), (sds, sd1) or tabulated periods/accelerations")
        except ValueError as e:
            raise SpectrumDomainError(f"Invalid design spectrum: {e}") from e

    @property
    def t0(self) -> float:
        return 0.2 * self.sd1 / self.sds

    @property
    def ts(self) -> float:
        return self.sd1 / self.sds

    @property
    def domain(self) -> Tuple[float, float]:
        if self._table is not None:
            return float(self._table[0][0]), float(self._table[0][-1])
        return 0.0, self.t_max

    def sa(self, T: float) -> float:
        """Spectral acceleration (g) at period T (s)."""
        lo, hi = self.domain
        if not (math.isfinite(T) and lo <= T <= hi):
            raise SpectrumDomainError(
                f"Period {T:.4g} s outside spectrum domain [{lo:g}, {hi:g}] s",
                period=T, domain=(lo, hi),
            )
        if self._table is not None:
            return self.scale * float(np.interp(T, *self._table))

        if T < self.t0:
            sa = self.sds * (0.4 + 0.6 * T / self.t0)
        elif T <= self.ts:
            sa = self.sds
        elif T <= self.tl:
            sa = self.sd1 / T
        else:
            sa = self.sd1 * self.tl / (T * T)
        return self.scale * sa

    def curve(self, n: int = 200) -> Tuple[np.ndarray, np.ndarray]:
        """Sampled (T, Sa) over the domain."""
        lo, hi = self.domain
        T = np.linspace(lo, hi, n)
        return T, np.array([self.sa(t) for t in T])


# =============================================================================
# Modal combination
# =============================================================================

def cqc_correlation(omega_i: float, omega_j: float, damping: float) -> float:
    """Der Kiureghian cross-modal coefficient for equal modal damping."""
    if omega_i <= 0.0 or omega_j <= 0.0:
        return 1.0 if omega_i == omega_j else 0.0
    beta = omega_j / omega_i
    z2 = damping * damping
    num = 8.0 * z2 * (1.0 + beta) * beta ** 1.5
    den = (1.0 - beta * beta) ** 2 + 4.0 * z2 * beta * (1.0 + beta) ** 2
    if den == 0.0:
        return 1.0
    return num / den


def correlation_matrix(omega: Sequence[float], damping: float) -> np.ndarray:
    n = len(omega)
    rho = np.eye(n)
    for i in range(n):
        for j in range(i + 1, n):
            rho[i, j] = rho[j, i] = cqc_correlation(omega[i], omega[j], damping)
    return rho


def srss(responses: np.ndarray) -> np.ndarray:
    """Combine per-mode responses (axis 0 = mode) by square-root-sum-of-squares."""
    responses = np.asarray(responses, dtype=float)
    return np.sqrt(np.sum(responses ** 2, axis=0))


def cqc(responses: np.ndarray, omega: Sequence[float], damping: float) -> np.ndarray:
    """Complete quadratic combination of per-mode responses (axis 0 = mode)."""
    responses = np.asarray(responses, dtype=float)
    rho = correlation_matrix(omega, damping)
    flat = responses.reshape(responses.shape[0], -1)
    total = np.einsum('ik,ij,jk->k', flat, rho, flat)
    return np.sqrt(np.maximum(total, 0.0)).reshape(responses.shape[1:])


def closely_spaced(periods: Sequence[float], period_ratio: float = 0.90) -> bool:
    """True when any adjacent pair of finite periods is within ``period_ratio``."""
    T = sorted((t for t in periods if math.isfinite(t) and t > 0.0), reverse=True)
    return any(shorter / longer >= period_ratio for longer, shorter in zip(T, T[1:]))


def select_rule(rule: str, periods: Sequence[float], period_ratio: float = 0.90) -> str:
    if rule == 'auto':
        return 'cqc' if closely_spaced(periods, period_ratio) else 'srss'
    if rule not in ('srss', 'cqc'):
        raise ValueError(f"Unknown modal combination rule {rule!r}")
    return rule


# =============================================================================
# Response spectrum analysis
# =============================================================================

@dataclass(frozen=True)
class ResponseSpectrumResult:
    """
    Peak response to ground motion along one direction.

    Attributes:
        direction: 0=X, 1=Y, 2=Z
        rule: 'srss' or 'cqc'
        spectral_accelerations: Sa per mode (m/s²)
        modal_displacements: (n_modes, ndof) signed peak displacement per mode
        displacement: (ndof,) combined peak displacement magnitude
        modal_base_shear: (n_modes,) per-mode base shear (N)
        base_shear: combined base shear (N)
    """
    direction: int
    rule: str
    damping: float
    omega: np.ndarray
    spectral_accelerations: np.ndarray
    modal_displacements: np.ndarray
    displacement: np.ndarray
    modal_base_shear: np.ndarray
    base_shear: float

    def combine(self, modal_values: np.ndarray) -> np.ndarray:
        """Combine any per-mode quantity (axis 0 = mode) with this result's rule."""
        return combine_modal(modal_values, self.omega, self.damping, self.rule)


def combine_modal(modal_values: np.ndarray, omega: Sequence[float], damping: float, rule: str) -> np.ndarray:
    if rule == 'cqc':
        return cqc(modal_values, omega, damping)
    return srss(modal_values)


class ResponseSpectrumCombiner:
    """
    Scales modes by a design spectrum and combines them.

    Args:
        spectrum: DesignSpectrum (ordinates in g)
        damping: Modal damping ratio ζ (same for every mode)
        rule: 'auto', 'srss' or 'cqc'
        period_ratio: Adjacent period ratio that counts as closely spaced
    """

    def __init__(self, spectrum: DesignSpectrum, damping: float = 0.05,
                 rule: str = 'auto', period_ratio: float = 0.90):
        self.spectrum = spectrum
        self.damping = damping
        self.rule = rule
        self.period_ratio = period_ratio

    def spectral_accelerations(self, modal: ModalResult) -> np.ndarray:
        """Sa(Ti) in m/s² for every mode."""
        sa = np.zeros(modal.n_modes)
        for i, (w, T) in enumerate(zip(modal.omega, modal.periods)):
            if w <= 0.0:
                raise SpectrumDomainError(
                    f"Mode {i + 1} has zero frequency (rigid-body mode); period is unbounded",
                    period=float('inf'), domain=self.spectrum.domain, mode=i + 1,
                )
            try:
                sa[i] = self.spectrum.sa(float(T)) * CONFIG.gravity
            except SpectrumDomainError as e:
                raise SpectrumDomainError(
                    f"Mode {i + 1}: {e}", period=e.period, domain=e.domain, mode=i + 1
                )
        return sa

    def analyze(self, modal: ModalResult, direction: int = 0) -> ResponseSpectrumResult:
        """
        Combined peak displacements for excitation along ``direction``.

        Raises:
            SpectrumDomainError: a modal period is outside the spectrum domain
        """
        sa = self.spectral_accelerations(modal)
        gamma = modal.participation[:, direction]
        omega = np.asarray(modal.omega)

        # ui = Γi·Sai·φi / ωi²
        coeff = gamma * sa / omega ** 2
        modal_disp = (modal.shapes * coeff).T

        rule = select_rule(self.rule, modal.periods, self.period_ratio)
        if rule == 'cqc' and self.rule == 'auto':
            _logger.warning("Closely spaced modes (period ratio >= %.2f): combining by CQC",
                            self.period_ratio)

        modal_shear = modal.effective_mass[:, direction] * sa
        displacement = combine_modal(modal_disp, omega, self.damping, rule)
        base_shear = float(combine_modal(modal_shear[:, None], omega, self.damping, rule)[0])

        for arr in (sa, modal_disp, displacement, modal_shear):
            arr.setflags(write=False)
        return ResponseSpectrumResult(
            direction=direction,
            rule=rule,
            damping=self.damping,
            omega=omega,
            spectral_accelerations=sa,
            modal_displacements=modal_disp,
            displacement=displacement,
            modal_base_shear=modal_shear,
            base_shear=base_shear,
        )


# =============================================================================
# Equivalent lateral force procedure
# =============================================================================

def approximate_period(height: float, fc: float = 25e6, x: float = 0.9) -> float:
    """
    Approximate fundamental period Ta = Ct·hn^x of an RC moment frame.

    Ct = 0.0466 for f'c >= 25 MPa, 0.0488 otherwise.
    """
    Ct = 0.0466 if fc >= 25e6 else 0.0488
    return Ct * height ** x


def period_upper_limit_coefficient(sd1: float) -> float:
    """Cu for the upper limit on the calculated period, by SD1."""
    if sd1 >= 0.4:
        return 1.4
    if sd1 >= 0.3:
        return 1.5
    if sd1 >= 0.2:
        return 1.6
    return 1.7


def seismic_response_coefficient(sds: float, sd1: float, T: float, R: float,
                                 importance: float = 1.0, tl: float = 12.0) -> float:
    """
    Cs = SDS/(R/Ie), capped by the period-dependent limit and floored at
    max(0.044·SDS·Ie, 0.01).
    """
    ratio = R / importance
    cs = sds / ratio
    if T <= tl:
        cap = sd1 / (T * ratio)
    else:
        cap = sd1 * tl / (T * T * ratio)
    cs = min(cs, cap)
    return max(cs, 0.044 * sds * importance, 0.01)


def distribution_exponent(T: float) -> float:
    """k = 1 for T <= 0.5 s, 2 for T >= 2.5 s, linear between."""
    if T <= 0.5:
        return 1.0
    if T >= 2.5:
        return 2.0
    return 1.0 + (T - 0.5) / 2.0


def vertical_distribution(base_shear: float, weights: Sequence[float],
                          heights: Sequence[float], T: float) -> np.ndarray:
    """Storey forces Fx = V·wx·hx^k / Σ wi·hi^k."""
    w = np.asarray(weights, dtype=float)
    h = np.asarray(heights, dtype=float)
    k = distribution_exponent(T)
    whk = w * h ** k
    total = whk.sum()
    if total <= 0.0:
        return np.zeros_like(w)
    return base_shear * whk / total


@dataclass(frozen=True)
class EquivalentLateralForce:
    period: float
    cs: float
    weight: float
    base_shear: float
    levels: Tuple[float, ...]
    storey_forces: Tuple[float, ...]


def equivalent_lateral_force(
    weights_by_node: Mapping,
    nodes: Mapping,
    sds: float,
    sd1: float,
    R: float,
    importance: float = 1.0,
    fc: float = 25e6,
    period: Optional[float] = None,
    tl: float = 12.0,
    level_tol: float = 1e-6,
) -> EquivalentLateralForce:
    """
    Base shear and storey forces from nodal seismic weights.

    Nodes at the lowest elevation are the base and carry no storey force.
    """
    zs = sorted({round(n.z, 9) for n in nodes.values()})
    base = zs[0]
    levels: List[float] = []
    level_weight: Dict[float, float] = {}
    for nid, w in weights_by_node.items():
        z = nodes[nid].z
        if z - base <= level_tol:
            continue
        key = next((lv for lv in levels if abs(lv - z) <= level_tol), None)
        if key is None:
            key = z
            levels.append(z)
            level_weight[z] = 0.0
        level_weight[key] += w

    levels.sort()
    heights = [lv - base for lv in levels]
    hn = heights[-1] if heights else 0.0
    T = period if period is not None else approximate_period(hn, fc)
    W = float(sum(level_weight[lv] for lv in levels))
    cs = seismic_response_coefficient(sds, sd1, max(T, 1e-6), R, importance, tl)
    V = cs * W
    forces = vertical_distribution(V, [level_weight[lv] for lv in levels], heights, T)
    return EquivalentLateralForce(
        period=T, cs=cs, weight=W, base_shear=V,
        levels=tuple(levels), storey_forces=tuple(float(f) for f in forces),
    )


def lateral_load_case(
    name: str,
    elf: EquivalentLateralForce,
    weights_by_node: Mapping,
    nodes: Mapping,
    direction: str = 'FX',
    level_tol: float = 1e-6,
) -> LoadCase:
    """Seismic load case: each storey force shared by its nodes in proportion to their weight."""
    loads = []
    for level, force in zip(elf.levels, elf.storey_forces):
        at_level = [nid for nid in weights_by_node if abs(nodes[nid].z - level) <= level_tol]
        level_weight = sum(weights_by_node[nid] for nid in at_level)
        if level_weight <= 0.0:
            continue
        for nid in at_level:
            share = force * weights_by_node[nid] / level_weight
            if share != 0.0:
                loads.append(Load(share, direction, node_id=nid, load_type=LoadType.SEISMIC))
    return LoadCase(name, LoadType.SEISMIC, tuple(loads))
