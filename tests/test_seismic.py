# File: tests/test_seismic.py
"""
TEST: DESIGN SPECTRUM, MODAL COMBINATION, EQUIVALENT LATERAL FORCE
==================================================================

PURPOSE:
--------
1. The spectrum follows the SNI 1726 / ASCE 7 shape branch by branch
2. Periods outside the spectrum domain raise SpectrumDomainError
3. CQC is never below SRSS for same-sign modal responses, and equals it
   for well-separated modes
4. A single-mass column under response-spectrum loading reproduces the
   SDOF answer u = Sa / ω²
5. Storey drifts under response-spectrum loading are combined per mode
6. ELF base shear and its vertical distribution
"""

import numpy as np
import pytest
from pydantic import ValidationError

from struct_core.config import CONFIG, SpectrumParameters
from struct_core.errors import SpectrumDomainError
from struct_core.kernel.assemble import assemble_system
from struct_core.kernel.dof import DOFManager
from struct_core.kernel.modal import natural_frequencies
from struct_core.model import FIXED, Element, Material, Node, Section
from struct_core.post import story_drifts
from struct_core.repository import ModelRepository
from struct_core.seismic import (
    DesignSpectrum,
    ResponseSpectrumCombiner,
    closely_spaced,
    cqc,
    cqc_correlation,
    equivalent_lateral_force,
    lateral_load_case,
    select_rule,
    site_coefficients,
    srss,
)

G = CONFIG.gravity


# =============================================================================
# Spectrum
# =============================================================================

def test_site_coefficients_table_values():
    assert site_coefficients('SD', 1.0, 0.4) == pytest.approx((1.1, 1.9))
    # between columns: linear interpolation
    Fa, _ = site_coefficients('SD', 0.625, 0.1)
    assert np.isclose(Fa, 1.3)
    with pytest.raises(ValueError):
        site_coefficients('SF', 1.0, 0.4)


def test_spectrum_branches():
    """
    Sa(0) = 0.4·SDS, plateau SDS between T0 and Ts, SD1/T up to TL,
    SD1·TL/T² beyond.
    """
    spectrum = DesignSpectrum(sds=0.8, sd1=0.5, tl=4.0, t_max=10.0)

    assert np.isclose(spectrum.t0, 0.125)
    assert np.isclose(spectrum.ts, 0.625)
    assert np.isclose(spectrum.sa(0.0), 0.32)
    assert np.isclose(spectrum.sa(0.0625), 0.8 * (0.4 + 0.6 * 0.5))
    assert np.isclose(spectrum.sa(0.3), 0.8)
    assert np.isclose(spectrum.sa(2.0), 0.25)
    assert np.isclose(spectrum.sa(5.0), 0.5 * 4.0 / 25.0)

    T, Sa = spectrum.curve(50)
    assert len(T) == 50
    assert np.all(Sa > 0.0)

    print("✓ Spectrum shape matches the code branches")


def test_spectrum_from_site_and_parameters():
    spectrum = DesignSpectrum.from_site(1.0, 0.4, 'SD')
    assert np.isclose(spectrum.sds, 2.0 / 3.0 * 1.1)
    assert np.isclose(spectrum.sd1, 2.0 / 3.0 * 1.9 * 0.4)

    params = SpectrumParameters(sds=0.8, sd1=0.5, response_modification=8.0, importance=1.25)
    scaled = DesignSpectrum.from_parameters(params)
    assert np.isclose(scaled.sa(0.3), 0.8 * 1.25 / 8.0)


def test_spectrum_parameters_reject_unusable_definitions():
    """
    WHY DOES THIS MATTER?
    ---------------------
    A spectrum the run cannot build must be refused where the caller
    supplies it, and anything that slips past (constructed without
    validation) must surface as SpectrumDomainError, never a bare
    ValueError.
    """
    for bad in (
        dict(ss=1.0, s1=0.4, site_class='SF'),
        dict(ss=1.0, s1=0.4, site_class='SX'),
        dict(ss=1.0),
        dict(sds=0.8),
        dict(periods=[0.5, 0.5, 1.0], accelerations=[0.4, 0.5, 0.3]),
        dict(periods=[0.1, 0.5], accelerations=[0.4]),
    ):
        with pytest.raises(ValidationError):
            SpectrumParameters(**bad)

    assert SpectrumParameters(ss=1.0, s1=0.4, site_class='sc').site_class == 'SC'

    unchecked = SpectrumParameters.model_construct(ss=1.0, s1=0.4, site_class='SF')
    with pytest.raises(SpectrumDomainError, match="site-specific"):
        DesignSpectrum.from_parameters(unchecked)
    print("✓ Unusable spectrum definitions rejected")


def test_period_outside_domain():
    spectrum = DesignSpectrum(sds=0.8, sd1=0.5, t_max=4.0)
    with pytest.raises(SpectrumDomainError) as info:
        spectrum.sa(4.5)
    assert info.value.period == 4.5
    assert info.value.domain == (0.0, 4.0)

    with pytest.raises(SpectrumDomainError):
        spectrum.sa(-0.1)


def test_tabulated_spectrum():
    spectrum = DesignSpectrum.tabulated([0.1, 0.5, 1.0, 3.0], [0.6, 1.0, 0.5, 0.2])
    assert np.isclose(spectrum.sa(0.75), 0.75)
    assert spectrum.domain == (0.1, 3.0)
    with pytest.raises(SpectrumDomainError):
        spectrum.sa(0.05)
    with pytest.raises(ValueError):
        DesignSpectrum.tabulated([1.0, 0.5], [0.3, 0.4])


# =============================================================================
# Modal combination
# =============================================================================

def test_cqc_not_below_srss():
    """
    WHY DOES THIS MATTER?
    ---------------------
    For same-sign modal responses every cross term ρij·ri·rj is positive,
    so CQC can only add to SRSS. Close modes add the most.
    """
    responses = np.array([[1.0, 0.3], [0.8, 0.5], [0.2, 0.9]])
    omega = [10.0, 10.5, 30.0]

    r_srss = srss(responses)
    r_cqc = cqc(responses, omega, 0.05)
    assert np.all(r_cqc >= r_srss - 1e-12)
    assert r_cqc[0] > r_srss[0]

    print(f"✓ CQC {r_cqc} >= SRSS {r_srss}")


def test_cqc_equals_srss_for_separated_modes():
    responses = np.array([[1.0], [2.0]])
    assert np.isclose(cqc_correlation(1.0, 1.0, 0.05), 1.0)
    assert cqc_correlation(1.0, 100.0, 0.05) < 1e-4
    np.testing.assert_allclose(cqc(responses, [1.0, 100.0], 0.05), srss(responses), rtol=1e-3)


def test_rule_selection():
    assert closely_spaced([1.0, 0.95, 0.4])
    assert not closely_spaced([1.0, 0.8, 0.4])
    assert select_rule('auto', [1.0, 0.95]) == 'cqc'
    assert select_rule('auto', [1.0, 0.5]) == 'srss'
    assert select_rule('srss', [1.0, 0.95]) == 'srss'
    with pytest.raises(ValueError):
        select_rule('abs', [1.0])


# =============================================================================
# Response spectrum on a single-mass column
# =============================================================================

MASS = 20e3
E, WIDTH, HEIGHT, H = 25e9, 0.3, 0.5, 4.0


def _column_modal(width=WIDTH, height=HEIGHT):
    repo = ModelRepository()
    repo.add_material(Material('C25', 'concrete', 25e6, E, 0.2, 0.0))
    repo.add_section(Section('col', width=width, height=height))
    repo.add_node(Node('base', 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node('top', 0.0, 0.0, H))
    repo.add_element(Element('c', 'column', 'base', 'top', 'C25', 'col'))
    system = assemble_system(repo.snapshot(), mass_type='lumped', nodal_masses={'top': MASS})
    return system, natural_frequencies(system.K, system.M, system.fixed, n_modes=3)


def test_single_mass_response_spectrum():
    """
    THEORY:
    -------
    Each translation of the tip mass is its own SDOF oscillator with Γφ = 1,
    so the peak top displacement along X is Sa(Tx)·g / ωx² and the base
    shear is m·Sa(Tx)·g.
    """
    system, modal = _column_modal()
    spectrum = DesignSpectrum(sds=0.8, sd1=0.5)
    rs = ResponseSpectrumCombiner(spectrum, damping=0.05).analyze(modal, direction=0)

    Iy = WIDTH * HEIGHT ** 3 / 12.0
    omega_x = np.sqrt(3.0 * E * Iy / (MASS * H ** 3))
    sa = spectrum.sa(2.0 * np.pi / omega_x) * G

    top_x = system.dof.idx('top', 0)
    assert rs.rule == 'srss'
    assert np.isclose(rs.displacement[top_x], sa / omega_x ** 2, rtol=1e-6)
    assert np.isclose(rs.base_shear, MASS * sa, rtol=1e-6)
    assert rs.modal_displacements.shape == (modal.n_modes, system.ndof)
    # nothing moves along Y under X excitation
    assert np.isclose(rs.displacement[system.dof.idx('top', 1)], 0.0, atol=1e-12)

    print(f"✓ RS top drift {rs.displacement[top_x] * 1000:.2f} mm, V = {rs.base_shear / 1e3:.1f} kN")


def test_square_column_selects_cqc():
    """A square column has equal X and Y periods: 'auto' must switch to CQC."""
    _, modal = _column_modal(width=0.4, height=0.4)
    rs = ResponseSpectrumCombiner(DesignSpectrum(0.8, 0.5), rule='auto').analyze(modal, 0)
    assert rs.rule == 'cqc'


def test_response_spectrum_domain_error_names_mode():
    _, modal = _column_modal()
    short = DesignSpectrum(sds=0.8, sd1=0.5, t_max=0.5)

    with pytest.raises(SpectrumDomainError) as info:
        ResponseSpectrumCombiner(short).analyze(modal, 0)
    assert info.value.mode == 1
    assert info.value.period > 0.5


def test_story_drift_combines_modal_drifts():
    """
    THEORY:
    -------
    Combined peak displacements are magnitudes without sign, so the storey
    drift has to be formed mode by mode and then combined:

        Δ = √Σ (φ_top,n - φ_bottom,n)²        (SRSS)

    With mode 2 reversing between the floors the true upper-storey drift
    is much larger than the difference of the two combined peaks.
    """
    repo = ModelRepository()
    repo.add_material(Material('C25', 'concrete', 25e6, E, 0.2, 0.0))
    repo.add_section(Section('col', width=WIDTH, height=HEIGHT))
    repo.add_node(Node('base', 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node('f1', 0.0, 0.0, 3.0))
    repo.add_node(Node('f2', 0.0, 0.0, 6.0))
    repo.add_element(Element('c1', 'column', 'base', 'f1', 'C25', 'col'))
    repo.add_element(Element('c2', 'column', 'f1', 'f2', 'C25', 'col'))
    model = repo.snapshot()
    dof = DOFManager.for_model(model)

    modes = np.zeros((2, dof.ndof))
    modes[0, dof.idx('f1', 0)], modes[0, dof.idx('f2', 0)] = 0.5, 1.0
    modes[1, dof.idx('f1', 0)], modes[1, dof.idx('f2', 0)] = 1.0, -0.6

    drifts = story_drifts(model, dof, modes, combine=srss)
    assert [s.level for s in drifts] == [3.0, 6.0]
    assert np.isclose(drifts[0].drift, np.hypot(0.5, 1.0))
    assert np.isclose(drifts[1].drift, np.hypot(0.5, 1.6))
    assert np.isclose(drifts[1].ratio, np.hypot(0.5, 1.6) / 3.0)
    assert drifts[1].direction == 0

    # differencing the combined peaks would have reported almost nothing
    peaks = srss(modes)
    naive = abs(peaks[dof.idx('f2', 0)] - peaks[dof.idx('f1', 0)])
    assert naive < 0.05 < drifts[1].drift
    print(f"✓ Modal storey drift {drifts[1].drift:.3f} vs peak difference {naive:.3f}")

# =============================================================================
# Equivalent lateral force
# =============================================================================

def test_equivalent_lateral_force_distribution():
    """
    Two equal storey weights at 3.5 m and 7.0 m, short period (k = 1):
    forces split 1:2 and sum to V = Cs·W.
    """
    nodes = {
        0: Node(0, 0.0, 0.0, 0.0, FIXED),
        1: Node(1, 0.0, 0.0, 3.5),
        2: Node(2, 6.0, 0.0, 3.5),
        3: Node(3, 0.0, 0.0, 7.0),
    }
    weights = {0: 0.0, 1: 500e3, 2: 500e3, 3: 1000e3}
    elf = equivalent_lateral_force(weights, nodes, sds=0.8, sd1=0.5, R=8.0)

    assert elf.period < 0.5
    assert np.isclose(elf.cs, 0.1)
    assert np.isclose(elf.weight, 2000e3)
    assert np.isclose(elf.base_shear, 200e3)
    assert elf.levels == (3.5, 7.0)
    assert np.isclose(sum(elf.storey_forces), elf.base_shear)
    assert np.isclose(elf.storey_forces[1], 2.0 * elf.storey_forces[0])

    case = lateral_load_case('EX', elf, weights, nodes)
    assert np.isclose(sum(load.magnitude for load in case.loads), elf.base_shear)
    by_node = {load.node_id: load.magnitude for load in case.loads}
    assert np.isclose(by_node[1], by_node[2])
