import numpy as np
import pytest

from elastofem.manufactured import (
    LinearField,
    QuadraticField,
    SineProduct,
    ZeroDisplacement,
    get_solution,
)
from elastofem.material import elastic_tensor

C = elastic_tensor(3.5e6, 0.3)

XS = np.array([0.1, 0.35, 0.8])
YS = np.array([0.6, 0.2, 0.45])


def _divergence_by_finite_differences(solution, x, y, h=1e-4):
    """-div(C eps(u)) from central differences of the displacement."""

    def stress(px, py):
        ux_p, ux_m = solution.displacement(px + h, py), solution.displacement(px - h, py)
        uy_p, uy_m = solution.displacement(px, py + h), solution.displacement(px, py - h)
        du_dx = (ux_p - ux_m) / (2 * h)
        du_dy = (uy_p - uy_m) / (2 * h)
        strain = np.vstack([du_dx[0], du_dy[1], du_dy[0] + du_dx[1]])
        return C @ strain

    ds_dx = (stress(x + h, y) - stress(x - h, y)) / (2 * h)
    ds_dy = (stress(x, y + h) - stress(x, y - h)) / (2 * h)
    return -np.vstack([ds_dx[0] + ds_dy[2], ds_dx[2] + ds_dy[1]])


def test_quadratic_body_force_closed_form():
    f = QuadraticField().body_force(XS, YS, C)
    expected_x = -(2 * C[0, 0] + 2 * C[0, 1] + 4 * C[2, 2])
    assert f.shape == (2, 3)
    assert np.allclose(f[0], expected_x)
    assert np.allclose(f[1], 0.0)


@pytest.mark.parametrize("solution", [SineProduct(), QuadraticField(amplitude=0.5)])
def test_body_force_balances_stress_divergence(solution):
    f = solution.body_force(XS, YS, C)
    reference = _divergence_by_finite_differences(solution, XS, YS)
    assert np.allclose(f, reference, rtol=1e-4, atol=1e-6 * np.abs(f).max())


def test_linear_field_is_unloaded():
    assert np.allclose(LinearField().body_force(XS, YS, C), 0.0)


def test_sine_product_vanishes_on_boundary():
    t = np.linspace(0.0, 1.0, 7)
    for x, y in [(t, 0 * t), (t, 0 * t + 1.0), (0 * t, t), (0 * t + 1.0, t)]:
        assert np.allclose(SineProduct().displacement(x, y), 0.0, atol=1e-14)


def test_reference_problem_force():
    solution = ZeroDisplacement()
    assert np.allclose(solution.body_force(XS, YS, C), [[-3.0e7] * 3, [0.0] * 3])
    assert np.allclose(solution.displacement(XS, YS), 0.0)


def test_get_solution():
    assert isinstance(get_solution("sine"), SineProduct)
    with pytest.raises(ValueError):
        get_solution("cubic")
