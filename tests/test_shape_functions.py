from math import factorial

import numpy as np
import pytest

from elastofem.errors import DegenerateElementError
from elastofem.quadrature import QuadratureRule
from elastofem.shape_functions import ShapeFunctions


X = np.array([0.2, 1.5, 0.7])
Y = np.array([0.1, 0.4, 1.3])


def test_partition_of_unity():
    for xi, eta in [(0.0, 0.0), (0.25, 0.25), (0.5, 0.1), (0.0, 1.0)]:
        assert ShapeFunctions.N(xi, eta).sum() == pytest.approx(1.0)


def test_shape_functions_vanish_outside_reference():
    assert np.allclose(ShapeFunctions.N(0.8, 0.8), 0.0)


def test_gradients_of_unit_triangle():
    phi_grad, det_A = ShapeFunctions.gradients(np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0]))
    assert det_A == pytest.approx(1.0)
    assert np.allclose(phi_grad, [[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])


def test_gradients_match_closed_form():
    phi_grad, det_A = ShapeFunctions.gradients(X, Y)
    # dphi_i/dx = (y_j - y_k) / 2A, dphi_i/dy = (x_k - x_j) / 2A, (i, j, k) cyclic
    expected = np.zeros((3, 2))
    for i in range(3):
        j, k = (i + 1) % 3, (i + 2) % 3
        expected[i] = [(Y[j] - Y[k]) / det_A, (X[k] - X[j]) / det_A]
    assert np.allclose(phi_grad, expected)
    # Gradients of a partition of unity sum to zero
    assert np.allclose(phi_grad.sum(axis=0), 0.0)


def test_determinants_equal_twice_the_area():
    A = ShapeFunctions.affine_matrix(X, Y)
    det_A = ShapeFunctions.determinant_3x3(A)
    det_B = ShapeFunctions.edge_jacobian_determinant(X, Y)
    area = ShapeFunctions.area(X, Y)

    assert det_A == pytest.approx(np.linalg.det(A))
    assert abs(det_A) == pytest.approx(abs(det_B))
    assert abs(det_A) == pytest.approx(2.0 * area)


def test_clockwise_triangle_has_negative_determinant():
    _, det_ccw = ShapeFunctions.gradients(X, Y)
    _, det_cw = ShapeFunctions.gradients(X[::-1], Y[::-1])
    assert det_ccw > 0
    assert det_cw == pytest.approx(-det_ccw)


@pytest.mark.parametrize(
    "x, y",
    [
        ([0.0, 1.0, 2.0], [0.0, 1.0, 2.0]),  # collinear
        ([0.0, 0.0, 1.0], [0.0, 0.0, 1.0]),  # repeated vertex
        ([1.0, 1.0, 1.0], [2.0, 2.0, 2.0]),  # collapsed to a point
    ],
)
def test_degenerate_triangles_rejected(x, y):
    with pytest.raises(DegenerateElementError):
        ShapeFunctions.gradients(np.array(x), np.array(y))


def test_map_to_physical_vertices():
    for (xi, eta), k in [((0.0, 0.0), 0), ((1.0, 0.0), 1), ((0.0, 1.0), 2)]:
        assert np.allclose(ShapeFunctions.map_to_physical(xi, eta, X, Y), [X[k], Y[k]])


def test_reference_derivatives_match_finite_differences():
    xi, eta, h = 0.3, 0.2, 1e-6
    dxi = (ShapeFunctions.N(xi + h, eta) - ShapeFunctions.N(xi - h, eta)) / (2 * h)
    deta = (ShapeFunctions.N(xi, eta + h) - ShapeFunctions.N(xi, eta - h)) / (2 * h)
    assert np.allclose(ShapeFunctions.dN_dxi(), dxi)
    assert np.allclose(ShapeFunctions.dN_deta(), deta)


def test_edge_jacobian_columns_are_edge_vectors():
    Bk = ShapeFunctions.edge_jacobian(X, Y)
    assert np.allclose(Bk, [[X[1] - X[0], X[2] - X[0]], [Y[1] - Y[0], Y[2] - Y[0]]])


@pytest.mark.parametrize("order", [1, 2, 3])
def test_quadrature_weights_sum_to_reference_area(order):
    rule = QuadratureRule(order)
    assert rule.get_weights().sum() == pytest.approx(0.5)
    assert rule.get_points().shape == (len(rule.get_weights()), 2)


def test_invalid_quadrature_order():
    with pytest.raises(ValueError):
        QuadratureRule(4)


@pytest.mark.parametrize("order, degree", [(1, 1), (2, 2), (3, 5)])
def test_quadrature_exactness(order, degree):
    rule = QuadratureRule(order)
    # int over the reference triangle of xi^p eta^q = p! q! / (p + q + 2)!
    for p in range(degree + 1):
        for q in range(degree + 1 - p):
            exact = factorial(p) * factorial(q) / factorial(p + q + 2)
            approx = rule.integrate_reference(lambda xi, eta: xi**p * eta**q)
            assert approx == pytest.approx(exact, rel=1e-10, abs=1e-15)


def test_integrate_triangle_matches_scipy():
    def f(x, y):
        return 1.0 + 2.0 * x * y - y**2

    rule = QuadratureRule(2)
    assert rule.integrate_triangle(f, X, Y) == pytest.approx(
        QuadratureRule.integrate_triangle_with_scipy(f, X, Y), rel=1e-10
    )
    assert QuadratureRule(1).integrate_triangle(lambda x, y: 1.0, X, Y) == pytest.approx(
        ShapeFunctions.area(X, Y)
    )
