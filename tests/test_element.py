import numpy as np
import pytest

from elastofem.element import Element
from elastofem.errors import AsymmetricStiffnessError, DegenerateElementError
from elastofem.material import elastic_tensor, lame_parameters
from elastofem.problem import Cell, Node, NodeKind
from elastofem.quadrature import QuadratureRule
from elastofem.shape_functions import ShapeFunctions


E, NU = 3.5e6, 0.3
C = elastic_tensor(E, NU)

X = np.array([0.2, 1.5, 0.7])
Y = np.array([0.1, 0.4, 1.3])


def _barycentric(x, y, node_x, node_y):
    A = ShapeFunctions.affine_matrix(node_x, node_y)
    return np.linalg.solve(A, [1.0, x, y])


def test_stiffness_matrix_is_symmetric():
    W = Element().stiffness_matrix(X, Y, C)
    assert W.shape == (6, 6)
    assert np.allclose(W, W.T)


def test_unit_triangle_entry():
    lam, mu = lame_parameters(E, NU)
    W = Element().stiffness_matrix(np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0]), C)
    # R column of Ux0 is (-1, 0, -1)
    assert W[0, 0] == pytest.approx(0.5 * (2 * mu + lam + 2 * mu))


def test_rigid_body_modes_in_null_space():
    W = Element().stiffness_matrix(X, Y, C)
    scale = np.max(np.abs(W))
    translation_x = np.array([1.0, 0.0, 1.0, 0.0, 1.0, 0.0])
    translation_y = np.array([0.0, 1.0, 0.0, 1.0, 0.0, 1.0])
    rotation = np.column_stack([-Y, X]).reshape(6)

    for mode in (translation_x, translation_y, rotation):
        assert np.allclose(W @ mode, 0.0, atol=1e-10 * scale)


def test_positive_semi_definite_with_rank_three():
    W = Element().stiffness_matrix(X, Y, C)
    eigenvalues = np.linalg.eigvalsh(W)
    scale = np.max(eigenvalues)
    assert np.all(eigenvalues > -1e-10 * scale)
    assert np.sum(eigenvalues > 1e-8 * scale) == 3


def test_vertex_order_does_not_change_energy():
    W = Element().stiffness_matrix(X, Y, C)
    W_cw = Element().stiffness_matrix(X[::-1], Y[::-1], C)
    # Reversing the vertices reverses the node blocks
    perm = np.array([4, 5, 2, 3, 0, 1])
    assert np.allclose(W_cw, W[np.ix_(perm, perm)])


def test_strain_displacement_pattern():
    phi_grad, _ = ShapeFunctions.gradients(X, Y)
    R = Element.strain_displacement_matrix(phi_grad)
    for i in range(3):
        dx, dy = phi_grad[i]
        assert np.allclose(R[:, 2 * i], [dx, 0.0, dy])
        assert np.allclose(R[:, 2 * i + 1], [0.0, dy, dx])


def test_constant_strain_is_recovered():
    # u = (0.01 x + 0.02 y, 0.03 x - 0.04 y)
    u = np.column_stack([0.01 * X + 0.02 * Y, 0.03 * X - 0.04 * Y]).reshape(6)
    strain = Element().strain(X, Y, u)
    assert np.allclose(strain, [0.01, -0.04, 0.05])
    assert np.allclose(Element().stress(X, Y, u, C), C @ [0.01, -0.04, 0.05])


def test_degenerate_element_reports_index():
    with pytest.raises(DegenerateElementError) as excinfo:
        Element().stiffness_matrix(np.array([0.0, 1.0, 2.0]), np.array([0.0, 1.0, 2.0]), C, element=7)
    assert excinfo.value.element == 7
    assert "element 7" in str(excinfo.value)


def test_asymmetric_tensor_rejected():
    C_bad = np.array([[1.0, 0.5, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    with pytest.raises(AsymmetricStiffnessError):
        Element().stiffness_matrix(X, Y, C_bad, element=3)


def test_mean_load_constant_force():
    f = np.array([2.0, -1.0])
    area = ShapeFunctions.area(X, Y)
    F = Element.load_vector(X, Y, np.tile(f, (3, 1)), scheme="mean")
    assert np.allclose(F, np.tile(f * area / 3.0, 3))
    # Both schemes agree for a constant force
    assert np.allclose(F, Element.load_vector(X, Y, np.tile(f, (3, 1)), scheme="consistent"))


def test_mean_load_is_centroid_force_against_basis():
    def force(x, y):
        return np.array([1.0 + 2.0 * x + 3.0 * y, x - y])

    samples = np.array([force(x, y) for x, y in zip(X, Y)])
    centroid_force = force(X.mean(), Y.mean())

    F_mean = Element.load_vector(X, Y, samples, scheme="mean")
    F_quad = Element().load_vector_from_function(X, Y, lambda x, y: centroid_force)
    assert np.allclose(F_mean, F_quad)


def test_consistent_load_integrates_linear_force_exactly():
    def force(x, y):
        return np.array([1.0 + 2.0 * x + 3.0 * y, x - y])

    samples = np.array([force(x, y) for x, y in zip(X, Y)])
    F = Element.load_vector(X, Y, samples, scheme="consistent")

    element = Element(QuadratureRule(2))
    assert np.allclose(F, element.load_vector_from_function(X, Y, force))

    for i in range(3):
        for c in range(2):
            reference = QuadratureRule.integrate_triangle_with_scipy(
                lambda x, y: force(x, y)[c] * _barycentric(x, y, X, Y)[i], X, Y
            )
            assert F[2 * i + c] == pytest.approx(reference, rel=1e-8, abs=1e-12)


def test_unknown_load_scheme():
    with pytest.raises(ValueError):
        Element.load_vector(X, Y, np.zeros((3, 2)), scheme="lumped")


def test_local_system_from_cell():
    forces = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 1.0]])
    nodes = tuple(
        Node(
            index=i,
            coords=np.array([X[i], Y[i]]),
            kind=NodeKind.FREE,
            displacement=np.zeros(2),
            prescribed=np.zeros(2),
            body_force=forces[i],
        )
        for i in range(3)
    )
    cell = Cell(index=0, nodes=nodes, elastic_tensor=C)

    W, rhs = Element().local_system(cell)
    assert np.allclose(W, Element().stiffness_matrix(X, Y, C))
    det_B = abs(ShapeFunctions.edge_jacobian_determinant(X, Y))
    assert np.allclose(rhs, np.tile(forces.sum(axis=0), 3) * det_B / 18.0)
