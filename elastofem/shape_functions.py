"""
Shape functions for linear (P1) triangular elements in 2D FEM.
"""

import numpy as np
import numpy.typing as npt
from typing import Tuple

from .errors import DegenerateElementError

# Picks the x and y columns of the inverse affine matrix
_GRADIENT_SELECTOR = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


class ShapeFunctions:
    """
    Implementation of barycentric shape functions for linear triangles.

    The reference element has vertices (0,0), (1,0), (0,1), and the
    shape functions are N1 = 1 - xi - eta, N2 = xi, N3 = eta.
    """

    @staticmethod
    def N(xi: float, eta: float) -> npt.NDArray[np.float64]:
        """
        Evaluate shape functions at a point in the reference element.

        Args:
            xi: Local coordinate in xi direction
            eta: Local coordinate in eta direction

        Returns:
            Array of shape function values [N1, N2, N3]
        """
        tol = 1e-14
        if xi < -tol or eta < -tol or xi + eta > 1 + tol:
            return np.zeros(3)

        return np.array([1.0 - xi - eta, xi, eta])

    @staticmethod
    def dN_dxi() -> npt.NDArray[np.float64]:
        """Derivatives of the shape functions with respect to xi (constant)."""
        return np.array([-1.0, 1.0, 0.0])

    @staticmethod
    def dN_deta() -> npt.NDArray[np.float64]:
        """Derivatives of the shape functions with respect to eta (constant)."""
        return np.array([-1.0, 0.0, 1.0])

    @staticmethod
    def map_to_physical(xi: float, eta: float, x_nodes: npt.NDArray[np.float64],
                        y_nodes: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Map coordinates from reference element to physical element.

        Args:
            xi: Local coordinate in xi direction
            eta: Local coordinate in eta direction
            x_nodes: x-coordinates of the element nodes
            y_nodes: y-coordinates of the element nodes

        Returns:
            Array [x, y] of physical coordinates
        """
        N = np.array([1.0 - xi - eta, xi, eta])
        return np.array([np.dot(N, x_nodes), np.dot(N, y_nodes)])

    @staticmethod
    def affine_matrix(x_nodes: npt.NDArray[np.float64],
                      y_nodes: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Matrix A = [[1, 1, 1], [x0, x1, x2], [y0, y1, y2]].

        Row i of inv(A) holds the coefficients (a, b, c) of the shape
        function phi_i = a + b x + c y.
        """
        return np.array([
            [1.0, 1.0, 1.0],
            [x_nodes[0], x_nodes[1], x_nodes[2]],
            [y_nodes[0], y_nodes[1], y_nodes[2]],
        ])

    @staticmethod
    def determinant_3x3(A: npt.NDArray[np.float64]) -> float:
        """
        Determinant of a 3x3 matrix by explicit cofactor expansion.
        """
        det = A[0, 0] * A[1, 1] * A[2, 2] + A[0, 1] * A[1, 2] * A[2, 0] + A[0, 2] * A[1, 0] * A[2, 1]
        det -= A[0, 2] * A[1, 1] * A[2, 0] + A[2, 1] * A[1, 2] * A[0, 0] + A[2, 2] * A[1, 0] * A[0, 1]
        return float(det)

    @staticmethod
    def edge_jacobian(x_nodes: npt.NDArray[np.float64],
                      y_nodes: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Jacobian of the map from the reference triangle, built from edge vectors.

        Returns:
            Bk = [[x1 - x0, x2 - x0], [y1 - y0, y2 - y0]]
        """
        dN = np.column_stack([ShapeFunctions.dN_dxi(), ShapeFunctions.dN_deta()])
        return np.vstack([np.asarray(x_nodes) @ dN, np.asarray(y_nodes) @ dN])

    @staticmethod
    def edge_jacobian_determinant(x_nodes: npt.NDArray[np.float64],
                                  y_nodes: npt.NDArray[np.float64]) -> float:
        """
        Determinant of the edge Jacobian Bk.

        Expanding det(A) along its first row gives exactly this expression,
        so det(Bk) == det(A) and |det(Bk)| / 2 is the triangle area.
        """
        Bk = ShapeFunctions.edge_jacobian(x_nodes, y_nodes)
        return float(Bk[0, 0] * Bk[1, 1] - Bk[0, 1] * Bk[1, 0])

    @staticmethod
    def longest_edge(x_nodes: npt.NDArray[np.float64],
                     y_nodes: npt.NDArray[np.float64]) -> float:
        dx = x_nodes - np.roll(x_nodes, -1)
        dy = y_nodes - np.roll(y_nodes, -1)
        return float(np.max(np.hypot(dx, dy)))

    @staticmethod
    def area(x_nodes: npt.NDArray[np.float64], y_nodes: npt.NDArray[np.float64]) -> float:
        """Area of the triangle, |det(A)| / 2."""
        A = ShapeFunctions.affine_matrix(x_nodes, y_nodes)
        return 0.5 * abs(ShapeFunctions.determinant_3x3(A))

    @staticmethod
    def gradients(x_nodes: npt.NDArray[np.float64],
                  y_nodes: npt.NDArray[np.float64],
                  tol: float = 1e-12) -> Tuple[npt.NDArray[np.float64], float]:
        """
        Calculate the (constant) physical gradients of the three shape functions.

        Args:
            x_nodes: x-coordinates of the element nodes
            y_nodes: y-coordinates of the element nodes
            tol: Degeneracy tolerance relative to the squared longest edge

        Returns:
            Tuple containing:
                - PhiGrad (3x2), row i = [dphi_i/dx, dphi_i/dy]
                - Signed determinant of A (twice the signed area)

        Raises:
            DegenerateElementError: if the triangle has (near) zero area
        """
        A = ShapeFunctions.affine_matrix(x_nodes, y_nodes)
        det_A = ShapeFunctions.determinant_3x3(A)

        h = ShapeFunctions.longest_edge(x_nodes, y_nodes)
        if h == 0.0 or abs(det_A) <= tol * h**2:
            raise DegenerateElementError(
                f"triangle area {0.5 * abs(det_A):.3e} is zero or near zero "
                f"(longest edge {h:.3e}); cannot build a simplex"
            )

        phi_grad = np.linalg.solve(A, _GRADIENT_SELECTOR)

        return phi_grad, det_A
