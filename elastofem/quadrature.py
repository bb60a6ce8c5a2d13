"""
Quadrature rules for numerical integration over triangles.
"""

import numpy as np
import numpy.typing as npt
from scipy import integrate
from typing import Callable

from .shape_functions import ShapeFunctions


def _seven_point_rule():
    sqrt15 = np.sqrt(15.0)
    a = (6.0 - sqrt15) / 21.0
    b = (6.0 + sqrt15) / 21.0
    wa = (155.0 - sqrt15) / 1200.0
    wb = (155.0 + sqrt15) / 1200.0
    points = np.array([
        [1.0 / 3.0, 1.0 / 3.0],
        [a, a], [1.0 - 2.0 * a, a], [a, 1.0 - 2.0 * a],
        [b, b], [1.0 - 2.0 * b, b], [b, 1.0 - 2.0 * b],
    ])
    weights = 0.5 * np.array([9.0 / 40.0, wa, wa, wa, wb, wb, wb])
    return points, weights


class QuadratureRule:
    """
    Symmetric quadrature rule on the reference triangle (0,0), (1,0), (0,1).

    order 1: centroid rule, exact for linear polynomials
    order 2: 3-point rule, exact for quadratics
    order 3: 7-point rule, exact for quintics
    """

    def __init__(self, order: int = 2):
        """
        Initialize quadrature rule of given order.

        Args:
            order: Order of the quadrature rule (1, 2, or 3)
        """
        if order not in [1, 2, 3]:
            raise ValueError("Quadrature order must be 1, 2, or 3")

        self.order = order

        # Weights sum to the reference area 1/2
        triangle_rules = {
            1: (np.array([[1 / 3, 1 / 3]]), np.array([0.5])),
            2: (
                np.array([[1 / 6, 1 / 6], [2 / 3, 1 / 6], [1 / 6, 2 / 3]]),
                np.array([1 / 6, 1 / 6, 1 / 6]),
            ),
            3: _seven_point_rule(),
        }

        self.points, self.weights = triangle_rules[order]

    def get_points(self) -> npt.NDArray[np.float64]:
        """
        Get quadrature points.

        Returns:
            Array of shape (n, 2) with (xi, eta) per point
        """
        return self.points

    def get_weights(self) -> npt.NDArray[np.float64]:
        """
        Get quadrature weights.

        Returns:
            Array of quadrature weights
        """
        return self.weights

    def integrate_reference(self, f: Callable[[float, float], float]):
        """
        Integrate f(xi, eta) over the reference triangle.
        """
        result = 0.0
        for (xi, eta), w in zip(self.points, self.weights):
            result = result + np.asarray(f(xi, eta)) * w
        return result

    def integrate_triangle(
        self,
        f: Callable[[float, float], float],
        x_nodes: npt.NDArray[np.float64],
        y_nodes: npt.NDArray[np.float64],
    ):
        """
        Integrate f(x, y) over a physical triangle.

        Args:
            f: Function of physical coordinates, scalar or array valued
            x_nodes: x-coordinates of the triangle vertices
            y_nodes: y-coordinates of the triangle vertices

        Returns:
            Approximated integral value (same shape as f's output)
        """
        det_B = abs(ShapeFunctions.edge_jacobian_determinant(x_nodes, y_nodes))

        def mapped(xi, eta):
            x, y = ShapeFunctions.map_to_physical(xi, eta, x_nodes, y_nodes)
            return f(x, y)

        return self.integrate_reference(mapped) * det_B

    @staticmethod
    def integrate_triangle_with_scipy(
        f: Callable[[float, float], float],
        x_nodes: npt.NDArray[np.float64],
        y_nodes: npt.NDArray[np.float64],
        **kwargs,
    ) -> float:
        """
        Integrate a scalar f(x, y) over a physical triangle using scipy's dblquad.

        Args:
            f: Scalar function of physical coordinates
            x_nodes: x-coordinates of the triangle vertices
            y_nodes: y-coordinates of the triangle vertices
            **kwargs: Additional arguments to pass to scipy.integrate.dblquad

        Returns:
            Approximated integral value
        """
        det_B = abs(ShapeFunctions.edge_jacobian_determinant(x_nodes, y_nodes))

        def integrand(eta, xi):
            x, y = ShapeFunctions.map_to_physical(xi, eta, x_nodes, y_nodes)
            return f(x, y)

        result, _ = integrate.dblquad(
            integrand, 0.0, 1.0, lambda xi: 0.0, lambda xi: 1.0 - xi, **kwargs
        )
        return result * det_B
