"""
Element-level computations for 2D linear elasticity on P1 triangles.

Local degrees of freedom are ordered node-major:
[Ux0, Uy0, Ux1, Uy1, Ux2, Uy2].
"""

import logging

import numpy as np
import numpy.typing as npt
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from .config import DEGENERACY_TOL, SYMMETRY_TOL, LOAD_SCHEMES
from .errors import AsymmetricStiffnessError, DegenerateElementError
from .quadrature import QuadratureRule
from .shape_functions import ShapeFunctions

if TYPE_CHECKING:
    from .problem import Cell

logger = logging.getLogger(__name__)


class Element:
    """
    Class for element-level computations in FEM.
    """

    def __init__(
        self,
        quadrature: Optional[QuadratureRule] = None,
        degeneracy_tol: float = DEGENERACY_TOL,
        symmetry_tol: float = SYMMETRY_TOL,
    ):
        """
        Initialize element.

        Args:
            quadrature: Quadrature rule for loads given as functions
                (stiffness and sampled loads are integrated in closed form)
            degeneracy_tol: Area tolerance relative to the squared longest edge
            symmetry_tol: Allowed asymmetry of W relative to its largest entry
        """
        self.quadrature = quadrature if quadrature is not None else QuadratureRule(2)
        self.shape_functions = ShapeFunctions()
        self.degeneracy_tol = degeneracy_tol
        self.symmetry_tol = symmetry_tol

    def geometry(
        self,
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        element: Optional[int] = None,
    ) -> Tuple[npt.NDArray[np.float64], float]:
        """
        Shape function gradients and signed det(A) of a triangle.

        Raises:
            DegenerateElementError: tagged with the element index when given
        """
        try:
            return ShapeFunctions.gradients(node_x, node_y, self.degeneracy_tol)
        except DegenerateElementError as err:
            if element is None:
                raise
            raise DegenerateElementError(str(err), element=element) from None

    @staticmethod
    def strain_displacement_matrix(
        phi_grad: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """
        Strain-displacement operator R mapping the six nodal displacements to
        (eps_xx, eps_yy, gamma_xy), gamma_xy = dUx/dy + dUy/dx.

        Args:
            phi_grad: Shape function gradients (3x2)

        Returns:
            R (3x6)
        """
        R = np.zeros((3, 6))
        for i in range(3):
            dphi_dx, dphi_dy = phi_grad[i]
            R[0, 2 * i] = dphi_dx
            R[1, 2 * i + 1] = dphi_dy
            R[2, 2 * i] = dphi_dy
            R[2, 2 * i + 1] = dphi_dx
        return R

    def check_symmetry(self, W: npt.NDArray[np.float64], element: Optional[int] = None) -> None:
        scale = np.max(np.abs(W))
        asymmetry = np.max(np.abs(W - W.T))
        if asymmetry > self.symmetry_tol * max(scale, np.finfo(float).tiny):
            raise AsymmetricStiffnessError(
                f"local stiffness matrix is not symmetric (|W - W^T| = {asymmetry:.3e}, "
                f"|W| = {scale:.3e})",
                element=element,
            )

    def stiffness_matrix(
        self,
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        elastic_tensor: npt.NDArray[np.float64],
        element: Optional[int] = None,
    ) -> npt.NDArray[np.float64]:
        """
        Compute element stiffness matrix.

        Args:
            node_x: x-coordinates of the element nodes
            node_y: y-coordinates of the element nodes
            elastic_tensor: Elastic tensor of the cell (3x3)
            element: Element index, used in error messages

        Returns:
            Element stiffness matrix (6x6), W = |det A| / 2 * R^T C R
        """
        phi_grad, det_A = self.geometry(node_x, node_y, element)
        R = self.strain_displacement_matrix(phi_grad)

        W = abs(det_A) * 0.5 * (R.T @ elastic_tensor @ R)

        self.check_symmetry(W, element)
        return W

    @staticmethod
    def load_vector(
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        nodal_forces: npt.NDArray[np.float64],
        scheme: str = "mean",
    ) -> npt.NDArray[np.float64]:
        """
        Compute element load vector from body-force samples at the nodes.

        "mean" integrates the element-mean force against each basis function:
        every node receives (f0 + f1 + f2) * |det Bk| / 18.

        "consistent" integrates the linear interpolant of the samples exactly:
        F_i = |T| / 12 * (f_i + f0 + f1 + f2).

        Args:
            node_x: x-coordinates of the element nodes
            node_y: y-coordinates of the element nodes
            nodal_forces: Body force samples, shape (3, 2)
            scheme: "mean" or "consistent"

        Returns:
            Element load vector (6,)
        """
        if scheme not in LOAD_SCHEMES:
            raise ValueError(f"Unknown load scheme '{scheme}'")

        nodal_forces = np.asarray(nodal_forces, dtype=float).reshape(3, 2)
        det_B = abs(ShapeFunctions.edge_jacobian_determinant(node_x, node_y))
        force_sum = nodal_forces.sum(axis=0)

        if scheme == "mean":
            f_element = np.tile(force_sum, 3) * det_B / 18.0
        else:
            area = 0.5 * det_B
            f_element = (area / 12.0) * (nodal_forces + force_sum).reshape(6)

        return f_element

    def load_vector_from_function(
        self,
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        force_function: Callable[[float, float], npt.NDArray[np.float64]],
    ) -> npt.NDArray[np.float64]:
        """
        Compute element load vector of an analytic body force by quadrature.

        Args:
            node_x: x-coordinates of the element nodes
            node_y: y-coordinates of the element nodes
            force_function: Body force f(x, y) returning [fx, fy]

        Returns:
            Element load vector (6,)
        """
        det_B = abs(ShapeFunctions.edge_jacobian_determinant(node_x, node_y))
        f_element = np.zeros(6)

        for (xi, eta), w in zip(self.quadrature.get_points(), self.quadrature.get_weights()):
            x, y = ShapeFunctions.map_to_physical(xi, eta, node_x, node_y)
            N = ShapeFunctions.N(xi, eta)
            force = np.asarray(force_function(x, y), dtype=float).reshape(2)
            f_element += np.outer(N, force).reshape(6) * det_B * w

        return f_element

    def local_system(
        self, cell: "Cell", scheme: str = "mean"
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Local stiffness matrix and load vector of a cell.

        Args:
            cell: Cell record with its three nodes and elastic tensor
            scheme: Body force integration scheme

        Returns:
            Tuple (W (6x6), rhs (6,))
        """
        coords = np.array([node.coords for node in cell.nodes])
        forces = np.array([node.body_force for node in cell.nodes])
        node_x, node_y = coords[:, 0], coords[:, 1]

        W = self.stiffness_matrix(node_x, node_y, cell.elastic_tensor, cell.index)
        rhs = self.load_vector(node_x, node_y, forces, scheme)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "cell %d: trace(W) = %.6e, |rhs| = %.6e", cell.index, np.trace(W), np.linalg.norm(rhs)
            )
        return W, rhs

    def strain(
        self,
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        u_local: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """Constant strain (eps_xx, eps_yy, gamma_xy) of the element."""
        phi_grad, _ = self.geometry(node_x, node_y)
        return self.strain_displacement_matrix(phi_grad) @ np.asarray(u_local).reshape(6)

    def stress(
        self,
        node_x: npt.NDArray[np.float64],
        node_y: npt.NDArray[np.float64],
        u_local: npt.NDArray[np.float64],
        elastic_tensor: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """Constant stress of the element, C applied to the element strain."""
        return elastic_tensor @ self.strain(node_x, node_y, u_local)
