"""
Manufactured solutions for verifying the plane elasticity solver.

A manufactured solution fixes the displacement u(x,y) = (u, v) a priori and
derives the body force that makes it exact:

    f = -div(sigma(u)),   sigma = C (u_x, v_y, u_y + v_x)

with C the 3x3 elastic tensor in the same engineering-shear convention the
element stiffness uses. Writing sigma_i = C_i0 u_x + C_i1 v_y + C_i2 (u_y + v_x):

    d(sigma_i)/dx = C_i0 u_xx + C_i1 v_xy + C_i2 (u_xy + v_xx)
    d(sigma_i)/dy = C_i0 u_xy + C_i1 v_yy + C_i2 (u_yy + v_xy)

    f_x = -(d(sigma_0)/dx + d(sigma_2)/dy)
    f_y = -(d(sigma_2)/dx + d(sigma_1)/dy)

The exact displacement is applied on the Dirichlet nodes and the nodal
error of the computed field is reported as the C-norm (max) error.
"""

from typing import Dict, Optional

import numpy as np
import numpy.typing as npt

from .config import ProblemConfig
from .material import elastic_tensor
from .mesh import Mesh
from .problem import ElasticityProblem


class ManufacturedSolution:
    """Base class: subclasses provide the displacement and its second derivatives."""

    name = "manufactured"

    def displacement(self, x, y) -> npt.NDArray[np.float64]:
        """Exact displacement, shape (2, n)."""
        raise NotImplementedError

    def hessians(self, x, y) -> Dict[str, npt.NDArray[np.float64]]:
        """Second derivatives u_xx, u_xy, u_yy, v_xx, v_xy, v_yy."""
        raise NotImplementedError

    def body_force(self, x, y, C: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Body force f = -div(sigma(u)) for the elastic tensor C.

        Args:
            x: x-coordinates
            y: y-coordinates
            C: Elastic tensor (3x3)

        Returns:
            Array of shape (2, n)
        """
        x = np.atleast_1d(np.asarray(x, dtype=np.float64))
        y = np.atleast_1d(np.asarray(y, dtype=np.float64))
        d = {k: np.broadcast_to(v, x.shape) for k, v in self.hessians(x, y).items()}
        C = np.asarray(C, dtype=np.float64)

        dsigma_dx = (
            C[:, 0, None] * d["u_xx"]
            + C[:, 1, None] * d["v_xy"]
            + C[:, 2, None] * (d["u_xy"] + d["v_xx"])
        )
        dsigma_dy = (
            C[:, 0, None] * d["u_xy"]
            + C[:, 1, None] * d["v_yy"]
            + C[:, 2, None] * (d["u_yy"] + d["v_xy"])
        )

        fx = -(dsigma_dx[0] + dsigma_dy[2])
        fy = -(dsigma_dx[2] + dsigma_dy[1])
        return np.vstack([fx, fy])

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _zeros_like(x) -> npt.NDArray[np.float64]:
    return np.zeros(np.shape(x))


class ZeroDisplacement(ManufacturedSolution):
    """
    Clamped body under a constant body force.

    The displacement is zero on the boundary and the force is prescribed
    rather than derived, so the "error" is the magnitude of the computed
    displacement.
    """

    name = "reference"

    def __init__(self, force=(-3.0e7, 0.0)):
        self.force = np.asarray(force, dtype=np.float64).reshape(2)

    def displacement(self, x, y):
        return np.vstack([_zeros_like(x), _zeros_like(y)])

    def hessians(self, x, y):
        z = _zeros_like(x)
        return {"u_xx": z, "u_xy": z, "u_yy": z, "v_xx": z, "v_xy": z, "v_yy": z}

    def body_force(self, x, y, C=None):
        n = np.size(x)
        return np.repeat(self.force[:, None], n, axis=1)

    def __repr__(self) -> str:
        return f"ZeroDisplacement(force={tuple(self.force)})"


class LinearField(ManufacturedSolution):
    """
    Affine displacement u = a0 + a1 x + a2 y, v = b0 + b1 x + b2 y.

    Linear elements reproduce it exactly (patch test); the body force is zero.
    """

    name = "linear"

    def __init__(self, a=(0.1, 0.2, -0.3), b=(-0.2, 0.1, 0.4)):
        self.a = np.asarray(a, dtype=np.float64).reshape(3)
        self.b = np.asarray(b, dtype=np.float64).reshape(3)

    def displacement(self, x, y):
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        u = self.a[0] + self.a[1] * x + self.a[2] * y
        v = self.b[0] + self.b[1] * x + self.b[2] * y
        return np.vstack([np.atleast_1d(u), np.atleast_1d(v)])

    def hessians(self, x, y):
        z = _zeros_like(x)
        return {"u_xx": z, "u_xy": z, "u_yy": z, "v_xx": z, "v_xy": z, "v_yy": z}


class SineProduct(ManufacturedSolution):
    """u = v = A sin(pi x) sin(pi y), zero on the boundary of the unit square."""

    name = "sine"

    def __init__(self, amplitude: float = 1.0):
        self.amplitude = amplitude

    def displacement(self, x, y):
        s = self.amplitude * np.sin(np.pi * np.asarray(x)) * np.sin(np.pi * np.asarray(y))
        s = np.atleast_1d(s)
        return np.vstack([s, s])

    def hessians(self, x, y):
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        k2 = self.amplitude * np.pi**2
        diag = -k2 * np.sin(np.pi * x) * np.sin(np.pi * y)
        mixed = k2 * np.cos(np.pi * x) * np.cos(np.pi * y)
        return {
            "u_xx": diag, "u_xy": mixed, "u_yy": diag,
            "v_xx": diag, "v_xy": mixed, "v_yy": diag,
        }

    def __repr__(self) -> str:
        return f"SineProduct(amplitude={self.amplitude})"


class QuadraticField(ManufacturedSolution):
    """u = A (x^2 + y^2), v = 2 A x y, nonzero on the boundary."""

    name = "quadratic"

    def __init__(self, amplitude: float = 1.0):
        self.amplitude = amplitude

    def displacement(self, x, y):
        x = np.atleast_1d(np.asarray(x, dtype=np.float64))
        y = np.atleast_1d(np.asarray(y, dtype=np.float64))
        return self.amplitude * np.vstack([x**2 + y**2, 2.0 * x * y])

    def hessians(self, x, y):
        z = _zeros_like(x)
        two = np.full(np.shape(x), 2.0 * self.amplitude)
        return {"u_xx": two, "u_xy": z, "u_yy": two, "v_xx": z, "v_xy": two, "v_yy": z}

    def __repr__(self) -> str:
        return f"QuadraticField(amplitude={self.amplitude})"


SOLUTIONS = {
    "reference": ZeroDisplacement,
    "linear": LinearField,
    "sine": SineProduct,
    "quadratic": QuadraticField,
}


def get_solution(name: str) -> ManufacturedSolution:
    if name not in SOLUTIONS:
        raise ValueError(f"Unknown problem '{name}', expected one of {tuple(SOLUTIONS)}")
    return SOLUTIONS[name]()


def make_problem(
    mesh: Mesh,
    solution: ManufacturedSolution,
    config: Optional[ProblemConfig] = None,
    **kwargs,
) -> ElasticityProblem:
    """
    Build an ElasticityProblem whose Dirichlet values and body force come
    from a manufactured solution.

    Args:
        mesh: Triangular mesh
        solution: Manufactured solution
        config: Problem configuration, its material defines the forcing
        **kwargs: Passed on to ElasticityProblem

    Returns:
        ElasticityProblem (not yet initialized)
    """
    config = config if config is not None else ProblemConfig()
    C = elastic_tensor(config.material.E, config.material.nu)

    return ElasticityProblem(
        mesh,
        config=config,
        body_force=lambda x, y: solution.body_force(x, y, C),
        exact_solution=solution.displacement,
        **kwargs,
    )
