"""
Isotropic linear elastic material.
"""

from dataclasses import dataclass
import math

import numpy as np
import numpy.typing as npt
from typing import Tuple

from .errors import MaterialError

# |(1 + nu)(1 - 2 nu)| below this is treated as the incompressible limit
_SINGULAR_TOL = 1e-12


def lame_parameters(E: float, nu: float) -> Tuple[float, float]:
    """
    Lamé parameters from Young's modulus and Poisson's ratio.

    Args:
        E: Young's modulus
        nu: Poisson's ratio

    Returns:
        Tuple (lam, mu)

    Raises:
        MaterialError: if E is not a positive finite number, nu is not finite,
            or (1 + nu)(1 - 2 nu) vanishes
    """
    if not math.isfinite(E) or E <= 0.0:
        raise MaterialError(f"Young's modulus must be positive and finite, got {E}")
    if not math.isfinite(nu):
        raise MaterialError(f"Poisson's ratio must be finite, got {nu}")

    denominator = (1.0 + nu) * (1.0 - 2.0 * nu)
    if abs(denominator) < _SINGULAR_TOL:
        raise MaterialError(
            f"Poisson's ratio nu={nu} makes (1+nu)(1-2nu) vanish; "
            "the elastic tensor is singular"
        )

    lam = E * nu / denominator
    mu = E / (2.0 * (1.0 + nu))
    return lam, mu


def elastic_tensor(E: float, nu: float) -> npt.NDArray[np.float64]:
    """
    Elastic tensor in Voigt notation, acting on (eps_xx, eps_yy, 2 eps_xy).

        [ 2mu+lam   lam       0   ]
        [ lam       2mu+lam   0   ]
        [ 0         0         2mu ]

    Args:
        E: Young's modulus
        nu: Poisson's ratio

    Returns:
        Symmetric 3x3 array
    """
    lam, mu = lame_parameters(E, nu)
    return np.array(
        [
            [2.0 * mu + lam, lam, 0.0],
            [lam, 2.0 * mu + lam, 0.0],
            [0.0, 0.0, 2.0 * mu],
        ]
    )


@dataclass(frozen=True)
class Material:
    """Material constants, validated on construction."""

    E: float
    nu: float

    def __post_init__(self):
        lame_parameters(self.E, self.nu)

    @property
    def lam(self) -> float:
        return lame_parameters(self.E, self.nu)[0]

    @property
    def mu(self) -> float:
        return lame_parameters(self.E, self.nu)[1]

    def tensor(self) -> npt.NDArray[np.float64]:
        return elastic_tensor(self.E, self.nu)
