"""
Exceptions raised by the elasticity solver.

Every failure is fatal for the pass that detects it: an assembly or solve
that raises leaves no usable system behind.
"""

from typing import Optional


class ElastoFEMError(Exception):
    """Base class for all solver errors."""


class MaterialError(ElastoFEMError):
    """Material constants that cannot produce a finite elastic tensor."""


class MeshError(ElastoFEMError):
    """Malformed input mesh."""


class NonTriangularCellError(MeshError):
    """A cell that does not have exactly three vertices."""


class AssemblyError(ElastoFEMError):
    """Fatal error while forming the local or global system."""

    def __init__(self, message: str, element: Optional[int] = None):
        self.element = element
        if element is not None:
            message = f"element {element}: {message}"
        super().__init__(message)


class MalformedElementError(AssemblyError):
    """An element with fewer than three distinct nodes."""


class DegenerateElementError(AssemblyError):
    """A zero-area (collinear or collapsed) triangle."""


class AsymmetricStiffnessError(AssemblyError):
    """A local stiffness matrix that is not symmetric."""


class SolverError(ElastoFEMError):
    """The linear solver did not produce a solution."""

    def __init__(self, reason: str, residual_norm: float = float("nan")):
        self.reason = reason
        self.residual_norm = residual_norm
        super().__init__(f"Linear solver failed: {reason} (residual {residual_norm:.6e})")
