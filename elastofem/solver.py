"""
Linear solver wrapper for the assembled sparse system.
"""

import logging
import time
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import numpy.typing as npt
from scipy import sparse
from scipy.sparse import linalg as sparse_linalg

from .config import SolverConfig
from .errors import SolverError

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    solution: npt.NDArray[np.float64]
    iterations: int
    residual_norm: float
    precond_time: float = 0.0
    solve_time: float = 0.0


class LinearSolver:
    """
    Solves A x = b for the sparse system assembled over free unknowns.

    Failures are reported as SolverError carrying the reason and the
    residual norm. A failed solve is not retried with relaxed tolerances.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config if config is not None else SolverConfig()

    def _preconditioner(self, matrix) -> sparse_linalg.LinearOperator:
        try:
            ilu = sparse_linalg.spilu(
                sparse.csc_matrix(matrix),
                drop_tol=self.config.ilu_drop_tol,
                fill_factor=self.config.ilu_fill_factor,
            )
        except RuntimeError as err:
            raise SolverError(f"ILU preconditioner failed: {err}") from err
        return sparse_linalg.LinearOperator(matrix.shape, ilu.solve)

    def solve(self, matrix, rhs: npt.NDArray[np.float64]) -> SolveResult:
        """
        Solve the linear system.

        Args:
            matrix: Sparse square matrix
            rhs: Right-hand side vector

        Returns:
            SolveResult with the solution, iteration count and residual norm

        Raises:
            SolverError: if the solver does not converge or breaks down
        """
        rhs = np.asarray(rhs, dtype=np.float64)
        if matrix.shape[0] != matrix.shape[1] or matrix.shape[0] != rhs.shape[0]:
            raise SolverError(
                f"incompatible system: matrix {matrix.shape}, rhs {rhs.shape}"
            )

        method = self.config.method
        iterations = 0
        precond_time = 0.0

        if method == "direct":
            t = time.perf_counter()
            with warnings.catch_warnings():
                warnings.simplefilter("error", sparse_linalg.MatrixRankWarning)
                try:
                    solution = sparse_linalg.spsolve(sparse.csc_matrix(matrix), rhs)
                except sparse_linalg.MatrixRankWarning as err:
                    raise SolverError(f"matrix is singular: {err}") from err
            solution = np.atleast_1d(solution)
            solve_time = time.perf_counter() - t
            iterations = 1
            info = 0
        else:
            t = time.perf_counter()
            M = self._preconditioner(matrix)
            precond_time = time.perf_counter() - t

            def count(_):
                nonlocal iterations
                iterations += 1

            krylov = sparse_linalg.lgmres if method == "lgmres" else sparse_linalg.cg
            t = time.perf_counter()
            solution, info = krylov(
                matrix,
                rhs,
                rtol=self.config.rtol,
                atol=self.config.atol,
                maxiter=self.config.maxiter,
                M=M,
                callback=count,
            )
            solve_time = time.perf_counter() - t

        residual_norm = float(np.linalg.norm(rhs - matrix @ solution))

        if info > 0:
            raise SolverError(
                f"{method} did not converge to tolerance after {info} iterations",
                residual_norm,
            )
        if info < 0:
            raise SolverError(f"illegal input or breakdown in {method}", residual_norm)
        if not np.all(np.isfinite(solution)):
            raise SolverError(f"{method} produced a non-finite solution", residual_norm)

        logger.info("Linear solver iterations: %d", iterations)
        logger.info("Linear solver residual: %.6e", residual_norm)

        return SolveResult(
            solution=solution,
            iterations=iterations,
            residual_norm=residual_norm,
            precond_time=precond_time,
            solve_time=solve_time,
        )
