import numpy as np
import pytest
from scipy import sparse

from elastofem.config import SolverConfig
from elastofem.errors import SolverError
from elastofem.manufactured import SineProduct, make_problem
from elastofem.mesh import Mesh
from elastofem.solver import LinearSolver


def _system(nx=8):
    problem = make_problem(Mesh.unit_square(nx), SineProduct())
    problem.init_problem()
    return problem.assemble_global_system()


def test_methods_agree():
    system = _system()
    reference = LinearSolver(SolverConfig(method="direct")).solve(system.matrix, system.load)
    assert reference.residual_norm < 1e-8 * np.linalg.norm(system.load)

    for method in ("lgmres", "cg"):
        result = LinearSolver(SolverConfig(method=method)).solve(system.matrix, system.load)
        assert result.iterations >= 1
        assert np.allclose(result.solution, reference.solution, rtol=1e-6, atol=1e-12)


def test_unknown_method_rejected():
    with pytest.raises(ValueError):
        SolverConfig(method="jacobi")


def test_singular_matrix_raises():
    A = sparse.csr_array(np.array([[1.0, 1.0], [1.0, 1.0]]))
    with pytest.raises(SolverError) as excinfo:
        LinearSolver(SolverConfig(method="direct")).solve(A, np.array([1.0, 0.0]))
    assert "singular" in excinfo.value.reason


def test_non_convergence_raises():
    system = _system()
    config = SolverConfig(
        method="lgmres", rtol=1e-300, atol=0.0, maxiter=1, ilu_drop_tol=1e-1, ilu_fill_factor=1.0
    )
    with pytest.raises(SolverError) as excinfo:
        LinearSolver(config).solve(system.matrix, system.load)
    assert np.isfinite(excinfo.value.residual_norm)
    assert "did not converge" in str(excinfo.value)


def test_incompatible_system_raises():
    A = sparse.eye_array(3, format="csr")
    with pytest.raises(SolverError):
        LinearSolver().solve(A, np.ones(2))
