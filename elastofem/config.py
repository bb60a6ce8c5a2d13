"""
Configuration for the 2D elasticity solver.

Module-level constants hold the defaults of the reference problem
(a unit square under a constant body force, solved with an ILU
preconditioned Krylov method). The dataclasses group them so a run can be
configured in one place, either from code or from the command line.
"""

from dataclasses import dataclass, field

# Material
YOUNGS_MODULUS = 3.5e6  # Pa
POISSON_RATIO = 0.3

# Linear solver
SOLVER_METHOD = "lgmres"
SOLVER_RTOL = 1e-12
SOLVER_ATOL = 1e-15
SOLVER_MAXITER = 1000
ILU_DROP_TOL = 1e-5
ILU_FILL_FACTOR = 10.0

# Element checks
DEGENERACY_TOL = 1e-12  # relative to the squared longest edge
SYMMETRY_TOL = 1e-10  # relative to the largest stiffness entry

# Body force integration: "mean" or "consistent"
LOAD_SCHEME = "mean"

# Output
RESULT_FILE = "res.vtk"
DEFORMED_FILE = "deformed.vtk"

SOLVER_METHODS = ("direct", "lgmres", "cg")
LOAD_SCHEMES = ("mean", "consistent")


@dataclass
class MaterialConfig:
    E: float = YOUNGS_MODULUS
    nu: float = POISSON_RATIO


@dataclass
class SolverConfig:
    """
    Parameters of the linear solve.

    Args:
        method: "direct" (sparse LU), "lgmres" or "cg" (ILU preconditioned)
        rtol: Relative residual tolerance of the iterative methods
        atol: Absolute residual tolerance of the iterative methods
        maxiter: Maximum number of iterations (restart cycles for lgmres)
        ilu_drop_tol: Drop tolerance of the incomplete LU preconditioner
        ilu_fill_factor: Fill factor of the incomplete LU preconditioner
    """

    method: str = SOLVER_METHOD
    rtol: float = SOLVER_RTOL
    atol: float = SOLVER_ATOL
    maxiter: int = SOLVER_MAXITER
    ilu_drop_tol: float = ILU_DROP_TOL
    ilu_fill_factor: float = ILU_FILL_FACTOR

    def __post_init__(self):
        if self.method not in SOLVER_METHODS:
            raise ValueError(
                f"Unknown solver method '{self.method}', expected one of {SOLVER_METHODS}"
            )


@dataclass
class ProblemConfig:
    material: MaterialConfig = field(default_factory=MaterialConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    load_scheme: str = LOAD_SCHEME
    degeneracy_tol: float = DEGENERACY_TOL
    symmetry_tol: float = SYMMETRY_TOL

    def __post_init__(self):
        if self.load_scheme not in LOAD_SCHEMES:
            raise ValueError(
                f"Unknown load scheme '{self.load_scheme}', expected one of {LOAD_SCHEMES}"
            )

    @classmethod
    def from_args(cls, args) -> "ProblemConfig":
        """
        Build a configuration from parsed command line arguments.

        Args:
            args: argparse namespace produced by elastofem.main.build_parser

        Returns:
            ProblemConfig
        """
        return cls(
            material=MaterialConfig(E=args.E, nu=args.nu),
            solver=SolverConfig(
                method=args.solver,
                rtol=args.rtol,
                atol=args.atol,
                maxiter=args.maxiter,
            ),
            load_scheme=args.load_scheme,
        )
