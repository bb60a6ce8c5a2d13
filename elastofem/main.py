"""
Command line driver: load or generate a mesh, assemble, solve, write results.

Examples:
    python -m elastofem mesh.vtk
    python -m elastofem --nx 32 --problem sine --solver direct
    python -m elastofem --nx 8 --problem quadratic --convergence
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import config as cfg
from .config import ProblemConfig
from .errors import ElastoFEMError
from .logging_config import setup_logging
from .manufactured import SOLUTIONS, get_solution, make_problem
from .mesh import PATTERNS, Mesh
from .io import read_mesh
from .problem import TimingStats
from .utils import convergence_study, plot_displacement

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elastofem",
        description="2D linear elasticity with P1 triangles and Dirichlet elimination",
    )
    parser.add_argument("mesh_file", nargs="?", help="Triangular mesh file (.vtk, .vtu, .msh, ...)")

    mesh_group = parser.add_argument_group("structured mesh")
    mesh_group.add_argument("--nx", type=int, help="Grid cells in x on the unit square")
    mesh_group.add_argument("--ny", type=int, help="Grid cells in y (default: nx)")
    mesh_group.add_argument("--pattern", choices=PATTERNS, default="diagonal")

    parser.add_argument("--E", type=float, default=cfg.YOUNGS_MODULUS, help="Young's modulus")
    parser.add_argument("--nu", type=float, default=cfg.POISSON_RATIO, help="Poisson's ratio")
    parser.add_argument("--solver", choices=cfg.SOLVER_METHODS, default=cfg.SOLVER_METHOD)
    parser.add_argument("--rtol", type=float, default=cfg.SOLVER_RTOL)
    parser.add_argument("--atol", type=float, default=cfg.SOLVER_ATOL)
    parser.add_argument("--maxiter", type=int, default=cfg.SOLVER_MAXITER)
    parser.add_argument("--problem", choices=tuple(SOLUTIONS), default="reference")
    parser.add_argument("--load-scheme", choices=cfg.LOAD_SCHEMES, default=cfg.LOAD_SCHEME)

    parser.add_argument("--output", default=cfg.RESULT_FILE, help="Result file")
    parser.add_argument("--deformed", default=cfg.DEFORMED_FILE, help="Deformed mesh file")
    parser.add_argument("--no-output", action="store_true", help="Do not write result files")
    parser.add_argument("--plot", action="store_true", help="Plot the displacement")
    parser.add_argument(
        "--convergence",
        action="store_true",
        help="Run a refinement study starting from --nx (4 levels)",
    )

    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


def run(args: argparse.Namespace) -> int:
    config = ProblemConfig.from_args(args)
    solution = get_solution(args.problem)

    if args.convergence:
        n = args.nx or 4
        convergence_study(
            solution,
            [n * 2**k for k in range(4)],
            config,
            pattern=args.pattern,
            plot=args.plot,
        )
        return 0

    stats = TimingStats()
    if args.mesh_file:
        with stats.record("io"):
            mesh = read_mesh(args.mesh_file)
    else:
        mesh = Mesh.unit_square(args.nx, args.ny, pattern=args.pattern)
        mesh.summary()

    problem = make_problem(mesh, solution, config, stats=stats)
    problem.init_problem()
    problem.assemble_global_system()
    report = problem.solve_system()

    if not args.no_output:
        problem.save_solution(args.output, args.deformed)

    logger.info("Timing:\n%s", stats.report())
    print(f"Linear solver iterations: {report.iterations}")
    print(f"|err|_C = {report.c_norm:.6e}")

    if args.plot:
        plot_displacement(mesh, problem.displacement, title=f"Displacement ({args.problem})")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mesh_file is None and args.nx is None:
        parser.error("either a mesh file or --nx must be given")
    if args.convergence and args.mesh_file is not None:
        parser.error("--convergence refines a structured mesh and takes no mesh file")
    for name in ("nx", "ny"):
        value = getattr(args, name)
        if value is not None and value < 1:
            parser.error(f"--{name} must be a positive integer, got {value}")

    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        return run(args)
    except ElastoFEMError as err:
        logger.error("%s", err)
        return 1


if __name__ == "__main__":
    sys.exit(main())
