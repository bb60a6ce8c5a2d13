"""
Finite Element Method (FEM) package for 2D linear elasticity on triangles.
"""

from .config import MaterialConfig, ProblemConfig, SolverConfig
from .errors import (
    AssemblyError,
    DegenerateElementError,
    ElastoFEMError,
    MaterialError,
    MeshError,
    SolverError,
)
from .material import Material, elastic_tensor, lame_parameters
from .mesh import Mesh
from .element import Element
from .assembly import GlobalAssembler, GlobalSystem, SystemBuilder
from .solver import LinearSolver
from .problem import ElasticityProblem, TimingStats
from .io import read_mesh, write_solution
from .manufactured import make_problem
from .utils import convergence_study
