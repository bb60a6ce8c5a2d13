"""
Linear elasticity problem on a triangular mesh.

Holds the per-node and per-cell data of a run (classification, prescribed
values, body force samples, displacement, elastic tensors), numbers the
free unknowns, and drives assembly, solve and output.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Iterator, Optional, Tuple, Union

import numpy as np
import numpy.typing as npt

from .assembly import GlobalAssembler, GlobalSystem
from .config import ProblemConfig
from .element import Element
from .io import read_mesh, staged_outputs, write_deformed, write_solution
from .material import Material
from .mesh import Mesh
from .shape_functions import ShapeFunctions
from .solver import LinearSolver

logger = logging.getLogger(__name__)

VectorField = Callable[[npt.NDArray[np.float64], npt.NDArray[np.float64]], npt.ArrayLike]


class NodeKind(IntEnum):
    FREE = 0
    DIRICHLET = 1


@dataclass
class Node:
    """
    View of one mesh node.

    The arrays are views into the problem storage, so writing to
    `displacement` updates the problem.
    """

    index: int
    coords: npt.NDArray[np.float64]
    kind: NodeKind
    displacement: npt.NDArray[np.float64]
    prescribed: npt.NDArray[np.float64]
    body_force: npt.NDArray[np.float64]

    @property
    def is_free(self) -> bool:
        return self.kind == NodeKind.FREE


@dataclass
class Cell:
    index: int
    nodes: Tuple[Node, Node, Node]
    elastic_tensor: npt.NDArray[np.float64]


@dataclass
class TimingStats:
    """Wall-clock durations of the phases of a run, in seconds."""

    init: float = 0.0
    assemble: float = 0.0
    precond: float = 0.0
    solve: float = 0.0
    update: float = 0.0
    io: float = 0.0
    start: float = field(default_factory=time.perf_counter)

    @property
    def total(self) -> float:
        return time.perf_counter() - self.start

    @contextmanager
    def record(self, name: str) -> Iterator[None]:
        t = time.perf_counter()
        try:
            yield
        finally:
            setattr(self, name, getattr(self, name) + time.perf_counter() - t)

    def report(self) -> str:
        lines = [
            "+=========================",
            f"| T_assemble = {self.assemble:f}",
            f"| T_precond  = {self.precond:f}",
            f"| T_solve    = {self.solve:f}",
            f"| T_IO       = {self.io:f}",
            f"| T_update   = {self.update:f}",
            f"| T_init     = {self.init:f}",
            "+-------------------------",
            f"| T_total    = {self.total:f}",
            "+=========================",
        ]
        return "\n".join(lines)


@dataclass
class SolveReport:
    iterations: int
    residual_norm: float
    c_norm: float


def _sample(
    function: Optional[VectorField],
    x: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64],
    name: str,
) -> npt.NDArray[np.float64]:
    """Evaluate a vector field at points, returning shape (n, 2)."""
    n = x.shape[0]
    if function is None:
        return np.zeros((n, 2))
    values = np.asarray(function(x, y), dtype=np.float64)
    if values.ndim == 1:
        values = values[:, None]
    if values.shape[0] != 2:
        raise ValueError(f"{name} must return 2 components, got shape {values.shape}")
    return np.array(np.broadcast_to(values, (2, n)).T)


class ElasticityProblem:
    """
    Plane linear elasticity on a triangular mesh with Dirichlet conditions
    taken from a given exact solution.
    """

    def __init__(
        self,
        mesh: Mesh,
        config: Optional[ProblemConfig] = None,
        body_force: Optional[VectorField] = None,
        exact_solution: Optional[VectorField] = None,
        apply_dirichlet_on: Union[str, None, Callable[[Mesh], npt.ArrayLike]] = "boundary",
        stats: Optional[TimingStats] = None,
    ):
        """
        Initialize the problem.

        Args:
            mesh: Triangular mesh
            config: Material, solver and element settings
            body_force: f(x, y) -> (2, n) array, zero when omitted
            exact_solution: u(x, y) -> (2, n) array giving the Dirichlet
                values, zero when omitted
            apply_dirichlet_on: "boundary", None (no Dirichlet nodes) or a
                callable returning the Dirichlet node indices of a mesh
            stats: Timing accumulator, a new one when omitted
        """
        self.mesh = mesh
        self.config = config if config is not None else ProblemConfig()
        self.body_force_function = body_force
        self.exact_solution = exact_solution
        self.apply_dirichlet_on = apply_dirichlet_on
        self.stats = stats if stats is not None else TimingStats()

        self.material = Material(self.config.material.E, self.config.material.nu)
        self.element = Element(
            degeneracy_tol=self.config.degeneracy_tol,
            symmetry_tol=self.config.symmetry_tol,
        )
        self.assembler = GlobalAssembler(self.element, self.config.load_scheme)
        self.solver = LinearSolver(self.config.solver)

        self.system: Optional[GlobalSystem] = None
        self.initialized = False

    @classmethod
    def from_file(cls, filename: str, **kwargs) -> "ElasticityProblem":
        """Load the mesh from a file, the read time counts as IO."""
        stats = kwargs.pop("stats", None) or TimingStats()
        with stats.record("io"):
            mesh = read_mesh(filename)
        return cls(mesh, stats=stats, **kwargs)

    def _dirichlet_nodes(self) -> npt.NDArray[np.int64]:
        if self.apply_dirichlet_on is None:
            return np.zeros(0, dtype=np.int64)
        if self.apply_dirichlet_on == "boundary":
            return self.mesh.boundary_nodes
        if callable(self.apply_dirichlet_on):
            return np.asarray(self.apply_dirichlet_on(self.mesh), dtype=np.int64).ravel()
        raise ValueError(
            f"apply_dirichlet_on must be 'boundary', None or callable, got {self.apply_dirichlet_on!r}"
        )

    def init_problem(self) -> None:
        """
        Set up the node and cell data and number the free unknowns.

        Dirichlet nodes get their prescribed value (and initial displacement)
        from the exact solution; free nodes start from zero.
        """
        with self.stats.record("init"):
            mesh = self.mesh
            x, y = mesh.coordinates

            self.elastic_tensors = np.tile(self.material.tensor(), (mesh.num_elements, 1, 1))

            self.kinds = np.full(mesh.num_nodes, NodeKind.FREE, dtype=np.int8)
            self.kinds[self._dirichlet_nodes()] = NodeKind.DIRICHLET
            dirichlet = self.kinds == NodeKind.DIRICHLET

            self.body_force = _sample(self.body_force_function, x, y, "body_force")
            self.exact = _sample(self.exact_solution, x, y, "exact_solution")

            self.prescribed = np.zeros((mesh.num_nodes, 2))
            self.prescribed[dirichlet] = self.exact[dirichlet]
            self.displacement = np.zeros((mesh.num_nodes, 2))
            self.displacement[dirichlet] = self.prescribed[dirichlet]

            # 0 marks a Dirichlet node, free nodes are numbered from 1
            self.id_array = np.zeros(mesh.num_nodes, dtype=np.int64)
            num_free = int(np.count_nonzero(~dirichlet))
            self.id_array[~dirichlet] = np.arange(1, num_free + 1)
            self.num_unknowns = 2 * num_free

            self.system = None
            self.initialized = True

        logger.info("Number of Dirichlet nodes: %d", int(np.count_nonzero(dirichlet)))
        logger.info("Number of unknowns: %d", self.num_unknowns)

    def _require_init(self) -> None:
        if not self.initialized:
            raise ValueError("Problem not initialized. Call init_problem() first.")

    def node(self, i: int) -> Node:
        self._require_init()
        return Node(
            index=int(i),
            coords=self.mesh.coordinates[:, i],
            kind=NodeKind(int(self.kinds[i])),
            displacement=self.displacement[i],
            prescribed=self.prescribed[i],
            body_force=self.body_force[i],
        )

    def cell(self, e: int) -> Cell:
        self._require_init()
        nodes = tuple(self.node(n) for n in self.mesh.get_element_nodes(e))
        return Cell(index=int(e), nodes=nodes, elastic_tensor=self.elastic_tensors[e])

    def cells(self) -> Iterator[Cell]:
        for e in range(self.mesh.num_elements):
            yield self.cell(e)

    def node_dofs(self, i: int) -> Optional[Tuple[int, int]]:
        """Global (x, y) equation numbers of a node, None for a Dirichlet node."""
        P = int(self.id_array[i])
        if P == 0:
            return None
        return 2 * (P - 1), 2 * (P - 1) + 1

    def free_displacement(self) -> npt.NDArray[np.float64]:
        """Displacement of the free nodes in equation order."""
        free = self.id_array > 0
        U = np.zeros(self.num_unknowns)
        P = self.id_array[free] - 1
        U[2 * P] = self.displacement[free, 0]
        U[2 * P + 1] = self.displacement[free, 1]
        return U

    def assemble_global_system(self, element_order=None) -> GlobalSystem:
        """
        Assemble the condensed global system at the current displacement.

        Returns:
            GlobalSystem
        """
        self._require_init()
        self.system = None
        with self.stats.record("assemble"):
            system = self.assembler.assemble(self, element_order)
        self.system = system
        return system

    def solve_system(self) -> SolveReport:
        """
        Solve the assembled system and correct the free displacements.

        Returns:
            SolveReport with iteration count, residual norm and C-norm error

        Raises:
            ValueError: if no assembled system is available
            SolverError: if the linear solver fails, the displacement is
                left unchanged
        """
        if self.system is None:
            raise ValueError("System not assembled. Call assemble_global_system() first.")

        system = self.system
        if system.size == 0:
            logger.info("No free unknowns, skipping the linear solve")
            iterations, residual_norm = 0, 0.0
        else:
            result = self.solver.solve(system.matrix, system.residual)
            self.stats.precond += result.precond_time
            self.stats.solve += result.solve_time
            iterations, residual_norm = result.iterations, result.residual_norm

            with self.stats.record("update"):
                free = self.id_array > 0
                P = self.id_array[free] - 1
                self.displacement[free, 0] -= result.solution[2 * P]
                self.displacement[free, 1] -= result.solution[2 * P + 1]

        # The residual was formed at the previous displacement
        self.system = None

        c_norm = self.c_norm_error()
        logger.info("|err|_C = %.6e", c_norm)
        return SolveReport(iterations=iterations, residual_norm=residual_norm, c_norm=c_norm)

    def c_norm_error(self) -> float:
        """Maximum nodal error |U - U_exact| over free nodes and components."""
        self._require_init()
        free = self.kinds == NodeKind.FREE
        if not np.any(free):
            return 0.0
        return float(np.max(np.abs(self.displacement[free] - self.exact[free])))

    def compute_stresses(self) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Element stresses (sigma_xx, sigma_yy, sigma_xy) and their
        area-weighted nodal averages.

        Returns:
            Tuple (cell_stress (M,3), nodal_stress (N,3))
        """
        self._require_init()
        mesh = self.mesh
        cell_stress = np.zeros((mesh.num_elements, 3))
        nodal_stress = np.zeros((mesh.num_nodes, 3))
        weights = np.zeros(mesh.num_nodes)

        for e, nodes in mesh.cells():
            node_x, node_y = mesh.get_element_coordinates(e)
            u_local = self.displacement[nodes].reshape(6)
            cell_stress[e] = self.element.stress(node_x, node_y, u_local, self.elastic_tensors[e])

            area = ShapeFunctions.area(node_x, node_y)
            np.add.at(nodal_stress, nodes, area * cell_stress[e])
            np.add.at(weights, nodes, area)

        used = weights > 0
        nodal_stress[used] /= weights[used, None]
        return cell_stress, nodal_stress

    def point_data(self, nodal_stress: Optional[npt.NDArray[np.float64]] = None) -> dict:
        """Nodal fields written with the solution."""
        if nodal_stress is None:
            _, nodal_stress = self.compute_stresses()
        return {
            "displacement": self.displacement,
            "displacement_exact": self.exact,
            "body_force": self.body_force,
            "dirichlet": self.kinds.astype(np.int32),
            "stress": nodal_stress,
        }

    def save_solution(self, path: str, deformed_path: Optional[str] = None, scale: float = 1.0) -> None:
        """
        Write the solution fields, and optionally the deformed mesh.

        Both files are written under temporary names first, so a failed
        write leaves neither output in place.

        Args:
            path: Output file for the mesh with nodal and cell fields
            deformed_path: Output file for the deformed mesh
            scale: Displacement magnification of the deformed mesh
        """
        self._require_init()
        with self.stats.record("io"):
            cell_stress, nodal_stress = self.compute_stresses()
            point_data = self.point_data(nodal_stress)
            targets = [path] if deformed_path is None else [path, deformed_path]
            with staged_outputs(*targets) as staged:
                write_solution(staged[0], self.mesh, point_data, {"stress": cell_stress})
                if deformed_path is not None:
                    write_deformed(staged[1], self.mesh, self.displacement, point_data, scale)

    def run(self) -> SolveReport:
        """Initialize, assemble and solve."""
        if not self.initialized:
            self.init_problem()
        self.assemble_global_system()
        return self.solve_system()
