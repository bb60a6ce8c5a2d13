"""
Global assembly with Dirichlet elimination by static condensation.

Only free nodes carry unknowns (two per node, x then y). For every element,
the rows of its free nodes receive the local stiffness entries coupling
them to other free nodes, and the known displacement of each Dirichlet
node is folded into those rows as a constant. Rows of Dirichlet nodes are
never emitted.

The assembled system is in residual form:

    r(U) = K U + K_fd g - F

with K the free-free stiffness, K_fd the free-Dirichlet coupling, g the
prescribed values and F the load. Its Jacobian is K, so the solver is
handed (K, r) and the free displacements are corrected by U <- U - K^-1 r.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from scipy import sparse

from .element import Element
from .errors import AssemblyError, MalformedElementError

if TYPE_CHECKING:
    from .problem import ElasticityProblem

logger = logging.getLogger(__name__)


class SystemBuilder:
    """
    Accumulates a sparse matrix and a vector with += semantics.

    Matrix entries are stored as triplets and summed when the matrix is
    built, so contributions can arrive in any order.
    """

    def __init__(self, size: int):
        self.size = size
        self.clear()

    def clear(self) -> None:
        self._rows: List[int] = []
        self._cols: List[int] = []
        self._data: List[float] = []
        self._vector = np.zeros(self.size)

    def resize(self, size: int) -> None:
        self.size = size
        self.clear()

    def add_to_row(self, row: int, value: float) -> None:
        self._vector[row] += value

    def add_to_matrix_entry(self, row: int, col: int, value: float) -> None:
        self._rows.append(row)
        self._cols.append(col)
        self._data.append(value)

    @property
    def num_entries(self) -> int:
        return len(self._data)

    def matrix(self) -> sparse.csr_array:
        A = sparse.csr_array(
            (
                np.asarray(self._data, dtype=np.float64),
                (np.asarray(self._rows, dtype=np.int64), np.asarray(self._cols, dtype=np.int64)),
            ),
            shape=(self.size, self.size),
        )
        A.sum_duplicates()
        return A

    def residual(self) -> npt.NDArray[np.float64]:
        return self._vector.copy()


@dataclass
class GlobalSystem:
    """
    Assembled system over the free unknowns.

    Attributes:
        matrix: Free-free stiffness matrix K (CSR)
        residual: K U + K_fd g - F at the displacement used for assembly
        load: F - K_fd g, the right-hand side of K U = load
    """

    matrix: sparse.csr_array
    residual: npt.NDArray[np.float64]
    load: npt.NDArray[np.float64]

    @property
    def size(self) -> int:
        return self.residual.shape[0]


class GlobalAssembler:
    """
    Builds the global system of an ElasticityProblem element by element.
    """

    def __init__(self, element: Optional[Element] = None, load_scheme: str = "mean"):
        self.element = element if element is not None else Element()
        self.load_scheme = load_scheme
        self.builder = SystemBuilder(0)

    def assemble(
        self,
        problem: "ElasticityProblem",
        element_order: Optional[Iterable[int]] = None,
    ) -> GlobalSystem:
        """
        Assemble the global system.

        Args:
            problem: Initialized problem providing cells, node kinds and values
            element_order: Optional traversal order of the elements

        Returns:
            GlobalSystem

        Raises:
            AssemblyError: on a malformed, degenerate or asymmetric element.
                The partially accumulated system is discarded.
        """
        self.builder.resize(problem.num_unknowns)

        if element_order is None:
            element_order = range(problem.mesh.num_elements)

        try:
            for e in element_order:
                self._assemble_element(problem, e)
        except AssemblyError:
            self.builder.clear()
            raise

        K = self.builder.matrix()
        residual = self.builder.residual()
        load = K @ problem.free_displacement() - residual
        self.builder.clear()

        logger.debug("Assembled %d unknowns, %d nonzeros", K.shape[0], K.nnz)
        return GlobalSystem(matrix=K, residual=residual, load=load)

    def _assemble_element(self, problem: "ElasticityProblem", e: int) -> None:
        node_ids = problem.mesh.get_element_nodes(e)
        if len(set(int(n) for n in node_ids)) < 3:
            raise MalformedElementError(
                f"fewer than 3 distinct nodes {list(node_ids)}", element=e
            )

        cell = problem.cell(e)
        W, rhs = self.element.local_system(cell, self.load_scheme)

        dofs = [problem.node_dofs(n) for n in node_ids]
        free = [d is not None for d in dofs]
        builder = self.builder

        for k in range(3):
            if not free[k]:
                # No row for a Dirichlet node: move its known displacement
                # to the rows of the free nodes of this element.
                g = cell.nodes[k].prescribed
                for j in range(3):
                    if j == k or not free[j]:
                        continue
                    for a in range(2):
                        builder.add_to_row(
                            dofs[j][a], W[2 * j + a, 2 * k] * g[0] + W[2 * j + a, 2 * k + 1] * g[1]
                        )
                continue

            for a in range(2):
                row = dofs[k][a]
                for i in range(3):
                    if not free[i]:
                        continue
                    u = cell.nodes[i].displacement
                    for b in range(2):
                        w = W[2 * k + a, 2 * i + b]
                        builder.add_to_matrix_entry(row, dofs[i][b], w)
                        builder.add_to_row(row, w * u[b])
                builder.add_to_row(row, -rhs[2 * k + a])
