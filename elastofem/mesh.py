"""
Triangular mesh storage, generation and topology for 2D FEM.
"""

import logging

import numpy as np
import numpy.typing as npt
import matplotlib.pyplot as plt
from matplotlib.tri import Triangulation
from typing import Optional, Tuple

from .errors import MeshError, NonTriangularCellError

logger = logging.getLogger(__name__)

PATTERNS = ("diagonal", "crossed")


def _generate_grid_coordinates(
    x_min: float, x_max: float, y_min: float, y_max: float, nx: int, ny: int
) -> npt.NDArray[np.float64]:
    """
    Generate the vertices of a structured nx-by-ny grid.

    Returns:
        Array of shape (2, (nx+1)*(ny+1)) containing x,y coordinates
    """
    dx = (x_max - x_min) / nx
    dy = (y_max - y_min) / ny
    num_nodes_x = nx + 1
    num_nodes_y = ny + 1

    coordinates = np.zeros((2, num_nodes_x * num_nodes_y))

    for j in range(num_nodes_y):
        for i in range(num_nodes_x):
            node_index = j * num_nodes_x + i
            coordinates[0, node_index] = x_min + i * dx
            coordinates[1, node_index] = y_min + j * dy

    return coordinates


def _generate_triangles(
    coordinates: npt.NDArray[np.float64], nx: int, ny: int, pattern: str
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
    """
    Split every grid cell into counter-clockwise triangles.

    "diagonal" cuts each cell along its bottom-left to top-right diagonal;
    "crossed" adds a centre node and cuts the cell into four triangles.

    Returns:
        Tuple (coordinates, connectivity) where connectivity has shape (3, num_elements)
    """
    num_nodes_x = nx + 1
    triangles = []
    centres = []
    next_node = coordinates.shape[1]

    for j in range(ny):
        for i in range(nx):
            bl = j * num_nodes_x + i  # Bottom left
            br = j * num_nodes_x + i + 1  # Bottom right
            tr = (j + 1) * num_nodes_x + i + 1  # Top right
            tl = (j + 1) * num_nodes_x + i  # Top left

            if pattern == "diagonal":
                triangles.append([bl, br, tr])
                triangles.append([bl, tr, tl])
            else:
                c = next_node
                next_node += 1
                centres.append(coordinates[:, [bl, br, tr, tl]].mean(axis=1))
                triangles.append([bl, br, c])
                triangles.append([br, tr, c])
                triangles.append([tr, tl, c])
                triangles.append([tl, bl, c])

    if centres:
        coordinates = np.hstack([coordinates, np.array(centres).T])

    return coordinates, np.array(triangles, dtype=np.int64).T


class Mesh:
    """
    Class for managing a triangular finite element mesh.

    Coordinates are stored column-wise, shape (2, num_nodes), and the
    connectivity holds one triangle per column, shape (3, num_elements),
    in the vertex order used for assembly.
    """

    def __init__(
        self,
        coordinates: npt.NDArray[np.float64],
        connectivity: npt.NDArray[np.int64],
    ):
        """
        Initialize a mesh from coordinate and connectivity arrays.

        Args:
            coordinates: Array of shape (2, num_nodes)
            connectivity: Array of shape (3, num_elements)

        Raises:
            NonTriangularCellError: if a cell does not have exactly 3 vertices
            MeshError: if the arrays are malformed
        """
        coordinates = np.asarray(coordinates, dtype=np.float64)
        connectivity = np.asarray(connectivity)

        if coordinates.ndim != 2 or coordinates.shape[0] != 2:
            raise MeshError(f"coordinates must have shape (2, N), got {coordinates.shape}")
        if connectivity.ndim != 2 or connectivity.shape[0] != 3:
            raise NonTriangularCellError(
                f"every cell must have exactly 3 vertices, got connectivity of shape "
                f"{connectivity.shape}"
            )
        if connectivity.size and not np.issubdtype(connectivity.dtype, np.integer):
            raise MeshError("connectivity must contain integer node indices")
        if not np.all(np.isfinite(coordinates)):
            raise MeshError("coordinates contain non-finite values")

        connectivity = connectivity.astype(np.int64)
        self.coordinates = coordinates
        self.connectivity = connectivity

        # Total number of nodes and elements
        self.num_nodes = self.coordinates.shape[1]
        self.num_elements = self.connectivity.shape[1]

        if self.num_elements:
            if connectivity.min() < 0 or connectivity.max() >= self.num_nodes:
                raise MeshError(
                    f"connectivity references nodes outside [0, {self.num_nodes - 1}]"
                )

        self.edges = self._find_edges()
        self.num_edges = self.edges.shape[0]
        self.boundary_nodes = self._find_boundary_nodes()
        self._boundary_mask = np.zeros(self.num_nodes, dtype=bool)
        self._boundary_mask[self.boundary_nodes] = True

    @classmethod
    def from_arrays(cls, points: npt.ArrayLike, triangles: npt.ArrayLike) -> "Mesh":
        """
        Build a mesh from row-wise arrays.

        Args:
            points: Node coordinates, shape (N, 2) or (N, 3) (z is dropped)
            triangles: Triangle vertex indices, shape (M, 3)

        Returns:
            Mesh
        """
        points = np.asarray(points, dtype=np.float64)
        triangles = np.asarray(triangles)

        if points.ndim != 2 or points.shape[1] not in (2, 3):
            raise MeshError(f"points must have shape (N, 2) or (N, 3), got {points.shape}")
        if triangles.ndim != 2 or triangles.shape[1] != 3:
            raise NonTriangularCellError(
                f"every cell must have exactly 3 vertices, got cells of shape {triangles.shape}"
            )

        return cls(points[:, :2].T, triangles.T)

    @classmethod
    def rectangle(
        cls,
        x_min: float,
        x_max: float,
        y_min: float,
        y_max: float,
        num_elements_x: int,
        num_elements_y: int,
        pattern: str = "diagonal",
    ) -> "Mesh":
        """
        Generate a structured triangulation of a rectangle.

        Args:
            x_min: Left boundary of the domain
            x_max: Right boundary of the domain
            y_min: Bottom boundary of the domain
            y_max: Top boundary of the domain
            num_elements_x: Number of grid cells in x direction
            num_elements_y: Number of grid cells in y direction
            pattern: "diagonal" (2 triangles per cell) or "crossed" (4 per cell)
        """
        if pattern not in PATTERNS:
            raise ValueError(f"Unknown pattern '{pattern}', expected one of {PATTERNS}")
        if num_elements_x < 1 or num_elements_y < 1:
            raise ValueError("Number of elements must be positive in each direction")
        if not (x_max > x_min and y_max > y_min):
            raise ValueError("Domain bounds must satisfy x_min < x_max and y_min < y_max")

        coordinates = _generate_grid_coordinates(
            x_min, x_max, y_min, y_max, num_elements_x, num_elements_y
        )
        coordinates, connectivity = _generate_triangles(
            coordinates, num_elements_x, num_elements_y, pattern
        )
        return cls(coordinates, connectivity)

    @classmethod
    def unit_square(cls, nx: int, ny: Optional[int] = None, pattern: str = "diagonal") -> "Mesh":
        """Structured triangulation of (0,1)x(0,1)."""
        return cls.rectangle(0.0, 1.0, 0.0, 1.0, nx, nx if ny is None else ny, pattern)

    def _find_edges(self) -> npt.NDArray[np.int64]:
        """
        Unique undirected edges, one row (a, b) with a < b per edge.

        Collapsed edges of malformed cells (a == b) are skipped. The number
        of triangles sharing each edge is kept in self.edge_counts.
        """
        if self.num_elements == 0:
            self.edge_counts = np.zeros(0, dtype=np.int64)
            return np.zeros((0, 2), dtype=np.int64)
        c = self.connectivity
        pairs = np.hstack([c[[0, 1]], c[[1, 2]], c[[2, 0]]]).T
        pairs = np.sort(pairs, axis=1)
        pairs = pairs[pairs[:, 0] != pairs[:, 1]]
        edges, self.edge_counts = np.unique(pairs, axis=0, return_counts=True)
        return edges

    def _find_boundary_nodes(self) -> npt.NDArray[np.int64]:
        """
        Find all boundary nodes in the mesh.

        A node is on the boundary when it belongs to an edge used by
        exactly one triangle.

        Returns:
            Sorted array of boundary node indices
        """
        return np.unique(self.edges[self.edge_counts == 1].ravel()).astype(np.int64)

    def is_boundary(self, node_index: int) -> bool:
        return bool(self._boundary_mask[node_index])

    @property
    def h(self) -> float:
        """Longest edge length of the mesh."""
        if self.num_edges == 0:
            return 0.0
        d = self.coordinates[:, self.edges[:, 0]] - self.coordinates[:, self.edges[:, 1]]
        return float(np.max(np.hypot(d[0], d[1])))

    def get_element_nodes(self, element_index: int) -> npt.NDArray[np.int64]:
        """
        Get the node indices of an element.

        Args:
            element_index: Element index

        Returns:
            Array of node indices
        """
        return self.connectivity[:, element_index]

    def cells(self):
        """Iterate over (element_index, node_indices) pairs."""
        for e in range(self.num_elements):
            yield e, self.connectivity[:, e]

    def get_element_coordinates(self, element_index: int) -> tuple:
        """
        Get the coordinates of the nodes of an element.

        Args:
            element_index: Element index

        Returns:
            Tuple (x_coords, y_coords) of node coordinates
        """
        nodes = self.get_element_nodes(element_index)
        x_coords = self.coordinates[0, nodes]
        y_coords = self.coordinates[1, nodes]

        return x_coords, y_coords

    def summary(self) -> None:
        logger.info("Number of cells: %d", self.num_elements)
        logger.info("Number of edges: %d", self.num_edges)
        logger.info("Number of nodes: %d", self.num_nodes)
        logger.info("Number of boundary nodes: %d", len(self.boundary_nodes))

    def triangulation(self) -> Triangulation:
        return Triangulation(self.coordinates[0], self.coordinates[1], self.connectivity.T)

    def plot(
        self,
        values: Optional[npt.NDArray[np.float64]] = None,
        title: str = "Mesh",
        save_path: Optional[str] = None,
        show: bool = True,
    ) -> None:
        """
        Plot the mesh and optionally nodal values.

        Args:
            values: Nodal values to plot (colormap)
            title: Plot title
            save_path: Optional file to save the figure to
            show: Whether to display the figure
        """
        fig, ax = plt.subplots(figsize=(10, 8))
        tri = self.triangulation()

        if values is None:
            interior = np.setdiff1d(np.arange(self.num_nodes), self.boundary_nodes)
            ax.scatter(
                self.coordinates[0, interior],
                self.coordinates[1, interior],
                c="blue",
                label="Interior Nodes",
            )
            ax.scatter(
                self.coordinates[0, self.boundary_nodes],
                self.coordinates[1, self.boundary_nodes],
                c="red",
                label="Boundary Nodes",
            )
            ax.legend()
        else:
            cf = ax.tricontourf(tri, values, 20, cmap="viridis")
            fig.colorbar(cf, ax=ax, label="Value")

        # Overlay mesh
        ax.triplot(tri, "k-", lw=0.5)

        ax.set_xlabel("x")
        ax.set_ylabel("y")
        ax.set_title(title)
        ax.set_aspect("equal")
        if save_path:
            fig.savefig(save_path)
        if show:
            plt.show()
        plt.close(fig)
