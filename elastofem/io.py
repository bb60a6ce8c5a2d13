"""
Mesh input and result output through meshio.

Any format meshio understands can be read (.vtk, .vtu, .msh, ...), as long
as every two-dimensional cell block is made of triangles. Point and line
blocks (boundary markers written by mesh generators) are ignored.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import meshio
import numpy as np
import numpy.typing as npt

from .errors import MeshError, NonTriangularCellError
from .mesh import Mesh

logger = logging.getLogger(__name__)

_IGNORED_CELL_TYPES = ("vertex", "line", "line3")


def read_mesh(filename: str) -> Mesh:
    """
    Load a 2D triangular mesh.

    Points that no triangle references are dropped and the remaining
    points renumbered in their original order.

    Args:
        filename: Path to the mesh file

    Returns:
        Mesh

    Raises:
        NonTriangularCellError: if the mesh has 2D cells that are not triangles
        MeshError: if the file cannot be read or holds no triangles
    """
    try:
        raw = meshio.read(filename)
    except meshio.ReadError as err:
        raise MeshError(f"{filename}: {err}") from err

    blocks = []
    for block in raw.cells:
        if block.type == "triangle":
            blocks.append(np.asarray(block.data))
        elif block.type in _IGNORED_CELL_TYPES:
            continue
        else:
            raise NonTriangularCellError(
                f"{filename}: cell block of type '{block.type}' is not triangular"
            )

    if not blocks:
        raise MeshError(f"{filename}: no triangle cells found")

    points = np.asarray(raw.points, dtype=np.float64)
    triangles = np.vstack(blocks)

    # Points no triangle uses (arc centres, geometry seeds) carry no stiffness
    used, triangles = np.unique(triangles, return_inverse=True)
    triangles = triangles.reshape(-1, 3)
    if used.size < points.shape[0]:
        logger.warning(
            "%s: dropping %d point(s) not referenced by any triangle",
            filename,
            points.shape[0] - used.size,
        )

    mesh = Mesh.from_arrays(points[used, :2], triangles)
    logger.info("Loaded mesh '%s'", filename)
    mesh.summary()
    return mesh


def _to_meshio(
    mesh: Mesh,
    points: npt.NDArray[np.float64],
    point_data: Optional[Dict[str, npt.NDArray[np.float64]]] = None,
    cell_data: Optional[Dict[str, npt.NDArray[np.float64]]] = None,
) -> meshio.Mesh:
    # meshio's VTK writer expects 3D points
    points3 = np.zeros((mesh.num_nodes, 3))
    points3[:, :2] = points

    normalized_points = {}
    for name, arr in (point_data or {}).items():
        arr = np.asarray(arr)
        if arr.shape[0] != mesh.num_nodes:
            raise ValueError(
                f"point_data['{name}'] length {arr.shape[0]} != num_nodes {mesh.num_nodes}"
            )
        if arr.ndim == 2 and arr.shape[1] == 2:
            # pad 2D vectors so viewers treat them as vectors
            arr = np.hstack([arr, np.zeros((arr.shape[0], 1))])
        normalized_points[name] = arr

    normalized_cells = {}
    for name, arr in (cell_data or {}).items():
        arr = np.asarray(arr)
        if arr.shape[0] != mesh.num_elements:
            raise ValueError(
                f"cell_data['{name}'] length {arr.shape[0]} != num_elements {mesh.num_elements}"
            )
        normalized_cells[name] = [arr]

    return meshio.Mesh(
        points=points3,
        cells=[("triangle", mesh.connectivity.T)],
        point_data=normalized_points,
        cell_data=normalized_cells,
    )


def write_solution(
    filename: str,
    mesh: Mesh,
    point_data: Optional[Dict[str, npt.NDArray[np.float64]]] = None,
    cell_data: Optional[Dict[str, npt.NDArray[np.float64]]] = None,
) -> None:
    """
    Write the mesh with nodal and cell fields.

    Args:
        filename: Output path, the format follows the extension
        mesh: The mesh
        point_data: Per-node arrays, shape (num_nodes,) or (num_nodes, k)
        cell_data: Per-cell arrays, shape (num_elements,) or (num_elements, k)
    """
    out = _to_meshio(mesh, mesh.coordinates.T, point_data, cell_data)
    meshio.write(filename, out)
    logger.info("Solution written to '%s'", filename)


def write_deformed(
    filename: str,
    mesh: Mesh,
    displacement: npt.NDArray[np.float64],
    point_data: Optional[Dict[str, npt.NDArray[np.float64]]] = None,
    scale: float = 1.0,
) -> None:
    """
    Write the mesh with its nodes moved by the displacement field.

    Args:
        filename: Output path
        mesh: The undeformed mesh
        displacement: Nodal displacements, shape (num_nodes, 2)
        point_data: Per-node arrays to attach
        scale: Factor applied to the displacement
    """
    displacement = np.asarray(displacement)
    out = _to_meshio(mesh, mesh.coordinates.T + scale * displacement, point_data)
    meshio.write(filename, out)
    logger.info("Deformed mesh written to '%s'", filename)


@contextmanager
def staged_outputs(*filenames: str) -> Iterator[List[str]]:
    """
    Yield temporary paths standing in for the given output files.

    The temporaries sit next to their targets and keep the extension, so
    meshio picks the same format. They replace the targets only once the
    block finishes; on error they are removed and no target is touched.
    """
    staged: List[str] = []
    try:
        for filename in filenames:
            directory, base = os.path.split(os.path.abspath(filename))
            stem, ext = os.path.splitext(base)
            fd, tmp = tempfile.mkstemp(prefix=f".{stem}.", suffix=ext, dir=directory)
            os.close(fd)
            staged.append(tmp)
        yield list(staged)
    except BaseException:
        for tmp in staged:
            if os.path.exists(tmp):
                os.remove(tmp)
        raise

    for tmp, filename in zip(staged, filenames):
        os.replace(tmp, filename)
