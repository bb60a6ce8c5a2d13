import numpy as np
import pytest

from elastofem.errors import MeshError, NonTriangularCellError
from elastofem.mesh import Mesh
from elastofem.shape_functions import ShapeFunctions


def _signed_dets(mesh):
    return np.array(
        [
            ShapeFunctions.edge_jacobian_determinant(*mesh.get_element_coordinates(e))
            for e in range(mesh.num_elements)
        ]
    )


def test_diagonal_unit_square():
    mesh = Mesh.unit_square(2)
    assert mesh.num_nodes == 9
    assert mesh.num_elements == 8
    assert mesh.num_edges == 16
    assert mesh.boundary_nodes.tolist() == [0, 1, 2, 3, 5, 6, 7, 8]
    assert not mesh.is_boundary(4)
    assert mesh.h == pytest.approx(np.sqrt(2.0) / 2.0)


def test_crossed_unit_square():
    mesh = Mesh.unit_square(1, pattern="crossed")
    assert mesh.num_nodes == 5
    assert mesh.num_elements == 4
    assert mesh.boundary_nodes.tolist() == [0, 1, 2, 3]
    assert np.allclose(mesh.coordinates[:, 4], [0.5, 0.5])


@pytest.mark.parametrize("pattern", ["diagonal", "crossed"])
def test_generated_triangles_are_counter_clockwise(pattern):
    mesh = Mesh.rectangle(-1.0, 2.0, 0.0, 1.0, 3, 2, pattern=pattern)
    dets = _signed_dets(mesh)
    assert np.all(dets > 0)
    assert 0.5 * dets.sum() == pytest.approx(3.0)


def test_rectangle_arguments_validated():
    with pytest.raises(ValueError):
        Mesh.rectangle(0.0, 1.0, 0.0, 1.0, 2, 2, pattern="hexagonal")
    with pytest.raises(ValueError):
        Mesh.rectangle(0.0, 1.0, 0.0, 1.0, 0, 2)
    with pytest.raises(ValueError):
        Mesh.rectangle(1.0, 0.0, 0.0, 1.0, 2, 2)


def test_from_arrays_drops_z():
    points = np.array([[0.0, 0.0, 5.0], [1.0, 0.0, 5.0], [0.0, 1.0, 5.0]])
    mesh = Mesh.from_arrays(points, [[0, 1, 2]])
    assert mesh.coordinates.shape == (2, 3)
    assert mesh.get_element_nodes(0).tolist() == [0, 1, 2]
    assert mesh.boundary_nodes.tolist() == [0, 1, 2]


def test_non_triangular_cells_rejected():
    coordinates = np.array([[0.0, 1.0, 1.0, 0.0], [0.0, 0.0, 1.0, 1.0]])
    with pytest.raises(NonTriangularCellError):
        Mesh(coordinates, np.array([[0], [1], [2], [3]]))
    with pytest.raises(NonTriangularCellError):
        Mesh.from_arrays(coordinates.T, [[0, 1, 2, 3]])


def test_invalid_mesh_arrays_rejected():
    coordinates = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    with pytest.raises(MeshError):
        Mesh(coordinates, np.array([[0], [1], [3]]))
    with pytest.raises(MeshError):
        Mesh(coordinates.T, np.array([[0], [1], [2]]))
    with pytest.raises(MeshError):
        Mesh(np.array([[0.0, 1.0, np.nan], [0.0, 0.0, 1.0]]), np.array([[0], [1], [2]]))
    with pytest.raises(MeshError):
        Mesh(coordinates, np.array([[0.0], [1.0], [2.0]]))


def test_collapsed_cell_is_accepted_by_the_mesh():
    # Validation of distinct nodes happens at assembly
    coordinates = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    mesh = Mesh(coordinates, np.array([[0, 0], [1, 0], [2, 1]]))
    assert mesh.num_elements == 2


def test_plot_saves_figure(tmp_path):
    mesh = Mesh.unit_square(2)
    path = tmp_path / "mesh.png"
    mesh.plot(save_path=str(path), show=False)
    assert path.exists()


def test_cells_iterates_connectivity():
    mesh = Mesh.unit_square(2, pattern="crossed")
    cells = list(mesh.cells())
    assert len(cells) == mesh.num_elements
    e, nodes = cells[5]
    assert e == 5
    assert np.array_equal(nodes, mesh.get_element_nodes(5))
