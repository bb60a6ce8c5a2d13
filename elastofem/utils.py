"""
Utility functions for FEM analysis.
"""

import logging

import numpy as np
import matplotlib.pyplot as plt
from tqdm import tqdm
from typing import Dict, List, Optional
import numpy.typing as npt

from .config import ProblemConfig
from .manufactured import ManufacturedSolution, make_problem
from .mesh import Mesh

logger = logging.getLogger(__name__)


def convergence_rates(h_values: List[float], errors: List[float]) -> List[float]:
    """Observed orders log(e_i / e_{i+1}) / log(h_i / h_{i+1})."""
    return [
        float(np.log(errors[i] / errors[i + 1]) / np.log(h_values[i] / h_values[i + 1]))
        for i in range(len(h_values) - 1)
    ]


def convergence_study(
    solution: ManufacturedSolution,
    element_counts: List[int],
    config: Optional[ProblemConfig] = None,
    pattern: str = "diagonal",
    plot: bool = False,
    save_path: Optional[str] = None,
) -> Dict[str, List[float]]:
    """
    Perform a convergence study on a sequence of unit-square meshes.

    Args:
        solution: Manufactured solution providing Dirichlet values and forcing
        element_counts: Number of grid cells per direction for each level
        config: Problem configuration
        pattern: Triangulation pattern of the structured meshes
        plot: Whether to plot the error against h
        save_path: Optional file to save the plot to

    Returns:
        Dictionary containing h_values, c_errors and rates
    """
    h_values = []
    c_errors = []

    for n in tqdm(element_counts, desc="Convergence study"):
        mesh = Mesh.unit_square(n, pattern=pattern)
        problem = make_problem(mesh, solution, config)
        report = problem.run()

        h_values.append(mesh.h)
        c_errors.append(report.c_norm)
        logger.info(
            "Elements: %dx%d, h = %.6f, |err|_C = %.6e", n, n, mesh.h, report.c_norm
        )

    rates = convergence_rates(h_values, c_errors)
    for i, rate in enumerate(rates):
        logger.info("Refinement %d: rate = %.2f", i + 1, rate)

    results = {"h_values": h_values, "c_errors": c_errors, "rates": rates}

    if plot:
        plot_convergence(results, save_path=save_path)

    return results


def plot_convergence(
    results: Dict[str, List[float]],
    save_path: Optional[str] = None,
    show: bool = True,
) -> None:
    """
    Plot the C-norm error against the mesh size on log-log axes.

    Args:
        results: Output of convergence_study
        save_path: Optional file to save the figure to
        show: Whether to display the figure
    """
    h_values = np.asarray(results["h_values"])
    c_errors = np.asarray(results["c_errors"])
    rates = results["rates"]
    mean_rate = np.mean(rates) if rates else float("nan")

    fig, ax = plt.subplots(figsize=(10, 8))
    ax.loglog(h_values, c_errors, "o-", label=f"|err|_C (Rate ≈ {mean_rate:.2f})")

    # Reference line
    ref_h = np.array([h_values[0], h_values[-1]])
    ax.loglog(ref_h, ref_h**2 * c_errors[0] / h_values[0] ** 2, "k--", label="O(h²)")

    ax.set_xlabel("Element Size (h)")
    ax.set_ylabel("Error")
    ax.set_title("FEM Convergence Study")
    ax.grid(True, which="both")
    ax.legend()
    if save_path:
        fig.savefig(save_path)
    if show:
        plt.show()
    plt.close(fig)


def plot_displacement(
    mesh: Mesh,
    displacement: npt.NDArray[np.float64],
    scale: float = 1.0,
    title: str = "Displacement",
    save_path: Optional[str] = None,
    show: bool = True,
) -> None:
    """
    Plot the displacement magnitude on the deformed mesh.

    Args:
        mesh: The undeformed mesh
        displacement: Nodal displacements, shape (num_nodes, 2)
        scale: Magnification of the displacement
        title: Plot title
        save_path: Optional file to save the figure to
        show: Whether to display the figure
    """
    displacement = np.asarray(displacement)
    magnitude = np.hypot(displacement[:, 0], displacement[:, 1])

    fig, ax = plt.subplots(figsize=(10, 8))
    undeformed = mesh.triangulation()
    ax.triplot(undeformed, color="0.7", lw=0.5)

    deformed = Mesh(mesh.coordinates + scale * displacement.T, mesh.connectivity).triangulation()
    if np.ptp(magnitude) > 0:
        cf = ax.tripcolor(deformed, magnitude, shading="gouraud", cmap="viridis")
        fig.colorbar(cf, ax=ax, label="|u|")
    ax.triplot(deformed, "k-", lw=0.5)

    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(f"{title} (scale {scale:g})")
    ax.set_aspect("equal")
    if save_path:
        fig.savefig(save_path)
    if show:
        plt.show()
    plt.close(fig)
