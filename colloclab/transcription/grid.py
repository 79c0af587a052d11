# colloclab/transcription/grid.py
"""
Normalized time grids and quadrature coefficients for each transcription scheme.

All grids live on [0, 1]. Mesh points are the interval boundaries; schemes
with interior collocation points insert them between consecutive mesh points.
Quadrature coefficients approximate the integral over [0, 1] as a weighted sum
over grid points, so they always sum to one; the duration multiplier scales
integrals to physical time.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..cl_types import BoolArray, FloatArray, IntArray
from ..exceptions import DataIntegrityError
from ..input_validation import validate_normalized_mesh, validate_positive_integer
from ..utils.constants import QUADRATURE_TOLERANCE
from .radau import compute_radau_collocation_components


@dataclass(frozen=True)
class TranscriptionGrid:
    """
    Grid layout of one transcription.

    Attributes:
        grid: Normalized grid points (mesh and collocation points), increasing
        mesh: Normalized mesh points, a subsequence of grid
        mesh_indices: Positions of the mesh points within grid
        quadrature_coefficients: Integration weights, one per grid point
        kinematic_indices: True where algebraic residuals are enforced
    """

    grid: FloatArray
    mesh: FloatArray
    mesh_indices: IntArray
    quadrature_coefficients: FloatArray
    kinematic_indices: BoolArray

    def __post_init__(self) -> None:
        num_points = len(self.grid)
        for name in ("quadrature_coefficients", "kinematic_indices"):
            if len(getattr(self, name)) != num_points:
                raise DataIntegrityError(
                    f"{name} has length {len(getattr(self, name))}, expected {num_points}",
                    "Grid construction",
                )
        if not np.allclose(self.grid[self.mesh_indices], self.mesh):
            raise DataIntegrityError("Mesh points are not a subsequence of the grid")
        if abs(float(np.sum(self.quadrature_coefficients)) - 1.0) > QUADRATURE_TOLERANCE:
            raise DataIntegrityError(
                f"Quadrature coefficients sum to {np.sum(self.quadrature_coefficients)}, not 1",
                "Grid construction",
            )
        for array in (
            self.grid,
            self.mesh,
            self.mesh_indices,
            self.quadrature_coefficients,
            self.kinematic_indices,
        ):
            array.setflags(write=False)

    @property
    def num_grid_points(self) -> int:
        return len(self.grid)

    @property
    def num_mesh_intervals(self) -> int:
        return len(self.mesh) - 1

    @property
    def mesh_interval_lengths(self) -> FloatArray:
        return np.diff(self.mesh)


def create_mesh(num_mesh_intervals: int, mesh: Sequence[float] | None = None) -> FloatArray:
    """Create a uniform normalized mesh, or validate a user-supplied one."""
    validate_positive_integer(num_mesh_intervals, "number of mesh intervals")
    if mesh is None:
        return np.linspace(0.0, 1.0, num_mesh_intervals + 1, dtype=np.float64)

    mesh_array = np.array(mesh, dtype=np.float64)
    validate_normalized_mesh(mesh_array, num_mesh_intervals)
    return mesh_array


def create_trapezoidal_grid(mesh: FloatArray) -> TranscriptionGrid:
    """Grid equal to the mesh, with trapezoidal-rule weights."""
    h = np.diff(mesh)
    quadrature = np.zeros(len(mesh), dtype=np.float64)
    quadrature[:-1] += 0.5 * h
    quadrature[1:] += 0.5 * h

    return TranscriptionGrid(
        grid=mesh.copy(),
        mesh=mesh.copy(),
        mesh_indices=np.arange(len(mesh)),
        quadrature_coefficients=quadrature,
        kinematic_indices=np.ones(len(mesh), dtype=bool),
    )


def create_hermite_simpson_grid(mesh: FloatArray) -> TranscriptionGrid:
    """Mesh plus interval midpoints, with Simpson-rule weights."""
    num_intervals = len(mesh) - 1
    num_points = 2 * num_intervals + 1
    h = np.diff(mesh)

    grid = np.empty(num_points, dtype=np.float64)
    grid[0::2] = mesh
    grid[1::2] = mesh[:-1] + 0.5 * h

    quadrature = np.zeros(num_points, dtype=np.float64)
    quadrature[0:-1:2] += h / 6.0
    quadrature[1::2] += 4.0 * h / 6.0
    quadrature[2::2] += h / 6.0

    # Algebraic residuals only at mesh points; midpoints carry interpolated values
    kinematic = np.zeros(num_points, dtype=bool)
    kinematic[0::2] = True

    return TranscriptionGrid(
        grid=grid,
        mesh=mesh.copy(),
        mesh_indices=np.arange(0, num_points, 2),
        quadrature_coefficients=quadrature,
        kinematic_indices=kinematic,
    )


def create_legendre_gauss_radau_grid(mesh: FloatArray, degree: int) -> TranscriptionGrid:
    """Mesh plus the interior Radau points of each interval, with Radau weights."""
    components = compute_radau_collocation_components(degree)
    num_intervals = len(mesh) - 1
    num_points = num_intervals * degree + 1
    h = np.diff(mesh)

    # Map [-1, 1) collocation nodes onto each interval; the last mesh point closes the grid
    unit_nodes = 0.5 * (components.collocation_nodes + 1.0)
    grid = np.empty(num_points, dtype=np.float64)
    quadrature = np.zeros(num_points, dtype=np.float64)
    for k in range(num_intervals):
        start = k * degree
        grid[start : start + degree] = mesh[k] + h[k] * unit_nodes
        grid[start] = mesh[k]
        quadrature[start : start + degree] += 0.5 * h[k] * components.quadrature_weights
    grid[-1] = mesh[-1]

    return TranscriptionGrid(
        grid=grid,
        mesh=mesh.copy(),
        mesh_indices=np.arange(0, num_points, degree),
        quadrature_coefficients=quadrature,
        kinematic_indices=np.ones(num_points, dtype=bool),
    )
