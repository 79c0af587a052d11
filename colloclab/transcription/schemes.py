# colloclab/transcription/schemes.py
"""
Transcription scheme variants.

Each variant is a frozen value exposing the same two operations: build the
normalized grid for a mesh, and append the defect constraints that tie the
discrete states to the dynamics. The set of variants is closed; new schemes
are added here and to parse_transcription_scheme.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, TypeAlias

import casadi as ca

from ..cl_types import FloatArray
from ..exceptions import ConfigurationError
from ..utils.constants import MAX_RADAU_DEGREE
from .constraints import ConstraintAccumulator
from .grid import (
    TranscriptionGrid,
    create_hermite_simpson_grid,
    create_legendre_gauss_radau_grid,
    create_mesh,
    create_trapezoidal_grid,
)
from .radau import compute_radau_collocation_components


@dataclass(frozen=True)
class DefectContext:
    """Symbolic quantities the defect equations are written in."""

    grid: TranscriptionGrid
    states: ca.MX
    controls: ca.MX
    multipliers: ca.MX
    state_derivatives: ca.MX
    duration: ca.MX


def _interval_steps(duration: ca.MX, interval_lengths: FloatArray, num_rows: int) -> ca.MX:
    """Physical interval lengths as a (num_rows, num_intervals) matrix."""
    return duration * ca.repmat(ca.DM(interval_lengths).T, num_rows, 1)


def _midpoint_interpolation(
    values: ca.MX, left: list[int], mid: list[int], right: list[int]
) -> ca.MX:
    return values[:, mid] - 0.5 * (values[:, left] + values[:, right])


@dataclass(frozen=True)
class Trapezoidal:
    """Trapezoidal rule between consecutive mesh points."""

    name: ClassVar[str] = "trapezoidal"

    def create_grid(self, mesh: FloatArray) -> TranscriptionGrid:
        return create_trapezoidal_grid(mesh)

    def apply_defects(self, context: DefectContext, constraints: ConstraintAccumulator) -> None:
        x = context.states
        f = context.state_derivatives
        num_points = x.shape[1]
        left = list(range(num_points - 1))
        right = list(range(1, num_points))

        h = _interval_steps(context.duration, context.grid.mesh_interval_lengths, x.shape[0])
        constraints.add_equality(
            "defects (trapezoidal)",
            x[:, right] - x[:, left] - 0.5 * h * (f[:, right] + f[:, left]),
        )


@dataclass(frozen=True)
class HermiteSimpson:
    """Separated Hermite-Simpson: Simpson quadrature plus Hermite midpoint interpolation."""

    name: ClassVar[str] = "hermite-simpson"
    interpolate_control_midpoints: bool = True

    def create_grid(self, mesh: FloatArray) -> TranscriptionGrid:
        return create_hermite_simpson_grid(mesh)

    def apply_defects(self, context: DefectContext, constraints: ConstraintAccumulator) -> None:
        x = context.states
        f = context.state_derivatives
        num_points = x.shape[1]
        left = list(range(0, num_points - 1, 2))
        mid = list(range(1, num_points, 2))
        right = list(range(2, num_points, 2))

        h = _interval_steps(context.duration, context.grid.mesh_interval_lengths, x.shape[0])
        constraints.add_equality(
            "defects (simpson)",
            x[:, right] - x[:, left] - h / 6.0 * (f[:, left] + 4.0 * f[:, mid] + f[:, right]),
        )
        constraints.add_equality(
            "defects (hermite interpolant)",
            _midpoint_interpolation(x, left, mid, right) - h / 8.0 * (f[:, left] - f[:, right]),
        )

        if self.interpolate_control_midpoints and context.controls.shape[0] > 0:
            constraints.add_equality(
                "control midpoint interpolation",
                _midpoint_interpolation(context.controls, left, mid, right),
            )
        # Residuals are not enforced at midpoints, so midpoint multipliers would be free
        if context.multipliers.shape[0] > 0:
            constraints.add_equality(
                "multiplier midpoint interpolation",
                _midpoint_interpolation(context.multipliers, left, mid, right),
            )


@dataclass(frozen=True)
class LegendreGaussRadau:
    """Pseudospectral collocation at the Legendre-Gauss-Radau points of each interval."""

    name: ClassVar[str] = "legendre-gauss-radau"
    degree: int = 3

    def create_grid(self, mesh: FloatArray) -> TranscriptionGrid:
        return create_legendre_gauss_radau_grid(mesh, self.degree)

    def apply_defects(self, context: DefectContext, constraints: ConstraintAccumulator) -> None:
        components = compute_radau_collocation_components(self.degree)
        diff_matrix_t = ca.DM(components.differentiation_matrix).T
        x = context.states
        f = context.state_derivatives
        d = self.degree

        defects = []
        for k, h_k in enumerate(context.grid.mesh_interval_lengths):
            nodes = list(range(k * d, k * d + d + 1))
            defects.append(
                ca.mtimes(x[:, nodes], diff_matrix_t)
                - 0.5 * float(h_k) * context.duration * f[:, nodes[:-1]]
            )
        constraints.add_equality(f"defects (radau {d})", ca.horzcat(*defects))

        # The closing grid point is not collocated; its control follows the last interval
        u = context.controls
        if u.shape[0] > 0:
            last_interval = list(range(u.shape[1] - 1 - d, u.shape[1] - 1))
            extrapolation = ca.DM(components.collocation_lagrange_at_tau_plus_one)
            constraints.add_equality(
                "final control extrapolation",
                u[:, -1] - ca.mtimes(u[:, last_interval], extrapolation),
            )


TranscriptionScheme: TypeAlias = Trapezoidal | HermiteSimpson | LegendreGaussRadau

_RADAU_PATTERN = re.compile(r"^legendre-gauss-radau-(\d+)$")


def parse_transcription_scheme(
    name: str, interpolate_control_midpoints: bool = True
) -> TranscriptionScheme:
    """
    Resolve a scheme identity string into a scheme variant.

    Args:
        name: "trapezoidal", "hermite-simpson" or "legendre-gauss-radau-<degree>"
        interpolate_control_midpoints: Forwarded to Hermite-Simpson

    Raises:
        ConfigurationError: If the name does not denote a supported scheme
    """
    if not isinstance(name, str):
        raise ConfigurationError(f"Transcription scheme must be a string, got {type(name)}")

    if name == Trapezoidal.name:
        return Trapezoidal()
    if name == HermiteSimpson.name:
        return HermiteSimpson(interpolate_control_midpoints=interpolate_control_midpoints)

    match = _RADAU_PATTERN.match(name)
    if match is not None:
        degree = int(match.group(1))
        if not 1 <= degree <= MAX_RADAU_DEGREE:
            raise ConfigurationError(
                f"Radau degree must be between 1 and {MAX_RADAU_DEGREE}, got {degree}",
                f"Transcription scheme '{name}'",
            )
        return LegendreGaussRadau(degree=degree)

    raise ConfigurationError(
        f"Unsupported transcription scheme '{name}'",
        "Expected 'trapezoidal', 'hermite-simpson' or 'legendre-gauss-radau-<degree>'",
    )


def create_grid(
    scheme: str | TranscriptionScheme,
    num_mesh_intervals: int,
    mesh: Sequence[float] | None = None,
) -> TranscriptionGrid:
    """Build the normalized grid of a scheme on a uniform or user-supplied mesh."""
    if isinstance(scheme, str):
        scheme = parse_transcription_scheme(scheme)
    return scheme.create_grid(create_mesh(num_mesh_intervals, mesh))
