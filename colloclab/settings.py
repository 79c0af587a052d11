"""
Solver configuration passed into a transcription.

The solver and plugin option dictionaries are opaque here: they are forwarded
to the NLP backend untouched and validated by the backend itself.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any


logger = logging.getLogger(__name__)

# Default solver options
DEFAULT_NLP_OPTIONS: dict[str, object] = {
    "ipopt.print_level": 0,
    "ipopt.sb": "yes",
    "print_time": 0,
}


@dataclass(frozen=True)
class SolverSettings:
    """
    Transcription and NLP solver configuration.

    Attributes:
        transcription_scheme: "trapezoidal", "hermite-simpson" or
            "legendre-gauss-radau-<degree>"
        num_mesh_intervals: Number of mesh intervals of the uniform mesh
        mesh: Optional normalized mesh (from 0 to 1, num_mesh_intervals + 1 points)
        optim_solver: Name of the casadi nlpsol plugin
        solver_options: Options for the optim_solver plugin itself
        plugin_options: Options for the casadi nlpsol wrapper
        interpolate_control_midpoints: Hermite-Simpson only; constrain midpoint
            controls to the mean of the neighbouring mesh-point controls
    """

    transcription_scheme: str = "trapezoidal"
    num_mesh_intervals: int = 10
    mesh: Sequence[float] | None = None
    optim_solver: str = "ipopt"
    solver_options: dict[str, Any] = field(default_factory=dict)
    plugin_options: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_NLP_OPTIONS))
    interpolate_control_midpoints: bool = True

    def create_nlpsol_options(self) -> dict[str, Any]:
        """Merge plugin and solver options into the dictionary handed to nlpsol."""
        options: dict[str, Any] = dict(self.plugin_options)
        if self.solver_options:
            # Dotted plugin keys ("ipopt.tol") and the nested solver dict must not coexist
            prefix = f"{self.optim_solver}."
            nested = {
                key[len(prefix) :]: options.pop(key)
                for key in list(options)
                if key.startswith(prefix)
            }
            nested.update(self.solver_options)
            options[self.optim_solver] = nested
        logger.debug("NLP solver options for '%s': %s", self.optim_solver, options)
        return options
