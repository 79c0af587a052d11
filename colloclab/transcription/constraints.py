# colloclab/transcription/constraints.py
"""
Append-only constraint accumulation and the path/boundary constraint emitters.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import casadi as ca
import numpy as np

from ..cl_types import Constraint, FloatArray
from ..exceptions import ColloclabBaseError, ConfigurationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintBlock:
    """A vector of constraint expressions with elementwise lower/upper bounds."""

    label: str
    lower: FloatArray
    upper: FloatArray
    expression: ca.MX

    @property
    def size(self) -> int:
        return int(self.expression.numel())


class ConstraintAccumulator:
    """
    Ordered collection of constraint blocks built during assembly.

    Blocks can only be appended; their order is the row order of the NLP
    constraint vector.
    """

    def __init__(self) -> None:
        self._blocks: list[ConstraintBlock] = []

    def add(self, label: str, lower: Any, upper: Any, expression: ca.MX) -> None:
        """Append a block; matrix expressions are vectorised column-major."""
        column = ca.vec(ca.MX(expression))
        size = int(column.numel())
        if size == 0:
            return
        lower_array = np.asarray(lower, dtype=np.float64).reshape(-1, order="F")
        upper_array = np.asarray(upper, dtype=np.float64).reshape(-1, order="F")

        block = ConstraintBlock(
            label=label,
            lower=np.array(np.broadcast_to(lower_array, size), dtype=np.float64),
            upper=np.array(np.broadcast_to(upper_array, size), dtype=np.float64),
            expression=column,
        )
        block.lower.setflags(write=False)
        block.upper.setflags(write=False)
        self._blocks.append(block)
        logger.debug("Added constraint block '%s' with %d rows", label, size)

    def add_equality(self, label: str, expression: ca.MX) -> None:
        self.add(label, 0.0, 0.0, expression)

    def add_constraint(self, label: str, constraint: Constraint) -> None:
        if not isinstance(constraint, Constraint):
            raise ConfigurationError(
                f"Expected Constraint, got {type(constraint)}", f"Constraint '{label}'"
            )
        self.add(label, constraint.lower, constraint.upper, constraint.val)

    def freeze(self) -> tuple[ConstraintBlock, ...]:
        return tuple(self._blocks)


def _as_constraint_list(result: Constraint | Sequence[Constraint] | None) -> list[Constraint]:
    if result is None:
        return []
    if isinstance(result, Constraint):
        return [result]
    return list(result)


def apply_path_constraints(
    constraints: ConstraintAccumulator,
    path_constraints_function: Callable[..., Any],
    states: ca.MX,
    controls: ca.MX,
    multipliers: ca.MX,
    parameters: ca.MX,
    times: ca.MX,
) -> None:
    """Evaluate path constraints at every grid point and append one block per constraint."""
    num_grid_points = states.shape[1]
    per_point: list[list[Constraint]] = []

    for i in range(num_grid_points):
        try:
            result = path_constraints_function(
                states[:, i], controls[:, i], multipliers[:, i], parameters, times[0, i]
            )
        except ColloclabBaseError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Path constraints evaluation failed at grid point {i}: {e}",
                "Path constraints callback error",
            ) from e
        per_point.append(_as_constraint_list(result))

    num_constraints = len(per_point[0]) if per_point else 0
    if any(len(point) != num_constraints for point in per_point):
        raise ConfigurationError(
            "Path constraints function must return the same number of constraints at every point",
            "Path constraints callback error",
        )

    # One block per constraint, columns ordered by grid point
    for j in range(num_constraints):
        if not all(isinstance(point[j], Constraint) for point in per_point):
            raise ConfigurationError(
                f"Path constraint {j} must be a Constraint at every grid point",
                "Path constraints callback error",
            )
        columns = [ca.vec(ca.MX(point[j].val)) for point in per_point]
        sizes = {column.shape[0] for column in columns}
        if len(sizes) != 1:
            raise ConfigurationError(
                f"Path constraint {j} changes size between grid points: {sorted(sizes)}",
                "Path constraints callback error",
            )
        values = ca.horzcat(*columns)
        lower = np.array([point[j].lower for point in per_point], dtype=np.float64)
        upper = np.array([point[j].upper for point in per_point], dtype=np.float64)
        if values.shape[0] != 1:
            lower = np.repeat(lower, values.shape[0])
            upper = np.repeat(upper, values.shape[0])
        constraints.add(f"path constraint {j}", lower, upper, values)


def apply_boundary_constraints(
    constraints: ConstraintAccumulator,
    boundary_constraints_function: Callable[..., Any],
    initial_time: ca.MX,
    final_time: ca.MX,
    initial_states: ca.MX,
    final_states: ca.MX,
    parameters: ca.MX,
) -> None:
    """Evaluate boundary constraints on the endpoint values and append them in order."""
    try:
        result = boundary_constraints_function(
            initial_time, final_time, initial_states, final_states, parameters
        )
    except ColloclabBaseError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Boundary constraints evaluation failed: {e}", "Boundary constraints callback error"
        ) from e

    for j, constraint in enumerate(_as_constraint_list(result)):
        constraints.add_constraint(f"boundary constraint {j}", constraint)
