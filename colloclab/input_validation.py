import logging
import math
import numbers
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import casadi as ca
import numpy as np

from .cl_types import DynamicsOutput, FloatArray
from .exceptions import ConfigurationError
from .utils.constants import MESH_TOLERANCE, ZERO_TOLERANCE


if TYPE_CHECKING:
    from .problem import Problem


logger = logging.getLogger(__name__)


# ============================================================================
# CORE VALIDATION PRIMITIVES
# ============================================================================


def validate_positive_integer(value: Any, name: str, min_value: int = 1) -> None:
    """Single source for positive integer validation."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be integer, got {type(value)}")
    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}, got {value}")


def validate_string_not_empty(value: Any, name: str) -> None:
    """Single source for non-empty string validation."""
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be string, got {type(value)}")
    if not value.strip():
        raise ConfigurationError(f"{name} cannot be empty")


# ============================================================================
# BOUND VALIDATION
# ============================================================================


def validate_constraint_input_format(constraint_input: Any, context: str) -> None:
    """SINGLE SOURCE for bound input validation."""
    if constraint_input is None:
        return

    if isinstance(constraint_input, numbers.Real) and not isinstance(constraint_input, bool):
        if math.isnan(constraint_input) or math.isinf(constraint_input):
            raise ConfigurationError(
                f"Equality bound cannot be NaN/infinite: {constraint_input}", context
            )
    elif isinstance(constraint_input, tuple):
        if len(constraint_input) != 2:
            raise ConfigurationError(
                f"Bound tuple must have 2 elements, got {len(constraint_input)}", context
            )

        lower, upper = constraint_input
        for i, val in enumerate([lower, upper]):
            if val is not None:
                if isinstance(val, bool) or not isinstance(val, numbers.Real):
                    raise ConfigurationError(
                        f"Bound {i} must be numeric/None, got {type(val)}", context
                    )
                if math.isnan(val):
                    raise ConfigurationError(f"Bound {i} cannot be NaN", context)

        if lower is not None and upper is not None and lower > upper:
            raise ConfigurationError(f"Lower bound ({lower}) > upper bound ({upper})", context)
    else:
        raise ConfigurationError(f"Invalid bound type: {type(constraint_input)}", context)


# ============================================================================
# MESH VALIDATION
# ============================================================================


def validate_normalized_mesh(mesh: FloatArray, num_mesh_intervals: int) -> None:
    """SINGLE SOURCE for normalized mesh validation."""
    validate_positive_integer(num_mesh_intervals, "number of mesh intervals")

    if mesh.ndim != 1:
        raise ConfigurationError(f"Mesh must be one-dimensional, got shape {mesh.shape}")

    if len(mesh) != num_mesh_intervals + 1:
        raise ConfigurationError(
            f"Mesh points count ({len(mesh)}) != intervals+1 ({num_mesh_intervals + 1})"
        )

    if not np.all(np.isfinite(mesh)):
        raise ConfigurationError("Mesh points cannot be NaN or infinite")

    if not np.isclose(mesh[0], 0.0, atol=ZERO_TOLERANCE):
        raise ConfigurationError(f"First mesh point must be 0.0, got {mesh[0]}")
    if not np.isclose(mesh[-1], 1.0, atol=ZERO_TOLERANCE):
        raise ConfigurationError(f"Last mesh point must be 1.0, got {mesh[-1]}")

    if not np.all(np.diff(mesh) > MESH_TOLERANCE):
        raise ConfigurationError(
            f"Mesh points must be strictly increasing with min spacing {MESH_TOLERANCE}"
        )


# ============================================================================
# PROBLEM VALIDATION
# ============================================================================


def validate_problem_ready_for_transcription(problem: "Problem") -> None:
    """SINGLE SOURCE for problem definition validation before assembly."""
    if problem.dynamics_function is None:
        raise ConfigurationError(
            f"Problem '{problem.name}' has no dynamics function",
            "Call problem.dynamics(function) before transcribing",
        )
    if not callable(problem.dynamics_function):
        raise ConfigurationError(
            f"Dynamics must be callable, got {type(problem.dynamics_function)}",
            f"Problem '{problem.name}'",
        )
    if problem.num_states == 0:
        raise ConfigurationError(
            f"Problem '{problem.name}' must define at least one state", "Problem dimensions"
        )

    for name, function in [
        ("path constraints", problem.path_constraints_function),
        ("integrand", problem.integrand_function),
        ("endpoint cost", problem.endpoint_cost_function),
        ("boundary constraints", problem.boundary_constraints_function),
    ]:
        if function is not None and not callable(function):
            raise ConfigurationError(
                f"{name} must be callable, got {type(function)}", f"Problem '{problem.name}'"
            )

    logger.debug(
        "Problem '%s' validated: states=%d, controls=%d, multipliers=%d, parameters=%d",
        problem.name,
        problem.num_states,
        problem.num_controls,
        problem.num_multipliers,
        problem.num_parameters,
    )


# ============================================================================
# CALLBACK OUTPUT VALIDATION
# ============================================================================


def _as_column(output: Any, expected_rows: int | None, name: str) -> ca.MX:
    if isinstance(output, ca.SX):
        raise ConfigurationError(
            f"{name} returned a ca.SX expression; decision variables are ca.MX",
            "Callback output type error",
        )

    if isinstance(output, ca.MX):
        result = output
    elif isinstance(output, ca.DM | np.ndarray | int | float):
        result = ca.MX(ca.DM(output))
    elif isinstance(output, Sequence) and not isinstance(output, str):
        result = ca.vertcat(*output) if output else ca.MX(0, 1)
        result = ca.MX(result)
    else:
        raise ConfigurationError(
            f"Unsupported {name} output type: {type(output)}", "Callback output type error"
        )

    if result.shape[1] != 1 and result.shape[0] == 1:
        result = result.T
    if result.shape[1] != 1:
        raise ConfigurationError(
            f"{name} must be a column vector, got shape {result.shape}",
            "Callback output shape error",
        )
    if expected_rows is not None and result.shape[0] != expected_rows:
        raise ConfigurationError(
            f"{name} length mismatch: got {result.shape[0]}, expected {expected_rows}",
            "Callback output shape error",
        )
    return result


def validate_dynamics_output(output: Any, num_states: int) -> tuple[ca.MX, ca.MX]:
    """
    Normalize a dynamics callback result into (state derivatives, algebraic residuals).

    Accepts a DynamicsOutput, a ca.MX vector or a list of scalar expressions for
    the derivatives alone. Missing residuals become an empty column.
    """
    if output is None:
        raise ConfigurationError("Dynamics function returned None", "Dynamics evaluation error")

    if isinstance(output, DynamicsOutput):
        derivatives = _as_column(output.state_derivatives, num_states, "Dynamics derivatives")
        if output.algebraic_residuals is None:
            return derivatives, ca.MX(0, 1)
        residuals = _as_column(output.algebraic_residuals, None, "Algebraic residuals")
        return derivatives, residuals

    return _as_column(output, num_states, "Dynamics derivatives"), ca.MX(0, 1)


def validate_scalar_output(output: Any, name: str) -> ca.MX:
    """Normalize a cost callback result into a 1x1 expression."""
    if output is None:
        raise ConfigurationError(f"{name} returned None", "Cost evaluation error")
    return _as_column(output, 1, name)
