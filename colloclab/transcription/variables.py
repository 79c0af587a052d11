"""
Variable store: one symbolic block per VariableKind plus its bound matrices.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

import casadi as ca

from ..bounds import BoundSpecification, propagate_bounds
from ..cl_types import FloatArray, VariableKind, VariableShapes
from ..exceptions import DataIntegrityError
from ..problem import Problem


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariableStore:
    """Read-only symbolic decision-variable blocks and their bounds."""

    variables: Mapping[VariableKind, ca.MX]
    lower_bounds: Mapping[VariableKind, FloatArray]
    upper_bounds: Mapping[VariableKind, FloatArray]

    def __post_init__(self) -> None:
        for kind, symbol in self.variables.items():
            for name, bounds in (("lower", self.lower_bounds), ("upper", self.upper_bounds)):
                if kind not in bounds:
                    raise DataIntegrityError(
                        f"Variable block {kind.name} has no {name} bounds", "Variable store"
                    )
                if bounds[kind].shape != symbol.shape:
                    raise DataIntegrityError(
                        f"{name} bounds of {kind.name} have shape {bounds[kind].shape}, "
                        f"expected {symbol.shape}",
                        "Variable store",
                    )

    @property
    def shapes(self) -> VariableShapes:
        return {kind: tuple(symbol.shape) for kind, symbol in self.variables.items()}


def _create_block(
    kind: VariableKind,
    specifications: list[BoundSpecification],
    num_columns: int,
) -> tuple[ca.MX, FloatArray, FloatArray]:
    symbol = ca.MX.sym(kind.name.lower(), len(specifications), num_columns)
    lower, upper = propagate_bounds(specifications, num_columns)
    lower.setflags(write=False)
    upper.setflags(write=False)
    return symbol, lower, upper


def create_variable_store(problem: Problem, num_grid_points: int) -> VariableStore:
    """Declare every variable block of the problem on a grid of the given size."""
    layout: dict[VariableKind, tuple[list[BoundSpecification], int]] = {
        VariableKind.INITIAL_TIME: ([BoundSpecification(default=problem.initial_time_bounds)], 1),
        VariableKind.FINAL_TIME: ([BoundSpecification(default=problem.final_time_bounds)], 1),
        VariableKind.STATES: (problem.state_bounds, num_grid_points),
        VariableKind.CONTROLS: (problem.control_bounds, num_grid_points),
        VariableKind.MULTIPLIERS: (problem.multiplier_bounds, num_grid_points),
        VariableKind.PARAMETERS: (problem.parameter_bounds, 1),
    }

    variables: dict[VariableKind, ca.MX] = {}
    lower_bounds: dict[VariableKind, FloatArray] = {}
    upper_bounds: dict[VariableKind, FloatArray] = {}
    for kind, (specifications, num_columns) in layout.items():
        variables[kind], lower_bounds[kind], upper_bounds[kind] = _create_block(
            kind, specifications, num_columns
        )
        logger.debug("Declared %s block with shape %s", kind.name, variables[kind].shape)

    return VariableStore(
        variables=MappingProxyType(variables),
        lower_bounds=MappingProxyType(lower_bounds),
        upper_bounds=MappingProxyType(upper_bounds),
    )
