# colloclab/cl_types.py
"""
Core type definitions for the colloclab transcription engine.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, TypeAlias

import casadi as ca
import numpy as np
from numpy.typing import NDArray


# --- NUMERICAL TYPES ---
FloatArray: TypeAlias = NDArray[np.float64]
BoolArray: TypeAlias = NDArray[np.bool_]
IntArray: TypeAlias = NDArray[np.int_]

# --- USER API TYPES ---
ConstraintInput: TypeAlias = float | int | tuple[float | int | None, float | int | None] | None
"""
Type alias for bound specification.

Supported input types:
- float/int: Equality (variable = value)
- tuple(lower, upper): Range with None for unbounded sides
- None: No bound specified
"""


class VariableKind(IntEnum):
    """
    Semantic kind of a decision-variable block.

    The integer values define the canonical order in which blocks are
    concatenated into the flat NLP decision vector. Do not reorder members:
    the solver's sparsity structure is indexed against this order.
    """

    INITIAL_TIME = 0
    FINAL_TIME = 1
    STATES = 2
    CONTROLS = 3
    MULTIPLIERS = 4
    PARAMETERS = 5


GRID_VARIABLE_KINDS: tuple[VariableKind, ...] = (
    VariableKind.STATES,
    VariableKind.CONTROLS,
    VariableKind.MULTIPLIERS,
)
"""Kinds with one column per grid point."""

VariableShapes: TypeAlias = Mapping[VariableKind, tuple[int, int]]


# --- PROBLEM CALLBACK OUTPUTS ---
@dataclass(frozen=True)
class DynamicsOutput:
    """Result of a dynamics evaluation at one grid point."""

    state_derivatives: ca.MX | Sequence[ca.MX]
    algebraic_residuals: ca.MX | Sequence[ca.MX] | None = None


class Constraint:
    """Unified constraint class for path and boundary constraints."""

    def __init__(
        self,
        val: ca.MX | float,
        min_val: float | None = None,
        max_val: float | None = None,
        equals: float | None = None,
    ) -> None:
        self.val = val
        self.min_val = min_val
        self.max_val = max_val
        self.equals = equals

        if equals is not None and (min_val is not None or max_val is not None):
            raise ValueError("Cannot specify equality constraint with bound constraints")
        if min_val is not None and max_val is not None and min_val > max_val:
            raise ValueError(f"min_val ({min_val}) must be <= max_val ({max_val})")

    @property
    def lower(self) -> float:
        if self.equals is not None:
            return float(self.equals)
        return -np.inf if self.min_val is None else float(self.min_val)

    @property
    def upper(self) -> float:
        if self.equals is not None:
            return float(self.equals)
        return np.inf if self.max_val is None else float(self.max_val)

    def __repr__(self) -> str:
        if self.equals is not None:
            return f"Constraint(val == {self.equals})"

        bounds = []
        if self.min_val is not None:
            bounds.append(f"{self.min_val} <=")
        bounds.append("val")
        if self.max_val is not None:
            bounds.append(f"<= {self.max_val}")

        return f"Constraint({' '.join(bounds)})"


# --- CALLBACK SIGNATURES ---
DynamicsCallable: TypeAlias = Callable[
    [ca.MX, ca.MX, ca.MX, ca.MX, ca.MX], DynamicsOutput | ca.MX | Sequence[ca.MX]
]
"""(states, controls, multipliers, parameters, time) -> state derivatives [+ residuals]."""

PathConstraintsCallable: TypeAlias = Callable[
    [ca.MX, ca.MX, ca.MX, ca.MX, ca.MX], Constraint | list[Constraint]
]
IntegrandCallable: TypeAlias = Callable[[ca.MX, ca.MX, ca.MX, ca.MX, ca.MX], ca.MX]
EndpointCallable: TypeAlias = Callable[[ca.MX, ca.MX, ca.MX, ca.MX, ca.MX], Any]
"""(initial_time, final_time, initial_states, final_states, parameters) -> value."""
