"""
Bound specifications and their expansion onto the transcription grid.

A channel (one row of a variable block) is bounded by up to three ranges: a
default range applied at every column, and initial/final overrides that replace
the default at the first and last column. Unset ranges expand to (-inf, +inf).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from .cl_types import ConstraintInput, FloatArray
from .input_validation import validate_constraint_input_format


@dataclass(frozen=True)
class Bounds:
    """A (lower, upper) range where None marks an unbounded side."""

    lower: float | None = None
    upper: float | None = None

    @classmethod
    def from_input(cls, value: ConstraintInput | Bounds, context: str = "bounds") -> Bounds:
        """Create bounds from a user bound specification."""
        if isinstance(value, Bounds):
            return value

        validate_constraint_input_format(value, context)

        if value is None:
            return cls()
        if isinstance(value, tuple):
            lower, upper = value
            return cls(
                lower=None if lower is None else float(lower),
                upper=None if upper is None else float(upper),
            )
        return cls(lower=float(value), upper=float(value))

    def is_set(self) -> bool:
        return self.lower is not None or self.upper is not None

    def is_equality(self) -> bool:
        return self.lower is not None and self.lower == self.upper

    @property
    def lower_value(self) -> float:
        return -np.inf if self.lower is None else self.lower

    @property
    def upper_value(self) -> float:
        return np.inf if self.upper is None else self.upper


@dataclass(frozen=True)
class BoundSpecification:
    """Default range for all columns plus initial/final column overrides."""

    default: Bounds = field(default_factory=Bounds)
    initial: Bounds = field(default_factory=Bounds)
    final: Bounds = field(default_factory=Bounds)

    @classmethod
    def from_inputs(
        cls,
        boundary: ConstraintInput | Bounds = None,
        initial: ConstraintInput | Bounds = None,
        final: ConstraintInput | Bounds = None,
        context: str = "variable",
    ) -> BoundSpecification:
        return cls(
            default=Bounds.from_input(boundary, f"{context} boundary"),
            initial=Bounds.from_input(initial, f"{context} initial"),
            final=Bounds.from_input(final, f"{context} final"),
        )


def _set_columns(
    lower: FloatArray, upper: FloatArray, row: int, columns: slice | int, bounds: Bounds
) -> None:
    lower[row, columns] = bounds.lower_value
    upper[row, columns] = bounds.upper_value


def propagate_bounds(
    specifications: Sequence[BoundSpecification], num_columns: int
) -> tuple[FloatArray, FloatArray]:
    """
    Expand per-channel bound specifications into dense bound matrices.

    Args:
        specifications: One specification per row of the variable block
        num_columns: Number of columns of the block (grid points, or 1)

    Returns:
        Tuple of (lower, upper) arrays of shape (len(specifications), num_columns)

    Note:
        Initial overrides apply to column 0 and final overrides to the last
        column; for a single-column block the final override wins.
    """
    num_rows = len(specifications)
    lower = np.full((num_rows, num_columns), -np.inf, dtype=np.float64)
    upper = np.full((num_rows, num_columns), np.inf, dtype=np.float64)

    if num_columns == 0:
        return lower, upper

    for row, spec in enumerate(specifications):
        if spec.default.is_set():
            _set_columns(lower, upper, row, slice(None), spec.default)
        if spec.initial.is_set():
            _set_columns(lower, upper, row, 0, spec.initial)
        if spec.final.is_set():
            _set_columns(lower, upper, row, num_columns - 1, spec.final)

    return lower, upper
