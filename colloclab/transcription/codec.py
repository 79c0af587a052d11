"""
Flatten/expand between named variable blocks and the solver's flat vectors.

Blocks are concatenated in ascending VariableKind order, never in mapping
insertion order, and each block is vectorised column-major (casadi's native
order). The NLP's sparsity pattern is indexed against this layout, so it must
stay identical across calls for the same problem structure.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import casadi as ca
import numpy as np

from ..cl_types import FloatArray, VariableKind, VariableShapes
from ..exceptions import DataIntegrityError


def get_sorted_variable_kinds(variables: Mapping[VariableKind, Any]) -> list[VariableKind]:
    """Canonical iteration order over variable blocks."""
    return sorted(variables, key=int)


def flatten(variables: Mapping[VariableKind, Any]) -> Any:
    """
    Concatenate all blocks into a single column.

    Returns a ca.MX column when the blocks are symbolic and a 1-D float array
    when they are numeric.
    """
    blocks = [variables[kind] for kind in get_sorted_variable_kinds(variables)]

    if any(isinstance(block, ca.MX) for block in blocks):
        return ca.veccat(*blocks)

    if not blocks:
        return np.zeros(0, dtype=np.float64)

    return np.concatenate(
        [_to_array(block).reshape(-1, order="F") for block in blocks]
    ).astype(np.float64)


def expand(flat: Any, shapes: VariableShapes) -> dict[VariableKind, FloatArray]:
    """Split a flat vector back into blocks of the given shapes (inverse of flatten)."""
    vector = _to_array(flat).reshape(-1)
    expected_length = sum(rows * columns for rows, columns in shapes.values())
    if vector.size != expected_length:
        raise DataIntegrityError(
            f"Flat vector has {vector.size} entries, expected {expected_length}",
            "Flatten/expand layout mismatch",
        )

    out: dict[VariableKind, FloatArray] = {}
    offset = 0
    for kind in get_sorted_variable_kinds(shapes):
        rows, columns = shapes[kind]
        size = rows * columns
        out[kind] = vector[offset : offset + size].reshape((rows, columns), order="F").copy()
        offset += size
    return out


def _to_array(value: Any) -> FloatArray:
    if isinstance(value, ca.DM):
        return np.array(value.full(), dtype=np.float64)
    return np.asarray(value, dtype=np.float64)
