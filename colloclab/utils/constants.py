from typing import TypeAlias


_Tolerance: TypeAlias = float

ZERO_TOLERANCE: _Tolerance = 1e-18
"""Tolerance for considering floating point values as zero."""

MESH_TOLERANCE: _Tolerance = 1e-9
"""Minimum spacing required between normalized mesh points."""

QUADRATURE_TOLERANCE: _Tolerance = 1e-12
"""Allowed deviation of the quadrature weight sum from the unit interval."""

MAX_RADAU_DEGREE: int = 9
"""Largest number of collocation points per interval for Legendre-Gauss-Radau."""

RANDOM_ITERATE_HALF_WIDTH: float = 1.0
"""Half width of the sampling range used for entries with an infinite bound."""
