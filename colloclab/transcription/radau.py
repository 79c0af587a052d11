import threading
from dataclasses import dataclass, field
from typing import ClassVar, cast

import numpy as np
from scipy.special import roots_jacobi

from ..cl_types import FloatArray
from ..exceptions import ConfigurationError
from ..input_validation import validate_positive_integer
from ..utils.constants import MAX_RADAU_DEGREE, ZERO_TOLERANCE


@dataclass
class RadauBasisComponents:
    """Legendre-Gauss-Radau nodes, weights and differentiation matrix on [-1, 1]."""

    state_approximation_nodes: FloatArray = field(
        default_factory=lambda: np.array([], dtype=np.float64)
    )
    collocation_nodes: FloatArray = field(default_factory=lambda: np.array([], dtype=np.float64))
    quadrature_weights: FloatArray = field(default_factory=lambda: np.array([], dtype=np.float64))
    differentiation_matrix: FloatArray = field(
        default_factory=lambda: np.empty((0, 0), dtype=np.float64)
    )
    collocation_lagrange_at_tau_plus_one: FloatArray = field(
        default_factory=lambda: np.array([], dtype=np.float64)
    )


class RadauBasisCache:
    """Thread-safe global cache for Radau basis components."""

    _instance: ClassVar["RadauBasisCache | None"] = None
    _cache: ClassVar[dict[int, RadauBasisComponents]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __new__(cls) -> "RadauBasisCache":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def get_components(self, num_collocation_nodes: int) -> RadauBasisComponents:
        with self._lock:
            if num_collocation_nodes not in self._cache:
                self._cache[num_collocation_nodes] = self._compute_components(num_collocation_nodes)
            return self._cache[num_collocation_nodes]

    def _compute_components(self, num_collocation_nodes: int) -> RadauBasisComponents:
        state_nodes, collocation_nodes, quadrature_weights = (
            compute_legendre_gauss_radau_nodes_and_weights(num_collocation_nodes)
        )

        bary_weights_state_nodes = compute_barycentric_weights(state_nodes)

        # Row i differentiates the state interpolant at collocation node i
        diff_matrix = np.zeros((len(collocation_nodes), len(state_nodes)), dtype=np.float64)
        for i, tau_c_i in enumerate(collocation_nodes):
            diff_matrix[i, :] = compute_lagrange_derivative_coefficients_at_point(
                state_nodes, bary_weights_state_nodes, tau_c_i
            )

        # Extrapolates collocation-node values (controls) to the interval end
        lagrange_at_end = evaluate_lagrange_basis_at_point(
            collocation_nodes, compute_barycentric_weights(collocation_nodes), 1.0
        )

        # Cached arrays are shared between transcriptions
        for array in (
            state_nodes,
            collocation_nodes,
            quadrature_weights,
            diff_matrix,
            lagrange_at_end,
        ):
            array.setflags(write=False)

        return RadauBasisComponents(
            state_approximation_nodes=state_nodes,
            collocation_nodes=collocation_nodes,
            quadrature_weights=quadrature_weights,
            differentiation_matrix=diff_matrix,
            collocation_lagrange_at_tau_plus_one=lagrange_at_end,
        )


_radau_cache = RadauBasisCache()


def compute_legendre_gauss_radau_nodes_and_weights(
    num_collocation_nodes: int,
) -> tuple[FloatArray, FloatArray, FloatArray]:
    """Return (state nodes, collocation nodes, quadrature weights) on [-1, 1]."""
    # Left-sided Radau quadrature includes the left endpoint
    collocation_nodes_list: list[float] = [-1.0]

    if num_collocation_nodes == 1:
        quadrature_weights_list: list[float] = [2.0]
    else:
        num_interior_roots = num_collocation_nodes - 1
        interior_roots, jacobi_weights = roots_jacobi(num_interior_roots, 0.0, 1.0)
        interior_weights = jacobi_weights / (np.add(1.0, interior_roots))
        left_endpoint_weight = 2.0 / (num_collocation_nodes**2)
        collocation_nodes_list.extend(float(root) for root in interior_roots)
        quadrature_weights_list = [left_endpoint_weight, *(float(w) for w in interior_weights)]

    collocation_nodes = np.array(collocation_nodes_list, dtype=np.float64)
    quadrature_weights = np.array(quadrature_weights_list, dtype=np.float64)

    # State nodes add the non-collocated right endpoint
    state_nodes = np.concatenate([collocation_nodes, np.array([1.0], dtype=np.float64)])

    return state_nodes, collocation_nodes, quadrature_weights


def compute_barycentric_weights(nodes: FloatArray) -> FloatArray:
    num_nodes = len(nodes)
    if num_nodes == 1:
        return np.array([1.0], dtype=np.float64)

    differences_matrix = nodes[:, np.newaxis] - nodes[np.newaxis, :]
    np.fill_diagonal(differences_matrix, 1.0)

    products = np.prod(differences_matrix, axis=1, dtype=np.float64)
    return cast(FloatArray, 1.0 / products)


def evaluate_lagrange_basis_at_point(
    polynomial_definition_nodes: FloatArray,
    barycentric_weights: FloatArray,
    evaluation_point_tau: float,
) -> FloatArray:
    """Values of all Lagrange basis polynomials at one point, by the barycentric formula."""
    num_nodes = len(polynomial_definition_nodes)

    diffs = evaluation_point_tau - polynomial_definition_nodes
    coincident = np.abs(diffs) < ZERO_TOLERANCE
    if np.any(coincident):
        lagrange_values = np.zeros(num_nodes, dtype=np.float64)
        lagrange_values[np.argmax(coincident)] = 1.0
        return lagrange_values

    terms = barycentric_weights / diffs
    return cast(FloatArray, terms / np.sum(terms))


def compute_lagrange_derivative_coefficients_at_point(
    polynomial_definition_nodes: FloatArray,
    barycentric_weights: FloatArray,
    evaluation_point_tau: float,
) -> FloatArray:
    """Derivatives of all Lagrange basis polynomials at one of their defining nodes."""
    num_nodes = len(polynomial_definition_nodes)

    differences = np.abs(evaluation_point_tau - polynomial_definition_nodes)
    matched_indices = np.where(differences < ZERO_TOLERANCE)[0]

    if len(matched_indices) == 0:
        return np.zeros(num_nodes, dtype=np.float64)

    k = matched_indices[0]
    derivatives = np.zeros(num_nodes, dtype=np.float64)
    node_diffs = polynomial_definition_nodes[k] - polynomial_definition_nodes
    off_diagonal = np.arange(num_nodes) != k

    weight_ratios = barycentric_weights / barycentric_weights[k]
    derivatives[off_diagonal] = weight_ratios[off_diagonal] / node_diffs[off_diagonal]

    # Diagonal entry from the sum of reciprocal node distances
    derivatives[k] = np.sum(1.0 / node_diffs[off_diagonal])

    return derivatives


def compute_radau_collocation_components(num_collocation_nodes: int) -> RadauBasisComponents:
    """Get Radau components from the global cache."""
    validate_positive_integer(num_collocation_nodes, "collocation nodes")
    if num_collocation_nodes > MAX_RADAU_DEGREE:
        raise ConfigurationError(
            f"Radau degree {num_collocation_nodes} exceeds maximum {MAX_RADAU_DEGREE}",
            "Unsupported scheme/mesh combination",
        )

    return _radau_cache.get_components(num_collocation_nodes)
