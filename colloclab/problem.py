"""
Problem definition consumed by the transcription.

The Problem collects named channels with their bounds and the callbacks that
describe dynamics, costs and constraints. Callbacks receive casadi column
vectors and must be pure functions of their inputs: they are evaluated once per
grid point at assembly time to build symbolic expressions.
"""

from __future__ import annotations

import logging

from .bounds import Bounds, BoundSpecification
from .cl_types import (
    ConstraintInput,
    DynamicsCallable,
    EndpointCallable,
    IntegrandCallable,
    PathConstraintsCallable,
)
from .exceptions import DataIntegrityError
from .input_validation import validate_string_not_empty


logger = logging.getLogger(__name__)


class _ChannelRegistry:
    """Ordered named channels of one variable kind with their bound specifications."""

    def __init__(self, kind_name: str, taken_names: dict[str, str]) -> None:
        self.kind_name = kind_name
        self._taken_names = taken_names
        self.names: list[str] = []
        self.specifications: list[BoundSpecification] = []
        self._name_to_index: dict[str, int] = {}

    def register(self, name: str, specification: BoundSpecification) -> int:
        validate_string_not_empty(name, f"{self.kind_name} name")
        if name in self._name_to_index:
            raise DataIntegrityError(
                f"{self.kind_name} '{name}' already exists", "Variable naming conflict"
            )
        # Names are unique across all kinds
        if name in self._taken_names:
            raise DataIntegrityError(
                f"{self.kind_name} '{name}' clashes with {self._taken_names[name]} '{name}'",
                "Variable naming conflict",
            )
        self._taken_names[name] = self.kind_name.lower()
        index = len(self.names)
        self._name_to_index[name] = index
        self.names.append(name)
        self.specifications.append(specification)
        return index

    def __len__(self) -> int:
        return len(self.names)


class Problem:
    """
    Continuous-time optimal control problem definition.

    Examples:
        >>> problem = Problem("Integrator")
        >>> problem.time(initial=0.0, final=1.0)
        >>> problem.state("x", initial=0.0)
        0
        >>> problem.control("u", boundary=(-1.0, 1.0))
        0
        >>> problem.dynamics(lambda x, u, m, p, t: u)
        >>> problem.integrand(lambda x, u, m, p, t: u[0] ** 2)
    """

    def __init__(self, name: str = "Unnamed Problem") -> None:
        self.name = name
        self.initial_time_bounds = Bounds(0.0, 0.0)
        self.final_time_bounds = Bounds()
        channel_names: dict[str, str] = {}
        self._states = _ChannelRegistry("State", channel_names)
        self._controls = _ChannelRegistry("Control", channel_names)
        self._multipliers = _ChannelRegistry("Multiplier", channel_names)
        self._parameters = _ChannelRegistry("Parameter", channel_names)

        self.dynamics_function: DynamicsCallable | None = None
        self.path_constraints_function: PathConstraintsCallable | None = None
        self.integrand_function: IntegrandCallable | None = None
        self.endpoint_cost_function: EndpointCallable | None = None
        self.boundary_constraints_function: EndpointCallable | None = None

        logger.debug("Created problem '%s'", name)

    # ------------------------------------------------------------------
    # Variable declaration
    # ------------------------------------------------------------------

    def time(self, initial: ConstraintInput = 0.0, final: ConstraintInput = None) -> None:
        """Set the bounds of the initial and final time decision variables."""
        self.initial_time_bounds = Bounds.from_input(initial, "initial time")
        self.final_time_bounds = Bounds.from_input(final, "final time")

    def state(
        self,
        name: str,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
        boundary: ConstraintInput = None,
    ) -> int:
        """Declare a state channel and return its row index."""
        spec = BoundSpecification.from_inputs(boundary, initial, final, f"state '{name}'")
        return self._states.register(name, spec)

    def control(
        self,
        name: str,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
        boundary: ConstraintInput = None,
    ) -> int:
        """Declare a control channel and return its row index."""
        spec = BoundSpecification.from_inputs(boundary, initial, final, f"control '{name}'")
        return self._controls.register(name, spec)

    def multiplier(
        self,
        name: str,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
        boundary: ConstraintInput = None,
    ) -> int:
        """Declare an algebraic (DAE) variable and return its row index."""
        spec = BoundSpecification.from_inputs(boundary, initial, final, f"multiplier '{name}'")
        return self._multipliers.register(name, spec)

    def parameter(self, name: str, boundary: ConstraintInput = None) -> int:
        """Declare a time-invariant parameter and return its row index."""
        spec = BoundSpecification.from_inputs(boundary, context=f"parameter '{name}'")
        return self._parameters.register(name, spec)

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def dynamics(self, function: DynamicsCallable) -> None:
        """Set f(states, controls, multipliers, parameters, time) -> derivatives [+ residuals]."""
        self.dynamics_function = function

    def path_constraints(self, function: PathConstraintsCallable) -> None:
        """Set g(states, controls, multipliers, parameters, time) -> Constraint list."""
        self.path_constraints_function = function

    def integrand(self, function: IntegrandCallable) -> None:
        """Set the Lagrange cost integrand L(states, controls, multipliers, parameters, time)."""
        self.integrand_function = function

    def endpoint_cost(self, function: EndpointCallable) -> None:
        """Set the Mayer cost phi(t0, tf, x0, xf, parameters)."""
        self.endpoint_cost_function = function

    def boundary_constraints(self, function: EndpointCallable) -> None:
        """Set the boundary constraints e(t0, tf, x0, xf, parameters) -> Constraint list."""
        self.boundary_constraints_function = function

    # ------------------------------------------------------------------
    # Read access for the transcription
    # ------------------------------------------------------------------

    @property
    def num_states(self) -> int:
        return len(self._states)

    @property
    def num_controls(self) -> int:
        return len(self._controls)

    @property
    def num_multipliers(self) -> int:
        return len(self._multipliers)

    @property
    def num_parameters(self) -> int:
        return len(self._parameters)

    @property
    def state_names(self) -> list[str]:
        return self._states.names.copy()

    @property
    def control_names(self) -> list[str]:
        return self._controls.names.copy()

    @property
    def multiplier_names(self) -> list[str]:
        return self._multipliers.names.copy()

    @property
    def parameter_names(self) -> list[str]:
        return self._parameters.names.copy()

    @property
    def state_bounds(self) -> list[BoundSpecification]:
        return self._states.specifications.copy()

    @property
    def control_bounds(self) -> list[BoundSpecification]:
        return self._controls.specifications.copy()

    @property
    def multiplier_bounds(self) -> list[BoundSpecification]:
        return self._multipliers.specifications.copy()

    @property
    def parameter_bounds(self) -> list[BoundSpecification]:
        return self._parameters.specifications.copy()

    def __repr__(self) -> str:
        return (
            f"Problem(name={self.name!r}, states={self.num_states}, "
            f"controls={self.num_controls}, multipliers={self.num_multipliers}, "
            f"parameters={self.num_parameters})"
        )
