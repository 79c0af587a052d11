# colloclab/transcription/core.py
"""
Transcription of a Problem into an NLP and the solve orchestration around it.

Building a transcription is two-phase: configure_transcription turns the
problem and settings into a frozen SchemeConfiguration (scheme variant and
grid), and assemble_transcription performs the single assembly pass that
declares the variables and emits every constraint and the objective. The
resulting Transcription is read-only; solve may be called any number of times.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import casadi as ca
import numpy as np

from ..cl_types import FloatArray, VariableKind, VariableShapes
from ..exceptions import (
    ColloclabBaseError,
    ConfigurationError,
    DataIntegrityError,
    SolutionExtractionError,
)
from ..input_validation import (
    validate_dynamics_output,
    validate_positive_integer,
    validate_problem_ready_for_transcription,
    validate_scalar_output,
    validate_string_not_empty,
)
from ..iterate import Iterate, Solution
from ..nlp import NlpInputs, NlpProblem, NlpSolverCallable, invoke_nlpsol
from ..problem import Problem
from ..settings import SolverSettings
from ..utils.constants import RANDOM_ITERATE_HALF_WIDTH
from .codec import expand, flatten, get_sorted_variable_kinds
from .constraints import (
    ConstraintAccumulator,
    ConstraintBlock,
    apply_boundary_constraints,
    apply_path_constraints,
)
from .grid import TranscriptionGrid, create_mesh
from .schemes import DefectContext, TranscriptionScheme, parse_transcription_scheme
from .variables import VariableStore, create_variable_store


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemeConfiguration:
    """Everything assembly needs that does not depend on the problem callbacks."""

    scheme: TranscriptionScheme
    grid: TranscriptionGrid
    optim_solver: str
    nlpsol_options: Mapping[str, Any]


def configure_transcription(problem: Problem, settings: SolverSettings) -> SchemeConfiguration:
    """
    Resolve the scheme and build its grid.

    Raises:
        ConfigurationError: If the settings or the problem are not transcribable
    """
    if not isinstance(settings, SolverSettings):
        raise ConfigurationError(
            f"Expected SolverSettings, got {type(settings)}", "Transcription configuration"
        )
    validate_problem_ready_for_transcription(problem)
    validate_positive_integer(settings.num_mesh_intervals, "number of mesh intervals")
    validate_string_not_empty(settings.optim_solver, "optim_solver")

    scheme = parse_transcription_scheme(
        settings.transcription_scheme, settings.interpolate_control_midpoints
    )
    mesh = create_mesh(settings.num_mesh_intervals, settings.mesh)
    grid = scheme.create_grid(mesh)

    logger.debug(
        "Configured %s with %d mesh intervals and %d grid points",
        settings.transcription_scheme,
        grid.num_mesh_intervals,
        grid.num_grid_points,
    )
    return SchemeConfiguration(
        scheme=scheme,
        grid=grid,
        optim_solver=settings.optim_solver,
        nlpsol_options=MappingProxyType(settings.create_nlpsol_options()),
    )


def _call_problem_function(function: Callable[..., Any], name: str, *args: Any) -> Any:
    try:
        return function(*args)
    except ColloclabBaseError:
        raise
    except Exception as e:
        raise ConfigurationError(f"{name} evaluation failed: {e}", f"{name} callback error") from e


def _evaluate_dynamics(
    problem: Problem, variables: Mapping[VariableKind, ca.MX], times: ca.MX
) -> tuple[ca.MX, ca.MX]:
    """Call the dynamics once per grid point; returns (derivatives, residuals) matrices."""
    states = variables[VariableKind.STATES]
    controls = variables[VariableKind.CONTROLS]
    multipliers = variables[VariableKind.MULTIPLIERS]
    parameters = variables[VariableKind.PARAMETERS]

    derivatives: list[ca.MX] = []
    residuals: list[ca.MX] = []
    for i in range(states.shape[1]):
        output = _call_problem_function(
            problem.dynamics_function,
            "Dynamics",
            states[:, i],
            controls[:, i],
            multipliers[:, i],
            parameters,
            times[0, i],
        )
        derivative, residual = validate_dynamics_output(output, problem.num_states)
        if residuals and residual.shape[0] != residuals[0].shape[0]:
            raise ConfigurationError(
                f"Dynamics returned {residual.shape[0]} algebraic residuals at grid point {i}, "
                f"expected {residuals[0].shape[0]}",
                "Dynamics evaluation error",
            )
        derivatives.append(derivative)
        residuals.append(residual)

    return ca.horzcat(*derivatives), ca.horzcat(*residuals)


def _create_objective(
    problem: Problem,
    variables: Mapping[VariableKind, ca.MX],
    times: ca.MX,
    duration: ca.MX,
    grid: TranscriptionGrid,
) -> ca.MX:
    states = variables[VariableKind.STATES]
    initial_time = variables[VariableKind.INITIAL_TIME]
    final_time = variables[VariableKind.FINAL_TIME]
    parameters = variables[VariableKind.PARAMETERS]

    objective = ca.MX(0)
    if problem.endpoint_cost_function is not None:
        output = _call_problem_function(
            problem.endpoint_cost_function,
            "Endpoint cost",
            initial_time,
            final_time,
            states[:, 0],
            states[:, grid.num_grid_points - 1],
            parameters,
        )
        objective = objective + validate_scalar_output(output, "Endpoint cost")

    if problem.integrand_function is not None:
        controls = variables[VariableKind.CONTROLS]
        multipliers = variables[VariableKind.MULTIPLIERS]
        integrand_values = []
        for i in range(grid.num_grid_points):
            output = _call_problem_function(
                problem.integrand_function,
                "Integrand",
                states[:, i],
                controls[:, i],
                multipliers[:, i],
                parameters,
                times[0, i],
            )
            integrand_values.append(validate_scalar_output(output, "Integrand"))
        integral = ca.mtimes(ca.horzcat(*integrand_values), ca.DM(grid.quadrature_coefficients))
        objective = objective + duration * integral

    if problem.endpoint_cost_function is None and problem.integrand_function is None:
        logger.debug("Problem '%s' has no cost terms; solving a feasibility problem", problem.name)

    return objective


def assemble_transcription(
    problem: Problem,
    configuration: SchemeConfiguration,
    nlp_solver: NlpSolverCallable = invoke_nlpsol,
) -> Transcription:
    """
    Single assembly pass producing an immutable Transcription.

    Order: variables with bounds, dynamics at every grid point, defects and
    kinematic constraints, path constraints, boundary constraints, objective.
    The order of the constraint blocks is the row order of the NLP constraint
    vector.

    Raises:
        ConfigurationError: If a problem callback fails or returns malformed output
        DataIntegrityError: If assembled shapes are inconsistent
    """
    validate_problem_ready_for_transcription(problem)
    grid = configuration.grid
    store = create_variable_store(problem, grid.num_grid_points)
    variables = store.variables

    initial_time = variables[VariableKind.INITIAL_TIME]
    final_time = variables[VariableKind.FINAL_TIME]
    duration = final_time - initial_time
    times = initial_time + duration * ca.DM(grid.grid).T

    state_derivatives, residuals = _evaluate_dynamics(problem, variables, times)

    constraints = ConstraintAccumulator()
    context = DefectContext(
        grid=grid,
        states=variables[VariableKind.STATES],
        controls=variables[VariableKind.CONTROLS],
        multipliers=variables[VariableKind.MULTIPLIERS],
        state_derivatives=state_derivatives,
        duration=duration,
    )
    configuration.scheme.apply_defects(context, constraints)

    if residuals.shape[0] > 0:
        kinematic_indices = np.flatnonzero(grid.kinematic_indices).tolist()
        constraints.add_equality("kinematic constraints", residuals[:, kinematic_indices])

    if problem.path_constraints_function is not None:
        apply_path_constraints(
            constraints,
            problem.path_constraints_function,
            variables[VariableKind.STATES],
            variables[VariableKind.CONTROLS],
            variables[VariableKind.MULTIPLIERS],
            variables[VariableKind.PARAMETERS],
            times,
        )

    if problem.boundary_constraints_function is not None:
        apply_boundary_constraints(
            constraints,
            problem.boundary_constraints_function,
            initial_time,
            final_time,
            variables[VariableKind.STATES][:, 0],
            variables[VariableKind.STATES][:, grid.num_grid_points - 1],
            variables[VariableKind.PARAMETERS],
        )

    objective = _create_objective(problem, variables, times, duration, grid)

    transcription = Transcription(
        problem_name=problem.name,
        channel_names={
            VariableKind.STATES: tuple(problem.state_names),
            VariableKind.CONTROLS: tuple(problem.control_names),
            VariableKind.MULTIPLIERS: tuple(problem.multiplier_names),
            VariableKind.PARAMETERS: tuple(problem.parameter_names),
        },
        configuration=configuration,
        store=store,
        constraint_blocks=constraints.freeze(),
        objective=objective,
        nlp_solver=nlp_solver,
    )
    logger.debug(
        "Assembled '%s': %d variables, %d constraints in %d blocks",
        problem.name,
        transcription.num_variables,
        transcription.num_constraints,
        len(transcription.constraint_blocks),
    )
    return transcription


def transcribe(
    problem: Problem,
    settings: SolverSettings | None = None,
    nlp_solver: NlpSolverCallable = invoke_nlpsol,
) -> Transcription:
    """Configure and assemble a transcription of the problem."""
    configuration = configure_transcription(problem, settings or SolverSettings())
    return assemble_transcription(problem, configuration, nlp_solver)


def _guess_within(lower: FloatArray, upper: FloatArray) -> FloatArray:
    """Midpoint of finite bounds, the finite side of one-sided bounds, zero otherwise."""
    guess = np.zeros_like(lower, dtype=np.float64)
    lower_finite = np.isfinite(lower)
    upper_finite = np.isfinite(upper)
    both = lower_finite & upper_finite
    guess[both] = 0.5 * (lower[both] + upper[both])
    guess[lower_finite & ~upper_finite] = lower[lower_finite & ~upper_finite]
    guess[upper_finite & ~lower_finite] = upper[upper_finite & ~lower_finite]
    return guess


class Transcription:
    """
    Assembled NLP of one problem on one grid.

    Instances are produced by transcribe/assemble_transcription and never
    change afterwards. Each solve builds its own numeric arrays and solver
    function, so repeated solves are independent.
    """

    def __init__(
        self,
        *,
        problem_name: str,
        channel_names: Mapping[VariableKind, tuple[str, ...]],
        configuration: SchemeConfiguration,
        store: VariableStore,
        constraint_blocks: tuple[ConstraintBlock, ...],
        objective: ca.MX,
        nlp_solver: NlpSolverCallable,
    ) -> None:
        self._problem_name = problem_name
        self._channel_names = MappingProxyType(dict(channel_names))
        self._configuration = configuration
        self._store = store
        self._constraint_blocks = constraint_blocks
        self._nlp_solver = nlp_solver

        expressions = [block.expression for block in constraint_blocks]
        self._nlp_problem = NlpProblem(
            x=flatten(store.variables),
            f=objective,
            g=ca.vertcat(*expressions) if expressions else ca.MX(0, 1),
        )
        self._constraint_lower = self._concatenate_block_bounds("lower")
        self._constraint_upper = self._concatenate_block_bounds("upper")

    def _concatenate_block_bounds(self, side: str) -> FloatArray:
        if not self._constraint_blocks:
            bounds = np.zeros(0, dtype=np.float64)
        else:
            bounds = np.concatenate([getattr(block, side) for block in self._constraint_blocks])
        bounds.setflags(write=False)
        return bounds

    @property
    def problem_name(self) -> str:
        return self._problem_name

    @property
    def configuration(self) -> SchemeConfiguration:
        return self._configuration

    @property
    def scheme(self) -> TranscriptionScheme:
        return self._configuration.scheme

    @property
    def grid(self) -> TranscriptionGrid:
        return self._configuration.grid

    @property
    def variables(self) -> Mapping[VariableKind, ca.MX]:
        return self._store.variables

    @property
    def variable_shapes(self) -> VariableShapes:
        return self._store.shapes

    @property
    def lower_bounds(self) -> Mapping[VariableKind, FloatArray]:
        return self._store.lower_bounds

    @property
    def upper_bounds(self) -> Mapping[VariableKind, FloatArray]:
        return self._store.upper_bounds

    @property
    def constraint_blocks(self) -> tuple[ConstraintBlock, ...]:
        return self._constraint_blocks

    @property
    def constraint_lower_bounds(self) -> FloatArray:
        return self._constraint_lower

    @property
    def constraint_upper_bounds(self) -> FloatArray:
        return self._constraint_upper

    @property
    def objective(self) -> ca.MX:
        return self._nlp_problem.f

    @property
    def nlp_problem(self) -> NlpProblem:
        return self._nlp_problem

    @property
    def num_variables(self) -> int:
        return int(self._nlp_problem.x.numel())

    @property
    def num_constraints(self) -> int:
        return int(self._constraint_lower.size)

    def create_times(self, initial_time: float, final_time: float) -> FloatArray:
        """Physical times of the grid points for the given time endpoints."""
        return self.grid.grid * (final_time - initial_time) + initial_time

    def _create_iterate(self, values: dict[VariableKind, FloatArray]) -> Iterate:
        times = self.create_times(
            float(values[VariableKind.INITIAL_TIME][0, 0]),
            float(values[VariableKind.FINAL_TIME][0, 0]),
        )
        return Iterate(variables=values, times=times, **self._name_fields())

    def _name_fields(self) -> dict[str, tuple[str, ...]]:
        return {
            "state_names": self._channel_names[VariableKind.STATES],
            "control_names": self._channel_names[VariableKind.CONTROLS],
            "multiplier_names": self._channel_names[VariableKind.MULTIPLIERS],
            "parameter_names": self._channel_names[VariableKind.PARAMETERS],
        }

    def create_initial_guess_from_bounds(self) -> Iterate:
        """Iterate at the midpoint of finite bounds (the finite side, or zero, otherwise)."""
        values = {
            kind: _guess_within(self.lower_bounds[kind], self.upper_bounds[kind])
            for kind in get_sorted_variable_kinds(self.lower_bounds)
        }
        return self._create_iterate(values)

    def create_random_iterate_within_bounds(self, seed: int | None = None) -> Iterate:
        """
        Iterate drawn uniformly within the bounds.

        Unbounded sides are replaced by a window of RANDOM_ITERATE_HALF_WIDTH
        around the bounds guess.
        """
        rng = np.random.default_rng(seed)
        values: dict[VariableKind, FloatArray] = {}
        for kind in get_sorted_variable_kinds(self.lower_bounds):
            lower = self.lower_bounds[kind]
            upper = self.upper_bounds[kind]
            center = _guess_within(lower, upper)
            low = np.where(np.isfinite(lower), lower, center - RANDOM_ITERATE_HALF_WIDTH)
            high = np.where(np.isfinite(upper), upper, center + RANDOM_ITERATE_HALF_WIDTH)
            values[kind] = rng.uniform(low, high, size=lower.shape)
        return self._create_iterate(values)

    def _check_iterate_kinds(self, iterate: Iterate) -> None:
        missing = [kind.name for kind in self.variable_shapes if kind not in iterate.variables]
        if missing:
            raise ConfigurationError(
                f"Iterate is missing variable blocks: {', '.join(missing)}", "Iterate layout"
            )

    def _check_iterate_layout(self, iterate: Iterate) -> None:
        self._check_iterate_kinds(iterate)
        for kind, shape in self.variable_shapes.items():
            if iterate.variables[kind].shape != shape:
                raise DataIntegrityError(
                    f"{kind.name} has shape {iterate.variables[kind].shape}, expected {shape}",
                    "Iterate layout",
                )

    def _flatten_iterate(self, iterate: Iterate) -> FloatArray:
        self._check_iterate_layout(iterate)
        return flatten({kind: iterate.variables[kind] for kind in self.variable_shapes})

    def _evaluate(self, iterate: Iterate) -> tuple[float, FloatArray]:
        function = ca.Function(
            "nlp_evaluation",
            [self._nlp_problem.x],
            [self._nlp_problem.f, self._nlp_problem.g],
        )
        objective, constraints = function(self._flatten_iterate(iterate))
        return float(objective), np.array(ca.DM(constraints).full(), dtype=np.float64).reshape(-1)

    def calc_objective(self, iterate: Iterate) -> float:
        """Objective value at an iterate on this grid."""
        return self._evaluate(iterate)[0]

    def calc_constraint_violation(self, iterate: Iterate) -> float:
        """Largest violation of any variable bound or constraint bound at an iterate."""
        _, constraints = self._evaluate(iterate)
        x = self._flatten_iterate(iterate)
        lbx = flatten(self.lower_bounds)
        ubx = flatten(self.upper_bounds)

        violations = np.concatenate(
            [
                lbx - x,
                x - ubx,
                self._constraint_lower - constraints,
                constraints - self._constraint_upper,
            ]
        )
        if violations.size == 0:
            return 0.0
        return float(max(np.max(violations), 0.0))

    def _resample_onto_grid(self, guess: Iterate) -> Iterate:
        self._check_iterate_kinds(guess)
        times = self.create_times(guess.initial_time, guess.final_time)
        # Already on this grid
        if guess.times.shape == times.shape and np.allclose(guess.times, times):
            return guess
        return guess.resample(times)

    def solve(self, guess: Iterate | None = None) -> Solution:
        """
        Solve the NLP from a guess.

        The guess is resampled onto this grid using its own time endpoints. The
        NLP solver is invoked exactly once. A solver that does not converge
        still yields a Solution with success False.

        Raises:
            ConfigurationError: If the guess lacks a variable block
            InterpolationError: If the guess cannot be resampled
            SolverInvocationError: If the solver backend fails
            SolutionExtractionError: If the solver output does not match the layout
        """
        if guess is None:
            guess = self.create_initial_guess_from_bounds()
        guess = self._resample_onto_grid(guess)

        inputs = NlpInputs(
            x0=self._flatten_iterate(guess),
            lbx=flatten(self.lower_bounds),
            ubx=flatten(self.upper_bounds),
            lbg=self._constraint_lower.copy(),
            ubg=self._constraint_upper.copy(),
        )

        logger.info(
            "Solving '%s' with %s: %d variables, %d constraints",
            self._problem_name,
            self._configuration.optim_solver,
            inputs.x0.size,
            inputs.lbg.size,
        )
        result = self._nlp_solver(
            self._nlp_problem,
            inputs,
            self._configuration.optim_solver,
            dict(self._configuration.nlpsol_options),
        )

        try:
            values = expand(result.x, self.variable_shapes)
        except DataIntegrityError as e:
            raise SolutionExtractionError(
                f"Solver returned a decision vector of the wrong size: {e}",
                "Solution extraction",
            ) from e

        stats = dict(result.stats)
        success = bool(stats.get("success", False))
        status = str(stats.get("return_status", "unknown"))
        iterations = stats.get("iter_count")

        solution = Solution(
            variables=values,
            times=self.create_times(
                float(values[VariableKind.INITIAL_TIME][0, 0]),
                float(values[VariableKind.FINAL_TIME][0, 0]),
            ),
            success=success,
            status=status,
            iterations=int(iterations) if iterations is not None else None,
            objective=float(result.f),
            stats=stats,
            **self._name_fields(),
        )

        if success:
            logger.info(
                "Solve of '%s' finished: %s, objective %.6e",
                self._problem_name,
                status,
                solution.objective,
            )
        else:
            logger.warning("Solve of '%s' did not converge: %s", self._problem_name, status)
        return solution

    def __repr__(self) -> str:
        return (
            f"Transcription(problem='{self._problem_name}', scheme={self.scheme!r}, "
            f"grid_points={self.grid.num_grid_points}, variables={self.num_variables}, "
            f"constraints={self.num_constraints})"
        )
