# test_solver_integration.py
"""
End-to-end solves through casadi and IPOPT on problems with known optima.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from colloclab import (
    Constraint,
    DynamicsOutput,
    Problem,
    SolverInvocationError,
    SolverSettings,
    solve_fixed_mesh,
)


SCHEMES = ["trapezoidal", "hermite-simpson", "legendre-gauss-radau-3"]


def _free_integrator_problem():
    problem = Problem("Free Integrator")
    problem.time(initial=0.0, final=1.0)
    problem.state("x", initial=0.0)
    problem.control("u", boundary=(-1.0, 1.0))
    problem.dynamics(lambda x, u, m, p, t: u)
    problem.integrand(lambda x, u, m, p, t: u[0] ** 2)
    return problem


def _fixed_endpoint_problem():
    # Optimal control is u = 0.5 everywhere
    problem = Problem("Fixed Endpoint Integrator")
    problem.time(initial=0.0, final=1.0)
    problem.state("x", initial=0.0, final=0.5)
    problem.control("u")
    problem.dynamics(lambda x, u, m, p, t: u)
    problem.integrand(lambda x, u, m, p, t: u[0] ** 2)
    return problem


def _minimum_time_problem():
    problem = Problem("Minimum Time")
    problem.time(initial=0.0, final=(0.5, 10.0))
    problem.state("position", initial=0.0, final=1.0)
    problem.state("velocity", initial=0.0, final=0.0)
    problem.control("acceleration", boundary=(-1.0, 1.0))
    problem.dynamics(lambda x, u, m, p, t: [x[1], u[0]])
    problem.endpoint_cost(lambda t0, tf, x0, xf, p: tf)
    return problem


def _regulator_problem():
    # Optimal cost is tanh(1) for x(0) = 1 on a unit horizon
    problem = Problem("Scalar Regulator")
    problem.time(initial=0.0, final=1.0)
    problem.state("x", initial=1.0)
    problem.control("u")
    problem.dynamics(lambda x, u, m, p, t: u)
    problem.integrand(lambda x, u, m, p, t: x[0] ** 2 + u[0] ** 2)
    return problem


class TestIntegratorScenario:
    def test_integrator_trapezoidal_mesh_10(self):
        """Test that the unforced integrator stays at rest with zero cost."""
        solution = solve_fixed_mesh(
            _free_integrator_problem(), SolverSettings(num_mesh_intervals=10)
        )

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.objective == pytest.approx(0.0, abs=1e-8)
        assert_allclose(solution.states, 0.0, atol=1e-6)
        assert np.max(np.abs(np.diff(solution.states[0]))) < 1e-6
        assert solution.iterations is not None

    def test_refinement_monotonicity(self):
        """Test that refined trapezoidal objectives approach the optimum from one side."""
        objectives = []
        for num_intervals in [5, 10, 20]:
            solution = solve_fixed_mesh(
                _regulator_problem(), SolverSettings(num_mesh_intervals=num_intervals)
            )
            assert solution.success, f"Solve failed: {solution.status}"
            objectives.append(solution.objective)

        steps = np.diff(objectives)
        errors = np.abs(np.array(objectives) - np.tanh(1.0))
        assert np.all(steps > 0.0) or np.all(steps < 0.0)
        assert errors[0] > errors[1] > errors[2]

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_fixed_final_state(self, scheme):
        """Test that a fixed final state yields the constant optimal control."""
        problem = _free_integrator_problem()
        problem.state("y", initial=0.0, final=0.5)
        problem.dynamics(lambda x, u, m, p, t: [u[0], u[0]])

        solution = solve_fixed_mesh(
            problem, SolverSettings(transcription_scheme=scheme, num_mesh_intervals=6)
        )

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.objective == pytest.approx(0.25, rel=1e-6)
        assert_allclose(solution.states[1], 0.5 * solution.times, atol=1e-6)
        assert_allclose(solution.controls, 0.5, atol=1e-6)


class TestSchemeAccuracy:
    @pytest.mark.parametrize(
        "scheme, num_intervals, rtol",
        [
            ("trapezoidal", 20, 1e-2),
            ("hermite-simpson", 10, 1e-3),
            ("legendre-gauss-radau-3", 10, 1e-5),
        ],
    )
    def test_regulator_cost(self, scheme, num_intervals, rtol):
        """Test that each scheme reproduces the analytic regulator cost."""
        solution = solve_fixed_mesh(
            _regulator_problem(),
            SolverSettings(transcription_scheme=scheme, num_mesh_intervals=num_intervals),
        )

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.objective == pytest.approx(np.tanh(1.0), rel=rtol)

    def test_radau_final_control_is_determined(self):
        """Test that the final Radau control continues the last interval."""
        solution = solve_fixed_mesh(
            _fixed_endpoint_problem(),
            SolverSettings(transcription_scheme="legendre-gauss-radau-3", num_mesh_intervals=4),
        )

        assert solution.success, f"Solve failed: {solution.status}"
        assert_allclose(solution.controls, 0.5, atol=1e-6)

    def test_warm_start_from_coarse_solution(self):
        """Test that a coarse solution warm starts a finer Hermite-Simpson solve."""
        coarse = solve_fixed_mesh(_regulator_problem(), SolverSettings(num_mesh_intervals=5))

        fine = solve_fixed_mesh(
            _regulator_problem(),
            SolverSettings(transcription_scheme="hermite-simpson", num_mesh_intervals=10),
            guess=coarse,
        )

        assert fine.success
        assert fine.objective == pytest.approx(np.tanh(1.0), rel=1e-3)
        assert len(fine.times) == 21


class TestProblemFeatures:
    def test_free_final_time(self):
        """Test that the minimum-time problem finds the bang-bang final time."""
        solution = solve_fixed_mesh(_minimum_time_problem(), SolverSettings(num_mesh_intervals=20))

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.final_time == pytest.approx(2.0, abs=5e-2)
        assert solution.times[-1] == pytest.approx(solution.final_time)

    def test_path_constraint_enforced(self):
        """Test that a state path constraint is active but never exceeded."""
        problem = _free_integrator_problem()
        problem.integrand(lambda x, u, m, p, t: 1e-3 * u[0] ** 2)
        problem.endpoint_cost(lambda t0, tf, x0, xf, p: -xf[0])
        problem.path_constraints(lambda x, u, m, p, t: [Constraint(x[0], max_val=0.3)])

        solution = solve_fixed_mesh(problem, SolverSettings(num_mesh_intervals=10))

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.states[0, -1] == pytest.approx(0.3, abs=1e-5)
        assert np.max(solution.states) <= 0.3 + 1e-6

    def test_boundary_constraint(self):
        """Test that a boundary constraint on the state change is enforced."""
        problem = _free_integrator_problem()
        problem.boundary_constraints(
            lambda t0, tf, x0, xf, p: [Constraint(xf[0] - x0[0], equals=0.5)]
        )

        solution = solve_fixed_mesh(problem, SolverSettings(num_mesh_intervals=8))

        assert solution.success
        assert solution.states[0, -1] == pytest.approx(0.5, abs=1e-6)
        assert solution.objective == pytest.approx(0.25, rel=1e-6)

    def test_parameter_feasibility_problem(self):
        """Test that a cost-free problem identifies a constant parameter."""
        problem = Problem("Parameter Identification")
        problem.time(initial=0.0, final=1.0)
        problem.state("x", initial=0.0, final=2.0)
        problem.parameter("rate", boundary=(-10.0, 10.0))
        problem.dynamics(lambda x, u, m, p, t: p[0])

        solution = solve_fixed_mesh(problem, SolverSettings(num_mesh_intervals=4))

        assert solution.success
        assert solution.parameters[0, 0] == pytest.approx(2.0, abs=1e-6)
        assert solution.to_dict()["parameters"] == {"rate": pytest.approx(2.0, abs=1e-6)}

    @pytest.mark.parametrize("scheme", ["trapezoidal", "hermite-simpson"])
    def test_algebraic_variable(self, scheme):
        """Test that algebraic residuals tie multipliers to the states at mesh points."""
        problem = _regulator_problem()
        problem.multiplier("x_copy")
        problem.dynamics(
            lambda x, u, m, p, t: DynamicsOutput(state_derivatives=u, algebraic_residuals=m - x)
        )
        problem.integrand(lambda x, u, m, p, t: m[0] ** 2 + u[0] ** 2)

        solution = solve_fixed_mesh(
            problem, SolverSettings(transcription_scheme=scheme, num_mesh_intervals=20)
        )

        assert solution.success, f"Solve failed: {solution.status}"
        assert solution.objective == pytest.approx(np.tanh(1.0), rel=1e-2)
        mesh_columns = solution.multipliers[:, :: 2 if scheme == "hermite-simpson" else 1]
        states_at_mesh = solution.states[:, :: 2 if scheme == "hermite-simpson" else 1]
        assert_allclose(mesh_columns, states_at_mesh, atol=1e-6)

    def test_export_to_dataframe(self):
        """Test that a solved trajectory exports to a pandas DataFrame."""
        solution = solve_fixed_mesh(_regulator_problem(), SolverSettings(num_mesh_intervals=5))

        frame = solution.to_dataframe()

        assert list(frame.columns) == ["x", "u"]
        assert len(frame) == 6
        assert frame.attrs["success"] is True


class TestSolverOutcomes:
    def test_non_convergence_returns_solution(self):
        """Test that hitting the iteration limit returns an unsuccessful Solution."""
        settings = SolverSettings(num_mesh_intervals=20, solver_options={"max_iter": 2})

        solution = solve_fixed_mesh(_minimum_time_problem(), settings)

        assert solution.success is False
        assert solution.status == "Maximum_Iterations_Exceeded"
        assert solution.stats["return_status"] == solution.status

    def test_unknown_solver_plugin_raises(self):
        """Test that an unknown nlpsol plugin raises SolverInvocationError."""
        with pytest.raises(SolverInvocationError):
            solve_fixed_mesh(_regulator_problem(), SolverSettings(optim_solver="no_such_solver"))
