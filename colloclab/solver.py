import logging

from colloclab.input_validation import validate_problem_ready_for_transcription
from colloclab.iterate import Iterate, Solution
from colloclab.nlp import NlpSolverCallable, invoke_nlpsol
from colloclab.problem import Problem
from colloclab.settings import SolverSettings
from colloclab.transcription import transcribe


logger = logging.getLogger(__name__)


def solve_fixed_mesh(
    problem: Problem,
    settings: SolverSettings | None = None,
    guess: Iterate | None = None,
    nlp_solver: NlpSolverCallable = invoke_nlpsol,
) -> Solution:
    """
    Transcribe a problem on a fixed mesh and solve it once.

    Args:
        problem: Problem with dynamics, bounds and costs configured
        settings: Scheme, mesh and NLP solver options (default: trapezoidal,
            10 intervals, silent IPOPT)
        guess: Initial guess on any grid (default: midpoint of the bounds)
        nlp_solver: NLP backend invocation (default: casadi nlpsol)

    Returns:
        Solution with the trajectory and the solver statistics. A solve that
        does not converge is returned with success set to False.

    Raises:
        colloclab.ConfigurationError: If the problem or settings are not transcribable
        colloclab.SolverInvocationError: If the solver backend cannot run

    Examples:
        >>> problem = Problem("Integrator")
        >>> problem.time(initial=0.0, final=1.0)
        >>> problem.state("x", initial=0.0, final=1.0)
        0
        >>> problem.control("u", boundary=(-2.0, 2.0))
        0
        >>> problem.dynamics(lambda x, u, m, p, t: u)
        >>> problem.integrand(lambda x, u, m, p, t: u[0] ** 2)
        >>> solution = solve_fixed_mesh(
        ...     problem, SolverSettings(transcription_scheme="hermite-simpson")
        ... )
        >>> frame = solution.to_dataframe()
    """
    settings = settings or SolverSettings()
    logger.info(
        "Starting fixed-mesh solve: problem='%s', scheme=%s, intervals=%d",
        problem.name,
        settings.transcription_scheme,
        settings.num_mesh_intervals,
    )

    validate_problem_ready_for_transcription(problem)
    transcription = transcribe(problem, settings, nlp_solver)
    solution = transcription.solve(guess)

    if solution.success:
        logger.info("Fixed-mesh solve completed successfully: objective=%.6e", solution.objective)
    else:
        logger.warning("Fixed-mesh solve failed: %s", solution.status)
    return solution
