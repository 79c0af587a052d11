# colloclab/__init__.py
"""
colloclab: direct-collocation transcription of optimal control problems

A Problem (dynamics, bounds, costs, path and boundary constraints) is
transcribed into a nonlinear program with a trapezoidal, Hermite-Simpson or
Legendre-Gauss-Radau scheme and solved with a casadi NLP solver.

Logging:
By default, colloclab produces no output. To enable logging::

    import logging
    logging.basicConfig()
    logging.getLogger('colloclab').setLevel(logging.INFO)  # Solve start/finish
    logging.getLogger('colloclab').setLevel(logging.DEBUG)  # Assembly details
"""

import logging

from colloclab.bounds import Bounds, BoundSpecification, propagate_bounds
from colloclab.cl_types import Constraint, DynamicsOutput, VariableKind
from colloclab.exceptions import (
    ColloclabBaseError,
    ConfigurationError,
    DataIntegrityError,
    InterpolationError,
    SolutionExtractionError,
    SolverInvocationError,
)
from colloclab.iterate import Iterate, Solution
from colloclab.nlp import NlpInputs, NlpProblem, NlpResult, invoke_nlpsol
from colloclab.problem import Problem
from colloclab.settings import DEFAULT_NLP_OPTIONS, SolverSettings
from colloclab.solver import solve_fixed_mesh
from colloclab.transcription import Transcription, transcribe


__all__ = [
    "DEFAULT_NLP_OPTIONS",
    "BoundSpecification",
    "Bounds",
    "ColloclabBaseError",
    "ConfigurationError",
    "Constraint",
    "DataIntegrityError",
    "DynamicsOutput",
    "InterpolationError",
    "Iterate",
    "NlpInputs",
    "NlpProblem",
    "NlpResult",
    "Problem",
    "SolutionExtractionError",
    "Solution",
    "SolverInvocationError",
    "SolverSettings",
    "Transcription",
    "VariableKind",
    "invoke_nlpsol",
    "propagate_bounds",
    "solve_fixed_mesh",
    "transcribe",
]

__version__ = "0.1.0"


# Silent by default, user controls output
logging.getLogger(__name__).addHandler(logging.NullHandler())
