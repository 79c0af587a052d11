"""
The single boundary between the transcription and the NLP solver backend.

A solver is any callable taking the symbolic NLP, its numeric inputs, the
solver name and the options dictionary, and returning an NlpResult. The
default implementation wraps casadi.nlpsol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import casadi as ca
import numpy as np

from .cl_types import FloatArray
from .exceptions import SolverInvocationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NlpProblem:
    """Symbolic NLP: minimize f(x) subject to lbg <= g(x) <= ubg, lbx <= x <= ubx."""

    x: ca.MX
    f: ca.MX
    g: ca.MX


@dataclass(frozen=True)
class NlpInputs:
    """Flattened numeric inputs of one solver call."""

    x0: FloatArray
    lbx: FloatArray
    ubx: FloatArray
    lbg: FloatArray
    ubg: FloatArray


@dataclass(frozen=True)
class NlpResult:
    """Flat solver output and the backend's raw statistics."""

    x: FloatArray
    f: float
    g: FloatArray
    stats: dict[str, Any] = field(default_factory=dict)


class NlpSolverCallable(Protocol):
    def __call__(
        self,
        problem: NlpProblem,
        inputs: NlpInputs,
        solver: str,
        options: dict[str, Any],
    ) -> NlpResult: ...


def _to_vector(value: ca.DM) -> FloatArray:
    return np.array(value.full(), dtype=np.float64).reshape(-1)


def invoke_nlpsol(
    problem: NlpProblem,
    inputs: NlpInputs,
    solver: str,
    options: dict[str, Any],
) -> NlpResult:
    """
    Create a casadi nlpsol function and run it once.

    Failure to converge is reported through the returned statistics; only a
    backend that cannot be created or crashes raises.

    Raises:
        SolverInvocationError: If the solver plugin cannot be created or run
    """
    nlpsol_options = dict(options)
    nlpsol_options.setdefault("error_on_fail", False)

    try:
        nlp_function = ca.nlpsol(
            "nlp", solver, {"x": problem.x, "f": problem.f, "g": problem.g}, nlpsol_options
        )
    except RuntimeError as e:
        raise SolverInvocationError(
            f"Failed to create NLP solver '{solver}': {e}", "NLP solver initialization"
        ) from e

    logger.debug(
        "Invoking %s: %d variables, %d constraints",
        solver,
        inputs.x0.size,
        inputs.lbg.size,
    )

    try:
        result = nlp_function(
            x0=inputs.x0, lbx=inputs.lbx, ubx=inputs.ubx, lbg=inputs.lbg, ubg=inputs.ubg
        )
    except RuntimeError as e:
        raise SolverInvocationError(
            f"NLP solver '{solver}' failed during execution: {e}", "NLP solver execution"
        ) from e

    return NlpResult(
        x=_to_vector(result["x"]),
        f=float(result["f"]),
        g=_to_vector(result["g"]),
        stats=dict(nlp_function.stats()),
    )
