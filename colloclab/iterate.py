"""
Iterates and solutions: full assignments of the decision variables on a grid.

An Iterate is used as an initial guess and can be resampled onto another time
grid. A Solution is the iterate returned by a solve, plus the solver's
convergence statistics. Both are immutable.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import numpy as np

from .cl_types import GRID_VARIABLE_KINDS, FloatArray, VariableKind
from .exceptions import DataIntegrityError, InterpolationError
from .utils.constants import ZERO_TOLERANCE


if TYPE_CHECKING:
    import pandas as pd


logger = logging.getLogger(__name__)


def _frozen_array(value: Any) -> FloatArray:
    array = np.array(value, dtype=np.float64)
    if array.ndim == 0:
        array = array.reshape(1, 1)
    elif array.ndim == 1:
        array = array.reshape(1, -1)
    array.setflags(write=False)
    return array


def _interpolate_rows(
    old_times: FloatArray, values: FloatArray, new_times: FloatArray
) -> FloatArray:
    """Piecewise-linear interpolation of every row, clamped outside the old time span."""
    if values.shape[0] == 0:
        return np.zeros((0, len(new_times)), dtype=np.float64)

    # Zero-length span: nothing to interpolate against
    if len(old_times) == 1 or old_times[-1] - old_times[0] <= ZERO_TOLERANCE:
        return np.repeat(values[:, :1], len(new_times), axis=1)

    return np.vstack([np.interp(new_times, old_times, row) for row in values])


@dataclass(frozen=True, eq=False)
class Iterate:
    """
    Values of every variable block plus the matching time vector.

    Attributes:
        variables: One (rows, columns) array per VariableKind
        times: Physical time of each grid column
        state_names, control_names, multiplier_names, parameter_names: Row labels
    """

    variables: Mapping[VariableKind, FloatArray]
    times: FloatArray
    state_names: tuple[str, ...] = ()
    control_names: tuple[str, ...] = ()
    multiplier_names: tuple[str, ...] = ()
    parameter_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        variables = {
            VariableKind(kind): _frozen_array(value) for kind, value in self.variables.items()
        }
        times = np.array(self.times, dtype=np.float64).reshape(-1)
        times.setflags(write=False)
        object.__setattr__(self, "variables", MappingProxyType(variables))
        object.__setattr__(self, "times", times)
        for name in ("state_names", "control_names", "multiplier_names", "parameter_names"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def initial_time(self) -> float:
        return float(self.variables[VariableKind.INITIAL_TIME][0, 0])

    @property
    def final_time(self) -> float:
        return float(self.variables[VariableKind.FINAL_TIME][0, 0])

    @property
    def states(self) -> FloatArray:
        return self.variables[VariableKind.STATES]

    @property
    def controls(self) -> FloatArray:
        return self.variables[VariableKind.CONTROLS]

    @property
    def multipliers(self) -> FloatArray:
        return self.variables[VariableKind.MULTIPLIERS]

    @property
    def parameters(self) -> FloatArray:
        return self.variables[VariableKind.PARAMETERS]

    def _replace_variables(
        self, variables: dict[VariableKind, FloatArray], times: FloatArray
    ) -> Iterate:
        return Iterate(
            variables=variables,
            times=times,
            state_names=self.state_names,
            control_names=self.control_names,
            multiplier_names=self.multiplier_names,
            parameter_names=self.parameter_names,
        )

    def resample(self, new_times: Any) -> Iterate:
        """
        Interpolate the grid blocks (states, controls, multipliers) onto new times.

        Time and parameter blocks are copied unchanged.

        Raises:
            InterpolationError: If the time vectors are empty or not monotone, or a
                grid block does not have one column per time point
        """
        target_times = np.array(new_times, dtype=np.float64).reshape(-1)
        if self.times.size == 0 or target_times.size == 0:
            raise InterpolationError(
                "Cannot resample with an empty time vector", "Iterate.resample"
            )
        if np.any(np.diff(self.times) < 0):
            raise InterpolationError(
                "Iterate times must be non-decreasing", "Iterate.resample"
            )

        resampled: dict[VariableKind, FloatArray] = {}
        for kind, values in self.variables.items():
            if kind not in GRID_VARIABLE_KINDS:
                resampled[kind] = values.copy()
                continue
            if values.shape[1] != self.times.size:
                raise InterpolationError(
                    f"{kind.name} has {values.shape[1]} columns but {self.times.size} time points",
                    "Iterate.resample",
                )
            resampled[kind] = _interpolate_rows(self.times, values, target_times)

        logger.debug("Resampled iterate from %d to %d points", self.times.size, target_times.size)
        return self._replace_variables(resampled, target_times)

    def _named_rows(self, kind: VariableKind, names: tuple[str, ...]) -> dict[str, FloatArray]:
        values = self.variables.get(kind)
        if values is None:
            return {}
        labels = names if len(names) == values.shape[0] else tuple(
            f"{kind.name.lower()}_{i}" for i in range(values.shape[0])
        )
        return {label: values[i, :].copy() for i, label in enumerate(labels)}

    def to_dict(self) -> dict[str, Any]:
        """Named time series for export by external writers."""
        parameters = self._named_rows(VariableKind.PARAMETERS, self.parameter_names)
        return {
            "time": self.times.copy(),
            "initial_time": self.initial_time,
            "final_time": self.final_time,
            "states": self._named_rows(VariableKind.STATES, self.state_names),
            "controls": self._named_rows(VariableKind.CONTROLS, self.control_names),
            "multipliers": self._named_rows(VariableKind.MULTIPLIERS, self.multiplier_names),
            "parameters": {name: float(value[0]) for name, value in parameters.items()},
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Trajectory table indexed by time; parameters are stored in ``attrs``."""
        import pandas as pd

        data = self.to_dict()
        columns: dict[str, FloatArray] = {}
        for group in ("states", "controls", "multipliers"):
            for name, values in data[group].items():
                if name in columns:
                    raise DataIntegrityError(
                        f"Column '{name}' appears in more than one variable group",
                        "Iterate.to_dataframe",
                    )
                columns[name] = values
        frame = pd.DataFrame(columns, index=pd.Index(data["time"], name="time"))
        frame.attrs["parameters"] = data["parameters"]
        frame.attrs["initial_time"] = data["initial_time"]
        frame.attrs["final_time"] = data["final_time"]
        return frame


@dataclass(frozen=True, eq=False)
class Solution(Iterate):
    """
    Iterate returned by a solve, with the solver's convergence statistics.

    A solver that did not converge still produces a Solution; check success.
    """

    success: bool = False
    status: str = "Solver not run yet."
    iterations: int | None = None
    objective: float = float("nan")
    stats: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "stats", MappingProxyType(dict(self.stats)))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "success": self.success,
                "status": self.status,
                "iterations": self.iterations,
                "objective": self.objective,
            }
        )
        return data

    def to_dataframe(self) -> pd.DataFrame:
        frame = super().to_dataframe()
        frame.attrs["success"] = self.success
        frame.attrs["status"] = self.status
        frame.attrs["objective"] = self.objective
        return frame
