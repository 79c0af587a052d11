import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from colloclab import DataIntegrityError, InterpolationError, Iterate, Solution, VariableKind


def _make_iterate(times, states=None, controls=None):
    times = np.asarray(times, dtype=np.float64)
    if states is None:
        states = np.vstack([np.sin(times), times**2])
    if controls is None:
        controls = np.cos(times)[np.newaxis, :]
    return Iterate(
        variables={
            VariableKind.INITIAL_TIME: [[times[0]]],
            VariableKind.FINAL_TIME: [[times[-1]]],
            VariableKind.STATES: states,
            VariableKind.CONTROLS: controls,
            VariableKind.MULTIPLIERS: np.zeros((0, len(times))),
            VariableKind.PARAMETERS: [[3.0]],
        },
        times=times,
        state_names=("position", "energy"),
        control_names=("force",),
        parameter_names=("mass",),
    )


class TestResample:
    def test_round_trip_through_refinement(self):
        coarse = np.linspace(0.0, 2.0, 6)
        fine = np.linspace(0.0, 2.0, 11)
        iterate = _make_iterate(coarse)

        round_trip = iterate.resample(fine).resample(coarse)

        for kind in (VariableKind.STATES, VariableKind.CONTROLS):
            assert_allclose(round_trip.variables[kind], iterate.variables[kind], atol=1e-14)
        assert_array_equal(round_trip.times, coarse)

    def test_identity_resample(self):
        times = np.array([0.0, 0.3, 0.4, 1.0])
        iterate = _make_iterate(times)

        assert_allclose(iterate.resample(times).states, iterate.states)

    def test_linear_interpolation_and_clamping(self):
        iterate = _make_iterate(
            [1.0, 2.0],
            states=np.array([[0.0, 10.0], [1.0, 1.0]]),
            controls=np.array([[-1.0, 1.0]]),
        )

        resampled = iterate.resample([0.0, 1.5, 3.0])

        assert_allclose(resampled.states[0], [0.0, 5.0, 10.0])
        assert_allclose(resampled.controls[0], [-1.0, 0.0, 1.0])

    def test_time_and_parameter_blocks_unchanged(self):
        iterate = _make_iterate(np.linspace(0.0, 1.0, 3))

        resampled = iterate.resample(np.linspace(0.0, 1.0, 9))

        assert resampled.initial_time == 0.0
        assert resampled.final_time == 1.0
        assert_array_equal(resampled.parameters, [[3.0]])
        assert resampled.multipliers.shape == (0, 9)
        assert resampled.state_names == ("position", "energy")

    def test_zero_span_broadcasts_first_column(self):
        iterate = _make_iterate(
            [0.5, 0.5, 0.5],
            states=np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]),
            controls=np.array([[7.0, 8.0, 9.0]]),
        )

        resampled = iterate.resample(np.linspace(0.0, 1.0, 4))

        assert_allclose(resampled.states, [[1.0] * 4, [4.0] * 4])
        assert np.all(np.isfinite(resampled.controls))

    def test_non_monotone_times_rejected(self):
        iterate = _make_iterate([0.0, 1.0, 0.5])

        with pytest.raises(InterpolationError):
            iterate.resample([0.0, 1.0])

    def test_column_mismatch_rejected(self):
        iterate = _make_iterate([0.0, 1.0], controls=np.zeros((1, 3)))

        with pytest.raises(InterpolationError):
            iterate.resample([0.0, 0.5, 1.0])

    def test_empty_target_rejected(self):
        with pytest.raises(InterpolationError):
            _make_iterate([0.0, 1.0]).resample([])


class TestImmutability:
    def test_arrays_are_read_only_copies(self):
        states = np.array([[1.0, 2.0]])
        iterate = _make_iterate([0.0, 1.0], states=states, controls=np.zeros((1, 2)))
        states[0, 0] = 100.0

        assert iterate.states[0, 0] == 1.0
        with pytest.raises(ValueError):
            iterate.states[0, 0] = 5.0
        with pytest.raises(ValueError):
            iterate.times[0] = 5.0

    def test_solution_stats_are_read_only(self):
        solution = Solution(
            variables=_make_iterate([0.0, 1.0]).variables,
            times=[0.0, 1.0],
            success=True,
            stats={"iter_count": 4},
        )

        with pytest.raises(TypeError):
            solution.stats["iter_count"] = 5
        with pytest.raises(AttributeError):
            solution.success = False


class TestExport:
    def test_to_dict(self):
        iterate = _make_iterate(np.linspace(0.0, 1.0, 5))

        data = iterate.to_dict()

        assert set(data["states"]) == {"position", "energy"}
        assert set(data["controls"]) == {"force"}
        assert data["multipliers"] == {}
        assert data["parameters"] == {"mass": 3.0}
        assert data["initial_time"] == 0.0
        assert data["final_time"] == 1.0
        assert_allclose(data["states"]["energy"], np.linspace(0.0, 1.0, 5) ** 2)

    def test_unnamed_rows_get_default_labels(self):
        iterate = Iterate(
            variables={
                VariableKind.INITIAL_TIME: [[0.0]],
                VariableKind.FINAL_TIME: [[1.0]],
                VariableKind.STATES: np.zeros((2, 3)),
            },
            times=[0.0, 0.5, 1.0],
        )

        assert set(iterate.to_dict()["states"]) == {"states_0", "states_1"}

    def test_to_dataframe(self):
        times = np.linspace(0.0, 1.0, 4)
        solution = Solution(
            variables=_make_iterate(times).variables,
            times=times,
            state_names=("position", "energy"),
            control_names=("force",),
            parameter_names=("mass",),
            success=True,
            status="Solve_Succeeded",
            objective=1.5,
        )

        frame = solution.to_dataframe()

        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["position", "energy", "force"]
        assert frame.index.name == "time"
        assert_allclose(frame.index.to_numpy(), times)
        assert frame.attrs["parameters"] == {"mass": 3.0}
        assert frame.attrs["success"] is True
        assert solution.to_dict()["status"] == "Solve_Succeeded"

    def test_to_dataframe_rejects_shared_column_names(self):
        times = np.linspace(0.0, 1.0, 3)
        iterate = Iterate(
            variables=_make_iterate(times).variables,
            times=times,
            state_names=("a", "energy"),
            control_names=("a",),
        )

        with pytest.raises(DataIntegrityError):
            iterate.to_dataframe()
