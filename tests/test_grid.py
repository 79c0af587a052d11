import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from colloclab import ConfigurationError
from colloclab.transcription import (
    HermiteSimpson,
    LegendreGaussRadau,
    Trapezoidal,
    create_grid,
    create_mesh,
    parse_transcription_scheme,
)


SCHEMES = [
    "trapezoidal",
    "hermite-simpson",
    "legendre-gauss-radau-1",
    "legendre-gauss-radau-3",
    "legendre-gauss-radau-9",
]


class TestQuadrature:
    @pytest.mark.parametrize("scheme", SCHEMES)
    @pytest.mark.parametrize("num_intervals", [1, 2, 5, 10, 37])
    def test_weights_sum_to_one(self, scheme, num_intervals):
        grid = create_grid(scheme, num_intervals)

        assert_allclose(np.sum(grid.quadrature_coefficients), 1.0, atol=1e-12)
        assert np.all(grid.quadrature_coefficients >= 0.0)

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_weights_sum_to_one_on_custom_mesh(self, scheme):
        grid = create_grid(scheme, 4, mesh=[0.0, 0.1, 0.15, 0.7, 1.0])

        assert_allclose(np.sum(grid.quadrature_coefficients), 1.0, atol=1e-12)

    @pytest.mark.parametrize(
        "scheme, degree, exact",
        [
            ("trapezoidal", 1, 0.5),
            ("hermite-simpson", 3, 0.25),
            ("legendre-gauss-radau-3", 4, 0.2),
        ],
    )
    def test_polynomial_exactness(self, scheme, degree, exact):
        grid = create_grid(scheme, 3, mesh=[0.0, 0.2, 0.5, 1.0])

        integral = np.dot(grid.quadrature_coefficients, grid.grid**degree)

        assert_allclose(integral, exact, rtol=1e-12)

    def test_trapezoidal_weights(self):
        grid = create_grid("trapezoidal", 2, mesh=[0.0, 0.25, 1.0])

        assert_allclose(grid.quadrature_coefficients, [0.125, 0.5, 0.375])

    def test_hermite_simpson_weights(self):
        grid = create_grid("hermite-simpson", 1)

        assert_allclose(grid.quadrature_coefficients, [1.0 / 6.0, 4.0 / 6.0, 1.0 / 6.0])


class TestGridLayout:
    @pytest.mark.parametrize(
        "scheme, expected_points",
        [
            ("trapezoidal", lambda n: n + 1),
            ("hermite-simpson", lambda n: 2 * n + 1),
            ("legendre-gauss-radau-1", lambda n: n + 1),
            ("legendre-gauss-radau-4", lambda n: 4 * n + 1),
        ],
    )
    @pytest.mark.parametrize("num_intervals", [1, 3, 8])
    def test_grid_size_and_mesh_subsequence(self, scheme, expected_points, num_intervals):
        grid = create_grid(scheme, num_intervals)

        assert grid.num_grid_points == expected_points(num_intervals)
        assert grid.num_mesh_intervals == num_intervals
        assert grid.grid[0] == 0.0
        assert grid.grid[-1] == 1.0
        assert np.all(np.diff(grid.grid) > 0)
        assert_allclose(grid.grid[grid.mesh_indices], grid.mesh)

    def test_hermite_simpson_enforces_kinematics_at_mesh_points_only(self):
        grid = create_grid("hermite-simpson", 3)

        assert_array_equal(grid.kinematic_indices, [True, False] * 3 + [True])
        assert_allclose(grid.grid, np.linspace(0.0, 1.0, 7))

    @pytest.mark.parametrize("scheme", ["trapezoidal", "legendre-gauss-radau-3"])
    def test_kinematics_everywhere(self, scheme):
        assert np.all(create_grid(scheme, 4).kinematic_indices)

    def test_grid_is_read_only(self):
        grid = create_grid("trapezoidal", 2)

        with pytest.raises(ValueError):
            grid.grid[0] = 0.5


class TestSchemeParsing:
    def test_variants(self):
        assert parse_transcription_scheme("trapezoidal") == Trapezoidal()
        assert parse_transcription_scheme("hermite-simpson", False) == HermiteSimpson(
            interpolate_control_midpoints=False
        )
        assert parse_transcription_scheme("legendre-gauss-radau-5") == LegendreGaussRadau(degree=5)

    @pytest.mark.parametrize(
        "name",
        ["euler", "Trapezoidal", "legendre-gauss-radau", "legendre-gauss-radau-0",
         "legendre-gauss-radau-10", "", None],
    )
    def test_unsupported_schemes_rejected(self, name):
        with pytest.raises(ConfigurationError):
            parse_transcription_scheme(name)


class TestMesh:
    def test_uniform_mesh(self):
        assert_allclose(create_mesh(4), [0.0, 0.25, 0.5, 0.75, 1.0])

    @pytest.mark.parametrize("num_intervals", [0, -2, 2.0, True])
    def test_invalid_interval_count(self, num_intervals):
        with pytest.raises(ConfigurationError):
            create_mesh(num_intervals)

    @pytest.mark.parametrize(
        "mesh",
        [
            [0.0, 0.5],
            [0.1, 0.5, 1.0],
            [0.0, 0.5, 0.9],
            [0.0, 1.0, 1.0],
            [0.0, 0.5, 0.5],
            [0.0, float("nan"), 1.0],
        ],
    )
    def test_invalid_custom_mesh(self, mesh):
        with pytest.raises(ConfigurationError):
            create_mesh(2, mesh)
