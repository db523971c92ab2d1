"""
Reference tests for matrix operations.

These tests validate uniformization against scipy's matrix exponential and
against analytical solutions for small chains.
"""

import warnings

import numpy as np
import pytest

from migmodel import MigrationModel
from migmodel.core.matrix import (
    build_generator,
    eigen_decompose_symmetric,
    forward_rates,
    matrix_exponential,
    symmetrize_rates,
    uniformization_rate,
    uniformize,
    uniformized_transition_probabilities,
)


class TestGenerator:
    """Test generator assembly helpers."""

    def test_row_sums_zero(self):
        rng = np.random.default_rng(3)
        rates = rng.uniform(0, 1, (5, 5))
        Q = build_generator(rates)

        np.testing.assert_allclose(Q.sum(axis=1), 0.0, atol=1e-15)

    def test_diagonal_ignored(self):
        rates = np.array([[7.0, 0.3], [0.1, 7.0]])
        Q = build_generator(rates)

        np.testing.assert_allclose(Q, np.array([[-0.3, 0.3], [0.1, -0.1]]))

    def test_input_not_modified(self):
        rates = np.array([[0.0, 0.3], [0.1, 0.0]])
        build_generator(rates)

        assert rates[0, 0] == 0.0

    def test_symmetrize(self):
        rates = np.array([[0.0, 0.3], [0.1, 0.0]])
        np.testing.assert_allclose(symmetrize_rates(rates), np.array([[0.0, 0.2], [0.2, 0.0]]))

    def test_uniformization_rate(self):
        Q = build_generator(np.array([[0.0, 0.3, 0.1], [0.1, 0.0, 0.0], [0.2, 0.2, 0.0]]))
        assert uniformization_rate(Q) == pytest.approx(0.4)

    def test_uniformize_two_state(self):
        """Analytical R for a two-state chain with rates a and b, a > b."""
        a, b = 0.4, 0.1
        Q = build_generator(np.array([[0.0, a], [b, 0.0]]))
        R = uniformize(Q, uniformization_rate(Q))

        np.testing.assert_allclose(R, np.array([[0.0, 1.0], [b / a, 1.0 - b / a]]))

    def test_uniformize_zero_rate(self):
        Q = np.zeros((2, 2))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            R = uniformize(Q, 0.0)
        assert np.all(np.isnan(R))


class TestForwardRates:
    """Test detailed-balance forward rates."""

    def test_detailed_balance(self):
        backward = np.array([[0.0, 0.2, 0.1], [0.05, 0.0, 0.3], [0.4, 0.6, 0.0]])
        N = np.array([1.0, 4.0, 2.5])
        F = forward_rates(backward, N)

        for i in range(3):
            for j in range(3):
                if i != j:
                    assert N[i] * F[i, j] == pytest.approx(N[j] * backward[j, i])
        np.testing.assert_array_equal(np.diag(F), 0.0)

    def test_matches_model(self, random_model_factory):
        model = random_model_factory(4, flags=True)
        F = forward_rates(model.get_raw_rate_matrix(), model.pop_size_parameters)

        for i in range(4):
            for j in range(4):
                assert F[i, j] == pytest.approx(model.get_forward_rate(i, j))


class TestUniformizationSeries:
    """Test P(t) from powers of R against the matrix exponential."""

    @pytest.mark.parametrize("t", [0.0, 0.1, 0.5, 2.0, 10.0])
    @pytest.mark.parametrize("symmetric", [False, True])
    def test_matches_expm(self, t, symmetric, random_model_factory):
        model = random_model_factory(4, seed=11)
        Q = model.get_Q_matrix(symmetric)

        P = model.transition_probabilities(t, symmetric=symmetric)

        np.testing.assert_allclose(P, matrix_exponential(Q, t), atol=1e-10)

    def test_identity_at_zero(self, random_model_factory):
        model = random_model_factory(3)
        np.testing.assert_allclose(model.transition_probabilities(0.0), np.eye(3), atol=1e-15)

    def test_row_sums_one(self, random_model_factory):
        model = random_model_factory(5, layout="square", flags=True, seed=5)
        P = model.transition_probabilities(1.5)

        np.testing.assert_allclose(P.sum(axis=1), 1.0, atol=1e-10)

    def test_periodic_chain(self, periodic_model):
        """Two demes with rate m each way: P_01(t) = (1 - exp(-2mt)) / 2."""
        m, t = 0.1, 3.0
        P = periodic_model.transition_probabilities(t)

        expected_off = 0.5 * (1.0 - np.exp(-2 * m * t))
        np.testing.assert_allclose(P[0, 1], expected_off, rtol=1e-10)
        np.testing.assert_allclose(P[0, 0], 1.0 - expected_off, rtol=1e-10)

    def test_stops_at_steady_state(self, steady_model):
        """With R idempotent, P(t) = exp(-mu t) I + (1 - exp(-mu t)) R."""
        t = 50.0
        P = steady_model.transition_probabilities(t)

        np.testing.assert_allclose(
            P, matrix_exponential(steady_model.get_Q_matrix(), t), atol=1e-10
        )
        assert steady_model.steady_state_power() == 10

    def test_negative_time(self, periodic_model):
        with pytest.raises(ValueError, match="t must be >= 0"):
            uniformized_transition_probabilities(
                periodic_model.get_R_power, periodic_model.get_mu(), -1.0
            )

    def test_plain_power_function(self):
        Q = build_generator(np.array([[0.0, 1.0, 0.5], [0.2, 0.0, 0.2], [0.3, 0.3, 0.0]]))
        mu = uniformization_rate(Q)
        R = uniformize(Q, mu)

        P = uniformized_transition_probabilities(
            lambda k: np.linalg.matrix_power(R, k), mu, 0.7
        )

        np.testing.assert_allclose(P, matrix_exponential(Q, 0.7), atol=1e-10)

    def test_long_time_term_count(self):
        """A never-steady chain requests about mu*t + c*sqrt(mu*t) powers."""
        swap = np.array([[0.0, 1.0], [1.0, 0.0]])
        requested = []

        def power(k):
            requested.append(k)
            return swap.copy() if k % 2 else np.eye(2)

        mu, t = 0.1, 50000.0
        lam = mu * t
        P = uniformized_transition_probabilities(power, mu, t)

        assert lam < max(requested) <= lam + 10 * np.sqrt(lam)
        np.testing.assert_allclose(P, np.full((2, 2), 0.5), atol=1e-10)

    def test_long_time_model_cache(self):
        model = MigrationModel([1.0, 0.3, 0.7, 0.2, 0.5, 0.9], [1.0, 2.0, 3.0])
        t = 5000.0
        lam = model.get_mu() * t
        assert model.get_mu() == pytest.approx(1.4)

        P = model.transition_probabilities(t)

        assert len(model._power_caches[False]) <= lam + 10 * np.sqrt(lam)
        np.testing.assert_allclose(
            P, matrix_exponential(model.get_Q_matrix(), t), atol=1e-10
        )

    def test_max_terms_warns(self, periodic_model):
        with pytest.warns(RuntimeWarning, match="max_terms"):
            P = uniformized_transition_probabilities(
                periodic_model.get_R_power, periodic_model.get_mu(), 1000.0, max_terms=20
            )
        assert len(periodic_model._power_caches[False]) == 20
        np.testing.assert_allclose(P.sum(axis=1), 1.0)


class TestEigenDecomposition:
    """Test diagonalization of the symmetrized generator."""

    def test_reconstruction(self, random_model_factory):
        model = random_model_factory(4, seed=2)
        Qsym = model.get_Q_matrix(symmetric=True)

        eigenvalues, U, V = eigen_decompose_symmetric(Qsym)

        np.testing.assert_allclose(U @ np.diag(eigenvalues) @ V, Qsym, atol=1e-12)

    def test_largest_eigenvalue_zero(self, random_model_factory):
        model = random_model_factory(5, layout="symmetric", seed=4)

        eigenvalues, _, _ = eigen_decompose_symmetric(model.get_Q_matrix(symmetric=True))

        assert abs(eigenvalues[-1]) < 1e-10
        assert np.all(eigenvalues[:-1] < 0)

    def test_transition_via_eigen(self, random_model_factory):
        model = random_model_factory(3, seed=8)
        Qsym = model.get_Q_matrix(symmetric=True)
        t = 0.4

        eigenvalues, U, V = eigen_decompose_symmetric(Qsym)
        P_eigen = U @ np.diag(np.exp(eigenvalues * t)) @ V

        np.testing.assert_allclose(P_eigen, matrix_exponential(Qsym, t), atol=1e-10)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
