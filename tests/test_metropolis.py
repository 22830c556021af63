import numpy as np
import pytest

from MAFmcmc.metropolis import AdaptiveMetropolisSampler, NumericalInstabilityError


def standard_normal_log_density(x):
    return -0.5 * x * x


def run_chain(sampler, log_density, n):
    return np.array([sampler.sample(log_density) for _ in range(n)])


class FixedDraws:
    """Generator stand-in replaying given normal draws and a constant uniform."""

    def __init__(self, normals, uniform=0.5):
        self._normals = iter(normals)
        self._uniform = uniform

    def standard_normal(self):
        return next(self._normals)

    def random(self):
        return self._uniform


class TestAdaptiveMetropolisSampler:
    """Tests for AdaptiveMetropolisSampler."""

    def test_samples_respect_bounds(self):
        """Flat density on [0, 0.5]: every sample stays inside the bounds."""
        sampler = AdaptiveMetropolisSampler(
            0.25, 0.3, 0.0, 0.5, rng=np.random.default_rng(1)
        )

        samples = run_chain(sampler, lambda x: 0.0, 2000)

        assert np.all(samples >= 0.0)
        assert np.all(samples <= 0.5)
        # a flat density on a bounded interval should be explored
        assert samples.min() < 0.1 and samples.max() > 0.4

    def test_out_of_bounds_proposal_not_evaluated(self):
        """The log density is never called outside the bounds."""
        calls = []

        def log_density(x):
            if not 0.0 <= x <= 1.0:
                raise AssertionError(f"evaluated out of bounds at {x}")
            calls.append(x)
            return 0.0

        sampler = AdaptiveMetropolisSampler(
            0.5, 5.0, 0.0, 1.0, rng=np.random.default_rng(2)
        )
        run_chain(sampler, log_density, 500)

        # with a huge step most proposals land outside and are rejected unevaluated
        assert len(calls) < 2 * 500

    def test_proposal_on_closed_lower_bound_evaluated(self):
        sampler = AdaptiveMetropolisSampler(1.0, 1.0, 0.0, np.inf, rng=FixedDraws([-1.0]))

        assert sampler.sample(lambda x: 0.0) == 0.0
        assert sampler.num_accepted == 1

    def test_proposal_on_open_lower_bound_rejected(self):
        """With an open lower bound a proposal exactly on it is never evaluated."""
        calls = []

        def log_density(x):
            calls.append(x)
            return 0.0

        sampler = AdaptiveMetropolisSampler(
            1.0, 1.0, 0.0, np.inf, rng=FixedDraws([-1.0]), include_lower_bound=False
        )

        assert sampler.sample(log_density) == 1.0
        assert calls == []
        assert sampler.num_accepted == 0

    def test_initial_value_on_open_lower_bound_raises(self):
        with pytest.raises(ValueError, match="outside"):
            AdaptiveMetropolisSampler(0.0, 0.1, 0.0, np.inf, include_lower_bound=False)

    def test_lower_density_rejected(self):
        """A proposal with negligible density is never accepted."""
        sampler = AdaptiveMetropolisSampler(
            0.0, 1.0, -10.0, 10.0, rng=np.random.default_rng(3)
        )

        samples = run_chain(sampler, lambda x: 0.0 if x == 0.0 else -1e300, 200)

        assert np.all(samples == 0.0)
        assert sampler.num_accepted == 0
        assert sampler.num_samples == 200

    def test_steep_density_only_moves_uphill(self):
        """On a steep ramp uphill proposals are taken and downhill ones are not."""
        sampler = AdaptiveMetropolisSampler(
            0.0, 0.1, -np.inf, np.inf, rng=np.random.default_rng(4)
        )

        samples = run_chain(sampler, lambda x: 1e6 * x, 100)

        assert np.all(np.diff(samples) >= 0)
        assert samples[-1] > 0
        assert sampler.num_accepted > 20

    def test_reproducible_with_same_stream(self):
        """Identical streams and call sequences give identical chains."""
        first = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(42)
        )
        second = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(42)
        )

        a = run_chain(first, standard_normal_log_density, 1000)
        b = run_chain(second, standard_normal_log_density, 1000)

        np.testing.assert_array_equal(a, b)
        assert first.step_size == second.step_size

    def test_different_streams_differ(self):
        first = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(1)
        )
        second = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(2)
        )

        a = run_chain(first, standard_normal_log_density, 100)
        b = run_chain(second, standard_normal_log_density, 100)

        assert not np.array_equal(a, b)

    def test_acceptance_rate_self_tunes(self):
        """After 5000 calls the recent acceptance rate sits near the target."""
        sampler = AdaptiveMetropolisSampler(
            0.0, 0.1, -np.inf, np.inf, rng=np.random.default_rng(7)
        )

        samples = run_chain(sampler, standard_normal_log_density, 5000)

        tail = samples[-1001:]
        acceptance = np.mean(np.diff(tail) != 0)
        assert 0.2 <= acceptance <= 0.6

    def test_step_size_grows_when_accepting_too_often(self):
        sampler = AdaptiveMetropolisSampler(
            0.0, 0.01, -np.inf, np.inf, rng=np.random.default_rng(8)
        )
        run_chain(sampler, standard_normal_log_density, 1000)
        assert sampler.step_size > 0.01

    def test_step_size_shrinks_when_rejecting_too_often(self):
        sampler = AdaptiveMetropolisSampler(
            0.0, 1.0, -np.inf, np.inf, rng=np.random.default_rng(9)
        )
        run_chain(sampler, lambda x: -0.5 * (x / 0.01) ** 2, 1000)
        assert sampler.step_size < 1.0

    def test_step_size_constant_within_interval(self):
        sampler = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(10),
            adaptation_interval=100,
        )
        run_chain(sampler, standard_normal_log_density, 99)
        assert sampler.step_size == 0.5
        sampler.sample(standard_normal_log_density)
        assert sampler.step_size != 0.5

    def test_samples_standard_normal(self):
        """Long chain reproduces the moments of the target."""
        sampler = AdaptiveMetropolisSampler(
            0.0, 1.0, -np.inf, np.inf, rng=np.random.default_rng(11)
        )

        samples = run_chain(sampler, standard_normal_log_density, 20000)[2000:]

        assert abs(np.mean(samples)) < 0.15
        assert 0.85 < np.std(samples) < 1.15

    def test_acceptance_counters(self):
        sampler = AdaptiveMetropolisSampler(
            0.0, 0.5, -np.inf, np.inf, rng=np.random.default_rng(12)
        )
        assert sampler.acceptance_rate == 0.0

        run_chain(sampler, standard_normal_log_density, 300)

        assert sampler.num_samples == 300
        assert 0 < sampler.num_accepted <= 300
        np.testing.assert_allclose(sampler.acceptance_rate, sampler.num_accepted / 300)

    @pytest.mark.parametrize("bad_value", [np.nan, np.inf, -np.inf])
    def test_non_finite_density_raises(self, bad_value):
        sampler = AdaptiveMetropolisSampler(
            0.2, 0.05, 0.0, 0.5, rng=np.random.default_rng(13),
            name="minor_fraction[segment=3]",
        )

        with pytest.raises(NumericalInstabilityError, match=r"minor_fraction\[segment=3\]"):
            for _ in range(100):
                sampler.sample(lambda x: bad_value)

    def test_instability_error_attributes(self):
        error = NumericalInstabilityError("mean_bias", 1.5, np.nan)
        assert isinstance(error, RuntimeError)
        assert error.name == "mean_bias"
        assert error.value == 1.5

    @pytest.mark.parametrize(
        "args, match",
        [
            ((0.5, 0.0, 0.0, 1.0), "initial_step_size"),
            ((0.5, 0.1, 1.0, 0.0), "lower_bound"),
            ((1.5, 0.1, 0.0, 1.0), "outside"),
        ],
    )
    def test_invalid_construction(self, args, match):
        with pytest.raises(ValueError, match=match):
            AdaptiveMetropolisSampler(*args)

    def test_invalid_adaptation_settings(self):
        with pytest.raises(ValueError, match="target_acceptance_rate"):
            AdaptiveMetropolisSampler(0.5, 0.1, 0.0, 1.0, target_acceptance_rate=0.0)
        with pytest.raises(ValueError, match="adaptation_interval"):
            AdaptiveMetropolisSampler(0.5, 0.1, 0.0, 1.0, adaptation_interval=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
