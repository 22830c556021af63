"""
Scalar random-walk Metropolis sampler with online step-size adaptation.

Proposals are Gaussian increments around the current value; proposals
outside the hard bounds are rejected without evaluating the density. Every
`adaptation_interval` calls the step size is scaled multiplicatively toward a
target acceptance rate, with a gain shrinking as 1/sqrt(batch) so the
adaptation fades as the chain runs.
"""

import logging
from typing import Callable, Optional

import numpy as np


logger = logging.getLogger(__name__)

# optimal acceptance rate of a 1-d Gaussian random walk
_DEFAULT_TARGET_ACCEPTANCE_RATE = 0.44
_DEFAULT_ADAPTATION_INTERVAL = 100
_DEFAULT_ADJUSTMENT_RATE = 1.0


class NumericalInstabilityError(RuntimeError):
    """A log density evaluated to NaN or infinity inside the sampler's bounds."""

    def __init__(self, name: str, value: float, log_density: float):
        self.name = name
        self.value = value
        self.log_density = log_density
        super().__init__(
            f"Non-finite log density {log_density} for {name} at value {value!r}"
        )


class AdaptiveMetropolisSampler:
    """
    Adaptive random-walk Metropolis sampler for one bounded scalar.

    The sampler carries its current value, step size and acceptance counters
    between calls; the target density is supplied on every call because it
    depends on the other parameters of a Gibbs sweep.

    Parameters
    ----------
    initial_value : float
        Starting point of the chain, inside [lower_bound, upper_bound].
    initial_step_size : float
        Initial standard deviation of the Gaussian proposal.
    lower_bound, upper_bound : float
        Hard domain bounds (may be infinite).
    include_lower_bound : bool
        If False the domain is open at lower_bound and a proposal equal to
        it is rejected like one below it.
    rng : np.random.Generator, optional
        Source of the proposal and acceptance draws.
    target_acceptance_rate : float
        Acceptance rate the step size is tuned toward.
    adaptation_interval : int
        Number of calls between step-size adjustments.
    adjustment_rate : float
        Gain of the first adjustment.
    name : str
        Label used in diagnostics, e.g. "minor_fraction[segment=3]".
    """

    def __init__(
        self,
        initial_value: float,
        initial_step_size: float,
        lower_bound: float,
        upper_bound: float,
        rng: Optional[np.random.Generator] = None,
        include_lower_bound: bool = True,
        target_acceptance_rate: float = _DEFAULT_TARGET_ACCEPTANCE_RATE,
        adaptation_interval: int = _DEFAULT_ADAPTATION_INTERVAL,
        adjustment_rate: float = _DEFAULT_ADJUSTMENT_RATE,
        name: str = "parameter",
    ):
        if not initial_step_size > 0:
            raise ValueError(f"initial_step_size must be positive. Got {initial_step_size}")
        if not lower_bound < upper_bound:
            raise ValueError(
                f"lower_bound must be below upper_bound. Got [{lower_bound}, {upper_bound}]"
            )
        above_lower = (
            lower_bound <= initial_value
            if include_lower_bound
            else lower_bound < initial_value
        )
        if not (above_lower and initial_value <= upper_bound):
            raise ValueError(
                f"initial value {initial_value} of {name} outside "
                f"[{lower_bound}, {upper_bound}]"
            )
        if not 0 < target_acceptance_rate < 1:
            raise ValueError(
                f"target_acceptance_rate must be in (0, 1). Got {target_acceptance_rate}"
            )
        if adaptation_interval < 1:
            raise ValueError(
                f"adaptation_interval must be >= 1. Got {adaptation_interval}"
            )

        self.name = name
        self.lower_bound = float(lower_bound)
        self.upper_bound = float(upper_bound)
        self.include_lower_bound = include_lower_bound
        self.target_acceptance_rate = target_acceptance_rate
        self.adaptation_interval = int(adaptation_interval)
        self.adjustment_rate = adjustment_rate
        self._rng = rng if rng is not None else np.random.default_rng()

        self._current_value = float(initial_value)
        self._step_size = float(initial_step_size)
        self._num_samples = 0
        self._num_accepted = 0
        self._num_accepted_in_batch = 0
        self._num_batches = 0

    @property
    def current_value(self) -> float:
        return self._current_value

    @property
    def step_size(self) -> float:
        return self._step_size

    @property
    def num_samples(self) -> int:
        return self._num_samples

    @property
    def num_accepted(self) -> int:
        return self._num_accepted

    @property
    def acceptance_rate(self) -> float:
        """Fraction of all proposals accepted so far."""
        if self._num_samples == 0:
            return 0.0
        return self._num_accepted / self._num_samples

    def _in_bounds(self, value: float) -> bool:
        if value > self.upper_bound:
            return False
        if self.include_lower_bound:
            return value >= self.lower_bound
        return value > self.lower_bound

    def _checked(self, log_density: Callable[[float], float], value: float) -> float:
        result = float(log_density(value))
        if not np.isfinite(result):
            raise NumericalInstabilityError(self.name, value, result)
        return result

    def sample(self, log_density: Callable[[float], float]) -> float:
        """
        Take one Metropolis step and return the (possibly unchanged) value.

        Exactly one Gaussian and one uniform draw are consumed per call,
        whatever the outcome, so identical streams reproduce identical chains.

        Parameters
        ----------
        log_density : callable
            Unnormalized log target density of the scalar.

        Returns
        -------
        float
            The new current value.

        Raises
        ------
        NumericalInstabilityError
            If the log density is not finite at the current value or at an
            in-bounds proposal.
        """
        proposal = self._current_value + self._step_size * self._rng.standard_normal()
        u = self._rng.random()

        accepted = False
        if self._in_bounds(proposal):
            log_ratio = self._checked(log_density, proposal) - self._checked(
                log_density, self._current_value
            )
            accepted = log_ratio >= 0 or u < np.exp(log_ratio)

        if accepted:
            self._current_value = proposal
            self._num_accepted += 1
            self._num_accepted_in_batch += 1
        self._num_samples += 1

        if self._num_samples % self.adaptation_interval == 0:
            self._adapt_step_size()

        return self._current_value

    def _adapt_step_size(self):
        self._num_batches += 1
        batch_rate = self._num_accepted_in_batch / self.adaptation_interval
        gain = self.adjustment_rate / np.sqrt(self._num_batches)
        self._step_size *= np.exp(gain * (batch_rate - self.target_acceptance_rate))
        self._num_accepted_in_batch = 0
        logger.debug(
            "%s: batch acceptance %.2f, step size -> %.4g",
            self.name,
            batch_rate,
            self._step_size,
        )

    def __repr__(self) -> str:
        return (
            f"AdaptiveMetropolisSampler(name={self.name!r}, "
            f"value={self._current_value:.4g}, step_size={self._step_size:.4g}, "
            f"acceptance_rate={self.acceptance_rate:.2f})"
        )
