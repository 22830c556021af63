"""
Gibbs-step samplers for the four parameter groups of the allele-fraction model.

The three global parameters (mean bias, bias variance, outlier probability)
are each updated by an adaptive Metropolis step against the total
log-likelihood. Minor fractions are updated segment by segment: given the
global parameters the segments are conditionally independent, so each
segment's step only evaluates its own sites and segments may be sampled
concurrently.
"""

from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Optional, Sequence

import numpy as np

from .likelihood import log_likelihood, segment_log_likelihood_from_arrays
from .metropolis import AdaptiveMetropolisSampler
from .params import AlleleFractionSpec
from .utils import (
    AlleleFractionData,
    AlleleFractionState,
    MEAN_BIAS_NAME,
    BIAS_VARIANCE_NAME,
    OUTLIER_PROBABILITY_NAME,
    make_single_segment_state,
)


def _metropolis(
    initial_value: float,
    step_size: float,
    lower_bound: float,
    upper_bound: float,
    rng: Optional[np.random.Generator],
    spec: AlleleFractionSpec,
    name: str,
    include_lower_bound: bool = True,
) -> AdaptiveMetropolisSampler:
    return AdaptiveMetropolisSampler(
        initial_value,
        step_size,
        lower_bound,
        upper_bound,
        rng=rng,
        include_lower_bound=include_lower_bound,
        target_acceptance_rate=spec.target_acceptance_rate,
        adaptation_interval=spec.adaptation_interval,
        adjustment_rate=spec.adjustment_rate,
        name=name,
    )


class MeanBiasSampler:
    """Samples the mean of the bias-ratio distribution on (0, inf)."""

    def __init__(
        self,
        initial_mean_bias: float,
        rng: Optional[np.random.Generator] = None,
        spec: Optional[AlleleFractionSpec] = None,
    ):
        spec = spec if spec is not None else AlleleFractionSpec()
        self.sampler = _metropolis(
            initial_mean_bias,
            spec.mean_bias_step_size,
            0.0,
            np.inf,
            rng,
            spec,
            MEAN_BIAS_NAME,
            include_lower_bound=False,
        )

    def sample(self, state: AlleleFractionState, data: AlleleFractionData) -> float:
        return self.sampler.sample(
            lambda x: log_likelihood(state.with_mean_bias(x), data)
        )


class BiasVarianceSampler:
    """Samples the variance of the bias-ratio distribution on (0, inf)."""

    def __init__(
        self,
        initial_bias_variance: float,
        rng: Optional[np.random.Generator] = None,
        spec: Optional[AlleleFractionSpec] = None,
    ):
        spec = spec if spec is not None else AlleleFractionSpec()
        self.sampler = _metropolis(
            initial_bias_variance,
            spec.bias_variance_step_size,
            0.0,
            np.inf,
            rng,
            spec,
            BIAS_VARIANCE_NAME,
            include_lower_bound=False,
        )

    def sample(self, state: AlleleFractionState, data: AlleleFractionData) -> float:
        return self.sampler.sample(
            lambda x: log_likelihood(state.with_bias_variance(x), data)
        )


class OutlierProbabilitySampler:
    """Samples the global outlier probability, capped at spec.max_outlier_probability."""

    def __init__(
        self,
        initial_outlier_probability: float,
        rng: Optional[np.random.Generator] = None,
        spec: Optional[AlleleFractionSpec] = None,
    ):
        spec = spec if spec is not None else AlleleFractionSpec()
        self.sampler = _metropolis(
            initial_outlier_probability,
            spec.outlier_probability_step_size,
            0.0,
            spec.max_outlier_probability,
            rng,
            spec,
            OUTLIER_PROBABILITY_NAME,
        )

    def sample(self, state: AlleleFractionState, data: AlleleFractionData) -> float:
        return self.sampler.sample(
            lambda x: log_likelihood(state.with_outlier_probability(x), data)
        )


class PerSegmentMinorFractionSampler:
    """
    Samples the minor allele fraction of a single segment.

    A segment without het sites has no likelihood to sample from: every call
    returns NaN and no randomness is consumed.

    Parameters
    ----------
    segment : int
        Segment index.
    initial_minor_fraction : float
        Starting value; ignored (may be NaN) for an empty segment.
    num_hets : int
        Number of het sites in the segment.
    rng : np.random.Generator, optional
        Independent stream for this segment.
    spec : AlleleFractionSpec, optional
        Step size and bounds.
    """

    def __init__(
        self,
        segment: int,
        initial_minor_fraction: float,
        num_hets: int,
        rng: Optional[np.random.Generator] = None,
        spec: Optional[AlleleFractionSpec] = None,
    ):
        spec = spec if spec is not None else AlleleFractionSpec()
        self.segment = segment
        self.sampler: Optional[AdaptiveMetropolisSampler] = None
        if num_hets > 0:
            self.sampler = _metropolis(
                initial_minor_fraction,
                spec.minor_fraction_step_size,
                0.0,
                spec.max_minor_fraction,
                rng,
                spec,
                f"minor_fraction[segment={segment}]",
            )

    def sample(self, state: AlleleFractionState, data: AlleleFractionData) -> float:
        if self.sampler is None or data.num_hets_in_segment(self.segment) == 0:
            return np.nan
        alt, ref = data.segment_arrays(self.segment)

        def log_density(x):
            proposal = make_single_segment_state(
                state.mean_bias, state.bias_variance, state.outlier_probability, x
            )
            return segment_log_likelihood_from_arrays(proposal, 0, alt, ref)

        return self.sampler.sample(log_density)


class MinorFractionsSampler:
    """
    Samples the minor fractions of all segments, one segment sampler each.

    Segments are sampled serially unless an executor is attached through
    `using_workers`; either way each segment draws from its own stream, so
    the result does not depend on the degree of parallelism.

    Parameters
    ----------
    initial_minor_fractions : sequence of float
        Starting minor fraction per segment.
    data : AlleleFractionData
        Segmented counts, used to size each segment sampler.
    rngs : sequence of np.random.Generator, optional
        One independent stream per segment.
    spec : AlleleFractionSpec, optional
        Step size and bounds.
    """

    def __init__(
        self,
        initial_minor_fractions: Sequence[float],
        data: AlleleFractionData,
        rngs: Optional[Sequence[np.random.Generator]] = None,
        spec: Optional[AlleleFractionSpec] = None,
    ):
        num_segments = len(initial_minor_fractions)
        if num_segments != data.num_segments:
            raise ValueError(
                f"Got {num_segments} initial minor fractions for "
                f"{data.num_segments} segments"
            )
        if rngs is None:
            rngs = [None] * num_segments
        elif len(rngs) != num_segments:
            raise ValueError("Need exactly one random generator per segment")

        self.executor: Optional[Executor] = None
        self.segment_samplers = [
            PerSegmentMinorFractionSampler(
                segment,
                initial_minor_fractions[segment],
                data.num_hets_in_segment(segment),
                rng=rngs[segment],
                spec=spec,
            )
            for segment in range(num_segments)
        ]

    @property
    def num_segments(self) -> int:
        return len(self.segment_samplers)

    def sample(self, state: AlleleFractionState, data: AlleleFractionData) -> tuple:
        if self.executor is None:
            return tuple(s.sample(state, data) for s in self.segment_samplers)
        # map() returns results in segment order once every segment is done
        return tuple(
            self.executor.map(lambda s: s.sample(state, data), self.segment_samplers)
        )

    @contextmanager
    def using_workers(self, n_workers: int):
        """Sample segments on a thread pool of n_workers for the enclosed block."""
        if n_workers <= 1:
            yield self
            return
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            self.executor = executor
            try:
                yield self
            finally:
                self.executor = None
