"""
Minor allele fraction inference by Gibbs sampling.

Given het-site alt/ref read counts grouped into segments, infers the minor
allele fraction of each segment. For example, a segment with (alt, ref)
counts (10, 90), (11, 93), (88, 12), (90, 10) probably has a minor allele
fraction around 0.1. Allelic mapping bias is accounted for by learning a
global gamma distribution on per-site bias ratios, and a global outlier
probability absorbs sites that fit neither allele as minor.

The per-site bias ratio and alt-minor/ref-minor/outlier indicator are
integrated out (see likelihood.py), so the chain only carries the minor
fractions and the three global hyperparameters: mean bias, bias variance and
outlier probability. Each sweep updates them in that order, the minor
fractions last.
"""

import logging
from typing import Optional

import numpy as np

from .gibbs import GibbsSampler, ParameterizedModel
from .params import AlleleFractionSpec
from .samplers import (
    BiasVarianceSampler,
    MeanBiasSampler,
    MinorFractionsSampler,
    OutlierProbabilitySampler,
)
from .summary import PosteriorSummary, summarize_minor_fractions, summarize_samples
from .utils import (
    AlleleFractionData,
    AlleleFractionState,
    BIAS_VARIANCE_NAME,
    MEAN_BIAS_NAME,
    MINOR_FRACTIONS_NAME,
    OUTLIER_PROBABILITY_NAME,
)


logger = logging.getLogger(__name__)


class AlleleFractionModeller:
    """
    MCMC model of per-segment minor allele fractions.

    Holds the current state of the chain and the cumulative post-burn-in
    samples of every parameter group across calls to `fit_mcmc`.

    Parameters
    ----------
    data : AlleleFractionData
        Het-site counts of a fixed segmentation.
    initial_state : AlleleFractionState
        Starting values, one minor fraction per segment (NaN allowed for
        segments without sites).
    spec : AlleleFractionSpec, optional
        Bounds and proposal tuning.
    random_state : int, optional
        Master seed; each global parameter and each segment gets an
        independent stream derived from it.
    n_workers : int
        Threads used to sample segment minor fractions concurrently.

    Attributes
    ----------
    state : AlleleFractionState
        Current state of the chain.
    """

    def __init__(
        self,
        data: AlleleFractionData,
        initial_state: AlleleFractionState,
        spec: Optional[AlleleFractionSpec] = None,
        random_state: Optional[int] = 42,
        n_workers: int = 1,
    ):
        self.spec = spec if spec is not None else AlleleFractionSpec()
        self._validate(data, initial_state, self.spec)
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1. Got {n_workers}")

        self.data = data
        self.n_workers = n_workers
        self.num_segments = data.num_segments

        seeds = np.random.SeedSequence(random_state).spawn(3 + self.num_segments)
        rngs = [np.random.default_rng(s) for s in seeds]

        self._minor_fractions_sampler = MinorFractionsSampler(
            initial_state.minor_fractions, data, rngs=rngs[3:], spec=self.spec
        )
        self._model = (
            ParameterizedModel(initial_state, data)
            .add_parameter_sampler(
                MEAN_BIAS_NAME,
                MeanBiasSampler(initial_state.mean_bias, rngs[0], self.spec),
            )
            .add_parameter_sampler(
                BIAS_VARIANCE_NAME,
                BiasVarianceSampler(initial_state.bias_variance, rngs[1], self.spec),
            )
            .add_parameter_sampler(
                OUTLIER_PROBABILITY_NAME,
                OutlierProbabilitySampler(
                    initial_state.outlier_probability, rngs[2], self.spec
                ),
            )
            .add_parameter_sampler(MINOR_FRACTIONS_NAME, self._minor_fractions_sampler)
        )
        self._gibbs = GibbsSampler(self._model)

        self._mean_bias_samples: list = []
        self._bias_variance_samples: list = []
        self._outlier_probability_samples: list = []
        self._minor_fractions_samples: list = []

    @staticmethod
    def _validate(
        data: AlleleFractionData,
        state: AlleleFractionState,
        spec: AlleleFractionSpec,
    ):
        if state.num_segments != data.num_segments:
            raise ValueError(
                f"Initial state has {state.num_segments} minor fractions "
                f"but data has {data.num_segments} segments"
            )
        if state.outlier_probability > spec.max_outlier_probability:
            raise ValueError(
                f"Initial outlier probability {state.outlier_probability} exceeds "
                f"{spec.max_outlier_probability}"
            )
        for segment, f in enumerate(state.minor_fractions):
            if data.num_hets_in_segment(segment) == 0:
                continue
            if not 0 <= f <= spec.max_minor_fraction:
                raise ValueError(
                    f"Initial minor fraction {f} of segment {segment} must be "
                    f"in [0, {spec.max_minor_fraction}]"
                )

    @property
    def state(self) -> AlleleFractionState:
        return self._model.state

    def fit_mcmc(self, num_samples: int, num_burn_in: int) -> "AlleleFractionModeller":
        """
        Run the chain and keep its post-burn-in samples.

        Adds num_samples - num_burn_in samples of every parameter group to the
        samples held internally. The chain continues from the current state,
        so repeated calls extend it.

        Parameters
        ----------
        num_samples : int
            Total number of Gibbs sweeps.
        num_burn_in : int
            Number of leading sweeps to discard.

        Returns
        -------
        AlleleFractionModeller
            Self, for method chaining.
        """
        if num_samples < 0:
            raise ValueError(f"num_samples must be >= 0. Got {num_samples}")
        if not 0 <= num_burn_in <= num_samples:
            raise ValueError(
                f"num_burn_in must be in [0, num_samples]. Got {num_burn_in}"
            )

        logger.info(
            "Sampling minor allele fractions: %d segments, %d hets, "
            "%d sweeps (%d burn-in)",
            self.num_segments,
            self.data.num_hets,
            num_samples,
            num_burn_in,
        )
        with self._minor_fractions_sampler.using_workers(self.n_workers):
            self._gibbs.run(num_samples)

        self._mean_bias_samples.extend(
            self._gibbs.get_samples(MEAN_BIAS_NAME, num_burn_in)
        )
        self._bias_variance_samples.extend(
            self._gibbs.get_samples(BIAS_VARIANCE_NAME, num_burn_in)
        )
        self._outlier_probability_samples.extend(
            self._gibbs.get_samples(OUTLIER_PROBABILITY_NAME, num_burn_in)
        )
        self._minor_fractions_samples.extend(
            self._gibbs.get_samples(MINOR_FRACTIONS_NAME, num_burn_in)
        )

        logger.info(
            "Finished sampling: mean bias %.4g, bias variance %.4g, "
            "outlier probability %.4g",
            self.state.mean_bias,
            self.state.bias_variance,
            self.state.outlier_probability,
        )
        return self

    @property
    def mean_bias_samples(self) -> tuple:
        return tuple(self._mean_bias_samples)

    @property
    def bias_variance_samples(self) -> tuple:
        return tuple(self._bias_variance_samples)

    @property
    def outlier_probability_samples(self) -> tuple:
        return tuple(self._outlier_probability_samples)

    @property
    def minor_fractions_samples(self) -> tuple:
        """One tuple of per-segment minor fractions per retained sweep."""
        return tuple(self._minor_fractions_samples)

    def minor_fraction_samples_by_segment(self) -> np.ndarray:
        """
        Minor fraction samples rearranged by segment.

        Returns
        -------
        np.ndarray
            Array of shape (num_segments, n_samples).
        """
        if self.num_segments == 0:
            return np.empty((0, len(self._minor_fractions_samples)))
        samples = np.asarray(self._minor_fractions_samples, dtype=float)
        return samples.reshape(-1, self.num_segments).T.copy()

    def posterior_summaries(self) -> list[PosteriorSummary]:
        """
        Posterior mean and standard deviation of each segment's minor fraction.

        Should be called after `fit_mcmc`. Segments without het sites get an
        undefined summary.
        """
        return summarize_minor_fractions(
            self._minor_fractions_samples, self.num_segments
        )

    def global_posterior_summaries(self) -> dict:
        """Posterior summaries of the mean bias, bias variance and outlier probability."""
        return {
            MEAN_BIAS_NAME: summarize_samples(self._mean_bias_samples),
            BIAS_VARIANCE_NAME: summarize_samples(self._bias_variance_samples),
            OUTLIER_PROBABILITY_NAME: summarize_samples(
                self._outlier_probability_samples
            ),
        }

    def __repr__(self) -> str:
        return (
            f"AlleleFractionModeller(num_segments={self.num_segments}, "
            f"num_hets={self.data.num_hets}, "
            f"n_samples={len(self._minor_fractions_samples)})"
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def fit_allele_fraction(
    data: AlleleFractionData,
    initial_state: AlleleFractionState,
    num_samples: int,
    num_burn_in: int,
    spec: Optional[AlleleFractionSpec] = None,
    **kwargs,
) -> AlleleFractionModeller:
    """
    Convenience function to build a modeller and run one round of MCMC.

    Parameters
    ----------
    data : AlleleFractionData
        Segmented het-site counts.
    initial_state : AlleleFractionState
        Starting values.
    num_samples : int
        Total number of Gibbs sweeps.
    num_burn_in : int
        Number of leading sweeps to discard.
    spec : AlleleFractionSpec, optional
        Bounds and proposal tuning.
    **kwargs
        Passed to AlleleFractionModeller (random_state, n_workers).

    Returns
    -------
    AlleleFractionModeller
        The fitted modeller.
    """
    modeller = AlleleFractionModeller(data, initial_state, spec, **kwargs)
    return modeller.fit_mcmc(num_samples, num_burn_in)
