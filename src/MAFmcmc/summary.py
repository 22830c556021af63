from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class PosteriorSummary:
    """
    Posterior mean and standard deviation of a scalar parameter.

    A summary built from no usable samples (e.g. a segment without het
    sites, whose samples are all NaN) is undefined: both fields are NaN and
    `is_defined` is False.
    """

    mean: float
    standard_deviation: float
    is_defined: bool = True

    @classmethod
    def undefined(cls) -> "PosteriorSummary":
        return cls(np.nan, np.nan, is_defined=False)


def summarize_samples(samples: Sequence[float]) -> PosteriorSummary:
    """
    Mean and sample standard deviation (ddof=1) of MCMC samples.

    Parameters
    ----------
    samples : sequence of float
        Posterior samples of one parameter.

    Returns
    -------
    PosteriorSummary
        Undefined if there are no samples or all are NaN. A single sample
        has standard deviation 0.
    """
    samples = np.asarray(samples, dtype=float)
    if samples.size == 0 or np.all(np.isnan(samples)):
        return PosteriorSummary.undefined()

    mean = float(np.mean(samples))
    std = float(np.std(samples, ddof=1)) if samples.size > 1 else 0.0
    return PosteriorSummary(mean, std)


def summarize_minor_fractions(
    minor_fractions_samples: Sequence[Sequence[float]], num_segments: int
) -> list[PosteriorSummary]:
    """
    Per-segment posterior summaries of minor allele fraction samples.

    Parameters
    ----------
    minor_fractions_samples : sequence of sequences
        One minor-fraction vector per MCMC sample.
    num_segments : int
        Number of segments (length of each vector).

    Returns
    -------
    list of PosteriorSummary
        One summary per segment, in segment order.
    """
    if num_segments == 0:
        return []
    samples = np.asarray(minor_fractions_samples, dtype=float).reshape(-1, num_segments)
    return [summarize_samples(samples[:, segment]) for segment in range(num_segments)]
