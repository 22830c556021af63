"""
Marginal likelihood of het-site allele counts under the allelic-bias model.

For a het site with a alt reads and r ref reads (n = a + r) in a segment with
minor allele fraction f, the bias ratio lambda (expected ref/alt read ratio
for equal amounts of DNA) follows a global gamma distribution:

    lambda ~ Gamma(alpha, beta),   beta = mu / sigma^2,   alpha = mu * beta

where mu is the mean bias and sigma^2 the bias variance. Each site carries a
hidden indicator:

    ALT_MINOR : alt reads ~ Binomial(n, f / (f + (1 - f) * lambda))
    REF_MINOR : same with f <-> 1 - f
    OUTLIER   : alt fraction uniform on [0, 1]

with prior weights (1 - pi)/2, (1 - pi)/2 and pi. The bias ratio is
integrated out analytically with a saddlepoint (gamma-matching Laplace)
approximation around the mode of the integrand, or in closed form when the
integrand peaks at lambda = 0 (no ref reads and alpha <= 1). The indicator
is then summed out with a log-sum-exp. Binomial coefficients are omitted
from every term since they do not depend on the parameters.
"""

from typing import Sequence

import numpy as np
from scipy.special import gammaln, logsumexp

from .utils import (
    AlleleFractionData,
    AlleleFractionIndicator,
    AlleleFractionState,
    AllelicCount,
    log_factorial,
)


# Keeps log(f) and log(1 - f) finite at the edges of the minor fraction domain
_MINOR_FRACTION_EPSILON = 1e-6


def log_sum_exp(*values: float) -> float:
    """
    Numerically stable log(exp(v_1) + ... + exp(v_k)).

    Subtracts the maximum before exponentiating, so widely separated inputs
    neither overflow nor underflow.
    """
    return float(logsumexp(np.asarray(values, dtype=float)))


def _log_integral(
    alt: np.ndarray,
    ref: np.ndarray,
    minor_fraction: np.ndarray,
    mean_bias: float,
    bias_variance: float,
    outlier_probability: float,
    indicator: AlleleFractionIndicator,
    order: int = 0,
) -> np.ndarray:
    """
    Log of the per-site likelihood integrated over the bias ratio.

    The integrand is additionally multiplied by lambda^order, which gives the
    numerator of the order-th posterior moment of the bias ratio; order = 0
    is the marginal likelihood itself.

    Parameters
    ----------
    alt, ref : np.ndarray
        Alt and ref read counts.
    minor_fraction : np.ndarray
        Minor allele fraction of each site's segment (broadcast against alt).
    mean_bias, bias_variance : float
        Mean and variance of the bias-ratio gamma distribution.
    outlier_probability : float
        Prior outlier probability pi.
    indicator : AlleleFractionIndicator
        Hidden state whose likelihood is computed.
    order : int
        Power of the bias ratio folded into the integrand.

    Returns
    -------
    np.ndarray
        Log-likelihood of each site.
    """
    a = np.asarray(alt, dtype=float)
    r = np.asarray(ref, dtype=float)
    pi = outlier_probability

    if indicator is AlleleFractionIndicator.OUTLIER:
        with np.errstate(divide="ignore"):
            log_pi = np.log(pi)
        return log_pi + log_factorial(a) + log_factorial(r) - log_factorial(a + r + 1)

    minor_fraction = np.clip(
        np.asarray(minor_fraction, dtype=float),
        _MINOR_FRACTION_EPSILON,
        1.0 - _MINOR_FRACTION_EPSILON,
    )
    if indicator is AlleleFractionIndicator.ALT_MINOR:
        f = minor_fraction
    else:
        f = 1.0 - minor_fraction

    beta = mean_bias / bias_variance
    alpha = mean_bias * beta
    n = a + r
    # exponent of lambda in the integrand, less one
    shape = r + alpha + order - 1

    log_prefactor = (
        alpha * np.log(beta) - gammaln(alpha) + a * np.log(f) + r * np.log(1 - f)
    )
    with np.errstate(divide="ignore"):
        log_weight = np.log((1 - pi) / 2)

    # shape <= 0 only for ref = 0 with alpha + order <= 1: the integrand
    # peaks at lambda = 0 and has no interior mode
    interior = shape > 0
    interior_shape = np.where(interior, shape, 1.0)

    # mode of the integrand: larger root of beta(1-f) x^2 + w x - shape f = 0
    w = (1 - f) * (n - interior_shape) + beta * f
    root = np.sqrt(w * w + 4 * beta * f * (1 - f) * interior_shape)
    lambda0 = np.where(
        w > 0,
        2 * interior_shape * f / (w + root),
        (root - w) / (2 * beta * (1 - f)),
    )

    # match a gamma kernel lambda^(rho-1) exp(-tau lambda) to the log-curvature at the mode
    y = (1 - f) / (f + (1 - f) * lambda0)
    kappa = n * y * y - interior_shape / (lambda0 * lambda0)
    rho = 1 - kappa * lambda0 * lambda0
    tau = -kappa * lambda0

    log_saddlepoint = (
        (interior_shape + 1 - rho) * np.log(lambda0)
        + (tau - beta) * lambda0
        - n * np.log(f + (1 - f) * lambda0)
        + gammaln(rho)
        - rho * np.log(tau)
    )

    # boundary peak: linearize log(f + (1-f) lambda) at lambda = 0, which
    # leaves a gamma integral in closed form (exact when n = 0)
    log_boundary = (
        -n * np.log(f)
        + gammaln(shape + 1)
        - (shape + 1) * np.log(beta + n * (1 - f) / f)
    )

    return log_weight + log_prefactor + np.where(
        interior, log_saddlepoint, log_boundary
    )


def _collapsed_log_likelihoods(
    alt: np.ndarray,
    ref: np.ndarray,
    minor_fraction: np.ndarray,
    state: AlleleFractionState,
) -> np.ndarray:
    """Per-site log-likelihoods with the indicator summed out."""
    components = np.stack(
        [
            np.broadcast_to(
                _log_integral(
                    alt,
                    ref,
                    minor_fraction,
                    state.mean_bias,
                    state.bias_variance,
                    state.outlier_probability,
                    indicator,
                ),
                np.shape(alt),
            )
            for indicator in AlleleFractionIndicator
        ]
    )
    return logsumexp(components, axis=0)


def het_log_likelihood(
    state: AlleleFractionState,
    segment: int,
    count: AllelicCount,
    indicator: AlleleFractionIndicator,
) -> float:
    """
    Log-likelihood of one het site given its hidden indicator.

    The bias ratio is marginalized out; the indicator is not.

    Parameters
    ----------
    state : AlleleFractionState
        Parameter values.
    segment : int
        Index of the segment containing the site.
    count : AllelicCount
        Alt and ref read counts of the site.
    indicator : AlleleFractionIndicator
        ALT_MINOR, REF_MINOR or OUTLIER.

    Returns
    -------
    float
        If OUTLIER, log(pi * a! r! / (n + 1)!). Otherwise
        log{(1 - pi)/2 * beta^alpha / Gamma(alpha) * integral over lambda of
        f^a (1-f)^r lambda^(alpha + r - 1) exp(-beta lambda) / (f + (1-f) lambda)^n},
        with f replaced by 1 - f for REF_MINOR.
    """
    return float(
        _log_integral(
            count.alt_read_count,
            count.ref_read_count,
            state.minor_fraction_in_segment(segment),
            state.mean_bias,
            state.bias_variance,
            state.outlier_probability,
            indicator,
        )
    )


def collapsed_het_log_likelihood(
    state: AlleleFractionState, segment: int, count: AllelicCount
) -> float:
    """Log-likelihood of one het site with bias ratio and indicator marginalized out."""
    return log_sum_exp(
        *(het_log_likelihood(state, segment, count, i) for i in AlleleFractionIndicator)
    )


def segment_log_likelihood_from_arrays(
    state: AlleleFractionState,
    segment: int,
    alt: np.ndarray,
    ref: np.ndarray,
) -> float:
    """Sum of collapsed log-likelihoods over count arrays of one segment."""
    if len(alt) == 0:
        return 0.0
    return float(
        np.sum(
            _collapsed_log_likelihoods(
                alt, ref, state.minor_fraction_in_segment(segment), state
            )
        )
    )


def segment_log_likelihood(
    state: AlleleFractionState,
    segment: int,
    counts: Sequence[AllelicCount],
) -> float:
    """
    Log-likelihood of all het sites in a segment.

    Parameters
    ----------
    state : AlleleFractionState
        Parameter values.
    segment : int
        Index of the segment in state.minor_fractions.
    counts : sequence of AllelicCount
        Het sites of the segment.

    Returns
    -------
    float
        Sum of collapsed per-site log-likelihoods.
    """
    alt = np.array([c.alt_read_count for c in counts], dtype=float)
    ref = np.array([c.ref_read_count for c in counts], dtype=float)
    return segment_log_likelihood_from_arrays(state, segment, alt, ref)


def log_likelihood(state: AlleleFractionState, data: AlleleFractionData) -> float:
    """
    Total log-likelihood of all segments.

    Evaluated in one vectorised pass over every site; segments without
    sites contribute nothing.
    """
    if data.num_hets == 0:
        return 0.0
    minor_fractions = np.asarray(state.minor_fractions, dtype=float)[data.segment_ids]
    return float(
        np.sum(_collapsed_log_likelihoods(data.alt, data.ref, minor_fractions, state))
    )


def bias_posterior_moment(
    state: AlleleFractionState,
    segment: int,
    count: AllelicCount,
    indicator: AlleleFractionIndicator,
    order: int,
) -> float:
    """
    Posterior moment of the bias ratio at one het site.

    Computes integral(lambda^order * integrand) / integral(integrand), where
    the integrand is the un-marginalized per-site likelihood. Used for
    diagnostics only.

    Parameters
    ----------
    state : AlleleFractionState
        Parameter values.
    segment : int
        Index of the segment containing the site.
    count : AllelicCount
        Alt and ref read counts.
    indicator : AlleleFractionIndicator
        ALT_MINOR or REF_MINOR; the outlier likelihood does not involve
        the bias ratio.
    order : int
        Moment order.

    Returns
    -------
    float
        The order-th posterior moment.
    """
    if indicator is AlleleFractionIndicator.OUTLIER:
        raise ValueError("The outlier likelihood does not depend on the bias ratio")

    def log_integral(k):
        return _log_integral(
            count.alt_read_count,
            count.ref_read_count,
            state.minor_fraction_in_segment(segment),
            state.mean_bias,
            state.bias_variance,
            state.outlier_probability,
            indicator,
            order=k,
        )

    return float(np.exp(log_integral(order) - log_integral(0)))
