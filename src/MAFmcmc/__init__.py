"""
MCMC inference of per-segment minor allele fractions.

Jointly samples the minor allele fraction of every segment together with a
global gamma model of allelic mapping bias and a global outlier rate, from
alt/ref read counts at het sites.
"""

from .utils import (
    # Data classes
    AllelicCount,
    AlleleFractionIndicator,
    AlleleFractionState,
    AlleleFractionData,
    make_single_segment_state,
    log_factorial,
)

from .params import AlleleFractionSpec

from .likelihood import (
    het_log_likelihood,
    collapsed_het_log_likelihood,
    segment_log_likelihood,
    log_likelihood,
    bias_posterior_moment,
    log_sum_exp,
)

from .metropolis import (
    AdaptiveMetropolisSampler,
    NumericalInstabilityError,
)

from .gibbs import (
    GibbsSampler,
    GibbsStatus,
    ParameterizedModel,
)

from .summary import (
    PosteriorSummary,
    summarize_samples,
    summarize_minor_fractions,
)

from .modeller import (
    AlleleFractionModeller,
    fit_allele_fraction,
)

__all__ = [
    # Classes
    "AlleleFractionModeller",
    "AdaptiveMetropolisSampler",
    "GibbsSampler",
    "GibbsStatus",
    "ParameterizedModel",
    # Convenience functions
    "fit_allele_fraction",
    # Data classes
    "AllelicCount",
    "AlleleFractionIndicator",
    "AlleleFractionState",
    "AlleleFractionData",
    "AlleleFractionSpec",
    "PosteriorSummary",
    # Likelihood
    "het_log_likelihood",
    "collapsed_het_log_likelihood",
    "segment_log_likelihood",
    "log_likelihood",
    "bias_posterior_moment",
    "log_sum_exp",
    # Utilities
    "make_single_segment_state",
    "log_factorial",
    "summarize_samples",
    "summarize_minor_fractions",
    # Errors
    "NumericalInstabilityError",
]

__version__ = "0.1.0"
