from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable

import numpy as np
from scipy.special import gammaln


MEAN_BIAS_NAME = "mean_bias"
BIAS_VARIANCE_NAME = "bias_variance"
OUTLIER_PROBABILITY_NAME = "outlier_probability"
MINOR_FRACTIONS_NAME = "minor_fractions"

PARAMETER_NAMES = (
    MEAN_BIAS_NAME,
    BIAS_VARIANCE_NAME,
    OUTLIER_PROBABILITY_NAME,
    MINOR_FRACTIONS_NAME,
)

# minor allele fraction of a balanced het, by definition
MAX_MINOR_FRACTION = 0.5


def log_factorial(n: np.ndarray) -> np.ndarray:
    """
    Compute log(n!) via the log-gamma function.

    Parameters
    ----------
    n : np.ndarray
        Non-negative counts (integer-valued, any numeric dtype).

    Returns
    -------
    np.ndarray
        log(n!) for each entry; log(0!) = 0.
    """
    return gammaln(np.asarray(n, dtype=float) + 1.0)


def _as_count(value, name: str) -> int:
    if isinstance(value, (bool, np.bool_)):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        as_int = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if as_int != value:
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if as_int < 0:
        raise ValueError(f"{name} must be non-negative, got {value!r}")
    return as_int


class AlleleFractionIndicator(Enum):
    """Hidden per-site label: which allele is minor, or outlier."""

    ALT_MINOR = "alt_minor"
    REF_MINOR = "ref_minor"
    OUTLIER = "outlier"


@dataclass(frozen=True)
class AllelicCount:
    """
    Read counts supporting the alt and ref alleles at one het site.
    """

    alt_read_count: int
    ref_read_count: int

    def __post_init__(self):
        object.__setattr__(
            self, "alt_read_count", _as_count(self.alt_read_count, "alt_read_count")
        )
        object.__setattr__(
            self, "ref_read_count", _as_count(self.ref_read_count, "ref_read_count")
        )

    @property
    def total_read_count(self) -> int:
        """Total depth at the site."""
        return self.alt_read_count + self.ref_read_count


@dataclass(frozen=True)
class AlleleFractionState:
    """
    Current values of all model parameters.

    The state is immutable: every update produces a new state with one
    parameter group replaced, so a state handed to a likelihood evaluation
    never changes underneath it.

    Attributes
    ----------
    mean_bias : float
        Mean of the gamma distribution on allelic bias ratios (> 0).
    bias_variance : float
        Variance of the gamma distribution on allelic bias ratios (> 0).
    outlier_probability : float
        Prior probability that a het site is an outlier, in [0, 1].
        The tighter sampling cap lives in AlleleFractionSpec.
    minor_fractions : tuple of float
        Minor allele fraction per segment, in [0, 0.5]; NaN marks a
        segment without het sites.
    """

    mean_bias: float
    bias_variance: float
    outlier_probability: float
    minor_fractions: tuple = field(default=())

    def __post_init__(self):
        mean_bias = float(self.mean_bias)
        bias_variance = float(self.bias_variance)
        outlier_probability = float(self.outlier_probability)
        minor_fractions = np.asarray(self.minor_fractions, dtype=float).ravel()

        if not (np.isfinite(mean_bias) and mean_bias > 0):
            raise ValueError(f"mean_bias must be positive and finite, got {mean_bias}")
        if not (np.isfinite(bias_variance) and bias_variance > 0):
            raise ValueError(
                f"bias_variance must be positive and finite, got {bias_variance}"
            )
        if not 0 <= outlier_probability <= 1:
            raise ValueError(
                f"outlier_probability must be in [0, 1], got {outlier_probability}"
            )
        valid = np.isnan(minor_fractions) | (
            (minor_fractions >= 0) & (minor_fractions <= MAX_MINOR_FRACTION)
        )
        if not np.all(valid):
            bad = int(np.flatnonzero(~valid)[0])
            raise ValueError(
                f"minor fraction of segment {bad} must be in [0, 0.5], "
                f"got {minor_fractions[bad]}"
            )

        object.__setattr__(self, "mean_bias", mean_bias)
        object.__setattr__(self, "bias_variance", bias_variance)
        object.__setattr__(self, "outlier_probability", outlier_probability)
        object.__setattr__(
            self, "minor_fractions", tuple(float(f) for f in minor_fractions)
        )

    @property
    def num_segments(self) -> int:
        return len(self.minor_fractions)

    @property
    def bias_rate(self) -> float:
        """Rate parameter of the bias-ratio gamma distribution."""
        return self.mean_bias / self.bias_variance

    @property
    def bias_shape(self) -> float:
        """Shape parameter of the bias-ratio gamma distribution."""
        return self.mean_bias * self.bias_rate

    def minor_fraction_in_segment(self, segment: int) -> float:
        return self.minor_fractions[segment]

    def replace(self, name: str, value) -> "AlleleFractionState":
        """Return a new state with the named parameter group replaced."""
        if name not in PARAMETER_NAMES:
            raise ValueError(f"Unknown parameter {name!r}")
        return replace(self, **{name: value})

    def with_mean_bias(self, mean_bias: float) -> "AlleleFractionState":
        return replace(self, mean_bias=mean_bias)

    def with_bias_variance(self, bias_variance: float) -> "AlleleFractionState":
        return replace(self, bias_variance=bias_variance)

    def with_outlier_probability(
        self, outlier_probability: float
    ) -> "AlleleFractionState":
        return replace(self, outlier_probability=outlier_probability)

    def with_minor_fractions(self, minor_fractions) -> "AlleleFractionState":
        return replace(self, minor_fractions=minor_fractions)


def make_single_segment_state(
    mean_bias: float,
    bias_variance: float,
    outlier_probability: float,
    minor_fraction: float,
) -> AlleleFractionState:
    """Build a state holding a single segment, indexed 0."""
    return AlleleFractionState(
        mean_bias, bias_variance, outlier_probability, (minor_fraction,)
    )


class AlleleFractionData:
    """
    Het-site read counts grouped by segment.

    The segmentation is fixed at construction: segment order, membership and
    count never change afterwards. Counts are held both as AllelicCount
    records and as read-only numpy arrays (per segment and flattened across
    all segments) for vectorised likelihood evaluation.

    Parameters
    ----------
    segments : sequence of sequences
        For each segment, its het sites as AllelicCount or (alt, ref) pairs.
        A segment may be empty.
    """

    def __init__(self, segments: Iterable[Iterable]):
        self._counts = []
        for segment in segments:
            self._counts.append(
                tuple(
                    c if isinstance(c, AllelicCount) else AllelicCount(*c)
                    for c in segment
                )
            )

        self._alt = []
        self._ref = []
        for counts in self._counts:
            alt = np.array([c.alt_read_count for c in counts], dtype=float)
            ref = np.array([c.ref_read_count for c in counts], dtype=float)
            alt.setflags(write=False)
            ref.setflags(write=False)
            self._alt.append(alt)
            self._ref.append(ref)

        if self._counts:
            self.alt = np.concatenate(self._alt)
            self.ref = np.concatenate(self._ref)
        else:
            self.alt = np.array([], dtype=float)
            self.ref = np.array([], dtype=float)
        self.segment_ids = np.repeat(
            np.arange(len(self._counts)),
            np.array([len(c) for c in self._counts], dtype=int),
        )
        for array in (self.alt, self.ref, self.segment_ids):
            array.setflags(write=False)

    @classmethod
    def from_arrays(
        cls,
        alt: np.ndarray,
        ref: np.ndarray,
        segment_ids: np.ndarray,
        num_segments: int,
    ) -> "AlleleFractionData":
        """
        Build from per-site arrays and a segment index for each site.

        Parameters
        ----------
        alt : np.ndarray
            Alt read counts.
        ref : np.ndarray
            Ref read counts.
        segment_ids : np.ndarray
            Segment index (0 .. num_segments - 1) of each site.
        num_segments : int
            Number of segments, including any without sites.

        Returns
        -------
        AlleleFractionData
        """
        alt = np.asarray(alt)
        ref = np.asarray(ref)
        segment_ids = np.asarray(segment_ids)
        if not (alt.shape == ref.shape == segment_ids.shape) or alt.ndim != 1:
            raise ValueError("alt, ref and segment_ids must be 1-d of equal length")
        if num_segments < 0:
            raise ValueError("num_segments must be non-negative")
        if segment_ids.size and (
            segment_ids.min() < 0 or segment_ids.max() >= num_segments
        ):
            raise ValueError(f"segment_ids must lie in [0, {num_segments})")

        segments = [[] for _ in range(num_segments)]
        for a, r, s in zip(alt, ref, segment_ids):
            segments[int(s)].append(AllelicCount(a, r))
        return cls(segments)

    @property
    def num_segments(self) -> int:
        return len(self._counts)

    @property
    def num_hets(self) -> int:
        return int(self.alt.size)

    def num_hets_in_segment(self, segment: int) -> int:
        return len(self._counts[segment])

    def counts_in_segment(self, segment: int) -> list:
        return list(self._counts[segment])

    def segment_arrays(self, segment: int) -> tuple[np.ndarray, np.ndarray]:
        """Read-only (alt, ref) count arrays of one segment."""
        return self._alt[segment], self._ref[segment]

    def __repr__(self) -> str:
        return (
            f"AlleleFractionData(num_segments={self.num_segments}, "
            f"num_hets={self.num_hets})"
        )
