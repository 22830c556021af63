from dataclasses import dataclass


_DEFAULT_MEAN_BIAS_STEP_SIZE = 0.01
_DEFAULT_BIAS_VARIANCE_STEP_SIZE = 0.001
_DEFAULT_OUTLIER_PROBABILITY_STEP_SIZE = 0.01
_DEFAULT_MINOR_FRACTION_STEP_SIZE = 0.05
_DEFAULT_MAX_OUTLIER_PROBABILITY = 0.1
_DEFAULT_MAX_MINOR_FRACTION = 0.5
_DEFAULT_TARGET_ACCEPTANCE_RATE = 0.44
_DEFAULT_ADAPTATION_INTERVAL = 100
_DEFAULT_ADJUSTMENT_RATE = 1.0


@dataclass
class AlleleFractionSpec:
    """
    Configuration of the allele-fraction MCMC sampler.
    Owns the parameter bounds and the proposal tuning defaults.
    """

    # Initial random-walk step sizes
    mean_bias_step_size: float = _DEFAULT_MEAN_BIAS_STEP_SIZE
    bias_variance_step_size: float = _DEFAULT_BIAS_VARIANCE_STEP_SIZE
    outlier_probability_step_size: float = _DEFAULT_OUTLIER_PROBABILITY_STEP_SIZE
    minor_fraction_step_size: float = _DEFAULT_MINOR_FRACTION_STEP_SIZE

    # Structural bounds
    max_outlier_probability: float = _DEFAULT_MAX_OUTLIER_PROBABILITY
    max_minor_fraction: float = _DEFAULT_MAX_MINOR_FRACTION

    # Step-size adaptation
    target_acceptance_rate: float = _DEFAULT_TARGET_ACCEPTANCE_RATE
    adaptation_interval: int = _DEFAULT_ADAPTATION_INTERVAL
    adjustment_rate: float = _DEFAULT_ADJUSTMENT_RATE

    def __post_init__(self):
        for name in (
            "mean_bias_step_size",
            "bias_variance_step_size",
            "outlier_probability_step_size",
            "minor_fraction_step_size",
        ):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be positive")
        if not 0 < self.max_outlier_probability <= 1:
            raise ValueError("max_outlier_probability must be in (0, 1]")
        if not 0 < self.max_minor_fraction <= 0.5:
            raise ValueError("max_minor_fraction must be in (0, 0.5]")
        if not 0 < self.target_acceptance_rate < 1:
            raise ValueError("target_acceptance_rate must be in (0, 1)")
        if self.adaptation_interval < 1:
            raise ValueError("adaptation_interval must be at least 1")
        if not self.adjustment_rate > 0:
            raise ValueError("adjustment_rate must be positive")
