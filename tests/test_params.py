import pytest
from MAFmcmc.params import AlleleFractionSpec


class TestAlleleFractionSpec:
    """Tests for AlleleFractionSpec dataclass."""

    def test_default_initialization(self):
        """Test default values are set correctly."""
        spec = AlleleFractionSpec()

        assert spec.mean_bias_step_size == 0.01
        assert spec.bias_variance_step_size == 0.001
        assert spec.outlier_probability_step_size == 0.01
        assert spec.minor_fraction_step_size == 0.05
        assert spec.max_outlier_probability == 0.1
        assert spec.max_minor_fraction == 0.5
        assert spec.target_acceptance_rate == 0.44
        assert spec.adaptation_interval == 100
        assert spec.adjustment_rate == 1.0

    def test_custom_parameters(self):
        """Test setting custom parameters."""
        spec = AlleleFractionSpec(
            minor_fraction_step_size=0.02,
            max_outlier_probability=0.05,
            target_acceptance_rate=0.3,
            adaptation_interval=50,
        )

        assert spec.minor_fraction_step_size == 0.02
        assert spec.max_outlier_probability == 0.05
        assert spec.target_acceptance_rate == 0.3
        assert spec.adaptation_interval == 50

    def test_validation_step_size(self):
        """Test that non-positive step sizes raise ValueError."""
        with pytest.raises(ValueError, match="mean_bias_step_size must be positive"):
            AlleleFractionSpec(mean_bias_step_size=0.0)
        with pytest.raises(ValueError, match="minor_fraction_step_size"):
            AlleleFractionSpec(minor_fraction_step_size=-0.1)

    def test_validation_max_outlier_probability(self):
        """Test that the outlier cap must lie in (0, 1]."""
        with pytest.raises(ValueError, match="max_outlier_probability"):
            AlleleFractionSpec(max_outlier_probability=0.0)
        with pytest.raises(ValueError, match="max_outlier_probability"):
            AlleleFractionSpec(max_outlier_probability=1.5)

    def test_validation_max_minor_fraction(self):
        """Test that the minor fraction cap cannot exceed 0.5."""
        with pytest.raises(ValueError, match="max_minor_fraction"):
            AlleleFractionSpec(max_minor_fraction=0.6)

    def test_validation_adaptation(self):
        """Test adaptation settings are validated."""
        with pytest.raises(ValueError, match="target_acceptance_rate"):
            AlleleFractionSpec(target_acceptance_rate=1.0)
        with pytest.raises(ValueError, match="adaptation_interval"):
            AlleleFractionSpec(adaptation_interval=0)
        with pytest.raises(ValueError, match="adjustment_rate"):
            AlleleFractionSpec(adjustment_rate=0.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
