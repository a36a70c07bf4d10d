"""
Tests for configuration dataclasses and the logging helper.
"""

import logging

import pytest

from severity_rnaseq.config import (
    AnalysisConfig,
    ActivityConfig,
    BatteryConfig,
    NormalizationConfig,
)
from severity_rnaseq.exceptions import ConfigurationError
from severity_rnaseq.utils.logging import configure_logging


class TestSectionConfigs:
    """Tests for the per-stage configuration objects."""

    def test_normalization_defaults(self):
        """Test the edgeR default filter parameters."""
        config = NormalizationConfig()
        assert config.min_count == 10
        assert config.min_total_count == 15
        assert config.large_n == 10
        assert config.min_prop == 0.7
        assert config.keep_lib_sizes is True

    def test_invalid_trim(self):
        """Test that trims of half the data or more are rejected."""
        with pytest.raises(ConfigurationError):
            NormalizationConfig(logratio_trim=0.5)

    def test_activity_defaults(self):
        """Test the default activity options."""
        config = ActivityConfig()
        assert config.min_size == 4
        assert config.confidence_levels == ('A', 'B', 'C')
        assert config.pleiotropy is False

    def test_invalid_min_size(self):
        """Test that regulons need at least one target."""
        with pytest.raises(ConfigurationError):
            ActivityConfig(min_size=0)

    def test_battery_pairs_normalized(self):
        """Test that comparison pairs become tuples."""
        config = BatteryConfig(pairwise_comparisons=[['none', 'mild']])
        assert config.pairwise_comparisons == [('none', 'mild')]

    def test_battery_invalid_pair(self):
        """Test that pairs must name two groups."""
        with pytest.raises(ConfigurationError):
            BatteryConfig(pairwise_comparisons=[('none', 'mild', 'severe')])

    def test_battery_invalid_method(self):
        """Test that unknown adjustment methods are rejected."""
        with pytest.raises(ConfigurationError, match="adjust_method"):
            BatteryConfig(adjust_method='magic')

    @pytest.mark.parametrize('n_jobs', [0, 1.5, '2', True])
    def test_battery_invalid_n_jobs(self, n_jobs):
        """Test that n_jobs must be a non-zero integer."""
        with pytest.raises(ConfigurationError, match="n_jobs"):
            BatteryConfig(n_jobs=n_jobs)

    def test_battery_negative_n_jobs(self):
        """Test that joblib's negative worker counts are accepted."""
        assert BatteryConfig(n_jobs=-1).n_jobs == -1


class TestAnalysisConfig:
    """Tests for AnalysisConfig."""

    def test_filter_group_defaults_to_severity(self, severity_levels):
        """Test that the filter groups default to the severity column."""
        config = AnalysisConfig(severity_column='grade', severity_levels=severity_levels)
        assert config.filter_group_column == 'grade'
        assert config.refilter_per_comparison is False
        assert not config.translates_ids

    def test_translation_needs_both_namespaces(self, severity_levels):
        """Test that translate_from and translate_to are set together."""
        with pytest.raises(ConfigurationError):
            AnalysisConfig('severity', severity_levels, translate_from='symbol_mgi')

    def test_duplicated_levels(self):
        """Test that severity levels must be unique."""
        with pytest.raises(ConfigurationError, match="Duplicated"):
            AnalysisConfig('severity', ['none', 'none', 'severe'])

    def test_single_level(self):
        """Test that at least two severity levels are required."""
        with pytest.raises(ConfigurationError):
            AnalysisConfig('severity', ['none'])

    def test_from_dict_sections(self, severity_levels):
        """Test building nested sections from a dictionary."""
        config = AnalysisConfig.from_dict({
            'severity_column': 'severity',
            'severity_levels': severity_levels,
            'translate_from': 'symbol_mgi',
            'translate_to': 'symbol_hgnc',
            'normalization': {'min_count': 5},
            'battery': {'n_jobs': 4},
        })
        assert config.translates_ids
        assert config.normalization.min_count == 5
        assert config.battery.n_jobs == 4
        assert isinstance(config.activity, ActivityConfig)

    def test_from_dict_unknown_key(self, severity_levels):
        """Test that typos in keys are reported."""
        with pytest.raises(ConfigurationError, match="Unknown configuration keys"):
            AnalysisConfig.from_dict({
                'severity_column': 'severity',
                'severity_levels': severity_levels,
                'n_job': 2,
            })

    def test_from_dict_unknown_section_key(self, severity_levels):
        """Test that unknown keys inside a section are reported."""
        with pytest.raises(ConfigurationError, match="battery"):
            AnalysisConfig.from_dict({
                'severity_column': 'severity',
                'severity_levels': severity_levels,
                'battery': {'workers': 2},
            })


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_single_handler(self):
        """Test that repeated calls do not stack handlers."""
        logger = configure_logging('DEBUG')
        n_handlers = len(logger.handlers)
        configure_logging(logging.WARNING)
        assert len(logger.handlers) == n_handlers
        assert logger.level == logging.WARNING
        logger.setLevel(logging.NOTSET)

    def test_unknown_level(self):
        """Test that unknown level names are rejected."""
        with pytest.raises(ValueError, match="Unknown logging level: .chatty."):
            configure_logging('chatty')
