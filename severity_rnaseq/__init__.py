"""
Severity RNA-seq Analysis Package

Normalization, regulator activity inference and ordinal severity statistics
for bulk RNA-seq cohorts.
"""

__version__ = "0.1.0"
__author__ = "Severity RNA-seq Analysis Team"

# Core module imports
from .config import AnalysisConfig, NormalizationConfig, ActivityConfig, BatteryConfig
from .exceptions import (
    SeverityAnalysisError,
    ConfigurationError,
    ShapeMismatchError,
    InsufficientDataError,
    RegulatorExcludedWarning,
)
from .data.annotation import translate_identifiers, translate_matrix_index, load_annotation_table
from .data.tidy import to_tidy, to_wide, filter_entities
from .data.loaders import load_count_matrix, load_sample_metadata, create_sample_data
from .preprocessing.normalization import normalize
from .activity.inference import infer_activity, prepare_regulons
from .stats.battery import compare_groups
from .pipeline import SeverityAnalysis, PipelineResult

# Convenience aliases
tidy = to_tidy
voom_normalization = normalize

__all__ = [
    'AnalysisConfig',
    'NormalizationConfig',
    'ActivityConfig',
    'BatteryConfig',
    'SeverityAnalysisError',
    'ConfigurationError',
    'ShapeMismatchError',
    'InsufficientDataError',
    'RegulatorExcludedWarning',
    'translate_identifiers',
    'translate_matrix_index',
    'load_annotation_table',
    'to_tidy',
    'tidy',
    'to_wide',
    'filter_entities',
    'load_count_matrix',
    'load_sample_metadata',
    'create_sample_data',
    'normalize',
    'voom_normalization',
    'infer_activity',
    'prepare_regulons',
    'compare_groups',
    'SeverityAnalysis',
    'PipelineResult',
]
