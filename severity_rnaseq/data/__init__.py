"""
Data loading, identifier translation and reshaping.
"""

from .annotation import (
    build_annotation_table,
    load_annotation_table,
    translate_identifiers,
    translate_matrix_index,
)
from .loaders import load_count_matrix, load_sample_metadata, create_sample_data
from .metadata import as_ordered_factor, align_samples, check_alignment
from .tidy import to_tidy, to_wide, filter_entities

__all__ = [
    'build_annotation_table',
    'load_annotation_table',
    'translate_identifiers',
    'translate_matrix_index',
    'load_count_matrix',
    'load_sample_metadata',
    'create_sample_data',
    'as_ordered_factor',
    'align_samples',
    'check_alignment',
    'to_tidy',
    'to_wide',
    'filter_entities',
]
