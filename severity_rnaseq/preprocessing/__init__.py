"""
Count filtering and normalization.
"""

from .normalization import (
    NormalizationReport,
    filter_by_expr,
    calc_norm_factors,
    voom_transform,
    normalize,
)

__all__ = [
    'NormalizationReport',
    'filter_by_expr',
    'calc_norm_factors',
    'voom_transform',
    'normalize',
]
