"""
Regulator activity inference.
"""

from .inference import (
    ActivityResult,
    prepare_regulons,
    regulon_sizes,
    decoupler_scorer,
    infer_activity,
)

__all__ = [
    'ActivityResult',
    'prepare_regulons',
    'regulon_sizes',
    'decoupler_scorer',
    'infer_activity',
]
