"""
Statistical comparison of entities across ordered groups.
"""

from .battery import EntityComparison, BatteryResult, ordinal_encoding, compare_entity, compare_groups

__all__ = [
    'EntityComparison',
    'BatteryResult',
    'ordinal_encoding',
    'compare_entity',
    'compare_groups',
]
