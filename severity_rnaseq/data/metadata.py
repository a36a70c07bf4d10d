"""
Sample metadata checks: alignment with the count matrix and ordered factors.
"""

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError, ShapeMismatchError

logger = logging.getLogger(__name__)


def _as_label(value) -> str:
    # stage codes read alongside missing values arrive as floats (2.0)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        value = int(value)
    return str(value)


def as_ordered_factor(
    metadata: pd.DataFrame,
    column: str,
    levels: Sequence[str]
) -> pd.DataFrame:
    """
    Return a copy of metadata with column converted to an ordered categorical.

    Args:
        metadata: Sample metadata.
        column: Column to convert, e.g. the disease severity stage.
        levels: Explicit level order, lowest first (e.g. none < mild < severe).

    Returns:
        Copy of metadata with an ordered pd.Categorical column.

    Raises:
        ConfigurationError: If the column is missing or holds values outside
            levels.
    """
    if column not in metadata.columns:
        raise ConfigurationError(f"Metadata has no column '{column}'")

    levels = list(levels)
    values = metadata[column].astype(object).map(_as_label, na_action='ignore')
    observed = values.dropna().unique()
    unknown = sorted(set(observed) - set(levels))
    if unknown:
        raise ConfigurationError(
            f"Column '{column}' has values {unknown} outside levels {levels}"
        )

    result = metadata.copy()
    result[column] = pd.Categorical(values, categories=levels, ordered=True)
    return result


def align_samples(
    matrix: pd.DataFrame,
    metadata: pd.DataFrame,
    sample_column: str = 'sample'
) -> pd.DataFrame:
    """
    Re-order metadata rows to the column order of matrix.

    The matrix is the reference: its columns must be exactly the metadata
    sample identifiers (as sets, without duplicates). The returned metadata
    has its sample column equal, in order, to matrix.columns.

    Args:
        matrix: Entity x sample matrix.
        metadata: One row per sample.
        sample_column: Metadata column with sample identifiers.

    Returns:
        Re-ordered copy of metadata with a fresh RangeIndex.

    Raises:
        ConfigurationError: If sample_column is missing.
        ShapeMismatchError: If sample sets differ or identifiers are duplicated.
    """
    if sample_column not in metadata.columns:
        raise ConfigurationError(f"Metadata has no sample column '{sample_column}'")

    samples = pd.Index(matrix.columns)
    meta_samples = pd.Index(metadata[sample_column])

    if samples.has_duplicates:
        raise ShapeMismatchError(
            f"Duplicated sample columns in matrix: {list(samples[samples.duplicated()])}"
        )
    if meta_samples.has_duplicates:
        raise ShapeMismatchError(
            f"Duplicated samples in metadata: {list(meta_samples[meta_samples.duplicated()])}"
        )

    missing = samples.difference(meta_samples)
    extra = meta_samples.difference(samples)
    if len(missing) or len(extra):
        raise ShapeMismatchError(
            f"Samples do not match: {len(missing)} without metadata {list(missing[:10])}, "
            f"{len(extra)} without counts {list(extra[:10])}"
        )

    aligned = metadata.set_index(sample_column, drop=False).loc[samples].reset_index(drop=True)

    if not aligned[sample_column].tolist() == samples.tolist():
        raise ShapeMismatchError("Sample order could not be aligned with matrix columns")

    logger.info(f"Aligned metadata for {len(samples)} samples")
    return aligned


def check_alignment(
    matrix: pd.DataFrame,
    metadata: pd.DataFrame,
    sample_column: str = 'sample'
) -> None:
    """Raise ShapeMismatchError unless metadata rows match matrix columns in order."""
    if sample_column not in metadata.columns:
        raise ConfigurationError(f"Metadata has no sample column '{sample_column}'")
    if metadata[sample_column].tolist() != list(matrix.columns):
        raise ShapeMismatchError(
            "Matrix columns and metadata samples differ in content or order"
        )
