"""
Conversion between wide matrices and long (tidy) tables.

A tidy table holds one row per (entity, sample) observation. Row order is
row-major over the source matrix so that results are reproducible and a
round trip through to_wide gives back the original matrix.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError, ShapeMismatchError

logger = logging.getLogger(__name__)


def to_tidy(
    matrix: pd.DataFrame,
    entity_name: str,
    key_name: str,
    value_name: str,
    metadata: Optional[pd.DataFrame] = None
) -> pd.DataFrame:
    """
    Convert an entity x sample matrix into a long table.

    Args:
        matrix: DataFrame with entities as index and samples as columns.
        entity_name: Name of the column receiving the row index (e.g. 'gene').
        key_name: Name of the column receiving the column index (e.g. 'sample').
        value_name: Name of the column receiving the cell values.
        metadata: Optional per-sample table containing a key_name column.
            It is left-joined onto the result; samples without metadata keep
            missing values.

    Returns:
        Long table with columns [entity_name, key_name, value_name, ...metadata].

    Raises:
        ConfigurationError: If the column names collide or metadata lacks
            key_name.
        ShapeMismatchError: If metadata has duplicated keys, which would
            duplicate observations.

    Example:
        >>> tidy = to_tidy(activity_matrix, 'tf', 'sample', 'activity', metadata)
    """
    names = [entity_name, key_name, value_name]
    if len(set(names)) != 3:
        raise ConfigurationError(f"Column names must be distinct, got {names}")

    n_entities, n_keys = matrix.shape
    tidy = pd.DataFrame({
        entity_name: np.repeat(matrix.index.to_numpy(), n_keys),
        key_name: np.tile(matrix.columns.to_numpy(), n_entities),
        value_name: matrix.to_numpy().ravel(),
    })

    if metadata is not None:
        if key_name not in metadata.columns:
            raise ConfigurationError(f"Metadata has no '{key_name}' column to join on")
        if metadata[key_name].duplicated().any():
            dupes = metadata.loc[metadata[key_name].duplicated(), key_name].unique()
            raise ShapeMismatchError(f"Duplicated keys in metadata: {list(dupes)[:10]}")

        clashing = set(metadata.columns) & {entity_name, value_name}
        if clashing:
            raise ConfigurationError(f"Metadata columns clash with tidy columns: {sorted(clashing)}")

        tidy = tidy.merge(metadata, on=key_name, how='left', sort=False)

        unmatched = set(matrix.columns) - set(metadata[key_name])
        if unmatched:
            logger.warning(f"{len(unmatched)} samples have no metadata")

    logger.debug(f"Tidied {n_entities} x {n_keys} matrix into {len(tidy)} rows")
    return tidy


def filter_entities(
    tidy: pd.DataFrame,
    entity_name: str,
    entities
) -> pd.DataFrame:
    """
    Keep the rows of one or more entities.

    Raises:
        ConfigurationError: If entity_name is not a column or none of the
            requested entities is present.
    """
    if entity_name not in tidy.columns:
        raise ConfigurationError(f"Tidy table has no '{entity_name}' column")
    if isinstance(entities, str) or not hasattr(entities, '__iter__'):
        entities = [entities]
    entities = list(entities)

    mask = tidy[entity_name].isin(entities)
    if not mask.any():
        raise ConfigurationError(f"None of {entities[:10]} found in column '{entity_name}'")

    absent = set(entities) - set(tidy.loc[mask, entity_name])
    if absent:
        logger.warning(f"Entities not present in table: {sorted(map(str, absent))}")
    return tidy.loc[mask].reset_index(drop=True)


def to_wide(
    tidy: pd.DataFrame,
    entity_name: str,
    key_name: str,
    value_name: str
) -> pd.DataFrame:
    """
    Pivot a long table back into an entity x sample matrix.

    Entities and keys keep their order of first appearance.

    Raises:
        ShapeMismatchError: If an (entity, key) pair occurs more than once.
    """
    if tidy.duplicated(subset=[entity_name, key_name]).any():
        raise ShapeMismatchError("Duplicated (entity, key) pairs cannot be pivoted")

    entities = pd.unique(tidy[entity_name])
    keys = pd.unique(tidy[key_name])

    wide = tidy.pivot(index=entity_name, columns=key_name, values=value_name)
    wide = wide.reindex(index=entities, columns=keys)
    wide.index.name = None
    wide.columns.name = None
    return wide
