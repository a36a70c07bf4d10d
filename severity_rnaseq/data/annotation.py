"""
Cross-species gene identifier annotation.

The annotation table maps mouse (MGI) and human (HGNC) gene identifiers in
several namespaces: symbols, Ensembl gene ids (with and without version) and
NCBI Entrez ids. It is built once offline from a BioMart ortholog query and
is read-only at analysis time; callers load it once and pass it to
translate_identifiers explicitly.

Example:
    >>> annotation = load_annotation_table('gene_id_annotation.tsv.gz')
    >>> human = translate_identifiers(
    ...     mouse_table, annotation,
    ...     from_namespace='symbol_mgi',
    ...     to_namespace='symbol_hgnc',
    ...     drop_unmapped=True
    ... )
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError
from .loaders import _separator

logger = logging.getLogger(__name__)

NAMESPACES = (
    'symbol_mgi',
    'ensembl_mgi',
    'ensembl_v_mgi',
    'entrez_mgi',
    'symbol_hgnc',
    'ensembl_hgnc',
    'ensembl_v_hgnc',
    'entrez_hgnc',
)

# Column headers of a BioMart getLDS query (mouse attributes first, then the
# linked human attributes with a ".1" suffix where names collide).
BIOMART_COLUMNS = {
    'MGI.symbol': 'symbol_mgi',
    'Gene.stable.ID': 'ensembl_mgi',
    'Gene.stable.ID.version': 'ensembl_v_mgi',
    'NCBI.gene.ID': 'entrez_mgi',
    'HGNC.symbol': 'symbol_hgnc',
    'Gene.stable.ID.1': 'ensembl_hgnc',
    'Gene.stable.ID.version.1': 'ensembl_v_hgnc',
    'NCBI.gene.ID.1': 'entrez_hgnc',
}


def _validate_namespaces(columns) -> None:
    unknown = [c for c in columns if c not in NAMESPACES]
    if unknown:
        raise ConfigurationError(
            f"Unknown annotation namespaces {unknown}; "
            f"must be one of: {', '.join(NAMESPACES)}"
        )


def build_annotation_table(biomart_output: pd.DataFrame) -> pd.DataFrame:
    """
    Build the annotation table from raw BioMart ortholog output.

    Renames the BioMart headers to namespace names, turns integer identifiers
    (Entrez ids) into strings and treats empty strings as missing.

    Args:
        biomart_output: DataFrame returned by a mouse/human getLDS query.

    Returns:
        Annotation table with one column per namespace.

    Raises:
        ConfigurationError: If a column is neither a BioMart header nor a
            namespace name.
    """
    table = biomart_output.rename(columns=BIOMART_COLUMNS)
    _validate_namespaces(table.columns)

    def _as_identifier(column: pd.Series) -> pd.Series:
        if pd.api.types.is_float_dtype(column):
            # Entrez ids read with missing values come back as floats
            column = column.astype('Int64')
        text = column.astype('string')
        return text.mask(text.str.strip().eq('').fillna(False).astype(bool))

    table = table.apply(_as_identifier)
    logger.info(f"Built annotation table with {len(table)} mappings")
    return table.astype(object).where(table.notna(), np.nan)


def load_annotation_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a persisted annotation table.

    Args:
        path: Delimited file (.csv or .tsv/.txt, optionally gzip-compressed)
            with one column per namespace.

    Returns:
        Annotation table with string identifiers and NaN for missing values.

    Raises:
        ConfigurationError: If the file has columns outside the namespace
            whitelist or an unsupported extension.
    """
    path = Path(path)
    table = pd.read_csv(path, sep=_separator(path), dtype=str, keep_default_na=False)
    _validate_namespaces(table.columns)
    table = table.replace('', np.nan)

    logger.info(f"Loaded annotation table {path.name}: {len(table)} mappings")
    return table


def translate_identifiers(
    table: pd.DataFrame,
    annotation: pd.DataFrame,
    from_namespace: str,
    to_namespace: str,
    id_column: str = 'gene',
    drop_unmapped: bool = False
) -> pd.DataFrame:
    """
    Translate a table's identifier column into another namespace.

    The annotation is reduced to the two requested namespace columns without
    missing values, left-joined on the identifier column and the translated
    identifier replaces the original one as the first column. Mappings are
    generally many-to-many, so the row count can grow when one identifier
    has several orthologs.

    Args:
        table: Table with at least the identifier column.
        annotation: Annotation table, e.g. from load_annotation_table.
        from_namespace: Namespace of the identifiers in id_column.
        to_namespace: Desired namespace.
        id_column: Name of the identifier column in table.
        drop_unmapped: Remove rows without a translation. If False they are
            kept with a missing identifier.

    Returns:
        New table with translated identifiers.

    Raises:
        ConfigurationError: If a namespace is not a column of the annotation
            or id_column is not a column of table.

    Example:
        >>> translated = translate_identifiers(
        ...     counts_df, annotation, 'symbol_mgi', 'symbol_hgnc'
        ... )
    """
    missing = [ns for ns in (from_namespace, to_namespace) if ns not in annotation.columns]
    if missing:
        raise ConfigurationError(
            f"'from' and 'to' must be one of: {', '.join(map(str, annotation.columns))} "
            f"(got {missing})"
        )
    if id_column not in table.columns:
        raise ConfigurationError(f"Identifier column '{id_column}' not found in table")

    if from_namespace == to_namespace:
        return table.copy()

    mapping = (
        annotation[[from_namespace, to_namespace]]
        .dropna()
        .drop_duplicates()
    )

    source = table.rename(columns={id_column: from_namespace})
    source[from_namespace] = source[from_namespace].astype(object)
    mapped = source.merge(mapping, on=from_namespace, how='left')

    other_columns = [c for c in source.columns if c != from_namespace]
    mapped = mapped.rename(columns={to_namespace: id_column})
    mapped = mapped[[id_column] + other_columns].reset_index(drop=True)

    n_unmapped = int(mapped[id_column].isna().sum())
    if drop_unmapped:
        mapped = mapped.dropna(subset=[id_column]).reset_index(drop=True)

    logger.info(
        f"Translated {from_namespace} -> {to_namespace}: "
        f"{len(table)} input rows, {n_unmapped} without translation"
        + (" (dropped)" if drop_unmapped and n_unmapped else "")
    )
    return mapped


def translate_matrix_index(
    matrix: pd.DataFrame,
    annotation: pd.DataFrame,
    from_namespace: str,
    to_namespace: str,
    aggregate: str = 'sum'
) -> pd.DataFrame:
    """
    Translate the row index of an entity x sample matrix.

    Unmapped rows are dropped. Rows that end up with the same identifier are
    summed ('sum') or reduced to their first occurrence ('first').

    Args:
        matrix: Matrix with entity identifiers as index.
        annotation: Annotation table.
        from_namespace: Namespace of the current index.
        to_namespace: Desired namespace.
        aggregate: 'sum' or 'first'.

    Returns:
        New matrix indexed by the translated identifiers, same columns.
    """
    if aggregate not in ('sum', 'first'):
        raise ConfigurationError(f"Unknown aggregate: {aggregate}")

    id_column = '__identifier__'
    frame = matrix.copy()
    frame.index.name = id_column
    frame = frame.reset_index()

    translated = translate_identifiers(
        frame, annotation, from_namespace, to_namespace,
        id_column=id_column, drop_unmapped=True
    )

    grouped = translated.groupby(id_column, sort=False)
    result = grouped.sum() if aggregate == 'sum' else grouped.first()
    result.index.name = matrix.index.name
    result.columns = matrix.columns

    n_collapsed = len(translated) - len(result)
    if n_collapsed:
        logger.info(f"Collapsed {n_collapsed} duplicated identifiers with '{aggregate}'")
    return result
