"""
Count normalization: low-expression filter, TMM scaling and log-CPM.

This module turns a raw RNA-seq count matrix into continuous expression
values suitable for linear modelling and activity inference. It follows the
edgeR/limma procedure, with the edgeR steps delegated to edgepython:

1. filter_by_expr: keep genes with a worthwhile number of reads in at least
   as many samples as the smallest group (edgeR filterByExpr).
2. calc_norm_factors: trimmed mean of M-values (TMM) scale factors correcting
   for library composition (edgeR calcNormFactors).
3. voom_transform: log2 counts per million on the effective library sizes
   (limma voom expression values).

Example:
    >>> expression, report = normalize(counts, metadata['severity'], return_report=True)
    >>> print(report.summary())
    Discarding 4210 genes
    Keeping 13544 genes

References:
    - Robinson & Oshlack (2010) Genome Biology 11:R25 (TMM)
    - Chen, Lun & Smyth (2016) F1000Research 5:1438 (filterByExpr)
    - Law et al. (2014) Genome Biology 15:R29 (voom)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import edgepython as ep

from ..config import NormalizationConfig
from ..exceptions import ShapeMismatchError

logger = logging.getLogger(__name__)


@dataclass
class NormalizationReport:
    """
    Diagnostics of a normalize() call.

    Attributes:
        keep: Boolean keep mask over the input genes.
        lib_size: Library sizes used for normalization.
        norm_factors: TMM normalization factor per sample.
    """
    keep: pd.Series
    lib_size: pd.Series
    norm_factors: pd.Series

    @property
    def n_kept(self) -> int:
        return int(self.keep.sum())

    @property
    def n_discarded(self) -> int:
        return int((~self.keep).sum())

    @property
    def discarded(self) -> List:
        return self.keep.index[~self.keep.to_numpy()].tolist()

    @property
    def effective_lib_size(self) -> pd.Series:
        return self.lib_size * self.norm_factors

    def summary(self) -> str:
        return f"Discarding {self.n_discarded} genes\nKeeping {self.n_kept} genes"


def _validate_counts(counts: pd.DataFrame) -> np.ndarray:
    values = counts.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise ValueError("Count matrix contains missing or infinite values")
    if (values < 0).any():
        raise ValueError("Count matrix contains negative values")
    return values


def _library_sizes(counts: pd.DataFrame, lib_size=None) -> np.ndarray:
    if lib_size is None:
        lib = counts.to_numpy(dtype=float).sum(axis=0)
    else:
        lib = np.asarray(lib_size, dtype=float)
        if lib.shape != (counts.shape[1],):
            raise ShapeMismatchError(
                f"lib_size has {lib.size} entries for {counts.shape[1]} samples"
            )
    # edgepython only warns about empty libraries
    if (lib <= 0).any():
        empty = list(counts.columns[lib <= 0])
        raise ValueError(f"Samples with zero library size: {empty}")
    return lib


def _group_codes(group: Sequence, n_samples: int) -> Optional[np.ndarray]:
    """Integer group codes for edgepython; None when no sample is labelled."""
    labels = pd.Series(np.asarray(group, dtype=object))
    if len(labels) != n_samples:
        raise ShapeMismatchError(f"group has {len(labels)} labels for {n_samples} samples")

    codes, _ = pd.factorize(labels)
    missing = codes < 0
    if missing.all():
        logger.info("No sample has a group label. Assuming all samples belong to one group.")
        return None
    if missing.any():
        # unlabelled samples join the largest group, leaving the smallest group unchanged
        codes[missing] = np.bincount(codes[~missing]).argmax()
    return codes


def filter_by_expr(
    counts: pd.DataFrame,
    group: Optional[Sequence] = None,
    lib_size: Optional[Sequence[float]] = None,
    min_count: float = 10,
    min_total_count: float = 15,
    large_n: int = 10,
    min_prop: float = 0.7
) -> pd.Series:
    """
    Decide which genes have sufficiently large counts to be retained.

    A gene is kept if it reaches a CPM equivalent of min_count reads (at the
    median library size) in at least n samples, where n is the size of the
    smallest group, and its total count is at least min_total_count. Using
    the smallest group keeps genes expressed in only one group. The rule
    itself is edgepython's filter_by_expr.

    Args:
        counts: Raw counts, genes x samples.
        group: Group label per sample. None treats all samples as one group.
        lib_size: Library sizes; column sums by default.
        min_count: Minimum count in the minimum number of samples.
        min_total_count: Minimum total count across samples.
        large_n: Groups larger than this only need min_prop of their samples.
        min_prop: Proportion of samples used above large_n.

    Returns:
        Boolean Series indexed like counts.

    Raises:
        ShapeMismatchError: If group or lib_size does not match the samples.
    """
    values = _validate_counts(counts)
    lib = _library_sizes(counts, lib_size)

    codes = None
    if group is None:
        logger.info("No group set. Assuming all samples belong to one group.")
    else:
        codes = _group_codes(group, values.shape[1])

    keep = ep.filter_by_expr(
        values,
        group=codes,
        lib_size=lib,
        min_count=min_count,
        min_total_count=min_total_count,
        large_n=large_n,
        min_prop=min_prop
    )
    return pd.Series(np.asarray(keep, dtype=bool), index=counts.index, name='keep')


def calc_norm_factors(
    counts: pd.DataFrame,
    lib_size: Optional[Sequence[float]] = None,
    ref_column: Optional[Union[int, str]] = None,
    logratio_trim: float = 0.3,
    sum_trim: float = 0.05,
    do_weighting: bool = True,
    a_cutoff: float = -1e10
) -> pd.Series:
    """
    Compute TMM normalization factors with edgepython.

    Each sample is compared with a reference sample on genes' log-ratios (M)
    and average log-expression (A). The most extreme M and A values are
    trimmed and the remaining M values averaged with precision weights. The
    factors are scaled to have a geometric mean of one.

    Args:
        counts: Counts, genes x samples (normally already filtered).
        lib_size: Library sizes; column sums by default.
        ref_column: Reference sample (position or label). By default the
            sample whose upper quartile is closest to the mean upper quartile.
        logratio_trim: Fraction of M values trimmed at each end.
        sum_trim: Fraction of A values trimmed at each end.
        do_weighting: Weight M values by their inverse asymptotic variance.
        a_cutoff: Genes with A below this value are ignored.

    Returns:
        Series of normalization factors indexed by sample.
    """
    values = _validate_counts(counts)
    lib = _library_sizes(counts, lib_size)

    if isinstance(ref_column, str):
        ref_column = counts.columns.get_loc(ref_column)

    factors = ep.calc_norm_factors(
        values,
        lib_size=lib,
        method='TMM',
        ref_column=ref_column,
        logratio_trim=logratio_trim,
        sum_trim=sum_trim,
        do_weighting=do_weighting,
        a_cutoff=a_cutoff
    )
    return pd.Series(np.asarray(factors, dtype=float), index=counts.columns, name='norm_factors')


def voom_transform(
    counts: pd.DataFrame,
    lib_size: Optional[Sequence[float]] = None,
    norm_factors: Optional[Sequence[float]] = None
) -> pd.DataFrame:
    """
    Transform counts to log2 counts per million.

    Uses an offset of 0.5 reads and effective library sizes
    (lib_size * norm_factors), as limma voom does for its expression values.

    Returns:
        DataFrame of log2-CPM values with the same shape as counts.
    """
    lib = _library_sizes(counts, lib_size)
    if norm_factors is not None:
        lib = lib * np.asarray(norm_factors, dtype=float)

    if counts.shape[0] == 0:
        return pd.DataFrame(index=counts.index, columns=counts.columns, dtype=float)

    # voom: half a read added to each count, one read to each library
    values = counts.to_numpy(dtype=float)
    log_cpm = np.log2(ep.cpm(values + 0.5, lib_size=lib + 1))

    return pd.DataFrame(log_cpm, index=counts.index, columns=counts.columns)


def normalize(
    count_matrix: pd.DataFrame,
    group_labels: Sequence,
    config: Optional[NormalizationConfig] = None,
    return_report: bool = False
) -> Union[pd.DataFrame, Tuple[pd.DataFrame, NormalizationReport]]:
    """
    Filter, TMM-normalize and log-transform a raw count matrix.

    The counts go into an edgepython DGEList. Genes failing filter_by_expr
    are dropped, the remaining rows keep the library sizes of the full
    matrix unless config.keep_lib_sizes is False, and calc_norm_factors
    sets the TMM factors used for the log-CPM values.

    Args:
        count_matrix: Raw counts, genes x samples.
        group_labels: Group label per sample, in column order, used by the
            low-expression filter.
        config: Filter and TMM parameters. Defaults to NormalizationConfig().
        return_report: If True, also return a NormalizationReport.

    Returns:
        Expression matrix (log2-CPM) with the same sample columns and the
        retained genes in input order. With return_report, a tuple of
        (expression, report).

    Raises:
        ShapeMismatchError: If group_labels does not have one label per sample.
        ValueError: If counts are negative or not finite.

    Example:
        >>> expression = normalize(counts, metadata['severity'])
    """
    config = config or NormalizationConfig()

    if len(group_labels) != count_matrix.shape[1]:
        raise ShapeMismatchError(
            f"group_labels has {len(group_labels)} entries for "
            f"{count_matrix.shape[1]} samples"
        )
    values = _validate_counts(count_matrix)
    _library_sizes(count_matrix)

    codes = _group_codes(group_labels, count_matrix.shape[1])
    dge = ep.make_dgelist(values, group=codes)

    keep = np.asarray(ep.filter_by_expr(
        dge,
        group=codes,
        min_count=config.min_count,
        min_total_count=config.min_total_count,
        large_n=config.large_n,
        min_prop=config.min_prop
    ), dtype=bool)
    filtered = count_matrix.loc[keep]

    if config.keep_lib_sizes:
        lib = dge['samples']['lib.size'].to_numpy(dtype=float)
    else:
        lib = _library_sizes(filtered)

    if filtered.shape[0] > 0:
        kept = ep.make_dgelist(filtered.to_numpy(dtype=float), lib_size=lib, group=codes)
        kept = ep.calc_norm_factors(
            kept,
            method='TMM',
            logratio_trim=config.logratio_trim,
            sum_trim=config.sum_trim,
            do_weighting=config.do_weighting,
            a_cutoff=config.a_cutoff
        )
        factors = kept['samples']['norm.factors'].to_numpy(dtype=float)
    else:
        factors = np.ones(count_matrix.shape[1])

    lib_size = pd.Series(lib, index=count_matrix.columns, name='lib_size')
    norm_factors = pd.Series(factors, index=count_matrix.columns, name='norm_factors')
    expression = voom_transform(filtered, lib_size.to_numpy(), norm_factors.to_numpy())

    report = NormalizationReport(
        keep=pd.Series(keep, index=count_matrix.index, name='keep'),
        lib_size=lib_size,
        norm_factors=norm_factors
    )
    logger.info(report.summary().replace('\n', ', '))
    if report.n_kept == 0:
        logger.warning("No genes passed the expression filter")

    if return_report:
        return expression, report
    return expression
