"""
Regulator activity inference from normalized expression.

Activity scores are computed by an external enrichment algorithm (VIPER
through decoupler by default) on a reference regulatory network such as
DoRothEA. This module prepares the network, enforces the regulon size
policy, calls the scorer and reshapes its output into a tidy table.

Example:
    >>> regulons = prepare_regulons(dorothea_mm, confidence_levels=('A', 'B', 'C'))
    >>> result = infer_activity(expression, regulons)
    >>> result.scores.head()
      regulator sample  activity
    0      Ahr   S000  0.413224
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import ActivityConfig
from ..data.tidy import to_tidy
from ..exceptions import ConfigurationError, RegulatorExcludedWarning

logger = logging.getLogger(__name__)

# scorer(data: samples x genes, net: source/target/weight, tmin) -> samples x regulators
Scorer = Callable[[pd.DataFrame, pd.DataFrame, int], pd.DataFrame]

NETWORK_COLUMNS = ('source', 'target', 'weight')


@dataclass
class ActivityResult:
    """
    Output of infer_activity.

    Attributes:
        scores: Tidy table with columns regulator, sample, activity.
        matrix: Regulators x samples activity matrix.
        excluded: Regulators that could not be scored, with the reason.
    """
    scores: pd.DataFrame
    matrix: pd.DataFrame
    excluded: Dict[str, str] = field(default_factory=dict)

    @property
    def regulators(self):
        return self.matrix.index.tolist()


def prepare_regulons(
    network: pd.DataFrame,
    confidence_levels: Optional[Sequence[str]] = ('A', 'B', 'C'),
    source_col: str = 'tf',
    target_col: str = 'target',
    weight_col: str = 'mor',
    confidence_col: Optional[str] = 'confidence'
) -> pd.DataFrame:
    """
    Bring a reference network into source/target/weight shape.

    Args:
        network: Regulator-target table, e.g. DoRothEA with columns
            tf, confidence, target, mor.
        confidence_levels: Confidence classes to keep. None keeps all rows.
        source_col: Column with regulator names.
        target_col: Column with target gene names.
        weight_col: Column with mode of action (sign and strength).
        confidence_col: Column with confidence classes. Ignored when
            confidence_levels is None.

    Returns:
        Network with columns source, target, weight and unique
        (source, target) pairs.

    Raises:
        ConfigurationError: If a named column is missing.
    """
    required = [source_col, target_col, weight_col]
    if confidence_levels is not None and confidence_col is not None:
        required.append(confidence_col)
    missing = [c for c in required if c not in network.columns]
    if missing:
        raise ConfigurationError(
            f"Network is missing columns {missing}; available: {list(network.columns)}"
        )

    net = network
    if confidence_levels is not None and confidence_col is not None:
        net = net[net[confidence_col].isin(list(confidence_levels))]

    net = (
        net[[source_col, target_col, weight_col]]
        .rename(columns={source_col: 'source', target_col: 'target', weight_col: 'weight'})
        .dropna()
        .drop_duplicates(subset=['source', 'target'])
        .reset_index(drop=True)
    )
    net['weight'] = net['weight'].astype(float)

    logger.info(
        f"Prepared {net['source'].nunique()} regulons with {len(net)} interactions"
    )
    return net


def regulon_sizes(network: pd.DataFrame, genes: Sequence) -> pd.Series:
    """Number of measured targets per regulator (zero if none are measured)."""
    measured = network['target'].isin(set(genes))
    sizes = network.loc[measured].groupby('source', sort=False).size()
    return sizes.reindex(pd.unique(network['source']), fill_value=0).astype(int)


def _check_network(network: pd.DataFrame) -> None:
    missing = [c for c in NETWORK_COLUMNS if c not in network.columns]
    if missing:
        raise ConfigurationError(
            f"Network must have columns {list(NETWORK_COLUMNS)} (missing {missing}); "
            f"use prepare_regulons to convert it"
        )


def _exclude(excluded: Dict[str, str], regulator, reason: str) -> None:
    excluded[regulator] = reason
    message = f"Regulator {regulator} excluded: {reason}"
    logger.warning(message)
    warnings.warn(message, RegulatorExcludedWarning, stacklevel=3)


def decoupler_scorer(method: str = 'viper', **kwargs) -> Scorer:
    """
    Build a scorer backed by a decoupler method.

    Args:
        method: Name of a method in decoupler.mt (e.g. 'viper', 'ulm').
        **kwargs: Extra options passed to the method.

    Returns:
        Callable returning enrichment scores as samples x regulators.
    """
    def score(data: pd.DataFrame, net: pd.DataFrame, tmin: int) -> pd.DataFrame:
        import decoupler as dc

        try:
            run = getattr(dc.mt, method)
        except AttributeError as e:
            raise ConfigurationError(f"decoupler has no method '{method}'") from e

        estimates, _ = run(data=data, net=net, tmin=tmin, **kwargs)
        return estimates

    return score


def infer_activity(
    expression_matrix: pd.DataFrame,
    regulatory_network: pd.DataFrame,
    options: Optional[ActivityConfig] = None,
    scorer: Optional[Scorer] = None
) -> ActivityResult:
    """
    Score regulator activity per sample.

    Regulators with fewer measured targets than options.min_size are
    excluded with a RegulatorExcludedWarning before scoring; regulators the
    scorer silently drops are reported the same way. Neither is fatal.

    Args:
        expression_matrix: Normalized expression, genes x samples.
        regulatory_network: Network with source, target, weight columns.
        options: Activity options. Defaults to ActivityConfig() (normalized
            enrichment scores, minimum regulon size 4, no per-sample filter).
        scorer: Scoring function; defaults to decoupler VIPER.

    Returns:
        ActivityResult with tidy scores, the wide matrix and exclusions.
    """
    options = options or ActivityConfig()
    _check_network(regulatory_network)

    if scorer is None:
        kwargs = {'pleiotropy': options.pleiotropy} if options.method == 'viper' else {}
        scorer = decoupler_scorer(options.method, **kwargs)

    genes = expression_matrix.index
    sizes = regulon_sizes(regulatory_network, genes)

    excluded: Dict[str, str] = {}
    for regulator, size in sizes[sizes < options.min_size].items():
        _exclude(
            excluded, regulator,
            f"regulon has {size} measured targets, fewer than {options.min_size}"
        )

    eligible = sizes.index[sizes >= options.min_size]
    net = regulatory_network[
        regulatory_network['source'].isin(eligible)
        & regulatory_network['target'].isin(set(genes))
    ].reset_index(drop=True)

    samples = expression_matrix.columns
    if net.empty:
        logger.warning("No regulon reaches the minimum size; no activities computed")
        matrix = pd.DataFrame(index=pd.Index([], name=None), columns=samples, dtype=float)
        return ActivityResult(
            scores=to_tidy(matrix, 'regulator', 'sample', 'activity'),
            matrix=matrix,
            excluded=excluded,
        )

    data = expression_matrix.T.astype(np.float64)
    logger.info(
        f"Scoring {len(eligible)} regulators on {data.shape[1]} genes x {data.shape[0]} samples"
    )
    estimates = scorer(data, net, options.min_size)

    for regulator in eligible.difference(estimates.columns, sort=False):
        _exclude(excluded, regulator, "not scored by the activity algorithm")

    matrix = estimates.T.reindex(columns=samples)
    matrix.index.name = None
    matrix.columns.name = None

    scores = to_tidy(matrix, 'regulator', 'sample', 'activity')
    return ActivityResult(scores=scores, matrix=matrix, excluded=excluded)
