"""
Statistical battery comparing entities across ordinal severity groups.

For every entity (gene or regulator) in a tidy table four analyses are run
independently:

1. One-way ANOVA of the value on the group (group as a nominal factor).
2. Tukey HSD post-hoc tests between group levels (family-wise adjusted).
3. Linear trend: value regressed on the group's ordinal level index.
4. Spearman rank correlation between value and the ordinal level index.

Entities do not share state, so they can be processed in parallel. An
entity without enough observations raises InsufficientDataError; within
compare_groups that error is recorded and the remaining entities continue.

Example:
    >>> tidy = to_tidy(activity, 'regulator', 'sample', 'activity', metadata)
    >>> result = compare_groups(
    ...     filter_entities(tidy, 'regulator', ['Stat3', 'Nfkb1']),
    ...     value_column='activity',
    ...     group_column='severity',
    ...     entity_column='regulator',
    ...     pairwise_comparisons=[('none', 'mild'), ('none', 'severe')],
    ... )
    >>> result.anova
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from joblib import Parallel, delayed
from scipy import stats
from statsmodels.stats.multitest import multipletests
from tqdm import tqdm

from ..exceptions import ConfigurationError, InsufficientDataError

logger = logging.getLogger(__name__)

MIN_OBSERVATIONS = 2

ANOVA_COLUMNS = ['term', 'df', 'sumsq', 'meansq', 'statistic', 'p_value']
POSTHOC_COLUMNS = ['group1', 'group2', 'estimate', 'conf_low', 'conf_high', 'p_adj']
LINEAR_COLUMNS = ['term', 'estimate', 'std_error', 'statistic', 'p_value']
CORRELATION_COLUMNS = ['estimate', 'p_value', 'method']


@dataclass
class EntityComparison:
    """
    Battery results of a single entity.

    Attributes:
        entity: Entity identifier.
        anova: One row with the F test of the group term.
        posthoc: One row per compared pair of levels.
        linear_model: Coefficients of the trend model, intercept excluded.
        correlation: One row with Spearman's rho.
        group_sizes: Non-missing observations per observed level.
    """
    entity: object
    anova: pd.DataFrame
    posthoc: pd.DataFrame
    linear_model: pd.DataFrame
    correlation: pd.DataFrame
    group_sizes: Dict[str, int] = field(default_factory=dict)


@dataclass
class BatteryResult:
    """
    Concatenated battery results over many entities.

    Every table starts with the entity column and carries a p_adj_entities
    column correcting its p-values across entities.

    Attributes:
        anova: ANOVA rows of all entities.
        posthoc: Post-hoc rows of all entities.
        linear_model: Trend coefficients of all entities.
        correlation: Spearman rows of all entities.
        failures: Entities that could not be tested, with their error.
        entity_column: Name of the entity column.
    """
    anova: pd.DataFrame
    posthoc: pd.DataFrame
    linear_model: pd.DataFrame
    correlation: pd.DataFrame
    failures: Dict[object, InsufficientDataError] = field(default_factory=dict)
    entity_column: str = 'entity'

    @property
    def entities(self) -> List:
        return self.anova[self.entity_column].tolist()

    def tables(self) -> Dict[str, pd.DataFrame]:
        return {
            'anova': self.anova,
            'posthoc': self.posthoc,
            'linear_model': self.linear_model,
            'correlation': self.correlation,
        }

    def summary(self) -> str:
        lines = [f"Tested {len(self.entities)} entities, {len(self.failures)} failed"]
        for entity, error in self.failures.items():
            lines.append(f"  {entity}: {error.message}")
        return '\n'.join(lines)


def _check_group_column(data: pd.DataFrame, group_column: str) -> None:
    dtype = data[group_column].dtype
    if not isinstance(dtype, pd.CategoricalDtype) or not dtype.ordered:
        raise ConfigurationError(
            f"Column '{group_column}' must be an ordered categorical; "
            f"use as_ordered_factor to declare its level order"
        )


def ordinal_encoding(groups: pd.Series) -> pd.Series:
    """
    Encode an ordered categorical as its 1-based level index.

    The index follows the declared levels, including levels without
    observations, so gaps between levels are kept. Missing values stay NaN.
    """
    if not isinstance(groups.dtype, pd.CategoricalDtype) or not groups.dtype.ordered:
        raise ConfigurationError("Ordinal encoding needs an ordered categorical")
    codes = groups.cat.codes.astype(float)
    return (codes.where(codes >= 0) + 1).rename(groups.name)


def _anova(frame: pd.DataFrame, group_column: str) -> pd.DataFrame:
    model = smf.ols('value ~ C(group)', data=frame).fit()
    table = sm.stats.anova_lm(model, typ=1)
    row = table.loc['C(group)']
    return pd.DataFrame([{
        'term': group_column,
        'df': float(row['df']),
        'sumsq': float(row['sum_sq']),
        'meansq': float(row['mean_sq']),
        'statistic': float(row['F']),
        'p_value': float(row['PR(>F)']),
    }], columns=ANOVA_COLUMNS)


def _posthoc(
    frame: pd.DataFrame,
    observed: List[str],
    pairs: List[Tuple[str, str]],
    alpha: float
) -> pd.DataFrame:
    samples = [frame.loc[frame['group'] == level, 'value'].to_numpy() for level in observed]
    tukey = stats.tukey_hsd(*samples)
    interval = tukey.confidence_interval(confidence_level=1 - alpha)

    position = {level: i for i, level in enumerate(observed)}
    rows = []
    for group1, group2 in pairs:
        i, j = position[group1], position[group2]
        # statistic[j, i] is mean(group2) - mean(group1)
        rows.append({
            'group1': group1,
            'group2': group2,
            'estimate': float(tukey.statistic[j, i]),
            'conf_low': float(interval.low[j, i]),
            'conf_high': float(interval.high[j, i]),
            'p_adj': float(tukey.pvalue[j, i]),
        })
    return pd.DataFrame(rows, columns=POSTHOC_COLUMNS)


def _linear_trend(frame: pd.DataFrame, group_column: str) -> pd.DataFrame:
    exog = sm.add_constant(frame[['level']].rename(columns={'level': group_column}))
    model = sm.OLS(frame['value'], exog).fit()

    coefficients = pd.DataFrame({
        'term': model.params.index,
        'estimate': model.params.to_numpy(),
        'std_error': model.bse.to_numpy(),
        'statistic': model.tvalues.to_numpy(),
        'p_value': model.pvalues.to_numpy(),
    })
    coefficients = coefficients[coefficients['term'] != 'const']
    return coefficients.reset_index(drop=True)[LINEAR_COLUMNS]


def _spearman(frame: pd.DataFrame) -> pd.DataFrame:
    rho, p_value = stats.spearmanr(frame['value'], frame['level'])
    return pd.DataFrame(
        [{'estimate': float(rho), 'p_value': float(p_value), 'method': 'spearman'}],
        columns=CORRELATION_COLUMNS
    )


def _resolve_pairs(
    levels: List[str],
    observed: List[str],
    pairwise_comparisons: Optional[Sequence[Tuple[str, str]]],
    entity
) -> List[Tuple[str, str]]:
    if pairwise_comparisons is None:
        return [
            (observed[i], observed[j])
            for i in range(len(observed))
            for j in range(i + 1, len(observed))
        ]

    pairs = []
    for pair in pairwise_comparisons:
        unknown = [level for level in pair if level not in levels]
        if unknown:
            raise ConfigurationError(
                f"Comparison {tuple(pair)} names unknown levels {unknown}; levels are {levels}"
            )
        if pair[0] not in observed or pair[1] not in observed:
            logger.debug(f"{entity}: skipping comparison {tuple(pair)} without observations")
            continue
        pairs.append((pair[0], pair[1]))
    return pairs


def compare_entity(
    data: pd.DataFrame,
    entity,
    value_column: str,
    group_column: str,
    pairwise_comparisons: Optional[Sequence[Tuple[str, str]]] = None,
    alpha: float = 0.05
) -> EntityComparison:
    """
    Run the four-test battery for one entity.

    Args:
        data: Observations of the entity with value and group columns.
        entity: Identifier used in error messages and results.
        value_column: Numeric column to compare.
        group_column: Ordered categorical grouping column.
        pairwise_comparisons: (level_a, level_b) pairs to report; estimates
            are mean(level_b) - mean(level_a). None reports all pairs of
            observed levels in level order.
        alpha: Family-wise error rate of the post-hoc confidence intervals.

    Returns:
        EntityComparison with the four result tables.

    Raises:
        InsufficientDataError: If fewer than two levels are observed or an
            observed level has fewer than two non-missing values.
        ConfigurationError: If the group column is not an ordered categorical
            or a comparison names an unknown level.
    """
    _check_group_column(data, group_column)

    subset = data[[value_column, group_column]].dropna()
    groups = subset[group_column]
    levels = [str(level) for level in groups.cat.categories]

    counts = groups.value_counts(sort=False).reindex(groups.cat.categories, fill_value=0)
    group_sizes = {str(level): int(n) for level, n in counts.items() if n > 0}
    observed = [level for level in levels if level in group_sizes]

    if len(observed) < 2:
        raise InsufficientDataError(
            entity, f"needs observations in at least two groups, found {observed}", group_sizes
        )
    too_small = [level for level in observed if group_sizes[level] < MIN_OBSERVATIONS]
    if too_small:
        raise InsufficientDataError(
            entity,
            f"groups {too_small} have fewer than {MIN_OBSERVATIONS} observations",
            group_sizes
        )

    pairs = _resolve_pairs(levels, observed, pairwise_comparisons, entity)

    frame = pd.DataFrame({
        'value': subset[value_column].astype(float).to_numpy(),
        'group': pd.Categorical(groups.astype(str).to_numpy(), categories=observed),
        'level': ordinal_encoding(groups).to_numpy(),
    })

    with warnings.catch_warnings(), np.errstate(divide='ignore', invalid='ignore'):
        # constant groups yield infinite statistics, which are valid here
        warnings.simplefilter('ignore', RuntimeWarning)
        warnings.simplefilter('ignore', stats.ConstantInputWarning)
        anova = _anova(frame, group_column)
        posthoc = _posthoc(frame, observed, pairs, alpha)
        linear_model = _linear_trend(frame, group_column)
        correlation = _spearman(frame)

    logger.debug(f"{entity}: F={anova.loc[0, 'statistic']:.3g}, p={anova.loc[0, 'p_value']:.3g}")

    return EntityComparison(
        entity=entity,
        anova=anova,
        posthoc=posthoc,
        linear_model=linear_model,
        correlation=correlation,
        group_sizes=group_sizes,
    )


def _run_entity(entity, data, value_column, group_column, pairwise_comparisons, alpha):
    try:
        return entity, compare_entity(
            data, entity, value_column, group_column, pairwise_comparisons, alpha
        ), None
    except InsufficientDataError as e:
        return entity, None, e


def _tagged(frames: List[Tuple[object, pd.DataFrame]], entity_column: str, columns: List[str]) -> pd.DataFrame:
    tagged = [frame.assign(**{entity_column: entity}) for entity, frame in frames if len(frame)]
    if not tagged:
        return pd.DataFrame(columns=[entity_column] + columns)
    table = pd.concat(tagged, ignore_index=True)
    return table[[entity_column] + columns]


def _adjust(table: pd.DataFrame, p_column: str, method: str, by: Optional[List[str]] = None) -> pd.DataFrame:
    table = table.copy()
    if method == 'none' or table.empty:
        table['p_adj_entities'] = table[p_column].astype(float)
        return table

    adjusted = pd.Series(np.nan, index=table.index, dtype=float)
    groups = table.groupby(by, sort=False).groups.values() if by else [table.index]
    for index in groups:
        pvalues = table.loc[index, p_column].astype(float)
        valid = pvalues.notna()
        if valid.any():
            _, corrected, _, _ = multipletests(pvalues[valid].to_numpy(), method=method)
            adjusted.loc[pvalues[valid].index] = corrected
    table['p_adj_entities'] = adjusted
    return table


def compare_groups(
    tidy_table: pd.DataFrame,
    value_column: str,
    group_column: str,
    pairwise_comparisons: Optional[Sequence[Tuple[str, str]]] = None,
    entity_column: str = 'entity',
    alpha: float = 0.05,
    adjust_method: str = 'fdr_bh',
    n_jobs: int = 1,
    show_progress: bool = False
) -> BatteryResult:
    """
    Run the statistical battery for every entity of a tidy table.

    Entities are processed independently, optionally in parallel. Results
    are collected per entity and concatenated in order of first appearance
    in tidy_table, whatever order the workers finish in. Entities raising
    InsufficientDataError contribute no rows and are listed in
    BatteryResult.failures.

    Args:
        tidy_table: Long table with entity, value and group columns.
        value_column: Numeric column to compare.
        group_column: Ordered categorical grouping column.
        pairwise_comparisons: Explicit level pairs for the post-hoc table.
        entity_column: Column identifying entities.
        alpha: Family-wise error rate of the post-hoc confidence intervals.
        adjust_method: multipletests method for the across-entity
            p_adj_entities column ('none' copies the raw p-values).
        n_jobs: joblib workers; 1 runs sequentially.
        show_progress: Show a tqdm progress bar when sequential.

    Returns:
        BatteryResult with the concatenated tables and failures.

    Raises:
        ConfigurationError: If a column is missing, the group column is not an
            ordered categorical or a comparison names an unknown level.
    """
    missing = [c for c in (entity_column, value_column, group_column) if c not in tidy_table.columns]
    if missing:
        raise ConfigurationError(f"Columns {missing} not found in tidy table")
    _check_group_column(tidy_table, group_column)

    subsets = {
        entity: frame
        for entity, frame in tidy_table.groupby(entity_column, sort=False, observed=True)
    }
    entities = list(subsets)
    logger.info(f"Running statistical battery for {len(entities)} entities")

    args = (value_column, group_column, pairwise_comparisons, alpha)
    if n_jobs == 1:
        outcomes = [
            _run_entity(entity, subsets[entity], *args)
            for entity in tqdm(entities, desc='entities', disable=not show_progress)
        ]
    else:
        outcomes = Parallel(n_jobs=n_jobs)(
            delayed(_run_entity)(entity, subsets[entity], *args) for entity in entities
        )

    by_entity = {entity: (comparison, error) for entity, comparison, error in outcomes}

    comparisons = []
    failures = {}
    for entity in entities:
        comparison, error = by_entity[entity]
        if error is not None:
            logger.warning(f"Skipping {error}")
            failures[entity] = error
        else:
            comparisons.append(comparison)

    def collect(attribute):
        return [(c.entity, getattr(c, attribute)) for c in comparisons]

    anova = _adjust(
        _tagged(collect('anova'), entity_column, ANOVA_COLUMNS),
        'p_value', adjust_method
    )
    posthoc = _adjust(
        _tagged(collect('posthoc'), entity_column, POSTHOC_COLUMNS),
        'p_adj', adjust_method, by=['group1', 'group2']
    )
    linear_model = _adjust(
        _tagged(collect('linear_model'), entity_column, LINEAR_COLUMNS),
        'p_value', adjust_method, by=['term']
    )
    correlation = _adjust(
        _tagged(collect('correlation'), entity_column, CORRELATION_COLUMNS),
        'p_value', adjust_method
    )

    result = BatteryResult(
        anova=anova,
        posthoc=posthoc,
        linear_model=linear_model,
        correlation=correlation,
        failures=failures,
        entity_column=entity_column,
    )
    logger.info(result.summary().splitlines()[0])
    return result
