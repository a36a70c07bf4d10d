"""
Configuration dataclasses for the severity analysis pipeline.

Each stage has its own small configuration object; AnalysisConfig ties them
together with the cohort-specific choices (severity column and its level
order, identifier translation, filtering policy).

Example:
    >>> config = AnalysisConfig(
    ...     severity_column='severity',
    ...     severity_levels=['none', 'mild', 'severe'],
    ...     translate_from='symbol_mgi',
    ...     translate_to='symbol_hgnc',
    ... )
    >>> config.battery.n_jobs
    1
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .exceptions import ConfigurationError


ADJUST_METHODS = (
    'fdr_bh', 'fdr_by', 'bonferroni', 'holm', 'hommel', 'sidak', 'none'
)
DUPLICATE_STRATEGIES = ('sum', 'first')


@dataclass
class NormalizationConfig:
    """
    Parameters of the filter / TMM / log-CPM chain.

    Attributes:
        min_count: Minimum count required in at least the smallest group.
        min_total_count: Minimum total count across all samples.
        large_n: Group size above which the minimum sample count is shrunk.
        min_prop: Proportion of samples in the smallest group used above large_n.
        keep_lib_sizes: If True, library sizes of the unfiltered matrix are
            carried into normalization; if False they are recomputed after
            filtering.
        logratio_trim: Fraction of M values trimmed from each end for TMM.
        sum_trim: Fraction of A values trimmed from each end for TMM.
        do_weighting: Use precision weights when averaging M values.
        a_cutoff: Minimum A value for a gene to enter the TMM estimate.
    """
    min_count: float = 10
    min_total_count: float = 15
    large_n: int = 10
    min_prop: float = 0.7
    keep_lib_sizes: bool = True
    logratio_trim: float = 0.3
    sum_trim: float = 0.05
    do_weighting: bool = True
    a_cutoff: float = -1e10

    def __post_init__(self):
        if self.min_count < 0 or self.min_total_count < 0:
            raise ConfigurationError("min_count and min_total_count must be non-negative")
        if not 0 < self.min_prop <= 1:
            raise ConfigurationError(f"min_prop must be in (0, 1], got {self.min_prop}")
        for name in ('logratio_trim', 'sum_trim'):
            value = getattr(self, name)
            if not 0 <= value < 0.5:
                raise ConfigurationError(f"{name} must be in [0, 0.5), got {value}")


@dataclass
class ActivityConfig:
    """
    Options policy for regulator activity inference.

    Attributes:
        min_size: Minimum number of measured targets a regulon needs.
        confidence_levels: Network confidence classes kept for scoring.
        pleiotropy: Apply the VIPER pleiotropy correction.
        method: Name of the decoupler method used by the default scorer.
    """
    min_size: int = 4
    confidence_levels: Tuple[str, ...] = ('A', 'B', 'C')
    pleiotropy: bool = False
    method: str = 'viper'

    def __post_init__(self):
        if self.min_size < 1:
            raise ConfigurationError(f"min_size must be >= 1, got {self.min_size}")
        self.confidence_levels = tuple(self.confidence_levels)


@dataclass
class BatteryConfig:
    """
    Options of the per-entity statistical battery.

    Attributes:
        pairwise_comparisons: Explicit (level_a, level_b) pairs reported by the
            post-hoc step. None reports every pair.
        adjust_method: statsmodels multipletests method applied across entities.
        alpha: Family-wise error rate for the Tukey confidence intervals.
        n_jobs: Parallel workers for per-entity tests (1 = sequential,
            negative values count back from the number of CPUs).
        show_progress: Show a progress bar when running sequentially.
    """
    pairwise_comparisons: Optional[List[Tuple[str, str]]] = None
    adjust_method: str = 'fdr_bh'
    alpha: float = 0.05
    n_jobs: int = 1
    show_progress: bool = False

    def __post_init__(self):
        if self.adjust_method not in ADJUST_METHODS:
            raise ConfigurationError(
                f"adjust_method must be one of: {', '.join(ADJUST_METHODS)}"
            )
        if not 0 < self.alpha < 1:
            raise ConfigurationError(f"alpha must be in (0, 1), got {self.alpha}")
        # joblib: -1 uses every CPU, -2 all but one
        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, int) or self.n_jobs == 0:
            raise ConfigurationError(f"n_jobs must be a non-zero integer, got {self.n_jobs!r}")
        if self.pairwise_comparisons is not None:
            self.pairwise_comparisons = [tuple(pair) for pair in self.pairwise_comparisons]
            for pair in self.pairwise_comparisons:
                if len(pair) != 2:
                    raise ConfigurationError(f"Comparison {pair} must name exactly two groups")


@dataclass
class AnalysisConfig:
    """
    Configuration of a full cohort analysis.

    Attributes:
        severity_column: Metadata column holding the ordinal severity stage.
        severity_levels: Level order of the severity column, lowest first.
        sample_column: Metadata column holding sample identifiers.
        filter_group_column: Metadata column used for the low-expression
            filter. Defaults to severity_column.
        refilter_per_comparison: Re-derive the expression filter with the
            battery grouping when it differs from filter_group_column.
        translate_from: Source identifier namespace of the count matrix.
        translate_to: Target identifier namespace. Translation is skipped
            unless both are set.
        duplicate_strategy: How rows collapsing onto one identifier after
            translation are combined ('sum' or 'first').
        normalization: NormalizationConfig.
        activity: ActivityConfig.
        battery: BatteryConfig.

    Example:
        >>> config = AnalysisConfig.from_dict({
        ...     'severity_column': 'severity',
        ...     'severity_levels': ['none', 'mild', 'severe'],
        ...     'battery': {'n_jobs': 2},
        ... })
    """
    severity_column: str
    severity_levels: Sequence[str]
    sample_column: str = 'sample'
    filter_group_column: Optional[str] = None
    refilter_per_comparison: bool = False
    translate_from: Optional[str] = None
    translate_to: Optional[str] = None
    duplicate_strategy: str = 'sum'
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)

    def __post_init__(self):
        self.severity_levels = list(self.severity_levels)
        if len(self.severity_levels) < 2:
            raise ConfigurationError("severity_levels needs at least two levels")
        if len(set(self.severity_levels)) != len(self.severity_levels):
            raise ConfigurationError(f"Duplicated severity levels: {self.severity_levels}")
        if (self.translate_from is None) != (self.translate_to is None):
            raise ConfigurationError("translate_from and translate_to must be set together")
        if self.duplicate_strategy not in DUPLICATE_STRATEGIES:
            raise ConfigurationError(
                f"duplicate_strategy must be one of: {', '.join(DUPLICATE_STRATEGIES)}"
            )
        if self.filter_group_column is None:
            self.filter_group_column = self.severity_column

    @property
    def translates_ids(self) -> bool:
        return self.translate_from is not None

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'AnalysisConfig':
        """Build a configuration from a plain (e.g. JSON-decoded) dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        values = dict(values)
        sections = {
            'normalization': NormalizationConfig,
            'activity': ActivityConfig,
            'battery': BatteryConfig,
        }
        for name, section_cls in sections.items():
            section = values.get(name)
            if isinstance(section, dict):
                try:
                    values[name] = section_cls(**section)
                except TypeError as e:
                    raise ConfigurationError(f"Invalid '{name}' section: {e}") from e

        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e
