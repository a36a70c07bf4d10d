"""
End-to-end severity analysis of an RNA-seq cohort.

Chains identifier translation, sample alignment, normalization, regulator
activity inference and the statistical battery:

    counts + metadata
        -> translate_matrix_index       (optional, e.g. mouse -> human)
        -> align_samples / ordered severity factor
        -> to_tidy                      (expression table for inspection)
        -> normalize                    (filter, TMM, log-CPM)
        -> infer_activity -> to_tidy    (if a network is given)
        -> compare_groups               (requested genes and regulators)

Example:
    >>> config = AnalysisConfig(
    ...     severity_column='severity',
    ...     severity_levels=['none', 'mild', 'severe'],
    ... )
    >>> result = SeverityAnalysis(config).run(
    ...     counts, metadata,
    ...     network=regulons,
    ...     genes=['Col1a1'],
    ...     regulators=['Stat3'],
    ... )
    >>> result.regulator_battery.anova
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from .activity.inference import ActivityResult, Scorer, infer_activity, prepare_regulons
from .config import AnalysisConfig
from .data.annotation import translate_matrix_index
from .data.metadata import align_samples, as_ordered_factor, check_alignment
from .data.tidy import to_tidy
from .exceptions import ConfigurationError, RegulatorExcludedWarning
from .preprocessing.normalization import NormalizationReport, normalize
from .stats.battery import BatteryResult, compare_groups

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Tables produced by SeverityAnalysis.run.

    Attributes:
        counts: Count matrix after identifier translation.
        metadata: Aligned metadata with the ordered severity column.
        expression: Normalized log-CPM matrix.
        normalization: Report of the normalization step.
        tidy_counts: Raw counts in long form joined with metadata.
        tidy_expression: Normalized expression in long form joined with metadata.
        activity: Activity inference result, if a network was given.
        tidy_activity: Activity scores joined with metadata.
        gene_battery: Battery over the requested genes.
        regulator_battery: Battery over the requested regulators.
        warnings: Human-readable notes about non-fatal problems.
    """
    counts: pd.DataFrame
    metadata: pd.DataFrame
    expression: pd.DataFrame
    normalization: NormalizationReport
    tidy_counts: pd.DataFrame
    tidy_expression: pd.DataFrame
    activity: Optional[ActivityResult] = None
    tidy_activity: Optional[pd.DataFrame] = None
    gene_battery: Optional[BatteryResult] = None
    regulator_battery: Optional[BatteryResult] = None
    warnings: List[str] = field(default_factory=list)


class SeverityAnalysis:
    """
    Run the severity analysis for one cohort.

    Attributes:
        config: AnalysisConfig of the run.
        scorer: Optional activity scorer replacing the decoupler default.
    """

    def __init__(self, config: AnalysisConfig, scorer: Optional[Scorer] = None):
        self.config = config
        self.scorer = scorer

    def prepare(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        annotation: Optional[pd.DataFrame] = None
    ):
        """
        Translate identifiers and align metadata with the count matrix.

        Returns:
            Tuple of (counts, metadata) ready for normalization.

        Raises:
            ConfigurationError: If translation is configured without an
                annotation table or metadata lacks a configured column.
            ShapeMismatchError: If samples do not match.
        """
        config = self.config

        if config.translates_ids:
            if annotation is None:
                raise ConfigurationError(
                    "Identifier translation is configured but no annotation table was given"
                )
            counts = translate_matrix_index(
                counts, annotation,
                config.translate_from, config.translate_to,
                aggregate=config.duplicate_strategy
            )

        metadata = align_samples(counts, metadata, config.sample_column)
        metadata = as_ordered_factor(metadata, config.severity_column, config.severity_levels)
        if config.filter_group_column not in metadata.columns:
            raise ConfigurationError(
                f"Metadata has no filter group column '{config.filter_group_column}'"
            )
        check_alignment(counts, metadata, config.sample_column)
        return counts, metadata

    def _normalize(self, counts, metadata, group_column):
        return normalize(
            counts,
            metadata[group_column].to_numpy(),
            config=self.config.normalization,
            return_report=True
        )

    def _battery(self, tidy, entity_column, value_column, entities, notes) -> BatteryResult:
        """Battery over the requested entities; absent ones become notes."""
        battery = self.config.battery
        entities = [entities] if isinstance(entities, str) else list(entities)
        label = entity_column.capitalize()

        present = set(tidy[entity_column])
        for entity in entities:
            if entity not in present:
                notes.append(f"{label} {entity} not tested: no {value_column} values")

        return compare_groups(
            tidy.loc[tidy[entity_column].isin(entities)].reset_index(drop=True),
            value_column=value_column,
            group_column=self.config.severity_column,
            pairwise_comparisons=battery.pairwise_comparisons,
            entity_column=entity_column,
            alpha=battery.alpha,
            adjust_method=battery.adjust_method,
            n_jobs=battery.n_jobs,
            show_progress=battery.show_progress,
        )

    def run(
        self,
        counts: pd.DataFrame,
        metadata: pd.DataFrame,
        annotation: Optional[pd.DataFrame] = None,
        network: Optional[pd.DataFrame] = None,
        genes: Optional[Sequence] = None,
        regulators: Optional[Sequence] = None
    ) -> PipelineResult:
        """
        Run the full analysis.

        Args:
            counts: Raw counts, genes x samples.
            metadata: One row per sample with the sample and severity columns.
            annotation: Identifier annotation table, required when the
                configuration translates identifiers.
            network: Regulon network (source, target, weight) for activity
                inference. A DoRothEA-style table (tf, confidence, target,
                mor) is filtered to the configured confidence levels first.
                Activity steps are skipped without it.
            genes: Genes compared on normalized expression.
            regulators: Regulators compared on activity scores.

        Returns:
            PipelineResult with all intermediate and final tables.
        """
        config = self.config
        notes: List[str] = []

        counts, metadata = self.prepare(counts, metadata, annotation)
        tidy_counts = to_tidy(counts, 'gene', config.sample_column, 'count', metadata)

        expression, report = self._normalize(counts, metadata, config.filter_group_column)
        tidy_expression = to_tidy(expression, 'gene', config.sample_column, 'expression', metadata)

        activity = None
        tidy_activity = None
        if network is not None:
            if 'source' not in network.columns and 'tf' in network.columns:
                network = prepare_regulons(network, config.activity.confidence_levels)
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', RegulatorExcludedWarning)
                activity = infer_activity(expression, network, config.activity, scorer=self.scorer)
            for regulator, reason in activity.excluded.items():
                notes.append(f"Regulator {regulator} excluded: {reason}")
            tidy_activity = to_tidy(
                activity.matrix, 'regulator', config.sample_column, 'activity', metadata
            )

        gene_battery = None
        if genes:
            gene_expression = tidy_expression
            if (config.refilter_per_comparison
                    and config.filter_group_column != config.severity_column):
                logger.info(
                    f"Re-deriving expression filter with '{config.severity_column}' groups"
                )
                refiltered, _ = self._normalize(counts, metadata, config.severity_column)
                gene_expression = to_tidy(
                    refiltered, 'gene', config.sample_column, 'expression', metadata
                )
            gene_battery = self._battery(gene_expression, 'gene', 'expression', genes, notes)
            notes.extend(f"Gene {e.entity} not tested: {e.message}"
                         for e in gene_battery.failures.values())

        regulator_battery = None
        if regulators:
            if tidy_activity is None:
                raise ConfigurationError("Regulators requested but no network was given")
            regulator_battery = self._battery(
                tidy_activity, 'regulator', 'activity', regulators, notes
            )
            notes.extend(f"Regulator {e.entity} not tested: {e.message}"
                         for e in regulator_battery.failures.values())

        for note in notes:
            logger.warning(note)

        return PipelineResult(
            counts=counts,
            metadata=metadata,
            expression=expression,
            normalization=report,
            tidy_counts=tidy_counts,
            tidy_expression=tidy_expression,
            activity=activity,
            tidy_activity=tidy_activity,
            gene_battery=gene_battery,
            regulator_battery=regulator_battery,
            warnings=notes,
        )
