"""
Tests for the statistical battery.

Tests cover:
- Toy entity values (ANOVA, Tukey difference, trend slope, Spearman rho)
- Ordinal encoding over declared levels
- Explicit comparison pairs
- Entity isolation and failure reporting
- Across-entity adjustment and parallel execution
"""

import pytest
import numpy as np
import pandas as pd

from severity_rnaseq.stats.battery import (
    BatteryResult,
    compare_entity,
    compare_groups,
    ordinal_encoding,
)
from severity_rnaseq.exceptions import ConfigurationError, InsufficientDataError


LEVELS = ['none', 'mild', 'severe']


def _entity_table(values_by_entity):
    """Build a tidy table from {entity: [(level, value), ...]}."""
    rows = [
        {'entity': entity, 'value': value, 'severity': level}
        for entity, observations in values_by_entity.items()
        for level, value in observations
    ]
    table = pd.DataFrame(rows)
    table['severity'] = pd.Categorical(table['severity'], categories=LEVELS, ordered=True)
    return table


@pytest.fixture
def trend_table():
    """Three entities: rising, falling and flat with noise."""
    rng = np.random.default_rng(3)
    data = {}
    for entity, slope in [('Up', 2.0), ('Down', -1.5), ('Flat', 0.0)]:
        data[entity] = [
            (level, 10 + slope * i + rng.normal(0, 0.3))
            for i, level in enumerate(LEVELS)
            for _ in range(5)
        ]
    return _entity_table(data)


class TestToyEntity:
    """Battery values on two groups of three identical values (1 vs 5)."""

    def test_anova_significant(self, toy_battery_table):
        """Test that the ANOVA p-value is below 0.01."""
        result = compare_entity(toy_battery_table, 'A', 'value', 'severity')
        assert result.anova.loc[0, 'p_value'] < 0.01
        assert result.anova.loc[0, 'term'] == 'severity'

    def test_posthoc_difference(self, toy_battery_table):
        """Test that the post-hoc estimate is exactly the mean difference."""
        result = compare_entity(toy_battery_table, 'A', 'value', 'severity')
        row = result.posthoc.iloc[0]
        assert (row['group1'], row['group2']) == ('none', 'severe')
        assert row['estimate'] == 4.0

    def test_linear_slope(self, toy_battery_table):
        """Test that the slope is the mean difference over the level index gap."""
        result = compare_entity(toy_battery_table, 'A', 'value', 'severity')
        assert result.linear_model['term'].tolist() == ['severity']
        # none is level 1, severe is level 3
        assert result.linear_model.loc[0, 'estimate'] == pytest.approx(4.0 / 2)

    def test_spearman(self, toy_battery_table):
        """Test that the rank correlation is perfect."""
        result = compare_entity(toy_battery_table, 'A', 'value', 'severity')
        assert result.correlation.loc[0, 'estimate'] == pytest.approx(1.0)
        assert result.correlation.loc[0, 'method'] == 'spearman'

    def test_group_sizes(self, toy_battery_table):
        """Test that observed group sizes are reported."""
        result = compare_entity(toy_battery_table, 'A', 'value', 'severity')
        assert result.group_sizes == {'none': 3, 'severe': 3}


class TestOrdinalEncoding:
    """Tests for ordinal_encoding."""

    def test_declared_levels(self):
        """Test 1-based indices over declared levels, keeping gaps."""
        groups = pd.Series(pd.Categorical(['severe', 'none', None], categories=LEVELS, ordered=True))
        encoded = ordinal_encoding(groups)
        assert encoded.iloc[0] == 3
        assert encoded.iloc[1] == 1
        assert np.isnan(encoded.iloc[2])

    def test_requires_ordered(self):
        """Test that unordered groups are rejected."""
        with pytest.raises(ConfigurationError):
            ordinal_encoding(pd.Series(pd.Categorical(['a', 'b'])))


class TestCompareEntity:
    """Tests for compare_entity."""

    def test_all_pairs_in_level_order(self, trend_table):
        """Test that all observed pairs are reported by default."""
        subset = trend_table[trend_table['entity'] == 'Up']
        result = compare_entity(subset, 'Up', 'value', 'severity')
        pairs = list(zip(result.posthoc['group1'], result.posthoc['group2']))
        assert pairs == [('none', 'mild'), ('none', 'severe'), ('mild', 'severe')]
        assert (result.posthoc['estimate'] > 0).all()

    def test_explicit_pairs(self, trend_table):
        """Test that explicit pairs keep their direction."""
        subset = trend_table[trend_table['entity'] == 'Up']
        result = compare_entity(subset, 'Up', 'value', 'severity',
                                pairwise_comparisons=[('severe', 'none')])
        assert len(result.posthoc) == 1
        assert result.posthoc.loc[0, 'estimate'] < 0
        assert result.posthoc.loc[0, 'conf_low'] <= result.posthoc.loc[0, 'estimate']
        assert result.posthoc.loc[0, 'conf_high'] >= result.posthoc.loc[0, 'estimate']

    def test_unknown_level_in_pair(self, trend_table):
        """Test that a comparison naming an unknown level is an error."""
        subset = trend_table[trend_table['entity'] == 'Up']
        with pytest.raises(ConfigurationError, match="unknown levels"):
            compare_entity(subset, 'Up', 'value', 'severity',
                           pairwise_comparisons=[('none', 'critical')])

    def test_single_group_raises(self):
        """Test that one observed level is insufficient."""
        table = _entity_table({'A': [('none', 1.0), ('none', 2.0)]})
        with pytest.raises(InsufficientDataError) as excinfo:
            compare_entity(table, 'A', 'value', 'severity')
        assert excinfo.value.entity == 'A'

    def test_small_group_raises(self):
        """Test that a level with one observation is insufficient."""
        table = _entity_table({'A': [('none', 1.0), ('none', 2.0), ('severe', 3.0)]})
        with pytest.raises(InsufficientDataError, match="fewer than 2"):
            compare_entity(table, 'A', 'value', 'severity')

    def test_missing_values_ignored(self, toy_battery_table):
        """Test that missing values do not count as observations."""
        table = toy_battery_table.copy()
        table.loc[0, 'value'] = np.nan
        result = compare_entity(table, 'A', 'value', 'severity')
        assert result.group_sizes['none'] == 2

    def test_unordered_group_rejected(self, toy_battery_table):
        """Test that the group column must be ordered."""
        table = toy_battery_table.copy()
        table['severity'] = table['severity'].astype(str)
        with pytest.raises(ConfigurationError, match="ordered categorical"):
            compare_entity(table, 'A', 'value', 'severity')


class TestCompareGroups:
    """Tests for compare_groups."""

    def test_tables_in_entity_order(self, trend_table):
        """Test that results follow the first appearance of entities."""
        result = compare_groups(trend_table, 'value', 'severity')
        assert isinstance(result, BatteryResult)
        assert result.entities == ['Up', 'Down', 'Flat']
        assert result.anova['entity'].tolist() == ['Up', 'Down', 'Flat']
        assert len(result.posthoc) == 9
        assert result.linear_model['entity'].tolist() == ['Up', 'Down', 'Flat']

    def test_trend_direction(self, trend_table):
        """Test that slopes and correlations follow the simulated trends."""
        result = compare_groups(trend_table, 'value', 'severity')
        slopes = result.linear_model.set_index('entity')['estimate']
        assert slopes['Up'] == pytest.approx(2.0, abs=0.3)
        assert slopes['Down'] == pytest.approx(-1.5, abs=0.3)
        rho = result.correlation.set_index('entity')['estimate']
        assert rho['Up'] > 0.8
        assert rho['Down'] < -0.8

    @pytest.mark.parametrize('n_jobs', [1, 2])
    def test_entity_isolation(self, toy_battery_table, n_jobs):
        """Test that an untestable entity between two others leaves them intact."""
        broken = pd.DataFrame({
            'entity': ['B'],
            'sample': ['S9'],
            'value': [2.0],
            'severity': pd.Categorical(['mild'], categories=LEVELS, ordered=True),
        })
        healthy = toy_battery_table.assign(
            entity='C', value=[2.0, 2.5, 3.0, 6.0, 7.0, 8.0]
        )
        table = pd.concat([toy_battery_table, broken, healthy], ignore_index=True)
        without_broken = pd.concat([toy_battery_table, healthy], ignore_index=True)

        alone = compare_groups(without_broken, 'value', 'severity')
        together = compare_groups(table, 'value', 'severity', n_jobs=n_jobs)

        assert list(together.failures) == ['B']
        assert isinstance(together.failures['B'], InsufficientDataError)
        assert together.entities == ['A', 'C']
        for name, expected in alone.tables().items():
            pd.testing.assert_frame_equal(together.tables()[name], expected)
        assert set(together.posthoc['entity']) == {'A', 'C'}
        assert set(together.linear_model['entity']) == {'A', 'C'}
        assert set(together.correlation['entity']) == {'A', 'C'}

    def test_across_entity_adjustment(self, trend_table):
        """Test that p_adj_entities is never below the raw p-value."""
        result = compare_groups(trend_table, 'value', 'severity')
        for table, column in [(result.anova, 'p_value'), (result.posthoc, 'p_adj'),
                              (result.correlation, 'p_value')]:
            assert (table['p_adj_entities'] >= table[column] - 1e-12).all()

    def test_no_adjustment(self, trend_table):
        """Test that 'none' copies the raw p-values."""
        result = compare_groups(trend_table, 'value', 'severity', adjust_method='none')
        np.testing.assert_allclose(result.anova['p_adj_entities'], result.anova['p_value'])

    def test_parallel_matches_sequential(self, trend_table):
        """Test that joblib workers give the same ordered results."""
        sequential = compare_groups(trend_table, 'value', 'severity')
        parallel = compare_groups(trend_table, 'value', 'severity', n_jobs=2)
        pd.testing.assert_frame_equal(sequential.anova, parallel.anova)
        pd.testing.assert_frame_equal(sequential.linear_model, parallel.linear_model)

    def test_missing_column(self, trend_table):
        """Test that required columns are checked."""
        with pytest.raises(ConfigurationError, match="not found"):
            compare_groups(trend_table, 'activity', 'severity')

    def test_all_entities_fail(self):
        """Test that empty tables keep their columns when nothing is testable."""
        table = _entity_table({'A': [('none', 1.0)], 'B': [('mild', 2.0)]})
        result = compare_groups(table, 'value', 'severity')
        assert result.anova.empty
        assert 'p_adj_entities' in result.anova.columns
        assert set(result.failures) == {'A', 'B'}
        assert 'A' in result.summary()
