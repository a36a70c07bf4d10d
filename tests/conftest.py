"""Shared pytest fixtures for severity RNA-seq tests."""
import pytest
import numpy as np
import pandas as pd

from severity_rnaseq.data.loaders import create_sample_data


LEVELS = ['none', 'mild', 'severe']


@pytest.fixture
def severity_levels():
    """Ordered severity levels used across tests."""
    return list(LEVELS)


@pytest.fixture
def synthetic_cohort():
    """Synthetic cohort: 12 samples x 200 genes, 4 samples per severity level."""
    return create_sample_data(n_samples=12, n_genes=200, random_state=7)


@pytest.fixture
def mock_counts(synthetic_cohort):
    """Raw count matrix (genes x samples)."""
    counts, _ = synthetic_cohort
    return counts


@pytest.fixture
def mock_metadata(synthetic_cohort):
    """Sample metadata with an ordered severity column."""
    _, metadata = synthetic_cohort
    return metadata


@pytest.fixture
def small_matrix():
    """Small wide matrix with string entities and samples."""
    return pd.DataFrame(
        [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]],
        index=['Stat3', 'Nfkb1'],
        columns=['S1', 'S2', 'S3'],
    )


@pytest.fixture
def small_metadata():
    """Metadata for small_matrix, deliberately in a different row order."""
    return pd.DataFrame({
        'sample': ['S3', 'S1', 'S2'],
        'severity': ['severe', 'none', 'mild'],
        'age': [61.0, 45.0, 52.0],
    })


@pytest.fixture
def annotation_table():
    """Mouse/human annotation table in namespace columns."""
    return pd.DataFrame({
        'symbol_mgi': ['Stat3', 'Nfkb1', 'Col1a1', 'Col1a1', 'Mup1', 'Gm123'],
        'ensembl_mgi': ['ENSMUSG01', 'ENSMUSG02', 'ENSMUSG03', 'ENSMUSG03', 'ENSMUSG04', 'ENSMUSG05'],
        'symbol_hgnc': ['STAT3', 'NFKB1', 'COL1A1', 'COL1A1', np.nan, 'GENE123'],
        'entrez_hgnc': ['6774', '4790', '1277', '1278', np.nan, '9999'],
    })


@pytest.fixture
def toy_battery_table():
    """Two groups of three identical values: none = 1, severe = 5."""
    severity = pd.Categorical(
        ['none'] * 3 + ['severe'] * 3, categories=LEVELS, ordered=True
    )
    return pd.DataFrame({
        'entity': ['A'] * 6,
        'sample': [f"S{i}" for i in range(6)],
        'value': [1.0, 1.0, 1.0, 5.0, 5.0, 5.0],
        'severity': severity,
    })


@pytest.fixture
def mock_network(mock_counts):
    """Regulon network over the synthetic genes in source/target/weight form."""
    genes = mock_counts.index.tolist()
    rows = []
    # RegA and RegB have 10 targets, RegSmall has only 2
    for i, gene in enumerate(genes[:10]):
        rows.append(('RegA', gene, 1.0))
        rows.append(('RegB', genes[20 + i], -1.0 if i % 2 else 1.0))
    rows.append(('RegSmall', genes[40], 1.0))
    rows.append(('RegSmall', genes[41], 1.0))
    return pd.DataFrame(rows, columns=['source', 'target', 'weight'])


@pytest.fixture
def weighted_mean_scorer():
    """Activity scorer averaging weighted target expression per regulator."""
    def score(data, net, tmin):
        scores = {}
        for source, regulon in net.groupby('source', sort=False):
            if len(regulon) < tmin:
                continue
            targets = data[regulon['target']]
            scores[source] = (targets * regulon['weight'].to_numpy()).mean(axis=1)
        return pd.DataFrame(scores, index=data.index)
    return score
