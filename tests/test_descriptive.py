"""
Test summaries and the mean-variance check used to pick a family.
"""

import pytest
import numpy as np
import pandas as pd

from posglm.descriptive import (
    summarize,
    bin_covariate,
    mean_variance,
    mean_variance_slope,
    suggest_family,
)


def _groups_with_power(power, seed=0):
    """Groups whose variance is mu**power (coefficient of variation fixed)."""
    rng = np.random.default_rng(seed)
    means = np.array([1.0, 2.0, 4.0, 8.0, 16.0, 32.0])
    frames = []
    for m in means:
        sd = 0.2 * np.sqrt(m ** power)
        y = m + sd * rng.standard_normal(400)
        frames.append(pd.DataFrame({'g': f'm{m:g}', 'y': y}))
    return pd.concat(frames, ignore_index=True)


class TestSummaries:
    """Test numerical summaries."""

    def test_overall(self, grouped_gamma):
        """Single row labelled 'all'."""
        table = summarize(grouped_gamma, 'y')
        assert list(table.index) == ['all']
        assert list(table.columns) == ['count', 'mean', 'sd', 'variance', 'min', 'q25',
                                       'median', 'q75', 'max', 'cv']
        assert table.loc['all', 'count'] == 100
        assert table.loc['all', 'mean'] == pytest.approx(grouped_gamma['y'].mean())
        assert table.loc['all', 'q25'] == pytest.approx(grouped_gamma['y'].quantile(0.25))

    def test_by_group(self, grouped_gamma):
        """One row per group, coefficient of variation = sd / mean."""
        table = summarize(grouped_gamma, 'y', by='g')
        assert list(table.index) == ['a', 'b', 'c', 'd']
        assert (table['count'] == 25).all()
        np.testing.assert_allclose(table['cv'], table['sd'] / table['mean'])

    def test_unknown_column(self, grouped_gamma):
        """Missing response raises."""
        with pytest.raises(ValueError, match="Unknown column"):
            summarize(grouped_gamma, 'Foliage')

    def test_bin_covariate(self, lime):
        """Quantile bins of roughly equal size."""
        bins = bin_covariate(lime['DBH'], n_bins=4)
        counts = bins.value_counts()
        assert len(counts) == 4
        assert counts.max() - counts.min() <= 2
        with pytest.raises(ValueError):
            bin_covariate(lime['DBH'], n_bins=1)


class TestMeanVariance:
    """Test the log variance on log mean fit."""

    def test_table(self, grouped_gamma):
        """Means, variances and their logs per group."""
        table = mean_variance(grouped_gamma, 'y', by='g')
        assert list(table.columns) == ['n', 'mean', 'variance', 'log_mean', 'log_variance']
        np.testing.assert_allclose(table['log_mean'], np.log(table['mean']))

    def test_drops_singletons(self, grouped_gamma):
        """Groups of one have no variance."""
        extra = pd.DataFrame({'g': ['e'], 'y': [2.0]})
        table = mean_variance(pd.concat([grouped_gamma, extra]), 'y', by='g')
        assert 'e' not in table.index
        assert len(table) == 4

    @pytest.mark.parametrize('power,family', [
        (0, 'gaussian'),
        (2, 'gamma'),
        (3, 'inverse_gaussian'),
    ])
    def test_slope_recovers_power(self, power, family):
        """Slope of log variance on log mean estimates the variance power."""
        data = _groups_with_power(power)
        fit = mean_variance_slope(mean_variance(data, 'y', by='g'))
        assert fit.slope == pytest.approx(power, abs=0.25)
        assert fit.suggested_family == family
        assert fit.n_groups == 6

    def test_too_few_groups(self, grouped_gamma):
        """A slope needs two groups."""
        table = mean_variance(grouped_gamma[grouped_gamma['g'] == 'a'], 'y', by='g')
        with pytest.raises(ValueError, match="at least two groups"):
            mean_variance_slope(table)

    def test_suggest_family(self):
        """Nearest variance power wins."""
        assert suggest_family(1.8) == 'gamma'
        assert suggest_family(2.6) == 'inverse_gaussian'
        assert suggest_family(0.9) == 'poisson'
        with pytest.raises(ValueError):
            suggest_family(np.nan)
