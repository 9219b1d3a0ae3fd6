"""
Test analysis of deviance and link/model comparison.
"""

import pytest
import numpy as np
import pandas as pd

from posglm import glm, lm, anova, compare_links, compare_models, LinkComparison
from posglm.design import build_design


TERMS = ['Origin', 'logDBH', 'Origin:logDBH']


@pytest.fixture(scope='module')
def lime_model(lime):
    return glm('Foliage', TERMS, data=lime, family='gamma', link='log')


class TestAnova:
    """Test sequential and pairwise analysis of deviance."""

    def test_sequential(self, lime_model):
        """Rows for NULL and each term; deviances add up."""
        table = anova(lime_model)
        assert list(table.index) == ['NULL'] + TERMS
        assert list(table.columns) == ['Df', 'Deviance', 'Resid. Df', 'Resid. Dev', 'F', 'Pr(>F)']
        assert table.loc['NULL', 'Resid. Dev'] == pytest.approx(lime_model.null_deviance)
        assert table['Resid. Dev'].iloc[-1] == pytest.approx(lime_model.deviance)
        assert table['Deviance'].iloc[1:].sum() == pytest.approx(
            lime_model.null_deviance - lime_model.deviance, rel=1e-8
        )
        assert list(table['Df'].iloc[1:]) == [2, 1, 2]

    def test_sequential_f_statistic(self, lime_model):
        """F = (deviance drop / df) / Pearson dispersion of the full model."""
        table = anova(lime_model)
        row = table.loc['logDBH']
        assert row['F'] == pytest.approx(row['Deviance'] / row['Df'] / lime_model.pearson_dispersion)
        assert 0 <= row['Pr(>F)'] <= 1

    @pytest.mark.parametrize('method', ['ml', 'deviance'])
    def test_uses_pearson_dispersion(self, lime, lime_model, method):
        """The reported dispersion method does not change the F tests."""
        other = glm('Foliage', TERMS, data=lime, family='gamma', link='log',
                    dispersion_method=method)
        assert other.dispersion != pytest.approx(other.pearson_dispersion, rel=1e-6)
        np.testing.assert_allclose(anova(other)['F'], anova(lime_model)['F'], rtol=1e-10)

        small = glm('Foliage', ['logDBH'], data=lime, family='gamma', link='log',
                    dispersion_method=method)
        expected = anova(small.update(['logDBH'], dispersion_method='pearson'), lime_model)
        np.testing.assert_allclose(anova(small, other)['F'], expected['F'], rtol=1e-10)

    def test_pairwise(self, lime, lime_model):
        """Nested models compared in order."""
        small = glm('Foliage', ['logDBH'], data=lime, family='gamma', link='log')
        table = anova(small, lime_model, test='Chisq')
        assert list(table.index) == ['Model 1', 'Model 2']
        assert table.loc['Model 2', 'Df'] == small.df_residual - lime_model.df_residual
        assert table.loc['Model 2', 'Deviance'] == pytest.approx(small.deviance - lime_model.deviance)
        assert 'Pr(>Chi)' in table.columns
        assert 'F' not in table.columns

    def test_no_test(self, lime_model):
        """test=None gives deviances only."""
        table = anova(lime_model, test=None)
        assert list(table.columns) == ['Df', 'Deviance', 'Resid. Df', 'Resid. Dev']

    def test_errors(self, lime, lime_model):
        """Bad test name, no models, different families."""
        with pytest.raises(ValueError):
            anova(lime_model, test='LRT')
        with pytest.raises(ValueError):
            anova()
        other = glm('Foliage', TERMS, data=lime, family='inverse_gaussian', link='log')
        with pytest.raises(ValueError, match="same family"):
            anova(lime_model, other)


class TestCompareLinks:
    """Test fitting one model under several links."""

    def test_all_converge(self, lime):
        """Table columns; log link converges on well-behaved data."""
        comparison = compare_links('Foliage', ['logDBH'], data=lime, family='gamma',
                                   links=('log', 'inverse'))
        table = comparison.table
        assert list(table.index) == ['log', 'inverse']
        assert {'status', 'converged', 'boundary', 'iterations', 'deviance', 'aic',
                'message'} <= set(table.columns)
        assert table.loc['log', 'status'] == 'converged'
        assert comparison.models['log'].converged
        best = comparison.best()
        assert best is not None
        assert best.aic == table.loc[table['converged'], 'aic'].min()

    def test_failed_link_recorded(self):
        """A fit that cannot start is a 'failed' row, not an exception."""
        data = pd.DataFrame({
            'x': [0.0, 1.0, 2.0, 3.0],
            'y': [1.0, 0.5, 0.05, 5.0],
        })
        with np.errstate(invalid='ignore', divide='ignore'):
            comparison = compare_links('y', ['x'], data=data, family='gamma',
                                       links=('log', 'identity'))
        table = comparison.table
        assert table.loc['identity', 'status'] == 'failed'
        assert 'no valid set of coefficients' in table.loc['identity', 'message']
        assert np.isnan(table.loc['identity', 'aic'])
        assert comparison.models['identity'] is None
        assert 'identity' not in comparison.converged

    def test_not_converged_recorded(self, lime):
        """Hitting maxit is 'not converged' with the warning text."""
        comparison = compare_links('Foliage', ['logDBH'], data=lime, family='gamma',
                                   links=('log',), maxit=1)
        row = comparison.table.loc['log']
        assert row['status'] == 'not converged'
        assert not row['converged']
        assert 'did not converge' in row['message']
        assert comparison.best() is None

    def test_invalid_link_raises(self, lime):
        """A link the family does not allow is a user error."""
        with pytest.raises(ValueError, match="not available"):
            compare_links('Foliage', ['logDBH'], data=lime, family='gamma',
                          links=('log', '1/mu^2'))

    def test_empty_comparison(self):
        """best() of nothing is None."""
        assert LinkComparison(table=pd.DataFrame()).best() is None


class TestCompareModels:
    """Test side-by-side model statistics."""

    def test_glm_and_lm(self, lime, lime_model):
        """GLMs and a linear model in one table."""
        data = lime.assign(logFoliage=np.log(lime['Foliage']))
        normal = lm('logFoliage', TERMS, data=data)
        ig = glm('Foliage', TERMS, data=lime, family='inverse_gaussian', link='log')
        table = compare_models({'gamma': lime_model, 'ig': ig, 'lm': normal})
        assert list(table.index) == ['gamma', 'ig', 'lm']
        assert list(table.columns) == ['family', 'link', 'df', 'deviance', 'aic', 'bic',
                                       'dispersion', 'converged']
        assert table.loc['gamma', 'df'] == 7
        assert table.loc['gamma', 'aic'] == pytest.approx(lime_model.aic)
        assert table.loc['lm', 'family'] == 'gaussian (lm)'
        assert table.loc['lm', 'dispersion'] == pytest.approx(normal.sigma ** 2)


class TestAnovaAgainstStatsmodels:
    """Sequential deviances and F tests from independent nested fits."""

    def test_sequential_table(self, lime, lime_model):
        sm = pytest.importorskip('statsmodels.api')
        family = sm.families.Gamma(sm.families.links.Log())
        refs = []
        for k in range(1, len(TERMS) + 1):
            X = build_design(lime, TERMS[:k]).X
            X_full = np.column_stack([np.ones(len(lime)), X])
            refs.append(sm.GLM(lime['Foliage'].to_numpy(), X_full, family=family).fit(tol=1e-12))

        table = anova(lime_model)
        full = refs[-1]
        assert table.loc['NULL', 'Resid. Dev'] == pytest.approx(full.null_deviance, rel=1e-6)
        np.testing.assert_allclose(table['Resid. Dev'].iloc[1:], [r.deviance for r in refs], rtol=1e-6)
        np.testing.assert_allclose(table['Resid. Df'].iloc[1:], [r.df_resid for r in refs])

        drops = -np.diff([full.null_deviance] + [r.deviance for r in refs])
        df = np.array([2, 1, 2])
        expected_f = drops / df / full.scale
        np.testing.assert_allclose(table['F'].iloc[1:], expected_f, rtol=1e-5)
