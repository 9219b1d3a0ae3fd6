"""
Linear regression with R-style interface and output.

The normal linear model is the baseline the GLMs are compared against,
e.g. a linear model for log(Foliage) against a gamma GLM for Foliage.
"""

import numpy as np
import pandas as pd
from typing import Optional, Union, List
from scipy import stats

from ._backends import get_backend
from ._core.lm_solver import fit_linear_model, unscaled_covariance
from ._utils import check_vector, signif_stars, format_pvalue
from .design import build_design


class LinearModel:
    """
    Fit linear regression model (like R's lm()).

    Examples
    --------
    >>> import numpy as np
    >>> from posglm import lm, load_lime
    >>> lime = load_lime('data/lime.csv')
    >>> lime['logFoliage'] = np.log(lime['Foliage'])
    >>> lime['logDBH'] = np.log(lime['DBH'])
    >>> model = lm(y='logFoliage', X=['Origin', 'logDBH'], data=lime)
    >>> model.summary()
    >>> model.conf_int()
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[List[str], np.ndarray],
        data: Optional[pd.DataFrame] = None,
        weights: Optional[Union[str, np.ndarray]] = None,
        backend='auto',
    ):
        """
        Fit linear regression model.

        Parameters
        ----------
        y : str or array
            Response variable (outcome)
            - If string: column name in data
            - If array: numeric values
        X : list of str or array
            Predictor terms
            - If list of strings: terms over columns in data (categorical
              columns are treatment coded, 'a:b' is an interaction)
            - If array: numeric matrix (n × p)
        data : DataFrame, optional
            Dataset containing y and X variables
        weights : str or array, optional
            Observation weights
        backend : str
            Computational backend: 'auto', 'cpu', 'gpu', 'pytorch'
        """
        if isinstance(y, str):
            if data is None:
                raise ValueError("Must provide data when y is a string")
            self.y_values = check_vector(data[y].to_numpy(dtype=np.float64), name=y)
            self.y_name = y
        else:
            self.y_values = check_vector(y)
            self.y_name = 'y'

        self.design = None
        if isinstance(X, (list, tuple)) and all(isinstance(x, str) for x in X):
            if data is None and len(X) > 0:
                raise ValueError("Must provide data when X is list of strings")
            frame = data if data is not None else pd.DataFrame(index=range(len(self.y_values)))
            self.design = build_design(frame, X)
            self.X_values = self.design.X
            self.X_names = self.design.column_names
        else:
            self.X_values = np.asarray(X, dtype=np.float64).reshape(len(self.y_values), -1)
            self.X_names = [f'x{i}' for i in range(self.X_values.shape[1])]

        if weights is not None:
            if isinstance(weights, str):
                if data is None:
                    raise ValueError("Must provide data when weights is a string")
                self.weights_values = data[weights].to_numpy(dtype=np.float64)
            else:
                self.weights_values = np.asarray(weights, dtype=np.float64)
        else:
            self.weights_values = None

        self.n_obs = len(self.y_values)
        self.n_coef = self.X_values.shape[1] + 1  # +1 for intercept
        self.var_names = ['Intercept'] + self.X_names

        self.backend = get_backend(backend)
        self._backend_result = fit_linear_model(
            self.X_values,
            self.y_values,
            weights=self.weights_values,
            backend=self.backend,
        )

        self._compute_statistics()

    def _compute_statistics(self):
        """Compute standard errors, t-stats, p-values, etc."""
        result = self._backend_result

        self.coefficients = result.coef
        self.residuals = result.residuals
        self.fitted_values = result.fitted_values
        self.rank = result.rank
        self.df_residual = result.df_residual

        w = self.weights_values if self.weights_values is not None else np.ones(self.n_obs)
        # zero-weight rows do not count as observations, as in R
        self.n_obs = int(np.sum(w > 0))
        rss = np.sum(w * self.residuals ** 2)
        self.sigma = np.sqrt(rss / self.df_residual) if self.df_residual > 0 else np.nan

        # Var(β) = σ² (X'WX)⁻¹
        self.vcov = unscaled_covariance(
            result.qr_R, result.qr_pivot, self.rank, self.n_coef
        ) * self.sigma ** 2

        with np.errstate(invalid='ignore', divide='ignore'):
            self.std_errors = np.sqrt(np.diag(self.vcov))
            self.t_values = self.coefficients / self.std_errors

        if self.df_residual > 0:
            self.pvalues = 2 * stats.t.sf(np.abs(self.t_values), self.df_residual)
        else:
            self.pvalues = np.full(self.n_coef, np.nan)

        # R-squared
        ybar = np.sum(w * self.y_values) / np.sum(w)
        tss = np.sum(w * (self.y_values - ybar) ** 2)
        self.r_squared = 1 - (rss / tss) if tss > 0 else 0.0

        p = self.rank - 1  # Exclude intercept
        if self.df_residual > 0:
            self.adj_r_squared = 1 - (1 - self.r_squared) * (self.n_obs - 1) / self.df_residual
        else:
            self.adj_r_squared = np.nan

        if p > 0 and self.df_residual > 0:
            self.f_statistic = ((tss - rss) / p) / (rss / self.df_residual)
            self.f_pvalue = stats.f.sf(self.f_statistic, p, self.df_residual)
        else:
            self.f_statistic = np.nan
            self.f_pvalue = np.nan

        # Gaussian log-likelihood with σ² at its ML value, as R's logLik.lm
        n = self.n_obs
        self.loglik = 0.5 * (np.sum(np.log(w[w > 0])) - n * (np.log(2 * np.pi) + 1 - np.log(n) + np.log(rss)))
        self.aic = -2 * self.loglik + 2 * (self.rank + 1)

    @property
    def coef(self):
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    def conf_int(self, alpha: float = 0.05):
        """
        Confidence intervals for coefficients.

        Parameters
        ----------
        alpha : float
            Significance level (default: 0.05 for 95% CI)

        Returns
        -------
        DataFrame
            Confidence intervals with columns 'lower' and 'upper'
        """
        t_crit = stats.t.ppf(1 - alpha / 2, self.df_residual)
        lower = self.coefficients - t_crit * self.std_errors
        upper = self.coefficients + t_crit * self.std_errors

        return pd.DataFrame({
            'lower': lower,
            'upper': upper
        }, index=self.var_names)

    def coef_table(self) -> pd.DataFrame:
        """Coefficient table as in R's summary.lm."""
        return pd.DataFrame({
            'Estimate': self.coefficients,
            'Std. Error': self.std_errors,
            't value': self.t_values,
            'Pr(>|t|)': self.pvalues,
        }, index=self.var_names)

    def summary(self) -> str:
        """
        Print summary of regression results (like R's summary.lm).

        Returns
        -------
        str
            The printed text
        """
        lines = []
        add = lines.append
        add("=" * 80)
        add("LINEAR REGRESSION RESULTS")
        add("=" * 80)
        add("")
        add(f"Dependent variable: {self.y_name}")
        add(f"Number of observations: {self.n_obs}")
        add(f"Degrees of freedom: {self.df_residual} (residual), {self.rank - 1} (model)")
        add("")

        residual_summary = pd.Series(self.residuals).describe()
        add("Residuals:")
        add(f"  Min:    {residual_summary['min']:>10.4f}")
        add(f"  1Q:     {residual_summary['25%']:>10.4f}")
        add(f"  Median: {residual_summary['50%']:>10.4f}")
        add(f"  3Q:     {residual_summary['75%']:>10.4f}")
        add(f"  Max:    {residual_summary['max']:>10.4f}")
        add("")

        add("Coefficients:")
        add("-" * 80)
        add(f"{'Variable':<28} {'Estimate':>12} {'Std. Error':>12} {'t value':>10} {'Pr(>|t|)':>10}")
        add("-" * 80)
        for i, name in enumerate(self.var_names):
            if np.isnan(self.coefficients[i]):
                add(f"{name:<28} {'NA':>12} {'NA':>12} {'NA':>10} {'NA':>10} (aliased)")
                continue
            p = self.pvalues[i]
            add(f"{name:<28} {self.coefficients[i]:>12.4f} {self.std_errors[i]:>12.4f} "
                f"{self.t_values[i]:>10.3f} {format_pvalue(p):>10} {signif_stars(p)}")
        add("-" * 80)
        add("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        add("")

        add(f"Residual standard error: {self.sigma:.4f} on {self.df_residual} degrees of freedom")
        add(f"Multiple R-squared:      {self.r_squared:.4f}")
        add(f"Adjusted R-squared:      {self.adj_r_squared:.4f}")
        if not np.isnan(self.f_statistic):
            f_pval_str = f"{self.f_pvalue:.4e}" if self.f_pvalue >= 2.2e-16 else "< 2.2e-16"
            add(f"F-statistic:             {self.f_statistic:.2f} on {self.rank - 1} and "
                f"{self.df_residual} DF, p-value: {f_pval_str}")
        add("")
        add(f"Backend: {self.backend.name}")
        add("=" * 80)

        text = "\n".join(lines)
        print()
        print(text)
        print()
        return text

    def predict(self, newdata: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        """
        Predict response for new data.

        Parameters
        ----------
        newdata : DataFrame or array
            New predictor values
            - If DataFrame: encoded with the model's terms
            - If array: must have same number of columns as X

        Returns
        -------
        array
            Predicted values
        """
        if isinstance(newdata, pd.DataFrame) and self.design is not None:
            X_new = self.design.transform(newdata)
        else:
            X_new = np.asarray(newdata, dtype=np.float64).reshape(-1, self.n_coef - 1)

        X_new_full = np.column_stack([np.ones(len(X_new)), X_new])

        # Aliased terms have NaN coefficients
        valid = ~np.isnan(self.coefficients)
        return X_new_full[:, valid] @ self.coefficients[valid]

    def __repr__(self):
        return f"LinearModel(n={self.n_obs}, p={self.rank-1}, R²={self.r_squared:.3f})"


def lm(y, X, data=None, **kwargs):
    """
    Fit linear regression model (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str or array
        Predictor terms
    data : DataFrame, optional
        Dataset
    **kwargs
        Additional arguments passed to LinearModel

    Returns
    -------
    LinearModel
        Fitted model object

    Examples
    --------
    >>> model = lm(y='logFoliage', X=['Origin', 'logDBH'], data=lime)
    >>> model.coef
    >>> model.predict(new_trees)
    """
    return LinearModel(y=y, X=X, data=data, **kwargs)
