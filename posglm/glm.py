"""
Generalized linear model API.

Main user-facing interface for GLMs with R-style output.
"""

import numpy as np
import pandas as pd
from typing import Optional, Union, List
from scipy import stats

from ._backends import get_backend
from ._core.families import get_family
from ._core.irls import irls
from ._core.lm_solver import unscaled_covariance
from ._core.dispersion import estimate_dispersion, pearson_dispersion
from ._logging import get_logger
from ._utils import signif_stars, format_pvalue
from .design import build_design
from . import diagnostics

log = get_logger(__name__)


class GLM:
    """
    Fit a generalized linear model (like R's glm()).

    Designed for positive continuous responses: gamma and inverse
    Gaussian families with log, inverse, identity or 1/mu^2 links.

    Examples
    --------
    >>> from posglm import glm, load_lime
    >>> lime = load_lime('data/lime.csv')
    >>> lime['logDBH'] = np.log(lime['DBH'])
    >>> model = glm(y='Foliage', X=['Origin', 'logDBH', 'Origin:logDBH'],
    ...             data=lime, family='gamma', link='log')
    >>> model.summary()
    >>> model.exp_coef()        # multiplicative effects
    >>> model.residuals('quantile')
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[List[str], np.ndarray],
        data: Optional[pd.DataFrame] = None,
        family='gamma',
        link=None,
        weights: Optional[Union[str, np.ndarray]] = None,
        offset: Optional[Union[str, np.ndarray]] = None,
        start: Optional[np.ndarray] = None,
        mustart: Optional[np.ndarray] = None,
        maxit: int = 25,
        epsilon: float = 1e-8,
        backend='auto',
        dispersion_method: str = 'pearson',
    ):
        """
        Fit generalized linear model.

        Parameters
        ----------
        y : str or array
            Response variable (must be positive for gamma/inverse Gaussian)
            - If string: column name in data
            - If array: numeric values
        X : list of str or array
            Predictor terms
            - If list of strings: terms over columns in data; categorical
              columns are treatment coded and 'a:b' is an interaction
            - If array: numeric matrix (n × p); use [] for intercept only
        data : DataFrame, optional
            Dataset containing y and X variables
        family : str or Family
            'gamma', 'inverse_gaussian' or 'gaussian'
        link : str, optional
            'log', 'inverse', 'identity' or '1/mu^2' (default: canonical)
        weights : str or array, optional
            Prior weights
        offset : str or array, optional
            Offset on the linear predictor scale
        start, mustart : array, optional
            Starting values for coefficients / means
        maxit : int
            Maximum IRLS iterations
        epsilon : float
            IRLS convergence tolerance
        backend : str
            Computational backend: 'auto', 'cpu', 'gpu', 'pytorch'
        dispersion_method : str
            Estimator used for inference: 'pearson', 'deviance' or 'ml'
        """
        self.data = data
        self.y_spec = y

        if isinstance(y, str):
            if data is None:
                raise ValueError("Must provide data when y is a string")
            self.y_values = data[y].to_numpy(dtype=np.float64)
            self.y_name = y
            self.index = data.index
        else:
            self.y_values = np.asarray(y, dtype=np.float64)
            self.y_name = 'y'
            self.index = pd.RangeIndex(len(self.y_values))

        self.design = None
        if isinstance(X, (list, tuple)) and all(isinstance(x, str) for x in X):
            if data is None and len(X) > 0:
                raise ValueError("Must provide data when X is list of strings")
            frame = data if data is not None else pd.DataFrame(index=self.index)
            self.design = build_design(frame, X)
            self.X_values = self.design.X
            self.X_names = self.design.column_names
            self.terms = list(X)
        else:
            self.X_values = np.asarray(X, dtype=np.float64).reshape(len(self.y_values), -1)
            self.X_names = [f'x{i}' for i in range(self.X_values.shape[1])]
            self.terms = ['X'] if self.X_values.shape[1] else []

        self.weights_values = self._column_or_array(weights, 'weights')
        self.offset_values = self._column_or_array(offset, 'offset')

        self.family = get_family(family, link)
        self.link = self.family.link.name
        self.backend = get_backend(backend)
        self.dispersion_method = dispersion_method
        self._fit_options = dict(
            maxit=maxit, epsilon=epsilon, backend=self.backend,
            dispersion_method=dispersion_method,
        )

        self.n_coef = self.X_values.shape[1] + 1  # +1 for intercept
        self.var_names = ['Intercept'] + self.X_names
        self.model_matrix = np.column_stack([np.ones(len(self.y_values)), self.X_values])

        log.debug(
            "fitting glm",
            response=self.y_name,
            family=self.family.name,
            link=self.link,
            n_coef=self.n_coef,
        )
        self._result = irls(
            self.X_values,
            self.y_values,
            self.family,
            weights=self.weights_values,
            offset=self.offset_values,
            start=start,
            mustart=mustart,
            maxit=maxit,
            epsilon=epsilon,
            backend=self.backend,
        )

        self._compute_statistics()

    def _column_or_array(self, value, what):
        if value is None:
            return None
        if isinstance(value, str):
            if self.data is None:
                raise ValueError(f"Must provide data when {what} is a string")
            return self.data[value].to_numpy(dtype=np.float64)
        return np.asarray(value, dtype=np.float64)

    def _compute_statistics(self):
        """Compute dispersion, standard errors, t-stats, p-values, etc."""
        result = self._result

        self.coefficients = result.coef
        self.fitted_values = result.fitted_values
        self.linear_predictors = result.linear_predictors
        self.working_residuals = result.working_residuals
        self.working_weights = result.working_weights
        self.prior_weights = result.prior_weights
        self.rank = result.rank
        self.df_residual = result.df_residual
        self.df_null = result.df_null
        self.deviance = result.deviance
        self.null_deviance = result.null_deviance
        self.aic = result.aic
        self.converged = result.converged
        self.boundary = result.boundary
        self.iterations = result.iterations
        self.n_obs = int(np.sum(self.prior_weights > 0))

        self.pearson_dispersion = pearson_dispersion(result)
        self.dispersion = estimate_dispersion(result, self.dispersion_method)

        self.cov_unscaled = unscaled_covariance(
            result.qr_R, result.qr_pivot, self.rank, self.n_coef
        )
        self.vcov = self.cov_unscaled * self.dispersion
        with np.errstate(invalid='ignore', divide='ignore'):
            self.std_errors = np.sqrt(np.diag(self.vcov))
            self.t_values = self.coefficients / self.std_errors
        if self.df_residual > 0:
            self.pvalues = 2 * stats.t.sf(np.abs(self.t_values), self.df_residual)
        else:
            self.pvalues = np.full(self.n_coef, np.nan)

        # logLik.glm: the dispersion counts as a parameter
        self.df_model = self.rank + 1
        self.loglik = self.df_model - self.aic / 2
        self.bic = -2 * self.loglik + np.log(self.n_obs) * self.df_model

    @property
    def coef(self):
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    def coef_table(self) -> pd.DataFrame:
        """Coefficient table as in R's summary.glm."""
        return pd.DataFrame({
            'Estimate': self.coefficients,
            'Std. Error': self.std_errors,
            't value': self.t_values,
            'Pr(>|t|)': self.pvalues,
        }, index=self.var_names)

    def conf_int(self, alpha: float = 0.05):
        """
        Wald confidence intervals for coefficients (link scale).

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

    def exp_coef(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Multiplicative effects exp(β) with confidence intervals.

        Only meaningful for the log link, where a unit change in a
        covariate multiplies the mean by exp(β).

        Returns
        -------
        DataFrame
            Columns 'ratio', 'lower', 'upper', 'percent_change'
        """
        if self.link != 'log':
            raise ValueError(
                f"exp_coef() needs the log link, model uses {self.link!r}"
            )
        ci = self.conf_int(alpha)
        ratio = np.exp(self.coefficients)
        return pd.DataFrame({
            'ratio': ratio,
            'lower': np.exp(ci['lower'].to_numpy()),
            'upper': np.exp(ci['upper'].to_numpy()),
            'percent_change': 100 * (ratio - 1),
        }, index=self.var_names)

    def dispersion_estimates(self) -> pd.Series:
        """Pearson, mean deviance and ML estimates of φ side by side."""
        return pd.Series({
            method: estimate_dispersion(self._result, method)
            for method in ('pearson', 'deviance', 'ml')
        }, name='dispersion')

    def residuals(self, type: str = 'deviance') -> np.ndarray:
        """Residuals: 'response', 'pearson', 'deviance', 'working', 'quantile'."""
        return diagnostics.residuals(self, type)

    def predict(
        self,
        newdata: Optional[Union[pd.DataFrame, np.ndarray]] = None,
        type: str = 'link',
        se_fit: bool = False,
        offset: Optional[np.ndarray] = None,
    ):
        """
        Predict for new data.

        Parameters
        ----------
        newdata : DataFrame or array, optional
            New predictor values (default: the fitted data)
        type : str
            'link' (η) or 'response' (μ)
        se_fit : bool
            Also return standard errors (delta method for 'response')
        offset : array, optional
            Offset for the new observations

        Returns
        -------
        ndarray, or DataFrame with 'fit' and 'se_fit' when se_fit=True
        """
        if type not in ('link', 'response'):
            raise ValueError(f"type must be 'link' or 'response', got {type!r}")

        if newdata is None:
            X_new = self.X_values
            off = self._result.offset
        else:
            if isinstance(newdata, pd.DataFrame):
                if self.design is None:
                    raise ValueError("Model was fitted on arrays; pass an array")
                X_new = self.design.transform(newdata)
            else:
                X_new = np.asarray(newdata, dtype=np.float64).reshape(-1, self.n_coef - 1)
            off = np.zeros(len(X_new)) if offset is None else np.asarray(offset, dtype=np.float64)

        X_full = np.column_stack([np.ones(len(X_new)), X_new])
        valid = ~np.isnan(self.coefficients)
        eta = X_full[:, valid] @ self.coefficients[valid] + off
        fit = eta if type == 'link' else self.family.linkinv(eta)

        if not se_fit:
            return fit

        Xv = X_full[:, valid]
        cov = self.vcov[np.ix_(valid, valid)]
        se = np.sqrt(np.einsum('ij,jk,ik->i', Xv, cov, Xv))
        if type == 'response':
            se = se * np.abs(self.family.mu_eta(eta))
        return pd.DataFrame({'fit': fit, 'se_fit': se})

    def update(self, X, **kwargs) -> 'GLM':
        """Refit with different terms (same response, family and data)."""
        options = dict(
            family=self.family,
            weights=self.weights_values,
            offset=self.offset_values,
            maxit=self._fit_options['maxit'],
            epsilon=self._fit_options['epsilon'],
            backend=self.backend,
            dispersion_method=self.dispersion_method,
        )
        options.update(kwargs)
        y = self.y_spec if isinstance(self.y_spec, str) else self.y_values
        return GLM(y=y, X=X, data=self.data, **options)

    def summary(self) -> str:
        """
        Print summary of GLM results (like R's summary.glm).

        Returns
        -------
        str
            The printed text
        """
        lines = []
        add = lines.append
        add("=" * 80)
        add("GENERALIZED LINEAR MODEL RESULTS")
        add("=" * 80)
        add("")
        add(f"Family: {self.family.name} (link: {self.link})")
        add(f"Dependent variable: {self.y_name}")
        add(f"Number of observations: {self.n_obs}")
        add("")

        dev_res = pd.Series(self.residuals('deviance')).describe()
        add("Deviance Residuals:")
        add(f"  Min:    {dev_res['min']:>10.4f}")
        add(f"  1Q:     {dev_res['25%']:>10.4f}")
        add(f"  Median: {dev_res['50%']:>10.4f}")
        add(f"  3Q:     {dev_res['75%']:>10.4f}")
        add(f"  Max:    {dev_res['max']:>10.4f}")
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
            sig = signif_stars(p)
            add(f"{name:<28} {self.coefficients[i]:>12.5f} {self.std_errors[i]:>12.5f} "
                f"{self.t_values[i]:>10.3f} {format_pvalue(p):>10} {sig}")
        add("-" * 80)
        add("Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")
        add("")
        add(f"(Dispersion parameter for {self.family.name} family taken to be "
            f"{self.dispersion:.6g}; {self.dispersion_method} estimate)")
        add("")
        add(f"    Null deviance: {self.null_deviance:.4f} on {self.df_null} degrees of freedom")
        add(f"Residual deviance: {self.deviance:.4f} on {self.df_residual} degrees of freedom")
        add(f"AIC: {self.aic:.4f}")
        add("")
        add(f"Number of Fisher Scoring iterations: {self.iterations}")
        if not self.converged:
            add("WARNING: algorithm did not converge")
        if self.boundary:
            add("WARNING: algorithm stopped at boundary value")
        add("")
        add(f"Backend: {self.backend.name}")
        add("=" * 80)

        text = "\n".join(lines)
        print()
        print(text)
        print()
        return text

    def __repr__(self):
        return (f"GLM(family={self.family.name}, link={self.link}, n={self.n_obs}, "
                f"deviance={self.deviance:.4f}, converged={self.converged})")


def glm(y, X, data=None, family='gamma', link=None, **kwargs):
    """
    Fit generalized linear model (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str or array
        Predictor terms
    data : DataFrame, optional
        Dataset
    family : str or Family
        'gamma' (default), 'inverse_gaussian' or 'gaussian'
    link : str, optional
        Link function (default: the family's canonical link)
    **kwargs
        Additional arguments passed to GLM

    Returns
    -------
    GLM
        Fitted model object

    Examples
    --------
    >>> perm = load_perm('data/perm.csv')
    >>> model = glm('Perm', ['Mach', 'Day'], data=perm,
    ...             family='inverse_gaussian', link='log')
    >>> model.summary()
    >>> model.exp_coef()
    """
    return GLM(y=y, X=X, data=data, family=family, link=link, **kwargs)
