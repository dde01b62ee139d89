# Model building utilities
# Every fitter follows the scikit-learn estimator contract; a fresh one is
# built for each (candidate, fold) unit.

import warnings

import numpy as np
import statsmodels.api as sm
from statsmodels.discrete.count_model import ZeroInflatedPoisson
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression, PoissonRegressor


SUPPORTED_MODELS = {
    'classification': ['logistic_regression', 'random_forest', 'majority'],
    'regression': ['poisson', 'zero_inflated_poisson'],
}


class ZeroInflatedPoissonRegressor(BaseEstimator, RegressorMixin):
    """
    Zero-inflated Poisson regression backed by statsmodels.

    The count part uses every feature; the zero-inflation (logit) part uses
    ``inflation_columns`` when given, otherwise every feature as well. Both
    parts get an intercept. ``predict`` returns the expected count of the
    mixture. Parameterisation is statsmodels' own.
    """

    def __init__(self, inflation_columns=None, method='bfgs', maxiter=500, require_convergence=True):
        self.inflation_columns = inflation_columns
        self.method = method
        self.maxiter = maxiter
        self.require_convergence = require_convergence

    def _design(self, X):
        exog = sm.add_constant(np.asarray(X, dtype=float), has_constant='add')
        if self.inflation_columns:
            missing = [c for c in self.inflation_columns if c not in X.columns]
            if missing:
                raise ValueError(f"Inflation columns not found after preprocessing: {missing}")
            infl = np.asarray(X[list(self.inflation_columns)], dtype=float)
        else:
            infl = np.asarray(X, dtype=float)
        return exog, sm.add_constant(infl, has_constant='add')

    def fit(self, X, y):
        exog, exog_infl = self._design(X)
        model = ZeroInflatedPoisson(
            endog=np.asarray(y, dtype=float),
            exog=exog,
            exog_infl=exog_infl,
            inflation='logit',
        )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            self.result_ = model.fit(method=self.method, maxiter=self.maxiter, disp=0)

        if self.require_convergence and not self.result_.mle_retvals.get('converged', True):
            raise RuntimeError(f"Zero-inflated Poisson did not converge within {self.maxiter} iterations")

        self.n_features_in_ = exog.shape[1] - 1
        return self

    def predict(self, X):
        exog, exog_infl = self._design(X)
        return np.asarray(self.result_.predict(exog=exog, exog_infl=exog_infl, which='mean'))


def task_for_model(model_type):
    for task, models in SUPPORTED_MODELS.items():
        if model_type in models:
            return task
    raise ValueError(f"Unknown model type: '{model_type}'. Supported: {SUPPORTED_MODELS}")


def build_model(model_type, params=None, seed=None):
    """
    Build and return an unfitted model instance.

    Note: Poisson and zero-inflated Poisson default to unpenalized fits, the
    way a plain GLM is fitted. The majority model ignores the features.
    """
    params = dict(params or {})

    # Classification models
    if model_type == 'logistic_regression':
        params.setdefault('max_iter', 1000)
        return LogisticRegression(random_state=seed, **params)

    elif model_type == 'random_forest':
        params.setdefault('n_estimators', 500)
        return RandomForestClassifier(random_state=seed, **params)

    elif model_type == 'majority':
        return DummyClassifier(strategy='most_frequent')

    # Count models
    elif model_type == 'poisson':
        params.setdefault('alpha', 0.0)
        params.setdefault('max_iter', 1000)
        return PoissonRegressor(**params)

    elif model_type == 'zero_inflated_poisson':
        return ZeroInflatedPoissonRegressor(**params)

    else:
        raise ValueError(
            f"Unknown model type: '{model_type}'. "
            f"Supported: {SUPPORTED_MODELS}"
        )
