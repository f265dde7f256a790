"""
Binary logistic regression for one survey outcome (Feedback or Output).

Every column other than the target is a feature: numeric columns enter as they are,
categorical columns are one-hot encoded against their canonical levels with the first
level as reference. The model is a maximum-likelihood binomial GLM (logit link) fitted
by iteratively reweighted least squares; no regularization and no class weighting.
"""

from dataclasses import dataclass
import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from food_survey.errors import ConvergenceError, SchemaError

logger = logging.getLogger(__name__)

MAX_ITER = 25
TOL = 1e-8
INTERCEPT = "(Intercept)"

_EPS = np.finfo(float).eps
# logit values beyond this give probabilities within machine epsilon of 0 or 1
_MAX_ETA = -np.log(_EPS)


@dataclass(frozen=True)
class FeatureEncoding:
    """Fitted column layout of the design matrix (intercept excluded)."""

    numeric: Tuple[str, ...]
    categorical: Tuple[str, ...]
    levels: Tuple[Tuple[str, ...], ...]
    encoder: Optional[OneHotEncoder]
    feature_names: Tuple[str, ...]


@dataclass(frozen=True, eq=False)
class LogisticModel:
    """Fitted model; arrays are read-only and nothing is updated after fit()."""

    target: str
    negative_level: str
    positive_level: str
    encoding: FeatureEncoding
    intercept: float
    coefficients: np.ndarray
    covariance: np.ndarray
    deviance: float
    null_deviance: float
    aic: float
    n_iter: int
    n_obs: int

    @property
    def feature_names(self):
        return self.encoding.feature_names


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _levels_of(s):
    if isinstance(s.dtype, pd.CategoricalDtype):
        return tuple(str(c) for c in s.cat.categories)
    return tuple(sorted(str(v) for v in s.dropna().unique()))


def build_encoding(features):
    """
    Fit the encoding on training features (target already removed).
    Categorical columns keep their declared level order; object columns fall back
    to sorted distinct values. The first level of each is the reference.
    """
    numeric = [c for c in features.columns if pd.api.types.is_numeric_dtype(features[c])]
    categorical = [c for c in features.columns if c not in numeric]
    levels = [_levels_of(features[c]) for c in categorical]

    encoder = None
    cat_names = []
    if categorical:
        encoder = OneHotEncoder(
            categories=[list(lv) for lv in levels],
            drop="first",
            sparse_output=False,
            handle_unknown="error",
            dtype=float,
        )
        encoder.fit(features[categorical].astype(str))
        cat_names = list(encoder.get_feature_names_out(categorical))

    return FeatureEncoding(
        numeric=tuple(numeric),
        categorical=tuple(categorical),
        levels=tuple(levels),
        encoder=encoder,
        feature_names=tuple(numeric) + tuple(cat_names),
    )


def transform_to_matrix(df, encoding):
    """Feature matrix in encoding.feature_names order. Unknown levels raise SchemaError."""
    missing = [c for c in encoding.numeric + encoding.categorical if c not in df.columns]
    if missing:
        raise SchemaError(f"missing feature columns: {missing}", stage="train")
    parts = [df[list(encoding.numeric)].to_numpy(dtype=float)]
    if encoding.encoder is not None:
        try:
            parts.append(encoding.encoder.transform(df[list(encoding.categorical)].astype(str)))
        except ValueError as e:
            raise SchemaError(f"unknown categorical level: {e}", stage="train") from e
    return np.hstack(parts)


def _with_intercept(X):
    return np.hstack([np.ones((X.shape[0], 1)), X])


# ---------------------------------------------------------------------------
# IRLS
# ---------------------------------------------------------------------------

def _inv_logit(eta):
    eta = np.clip(eta, -_MAX_ETA, _MAX_ETA)
    return np.clip(1.0 / (1.0 + np.exp(-eta)), _EPS, 1 - _EPS)


def _deviance(y, mu):
    return float(-2.0 * np.sum(np.where(y > 0, np.log(mu), np.log(1 - mu))))


def check_full_rank(X, names):
    """Raise ConvergenceError if the (standardized) design matrix has dependent columns."""
    n, p = X.shape
    norms = np.linalg.norm(X, axis=0)
    empty = [names[j] for j in range(p) if norms[j] == 0]
    if empty:
        raise ConvergenceError(f"constant columns, collinear with the intercept: {empty}", stage="train")
    rank = np.linalg.matrix_rank(X / norms)
    if rank < p:
        raise ConvergenceError(
            f"design matrix is rank-deficient (rank {rank} < {p} columns, {n} rows); "
            "features are collinear or categories have too few observations",
            stage="train",
        )


def irls(X, y, max_iter=MAX_ITER, tol=TOL):
    """
    Fit logit-link binomial GLM. X includes the intercept column.
    Converged when |dev - dev_old| / (|dev| + 0.1) < tol.
    Returns (beta, mu, deviance, iterations).
    """
    mu = (y + 0.5) / 2
    eta = np.log(mu / (1 - mu))
    dev_old = _deviance(y, mu)
    for it in range(1, max_iter + 1):
        w = mu * (1 - mu)
        z = eta + (y - mu) / w
        sw = np.sqrt(w)
        beta, *_ = np.linalg.lstsq(X * sw[:, None], z * sw, rcond=None)
        eta = X @ beta
        mu = _inv_logit(eta)
        dev = _deviance(y, mu)
        if not np.isfinite(dev):
            raise ConvergenceError(f"deviance is not finite at iteration {it}", stage="train")
        if abs(dev - dev_old) / (abs(dev) + 0.1) < tol:
            return beta, mu, dev, it
        dev_old = dev
    raise ConvergenceError(f"IRLS did not converge in {max_iter} iterations", stage="train")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def target_levels(s, positive_level=None):
    """(negative, positive) for a two-level categorical target."""
    if not isinstance(s.dtype, pd.CategoricalDtype) or len(s.cat.categories) != 2:
        raise SchemaError(
            f"target {s.name!r} must be categorical with exactly two levels", stage="train"
        )
    neg, pos = (str(c) for c in s.cat.categories)
    if positive_level is None or positive_level == pos:
        return neg, pos
    if positive_level == neg:
        return pos, neg
    raise SchemaError(f"{positive_level!r} is not a level of {s.name!r}", stage="train")


def _unscale(scaler):
    """Matrix T with beta_original = T @ beta_standardized (intercept first)."""
    mean, scale = scaler.mean_, scaler.scale_
    p = len(mean) + 1
    T = np.eye(p)
    T[0, 1:] = -mean / scale
    T[1:, 1:] = np.diag(1.0 / scale)
    return T


def fit(train, target_field, positive_level=None, max_iter=MAX_ITER, tol=TOL):
    """
    Fit log-odds of target_field's positive level (second canonical level by default)
    on all other columns.
    IRLS runs on standardized features; coefficients and covariance are mapped back
    to the original feature units.
    Raises ConvergenceError for a one-class target, a rank-deficient design
    or no convergence within max_iter.
    """
    if target_field not in train.columns:
        raise SchemaError(f"target column {target_field!r} not in training data", stage="train")
    negative, positive = target_levels(train[target_field], positive_level)
    y = (train[target_field].astype(str) == positive).to_numpy(dtype=float)
    if y.min() == y.max():
        raise ConvergenceError(
            f"training target {target_field!r} has a single class ({int(y.sum())} of {len(y)} positive)",
            stage="train",
        )

    encoding = build_encoding(train.drop(columns=[target_field]))
    Xf = transform_to_matrix(train, encoding)
    scaler = StandardScaler().fit(Xf)
    Z = _with_intercept(scaler.transform(Xf))
    check_full_rank(Z, (INTERCEPT,) + encoding.feature_names)

    b, mu, dev, n_iter = irls(Z, y, max_iter=max_iter, tol=tol)
    w = mu * (1 - mu)
    try:
        cov_z = np.linalg.inv(Z.T @ (Z * w[:, None]))
    except np.linalg.LinAlgError as e:
        raise ConvergenceError("information matrix is singular", stage="train") from e
    T = _unscale(scaler)
    beta = T @ b
    covariance = T @ cov_z @ T.T

    ybar = y.mean()
    null_dev = _deviance(y, np.full_like(y, ybar))
    coefficients = beta[1:].copy()
    coefficients.setflags(write=False)
    covariance.setflags(write=False)
    model = LogisticModel(
        target=target_field,
        negative_level=negative,
        positive_level=positive,
        encoding=encoding,
        intercept=float(beta[0]),
        coefficients=coefficients,
        covariance=covariance,
        deviance=dev,
        null_deviance=null_dev,
        aic=dev + 2 * Z.shape[1],
        n_iter=n_iter,
        n_obs=len(y),
    )
    logger.info(
        "Fitted %s ~ %d features: %d iterations, deviance %.3f (null %.3f)",
        target_field, len(encoding.feature_names), n_iter, dev, null_dev,
    )
    return model


def decision_function(model, df):
    """Linear predictor (log-odds of the positive level)."""
    X = transform_to_matrix(df, model.encoding)
    return model.intercept + X @ model.coefficients


def predict_proba(model, df):
    """Probability of model.positive_level for each row of df."""
    return _inv_logit(decision_function(model, df))


def coefficient_table(model):
    """Estimate, std. error, Wald z, two-sided p-value and odds ratio per term."""
    estimates = np.r_[model.intercept, model.coefficients]
    se = np.sqrt(np.diag(model.covariance))
    z = estimates / se
    return pd.DataFrame(
        {
            "estimate": estimates,
            "std_error": se,
            "z_value": z,
            "p_value": 2 * stats.norm.sf(np.abs(z)),
            "odds_ratio": np.exp(estimates),
        },
        index=pd.Index((INTERCEPT,) + model.feature_names, name="term"),
    )
