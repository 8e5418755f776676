# happiness/model/train.py
"""
Model fitting & scoring engine.

Two kinds of model share one interface (FittedModel -> predict -> rmse):
 - OLS fitted with statsmodels on a training subset (raw units, intercept,
   no regularization), scored on a held-out test subset
 - the summation model: score = sum(factors) + dystopia constant. Nothing is
   fitted, so it is scored on the same table it predicts

Usage:
    from happiness.model import train
    res = train.run_ols(train_df, test_df, FACTORS, model_name="glm_2019_full")
    print(res.rmse, res.model.equation())
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.metrics import mean_squared_error

from happiness.data.load import DYSTOPIA_CONSTANT, FACTORS, TARGET
from happiness.model import model_defs as mdefs

LOG = logging.getLogger("happiness.model.train")
if not LOG.handlers:
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(h)
LOG.setLevel(logging.INFO)


# -----------------------------
# Lightweight datatypes
# -----------------------------
@dataclass(frozen=True)
class FittedModel:
    """Intercept + one weight per factor. `results` is the statsmodels fit (None for summation)."""
    name: str
    target: str
    factors: Tuple[str, ...]
    coefficients: pd.Series
    n_obs: int
    results: Optional[Any] = None

    @property
    def is_summation(self) -> bool:
        return self.results is None

    def equation(self, digits: int = 3) -> str:
        """Human-readable equation, e.g. 'score = 1.85 + 1.000*gdp_per_capita + ...'."""
        const = float(self.coefficients["const"])
        parts = [f"{const:.{digits}f}"]
        for f in self.factors:
            w = float(self.coefficients[f])
            sign = "-" if w < 0 else "+"
            parts.append(f"{sign} {abs(w):.{digits}f}*{f}")
        return f"{self.target} = " + " ".join(parts)


@dataclass
class RunResult:
    model_name: str
    model: FittedModel
    predictions: pd.DataFrame
    rmse: float
    n_train: int
    n_test: int


# -----------------------------
# Scoring
# -----------------------------
def rmse(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """sqrt(mean((predicted - actual)^2)). Raises ValueError for empty or mismatched input."""
    a = np.asarray(actual, dtype=float).ravel()
    p = np.asarray(predicted, dtype=float).ravel()
    if a.size == 0:
        raise ValueError("rmse() needs at least one observation")
    if a.shape != p.shape:
        raise ValueError(f"rmse() length mismatch: actual={a.size}, predicted={p.size}")
    return float(np.sqrt(mean_squared_error(a, p)))


def _dropna_for_columns(df: pd.DataFrame, cols: List[str]) -> pd.DataFrame:
    """Return dataframe with rows having non-null for all specified cols."""
    if len(cols) == 0:
        return df.copy()
    return df.loc[df[cols].notna().all(axis=1)].copy()


# -----------------------------
# Core modeling functions
# -----------------------------
def fit_ols(
    train: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    model_name: str = "OLS",
) -> FittedModel:
    """Fit target ~ const + factors by least squares on `train` only."""
    factors = tuple(factors)
    mdefs.require_columns(train, [target, *factors])
    sdf = _dropna_for_columns(train, [target, *factors])
    dropped = len(train) - len(sdf)
    if dropped:
        LOG.warning("%s: dropped %d training row(s) with missing values", model_name, dropped)

    X = mdefs.prepare_design_matrix(sdf, factors, add_constant=True)
    mdefs.check_fit_feasible(X)
    y = sdf[target].astype(float)

    res = sm.OLS(y, X).fit()
    coefs = pd.Series(res.params, index=X.columns, dtype=float)
    LOG.info("%s: OLS fit n_obs=%d, k=%d, R2=%.3f", model_name, len(sdf), len(factors), res.rsquared)
    return FittedModel(
        name=model_name,
        target=target,
        factors=factors,
        coefficients=coefs,
        n_obs=int(len(sdf)),
        results=res,
    )


def summation_model(
    factors: Sequence[str] = FACTORS,
    constant: float = DYSTOPIA_CONSTANT,
    target: str = TARGET,
    model_name: str = "summation",
) -> FittedModel:
    """Zero-parameter model: every factor weighs 1.0, intercept is the dystopia constant."""
    factors = tuple(factors)
    coefs = pd.Series([float(constant)] + [1.0] * len(factors), index=["const", *factors], dtype=float)
    return FittedModel(name=model_name, target=target, factors=factors, coefficients=coefs, n_obs=0)


def predict(model: FittedModel, df: pd.DataFrame) -> pd.Series:
    """Apply the model's coefficients to df's factor columns (SchemaError if any is missing)."""
    X = mdefs.prepare_design_matrix(df, model.factors, add_constant=True)
    pred = X.to_numpy(dtype=float) @ model.coefficients[X.columns].to_numpy(dtype=float)
    return pd.Series(pred, index=df.index, name="predicted")


def summation_residuals(
    df: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    constant: float = DYSTOPIA_CONSTANT,
    target: str = TARGET,
) -> pd.Series:
    """score - sum(factors) - constant, per row (NaN where any factor is missing)."""
    mdefs.require_columns(df, [target, *factors])
    resid = df[target].astype(float) - df[list(factors)].astype(float).sum(axis=1, skipna=False) - constant
    return resid.rename("residual")


def prediction_table(model: FittedModel, df: pd.DataFrame) -> pd.DataFrame:
    """
    Row-level actual vs predicted (country kept when the table has it).

    Rows missing the target or any model factor are dropped and logged, the
    same way fit_ols treats training rows.
    """
    mdefs.require_columns(df, [model.target, *model.factors])
    sdf = _dropna_for_columns(df, [model.target, *model.factors])
    dropped = len(df) - len(sdf)
    if dropped:
        LOG.warning("%s: dropped %d scoring row(s) with missing values", model.name, dropped)
    predicted = predict(model, sdf)
    out = pd.DataFrame(index=sdf.index)
    if "country" in sdf.columns:
        out["country"] = sdf["country"]
    out["actual"] = sdf[model.target].astype(float)
    out["predicted"] = predicted
    out["residual"] = out["actual"] - out["predicted"]
    return out


def run_ols(
    train: pd.DataFrame,
    test: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    model_name: str = "OLS",
) -> RunResult:
    """Fit on train, predict and score on test."""
    model = fit_ols(train, factors, target=target, model_name=model_name)
    table = prediction_table(model, test)
    score = rmse(table["actual"], table["predicted"])
    LOG.info("%s: test RMSE=%.4f (n_train=%d, n_test=%d)", model_name, score, model.n_obs, len(table))
    return RunResult(
        model_name=model_name,
        model=model,
        predictions=table,
        rmse=score,
        n_train=model.n_obs,
        n_test=int(len(table)),
    )


def run_summation(
    df: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    constant: float = DYSTOPIA_CONSTANT,
    target: str = TARGET,
    model_name: str = "summation",
) -> RunResult:
    """Score the summation model in-sample on the whole of df."""
    model = summation_model(factors, constant=constant, target=target, model_name=model_name)
    table = prediction_table(model, df)
    score = rmse(table["actual"], table["predicted"])
    LOG.info("%s: in-sample RMSE=%.4f (n=%d)", model_name, score, len(table))
    return RunResult(model_name=model_name, model=model, predictions=table, rmse=score, n_train=0, n_test=int(len(table)))


# -----------------------------
# Summarization helpers
# -----------------------------
def summarize_results(run: RunResult) -> List[Dict[str, Any]]:
    """Long coefficient rows: model, term, coef, std_err, pvalue, n_obs."""
    model = run.model
    res = model.results
    bse = getattr(res, "bse", None)
    pvalues = getattr(res, "pvalues", None)
    rows: List[Dict[str, Any]] = []
    for term, coef in model.coefficients.items():
        rows.append({
            "model": run.model_name,
            "term": str(term),
            "coef": float(coef),
            "std_err": float(bse[term]) if bse is not None else np.nan,
            "pvalue": float(pvalues[term]) if pvalues is not None else np.nan,
            "n_obs": int(model.n_obs),
        })
    return rows
