# happiness/data/describe.py
"""
Descriptive statistics, correlations and VIF over the happiness factors.

Outputs are plain pandas objects so the report layer can render them:
 - score_summary              (min / q1 / median / mean / q3 / max)
 - factor_summary             (describe() per column)
 - correlation_matrix         (Pearson, 2 significant figures, diag = 1.0)
 - top_correlation_pairs      (absolute pairwise correlations, sorted)
 - compute_vif                (variance inflation factor per factor)

Nothing here mutates the frame it is given.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.outliers_influence import variance_inflation_factor

from happiness.data.load import DYSTOPIA_CONSTANT, FACTORS, TARGET
from happiness.errors import SchemaError

LOG = logging.getLogger(__name__)


def _require(df: pd.DataFrame, cols: Sequence[str]) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaError(f"Missing column(s) for statistics: {missing}")


def round_significant(x: float, digits: int = 2) -> float:
    """Round x to `digits` significant figures (0 and non-finite pass through)."""
    if x == 0 or not math.isfinite(x):
        return x
    return round(x, digits - 1 - int(math.floor(math.log10(abs(x)))))


def score_summary(df: pd.DataFrame, target: str = TARGET) -> pd.Series:
    """Five-number summary plus mean of the outcome column."""
    _require(df, [target])
    s = df[target].astype(float).dropna()
    out = pd.Series(
        {
            "min": float(s.min()),
            "q1": float(s.quantile(0.25)),
            "median": float(s.median()),
            "mean": float(s.mean()),
            "q3": float(s.quantile(0.75)),
            "max": float(s.max()),
        },
        name=target,
    )
    return out


def factor_summary(df: pd.DataFrame, factors: Sequence[str] = FACTORS, target: str = TARGET) -> pd.DataFrame:
    cols = [target] + list(factors)
    _require(df, cols)
    return df[cols].describe().T


def correlation_matrix(
    df: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    digits: Optional[int] = 2,
) -> pd.DataFrame:
    """
    Pearson correlation over the factors and the outcome.

    Values are rounded to `digits` significant figures (None keeps full
    precision). The matrix is symmetrized and its diagonal set to exactly 1.0.
    """
    cols = list(factors) + [target]
    _require(df, cols)
    corr = df[cols].astype(float).corr(method="pearson")
    arr = corr.to_numpy()
    arr = (arr + arr.T) / 2.0
    np.fill_diagonal(arr, 1.0)
    corr = pd.DataFrame(arr, index=cols, columns=cols)
    if digits is not None:
        corr = corr.apply(lambda col: col.map(lambda v: round_significant(float(v), digits)))
    return corr


def target_correlations(df: pd.DataFrame, factors: Sequence[str] = FACTORS, target: str = TARGET) -> pd.Series:
    """Unrounded Pearson correlation of each factor with the outcome."""
    _require(df, list(factors) + [target])
    y = df[target].astype(float)
    return pd.Series({f: float(df[f].astype(float).corr(y)) for f in factors}, name=target)


def weakest_factor(df: pd.DataFrame, factors: Sequence[str] = FACTORS, target: str = TARGET) -> str:
    """Factor with the smallest absolute correlation with the outcome."""
    corr = target_correlations(df, factors, target).abs()
    if corr.isna().all():
        raise SchemaError("No finite factor correlations (constant columns?)")
    name = str(corr.idxmin())
    LOG.info("Weakest factor by |r| with %s: %s (|r|=%.3f)", target, name, corr[name])
    return name


def top_correlation_pairs(df: pd.DataFrame, factors: Sequence[str] = FACTORS, target: str = TARGET) -> pd.DataFrame:
    """Absolute pairwise correlations sorted descending."""
    cols = list(factors) + [target]
    _require(df, cols)
    corr = df[cols].astype(float).corr().abs()
    pairs: List[Tuple[str, str, float]] = []
    for i in range(len(cols)):
        for j in range(i + 1, len(cols)):
            pairs.append((cols[i], cols[j], float(corr.iloc[i, j])))
    return (
        pd.DataFrame(pairs, columns=["x", "y", "abs_corr"])
        .sort_values("abs_corr", ascending=False)
        .reset_index(drop=True)
    )


def compute_vif(df: pd.DataFrame, factors: Sequence[str] = FACTORS) -> pd.DataFrame:
    """
    VIF per factor on full-case rows, computed with an added constant
    (the constant's own VIF is not reported).
    """
    _require(df, factors)
    X = df[list(factors)].astype(float).dropna()
    if len(X) <= len(factors):
        raise SchemaError(f"Not enough full-case rows for VIF: {len(X)}")
    Xc = sm.add_constant(X, has_constant="add")
    rows = []
    for i, col in enumerate(Xc.columns):
        if col == "const":
            continue
        rows.append((col, float(variance_inflation_factor(Xc.values, i))))
    return pd.DataFrame(rows, columns=["factor", "vif"]).sort_values("vif", ascending=False).reset_index(drop=True)


def summation_residual_summary(
    df: pd.DataFrame,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    constant: float = DYSTOPIA_CONSTANT,
) -> pd.Series:
    """Distribution of score - sum(factors) - constant (how far the additive identity is off)."""
    _require(df, list(factors) + [target])
    resid = df[target].astype(float) - df[list(factors)].astype(float).sum(axis=1, skipna=False) - constant
    return resid.describe().rename("summation_residual")
