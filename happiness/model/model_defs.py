# happiness/model/model_defs.py
"""
Model helpers: feature formulas, design matrix preparation and fit guards.

This module keeps modeling utilities small and well-tested:
- require_columns: strict column check (raises SchemaError)
- formula_without / formula_label: build and describe feature subsets
- prepare_design_matrix: builds a float DataFrame X (const first)
- check_fit_feasible: refuses OLS on too few rows or collinear predictors

These are intentionally simple, transparent helpers so every model in the
report can be written down as an equation.
"""
from __future__ import annotations
from typing import Iterable, List, Sequence, Tuple
import numpy as np
import pandas as pd
import logging

from happiness.errors import DegenerateFitError, SchemaError

LOG = logging.getLogger("happiness.model.model_defs")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)


def require_columns(df: pd.DataFrame, cols: Iterable[str]) -> List[str]:
    """Return `cols` as a list; raise SchemaError naming any that df lacks."""
    cols = list(cols)
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaError(f"Required column(s) not found in dataframe: {missing}")
    return cols


def formula_without(factors: Sequence[str], drop: str) -> Tuple[str, ...]:
    """Ordered factor tuple with `drop` removed (KeyError if it is not there)."""
    if drop not in factors:
        raise KeyError(f"Factor '{drop}' not in formula {list(factors)}")
    return tuple(f for f in factors if f != drop)


def formula_label(target: str, factors: Sequence[str]) -> str:
    """Readable formula text, e.g. 'score ~ gdp_per_capita + freedom'."""
    rhs = " + ".join(factors) if factors else "1"
    return f"{target} ~ {rhs}"


def prepare_design_matrix(df: pd.DataFrame, predictors: Iterable[str], add_constant: bool = True) -> pd.DataFrame:
    """
    Build the design matrix as a float DataFrame indexed like df.

    - predictors: columns expected in df (missing ones raise SchemaError)
    - add_constant: if True, a leading constant column named 'const' is added

    Returns:
        X: DataFrame, shape (n_obs, n_predictors [+1]), columns in order
    """
    preds = require_columns(df, predictors)
    if add_constant:
        # const first to match statsmodels convention
        Xdf = pd.concat([pd.Series(1.0, index=df.index, name="const"), df[preds]], axis=1)
    else:
        Xdf = df[preds].copy()

    Xdf = Xdf.apply(pd.to_numeric, errors="coerce").astype(float)
    LOG.debug("Prepared design matrix with columns: %s (shape=%s)", list(Xdf.columns), Xdf.shape)
    return Xdf


def check_fit_feasible(X: pd.DataFrame) -> None:
    """
    Guard for OLS: needs at least as many rows as columns (predictors + intercept)
    and a full-rank design matrix. Raises DegenerateFitError otherwise.
    """
    n_obs, n_cols = X.shape
    if n_obs < n_cols:
        raise DegenerateFitError(
            f"Not enough observations for OLS: {n_obs} rows for {n_cols} coefficients"
        )
    rank = int(np.linalg.matrix_rank(X.to_numpy(dtype=float)))
    if rank < n_cols:
        raise DegenerateFitError(
            f"Design matrix is rank deficient (rank {rank} < {n_cols}); "
            f"collinear predictors among {list(X.columns)}"
        )
