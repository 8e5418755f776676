# happiness/model/split.py
"""
Train/test partitioning and the split-ratio sweep.

partition() draws a stratified random split over quantile groups of the
outcome so that the score distribution is similar on both sides. The same
(dataset, fraction, seed) always gives the same partition.

sweep_split_ratios() refits the full OLS model over a grid of training
fractions, each with its own fresh draw, and reports test RMSE per fraction.
The curve is noisy on purpose; it is used to eyeball a sensible operating
point, not to pick one automatically. The report keeps a fixed fraction
(DEFAULT_TRAIN_FRACTION) chosen from that inspection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import train_test_split
from tqdm import tqdm

from happiness.data.load import FACTORS, TARGET
from happiness.errors import PartitionError
from happiness.model import train as mtrain

LOG = logging.getLogger("happiness.model.split")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)

# RMSE gets erratic for larger training fractions (tiny test sets)
DEFAULT_TRAIN_FRACTION = 0.70
DEFAULT_SEED = 2025
# outcome quantile groups used for stratification
MAX_STRATA = 5


@dataclass(frozen=True)
class Partition:
    fraction: float
    seed: int
    train_index: pd.Index
    test_index: pd.Index

    @property
    def n_train(self) -> int:
        return len(self.train_index)

    @property
    def n_test(self) -> int:
        return len(self.test_index)

    def split(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Return (train, test) copies of df's rows."""
        return df.loc[self.train_index].copy(), df.loc[self.test_index].copy()


def _strata(y: pd.Series, n_groups: int) -> np.ndarray:
    # rank first so tied scores never collapse quantile edges
    return pd.qcut(y.rank(method="first"), q=n_groups, labels=False).to_numpy()


def partition(df: pd.DataFrame, fraction: float, seed: int = DEFAULT_SEED, target: str = TARGET) -> Partition:
    """
    Stratified random train/test partition at training fraction `fraction`.

    n_train = floor(fraction * n), n_test = n - n_train. Raises PartitionError
    when fraction is outside (0, 1), either side would be empty, or the
    target has missing values.
    """
    if not (0.0 < fraction < 1.0):
        raise PartitionError(f"Train fraction must be in (0, 1), got {fraction}")
    if target not in df.columns:
        raise PartitionError(f"Target column '{target}' not found")
    y = df[target]
    if y.isna().any():
        raise PartitionError(f"Target '{target}' has {int(y.isna().sum())} missing value(s)")

    n = len(df)
    n_train = int(np.floor(fraction * n))
    n_test = n - n_train
    if n_train < 1 or n_test < 1:
        raise PartitionError(
            f"Fraction {fraction} on {n} rows leaves an empty side (train={n_train}, test={n_test})"
        )

    # every group needs >= 2 members and each side >= one row per group
    n_groups = min(MAX_STRATA, n_train, n_test, n // 2)
    stratify = _strata(y, n_groups) if n_groups >= 2 else None

    train_idx, test_idx = train_test_split(
        df.index.to_numpy(),
        train_size=n_train,
        test_size=n_test,
        random_state=seed,
        stratify=stratify,
    )
    return Partition(
        fraction=float(fraction),
        seed=int(seed),
        train_index=pd.Index(np.sort(train_idx)),
        test_index=pd.Index(np.sort(test_idx)),
    )


def fraction_grid(start: float = 0.30, stop: float = 0.90, step: float = 0.01) -> List[float]:
    """Inclusive grid of training fractions, rounded to the step's precision."""
    if step <= 0:
        raise PartitionError(f"Sweep step must be positive, got {step}")
    if stop < start:
        raise PartitionError(f"Sweep stop ({stop}) is below start ({start})")
    n_steps = int(round((stop - start) / step))
    decimals = max(0, int(np.ceil(-np.log10(step))) + 1)
    return [round(start + i * step, decimals) for i in range(n_steps + 1)]


def _sweep_point(
    df: pd.DataFrame,
    fraction: float,
    seed: int,
    factors: Sequence[str],
    target: str,
) -> Dict[str, Any]:
    part = partition(df, fraction, seed=seed, target=target)
    tr, te = part.split(df)
    run = mtrain.run_ols(tr, te, factors, target=target, model_name=f"sweep_{fraction:.2f}")
    return {
        "fraction": float(fraction),
        "seed": int(seed),
        "n_train": part.n_train,
        "n_test": part.n_test,
        "rmse": run.rmse,
    }


def sweep_split_ratios(
    df: pd.DataFrame,
    fractions: Optional[Sequence[float]] = None,
    seed: int = DEFAULT_SEED,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    n_jobs: int = 1,
    progress: bool = False,
) -> pd.DataFrame:
    """
    Fit and score the full model at every fraction, with a new draw per fraction.

    Per-fraction seeds are derived from `seed`, so the whole sequence is
    reproducible and identical whether run serially or with joblib.
    Returns columns: fraction, seed, n_train, n_test, rmse.
    """
    fractions = list(fraction_grid() if fractions is None else fractions)
    if not fractions:
        raise PartitionError("No fractions to sweep")
    rng = np.random.RandomState(seed)
    seeds = rng.randint(0, 2**31 - 1, size=len(fractions))
    LOG.info("Split sweep: %d fractions (%.2f..%.2f), n_jobs=%d", len(fractions), min(fractions), max(fractions), n_jobs)

    pairs = list(zip(fractions, seeds))
    if n_jobs == 1:
        it = tqdm(pairs, desc="split sweep") if progress else pairs
        rows = [_sweep_point(df, f, int(s), factors, target) for f, s in it]
    else:
        rows = Parallel(n_jobs=n_jobs)(
            delayed(_sweep_point)(df, f, int(s), factors, target) for f, s in pairs
        )
    return pd.DataFrame(rows, columns=["fraction", "seed", "n_train", "n_test", "rmse"])


def select_split_ratio(sweep: pd.DataFrame) -> float:
    """Fraction with the lowest test RMSE. Advisory: the report uses a fixed fraction."""
    if sweep.empty:
        raise PartitionError("Empty sweep; nothing to select")
    best = sweep.loc[sweep["rmse"].idxmin()]
    LOG.info("Lowest sweep RMSE %.4f at fraction %.2f", best["rmse"], best["fraction"])
    return float(best["fraction"])
