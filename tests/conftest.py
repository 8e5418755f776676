from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from happiness.data.load import COLUMN_MAP, FACTORS

# roughly the ranges seen in the published tables
FACTOR_RANGES = {
    "gdp_per_capita": (0.0, 1.7),
    "social_support": (0.0, 1.6),
    "life_expectancy": (0.0, 1.1),
    "freedom": (0.0, 0.65),
    "generosity": (0.0, 0.5),
    "corruption": (0.0, 0.45),
}

LINEAR_COEFS = {
    "const": 0.5,
    "gdp_per_capita": 1.2,
    "social_support": 0.8,
    "life_expectancy": 1.1,
    "freedom": 1.5,
    "generosity": 0.3,
    "corruption": 0.9,
}


def _factors(rng: np.random.RandomState, n: int) -> pd.DataFrame:
    return pd.DataFrame({f: rng.uniform(lo, hi, n) for f, (lo, hi) in FACTOR_RANGES.items()})


def _finish(factors: pd.DataFrame, score: np.ndarray, prefix: str) -> pd.DataFrame:
    df = factors.copy()
    df.insert(0, "score", score)
    df.insert(0, "country", [f"{prefix} {i}" for i in range(len(df))])
    df = df.sort_values("score", ascending=False).reset_index(drop=True)
    df.insert(0, "rank", np.arange(1, len(df) + 1))
    return df


def make_survey(n: int = 156, seed: int = 0, noise: float = 0.3, prefix: str = "Country") -> pd.DataFrame:
    """Canonical-schema table where score ~ sum(factors) + 1.85 + noise."""
    rng = np.random.RandomState(seed)
    X = _factors(rng, n)
    score = X.sum(axis=1).to_numpy() + 1.85 + rng.normal(0.0, noise, n)
    return _finish(X, np.clip(score, 0.0, 10.0), prefix)


def make_linear_survey(n: int = 120, seed: int = 7) -> pd.DataFrame:
    """Noise-free table: score is exactly LINEAR_COEFS applied to the factors."""
    rng = np.random.RandomState(seed)
    X = _factors(rng, n)
    score = LINEAR_COEFS["const"] + sum(LINEAR_COEFS[f] * X[f] for f in FACTORS)
    return _finish(X, score.to_numpy(), "Linear")


def to_raw(df: pd.DataFrame) -> pd.DataFrame:
    """Rename canonical columns back to the survey headers; corruption as text with one placeholder."""
    inverse = {v: k for k, v in COLUMN_MAP.items()}
    raw = df.rename(columns=inverse)
    col = inverse["corruption"]
    raw[col] = raw[col].map(lambda v: f"{v:.3f}").astype(object)
    raw.loc[0, col] = "N/A"
    return raw


@pytest.fixture
def survey_2019() -> pd.DataFrame:
    return make_survey(156, seed=19, prefix="Y19")


@pytest.fixture
def survey_2018() -> pd.DataFrame:
    return make_survey(156, seed=18, prefix="Y18")


@pytest.fixture
def linear_survey() -> pd.DataFrame:
    return make_linear_survey()


@pytest.fixture
def raw_csvs(tmp_path: Path):
    """Two raw-header yearly CSVs on disk -> {year: path}."""
    paths = {}
    for year, seed in ((2018, 18), (2019, 19)):
        p = tmp_path / f"{year}.csv"
        to_raw(make_survey(156, seed=seed, prefix=f"Y{year}")).to_csv(p, index=False)
        paths[year] = p
    return paths
