# happiness/data/load.py
"""
Load and normalize World Happiness Report tables.

Each yearly CSV is turned into the canonical schema:
 - rank, country                  (identifiers, carried but never modelled)
 - score                          (outcome, 0..10)
 - six factor columns             (see FACTORS)

Notes:
The 2018 table ships "Perceptions of corruption" as text because of an "N/A"
placeholder. That column is coerced to numeric and anything that fails the
coercion (or was already missing) becomes 0.0. The substitution is logged,
never raised, and no row is dropped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd
from pandas.api.types import is_numeric_dtype

from happiness.errors import SchemaError

LOG = logging.getLogger(__name__)

# raw survey header -> canonical name
COLUMN_MAP: Dict[str, str] = {
    "Overall rank": "rank",
    "Country or region": "country",
    "Score": "score",
    "GDP per capita": "gdp_per_capita",
    "Social support": "social_support",
    "Healthy life expectancy": "life_expectancy",
    "Freedom to make life choices": "freedom",
    "Generosity": "generosity",
    "Perceptions of corruption": "corruption",
}

IDENTIFIERS: List[str] = ["rank", "country"]
TARGET = "score"
FACTORS: List[str] = [
    "gdp_per_capita",
    "social_support",
    "life_expectancy",
    "freedom",
    "generosity",
    "corruption",
]
CORRUPTION = "corruption"
# score ~= sum(FACTORS) + DYSTOPIA_CONSTANT in the published tables
DYSTOPIA_CONSTANT = 1.85
EXPECTED_COLUMNS: List[str] = IDENTIFIERS + [TARGET] + FACTORS


def canonicalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename raw survey headers to canonical names.

    Matching is exact first, then case/whitespace-insensitive, so headers such as
    "overall rank " still resolve. Unknown columns are kept untouched.
    """
    lookup = {k.strip().lower(): v for k, v in COLUMN_MAP.items()}
    renames = {}
    for c in df.columns:
        if c in COLUMN_MAP:
            renames[c] = COLUMN_MAP[c]
            continue
        key = str(c).strip().lower()
        if key in lookup:
            renames[c] = lookup[key]
    if renames:
        LOG.debug("Renamed columns: %s", renames)
    return df.rename(columns=renames)


def coerce_corruption(df: pd.DataFrame, column: str = CORRUPTION) -> pd.DataFrame:
    """Return a copy with `column` numeric; unparseable or missing values become 0.0."""
    if column not in df.columns:
        raise SchemaError(f"Column '{column}' not found; cannot coerce")
    out = df.copy()
    coerced = pd.to_numeric(out[column], errors="coerce")
    n_bad = int(coerced.isna().sum())
    if n_bad:
        LOG.warning("Coerced %d non-numeric/missing '%s' value(s) to 0.0", n_bad, column)
    out[column] = coerced.fillna(0.0).astype(float)
    return out


def normalize(df: pd.DataFrame, source: Optional[str] = None) -> pd.DataFrame:
    """
    Canonicalize headers, check the expected schema and coerce types.

    Raises SchemaError when an expected column is absent or a factor other than
    corruption is not numeric. The input frame is not modified.
    """
    label = source or "table"
    out = canonicalize_columns(df)

    missing = [c for c in EXPECTED_COLUMNS if c not in out.columns]
    if missing:
        raise SchemaError(f"{label}: missing required column(s) {missing}")

    out = coerce_corruption(out)

    bad = [c for c in [TARGET] + FACTORS if not is_numeric_dtype(out[c])]
    if bad:
        raise SchemaError(f"{label}: non-numeric column(s) {bad}")

    for c in [TARGET] + FACTORS:
        out[c] = out[c].astype(float)

    # expected columns first, extras after (in original order)
    rest = [c for c in out.columns if c not in EXPECTED_COLUMNS]
    out = out[EXPECTED_COLUMNS + rest].reset_index(drop=True)
    LOG.info("Normalized %s: %d rows, %d cols", label, out.shape[0], out.shape[1])
    return out


def load_table(path: Union[str, Path]) -> pd.DataFrame:
    """Read one yearly survey CSV and normalize it."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Survey file not found: {p}")
    LOG.info("Reading survey table: %s", p)
    raw = pd.read_csv(p)
    return normalize(raw, source=p.name)


def load_years(paths: Mapping[Union[int, str], Union[str, Path]]) -> Dict[int, pd.DataFrame]:
    """Load several yearly tables, keyed by year (sorted ascending)."""
    out: Dict[int, pd.DataFrame] = {}
    for year in sorted(paths, key=int):
        out[int(year)] = load_table(paths[year])
    return out


def combine(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """
    Concatenate normalized tables row-wise after dropping identifier columns.

    All tables must share the same column set; otherwise SchemaError. The result
    has a fresh RangeIndex and len == sum of input lengths.
    """
    if not frames:
        raise SchemaError("combine() needs at least one table")

    stripped = [f.drop(columns=IDENTIFIERS, errors="ignore") for f in frames]
    reference = list(stripped[0].columns)
    for i, f in enumerate(stripped[1:], start=1):
        if set(f.columns) != set(reference):
            only_ref = sorted(set(reference) - set(f.columns))
            only_new = sorted(set(f.columns) - set(reference))
            raise SchemaError(
                f"Schema mismatch between table 0 and table {i}: "
                f"missing {only_ref}, unexpected {only_new}"
            )

    combined = pd.concat([f[reference] for f in stripped], axis=0, ignore_index=True)
    LOG.info("Combined %d tables -> %d rows", len(frames), len(combined))
    return combined
