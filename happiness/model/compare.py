# happiness/model/compare.py
"""
Model comparison across the five report configurations.

  summation              sum of factors + dystopia constant, scored in-sample
  glm_<year>_full        OLS on the primary year, all six factors
  glm_<year>_reduced     same, without the weakest-correlated factor
  glm_combined_full      OLS on all years stacked, all six factors
  glm_combined_reduced   same, without the weakest-correlated factor

Each dataset is partitioned once (same seed and fraction) and that partition
is shared by its full and reduced model, so the pair is compared on the same
test rows. Every configuration is an independent call that returns its own
RunResult; nothing is overwritten between runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from happiness.data.describe import weakest_factor
from happiness.data.load import DYSTOPIA_CONSTANT, FACTORS, TARGET
from happiness.model import model_defs as mdefs
from happiness.model import train as mtrain
from happiness.model.split import DEFAULT_SEED, DEFAULT_TRAIN_FRACTION, Partition, partition

LOG = logging.getLogger("happiness.model.compare")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)

SUMMATION = "summation"
OLS = "ols"
PRIMARY = "primary"
COMBINED = "combined"


@dataclass(frozen=True)
class ModelConfig:
    name: str
    kind: str
    dataset: str
    factors: Tuple[str, ...]


def default_configs(
    weakest: str,
    primary_label: str = "2019",
    factors: Sequence[str] = FACTORS,
) -> List[ModelConfig]:
    """The five report configurations, in display order."""
    full = tuple(factors)
    reduced = mdefs.formula_without(full, weakest)
    return [
        ModelConfig(SUMMATION, SUMMATION, PRIMARY, full),
        ModelConfig(f"glm_{primary_label}_full", OLS, PRIMARY, full),
        ModelConfig(f"glm_{primary_label}_reduced", OLS, PRIMARY, reduced),
        ModelConfig("glm_combined_full", OLS, COMBINED, full),
        ModelConfig("glm_combined_reduced", OLS, COMBINED, reduced),
    ]


@dataclass
class ComparisonReport:
    configs: List[ModelConfig]
    runs: Dict[str, mtrain.RunResult]
    partitions: Dict[str, Partition]
    dropped_factor: str
    fraction: float
    seed: int
    dataset_labels: Dict[str, str] = field(default_factory=dict)

    def rmse_table(self, digits: int = 3) -> pd.DataFrame:
        """One row per configuration: model, dataset, formula, n_factors, n_train, n_test, rmse."""
        rows = []
        for cfg in self.configs:
            run = self.runs[cfg.name]
            rows.append({
                "model": cfg.name,
                "dataset": self.dataset_labels.get(cfg.dataset, cfg.dataset),
                "formula": mdefs.formula_label(run.model.target, cfg.factors),
                "n_factors": len(cfg.factors),
                "n_train": run.n_train,
                "n_test": run.n_test,
                "rmse": round(run.rmse, digits),
            })
        return pd.DataFrame(rows)

    def as_dict(self, digits: int = 3) -> Dict[str, float]:
        return {cfg.name: round(self.runs[cfg.name].rmse, digits) for cfg in self.configs}

    def best_model(self) -> str:
        return min(self.configs, key=lambda c: self.runs[c.name].rmse).name

    def coefficients(self) -> pd.DataFrame:
        """Coefficient rows for the fitted OLS models (the summation model has none to estimate)."""
        rows: List[Dict[str, Any]] = []
        for cfg in self.configs:
            if cfg.kind == OLS:
                rows.extend(mtrain.summarize_results(self.runs[cfg.name]))
        return pd.DataFrame(rows, columns=["model", "term", "coef", "std_err", "pvalue", "n_obs"])

    def equations(self, digits: int = 3) -> Dict[str, str]:
        return {cfg.name: self.runs[cfg.name].model.equation(digits) for cfg in self.configs}


def _run_config(
    cfg: ModelConfig,
    datasets: Mapping[str, pd.DataFrame],
    partitions: Mapping[str, Partition],
    target: str,
    constant: float,
) -> mtrain.RunResult:
    df = datasets[cfg.dataset]
    if cfg.kind == SUMMATION:
        return mtrain.run_summation(df, cfg.factors, constant=constant, target=target, model_name=cfg.name)
    tr, te = partitions[cfg.dataset].split(df)
    return mtrain.run_ols(tr, te, cfg.factors, target=target, model_name=cfg.name)


def compare_models(
    primary: pd.DataFrame,
    combined: pd.DataFrame,
    fraction: float = DEFAULT_TRAIN_FRACTION,
    seed: int = DEFAULT_SEED,
    factors: Sequence[str] = FACTORS,
    target: str = TARGET,
    drop_factor: Optional[str] = None,
    constant: float = DYSTOPIA_CONSTANT,
    primary_label: str = "2019",
) -> ComparisonReport:
    """
    Run the five configurations and collect their results.

    drop_factor defaults to the factor least correlated with the outcome in
    `primary`. Any schema, partition or fit error propagates; there is no
    partial report.
    """
    dropped = drop_factor or weakest_factor(primary, factors, target)
    configs = default_configs(dropped, primary_label=primary_label, factors=factors)
    datasets = {PRIMARY: primary, COMBINED: combined}

    parts = {
        PRIMARY: partition(primary, fraction, seed=seed, target=target),
        COMBINED: partition(combined, fraction, seed=seed, target=target),
    }
    for key, p in parts.items():
        LOG.info("Partition %s: fraction=%.2f seed=%d train=%d test=%d", key, p.fraction, p.seed, p.n_train, p.n_test)

    runs = {cfg.name: _run_config(cfg, datasets, parts, target, constant) for cfg in configs}

    report = ComparisonReport(
        configs=configs,
        runs=runs,
        partitions=parts,
        dropped_factor=dropped,
        fraction=float(fraction),
        seed=int(seed),
        dataset_labels={PRIMARY: primary_label, COMBINED: "combined"},
    )
    LOG.info("Model comparison (RMSE):\n%s", report.rmse_table().to_string(index=False))
    return report
