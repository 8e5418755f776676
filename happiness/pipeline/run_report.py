# happiness/pipeline/run_report.py
"""
Happiness report runner.

Runs the whole analysis in order and writes the tables the report renders:

 - reports/score_summary.csv        (min/q1/median/mean/q3/max per dataset)
 - reports/factor_summary.csv       (describe() of score + factors, primary year)
 - reports/correlations.csv         (Pearson, 2 significant figures)
 - reports/vif.csv                  (variance inflation per factor)
 - reports/summation_residuals.csv  (score - sum(factors) - 1.85, per row)
 - reports/split_sweep.csv          (fraction -> test RMSE; skipped with --no-sweep)
 - reports/model_comparison.csv     (configuration -> RMSE)
 - reports/model_coefficients.csv   (intercept + weights per model)
 - reports/model_equations.txt
 - reports/predictions_<model>.csv  (actual vs predicted per row)
 - reports/ols_<model>_summary.txt  (statsmodels text)
 - reports/report_metadata.json     (config snapshot + input sha256)
 - reports/report_manifest.json

Usage:
    python -m happiness.pipeline.run_report --config config/report.yml
    python -m happiness.pipeline.run_report --config config/report.yml --no-sweep

Design:
  - Conservative: stops on first error, no partial report
  - Files are written to a staging dir next to reports/ and moved into place
    only once every table has been written
  - Every step receives its data, fraction and seed explicitly
"""

from __future__ import annotations

import argparse
import copy
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml

from happiness.data import describe
from happiness.data import load as dload
from happiness.model import compare as mcompare
from happiness.model import split as msplit
from happiness.model import train as mtrain
from happiness.model import utils as mutils

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
LOG = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "seed": msplit.DEFAULT_SEED,
    "target": dload.TARGET,
    "data": {
        "years": {2018: "data/raw/2018.csv", 2019: "data/raw/2019.csv"},
        "primary_year": 2019,
    },
    "split": {
        "train_fraction": msplit.DEFAULT_TRAIN_FRACTION,
        "sweep": {"run": True, "start": 0.30, "stop": 0.90, "step": 0.01, "n_jobs": 1},
    },
    "models": {
        "dystopia_constant": dload.DYSTOPIA_CONSTANT,
        "drop_factor": None,
    },
    "outputs": {"reports_dir": "reports"},
}


def _merge_defaults(cfg: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in defaults.items():
        if isinstance(value, dict):
            sub = cfg.get(key)
            if not isinstance(sub, dict):
                sub = {}
                cfg[key] = sub
            _merge_defaults(sub, value)
        else:
            cfg.setdefault(key, value)
    return cfg


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """Read the YAML config (or use defaults when path is None) and fill in missing keys."""
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf8") as fh:
        cfg = yaml.safe_load(fh) or {}
    # an explicit years mapping replaces the default one instead of merging into it
    years = dict((cfg.get("data") or {}).get("years") or {})
    cfg = _merge_defaults(cfg, DEFAULT_CONFIG)
    if years:
        cfg["data"]["years"] = years
    return cfg


@dataclass
class ReportOutputs:
    years: Dict[int, pd.DataFrame]
    primary_year: int
    combined: pd.DataFrame
    score_summary: pd.DataFrame
    factor_summary: pd.DataFrame
    correlations: pd.DataFrame
    vif: pd.DataFrame
    summation_residuals: pd.DataFrame
    sweep: Optional[pd.DataFrame]
    suggested_fraction: Optional[float]
    comparison: mcompare.ComparisonReport


def build_report(cfg: Dict[str, Any], run_sweep: bool = True) -> ReportOutputs:
    """Load the data and run every analysis step; returns in-memory results."""
    seed = int(cfg["seed"])
    target = cfg["target"]
    constant = float(cfg["models"]["dystopia_constant"])

    years = dload.load_years(cfg["data"]["years"])
    primary_year = int(cfg["data"]["primary_year"])
    if primary_year not in years:
        raise KeyError(f"primary_year {primary_year} not among loaded years {sorted(years)}")
    primary = years[primary_year]
    combined = dload.combine(list(years.values()))
    LOG.info("Loaded %d year(s); primary=%d rows, combined=%d rows", len(years), len(primary), len(combined))

    summaries = {str(y): describe.score_summary(df, target) for y, df in years.items()}
    summaries["combined"] = describe.score_summary(combined, target)
    score_summary = pd.DataFrame(summaries)

    residuals = pd.DataFrame({
        "country": primary["country"],
        "score": primary[target],
        "residual": mtrain.summation_residuals(primary, constant=constant, target=target),
    })
    LOG.info("Summation residual:\n%s", describe.summation_residual_summary(primary, target=target, constant=constant).to_string())

    sweep = None
    suggested = None
    sweep_cfg = cfg["split"]["sweep"]
    if run_sweep and sweep_cfg.get("run", True):
        fractions = msplit.fraction_grid(sweep_cfg["start"], sweep_cfg["stop"], sweep_cfg["step"])
        sweep = msplit.sweep_split_ratios(
            primary, fractions, seed=seed, target=target, n_jobs=int(sweep_cfg.get("n_jobs", 1)), progress=True
        )
        suggested = msplit.select_split_ratio(sweep)

    fraction = float(cfg["split"]["train_fraction"])
    LOG.info("Using fixed train fraction %.2f (sweep minimum: %s)", fraction, suggested)
    comparison = mcompare.compare_models(
        primary,
        combined,
        fraction=fraction,
        seed=seed,
        target=target,
        drop_factor=cfg["models"].get("drop_factor"),
        constant=constant,
        primary_label=str(primary_year),
    )

    return ReportOutputs(
        years=years,
        primary_year=primary_year,
        combined=combined,
        score_summary=score_summary,
        factor_summary=describe.factor_summary(primary, target=target),
        correlations=describe.correlation_matrix(primary, target=target),
        vif=describe.compute_vif(primary),
        summation_residuals=residuals,
        sweep=sweep,
        suggested_fraction=suggested,
        comparison=comparison,
    )


def write_report(out: ReportOutputs, reports_dir: Path) -> List[Path]:
    """Write all report tables under reports_dir; returns written paths."""
    reports_dir = Path(reports_dir)
    written: List[Path] = []

    def _frame(df: pd.DataFrame, name: str, index: bool = False) -> None:
        p = reports_dir / name
        mutils.save_frame(df, p, index=index)
        written.append(p)

    _frame(out.score_summary, "score_summary.csv", index=True)
    _frame(out.factor_summary, "factor_summary.csv", index=True)
    _frame(out.correlations, "correlations.csv", index=True)
    _frame(out.vif, "vif.csv")
    _frame(out.summation_residuals, "summation_residuals.csv")
    if out.sweep is not None:
        _frame(out.sweep, "split_sweep.csv")

    comp = out.comparison
    _frame(comp.rmse_table(), "model_comparison.csv")
    _frame(comp.coefficients(), "model_coefficients.csv")
    for name, run in comp.runs.items():
        _frame(run.predictions, f"predictions_{name}.csv")
        if run.model.results is not None:
            p = reports_dir / f"ols_{name}_summary.txt"
            mutils.write_text(run.model.results.summary().as_text(), p)
            written.append(p)

    eq_lines = [f"{name}: {eq}" for name, eq in comp.equations().items()]
    eq_lines.append(f"dropped factor (reduced models): {comp.dropped_factor}")
    eq_lines.append(f"lowest RMSE: {comp.best_model()}")
    p = reports_dir / "model_equations.txt"
    mutils.write_text("\n".join(eq_lines) + "\n", p)
    written.append(p)
    return written


def publish_report(staging: Path, reports_dir: Path) -> List[Path]:
    """Move every staged file into reports_dir (created if needed); returns the published paths."""
    reports_dir.mkdir(parents=True, exist_ok=True)
    published: List[Path] = []
    for f in sorted(Path(staging).iterdir()):
        dest = reports_dir / f.name
        os.replace(f, dest)
        published.append(dest)
    return published


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="run_report", description="Happiness score regression report")
    parser.add_argument("--config", type=str, default="config/report.yml", help="Path to YAML config")
    parser.add_argument("--reports-dir", type=str, default=None, help="Override outputs.reports_dir")
    parser.add_argument("--no-sweep", action="store_true", help="Skip the split-ratio sweep")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        cfg = load_config(Path(args.config))
        if args.reports_dir:
            cfg["outputs"]["reports_dir"] = args.reports_dir
        reports_dir = Path(cfg["outputs"]["reports_dir"])
        LOG.info("Report start. config=%s reports_dir=%s", args.config, reports_dir)

        out = build_report(cfg, run_sweep=not args.no_sweep)

        reports_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{reports_dir.name}-", dir=reports_dir.parent))
        try:
            written = write_report(out, staging)
            inputs = [Path(p) for p in cfg["data"]["years"].values()]
            mutils.save_config_snapshot(cfg, staging / "report_metadata.json", inputs=inputs)
            manifest = {
                "generated_at": mutils.now_iso(),
                "rmse": out.comparison.as_dict(),
                "suggested_fraction": out.suggested_fraction,
                "files": mutils.list_dir(staging),
            }
            mutils.save_json(manifest, staging / "report_manifest.json")
            published = publish_report(staging, reports_dir)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        LOG.info("Report finished: %d tables written, %d files published to %s", len(written), len(published), reports_dir)
    except Exception as e:
        LOG.exception("Report failed: %s", e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
