import numpy as np
import pandas as pd
import pytest

from happiness.data.describe import weakest_factor
from happiness.data.load import FACTORS, combine
from happiness.model import compare

EXPECTED_NAMES = [
    "summation",
    "glm_2019_full",
    "glm_2019_reduced",
    "glm_combined_full",
    "glm_combined_reduced",
]


@pytest.fixture
def report(survey_2018, survey_2019):
    combined = combine([survey_2018, survey_2019])
    return compare.compare_models(survey_2019, combined, fraction=0.7, seed=2025)


def test_default_configs_order_and_formulas():
    configs = compare.default_configs("generosity", primary_label="2019")
    assert [c.name for c in configs] == EXPECTED_NAMES
    assert configs[0].kind == compare.SUMMATION
    assert configs[1].factors == tuple(FACTORS)
    assert "generosity" not in configs[2].factors
    assert len(configs[4].factors) == len(FACTORS) - 1


def test_default_configs_unknown_factor():
    with pytest.raises(KeyError):
        compare.default_configs("happiness")


def test_rmse_table_has_five_rows_in_order(report):
    table = report.rmse_table()
    assert table["model"].tolist() == EXPECTED_NAMES
    assert (table["rmse"] >= 0).all()
    assert table["rmse"].tolist() == [round(report.runs[n].rmse, 3) for n in EXPECTED_NAMES]
    assert table.loc[0, "dataset"] == "2019"
    assert table.loc[3, "dataset"] == "combined"


def test_rmse_table_columns(report):
    table = report.rmse_table()
    assert list(table.columns) == ["model", "dataset", "formula", "n_factors", "n_train", "n_test", "rmse"]
    assert table.loc[0, "n_train"] == 0
    assert table["n_factors"].tolist() == [6, 6, 5, 6, 5]


def test_as_dict_matches_table(report):
    d = report.as_dict()
    assert list(d) == EXPECTED_NAMES
    assert d == dict(zip(report.rmse_table()["model"], report.rmse_table()["rmse"]))


def test_dropped_factor_defaults_to_weakest(report, survey_2019):
    assert report.dropped_factor == weakest_factor(survey_2019)
    reduced = report.runs["glm_2019_reduced"].model
    assert report.dropped_factor not in reduced.factors


def test_drop_factor_override(survey_2018, survey_2019):
    combined = combine([survey_2018, survey_2019])
    rep = compare.compare_models(survey_2019, combined, drop_factor="freedom", primary_label="2019")
    assert rep.dropped_factor == "freedom"
    assert "freedom" not in rep.runs["glm_combined_reduced"].model.factors


def test_full_and_reduced_share_test_rows(report, survey_2019):
    full = report.runs["glm_2019_full"]
    reduced = report.runs["glm_2019_reduced"]
    assert full.predictions.index.equals(reduced.predictions.index)
    assert full.predictions.index.equals(report.partitions["primary"].test_index)
    assert full.n_train == int(0.7 * len(survey_2019))

    cfull = report.runs["glm_combined_full"]
    creduced = report.runs["glm_combined_reduced"]
    assert cfull.predictions.index.equals(creduced.predictions.index)


def test_summation_scored_on_whole_primary(report, survey_2019):
    run = report.runs["summation"]
    assert run.n_train == 0
    assert run.n_test == len(survey_2019)


def test_comparison_is_reproducible(survey_2018, survey_2019):
    combined = combine([survey_2018, survey_2019])
    a = compare.compare_models(survey_2019, combined, seed=3)
    b = compare.compare_models(survey_2019, combined, seed=3)
    pd.testing.assert_frame_equal(a.rmse_table(), b.rmse_table())


def test_coefficients_table(report):
    coefs = report.coefficients()
    assert list(coefs.columns) == ["model", "term", "coef", "std_err", "pvalue", "n_obs"]
    # 7 terms for full models, 6 for reduced; the summation model is not estimated
    assert len(coefs) == 7 + 6 + 7 + 6
    assert "summation" not in set(coefs["model"])
    assert coefs["std_err"].notna().all()


def test_compare_models_with_missing_factor_values(survey_2018, survey_2019):
    primary = survey_2019.copy()
    primary.loc[primary.index[::10], "generosity"] = np.nan
    combined = combine([survey_2018, primary])
    rep = compare.compare_models(primary, combined, fraction=0.7, seed=2025, drop_factor="generosity")
    table = rep.rmse_table()
    assert len(table) == 5
    assert np.isfinite(table["rmse"]).all()
    missing = int(primary["generosity"].isna().sum())
    assert rep.runs["summation"].n_test == len(primary) - missing
    # the reduced models do not use generosity, so they score every test row
    assert rep.runs["glm_2019_reduced"].n_test == rep.partitions["primary"].n_test


def test_equations_and_best_model(report):
    eqs = report.equations()
    assert list(eqs) == EXPECTED_NAMES
    assert eqs["summation"].startswith("score = 1.850 +")
    assert report.best_model() in EXPECTED_NAMES
