import math

import numpy as np
import pandas as pd
import pytest

from happiness.data.load import FACTORS
from happiness.errors import DegenerateFitError, SchemaError
from happiness.model import train
from happiness.model.split import partition

from conftest import LINEAR_COEFS


def _row(**values):
    return pd.DataFrame([values])


def test_summation_prediction_concrete_row():
    row = _row(
        score=7.0,
        gdp_per_capita=1.34,
        social_support=1.59,
        life_expectancy=0.99,
        freedom=0.60,
        generosity=0.15,
        corruption=0.39,
    )
    pred = train.predict(train.summation_model(), row)
    assert pred.iloc[0] == pytest.approx(6.91)


def test_summation_residual_matches_definition(survey_2019):
    resid = train.summation_residuals(survey_2019)
    expected = survey_2019["score"] - survey_2019[FACTORS].sum(axis=1) - 1.85
    np.testing.assert_allclose(resid.to_numpy(), expected.to_numpy(), rtol=0, atol=1e-12)


def test_summation_run_is_in_sample(survey_2019):
    run = train.run_summation(survey_2019)
    assert run.n_train == 0
    assert run.n_test == len(survey_2019)
    assert run.model.is_summation
    np.testing.assert_allclose(
        run.predictions["residual"].to_numpy(),
        train.summation_residuals(survey_2019).to_numpy(),
        atol=1e-12,
    )
    assert "country" in run.predictions.columns


def test_rmse_basic_values():
    assert train.rmse([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == 0.0
    assert train.rmse([1.0, 2.0], [2.0, 4.0]) == pytest.approx(math.sqrt(2.5))
    assert train.rmse([0.0], [-3.0]) == pytest.approx(3.0)


def test_rmse_non_negative_and_zero_only_when_exact():
    rng = np.random.RandomState(0)
    a = rng.normal(size=50)
    p = a.copy()
    p[10] += 1e-6
    assert train.rmse(a, p) > 0.0
    assert train.rmse(a, a) == 0.0


def test_rmse_rejects_empty_and_mismatch():
    with pytest.raises(ValueError):
        train.rmse([], [])
    with pytest.raises(ValueError):
        train.rmse([1.0, 2.0], [1.0])


def test_ols_recovers_linear_coefficients(linear_survey):
    part = partition(linear_survey, 0.7, seed=1)
    tr, te = part.split(linear_survey)
    run = train.run_ols(tr, te, FACTORS, model_name="exact")
    for term, value in LINEAR_COEFS.items():
        assert run.model.coefficients[term] == pytest.approx(value, abs=1e-8)
    assert run.rmse == pytest.approx(0.0, abs=1e-8)
    assert run.n_train == part.n_train
    assert run.n_test == part.n_test


def test_fit_uses_training_rows_only(linear_survey):
    tr = linear_survey.iloc[:50]
    model = train.fit_ols(tr, FACTORS)
    assert model.n_obs == 50
    assert list(model.coefficients.index) == ["const"] + FACTORS


def test_fit_too_few_rows_raises(linear_survey):
    with pytest.raises(DegenerateFitError, match="Not enough"):
        train.fit_ols(linear_survey.iloc[:6], FACTORS)


def test_fit_exactly_enough_rows(linear_survey):
    model = train.fit_ols(linear_survey.iloc[:7], FACTORS)
    assert model.n_obs == 7


def test_fit_collinear_predictors_raises(linear_survey):
    df = linear_survey.copy()
    df["social_support"] = 2.0 * df["gdp_per_capita"]
    with pytest.raises(DegenerateFitError, match="rank deficient"):
        train.fit_ols(df, FACTORS)


def test_fit_drops_rows_with_missing_values(linear_survey):
    df = linear_survey.copy()
    df.loc[[0, 1, 2], "freedom"] = np.nan
    model = train.fit_ols(df, FACTORS)
    assert model.n_obs == len(df) - 3


def test_scoring_drops_test_rows_with_missing_values(linear_survey):
    df = linear_survey.copy()
    tr, te = df.iloc[:80], df.iloc[80:].copy()
    te.loc[te.index[::10], "generosity"] = np.nan
    missing = int(te["generosity"].isna().sum())
    run = train.run_ols(tr, te, FACTORS)
    assert run.n_test == len(te) - missing
    assert len(run.predictions) == run.n_test
    assert not run.predictions["predicted"].isna().any()
    assert math.isfinite(run.rmse)
    assert run.rmse == pytest.approx(0.0, abs=1e-8)


def test_summation_residual_is_nan_when_factor_missing(survey_2019):
    df = survey_2019.copy()
    df.loc[0, "freedom"] = np.nan
    resid = train.summation_residuals(df)
    assert np.isnan(resid.iloc[0])
    expected = df["score"] - df[FACTORS].sum(axis=1) - 1.85
    np.testing.assert_allclose(resid.iloc[1:].to_numpy(), expected.iloc[1:].to_numpy(), atol=1e-12)

    run = train.run_summation(df)
    assert 0 not in run.predictions.index
    assert run.n_test == len(df) - 1
    np.testing.assert_allclose(
        run.predictions["residual"].to_numpy(),
        resid.dropna().to_numpy(),
        atol=1e-12,
    )


def test_predict_missing_factor_raises(linear_survey):
    model = train.fit_ols(linear_survey, FACTORS)
    with pytest.raises(SchemaError, match="generosity"):
        train.predict(model, linear_survey.drop(columns=["generosity"]))


def test_fit_missing_factor_raises(linear_survey):
    with pytest.raises(SchemaError):
        train.fit_ols(linear_survey.drop(columns=["freedom"]), FACTORS)


def test_equation_text():
    model = train.summation_model(["gdp_per_capita", "freedom"])
    assert model.equation(2) == "score = 1.85 + 1.00*gdp_per_capita + 1.00*freedom"


def test_equation_negative_weight(linear_survey):
    df = linear_survey.copy()
    df["score"] = 2.0 - 0.5 * df["freedom"]
    model = train.fit_ols(df, ["freedom"])
    assert model.equation(1) == "score = 2.0 - 0.5*freedom"


def test_summarize_results_rows(linear_survey):
    ols = train.run_ols(linear_survey, linear_survey, FACTORS, model_name="m")
    rows = train.summarize_results(ols)
    assert [r["term"] for r in rows] == ["const"] + FACTORS
    assert all(r["model"] == "m" for r in rows)

    summ = train.summarize_results(train.run_summation(linear_survey))
    assert len(summ) == 7
    assert all(math.isnan(r["std_err"]) for r in summ)
