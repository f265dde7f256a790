import dataclasses

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression

from food_survey.data import FEEDBACK, GENDER, OUTPUT
from food_survey.errors import ConvergenceError, SchemaError
from food_survey.evaluate import evaluate
from food_survey.normalize import normalize
from food_survey.split import split_dataset
from food_survey.train import (
    INTERCEPT,
    build_encoding,
    coefficient_table,
    fit,
    predict_proba,
    transform_to_matrix,
)


def test_end_to_end_ten_records(separable_frame):
    train, test = split_dataset(separable_frame, 0.8, seed=2024)
    model = fit(train, FEEDBACK)
    cm, metrics = evaluate(model, test, FEEDBACK, "Positive")
    assert cm.total == 2
    assert 0.0 <= metrics.accuracy <= 1.0


def test_slope_follows_the_trend(separable_frame):
    model = fit(separable_frame, FEEDBACK)
    assert model.feature_names == ("x",)
    assert model.coefficients[0] > 0
    assert model.negative_level == "Negative"
    assert model.positive_level == "Positive"
    p = predict_proba(model, separable_frame.drop(columns=[FEEDBACK]))
    assert np.all(np.diff(p) > 0)


def test_matches_unpenalized_maximum_likelihood(separable_frame):
    model = fit(separable_frame, FEEDBACK)
    y = (separable_frame[FEEDBACK] == "Positive").astype(int)
    ref = LogisticRegression(C=np.inf, tol=1e-10, max_iter=10000).fit(separable_frame[["x"]], y)
    assert model.intercept == pytest.approx(ref.intercept_[0], rel=1e-3, abs=1e-3)
    assert model.coefficients[0] == pytest.approx(ref.coef_[0, 0], rel=1e-3, abs=1e-3)


def test_score_equations_hold_at_the_fit(separable_frame):
    # at the MLE the residuals are orthogonal to every design column
    model = fit(separable_frame, FEEDBACK)
    X = np.c_[np.ones(10), separable_frame["x"].to_numpy()]
    y = (separable_frame[FEEDBACK] == "Positive").to_numpy(dtype=float)
    p = predict_proba(model, separable_frame)
    np.testing.assert_allclose(X.T @ (y - p), 0, atol=1e-4)


def test_model_is_read_only(separable_frame):
    model = fit(separable_frame, FEEDBACK)
    with pytest.raises(dataclasses.FrozenInstanceError):
        model.intercept = 0.0
    with pytest.raises(ValueError):
        model.coefficients[0] = 1.0


def test_collinear_features_raise(separable_frame):
    df = separable_frame.assign(x2=separable_frame["x"] * 2)
    with pytest.raises(ConvergenceError, match="rank-deficient"):
        fit(df, FEEDBACK)


def test_constant_feature_raises(separable_frame):
    df = separable_frame.assign(k=3.0)
    with pytest.raises(ConvergenceError, match="constant"):
        fit(df, FEEDBACK)


def test_single_class_target_raises(separable_frame):
    df = separable_frame.copy()
    df[FEEDBACK] = pd.Categorical(["Positive"] * 10, categories=["Negative", "Positive"])
    with pytest.raises(ConvergenceError, match="single class"):
        fit(df, FEEDBACK)


def test_iteration_cap_raises(separable_frame):
    with pytest.raises(ConvergenceError, match="did not converge"):
        fit(separable_frame, FEEDBACK, max_iter=1)


def test_target_must_be_two_level_categorical(separable_frame):
    df = separable_frame.assign(**{FEEDBACK: separable_frame[FEEDBACK].astype(str)})
    with pytest.raises(SchemaError):
        fit(df, FEEDBACK)
    with pytest.raises(SchemaError):
        fit(separable_frame, "missing")


def test_positive_level_can_be_flipped(separable_frame):
    model = fit(separable_frame, FEEDBACK, positive_level="Negative")
    assert model.positive_level == "Negative"
    assert model.coefficients[0] < 0


def test_encoding_uses_first_canonical_level_as_reference():
    df = pd.DataFrame(
        {
            "Age": [20.0, 21.0, 22.0],
            GENDER: pd.Categorical(["Male", "Female", "Male"], categories=["Female", "Male"]),
            "Channel": ["web", "app", "web"],
        }
    )
    enc = build_encoding(df)
    assert enc.feature_names == ("Age", f"{GENDER}_Male", "Channel_web")
    X = transform_to_matrix(df, enc)
    np.testing.assert_array_equal(X, [[20, 1, 1], [21, 0, 0], [22, 1, 1]])


def test_unknown_level_at_prediction_raises():
    df = pd.DataFrame(
        {
            "Age": [20.0, 21.0],
            GENDER: pd.Categorical(["Male", "Female"], categories=["Female", "Male"]),
        }
    )
    enc = build_encoding(df)
    with pytest.raises(SchemaError):
        transform_to_matrix(pd.DataFrame({"Age": [30.0], GENDER: ["Other"]}), enc)


def test_coefficient_table_layout(separable_frame):
    model = fit(separable_frame, FEEDBACK)
    table = coefficient_table(model)
    assert list(table.index) == [INTERCEPT, "x"]
    assert list(table.columns) == ["estimate", "std_error", "z_value", "p_value", "odds_ratio"]
    assert (table["std_error"] > 0).all()
    assert table["p_value"].between(0, 1).all()
    assert table.loc["x", "odds_ratio"] == pytest.approx(np.exp(model.coefficients[0]))


def test_fit_on_cleaned_survey(raw_survey):
    cleaned, _ = normalize(raw_survey)
    train, _ = split_dataset(cleaned, seed=42)
    model = fit(train, OUTPUT)
    assert model.positive_level == "Successful"
    assert f"{FEEDBACK}_Positive" in model.feature_names
    assert len(model.coefficients) == len(model.feature_names)
    assert model.deviance <= model.null_deviance
