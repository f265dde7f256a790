"""Shared synthetic survey frames."""

import numpy as np
import pandas as pd
import pytest

from food_survey.data import (
    AGE,
    EDUCATION,
    FAMILY_SIZE,
    FEEDBACK,
    GENDER,
    LATITUDE,
    LONGITUDE,
    MARITAL_STATUS,
    MONTHLY_INCOME,
    OCCUPATION,
    OUTPUT,
    PIN_CODE,
    RAW_COLUMNS,
    UNDOCUMENTED,
)


def make_raw_survey(n=200, seed=0, opt_out_share=0.05):
    """Raw-schema survey with every published raw category represented."""
    rng = np.random.default_rng(seed)
    age = rng.integers(18, 34, n)
    marital = rng.choice(["Single", "Married"], n, p=[0.6, 0.4]).astype(object)
    marital[rng.random(n) < opt_out_share] = "Prefer not to say"
    income = rng.choice(
        ["No Income", "Below Rs.10000", "10001 to 25000", "25001 to 50000", "More than 50000"], n
    )
    logit = 1.2 + 0.08 * (age - 25) + rng.normal(0, 1, n)
    feedback = np.where(rng.random(n) < 1 / (1 + np.exp(-logit)), "Positive", "Negative")
    output = np.where(rng.random(n) < 0.75, "Yes", "No")
    df = pd.DataFrame(
        {
            AGE: age,
            GENDER: rng.choice(["Male", "Female"], n),
            MARITAL_STATUS: marital,
            OCCUPATION: rng.choice(["Student", "Employee", "Self Employeed", "House wife"], n),
            MONTHLY_INCOME: income,
            EDUCATION: rng.choice(["Graduate", "Post Graduate", "Ph.D", "School", "Uneducated"], n),
            FAMILY_SIZE: rng.integers(1, 7, n),
            LATITUDE: np.round(rng.uniform(12.86, 13.10, n), 4),
            LONGITUDE: np.round(rng.uniform(77.48, 77.75, n), 4),
            PIN_CODE: rng.integers(560001, 560110, n),
            OUTPUT: output,
            FEEDBACK: feedback,
            UNDOCUMENTED: rng.choice(["Yes", "No"], n),
        }
    )
    return df[RAW_COLUMNS]


@pytest.fixture
def raw_survey():
    return make_raw_survey()


@pytest.fixture
def small_raw_survey():
    """Eight hand-written rows covering each collapse rule and one opt-out row."""
    return pd.DataFrame(
        {
            AGE: [20, 24, 22, 27, 30, 23, 25, 32],
            GENDER: ["Female", "Male", "Male", "Female", "Male", "Female", "Male", "Female"],
            MARITAL_STATUS: [
                "Single", "Single", "Prefer not to say", "Married",
                "Married", "Single", "Single", "Married",
            ],
            OCCUPATION: [
                "Student", "Employee", "Student", "Self Employed",
                "Self Employeed", "House wife", "Student", "Employee",
            ],
            MONTHLY_INCOME: [
                "No Income", "10001 to 25000", "No Income", "25001 to 50000",
                "More than 50000", "Below Rs.10000", "No Income", "More than 50000",
            ],
            EDUCATION: [
                "Graduate", "Post Graduate", "School", "Ph.D",
                "Graduate", "Uneducated", "Graduate", "Post Graduate",
            ],
            FAMILY_SIZE: [4, 3, 5, 2, 6, 3, 4, 2],
            LATITUDE: [12.97, 12.98, 12.95, 13.02, 12.87, 13.02, 12.99, 12.93],
            LONGITUDE: [77.59, 77.57, 77.60, 77.73, 77.51, 77.49, 77.62, 77.49],
            PIN_CODE: [560001, 560009, 560017, 560103, 560070, 560010, 560011, 560015],
            OUTPUT: ["Yes", "Yes", "No", "Yes", "No", "Yes", "Yes", "No"],
            FEEDBACK: [
                "Positive", "Positive", "Negative", "Positive",
                "Negative", "Positive", "Positive", "Negative",
            ],
            UNDOCUMENTED: ["Yes", "Yes", "No", "Yes", "No", "Yes", "Yes", "No"],
        }
    )[RAW_COLUMNS]


@pytest.fixture
def separable_frame():
    """
    Ten rows where Feedback rises with x, with three disjoint inversions
    (3<4, 5<6, 7<8) so any 8-row subset still overlaps and the MLE is finite.
    """
    labels = [
        "Negative", "Negative", "Positive", "Negative", "Positive",
        "Negative", "Positive", "Negative", "Positive", "Positive",
    ]
    return pd.DataFrame(
        {
            "x": np.arange(1, 11, dtype=float),
            FEEDBACK: pd.Categorical(labels, categories=["Negative", "Positive"]),
        }
    )
