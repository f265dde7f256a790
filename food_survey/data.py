"""
Raw survey loading.
Reads the online food order survey CSV into a DataFrame with the fixed 13-column
schema. No recoding happens here; see normalize.py.
"""

from pathlib import Path
import logging
import re

import pandas as pd

from food_survey.errors import SchemaError

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATA_PATH = DATA_DIR / "onlinefoods.csv"

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Column names (as published in onlinefoods.csv)
# ---------------------------------------------------------------------------
AGE = "Age"
GENDER = "Gender"
MARITAL_STATUS = "Marital Status"
OCCUPATION = "Occupation"
MONTHLY_INCOME = "Monthly Income"
EDUCATION = "Educational Qualifications"
FAMILY_SIZE = "Family size"
LATITUDE = "latitude"
LONGITUDE = "longitude"
PIN_CODE = "Pin code"
OUTPUT = "Output"
FEEDBACK = "Feedback"
UNDOCUMENTED = "X"

NUMERIC_COLUMNS = [AGE, FAMILY_SIZE, LATITUDE, LONGITUDE, PIN_CODE]
CATEGORICAL_COLUMNS = [
    GENDER,
    MARITAL_STATUS,
    OCCUPATION,
    MONTHLY_INCOME,
    EDUCATION,
    OUTPUT,
    FEEDBACK,
]
RAW_COLUMNS = [
    AGE,
    GENDER,
    MARITAL_STATUS,
    OCCUPATION,
    MONTHLY_INCOME,
    EDUCATION,
    FAMILY_SIZE,
    LATITUDE,
    LONGITUDE,
    PIN_CODE,
    OUTPUT,
    FEEDBACK,
    UNDOCUMENTED,
]

# pandas names a blank header "Unnamed: <position>"
_UNNAMED_RE = re.compile(r"^Unnamed: \d+$")


def validate_columns(df, expected, stage="load"):
    """Raise SchemaError listing every expected column missing from df."""
    missing = [c for c in expected if c not in df.columns]
    if missing:
        raise SchemaError(f"missing expected columns: {missing}", stage=stage)


def _strip_strings(df):
    df = df.copy()
    for c in df.columns:
        if pd.api.types.is_string_dtype(df[c]):
            df[c] = df[c].str.strip()
    return df


def load_raw_dataset(path=None):
    """
    Load the raw survey CSV.
    - Trailing blank-header column is renamed to X.
    - Surrounding whitespace is stripped from string cells ("Negative " -> "Negative").
    Raises FileNotFoundError if the file is absent, SchemaError if columns are missing.
    """
    path = Path(path) if path is not None else DEFAULT_DATA_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Survey data not found: {path}")
    df = pd.read_csv(path)
    unnamed = [c for c in df.columns if _UNNAMED_RE.match(str(c))]
    if UNDOCUMENTED not in df.columns and len(unnamed) == 1:
        df = df.rename(columns={unnamed[0]: UNDOCUMENTED})
    df.columns = [str(c).strip() for c in df.columns]
    validate_columns(df, RAW_COLUMNS)
    df = _strip_strings(df[RAW_COLUMNS])
    logger.info("Loaded %d rows x %d columns from %s", df.shape[0], df.shape[1], path)
    return df
