#!/usr/bin/env python3
"""
Exploratory Data Analysis (EDA) for the online food order survey.
Loads data/onlinefoods.csv, prints a raw overview, runs the categorical cleaning,
and prints level counts, numeric summaries and feedback shares per demographic level.
Results are also written to notebooks/eda_results.txt.
"""

import sys
from io import StringIO
from pathlib import Path

from food_survey.data import DEFAULT_DATA_PATH, FEEDBACK, OUTPUT, load_raw_dataset
from food_survey.geo import extremal_points
from food_survey.normalize import normalize
from food_survey.report import feedback_crosstabs, summary_tables

SCRIPT_DIR = Path(__file__).resolve().parent
EDA_RESULTS_PATH = SCRIPT_DIR / "eda_results.txt"


def print_dataset_overview(df, title):
    """Shape, dtypes, missing value percentages."""
    print(f"\n{'='*60}\n{title}\n{'='*60}")
    print(f"Shape: {df.shape[0]} rows x {df.shape[1]} columns")
    print("\nColumns and dtypes:")
    print(df.dtypes.to_string())
    missing = df.isnull().sum()
    missing = missing[missing > 0]
    if len(missing) > 0:
        print("\nMissing values (%):")
        print((missing / len(df) * 100).round(2).to_string())
    else:
        print("\nMissing values: none")


def print_raw_levels(df):
    """Raw distinct values of every text column, before any recoding."""
    print("\nRaw categorical values:")
    for c in df.select_dtypes(exclude="number").columns:
        vc = df[c].value_counts(dropna=False)
        print(f"  {c}: " + ", ".join(f"{k!r}={v}" for k, v in vc.items()))


def print_clean_summary(df, audit):
    print(f"\n{'='*60}\nCLEANED DATASET\n{'='*60}")
    print("Cleaning log:")
    for e in audit:
        print(f"  {e.step:<12} {e.column:<28} {e.action} [{e.rows_affected}]")
    tables = summary_tables(df)
    print("\nLevel counts (canonical order):")
    for c, vc in tables["counts"].items():
        print(f"  {c}: " + ", ".join(f"{k}={v}" for k, v in vc.items()))
    print("\nNumeric fields:")
    print(tables["numeric"].round(3).to_string())

    for outcome in (FEEDBACK, OUTPUT):
        share = df[outcome].value_counts(normalize=True, sort=False).round(3)
        print(f"\n{outcome} share: " + ", ".join(f"{k}={v}" for k, v in share.items()))

    print("\nFeedback share within each level:")
    for c, t in feedback_crosstabs(df).items():
        print(f"\n  {c}")
        print("  " + t.to_string().replace("\n", "\n  "))

    print("\nCoordinate extremes:")
    for p in extremal_points(df):
        print(f"  {p.kind:<14} row {p.row}: ({p.latitude:.4f}, {p.longitude:.4f})")


def main(path=None):
    path = Path(path) if path else DEFAULT_DATA_PATH
    if not path.is_file():
        print(f"ERROR: Survey data not found: {path}")
        sys.exit(1)
    buf = StringIO()
    old_stdout = sys.stdout
    sys.stdout = buf
    try:
        raw = load_raw_dataset(path)
        print_dataset_overview(raw, f"RAW DATASET: {path.name}")
        print_raw_levels(raw)
        cleaned, audit = normalize(raw)
        print_clean_summary(cleaned, audit)
    finally:
        sys.stdout = old_stdout
    text = buf.getvalue()
    print(text)
    with open(EDA_RESULTS_PATH, "w", encoding="utf-8") as f:
        f.write(text)
    print(f"EDA results written to {EDA_RESULTS_PATH}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
