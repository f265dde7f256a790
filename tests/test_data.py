import pytest

from food_survey.data import FEEDBACK, RAW_COLUMNS, UNDOCUMENTED, load_raw_dataset, validate_columns
from food_survey.errors import SchemaError


def _write_published_layout(df, path):
    """Write df the way onlinefoods.csv ships: trailing column with a blank header."""
    out = df.rename(columns={UNDOCUMENTED: ""})
    out.to_csv(path, index=False)
    return path


def test_load_renames_blank_header_to_x(small_raw_survey, tmp_path):
    path = _write_published_layout(small_raw_survey, tmp_path / "onlinefoods.csv")
    df = load_raw_dataset(path)
    assert list(df.columns) == RAW_COLUMNS
    assert len(df) == len(small_raw_survey)


def test_load_strips_whitespace_in_values(small_raw_survey, tmp_path):
    raw = small_raw_survey.copy()
    raw[FEEDBACK] = raw[FEEDBACK].str.replace("Negative", "Negative ")
    path = _write_published_layout(raw, tmp_path / "onlinefoods.csv")
    df = load_raw_dataset(path)
    assert set(df[FEEDBACK]) == {"Positive", "Negative"}


def test_load_accepts_explicit_x_header(small_raw_survey, tmp_path):
    path = tmp_path / "survey.csv"
    small_raw_survey.to_csv(path, index=False)
    assert UNDOCUMENTED in load_raw_dataset(path).columns


def test_load_missing_columns_raises_schema_error(small_raw_survey, tmp_path):
    path = tmp_path / "survey.csv"
    small_raw_survey.drop(columns=["Monthly Income", "Pin code"]).to_csv(path, index=False)
    with pytest.raises(SchemaError, match="Monthly Income"):
        load_raw_dataset(path)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_raw_dataset(tmp_path / "absent.csv")


def test_validate_columns_reports_stage(small_raw_survey):
    with pytest.raises(SchemaError) as exc:
        validate_columns(small_raw_survey, RAW_COLUMNS + ["Delivery time"])
    assert exc.value.stage == "load"
    assert "Delivery time" in str(exc.value)
