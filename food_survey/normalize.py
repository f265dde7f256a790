"""
Categorical normalization of the raw survey.

Steps (fixed order, each returns a new DataFrame):
  1. drop the undocumented X column
  2. drop rows whose Marital Status is the opt-out sentinel
  3. collapse raw categories into canonical labels (unmentioned values pass through)
  4. convert categorical fields to pandas Categorical with canonical level order
  5. check that nothing is missing (no imputation happens here)

Every step appends AuditEntry records so the cleaning is reproducible from the log.
"""

from dataclasses import dataclass, field
import logging
from types import MappingProxyType

import pandas as pd

from food_survey.data import (
    EDUCATION,
    FEEDBACK,
    GENDER,
    MARITAL_STATUS,
    MONTHLY_INCOME,
    OCCUPATION,
    OUTPUT,
    UNDOCUMENTED,
)
from food_survey.errors import SchemaError

logger = logging.getLogger(__name__)

OPT_OUT = "Prefer not to say"
MAX_OFFENDING_ROWS = 10


@dataclass(frozen=True)
class CategoryMap:
    """
    Collapsing rule and canonical levels for one field.
    `collapse` maps raw value -> canonical label. Values absent from `collapse`
    are kept as they are: that fallback is how an unseen raw value survives as
    its own category (and then fails loudly in the levels check).
    """

    column: str
    collapse: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    levels: tuple = ()

    def recode(self, value):
        if value in self.collapse:
            return self.collapse[value]
        return value


def _rule(groups):
    """Expand {canonical: (raw, ...)} into a read-only raw -> canonical mapping."""
    return MappingProxyType({raw: canonical for canonical, raws in groups.items() for raw in raws})


CATEGORY_MAPS = {
    MARITAL_STATUS: CategoryMap(MARITAL_STATUS, levels=("Single", "Married")),
    OCCUPATION: CategoryMap(
        OCCUPATION,
        # "Self Employeed" is the spelling used in the published file
        collapse=_rule({"Employed": ("Employee", "Self Employed", "Self Employeed")}),
        levels=("Student", "House wife", "Employed"),
    ),
    MONTHLY_INCOME: CategoryMap(
        MONTHLY_INCOME,
        collapse=_rule({
            "Average Monthly Income": ("10001 to 25000", "25001 to 50000"),
            "High Monthly Income": ("More than 50000",),
            "Low/No Monthly Income": ("No Income", "Below Rs.10000"),
        }),
        levels=("Low/No Monthly Income", "Average Monthly Income", "High Monthly Income"),
    ),
    EDUCATION: CategoryMap(
        EDUCATION,
        collapse=_rule({
            "Higher Education": ("Post Graduate", "Ph.D"),
            "Lower/No Education": ("School", "Uneducated"),
        }),
        levels=("Lower/No Education", "Graduate", "Higher Education"),
    ),
    OUTPUT: CategoryMap(
        OUTPUT,
        collapse=_rule({"Unsuccessful": ("No",), "Successful": ("Yes",)}),
        levels=("Unsuccessful", "Successful"),
    ),
    GENDER: CategoryMap(GENDER, levels=("Female", "Male")),
    FEEDBACK: CategoryMap(FEEDBACK, levels=("Negative", "Positive")),
}

COLLAPSED_FIELDS = [OCCUPATION, MONTHLY_INCOME, EDUCATION, OUTPUT]


@dataclass(frozen=True)
class AuditEntry:
    step: str
    column: str
    action: str
    rows_affected: int = 0

    def as_dict(self):
        return {
            "step": self.step,
            "column": self.column,
            "action": self.action,
            "rows_affected": self.rows_affected,
        }


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def drop_undocumented_column(df):
    """Step 1: drop X. Returns (df, audit entries)."""
    if UNDOCUMENTED not in df.columns:
        return df.copy(), [AuditEntry("drop_column", UNDOCUMENTED, "absent, nothing dropped")]
    if df.shape[1] <= 1:
        raise SchemaError(
            f"dropping {UNDOCUMENTED!r} would leave no usable column", stage="normalize"
        )
    out = df.drop(columns=[UNDOCUMENTED])
    return out, [AuditEntry("drop_column", UNDOCUMENTED, "column dropped", len(df))]


def filter_opt_out(df, column=MARITAL_STATUS, sentinel=OPT_OUT):
    """Step 2: exclude rows carrying the opt-out sentinel. Index labels are kept."""
    if column not in df.columns:
        raise SchemaError(f"missing column {column!r}", stage="normalize")
    mask = df[column].astype(object) == sentinel
    out = df.loc[~mask].copy()
    n = int(mask.sum())
    if n:
        logger.info("Filtered %d rows with %s == %r", n, column, sentinel)
    return out, [AuditEntry("filter_rows", column, f"removed rows equal to {sentinel!r}", n)]


def collapse_categories(df, maps=None, fields=None):
    """Step 3: recode raw values through each field's collapse rule."""
    maps = CATEGORY_MAPS if maps is None else maps
    fields = COLLAPSED_FIELDS if fields is None else fields
    out = df.copy()
    audit = []
    for name in fields:
        if name not in out.columns:
            raise SchemaError(f"missing column {name!r}", stage="normalize")
        rule = maps[name]
        before = out[name].astype(object)
        after = before.map(rule.recode)
        changed = int((before != after).sum())
        out[name] = after
        audit.append(AuditEntry("collapse", name, "recoded raw values to canonical labels", changed))
    return out, audit


def apply_canonical_levels(df, maps=None):
    """
    Step 4: set canonical level order for every mapped field present in df.
    Raises SchemaError if any value is outside its declared levels.
    """
    maps = CATEGORY_MAPS if maps is None else maps
    out = df.copy()
    audit = []
    for name, rule in maps.items():
        if name not in out.columns:
            continue
        values = out[name].astype(object)
        bad = ~values.isin(rule.levels)
        if bad.any():
            offending = sorted({str(v) for v in values[bad]})
            rows = values.index[bad][:MAX_OFFENDING_ROWS].tolist()
            raise SchemaError(
                f"{name!r} has values outside levels {list(rule.levels)}: {offending} (rows {rows})",
                stage="normalize",
            )
        out[name] = pd.Categorical(values, categories=list(rule.levels), ordered=False)
        audit.append(AuditEntry("levels", name, "canonical levels: " + ", ".join(rule.levels), len(out)))
    return out, audit


def check_complete(df):
    """Step 5: the source is asserted complete, anything missing is a schema problem."""
    missing = df.isna().sum()
    missing = missing[missing > 0]
    if len(missing):
        raise SchemaError(f"missing values after cleaning: {missing.to_dict()}", stage="normalize")
    return df


def normalize(df, maps=None):
    """
    Run all normalization steps on a raw survey frame.
    Returns: (cleaned DataFrame, list[AuditEntry]). Re-running on the result is a no-op.
    """
    audit = []
    out, entries = drop_undocumented_column(df)
    audit.extend(entries)
    out, entries = filter_opt_out(out)
    audit.extend(entries)
    out, entries = collapse_categories(out, maps=maps)
    audit.extend(entries)
    out, entries = apply_canonical_levels(out, maps=maps)
    audit.extend(entries)
    check_complete(out)
    logger.info("Normalized survey: %d rows kept of %d", len(out), len(df))
    return out, audit
