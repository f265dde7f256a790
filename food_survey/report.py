"""
Reporting for a pipeline run: descriptive tables, charts and the text/JSON report.
No analytical decisions are made here; everything shown is computed upstream or is a
plain count/share over the cleaned dataset.
"""

import json
import logging
import math

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

from food_survey.data import AGE, FEEDBACK, LATITUDE, LONGITUDE, OUTPUT  # noqa: E402
from food_survey.train import coefficient_table  # noqa: E402

logger = logging.getLogger(__name__)

sns.set_style("whitegrid")


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def _categorical_columns(df):
    return [c for c in df.columns if isinstance(df[c].dtype, pd.CategoricalDtype)]


def summary_tables(df):
    """Level counts (canonical order, zeros kept) per categorical field + numeric describe()."""
    counts = {c: df[c].value_counts(sort=False) for c in _categorical_columns(df)}
    numeric = df.select_dtypes(include="number")
    return {"counts": counts, "numeric": numeric.describe().T if not numeric.empty else pd.DataFrame()}


def feedback_crosstabs(df, outcome=FEEDBACK):
    """Share of each outcome level within every level of the other categorical fields."""
    if outcome not in df.columns:
        return {}
    tables = {}
    for c in _categorical_columns(df):
        if c in (outcome, OUTPUT, FEEDBACK):
            continue
        tables[c] = pd.crosstab(df[c], df[outcome], normalize="index", dropna=False).round(3)
    return tables


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

def _save(fig, path):
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def plot_category_counts(df, out_dir):
    cols = _categorical_columns(df)
    if not cols:
        return None
    ncols = 3
    nrows = math.ceil(len(cols) / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.5 * nrows), squeeze=False)
    for ax, c in zip(axes.flat, cols):
        vc = df[c].value_counts(sort=False)
        ax.bar([str(i) for i in vc.index], vc.values, color="steelblue")
        ax.set_title(c)
        ax.tick_params(axis="x", rotation=30)
    for ax in list(axes.flat)[len(cols):]:
        ax.set_visible(False)
    return _save(fig, out_dir / "category_counts.png")


def plot_age_distribution(df, out_dir):
    if AGE not in df.columns:
        return None
    fig, ax = plt.subplots(figsize=(7, 4))
    hue = FEEDBACK if FEEDBACK in df.columns else None
    sns.histplot(data=df, x=AGE, hue=hue, multiple="stack", discrete=True, ax=ax)
    ax.set_title("Age distribution" + (" by feedback" if hue else ""))
    return _save(fig, out_dir / "age_distribution.png")


def plot_feedback_share(df, out_dir):
    tables = feedback_crosstabs(df)
    if not tables:
        return None
    fig, axes = plt.subplots(1, len(tables), figsize=(4.5 * len(tables), 4), squeeze=False)
    for ax, (c, t) in zip(axes.flat, tables.items()):
        t.plot(kind="bar", stacked=True, ax=ax, legend=False, colormap="coolwarm")
        ax.set_title(c)
        ax.set_xlabel("")
        ax.set_ylim(0, 1)
        ax.tick_params(axis="x", rotation=30)
    axes.flat[0].legend(title=FEEDBACK, loc="lower left")
    return _save(fig, out_dir / "feedback_share.png")


def plot_locations(df, out_dir, lookups=()):
    if LATITUDE not in df.columns or LONGITUDE not in df.columns:
        return None
    fig, ax = plt.subplots(figsize=(6, 6))
    hue = FEEDBACK if FEEDBACK in df.columns else None
    sns.scatterplot(data=df, x=LONGITUDE, y=LATITUDE, hue=hue, s=20, alpha=0.7, ax=ax)
    for lk in lookups:
        p = lk.point
        ax.annotate(p.kind, (p.longitude, p.latitude), fontsize=7, xytext=(3, 3), textcoords="offset points")
    ax.set_title("Order locations")
    return _save(fig, out_dir / "locations.png")


def plot_confusion_matrix(cm, title, path):
    fig, ax = plt.subplots(figsize=(4, 3.5))
    sns.heatmap(cm.as_frame(), annot=True, fmt="d", cmap="Blues", cbar=False, ax=ax)
    ax.set_title(title)
    return _save(fig, path)


def write_charts(result, out_dir):
    """Render every chart for a run; returns the written paths."""
    df = result.dataset
    paths = [
        plot_category_counts(df, out_dir),
        plot_age_distribution(df, out_dir),
        plot_feedback_share(df, out_dir),
        plot_locations(df, out_dir, result.lookups),
    ]
    for target, outcome in result.outcomes.items():
        paths.append(
            plot_confusion_matrix(
                outcome.confusion, f"{target} (test)", out_dir / f"confusion_{target.lower()}.png"
            )
        )
    return [p for p in paths if p is not None]


# ---------------------------------------------------------------------------
# Text / JSON report
# ---------------------------------------------------------------------------

def format_metric(v):
    """4-decimal metric, or "undefined" for None/NaN."""
    return "undefined" if v is None or (isinstance(v, float) and math.isnan(v)) else f"{v:.4f}"


def summary_dict(result):
    """Plain structured values for the run (JSON-serialisable)."""
    return {
        "run_id": result.run_id,
        "n_rows": int(len(result.dataset)),
        "n_train": result.n_train,
        "n_test": result.n_test,
        "audit": [e.as_dict() for e in result.audit],
        "geo": [
            {
                "kind": lk.point.kind,
                "row": int(lk.point.row) if isinstance(lk.point.row, (int, np.integer)) else str(lk.point.row),
                "latitude": lk.point.latitude,
                "longitude": lk.point.longitude,
                "address": lk.address,
                "error": lk.error,
            }
            for lk in result.lookups
        ],
        "models": {
            target: {
                "positive_level": o.model.positive_level,
                "negative_level": o.model.negative_level,
                "iterations": o.model.n_iter,
                "deviance": o.model.deviance,
                "null_deviance": o.model.null_deviance,
                "aic": o.model.aic,
                "coefficients": coefficient_table(o.model)["estimate"].to_dict(),
                "confusion_matrix": o.confusion.as_array().tolist(),
                "metrics": o.metrics.as_dict(),
            }
            for target, o in result.outcomes.items()
        },
        "failures": dict(result.failures),
        "notices": list(result.notices),
    }


def build_report_lines(result):
    lines = []
    lines.append("=" * 60)
    lines.append("ONLINE FOOD ORDER SURVEY – ANALYSIS REPORT")
    lines.append("=" * 60)
    lines.append(f"Run: {result.run_id}")
    lines.append(f"Rows after cleaning: {len(result.dataset)}  (train {result.n_train} / test {result.n_test})")
    lines.append("")

    lines.append("1. CLEANING LOG")
    lines.append("-" * 40)
    for e in result.audit:
        lines.append(f"  {e.step:<12} {e.column:<28} {e.action} [{e.rows_affected}]")
    lines.append("")

    lines.append("2. LEVEL COUNTS")
    lines.append("-" * 40)
    for c, vc in summary_tables(result.dataset)["counts"].items():
        lines.append(f"  {c}: " + ", ".join(f"{k}={v}" for k, v in vc.items()))
    lines.append("")

    lines.append("3. COORDINATE EXTREMES")
    lines.append("-" * 40)
    if not result.lookups:
        lines.append("  (not computed)")
    for lk in result.lookups:
        p = lk.point
        where = lk.address if lk.resolved else f"unresolved ({lk.error})"
        lines.append(f"  {p.kind:<14} row {p.row}: ({p.latitude:.4f}, {p.longitude:.4f}) -> {where}")
    lines.append("")

    lines.append("4. MODELS")
    lines.append("-" * 40)
    for target, o in result.outcomes.items():
        m = o.model
        lines.append(f"  {target}: P({target} = {m.positive_level}), reference {m.negative_level}")
        lines.append(f"  Iterations: {m.n_iter}  Deviance: {m.deviance:.3f}  Null deviance: {m.null_deviance:.3f}  AIC: {m.aic:.3f}")
        lines.append(coefficient_table(m).round(4).to_string())
        lines.append("")
        lines.append("  Confusion matrix (rows=actual, cols=predicted):")
        lines.append(o.confusion.as_frame().to_string())
        lines.append(
            "  Accuracy: {}  Precision: {}  Recall: {}".format(
                format_metric(o.metrics.accuracy), format_metric(o.metrics.precision), format_metric(o.metrics.recall)
            )
        )
        lines.append("")
    for target, msg in result.failures.items():
        lines.append(f"  {target}: FAILED - {msg}")
    lines.append("")

    lines.append("5. NOTICES")
    lines.append("-" * 40)
    lines.extend(f"  - {n}" for n in result.notices)
    if not result.notices:
        lines.append("  None.")
    lines.append("")

    lines.append("6. LIMITATIONS")
    lines.append("-" * 40)
    lines.append("  - Outcome classes are reported as observed; no resampling or class weighting.")
    lines.append("    Output is dominated by successful orders, so its accuracy can be degenerate.")
    lines.append("  - Single random train/test split; no cross-validation.")
    lines.append("  - Column X is dropped without interpretation.")
    return lines


def write_report(result, run_dir, charts=True):
    """Write report.txt, summary.json, cleaned_dataset.csv, coefficient CSVs and charts."""
    run_dir.mkdir(parents=True, exist_ok=True)
    with open(run_dir / "report.txt", "w", encoding="utf-8") as f:
        f.write("\n".join(build_report_lines(result)))
    with open(run_dir / "summary.json", "w", encoding="utf-8") as f:
        json.dump(summary_dict(result), f, indent=2, default=str)
    result.dataset.to_csv(run_dir / "cleaned_dataset.csv")
    for target, o in result.outcomes.items():
        coefficient_table(o.model).to_csv(run_dir / f"coefficients_{target.lower()}.csv")
    if charts:
        write_charts(result, run_dir)
    logger.info("Report written to %s", run_dir)
    return run_dir
