"""
Evaluation of a fitted outcome model on held-out survey rows.

- Probabilities come from the fitted logistic model.
- Label = positive level iff probability > threshold (strict: 0.5 exactly is negative).
- 2x2 confusion matrix, rows = actual, columns = predicted, order [negative, positive].
- Accuracy, precision, recall derived from the four counts only.
"""

from dataclasses import dataclass
import logging
import math
import warnings

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix

from food_survey.errors import MetricUndefinedWarning, SchemaError
from food_survey.train import predict_proba

logger = logging.getLogger(__name__)

THRESHOLD = 0.5

# ---------------------------------------------------------------------------
# Class imbalance
# ---------------------------------------------------------------------------
# Metrics are reported raw. Successful orders dominate Output, so the Output model
# can look degenerate (accuracy near the minority share); no resampling or class
# weighting is applied to compensate.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfusionMatrix:
    tn: int
    fp: int
    fn: int
    tp: int
    negative_level: str = "Negative"
    positive_level: str = "Positive"

    def __post_init__(self):
        for name in ("tn", "fp", "fn", "tp"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @classmethod
    def from_labels(cls, actual, predicted, negative_level, positive_level):
        labels = [negative_level, positive_level]
        cm = confusion_matrix(
            np.asarray(actual, dtype=object), np.asarray(predicted, dtype=object), labels=labels
        )
        (tn, fp), (fn, tp) = cm.tolist()
        return cls(tn, fp, fn, tp, negative_level, positive_level)

    @property
    def total(self):
        return self.tn + self.fp + self.fn + self.tp

    def as_array(self):
        return np.array([[self.tn, self.fp], [self.fn, self.tp]])

    def as_frame(self):
        labels = [self.negative_level, self.positive_level]
        return pd.DataFrame(
            self.as_array(),
            index=pd.Index(labels, name="actual"),
            columns=pd.Index(labels, name="predicted"),
        )


@dataclass(frozen=True)
class BinaryMetrics:
    accuracy: float
    precision: float
    recall: float

    def as_dict(self):
        # NaN is not valid JSON; undefined metrics are reported as None
        return {
            k: (None if math.isnan(v) else v)
            for k, v in (("accuracy", self.accuracy), ("precision", self.precision), ("recall", self.recall))
        }


def _ratio(num, den, name):
    if den == 0:
        warnings.warn(f"{name} is undefined (zero denominator)", MetricUndefinedWarning, stacklevel=3)
        return float("nan")
    return num / den


def compute_metrics(cm):
    """accuracy=(TP+TN)/total, precision=TP/(TP+FP), recall=TP/(TP+FN); NaN when undefined."""
    return BinaryMetrics(
        accuracy=_ratio(cm.tp + cm.tn, cm.total, "accuracy"),
        precision=_ratio(cm.tp, cm.tp + cm.fp, "precision"),
        recall=_ratio(cm.tp, cm.tp + cm.fn, "recall"),
    )


def classify(probabilities, negative_level, positive_level, threshold=THRESHOLD):
    """Map probabilities to labels; only values strictly above threshold are positive."""
    p = np.asarray(probabilities, dtype=float)
    return np.where(p > threshold, positive_level, negative_level).astype(object)


def evaluate(model, test, target_field, positive_level, threshold=THRESHOLD):
    """
    Apply model to test and score it against target_field.
    Returns (ConfusionMatrix, BinaryMetrics).
    """
    if target_field != model.target:
        raise ValueError(f"model was fitted for {model.target!r}, not {target_field!r}")
    if positive_level != model.positive_level:
        raise ValueError(
            f"model's positive level is {model.positive_level!r}, not {positive_level!r}"
        )
    if target_field not in test.columns:
        raise SchemaError(f"target column {target_field!r} not in test data", stage="evaluate")
    negative_level = model.negative_level
    actual = test[target_field].astype(str).to_numpy(dtype=object)
    unknown = sorted(set(actual) - {negative_level, positive_level})
    if unknown:
        raise SchemaError(f"{target_field!r} has unexpected test labels {unknown}", stage="evaluate")

    features = test.drop(columns=[target_field])
    predicted = classify(predict_proba(model, features), negative_level, positive_level, threshold)
    cm = ConfusionMatrix.from_labels(actual, predicted, negative_level, positive_level)
    metrics = compute_metrics(cm)
    logger.info(
        "%s on %d test rows: accuracy=%.4f precision=%.4f recall=%.4f",
        target_field, cm.total, metrics.accuracy, metrics.precision, metrics.recall,
    )
    return cm, metrics
