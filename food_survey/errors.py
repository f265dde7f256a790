"""
Error taxonomy for the survey analysis pipeline.

Fatal: SchemaError, FilterExhaustionError (abort the run).
Per-target: ConvergenceError (the other target still runs).
Non-fatal: ExternalLookupError, MetricUndefinedWarning (collected into the report).
"""


class SurveyAnalysisError(Exception):
    """Base class; `stage` names the pipeline stage that raised."""

    def __init__(self, message, stage=None):
        self.stage = stage
        if stage:
            message = f"[{stage}] {message}"
        super().__init__(message)


class SchemaError(SurveyAnalysisError):
    """Missing input columns, or a cleaned value outside its canonical levels."""


class FilterExhaustionError(SurveyAnalysisError):
    """Too few rows left to form non-empty train and test subsets."""


class ConvergenceError(SurveyAnalysisError):
    """Logistic fit did not converge, or the design matrix is rank-deficient."""


class ExternalLookupError(SurveyAnalysisError):
    """Reverse geocoding call failed (network, auth, quota, bad payload)."""


class MetricUndefinedWarning(UserWarning):
    """Precision or recall has a zero denominator; value reported as NaN."""
