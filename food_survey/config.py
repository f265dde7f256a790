"""
Run configuration.

Precedence: defaults < JSON config file < environment < CLI flags.
Environment: FOOD_SURVEY_DATA, FOOD_SURVEY_OUTPUT_DIR, GOOGLE_MAPS_API_KEY
(a .env file in the working directory is loaded first).
"""

from pathlib import Path
import json
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from food_survey.data import DEFAULT_DATA_PATH, FEEDBACK, OUTPUT, PROJECT_ROOT

REPORTS_DIR = PROJECT_ROOT / "reports"

ENV_DATA_PATH = "FOOD_SURVEY_DATA"
ENV_OUTPUT_DIR = "FOOD_SURVEY_OUTPUT_DIR"
ENV_API_KEY = "GOOGLE_MAPS_API_KEY"

# target field -> positive level
DEFAULT_TARGETS = {FEEDBACK: "Positive", OUTPUT: "Successful"}


class PipelineConfig(BaseModel):
    data_path: Path = Field(DEFAULT_DATA_PATH, description="Raw survey CSV")
    output_dir: Path = Field(REPORTS_DIR, description="Run reports are written to output_dir/<run_id>")
    seed: int = Field(42, description="Split seed")
    train_ratio: float = Field(0.8, gt=0, lt=1)
    threshold: float = Field(0.5, ge=0, le=1)
    max_iter: int = Field(25, ge=1, le=1000)
    tol: float = Field(1e-8, gt=0)
    targets: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TARGETS))
    geocode: bool = True
    geocode_timeout: float = Field(10.0, gt=0, le=120)
    api_key: Optional[str] = Field(None, repr=False)
    charts: bool = True

    @field_validator("targets")
    @classmethod
    def non_empty_targets(cls, v):
        if not v:
            raise ValueError("at least one target is required")
        return v


def load_config(config_path=None, **overrides):
    """
    Build a PipelineConfig from an optional JSON file, the environment and
    keyword overrides (None values are ignored).
    """
    load_dotenv()
    values = {}
    if config_path is not None:
        with open(config_path, "r", encoding="utf-8") as f:
            values.update(json.load(f))
    if os.environ.get(ENV_DATA_PATH):
        values["data_path"] = os.environ[ENV_DATA_PATH]
    if os.environ.get(ENV_OUTPUT_DIR):
        values["output_dir"] = os.environ[ENV_OUTPUT_DIR]
    if os.environ.get(ENV_API_KEY):
        values["api_key"] = os.environ[ENV_API_KEY]
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PipelineConfig(**values)
