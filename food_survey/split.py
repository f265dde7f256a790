"""
Seeded random train/test split.

Unlike a time-ordered split, the survey has no timestamp: rows are exchangeable, so
the train subset is a seeded sample of row positions drawn without replacement.
"""

import logging

import numpy as np

from food_survey.errors import FilterExhaustionError

logger = logging.getLogger(__name__)

TRAIN_RATIO = 0.8
RANDOM_STATE = 42


def train_size(n, ratio=TRAIN_RATIO):
    """round(ratio * n), kept within [1, n - 1] so both subsets are non-empty."""
    return min(max(int(round(ratio * n)), 1), n - 1)


def split_dataset(df, ratio=TRAIN_RATIO, seed=RANDOM_STATE):
    """
    Partition df into (train, test).
    Same frame (contents and row order), ratio and seed always give the same partition.
    Both subsets keep dataset order and the original index labels.
    """
    if not 0 < ratio < 1:
        raise ValueError(f"ratio must be in (0, 1), got {ratio}")
    n = len(df)
    if n < 2:
        raise FilterExhaustionError(
            f"{n} row(s) left after filtering; need at least 2 for a train/test split",
            stage="split",
        )
    n_train = train_size(n, ratio)
    rng = np.random.default_rng(seed)
    train_pos = np.sort(rng.choice(n, size=n_train, replace=False))
    in_train = np.zeros(n, dtype=bool)
    in_train[train_pos] = True
    train = df.iloc[in_train].copy()
    test = df.iloc[~in_train].copy()
    logger.info("Split %d rows -> train %d / test %d (seed=%s)", n, len(train), len(test), seed)
    return train, test
