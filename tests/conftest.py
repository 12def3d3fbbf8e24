"""Pytest configuration for repository-relative imports and shared data."""

import os
import sys

import matplotlib
import numpy as np
import pandas as pd
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

matplotlib.use("Agg")


def simulate_scores(
    n_per_group=200,
    effects=(0.0, 5.0, 10.0),
    intercept=20.0,
    slope=0.8,
    sigma=8.0,
    lower=0.0,
    upper=80.0,
    seed=12345,
):
    """Latent ``intercept + effect + slope * pre + noise`` clipped to the bounds."""
    rng = np.random.default_rng(seed)
    labels = [chr(ord("A") + i) for i in range(len(effects))]
    frames = []
    for label, effect in zip(labels, effects):
        pre = rng.normal(50.0, 10.0, size=n_per_group)
        latent = intercept + effect + slope * pre + rng.normal(0.0, sigma, n_per_group)
        frames.append(
            pd.DataFrame(
                {
                    "group": label,
                    "pre_score": pre,
                    "post_score": np.clip(latent, lower, upper),
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


def scores_with_ceiling_counts(counts, n=100, upper=100.0, seed=7):
    """Groups of ``n`` subjects where ``counts[g]`` post-scores sit at ``upper``."""
    rng = np.random.default_rng(seed)
    frames = []
    for label, k in counts.items():
        post = np.concatenate(
            [np.full(k, upper), rng.uniform(upper - 40.0, upper - 5.0, size=n - k)]
        )
        frames.append(
            pd.DataFrame(
                {
                    "group": label,
                    "pre_score": rng.uniform(30.0, 70.0, size=n),
                    "post_score": post,
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def simulated_frame():
    return simulate_scores()
