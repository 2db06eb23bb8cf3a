import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Make the package importable without installing it
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from citree import Dataset, TreeConfig  # noqa: E402


def make_linear_data(n: int = 500, seed: int = 0):
    """Response linear in A plus noise; B is pure noise."""
    rng = np.random.default_rng(seed)
    A = rng.uniform(0, 10, n)
    B = rng.uniform(0, 10, n)
    y = 2.0 * A + rng.normal(0, 1.0, n)
    return pd.DataFrame({"A": A, "B": B}), y


@pytest.fixture
def step_data():
    # y = 0 for x < 5, y = 10 for x >= 5, five records per x value
    x = np.tile(np.arange(10, dtype=float), 5)
    y = np.where(x < 5, 0.0, 10.0)
    return pd.DataFrame({"x": x}), y


@pytest.fixture
def step_config():
    return TreeConfig(max_depth=3, min_node_size=5)


@pytest.fixture
def linear_data():
    return make_linear_data()


@pytest.fixture
def linear_dataset(linear_data):
    X, y = linear_data
    return Dataset.from_frame(X, y)


@pytest.fixture
def color_data():
    # Red records respond at 10, everything else at 0
    color = np.array(["red", "green", "blue"] * 30, dtype=object)
    y = np.where(color == "red", 10.0, 0.0)
    return pd.DataFrame({"color": color}), y


@pytest.fixture
def size_data():
    size = pd.Categorical(
        ["small", "medium", "large"] * 20,
        categories=["small", "medium", "large"],
        ordered=True,
    )
    y = np.where(np.asarray(size) == "large", 10.0, 0.0)
    return pd.DataFrame({"size": size}), y


@pytest.fixture
def mixed_data():
    rng = np.random.default_rng(7)
    n = 240
    region = rng.choice(["north", "south", "east", "west"], n)
    grade = rng.choice(["low", "mid", "high"], n)
    amount = rng.uniform(0, 1, n)
    effect = {"north": 4.0, "south": 0.0, "east": 4.0, "west": 0.0}
    y = np.array([effect[r] for r in region]) + 3.0 * amount + rng.normal(0, 0.5, n)
    X = pd.DataFrame({"region": region, "grade": grade, "amount": amount})
    return X, y
