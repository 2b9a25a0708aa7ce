"""Shared fixtures for the maketable1 tests."""
import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def age_df():
    """Ten records in two groups; one age in group A is missing."""
    return pd.DataFrame(
        {
            "group": ["A"] * 5 + ["B"] * 5,
            "age": [20, 25, 30, np.nan, 40, 45, 50, 55, 60, 65],
            "sex": ["F", "M", "F", "F", "M", "M", "M", "F", "F", "M"],
        }
    )


@pytest.fixture
def trial_df():
    """A 2x2 design of treatment by sex without missing values."""
    return pd.DataFrame(
        {
            "treat": ["Placebo"] * 4 + ["Treated"] * 4,
            "sex": ["F", "F", "M", "M"] * 2,
            "weight": [60.0, 62.0, 80.0, 82.0, 58.0, 61.0, 79.0, 85.0],
            "smoker": [True, False, False, True, False, False, True, False],
        }
    )
