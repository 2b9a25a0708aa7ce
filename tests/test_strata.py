import logging

import numpy as np
import pandas as pd
import pytest

from maketable1.errors import ConfigurationError
from maketable1.model import Span
from maketable1.strata import Strata, Stratum, build_strata


class TestBuildStrata:
    """Tests for partitioning the data into strata."""

    def test_single_variable(self, age_df):
        strata = build_strata(age_df, "group")
        assert [s.name for s in strata] == ["A", "B", "Overall"]
        assert [s.n for s in strata] == [5, 5, 10]
        assert strata.strata[-1].kind == "overall"
        assert [s.name for s in strata.leaves] == ["A", "B"]
        assert not strata.nested

    def test_leaves_partition_the_data(self, age_df):
        strata = build_strata(age_df, "group")
        assert sum(s.n for s in strata.leaves) == len(age_df)

    def test_no_grouping(self, age_df):
        strata = build_strata(age_df)
        assert len(strata) == 1
        assert strata.strata[0].n == 10

    def test_no_grouping_keeps_overall(self, age_df):
        strata = build_strata(age_df, overall=False)
        assert [s.name for s in strata] == ["Overall"]

    def test_without_overall(self, age_df):
        strata = build_strata(age_df, "group", overall=False)
        assert [s.name for s in strata] == ["A", "B"]

    def test_overall_label_and_position(self, age_df):
        strata = build_strata(age_df, "group", overall="Total", overall_position="left")
        assert [s.name for s in strata] == ["Total", "A", "B"]

    def test_empty_levels_are_kept(self, age_df):
        age_df["group"] = pd.Categorical(age_df["group"], categories=["A", "B", "C"])
        strata = build_strata(age_df, "group", overall=False)
        assert [s.name for s in strata] == ["A", "B", "C"]
        assert strata.strata[-1].n == 0

    def test_missing_grouping_values(self, age_df, caplog):
        age_df.loc[0, "group"] = np.nan
        with caplog.at_level(logging.WARNING, logger="maketable1.strata"):
            strata = build_strata(age_df, "group")
        assert [s.n for s in strata] == [4, 5, 10]
        assert "not part of any stratum" in caplog.text

    def test_nested(self, trial_df):
        strata = build_strata(trial_df, ["treat", "sex"])
        assert [s.name for s in strata.leaves] == [
            ("Placebo", "F"),
            ("Placebo", "M"),
            ("Treated", "F"),
            ("Treated", "M"),
        ]
        assert [s.label for s in strata.leaves] == ["F", "M", "F", "M"]
        assert [s.n for s in strata.leaves] == [2, 2, 2, 2]
        assert strata.spans == [
            Span("Placebo", 2),
            Span("Treated", 2),
            Span("", 1, spanning=False),
        ]
        assert strata.nested

    def test_nested_without_overall(self, trial_df):
        strata = build_strata(trial_df, ["treat", "sex"], overall=None)
        assert strata.spans == [Span("Placebo", 2), Span("Treated", 2)]
        assert strata.leaves[0].group == "Placebo"

    def test_nested_levels_with_dots(self):
        df = pd.DataFrame({"outer": ["a.b", "a"], "inner": ["c", "b.c"]})
        strata = build_strata(df, ["outer", "inner"], overall=False)
        assert len(strata.leaves) == 4
        assert [s.n for s in strata.leaves] == [1, 0, 0, 1]
        assert strata.leaves[0].name == ("a", "b.c")

    def test_explicit_strata(self, age_df):
        parts = {
            "Young": age_df[age_df["age"] < 40],
            "Old": age_df[age_df["age"] >= 40],
        }
        strata = build_strata(age_df, strata=parts, groupspan=[("By age", 2)])
        assert [s.name for s in strata] == ["Young", "Old", "Overall"]
        # The overall stratum is the union of the explicit strata
        assert strata.strata[-1].n == 9
        assert strata.spans[0] == Span("By age", 2)

    def test_values(self, age_df):
        strata = build_strata(age_df, "group")
        values = strata.values("age", leaves_only=True)
        assert list(values) == ["A", "B"]
        assert values["B"].tolist() == [45, 50, 55, 60, 65]
        assert "Overall" in strata.values("age")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"by": ["group", "sex", "age"]},
            {"by": "arm"},
            {"by": "group", "overall_position": "top"},
            {"by": "group", "strata": {"A": pd.DataFrame()}},
            {"by": "group", "groupspan": [2]},
        ],
    )
    def test_invalid_configuration(self, age_df, kwargs):
        with pytest.raises(ConfigurationError):
            build_strata(age_df, **kwargs)

    def test_groupspan_width_mismatch(self, age_df):
        with pytest.raises(ConfigurationError):
            build_strata(age_df, strata={"a": age_df}, groupspan=[2])


class TestStrata:
    def test_unique_names(self, age_df):
        with pytest.raises(ConfigurationError):
            Strata([Stratum("a", "a", age_df), Stratum("a", "a", age_df)])
