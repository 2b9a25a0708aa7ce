import numpy as np
import pandas as pd
import pytest

from maketable1.errors import ConfigurationError
from maketable1.stats import (
    apply_rounding,
    as_categorical,
    category_levels,
    compute_stats,
    round_pad,
    signif_pad,
    summarize_categorical,
    summarize_continuous,
    summarize_missing,
)


class TestSignifPad:
    """Tests for rounding to significant digits."""

    def test_pads_trailing_zeros(self):
        assert signif_pad(12.3, 4) == "12.30"

    def test_small_numbers(self):
        assert signif_pad(0.0012345, 3) == "0.00123"

    def test_integer_digits_kept_by_default(self):
        assert signif_pad(12345.6, 3) == "12346"

    def test_round_integers(self):
        assert signif_pad(12345.6, 3, round_integers=True) == "12300"

    def test_carry_keeps_digit_count(self):
        assert signif_pad(9.996, 3) == "10.0"

    def test_halves_round_up(self):
        assert signif_pad(0.125, 2) == "0.13"
        assert signif_pad(2.5, 1) == "3"

    def test_zero(self):
        assert signif_pad(0, 3) == "0.00"

    def test_missing(self):
        assert signif_pad(np.nan) == "NA"
        assert signif_pad(None, na_string="-") == "-"

    def test_very_large_values(self):
        assert signif_pad(1e30, 3) == "1" + "0" * 30
        assert signif_pad(1e28, 3) == "1" + "0" * 28
        assert signif_pad(1e30, 3, round_integers=True) == "1" + "0" * 30

    def test_very_small_values(self):
        assert signif_pad(1.5e-30, 2) == "0." + "0" * 29 + "15"


class TestRoundPad:
    def test_fixed_decimals(self):
        assert round_pad(100 / 3, 1) == "33.3"
        assert round_pad(0.05, 1) == "0.1"
        assert round_pad(50, 2) == "50.00"

    def test_very_large_values(self):
        assert round_pad(1e30, 1) == "1" + "0" * 30 + ".0"


class TestSummarizeContinuous:
    """Tests for the continuous statistics battery."""

    def test_basic_statistics(self):
        res = summarize_continuous([1, 2, 3, 4, None])
        assert res["N"] == 4
        assert res["NMISS"] == 1
        assert res["SUM"] == pytest.approx(10)
        assert res["MEAN"] == pytest.approx(2.5)
        assert res["SD"] == pytest.approx(np.sqrt(5 / 3))
        assert res["MEDIAN"] == pytest.approx(2.5)
        assert res["Q1"] == pytest.approx(1.75)
        assert res["Q3"] == pytest.approx(3.25)
        assert res["IQR"] == pytest.approx(1.5)
        assert res["MIN"] == 1
        assert res["MAX"] == 4

    def test_geometric_statistics(self):
        res = summarize_continuous([1, 10, 100])
        assert res["GMEAN"] == pytest.approx(10)
        assert res["GSD"] == pytest.approx(10)

    def test_single_value_has_no_sd(self):
        res = summarize_continuous([5.0])
        assert res["N"] == 1
        assert np.isnan(res["SD"])
        assert np.isnan(res["CV"])

    def test_all_missing(self):
        res = summarize_continuous([np.nan, np.nan])
        assert res["N"] == 0
        assert res["NMISS"] == 2
        assert np.isnan(res["MEAN"])
        assert np.isnan(res["MEDIAN"])


class TestSummarizeCategorical:
    """Tests for frequencies and percentages."""

    def test_percentages_add_up(self):
        res = summarize_categorical(pd.Series(["a", "b", "a", None]))
        assert list(res) == ["a", "b", "Missing"]
        assert res["a"]["FREQ"] == 2
        assert res["a"]["PCT"] + res["b"]["PCT"] == pytest.approx(100)
        assert res["Missing"]["FREQ"] == 1
        assert res["Missing"]["PCT"] == pytest.approx(25)

    def test_declared_levels_are_kept(self):
        x = pd.Series(pd.Categorical(["x", "x"], categories=["x", "y"]))
        res = summarize_categorical(x)
        assert list(res) == ["x", "y"]
        assert res["y"]["FREQ"] == 0

    def test_include_missing_explicitly(self):
        res = summarize_categorical(pd.Series(["a", "b"]), include_missing=True)
        assert res["Missing"]["FREQ"] == 0
        res = summarize_categorical(pd.Series(["a", None]), include_missing=False)
        assert "Missing" not in res

    def test_logicals_become_yes_no(self):
        x = pd.Series([True, False, True])
        assert category_levels(x) == ["Yes", "No"]
        res = summarize_categorical(x)
        assert res["Yes"]["FREQ"] == 2
        assert list(as_categorical(x)) == ["Yes", "No", "Yes"]

    def test_level_named_missing(self):
        res = summarize_categorical(pd.Series(["Missing", "Missing", "ok"]))
        assert list(res) == ["Missing", "ok"]
        assert res["Missing"]["FREQ"] == 2
        assert apply_rounding(res)["ok"]["T1"] == "2 (66.7%)"

    def test_level_named_missing_clashes_with_missing_row(self):
        with pytest.raises(ConfigurationError, match="clashes"):
            summarize_categorical(pd.Series(["Missing", "Missing", "ok", None]))

    def test_empty_stratum(self):
        res = summarize_categorical(pd.Series([], dtype=object), levels=["a", "b"])
        assert res["a"]["FREQ"] == 0
        assert np.isnan(res["a"]["PCT"])


class TestComputeStats:
    def test_dispatch_on_kind(self):
        assert compute_stats([1.0, 2.0], "continuous")["N"] == 2
        assert compute_stats(["a"], "categorical")["a"]["FREQ"] == 1

    def test_unknown_kind(self):
        with pytest.raises(AssertionError):
            compute_stats([1], "ordinal")

    def test_summarize_missing(self):
        res = summarize_missing([1.0, np.nan, 3.0, np.nan])
        assert res["FREQ"] == 2
        assert res["PCT"] == pytest.approx(50)


class TestApplyRounding:
    """Tests for formatting raw statistics."""

    def test_continuous(self):
        res = apply_rounding(summarize_continuous([1.0, 2.0, 3.0, 4.0]))
        assert res["N"] == "4"
        assert res["MEAN"] == "2.50"
        assert res["SD"] == "1.29"
        assert res["MIN"] == "1.00"

    def test_order_statistics_unrounded(self):
        res = apply_rounding(
            summarize_continuous([1.0, 2.0, 3.0, 4.0]), round_median_min_max=False
        )
        assert res["MEDIAN"] == "2.5"
        assert res["MIN"] == "1"
        assert res["MEAN"] == "2.50"

    def test_undefined_statistics(self):
        res = apply_rounding(summarize_continuous([5.0]), na_string="-")
        assert res["SD"] == "-"

    def test_categorical_shortcuts(self):
        res = apply_rounding(summarize_categorical(pd.Series(["a", "b", "a"])))
        assert res["a"]["FREQ"] == "2"
        assert res["a"]["PCT"] == "66.7"
        assert res["b"]["T1"] == "2 (66.7%)"
        assert res["a"]["T2"] == "1 (33.3%)"

    def test_shortcuts_skip_missing_row(self):
        res = apply_rounding(summarize_categorical(pd.Series(["a", None])))
        assert res["a"]["T1"] == "1 (100.0%)"
        assert "T2" not in res["a"]
        assert res["Missing"]["T1"] == "1 (100.0%)"

    def test_digits_pct(self):
        res = apply_rounding(summarize_categorical(pd.Series(["a", "b", "a"])), digits_pct=0)
        assert res["a"]["PCT"] == "67"
