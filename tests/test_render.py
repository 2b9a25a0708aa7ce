import numpy as np
import pandas as pd
import pytest

from maketable1.errors import ConfigurationError
from maketable1.render import MissingRowRender, RenderDispatcher, normalize_rows


@pytest.fixture
def x():
    return pd.Series([1.0, 2.0, 3.0, 4.0])


class TestNormalizeRows:
    def test_string_is_unlabeled_row(self):
        assert normalize_rows("12") == [("", "12")]

    def test_mapping(self):
        assert normalize_rows({"a": 1, "b": None}) == [("a", "1"), ("b", "")]

    def test_series(self):
        assert normalize_rows(pd.Series({"a": "x"})) == [("a", "x")]

    def test_invalid_rows(self):
        with pytest.raises(ConfigurationError):
            normalize_rows([1, 2], "age")
        with pytest.raises(ConfigurationError):
            normalize_rows(42, "age")


class TestRenderDispatcher:
    """Tests for render precedence and the default renders."""

    def test_default_continuous(self, x):
        rows = RenderDispatcher().render(x, "x", "continuous")
        assert rows == [
            ("Mean (SD)", "2.50 (1.29)"),
            ("Median [Min, Max]", "2.50 [1.00, 4.00]"),
        ]

    def test_default_categorical(self):
        rows = RenderDispatcher().render(pd.Series(["a", "b"]), "s", "categorical")
        assert rows == [("a", "1 (50.0%)"), ("b", "1 (50.0%)")]

    def test_missing_row(self):
        rows = RenderDispatcher().render(
            pd.Series([1.0, np.nan, 3.0]), "x", "continuous", missing=True
        )
        assert rows[-1] == ("Missing", "1 (33.3%)")
        assert len(rows) == 3

    def test_no_missing_row_without_missing_values(self, x):
        rows = RenderDispatcher().render(x, "x", "continuous", missing=False)
        assert [label for label, _ in rows] == ["Mean (SD)", "Median [Min, Max]"]

    def test_render_missing_code(self):
        rows = RenderDispatcher(render_missing="FREQ").render(
            pd.Series([1.0, np.nan]), "x", "continuous", missing=True
        )
        assert rows[-1] == ("Missing", "1")

    def test_per_variable_precedes_kind(self, x):
        dispatcher = RenderDispatcher(render={"x": "N"}, render_continuous="MEAN")
        assert dispatcher.render(x, "x", "continuous") == [("N", "4")]
        assert dispatcher.render(x, "y", "continuous") == [("MEAN", "2.50")]
        assert isinstance(dispatcher.resolve("y", "continuous"), MissingRowRender)

    def test_per_variable_has_no_missing_row(self):
        dispatcher = RenderDispatcher(render={"x": "N"})
        rows = dispatcher.render(pd.Series([1.0, np.nan]), "x", "continuous", missing=True)
        assert rows == [("N", "1")]

    def test_global_callable_receives_context(self, x):
        seen = {}

        def render(values, name, **context):
            seen.update(context)
            return f"{len(values)}"

        dispatcher = RenderDispatcher(render=render, digits=2)
        assert dispatcher.render(x, "x", "continuous") == [("", "4")]
        assert seen["kind"] == "continuous"
        assert seen["digits"] == 2
        assert seen["digits_pct"] == 1
        assert seen["missing"] is False

    def test_digits(self, x):
        dispatcher = RenderDispatcher(render_continuous="MEAN", digits=2)
        assert dispatcher.render(x, "x", "continuous") == [("MEAN", "2.5")]

    def test_invalid_render(self):
        with pytest.raises(ConfigurationError):
            RenderDispatcher(render=42)

    def test_render_missing_single_code(self):
        with pytest.raises(ConfigurationError):
            RenderDispatcher(render_missing=["FREQ", "PCT"])
