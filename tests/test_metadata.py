import numpy as np
import pandas as pd
import pytest

from maketable1.errors import ConfigurationError
from maketable1.metadata import (
    ColumnMetadata,
    apply_metadata,
    get_var_labels,
    infer_kind,
    read_data,
    set_var_labels,
    variable_spec,
)

METADATA_YAML = """
labels:
  age: Age
  sex: Sex
units:
  age: years
categoricals:
  sex:
    1: Male
    2: Female
"""


@pytest.fixture
def coded_df():
    return pd.DataFrame({"age": [30.0, 40.0, 50.0, 60.0], "sex": [1, 2, 2, np.nan]})


class TestColumnMetadata:
    """Tests for reading and merging column metadata."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text(METADATA_YAML, encoding="utf-8")
        meta = ColumnMetadata.from_yaml(path)
        assert meta.label("age") == "Age"
        assert meta.unit("age") == "years"
        assert meta.level_map("sex") == {1: "Male", 2: "Female"}
        assert meta.label("other") == "other"

    def test_from_yaml_requires_mapping(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ColumnMetadata.from_yaml(path)

    def test_level_list_keeps_values(self):
        meta = ColumnMetadata.from_dict({"categoricals": {"grade": ["low", "high"]}})
        assert meta.level_map("grade") == {"low": "low", "high": "high"}

    def test_merge(self):
        base = ColumnMetadata(labels={"a": "A", "b": "B"})
        merged = base.merge(ColumnMetadata(labels={"b": "Bee"}))
        assert merged.labels == {"a": "A", "b": "Bee"}


class TestApplyMetadata:
    def test_categoricals(self, coded_df):
        df, meta = apply_metadata(coded_df, {"categoricals": {"sex": {1: "Male", 2: "Female"}}})
        assert list(df["sex"].cat.categories) == ["Male", "Female"]
        assert df["sex"].cat.ordered
        assert df["sex"].tolist()[:3] == ["Male", "Female", "Female"]
        assert pd.isna(df["sex"].iloc[3])
        # The input is not modified
        assert coded_df["sex"].tolist()[:3] == [1, 2, 2]

    def test_labels_in_attrs(self, coded_df):
        df, meta = apply_metadata(coded_df, {"labels": {"age": "Age"}, "units": {"age": "years"}})
        assert get_var_labels(df) == {"age": "Age", "sex": "sex"}
        assert variable_spec(df, "age").display_label == "Age (years)"

    def test_escape_html(self, coded_df):
        df, meta = apply_metadata(coded_df, {"labels": {"age": "Age <years>"}})
        assert meta.label("age") == "Age &lt;years&gt;"
        df, meta = apply_metadata(coded_df, {"labels": {"age": "Age <years>"}}, escape_html=False)
        assert meta.label("age") == "Age <years>"

    def test_unknown_columns_are_logged(self, coded_df, caplog):
        apply_metadata(coded_df, {"labels": {"bmi": "BMI"}})
        assert "bmi" in caplog.text


class TestReadData:
    def test_csv_and_yaml(self, tmp_path, coded_df):
        coded_df.to_csv(tmp_path / "data.csv", index=False)
        (tmp_path / "meta.yaml").write_text(METADATA_YAML, encoding="utf-8")
        df, meta = read_data(tmp_path / "data.csv", tmp_path / "meta.yaml")
        assert list(df["sex"].cat.categories) == ["Male", "Female"]
        assert meta.label("sex") == "Sex"

    def test_without_metadata(self, coded_df):
        df, meta = read_data(coded_df)
        assert df is coded_df
        assert meta.labels == {}

    def test_not_a_dataframe(self):
        with pytest.raises(ConfigurationError):
            read_data([1, 2, 3])


class TestVariables:
    def test_infer_kind(self):
        assert infer_kind(pd.Series([1, 2])) == "continuous"
        assert infer_kind(pd.Series([True, False])) == "categorical"
        assert infer_kind(pd.Series(["a", "b"])) == "categorical"

    def test_variable_spec(self, coded_df):
        spec = variable_spec(coded_df.assign(grade=["b", "a", "a", "b"]), "grade")
        assert spec.kind == "categorical"
        assert spec.levels == ("a", "b")
        with pytest.raises(ConfigurationError):
            variable_spec(coded_df, "bmi")

    def test_set_var_labels(self, coded_df):
        set_var_labels(coded_df, {"age": "Age", "bmi": "BMI"}, units={"age": "years"})
        assert coded_df.attrs["variable_labels"] == {"age": "Age"}
        assert variable_spec(coded_df, "age").display_label == "Age (years)"
