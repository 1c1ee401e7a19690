"""
Tests for dataset and classification
"""

import logging

import numpy as np
import pandas as pd
import pytest

from privacy_index.constants import DIRECT_IDENTIFIER, QUASI_IDENTIFIER, SENSITIVE
from privacy_index.dataset import AttributeClassification, Classification, Dataset, validate_analysis_input
from tests.shared import make_classification, make_scenario_a

_LOGGER = logging.getLogger(__name__)


class TestDataset:
    """
    Tests for Dataset
    """

    # pylint: disable=no-self-use

    def test_duplicate_headers(self):
        """Duplicate headers are rejected"""
        with pytest.raises(ValueError, match="unique"):
            Dataset(["a", "b", "a"], [["1", "2", "3"]])

    def test_ragged_rows(self):
        """Short rows are padded with empty strings, long rows truncated"""
        dataset = Dataset(["a", "b", "c"], [["1"], ["1", "2", "3", "4"], ["1", None, "3"]])
        assert dataset.rows == (("1", "", ""), ("1", "2", "3"), ("1", "", "3"))
        assert dataset.record_count == 3
        assert dataset.attribute_count == 3
        assert len(dataset) == 3

    def test_frame(self):
        """The frame view keeps string values and column order"""
        dataset, _ = make_scenario_a()
        frame = dataset.frame
        assert list(frame.columns) == ["Age", "Zip", "Diagnosis"]
        assert frame.shape == (4, 3)
        assert frame["Zip"].tolist() == ["100**", "100**", "200**", "300**"]
        assert dataset.frame is frame

    def test_empty_frame(self):
        """A dataset without rows has an empty frame with its columns"""
        frame = Dataset(["a", "b"], []).frame
        assert frame.shape == (0, 2)
        assert list(frame.columns) == ["a", "b"]

    def test_from_dataframe(self):
        """Values are stringified and missing values become empty strings"""
        input_df = pd.DataFrame({"age": [30, 41], "score": [1.5, np.nan]})
        dataset = Dataset.from_dataframe(input_df)
        assert dataset.headers == ("age", "score")
        assert dataset.rows == (("30", "1.5"), ("41", ""))

    def test_column(self):
        """Columns are returned in row order; unknown columns raise"""
        dataset, _ = make_scenario_a()
        assert dataset.column("Age") == ["30", "30", "40", "50"]
        with pytest.raises(KeyError):
            dataset.column("Missing")


class TestClassification:
    """
    Tests for AttributeClassification and Classification
    """

    # pylint: disable=no-self-use

    def test_invalid_type(self):
        """Unknown attribute types are rejected"""
        with pytest.raises(ValueError, match="Attribute type"):
            AttributeClassification("a", "secret")

    def test_unknown_pattern(self):
        """Unknown data patterns map to unknown"""
        assert AttributeClassification("a", SENSITIVE, 0.5, "spreadsheet").data_pattern == "unknown"

    def test_from_dict(self):
        """Both snake case and camel case data pattern keys are accepted"""
        attr = AttributeClassification.from_dict(
            {"name": "zip", "type": QUASI_IDENTIFIER, "confidence": 0.8, "dataPattern": "location"}
        )
        assert attr.data_pattern == "location"
        assert attr.confidence == 0.8
        assert AttributeClassification.from_dict(attr.to_dict()).to_dict() == attr.to_dict()

    def test_summary(self):
        """Summary counts are computed from the attributes"""
        _, classification = make_scenario_a()
        assert classification.summary["total_attributes"] == 3
        assert classification.summary["quasi_identifiers"] == 2
        assert classification.summary["sensitive_attributes"] == 1
        assert classification.summary["direct_identifiers"] == 0
        np.testing.assert_allclose(classification.summary["average_confidence"], 1.0)

    def test_summary_override(self):
        """A supplied summary takes precedence over computed counts"""
        classification = Classification(
            [{"name": "id", "type": DIRECT_IDENTIFIER}],
            {"average_confidence": 0.42},
        )
        assert classification.summary["direct_identifiers"] == 1
        assert classification.summary["average_confidence"] == 0.42

    def test_lookup(self):
        """Attributes can be selected by type and looked up by name"""
        _, classification = make_scenario_a()
        assert classification.names_of_type(QUASI_IDENTIFIER) == ["Age", "Zip"]
        assert [attr.name for attr in classification.of_type(SENSITIVE)] == ["Diagnosis"]
        assert classification.get("Zip").data_pattern == "location"
        assert classification.get("Missing") is None
        assert len(classification) == 3

    def test_from_dict_round_trip(self):
        """Classifications survive their dictionary form"""
        _, classification = make_scenario_a()
        restored = Classification.from_dict(classification.to_dict())
        assert restored.to_dict() == classification.to_dict()


class TestValidateAnalysisInput:
    """
    Tests for validate_analysis_input
    """

    # pylint: disable=no-self-use

    def test_valid(self):
        """Valid input passes"""
        validate_analysis_input(*make_scenario_a())

    @pytest.mark.parametrize(
        "dataset,classification,match",
        [
            (None, make_classification([]), "dataset is required"),
            (Dataset([], []), make_classification([]), "no headers"),
            (Dataset(["a"], []), make_classification([]), "no rows"),
            (Dataset(["a"], [["1"]]), None, "classification is required"),
        ],
    )
    def test_invalid(self, dataset, classification, match):
        """Missing or empty inputs are rejected before any computation"""
        with pytest.raises(ValueError, match=match):
            validate_analysis_input(dataset, classification)
