"""
Tests for equivalence class construction
"""

import logging

import numpy as np
import pandas as pd
import pytest

from privacy_index.cancellation import AnalysisCancelledError, CancellationToken
from privacy_index.dataset import Dataset
from privacy_index.equivalence_classes import build_equivalence_classes, group_row_indices
from tests.shared import make_medical_dataset, make_scenario_a

_LOGGER = logging.getLogger(__name__)


def _assert_partition(equivalence_classes, n_rows):
    all_indices = [idx for ec in equivalence_classes for idx in ec.row_indices]
    assert sum(ec.size for ec in equivalence_classes) == n_rows
    assert sorted(all_indices) == list(range(n_rows))


class TestBuildEquivalenceClasses:
    """
    Tests for build_equivalence_classes
    """

    # pylint: disable=no-self-use

    def test_scenario_a(self):
        """Two rows share (30, 100**), two rows are unique"""
        dataset, _ = make_scenario_a()
        equivalence_classes = build_equivalence_classes(_LOGGER, dataset, ["Age", "Zip"])
        assert [ec.id for ec in equivalence_classes] == ["EC-1", "EC-2", "EC-3"]
        assert [ec.size for ec in equivalence_classes] == [2, 1, 1]
        assert equivalence_classes[0].row_indices == [0, 1]
        assert equivalence_classes[0].quasi_identifier_values == {"Age": "30", "Zip": "100**"}
        _assert_partition(equivalence_classes, dataset.record_count)

    def test_normalization(self):
        """Values equal after trimming and lower-casing share a class"""
        dataset = Dataset(["city"], [["Paris"], [" paris "], ["PARIS"], ["Lyon"]])
        equivalence_classes = build_equivalence_classes(_LOGGER, dataset, ["city"])
        assert [ec.size for ec in equivalence_classes] == [3, 1]
        assert equivalence_classes[0].key == ("paris",)

    def test_no_key_collision(self):
        """Joined keys do not collide when values contain the separator candidates"""
        dataset = Dataset(["a", "b"], [["x\x1f", "y"], ["x", "\x1fy"]])
        equivalence_classes = build_equivalence_classes(_LOGGER, dataset, ["a", "b"])
        assert len(equivalence_classes) == 2

    def test_no_quasi_identifiers(self):
        """Without quasi-identifiers all rows form one class"""
        dataset, _ = make_scenario_a()
        equivalence_classes = build_equivalence_classes(_LOGGER, dataset, [])
        assert len(equivalence_classes) == 1
        assert equivalence_classes[0].size == 4
        assert equivalence_classes[0].key == ()

    def test_missing_quasi_identifier(self, caplog):
        """Quasi-identifiers that are not columns are ignored with a warning"""
        dataset, _ = make_scenario_a()
        with caplog.at_level(logging.WARNING):
            equivalence_classes = build_equivalence_classes(_LOGGER, dataset, ["Age", "Income"])
        assert "Income" in caplog.text
        assert [ec.size for ec in equivalence_classes] == [2, 1, 1]

    def test_no_rows(self):
        """A dataset without rows has no classes"""
        assert build_equivalence_classes(_LOGGER, Dataset(["a"], []), ["a"]) == []

    @pytest.mark.parametrize("batch_size", [1, 3, 7, 1_000])
    def test_batched_grouping(self, batch_size):
        """Grouping in batches yields the same classes as a single batch"""
        dataset, _ = make_medical_dataset(n_per_group=5)
        expected = build_equivalence_classes(_LOGGER, dataset, ["age", "region"])
        actual = build_equivalence_classes(_LOGGER, dataset, ["age", "region"], batch_size=batch_size)
        assert [ec.to_dict() for ec in actual] == [ec.to_dict() for ec in expected]
        _assert_partition(actual, dataset.record_count)

    def test_cancelled(self):
        """A cancelled token aborts grouping"""
        dataset, _ = make_scenario_a()
        token = CancellationToken()
        token.cancel()
        with pytest.raises(AnalysisCancelledError):
            build_equivalence_classes(_LOGGER, dataset, ["Age"], cancellation=token)


class TestGroupRowIndices:
    """
    Tests for group_row_indices
    """

    # pylint: disable=no-self-use

    def test_first_appearance_order(self):
        """Groups are ordered by first appearance, members ascending"""
        input_df = pd.DataFrame({"a": ["b", "a", "b", "c", "a"]})
        groups = group_row_indices(input_df, ["a"], batch_size=2)
        assert [g.tolist() for g in groups] == [[0, 2], [1, 4], [3]]

    def test_empty(self):
        """No rows yields no groups"""
        assert group_row_indices(pd.DataFrame({"a": []}, dtype=object), ["a"]) == []

    def test_random_partition(self):
        """Groups partition the rows for random data"""
        rng = np.random.default_rng(42)
        input_df = pd.DataFrame(
            {
                "a": rng.choice(["x", "y", "z"], size=200).astype(object),
                "b": rng.choice(["1", "2"], size=200).astype(object),
            }
        )
        groups = group_row_indices(input_df, ["a", "b"], batch_size=17)
        assert sum(len(g) for g in groups) == 200
        assert sorted(np.concatenate(groups).tolist()) == list(range(200))
        for g in groups:
            assert input_df.iloc[g].drop_duplicates().shape[0] == 1
