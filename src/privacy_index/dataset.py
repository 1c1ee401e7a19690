"""
Input contract for privacy analysis: a parsed dataset and its attribute classification.

Both structures are produced by external collaborators (a CSV parser and an
attribute classifier) and are treated as read-only snapshots for the duration of
one analysis run.
"""

from typing import Any, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from privacy_index.constants import (
    ATTRIBUTE_TYPES,
    DATA_PATTERNS,
    DIRECT_IDENTIFIER,
    NON_SENSITIVE,
    QUASI_IDENTIFIER,
    SENSITIVE,
)


class Dataset:
    """
    A parsed tabular dataset of string values.

    Parameters
    ----------
    headers : Sequence[str]
        Unique column names.
    rows : Iterable[Sequence[str]]
        Rows aligned to headers. Missing trailing cells are treated as empty
        strings and extra cells are ignored.

    Raises
    ------
    ValueError
        If headers are not unique.
    """

    def __init__(self, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        self.headers: tuple[str, ...] = tuple(str(header) for header in headers)
        if len(set(self.headers)) != len(self.headers):
            duplicates = sorted({h for h in self.headers if self.headers.count(h) > 1})
            raise ValueError(f"Dataset headers must be unique, duplicates: {duplicates}")
        n_cols = len(self.headers)
        self.rows: tuple[tuple[str, ...], ...] = tuple(
            tuple(
                ("" if row[i] is None else str(row[i])) if i < len(row) else ""
                for i in range(n_cols)
            )
            for row in rows
        )
        self._frame: Optional[pd.DataFrame] = None

    @classmethod
    def from_dataframe(cls, input_df: pd.DataFrame) -> "Dataset":
        """
        Build a Dataset from a DataFrame; values are stringified and NaN becomes "".
        """
        values_df = input_df.astype(object).where(pd.notna(input_df), "")
        return cls(
            [str(col) for col in input_df.columns],
            values_df.itertuples(index=False, name=None),
        )

    @property
    def record_count(self) -> int:
        return len(self.rows)

    @property
    def attribute_count(self) -> int:
        return len(self.headers)

    @property
    def frame(self) -> pd.DataFrame:
        """
        DataFrame view of the dataset (dtype object, RangeIndex).

        The frame is cached; callers must not modify it.
        """
        if self._frame is None:
            self._frame = pd.DataFrame(
                list(self.rows) if len(self.rows) > 0 else np.empty((0, len(self.headers))),
                columns=list(self.headers),
                dtype=object,
            )
        return self._frame

    def column(self, name: str) -> list[str]:
        """
        Values of one column, in row order.

        Raises
        ------
        KeyError
            If the column does not exist.
        """
        idx = self.headers.index(name) if name in self.headers else -1
        if idx == -1:
            raise KeyError(f"Column ({name}) is not a column in the dataset")
        return [row[idx] for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self) -> str:
        return f"Dataset({self.attribute_count} attributes, {self.record_count} records)"


class AttributeClassification:
    """
    Classification of a single column.

    Parameters
    ----------
    name : str
        Column name.
    type : str
        One of direct-identifier, quasi-identifier, sensitive, non-sensitive.
    confidence : float
        Classifier confidence in [0, 1].
    data_pattern : str
        Detected data pattern (numeric, categorical, identifier, ...); unknown
        values are mapped to "unknown".
    """

    def __init__(
        self,
        name: str,
        type: str,  # pylint: disable=redefined-builtin
        confidence: float = 1.0,
        data_pattern: str = "unknown",
    ) -> None:
        if type not in ATTRIBUTE_TYPES:
            raise ValueError(f"Attribute type ({type}) for {name} must be one of {ATTRIBUTE_TYPES}")
        self.name = str(name)
        self.type = type
        self.confidence = float(confidence)
        self.data_pattern = data_pattern if data_pattern in DATA_PATTERNS else "unknown"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttributeClassification":
        return cls(
            name=data["name"],
            type=data["type"],
            confidence=data.get("confidence", 1.0),
            data_pattern=data.get("data_pattern", data.get("dataPattern", "unknown")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "confidence": self.confidence,
            "data_pattern": self.data_pattern,
        }

    def __repr__(self) -> str:
        return f"{self.name} ({self.type}, {self.data_pattern}, confidence = {self.confidence:.2f})"


class Classification:
    """
    Ordered attribute classifications for a dataset, plus a summary.

    Parameters
    ----------
    attributes : Iterable[AttributeClassification or dict]
        Per-column classifications, in classifier order.
    summary : dict, optional
        Summary counts as produced by the classifier; computed from the
        attributes if not provided.
    """

    def __init__(
        self,
        attributes: Iterable[Any],
        summary: Optional[dict[str, Any]] = None,
    ) -> None:
        self.attributes: tuple[AttributeClassification, ...] = tuple(
            attr if isinstance(attr, AttributeClassification) else AttributeClassification.from_dict(attr)
            for attr in attributes
        )
        self.summary: dict[str, Any] = self._compute_summary()
        if summary is not None:
            self.summary.update(summary)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Classification":
        return cls(data["attributes"], data.get("summary"))

    def _compute_summary(self) -> dict[str, Any]:
        n = len(self.attributes)
        return {
            "total_attributes": n,
            "direct_identifiers": len(self.names_of_type(DIRECT_IDENTIFIER)),
            "quasi_identifiers": len(self.names_of_type(QUASI_IDENTIFIER)),
            "sensitive_attributes": len(self.names_of_type(SENSITIVE)),
            "non_sensitive_attributes": len(self.names_of_type(NON_SENSITIVE)),
            "average_confidence": (
                sum(attr.confidence for attr in self.attributes) / n if n > 0 else 0.0
            ),
        }

    def names_of_type(self, attribute_type: str) -> list[str]:
        return [attr.name for attr in self.attributes if attr.type == attribute_type]

    def of_type(self, attribute_type: str) -> list[AttributeClassification]:
        return [attr for attr in self.attributes if attr.type == attribute_type]

    def get(self, name: str) -> Optional[AttributeClassification]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attributes": [attr.to_dict() for attr in self.attributes],
            "summary": dict(self.summary),
        }

    def __len__(self) -> int:
        return len(self.attributes)


def validate_analysis_input(dataset: Optional[Dataset], classification: Optional[Classification]) -> None:
    """
    Validate the inputs of an analysis run before any metric is computed.

    Parameters
    ----------
    dataset : Dataset
        The dataset to analyze.
    classification : Classification
        The classification of the dataset's attributes.

    Raises
    ------
    ValueError
        If the dataset has no headers or no rows, or the classification is missing.
    """
    if dataset is None:
        raise ValueError("A dataset is required")
    if dataset.attribute_count == 0:
        raise ValueError("Input dataset has no headers")
    if dataset.record_count == 0:
        raise ValueError("Input dataset has no rows")
    if classification is None:
        raise ValueError("An attribute classification is required")
