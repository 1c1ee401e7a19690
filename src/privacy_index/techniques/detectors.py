"""
Heuristic detectors of privacy-preserving transformations.

Each detector scans the values and/or name of every classified attribute and
emits evidence with an explicit confidence and reason. Detectors are
independent of each other. Thresholds are heuristics, not formal guarantees,
and can be tuned through the detection thresholds dictionary.
"""

import re
from abc import ABCMeta, abstractmethod
from collections import namedtuple
from typing import Any, Optional

import numpy as np
import pandas as pd

from privacy_index.constants import DIRECT_IDENTIFIER, QUASI_IDENTIFIER
from privacy_index.dataset import AttributeClassification, Classification, Dataset

TechniqueEvidence = namedtuple(
    "TechniqueEvidence", ["attribute", "confidence", "evidence_samples", "reason"]
)

# Number of sample values kept as evidence
N_EVIDENCE_SAMPLES: int = 3


def default_detection_thresholds() -> dict[str, float]:
    """
    Provide the default heuristic cut-offs of the technique detectors.

    Returns
    -------
    Dict[str, float]
        Dictionary mapping threshold names to values.
    """
    return {
        "generalization_min_pattern_values": 2,
        "generalization_max_unique_ratio": 0.1,
        "suppression_min_rate": 0.01,
        "hash_min_match_ratio": 0.8,
        "hash_min_matches": 3,
        "pseudonym_min_match_ratio": 0.8,
        "bucket_min_values": 2,
        "bucket_max_values": 10,
        "bucket_min_match_ratio": 0.5,
        "noise_min_samples": 10,
        "noise_min_average_precision": 4,
        "noise_min_distinct_precisions": 3,
    }


class ColumnProfile:
    """
    Values of one attribute, prepared once and shared by all detectors.

    Parameters
    ----------
    attribute : AttributeClassification
        Classification of the column.
    values : pd.Series
        Raw string values of the column.
    """

    def __init__(self, attribute: AttributeClassification, values: pd.Series) -> None:
        self.attribute = attribute
        self.values = values.fillna("").astype(str)
        self.stripped = self.values.str.strip()
        self.unique_values = pd.Series(pd.unique(self.values), dtype=object)
        self.unique_stripped = self.unique_values.str.strip()

    @property
    def name(self) -> str:
        return self.attribute.name

    def __len__(self) -> int:
        return len(self.values)


def _matches_any(values: pd.Series, patterns: list[re.Pattern]) -> pd.Series:
    """
    Boolean mask of values matching (searching) any of the given patterns.
    """
    mask = pd.Series(False, index=values.index)
    for pattern in patterns:
        mask |= values.str.contains(pattern, regex=True)
    return mask


def _samples(values: pd.Series, n: int = N_EVIDENCE_SAMPLES) -> list[str]:
    return [str(value) for value in values.iloc[:n]]


class TechniqueDetector(metaclass=ABCMeta):
    """
    Base class of the technique detectors.

    Subclasses define the technique tag, its description and qualitative
    privacy benefit, and implement detect_column.
    """

    technique: str = ""
    description: str = ""
    privacy_benefit: str = "medium"

    def applies_to(self, attribute: AttributeClassification) -> bool:  # pylint: disable=unused-argument
        return True

    @abstractmethod
    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        """
        Detect the technique in one column.

        Parameters
        ----------
        column : ColumnProfile
            The column to scan.
        thresholds : Dict[str, float]
            Heuristic cut-offs, see default_detection_thresholds.

        Returns
        -------
        List[TechniqueEvidence]
            Evidence found in this column, possibly empty.
        """

    def detect(
        self,
        columns: list[ColumnProfile],
        thresholds: Optional[dict[str, float]] = None,
    ) -> list[TechniqueEvidence]:
        if thresholds is None:
            thresholds = default_detection_thresholds()
        evidence = []
        for column in columns:
            if len(column) == 0 or not self.applies_to(column.attribute):
                continue
            evidence.extend(self.detect_column(column, thresholds))
        return evidence

    def __repr__(self) -> str:
        return f"{type(self).__name__} ({self.technique})"


class GeneralizationDetector(TechniqueDetector):
    """
    Values replaced with broader categories or ranges.
    """

    technique = "generalization"
    description = "Values have been replaced with broader categories or ranges"
    privacy_benefit = "high"

    RANGE_PATTERN = re.compile(r"^\d+[-–]\d+$")
    CATEGORY_PATTERN = re.compile(r"^(?:Region|Category|Group|Level|Type|Class)[-_]?\d+$", re.IGNORECASE)

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        evidence = []
        min_pattern_values = thresholds["generalization_min_pattern_values"]

        range_values = column.unique_values[column.unique_stripped.str.contains(self.RANGE_PATTERN)]
        if len(range_values) >= min_pattern_values:
            evidence.append(
                TechniqueEvidence(
                    column.name,
                    0.9,
                    _samples(range_values),
                    'Numeric range patterns detected (e.g., "20-30")',
                )
            )

        category_values = column.unique_values[column.unique_stripped.str.contains(self.CATEGORY_PATTERN)]
        if len(category_values) >= min_pattern_values:
            evidence.append(
                TechniqueEvidence(
                    column.name,
                    0.85,
                    _samples(category_values),
                    "Categorical generalization patterns detected",
                )
            )

        attribute = column.attribute
        if attribute.data_pattern == "identifier" or attribute.type == QUASI_IDENTIFIER:
            unique_ratio = len(column.unique_values) / len(column)
            if unique_ratio < thresholds["generalization_max_unique_ratio"] and len(column.unique_values) > 1:
                evidence.append(
                    TechniqueEvidence(
                        column.name,
                        0.6,
                        _samples(column.unique_values),
                        f"Low unique value ratio ({unique_ratio * 100:.1f}%) suggests generalization",
                    )
                )
        return evidence


class SuppressionDetector(TechniqueDetector):
    """
    Values removed or replaced with placeholders.
    """

    technique = "suppression"
    description = "Some values have been removed or replaced with placeholders"
    privacy_benefit = "medium"

    PLACEHOLDER_PATTERNS = [
        re.compile(r"^\*+$"),
        re.compile(r"^-+$"),
        re.compile(r"^N/?A$", re.IGNORECASE),
        re.compile(r"^NULL$", re.IGNORECASE),
        re.compile(r"^REDACTED$", re.IGNORECASE),
        re.compile(r"^SUPPRESSED$", re.IGNORECASE),
        re.compile(r"^\[REMOVED\]$", re.IGNORECASE),
        re.compile(r"^XXX+$", re.IGNORECASE),
    ]

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        suppressed = _matches_any(column.stripped, self.PLACEHOLDER_PATTERNS) | (column.stripped == "")
        n_suppressed = int(suppressed.sum())
        suppression_rate = n_suppressed / len(column)
        if n_suppressed == 0 or suppression_rate <= thresholds["suppression_min_rate"]:
            return []
        suppressed_values = pd.Series(pd.unique(column.values[suppressed]), dtype=object)
        return [
            TechniqueEvidence(
                column.name,
                min(suppression_rate * 5, 0.95),
                _samples(suppressed_values[suppressed_values != ""]),
                f"{suppression_rate * 100:.1f}% of values appear suppressed",
            )
        ]


class MaskingDetector(TechniqueDetector):
    """
    Values partially hidden while keeping some of their information.
    """

    technique = "masking"
    description = "Values have been partially masked while preserving some information"
    privacy_benefit = "medium"

    MASK_PATTERNS = [
        re.compile(r"\*{2,}"),
        re.compile(r"X{2,}", re.IGNORECASE),
        re.compile(r"^\d{3}-\*{2}-\d{4}$"),  # SSN
        re.compile(r"^\*{4}-\*{4}-\*{4}-\d{4}$"),  # credit card
        re.compile(r"^[\w.]+@\*+\.\w+$"),  # email
        re.compile(r"^\+?\d{1,3}-?\*+-\d{2,4}$"),  # phone
    ]

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        masked = _matches_any(column.stripped, self.MASK_PATTERNS)
        if not masked.any():
            return []
        masked_values = pd.Series(pd.unique(column.values[masked]), dtype=object)
        return [
            TechniqueEvidence(
                column.name,
                0.9,
                _samples(masked_values),
                "Partial masking patterns detected",
            )
        ]


class HashingDetector(TechniqueDetector):
    """
    Values replaced with (hex encoded) cryptographic hashes.
    """

    technique = "hashing"
    description = "Values have been cryptographically hashed"
    privacy_benefit = "high"

    HASH_PATTERNS = [
        (re.compile(r"^[a-f0-9]{8}$", re.IGNORECASE), "Short hash (8 chars)"),
        (re.compile(r"^[a-f0-9]{16}$", re.IGNORECASE), "MD5 prefix (16 chars)"),
        (re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE), "MD5 hash (32 chars)"),
        (re.compile(r"^[a-f0-9]{40}$", re.IGNORECASE), "SHA-1 hash (40 chars)"),
        (re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE), "SHA-256 hash (64 chars)"),
        (re.compile(r"^[a-f0-9]{128}$", re.IGNORECASE), "SHA-512 hash (128 chars)"),
    ]
    NAME_PATTERN = re.compile(r"hash|digest|checksum|sha|md5", re.IGNORECASE)

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        evidence = []
        for pattern, pattern_name in self.HASH_PATTERNS:
            matching_values = column.unique_values[column.unique_stripped.str.contains(pattern)]
            match_ratio = len(matching_values) / len(column.unique_values)
            if (
                match_ratio > thresholds["hash_min_match_ratio"]
                and len(matching_values) >= thresholds["hash_min_matches"]
            ):
                evidence.append(
                    TechniqueEvidence(
                        column.name,
                        min(match_ratio, 0.95),
                        _samples(matching_values),
                        f"{pattern_name} pattern detected in {match_ratio * 100:.0f}% of values",
                    )
                )
                break

        if self.NAME_PATTERN.search(column.name):
            evidence.append(
                TechniqueEvidence(
                    column.name,
                    0.7,
                    _samples(column.unique_values),
                    "Column name suggests hashed values",
                )
            )
        return evidence


class PseudonymizationDetector(TechniqueDetector):
    """
    Direct identifiers replaced with systematic artificial identifiers.
    """

    technique = "pseudonymization"
    description = "Direct identifiers have been replaced with pseudonyms"
    privacy_benefit = "high"

    PSEUDONYM_PATTERNS = [
        re.compile(r"^[A-Z]{1,3}\d{2,6}[A-Z]{0,2}$", re.IGNORECASE),
        re.compile(r"^(?:Patient|User|Customer|Client|Subject|Person)[-_]?\d+$", re.IGNORECASE),
        re.compile(r"^[A-Z]{2,4}[-_]\d{4,8}$", re.IGNORECASE),
        re.compile(r"^ID[-_]?[a-f0-9]{4,12}$", re.IGNORECASE),
    ]

    def applies_to(self, attribute: AttributeClassification) -> bool:
        return attribute.type == DIRECT_IDENTIFIER or attribute.data_pattern == "identifier"

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        for pattern in self.PSEUDONYM_PATTERNS:
            matching_values = column.unique_values[column.unique_stripped.str.contains(pattern)]
            match_ratio = len(matching_values) / len(column.unique_values)
            if match_ratio > thresholds["pseudonym_min_match_ratio"]:
                return [
                    TechniqueEvidence(
                        column.name,
                        min(match_ratio, 0.9),
                        _samples(matching_values),
                        "Systematic pseudonym pattern detected",
                    )
                ]
        return []


class BucketingDetector(TechniqueDetector):
    """
    Continuous values grouped into a small set of ordinal or qualitative labels.
    """

    technique = "bucketing"
    description = "Continuous values have been grouped into discrete buckets"
    privacy_benefit = "medium"

    BUCKET_PATTERNS = [
        re.compile(r"^(?:Low|Medium|High|Very\s*High|Very\s*Low)$", re.IGNORECASE),
        re.compile(r"^(?:Small|Large|Extra\s*Large|XL|XXL)$", re.IGNORECASE),
        re.compile(r"^(?:Young|Middle[-\s]?Aged?|Old|Elderly|Senior)$", re.IGNORECASE),
        re.compile(r"^(?:Tier|Level|Grade|Class)[-\s]?[1-5A-E]$", re.IGNORECASE),
        re.compile(r"^<?\d+[-–]\d+>?$"),
        re.compile(r"^[<>≤≥]=?\s*\d+$"),
    ]

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        matching_values = column.unique_values[_matches_any(column.unique_stripped, self.BUCKET_PATTERNS)]
        n_matching = len(matching_values)
        if not thresholds["bucket_min_values"] <= n_matching <= thresholds["bucket_max_values"]:
            return []
        match_ratio = n_matching / len(column.unique_values)
        if match_ratio <= thresholds["bucket_min_match_ratio"]:
            return []
        return [
            TechniqueEvidence(
                column.name,
                min(match_ratio, 0.85),
                _samples(matching_values, 4),
                "Values appear to be bucketed into categories",
            )
        ]


def decimal_precision(value: float) -> int:
    """
    Number of digits after the decimal point in the shortest repr of a float.

    Examples
    --------
    >>> decimal_precision(12.0)
    0
    >>> decimal_precision(3.14159)
    5
    """
    text = np.format_float_positional(value, trim="-")
    _, _, decimals = text.partition(".")
    return len(decimals)


class NoiseAdditionDetector(TechniqueDetector):
    """
    Statistical noise added to numerical values, visible as high and varying precision.
    """

    technique = "noise-addition"
    description = "Statistical noise may have been added to numerical values"
    privacy_benefit = "medium"

    def applies_to(self, attribute: AttributeClassification) -> bool:
        return attribute.data_pattern == "numeric"

    def detect_column(self, column: ColumnProfile, thresholds: dict[str, float]) -> list[TechniqueEvidence]:
        numbers = pd.to_numeric(column.stripped, errors="coerce").dropna()
        if len(numbers) < thresholds["noise_min_samples"]:
            return []
        precisions = [decimal_precision(float(v)) for v in numbers]
        average_precision = float(np.mean(precisions))
        distinct_precisions = len(set(precisions))
        if (
            average_precision <= thresholds["noise_min_average_precision"]
            or distinct_precisions <= thresholds["noise_min_distinct_precisions"]
        ):
            return []
        return [
            TechniqueEvidence(
                column.name,
                0.5,
                [np.format_float_positional(float(v), trim="-") for v in numbers.iloc[:N_EVIDENCE_SAMPLES]],
                f"High decimal precision variability (avg {average_precision:.1f} digits) "
                "may indicate noise addition",
            )
        ]


def get_technique_detectors() -> list[TechniqueDetector]:
    """
    All detectors, in the order their techniques are reported.
    """
    return [
        GeneralizationDetector(),
        SuppressionDetector(),
        MaskingDetector(),
        HashingDetector(),
        PseudonymizationDetector(),
        BucketingDetector(),
        NoiseAdditionDetector(),
    ]


def profile_columns(dataset: Dataset, classification: Classification) -> list[ColumnProfile]:
    """
    Prepare the classified attributes that are dataset columns, in classification order.
    """
    return [
        ColumnProfile(attribute, dataset.frame[attribute.name])
        for attribute in classification.attributes
        if attribute.name in dataset.headers
    ]


def evidence_to_dict(evidence: TechniqueEvidence) -> dict[str, Any]:
    return {
        "attribute": evidence.attribute,
        "confidence": float(evidence.confidence),
        "evidence_samples": list(evidence.evidence_samples),
        "reason": evidence.reason,
    }
