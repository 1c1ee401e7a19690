"""
Shared constants for the privacy index calculator.

This module defines constants used across the privacy index components for
consistency in operations like float comparisons, attribute type names and
equivalence class key construction.
"""

import math

# Used to determine equality of floats
MAXIMUM_PRECISION_DIGITS: int = 8
EPSILON: float = math.pow(10, -MAXIMUM_PRECISION_DIGITS)

# Attribute types produced by the (external) attribute classifier
DIRECT_IDENTIFIER: str = "direct-identifier"
QUASI_IDENTIFIER: str = "quasi-identifier"
SENSITIVE: str = "sensitive"
NON_SENSITIVE: str = "non-sensitive"
ATTRIBUTE_TYPES: tuple[str, ...] = (DIRECT_IDENTIFIER, QUASI_IDENTIFIER, SENSITIVE, NON_SENSITIVE)

DATA_PATTERNS: tuple[str, ...] = (
    "numeric",
    "categorical",
    "date",
    "identifier",
    "text",
    "boolean",
    "hash",
    "location",
    "unknown",
)

# Joins per column value codes into a single equivalence class key
CODE_SEPARATOR: str = ","

# Sensitive attribute values are concatenated with this before l-diversity analysis
SENSITIVE_VALUE_SEPARATOR: str = "|"

EQUIVALENCE_CLASS_ID_PREFIX: str = "EC-"

# Rows processed between cancellation checks while building equivalence classes
DEFAULT_GROUPING_BATCH_SIZE: int = 50_000
