"""
Equivalence class construction.

An equivalence class is the set of rows sharing the same normalized
(trimmed, lower-cased) quasi-identifier values. All disclosure risk metrics in
this package are computed over the same grouping.
"""

import logging
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd

from privacy_index.cancellation import CancellationToken, check_cancelled
from privacy_index.constants import CODE_SEPARATOR, DEFAULT_GROUPING_BATCH_SIZE, EQUIVALENCE_CLASS_ID_PREFIX
from privacy_index.dataset import Dataset
from privacy_index.pandas_utils import factorize_columns, join_row_keys, normalize_frame


class EquivalenceClass:
    """
    A group of rows with identical normalized quasi-identifier values.

    Parameters
    ----------
    id : str
        Identifier, EC-<n> with n numbered by order of first appearance.
    key : tuple
        Normalized quasi-identifier values, in quasi-identifier column order.
    quasi_identifiers : Iterable[str]
        Quasi-identifier column names, aligned with key.
    row_indices : Iterable[int]
        Indices of the member rows, ascending.
    """

    def __init__(
        self,
        id: str,  # pylint: disable=redefined-builtin
        key: tuple[str, ...],
        quasi_identifiers: Iterable[str],
        row_indices: Iterable[int],
    ) -> None:
        self.id = id
        self.key = tuple(key)
        self.quasi_identifier_values: dict[str, str] = dict(zip(quasi_identifiers, self.key))
        self.row_indices: list[int] = [int(idx) for idx in row_indices]

    @property
    def size(self) -> int:
        return len(self.row_indices)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "quasi_identifier_values": dict(self.quasi_identifier_values),
            "size": self.size,
            "row_indices": list(self.row_indices),
        }

    def __repr__(self) -> str:
        return f"{self.id} (size = {self.size}, key = {self.key})"


def _factorize_in_batches(
    keys: pd.Series,
    batch_size: int,
    cancellation: Optional[CancellationToken],
) -> tuple[np.ndarray, list[str]]:
    """
    Assign each key a class code, numbered by order of first appearance.

    Equivalent to pd.factorize(keys) but processes keys in batches so that a
    cancellation token can be checked between them.
    """
    codes = np.empty(len(keys), dtype=np.int64)
    key_to_code: dict[str, int] = {}
    uniques: list[str] = []
    for start in range(0, len(keys), batch_size):
        check_cancelled(cancellation, f"grouping rows {start} onward")
        batch = keys.iloc[start : start + batch_size]
        batch_codes, batch_uniques = pd.factorize(batch, sort=False)
        # pd.factorize numbers uniques by first appearance within the batch
        local_to_global = np.empty(len(batch_uniques), dtype=np.int64)
        for local_code, key in enumerate(batch_uniques):
            global_code = key_to_code.get(key)
            if global_code is None:
                global_code = len(uniques)
                key_to_code[key] = global_code
                uniques.append(key)
            local_to_global[local_code] = global_code
        codes[start : start + len(batch)] = local_to_global[batch_codes]
    return codes, uniques


def group_row_indices(
    input_df: pd.DataFrame,
    cols: list[str],
    cancellation: Optional[CancellationToken] = None,
    batch_size: int = DEFAULT_GROUPING_BATCH_SIZE,
) -> list[np.ndarray]:
    """
    Group row positions of a normalized dataframe by the values of the given columns.

    Parameters
    ----------
    input_df : pd.DataFrame
        Normalized string values.
    cols : List[str]
        Columns to group by; if empty, all rows form one group.
    cancellation : Optional[CancellationToken], default=None
        Checked between batches.
    batch_size : int, optional
        Number of rows per batch.

    Returns
    -------
    List[np.ndarray]
        Row positions of each group (ascending), groups ordered by first appearance.
    """
    assert batch_size > 0, f"batch_size ({batch_size}) must be positive"
    if len(input_df) == 0:
        return []
    keys = join_row_keys(factorize_columns(input_df, cols), cols, CODE_SEPARATOR)
    codes, uniques = _factorize_in_batches(keys, batch_size, cancellation)
    # stable sort keeps row positions ascending within each group
    order = np.argsort(codes, kind="stable")
    counts = np.bincount(codes, minlength=len(uniques))
    return np.split(order, np.cumsum(counts)[:-1])


def build_equivalence_classes(
    logger: logging.Logger,
    dataset: Dataset,
    quasi_identifiers: list[str],
    cancellation: Optional[CancellationToken] = None,
    batch_size: int = DEFAULT_GROUPING_BATCH_SIZE,
) -> list[EquivalenceClass]:
    """
    Group dataset rows into equivalence classes by normalized quasi-identifier values.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset; not modified.
    quasi_identifiers : List[str]
        Quasi-identifier column names. Names that are not dataset columns are
        ignored. If none remain, all rows form a single class.
    cancellation : Optional[CancellationToken], default=None
        Checked between grouping batches.
    batch_size : int, optional
        Number of rows per grouping batch.

    Returns
    -------
    List[EquivalenceClass]
        Classes ordered by first appearance. Class sizes sum to the row count
        and the classes partition the rows. Empty if the dataset has no rows.
    """
    qids = [qid for qid in quasi_identifiers if qid in dataset.headers]
    if len(qids) < len(quasi_identifiers):
        logger.warning(
            "Ignoring quasi-identifiers not present in dataset: %s",
            [qid for qid in quasi_identifiers if qid not in dataset.headers],
        )
    normalized_df = normalize_frame(dataset.frame[qids])
    groups = group_row_indices(normalized_df, qids, cancellation=cancellation, batch_size=batch_size)

    if len(qids) == 0:
        keys: Iterable[tuple] = [()] * len(groups)
    else:
        first_positions = np.array([row_positions[0] for row_positions in groups], dtype=np.int64)
        keys = normalized_df.iloc[first_positions].itertuples(index=False, name=None)
    equivalence_classes = [
        EquivalenceClass(f"{EQUIVALENCE_CLASS_ID_PREFIX}{i + 1}", key, qids, row_positions)
        for i, (key, row_positions) in enumerate(zip(keys, groups))
    ]

    assert sum(ec.size for ec in equivalence_classes) == dataset.record_count, (
        f"Equivalence class sizes ({sum(ec.size for ec in equivalence_classes)}) "
        f"do not sum to the row count ({dataset.record_count})"
    )
    logger.debug(
        "Built %d equivalence classes over %d rows using %s",
        len(equivalence_classes),
        dataset.record_count,
        qids,
    )
    return equivalence_classes
