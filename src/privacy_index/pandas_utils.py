"""
Pandas utility functions.

We call this pandas_utils instead of pandas to avoid mistakes in import statements.
"""

from typing import Iterable

import pandas as pd


def normalize_values(values: pd.Series) -> pd.Series:
    """
    Normalize a column of string values for equality comparisons.

    Values are trimmed of surrounding whitespace and lower-cased. Missing values
    are treated as the empty string.

    Parameters
    ----------
    values : pd.Series
        Column of (string) values.

    Returns
    -------
    pd.Series
        Normalized values, same index as the input.
    """
    return values.fillna("").astype(str).str.strip().str.lower()


def normalize_frame(input_df: pd.DataFrame) -> pd.DataFrame:
    """
    Apply normalize_values to every column of a dataframe.

    Parameters
    ----------
    input_df : pd.DataFrame
        DataFrame of string values; not modified.

    Returns
    -------
    pd.DataFrame
        A new DataFrame with normalized values.
    """
    return pd.DataFrame(
        {col: normalize_values(input_df[col]) for col in input_df.columns},
        index=input_df.index,
        columns=input_df.columns,
    )


def factorize_columns(input_df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    """
    Replace the values of each column with their integer code, as text.

    Codes are numbered by order of first appearance within each column, so two
    rows have equal codes in a column iff they have equal values. Unlike the
    values themselves, codes can be joined with a non-digit separator without keys of
    different rows colliding.

    Parameters
    ----------
    input_df : pd.DataFrame
        DataFrame of normalized string values.
    cols : Iterable[str]
        Columns to factorize.

    Returns
    -------
    pd.DataFrame
        One column of codes per input column, same index as the input.
    """
    cols = list(cols)
    return pd.DataFrame(
        {col: pd.Series(pd.factorize(input_df[col], sort=False)[0], index=input_df.index).astype(str) for col in cols},
        index=input_df.index,
        columns=cols,
    )


def join_row_keys(input_df: pd.DataFrame, cols: Iterable[str], separator: str) -> pd.Series:
    """
    Join the values of the given columns row-wise into a single string key.

    Parameters
    ----------
    input_df : pd.DataFrame
        DataFrame of normalized string values.
    cols : Iterable[str]
        Columns to join, in order.
    separator : str
        Separator; keys of different rows may only collide if it occurs in a value.

    Returns
    -------
    pd.Series
        One key per row; the empty string for every row if cols is empty.
    """
    cols = list(cols)
    if len(cols) == 0:
        return pd.Series([""] * len(input_df), index=input_df.index, dtype=object)
    keys = input_df[cols[0]].astype(str)
    for col in cols[1:]:
        keys = keys + separator + input_df[col].astype(str)
    return keys
